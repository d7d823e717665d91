# src/rtlsim_core/export/verilog.py
"""
Structural Verilog export of a netlist, and the matching importer.

The writer always works on the canonical form of the netlist, so exporting
the same design twice produces byte-identical text, and exporting a netlist
read back by `import_verilog` reproduces the original text.

Naming rules of the generated module:

- an input port bit is named after the port (`a`, or `a[3]` for a vector);
- a gate output that drives an output port bit takes the name of the first
  such bit, so a two-input AND exports as a single `assign y = a & b;`;
- every other net is `n<id>`, declared `wire`, or `reg` when a register
  drives it;
- output bits not named that way are connected by a plain alias `assign`.

Each register has an `initial` statement, and registers that share a clock
net are updated in one `always @(posedge ...)` block. Input port defaults
survive the round trip as a `// default: N` comment on the declaration.
Module and port names must be legal Verilog identifiers that are not
reserved words.

The importer parses the text with pyverilog and walks its AST. Besides the
exported form it accepts plain structural Verilog of the same subset:
`[N:0]` vector declarations, expressions nesting `&`, `|`, `^`, `~` and
`?:` (each operator becomes one primitive gate), and register updates
whose right-hand side is such an expression.
"""
import functools
import logging
import re
import tempfile
from typing import Dict, List, Optional, Tuple

from pyverilog.vparser import ast as vast
from pyverilog.vparser.parser import ParseError, VerilogParser

from ..components.base_enums import PortDirection
from ..synthesis.netlist import Gate, GateKind, Netlist, NetlistPort, Register
from .exceptions import NetlistFormatError

logger = logging.getLogger(__name__)

_OPERATORS = {GateKind.AND: "&", GateKind.OR: "|", GateKind.XOR: "^"}
_KINDS_BY_NODE = {vast.And: GateKind.AND, vast.Or: GateKind.OR, vast.Xor: GateKind.XOR}

_INTERNAL_NAME = re.compile(r"^n\d+$")
_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_$]*$")
_BIT_CONSTANT = re.compile(r"^(?:1'[bB])?([01])$")
_DEFAULT_COMMENT = re.compile(r"^\s*input\b[^;]*?(\w+)\s*;\s*//\s*default:\s*(\d+)\s*$")
_PARSE_ERROR_LINE = re.compile(r"line:(\d+)")

VERILOG_KEYWORDS = frozenset("""
    always and assign automatic begin buf bufif0 bufif1 case casex casez cell cmos config
    deassign default defparam design disable edge else end endcase endconfig endfunction
    endgenerate endmodule endprimitive endspecify endtable endtask event for force forever
    fork function generate genvar highz0 highz1 if ifnone incdir include initial inout input
    instance integer join large liblist library localparam macromodule medium module nand
    negedge nmos nor noshowcancelled not notif0 notif1 or output parameter pmos posedge
    primitive pull0 pull1 pulldown pullup pulsestyle_onevent pulsestyle_ondetect rcmos real
    realtime reg release repeat rnmos rpmos rtran rtranif0 rtranif1 scalared showcancelled
    signed small specify specparam strong0 strong1 supply0 supply1 table task time tran
    tranif0 tranif1 tri tri0 tri1 triand trior trireg unsigned use uwire vectored wait wand
    weak0 weak1 while wire wor xnor xor
""".split())


def _bit_name(name: str, width: int, bit: int) -> str:
    return name if width == 1 else f"{name}[{bit}]"


# --- Export ---

class _VerilogWriter:
    def __init__(self, netlist: Netlist):
        self.netlist = netlist.canonical()
        self.names: Dict[int, str] = {}
        self.aliases: List[Tuple[str, int]] = []

    def write(self) -> str:
        netlist = self.netlist
        self._assign_names()
        register_nets = {r.output for r in netlist.registers}

        lines = [f"module {netlist.name} ({', '.join(p.name for p in netlist.ports)});"]
        for port in netlist.ports:
            vector = "" if port.width == 1 else f"[{port.width - 1}:0] "
            keyword = "input" if port.direction is PortDirection.IN else "output"
            line = f"  {keyword} {vector}{port.name};"
            if port.direction is PortDirection.IN and port.default is not None:
                line += f" // default: {port.default}"
            lines.append(line)
        for net in range(netlist.net_count):
            if net not in self.names:
                lines.append(f"  {'reg' if net in register_nets else 'wire'} n{net};")

        body = [f"  assign {self.name(g.output)} = {self._expression(g)};" for g in netlist.gates]
        body += [f"  assign {name} = {self.name(net)};" for name, net in self.aliases]
        if body:
            lines.append("")
            lines.extend(body)

        if netlist.registers:
            lines.append("")
            lines.extend(f"  initial {self.name(r.output)} = 1'b{r.init};" for r in netlist.registers)
            for clock in netlist.clock_nets:
                lines.append("")
                lines.append(f"  always @(posedge {self.name(clock)}) begin")
                for register in netlist.registers:
                    if register.clock == clock:
                        lines.append(f"    {self.name(register.output)} <= {self._next_state(register)};")
                lines.append("  end")
        lines.append("endmodule")
        return "\n".join(lines) + "\n"

    def name(self, net: int) -> str:
        return self.names.get(net, f"n{net}")

    def _assign_names(self):
        netlist = self.netlist
        for name in (netlist.name,) + tuple(p.name for p in netlist.ports):
            if name in VERILOG_KEYWORDS:
                details = f"'{name}' is a reserved word in Verilog."
            elif not _IDENTIFIER.match(name):
                details = f"'{name}' is not a legal Verilog identifier."
            elif name != netlist.name and _INTERNAL_NAME.match(name):
                details = f"Port name '{name}' collides with the names of internal nets."
            else:
                continue
            raise NetlistFormatError(component=netlist.name, details=details, user_input=name)
        gate_nets = {g.output for g in netlist.gates}
        for port in netlist.inputs:
            for bit, net in enumerate(port.nets):
                self.names[net] = _bit_name(port.name, port.width, bit)
        for port in netlist.outputs:
            for bit, net in enumerate(port.nets):
                name = _bit_name(port.name, port.width, bit)
                if net in gate_nets and net not in self.names:
                    self.names[net] = name
                else:
                    self.aliases.append((name, net))

    def _expression(self, gate: Gate) -> str:
        if gate.kind is GateKind.CONST:
            return f"1'b{gate.value}"
        if gate.kind is GateKind.NOT:
            return f"~{self.name(gate.inputs[0])}"
        if gate.kind is GateKind.MUX:
            d0, d1, sel = (self.name(n) for n in gate.inputs)
            return f"{sel} ? {d1} : {d0}"
        left, right = gate.inputs
        return f"{self.name(left)} {_OPERATORS[gate.kind]} {self.name(right)}"

    def _next_state(self, register: Register) -> str:
        if register.reset is None:
            return self.name(register.data)
        return f"{self.name(register.reset)} ? 1'b{register.reset_value} : {self.name(register.data)}"


def export_verilog(netlist: Netlist) -> str:
    """
    Writes `netlist` as one structural Verilog module: one `assign` per
    combinational gate and one `always @(posedge ...)` block per clock domain.
    """
    text = _VerilogWriter(netlist).write()
    logger.info("Exported %s as structural Verilog.", netlist.summary())
    return text


# --- Import ---

@functools.lru_cache(maxsize=None)
def _verilog_parser() -> VerilogParser:
    # ply writes the LALR tables into outputdir when the parser is built.
    return VerilogParser(outputdir=tempfile.mkdtemp(prefix="rtlsim_core_vparser_"), debug=False)


def _statements(statement) -> Tuple:
    if isinstance(statement, vast.Block):
        return tuple(statement.statements)
    return (statement,)


class _VerilogReader:
    def __init__(self, text: str):
        self.text = text
        self.lines = text.splitlines()
        self.module: Optional[str] = None
        self.order: List[str] = []
        self.ports: Dict[str, Tuple[PortDirection, int]] = {}
        self.widths: Dict[str, int] = {}
        self.redeclared: Dict[str, int] = {}
        self.gates: List[Tuple[GateKind, Tuple[str, ...], str, Optional[int]]] = []
        self.aliases: Dict[str, str] = {}
        self.registers: List[Tuple[str, str, str, Optional[str], int]] = []
        self.initial: Dict[str, int] = {}
        self.defined: Dict[str, int] = {}
        self.nets: Dict[str, int] = {}
        self.net_count = 0
        self.temporaries = 0

    def error(self, details: str, line: Optional[int] = None, user_input: Optional[str] = None) -> NetlistFormatError:
        if user_input is None and line and line <= len(self.lines):
            user_input = self.lines[line - 1].strip()
        return NetlistFormatError(
            component=self.module or "<verilog>",
            details=details,
            line=line or None,
            user_input=user_input,
        )

    # --- Parsing ---

    def parse(self):
        parser = _verilog_parser()
        parser.lexer.lexer.lineno = 1
        try:
            source = parser.parse(self.text)
        except ParseError as e:
            match = _PARSE_ERROR_LINE.search(str(e))
            raise self.error(f"Verilog syntax error: {e}", int(match.group(1)) if match else None) from e

        definitions = source.description.definitions
        if len(definitions) != 1 or not isinstance(definitions[0], vast.ModuleDef):
            raise self.error(f"Expected exactly one module, found {len(definitions)} definition(s).")
        module = definitions[0]
        self.module = module.name
        if module.paramlist is not None and module.paramlist.params:
            raise self.error("Parameterized modules are not supported.", module.lineno)

        for port in module.portlist.ports:
            if isinstance(port, vast.Ioport):
                self._declare(port.first, port.lineno)
                self.order.append(port.first.name)
            else:
                self.order.append(port.name)

        for item in module.items:
            if isinstance(item, vast.Decl):
                for declaration in item.list:
                    self._declare(declaration, item.lineno)
            elif isinstance(item, vast.Assign):
                self._parse_assign(item)
            elif isinstance(item, vast.Always):
                self._parse_always(item)
            elif isinstance(item, vast.Initial):
                self._parse_initial(item)
            else:
                raise self.error(f"Unsupported construct '{type(item).__name__}'.", item.lineno)

        for name in self.order:
            if name not in self.ports:
                raise self.error(f"Port '{name}' has no input or output declaration.", module.lineno, name)
        for name in self.ports:
            if name not in self.order:
                raise self.error(f"'{name}' is declared as a port but missing from the module header.", module.lineno, name)

    def _declare(self, node, line: int):
        line = node.lineno or line
        name = node.name
        width = self._width(node.width, line)
        if isinstance(node, (vast.Input, vast.Output)):
            if name in self.widths:
                raise self.error(f"'{name}' is declared twice.", line)
            direction = PortDirection.IN if isinstance(node, vast.Input) else PortDirection.OUT
            self.ports[name] = (direction, width)
        elif isinstance(node, (vast.Wire, vast.Reg)):
            if getattr(node, "dimensions", None) is not None:
                raise self.error(f"Array '{name}' is not supported; declare one net per word.", line)
            if name in self.widths:
                # `output y; reg y;` gives a port its net type.
                if name not in self.ports or self.widths[name] != width or name in self.redeclared:
                    raise self.error(f"'{name}' is declared twice.", line)
                self.redeclared[name] = line
        else:
            raise self.error(f"Unsupported declaration '{type(node).__name__}'.", line)
        self.widths[name] = width

    def _integer(self, node, line: int) -> int:
        if isinstance(node, vast.IntConst):
            try:
                return int(node.value.replace("_", ""))
            except ValueError:
                pass
        raise self.error("Expected a plain decimal integer.", line)

    def _width(self, width, line: int) -> int:
        if width is None:
            return 1
        msb = self._integer(width.msb, line)
        lsb = self._integer(width.lsb, line)
        if lsb != 0 or msb < 0:
            raise self.error(f"Only [N:0] vector ranges are supported, found [{msb}:{lsb}].", line)
        return msb + 1

    def _bit(self, node, line: int) -> int:
        match = _BIT_CONSTANT.match(node.value)
        if not match:
            raise self.error(f"Only the single-bit constants 1'b0 and 1'b1 are supported, found {node.value}.", line)
        return int(match.group(1))

    def _ref(self, node, line: int) -> str:
        """The reader's name of one bit: `a`, or `a[3]` for a bit of a vector."""
        line = node.lineno or line
        if isinstance(node, vast.Identifier):
            name, bit = node.name, None
        elif isinstance(node, vast.Pointer) and isinstance(node.var, vast.Identifier):
            name, bit = node.var.name, self._integer(node.ptr, line)
        else:
            raise self.error(f"Expected a signal or one bit of a vector, found '{type(node).__name__}'.", line)
        if name not in self.widths:
            raise self.error(f"'{name}' is used before it is declared.", line)
        width = self.widths[name]
        if bit is None:
            if width != 1:
                raise self.error(f"Vector '{name}' must be used one bit at a time.", line)
            return name
        if not 0 <= bit < width:
            raise self.error(f"Bit {bit} is out of range for the {width}-bit '{name}'.", line)
        return _bit_name(name, width, bit)

    def _define(self, ref: str, line: int):
        if ref in self.defined:
            raise self.error(f"'{ref}' is driven twice (lines {self.defined[ref]} and {line}).", line)
        self.defined[ref] = line

    def _parse_assign(self, item: vast.Assign):
        line = item.lineno
        target = self._ref(item.left.var, line)
        self._define(target, line)
        self._drive(target, item.right.var, line)

    def _drive(self, target: str, expression, line: int):
        """Records the gates computing `expression` onto `target`, one per operator."""
        line = expression.lineno or line
        if isinstance(expression, (vast.Identifier, vast.Pointer)):
            self.aliases[target] = self._ref(expression, line)
            return
        if isinstance(expression, vast.IntConst):
            self.gates.append((GateKind.CONST, (), target, self._bit(expression, line)))
            return
        if type(expression) in _KINDS_BY_NODE:
            kind = _KINDS_BY_NODE[type(expression)]
            operands = (self._operand(expression.left, line), self._operand(expression.right, line))
        elif isinstance(expression, vast.Unot):
            kind = GateKind.NOT
            operands = (self._operand(expression.right, line),)
        elif isinstance(expression, vast.Cond):
            kind = GateKind.MUX
            operands = (
                self._operand(expression.false_value, line),
                self._operand(expression.true_value, line),
                self._operand(expression.cond, line),
            )
        else:
            raise self.error(f"Unsupported expression '{type(expression).__name__}'.", line)
        self.gates.append((kind, operands, target, None))

    def _operand(self, expression, line: int) -> str:
        if isinstance(expression, (vast.Identifier, vast.Pointer)):
            return self._ref(expression, line)
        self.temporaries += 1
        temporary = f"${self.temporaries}"
        self._drive(temporary, expression, line)
        return temporary

    def _parse_always(self, item: vast.Always):
        line = item.lineno
        senses = item.sens_list.list
        if len(senses) != 1 or senses[0].type != "posedge":
            raise self.error("Registers must be clocked by a single 'posedge' event.", line)
        clock = self._ref(senses[0].sig, line)
        for statement in _statements(item.statement):
            if not isinstance(statement, vast.NonblockingSubstitution):
                raise self.error("Expected a non-blocking register update.", statement.lineno or line)
            self._parse_register(statement, clock)

    def _parse_register(self, statement: vast.NonblockingSubstitution, clock: str):
        line = statement.lineno
        target = self._ref(statement.left.var, line)
        self._define(target, line)
        value = statement.right.var
        reset, reset_value = None, 0
        if (isinstance(value, vast.Cond) and isinstance(value.cond, (vast.Identifier, vast.Pointer))
                and isinstance(value.true_value, vast.IntConst)):
            reset = self._ref(value.cond, line)
            reset_value = self._bit(value.true_value, line)
            value = value.false_value
        self.registers.append((target, self._operand(value, line), clock, reset, reset_value))

    def _parse_initial(self, item: vast.Initial):
        for statement in _statements(item.statement):
            line = statement.lineno or item.lineno
            if not (isinstance(statement, vast.BlockingSubstitution)
                    and isinstance(statement.right.var, vast.IntConst)):
                raise self.error("Expected an initial value of the form 'initial r = 1'b0;'.", line)
            self.initial[self._ref(statement.left.var, line)] = self._bit(statement.right.var, line)

    def _defaults(self) -> Dict[str, int]:
        # pyverilog drops comments, so the default annotations are read from the text.
        defaults = {}
        for line in self.lines:
            match = _DEFAULT_COMMENT.match(line)
            if match:
                defaults[match.group(1)] = int(match.group(2))
        return defaults

    # --- Net resolution ---

    def _fresh(self) -> int:
        self.net_count += 1
        return self.net_count - 1

    def net(self, ref: str, seen: Tuple[str, ...] = ()) -> int:
        if ref in self.nets:
            return self.nets[ref]
        if ref in self.aliases:
            if ref in seen:
                raise self.error(f"Alias loop through '{ref}'.", user_input=" -> ".join(seen + (ref,)))
            net = self.net(self.aliases[ref], seen + (ref,))
        else:
            # Declared but never driven.
            net = self._fresh()
        self.nets[ref] = net
        return net

    def build(self) -> Netlist:
        self.parse()
        defaults = self._defaults()
        for name in self.order:
            direction, width = self.ports[name]
            if direction is PortDirection.IN:
                for bit in range(width):
                    ref = _bit_name(name, width, bit)
                    if ref in self.defined:
                        raise self.error(f"Input '{ref}' is driven inside the module.", self.defined[ref])
                    self.nets[ref] = self._fresh()
        for _, _, target, _ in self.gates:
            self.nets[target] = self._fresh()
        for target, _, _, _, _ in self.registers:
            self.nets[target] = self._fresh()

        gates = tuple(
            Gate(i, kind, tuple(self.net(ref) for ref in operands), self.nets[target], value)
            for i, (kind, operands, target, value) in enumerate(self.gates)
        )
        registers = tuple(
            Register(
                id=i,
                data=self.net(data),
                clock=self.net(clock),
                reset=self.net(reset) if reset is not None else None,
                output=self.nets[target],
                reset_value=reset_value,
                init=self.initial.get(target, 0),
            )
            for i, (target, data, clock, reset, reset_value) in enumerate(self.registers)
        )
        ports = []
        for name in self.order:
            direction, width = self.ports[name]
            ports.append(NetlistPort(
                name=name,
                direction=direction,
                nets=tuple(self.net(_bit_name(name, width, bit)) for bit in range(width)),
                default=defaults.get(name) if direction is PortDirection.IN else None,
            ))
        netlist = Netlist(self.module, tuple(ports), gates, registers, self.net_count)
        return netlist.check_integrity().canonical()


def import_verilog(text: str) -> Netlist:
    """
    Reads a structural Verilog module, such as one written by
    `export_verilog`, back into a canonical netlist.

    Raises:
        NetlistFormatError: If the text is not valid Verilog or uses constructs
                            outside the structural subset.
        NetlistIntegrityError: If the described netlist is structurally invalid.
    """
    netlist = _VerilogReader(text).build()
    logger.info("Imported %s from structural Verilog.", netlist.summary())
    return netlist
