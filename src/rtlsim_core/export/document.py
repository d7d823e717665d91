# src/rtlsim_core/export/document.py
"""
The structured-document form of a netlist: a plain mapping of ports, gates
and registers that serializes to YAML, and its validated importer.

Like the Verilog writer, the document is always built from the canonical
netlist, so equal netlists give equal documents and `dump_document` is
byte-identical across runs.
"""
import logging
from typing import Any, Dict, Mapping, Union

import yaml

from ..components.base_enums import PortDirection
from ..parser.parser import EnhancedValidator
from ..synthesis.netlist import Gate, GateKind, Netlist, NetlistPort, Register
from .exceptions import NetlistFormatError

logger = logging.getLogger(__name__)

DOCUMENT_FORMAT = "rtlsim-netlist"
DOCUMENT_VERSION = 1

_net_rule = {"type": "integer", "min": 0}
_bit_rule = {"type": "integer", "allowed": [0, 1]}

_schema = {
    "format": {"type": "string", "required": True, "allowed": [DOCUMENT_FORMAT]},
    "version": {"type": "integer", "required": True, "allowed": [DOCUMENT_VERSION]},
    "module": {"type": "string", "required": True, "empty": False},
    "nets": {"type": "integer", "required": True, "min": 0},
    "ports": {
        "type": "list", "required": True, "unique_elements_by_key": "name",
        "schema": {"type": "dict", "schema": {
            "name": {"type": "string", "required": True, "id_regex": True},
            "direction": {"type": "string", "required": True, "allowed": [d.value for d in PortDirection]},
            "width": {"type": "integer", "required": True, "min": 1},
            "nets": {"type": "list", "required": True, "minlength": 1, "schema": _net_rule},
            "default": {"type": "integer", "min": 0, "nullable": True},
        }},
    },
    "gates": {
        "type": "list", "required": True,
        "schema": {"type": "dict", "schema": {
            "id": {"type": "integer", "required": True, "min": 0},
            "kind": {"type": "string", "required": True, "allowed": [k.value for k in GateKind]},
            "inputs": {"type": "list", "required": True, "schema": _net_rule},
            "output": {**_net_rule, "required": True},
            "value": _bit_rule,
        }},
    },
    "registers": {
        "type": "list", "required": True,
        "schema": {"type": "dict", "schema": {
            "id": {"type": "integer", "required": True, "min": 0},
            "data": {**_net_rule, "required": True},
            "clock": {**_net_rule, "required": True},
            "reset": {**_net_rule, "required": True, "nullable": True},
            "output": {**_net_rule, "required": True},
            "reset_value": {**_bit_rule, "required": True},
            "init": {**_bit_rule, "required": True},
        }},
    },
}


def export_document(netlist: Netlist) -> Dict[str, Any]:
    """The canonical netlist as a plain, YAML-serializable mapping."""
    canonical = netlist.canonical()
    ports = []
    for port in canonical.ports:
        entry: Dict[str, Any] = {
            "name": port.name,
            "direction": port.direction.value,
            "width": port.width,
            "nets": list(port.nets),
        }
        if port.default is not None:
            entry["default"] = port.default
        ports.append(entry)
    gates = []
    for gate in canonical.gates:
        entry = {"id": gate.id, "kind": gate.kind.value, "inputs": list(gate.inputs), "output": gate.output}
        if gate.kind is GateKind.CONST:
            entry["value"] = gate.value
        gates.append(entry)
    registers = [
        {
            "id": r.id,
            "data": r.data,
            "clock": r.clock,
            "reset": r.reset,
            "output": r.output,
            "reset_value": r.reset_value,
            "init": r.init,
        }
        for r in canonical.registers
    ]
    return {
        "format": DOCUMENT_FORMAT,
        "version": DOCUMENT_VERSION,
        "module": canonical.name,
        "nets": canonical.net_count,
        "ports": ports,
        "gates": gates,
        "registers": registers,
    }


def dump_document(netlist: Netlist) -> str:
    """The document of `netlist` as YAML text."""
    text = yaml.safe_dump(export_document(netlist), sort_keys=False, default_flow_style=None)
    logger.info("Exported %s as a netlist document.", netlist.summary())
    return text


def import_document(data: Union[str, Mapping[str, Any]]) -> Netlist:
    """
    Reads a document produced by `export_document` (or its YAML text from
    `dump_document`) back into a canonical netlist.

    Raises:
        NetlistFormatError: If the YAML is invalid or the document does not match the schema.
        NetlistIntegrityError: If the described netlist is structurally invalid.
    """
    if isinstance(data, str):
        try:
            data = yaml.safe_load(data)
        except yaml.YAMLError as e:
            raise NetlistFormatError(component="<document>", details=f"Invalid YAML syntax: {e}") from e
    if not isinstance(data, Mapping):
        raise NetlistFormatError(component="<document>", details="The root of a netlist document must be a mapping.")

    validator = EnhancedValidator(_schema, allow_unknown=False)
    if not validator.validate(dict(data)):
        error_lines = "\n".join(f"  - Field '{k}': {v}" for k, v in sorted(validator.errors.items()))
        raise NetlistFormatError(
            component=str(data.get("module", "<document>")),
            details=f"The netlist document does not conform to the schema:\n{error_lines}",
        )
    document = validator.document

    for port in document["ports"]:
        if len(port["nets"]) != port["width"]:
            raise NetlistFormatError(
                component=document["module"],
                details=f"Port '{port['name']}' declares width {port['width']} but lists {len(port['nets'])} net(s).",
                user_input=port["name"],
            )

    ports = tuple(
        NetlistPort(
            name=p["name"],
            direction=PortDirection(p["direction"]),
            nets=tuple(p["nets"]),
            default=p.get("default"),
        )
        for p in document["ports"]
    )
    gates = tuple(
        Gate(g["id"], GateKind(g["kind"]), tuple(g["inputs"]), g["output"], g.get("value"))
        for g in document["gates"]
    )
    registers = tuple(
        Register(
            id=r["id"],
            data=r["data"],
            clock=r["clock"],
            reset=r["reset"],
            output=r["output"],
            reset_value=r["reset_value"],
            init=r["init"],
        )
        for r in document["registers"]
    )
    netlist = Netlist(document["module"], ports, gates, registers, document["nets"])
    netlist = netlist.check_integrity().canonical()
    logger.info("Imported %s from a netlist document.", netlist.summary())
    return netlist
