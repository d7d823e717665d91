# src/rtlsim_core/parser/parser.py
"""
Parses YAML component libraries into Abstract Component Descriptions.

A library file looks like this::

    include:
      - common.yaml
    components:
      - name: counter
        parameters: {WIDTH: 4}
        ports:
          - {name: clk, direction: in}
          - {name: rst, direction: in, default: 0}
          - {name: q, direction: out, width: WIDTH}
        signals:
          - {name: count, width: WIDTH, initial: 0}
        behavior:
          - "q = count"
          - clocked:
              clock: clk
              reset: rst
              body:
                - "count = count + 1"

A behavior statement is either the short form `"target = expression"` or a
mapping with exactly one of the keys `assign`, `if`, `case`, `clocked` or
`write`. A memory is declared under `memories` and read as `name[address]`::

        memories:
          - {name: ram, depth: 16, width: 8, initial: [1, 2, 3]}
        behavior:
          - "q = ram[raddr]"
          - write: {memory: ram, address: waddr, data: d, enable: we, clock: clk}

Included files are resolved relative to the including file and their
components are returned first.
"""
import logging
import re
import string
from pathlib import Path
from typing import Any, Dict, Iterable, List, Set, Tuple, Union

import cerberus
import yaml

from ..behavior.statements import Assign, Case, CaseBranch, Clocked, If, MemoryWrite, Statement
from ..components.base_enums import PortDirection
from ..components.description import (
    ComponentDescription,
    InstanceDescription,
    MemoryDescription,
    PortDescription,
    SignalDescription,
)
from ..components.registry import ComponentRegistry
from ..constants import DEFAULT_CLOCK_NAME
from .exceptions import ParsingError, SchemaValidationError

logger = logging.getLogger(__name__)

# The core identifier pattern without anchors, used for composition.
ID_REGEX_FRAGMENT = r"[a-zA-Z_][a-zA-Z0-9_]*"

# A valid identifier for a single token. Dots are reserved for flattened
# hierarchy names, so they are forbidden in declared names.
ID_REGEX = f"^{ID_REGEX_FRAGMENT}$"
ALLOWED_ID_CHARS = set(string.ascii_letters + string.digits + "_")

_SHORT_ASSIGN = re.compile(rf"^\s*({ID_REGEX_FRAGMENT})\s*=(?!=)\s*(.+?)\s*$", re.DOTALL)


class EnhancedValidator(cerberus.Validator):
    """Custom Cerberus validator to enforce the project's strict naming conventions."""
    def __init__(self, *args, **kwargs):
        super(EnhancedValidator, self).__init__(*args, **kwargs)
        self.rules['id_regex'] = {'schema': {'type': 'boolean'}}
        self.rules['unique_elements_by_key'] = {'schema': {'type': 'string'}}

    def _validate_id_regex(self, constraint: bool, field: str, value: Any):
        if not constraint: return
        if not isinstance(value, str):
            self._error(field, "must be a string to be validated by id_regex.")
            return

        if not re.match(ID_REGEX, value):
            invalid_chars = sorted(list(set(value) - ALLOWED_ID_CHARS))
            message = (
                f"Identifier '{value}' is invalid. Identifiers must start with a letter or underscore, "
                "and can only contain letters, numbers, and underscores. "
                f"This identifier contains the following forbidden character(s): {invalid_chars}"
            )
            self._error(field, message)

    def _validate_unique_elements_by_key(self, key_for_uniqueness: str, field: str, value: List[Dict]):
        """
        Validates that all dictionaries in a list have a unique value for a given key.
        The rule's arguments are validated against this schema:
        {'type': 'string'}
        """
        if not isinstance(value, list):
            return # Let the 'type: list' rule handle this.

        seen_keys = set()
        duplicates = []
        for item in value:
            if not isinstance(item, dict):
                continue # Let sub-schema validation handle this.

            item_key = item.get(key_for_uniqueness)
            if item_key is not None:
                if item_key in seen_keys:
                    duplicates.append(item_key)
                else:
                    seen_keys.add(item_key)

        if duplicates:
            unique_duplicates = sorted(list(set(duplicates)))
            self._error(field, f"Duplicate values found for key '{key_for_uniqueness}': {unique_duplicates}")


class ComponentLibraryParser:
    """
    Parses and validates YAML component libraries, following `include:` lists.
    Its sole responsibility is to produce `ComponentDescription` objects.
    """
    _id_rule = {"type": "string", "required": True, "empty": False, "id_regex": True}
    _expr_rule = {"type": ["string", "integer"], "required": True, "empty": False}
    _optional_expr_rule = {"type": ["string", "integer"], "required": False, "empty": False}
    _width_rule = {"type": ["integer", "string"], "required": False, "empty": False}
    _value_rule = {"type": "integer", "required": False, "min": 0}

    _port_schema = {
        "name": _id_rule,
        "direction": {"type": "string", "required": True, "allowed": ["in", "out"]},
        "width": _width_rule,
        "default": _value_rule,
        "initial": _value_rule,
    }

    _signal_schema = {
        "name": _id_rule,
        "width": _width_rule,
        "default": _value_rule,
        "initial": _value_rule,
    }

    _memory_schema = {
        "name": _id_rule,
        "depth": {"type": "integer", "required": True, "min": 1},
        "width": _width_rule,
        "initial": {"type": "list", "required": False, "schema": {"type": "integer", "min": 0}},
    }

    _instance_schema = {
        "id": _id_rule,
        "type": _id_rule,
        "parameters": {"type": "dict", "required": False, "keysrules": {"type": "string", "id_regex": True}, "valuesrules": {"type": ["integer", "string"]}},
        "connections": {"type": "dict", "required": False, "keysrules": {"type": "string", "id_regex": True}, "valuesrules": {"type": ["integer", "string"]}},
    }

    _component_schema = {
        "name": _id_rule,
        "parameters": {"type": "dict", "required": False, "keysrules": {"type": "string", "id_regex": True}, "valuesrules": {"type": ["integer", "string"], "nullable": True}},
        "ports": {"type": "list", "required": False, "unique_elements_by_key": "name", "schema": {"type": "dict", "schema": _port_schema}},
        "signals": {"type": "list", "required": False, "unique_elements_by_key": "name", "schema": {"type": "dict", "schema": _signal_schema}},
        "memories": {"type": "list", "required": False, "unique_elements_by_key": "name", "schema": {"type": "dict", "schema": _memory_schema}},
        "instances": {"type": "list", "required": False, "unique_elements_by_key": "id", "schema": {"type": "dict", "schema": _instance_schema}},
        "behavior": {"type": "list", "required": False, "schema": {"type": ["string", "dict"]}},
    }

    _schema = {
        "include": {"type": "list", "required": False, "schema": {"type": "string", "empty": False}},
        "components": {"type": "list", "required": False, "unique_elements_by_key": "name", "schema": {"type": "dict", "schema": _component_schema}},
    }

    # One schema per statement form. Nested statement lists are validated
    # when the nested statements themselves are converted.
    _statement_schemas = {
        "assign": {
            "target": _id_rule,
            "expr": _expr_rule,
            "when": _optional_expr_rule,
            "clock": {"type": "string", "required": False, "id_regex": True},
            "reset": _optional_expr_rule,
            "reset_value": _value_rule,
        },
        "if": {
            "condition": _expr_rule,
            "then": {"type": "list", "required": True},
            "else": {"type": "list", "required": False},
        },
        "case": {
            "selector": _expr_rule,
            "branches": {
                "type": "list", "required": True, "minlength": 1,
                "schema": {"type": "dict", "schema": {
                    "match": {"type": ["list", "string", "integer"], "required": True},
                    "body": {"type": "list", "required": True},
                }},
            },
            "default": {"type": "list", "required": False},
        },
        "clocked": {
            "clock": {"type": "string", "required": False, "id_regex": True},
            "reset": _optional_expr_rule,
            "reset_values": {"type": "dict", "required": False, "keysrules": {"type": "string", "id_regex": True}, "valuesrules": {"type": "integer", "min": 0}},
            "body": {"type": "list", "required": True},
        },
        "write": {
            "memory": _id_rule,
            "address": _expr_rule,
            "data": _expr_rule,
            "enable": _optional_expr_rule,
            "clock": {"type": "string", "required": False, "id_regex": True},
        },
    }

    def __init__(self):
        self._validator = EnhancedValidator(self._schema)
        self._validator.allow_unknown = False
        self._statement_validators = {
            key: EnhancedValidator(schema, allow_unknown=False)
            for key, schema in self._statement_schemas.items()
        }
        logger.info("ComponentLibraryParser initialized with strict structural validation rules.")

    def parse_file(self, path: Union[str, Path]) -> List[ComponentDescription]:
        """Parses one library file and everything it includes."""
        return self.parse_files([path])

    def parse_files(self, paths: Iterable[Union[str, Path]]) -> List[ComponentDescription]:
        """
        Parses several library files. A file included from more than one place
        contributes its components only once.
        """
        loaded: Set[Path] = set()
        descriptions: List[ComponentDescription] = []
        for path in paths:
            top_path = Path(path).resolve()
            logger.info(f"Starting component library parsing from: {top_path}")
            descriptions.extend(self._parse_recursive(top_path, include_chain=(), loaded=loaded))
        logger.info("Parsed %d component description(s).", len(descriptions))
        return descriptions

    def _parse_recursive(self, yaml_path: Path, include_chain: Tuple[Path, ...], loaded: Set[Path]) -> List[ComponentDescription]:
        resolved_path = yaml_path.resolve()
        if resolved_path in include_chain:
            chain = " -> ".join(str(p) for p in include_chain + (resolved_path,))
            raise ParsingError(f"Circular include detected: {chain}", file_path=resolved_path)
        if resolved_path in loaded:
            logger.debug(f"Skipping already loaded library file: {resolved_path}")
            return []
        loaded.add(resolved_path)
        logger.debug(f"Parsing library file: {resolved_path}")

        yaml_content = self._load_yaml(resolved_path)
        if not self._validator.validate(yaml_content):
            raise SchemaValidationError(self._validator.errors, resolved_path)
        validated_data = self._validator.document

        descriptions: List[ComponentDescription] = []
        for include in validated_data.get("include", []):
            included_path = (resolved_path.parent / include).resolve()
            descriptions.extend(self._parse_recursive(included_path, include_chain + (resolved_path,), loaded))
        for raw in validated_data.get("components", []):
            descriptions.append(self._build_description(raw, resolved_path))
        return descriptions

    # --- Conversion into descriptions ---

    def _build_description(self, raw: Dict[str, Any], source: Path) -> ComponentDescription:
        name = raw["name"]
        ports = tuple(
            PortDescription(
                name=p["name"],
                direction=PortDirection(p["direction"]),
                width=p.get("width", 1),
                default=p.get("default"),
                initial=p.get("initial"),
            )
            for p in raw.get("ports", [])
        )
        signals = tuple(
            SignalDescription(
                name=s["name"],
                width=s.get("width", 1),
                default=s.get("default"),
                initial=s.get("initial"),
            )
            for s in raw.get("signals", [])
        )
        instances = tuple(
            InstanceDescription(
                instance_id=i["id"],
                component_type=i["type"],
                parameters=tuple(i.get("parameters", {}).items()),
                connections=tuple(i.get("connections", {}).items()),
            )
            for i in raw.get("instances", [])
        )
        memories = tuple(
            MemoryDescription(
                name=m["name"],
                depth=m["depth"],
                width=m.get("width", 1),
                initial=tuple(m.get("initial", [])),
            )
            for m in raw.get("memories", [])
        )
        behavior = self._statements(raw.get("behavior", []), f"{name}.behavior", source)
        return ComponentDescription(
            name=name,
            ports=ports,
            parameters=tuple(raw.get("parameters", {}).items()),
            signals=signals,
            instances=instances,
            behavior=behavior,
            memories=memories,
            source_path=source,
        )

    def _statements(self, raw_list: List[Any], location: str, source: Path) -> Tuple[Statement, ...]:
        if not isinstance(raw_list, list):
            raise SchemaValidationError({location: ["must be a list of statements"]}, source)
        return tuple(
            self._statement(raw, f"{location}[{index}]", source)
            for index, raw in enumerate(raw_list)
        )

    def _statement(self, raw: Any, location: str, source: Path) -> Statement:
        if isinstance(raw, str):
            match = _SHORT_ASSIGN.match(raw)
            if not match:
                raise SchemaValidationError({location: [f"'{raw}' is not of the form 'target = expression'"]}, source)
            return Assign(target=match.group(1), expr=match.group(2))

        if not isinstance(raw, dict) or len(raw) != 1:
            raise SchemaValidationError(
                {location: [f"a statement must have exactly one of the keys {sorted(self._statement_schemas)}"]},
                source,
            )
        (kind, body), = raw.items()
        validator = self._statement_validators.get(kind)
        if validator is None:
            raise SchemaValidationError({location: [f"unknown statement '{kind}'"]}, source)
        if not isinstance(body, dict):
            raise SchemaValidationError({f"{location}.{kind}": ["must be a mapping"]}, source)
        if not validator.validate(body):
            raise SchemaValidationError({f"{location}.{kind}": validator.errors}, source)
        data = validator.document

        if kind == "assign":
            return Assign(
                target=data["target"],
                expr=data["expr"],
                when=data.get("when"),
                clock=data.get("clock"),
                reset=data.get("reset"),
                reset_value=data.get("reset_value"),
            )
        if kind == "if":
            return If(
                condition=data["condition"],
                then=self._statements(data["then"], f"{location}.if.then", source),
                otherwise=self._statements(data.get("else", []), f"{location}.if.else", source),
            )
        if kind == "case":
            branches = []
            for index, branch in enumerate(data["branches"]):
                matches = branch["match"]
                branches.append(CaseBranch(
                    matches=tuple(matches) if isinstance(matches, list) else (matches,),
                    body=self._statements(branch["body"], f"{location}.case.branches[{index}]", source),
                ))
            return Case(
                selector=data["selector"],
                branches=tuple(branches),
                default=self._statements(data.get("default", []), f"{location}.case.default", source),
            )
        if kind == "write":
            return MemoryWrite(
                memory=data["memory"],
                address=data["address"],
                data=data["data"],
                enable=data.get("enable"),
                clock=data.get("clock"),
            )
        return Clocked(
            clock=data.get("clock", DEFAULT_CLOCK_NAME),
            body=self._statements(data["body"], f"{location}.clocked.body", source),
            reset=data.get("reset"),
            reset_values=tuple(data.get("reset_values", {}).items()),
        )

    def _load_yaml(self, source: Path) -> Dict[str, Any]:
        """Loads and performs basic sanity checks on a YAML file."""
        if not source.is_file():
            raise ParsingError(details=f"Component library not found at path: {source}", file_path=source)
        try:
            with source.open("r", encoding="utf-8") as f:
                content = yaml.safe_load(f)
            if content is None:
                raise ParsingError(details=f"The YAML file is empty or contains no valid content.", file_path=source)
            if not isinstance(content, dict):
                raise ParsingError(details=f"The root of the YAML file must be a dictionary (mapping).", file_path=source)
            return content
        except PermissionError as e:
            raise ParsingError(details=f"Permission denied when trying to read file: {e}", file_path=source) from e
        except yaml.YAMLError as e:
            raise ParsingError(details=f"Invalid YAML syntax: {e}", file_path=source) from e


def load_registry(*paths: Union[str, Path]) -> ComponentRegistry:
    """Parses the given library files and registers every component they declare."""
    descriptions = ComponentLibraryParser().parse_files(paths)
    return ComponentRegistry(descriptions)
