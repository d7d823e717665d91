# src/rtlsim_core/parser/exceptions.py
"""
Defines the diagnosable exceptions of the component library parser.

`ParsingError` covers file-level problems: a missing or unreadable file,
invalid YAML syntax, or a circular `include:` chain. `SchemaValidationError`
covers YAML that loads but does not have the structure of a component
library, as reported by Cerberus.
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

from ..errors import DiagnosableError, format_diagnostic_report


def _first_message(value: Any) -> str:
    """Cerberus nests errors as lists and dicts; returns the first leaf message."""
    while True:
        if isinstance(value, list) and value:
            value = value[0]
        elif isinstance(value, dict) and value:
            key = sorted(value, key=str)[0]
            inner = _first_message(value[key])
            return f"{key}: {inner}"
        else:
            return str(value)


class BaseParsingError(DiagnosableError):
    """
    A local, concrete base class for all YAML parsing and schema validation errors.
    """
    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Generic Parsing Error",
            details=str(self),
            suggestion="Please check the format and content of the relevant YAML component library.",
            context={}
        )


@dataclass(frozen=True)
class ParsingError(BaseParsingError):
    """
    A file could not be read, is not valid YAML, or takes part in a circular
    include chain.
    """
    details: str
    file_path: Path

    def __str__(self):
        return f"Parsing error in file '{self.file_path}': {self.details}"

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="YAML Parsing or File Error",
            details=self.details,
            suggestion="Ensure the file exists, is readable, contains valid YAML and is not part of an include loop.",
            context={'source_file': self.file_path}
        )


@dataclass(frozen=True)
class SchemaValidationError(BaseParsingError):
    """
    The YAML is syntactically valid but does not conform to the component
    library schema (missing keys, invalid identifiers, duplicate names, an
    unknown statement form).
    """
    errors: Dict[str, Any]
    file_path: Path

    def _error_lines(self):
        return [f"  - Field '{k}': {_first_message(v)}" for k, v in sorted(self.errors.items(), key=lambda kv: str(kv[0]))]

    def __str__(self):
        return (
            f"YAML schema validation failed for file '{self.file_path}':\n"
            + "\n".join(self._error_lines())
        )

    def get_diagnostic_report(self) -> str:
        details = (
            "The structure of the YAML file does not conform to the component library schema.\n"
            f"See details for {len(self.errors)} issue(s) below:\n\n" + "\n".join(self._error_lines())
        )
        return format_diagnostic_report(
            error_type="YAML Schema Validation Error",
            details=details,
            suggestion=(
                "Correct the specified fields. Check for invalid identifiers (e.g., using '-' or '.'), "
                "duplicate names, and statements that are not one of assign/if/case/clocked."
            ),
            context={'source_file': self.file_path}
        )
