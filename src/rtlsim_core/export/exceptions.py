# src/rtlsim_core/export/exceptions.py
"""
Defines the diagnosable exception raised when an exported netlist cannot be
read back. Exporting itself cannot fail on a netlist that passed its
integrity check.
"""
from dataclasses import dataclass
from typing import Optional

from ..errors import LoweringError, format_diagnostic_report


@dataclass(frozen=True)
class NetlistFormatError(LoweringError):
    """Structural Verilog text or a netlist document is malformed."""
    line: Optional[int] = None
    user_input: Optional[str] = None

    def get_diagnostic_report(self) -> str:
        details = self.details
        if self.line is not None:
            details += f"\nLine: {self.line}"
        return format_diagnostic_report(
            error_type="Malformed Netlist",
            details=details,
            suggestion="Only text written by export_verilog() or dump_document() can be imported.",
            context={'component': self.component, 'user_input': self.user_input}
        )
