# src/rtlsim_core/validation/exceptions.py
"""
Defines the diagnosable exception raised when design validation finds errors.
"""
from typing import List

from .issues import ValidationIssue, ValidationIssueLevel
from ..errors import DiagnosableError, format_diagnostic_report


class DesignValidationError(DiagnosableError):
    """
    Raised when `DesignValidator` reports one or more ERROR-level issues.
    Carries only those issues and renders all of them in one report.
    """
    def __init__(self, issues: List[ValidationIssue]):
        self.issues: List[ValidationIssue] = [
            issue for issue in issues if issue.level == ValidationIssueLevel.ERROR
        ]
        if not self.issues:
            summary_message = "DesignValidationError was raised with no error-level issues."
        else:
            summary_message = (
                f"Design validation failed with {len(self.issues)} error(s):\n"
                + "\n".join(f"  - {issue}" for issue in self.issues)
            )
        super().__init__(summary_message)

    def get_diagnostic_report(self) -> str:
        details = (
            f"One or more defects were found in the elaborated design.\n"
            f"Found {len(self.issues)} error(s). See details below:\n\n"
            + "\n".join(f"  - {issue}" for issue in self.issues)
        )
        first_issue = self.issues[0] if self.issues else None
        context = {}
        if first_issue:
            context['path'] = first_issue.instance_path or 'Multiple'
            context['signal'] = first_issue.signal

        return format_diagnostic_report(
            error_type="Design Validation Error",
            details=details,
            suggestion="Drive every output port and every signal that is read, then elaborate again.",
            context=context
        )
