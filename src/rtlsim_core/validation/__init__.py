# src/rtlsim_core/validation/__init__.py
import logging
logger = logging.getLogger(__name__)

from .issues import ValidationIssue, ValidationIssueLevel
from .issue_codes import DesignIssueCode
from .design_validator import DesignValidator
from .exceptions import DesignValidationError

__all__ = [
    "ValidationIssue",
    "ValidationIssueLevel",
    "DesignIssueCode",
    "DesignValidator",
    "DesignValidationError",
]
