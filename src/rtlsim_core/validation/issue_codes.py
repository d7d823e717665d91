# src/rtlsim_core/validation/issue_codes.py
import logging
from enum import Enum

logger = logging.getLogger(__name__)


class DesignIssueCode(Enum):
    """
    Registry of design validation issue codes and their message templates.
    Each enum member's value is a tuple: (code_str, message_template_str).
    """

    # --- Driver Issues (SIG_DRV_...) ---
    SIG_DRV_OUTPUT = ("SIG_DRV_OUTPUT", "Output port '{signal_name}' of '{design}' has no driver.")
    SIG_DRV_READ = ("SIG_DRV_READ", "Signal '{signal_name}' is read but has no driver.")
    SIG_DRV_FLOATING = ("SIG_DRV_FLOATING", "Signal '{signal_name}' has no driver and is never read.")

    # --- Usage Issues (SIG_USE_...) ---
    SIG_USE_UNREAD = ("SIG_USE_UNREAD", "Signal '{signal_name}' is driven but never read.")
    SIG_USE_INPUT = ("SIG_USE_INPUT", "Input port '{signal_name}' of '{design}' is never read.")

    # --- Register Issues (REG_...) ---
    REG_NO_RESET = ("REG_NO_RESET", "Register '{signal_name}' has no reset; it starts from its initial value {initial}.")

    @property
    def code(self) -> str:
        return self.value[0]

    @property
    def template(self) -> str:
        return self.value[1]

    def format_message(self, **kwargs) -> str:
        """Formats the message template with provided keyword arguments."""
        try:
            return self.template.format(**kwargs)
        except KeyError as e:
            logger.error(
                "Missing key %s for formatting message template of %s (code: %s): '%s'. Provided args: %s",
                e, self.name, self.code, self.template, kwargs,
            )
            return f"Error formatting message for {self.code}: Missing key {e}. Template: '{self.template}' Args: {kwargs}"
