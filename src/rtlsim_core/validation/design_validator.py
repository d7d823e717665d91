# src/rtlsim_core/validation/design_validator.py
import logging
from typing import List, Set

from ..components.base_enums import SignalKind
from ..elaboration.graph import ElaboratedGraph, NodeKind
from .issues import ValidationIssue, ValidationIssueLevel
from .issue_codes import DesignIssueCode

logger = logging.getLogger(__name__)


class DesignValidator:
    """
    Checks an elaborated graph for defects that are legal to elaborate but
    make simulation fail or indicate a mistake: undriven outputs, undriven
    signals that are read, dead signals, unused inputs and registers without
    a reset.

    The validator only reports. The calling context (e.g. `check_equivalence`)
    decides whether ERROR-level issues stop the run.
    """

    def __init__(self, graph: ElaboratedGraph):
        if not isinstance(graph, ElaboratedGraph):
            raise TypeError("DesignValidator requires an ElaboratedGraph.")
        self.graph = graph
        self.issues: List[ValidationIssue] = []

    def validate(self) -> List[ValidationIssue]:
        self.issues = []
        logger.info("Starting design validation for '%s'...", self.graph.name)
        read = self._read_signals()
        self._check_signals(read)
        self._check_registers()

        if self.issues:
            errors = sum(1 for i in self.issues if i.level == ValidationIssueLevel.ERROR)
            warnings = sum(1 for i in self.issues if i.level == ValidationIssueLevel.WARNING)
            infos = sum(1 for i in self.issues if i.level == ValidationIssueLevel.INFO)
            logger.info("Validation complete. Found: %d errors, %d warnings, %d info messages.", errors, warnings, infos)
        else:
            logger.info("Validation complete with no issues found.")
        return self.issues

    def _add_issue(self, level: ValidationIssueLevel, code_enum: DesignIssueCode, signal, **kwargs):
        kwargs.setdefault('design', self.graph.name)
        kwargs['signal_name'] = signal.name
        self.issues.append(ValidationIssue(
            level=level,
            code=code_enum.code,
            message=code_enum.format_message(**kwargs),
            signal=signal.name,
            instance_path=signal.path,
            details=kwargs,
        ))

    def _read_signals(self) -> Set[int]:
        return {node.signal for node in self.graph.nodes if node.kind is NodeKind.SIGNAL}

    def _check_signals(self, read: Set[int]):
        for signal in self.graph.signals:
            driven = self.graph.drivers[signal.index] is not None
            if signal.kind is SignalKind.INPUT:
                if signal.index not in read:
                    self._add_issue(ValidationIssueLevel.INFO, DesignIssueCode.SIG_USE_INPUT, signal)
            elif signal.kind is SignalKind.OUTPUT:
                if not driven:
                    self._add_issue(ValidationIssueLevel.ERROR, DesignIssueCode.SIG_DRV_OUTPUT, signal)
            elif not driven and signal.index in read:
                self._add_issue(ValidationIssueLevel.ERROR, DesignIssueCode.SIG_DRV_READ, signal)
            elif not driven:
                self._add_issue(ValidationIssueLevel.WARNING, DesignIssueCode.SIG_DRV_FLOATING, signal)
            elif signal.index not in read:
                self._add_issue(ValidationIssueLevel.INFO, DesignIssueCode.SIG_USE_UNREAD, signal)

    def _check_registers(self):
        for index in self.graph.register_writes:
            node = self.graph.nodes[index]
            if not node.has_reset:
                signal = self.graph.signals[node.signal]
                self._add_issue(ValidationIssueLevel.INFO, DesignIssueCode.REG_NO_RESET, signal, initial=signal.initial)
