# src/rtlsim_core/design_builder.py
"""
Defines the DesignBuilder, the top-level build facade.

It turns a registered top component and its parameter bindings into an
`ElaboratedGraph` (for the behavioral simulator) or a `Netlist` (for the
gate-level simulator and the exporters), and is the gatekeeper for build-time
errors: any `DiagnosableError` raised by a subsystem (parser, registry,
parameter resolution, elaboration, lowering) is re-raised as a single
`DesignBuildError` whose message is the full diagnostic report, chaining the
original error.
"""
import logging
from pathlib import Path
from typing import Mapping, Optional, Union

from .cache import DesignCache
from .components.registry import ComponentRegistry
from .elaboration.elaborator import Elaborator
from .elaboration.graph import ElaboratedGraph
from .errors import DesignBuildError, DiagnosableError, format_diagnostic_report
from .parser import load_registry
from .synthesis.lowering import lower
from .synthesis.netlist import Netlist

logger = logging.getLogger(__name__)

Bindings = Optional[Mapping[str, Union[int, str]]]


class DesignBuilder:
    """
    Args:
        registry: The component registry the top component is looked up in.
        cache: Optional cache shared by elaboration and lowering.
        check_acyclic: Reject designs with combinational cycles at elaboration.
    """

    def __init__(self, registry: ComponentRegistry, cache: Optional[DesignCache] = None, check_acyclic: bool = True):
        self.registry = registry
        self.cache = cache
        self._elaborator = Elaborator(registry, cache=cache, check_acyclic=check_acyclic)

    @classmethod
    def from_library(cls, *paths: Union[str, Path], cache: Optional[DesignCache] = None) -> "DesignBuilder":
        """A builder over the components declared in the given YAML library files."""
        logger.info("--- Loading component libraries: %s ---", [str(p) for p in paths])
        try:
            registry = load_registry(*paths)
        except DiagnosableError as e:
            raise DesignBuildError(e.get_diagnostic_report()) from e
        return cls(registry, cache=cache)

    def build(self, top: str, bindings: Bindings = None) -> ElaboratedGraph:
        """Elaborates `top` into a flat graph."""
        logger.info(f"--- Starting design build for '{top}' ---")
        try:
            graph = self._elaborator.elaborate(top, bindings)
            logger.info(f"--- Design build for '{top}' successful. ---")
            return graph
        except DiagnosableError as e:
            raise DesignBuildError(e.get_diagnostic_report()) from e
        except Exception as e:
            raise DesignBuildError(self._unexpected_report(e)) from e

    def synthesize(self, top: str, bindings: Bindings = None, verify_determinism: bool = False) -> Netlist:
        """Elaborates `top` and lowers it to the seven gate primitives."""
        graph = self.build(top, bindings)
        logger.info(f"--- Starting synthesis of '{top}' ---")
        try:
            netlist = lower(graph, verify_determinism=verify_determinism, cache=self.cache)
            logger.info(f"--- Synthesis of '{top}' successful. ---")
            return netlist
        except DiagnosableError as e:
            raise DesignBuildError(e.get_diagnostic_report()) from e
        except Exception as e:
            raise DesignBuildError(self._unexpected_report(e)) from e

    @staticmethod
    def _unexpected_report(error: Exception) -> str:
        return format_diagnostic_report(
            error_type=f"An Unexpected Error Occurred ({type(error).__name__})",
            details=f"The design builder encountered an unexpected internal error: {error}",
            suggestion="This may indicate a bug in RTLSim Core. Please review the traceback.",
            context={}
        )
