# src/rtlsim_core/__init__.py
import logging
from .log_config import setup_logging

setup_logging()
logger = logging.getLogger(__name__)
logger.info("RTLSim Core package initialized.")

from .behavior.statements import Assign, Case, CaseBranch, Clocked, If, MemoryWrite
from .components import (
    ComponentDescription, ComponentRegistry, InstanceDescription, MemoryDescription, PortDescription,
    PortDirection, SignalDescription,
)
from .parser import ComponentLibraryParser, load_registry
from .elaboration import ElaboratedGraph, Elaborator
from .design_builder import DesignBuilder
from .synthesis import Netlist, lower
from .simulation import (
    BehavioralSimulator, GateLevelSimulator, check_equivalence, create_simulator, run_stimulus,
)
from .export import dump_document, export_document, export_verilog, import_document, import_verilog
from .tracing import TracePoint, WaveformTracer
from .cache import DesignCache
from .errors import RTLSimError, DesignBuildError, SimulationRunError

__all__ = [
    # Abstract Component Description
    "Assign", "Case", "CaseBranch", "Clocked", "If", "MemoryWrite",
    "ComponentDescription", "InstanceDescription", "MemoryDescription", "PortDescription", "PortDirection",
    "SignalDescription",
    # Registry and parser
    "ComponentRegistry", "ComponentLibraryParser", "load_registry",
    # Build
    "ElaboratedGraph", "Elaborator", "DesignBuilder", "Netlist", "lower", "DesignCache",
    # Simulation
    "BehavioralSimulator", "GateLevelSimulator", "check_equivalence", "create_simulator", "run_stimulus",
    # Export and tracing
    "dump_document", "export_document", "export_verilog", "import_document", "import_verilog",
    "TracePoint", "WaveformTracer",
    # Top-Level Errors (Actionable Diagnostics)
    "RTLSimError", "DesignBuildError", "SimulationRunError",
]
