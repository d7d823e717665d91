# src/rtlsim_core/constants.py
import logging

logger = logging.getLogger(__name__)

# --- Simulation and export defaults ---

#: Timescale written into VCD headers. One simulator step is one time unit.
DEFAULT_VCD_TIMESCALE: str = "1 ns"

#: Number of randomized steps used by `check_equivalence` when no stimulus is given.
DEFAULT_EQUIVALENCE_STEPS: int = 64

#: Seed for randomized stimulus so equivalence runs are repeatable.
DEFAULT_STIMULUS_SEED: int = 12345

#: Separator between instance names in flattened signal names ("u0.sum").
HIERARCHY_SEPARATOR: str = "."

#: Name of the module port list entry used as the default clock domain.
DEFAULT_CLOCK_NAME: str = "clk"

logger.debug("Defined core constants: DEFAULT_VCD_TIMESCALE, DEFAULT_EQUIVALENCE_STEPS, DEFAULT_STIMULUS_SEED")
