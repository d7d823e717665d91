# src/rtlsim_core/simulation/config.py
"""
Parses stimulus documents into NumPy input arrays.

A stimulus document is a mapping:

    steps: 20                # optional if every scripted input lists its values
    inputs:                  # scripted values; a scalar is held for every step
      rst: [1, 0, 0, 0]
      en: 1
    random:                  # optional randomized inputs
      seed: 7
      ports: [a, b]          # or "all" for every input not scripted

A scripted list shorter than `steps` holds its last value.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple, Union

import cerberus
import numpy as np

from ..constants import DEFAULT_STIMULUS_SEED

logger = logging.getLogger(__name__)


class StimulusConfigError(ValueError):
    """Custom exception for errors during stimulus configuration parsing."""
    pass


_STIMULUS_SCHEMA = {
    'steps': {'type': 'integer', 'min': 1},
    'inputs': {
        'type': 'dict',
        'keysrules': {'type': 'string', 'regex': r'^[A-Za-z_][A-Za-z0-9_]*$'},
        'valuesrules': {
            'anyof': [
                {'type': 'integer', 'min': 0},
                {'type': 'list', 'minlength': 1, 'schema': {'type': 'integer', 'min': 0}},
            ]
        },
    },
    'random': {
        'type': 'dict',
        'schema': {
            'seed': {'type': 'integer'},
            'ports': {
                'anyof': [
                    {'type': 'string', 'allowed': ['all']},
                    {'type': 'list', 'schema': {'type': 'string'}},
                ]
            },
        },
    },
}


@dataclass(frozen=True)
class StimulusConfig:
    """
    A parsed stimulus. `scripted` arrays all have length `steps`. Random
    values are generated by `materialize()`, once the port widths are known.
    """
    steps: int
    scripted: Dict[str, np.ndarray] = field(default_factory=dict)
    random_ports: Union[str, Tuple[str, ...]] = ()
    seed: int = DEFAULT_STIMULUS_SEED

    def materialize(self, input_widths: Mapping[str, int]) -> Dict[str, np.ndarray]:
        """Returns one value array per driven input port."""
        unknown = sorted(set(self.scripted) - set(input_widths))
        if self.random_ports != "all":
            unknown += sorted(set(self.random_ports) - set(input_widths))
        if unknown:
            raise StimulusConfigError(f"Stimulus names unknown input port(s): {', '.join(unknown)}")

        values = dict(self.scripted)
        if self.random_ports == "all":
            random_names = [n for n in input_widths if n not in self.scripted]
        else:
            random_names = [n for n in self.random_ports if n not in self.scripted]
        rng = np.random.default_rng(self.seed)
        for name in random_names:
            values[name] = random_values(rng, input_widths[name], self.steps)
        return values


def random_values(rng: np.random.Generator, width: int, count: int) -> np.ndarray:
    """Uniform unsigned values of `width` bits; object arrays past 63 bits."""
    if width <= 63:
        return rng.integers(0, 1 << width, size=count, dtype=np.int64)
    values = np.zeros(count, dtype=object)
    produced = 0
    while produced < width:
        chunk = min(32, width - produced)
        part = rng.integers(0, 1 << chunk, size=count, dtype=np.int64)
        values = values + np.array([int(v) << produced for v in part], dtype=object)
        produced += chunk
    return values


def parse_stimulus_config(raw: Mapping[str, Any], steps: Optional[int] = None) -> StimulusConfig:
    """
    Parses a raw stimulus mapping. `steps` overrides the document's step count.
    """
    if not raw:
        raise StimulusConfigError("Stimulus configuration is missing or empty.")
    validator = cerberus.Validator(_STIMULUS_SCHEMA)
    if not validator.validate(dict(raw)):
        raise StimulusConfigError(f"Invalid stimulus configuration: {validator.errors}")
    document = validator.document

    scripted_raw = document.get('inputs', {})
    lengths = [len(v) for v in scripted_raw.values() if isinstance(v, list)]
    count = steps or document.get('steps') or (max(lengths) if lengths else None)
    if count is None:
        raise StimulusConfigError("Stimulus needs 'steps' when no input lists its values.")

    scripted = {}
    for name, value in scripted_raw.items():
        sequence = value if isinstance(value, list) else [value]
        padded = list(sequence[:count]) + [sequence[-1]] * max(0, count - len(sequence))
        dtype = np.int64 if max(padded) < (1 << 63) else object
        scripted[name] = np.array(padded, dtype=dtype)

    random_section = document.get('random') or {}
    ports = random_section.get('ports', "all" if 'random' in document else ())
    return StimulusConfig(
        steps=int(count),
        scripted=scripted,
        random_ports=ports if ports == "all" else tuple(ports),
        seed=int(random_section.get('seed', DEFAULT_STIMULUS_SEED)),
    )
