# tests/test_simulation/test_stimulus_config.py

import numpy as np
import pytest

from rtlsim_core.constants import DEFAULT_STIMULUS_SEED
from rtlsim_core.simulation import StimulusConfig, StimulusConfigError, parse_stimulus_config
from rtlsim_core.simulation.config import random_values


class TestParsing:
    def test_scalar_is_held_for_every_step(self):
        config = parse_stimulus_config({"steps": 3, "inputs": {"en": 1}})
        assert config.steps == 3
        assert config.scripted["en"].tolist() == [1, 1, 1]
        assert config.random_ports == ()
        assert config.seed == DEFAULT_STIMULUS_SEED

    def test_short_list_holds_its_last_value(self):
        config = parse_stimulus_config({"steps": 5, "inputs": {"rst": [1, 0], "d": [3]}})
        assert config.scripted["rst"].tolist() == [1, 0, 0, 0, 0]
        assert config.scripted["d"].tolist() == [3] * 5

    def test_long_list_is_truncated(self):
        config = parse_stimulus_config({"steps": 2, "inputs": {"d": [1, 2, 3]}})
        assert config.scripted["d"].tolist() == [1, 2]

    def test_steps_default_to_longest_list(self):
        config = parse_stimulus_config({"inputs": {"a": [1, 2, 3, 4], "b": [0]}})
        assert config.steps == 4

    def test_steps_argument_overrides_document(self):
        config = parse_stimulus_config({"steps": 10, "inputs": {"a": 1}}, steps=3)
        assert config.steps == 3

    def test_random_section(self):
        config = parse_stimulus_config({"steps": 4, "random": {"seed": 7, "ports": ["a", "b"]}})
        assert config.random_ports == ("a", "b")
        assert config.seed == 7
        assert parse_stimulus_config({"steps": 4, "random": {}}).random_ports == "all"
        assert parse_stimulus_config({"steps": 4, "random": {"ports": "all"}}).random_ports == "all"

    @pytest.mark.parametrize("raw", [
        {},
        {"inputs": {"a": 1}},
        {"steps": 0},
        {"steps": 2, "inputs": {"a": -1}},
        {"steps": 2, "inputs": {"a": []}},
        {"steps": 2, "inputs": {"a": "high"}},
        {"steps": 2, "inputs": {"2a": 1}},
        {"steps": 2, "random": {"ports": "some"}},
        {"steps": 2, "unknown": True},
    ])
    def test_invalid_documents(self, raw):
        with pytest.raises(StimulusConfigError):
            parse_stimulus_config(raw)

    def test_error_is_a_value_error(self):
        assert issubclass(StimulusConfigError, ValueError)


class TestMaterialize:
    WIDTHS = {"a": 4, "b": 8, "rst": 1}

    def test_scripted_only(self):
        config = parse_stimulus_config({"steps": 2, "inputs": {"rst": [1, 0]}})
        values = config.materialize(self.WIDTHS)
        assert list(values) == ["rst"]

    def test_random_all_skips_scripted_ports(self):
        config = StimulusConfig(
            steps=50, scripted={"rst": np.zeros(50, dtype=np.int64)}, random_ports="all", seed=1,
        )
        values = config.materialize(self.WIDTHS)
        assert set(values) == {"a", "b", "rst"}
        assert values["rst"].tolist() == [0] * 50
        assert values["a"].min() >= 0 and values["a"].max() < 16
        assert values["b"].max() < 256
        assert len(values["b"]) == 50

    def test_random_values_depend_only_on_seed(self):
        config = StimulusConfig(steps=20, random_ports=("b",), seed=99)
        first = config.materialize(self.WIDTHS)["b"]
        second = config.materialize(self.WIDTHS)["b"]
        assert np.array_equal(first, second)

    @pytest.mark.parametrize("config", [
        StimulusConfig(steps=1, scripted={"c": np.array([1])}),
        StimulusConfig(steps=1, random_ports=("c",)),
    ])
    def test_unknown_ports(self, config):
        with pytest.raises(StimulusConfigError, match="c"):
            config.materialize(self.WIDTHS)


def test_wide_random_values_use_python_ints():
    values = random_values(np.random.default_rng(5), 100, 8)
    assert values.dtype == object
    assert all(0 <= int(v) < (1 << 100) for v in values)
    assert any(int(v) >= (1 << 63) for v in values)
