# tests/test_cache/test_design_cache.py

import pytest

from rtlsim_core import DesignCache, load_registry
from rtlsim_core.cache import canonical_bindings, create_elaboration_key, create_lowering_key
from rtlsim_core.elaboration import Elaborator


class TestDesignCache:
    def test_invalid_scope(self):
        with pytest.raises(ValueError):
            DesignCache(scope="session")
        with pytest.raises(ValueError):
            DesignCache().get(("k",), scope="session")

    def test_run_scope_is_per_instance(self):
        first, second = DesignCache(), DesignCache()
        first.put(("k",), 1)
        assert first.get(("k",)) == 1
        assert second.get(("k",)) is None
        assert first.get_stats()["run"] == {"hits": 1, "misses": 0}
        assert second.get_stats()["run"] == {"hits": 0, "misses": 1}

    def test_process_scope_is_shared(self):
        DesignCache(scope="process").put(("k",), "value")
        other = DesignCache(scope="process")
        assert other.get(("k",)) == "value"
        assert other.get_stats()["process"] == {"hits": 1, "misses": 0}
        DesignCache.clear_process_cache()
        assert other.get(("k",)) is None

    def test_explicit_scope_overrides_the_default(self):
        cache = DesignCache()
        cache.put(("k",), "shared", scope="process")
        assert cache.get(("k",)) is None
        assert DesignCache(scope="process").get(("k",)) == "shared"
        assert cache.get_stats() == {"run": {"hits": 0, "misses": 1}, "process": {"hits": 0, "misses": 0}}

    def test_clear_stats(self):
        cache = DesignCache()
        cache.get(("missing",))
        cache.clear_stats()
        assert cache.get_stats() == {"run": {"hits": 0, "misses": 0}, "process": {"hits": 0, "misses": 0}}


class TestKeys:
    def test_binding_order_does_not_matter(self):
        assert canonical_bindings({"B": 1, "A": "W"}) == canonical_bindings({"A": "W", "B": 1})
        assert canonical_bindings(None) == ()

    def test_identical_libraries_share_keys(self, library_path, registry):
        other = load_registry(library_path)
        definition = registry.get("adder3")
        assert create_elaboration_key(registry, definition, {"W": 4}) == \
            create_elaboration_key(other, other.get("adder3"), {"W": 4})

    def test_key_depends_on_children_bindings_and_options(self, registry, make_registry):
        definition = registry.get("adder3")
        base = create_elaboration_key(registry, definition, None)
        assert base != create_elaboration_key(registry, definition, {"W": 5})
        assert base != create_elaboration_key(registry, definition, None, check_acyclic=False)

        changed = make_registry("""
components:
  - name: adder
    parameters: {WIDTH: 8}
    ports:
      - {name: a, direction: in, width: WIDTH}
      - {name: b, direction: in, width: WIDTH}
      - {name: sum, direction: out, width: WIDTH}
    behavior: ["sum = a - b"]
  - name: adder3
    parameters: {W: 4}
    ports:
      - {name: a, direction: in, width: W}
      - {name: b, direction: in, width: W}
      - {name: c, direction: in, width: W}
      - {name: total, direction: out, width: W}
    signals:
      - {name: partial, width: W}
    instances:
      - {id: u0, type: adder, parameters: {WIDTH: W}, connections: {a: a, b: b, sum: partial}}
      - {id: u1, type: adder, parameters: {WIDTH: W}, connections: {a: partial, b: c, sum: total}}
""")
        assert create_elaboration_key(changed, changed.get("adder3"), None) != base

    def test_lowering_key(self):
        assert create_lowering_key("abc") != create_lowering_key("abc", verify_determinism=True)
        assert create_lowering_key("abc")[0] == "lowering"


class TestElaborationCaching:
    def test_repeated_elaboration_hits(self, registry):
        cache = DesignCache()
        elaborator = Elaborator(registry, cache=cache)
        first = elaborator.elaborate("adder3", {"W": 4})
        second = elaborator.elaborate("adder3", {"W": 4})
        assert first is second
        assert cache.get_stats()["run"] == {"hits": 1, "misses": 1}

    def test_different_bindings_miss(self, registry):
        cache = DesignCache()
        elaborator = Elaborator(registry, cache=cache)
        narrow = elaborator.elaborate("adder", {"WIDTH": 4})
        wide = elaborator.elaborate("adder", {"WIDTH": 16})
        assert narrow.port("sum").width == 4
        assert wide.port("sum").width == 16
        assert cache.get_stats()["run"]["misses"] == 2

    def test_process_scope_survives_new_elaborators(self, library_path):
        first = Elaborator(load_registry(library_path), cache=DesignCache(scope="process"))
        graph = first.elaborate("alu")
        cache = DesignCache(scope="process")
        second = Elaborator(load_registry(library_path), cache=cache)
        assert second.elaborate("alu") is graph
        assert cache.get_stats()["process"]["hits"] == 1
