from __future__ import annotations

from livelove.schema import VarsBatch
from livelove.values import RuntimeValueStore


def test_merge_is_last_write_wins_and_reports_touched_names() -> None:
    store = RuntimeValueStore()
    assert store.values_for("a.lua") is None
    touched = store.merge(
        "a.lua",
        [
            VarsBatch(variables={"x": "1", "y": "2"}),
            VarsBatch(variables={"x": "3"}),
        ],
    )
    assert touched == ["x", "y"]
    assert dict(store.values_for("a.lua") or {}) == {"x": "3", "y": "2"}
    store.merge("a.lua", [VarsBatch(variables={"z": "9"})])
    assert store.names("a.lua") == ["x", "y", "z"]
    assert store.names("other.lua") == []


def test_batch_renders_non_string_values_as_json() -> None:
    batch = VarsBatch.model_validate({"variables": {"n": 1.5, "ok": True, "none": None}})
    assert batch.variables == {"n": "1.5", "ok": "true", "none": "null"}
