"""Tests for isohop.core.catalog – level registry and progression."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from isohop.core.catalog import LevelCatalog
from isohop.core.levels import COMMON_BLOCKS, InvalidLevel, LevelModel


def _level(level_id: int, name: str = "") -> LevelModel:
    return LevelModel(
        id=level_id,
        name=name or f"Level {level_id}",
        layout=[[1, 1], [0, 3]],
        start_position=(0, 0),
        block_types=COMMON_BLOCKS,
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def catalog() -> LevelCatalog:
    return LevelCatalog([_level(1), _level(2)])


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class TestRegistry:
    def test_get(self, catalog: LevelCatalog):
        assert catalog.get(2).id == 2

    def test_get_missing_is_none(self, catalog: LevelCatalog):
        assert catalog.get(42) is None

    def test_len_and_contains(self, catalog: LevelCatalog):
        assert len(catalog) == 2
        assert 1 in catalog
        assert 3 not in catalog

    def test_add_overwrites_by_id(self, catalog: LevelCatalog):
        catalog.add(_level(2, "Replacement"))
        assert len(catalog) == 2
        assert catalog.get(2).name == "Replacement"

    def test_add_rejects_invalid_level(self, catalog: LevelCatalog):
        bad = LevelModel(id=3, name="Bad", layout=[[1, 1], [1]], start_position=(0, 0))
        with pytest.raises(InvalidLevel):
            catalog.add(bad)
        assert 3 not in catalog

    def test_constructor_rejects_invalid_level(self):
        bad = LevelModel(id=1, name="Bad", layout=[[0, 1]], start_position=(0, 0))
        with pytest.raises(InvalidLevel):
            LevelCatalog([bad])

    def test_all_sorted_by_id(self):
        catalog = LevelCatalog([_level(3), _level(1), _level(2)])
        assert [lv.id for lv in catalog.all()] == [1, 2, 3]


# ---------------------------------------------------------------------------
# Progression
# ---------------------------------------------------------------------------

class TestProgression:
    def test_current_starts_at_first_level(self, catalog: LevelCatalog):
        assert catalog.cursor == 1
        assert catalog.current().id == 1

    def test_advance_then_end(self, catalog: LevelCatalog):
        nxt = catalog.advance()
        assert nxt is not None and nxt.id == 2
        assert catalog.advance() is None
        assert catalog.cursor == 2
        assert catalog.current().id == 2

    def test_is_last(self, catalog: LevelCatalog):
        assert not catalog.is_last()
        catalog.advance()
        assert catalog.is_last()

    def test_reset(self, catalog: LevelCatalog):
        catalog.advance()
        catalog.reset()
        assert catalog.cursor == 1
        assert catalog.current().id == 1

    def test_gap_in_ids_ends_progression(self):
        catalog = LevelCatalog([_level(1), _level(3)])
        assert catalog.is_last()
        assert catalog.advance() is None
        assert catalog.cursor == 1

    def test_injected_start_id(self):
        catalog = LevelCatalog([_level(1), _level(2), _level(3)], start_id=2)
        assert catalog.current().id == 2
        catalog.advance()
        catalog.reset()
        assert catalog.cursor == 2

    def test_default_start_is_lowest_id(self):
        catalog = LevelCatalog([_level(5), _level(4)])
        assert catalog.current().id == 4

    def test_empty_catalog(self):
        catalog = LevelCatalog()
        assert catalog.cursor == 1
        assert catalog.current() is None
        assert catalog.advance() is None
        assert catalog.is_last()

    def test_start_id_without_level(self):
        catalog = LevelCatalog([_level(1)], start_id=7)
        assert catalog.current() is None

    def test_adding_lower_id_keeps_cursor(self):
        catalog = LevelCatalog([_level(2), _level(3)])
        catalog.add(_level(1))
        assert catalog.current().id == 2
        catalog.advance()
        catalog.reset()
        assert catalog.cursor == 2

    def test_empty_catalog_starts_at_one(self):
        catalog = LevelCatalog()
        catalog.add(_level(1))
        catalog.add(_level(2))
        assert catalog.current().id == 1
        assert not catalog.is_last()

    def test_catalogs_are_independent(self):
        a = LevelCatalog([_level(1), _level(2)])
        b = LevelCatalog([_level(1), _level(2)])
        a.advance()
        assert b.cursor == 1


# ---------------------------------------------------------------------------
# Built-in levels
# ---------------------------------------------------------------------------

class TestBuiltin:
    def test_packaged_levels(self):
        catalog = LevelCatalog.builtin()
        assert len(catalog) == 3
        assert catalog.current().name == "First Steps"
        catalog.advance()
        catalog.advance()
        assert catalog.current().name == "The Challenge"
        assert catalog.is_last()

    def test_custom_directory(self, tmp_path: Path):
        raw = {"id": 1, "name": "Tiny", "layout": [[1, 3]], "start": [0, 0], "blocks": {1: "normal", 3: "goal"}}
        (tmp_path / "level1.yaml").write_text(yaml.dump(raw), encoding="utf-8")
        catalog = LevelCatalog.builtin(tmp_path)
        assert catalog.current().name == "Tiny"
        assert catalog.is_last()
