"""Tests for puzzle and engine configuration."""

import pytest
from pydantic import ValidationError

from jigsaw_engine.config import EngineSettings, get_engine_settings
from jigsaw_engine.exceptions import ConfigurationError
from jigsaw_engine.knobs import KnobStyle
from jigsaw_engine.settings import (
    LIMITS,
    SHEET_PRESETS,
    LayoutMode,
    NestingSettings,
    PuzzleSettings,
    RotationSet,
)


def test_defaults() -> None:
    settings = PuzzleSettings()
    assert settings.rows == 4
    assert settings.columns == 5
    assert settings.knob_style == KnobStyle.CLASSIC
    assert settings.layout_mode == LayoutMode.ASSEMBLED
    assert settings.cell_size == (40.0, 37.5)


@pytest.mark.parametrize(
    "field,value",
    [
        ("width_mm", 10.0),
        ("height_mm", 2000.0),
        ("rows", 1),
        ("columns", 21),
        ("kerf_mm", 0.6),
        ("clearance_mm", 0.5),
        ("knob_size_pct", 95.0),
        ("knob_jitter", 0.5),
        ("difficulty", 120.0),
    ],
)
def test_limits_are_enforced(field: str, value: float) -> None:
    with pytest.raises(ValidationError):
        PuzzleSettings(**{field: value})


def test_limits_table_matches_fields() -> None:
    assert LIMITS["rows"] == {"min": 2, "max": 20}
    assert LIMITS["kerf_mm"]["max"] == 0.5


def test_enum_values_from_json() -> None:
    settings = PuzzleSettings.model_validate(
        {"knob_style": "organic", "layout_mode": "true-nesting", "nesting": {"rotation_set": "0-90-180-270"}}
    )
    assert settings.knob_style == KnobStyle.ORGANIC
    assert settings.layout_mode == LayoutMode.TRUE_NESTING
    assert settings.nesting.rotations == (0, 90, 180, 270)


def test_sheet_presets() -> None:
    settings = PuzzleSettings(sheet_preset="glowforge-basic")
    assert settings.sheet_size == SHEET_PRESETS["glowforge-basic"]
    custom = PuzzleSettings(sheet_width_mm=321.0, sheet_height_mm=123.0)
    assert custom.sheet_size == (321.0, 123.0)


def test_unknown_sheet_preset() -> None:
    settings = PuzzleSettings(sheet_preset="a4-ish")
    with pytest.raises(ConfigurationError, match="a4-ish"):
        _ = settings.sheet_size


def test_knob_spec_from_settings() -> None:
    spec = PuzzleSettings(knob_style=KnobStyle.SIMPLE, knob_size_pct=80.0, difficulty=30.0).knob_spec
    assert spec.style == KnobStyle.SIMPLE
    assert spec.size_pct == 80.0
    assert spec.difficulty_factor == pytest.approx(0.3)


def test_nesting_grid_step() -> None:
    assert NestingSettings(density=1).grid_step == pytest.approx(18.5)
    assert NestingSettings(density=10).grid_step == 5.0
    assert NestingSettings(rotation_set=RotationSet.NONE).rotations == (0,)


def test_engine_settings_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("JIGSAW_CURVE_RESOLUTION", "32")
    monkeypatch.setenv("JIGSAW_SIMPLIFY_TOLERANCE", "0.05")
    settings = EngineSettings()
    assert settings.CURVE_RESOLUTION == 32
    assert settings.SIMPLIFY_TOLERANCE == 0.05
    assert settings.GEOMETRY_ENGINE == "auto"


def test_engine_settings_cached() -> None:
    assert get_engine_settings() is get_engine_settings()
