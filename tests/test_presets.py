import pytest

from darkroom.editing.adjustments import DEFAULTS
from darkroom.editing.presets import AUTO_ENHANCE, PresetEngine, apply_preset
from darkroom.errors import ValidationError

GOLDEN_HOUR = {"exposure": 105, "warmth": 20, "contrast": 110, "saturation": 110, "tint": -5}


def test_preset_overrides_exactly_its_fields() -> None:
    state = apply_preset(GOLDEN_HOUR)

    assert state.diff() == GOLDEN_HOUR
    untouched = {k: v for k, v in state.to_dict().items() if k not in GOLDEN_HOUR}
    assert len(untouched) == len(DEFAULTS.to_dict()) - 5
    assert all(getattr(DEFAULTS, k) == v for k, v in untouched.items())


def test_builtin_golden_hour_matches_its_delta() -> None:
    engine = PresetEngine.with_builtins()

    assert engine.apply("Golden Hour").diff() == GOLDEN_HOUR


def test_preset_application_is_idempotent(session) -> None:
    once = session.apply_preset("Golden Hour")
    twice = session.apply_preset("Golden Hour")

    assert once == twice


def test_preset_discards_manual_tweaks(session) -> None:
    session.set_adjustment("grain", 60)
    session.set_adjustment("redChannel", 40)

    state = session.apply_preset("golden hour")

    assert state.grain == 0
    assert state.red_channel == 100
    assert state.warmth == 20


def test_auto_enhance_replaces_state(session) -> None:
    session.set_adjustment("vignette", 80)

    state = session.auto_enhance()

    assert state == AUTO_ENHANCE.apply()
    assert state.vignette == 0
    assert state.exposure == 108


def test_lookup_is_case_insensitive() -> None:
    engine = PresetEngine.with_builtins()

    assert engine.get("b&w noir").name == "B&W Noir"
    assert engine.get("AUTO-ENHANCE") is AUTO_ENHANCE


def test_unknown_preset_is_rejected(session) -> None:
    before = session.adjustments

    with pytest.raises(ValidationError):
        session.apply_preset("Lomo")
    assert session.adjustments == before


def test_register_validates_and_rejects_duplicates() -> None:
    engine = PresetEngine()

    preset = engine.register("Faded", {"contrast": 80, "shadowsSat": 500})
    assert dict(preset.delta) == {"contrast": 80, "shadows_sat": 100}
    assert len(engine) == 1

    with pytest.raises(ValidationError):
        engine.register("faded", {"contrast": 90})
    with pytest.raises(ValidationError):
        engine.register("Auto Enhance", {"contrast": 90})
    with pytest.raises(ValidationError):
        engine.register("Broken", {"clarity": 10})


def test_preset_delta_is_read_only() -> None:
    preset = PresetEngine.with_builtins().get("Film Pop")

    with pytest.raises(TypeError):
        preset.delta["grain"] = 99
