import pytest

from promo_engine.core.errors import DanglingImageReferenceError
from promo_engine.core.models import VideoSpec
from promo_engine.engine.validator import (
    assert_renderable,
    find_dangling_image_refs,
    lock_background_theme,
    validate,
    validate_and_fix_output,
)
from tests.builders import scene_dict


def spec_with(*scenes):
    return VideoSpec.from_dict({"fps": 30, "width": 1080, "height": 1920, "scenes": list(scenes)})


# --- validate -----------------------------------------------------------------

def test_valid_spec_passes(sample_spec):
    result = validate(sample_spec)
    assert result.valid
    assert result.errors == []


def test_no_scenes_is_an_error():
    result = validate({"scenes": []})
    assert not result.valid
    assert result.errors == ["Plan has no scenes"]


def test_missing_required_visual_fields_are_errors():
    scene = scene_dict("HOOK", "Hi")
    del scene["background"], scene["motion"], scene["typography"]
    result = validate(spec_with(scene))
    assert not result.valid
    assert "Scene 0: Missing background" in result.errors
    assert "Scene 0: Missing motion" in result.errors
    assert "Scene 0: Missing typography" in result.errors


def test_missing_headline_is_only_a_warning():
    scene = scene_dict("HOOK", "")
    result = validate(spec_with(scene))
    assert result.valid
    assert "Scene 0: Missing headline" in result.warnings


def test_unknown_scene_type_is_an_error():
    result = validate(spec_with(scene_dict("OUTRO", "Bye")))
    assert 'Scene 0: Unknown sceneType "OUTRO"' in result.errors


def test_beat_checks():
    scene = scene_dict("HOOK", "Hi", beats=[
        {"beatId": "a", "startFrame": 0},
        {"beatId": "b", "startFrame": -5, "durationFrames": 10},
        {"beatId": "c", "startFrame": 60, "durationFrames": 30},
        {"beatId": "d", "startFrame": 60, "durationFrames": 30, "allowOverflow": True},
    ])
    errors = validate(spec_with(scene)).errors
    assert "Scene 0, Beat 0: Missing durationFrames" in errors
    assert "Scene 0, Beat 1: Starts before the scene (-5)" in errors
    assert "Scene 0, Beat 2: Ends at frame 90, past scene duration 75" in errors
    assert not any("Beat 3" in e for e in errors)


def test_overlapping_beats_keep_declared_order():
    scene = spec_with(scene_dict("HOOK", "Hi", beats=[
        {"beatId": "late", "startFrame": 30, "durationFrames": 10},
        {"beatId": "first", "startFrame": 0, "durationFrames": 40},
        {"beatId": "second", "startFrame": 0, "durationFrames": 20},
    ])).scenes[0]
    assert [b.beat_id for b in scene.ordered_beats()] == ["first", "second", "late"]


def test_image_without_id_and_interpolation_flag():
    scene = scene_dict("SOLUTION", "Look", images=[
        {"role": "hero"},
        {"imageId": "shot1", "animation": {"startX": 0, "endX": 120}},
    ])
    result = validate(spec_with(scene))
    assert "Scene 0, Image 0: Missing imageId" in result.errors
    assert any("Image 1: Has position interpolation" in w for w in result.warnings)


def test_elements_are_checked_per_kind():
    scene = scene_dict("PROOF", "Numbers", elements=[
        {"type": "text", "content": "30% faster"},
        {"type": "badge"},
        {"type": "image"},
        {"type": "shape", "shape": "circle"},
        {"type": "sparkles"},
    ])
    errors = validate(spec_with(scene)).errors
    assert "Scene 0, Element 1: Badge element without label" in errors
    assert "Scene 0, Element 2: Missing imageId" in errors
    assert 'Scene 0, Element 4: Unknown element type "sparkles"' in errors
    assert not any("Element 0" in e or "Element 3" in e for e in errors)


def test_consecutive_layout_warning():
    result = validate(spec_with(scene_dict("HOOK", "A", "TEXT_TOP"), scene_dict("PROBLEM", "B", "TEXT_TOP")))
    assert "Scene 1: Same layout as previous scene (TEXT_TOP)" in result.warnings


def test_malformed_input_never_raises():
    result = validate({"scenes": "nope"})
    assert not result.valid
    assert result.errors[0].startswith("Malformed specification")


# --- dangling image references ------------------------------------------------

def test_dangling_refs_cover_images_elements_and_beats():
    scene = scene_dict(
        "SOLUTION", "Look",
        images=[{"imageId": "shot1"}],
        elements=[{"type": "image", "imageId": "logo9"}],
        beats=[{"startFrame": 0, "durationFrames": 10, "content": {"imageId": "ghost"}}],
    )
    spec = spec_with(scene)
    assert find_dangling_image_refs(spec, ["shot1"]) == ["logo9", "ghost"]


def test_assert_renderable_rejects_before_rendering():
    spec = spec_with(scene_dict("HOOK", "Hi", images=[{"imageId": "missing"}]))
    with pytest.raises(DanglingImageReferenceError) as exc:
        assert_renderable(spec, [])
    assert exc.value.missing == ["missing"]
    assert exc.value.to_dict()["missingImageIds"] == ["missing"]


def test_validate_reports_dangling_as_error():
    spec = spec_with(scene_dict("HOOK", "Hi", images=[{"imageId": "missing"}]))
    result = validate(spec, provided_image_ids=["other"])
    assert 'Unknown imageId "missing"' in result.errors


# --- background theme lock ----------------------------------------------------

def test_lock_background_theme_aligns_type_and_texture(sample_spec):
    locked, warnings = lock_background_theme(sample_spec)
    types = {s.background.type for s in locked.scenes}
    textures = {s.background.texture for s in locked.scenes}
    assert types == {"gradient"}
    assert textures == {"grain"}
    assert len(warnings) == 1
    assert warnings[0].startswith("Scene 2: Background aligned to theme")
    # colors are left alone
    assert locked.scenes[2].background.gradient_colors == sample_spec.scenes[2].background.gradient_colors


# --- validate_and_fix_output --------------------------------------------------

def test_disallowed_effect_replaced_with_first_allowed():
    plan = {"shots": [{"shot_type": "AGGRESSIVE_HOOK", "recommended_effects": ["SOFT_ZOOM_IN"]}]}
    result = validate_and_fix_output(plan)
    shot = result.fixed["shots"][0]
    assert shot["recommended_effects"] == ["TEXT_POP_SCALE"]
    assert 'Shot 1: Effect "SOFT_ZOOM_IN" not allowed for "AGGRESSIVE_HOOK"' in result.warnings
    # input is not mutated
    assert plan["shots"][0]["recommended_effects"] == ["SOFT_ZOOM_IN"]


def test_allowed_effects_are_kept_and_fonts_defaulted():
    plan = {"shots": [{"shot_type": "VALUE_PROOF", "recommended_effects": ["TEXT_FADE_IN", "BACKGROUND_FLASH"]}]}
    result = validate_and_fix_output(plan)
    shot = result.fixed["shots"][0]
    assert shot["recommended_effects"] == ["TEXT_FADE_IN"]
    assert shot["recommended_fonts"] == ["INTER", "SATOSHI"]


@pytest.mark.parametrize("shot_type", ["AGGRESSIVE_HOOK", "SOLUTION_REVEAL", "CTA_DIRECT", "POWER_STAT"])
def test_effect_list_never_empty_for_known_types(shot_type):
    result = validate_and_fix_output({"shots": [{"shot_type": shot_type, "recommended_effects": []}]})
    assert result.fixed["shots"][0]["recommended_effects"]


def test_fix_output_never_raises_on_garbage():
    assert validate_and_fix_output({"shots": "x"}).warnings == ["Output has no shot list"]
    result = validate_and_fix_output({"shots": [None, {"shot_type": ["odd"]}]})
    assert "Shot 1: Not an object, skipped" in result.warnings


def test_sequence_rules_are_warnings():
    plan = {"shots": [
        {"shot_type": "VALUE_PROOF", "recommended_effects": ["TEXT_FADE_IN"], "recommended_fonts": ["INTER"]},
        {"shot_type": "VALUE_PROOF", "recommended_effects": ["TEXT_FADE_IN"], "recommended_fonts": ["INTER"]},
    ]}
    warnings = validate_and_fix_output(plan).warnings
    assert any("open with" in w for w in warnings)
    assert any("close with CTA_DIRECT" in w for w in warnings)
    assert 'Shot 2: Repeats previous shot type "VALUE_PROOF"' in warnings


@pytest.mark.parametrize("effects, expected", [
    (5, ["TEXT_POP_SCALE"]),
    ({"effect": "HARD_CUT_TEXT"}, ["TEXT_POP_SCALE"]),
    ("HARD_CUT_TEXT", ["HARD_CUT_TEXT"]),
])
def test_scalar_effect_lists_are_coerced(effects, expected):
    result = validate_and_fix_output({"shots": [{"shot_type": "AGGRESSIVE_HOOK", "recommended_effects": effects}]})
    assert result.fixed["shots"][0]["recommended_effects"] == expected


def test_non_list_fonts_fall_back_to_defaults():
    result = validate_and_fix_output({"shots": [
        {"shot_type": "VALUE_PROOF", "recommended_effects": ["TEXT_FADE_IN"], "recommended_fonts": 12},
        {"shot_type": "VALUE_PROOF", "recommended_effects": ["TEXT_FADE_IN"], "recommended_fonts": "SATOSHI"},
    ]})
    first, second = result.fixed["shots"]
    assert first["recommended_fonts"] == ["INTER", "SATOSHI"]
    assert "Shot 1: Font list is not a list (12), ignored" in result.warnings
    assert second["recommended_fonts"] == ["SATOSHI"]


# --- image ids that are not strings -------------------------------------------

@pytest.mark.parametrize("provided", [None, ["a"]])
def test_object_image_id_is_an_error_not_a_crash(provided):
    spec = {"scenes": [scene_dict("HOOK", "Hi", images=[{"imageId": {"id": "a"}}])]}
    result = validate(spec, provided_image_ids=provided)
    assert not result.valid
    assert "Scene 0, Image 0: Invalid imageId {'id': 'a'}" in result.errors


def test_object_image_id_is_never_renderable():
    spec = spec_with(scene_dict("HOOK", "Hi", elements=[{"type": "image", "imageId": ["a"]}]))
    assert find_dangling_image_refs(spec, ["a"]) == ["['a']"]
    with pytest.raises(DanglingImageReferenceError):
        assert_renderable(spec, ["a"])
