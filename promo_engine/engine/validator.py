import copy
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from promo_engine.catalog import constraints
from promo_engine.core.errors import DanglingImageReferenceError
from promo_engine.core.models import (
    BadgeElement,
    ImageElement,
    Scene,
    ShapeElement,
    TextElement,
    UnknownElement,
    ValidationResult,
    VideoSpec,
)

logger = logging.getLogger("PromoEngine")


def _coerce_spec(spec: Union[VideoSpec, Dict[str, Any]]) -> VideoSpec:
    if isinstance(spec, VideoSpec):
        return spec
    return VideoSpec.from_dict(spec)


def _check_scene(index: int, scene: Scene, errors: List[str], warnings: List[str]) -> None:
    prefix = f"Scene {index}"

    if not scene.scene_type:
        errors.append(f"{prefix}: Missing sceneType")
    elif scene.scene_type not in constraints.SCENE_TYPES:
        errors.append(f"{prefix}: Unknown sceneType \"{scene.scene_type}\"")
    if not scene.headline:
        warnings.append(f"{prefix}: Missing headline")
    if scene.background is None:
        errors.append(f"{prefix}: Missing background")
    if scene.motion is None:
        errors.append(f"{prefix}: Missing motion")
    if scene.typography is None:
        errors.append(f"{prefix}: Missing typography")

    if scene.layout and scene.layout not in constraints.LAYOUTS:
        warnings.append(f"{prefix}: Unknown layout \"{scene.layout}\"")
    if scene.background is not None:
        if scene.background.type not in constraints.BACKGROUND_TYPES:
            warnings.append(f"{prefix}: Unknown background type \"{scene.background.type}\"")
        if scene.background.texture and scene.background.texture not in constraints.TEXTURES:
            warnings.append(f"{prefix}: Unknown texture \"{scene.background.texture}\"")

    # Reported in timeline order, labelled with the declared position.
    declared = {id(beat): b for b, beat in enumerate(scene.beats)}
    for beat in scene.ordered_beats():
        b = declared[id(beat)]
        if beat.start_frame is None:
            errors.append(f"{prefix}, Beat {b}: Missing startFrame")
        if not beat.duration_frames:
            errors.append(f"{prefix}, Beat {b}: Missing durationFrames")
        if beat.start_frame is not None and beat.start_frame < 0:
            errors.append(f"{prefix}, Beat {b}: Starts before the scene ({beat.start_frame})")
        end = beat.end_frame
        if (
            end is not None
            and scene.duration_frames is not None
            and end > scene.duration_frames
            and not beat.allow_overflow
        ):
            errors.append(
                f"{prefix}, Beat {b}: Ends at frame {end}, past scene duration {scene.duration_frames}"
            )

    for k, image in enumerate(scene.images):
        if not image.image_id:
            errors.append(f"{prefix}, Image {k}: Missing imageId")
        elif not isinstance(image.image_id, str):
            errors.append(f"{prefix}, Image {k}: Invalid imageId {image.image_id!r}")
        if image.animation is not None and image.animation.needs_interpolation():
            anim = image.animation
            warnings.append(
                f"{prefix}, Image {k}: Has position interpolation "
                f"({anim.start_x},{anim.start_y} -> {anim.end_x},{anim.end_y})"
            )

    for e, element in enumerate(scene.elements):
        label = f"{prefix}, Element {e}"
        if isinstance(element, TextElement):
            if not element.content:
                errors.append(f"{label}: Text element without content")
        elif isinstance(element, BadgeElement):
            if not element.label:
                errors.append(f"{label}: Badge element without label")
        elif isinstance(element, ImageElement):
            if not element.image_id:
                errors.append(f"{label}: Missing imageId")
            elif not isinstance(element.image_id, str):
                errors.append(f"{label}: Invalid imageId {element.image_id!r}")
        elif isinstance(element, ShapeElement):
            if not element.shape:
                errors.append(f"{label}: Shape element without shape")
        elif isinstance(element, UnknownElement):
            errors.append(f"{label}: Unknown element type \"{element.type}\"")
        else:
            raise TypeError(f"Unhandled element kind: {type(element).__name__}")


def validate(
    spec: Union[VideoSpec, Dict[str, Any]],
    provided_image_ids: Optional[Iterable[str]] = None,
) -> ValidationResult:
    """
    Structural and vocabulary check of a video specification.

    Pure and total: malformed input is reported as an error, never raised.
    When `provided_image_ids` is given, references to other ids are errors.
    """
    errors: List[str] = []
    warnings: List[str] = []

    try:
        video = _coerce_spec(spec)
    except (TypeError, ValueError, AttributeError) as e:
        return ValidationResult(valid=False, errors=[f"Malformed specification: {e}"])

    if not video.scenes:
        return ValidationResult(valid=False, errors=["Plan has no scenes"])

    for index, scene in enumerate(video.scenes):
        try:
            _check_scene(index, scene, errors, warnings)
        except (TypeError, ValueError) as e:
            errors.append(f"Scene {index}: Malformed scene ({e})")

    for index in range(1, len(video.scenes)):
        layout = video.scenes[index].layout
        if layout and layout == video.scenes[index - 1].layout:
            warnings.append(f"Scene {index}: Same layout as previous scene ({layout})")

    if provided_image_ids is not None:
        for missing in find_dangling_image_refs(video, provided_image_ids):
            errors.append(f"Unknown imageId \"{missing}\"")

    return ValidationResult(valid=not errors, errors=errors, warnings=warnings)


def find_dangling_image_refs(spec: VideoSpec, provided_image_ids: Iterable[str]) -> List[str]:
    """
    Referenced ids that were not provided, in first-seen order.
    A reference that is not a string can never match and is reported by its repr.
    """
    known = {image_id for image_id in provided_image_ids if isinstance(image_id, str)}
    missing: List[str] = []
    for scene in spec.scenes:
        for image_id in scene.referenced_image_ids():
            if not isinstance(image_id, str):
                image_id = repr(image_id)
            if image_id not in known and image_id not in missing:
                missing.append(image_id)
    return missing


def assert_renderable(spec: VideoSpec, provided_image_ids: Iterable[str]) -> None:
    """Pre-render check: every referenced image must have been provided."""
    missing = find_dangling_image_refs(spec, provided_image_ids)
    if missing:
        logger.error(f"❌ Dangling image references: {missing}")
        raise DanglingImageReferenceError(missing)


def lock_background_theme(spec: VideoSpec) -> Tuple[VideoSpec, List[str]]:
    """
    Give every scene the first scene's background type and texture.
    Colors and angle stay per scene so direction can still vary.
    """
    warnings: List[str] = []
    if not spec.scenes or spec.scenes[0].background is None:
        return spec, warnings

    reference = spec.scenes[0].background
    scenes = [spec.scenes[0]]
    for index, scene in enumerate(spec.scenes[1:], start=1):
        background = scene.background
        if background is None:
            scenes.append(scene)
            continue
        changes = {}
        if background.type != reference.type:
            changes["type"] = reference.type
        if background.texture != reference.texture:
            changes["texture"] = reference.texture
        if changes:
            warnings.append(
                f"Scene {index}: Background aligned to theme "
                + ", ".join(f"{k}={v}" for k, v in changes.items())
            )
            scene = replace(scene, background=replace(background, **changes))
        scenes.append(scene)

    return spec.with_scenes(scenes), warnings


# =============================================================================
# AI-AUTHORED SHOT PLANS
# =============================================================================

@dataclass(frozen=True)
class FixResult:
    fixed: Dict[str, Any]
    warnings: List[str] = field(default_factory=list)


def validate_and_fix_output(output: Dict[str, Any]) -> FixResult:
    """
    Keep each shot's effects inside that shot type's allow-list.

    Rejected effects are dropped; a shot left with no effect gets the first
    allowed one. Empty font lists get the shot type's defaults. Never raises:
    the corrected copy is returned with a warning per change.
    """
    warnings: List[str] = []
    fixed = copy.deepcopy(output) if isinstance(output, dict) else {}
    shots = fixed.get("shots")
    if not isinstance(shots, list):
        warnings.append("Output has no shot list")
        fixed["shots"] = []
        return FixResult(fixed=fixed, warnings=warnings)

    for i, shot in enumerate(shots):
        n = i + 1
        if not isinstance(shot, dict):
            warnings.append(f"Shot {n}: Not an object, skipped")
            continue

        shot_type = shot.get("shot_type")
        if shot_type is not None and not isinstance(shot_type, str):
            shot_type = str(shot_type)
        if shot_type not in constraints.SHOT_TYPES:
            warnings.append(f"Shot {n}: Invalid shot type \"{shot_type}\"")

        allowed = constraints.allowed_effects(shot_type)
        declared = shot.get("recommended_effects") or []
        if isinstance(declared, str):
            declared = [declared]
        elif not isinstance(declared, list):
            warnings.append(f"Shot {n}: Effect list is not a list ({declared!r}), ignored")
            declared = []

        valid_effects = []
        for effect in declared:
            if effect in allowed:
                valid_effects.append(effect)
            else:
                warnings.append(f"Shot {n}: Effect \"{effect}\" not allowed for \"{shot_type}\"")

        if not valid_effects and allowed:
            effect = constraints.default_effect(shot_type)
            valid_effects.append(effect)
            warnings.append(f"Shot {n}: Using default effect \"{effect}\"")

        shot["recommended_effects"] = valid_effects

        fonts = shot.get("recommended_fonts")
        if isinstance(fonts, str):
            shot["recommended_fonts"] = [fonts]
        elif fonts and not isinstance(fonts, list):
            warnings.append(f"Shot {n}: Font list is not a list ({fonts!r}), ignored")
            fonts = None
        if not fonts:
            shot["recommended_fonts"] = constraints.default_fonts(shot_type)
            warnings.append(f"Shot {n}: Using default fonts {shot['recommended_fonts']}")

    warnings.extend(check_shot_sequence([s.get("shot_type") for s in shots if isinstance(s, dict)]))
    return FixResult(fixed=fixed, warnings=warnings)


def check_shot_sequence(shot_types: List[Optional[str]]) -> List[str]:
    warnings: List[str] = []
    if not shot_types:
        return warnings
    if len(shot_types) > constraints.MAX_SHOTS:
        warnings.append(f"Sequence has {len(shot_types)} shots (max {constraints.MAX_SHOTS})")
    if shot_types[0] not in constraints.OPENING_SHOT_TYPES:
        warnings.append(f"Sequence should open with {' or '.join(constraints.OPENING_SHOT_TYPES)}")
    if shot_types[-1] != constraints.CLOSING_SHOT_TYPE:
        warnings.append(f"Sequence should close with {constraints.CLOSING_SHOT_TYPE}")
    for i in range(1, len(shot_types)):
        if shot_types[i] == shot_types[i - 1]:
            warnings.append(f"Shot {i + 1}: Repeats previous shot type \"{shot_types[i]}\"")
    return warnings
