import logging
from dataclasses import replace
from typing import List, Optional, Tuple

from promo_engine.clients.completion import TextCompletionClient
from promo_engine.config.settings import settings
from promo_engine.core.models import Background, CorrectionResult, Critique, Motion, Scene, Typography
from promo_engine.engine.parsing import parse_model_output
from promo_engine.engine.prompts import CORRECTION_PROMPT, build_correction_message

logger = logging.getLogger("PromoEngine")

# Top-level scene fields whose changes are reported back to the loop.
DIFF_FIELDS = ("background", "typography", "motion", "layout", "images")

# Text the correction model may never rewrite.
PROTECTED_FIELDS = ("scene_type", "headline", "subtext")

MAX_DURATION_DRIFT = 0.2

FALLBACK_GRADIENT = ("#1a1a2e", "#16213e")


def _is_frame_count(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def enforce_protected_fields(original: Scene, candidate: Scene) -> Tuple[Scene, List[str]]:
    """
    Put back protected values the model changed.
    Returns the repaired scene and the wire names of the restored fields.
    """
    updates = {}
    restored = []
    for name in PROTECTED_FIELDS:
        if getattr(candidate, name) != getattr(original, name):
            updates[name] = getattr(original, name)
            restored.append(name)

    before, after = original.duration_frames, candidate.duration_frames
    if after != before:
        drift_ok = (
            _is_frame_count(before) and _is_frame_count(after)
            and abs(after - before) / before <= MAX_DURATION_DRIFT
        )
        if not drift_ok:
            updates["duration_frames"] = before
            restored.append("duration_frames")

    if updates:
        candidate = replace(candidate, **updates)
    return candidate, restored


def diff_scene(original: Scene, corrected: Scene) -> List[str]:
    before, after = original.to_dict(), corrected.to_dict()
    return [name for name in DIFF_FIELDS if before.get(name) != after.get(name)]


def create_minimal_fallback(scene: Scene) -> Scene:
    """
    Deterministic, always-renderable variant of `scene`.
    Text, images, beats and duration are kept; the look is replaced.
    """
    logger.info(f"🛟 Building minimal fallback for {scene.scene_type}")
    typography = replace(scene.typography or Typography(), headline_weight=700, headline_size="xlarge")
    return replace(
        scene,
        background=Background(
            type="gradient",
            gradient_colors=list(FALLBACK_GRADIENT),
            gradient_angle=135,
            texture="grain",
            texture_opacity=0.06,
        ),
        typography=typography,
        motion=Motion(
            entry="fade_in",
            entry_duration=15,
            exit="fade_out",
            exit_duration=10,
            hold_animation="subtle_float",
            rhythm="smooth",
        ),
        layout="TEXT_CENTER",
    )


class CorrectionEngine:
    """
    Applies one critique to one scene with a single completion call.

    The prompt restricts the model to visual fields; anything it does to text,
    scene type, duration or image references is checked here afterwards.
    """

    def __init__(self, client: TextCompletionClient, max_tokens: Optional[int] = None):
        self.client = client
        self.max_tokens = max_tokens or settings.correction_max_tokens

    async def correct_scene(self, scene: Scene, scene_index: int, critique: Critique) -> CorrectionResult:
        logger.info(f"🔧 Correcting scene {scene_index} ({scene.scene_type}): {len(critique.issues)} issues")
        message = build_correction_message(scene, scene_index, critique)

        try:
            raw = await self.client.complete_async(CORRECTION_PROMPT, message, self.max_tokens)
        except Exception as e:
            logger.error(f"❌ Correction call failed for scene {scene_index}: {e}")
            return CorrectionResult(success=False, error=f"Correction call failed: {e}")

        parsed = parse_model_output(raw)
        if not parsed.ok:
            logger.warning(f"⚠️ Correction for scene {scene_index} unusable: {parsed.error}")
            return CorrectionResult(success=False, error=parsed.error)

        data = parsed.data
        for key in ("correctedScene", "scene"):
            if isinstance(data.get(key), dict):
                data = data[key]
                break

        try:
            candidate = Scene.from_dict(data)
            result = self._accept(scene, scene_index, candidate)
        except (TypeError, ValueError, AttributeError) as e:
            logger.warning(f"⚠️ Correction for scene {scene_index} is malformed: {e}")
            return CorrectionResult(success=False, error=f"Corrected scene is malformed: {e}")
        return result

    def _accept(self, scene: Scene, scene_index: int, candidate: Scene) -> CorrectionResult:
        ids = candidate.referenced_image_ids()
        if any(not isinstance(image_id, str) for image_id in ids):
            return CorrectionResult(success=False, error="Correction produced an invalid imageId")
        if sorted(ids) != sorted(scene.referenced_image_ids()):
            logger.warning(f"⚠️ Correction for scene {scene_index} added or removed images, discarding")
            return CorrectionResult(success=False, error="Correction changed the scene's image references")

        candidate, restored = enforce_protected_fields(scene, candidate)
        if restored:
            logger.warning(f"⚠️ Restored protected fields on scene {scene_index}: {', '.join(restored)}")

        changes = diff_scene(scene, candidate)
        logger.info(f"✅ Scene {scene_index} corrected: {', '.join(changes) or 'no visual changes'}")
        return CorrectionResult(success=True, corrected_scene=candidate, changes_applied=changes)
