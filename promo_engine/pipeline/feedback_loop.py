import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

from promo_engine.clients.vision import VisionCritic
from promo_engine.config.settings import settings
from promo_engine.core.models import (
    Critique,
    FeedbackLoopResult,
    RenderResult,
    ReviewOutcome,
    Scene,
    SceneReviewResult,
    VideoSpec,
)
from promo_engine.engine.correction import CorrectionEngine, create_minimal_fallback
from promo_engine.engine.validator import assert_renderable
from promo_engine.progress.tracker import JobRegistry, Stage, report, stage_progress
from promo_engine.rendering.base import SceneRenderer

logger = logging.getLogger("PromoEngine")

FALLBACK_MARKER = "fallback_applied"


@dataclass(frozen=True)
class FeedbackConfig:
    """Per-run settings; `max_iterations` is clamped to [0, hard cap]."""
    max_iterations: int = field(default_factory=lambda: settings.feedback_max_iterations)
    scenes_to_review: Tuple[str, ...] = field(default_factory=lambda: tuple(settings.feedback_scene_types))
    skip_feedback: bool = False
    acceptance_score: float = field(default_factory=lambda: settings.acceptance_score)

    def __post_init__(self):
        clamped = max(0, min(int(self.max_iterations), settings.feedback_iteration_cap))
        object.__setattr__(self, "max_iterations", clamped)
        object.__setattr__(self, "scenes_to_review", tuple(self.scenes_to_review))


class VisualFeedbackLoop:
    """
    Render -> critique -> correct, per reviewable scene.

    Scenes are reviewed one after another and each scene's iterations are
    sequential. Failures stay local to the scene: a failed render, critique or
    correction stops that scene's loop and substitutes the minimal fallback
    built from the scene as it was before any correction.
    """

    def __init__(
        self,
        renderer: SceneRenderer,
        critic: VisionCritic,
        corrector: CorrectionEngine,
        tracker: Optional[JobRegistry] = None,
    ):
        self.renderer = renderer
        self.critic = critic
        self.corrector = corrector
        self.tracker = tracker

    async def run(
        self,
        spec: VideoSpec,
        provided_image_ids: Iterable[str] = (),
        config: Optional[FeedbackConfig] = None,
        job_id: Optional[str] = None,
    ) -> FeedbackLoopResult:
        config = config or FeedbackConfig()
        assert_renderable(spec, provided_image_ids)

        if config.skip_feedback:
            logger.info("⏭️ Visual feedback disabled, returning scenes unchanged")
            return FeedbackLoopResult(success=True, improved_scenes=list(spec.scenes))

        indices = [i for i, scene in enumerate(spec.scenes) if scene.scene_type in config.scenes_to_review]
        logger.info(
            f"🔁 Visual feedback on scenes {indices} "
            f"(max {config.max_iterations} iterations, reviewing {', '.join(config.scenes_to_review)})"
        )

        working = spec
        results: List[SceneReviewResult] = []
        total_iterations = 0
        improved = 0
        fallback = 0
        errors: List[str] = []

        for position, index in enumerate(indices):
            try:
                scene, result = await self._review_scene(working, index, config, job_id, position, len(indices))
            except Exception as e:
                logger.error(f"❌ Review of scene {index} aborted, using fallback: {e}", exc_info=True)
                scene, result = self._abort_scene(working.scenes[index], index)
                errors.append(f"scene {index}: {e}")
            working = working.with_scene(index, scene)
            results.append(result)
            total_iterations += result.iterations
            if result.final_verdict == ReviewOutcome.PREMIUM and result.was_modified:
                improved += 1
            elif result.final_verdict == ReviewOutcome.FALLBACK:
                fallback += 1

        logger.info(
            f"🏁 Visual feedback complete | Iterations: {total_iterations} | "
            f"Improved: {improved} | Fallback: {fallback}"
        )
        return FeedbackLoopResult(
            success=True,
            improved_scenes=list(working.scenes),
            review_results=results,
            total_iterations=total_iterations,
            scenes_improved=improved,
            scenes_fallback=fallback,
            error="; ".join(errors) or None,
        )

    async def _render(self, spec: VideoSpec, index: int) -> Optional[RenderResult]:
        try:
            render = await self.renderer.render_still_async(spec, index)
        except Exception as e:
            logger.error(f"❌ Render raised for scene {index}: {e}")
            return None
        if not render.success or not render.image_data_uri:
            logger.error(f"❌ Preview render failed for scene {index}: {render.error}")
            return None
        return render

    async def _critique(self, image: str, scene: Scene) -> Optional[Critique]:
        try:
            return await self.critic.review_async(image, scene.scene_type)
        except Exception as e:
            logger.error(f"❌ Critique raised for {scene.scene_type}: {e}")
            return None

    def _abort_scene(self, original: Scene, index: int) -> Tuple[Scene, SceneReviewResult]:
        return create_minimal_fallback(original), SceneReviewResult(
            scene_index=index,
            scene_type=original.scene_type,
            original_verdict=ReviewOutcome.SKIPPED,
            final_verdict=ReviewOutcome.FALLBACK,
            iterations=0,
            was_modified=True,
            changes_applied=[FALLBACK_MARKER],
        )

    async def _review_scene(
        self,
        spec: VideoSpec,
        index: int,
        config: FeedbackConfig,
        job_id: Optional[str],
        position: int,
        count: int,
    ) -> Tuple[Scene, SceneReviewResult]:
        original = spec.scenes[index]
        scene_type = original.scene_type

        if config.max_iterations == 0:
            return original, SceneReviewResult(
                scene_index=index,
                scene_type=scene_type,
                original_verdict=ReviewOutcome.SKIPPED,
                final_verdict=ReviewOutcome.SKIPPED,
                iterations=0,
                was_modified=False,
            )

        current = original
        working = spec
        original_verdict = ReviewOutcome.SKIPPED
        iterations = 0
        modified = False
        changes: List[str] = []
        issue_counts: List[int] = []
        last_score: Optional[float] = None
        preview: Optional[str] = None

        for iteration in range(1, config.max_iterations + 1):
            iterations = iteration
            report(
                self.tracker, job_id, Stage.RENDERING_FRAMES,
                f"Rendering {scene_type} preview (iteration {iteration})",
                stage_progress(Stage.RENDERING_FRAMES, current=position, total=count),
            )
            render = await self._render(working, index)
            if render is None:
                break
            preview = render.image_base64

            report(
                self.tracker, job_id, Stage.VISION_ANALYSIS,
                f"Reviewing {scene_type} scene (iteration {iteration})",
                stage_progress(Stage.VISION_ANALYSIS, iteration=iteration),
            )
            critique = await self._critique(render.image_data_uri, current)
            if critique is None:
                logger.error(f"❌ No usable critique for scene {index}")
                break

            if iteration == 1:
                original_verdict = ReviewOutcome(critique.verdict.value)
            issue_counts.append(len(critique.issues))
            if critique.score is not None:
                last_score = critique.score

            if critique.is_accepted(config.acceptance_score):
                logger.info(f"✅ Scene {index} ({scene_type}) accepted on iteration {iteration}")
                return current, SceneReviewResult(
                    scene_index=index,
                    scene_type=scene_type,
                    original_verdict=original_verdict,
                    final_verdict=ReviewOutcome.PREMIUM,
                    iterations=iterations,
                    was_modified=modified,
                    changes_applied=changes,
                    issue_counts=issue_counts,
                    final_score=last_score,
                    preview_image_base64=preview,
                )

            if iteration == config.max_iterations:
                logger.warning(f"⚠️ Scene {index} still {critique.verdict.value} after {iteration} iterations")
                break

            report(
                self.tracker, job_id, Stage.APPLYING_FIXES,
                f"Applying {len(critique.required_fixes)} fixes to {scene_type} scene",
                stage_progress(Stage.APPLYING_FIXES, iteration=iteration),
            )
            correction = await self.corrector.correct_scene(current, index, critique)
            if not correction.success or correction.corrected_scene is None:
                logger.error(f"❌ Correction failed for scene {index}: {correction.error}")
                break

            current = correction.corrected_scene
            working = working.with_scene(index, current)
            modified = True
            changes.extend(correction.changes_applied)

        changes.append(FALLBACK_MARKER)
        return create_minimal_fallback(original), SceneReviewResult(
            scene_index=index,
            scene_type=scene_type,
            original_verdict=original_verdict,
            final_verdict=ReviewOutcome.FALLBACK,
            iterations=iterations,
            was_modified=True,
            changes_applied=changes,
            issue_counts=issue_counts,
            final_score=last_score,
            preview_image_base64=preview,
        )
