import asyncio
import json
import logging
import os
import time
from dataclasses import replace
from typing import Optional, Tuple

from promo_engine.catalog.themes import detect_image_type, detect_language, detect_product_type
from promo_engine.clients.completion import OpenAITextClient, TextCompletionClient
from promo_engine.clients.vision import OpenAIVisionCritic, VisionCritic
from promo_engine.config.settings import settings
from promo_engine.core.models import (
    GenerationRequest,
    GenerationResult,
    PipelineInput,
    RefinementSummary,
    VideoSpec,
)
from promo_engine.engine.correction import CorrectionEngine
from promo_engine.engine.validator import assert_renderable, validate
from promo_engine.pipeline.feedback_loop import FeedbackConfig, VisualFeedbackLoop
from promo_engine.pipeline.orchestrator import CreativePipeline
from promo_engine.progress.tracker import JobRegistry, Stage
from promo_engine.rendering.base import SceneRenderer
from promo_engine.rendering.preview import HttpRenderer, SwatchRenderer
from promo_engine.utils.logger import get_logger, job_context

logger = get_logger()


def default_critic() -> Optional[VisionCritic]:
    if settings.openai_api_key or settings.openai_base_url:
        return OpenAIVisionCritic()
    return None


def default_renderer() -> SceneRenderer:
    if settings.render_api_url:
        return HttpRenderer()
    return SwatchRenderer()


class PromoPipeline:
    """
    Orchestrates one end-to-end generation: plan, pre-render checks,
    optional visual refinement, final validation, job bookkeeping.
    """

    def __init__(
        self,
        client: Optional[TextCompletionClient] = None,
        renderer: Optional[SceneRenderer] = None,
        critic: Optional[VisionCritic] = None,
        corrector: Optional[CorrectionEngine] = None,
        tracker: Optional[JobRegistry] = None,
        output_root: Optional[str] = None,
    ):
        self.client = client if client is not None else OpenAITextClient()
        self.tracker = tracker if tracker is not None else JobRegistry()
        self.renderer = renderer if renderer is not None else default_renderer()
        self.critic = critic if critic is not None else default_critic()
        self.corrector = corrector if corrector is not None else CorrectionEngine(self.client)
        self.output_root = settings.output_root if output_root is None else output_root

        self.creative = CreativePipeline(self.client, self.tracker)
        self.feedback = VisualFeedbackLoop(self.renderer, self.critic, self.corrector, self.tracker)

    def run(self, request: GenerationRequest, job_id: Optional[str] = None) -> GenerationResult:
        """
        Synchronous entry point for the pipeline.
        """
        return asyncio.run(self.run_async(request, job_id))

    @staticmethod
    def build_input(request: GenerationRequest) -> PipelineInput:
        """Fill the hints the caller left out from the prompt itself."""
        prompt = request.prompt.strip()
        images = [
            img if img.type and img.type != "unknown"
            else replace(img, type=detect_image_type(img.extra.get("intent"), img.description))
            for img in request.images
        ]
        return PipelineInput(
            user_prompt=prompt,
            product_type=request.product_type or detect_product_type(prompt),
            target_audience=request.target_audience,
            tone=request.tone,
            language=request.language or detect_language(prompt),
            provided_images=images,
            fps=request.fps or settings.default_fps,
            width=request.width or settings.default_width,
            height=request.height or settings.default_height,
        )

    async def run_async(self, request: GenerationRequest, job_id: Optional[str] = None) -> GenerationResult:
        if not request.prompt or not request.prompt.strip():
            raise ValueError("prompt is required")

        job = self.tracker.get(job_id) if job_id else None
        if job is None or job.is_terminal:
            job = self.tracker.create_job(job_id)
        job_id = job.job_id

        with job_context(job_id):
            logger.info(f"🚀 Starting generation {job_id}: {request.prompt.strip()[:80]}")
            try:
                self.tracker.update(job_id, Stage.INITIALIZING, "Starting generation...")
                self.tracker.update(job_id, Stage.ANALYZING, "Analyzing your request...")
                pipeline_input = self.build_input(request)
                logger.info(
                    f"🔎 Product type: {pipeline_input.product_type} | Language: {pipeline_input.language} | "
                    f"Images: {len(pipeline_input.provided_images)}"
                )

                output = await self.creative.execute(pipeline_input, job_id)
                spec = output.video_spec
                self.tracker.update(job_id, Stage.PLAN_COMPLETE, f"Plan ready: {len(spec.scenes)} scenes")

                assert_renderable(spec, pipeline_input.image_ids)
                refinement, spec = await self._refine(request, spec, pipeline_input, job_id)

                self.tracker.update(job_id, Stage.FINALIZING, "Finalizing specification...")
                validation = validate(spec, pipeline_input.image_ids)
                for error in validation.errors:
                    logger.warning(f"⚠️ Final spec: {error}")

                result = GenerationResult(
                    job_id=job_id,
                    video_spec=spec,
                    marketing_strategy=output.marketing_strategy,
                    art_direction=output.art_direction,
                    refinement=refinement,
                    validation=validation,
                    warnings=list(output.warnings) + list(validation.warnings),
                )
                self._save_manifest(result)
                self.tracker.complete_job(job_id, result=result.to_dict())
            except Exception as e:
                self.tracker.fail_job(job_id, str(e))
                raise

            logger.info(
                f"🏁 Generation {job_id} complete | Scenes: {len(spec.scenes)} | "
                f"Refinement iterations: {refinement.iterations}"
            )
            return result

    async def _refine(
        self,
        request: GenerationRequest,
        spec: VideoSpec,
        pipeline_input: PipelineInput,
        job_id: str,
    ) -> Tuple[RefinementSummary, VideoSpec]:
        enabled = settings.enable_visual_feedback if request.enable_refinement is None else request.enable_refinement
        if enabled and self.critic is None:
            logger.warning("⚠️ No vision critic configured, skipping refinement")
            enabled = False

        options = {"skip_feedback": not enabled}
        if request.max_iterations is not None:
            options["max_iterations"] = request.max_iterations
        if request.scenes_to_review:
            options["scenes_to_review"] = tuple(request.scenes_to_review)
        config = FeedbackConfig(**options)

        loop = await self.feedback.run(spec, pipeline_input.image_ids, config, job_id)
        if config.skip_feedback:
            return RefinementSummary(enabled=False), spec.with_scenes(loop.improved_scenes)
        if loop.error:
            logger.warning(f"⚠️ Refinement fell back on some scenes: {loop.error}")

        scores = [r.final_score for r in loop.review_results if r.final_score is not None]
        summary = RefinementSummary(
            enabled=True,
            iterations=loop.total_iterations,
            final_score=round(sum(scores) / len(scores), 2) if scores else None,
            issue_counts=[count for r in loop.review_results for count in r.issue_counts],
            scenes_improved=loop.scenes_improved,
            scenes_fallback=loop.scenes_fallback,
            scenes=list(loop.review_results),
            error=loop.error,
        )
        return summary, spec.with_scenes(loop.improved_scenes)

    def _save_manifest(self, result: GenerationResult):
        if not self.output_root:
            return
        run_dir = os.path.join(self.output_root, result.job_id)
        manifest = {"timestamp": time.time(), **result.to_dict()}

        try:
            os.makedirs(run_dir, exist_ok=True)
            with open(os.path.join(run_dir, "manifest.json"), "w", encoding="utf-8") as f:
                json.dump(manifest, f, indent=2, ensure_ascii=False)
            logger.info(f"✅ Manifest saved to {run_dir}")
        except IOError as e:
            logger.error(f"Failed to save manifest: {e}")
