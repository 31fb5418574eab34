import logging
from typing import Optional

from promo_engine.clients.completion import TextCompletionClient
from promo_engine.core.models import PipelineInput, PipelineOutput
from promo_engine.pipeline.stages import run_art_director, run_executor, run_strategist
from promo_engine.progress.tracker import JobRegistry, Stage, report

logger = logging.getLogger("PromoEngine")


class CreativePipeline:
    """
    Strategist -> art director -> executor, strictly forward.

    Each stage only reads earlier artifacts. A failing stage aborts the run
    with PipelineStageError; nothing is retried or patched from later stages.
    """

    def __init__(self, client: TextCompletionClient, tracker: Optional[JobRegistry] = None):
        self.client = client
        self.tracker = tracker

    async def execute(self, pipeline_input: PipelineInput, job_id: Optional[str] = None) -> PipelineOutput:
        report(self.tracker, job_id, Stage.GENERATING_PLAN, "Defining marketing strategy...", 10)
        strategy = await run_strategist(self.client, pipeline_input)

        report(self.tracker, job_id, Stage.GENERATING_PLAN, "Designing the visual system...", 13)
        art_direction = await run_art_director(self.client, pipeline_input, strategy)

        report(self.tracker, job_id, Stage.GENERATING_PLAN, "Building scenes...", 16)
        video_spec, warnings = await run_executor(self.client, pipeline_input, strategy, art_direction)

        for warning in warnings:
            logger.warning(f"⚠️ {warning}")

        return PipelineOutput(
            marketing_strategy=strategy,
            art_direction=art_direction,
            video_spec=video_spec,
            warnings=warnings,
        )
