import argparse
import asyncio

from promo_engine.config.settings import settings
from promo_engine.core.models import GenerationRequest
from promo_engine.pipeline.manager import PromoPipeline
from promo_engine.utils.logger import setup_logging

# Configure Logging
logger = setup_logging(settings.log_level)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate a marketing video specification from a prompt.")
    parser.add_argument("prompt", help="Free-text product description")
    parser.add_argument("--tone", default=None)
    parser.add_argument("--audience", default=None)
    parser.add_argument("--language", default=None)
    parser.add_argument("--no-refine", action="store_true", help="Skip the visual feedback loop")
    parser.add_argument("--max-iterations", type=int, default=None)
    return parser.parse_args(argv)


async def main(argv=None):
    """
    Main entry point for the Promo Engine.
    """
    args = parse_args(argv)
    engine = PromoPipeline()

    request = GenerationRequest(
        prompt=args.prompt,
        tone=args.tone,
        target_audience=args.audience,
        language=args.language,
        enable_refinement=False if args.no_refine else None,
        max_iterations=args.max_iterations,
    )

    try:
        logger.info("🚀 Starting Engine Main Loop...")
        result = await engine.run_async(request)

        logger.info("🏆 FINAL SPEC:")
        for i, scene in enumerate(result.video_spec.scenes):
            logger.info(f"Scene {i} [{scene.scene_type}] {scene.layout} | {scene.headline}")
        refinement = result.refinement
        logger.info(
            f"Refinement: {'on' if refinement.enabled else 'off'} | Iterations: {refinement.iterations} | "
            f"Final score: {refinement.final_score} | Issues per round: {refinement.issue_counts}"
        )
        if not result.validation.valid:
            logger.warning(f"⚠️ Validation errors: {result.validation.errors}")

    except Exception as e:
        logger.critical(f"🔥 Critical Failure: {e}", exc_info=True)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Captured KeyboardInterrupt. Exiting...")
