"""
The three generation stages.

Each stage is a single completion call: build the message from the prior
artifacts, parse the reply, check its shape, and return a new immutable
artifact. Any failure raises PipelineStageError carrying the raw reply.
"""
import logging
from numbers import Number
from typing import Any, Dict, List, Tuple

from promo_engine.catalog import constraints
from promo_engine.catalog.themes import VISUAL_THEMES, detect_visual_theme
from promo_engine.clients.completion import TextCompletionClient
from promo_engine.config.settings import settings
from promo_engine.core.errors import PipelineStageError
from promo_engine.core.models import ArtDirection, MarketingStrategy, PipelineInput, VideoSpec
from promo_engine.engine.parsing import parse_model_output
from promo_engine.engine.prompts import (
    ART_DIRECTOR_PROMPT,
    EXECUTOR_PROMPT,
    STRATEGIST_PROMPT,
    build_art_director_message,
    build_executor_message,
    build_strategist_message,
)
from promo_engine.engine.validator import lock_background_theme

logger = logging.getLogger("PromoEngine")

MARKETING = "marketing"
ART_DIRECTION = "art_direction"
EXECUTION = "execution"

MIN_KEY_MESSAGES = 3


async def _ask(stage: str, client: TextCompletionClient, system: str, user: str, max_tokens: int) -> Tuple[Dict[str, Any], str]:
    try:
        raw = await client.complete_async(system, user, max_tokens)
    except Exception as e:
        raise PipelineStageError(stage, f"Completion call failed: {e}") from e

    result = parse_model_output(raw)
    if not result.ok:
        raise PipelineStageError(stage, result.error, raw)
    return result.data, raw


def _require(stage: str, condition: bool, message: str, raw: str) -> None:
    if not condition:
        raise PipelineStageError(stage, message, raw)


def _build(stage: str, factory, data: Dict[str, Any], raw: str):
    try:
        return factory(data)
    except (TypeError, ValueError) as e:
        raise PipelineStageError(stage, f"Malformed output: {e}", raw) from e


async def run_strategist(client: TextCompletionClient, pipeline_input: PipelineInput) -> MarketingStrategy:
    data, raw = await _ask(
        MARKETING, client, STRATEGIST_PROMPT,
        build_strategist_message(pipeline_input), settings.strategist_max_tokens,
    )

    _require(MARKETING, isinstance(data.get("corePromise"), str) and data["corePromise"].strip(),
             "Missing corePromise", raw)
    _require(MARKETING, isinstance(data.get("hookIntent"), str), "Missing hookIntent", raw)
    _require(MARKETING, isinstance(data.get("emotionalArc"), list), "emotionalArc must be a list", raw)

    messages = data.get("keyMessages")
    _require(MARKETING, isinstance(messages, list) and len(messages) >= MIN_KEY_MESSAGES,
             f"keyMessages must list at least {MIN_KEY_MESSAGES} messages", raw)
    for i, msg in enumerate(messages):
        _require(MARKETING, isinstance(msg, dict) and isinstance(msg.get("id"), str)
                 and isinstance(msg.get("message"), str),
                 f"keyMessages[{i}] needs string id and message", raw)
        if msg["id"] not in constraints.KEY_MESSAGE_IDS:
            logger.warning(f"⚠️ Strategist used unknown key message id '{msg['id']}'")

    strategy = _build(MARKETING, MarketingStrategy.from_dict, data, raw)
    logger.info(f"🧠 Strategy ready: \"{strategy.core_promise}\" ({len(strategy.key_messages)} messages)")
    return strategy


async def run_art_director(
    client: TextCompletionClient,
    pipeline_input: PipelineInput,
    strategy: MarketingStrategy,
) -> ArtDirection:
    data, raw = await _ask(
        ART_DIRECTION, client, ART_DIRECTOR_PROMPT,
        build_art_director_message(pipeline_input, strategy), settings.art_director_max_tokens,
    )

    _require(ART_DIRECTION, isinstance(data.get("designPack"), str), "Missing designPack", raw)
    for key in ("palette", "typography", "motion"):
        _require(ART_DIRECTION, isinstance(data.get(key), dict), f"{key} must be an object", raw)

    data = {**data}
    data.setdefault("compositionRules", {})
    if data["designPack"] not in constraints.DESIGN_PACKS:
        theme = VISUAL_THEMES[detect_visual_theme(pipeline_input.user_prompt)]
        logger.warning(f"⚠️ Unknown designPack '{data['designPack']}', using {theme.design_pack}")
        data["designPack"] = theme.design_pack

    art = _build(ART_DIRECTION, ArtDirection.from_dict, data, raw)
    logger.info(f"🎨 Art direction ready: {art.design_pack} ({art.mood or 'no mood'})")
    return art


def _check_scene_shape(index: int, scene: Any, raw: str) -> None:
    _require(EXECUTION, isinstance(scene, dict), f"scenes[{index}] must be an object", raw)
    _require(EXECUTION, scene.get("sceneType") in constraints.SCENE_TYPES,
             f"scenes[{index}] has invalid sceneType {scene.get('sceneType')!r}", raw)
    for key in ("background", "typography", "motion"):
        _require(EXECUTION, isinstance(scene.get(key), dict), f"scenes[{index}] is missing {key}", raw)


async def run_executor(
    client: TextCompletionClient,
    pipeline_input: PipelineInput,
    strategy: MarketingStrategy,
    art_direction: ArtDirection,
) -> Tuple[VideoSpec, List[str]]:
    """
    Returns the video spec and the warnings raised while normalizing it.
    """
    data, raw = await _ask(
        EXECUTION, client, EXECUTOR_PROMPT,
        build_executor_message(pipeline_input, strategy, art_direction), settings.executor_max_tokens,
    )

    scenes = data.get("scenes")
    _require(EXECUTION, isinstance(scenes, list) and len(scenes) > 0, "Output has no scenes", raw)
    for i, scene in enumerate(scenes):
        _check_scene_shape(i, scene, raw)

    data = {**data}
    for key in ("fps", "width", "height"):
        if not isinstance(data.get(key), Number):
            data[key] = getattr(pipeline_input, key)
    data["strategy"] = strategy.to_dict()
    data["blueprint"] = {
        "designPack": art_direction.design_pack,
        "mood": art_direction.mood,
        "palette": art_direction.palette.to_dict(),
    }

    spec = _build(EXECUTION, VideoSpec.from_dict, data, raw)
    spec, warnings = lock_background_theme(spec)
    logger.info(f"🎬 Executor produced {len(spec.scenes)} scenes at {spec.width}x{spec.height}@{spec.fps}")
    return spec, warnings
