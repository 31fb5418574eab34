import asyncio
import logging
from typing import Any, Dict, List, Optional

from openai import OpenAI

from promo_engine.clients.completion import call_openai, openai_client
from promo_engine.config.settings import settings
from promo_engine.core.models import Critique, Verdict
from promo_engine.engine.parsing import parse_model_output
from promo_engine.engine.prompts import VISION_REVIEW_PROMPT, build_vision_context
from promo_engine.utils.decorators import smart_retry

logger = logging.getLogger("PromoEngine")

UNPARSED_CONFIDENCE = 0.3
DEFAULT_CONFIDENCE = 0.5


def is_supported_image(image: str) -> bool:
    return isinstance(image, str) and image.startswith(("data:image/", "http://", "https://"))


def _string_list(value: Any) -> List[str]:
    if isinstance(value, list):
        return [str(v) for v in value if v is not None]
    if isinstance(value, str) and value.strip():
        return [value]
    return []


def _coarse_critique(text: str) -> Critique:
    verdict = Verdict.AMATEUR if "amateur" in text.lower() else Verdict.PREMIUM
    return Critique(
        verdict=verdict,
        issues=["Failed to parse detailed review"],
        required_fixes=["Manual review required"],
        confidence=UNPARSED_CONFIDENCE,
        parsed=False,
    )


def parse_critique(text: Optional[str]) -> Optional[Critique]:
    """
    Turn a vision response into a Critique.

    Returns None for an empty response. Text that is not a usable JSON
    verdict still yields a low-confidence critique from a keyword search.
    """
    if text is None or not text.strip():
        return None

    result = parse_model_output(text)
    if not result.ok:
        logger.warning(f"⚠️ Unparseable critique, using keyword verdict: {result.error}")
        return _coarse_critique(text)

    data: Dict[str, Any] = result.data
    raw_verdict = str(data.get("verdict", "")).strip().lower()
    if raw_verdict not in (Verdict.PREMIUM.value, Verdict.AMATEUR.value):
        logger.warning(f"⚠️ Critique verdict '{raw_verdict}' not recognised, using keyword verdict")
        return _coarse_critique(text)

    fixes = data.get("requiredFixes")
    if fixes is None:
        fixes = data.get("required_fixes")

    try:
        confidence = float(data.get("confidence", DEFAULT_CONFIDENCE))
    except (TypeError, ValueError):
        confidence = DEFAULT_CONFIDENCE

    score = data.get("score")
    try:
        score = float(score) if score is not None else None
    except (TypeError, ValueError):
        score = None

    return Critique(
        verdict=Verdict(raw_verdict),
        issues=_string_list(data.get("issues")),
        required_fixes=_string_list(fixes),
        confidence=max(0.0, min(confidence, 1.0)),
        score=score,
    )


class VisionCritic:
    """
    Interface for scene critique backends.
    """

    def review(self, image: str, scene_type: str) -> Optional[Critique]:
        """
        Judge one captured frame.

        Args:
            image: data URI or http(s) URL of the frame.
            scene_type: Marketing role of the scene, passed as context.

        Returns:
            A Critique, or None when no usable response was obtained.
        """
        raise NotImplementedError("Subclasses must implement review()")

    async def review_async(self, image: str, scene_type: str) -> Optional[Critique]:
        return await asyncio.to_thread(self.review, image, scene_type)


class OpenAIVisionCritic(VisionCritic):
    """
    Reviews frames with a vision-capable chat model (GPT-4o or an
    OpenAI-compatible server).
    """

    def __init__(self, model: Optional[str] = None, client: Optional[OpenAI] = None):
        self.client = client or openai_client()
        self.model = model or settings.vision_model

    @smart_retry(retries=2, delay=1, backoff=2)
    @call_openai
    def _request(self, image: str, scene_type: str) -> str:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": VISION_REVIEW_PROMPT},
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": build_vision_context(scene_type)},
                        {"type": "image_url", "image_url": {"url": image, "detail": "high"}},
                    ],
                },
            ],
            max_tokens=settings.vision_max_tokens,
            temperature=0.2,
        )
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    def review(self, image: str, scene_type: str) -> Optional[Critique]:
        if not is_supported_image(image):
            raise ValueError("Image must be a data:image/ URI or an http(s) URL")

        try:
            content = self._request(image, scene_type)
        except Exception as e:
            logger.error(f"❌ Vision review failed ({scene_type}): {e}")
            return None

        critique = parse_critique(content)
        if critique is not None:
            logger.info(
                f"👁️ {scene_type}: {critique.verdict.value} "
                f"(confidence {critique.confidence:.2f}, {len(critique.issues)} issues)"
            )
        return critique
