import asyncio
import logging
from functools import wraps
from typing import Optional

import openai
from openai import OpenAI

from promo_engine.config.settings import settings
from promo_engine.utils.decorators import smart_retry

logger = logging.getLogger("PromoEngine")


class TextCompletionClient:
    """
    Interface for text-completion backends.
    Every stage, and the correction engine, talks to a model through this.
    """

    def complete(self, system: str, user: str, max_tokens: int) -> str:
        """
        Returns the raw response text (possibly fenced, possibly empty).

        Raises:
            ConnectionError: For retryable network issues.
            RuntimeError: For non-retryable provider errors.
        """
        raise NotImplementedError("Subclasses must implement complete()")

    async def complete_async(self, system: str, user: str, max_tokens: int) -> str:
        """
        Default implementation runs the synchronous call in a worker thread.
        """
        return await asyncio.to_thread(self.complete, system, user, max_tokens)


def openai_client() -> OpenAI:
    api_key = settings.openai_api_key or "sk-dummy"
    return OpenAI(api_key=api_key, base_url=settings.openai_base_url or None)


def call_openai(func):
    """Translate SDK errors into the retry taxonomy used by smart_retry."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except openai.APITimeoutError as e:
            raise TimeoutError(str(e)) from e
        except (openai.APIConnectionError, openai.RateLimitError) as e:
            raise ConnectionError(str(e)) from e
        except openai.APIStatusError as e:
            raise RuntimeError(f"OpenAI error {e.status_code}: {e.message}") from e
    return wrapper


class OpenAITextClient(TextCompletionClient):
    def __init__(self, model: Optional[str] = None, client: Optional[OpenAI] = None, temperature: float = 0.7):
        self.client = client or openai_client()
        self.model = model or settings.text_model
        self.temperature = temperature

    @smart_retry(retries=3, delay=1, backoff=2)
    @call_openai
    def complete(self, system: str, user: str, max_tokens: int) -> str:
        logger.debug(f"Completion request ({self.model}, max_tokens={max_tokens})")
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            max_tokens=max_tokens,
            temperature=self.temperature,
            response_format={"type": "json_object"},
        )
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""
