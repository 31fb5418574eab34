import json
import logging
from typing import Callable, List, Optional, Sequence, Tuple, Union

from promo_engine.clients.completion import TextCompletionClient
from promo_engine.clients.vision import VisionCritic
from promo_engine.core.models import Critique

logger = logging.getLogger("PromoEngine")

ScriptedReply = Union[str, dict, Exception, Callable[[str, str], str]]


class ScriptedTextClient(TextCompletionClient):
    """
    Replays canned completions in order, for tests and offline runs.

    A reply may be a string, a dict (sent as JSON), an exception to raise, or
    a callable receiving (system, user). Every request is recorded in `calls`.
    """

    def __init__(self, replies: Sequence[ScriptedReply]):
        self.replies = list(replies)
        self.calls: List[Tuple[str, str, int]] = []

    def complete(self, system: str, user: str, max_tokens: int) -> str:
        self.calls.append((system, user, max_tokens))
        if not self.replies:
            raise RuntimeError("ScriptedTextClient ran out of replies")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            reply = reply(system, user)
        if isinstance(reply, dict):
            return json.dumps(reply)
        return reply

    async def complete_async(self, system: str, user: str, max_tokens: int) -> str:
        return self.complete(system, user, max_tokens)


class ScriptedVisionCritic(VisionCritic):
    """
    Returns queued critiques; the last one repeats once the queue is drained.
    `None` entries simulate a missing response.
    """

    def __init__(self, critiques: Sequence[Optional[Critique]]):
        self.critiques = list(critiques)
        self.reviewed: List[Tuple[str, str]] = []

    def review(self, image: str, scene_type: str) -> Optional[Critique]:
        self.reviewed.append((image, scene_type))
        if not self.critiques:
            return None
        if len(self.critiques) == 1:
            return self.critiques[0]
        return self.critiques.pop(0)

    async def review_async(self, image: str, scene_type: str) -> Optional[Critique]:
        return self.review(image, scene_type)
