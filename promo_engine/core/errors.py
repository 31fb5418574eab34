from typing import Any, Dict, Iterable, Optional

from promo_engine.config.settings import settings


def truncate(text: Optional[str], limit: Optional[int] = None) -> Optional[str]:
    if text is None:
        return None
    limit = settings.raw_output_limit if limit is None else limit
    if len(text) <= limit:
        return text
    return text[:limit] + f"... [truncated {len(text) - limit} chars]"


class PipelineStageError(Exception):
    """
    A pipeline stage produced output that could not be used.
    Fatal for the whole generation request.
    """

    def __init__(self, stage: str, message: str, raw_output: Optional[str] = None):
        super().__init__(f"[{stage}] {message}")
        self.stage = stage
        self.message = message
        self.raw_output = raw_output

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": "Pipeline stage failed",
            "stage": self.stage,
            "detail": self.message,
            "rawOutput": truncate(self.raw_output),
        }


class DanglingImageReferenceError(ValueError):
    """A scene references an image id that the caller never provided."""

    def __init__(self, missing: Iterable[str]):
        self.missing = sorted(set(missing))
        super().__init__(f"Unknown image ids referenced: {', '.join(self.missing)}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": "Invalid image reference",
            "detail": str(self),
            "missingImageIds": list(self.missing),
        }
