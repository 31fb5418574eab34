import asyncio

from promo_engine.config.settings import settings
from promo_engine.core.models import RenderResult, VideoSpec

CAPTURE_OFFSET = 0.5


def scene_duration(spec: VideoSpec, index: int) -> int:
    return spec.scenes[index].duration_frames or settings.default_scene_frames


def capture_frame(spec: VideoSpec, scene_index: int, offset: float = CAPTURE_OFFSET) -> int:
    """Absolute frame number used for a scene's preview still."""
    start = sum(scene_duration(spec, i) for i in range(scene_index))
    return start + int(scene_duration(spec, scene_index) * offset)


class SceneRenderer:
    """
    Abstract interface for render backends.
    Only still-frame capture is used by the feedback loop; full video encoding
    happens outside this package.
    """

    def render_still(self, spec: VideoSpec, scene_index: int) -> RenderResult:
        """
        Renders one still frame of a scene.

        Returns:
            RenderResult with `image_base64` on success, `error` otherwise.
            Implementations report failures in the result instead of raising.
        """
        raise NotImplementedError("Subclasses must implement render_still()")

    async def render_still_async(self, spec: VideoSpec, scene_index: int) -> RenderResult:
        """
        Default implementation wraps the synchronous render in a worker thread.
        """
        return await asyncio.to_thread(self.render_still, spec, scene_index)
