import base64
import logging
import math
from typing import List, Optional, Tuple

import cv2
import numpy as np
import requests

from promo_engine.config.settings import settings
from promo_engine.core.models import Background, RenderResult, Scene, Typography, VideoSpec
from promo_engine.rendering.base import SceneRenderer, capture_frame
from promo_engine.utils.decorators import smart_retry

logger = logging.getLogger("PromoEngine")

DEFAULT_BGR = (46, 26, 26)  # #1a1a2e
TEXT_BGR = (255, 255, 255)


def hex_to_bgr(value: Optional[str], fallback: Tuple[int, int, int] = DEFAULT_BGR) -> Tuple[int, int, int]:
    if not isinstance(value, str):
        return fallback
    digits = value.strip().lstrip("#")
    if len(digits) == 3:
        digits = "".join(c * 2 for c in digits)
    if len(digits) != 6:
        return fallback
    try:
        r, g, b = (int(digits[i:i + 2], 16) for i in (0, 2, 4))
    except ValueError:
        return fallback
    return (b, g, r)


def to_uint8(canvas: np.ndarray) -> np.ndarray:
    """OpenCV drawing and encoding only accept 8-bit images."""
    return np.clip(canvas, 0, 255).astype(np.uint8)


def encode_jpeg(canvas: np.ndarray, quality: int = 85) -> str:
    ok, buffer = cv2.imencode(".jpg", to_uint8(canvas), [cv2.IMWRITE_JPEG_QUALITY, quality])
    if not ok:
        raise RuntimeError("JPEG encoding failed")
    return base64.b64encode(buffer).decode("utf-8")


class SwatchRenderer(SceneRenderer):
    """
    Local, dependency-light preview of a scene's static look.

    Paints the background (solid, linear or radial gradient), its texture,
    image placeholders and the headline at a reduced resolution. It does not
    animate and knows nothing about fonts beyond weight and size, which is
    enough for a critic to judge depth, contrast and composition.
    """

    SIZE_SCALE = {"small": 0.8, "medium": 1.1, "large": 1.4, "xlarge": 1.8, "massive": 2.3}

    def __init__(self, scale: Optional[float] = None, jpeg_quality: int = 85):
        self.scale = scale or settings.preview_scale
        self.jpeg_quality = jpeg_quality

    def _paint_background(self, background: Background, width: int, height: int) -> np.ndarray:
        colors = background.gradient_colors or []
        first = hex_to_bgr(colors[0] if colors else background.color)
        second = hex_to_bgr(colors[1] if len(colors) > 1 else None, fallback=first)

        if background.type == "solid" or first == second:
            return np.full((height, width, 3), first, dtype=np.uint8)

        ys, xs = np.mgrid[0:height, 0:width].astype(np.float32)
        if background.type == "radial":
            cx, cy = width / 2.0, height / 2.0
            t = np.sqrt((xs - cx) ** 2 + (ys - cy) ** 2) / math.hypot(cx, cy)
        else:
            # CSS convention: 0deg points up, 90deg points right
            angle = math.radians(float(background.gradient_angle if background.gradient_angle is not None else 135))
            projection = xs * math.sin(angle) - ys * math.cos(angle)
            span = max(float(projection.max() - projection.min()), 1e-6)
            t = (projection - projection.min()) / span

        t = np.clip(t, 0.0, 1.0)[..., None]
        return to_uint8((1.0 - t) * np.array(first, dtype=np.float32) + t * np.array(second, dtype=np.float32))

    def _apply_texture(self, canvas: np.ndarray, background: Background, rng: np.random.Generator) -> np.ndarray:
        texture = background.texture or "none"
        opacity = float(background.texture_opacity if background.texture_opacity is not None else 0.05)
        if texture == "none" or opacity <= 0:
            return canvas

        height, width = canvas.shape[:2]
        if texture in ("grain", "noise"):
            sigma = 255.0 * opacity * (1.0 if texture == "grain" else 1.6)
            return to_uint8(canvas.astype(np.float32) + rng.normal(0.0, sigma, (height, width))[..., None])

        overlay = canvas.copy()
        step = max(6, width // 40)
        if texture == "dots":
            for y in range(step // 2, height, step):
                for x in range(step // 2, width, step):
                    cv2.circle(overlay, (x, y), 1, TEXT_BGR, -1)
        elif texture == "lines":
            for y in range(0, height, step):
                cv2.line(overlay, (0, y), (width, y), TEXT_BGR, 1)
        alpha = min(opacity * 4.0, 1.0)
        return cv2.addWeighted(overlay, alpha, canvas, 1.0 - alpha, 0.0)

    def _draw_images(self, canvas: np.ndarray, scene: Scene) -> None:
        height, width = canvas.shape[:2]
        box_w, box_h = int(width * 0.6), int(height * 0.22)
        for image in scene.images:
            position = image.position or {}
            x = {"left": int(width * 0.08), "right": width - box_w - int(width * 0.08)}.get(
                position.get("horizontal"), (width - box_w) // 2
            )
            y = {"top": int(height * 0.1), "center": (height - box_h) // 2}.get(
                position.get("vertical"), height - box_h - int(height * 0.1)
            )
            shadow = (image.treatment or {}).get("shadow", "none")
            if shadow and shadow != "none":
                cv2.rectangle(canvas, (x + 4, y + 6), (x + box_w + 4, y + box_h + 6), (0, 0, 0), -1)
            cv2.rectangle(canvas, (x, y), (x + box_w, y + box_h), (235, 235, 235), -1)
            cv2.rectangle(canvas, (x, y), (x + box_w, y + box_h), (160, 160, 160), 1)

    def _wrap(self, text: str, font_scale: float, thickness: int, max_width: int) -> List[str]:
        lines: List[str] = []
        current = ""
        for word in text.split():
            candidate = f"{current} {word}".strip()
            (w, _), _ = cv2.getTextSize(candidate, cv2.FONT_HERSHEY_DUPLEX, font_scale, thickness)
            if w > max_width and current:
                lines.append(current)
                current = word
            else:
                current = candidate
        if current:
            lines.append(current)
        return lines

    def _draw_headline(self, canvas: np.ndarray, scene: Scene) -> None:
        text = (scene.headline or "").strip()
        if not text:
            return
        typography = scene.typography or Typography()
        if typography.headline_transform == "uppercase":
            text = text.upper()

        height, width = canvas.shape[:2]
        font_scale = self.SIZE_SCALE.get(typography.headline_size, 1.2) * width / 540.0
        weight = int(typography.headline_weight or 400)
        thickness = max(1, round((1 + (weight >= 500) + (weight >= 700)) * width / 270.0))
        color = hex_to_bgr(typography.headline_color, fallback=TEXT_BGR)

        lines = self._wrap(text, font_scale, thickness, int(width * 0.84))
        (_, line_h), _ = cv2.getTextSize("Ag", cv2.FONT_HERSHEY_DUPLEX, font_scale, thickness)
        block_h = int(len(lines) * line_h * 1.5)
        top = {"TEXT_TOP": int(height * 0.18), "TEXT_BOTTOM": int(height * 0.72) - block_h}.get(
            scene.layout, (height - block_h) // 2
        )

        for i, line in enumerate(lines):
            (line_w, _), _ = cv2.getTextSize(line, cv2.FONT_HERSHEY_DUPLEX, font_scale, thickness)
            x = {"TEXT_LEFT": int(width * 0.08), "TEXT_RIGHT": width - line_w - int(width * 0.08)}.get(
                scene.layout, (width - line_w) // 2
            )
            y = top + int((i + 1) * line_h * 1.5)
            cv2.putText(canvas, line, (x, y), cv2.FONT_HERSHEY_DUPLEX, font_scale, color, thickness, cv2.LINE_AA)

    def render_still(self, spec: VideoSpec, scene_index: int) -> RenderResult:
        if not 0 <= scene_index < len(spec.scenes):
            return RenderResult(success=False, scene_index=scene_index, error="Scene index out of range")

        scene = spec.scenes[scene_index]
        frame = capture_frame(spec, scene_index)
        try:
            width = max(32, int(spec.width * self.scale))
            height = max(32, int(spec.height * self.scale))
            background = scene.background or Background(type="solid")
            rng = np.random.default_rng(scene_index)

            canvas = self._paint_background(background, width, height)
            canvas = self._apply_texture(canvas, background, rng)
            self._draw_images(canvas, scene)
            self._draw_headline(canvas, scene)
            image_b64 = encode_jpeg(canvas, self.jpeg_quality)
        except Exception as e:
            logger.error(f"❌ Preview render failed for scene {scene_index}: {e}")
            return RenderResult(
                success=False, scene_index=scene_index, scene_type=scene.scene_type,
                frame_number=frame, error=str(e),
            )

        return RenderResult(
            success=True,
            scene_index=scene_index,
            scene_type=scene.scene_type,
            frame_number=frame,
            image_base64=image_b64,
        )


class HttpRenderer(SceneRenderer):
    """
    Delegates still capture to an external render service.

    POST {url} with {"spec", "sceneIndex", "frame", "still": true}; the service
    answers {"success", "imageData" | "imageBase64", "imagePath", "error"}.
    """

    def __init__(self, url: Optional[str] = None, timeout: float = 120.0, session: Optional[requests.Session] = None):
        self.url = url or settings.render_api_url
        if not self.url:
            raise ValueError("HttpRenderer needs a render service URL")
        self.timeout = timeout
        self.session = session or requests.Session()

    @smart_retry(retries=3, delay=2, backoff=2)
    def _post(self, payload: dict) -> dict:
        try:
            resp = self.session.post(self.url, json=payload, timeout=self.timeout)
        except requests.Timeout as e:
            raise TimeoutError(str(e)) from e
        except requests.ConnectionError as e:
            raise ConnectionError(str(e)) from e

        if resp.status_code >= 500:
            raise ConnectionError(f"Render service error {resp.status_code}")
        if resp.status_code != 200:
            raise RuntimeError(f"Render service rejected request ({resp.status_code}): {resp.text[:200]}")
        return resp.json()

    def render_still(self, spec: VideoSpec, scene_index: int) -> RenderResult:
        scene_type = spec.scenes[scene_index].scene_type if 0 <= scene_index < len(spec.scenes) else None
        frame = capture_frame(spec, scene_index) if scene_type is not None else None
        payload = {"spec": spec.to_dict(), "sceneIndex": scene_index, "frame": frame, "still": True}

        try:
            data = self._post(payload)
        except Exception as e:
            logger.error(f"❌ Remote render failed for scene {scene_index}: {e}")
            return RenderResult(success=False, scene_index=scene_index, scene_type=scene_type,
                                frame_number=frame, error=str(e))

        image = data.get("imageData") or data.get("imageBase64")
        if not data.get("success") or not image:
            return RenderResult(
                success=False, scene_index=scene_index, scene_type=scene_type, frame_number=frame,
                error=data.get("error") or "Render service returned no image",
            )
        return RenderResult(
            success=True,
            scene_index=scene_index,
            scene_type=scene_type,
            frame_number=frame,
            image_base64=image,
            image_path=data.get("imagePath"),
        )
