from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Callable, ClassVar, Dict, List, Optional, Union


class SceneType(str, Enum):
    HOOK = "HOOK"
    PROBLEM = "PROBLEM"
    SOLUTION = "SOLUTION"
    PROOF = "PROOF"
    CTA = "CTA"


class Verdict(str, Enum):
    PREMIUM = "premium"
    AMATEUR = "amateur"


class ReviewOutcome(str, Enum):
    """Final state of one reviewed scene after the feedback loop."""
    PREMIUM = "premium"
    AMATEUR = "amateur"
    FALLBACK = "fallback"
    SKIPPED = "skipped"


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _dump(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, list):
        return [_dump(v) for v in value]
    if isinstance(value, dict):
        return {k: _dump(v) for k, v in value.items()}
    return value


class WireModel:
    """
    Mixin for dataclasses exchanged with models and renderers as camelCase JSON.

    Field `foo_bar` maps to key `fooBar`. Keys that match no field are kept in
    `extra` so a round trip never drops renderer-specific settings.
    `NESTED` maps a field name to the parser applied to its raw value.
    """

    NESTED: ClassVar[Dict[str, Callable[[Any], Any]]] = {}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]):
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise TypeError(f"{cls.__name__} expects an object, got {type(data).__name__}")

        known: Dict[str, Any] = {}
        wire_keys = set()
        for f in fields(cls):
            if f.name == "extra":
                continue
            key = _camel(f.name)
            wire_keys.add(key)
            value = data.get(key)
            if value is None:
                continue
            parser = cls.NESTED.get(f.name)
            known[f.name] = parser(value) if parser else value

        extra = {k: v for k, v in data.items() if k not in wire_keys}
        return cls(**known, extra=extra)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = dict(getattr(self, "extra", {}) or {})
        for f in fields(self):
            if f.name == "extra":
                continue
            value = getattr(self, f.name)
            if value is None:
                continue
            out[_camel(f.name)] = _dump(value)
        return out


def _list_of(parser):
    def parse(items):
        if not isinstance(items, list):
            raise TypeError(f"Expected a list, got {type(items).__name__}")
        return [parser(item) for item in items]
    return parse


# =============================================================================
# PIPELINE INPUT
# =============================================================================

@dataclass(frozen=True)
class ProvidedImage(WireModel):
    id: str
    type: str = "unknown"
    description: Optional[str] = None
    url: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PipelineInput:
    user_prompt: str
    product_type: Optional[str] = None
    target_audience: Optional[str] = None
    tone: Optional[str] = None
    language: Optional[str] = None
    provided_images: List[ProvidedImage] = field(default_factory=list)
    fps: int = 30
    width: int = 1080
    height: int = 1920

    @property
    def image_ids(self) -> List[str]:
        return [img.id for img in self.provided_images]


# =============================================================================
# STAGE ARTIFACTS
# =============================================================================

@dataclass(frozen=True)
class KeyMessage(WireModel):
    id: str
    message: str
    intent: Optional[str] = None
    emotional_target: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class MarketingStrategy(WireModel):
    core_promise: str
    hook_intent: str
    emotional_arc: List[str]
    key_messages: List[KeyMessage]
    differentiator: Optional[str] = None
    priority: Optional[str] = None
    audience_insight: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    NESTED: ClassVar[Dict[str, Callable[[Any], Any]]] = {
        "key_messages": _list_of(KeyMessage.from_dict),
    }


@dataclass(frozen=True)
class Palette(WireModel):
    primary: Optional[str] = None
    secondary: Optional[str] = None
    neutral: Optional[str] = None
    accent: Optional[str] = None
    text: Optional[str] = None
    text_muted: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ArtDirection(WireModel):
    design_pack: str
    palette: Palette
    typography: Dict[str, Any]
    motion: Dict[str, Any]
    composition_rules: Dict[str, Any]
    mood: Optional[str] = None
    visual_density: Optional[str] = None
    texture_preference: Optional[str] = None
    texture_opacity: Optional[float] = None
    image_usage_rules: Optional[Dict[str, Any]] = None
    forbidden_elements: List[str] = field(default_factory=list)
    required_elements: List[str] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)

    NESTED: ClassVar[Dict[str, Callable[[Any], Any]]] = {
        "palette": Palette.from_dict,
    }


# =============================================================================
# SCENE
# =============================================================================

@dataclass(frozen=True)
class Background(WireModel):
    type: Optional[str] = None
    color: Optional[str] = None
    gradient_colors: Optional[List[str]] = None
    gradient_angle: Optional[float] = None
    texture: Optional[str] = None
    texture_opacity: Optional[float] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Typography(WireModel):
    headline_font: Optional[str] = None
    headline_weight: Optional[int] = None
    headline_size: Optional[str] = None
    headline_color: Optional[str] = None
    headline_transform: Optional[str] = None
    subtext_font: Optional[str] = None
    subtext_weight: Optional[int] = None
    subtext_size: Optional[str] = None
    subtext_color: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Motion(WireModel):
    entry: Optional[str] = None
    entry_duration: Optional[int] = None
    exit: Optional[str] = None
    exit_duration: Optional[int] = None
    hold_animation: Optional[str] = None
    rhythm: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Accent(WireModel):
    type: str = "none"
    accent_color: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ImageAnimation(WireModel):
    start_x: Optional[float] = None
    end_x: Optional[float] = None
    start_y: Optional[float] = None
    end_y: Optional[float] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def needs_interpolation(self) -> bool:
        moves_x = self.start_x is not None and self.end_x is not None and self.start_x != self.end_x
        moves_y = self.start_y is not None and self.end_y is not None and self.start_y != self.end_y
        return moves_x or moves_y


@dataclass(frozen=True)
class ImageRef(WireModel):
    image_id: Optional[str] = None
    role: Optional[str] = None
    treatment: Optional[Dict[str, Any]] = None
    effect: Optional[Dict[str, Any]] = None
    position: Optional[Dict[str, Any]] = None
    animation: Optional[ImageAnimation] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    NESTED: ClassVar[Dict[str, Callable[[Any], Any]]] = {
        "animation": ImageAnimation.from_dict,
    }


@dataclass(frozen=True)
class Beat(WireModel):
    """Timed overlay; frames are relative to the parent scene start."""
    beat_id: Optional[str] = None
    type: Optional[str] = None
    start_frame: Optional[int] = None
    duration_frames: Optional[int] = None
    content: Optional[Dict[str, Any]] = None
    animation: Optional[Dict[str, Any]] = None
    allow_overflow: bool = False
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def end_frame(self) -> Optional[int]:
        if self.start_frame is None or self.duration_frames is None:
            return None
        return self.start_frame + self.duration_frames


# Scene elements are a closed set of kinds, each with its own fields.

@dataclass(frozen=True)
class TextElement(WireModel):
    KIND: ClassVar[str] = "text"
    content: Optional[str] = None
    style: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class BadgeElement(WireModel):
    KIND: ClassVar[str] = "badge"
    label: Optional[str] = None
    variant: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ImageElement(WireModel):
    KIND: ClassVar[str] = "image"
    image_id: Optional[str] = None
    position: Optional[Dict[str, Any]] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ShapeElement(WireModel):
    KIND: ClassVar[str] = "shape"
    shape: Optional[str] = None
    color: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class UnknownElement:
    """An element whose `type` tag is outside the supported kinds."""
    type: Optional[str]
    data: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.data)


SceneElement = Union[TextElement, BadgeElement, ImageElement, ShapeElement, UnknownElement]

ELEMENT_KINDS = {cls.KIND: cls for cls in (TextElement, BadgeElement, ImageElement, ShapeElement)}


def element_from_dict(data: Dict[str, Any]) -> SceneElement:
    if not isinstance(data, dict):
        return UnknownElement(type=None, data={"value": data})
    kind = data.get("type")
    element_cls = ELEMENT_KINDS.get(kind)
    if element_cls is None:
        return UnknownElement(type=kind, data=dict(data))
    payload = {k: v for k, v in data.items() if k != "type"}
    return element_cls.from_dict(payload)


def element_to_dict(element: SceneElement) -> Dict[str, Any]:
    if isinstance(element, UnknownElement):
        return element.to_dict()
    return {"type": element.KIND, **element.to_dict()}


@dataclass(frozen=True)
class Scene(WireModel):
    scene_type: Optional[str] = None
    headline: Optional[str] = None
    subtext: Optional[str] = None
    layout: Optional[str] = None
    background: Optional[Background] = None
    typography: Optional[Typography] = None
    motion: Optional[Motion] = None
    duration_frames: Optional[int] = None
    beats: List[Beat] = field(default_factory=list)
    images: List[ImageRef] = field(default_factory=list)
    elements: List[SceneElement] = field(default_factory=list)
    accent: Optional[Accent] = None
    transition: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    NESTED: ClassVar[Dict[str, Callable[[Any], Any]]] = {
        "background": Background.from_dict,
        "typography": Typography.from_dict,
        "motion": Motion.from_dict,
        "beats": _list_of(Beat.from_dict),
        "images": _list_of(ImageRef.from_dict),
        "elements": _list_of(element_from_dict),
        "accent": Accent.from_dict,
    }

    def to_dict(self) -> Dict[str, Any]:
        out = super().to_dict()
        if self.elements:
            out["elements"] = [element_to_dict(e) for e in self.elements]
        else:
            out.pop("elements", None)
        for key in ("beats", "images"):
            if not out.get(key):
                out.pop(key, None)
        return out

    def ordered_beats(self) -> List[Beat]:
        """Beats by start frame; overlapping beats keep their declared order."""
        return sorted(self.beats, key=lambda b: b.start_frame if b.start_frame is not None else 0)

    def referenced_image_ids(self) -> List[str]:
        ids = [img.image_id for img in self.images if img.image_id]
        ids.extend(e.image_id for e in self.elements if isinstance(e, ImageElement) and e.image_id)
        for beat in self.beats:
            if isinstance(beat.content, dict) and beat.content.get("imageId"):
                ids.append(beat.content["imageId"])
        return ids


@dataclass(frozen=True)
class VideoSpec(WireModel):
    scenes: List[Scene]
    fps: int = 30
    width: int = 1080
    height: int = 1920
    blueprint: Optional[Dict[str, Any]] = None
    strategy: Optional[Dict[str, Any]] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    NESTED: ClassVar[Dict[str, Callable[[Any], Any]]] = {
        "scenes": _list_of(Scene.from_dict),
    }

    @classmethod
    def from_dict(cls, data):
        if isinstance(data, dict) and "scenes" not in data:
            data = {**data, "scenes": []}
        return super().from_dict(data)

    def with_scene(self, index: int, scene: Scene) -> "VideoSpec":
        scenes = list(self.scenes)
        scenes[index] = scene
        return replace(self, scenes=scenes)

    def with_scenes(self, scenes: List[Scene]) -> "VideoSpec":
        return replace(self, scenes=list(scenes))


# =============================================================================
# REVIEW / CORRECTION
# =============================================================================

@dataclass(frozen=True)
class Critique:
    verdict: Verdict
    issues: List[str] = field(default_factory=list)
    required_fixes: List[str] = field(default_factory=list)
    confidence: float = 0.5
    score: Optional[float] = None  # 1-10 when the critic reports one
    parsed: bool = True

    def is_accepted(self, score_threshold: float = 8.0) -> bool:
        if self.verdict == Verdict.PREMIUM:
            return True
        return self.score is not None and self.score >= score_threshold

    def to_dict(self) -> Dict[str, Any]:
        return {
            "verdict": self.verdict.value,
            "issues": list(self.issues),
            "requiredFixes": list(self.required_fixes),
            "confidence": self.confidence,
            "score": self.score,
        }


@dataclass(frozen=True)
class CorrectionResult:
    success: bool
    corrected_scene: Optional[Scene] = None
    changes_applied: List[str] = field(default_factory=list)
    error: Optional[str] = None


@dataclass(frozen=True)
class RenderResult:
    success: bool
    scene_index: int
    scene_type: Optional[str] = None
    frame_number: Optional[int] = None
    image_base64: Optional[str] = None
    image_path: Optional[str] = None
    error: Optional[str] = None

    @property
    def image_data_uri(self) -> Optional[str]:
        if not self.image_base64:
            return None
        if self.image_base64.startswith("data:"):
            return self.image_base64
        return f"data:image/jpeg;base64,{self.image_base64}"


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"valid": self.valid, "errors": list(self.errors), "warnings": list(self.warnings)}


@dataclass(frozen=True)
class SceneReviewResult:
    scene_index: int
    scene_type: Optional[str]
    original_verdict: ReviewOutcome
    final_verdict: ReviewOutcome
    iterations: int
    was_modified: bool
    changes_applied: List[str] = field(default_factory=list)
    issue_counts: List[int] = field(default_factory=list)
    final_score: Optional[float] = None
    preview_image_base64: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sceneIndex": self.scene_index,
            "sceneType": self.scene_type,
            "originalVerdict": self.original_verdict.value,
            "finalVerdict": self.final_verdict.value,
            "iterations": self.iterations,
            "wasModified": self.was_modified,
            "changesApplied": list(self.changes_applied),
            "issueCounts": list(self.issue_counts),
            "finalScore": self.final_score,
        }


@dataclass(frozen=True)
class FeedbackLoopResult:
    success: bool
    improved_scenes: List[Scene]
    review_results: List[SceneReviewResult] = field(default_factory=list)
    total_iterations: int = 0
    scenes_improved: int = 0
    scenes_fallback: int = 0
    error: Optional[str] = None


@dataclass(frozen=True)
class PipelineOutput:
    marketing_strategy: MarketingStrategy
    art_direction: ArtDirection
    video_spec: VideoSpec
    warnings: List[str] = field(default_factory=list)


# =============================================================================
# TOP-LEVEL GENERATION
# =============================================================================

@dataclass(frozen=True)
class GenerationRequest:
    prompt: str
    product_type: Optional[str] = None
    target_audience: Optional[str] = None
    tone: Optional[str] = None
    language: Optional[str] = None
    images: List[ProvidedImage] = field(default_factory=list)
    enable_refinement: Optional[bool] = None
    max_iterations: Optional[int] = None
    scenes_to_review: Optional[List[str]] = None
    fps: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None


@dataclass(frozen=True)
class RefinementSummary:
    """What the visual feedback loop did for one generation."""
    enabled: bool
    iterations: int = 0
    final_score: Optional[float] = None
    issue_counts: List[int] = field(default_factory=list)
    scenes_improved: int = 0
    scenes_fallback: int = 0
    scenes: List[SceneReviewResult] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "iterations": self.iterations,
            "finalScore": self.final_score,
            "issueCounts": list(self.issue_counts),
            "scenesImproved": self.scenes_improved,
            "scenesFallback": self.scenes_fallback,
            "scenes": [s.to_dict() for s in self.scenes],
            "error": self.error,
        }


@dataclass(frozen=True)
class GenerationResult:
    job_id: str
    video_spec: VideoSpec
    marketing_strategy: MarketingStrategy
    art_direction: ArtDirection
    refinement: RefinementSummary
    validation: ValidationResult
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "jobId": self.job_id,
            "spec": self.video_spec.to_dict(),
            "strategy": self.marketing_strategy.to_dict(),
            "artDirection": self.art_direction.to_dict(),
            "refinement": self.refinement.to_dict(),
            "validation": self.validation.to_dict(),
            "warnings": list(self.warnings),
        }
