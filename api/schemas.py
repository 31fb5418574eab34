from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from promo_engine.core.models import GenerationRequest, ProvidedImage
from promo_engine.progress.tracker import JobStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ImageInput(CamelModel):
    id: str
    type: Optional[str] = None
    description: Optional[str] = None
    url: Optional[str] = None
    intent: Optional[str] = None

    def to_provided_image(self) -> ProvidedImage:
        extra = {"intent": self.intent} if self.intent else {}
        return ProvidedImage(
            id=self.id,
            type=self.type or "unknown",
            description=self.description,
            url=self.url,
            extra=extra,
        )


class GenerateRequest(CamelModel):
    # Optional here so a missing prompt is answered with the same 400 as an empty one.
    prompt: Optional[str] = None
    product_type: Optional[str] = None
    target_audience: Optional[str] = None
    tone: Optional[str] = None
    language: Optional[str] = None
    images: List[ImageInput] = Field(default_factory=list)
    job_id: Optional[str] = None
    enable_refinement: Optional[bool] = None
    max_iterations: Optional[int] = Field(default=None, ge=0)
    scenes_to_review: Optional[List[str]] = None
    fps: Optional[int] = Field(default=None, gt=0)
    width: Optional[int] = Field(default=None, gt=0)
    height: Optional[int] = Field(default=None, gt=0)

    def to_request(self) -> GenerationRequest:
        return GenerationRequest(
            prompt=self.prompt or "",
            product_type=self.product_type,
            target_audience=self.target_audience,
            tone=self.tone,
            language=self.language,
            images=[img.to_provided_image() for img in self.images],
            enable_refinement=self.enable_refinement,
            max_iterations=self.max_iterations,
            scenes_to_review=self.scenes_to_review,
            fps=self.fps,
            width=self.width,
            height=self.height,
        )


class JobSubmissionResponse(CamelModel):
    job_id: str
    status: JobStatus


class JobResponse(CamelModel):
    job_id: str
    stage: str
    progress: float
    status: JobStatus
    message: str = ""
    history: List[Dict[str, Any]] = Field(default_factory=list)
    result: Optional[Any] = None
    error: Optional[str] = None


class VisionReviewRequest(CamelModel):
    image: str
    scene_type: str = "HOOK"
    scene_index: Optional[int] = None


class VisionReviewResponse(CamelModel):
    success: bool
    review: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


class ShotPlanResponse(CamelModel):
    fixed: Dict[str, Any]
    warnings: List[str]


class SpecValidationRequest(CamelModel):
    spec: Dict[str, Any]
    provided_image_ids: Optional[List[str]] = None


class ValidationResponse(CamelModel):
    valid: bool
    errors: List[str]
    warnings: List[str]
