import os
from typing import List, Optional
from pydantic import BaseModel, Field


class Settings(BaseModel):
    # Models
    openai_api_key: Optional[str] = Field(default=None)
    openai_base_url: Optional[str] = Field(default=None, description="OpenAI-compatible endpoint (e.g. vLLM)")
    text_model: str = Field(default="gpt-4o", description="Model used by the pipeline stages and corrections")
    vision_model: str = Field(default="gpt-4o", description="Model used for scene critiques")

    # Max tokens per call
    strategist_max_tokens: int = 2000
    art_director_max_tokens: int = 2000
    executor_max_tokens: int = 8000
    correction_max_tokens: int = 4000
    vision_max_tokens: int = 1000

    # Video defaults
    default_fps: int = 30
    default_width: int = 1080
    default_height: int = 1920
    default_scene_frames: int = 75

    # Feedback loop
    enable_visual_feedback: bool = Field(default=True, description="Run render/critique/correct on reviewable scenes")
    feedback_max_iterations: int = Field(default=2, description="Render+critique rounds per scene")
    feedback_iteration_cap: int = Field(default=3, description="Hard cap on rounds per scene")
    feedback_scene_types: List[str] = Field(default_factory=lambda: ["HOOK", "SOLUTION"])
    acceptance_score: float = Field(default=8.0, description="Critique score (1-10) that counts as accepted")

    # Rendering
    render_api_url: Optional[str] = Field(default=None, description="External still-frame render service")
    preview_scale: float = Field(default=0.25, description="Scale factor for local preview stills")

    # Progress streaming
    sse_heartbeat_seconds: float = 15.0
    sse_close_grace_seconds: float = 1.0
    job_ttl_seconds: float = Field(default=1800.0, description="Age after which finished jobs may be reaped")

    # Errors
    raw_output_limit: int = Field(default=2000, description="Max chars of raw model output echoed to callers")

    # Paths
    output_root: str = Field(default="promo_runs", description="Root directory for spec manifests")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")

    # API
    api_host: str = Field(default="0.0.0.0", description="API Host")
    api_port: int = Field(default=8000, description="API Port")
    api_key: str = Field(default="dev-secret-key", description="API Key for write endpoints")

    @staticmethod
    def _coerce(raw: str, type_):
        if type_ is bool:
            lowered = raw.strip().lower()
            if lowered in ("1", "true", "yes", "on"):
                return True
            if lowered in ("0", "false", "no", "off"):
                return False
            raise ValueError(f"Not a boolean: {raw}")
        if type_ is list:
            return [item.strip() for item in raw.split(",") if item.strip()]
        return type_(raw)

    @staticmethod
    def load() -> "Settings":
        """
        Load settings from environment variables or defaults.
        Values that fail to parse keep their default.
        """
        overrides = {}

        env_map = {
            "OPENAI_API_KEY": ("openai_api_key", str),
            "OPENAI_BASE_URL": ("openai_base_url", str),
            "PROMO_TEXT_MODEL": ("text_model", str),
            "PROMO_VISION_MODEL": ("vision_model", str),
            "PROMO_EXECUTOR_MAX_TOKENS": ("executor_max_tokens", int),
            "PROMO_DEFAULT_FPS": ("default_fps", int),
            "PROMO_DEFAULT_WIDTH": ("default_width", int),
            "PROMO_DEFAULT_HEIGHT": ("default_height", int),
            "PROMO_ENABLE_VISUAL_FEEDBACK": ("enable_visual_feedback", bool),
            "PROMO_FEEDBACK_MAX_ITERATIONS": ("feedback_max_iterations", int),
            "PROMO_FEEDBACK_SCENE_TYPES": ("feedback_scene_types", list),
            "PROMO_ACCEPTANCE_SCORE": ("acceptance_score", float),
            "PROMO_RENDER_API_URL": ("render_api_url", str),
            "PROMO_PREVIEW_SCALE": ("preview_scale", float),
            "PROMO_SSE_HEARTBEAT_SECONDS": ("sse_heartbeat_seconds", float),
            "PROMO_SSE_CLOSE_GRACE_SECONDS": ("sse_close_grace_seconds", float),
            "PROMO_JOB_TTL_SECONDS": ("job_ttl_seconds", float),
            "PROMO_RAW_OUTPUT_LIMIT": ("raw_output_limit", int),
            "PROMO_OUTPUT_ROOT": ("output_root", str),
            "PROMO_LOG_LEVEL": ("log_level", str),
            "PROMO_API_HOST": ("api_host", str),
            "PROMO_API_PORT": ("api_port", int),
            "PROMO_API_KEY": ("api_key", str),
        }

        for env_var, (field, type_) in env_map.items():
            val = os.getenv(env_var)
            if val is not None:
                try:
                    overrides[field] = Settings._coerce(val, type_)
                except ValueError:
                    pass

        return Settings(**overrides)


# Global settings instance
settings = Settings.load()
