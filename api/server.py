from typing import Any, Dict

from fastapi import BackgroundTasks, Body, Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from api.schemas import (
    GenerateRequest,
    JobResponse,
    JobStatus,
    JobSubmissionResponse,
    ShotPlanResponse,
    SpecValidationRequest,
    ValidationResponse,
    VisionReviewRequest,
    VisionReviewResponse,
)
from api.security import verify_api_key
from api.streaming import progress_events
from promo_engine.clients.vision import is_supported_image
from promo_engine.config.settings import settings
from promo_engine.core.errors import DanglingImageReferenceError, PipelineStageError
from promo_engine.engine.validator import validate, validate_and_fix_output
from promo_engine.pipeline.manager import PromoPipeline
from promo_engine.progress.tracker import JobRegistry
from promo_engine.utils.logger import setup_logging

logger = setup_logging(settings.log_level)

# Single registry and engine per process
registry = JobRegistry()
engine = PromoPipeline(tracker=registry)


def get_registry() -> JobRegistry:
    return registry


def get_engine() -> PromoPipeline:
    return engine


app = FastAPI(
    title="Promo Engine API",
    description="Marketing video spec generation with visual self-correction",
    version="1.0.0",
)


@app.exception_handler(PipelineStageError)
async def stage_error_handler(request: Request, exc: PipelineStageError):
    logger.error(f"❌ Stage '{exc.stage}' failed: {exc.message}")
    return JSONResponse(status_code=502, content=exc.to_dict())


@app.exception_handler(DanglingImageReferenceError)
async def dangling_image_handler(request: Request, exc: DanglingImageReferenceError):
    return JSONResponse(status_code=422, content=exc.to_dict())


# Global Error Handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Global error: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal Server Error", "detail": str(exc)},
    )


# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _require_prompt(request: GenerateRequest) -> None:
    if not request.prompt or not request.prompt.strip():
        raise HTTPException(status_code=400, detail="prompt is required")


async def _run_generation_task(pipeline: PromoPipeline, job_id: str, request: GenerateRequest):
    """
    Background task wrapper; the pipeline records success or failure on the job.
    """
    logger.info(f"▶️ Starting background job: {job_id}")
    try:
        await pipeline.run_async(request.to_request(), job_id=job_id)
    except Exception as e:
        logger.error(f"❌ Job {job_id} failed: {e}")


@app.post("/generate", dependencies=[Depends(verify_api_key)])
async def generate(request: GenerateRequest, pipeline: PromoPipeline = Depends(get_engine)):
    """
    Run a full generation and return the specification with its refinement summary.
    """
    _require_prompt(request)
    result = await pipeline.run_async(request.to_request(), job_id=request.job_id)
    return result.to_dict()


@app.post("/jobs", response_model=JobSubmissionResponse, dependencies=[Depends(verify_api_key)])
async def submit_job(
    request: GenerateRequest,
    background_tasks: BackgroundTasks,
    pipeline: PromoPipeline = Depends(get_engine),
    jobs: JobRegistry = Depends(get_registry),
):
    """
    Submit a generation job. Returns immediately; follow it on /progress/{job_id}.
    """
    _require_prompt(request)
    jobs.reap_finished()
    job = jobs.create_job(request.job_id)
    background_tasks.add_task(_run_generation_task, pipeline, job.job_id, request)
    return JobSubmissionResponse(job_id=job.job_id, status=JobStatus.PENDING)


@app.get("/jobs/{job_id}", response_model=JobResponse)
async def get_job(job_id: str, jobs: JobRegistry = Depends(get_registry)):
    """
    Poll the status of a specific job. Public endpoint (read-only).
    """
    job = jobs.get(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return JobResponse.model_validate(job.to_dict())


@app.get("/progress/{job_id}")
async def stream_progress(job_id: str, jobs: JobRegistry = Depends(get_registry)):
    """
    Stream progress events for `job_id` as Server-Sent Events.
    """
    return StreamingResponse(
        progress_events(jobs, job_id),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@app.post("/vision-review", response_model=VisionReviewResponse, dependencies=[Depends(verify_api_key)])
async def vision_review(request: VisionReviewRequest, pipeline: PromoPipeline = Depends(get_engine)):
    if pipeline.critic is None:
        raise HTTPException(status_code=503, detail="Vision review is not configured")
    if not is_supported_image(request.image):
        raise HTTPException(status_code=400, detail="Image must be a data:image/ URI or an http(s) URL")

    critique = await pipeline.critic.review_async(request.image, request.scene_type)
    if critique is None:
        return VisionReviewResponse(success=False, error="No usable review")
    return VisionReviewResponse(success=True, review=critique.to_dict())


@app.post("/shots/validate", response_model=ShotPlanResponse)
async def validate_shots(plan: Dict[str, Any] = Body(...)):
    result = validate_and_fix_output(plan)
    return ShotPlanResponse(fixed=result.fixed, warnings=result.warnings)


@app.post("/specs/validate", response_model=ValidationResponse)
async def validate_spec(request: SpecValidationRequest):
    result = validate(request.spec, request.provided_image_ids)
    return ValidationResponse(**result.to_dict())


@app.get("/api/health")
def health_check(jobs: JobRegistry = Depends(get_registry)):
    return {"status": "Promo Engine API is running", "jobs_active": len(jobs.list_active())}
