import asyncio
import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from promo_engine.config.settings import settings

logger = logging.getLogger("PromoEngine")


class Stage(str, Enum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    ANALYZING = "analyzing"
    GENERATING_PLAN = "generating_plan"
    PLAN_COMPLETE = "plan_complete"
    RENDERING_FRAMES = "rendering_frames"
    VISION_ANALYSIS = "vision_analysis"
    APPLYING_FIXES = "applying_fixes"
    FINALIZING = "finalizing"
    COMPLETE = "complete"
    ERROR = "error"


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETE = "complete"
    ERROR = "error"


# Fixed checkpoints; stages with several rounds are keyed by iteration.
STAGE_PROGRESS: Dict[Stage, Any] = {
    Stage.IDLE: 0,
    Stage.INITIALIZING: 0,
    Stage.ANALYZING: 5,
    Stage.GENERATING_PLAN: 15,
    Stage.PLAN_COMPLETE: 20,
    Stage.RENDERING_FRAMES: (25, 40),
    Stage.VISION_ANALYSIS: {1: 40, 2: 60, 3: 75},
    Stage.APPLYING_FIXES: {1: 50, 2: 70, 3: 80},
    Stage.FINALIZING: 90,
    Stage.COMPLETE: 100,
}


def stage_progress(stage: Stage, iteration: int = 1, current: int = 0, total: int = 1) -> Optional[float]:
    """
    Checkpoint percentage for a stage.
    Returns None for ERROR, which keeps whatever progress the job had.
    """
    checkpoint = STAGE_PROGRESS.get(stage)
    if checkpoint is None:
        return None
    if isinstance(checkpoint, tuple):
        low, high = checkpoint
        fraction = min(max(current, 0), total) / total if total > 0 else 0
        return round(low + (high - low) * fraction, 1)
    if isinstance(checkpoint, dict):
        return checkpoint[min(max(iteration, 1), max(checkpoint))]
    return checkpoint


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class Job:
    job_id: str
    stage: Stage = Stage.IDLE
    progress: float = 0
    status: JobStatus = JobStatus.PENDING
    message: str = ""
    history: List[Dict[str, Any]] = field(default_factory=list)
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    created_at: float = field(default_factory=time.time)
    finished_at: Optional[float] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (JobStatus.COMPLETE, JobStatus.ERROR)

    def to_event(self) -> Dict[str, Any]:
        return {
            "jobId": self.job_id,
            "stage": self.stage.value,
            "progress": self.progress,
            "message": self.message,
            "status": self.status.value,
            "timestamp": _now_ms(),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "jobId": self.job_id,
            "stage": self.stage.value,
            "progress": self.progress,
            "status": self.status.value,
            "message": self.message,
            "history": list(self.history),
            "result": self.result,
            "error": self.error,
        }


class EventBus:
    """
    Per-job publish/subscribe channel.

    Each subscriber gets its own asyncio.Queue bound to the loop it subscribed
    from; publishing from another thread or loop is handed over thread-safely.
    """

    def __init__(self):
        self._subscribers: Dict[str, List[Tuple[asyncio.Queue, asyncio.AbstractEventLoop]]] = {}
        self._lock = threading.Lock()

    def subscribe(self, job_id: str) -> asyncio.Queue:
        """Must be called from a running event loop."""
        queue: asyncio.Queue = asyncio.Queue()
        loop = asyncio.get_running_loop()
        with self._lock:
            self._subscribers.setdefault(job_id, []).append((queue, loop))
        return queue

    def unsubscribe(self, job_id: str, queue: asyncio.Queue) -> None:
        with self._lock:
            entries = [entry for entry in self._subscribers.get(job_id, []) if entry[0] is not queue]
            if entries:
                self._subscribers[job_id] = entries
            else:
                self._subscribers.pop(job_id, None)

    def subscriber_count(self, job_id: str) -> int:
        with self._lock:
            return len(self._subscribers.get(job_id, []))

    def publish(self, job_id: str, event: Dict[str, Any]) -> None:
        with self._lock:
            targets = list(self._subscribers.get(job_id, []))

        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        for queue, loop in targets:
            if loop is running:
                queue.put_nowait(event)
            elif not loop.is_closed():
                loop.call_soon_threadsafe(queue.put_nowait, event)


class JobRegistry:
    """
    In-process store of job state machines.

    Only the registry mutates jobs. Every transition updates stage/progress,
    appends to history and publishes an event on the bus. Records stay until
    `reap_finished` evicts them; nothing expires on a timer.
    """

    def __init__(self, bus: Optional[EventBus] = None):
        self.bus = bus if bus is not None else EventBus()
        self._jobs: Dict[str, Job] = {}
        self._lock = threading.Lock()

    @staticmethod
    def new_job_id() -> str:
        return f"job_{_now_ms()}_{uuid.uuid4().hex[:9]}"

    def __contains__(self, job_id: str) -> bool:
        return job_id in self._jobs

    def __len__(self) -> int:
        return len(self._jobs)

    def create_job(self, job_id: Optional[str] = None) -> Job:
        job_id = job_id or self.new_job_id()
        job = Job(job_id=job_id)
        with self._lock:
            if job_id in self._jobs:
                logger.warning(f"⚠️ Job {job_id} already registered, starting it over")
            self._jobs[job_id] = job
        logger.info(f"🆕 Job created: {job_id}")
        return job

    def get(self, job_id: str) -> Optional[Job]:
        return self._jobs.get(job_id)

    def list_active(self) -> List[Job]:
        return [job for job in list(self._jobs.values()) if not job.is_terminal]

    def _transition(self, job: Job, stage: Stage, message: str, progress: Optional[float], status: JobStatus) -> Job:
        with self._lock:
            if progress is not None:
                job.progress = max(job.progress, progress)
            job.stage = stage
            job.status = status
            job.message = message
            job.history.append({
                "timestamp": _now_ms(),
                "message": message,
                "stage": stage.value,
                "progress": job.progress,
            })
            if job.is_terminal:
                job.finished_at = time.time()
            event = job.to_event()

        self.bus.publish(job.job_id, event)
        return job

    def update(self, job_id: str, stage: Stage, message: str, progress: Optional[float] = None) -> Optional[Job]:
        """
        Move a job to `stage`. Progress defaults to the stage checkpoint and
        never decreases. Updates to unknown or finished jobs are ignored.
        """
        job = self._jobs.get(job_id)
        if job is None:
            logger.debug(f"Progress update for unknown job {job_id} ignored")
            return None
        if job.is_terminal:
            logger.warning(f"⚠️ Job {job_id} already {job.status.value}, ignoring '{stage.value}' update")
            return job

        if progress is None:
            progress = stage_progress(stage)
        return self._transition(job, stage, message, progress, JobStatus.RUNNING)

    def complete_job(self, job_id: str, result: Optional[Dict[str, Any]] = None,
                     message: str = "Generation complete") -> Optional[Job]:
        job = self._jobs.get(job_id)
        if job is None or job.is_terminal:
            return job
        job.result = result
        self._transition(job, Stage.COMPLETE, message, 100, JobStatus.COMPLETE)
        logger.info(f"✅ Job {job_id} completed")
        return job

    def fail_job(self, job_id: str, error: str) -> Optional[Job]:
        job = self._jobs.get(job_id)
        if job is None or job.is_terminal:
            return job
        job.error = error
        self._transition(job, Stage.ERROR, error, None, JobStatus.ERROR)
        logger.error(f"❌ Job {job_id} failed: {error}")
        return job

    def reap_finished(self, max_age: Optional[float] = None, now: Optional[float] = None) -> List[str]:
        """
        Evict terminal jobs older than `max_age` seconds that nobody is
        listening to. Returns the evicted ids.
        """
        max_age = settings.job_ttl_seconds if max_age is None else max_age
        now = time.time() if now is None else now

        with self._lock:
            expired = [
                job_id for job_id, job in self._jobs.items()
                if job.is_terminal
                and job.finished_at is not None
                and now - job.finished_at >= max_age
                and self.bus.subscriber_count(job_id) == 0
            ]
            for job_id in expired:
                del self._jobs[job_id]

        if expired:
            logger.info(f"🧹 Reaped {len(expired)} finished jobs")
        return expired


def report(tracker: Optional[JobRegistry], job_id: Optional[str], stage: Stage, message: str,
           progress: Optional[float] = None) -> None:
    """Mirror a transition into the registry when the call is tracked."""
    if tracker is None or job_id is None:
        return
    tracker.update(job_id, stage, message, progress)
