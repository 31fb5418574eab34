import asyncio
import json
import time
from typing import Any, AsyncIterator, Dict, Optional

from promo_engine.config.settings import settings
from promo_engine.progress.tracker import JobRegistry, JobStatus, Stage

TERMINAL_STATUSES = (JobStatus.COMPLETE.value, JobStatus.ERROR.value)


def _frame(event: Dict[str, Any]) -> bytes:
    return f"data: {json.dumps(event, ensure_ascii=False)}\n\n".encode("utf-8")


def _waiting_event(job_id: str) -> Dict[str, Any]:
    return {
        "jobId": job_id,
        "stage": Stage.IDLE.value,
        "progress": 0,
        "message": "Waiting for job to start...",
        "status": JobStatus.PENDING.value,
        "timestamp": int(time.time() * 1000),
    }


async def progress_events(
    registry: JobRegistry,
    job_id: str,
    heartbeat: Optional[float] = None,
    grace: Optional[float] = None,
) -> AsyncIterator[bytes]:
    """
    Server-Sent Events for one job.

    Sends the current snapshot first (or a waiting message if the job is not
    registered yet), then one frame per transition. Idle connections get a
    comment frame every `heartbeat` seconds. The stream ends `grace` seconds
    after a terminal event; the subscription is always released.
    """
    heartbeat = settings.sse_heartbeat_seconds if heartbeat is None else heartbeat
    grace = settings.sse_close_grace_seconds if grace is None else grace

    # Subscribe before reading the snapshot so no transition falls in between.
    queue = registry.bus.subscribe(job_id)
    try:
        job = registry.get(job_id)
        if job is None:
            yield _frame(_waiting_event(job_id))
        else:
            # Decide on the snapshot itself; the job may finish while the frame is in flight.
            snapshot = job.to_event()
            yield _frame(snapshot)
            if snapshot["status"] in TERMINAL_STATUSES:
                await asyncio.sleep(grace)
                return

        while True:
            try:
                event = await asyncio.wait_for(queue.get(), timeout=heartbeat)
            except asyncio.TimeoutError:
                yield b": heartbeat\n\n"
                continue

            yield _frame(event)
            if event.get("status") in TERMINAL_STATUSES:
                await asyncio.sleep(grace)
                return
    finally:
        registry.bus.unsubscribe(job_id, queue)
