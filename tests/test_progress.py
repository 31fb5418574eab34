import asyncio
import re

from promo_engine.progress.tracker import JobRegistry, JobStatus, Stage, stage_progress


def test_checkpoints():
    assert stage_progress(Stage.ANALYZING) == 5
    assert stage_progress(Stage.PLAN_COMPLETE) == 20
    assert stage_progress(Stage.RENDERING_FRAMES, current=1, total=2) == 32.5
    assert stage_progress(Stage.VISION_ANALYSIS, iteration=2) == 60
    assert stage_progress(Stage.APPLYING_FIXES, iteration=7) == 80
    assert stage_progress(Stage.COMPLETE) == 100
    assert stage_progress(Stage.ERROR) is None


def test_generated_and_supplied_ids():
    registry = JobRegistry()
    generated = registry.create_job()
    assert re.match(r"^job_\d+_[0-9a-f]{9}$", generated.job_id)

    supplied = registry.create_job("client-123")
    assert supplied.job_id == "client-123"
    assert registry.get("client-123") is supplied
    assert len(registry) == 2


def test_progress_never_decreases():
    registry = JobRegistry()
    job = registry.create_job()
    registry.update(job.job_id, Stage.VISION_ANALYSIS, "Reviewing", stage_progress(Stage.VISION_ANALYSIS, iteration=2))
    registry.update(job.job_id, Stage.RENDERING_FRAMES, "Rendering next scene")

    assert job.progress == 60
    assert job.stage == Stage.RENDERING_FRAMES
    progress = [entry["progress"] for entry in job.history]
    assert progress == sorted(progress)
    assert job.history[-1]["message"] == "Rendering next scene"


def test_terminal_jobs_ignore_updates():
    registry = JobRegistry()
    job = registry.create_job()
    registry.update(job.job_id, Stage.ANALYZING, "Analyzing")
    registry.fail_job(job.job_id, "executor output unusable")

    assert job.status == JobStatus.ERROR
    assert job.stage == Stage.ERROR
    assert job.progress == 5  # error keeps the last value
    registry.update(job.job_id, Stage.FINALIZING, "too late")
    assert job.stage == Stage.ERROR
    assert registry.complete_job(job.job_id).status == JobStatus.ERROR


def test_complete_and_active_listing():
    registry = JobRegistry()
    running = registry.create_job()
    done = registry.create_job()
    registry.update(running.job_id, Stage.ANALYZING, "Analyzing")
    registry.complete_job(done.job_id, result={"scenes": 5})

    assert done.progress == 100
    assert done.result == {"scenes": 5}
    assert registry.list_active() == [running]


def test_unknown_job_update_is_ignored():
    assert JobRegistry().update("nope", Stage.ANALYZING, "x") is None


def test_events_reach_subscribers():
    registry = JobRegistry()
    job = registry.create_job("evt")

    async def scenario():
        queue = registry.bus.subscribe("evt")
        registry.update("evt", Stage.ANALYZING, "Analyzing your request")
        registry.complete_job("evt")
        first, second = await queue.get(), await queue.get()
        registry.bus.unsubscribe("evt", queue)
        return first, second

    first, second = asyncio.run(scenario())
    assert set(first) == {"jobId", "stage", "progress", "message", "status", "timestamp"}
    assert first["stage"] == "analyzing"
    assert first["status"] == "running"
    assert second["status"] == "complete"
    assert second["progress"] == 100
    assert registry.bus.subscriber_count(job.job_id) == 0


def test_reap_only_finished_unwatched_jobs():
    registry = JobRegistry()
    old = registry.create_job("old")
    watched = registry.create_job("watched")
    active = registry.create_job("active")
    registry.complete_job("old")
    registry.complete_job("watched")
    registry.update("active", Stage.ANALYZING, "still going")

    async def reap_while_watching():
        queue = registry.bus.subscribe("watched")
        try:
            return registry.reap_finished(max_age=60, now=old.finished_at + 120)
        finally:
            registry.bus.unsubscribe("watched", queue)

    assert asyncio.run(reap_while_watching()) == ["old"]
    assert "old" not in registry
    assert "watched" in registry and "active" in registry

    # too young to reap
    assert registry.reap_finished(max_age=3600, now=watched.finished_at + 1) == []
    assert active.status == JobStatus.RUNNING
