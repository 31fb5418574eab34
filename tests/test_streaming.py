import asyncio
import json

from api.streaming import progress_events
from promo_engine.progress.tracker import JobRegistry, Stage


def decode(frame: bytes):
    text = frame.decode("utf-8")
    if text.startswith(":"):
        return text.strip()
    assert text.startswith("data: ") and text.endswith("\n\n")
    return json.loads(text[len("data: "):])


async def collect(stream):
    return [decode(frame) async for frame in stream]


def test_stream_forwards_transitions_and_closes_on_complete():
    registry = JobRegistry()
    registry.create_job("job-1")

    async def scenario():
        stream = progress_events(registry, "job-1", heartbeat=5, grace=0)
        frames = [decode(await stream.__anext__())]  # snapshot
        registry.update("job-1", Stage.ANALYZING, "Analyzing")
        registry.complete_job("job-1")
        frames.extend(await collect(stream))
        return frames

    frames = asyncio.run(scenario())
    assert [f["stage"] for f in frames] == ["idle", "analyzing", "complete"]
    assert frames[-1]["status"] == "complete"
    assert registry.bus.subscriber_count("job-1") == 0


def test_stream_sends_heartbeat_when_idle():
    registry = JobRegistry()
    registry.create_job("quiet")

    async def scenario():
        stream = progress_events(registry, "quiet", heartbeat=0.01, grace=0)
        await stream.__anext__()
        beat = decode(await stream.__anext__())
        registry.fail_job("quiet", "boom")
        rest = await collect(stream)
        return beat, rest

    beat, rest = asyncio.run(scenario())
    assert beat == ": heartbeat"
    assert rest[-1]["status"] == "error"
    assert rest[-1]["message"] == "boom"


def test_unknown_job_gets_waiting_message_then_follows_it():
    registry = JobRegistry()

    async def scenario():
        stream = progress_events(registry, "later", heartbeat=5, grace=0)
        first = decode(await stream.__anext__())
        registry.create_job("later")
        registry.update("later", Stage.INITIALIZING, "Starting")
        registry.complete_job("later")
        return first, await collect(stream)

    first, rest = asyncio.run(scenario())
    assert first["message"] == "Waiting for job to start..."
    assert first["status"] == "pending"
    assert [f["stage"] for f in rest] == ["initializing", "complete"]


def test_finished_job_gets_snapshot_and_close():
    registry = JobRegistry()
    registry.create_job("done")
    registry.complete_job("done")

    frames = asyncio.run(collect(progress_events(registry, "done", heartbeat=5, grace=0)))
    assert len(frames) == 1
    assert frames[0]["progress"] == 100


def test_failure_right_after_snapshot_is_still_delivered():
    registry = JobRegistry()
    registry.create_job("flaky")

    async def scenario():
        stream = progress_events(registry, "flaky", heartbeat=5, grace=0)
        snapshot = decode(await stream.__anext__())
        registry.fail_job("flaky", "renderer crashed")
        return snapshot, await collect(stream)

    snapshot, rest = asyncio.run(scenario())
    assert snapshot["status"] == "pending"
    assert len(rest) == 1
    assert rest[0]["status"] == "error"
    assert rest[0]["message"] == "renderer crashed"
    assert registry.bus.subscriber_count("flaky") == 0
