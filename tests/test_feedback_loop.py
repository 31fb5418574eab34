import asyncio

import pytest

from promo_engine.clients.mock import ScriptedTextClient, ScriptedVisionCritic
from promo_engine.core.errors import DanglingImageReferenceError
from promo_engine.core.models import (
    CorrectionResult,
    Critique,
    RenderResult,
    ReviewOutcome,
    Verdict,
    VideoSpec,
)
from promo_engine.engine.correction import FALLBACK_GRADIENT, CorrectionEngine
from promo_engine.pipeline.feedback_loop import FALLBACK_MARKER, FeedbackConfig, VisualFeedbackLoop
from promo_engine.progress.tracker import JobRegistry
from promo_engine.rendering.base import SceneRenderer
from tests.builders import scene_dict


class DummyRenderer(SceneRenderer):
    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []

    def render_still(self, spec, scene_index):
        self.calls.append(scene_index)
        if self.fail:
            return RenderResult(success=False, scene_index=scene_index, error="renderer offline")
        return RenderResult(success=True, scene_index=scene_index, image_base64="ZmFrZQ==")

    async def render_still_async(self, spec, scene_index):
        return self.render_still(spec, scene_index)


def correction_reply(system, user):
    # A visual-only tweak of the HOOK scene
    data = scene_dict("HOOK", "Deadlines keep slipping?")
    data["background"]["textureOpacity"] = 0.08
    data["motion"]["holdAnimation"] = "breathe"
    return data


def hook_only_spec():
    return VideoSpec.from_dict({"scenes": [scene_dict("HOOK", "Deadlines keep slipping?")]})


def make_loop(critiques, renderer=None, replies=None, tracker=None):
    renderer = renderer or DummyRenderer()
    critic = ScriptedVisionCritic(critiques)
    corrector = CorrectionEngine(ScriptedTextClient(replies or []))
    return VisualFeedbackLoop(renderer, critic, corrector, tracker), renderer, critic


def test_premium_on_first_iteration(premium):
    loop, renderer, critic = make_loop([premium])
    result = asyncio.run(loop.run(hook_only_spec(), config=FeedbackConfig(max_iterations=2)))

    review = result.review_results[0]
    assert result.success
    assert review.iterations == 1
    assert review.was_modified is False
    assert review.original_verdict == ReviewOutcome.PREMIUM
    assert review.final_verdict == ReviewOutcome.PREMIUM
    assert review.final_score == 9
    assert result.improved_scenes[0] == hook_only_spec().scenes[0]
    assert critic.reviewed[0] == ("data:image/jpeg;base64,ZmFrZQ==", "HOOK")


def test_two_failures_end_in_fallback(amateur):
    loop, renderer, _ = make_loop([amateur], replies=[correction_reply])
    result = asyncio.run(loop.run(hook_only_spec(), config=FeedbackConfig(max_iterations=2)))

    review = result.review_results[0]
    scene = result.improved_scenes[0]
    assert review.final_verdict == ReviewOutcome.FALLBACK
    assert review.was_modified is True
    assert review.iterations == 2
    assert review.issue_counts == [2, 2]
    assert review.changes_applied == ["background", "motion", FALLBACK_MARKER]
    assert scene.background.type == "gradient"
    assert scene.background.gradient_colors == list(FALLBACK_GRADIENT)
    assert scene.layout == "TEXT_CENTER"
    assert result.scenes_fallback == 1
    assert renderer.calls == [0, 0]


def test_fallback_ignores_what_the_critiques_said(amateur):
    other = Critique(verdict=Verdict.AMATEUR, issues=["Too busy"], required_fixes=["Simplify"], confidence=0.4)
    first, _, _ = make_loop([amateur], replies=[correction_reply])
    second, _, _ = make_loop([other], replies=[correction_reply])
    config = FeedbackConfig(max_iterations=2)

    a = asyncio.run(first.run(hook_only_spec(), config=config)).improved_scenes[0]
    b = asyncio.run(second.run(hook_only_spec(), config=config)).improved_scenes[0]
    assert a == b


def test_zero_iterations_skips_scene(premium):
    loop, renderer, _ = make_loop([premium])
    spec = hook_only_spec()
    result = asyncio.run(loop.run(spec, config=FeedbackConfig(max_iterations=0)))

    review = result.review_results[0]
    assert review.final_verdict == ReviewOutcome.SKIPPED
    assert review.iterations == 0
    assert review.was_modified is False
    assert result.improved_scenes == spec.scenes
    assert renderer.calls == []


def test_skip_flag_returns_original_with_zero_iterations(sample_spec, premium):
    loop, renderer, _ = make_loop([premium])
    result = asyncio.run(loop.run(sample_spec, config=FeedbackConfig(skip_feedback=True)))

    assert result.success
    assert result.total_iterations == 0
    assert result.review_results == []
    assert result.improved_scenes == sample_spec.scenes
    assert renderer.calls == []


def test_iteration_cap_is_enforced(amateur):
    config = FeedbackConfig(max_iterations=10)
    assert config.max_iterations == 3

    loop, renderer, _ = make_loop([amateur], replies=[correction_reply, correction_reply])
    result = asyncio.run(loop.run(hook_only_spec(), config=config))
    assert result.review_results[0].iterations == 3
    assert len(renderer.calls) == 3


def test_render_failure_stops_early_and_falls_back(premium):
    loop, renderer, critic = make_loop([premium], renderer=DummyRenderer(fail=True))
    result = asyncio.run(loop.run(hook_only_spec(), config=FeedbackConfig(max_iterations=2)))

    review = result.review_results[0]
    assert review.iterations == 1
    assert review.final_verdict == ReviewOutcome.FALLBACK
    assert review.original_verdict == ReviewOutcome.SKIPPED
    assert critic.reviewed == []


def test_missing_critique_stops_early():
    loop, renderer, _ = make_loop([None])
    result = asyncio.run(loop.run(hook_only_spec(), config=FeedbackConfig(max_iterations=3)))
    assert len(renderer.calls) == 1
    assert result.review_results[0].final_verdict == ReviewOutcome.FALLBACK


def test_failed_correction_stops_early(amateur):
    loop, renderer, _ = make_loop([amateur], replies=["not json at all"])
    result = asyncio.run(loop.run(hook_only_spec(), config=FeedbackConfig(max_iterations=3)))
    assert len(renderer.calls) == 1
    assert result.review_results[0].changes_applied == [FALLBACK_MARKER]


def test_score_threshold_counts_as_accepted():
    scored = Critique(verdict=Verdict.AMATEUR, issues=["minor"], score=8.5)
    loop, _, _ = make_loop([scored])
    result = asyncio.run(loop.run(hook_only_spec(), config=FeedbackConfig(max_iterations=2)))
    assert result.review_results[0].final_verdict == ReviewOutcome.PREMIUM


def test_only_selected_scene_types_are_reviewed(sample_spec, premium):
    loop, renderer, _ = make_loop([premium])
    result = asyncio.run(loop.run(sample_spec, config=FeedbackConfig(scenes_to_review=("HOOK", "SOLUTION"))))
    assert [r.scene_index for r in result.review_results] == [0, 2]
    assert renderer.calls == [0, 2]


def test_dangling_image_rejected_before_any_render(premium):
    spec = VideoSpec.from_dict({"scenes": [scene_dict("HOOK", "Hi", images=[{"imageId": "ghost"}])]})
    loop, renderer, _ = make_loop([premium])
    with pytest.raises(DanglingImageReferenceError):
        asyncio.run(loop.run(spec, provided_image_ids=["real"]))
    assert renderer.calls == []


def test_progress_is_reported_for_tracked_runs(amateur):
    tracker = JobRegistry()
    job = tracker.create_job()
    loop, _, _ = make_loop([amateur], replies=[correction_reply], tracker=tracker)
    asyncio.run(loop.run(hook_only_spec(), config=FeedbackConfig(max_iterations=2), job_id=job.job_id))

    stages = [entry["stage"] for entry in job.history]
    assert stages == [
        "rendering_frames", "vision_analysis", "applying_fixes",
        "rendering_frames", "vision_analysis",
    ]
    progress = [entry["progress"] for entry in job.history]
    assert progress == sorted(progress)


class ExplodingCorrector:
    """Fails hard for one scene, behaves like a no-op correction elsewhere."""

    def __init__(self, broken_index):
        self.broken_index = broken_index

    async def correct_scene(self, scene, scene_index, critique):
        if scene_index == self.broken_index:
            raise KeyError("durationFrames")
        return CorrectionResult(success=True, corrected_scene=scene, changes_applied=[])


def hook_and_solution_spec():
    return VideoSpec.from_dict({"scenes": [
        scene_dict("HOOK", "Deadlines keep slipping?"),
        scene_dict("SOLUTION", "Meet Flowboard"),
    ]})


def test_string_duration_in_correction_does_not_stop_other_scenes(amateur):
    def string_duration(system, user):
        data = correction_reply(system, user)
        data["durationFrames"] = "80"
        return data

    loop, renderer, _ = make_loop([amateur], replies=[string_duration, string_duration])
    result = asyncio.run(loop.run(hook_and_solution_spec(), config=FeedbackConfig(max_iterations=2)))

    assert result.success
    assert len(result.review_results) == 2
    assert [r.scene_index for r in result.review_results] == [0, 1]
    assert all(scene.duration_frames == 75 for scene in result.improved_scenes)
    assert renderer.calls == [0, 0, 1, 1]


def test_one_scene_blowing_up_only_falls_back_that_scene(premium, amateur):
    spec = hook_and_solution_spec()
    critic = ScriptedVisionCritic([amateur, premium, premium])
    loop = VisualFeedbackLoop(DummyRenderer(), critic, ExplodingCorrector(broken_index=0))
    result = asyncio.run(loop.run(spec, config=FeedbackConfig(max_iterations=2)))

    hook, solution = result.review_results
    assert result.success
    assert "scene 0" in result.error
    assert hook.final_verdict == ReviewOutcome.FALLBACK
    assert hook.changes_applied == [FALLBACK_MARKER]
    assert result.improved_scenes[0].background.gradient_colors == list(FALLBACK_GRADIENT)
    assert solution.final_verdict == ReviewOutcome.PREMIUM
    assert result.improved_scenes[1] == spec.scenes[1]
    assert result.scenes_fallback == 1
