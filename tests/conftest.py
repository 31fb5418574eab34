import copy

import pytest

from promo_engine.config.settings import settings
from promo_engine.core.models import Critique, VideoSpec, Verdict
from tests.builders import ART_DIRECTION, STRATEGY, executor_output


@pytest.fixture(autouse=True)
def offline_settings(monkeypatch):
    # No test may reach a real model or write run artifacts by accident.
    monkeypatch.setattr(settings, "openai_api_key", None)
    monkeypatch.setattr(settings, "openai_base_url", None)
    monkeypatch.setattr(settings, "render_api_url", None)
    monkeypatch.setattr(settings, "output_root", "")


@pytest.fixture
def strategy_reply():
    return copy.deepcopy(STRATEGY)


@pytest.fixture
def art_reply():
    return copy.deepcopy(ART_DIRECTION)


@pytest.fixture
def executor_reply():
    return executor_output()


@pytest.fixture
def stage_replies():
    """Strategist, art director and executor replies, in call order."""
    return [copy.deepcopy(STRATEGY), copy.deepcopy(ART_DIRECTION), executor_output()]


@pytest.fixture
def sample_spec():
    return VideoSpec.from_dict(executor_output())


@pytest.fixture
def premium():
    return Critique(verdict=Verdict.PREMIUM, issues=[], required_fixes=[], confidence=0.9, score=9)


@pytest.fixture
def amateur():
    return Critique(
        verdict=Verdict.AMATEUR,
        issues=["Looks flat, like a template", "Weak typography"],
        required_fixes=["Add grain texture", "Raise headline weight"],
        confidence=0.8,
        score=5,
    )
