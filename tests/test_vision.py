import json
from unittest.mock import MagicMock

import pytest

from promo_engine.clients.vision import OpenAIVisionCritic, is_supported_image, parse_critique
from promo_engine.core.models import Verdict

FRAME = "data:image/jpeg;base64,ZmFrZQ=="


def completion(content):
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    return response


def test_parse_full_critique():
    text = json.dumps({
        "verdict": "AMATEUR",
        "issues": ["Flat background"],
        "requiredFixes": ["Add grain"],
        "confidence": 0.85,
        "score": "6",
    })
    critique = parse_critique(text)
    assert critique.verdict == Verdict.AMATEUR
    assert critique.issues == ["Flat background"]
    assert critique.required_fixes == ["Add grain"]
    assert critique.confidence == 0.85
    assert critique.score == 6.0
    assert critique.parsed


def test_parse_fills_defaults_and_clamps():
    critique = parse_critique('```json\n{"verdict": "premium", "required_fixes": "none needed", "confidence": 4}\n```')
    assert critique.verdict == Verdict.PREMIUM
    assert critique.issues == []
    assert critique.required_fixes == ["none needed"]
    assert critique.confidence == 1.0
    assert critique.score is None


def test_unparseable_review_falls_back_to_keywords():
    critique = parse_critique("Honestly this looks amateur, the type is weak.")
    assert critique.verdict == Verdict.AMATEUR
    assert critique.confidence == 0.3
    assert critique.issues == ["Failed to parse detailed review"]
    assert not critique.parsed

    assert parse_critique("Looks great to me").verdict == Verdict.PREMIUM
    assert parse_critique('{"verdict": "maybe"}').confidence == 0.3


def test_empty_review_is_none():
    assert parse_critique(None) is None
    assert parse_critique("   ") is None


def test_supported_images():
    assert is_supported_image(FRAME)
    assert is_supported_image("https://cdn.example.com/frame.png")
    assert not is_supported_image("frame.png")
    assert not is_supported_image(None)


def test_critic_sends_frame_with_scene_context():
    client = MagicMock()
    client.chat.completions.create.return_value = completion('{"verdict": "premium", "confidence": 0.9}')
    critic = OpenAIVisionCritic(model="gpt-4o", client=client)

    critique = critic.review(FRAME, "HOOK")

    assert critique.verdict == Verdict.PREMIUM
    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "gpt-4o"
    user_content = kwargs["messages"][1]["content"]
    assert user_content[1]["image_url"]["url"] == FRAME
    assert "HOOK" in user_content[0]["text"]


def test_critic_failure_returns_none():
    client = MagicMock()
    client.chat.completions.create.side_effect = RuntimeError("model unavailable")
    assert OpenAIVisionCritic(client=client).review(FRAME, "CTA") is None


def test_critic_rejects_unsupported_image():
    critic = OpenAIVisionCritic(client=MagicMock())
    with pytest.raises(ValueError):
        critic.review("/tmp/frame.png", "HOOK")
