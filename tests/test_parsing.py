from promo_engine.engine.parsing import parse_model_output, strip_code_fences


def test_fenced_json_is_unwrapped():
    raw = 'Here you go:\n```json\n{"corePromise": "Calm projects"}\n```'
    result = parse_model_output(raw)
    assert result.ok
    assert result.data == {"corePromise": "Calm projects"}
    assert result.raw == raw


def test_plain_fence_without_language():
    assert strip_code_fences('```\n{"a": 1}\n```') == '{"a": 1}'


def test_object_embedded_in_prose_is_recovered():
    result = parse_model_output('Sure! {"verdict": "premium", "score": 9} Hope that helps.')
    assert result.ok
    assert result.data["verdict"] == "premium"


def test_empty_response_fails_without_raising():
    for raw in (None, "", "   \n"):
        result = parse_model_output(raw)
        assert not result.ok
        assert result.error == "Empty model response"


def test_invalid_json_reports_error_and_keeps_raw():
    result = parse_model_output("definitely not json")
    assert not result.ok
    assert result.error.startswith("Invalid JSON")
    assert result.raw == "definitely not json"


def test_non_object_is_rejected():
    result = parse_model_output("[1, 2, 3]")
    assert not result.ok
    assert "object" in result.error
