import json
import threading

import pytest

from cephalo.errors import (AllModelsExhausted, AnalysisCancelled, IncompleteLandmarks,
                            ModelInvocationFailure, ModelResponseError)
from cephalo.inference import ModelChainRunner, analyze, build_prompt, extract_json
from cephalo.schemas import ImageDimensions

from conftest import FakeBackend

CHAIN = ["m1", "m2", "m3", "m4"]
DIMS = ImageDimensions(width=1000, height=1000)


def test_prompt_embeds_dimensions():
    prompt = build_prompt(1024, 768)
    assert "1024 pixels wide x 768 pixels tall" in prompt
    assert '"Point A": [x, y]' in prompt
    assert "ANB_Angle" in prompt


def test_extract_json_tolerates_markdown():
    assert extract_json('```json\n{"a": {"b": 1}}\n```') == {"a": {"b": 1}}
    assert extract_json('Sure! {"a": 1} hope that helps') == {"a": 1}


@pytest.mark.parametrize("text", ["", "no json here", "{not: json}", "{\"a\": 1"])
def test_extract_json_rejects_garbage(text):
    with pytest.raises(ModelResponseError):
        extract_json(text)


def test_falls_back_until_a_complete_result(valid_text):
    backend = FakeBackend({"m1": "{broken", "m2": "not json at all",
                           "m3": valid_text, "m4": valid_text})
    result = ModelChainRunner(backend, CHAIN).run(b"img", "image/png", DIMS)
    assert result.model == "m3"
    assert backend.calls == ["m1", "m2", "m3"]
    assert [a.ok for a in result.attempts] == [False, False, True]
    assert result.resolved.anb == 6.234


def test_incomplete_landmarks_trigger_fallback(raw_payload, valid_text):
    partial = dict(raw_payload, landmarks={"Sella": [200, 400]})
    backend = FakeBackend({"m1": json.dumps(partial), "m2": valid_text})
    result = ModelChainRunner(backend, ["m1", "m2"]).run(b"img", "image/png", DIMS)
    assert result.model == "m2"
    assert isinstance(result.attempts[0].error, IncompleteLandmarks)


def test_invocation_errors_are_isolated(valid_text):
    backend = FakeBackend({"m1": ModelInvocationFailure("quota"),
                           "m2": RuntimeError("boom"), "m3": valid_text})
    result = ModelChainRunner(backend, ["m1", "m2", "m3"]).run(b"img", "image/png", DIMS)
    assert result.model == "m3"


def test_exhaustion_surfaces_last_error():
    last = ModelInvocationFailure("m4 returned HTTP 503")
    backend = FakeBackend({"m1": "{", "m2": "}", "m3": "[]", "m4": last})
    with pytest.raises(AllModelsExhausted) as exc:
        ModelChainRunner(backend, CHAIN).run(b"img", "image/png", DIMS)
    assert exc.value.last_error is last
    assert str(exc.value) == "m4 returned HTTP 503"
    assert [a.model for a in exc.value.attempts] == CHAIN
    assert backend.calls == CHAIN


def test_empty_chain_rejected():
    with pytest.raises(ValueError):
        ModelChainRunner(FakeBackend({}), [])


def test_analyze_rounds_and_judges(valid_text):
    backend = FakeBackend({"m1": valid_text})
    result = analyze(b"img", "image/png", age=12, backend=backend,
                     model_chain=["m1"], dims=DIMS)
    assert result.anb == 6.23
    assert result.overjet == 7.46
    assert result.suitable is True
    assert result.model == "m1"


def test_analyze_age_outside_range(valid_text):
    backend = FakeBackend({"m1": valid_text})
    result = analyze(b"img", "image/png", age=30, backend=backend,
                     model_chain=["m1"], dims=DIMS)
    assert result.suitable is False
    assert result.criteria.age is False


def test_analyze_probes_dimensions_when_not_given(raw_payload, small_png):
    # 40x30 image: pixel path for small values
    raw_payload["landmarks"] = {"S": [4, 3], "N": [36, 3], "A": [34, 24], "B": [30, 27]}
    backend = FakeBackend({"m1": json.dumps(raw_payload)})
    result = analyze(small_png, "image/png", backend=backend, model_chain=["m1"])
    assert (result.landmarks.S.x, result.landmarks.S.y) == pytest.approx((10.0, 10.0))


class CancellingBackend(FakeBackend):
    """Request goes away while the first model is still answering."""

    def __init__(self, responses, cancelled):
        super().__init__(responses)
        self.cancelled = cancelled

    def invoke(self, model_id, prompt, image_bytes, mime_type):
        self.cancelled.set()
        return super().invoke(model_id, prompt, image_bytes, mime_type)


def test_cancel_stops_before_next_model(valid_text):
    cancelled = threading.Event()
    backend = CancellingBackend({"m1": "{broken", "m2": valid_text}, cancelled)
    with pytest.raises(AnalysisCancelled):
        ModelChainRunner(backend, ["m1", "m2"]).run(b"img", "image/png", DIMS, cancelled)
    assert backend.calls == ["m1"]


def test_cancelled_before_start_calls_nothing(valid_text):
    cancelled = threading.Event()
    cancelled.set()
    backend = FakeBackend({"m1": valid_text})
    with pytest.raises(AnalysisCancelled):
        analyze(b"img", "image/png", backend=backend, model_chain=["m1"],
                dims=DIMS, cancelled=cancelled)
    assert backend.calls == []


def test_success_is_kept_even_if_cancel_arrives_late(valid_text):
    cancelled = threading.Event()
    backend = CancellingBackend({"m1": valid_text}, cancelled)
    result = ModelChainRunner(backend, ["m1"]).run(b"img", "image/png", DIMS, cancelled)
    assert result.model == "m1"


def test_analyze_reports_probed_dimensions(valid_text, large_png):
    backend = FakeBackend({"m1": valid_text})
    result = analyze(large_png, "image/png", backend=backend, model_chain=["m1"])
    assert (result.image.width, result.image.height) == (1000, 1000)
