import json

import cv2
import numpy as np
import pytest


class FakeBackend:
    """Scripted model backend: model id -> response text or exception."""

    def __init__(self, responses):
        self.responses = dict(responses)
        self.calls = []

    def invoke(self, model_id, prompt, image_bytes, mime_type):
        self.calls.append(model_id)
        answer = self.responses[model_id]
        if isinstance(answer, Exception):
            raise answer
        return answer


def png_bytes(width: int, height: int) -> bytes:
    ok, buf = cv2.imencode(".png", np.zeros((height, width, 3), np.uint8))
    assert ok
    return buf.tobytes()


@pytest.fixture
def raw_payload():
    # pixel coordinates for a 1000x1000 image
    return {
        "landmarks": {
            "Sella": [200, 400],
            "Nasion": [800, 300],
            "Point A": [780, 600],
            "Point B": [740, 800],
        },
        "calculations": {"ANB_Angle": 6.234, "Overjet_mm": 7.456},
        "functional_appliance_candidacy": {"is_ideal_candidate": True, "notes": ""},
    }


@pytest.fixture
def valid_text(raw_payload):
    return "```json\n" + json.dumps(raw_payload) + "\n```"


@pytest.fixture
def small_png():
    return png_bytes(40, 30)


@pytest.fixture
def large_png():
    return png_bytes(1000, 1000)
