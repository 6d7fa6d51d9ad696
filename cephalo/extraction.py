import logging
import math
from dataclasses import dataclass
from numbers import Real
from typing import Any, Dict, Mapping, Optional

from .errors import IncompleteLandmarks
from .metrics import calculate_anb, calculate_overjet
from .normalize import normalize_landmark
from .schemas import LANDMARK_CODES, LandmarkSet

logger = logging.getLogger(__name__)

# canonical code -> keys the model may use, primary first
LANDMARK_ALIASES = {
    "S": ("Sella", "S"),
    "N": ("Nasion", "N"),
    "A": ("Point A", "A"),
    "B": ("Point B", "B"),
}


@dataclass(frozen=True)
class ResolvedLandmarks:
    landmarks: LandmarkSet
    anb: float
    overjet: float


def _lookup(raw_landmarks: Mapping[str, Any], code: str):
    for key in LANDMARK_ALIASES[code]:
        value = raw_landmarks.get(key)
        if value is not None:
            return key, value
    return LANDMARK_ALIASES[code][0], None


def _provided_metric(calculations: Mapping[str, Any], key: str) -> Optional[float]:
    value = calculations.get(key)
    if isinstance(value, Real) and not isinstance(value, bool) and math.isfinite(value):
        return float(value)
    if value is not None:
        logger.warning("Ignoring non-numeric %s=%r from model, computing instead", key, value)
    return None


def resolve_landmarks(raw_response: Mapping[str, Any], image_width: int,
                      image_height: int) -> ResolvedLandmarks:
    """Build a complete landmark set plus ANB/overjet from a model payload.

    Raises IncompleteLandmarks when any of S, N, A, B cannot be resolved.
    Model-supplied ANB_Angle / Overjet_mm win over the computed fallbacks.
    """
    raw_landmarks = raw_response.get("landmarks") if isinstance(raw_response, Mapping) else None
    if not isinstance(raw_landmarks, Mapping):
        raise IncompleteLandmarks(list(LANDMARK_CODES))

    points: Dict[str, Any] = {}
    missing = []
    for code in LANDMARK_CODES:
        label, value = _lookup(raw_landmarks, code)
        point = normalize_landmark(value, image_width, image_height, label)
        if point is None:
            missing.append(code)
        else:
            points[code] = point
    if missing:
        raise IncompleteLandmarks(missing)

    landmarks = LandmarkSet(**points)
    calculations = raw_response.get("calculations")
    if not isinstance(calculations, Mapping):
        calculations = {}

    anb = _provided_metric(calculations, "ANB_Angle")
    if anb is None:
        anb = calculate_anb(landmarks.S, landmarks.N, landmarks.A, landmarks.B)
        logger.info("ANB not supplied by model, computed %.2f", anb)

    overjet = _provided_metric(calculations, "Overjet_mm")
    if overjet is None:
        overjet = calculate_overjet(landmarks.A, landmarks.B)
        logger.info("Overjet not supplied by model, approximated %.2f", overjet)

    return ResolvedLandmarks(landmarks=landmarks, anb=anb, overjet=overjet)
