import logging
import math
from numbers import Real
from typing import Any, Mapping, Optional, Sequence, Tuple

from .schemas import Point

logger = logging.getLogger(__name__)

# below this (on both axes) small values could be pixels of a tiny image
PERCENT_TRUST_MIN_PX = 200


def _is_number(v: Any) -> bool:
    return isinstance(v, Real) and not isinstance(v, bool) and math.isfinite(v)


def _extract_xy(raw: Any) -> Optional[Tuple[float, float]]:
    if isinstance(raw, Mapping):
        x, y = raw.get("x"), raw.get("y")
    elif isinstance(raw, Sequence) and not isinstance(raw, (str, bytes)):
        if len(raw) != 2:
            return None
        x, y = raw
    else:
        return None
    if not (_is_number(x) and _is_number(y)):
        return None
    return float(x), float(y)


def _clamp(v: float, upper: float) -> float:
    return min(max(v, 0.0), upper)


def normalize_landmark(raw: Any, image_width: int, image_height: int,
                       label: str) -> Optional[Point]:
    """Convert one raw model coordinate into a percentage-space Point.

    Accepts ``[x, y]`` or ``{"x": .., "y": ..}`` in pixel or percent units.
    Returns None when the landmark is absent or not a usable pair of numbers.
    Out-of-image values are clamped to the image bounds (and logged) before
    the unit decision, so the result always lies in [0, 100] on both axes.

    Units are inferred: a clamped pair inside [0, 100] is taken as percent
    only when the image is larger than 200px on some axis; everything else
    is treated as pixels. Small or cropped images can be misclassified.
    """
    if raw is None:
        return None
    xy = _extract_xy(raw)
    if xy is None:
        logger.warning("[%s] Unusable coordinate payload %r, treating as missing", label, raw)
        return None
    x, y = xy
    logger.debug("[%s] Raw coordinates [%s, %s], image %sx%s", label, x, y, image_width, image_height)

    cx, cy = _clamp(x, image_width), _clamp(y, image_height)
    if (cx, cy) != (x, y):
        logger.warning("[%s] Coordinates clamped from [%s, %s] to [%s, %s] (image %sx%s)",
                       label, x, y, cx, cy, image_width, image_height)

    looks_percent = 0 <= cx <= 100 and 0 <= cy <= 100
    large_image = image_width > PERCENT_TRUST_MIN_PX or image_height > PERCENT_TRUST_MIN_PX
    if looks_percent and large_image:
        logger.debug("[%s] Treating as percent coordinates [%s%%, %s%%]", label, cx, cy)
        return Point(x=cx, y=cy)

    point = Point(x=cx / image_width * 100, y=cy / image_height * 100)
    logger.debug("[%s] Converted pixels to percent [%.2f%%, %.2f%%]", label, point.x, point.y)
    return point
