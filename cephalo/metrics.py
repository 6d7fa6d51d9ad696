import numpy as np
from typing import Mapping, Sequence, Tuple, Union
from .schemas import Point

PointLike = Union[Point, Mapping[str, float], Sequence[float]]

# percent-of-image units to millimetres, uncalibrated
OVERJET_MM_PER_UNIT = 0.1

def _xy(p: PointLike) -> Tuple[float, float]:
    if isinstance(p, Point):
        return p.x, p.y
    if isinstance(p, Mapping):
        return float(p["x"]), float(p["y"])
    return float(p[0]), float(p[1])

def distance(p1: PointLike, p2: PointLike) -> float:
    a, b = np.array(_xy(p1)), np.array(_xy(p2))
    return float(np.linalg.norm(b - a))

def angle(p1: PointLike, p2: PointLike, p3: PointLike) -> float:
    """Angle at p2 formed by p1-p2-p3, in degrees (Law of Cosines).

    Coincident points leave the angle undefined; 0.0 is returned instead of NaN.
    """
    d12 = distance(p1, p2)
    d23 = distance(p2, p3)
    d13 = distance(p1, p3)
    if d12 == 0.0 or d23 == 0.0:
        return 0.0
    cos_v = (d12**2 + d23**2 - d13**2) / (2*d12*d23)
    cos_v = np.clip(cos_v, -1.0, 1.0)
    return float(np.degrees(np.arccos(cos_v)))

def calculate_anb(s: PointLike, n: PointLike, a: PointLike, b: PointLike) -> float:
    # SNA - SNB; positive = maxilla ahead of mandible (Class II tendency)
    sna = angle(s, n, a)
    snb = angle(s, n, b)
    return sna - snb

def calculate_overjet(a: PointLike, b: PointLike, scale_factor: float = 1) -> float:
    """Approximate overjet (mm) from the horizontal A-B distance.

    True overjet is measured between incisal edges, which are not collected.
    This is a skeletal stand-in: |A.x - B.x| in percent units * scale * 0.1.
    """
    ax, _ = _xy(a)
    bx, _ = _xy(b)
    return abs(ax - bx) * scale_factor * OVERJET_MM_PER_UNIT
