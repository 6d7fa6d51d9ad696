import math
from typing import Any, Optional
from .schemas import Criteria, LandmarkSet, SuitabilityVerdict, AnalysisSummary
from .metrics import calculate_anb

# Functional appliance research criteria
ANB_MIN_DEG = 4.5      # strictly greater
OVERJET_MIN_MM = 5.0   # strictly greater
AGE_RANGE = (9, 15)    # inclusive

MSG_SUITABLE = "Functional Appliance Therapy Recommended"
MSG_ROUTINE = "Routine Observation"

def parse_age(value: Any) -> Optional[int]:
    """Form/storage ages arrive as strings; blank or junk means unknown."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value) if math.isfinite(value) else None
    text = str(value).strip()
    digits = ""
    for ch in text:
        if ch.isdigit() or (ch == "-" and not digits):
            digits += ch
        else:
            break
    try:
        return int(digits)
    except ValueError:
        return None

def judge(anb: float, overjet: float, age: Optional[int] = None) -> SuitabilityVerdict:
    anb_ok = anb > ANB_MIN_DEG
    overjet_ok = overjet > OVERJET_MIN_MM
    age_ok = None if age is None else AGE_RANGE[0] <= age <= AGE_RANGE[1]
    suitable = anb_ok and overjet_ok and age_ok is not False
    return SuitabilityVerdict(
        suitable=suitable,
        message=MSG_SUITABLE if suitable else MSG_ROUTINE,
        criteria=Criteria(anb=anb_ok, overjet=overjet_ok, age=age_ok),
    )

def is_suitable(anb: float, overjet: float, age: Optional[int] = None) -> bool:
    return judge(anb, overjet, age).suitable

def summarize(anb: float, overjet: float, age: Optional[int] = None) -> AnalysisSummary:
    # thresholds see unrounded values; rounding is for presentation only
    verdict = judge(anb, overjet, age)
    return AnalysisSummary(anb=round(anb, 2), overjet=round(overjet, 2),
                           suitable=verdict.suitable, message=verdict.message,
                           criteria=verdict.criteria)

def reanalyze(landmarks: LandmarkSet, overjet: float, age: Optional[int] = None) -> AnalysisSummary:
    # after manual landmark adjustment: fresh ANB, overjet carried over
    anb = calculate_anb(landmarks.S, landmarks.N, landmarks.A, landmarks.B)
    return summarize(anb, overjet, age)
