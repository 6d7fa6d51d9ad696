import json, logging, re, threading
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .config import get_settings
from .errors import AllModelsExhausted, AnalysisCancelled, ModelResponseError
from .extraction import ResolvedLandmarks, resolve_landmarks
from .llm_client import GeminiBackend, ModelBackend
from .preprocess import image_dimensions_or_default
from .schemas import AnalysisResult, ImageDimensions
from .scoring import judge

logger = logging.getLogger(__name__)

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")

def build_prompt(width: int, height: int) -> str:
    return f"""Analyze this lateral cephalogram for orthodontic case selection.

**CRITICAL: Image Dimensions**
The image dimensions are: {width} pixels wide x {height} pixels tall.
ALL coordinates MUST be within these bounds: x must be between 0 and {width}, y must be between 0 and {height}.

**Landmark Definitions:**
1. **Sella (S)**: The geometric center of the sella turcica (the saddle-shaped depression in the sphenoid bone).
2. **Nasion (N)**: The most anterior point of the frontonasal suture in the midsagittal plane.
3. **Point A (Subspinale)**: The deepest midline point on the anterior curvature of the maxilla, between the anterior nasal spine (ANS) and prosthion.
4. **Point B (Supramentale)**: The deepest midline point on the anterior curvature of the mandible, between infradentale and pogonion.

**Instructions:**
1. Identify the exact pixel coordinates [x, y] for each landmark. Coordinates MUST be within image bounds (0 to {width} for x, 0 to {height} for y).
2. Calculate the ANB Angle in degrees and Overjet in mm.
3. Based on the Research Criteria (ANB > 4.5 degrees, Overjet > 5mm, age 9-15 years), determine if this patient is an ideal candidate for functional appliance therapy.

**Coordinate System:**
- Origin (0,0) is at the TOP-LEFT corner of the image
- X increases from left to right (0 to {width})
- Y increases from top to bottom (0 to {height})
- All coordinates must be integers representing pixel positions

Return ONLY strict JSON in this format:
{{
  "landmarks": {{
    "Sella": [x, y],
    "Nasion": [x, y],
    "Point A": [x, y],
    "Point B": [x, y]
  }},
  "calculations": {{
    "ANB_Angle": number,
    "Overjet_mm": number
  }},
  "functional_appliance_candidacy": {{
    "is_ideal_candidate": boolean,
    "notes": "string"
  }}
}}"""

def extract_json(text: str) -> dict:
    """Parse the first {...} span of a model answer (markdown fences tolerated)."""
    if not text:
        raise ModelResponseError("Empty model response")
    m = _JSON_OBJECT.search(text)
    if not m:
        raise ModelResponseError("No JSON object in model response", text[:500])
    try:
        data = json.loads(m.group(0))
    except json.JSONDecodeError as e:
        raise ModelResponseError(f"Invalid JSON from model: {e}", text[:500]) from e
    if not isinstance(data, dict):
        raise ModelResponseError("Model JSON is not an object", text[:500])
    return data

@dataclass(frozen=True)
class AttemptOutcome:
    model: str
    attempt: int
    resolved: Optional[ResolvedLandmarks] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.resolved is not None

@dataclass(frozen=True)
class ChainResult:
    resolved: ResolvedLandmarks
    model: str
    attempts: List[AttemptOutcome]

class ModelChainRunner:
    """Tries each backend model in order; first complete result wins."""

    def __init__(self, backend: ModelBackend, model_chain: Sequence[str]):
        if not model_chain:
            raise ValueError("model_chain must name at least one model")
        self.backend = backend
        self.model_chain = tuple(model_chain)

    def attempt(self, model: str, n: int, prompt: str, image_bytes: bytes,
                mime_type: str, dims: ImageDimensions) -> AttemptOutcome:
        try:
            text = self.backend.invoke(model, prompt, image_bytes, mime_type)
            data = extract_json(text)
            resolved = resolve_landmarks(data, dims.width, dims.height)
        except Exception as e:
            logger.warning("Model %s (attempt %d/%d) failed: %s: %s",
                           model, n, len(self.model_chain), type(e).__name__, e)
            return AttemptOutcome(model=model, attempt=n, error=e)
        return AttemptOutcome(model=model, attempt=n, resolved=resolved)

    def run(self, image_bytes: bytes, mime_type: str, dims: ImageDimensions,
            cancelled: Optional[threading.Event] = None) -> ChainResult:
        prompt = build_prompt(dims.width, dims.height)
        outcomes: List[AttemptOutcome] = []
        for n, model in enumerate(self.model_chain, start=1):
            # checked between attempts; an in-flight call is bounded by its timeout
            if cancelled is not None and cancelled.is_set():
                logger.warning("Analysis cancelled before attempt %d/%d (%s)",
                               n, len(self.model_chain), model)
                raise AnalysisCancelled(f"Cancelled after {len(outcomes)} of {len(self.model_chain)} attempts")
            outcome = self.attempt(model, n, prompt, image_bytes, mime_type, dims)
            outcomes.append(outcome)
            if outcome.ok:
                logger.info("Successfully used model: %s", model)
                return ChainResult(resolved=outcome.resolved, model=model, attempts=outcomes)

        last_error = outcomes[-1].error if outcomes else None
        logger.error("All %d models failed; last error: %s", len(outcomes), last_error)
        raise AllModelsExhausted(last_error, outcomes)

def analyze(image_bytes: bytes, mime_type: str = "image/jpeg", age: Optional[int] = None,
            backend: ModelBackend = None, model_chain: Sequence[str] = None,
            dims: ImageDimensions = None,
            cancelled: Optional[threading.Event] = None) -> AnalysisResult:
    # 1) Dimensions (never blocks on probe failure)
    dims = dims or image_dimensions_or_default(image_bytes)

    # 2) Landmarks via model chain
    if backend is None or model_chain is None:
        settings = get_settings()
        backend = backend or GeminiBackend.from_settings(settings)
        model_chain = model_chain or settings.model_chain
    chain = ModelChainRunner(backend, model_chain).run(
        image_bytes, mime_type or "image/jpeg", dims, cancelled)

    # 3) Verdict on unrounded values, rounding at the boundary
    r = chain.resolved
    verdict = judge(r.anb, r.overjet, age)
    return AnalysisResult(
        landmarks=r.landmarks,
        anb=round(r.anb, 2),
        overjet=round(r.overjet, 2),
        suitable=verdict.suitable,
        message=verdict.message,
        criteria=verdict.criteria,
        model=chain.model,
        image=dims,
    )
