import asyncio, logging, threading
from typing import List, Optional, Tuple

from fastapi import Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from .config import configure_logging, get_settings
from .errors import (AllModelsExhausted, AnalysisCancelled, BackendNotConfigured,
                     NoImageProvided)
from .inference import analyze
from .llm_client import GeminiBackend, ModelBackend
from .schemas import (AnalysisSummary, AnalyzeResponse, ErrorResponse, ReanalyzeRequest,
                      ScanRecord, ScanRecordRequest)
from .scoring import parse_age, reanalyze, summarize

configure_logging(get_settings().log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Cephalometric Suitability", version="1.0.0")

DISCONNECT_POLL_S = 0.5
ERROR_RESPONSES = {400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}}

async def read_upload(
    file: Optional[UploadFile] = File(None, description="Lateral cephalogram"),
) -> Tuple[bytes, str]:
    # declared before the backend dependency so a missing file wins over config errors
    if file is None:
        raise NoImageProvided("No file provided")
    image_bytes = await file.read()
    if not image_bytes:
        raise NoImageProvided("No file provided")
    return image_bytes, file.content_type or "image/jpeg"

def get_backend() -> ModelBackend:
    return GeminiBackend.from_settings(get_settings())

def get_model_chain() -> List[str]:
    return get_settings().model_chain

def _error(status: int, error: str, details: Optional[str] = None) -> JSONResponse:
    body = ErrorResponse(error=error, details=details)
    return JSONResponse(body.model_dump(exclude_none=True), status_code=status)

async def watch_disconnect(request: Request, cancelled: threading.Event,
                           poll_s: float = DISCONNECT_POLL_S) -> None:
    while not cancelled.is_set():
        if await request.is_disconnected():
            logger.warning("Client disconnected, stopping model chain")
            cancelled.set()
            return
        await asyncio.sleep(poll_s)

@app.exception_handler(NoImageProvided)
async def no_image_provided(request: Request, exc: NoImageProvided):
    return _error(400, str(exc))

@app.exception_handler(BackendNotConfigured)
async def backend_not_configured(request: Request, exc: BackendNotConfigured):
    logger.error("Analysis requested without a configured backend: %s", exc)
    return _error(500, str(exc))

@app.exception_handler(AllModelsExhausted)
async def all_models_exhausted(request: Request, exc: AllModelsExhausted):
    # never fall back to synthetic landmarks
    logger.error("AI Analysis Failed after %d attempts: %s", len(exc.attempts), exc)
    return _error(500, "AI analysis failed. Please try again.", str(exc))

@app.exception_handler(AnalysisCancelled)
async def analysis_cancelled(request: Request, exc: AnalysisCancelled):
    # nobody is listening; status is for access logs
    return _error(499, "Analysis cancelled", str(exc))

@app.get("/", response_class=JSONResponse)
def root():
    return {"ok": True, "name": "Cephalometric Suitability", "docs": "/docs"}

@app.post("/analyze", response_model=AnalyzeResponse, responses=ERROR_RESPONSES)
async def analyze_scan(
    request: Request,
    upload: Tuple[bytes, str] = Depends(read_upload),
    patient_age: Optional[str] = Form(None, alias="patientAge"),
    backend: ModelBackend = Depends(get_backend),
    model_chain: List[str] = Depends(get_model_chain),
):
    image_bytes, mime_type = upload
    cancelled = threading.Event()
    watcher = asyncio.create_task(watch_disconnect(request, cancelled))
    try:
        # image probe and blocking model calls run off the event loop
        result = await run_in_threadpool(
            analyze, image_bytes, mime_type, parse_age(patient_age),
            backend, model_chain, None, cancelled)
    except asyncio.CancelledError:
        cancelled.set()
        raise
    finally:
        watcher.cancel()

    return AnalyzeResponse(landmarks=result.landmarks, analysis=result.summary(),
                           model=result.model, image=result.image)

@app.post("/reanalyze", response_model=AnalysisSummary)
def reanalyze_scan(req: ReanalyzeRequest):
    return reanalyze(req.landmarks, req.overjet, req.age)

@app.post("/records", response_model=ScanRecord, response_model_by_alias=True)
def build_record(req: ScanRecordRequest):
    # storage is owned by the caller; only the document is assembled here
    analysis = summarize(req.anb, req.overjet, parse_age(req.patient_age))
    return ScanRecord(patient=req.patient, patient_age=req.patient_age,
                      patient_gender=req.patient_gender, image_url=req.image_url,
                      landmarks=req.landmarks, analysis=analysis)
