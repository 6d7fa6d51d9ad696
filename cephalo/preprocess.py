import base64, logging
import cv2, numpy as np
from .errors import DimensionProbeFailure
from .schemas import ImageDimensions

logger = logging.getLogger(__name__)

DEFAULT_DIMENSIONS = ImageDimensions(width=800, height=1000)

def _decode(img_bytes: bytes) -> np.ndarray:
    arr = np.frombuffer(img_bytes, np.uint8)
    try:
        im = cv2.imdecode(arr, cv2.IMREAD_UNCHANGED)
    except cv2.error as e:
        raise DimensionProbeFailure(f"Invalid image data: {e}")
    if im is None:
        raise DimensionProbeFailure("Invalid image data")
    return im

def probe_dimensions(img_bytes: bytes) -> ImageDimensions:
    if not img_bytes:
        raise DimensionProbeFailure("Empty image data")
    h, w = _decode(img_bytes).shape[:2]
    if w <= 0 or h <= 0:
        raise DimensionProbeFailure(f"Degenerate image size {w}x{h}")
    return ImageDimensions(width=int(w), height=int(h))

def image_dimensions_or_default(img_bytes: bytes) -> ImageDimensions:
    try:
        dims = probe_dimensions(img_bytes)
    except DimensionProbeFailure as e:
        logger.warning("Failed to get image dimensions, using fallback %sx%s: %s",
                       DEFAULT_DIMENSIONS.width, DEFAULT_DIMENSIONS.height, e)
        return DEFAULT_DIMENSIONS
    logger.info("Image dimensions detected: %sx%s", dims.width, dims.height)
    return dims

def to_b64(img_bytes: bytes) -> str:
    return base64.b64encode(img_bytes).decode("utf-8")
