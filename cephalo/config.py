import logging, os
from typing import List
from pydantic import BaseModel, ConfigDict, Field

DEFAULT_MODEL_CHAIN = (
    "gemini-2.5-flash",
    "gemini-2.0-flash-exp",
    "gemini-1.5-pro",
    "gemini-1.5-flash",
)
GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models"

def _chain_from_env(value: str) -> List[str]:
    chain = [m.strip() for m in value.split(",") if m.strip()]
    return chain or list(DEFAULT_MODEL_CHAIN)

class Settings(BaseModel):
    model_config = ConfigDict(protected_namespaces=())
    gemini_api_key: str = ""
    gemini_api_url: str = GEMINI_URL
    # tried strictly in this order, first success wins
    model_chain: List[str] = Field(default_factory=lambda: list(DEFAULT_MODEL_CHAIN))
    # per model attempt; chain worst case is len(model_chain) * this
    model_timeout_s: float = Field(45.0, gt=0)
    log_level: str = "INFO"

def get_settings() -> Settings:
    return Settings(
        gemini_api_key=os.getenv("GEMINI_API_KEY", ""),
        gemini_api_url=os.getenv("GEMINI_API_URL", GEMINI_URL),
        model_chain=_chain_from_env(os.getenv("CEPH_MODEL_CHAIN", "")),
        model_timeout_s=float(os.getenv("CEPH_MODEL_TIMEOUT", "45")),
        log_level=os.getenv("CEPH_LOG_LEVEL", "INFO"),
    )

def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
