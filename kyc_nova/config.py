import logging.config
import os
from functools import lru_cache
from typing import Optional

from pydantic import BaseModel


def _flag(name: str) -> Optional[bool]:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return None
    return raw in ("1", "true", "yes", "y")


class Settings(BaseModel):
    # AWS Rekognition (faces, liveness sessions, collections)
    AWS_REGION: str = os.getenv("AWS_REGION", "us-east-1")
    AWS_ACCESS_KEY_ID: str | None = os.getenv("AWS_ACCESS_KEY_ID") or None
    AWS_SECRET_ACCESS_KEY: str | None = os.getenv("AWS_SECRET_ACCESS_KEY") or None
    REKOGNITION_S3_BUCKET: str = os.getenv("REKOGNITION_S3_BUCKET", "rekognition-liveness-bucket")

    # Document verification API (Aadhaar-style extraction + authenticity)
    DOCUMENT_API_ENDPOINT: str | None = os.getenv("DOCUMENT_API_ENDPOINT") or None
    DOCUMENT_API_KEY: str | None = os.getenv("DOCUMENT_API_KEY") or None

    # Explicit liveness mode; unset means "external when Rekognition is configured"
    LIVENESS_EXTERNAL_SERVICE: bool | None = _flag("LIVENESS_EXTERNAL_SERVICE")

    # Every external call is bounded by this timeout (seconds)
    EXTERNAL_TIMEOUT_SECONDS: float = float(os.getenv("EXTERNAL_TIMEOUT_SECONDS", "10"))
    FACE_SIMILARITY_THRESHOLD: float = float(os.getenv("FACE_SIMILARITY_THRESHOLD", "80"))

    TESSERACT_CMD: str | None = os.getenv("TESSERACT_CMD") or None

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_JSON: bool = os.getenv("LOG_JSON", "1") == "1"

    @property
    def has_rekognition(self) -> bool:
        return bool(self.AWS_ACCESS_KEY_ID and self.AWS_SECRET_ACCESS_KEY)

    @property
    def has_document_api(self) -> bool:
        return bool(self.DOCUMENT_API_ENDPOINT and self.DOCUMENT_API_KEY)

    @property
    def has_external_liveness_service(self) -> bool:
        if self.LIVENESS_EXTERNAL_SERVICE is not None:
            return self.LIVENESS_EXTERNAL_SERVICE
        return self.has_rekognition

    def service_status(self) -> dict:
        return {
            "document_api": {
                "mode": "real_api" if self.has_document_api else "fallback",
                "endpoint": self.DOCUMENT_API_ENDPOINT or "mock://fallback",
                "status": "connected" if self.has_document_api else "fallback_ready",
            },
            "rekognition": {
                "mode": "aws_real" if self.has_rekognition else "fallback",
                "region": self.AWS_REGION,
                "status": "connected" if self.has_rekognition else "fallback_ready",
            },
            "liveness": {
                "external_service": self.has_external_liveness_service,
            },
        }


@lru_cache
def get_settings() -> Settings:
    return Settings()


def logging_config(settings: Settings) -> dict:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": "logging.Formatter",
                "format": '{"ts":"%(asctime)s","lvl":"%(levelname)s","name":"%(name)s","msg":"%(message)s","module":"%(module)s","line":%(lineno)d}',
            },
            "simple": {"format": "[%(asctime)s] %(levelname)s %(name)s: %(message)s"},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "json" if settings.LOG_JSON else "simple",
            },
        },
        "loggers": {
            "kyc_nova": {"handlers": ["console"], "level": settings.LOG_LEVEL, "propagate": False},
        },
    }


def configure_logging(settings: Optional[Settings] = None) -> None:
    logging.config.dictConfig(logging_config(settings or get_settings()))
