import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Optional

import requests

from kyc_nova.config import Settings
from kyc_nova.errors import ExternalServiceError
from kyc_nova.schemas import (
    AuthenticityResult,
    DocumentScan,
    ExternalAuthenticity,
    FallbackAuthenticity,
    SecurityFeatureCheck,
)
from kyc_nova.scoring import RandomScore, ScoreBand, ScoreStrategy, clamp_percent
from kyc_nova.services.extractor import calculate_document_risk, classify_document, extract_fields
from kyc_nova.services.ocr import OcrText, TesseractReader
from kyc_nova.utils.image import validate_image_bytes

logger = logging.getLogger(__name__)

FALLBACK_CONFIDENCE = ScoreBand(92.0, 98.0)

# feature -> confidence the fallback scan must exceed for the feature to count as authentic
FALLBACK_FEATURE_THRESHOLDS = {
    "hologram": 95.0,
    "microtext": 93.0,
    "uv_features": 90.0,
    "barcode_data": 94.0,
}

# external API field name -> ExtractedDocumentFields attribute
_API_FIELD_MAP = {
    "name": "name",
    "dob": "date_of_birth",
    "date_of_birth": "date_of_birth",
    "aadhaar_number": "document_number",
    "document_number": "document_number",
    "expiry_date": "expiry_date",
    "nationality": "nationality",
    "address": "address",
}


@dataclass
class ExternalDocumentResponse:
    confidence: float
    features: Dict[str, SecurityFeatureCheck] = field(default_factory=dict)
    fields: Dict[str, str] = field(default_factory=dict)
    api_version: Optional[str] = None
    processing_time_ms: Optional[float] = None


class DocumentVerificationClient:
    """
    Third-party document verification / extraction API (Aadhaar-style).
    Raises on any transport, HTTP or payload problem; callers decide the fallback.
    """
    def __init__(self, endpoint: str, api_key: str, timeout: float = 10.0,
                 session: Optional[requests.Session] = None):
        self.endpoint = endpoint
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def verify(self, image_bytes: bytes) -> ExternalDocumentResponse:
        headers = {
            "Accept": "application/json",
            "Authorization": f"Bearer {self.api_key}",
            "X-API-Version": "2.0",
        }
        files = {"document_image": ("document.jpg", image_bytes, "image/jpeg")}
        data = {"extract_fields": "name,dob,address,document_number"}

        resp = self.session.post(self.endpoint, headers=headers, files=files, data=data, timeout=self.timeout)
        resp.raise_for_status()
        try:
            payload = resp.json()
        except ValueError as e:
            raise ExternalServiceError("document_api", f"invalid JSON: {e}")
        return self._parse(payload)

    @staticmethod
    def _parse(payload) -> ExternalDocumentResponse:
        if not isinstance(payload, dict) or payload.get("confidence_score") is None:
            raise ExternalServiceError("document_api", "response has no confidence_score")
        try:
            raw = float(payload["confidence_score"])
        except (TypeError, ValueError):
            raise ExternalServiceError("document_api", "confidence_score is not numeric")
        if not math.isfinite(raw):
            raise ExternalServiceError("document_api", f"confidence_score is not finite: {raw}")
        confidence = clamp_percent(raw)

        features = {}
        for name, check in (payload.get("security_features") or {}).items():
            if not isinstance(check, dict):
                continue
            authentic = check.get("authentic", check.get("genuine", check.get("valid", False)))
            features[name] = SecurityFeatureCheck(
                detected=bool(check.get("detected", True)),
                authentic=bool(authentic),
            )

        fields = {}
        for key, value in (payload.get("extracted_data") or {}).items():
            attr = _API_FIELD_MAP.get(key)
            if attr and value:
                fields[attr] = str(value).strip()

        return ExternalDocumentResponse(
            confidence=confidence,
            features=features,
            fields=fields,
            api_version=payload.get("api_version"),
            processing_time_ms=payload.get("processing_time_ms"),
        )


class DocumentAuthenticityScorer:
    def __init__(self, client: Optional[DocumentVerificationClient] = None,
                 strategy: Optional[ScoreStrategy] = None):
        self.client = client
        self.strategy = strategy or RandomScore()

    def score(self, image_bytes: bytes) -> AuthenticityResult:
        result, _ = self.score_with_fields(image_bytes)
        return result

    def score_with_fields(self, image_bytes: bytes) -> tuple[AuthenticityResult, Dict[str, str]]:
        if self.client is not None:
            try:
                resp = self.client.verify(image_bytes)
                logger.info("Document API verification ok (confidence %.1f)", resp.confidence)
                return ExternalAuthenticity(
                    confidence=resp.confidence,
                    features=resp.features,
                    api_version=resp.api_version,
                    processing_time_ms=resp.processing_time_ms,
                ), resp.fields
            except Exception as e:
                logger.warning("Document API failed, falling back to demo scoring: %s", e)
        return self.fallback(), {}

    def fallback(self) -> FallbackAuthenticity:
        confidence = round(self.strategy.score(FALLBACK_CONFIDENCE), 1)
        features = {
            name: SecurityFeatureCheck(detected=True, authentic=confidence > threshold)
            for name, threshold in FALLBACK_FEATURE_THRESHOLDS.items()
        }
        return FallbackAuthenticity(confidence=confidence, features=features)


class DocumentProcessor:
    """OCR -> field extraction -> authenticity -> document type and risk."""

    def __init__(self, scorer: DocumentAuthenticityScorer, reader: Optional[TesseractReader] = None):
        self.scorer = scorer
        self.reader = reader

    def read_text(self, image_bytes: bytes) -> OcrText:
        if self.reader is None:
            return OcrText()
        try:
            return self.reader.read(image_bytes)
        except Exception as e:
            logger.warning("OCR failed, continuing without text: %s", e)
            return OcrText()

    def process(self, image_bytes: Optional[bytes]) -> DocumentScan:
        image_bytes = validate_image_bytes(image_bytes, "document image")

        ocr = self.read_text(image_bytes)
        fields = extract_fields(ocr.text)

        authenticity, api_fields = self.scorer.score_with_fields(image_bytes)
        if api_fields:
            fields = fields.model_copy(update=api_fields)

        scan = DocumentScan(
            fields=fields,
            authenticity=authenticity,
            document_type=classify_document(ocr.text),
            risk_score=calculate_document_risk(fields, authenticity.confidence),
            ocr_text=ocr.text,
        )
        logger.info(
            "Document processed: type=%s source=%s confidence=%.1f risk=%.1f",
            scan.document_type, authenticity.source, authenticity.confidence, scan.risk_score,
        )
        return scan


def build_document_processor(settings: Settings, strategy: Optional[ScoreStrategy] = None,
                             reader: Optional[TesseractReader] = None) -> DocumentProcessor:
    client = None
    if settings.has_document_api:
        client = DocumentVerificationClient(
            endpoint=settings.DOCUMENT_API_ENDPOINT,
            api_key=settings.DOCUMENT_API_KEY,
            timeout=settings.EXTERNAL_TIMEOUT_SECONDS,
        )
    if reader is None:
        reader = TesseractReader(tesseract_cmd=settings.TESSERACT_CMD)
    return DocumentProcessor(DocumentAuthenticityScorer(client, strategy), reader)
