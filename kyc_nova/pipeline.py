"""
Verification session.

Document processing, liveness analysis and (with a selfie) face comparison are
independent, so they run side by side on a small thread pool. The aggregate is
only computed once every stage has finished.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Sequence, Union

from kyc_nova.config import Settings, get_settings
from kyc_nova.schemas import (
    BehavioralSignals,
    FaceComparisonResult,
    LivenessResult,
    VerificationReport,
)
from kyc_nova.scoring import ScoreStrategy
from kyc_nova.services.document import DocumentProcessor, build_document_processor
from kyc_nova.services.face import FaceComparisonService, build_face_service
from kyc_nova.services.liveness import FrameSample, LivenessClassifier, build_liveness_classifier
from kyc_nova.services.rekognition import build_rekognition
from kyc_nova.services.trust import TrustScoreAggregator
from kyc_nova.utils.image import decode_image_payload

logger = logging.getLogger(__name__)


def biometric_score(liveness: LivenessResult, face_match: Optional[FaceComparisonResult] = None) -> float:
    if face_match is None:
        return liveness.confidence
    return (liveness.confidence + face_match.similarity) / 2


class KycPipeline:
    def __init__(self, document_processor: DocumentProcessor, liveness_classifier: LivenessClassifier,
                 face_service: FaceComparisonService, aggregator: Optional[TrustScoreAggregator] = None,
                 max_workers: int = 3):
        self.document_processor = document_processor
        self.liveness_classifier = liveness_classifier
        self.face_service = face_service
        self.aggregator = aggregator or TrustScoreAggregator()
        self.max_workers = max_workers

    def verify(self, document_image: Union[str, bytes, None], frames: Sequence[FrameSample],
               selfie: Union[str, bytes, None] = None,
               behavioral: Union[BehavioralSignals, float, None] = None) -> VerificationReport:
        # Input errors surface before any stage starts
        document_bytes = decode_image_payload(document_image, "document image")
        selfie_bytes = decode_image_payload(selfie, "selfie") if selfie is not None else None

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            doc_future = pool.submit(self.document_processor.process, document_bytes)
            liveness_future = pool.submit(self.liveness_classifier.analyze, list(frames or []))
            face_future = None
            if selfie_bytes is not None:
                face_future = pool.submit(self.face_service.compare, selfie_bytes, document_bytes)

            document = doc_future.result()
            liveness = liveness_future.result()
            face_match = face_future.result() if face_future is not None else None

        trust = self.aggregator.aggregate(
            document.authenticity,
            biometric_score(liveness, face_match),
            behavioral,
        )
        logger.info(
            "Verification complete: document=%s liveness=%s face=%s trust=%.2f (%s)",
            document.authenticity.source,
            liveness.source,
            face_match.source if face_match else "skipped",
            trust.final_score,
            trust.recommendation.value,
        )
        return VerificationReport(document=document, liveness=liveness, face_match=face_match, trust=trust)


def build_pipeline(settings: Optional[Settings] = None, strategy: Optional[ScoreStrategy] = None) -> KycPipeline:
    settings = settings or get_settings()
    rekognition = build_rekognition(settings)
    return KycPipeline(
        document_processor=build_document_processor(settings, strategy=strategy),
        liveness_classifier=build_liveness_classifier(settings, rekognition=rekognition, strategy=strategy),
        face_service=build_face_service(settings, rekognition=rekognition, strategy=strategy),
    )
