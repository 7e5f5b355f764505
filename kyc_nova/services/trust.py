"""
Trust score aggregation.

Three factors feed the final 0-100 score: document authenticity (40%),
biometric / liveness confidence (35%) and behavioral signals (25%). Weights are
whole percents so that the weighted sum is exact for whole-number inputs
(85/80/75 gives 80.75, not 80.74999...).
"""
import logging
from typing import List, Optional, Union

from kyc_nova.schemas import (
    BehavioralSignals,
    ExternalAuthenticity,
    FaceComparisonResult,
    FallbackAuthenticity,
    Impact,
    LivenessResult,
    Recommendation,
    TrustFactor,
    TrustScoreResult,
)
from kyc_nova.scoring import clamp_percent

logger = logging.getLogger(__name__)

DEFAULT_BEHAVIORAL_SCORE = 75.0

RECOMMENDATION_MESSAGES = {
    Recommendation.APPROVED: "All verification criteria exceeded. Recommended for immediate approval.",
    Recommendation.APPROVED_WITH_MONITORING: "Good verification results. Approved with standard monitoring.",
    Recommendation.REVIEW_REQUIRED: "Additional review recommended before final approval.",
}

DocumentInput = Union[ExternalAuthenticity, FallbackAuthenticity, float, int]
BiometricInput = Union[LivenessResult, FaceComparisonResult, float, int]
BehavioralInput = Union[BehavioralSignals, float, int, None]


def analyze_behavior(signals: Optional[BehavioralSignals]) -> float:
    score = 75.0
    if signals is None:
        return score

    if signals.natural_mouse_movement is not None:
        score += 10 if signals.natural_mouse_movement else -5
    if signals.human_typing_cadence is not None:
        score += 8 if signals.human_typing_cadence else -8

    # 0 means the session clock never started
    t = signals.session_time_seconds
    if t:
        if 30 < t < 600:
            score += 5
        elif t < 10:
            score -= 15

    return max(30.0, min(100.0, score))


def impact_label(score: float, medium_threshold: float = 75) -> Impact:
    if score > 90:
        return "High Positive"
    if score > medium_threshold:
        return "Medium Positive"
    return "Low Positive"


def recommend(final_score: float) -> Recommendation:
    if final_score >= 90:
        return Recommendation.APPROVED
    if final_score >= 75:
        return Recommendation.APPROVED_WITH_MONITORING
    return Recommendation.REVIEW_REQUIRED


def _document_score(document: DocumentInput) -> float:
    if isinstance(document, (ExternalAuthenticity, FallbackAuthenticity)):
        return document.confidence
    return float(document)


def _biometric_score(biometric: BiometricInput) -> float:
    if isinstance(biometric, LivenessResult):
        return biometric.confidence
    if isinstance(biometric, FaceComparisonResult):
        return biometric.similarity
    return float(biometric)


def _behavioral_score(behavioral: BehavioralInput) -> float:
    if behavioral is None:
        return DEFAULT_BEHAVIORAL_SCORE
    if isinstance(behavioral, BehavioralSignals):
        return analyze_behavior(behavioral)
    return float(behavioral)


class TrustScoreAggregator:
    # category -> weight in whole percents; must total 100
    WEIGHTS = {
        "document": 40,
        "biometric": 35,
        "behavioral": 25,
    }

    def aggregate(self, document: DocumentInput, biometric: BiometricInput,
                  behavioral: BehavioralInput = None) -> TrustScoreResult:
        doc = clamp_percent(_document_score(document))
        bio = clamp_percent(_biometric_score(biometric))
        beh = clamp_percent(_behavioral_score(behavioral))

        weighted = (
            doc * self.WEIGHTS["document"]
            + bio * self.WEIGHTS["biometric"]
            + beh * self.WEIGHTS["behavioral"]
        )
        final_score = clamp_percent(round(weighted / 100, 2))

        factors: List[TrustFactor] = [
            TrustFactor(
                category="Document Authenticity",
                score=doc,
                impact=impact_label(doc),
                details=f"Document confidence: {doc:.1f}%",
            ),
            TrustFactor(
                category="Biometric Match",
                score=bio,
                impact=impact_label(bio, medium_threshold=85),
                details=f"Face match confidence: {bio:.1f}%",
            ),
            TrustFactor(
                category="Behavioral Analysis",
                score=beh,
                impact=impact_label(beh),
                details="User interaction patterns analysis",
            ),
        ]

        recommendation = recommend(final_score)
        logger.info("Trust score %.2f -> %s", final_score, recommendation.value)
        return TrustScoreResult(
            final_score=final_score,
            factors=factors,
            recommendation=recommendation,
            recommendation_message=RECOMMENDATION_MESSAGES[recommendation],
        )
