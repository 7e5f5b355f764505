"""
Liveness scenario classification.

A capture session yields a burst of frames. In external mode every frame is
classified as normal / photo / blocked, the labels are tallied and the dominant
scenario decides the outcome. In fallback mode (no liveness service
configured) frames are not inspected at all and the session always passes:
the demo trades realism for reliability, and the result says so via its
``source``.
"""
import logging
import random
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence, Union

from kyc_nova.config import Settings
from kyc_nova.errors import InvalidInputError
from kyc_nova.schemas import (
    CapturedFrame,
    LivenessResult,
    RiskAssessment,
    Scenario,
    ScenarioDistribution,
)
from kyc_nova.scoring import RandomScore, ScoreBand, ScoreStrategy
from kyc_nova.services.rekognition import RekognitionClient
from kyc_nova.utils.image import decode_image_payload, to_data_url

logger = logging.getLogger(__name__)

FrameSample = Union[str, bytes]

# Tally/argmax order; on equal counts the earlier scenario wins.
SCENARIO_ORDER = (Scenario.NORMAL, Scenario.BLOCKED, Scenario.PHOTO)

MIN_FRAME_LENGTH = 2000
LARGE_FRAME_LENGTH = 50000
SMALL_FRAME_LENGTH = 5000

NO_FRAMES_ERROR = "No frames captured during the liveness session"


@dataclass(frozen=True)
class ScenarioProfile:
    confidence: ScoreBand
    success: bool
    overall_risk: str
    reason: str


SCENARIO_PROFILES = {
    Scenario.BLOCKED: ScenarioProfile(ScoreBand(15, 25), False, "CRITICAL",
                                      "Camera blocked or covered during verification"),
    Scenario.PHOTO: ScenarioProfile(ScoreBand(25, 45), False, "HIGH",
                                    "Static image or photo detected instead of live person"),
    Scenario.NORMAL: ScenarioProfile(ScoreBand(85, 98), True, "LOW",
                                     "Live person successfully verified"),
}

FALLBACK_CONFIDENCE = ScoreBand(90, 98)


class FrameClassifier(Protocol):
    source: str

    def classify(self, frame: FrameSample) -> CapturedFrame:
        ...


def frame_payload(frame: FrameSample) -> str:
    if isinstance(frame, (bytes, bytearray)):
        return to_data_url(bytes(frame)) if frame else ""
    return frame or ""


class HeuristicFrameClassifier:
    """
    Coarse size-based classifier; no computer vision. Tiny or non-image
    payloads count as a blocked camera, and the photo decision is a weighted
    coin flip on the encoded length.
    """
    source = "scenario_analysis"

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    @staticmethod
    def photo_probability(length: int) -> float:
        if length > LARGE_FRAME_LENGTH:
            return 0.7
        if length < SMALL_FRAME_LENGTH:
            return 0.2
        return 0.3

    def classify(self, frame: FrameSample) -> CapturedFrame:
        payload = frame_payload(frame)
        length = len(payload)

        if not payload or payload == "data:," or "data:image" not in payload or length < MIN_FRAME_LENGTH:
            return CapturedFrame(scenario=Scenario.BLOCKED, size=length)

        if self.rng.random() < self.photo_probability(length):
            return CapturedFrame(scenario=Scenario.PHOTO, size=length)
        return CapturedFrame(scenario=Scenario.NORMAL, size=length)


def face_liveness_score(face: dict) -> float:
    score = 0.0

    quality = face.get("Quality") or {}
    score += quality.get("Brightness", 0) * 0.1
    score += quality.get("Sharpness", 0) * 0.3

    eyes = face.get("EyesOpen") or {}
    if eyes.get("Value") and eyes.get("Confidence", 0) > 80:
        score += 30

    emotions = face.get("Emotions") or []
    score += min(len(emotions) * 5, 20)

    pose = face.get("Pose") or {}
    score += min(abs(pose.get("Yaw", 0)) + abs(pose.get("Pitch", 0)), 10)

    return min(score, 100.0)


class RekognitionFrameClassifier:
    """Per-frame DetectFaces; face-attribute liveness separates live faces from photos."""
    source = "aws_rekognition"

    def __init__(self, rekognition: RekognitionClient, min_face_confidence: float = 80,
                 min_liveness: float = 75):
        self.rekognition = rekognition
        self.min_face_confidence = min_face_confidence
        self.min_liveness = min_liveness

    def classify(self, frame: FrameSample) -> CapturedFrame:
        try:
            image = decode_image_payload(frame, "frame")
        except InvalidInputError:
            return CapturedFrame(scenario=Scenario.BLOCKED, size=len(frame_payload(frame)))

        faces = self.rekognition.detect_faces(image)
        if not faces:
            return CapturedFrame(scenario=Scenario.BLOCKED, size=len(image))

        face = faces[0]
        if face.get("Confidence", 0) > self.min_face_confidence and face_liveness_score(face) > self.min_liveness:
            return CapturedFrame(scenario=Scenario.NORMAL, size=len(image))
        return CapturedFrame(scenario=Scenario.PHOTO, size=len(image))


def tally(frames: Sequence[CapturedFrame]) -> ScenarioDistribution:
    counts = {s: 0 for s in SCENARIO_ORDER}
    for f in frames:
        counts[f.scenario] += 1
    return ScenarioDistribution(**{s.value: n for s, n in counts.items()})


def dominant_scenario(distribution: ScenarioDistribution) -> Optional[Scenario]:
    if distribution.total == 0:
        return None
    best = SCENARIO_ORDER[0]
    for scenario in SCENARIO_ORDER[1:]:
        if distribution.count(scenario) > distribution.count(best):
            best = scenario
    return best


class LivenessClassifier:
    def __init__(self, has_external_liveness_service: bool,
                 frame_classifier: Optional[FrameClassifier] = None,
                 strategy: Optional[ScoreStrategy] = None):
        self.has_external_liveness_service = has_external_liveness_service
        self.frame_classifier = frame_classifier or HeuristicFrameClassifier()
        self.strategy = strategy or RandomScore()

    def _score(self, band: ScoreBand) -> float:
        return round(band.clamp(self.strategy.score(band)), 1)

    def analyze(self, frames: Sequence[FrameSample]) -> LivenessResult:
        frames = list(frames or [])
        if not frames:
            logger.warning("Liveness analysis called with zero frames")
            return self.no_frames()

        if not self.has_external_liveness_service:
            return self.fallback(len(frames))

        try:
            captured = [self.frame_classifier.classify(f) for f in frames]
        except Exception as e:
            logger.warning("Frame classification failed, falling back to demo liveness: %s", e)
            return self.fallback(len(frames))

        distribution = tally(captured)
        scenario = dominant_scenario(distribution)
        profile = SCENARIO_PROFILES[scenario]

        risk = RiskAssessment(
            spoofing_risk=self._score(ScoreBand(70, 95) if scenario is Scenario.PHOTO else ScoreBand(0, 15)),
            obstruction_risk=self._score(ScoreBand(85, 95) if scenario is Scenario.BLOCKED else ScoreBand(0, 8)),
            deepfake_risk=self._score(ScoreBand(0, 5)),
            overall_risk=profile.overall_risk,
        )
        result = LivenessResult(
            success=profile.success,
            confidence=self._score(profile.confidence),
            dominant_scenario=scenario,
            distribution=distribution,
            risk_assessment=risk,
            source=self.frame_classifier.source,
            reason=profile.reason,
        )
        logger.info(
            "Liveness: scenario=%s success=%s confidence=%.1f distribution=%s",
            scenario.value, result.success, result.confidence, distribution.model_dump(),
        )
        return result

    def fallback(self, frame_count: int) -> LivenessResult:
        confidence = self._score(FALLBACK_CONFIDENCE)
        return LivenessResult(
            success=True,
            confidence=confidence,
            dominant_scenario=Scenario.NORMAL,
            distribution=ScenarioDistribution(normal=frame_count),
            risk_assessment=RiskAssessment(
                spoofing_risk=self._score(ScoreBand(0, 5)),
                obstruction_risk=self._score(ScoreBand(0, 3)),
                deepfake_risk=self._score(ScoreBand(0, 2)),
                overall_risk="LOW",
            ),
            source="fallback_analysis",
            reason=f"Live person detected with {confidence}% confidence using fallback analysis",
        )

    def no_frames(self) -> LivenessResult:
        return LivenessResult(
            success=False,
            confidence=0.0,
            dominant_scenario=None,
            distribution=ScenarioDistribution(),
            risk_assessment=RiskAssessment(overall_risk="CRITICAL"),
            source=self.frame_classifier.source if self.has_external_liveness_service else "fallback_analysis",
            reason=NO_FRAMES_ERROR,
            error=NO_FRAMES_ERROR,
        )


def build_liveness_classifier(settings: Settings, rekognition: Optional[RekognitionClient] = None,
                              strategy: Optional[ScoreStrategy] = None,
                              rng: Optional[random.Random] = None) -> LivenessClassifier:
    if rekognition is not None:
        frame_classifier = RekognitionFrameClassifier(rekognition)
    else:
        frame_classifier = HeuristicFrameClassifier(rng)
    return LivenessClassifier(
        has_external_liveness_service=settings.has_external_liveness_service,
        frame_classifier=frame_classifier,
        strategy=strategy,
    )
