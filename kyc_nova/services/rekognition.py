"""
Thin AWS Rekognition wrapper.

Every call is bounded by the configured timeout and made exactly once (no
botocore retries). Errors propagate as botocore exceptions; the face, liveness
and pipeline services own the fallback policy.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import boto3
from botocore.config import Config

from kyc_nova.config import Settings

logger = logging.getLogger(__name__)

MIN_BRIGHTNESS = 50
MAX_BRIGHTNESS = 90
MIN_SHARPNESS = 70


@dataclass
class ImageQualityReport:
    valid: bool
    message: str
    face: Optional[Dict[str, Any]] = None


@dataclass
class LivenessSession:
    session_id: str
    status: Optional[str] = None
    confidence: Optional[float] = None
    audit_images: List[Dict[str, Any]] = field(default_factory=list)
    reference_image: Optional[Dict[str, Any]] = None


def make_boto_client(settings: Settings):
    config = Config(
        connect_timeout=settings.EXTERNAL_TIMEOUT_SECONDS,
        read_timeout=settings.EXTERNAL_TIMEOUT_SECONDS,
        retries={"total_max_attempts": 1, "mode": "standard"},
    )
    return boto3.client(
        "rekognition",
        region_name=settings.AWS_REGION,
        aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
        aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
        config=config,
    )


class RekognitionClient:
    def __init__(self, settings: Settings, client=None):
        self.settings = settings
        self.client = client or make_boto_client(settings)

    # Faces

    def compare_faces(self, source: bytes, target: bytes, threshold: float = 80) -> List[Dict[str, Any]]:
        """Face matches sorted by similarity, best first."""
        resp = self.client.compare_faces(
            SourceImage={"Bytes": source},
            TargetImage={"Bytes": target},
            SimilarityThreshold=float(threshold),
        )
        matches = [
            {"similarity": m.get("Similarity", 0.0), "face": m.get("Face", {})}
            for m in resp.get("FaceMatches", [])
        ]
        matches.sort(key=lambda m: m["similarity"], reverse=True)
        return matches

    def detect_faces(self, image: bytes) -> List[Dict[str, Any]]:
        resp = self.client.detect_faces(Image={"Bytes": image}, Attributes=["ALL"])
        return resp.get("FaceDetails", [])

    def detect_labels(self, image: bytes, max_labels: int = 10, min_confidence: float = 75) -> List[Dict[str, Any]]:
        resp = self.client.detect_labels(
            Image={"Bytes": image}, MaxLabels=max_labels, MinConfidence=float(min_confidence)
        )
        return [
            {"name": label["Name"], "confidence": label.get("Confidence", 0.0)}
            for label in resp.get("Labels", [])
        ]

    def validate_image_quality(self, image: bytes) -> ImageQualityReport:
        return assess_face_quality(self.detect_faces(image))

    # Face Liveness sessions

    def start_liveness_session(self) -> LivenessSession:
        resp = self.client.create_face_liveness_session(
            Settings={
                "OutputConfig": {"S3Bucket": self.settings.REKOGNITION_S3_BUCKET},
                "AuditImagesLimit": 4,
            }
        )
        logger.info("Started liveness session %s", resp["SessionId"])
        return LivenessSession(session_id=resp["SessionId"])

    def get_liveness_results(self, session_id: str) -> LivenessSession:
        resp = self.client.get_face_liveness_session_results(SessionId=session_id)
        return LivenessSession(
            session_id=resp["SessionId"],
            status=resp.get("Status"),
            confidence=resp.get("Confidence"),
            audit_images=resp.get("AuditImages", []),
            reference_image=resp.get("ReferenceImage"),
        )

    # Collections

    def create_collection(self, collection_id: str) -> Dict[str, Any]:
        resp = self.client.create_collection(CollectionId=collection_id)
        return {
            "collection_arn": resp.get("CollectionArn"),
            "face_model_version": resp.get("FaceModelVersion"),
            "status_code": resp.get("StatusCode"),
        }

    def index_face(self, image: bytes, collection_id: str, external_image_id: str) -> List[Dict[str, Any]]:
        resp = self.client.index_faces(
            CollectionId=collection_id,
            Image={"Bytes": image},
            ExternalImageId=external_image_id,
            MaxFaces=1,
            QualityFilter="AUTO",
            DetectionAttributes=["ALL"],
        )
        return [r.get("Face", {}) for r in resp.get("FaceRecords", [])]

    def search_faces(self, image: bytes, collection_id: str, threshold: float = 80,
                     max_faces: int = 5) -> List[Dict[str, Any]]:
        resp = self.client.search_faces_by_image(
            CollectionId=collection_id,
            Image={"Bytes": image},
            FaceMatchThreshold=float(threshold),
            MaxFaces=max_faces,
        )
        return [
            {
                "similarity": m.get("Similarity", 0.0),
                "face_id": m.get("Face", {}).get("FaceId"),
                "external_image_id": m.get("Face", {}).get("ExternalImageId"),
            }
            for m in resp.get("FaceMatches", [])
        ]


def assess_face_quality(faces: List[Dict[str, Any]]) -> ImageQualityReport:
    if not faces:
        return ImageQualityReport(False, "No faces detected in the image")
    if len(faces) > 1:
        return ImageQualityReport(False, "Multiple faces detected. Please ensure only one face is visible.")

    face = faces[0]
    quality = face.get("Quality", {})
    brightness = quality.get("Brightness", 0)
    if brightness < MIN_BRIGHTNESS or brightness > MAX_BRIGHTNESS:
        return ImageQualityReport(False, "Image brightness is not optimal. Please ensure good lighting.", face)
    if quality.get("Sharpness", 0) < MIN_SHARPNESS:
        return ImageQualityReport(False, "Image is not sharp enough. Please ensure the camera is in focus.", face)
    if not face.get("EyesOpen", {}).get("Value", False):
        return ImageQualityReport(False, "Please keep your eyes open during capture.", face)

    return ImageQualityReport(True, "Image quality is acceptable", face)


def build_rekognition(settings: Settings) -> Optional[RekognitionClient]:
    if not settings.has_rekognition:
        logger.warning("AWS Rekognition credentials not configured; services will use fallback mode")
        return None
    return RekognitionClient(settings)
