import pytest

from kyc_nova.errors import InvalidInputError
from kyc_nova.pipeline import KycPipeline, biometric_score, build_pipeline
from kyc_nova.schemas import Recommendation
from kyc_nova.scoring import FixedScore
from kyc_nova.services.document import DocumentAuthenticityScorer, DocumentProcessor
from kyc_nova.services.face import FaceComparisonService
from kyc_nova.services.liveness import HeuristicFrameClassifier, LivenessClassifier
from kyc_nova.services.ocr import OcrText, TesseractReader
from kyc_nova.services.trust import TrustScoreAggregator


class StubReader:
    def read(self, image_bytes):
        return OcrText(text="PASSPORT\nName: Jane Doe\nNo: AB123456", confidence=90.0)


@pytest.fixture
def pipeline():
    return KycPipeline(
        document_processor=DocumentProcessor(DocumentAuthenticityScorer(strategy=FixedScore(95)), StubReader()),
        liveness_classifier=LivenessClassifier(False, strategy=FixedScore(94)),
        face_service=FaceComparisonService(strategy=FixedScore(96)),
        aggregator=TrustScoreAggregator(),
    )


def test_full_session(pipeline):
    report = pipeline.verify(b"document", ["frame"] * 5, selfie=b"selfie", behavioral=75)

    assert report.document.fields.name == "Jane Doe"
    assert report.liveness.confidence == 94
    assert report.face_match.similarity == 96
    # (95 * 40 + 95 * 35 + 75 * 25) / 100
    assert report.trust.final_score == 90
    assert report.trust.recommendation is Recommendation.APPROVED


def test_trust_equals_aggregate_of_stage_results(pipeline):
    report = pipeline.verify(b"document", ["frame"] * 5, selfie=b"selfie")
    expected = TrustScoreAggregator().aggregate(
        report.document.authenticity,
        biometric_score(report.liveness, report.face_match),
    )
    assert report.trust.final_score == expected.final_score
    assert report.trust.factors == expected.factors


def test_without_selfie_biometric_is_liveness(pipeline):
    report = pipeline.verify(b"document", ["frame"] * 5)

    assert report.face_match is None
    assert report.trust.factors[1].score == 94
    assert report.trust.final_score == 89.65
    assert report.trust.recommendation is Recommendation.APPROVED_WITH_MONITORING


def test_zero_frames_lowers_trust(pipeline):
    report = pipeline.verify(b"document", [])

    assert report.liveness.success is False
    assert report.liveness.error
    assert report.trust.final_score == 56.75
    assert report.trust.recommendation is Recommendation.REVIEW_REQUIRED


def test_data_url_document(pipeline):
    report = pipeline.verify("data:image/jpeg;base64,ZG9jdW1lbnQ=", ["frame"])
    assert report.document.authenticity.confidence == 95


def test_missing_document_is_rejected(pipeline):
    with pytest.raises(InvalidInputError) as exc:
        pipeline.verify(None, ["frame"])
    assert exc.value.code == "MISSING_IMAGE"


def test_invalid_selfie_is_rejected(pipeline):
    with pytest.raises(InvalidInputError) as exc:
        pipeline.verify(b"document", ["frame"], selfie="@@@")
    assert exc.value.code == "INVALID_IMAGE_BASE64"


def test_build_pipeline_in_fallback_mode(settings):
    pipeline = build_pipeline(settings, strategy=FixedScore(95))

    assert pipeline.document_processor.scorer.client is None
    assert isinstance(pipeline.document_processor.reader, TesseractReader)
    assert pipeline.liveness_classifier.has_external_liveness_service is False
    assert isinstance(pipeline.liveness_classifier.frame_classifier, HeuristicFrameClassifier)
    assert pipeline.face_service.rekognition is None
