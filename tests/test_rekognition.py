import boto3
import pytest
from botocore.stub import Stubber

from kyc_nova.services.face import FaceComparisonService
from kyc_nova.services.rekognition import (
    RekognitionClient,
    assess_face_quality,
    build_rekognition,
    make_boto_client,
)

SESSION_ID = "0f6a0d1c-6a6f-4d0b-9d1c-2f1e3a4b5c6d"

GOOD_FACE = {
    "Confidence": 99.0,
    "Quality": {"Brightness": 70.0, "Sharpness": 85.0},
    "EyesOpen": {"Value": True, "Confidence": 97.0},
}


@pytest.fixture
def boto_client():
    return boto3.client(
        "rekognition",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )


@pytest.fixture
def stubbed(aws_settings, boto_client):
    with Stubber(boto_client) as stubber:
        yield RekognitionClient(aws_settings, client=boto_client), stubber
        stubber.assert_no_pending_responses()


def test_compare_faces_sorted_best_first(stubbed):
    client, stubber = stubbed
    stubber.add_response(
        "compare_faces",
        {"FaceMatches": [
            {"Similarity": 91.0, "Face": {"Confidence": 99.0}},
            {"Similarity": 97.0, "Face": {"Confidence": 98.0}},
        ]},
        {"SourceImage": {"Bytes": b"src"}, "TargetImage": {"Bytes": b"dst"}, "SimilarityThreshold": 80.0},
    )

    matches = client.compare_faces(b"src", b"dst")
    assert [m["similarity"] for m in matches] == [97.0, 91.0]


def test_detect_faces_and_quality(stubbed):
    client, stubber = stubbed
    stubber.add_response(
        "detect_faces",
        {"FaceDetails": [GOOD_FACE]},
        {"Image": {"Bytes": b"img"}, "Attributes": ["ALL"]},
    )

    report = client.validate_image_quality(b"img")
    assert report.valid is True
    assert report.message == "Image quality is acceptable"


def test_detect_labels(stubbed):
    client, stubber = stubbed
    stubber.add_response(
        "detect_labels",
        {"Labels": [{"Name": "Person", "Confidence": 99.1}]},
        {"Image": {"Bytes": b"img"}, "MaxLabels": 10, "MinConfidence": 75.0},
    )
    assert client.detect_labels(b"img") == [{"name": "Person", "confidence": 99.1}]


def test_liveness_session_roundtrip(stubbed):
    client, stubber = stubbed
    stubber.add_response(
        "create_face_liveness_session",
        {"SessionId": SESSION_ID},
        {"Settings": {"OutputConfig": {"S3Bucket": "rekognition-liveness-bucket"}, "AuditImagesLimit": 4}},
    )
    stubber.add_response(
        "get_face_liveness_session_results",
        {"SessionId": SESSION_ID, "Status": "SUCCEEDED", "Confidence": 96.4},
        {"SessionId": SESSION_ID},
    )

    session = client.start_liveness_session()
    assert session.session_id == SESSION_ID

    results = client.get_liveness_results(SESSION_ID)
    assert results.status == "SUCCEEDED"
    assert results.confidence == 96.4
    assert results.audit_images == []


def test_collections(stubbed):
    client, stubber = stubbed
    stubber.add_response(
        "create_collection",
        {"CollectionArn": "aws:rekognition:us-east-1:123456789012:collection/kyc", "FaceModelVersion": "7.0",
         "StatusCode": 200},
        {"CollectionId": "kyc"},
    )
    stubber.add_response(
        "search_faces_by_image",
        {"FaceMatches": [{"Similarity": 99.2, "Face": {"FaceId": "11111111-2222-3333-4444-555555555555",
                                                        "ExternalImageId": "user-1"}}]},
        {"CollectionId": "kyc", "Image": {"Bytes": b"img"}, "FaceMatchThreshold": 80.0, "MaxFaces": 5},
    )

    assert client.create_collection("kyc")["status_code"] == 200
    assert client.search_faces(b"img", "kyc") == [
        {"similarity": 99.2, "face_id": "11111111-2222-3333-4444-555555555555", "external_image_id": "user-1"},
    ]


def test_client_error_falls_back_in_face_service(stubbed):
    client, stubber = stubbed
    stubber.add_client_error("compare_faces", service_error_code="ThrottlingException", http_status_code=400)

    result = FaceComparisonService(client).compare(b"selfie", b"document")
    assert result.source == "fallback_comparison"


@pytest.mark.parametrize("faces, message", [
    ([], "No faces detected in the image"),
    ([GOOD_FACE, GOOD_FACE], "Multiple faces detected. Please ensure only one face is visible."),
    ([dict(GOOD_FACE, Quality={"Brightness": 30.0, "Sharpness": 85.0})],
     "Image brightness is not optimal. Please ensure good lighting."),
    ([dict(GOOD_FACE, Quality={"Brightness": 70.0, "Sharpness": 50.0})],
     "Image is not sharp enough. Please ensure the camera is in focus."),
    ([dict(GOOD_FACE, EyesOpen={"Value": False, "Confidence": 97.0})],
     "Please keep your eyes open during capture."),
])
def test_quality_rejections(faces, message):
    report = assess_face_quality(faces)
    assert report.valid is False
    assert report.message == message


def test_boto_client_is_bounded(aws_settings):
    client = make_boto_client(aws_settings)
    assert client.meta.config.connect_timeout == 5
    assert client.meta.config.read_timeout == 5
    assert client.meta.region_name == "us-east-1"


def test_build_rekognition_requires_credentials(settings, aws_settings):
    assert build_rekognition(settings) is None
    assert isinstance(build_rekognition(aws_settings), RekognitionClient)
