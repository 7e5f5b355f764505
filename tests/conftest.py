import cv2
import numpy as np
import pytest

from kyc_nova.config import Settings


@pytest.fixture
def settings():
    # Explicit values so a developer's environment never leaks into tests
    return Settings(
        AWS_REGION="us-east-1",
        AWS_ACCESS_KEY_ID=None,
        AWS_SECRET_ACCESS_KEY=None,
        REKOGNITION_S3_BUCKET="rekognition-liveness-bucket",
        DOCUMENT_API_ENDPOINT=None,
        DOCUMENT_API_KEY=None,
        LIVENESS_EXTERNAL_SERVICE=None,
        EXTERNAL_TIMEOUT_SECONDS=5,
        FACE_SIMILARITY_THRESHOLD=80,
        TESSERACT_CMD=None,
        LOG_LEVEL="INFO",
        LOG_JSON=False,
    )


@pytest.fixture
def aws_settings(settings):
    return settings.model_copy(update={"AWS_ACCESS_KEY_ID": "testing", "AWS_SECRET_ACCESS_KEY": "testing"})


@pytest.fixture
def png_bytes():
    img = np.full((40, 120, 3), 255, dtype=np.uint8)
    cv2.putText(img, "ID", (10, 30), cv2.FONT_HERSHEY_SIMPLEX, 1, (0, 0, 0), 2)
    ok, buf = cv2.imencode(".png", img)
    assert ok
    return buf.tobytes()
