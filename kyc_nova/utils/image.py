import base64
import binascii
import io
import re
from typing import Optional, Union

import cv2
import numpy as np
from PIL import Image

from kyc_nova.errors import InvalidInputError

MAX_IMAGE_BYTES = 10 * 1024 * 1024  # 10MB
DATA_URL_PREFIX = re.compile(r"^data:image/[a-zA-Z0-9.+-]+;base64,")


def validate_image_bytes(content: Optional[bytes], label: str = "image") -> bytes:
    if not content:
        raise InvalidInputError("MISSING_IMAGE", f"{label} is required")
    if len(content) > MAX_IMAGE_BYTES:
        raise InvalidInputError("INVALID_IMAGE_SIZE", f"{label} exceeds {MAX_IMAGE_BYTES} bytes")
    return content


def decode_image_payload(payload: Union[str, bytes, None], label: str = "image") -> bytes:
    """Raw bytes from either bytes or a (data-URL) base64 string."""
    if isinstance(payload, (bytes, bytearray)):
        return validate_image_bytes(bytes(payload), label)
    if not payload:
        raise InvalidInputError("MISSING_IMAGE", f"{label} is required")
    data = DATA_URL_PREFIX.sub("", payload.strip())
    try:
        content = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError):
        raise InvalidInputError("INVALID_IMAGE_BASE64", f"{label} is not valid base64")
    return validate_image_bytes(content, label)


def to_data_url(content: bytes, mime: str = "image/jpeg") -> str:
    return f"data:{mime};base64," + base64.b64encode(content).decode()


def decode_image(content: bytes) -> np.ndarray:
    arr = np.frombuffer(content, dtype=np.uint8)
    img = cv2.imdecode(arr, cv2.IMREAD_COLOR)
    if img is None:
        # Try PIL as fallback
        try:
            pil = Image.open(io.BytesIO(content)).convert("RGB")
        except (OSError, ValueError) as e:
            raise InvalidInputError("INVALID_IMAGE_FORMAT", f"Unreadable image: {e}")
        img = cv2.cvtColor(np.array(pil), cv2.COLOR_RGB2BGR)
    return img


def preprocess_for_ocr(img_bgr: np.ndarray) -> np.ndarray:
    gray = cv2.cvtColor(img_bgr, cv2.COLOR_BGR2GRAY)
    gray = cv2.bilateralFilter(gray, 9, 75, 75)
    th = cv2.adaptiveThreshold(gray, 255, cv2.ADAPTIVE_THRESH_MEAN_C,
                               cv2.THRESH_BINARY, 31, 15)
    return th
