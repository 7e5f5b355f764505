import logging
from dataclasses import dataclass
from typing import Optional

import pytesseract
from PIL import Image

from kyc_nova.utils.image import decode_image, preprocess_for_ocr

logger = logging.getLogger(__name__)


@dataclass
class OcrText:
    text: str = ""
    confidence: float = 0.0  # 0..100


class TesseractReader:
    """
    Document text via Tesseract. Line breaks are kept so the labelled field
    patterns can stop at the end of a line.
    """
    def __init__(self, tesseract_cmd: Optional[str] = None, lang: str = "eng"):
        # Optional: allow overriding tesseract path (e.g. on Windows)
        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd
        self.lang = lang

    def read(self, image_bytes: bytes) -> OcrText:
        img = decode_image(image_bytes)
        pil = Image.fromarray(preprocess_for_ocr(img))
        data = pytesseract.image_to_data(pil, output_type=pytesseract.Output.DICT, lang=self.lang)

        lines = {}
        for i, word in enumerate(data.get("text", [])):
            if not word or not word.strip():
                continue
            key = (data["block_num"][i], data["par_num"][i], data["line_num"][i])
            lines.setdefault(key, []).append(word.strip())
        text = "\n".join(" ".join(words) for _, words in sorted(lines.items()))

        conf_vals = []
        for c in data.get("conf", []):
            try:
                value = float(c)
            except (TypeError, ValueError):
                continue
            if value >= 0:
                conf_vals.append(value)
        confidence = max(0.0, min(100.0, sum(conf_vals) / len(conf_vals))) if conf_vals else 0.0

        logger.info("OCR read %d lines (avg confidence %.1f)", len(lines), confidence)
        return OcrText(text=text, confidence=confidence)
