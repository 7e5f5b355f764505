import re
from typing import Optional

from kyc_nova.schemas import ExtractedDocumentFields

_DATE = r"(\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2,4})"

# Ordered: one labelled pattern per field, first capture group wins.
FIELD_PATTERNS = [
    ("name", re.compile(r"\b(?:name|nome|nom|naam)[\s:]*([a-zA-Z][a-zA-Z \t]*)(?:\n|$)", re.IGNORECASE)),
    ("document_number", re.compile(r"\b(?:no|number|num|nr)\b[\s.:#]*([A-Z0-9]+)", re.IGNORECASE)),
    ("date_of_birth", re.compile(r"\b(?:dob|birth|born|naissance)[\s:]*" + _DATE, re.IGNORECASE)),
    ("expiry_date", re.compile(r"\b(?:exp|expires|expiry|valid)[\s:]*" + _DATE, re.IGNORECASE)),
    ("nationality", re.compile(r"\b(?:nationality|country|pays|land)[\s:]*([a-zA-Z][a-zA-Z \t]*)", re.IGNORECASE)),
    ("address", re.compile(r"\b(?:address|addr)[\s:]*([^\n]+)", re.IGNORECASE)),
]

DOCUMENT_TYPES = [
    ("Driver License", ["license", "driving", "driver", "class"]),
    ("Passport", ["passport", "travel", "country", "issued"]),
    ("National ID", ["identity", "national", "citizen", "id"]),
    ("State ID", ["state", "identification", "resident"]),
]


def extract_fields(text: Optional[str]) -> ExtractedDocumentFields:
    fields = {}
    if not text:
        return ExtractedDocumentFields()

    for key, pattern in FIELD_PATTERNS:
        m = pattern.search(text)
        if m:
            value = m.group(1).strip()
            if value:
                fields[key] = value

    return ExtractedDocumentFields(**fields)


def classify_document(text: Optional[str]) -> str:
    lowered = (text or "").lower()
    for doc_type, keywords in DOCUMENT_TYPES:
        if any(k in lowered for k in keywords):
            return doc_type
    return "Unknown Document"


def calculate_document_risk(fields: ExtractedDocumentFields, confidence: float) -> float:
    risk = 5.0
    if not fields.name:
        risk += 15
    if not fields.document_number:
        risk += 10
    if confidence < 90:
        risk += 20
    return max(1.0, min(95.0, risk))
