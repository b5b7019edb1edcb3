"""
Record shape normalization

DigiLocker exports come in two physical layouts. Each raw record is classified
into exactly one shape variant and every variant has its own mapping into the
CertificateRecord layout.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from .models import Source


@dataclass(frozen=True)
class NestedPersonShape:
    """{"Certificate": {"IssuedTo": {"Person": {...}}, "number": ..., "CertificateData": {...}}}"""
    raw: Dict[str, Any]


@dataclass(frozen=True)
class FlatFieldShape:
    """{"Student Name": ..., "Roll Number": ..., "Certificate ID": ..., ...}"""
    raw: Dict[str, Any]


@dataclass(frozen=True)
class UnrecognizedShape:
    """Already CertificateRecord-shaped, or unknown; passed through as-is"""
    raw: Any


RecordShape = Union[NestedPersonShape, FlatFieldShape, UnrecognizedShape]

FLAT_FIELD_MAP = {
    "name": "Student Name",
    "rollNumber": "Roll Number",
    "certificateId": "Certificate ID",
    "dateOfBirth": "Date of Birth",
    "fathersName": "Father's Name",
    "mothersName": "Mother's Name",
}


def resolve_path(record: Any, path: str) -> Any:
    """Walk a dotted key path through nested mappings; None if any hop is missing"""
    current = record
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return None
        current = current[part]
    return current


def classify(raw: Any, source: Source) -> RecordShape:
    if source != Source.DIGILOCKER or not isinstance(raw, dict):
        return UnrecognizedShape(raw)

    if isinstance(resolve_path(raw, "Certificate.IssuedTo.Person"), dict):
        return NestedPersonShape(raw)

    if raw.get("Student Name"):
        return FlatFieldShape(raw)

    return UnrecognizedShape(raw)


def _map_nested(shape: NestedPersonShape) -> Dict[str, Any]:
    certificate = shape.raw["Certificate"]
    person = certificate["IssuedTo"]["Person"]
    return {
        "name": person.get("name"),
        "rollNumber": certificate.get("number"),
        "certificateId": resolve_path(certificate, "CertificateData.Examination.admitCardId"),
        "dateOfBirth": person.get("dob"),
        "fathersName": person.get("swd"),
        "mothersName": person.get("motherName"),
    }


def _map_flat(shape: FlatFieldShape) -> Dict[str, Any]:
    return {
        field: shape.raw.get(label) or None
        for field, label in FLAT_FIELD_MAP.items()
    }


def to_certificate_record(shape: RecordShape) -> Optional[Dict[str, Any]]:
    """Map a classified record into CertificateRecord layout (as a plain mapping)"""
    if isinstance(shape, NestedPersonShape):
        return _map_nested(shape)
    if isinstance(shape, FlatFieldShape):
        return _map_flat(shape)
    if isinstance(shape, UnrecognizedShape):
        return shape.raw if isinstance(shape.raw, dict) else None
    raise TypeError(f"Unknown record shape: {type(shape).__name__}")


def normalize_record(raw: Any, source: Source) -> Optional[Dict[str, Any]]:
    return to_certificate_record(classify(raw, source))
