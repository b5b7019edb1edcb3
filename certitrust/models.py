from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Source(str, Enum):
    BLOCKCHAIN = "Blockchain"
    DIGILOCKER = "DigiLocker"
    NONE = "None"


class Verdict(str, Enum):
    VALID = "Valid"
    SUSPICIOUS = "Suspicious"
    FORGED = "Forged"


class CertificateRecord(BaseModel):
    """Identity record as extracted from a certificate or stored on the blockchain.

    Field names are the wire names: they are part of the fingerprinted structure.
    """

    name: str
    rollNumber: Optional[str] = None
    certificateId: Optional[str] = None
    dateOfBirth: Optional[str] = None
    fathersName: Optional[str] = None
    mothersName: Optional[str] = None


def coerce_null_sentinel(record: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy where a literal "null" certificateId becomes a real absence"""
    coerced = dict(record)
    if coerced.get("certificateId") == "null":
        coerced["certificateId"] = None
    return coerced


class ExtractionResult(BaseModel):
    """Structured fields and tampering assessment returned by the OCR oracle"""

    name: str
    rollNumber: Optional[str] = None
    certificateId: Optional[str] = None
    dateOfBirth: Optional[str] = None
    fathersName: Optional[str] = None
    mothersName: Optional[str] = None
    tamperingScore: float
    tamperingExplanation: str = ""

    def certificate_record(self) -> CertificateRecord:
        return CertificateRecord(
            name=self.name,
            rollNumber=self.rollNumber,
            certificateId=self.certificateId,
            dateOfBirth=self.dateOfBirth,
            fathersName=self.fathersName,
            mothersName=self.mothersName,
        )


class MatchResult(BaseModel):
    match: bool = False
    record: Optional[Dict[str, Any]] = None
    field_similarity_score: float = 0.0
    shell_id_match: bool = False
    verified_shell_id: str = ""
    matched_record: Optional[Any] = None

    @property
    def found(self) -> bool:
        return self.match or self.shell_id_match


# ------------------------
# Verification outcome
# ------------------------
class _Outcome(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class OcrDetails(_Outcome):
    data: CertificateRecord
    accuracy: float
    used_qr: bool = False


class SourceDetails(_Outcome):
    name: Source
    match: bool
    verified_shell_id: str = ""
    unverified_shell_id: str = ""


class TamperingDetails(_Outcome):
    score: float
    explanation: str


class BlockchainDetails(_Outcome):
    verified: bool


class OutcomeDetails(_Outcome):
    ocr: OcrDetails
    source: SourceDetails
    tampering: TamperingDetails
    blockchain: BlockchainDetails


class VerificationOutcome(_Outcome):
    verdict: Verdict
    trust_score: int = Field(ge=0, le=100)
    details: OutcomeDetails


# ------------------------
# Record store append
# ------------------------
class AppendStatus(str, Enum):
    CREATED = "created"
    DUPLICATE = "duplicate"
    INVALID = "invalid"


class AppendResult(BaseModel):
    status: AppendStatus
    message: str
    shell_id: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status == AppendStatus.CREATED
