import logging
from typing import Optional

from config import BLOCKCHAIN_KEY, DIGILOCKER_KEY
from .canonical import fingerprint
from .decision import DecisionEngine
from .extractor import CertificateExtractor
from .file_converter import validate_data_uri
from .matcher import FuzzyMatcher
from .models import ExtractionResult, Source, VerificationOutcome
from .store import RecordStoreGateway

logger = logging.getLogger(__name__)


def verify_extraction(extraction: ExtractionResult,
                      gateway: RecordStoreGateway) -> VerificationOutcome:
    """
    Verify already-extracted certificate data against the record stores

    Blockchain is always checked first; DigiLocker is only read when the
    Blockchain has no match.
    """
    matcher = FuzzyMatcher()
    decision_engine = DecisionEngine()

    ocr_data = extraction.certificate_record()
    unverified_shell_id = fingerprint(ocr_data)

    # Step 1: Blockchain
    blockchain_records = gateway.get_all(BLOCKCHAIN_KEY)
    result = matcher.find_best_match(ocr_data, blockchain_records, Source.BLOCKCHAIN)
    source = Source.BLOCKCHAIN if result.found else Source.NONE

    # Step 2: DigiLocker, only without a Blockchain match
    if source == Source.NONE:
        digilocker_records = gateway.get_all(DIGILOCKER_KEY)
        result = matcher.find_best_match(ocr_data, digilocker_records, Source.DIGILOCKER)
        if result.found:
            source = Source.DIGILOCKER

    if source == Source.NONE:
        similarity = 0.0
        verified_shell_id = ""
    else:
        similarity = 1.0 if result.shell_id_match else result.field_similarity_score
        verified_shell_id = result.verified_shell_id

    # Step 3: Score and decide
    outcome = decision_engine.make_decision(
        ocr_data=ocr_data,
        tampering_score=extraction.tamperingScore,
        tampering_explanation=extraction.tamperingExplanation,
        source=source,
        exact_match=result.shell_id_match,
        similarity=similarity,
        verified_shell_id=verified_shell_id,
        unverified_shell_id=unverified_shell_id,
    )

    logger.info(
        "Verification finished: source=%s verdict=%s trust_score=%d",
        source.value, outcome.verdict.value, outcome.trust_score
    )
    return outcome


def run_pipeline(image_data_uri: str,
                 gateway: RecordStoreGateway,
                 extractor: Optional[CertificateExtractor] = None) -> VerificationOutcome:
    """
    Main pipeline function: OCR / tampering analysis, then store verification

    Args:
        image_data_uri: certificate image or PDF as a data URI
        gateway: record store gateway backing both collections
        extractor: oracle client; a CertificateExtractor is created when omitted

    Returns:
        VerificationOutcome with verdict, trust score and details
    """
    validate_data_uri(image_data_uri)

    extractor = extractor or CertificateExtractor()
    extraction = extractor.extract(image_data_uri)

    return verify_extraction(extraction, gateway)
