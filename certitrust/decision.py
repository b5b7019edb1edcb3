import math
from typing import Tuple

from config import (
    BLOCKCHAIN_WEIGHTS, DIGILOCKER_WEIGHTS, NO_MATCH_TAMPERING_WEIGHT,
    EXACT_MATCH_FLOOR, VALID_THRESHOLD, VALID_WITH_MATCH_THRESHOLD,
    SUSPICIOUS_THRESHOLD
)
from .models import (
    BlockchainDetails, CertificateRecord, OcrDetails, OutcomeDetails,
    Source, SourceDetails, TamperingDetails, Verdict, VerificationOutcome
)


class DecisionEngine:
    """
    Combines tampering likelihood and record-match quality into a trust score
    and maps it to a verdict

    Rules:
    - Blockchain match → (1 - tampering) * 60 + similarity * 40, at least 95 on exact Shell ID match
    - DigiLocker match → (1 - tampering) * 50 + similarity * 50
    - no match → (1 - tampering) * 50
    - score >= 80, or a match with score >= 75 → Valid
    - score >= 40 → Suspicious
    - otherwise → Forged
    """

    def __init__(self):
        self.valid_threshold = VALID_THRESHOLD
        self.valid_with_match_threshold = VALID_WITH_MATCH_THRESHOLD
        self.suspicious_threshold = SUSPICIOUS_THRESHOLD

    def raw_trust_score(self,
                        tampering_score: float,
                        source: Source,
                        exact_match: bool,
                        similarity: float) -> float:
        """Full-precision trust score in [0, 100]"""
        authenticity = 1 - min(max(tampering_score, 0.0), 1.0)

        if source == Source.BLOCKCHAIN:
            tampering_weight, similarity_weight = BLOCKCHAIN_WEIGHTS
            score = authenticity * tampering_weight + similarity * similarity_weight
            if exact_match:
                score = max(score, EXACT_MATCH_FLOOR)
            return score

        if source == Source.DIGILOCKER:
            tampering_weight, similarity_weight = DIGILOCKER_WEIGHTS
            return authenticity * tampering_weight + similarity * similarity_weight

        return authenticity * NO_MATCH_TAMPERING_WEIGHT

    def verdict_for(self, trust_score: float, matched: bool) -> Verdict:
        if trust_score >= self.valid_threshold or (matched and trust_score >= self.valid_with_match_threshold):
            return Verdict.VALID
        if trust_score >= self.suspicious_threshold:
            return Verdict.SUSPICIOUS
        return Verdict.FORGED

    def score(self,
              tampering_score: float,
              source: Source,
              exact_match: bool,
              similarity: float) -> Tuple[int, Verdict]:
        raw = self.raw_trust_score(tampering_score, source, exact_match, similarity)
        verdict = self.verdict_for(raw, matched=source != Source.NONE)
        # Round half up for reporting
        return int(math.floor(raw + 0.5)), verdict

    def make_decision(self,
                      ocr_data: CertificateRecord,
                      tampering_score: float,
                      tampering_explanation: str,
                      source: Source,
                      exact_match: bool,
                      similarity: float,
                      verified_shell_id: str,
                      unverified_shell_id: str) -> VerificationOutcome:
        """Score the verification and build the outcome with its details bundle"""
        trust_score, verdict = self.score(tampering_score, source, exact_match, similarity)

        return VerificationOutcome(
            verdict=verdict,
            trust_score=trust_score,
            details=OutcomeDetails(
                ocr=OcrDetails(data=ocr_data, accuracy=similarity, used_qr=False),
                source=SourceDetails(
                    name=source,
                    match=source != Source.NONE,
                    verified_shell_id=verified_shell_id,
                    unverified_shell_id=unverified_shell_id,
                ),
                tampering=TamperingDetails(
                    score=tampering_score,
                    explanation=tampering_explanation,
                ),
                blockchain=BlockchainDetails(verified=source == Source.BLOCKCHAIN),
            ),
        )
