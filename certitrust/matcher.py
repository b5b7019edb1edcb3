import logging
from typing import Any, Dict, List, Optional, Sequence

from rapidfuzz import fuzz, process, utils

from config import settings, NAME_KEY_PATHS
from .canonical import fingerprint
from .comparator import FieldComparator
from .models import CertificateRecord, MatchResult, Source, coerce_null_sentinel
from .shapes import normalize_record, resolve_path

logger = logging.getLogger(__name__)


class FuzzyMatcher:
    """
    Finds the stored record that best matches an extracted certificate.

    Candidates are ranked by fuzzy similarity of the holder's name; the winner
    is then checked by Shell ID equality and, failing that, field comparison.
    """

    def __init__(self, comparator: Optional[FieldComparator] = None):
        self.comparator = comparator or FieldComparator()
        self.score_cutoff = settings.FUZZY_SCORE_CUTOFF

    def candidate_name(self, record: Any, key_paths: List[str]) -> Optional[str]:
        """Name at the first key path that resolves to a non-empty string"""
        for path in key_paths:
            value = resolve_path(record, path)
            if isinstance(value, str) and value.strip():
                return value
        return None

    def build_index(self, candidates: Sequence[Any], source: Source) -> Dict[int, str]:
        key_paths = NAME_KEY_PATHS[source.value]
        index = {}
        for position, record in enumerate(candidates):
            name = self.candidate_name(record, key_paths)
            if name is not None:
                index[position] = name
        return index

    def search(self, name: str, candidates: Sequence[Any], source: Source) -> List[int]:
        """Candidate positions whose name clears the cutoff, best first"""
        if not name or not name.strip():
            return []

        index = self.build_index(candidates, source)
        if not index:
            return []

        results = process.extract(
            name,
            index,
            scorer=fuzz.WRatio,
            processor=utils.default_process,
            score_cutoff=self.score_cutoff,
            limit=None,
        )
        # Equal scores keep collection order
        ranked = sorted(results, key=lambda r: (-r[1], r[2]))
        if ranked:
            logger.debug(
                "%s: best name score %.1f out of %d candidates",
                source.value, ranked[0][1], len(index)
            )
        return [position for _, _, position in ranked]

    def find_best_match(self,
                        query: CertificateRecord,
                        candidates: Sequence[Any],
                        source: Source) -> MatchResult:
        ranked = self.search(query.name, candidates, source)
        if not ranked:
            logger.info("%s: no candidate for the extracted name", source.value)
            return MatchResult()

        best_raw = candidates[ranked[0]]
        best_record = normalize_record(best_raw, source)

        query_data = coerce_null_sentinel(query.model_dump())
        verified_shell_id = fingerprint(best_record)
        query_shell_id = fingerprint(query_data)

        if query_shell_id == verified_shell_id:
            logger.info("%s: exact Shell ID match", source.value)
            return MatchResult(
                match=True,
                record=best_record,
                field_similarity_score=1.0,
                shell_id_match=True,
                verified_shell_id=verified_shell_id,
                matched_record=best_raw,
            )

        similarity = self.comparator.compare(query_data, best_record)
        is_match = self.comparator.is_match(similarity)
        logger.info(
            "%s: field similarity %.2f (%s)",
            source.value, similarity, "match" if is_match else "no match"
        )

        return MatchResult(
            match=is_match,
            record=best_record,
            field_similarity_score=similarity,
            shell_id_match=False,
            verified_shell_id=verified_shell_id,
            matched_record=best_raw,
        )
