import re
from typing import Any, Dict, Optional

from config import MATCH_THRESHOLD


class FieldComparator:
    """
    Field-by-field similarity between an extracted record and a stored candidate
    """

    NULL_SENTINEL = "null"

    def __init__(self):
        self.match_threshold = MATCH_THRESHOLD
        self.date_separators = re.compile(r"[-/]")

    def normalize_text(self, value: Any) -> str:
        """Normalize text for comparison"""
        return str(value).lower().strip()

    def normalize_date(self, value: Any) -> str:
        """Strip separators so DD-MM-YYYY, DD/MM/YYYY and DDMMYYYY compare equal"""
        return self.date_separators.sub("", str(value))

    def _is_absent(self, value: Any) -> bool:
        return not value or value == self.NULL_SENTINEL

    def fields_equal(self, field: str, left: Any, right: Any) -> bool:
        if not left or not right:
            return False
        if field == "dateOfBirth":
            return self.normalize_date(left) == self.normalize_date(right)
        return self.normalize_text(left) == self.normalize_text(right)

    def compare(self, query: Dict[str, Any], candidate: Optional[Dict[str, Any]]) -> float:
        """Return matching fields / considered fields, in [0, 1]"""
        candidate = candidate or {}
        keys = list(dict.fromkeys([*query.keys(), *candidate.keys()]))

        total_fields = 0
        matching_fields = 0

        for key in keys:
            left = query.get(key)
            right = candidate.get(key)

            if not left and not right:
                continue

            # The OCR step often misses the certificate id; its absence must not count against
            if key == "certificateId" and (self._is_absent(left) or self._is_absent(right)):
                continue

            total_fields += 1
            if self.fields_equal(key, left, right):
                matching_fields += 1

        if total_fields == 0:
            return 0.0
        return matching_fields / total_fields

    def is_match(self, similarity: float) -> bool:
        return similarity >= self.match_threshold
