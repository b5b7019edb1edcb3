import json
import logging
import re
from typing import Any, Dict

import openai
from openai import OpenAI
from pydantic import ValidationError

from config import settings
from .errors import OracleFailure
from .models import ExtractionResult

logger = logging.getLogger(__name__)

QUOTA_MESSAGE = (
    "API quota exceeded. You have made too many requests in a short period. "
    "Please wait a minute and try again, or check your billing plan."
)
OVERLOADED_MESSAGE = (
    "The verification service is temporarily overloaded. Please wait a moment and try again."
)
INCOMPLETE_MESSAGE = (
    "The AI failed to extract all required fields from the document. This could be due to "
    "a poor quality image or an unsupported document format. Please try again with a clear, "
    "high-resolution image."
)

EXTRACTION_PROMPT = """
You are an expert OCR engine and a forensic document analyst.
Perform two tasks on this certificate image.

1. EXTRACT DATA
Extract: name, rollNumber, certificateId, and if available dateOfBirth,
fathersName and mothersName.
- "rollNumber" may be labelled "Roll No." or "Admit Card ID"
- "certificateId" may be labelled "Certificate No." or "Serial No."
- Do not confuse rollNumber and certificateId
- Dates in DD-MM-YYYY
- If a field is not present in the document, return null

2. ANALYZE FOR TAMPERING
Look for missing seals, unnatural blurs, inconsistent fonts or other anomalies.
- DigiLocker documents may carry a digital signature date much later than the
  issue date. This is normal and is NOT tampering.
- tamperingScore is 0.0-1.0, where 1 means tampering is highly likely

Return STRICT JSON only.

Expected format:
{
  "name": "string",
  "rollNumber": "string or null",
  "certificateId": "string or null",
  "dateOfBirth": "string or null",
  "fathersName": "string or null",
  "mothersName": "string or null",
  "tamperingScore": 0.0-1.0,
  "tamperingExplanation": "short explanation"
}
"""

# Upstream statuses that mean "busy, try again shortly". Any InternalServerError (5xx) counts too.
OVERLOAD_STATUSES = {503, 529}


class CertificateExtractor:
    """
    Extracts certificate fields and a tampering assessment using OpenAI Vision
    """

    def __init__(self, client: OpenAI = None):
        self.client = client or OpenAI(api_key=settings.OPENAI_API_KEY)
        self.model = settings.OPENAI_MODEL
        self.max_tokens = settings.OCR_MAX_TOKENS

    def safe_json_parse(self, text: str) -> Dict[str, Any]:
        """Safely parse JSON from LLM response"""
        match = re.search(r"\{.*\}", text or "", re.DOTALL)
        if not match:
            raise ValueError("No JSON found in model output")
        return json.loads(match.group())

    def _to_failure(self, e: openai.OpenAIError) -> OracleFailure:
        if isinstance(e, openai.RateLimitError):
            return OracleFailure(QUOTA_MESSAGE, kind=OracleFailure.QUOTA, cause=e)
        if isinstance(e, openai.InternalServerError) or (
            isinstance(e, openai.APIStatusError) and e.status_code in OVERLOAD_STATUSES
        ):
            return OracleFailure(OVERLOADED_MESSAGE, kind=OracleFailure.OVERLOADED, cause=e)
        return OracleFailure(str(e) or "Certificate analysis failed.", cause=e)

    def extract(self, image_data_uri: str) -> ExtractionResult:
        """Extract fields and tampering score from a certificate image data URI"""
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": EXTRACTION_PROMPT},
                            {
                                "type": "image_url",
                                "image_url": {
                                    "url": image_data_uri
                                }
                            }
                        ]
                    }
                ],
                max_tokens=self.max_tokens,
                temperature=0
            )
        except openai.OpenAIError as e:
            logger.exception("Certificate extraction call failed")
            raise self._to_failure(e) from e

        text = response.choices[0].message.content
        try:
            parsed = self.safe_json_parse(text)
            return ExtractionResult.model_validate(parsed)
        except (ValueError, ValidationError) as e:
            logger.warning("Extraction output unusable: %s", e)
            raise OracleFailure(INCOMPLETE_MESSAGE, kind=OracleFailure.INCOMPLETE, cause=e) from e
