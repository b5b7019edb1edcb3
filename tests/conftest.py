import os

# Settings are read at import time of config
os.environ.setdefault("OPENAI_API_KEY", "test-openai-key")
os.environ.setdefault("INSTITUTION_API_KEY", "test-institution-key")
os.environ.setdefault("STORE_BACKEND", "memory")

import pytest

from certitrust.models import ExtractionResult
from certitrust.store import InMemoryKeyValueStore, RecordStoreGateway


class FakeExtractor:
    """Stands in for the OpenAI-backed extractor"""

    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    def extract(self, image_data_uri):
        self.calls.append(image_data_uri)
        if self.error is not None:
            raise self.error
        return self.result


class RecordingGateway(RecordStoreGateway):
    """Gateway that remembers which collections were read"""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.reads = []

    def get_all(self, collection):
        self.reads.append(collection)
        return super().get_all(collection)


@pytest.fixture
def gateway():
    return RecordingGateway(InMemoryKeyValueStore())


@pytest.fixture
def aarav():
    return {
        "name": "Aarav Sharma",
        "rollNumber": "2021CS1042",
        "certificateId": "CBSE-XII-2021-884213",
        "dateOfBirth": "14-03-2003",
        "fathersName": "Rajesh Sharma",
        "mothersName": "Sunita Sharma",
    }


def make_extraction(fields, tampering_score=0.0, explanation="No visible anomalies."):
    return ExtractionResult(
        **fields,
        tamperingScore=tampering_score,
        tamperingExplanation=explanation,
    )
