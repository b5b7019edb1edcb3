from pydantic_settings import BaseSettings
from typing import Dict, List

class Settings(BaseSettings):
    # OpenAI Configuration (OCR / tampering oracle)
    OPENAI_API_KEY: str
    OPENAI_MODEL: str = "gpt-4.1-mini"
    OCR_MAX_TOKENS: int = 800

    # Shared secret for the institution add-record endpoint
    INSTITUTION_API_KEY: str

    # Record store
    STORE_BACKEND: str = "sqlite"  # "sqlite" or "memory"
    STORE_PATH: str = "certitrust.db"
    # Directory holding blockchain.json / digilocker.json; defaults to the bundled seeds
    SEED_DATA_DIR: str = ""
    APPEND_MAX_RETRIES: int = 3

    # Minimum rapidfuzz WRatio (0-100) for a name to be considered a candidate
    FUZZY_SCORE_CUTOFF: float = 75

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"

settings = Settings()

# Persisted collection keys
BLOCKCHAIN_KEY = "blockchain_records"
DIGILOCKER_KEY = "digilocker_records"

# Name lookup key paths per source, in priority order
NAME_KEY_PATHS: Dict[str, List[str]] = {
    "Blockchain": ["name"],
    "DigiLocker": ["Certificate.IssuedTo.Person.name", "Student Name", "name"],
}

# Field similarity at or above which a candidate counts as a match
MATCH_THRESHOLD = 0.8

# Trust score weights: (tampering weight, similarity weight)
BLOCKCHAIN_WEIGHTS = (60, 40)
DIGILOCKER_WEIGHTS = (50, 50)
NO_MATCH_TAMPERING_WEIGHT = 50
EXACT_MATCH_FLOOR = 95

# Verdict cut-offs
VALID_THRESHOLD = 80
VALID_WITH_MATCH_THRESHOLD = 75
SUSPICIOUS_THRESHOLD = 40

# Accepted data URI prefixes for uploaded certificates
ACCEPTED_DATA_URI_PREFIXES = ("data:image/", "data:application/pdf")
