"""
Record Store Gateway

Two collections, Blockchain and DigiLocker, live in a key-value store as whole
JSON arrays. A collection with no stored entry is seeded from the bundled
dataset on first read; an empty array is a real value and is never reseeded.
"""

import json
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from config import settings, BLOCKCHAIN_KEY, DIGILOCKER_KEY
from .canonical import fingerprint
from .errors import RecordValidationError, StoreUnavailable
from .models import AppendResult, AppendStatus, CertificateRecord

logger = logging.getLogger(__name__)

BUNDLED_SEED_DIR = Path(__file__).parent / "data"

SEED_FILES = {
    BLOCKCHAIN_KEY: "blockchain.json",
    DIGILOCKER_KEY: "digilocker.json",
}


class KeyValueStore:
    """get / set / compare_and_set over JSON values; get returns None when the key is absent"""

    def get(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    def set(self, key: str, value: Any) -> None:
        raise NotImplementedError

    def compare_and_set(self, key: str, expected: Optional[Any], value: Any) -> bool:
        """Write value only if the stored value still equals expected (None = absent)"""
        raise NotImplementedError

    @staticmethod
    def decode(key: str, raw: Optional[str]) -> Optional[Any]:
        if raw is None:
            return None
        try:
            value = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StoreUnavailable(f"Stored value for '{key}' is not valid JSON: {e}")
        # A stored JSON null is a present value, not a missing key
        if value is None:
            raise StoreUnavailable(f"Stored value for '{key}' is null")
        return value


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local store; values are kept serialized so callers never share state"""

    def __init__(self):
        self._data: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            raw = self._data.get(key)
        return self.decode(key, raw)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = json.dumps(value)

    def compare_and_set(self, key: str, expected: Optional[Any], value: Any) -> bool:
        with self._lock:
            current = self.decode(key, self._data.get(key))
            if current != expected:
                return False
            self._data[key] = json.dumps(value)
            return True


class SqliteKeyValueStore(KeyValueStore):
    """Single-table SQLite store: kv(key TEXT PRIMARY KEY, value TEXT)"""

    def __init__(self, path: str):
        self.path = path
        self._execute(
            "CREATE TABLE IF NOT EXISTS kv (key TEXT PRIMARY KEY, value TEXT NOT NULL)"
        )

    def _connect(self) -> sqlite3.Connection:
        # Autocommit mode; transactions are opened explicitly
        return sqlite3.connect(self.path, isolation_level=None, timeout=30)

    def _execute(self, sql: str, params: tuple = ()) -> List[tuple]:
        try:
            conn = self._connect()
            try:
                return conn.execute(sql, params).fetchall()
            finally:
                conn.close()
        except sqlite3.Error as e:
            logger.error("Record store query failed: %s", e)
            raise StoreUnavailable(f"Record store unavailable: {e}")

    def get(self, key: str) -> Optional[Any]:
        rows = self._execute("SELECT value FROM kv WHERE key = ?", (key,))
        return self.decode(key, rows[0][0] if rows else None)

    def set(self, key: str, value: Any) -> None:
        self._execute(
            "INSERT INTO kv (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            (key, json.dumps(value)),
        )

    def compare_and_set(self, key: str, expected: Optional[Any], value: Any) -> bool:
        try:
            conn = self._connect()
            try:
                # Take the write lock before reading so the check and the write are atomic
                conn.execute("BEGIN IMMEDIATE")
                row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
                current = self.decode(key, row[0] if row else None)
                if current != expected:
                    conn.execute("ROLLBACK")
                    return False
                conn.execute(
                    "INSERT INTO kv (key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                    (key, json.dumps(value)),
                )
                conn.execute("COMMIT")
                return True
            except StoreUnavailable:
                conn.execute("ROLLBACK")
                raise
            finally:
                conn.close()
        except sqlite3.Error as e:
            logger.error("Record store write failed: %s", e)
            raise StoreUnavailable(f"Record store unavailable: {e}")


class RecordStoreGateway:
    """
    Reads and appends the Blockchain and DigiLocker collections
    """

    def __init__(self,
                 store: KeyValueStore,
                 seed_dir: Optional[Union[str, Path]] = None,
                 max_retries: Optional[int] = None):
        self.store = store
        self.seed_dir = Path(seed_dir) if seed_dir else BUNDLED_SEED_DIR
        self.max_retries = settings.APPEND_MAX_RETRIES if max_retries is None else max_retries

    def load_seed(self, collection: str) -> List[Any]:
        """Bundled dataset for a collection; unknown collections seed empty"""
        filename = SEED_FILES.get(collection)
        if filename is None:
            return []
        seed_path = self.seed_dir / filename
        try:
            with open(seed_path, "r", encoding="utf-8") as f:
                seed = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StoreUnavailable(f"Seed dataset {seed_path} could not be loaded: {e}")
        if not isinstance(seed, list):
            raise StoreUnavailable(f"Seed dataset {seed_path} must be a JSON array")
        return seed

    def ensure_seeded(self, collection: str) -> List[Any]:
        """Seed the collection if the store has no entry for it, then return its records"""
        records = self.store.get(collection)
        if records is None:
            seed = self.load_seed(collection)
            if self.store.compare_and_set(collection, None, seed):
                logger.info("Seeded %s with %d records", collection, len(seed))
                return seed
            # Another request seeded it first
            records = self.store.get(collection)

        if not isinstance(records, list):
            raise StoreUnavailable(f"Stored value for '{collection}' is not a JSON array")
        return records

    def get_all(self, collection: str) -> List[Any]:
        return self.ensure_seeded(collection)

    def append(self, record: Any) -> AppendResult:
        """Append a record to the Blockchain collection unless its Shell ID is already there"""
        try:
            if isinstance(record, CertificateRecord):
                new_record = record
            else:
                new_record = CertificateRecord.model_validate(record)
        except ValidationError as e:
            logger.info("Rejected invalid blockchain record: %s", e.error_count())
            return AppendResult(status=AppendStatus.INVALID, message="Invalid data format.")

        new_data = new_record.model_dump()
        new_shell_id = fingerprint(new_data)

        for _ in range(self.max_retries + 1):
            records = self.get_all(BLOCKCHAIN_KEY)

            for existing in records:
                if fingerprint(existing) == new_shell_id:
                    return AppendResult(
                        status=AppendStatus.DUPLICATE,
                        message="This certificate is already on the blockchain.",
                        shell_id=new_shell_id,
                    )

            if self.store.compare_and_set(BLOCKCHAIN_KEY, records, records + [new_data]):
                logger.info("Added record %s to the blockchain", new_shell_id[:12])
                return AppendResult(
                    status=AppendStatus.CREATED,
                    message="Certificate successfully added to the blockchain.",
                    shell_id=new_shell_id,
                )
            logger.warning("Blockchain changed during append, retrying")

        raise StoreUnavailable("Blockchain is being modified concurrently. Please try again.")

    def append_digilocker_bulk(self, new_records: Any) -> int:
        """Concatenate records onto the DigiLocker collection without deduplication"""
        if not isinstance(new_records, list):
            raise RecordValidationError("JSON file must contain an array of records.")

        for _ in range(self.max_retries + 1):
            existing = self.get_all(DIGILOCKER_KEY)
            if self.store.compare_and_set(DIGILOCKER_KEY, existing, existing + new_records):
                logger.info("Added %d records to DigiLocker", len(new_records))
                return len(new_records)

        raise StoreUnavailable("DigiLocker is being modified concurrently. Please try again.")


def create_gateway() -> RecordStoreGateway:
    """Gateway over the backend selected in settings"""
    backend = settings.STORE_BACKEND.lower()
    if backend == "memory":
        store = InMemoryKeyValueStore()
    elif backend == "sqlite":
        store = SqliteKeyValueStore(settings.STORE_PATH)
    else:
        raise ValueError(f"Unknown store backend: {settings.STORE_BACKEND}")
    return RecordStoreGateway(store, seed_dir=settings.SEED_DATA_DIR or None)
