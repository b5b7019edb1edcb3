import json

import pytest

from certitrust.canonical import fingerprint
from certitrust.matcher import FuzzyMatcher
from certitrust.models import CertificateRecord, Source
from certitrust.shapes import (
    FlatFieldShape, NestedPersonShape, UnrecognizedShape, classify, normalize_record
)
from certitrust.store import BUNDLED_SEED_DIR


@pytest.fixture(scope="module")
def blockchain_seed():
    with open(BUNDLED_SEED_DIR / "blockchain.json", encoding="utf-8") as f:
        return json.load(f)


@pytest.fixture(scope="module")
def digilocker_seed():
    with open(BUNDLED_SEED_DIR / "digilocker.json", encoding="utf-8") as f:
        return json.load(f)


@pytest.fixture
def matcher():
    return FuzzyMatcher()


def test_exact_blockchain_match(matcher, blockchain_seed, aarav):
    query = CertificateRecord(**{k: v.upper() for k, v in aarav.items()})
    result = matcher.find_best_match(query, blockchain_seed, Source.BLOCKCHAIN)

    assert result.match
    assert result.shell_id_match
    assert result.field_similarity_score == 1.0
    assert result.verified_shell_id == fingerprint(aarav)
    assert result.matched_record == blockchain_seed[0]


def test_null_certificate_id_literal_is_absent(matcher, blockchain_seed):
    query = CertificateRecord(
        name="Mohammed Irfan Khan",
        rollNumber="UPB-22-778341",
        certificateId="null",
        dateOfBirth="21/07/2004",
        fathersName="Salim Khan",
        mothersName="Rukhsana Begum",
    )
    result = matcher.find_best_match(query, blockchain_seed, Source.BLOCKCHAIN)
    assert result.shell_id_match


def test_graded_match_on_date_format(matcher, blockchain_seed, aarav):
    query = CertificateRecord(**dict(aarav, dateOfBirth="14/03/2003"))
    result = matcher.find_best_match(query, blockchain_seed, Source.BLOCKCHAIN)

    assert result.match
    assert not result.shell_id_match
    assert result.field_similarity_score == 1.0


def test_name_transposition_and_partial_name_still_found(matcher, blockchain_seed):
    assert matcher.search("Sharma Aarav", blockchain_seed, Source.BLOCKCHAIN)[0] == 0
    assert matcher.search("mohammed khan", blockchain_seed, Source.BLOCKCHAIN)[0] == 2


def test_name_found_but_fields_disagree(matcher, blockchain_seed):
    query = CertificateRecord(
        name="Priya Nair",
        rollNumber="0000000",
        dateOfBirth="01-01-1999",
        fathersName="Someone Else",
        mothersName="Lekha Nair",
    )
    result = matcher.find_best_match(query, blockchain_seed, Source.BLOCKCHAIN)

    assert not result.match
    assert result.record["name"] == "Priya Nair"
    assert result.field_similarity_score == pytest.approx(2 / 5)
    assert result.verified_shell_id


def test_no_candidate(matcher, blockchain_seed):
    result = matcher.find_best_match(
        CertificateRecord(name="Xyzzy Quokkafrog"), blockchain_seed, Source.BLOCKCHAIN
    )
    assert not result.match
    assert result.record is None
    assert result.field_similarity_score == 0
    assert result.verified_shell_id == ""


def test_empty_collection_and_blank_name(matcher, blockchain_seed):
    assert not matcher.find_best_match(CertificateRecord(name="Aarav"), [], Source.BLOCKCHAIN).match
    assert matcher.search("   ", blockchain_seed, Source.BLOCKCHAIN) == []


def test_digilocker_nested_shape(matcher, digilocker_seed):
    query = CertificateRecord(
        name="Rohan Verma",
        rollNumber="5124309",
        certificateId="SE-2022-4471290",
        dateOfBirth="05-06-2004",
        fathersName="Anil Verma",
        mothersName="Kavita Verma",
    )
    result = matcher.find_best_match(query, digilocker_seed, Source.DIGILOCKER)

    assert result.shell_id_match
    assert result.matched_record == digilocker_seed[0]
    assert result.record["rollNumber"] == "5124309"


def test_digilocker_flat_shape_graded(matcher, digilocker_seed):
    query = CertificateRecord(
        name="Fatima Sheikh",
        rollNumber="MH-SSC-2019-211876",
        certificateId="null",
        dateOfBirth="11/08/2003",
        fathersName="Abdul Sheikh",
        mothersName="Nasreen Shaikh",
    )
    result = matcher.find_best_match(query, digilocker_seed, Source.DIGILOCKER)

    assert result.match
    assert not result.shell_id_match
    assert result.field_similarity_score == pytest.approx(0.8)
    assert result.record["certificateId"] is None


def test_shape_classification(digilocker_seed):
    assert isinstance(classify(digilocker_seed[0], Source.DIGILOCKER), NestedPersonShape)
    assert isinstance(classify(digilocker_seed[2], Source.DIGILOCKER), FlatFieldShape)
    assert isinstance(classify({"name": "A"}, Source.DIGILOCKER), UnrecognizedShape)
    assert isinstance(classify(digilocker_seed[0], Source.BLOCKCHAIN), UnrecognizedShape)


def test_nested_shape_without_exam_data():
    raw = {"Certificate": {"number": "7", "IssuedTo": {"Person": {"name": "A B"}}}}
    record = normalize_record(raw, Source.DIGILOCKER)
    assert record["name"] == "A B"
    assert record["rollNumber"] == "7"
    assert record["certificateId"] is None


def test_unrecognized_shape_passes_through():
    raw = {"name": "A B", "board": "X"}
    assert normalize_record(raw, Source.DIGILOCKER) is raw
