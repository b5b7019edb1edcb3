import base64

import pytest
from PIL import Image

from certitrust.errors import RecordValidationError
from certitrust.file_converter import convert_to_data_uri, validate_data_uri


def test_png_upload_becomes_jpeg_data_uri(tmp_path):
    path = tmp_path / "certificate.png"
    Image.new("RGBA", (40, 30), (255, 255, 255, 255)).save(path)

    data_uri = convert_to_data_uri(str(path))

    assert data_uri.startswith("data:image/jpeg;base64,")
    raw = base64.b64decode(data_uri.split(",", 1)[1])
    assert raw[:2] == b"\xff\xd8"


def test_corrupt_image_is_rejected(tmp_path):
    path = tmp_path / "certificate.jpg"
    path.write_bytes(b"not really a jpeg")
    with pytest.raises(RecordValidationError):
        convert_to_data_uri(str(path))


def test_unsupported_extension_is_rejected(tmp_path):
    path = tmp_path / "certificate.docx"
    path.write_bytes(b"PK")
    with pytest.raises(RecordValidationError):
        convert_to_data_uri(str(path))


def test_validate_data_uri():
    assert validate_data_uri("data:application/pdf;base64,JVBERi0=")
    with pytest.raises(RecordValidationError):
        validate_data_uri("https://example.com/cert.png")
