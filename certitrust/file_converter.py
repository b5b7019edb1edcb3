import base64
import io
import os

from PIL import Image, UnidentifiedImageError
import pillow_heif
from pdf2image import convert_from_path
from pdf2image.exceptions import PDFPageCountError, PDFSyntaxError

from config import ACCEPTED_DATA_URI_PREFIXES
from .errors import RecordValidationError

pillow_heif.register_heif_opener()

SUPPORTED_IMAGE_EXTS = {".jpg", ".jpeg", ".png", ".webp", ".heic"}
PDF_EXT = ".pdf"


def image_to_data_uri(img: Image.Image) -> str:
    """Encode a PIL image as a base64 JPEG data URI"""
    buffer = io.BytesIO()
    img.convert("RGB").save(buffer, "JPEG", quality=95)
    b64 = base64.b64encode(buffer.getvalue()).decode("utf-8")
    return f"data:image/jpeg;base64,{b64}"


def convert_to_data_uri(input_path: str) -> str:
    """
    Converts an uploaded certificate (image / HEIC / PDF) into a JPEG data URI.
    Only the first page of a PDF is used.
    """
    ext = os.path.splitext(input_path)[1].lower()

    # -------- Case 1: Normal image or HEIC --------
    if ext in SUPPORTED_IMAGE_EXTS:
        try:
            with Image.open(input_path) as img:
                return image_to_data_uri(img)
        except UnidentifiedImageError:
            raise RecordValidationError("The uploaded image could not be read.")

    # -------- Case 2: PDF --------
    if ext == PDF_EXT:
        try:
            pages = convert_from_path(input_path, dpi=200, first_page=1, last_page=1)
        except (PDFPageCountError, PDFSyntaxError):
            raise RecordValidationError("The uploaded PDF could not be read.")
        if not pages:
            raise RecordValidationError("The PDF has no pages.")
        return image_to_data_uri(pages[0])

    raise RecordValidationError(
        "Invalid file format. Please upload a valid image or PDF file."
    )


def validate_data_uri(data_uri: str) -> str:
    """Accept only image or PDF data URIs"""
    if not isinstance(data_uri, str) or not data_uri.startswith(ACCEPTED_DATA_URI_PREFIXES):
        raise RecordValidationError(
            "Invalid file format. Please upload a valid image or PDF file."
        )
    return data_uri
