from fastapi import Body, Depends, FastAPI, File, Form, Header, HTTPException, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import json
import logging
import os
import secrets
import shutil
import tempfile
from typing import Any, Dict, Optional

from certitrust.errors import OracleFailure, RecordValidationError, StoreUnavailable
from certitrust.extractor import CertificateExtractor
from certitrust.file_converter import convert_to_data_uri
from certitrust.models import AppendResult, AppendStatus
from certitrust.run_pipeline import run_pipeline
from certitrust.store import RecordStoreGateway, create_gateway
from config import settings

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("certitrust.api")


app = FastAPI(
    title="CertiTrust Verification Service",
    description="Certificate verification against Blockchain and DigiLocker records",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ------------------------
# Dependencies
# ------------------------
_gateway: Optional[RecordStoreGateway] = None


def get_gateway() -> RecordStoreGateway:
    global _gateway
    if _gateway is None:
        _gateway = create_gateway()
    return _gateway


def get_extractor() -> CertificateExtractor:
    return CertificateExtractor()


def require_api_key(x_api_key: Optional[str] = Header(None)) -> None:
    expected = settings.INSTITUTION_API_KEY.encode("utf-8")
    if not x_api_key or not secrets.compare_digest(x_api_key.encode("utf-8"), expected):
        raise HTTPException(status_code=401, detail="Unauthorized: Invalid API Key")


ORACLE_STATUS = {
    OracleFailure.QUOTA: 429,
    OracleFailure.OVERLOADED: 503,
    OracleFailure.INCOMPLETE: 422,
}

APPEND_STATUS = {
    AppendStatus.CREATED: 201,
    AppendStatus.DUPLICATE: 409,
    AppendStatus.INVALID: 400,
}


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _append_response(result: AppendResult, include_shell_id: bool = False) -> JSONResponse:
    content: Dict[str, Any] = {"success": result.success, "message": result.message}
    if include_shell_id and result.success:
        content["shellId"] = result.shell_id
    return JSONResponse(status_code=APPEND_STATUS[result.status], content=content)


# ------------------------
# Certificate Verification API
# ------------------------
@app.post("/verify")
async def verify_certificate(
    file: Optional[UploadFile] = File(None),
    image_data_uri: Optional[str] = Form(None),
    gateway: RecordStoreGateway = Depends(get_gateway),
    extractor: CertificateExtractor = Depends(get_extractor),
):
    """
    Verify a certificate. Accepts an uploaded JPG / PNG / WEBP / HEIC / PDF file
    or an image data URI.
    """
    temp_dir = None

    try:
        if file is not None and file.filename:
            temp_dir = tempfile.mkdtemp(prefix="certitrust_")
            raw_path = os.path.join(temp_dir, f"raw_{os.path.basename(file.filename)}")

            with open(raw_path, "wb") as buffer:
                shutil.copyfileobj(file.file, buffer)

            data_uri = await run_in_threadpool(convert_to_data_uri, raw_path)
        elif image_data_uri:
            data_uri = image_data_uri
        else:
            return _error(400, "Please upload a certificate image or PDF.")

        outcome = await run_in_threadpool(run_pipeline, data_uri, gateway, extractor)
        return outcome.model_dump(by_alias=True, mode="json")

    except RecordValidationError as e:
        return _error(400, e.message)
    except OracleFailure as e:
        return _error(ORACLE_STATUS.get(e.kind, 502), e.message)
    except StoreUnavailable as e:
        logger.error("Verification aborted, record store unavailable: %s", e.message)
        return _error(503, e.message)

    finally:
        if temp_dir and os.path.exists(temp_dir):
            shutil.rmtree(temp_dir, ignore_errors=True)


# ------------------------
# Blockchain append
# ------------------------
@app.post("/blockchain/records")
async def add_to_blockchain(
    record: Any = Body(...),
    gateway: RecordStoreGateway = Depends(get_gateway),
):
    """Add a verified certificate to the blockchain (user action after verification)"""
    try:
        result = await run_in_threadpool(gateway.append, record)
    except StoreUnavailable as e:
        return JSONResponse(
            status_code=503,
            content={"success": False, "message": f"Failed to add to blockchain: {e.message}"},
        )
    return _append_response(result)


@app.post("/api/add-record", dependencies=[Depends(require_api_key)])
async def add_record(
    record: Any = Body(...),
    gateway: RecordStoreGateway = Depends(get_gateway),
):
    """Institution endpoint: add a single certificate record, authenticated by x-api-key"""
    try:
        result = await run_in_threadpool(gateway.append, record)
    except StoreUnavailable as e:
        logger.error("add-record failed: %s", e.message)
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": f"Failed to add record: {e.message}"},
        )
    return _append_response(result, include_shell_id=True)


# ------------------------
# DigiLocker bulk upload (admin)
# ------------------------
@app.post("/admin/digilocker-records", dependencies=[Depends(require_api_key)])
async def add_digilocker_records(
    json_file: UploadFile = File(...),
    gateway: RecordStoreGateway = Depends(get_gateway),
):
    if json_file.content_type != "application/json":
        return JSONResponse(
            status_code=400,
            content={"success": False, "message": "Please upload a valid JSON file."},
        )

    try:
        new_records = json.loads(await json_file.read())
        count = await run_in_threadpool(gateway.append_digilocker_bulk, new_records)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return JSONResponse(
            status_code=400,
            content={"success": False, "message": "Failed to process file: Invalid JSON format. Please check the file content."},
        )
    except RecordValidationError as e:
        return JSONResponse(status_code=400, content={"success": False, "message": e.message})
    except StoreUnavailable as e:
        return JSONResponse(
            status_code=503,
            content={"success": False, "message": f"Failed to process file: {e.message}"},
        )

    return {
        "success": True,
        "message": f"Successfully added {count} records to the DigiLocker database.",
    }


# ------------------------
# Health Check
# ------------------------
@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "service": "certitrust-verification"
    }


# ------------------------
# Local Dev Entry
# ------------------------
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
