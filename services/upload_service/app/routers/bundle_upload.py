# services/upload_service/app/routers/bundle_upload.py
import asyncio
import os
import logging
from typing import AsyncGenerator, Optional

from fastapi import APIRouter, HTTPException, Request
from starlette.datastructures import FormData, UploadFile
from starlette.formparsers import MultiPartException, MultiPartParser

from core.config import settings
from core.models import (
    NoFileSelected, UploadFailure, UploadOutcome, UploadRequest, UploadSuccess,
    SIZE_LIMIT_CODE, SIZE_LIMIT_MESSAGE, STORAGE_ERROR_CODE, TYPE_REJECTED_CODE,
)
from core.storage import StorageError, get_storage_adapter
from core.utils import generate_storage_key, now_millis
from ..responses import build_response
from ..validation import check_file_type, check_size

# Use logger configured in core.config, get child logger
logger = logging.getLogger("BundleUpload_Core").getChild("UploadService").getChild("BundleRouter")

router = APIRouter()


def _size_exceeded() -> UploadFailure:
    return UploadFailure(
        code=SIZE_LIMIT_CODE,
        message=SIZE_LIMIT_MESSAGE,
        details={"field": settings.UPLOAD_FIELD_NAME, "limit": settings.MAX_UPLOAD_SIZE_BYTES},
    )


def _declared_length(request: Request) -> Optional[int]:
    raw = request.headers.get("content-length")
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


class RequestBodyTooLarge(MultiPartException):
    """Raised while streaming a request body once it passes the byte limit."""

    def __init__(self, received: int, limit: int):
        super().__init__(f"Request body exceeds {limit} bytes (received {received}).")
        self.received = received
        self.limit = limit


async def capped_stream(request: Request, limit: int) -> AsyncGenerator[bytes, None]:
    """Yields the request body, stopping the transfer as soon as it passes `limit` bytes."""
    received = 0
    async for chunk in request.stream():
        received += len(chunk)
        if received > limit:
            raise RequestBodyTooLarge(received, limit)
        yield chunk


async def read_upload_form(request: Request) -> FormData:
    """Parses a multipart body through `capped_stream`. Any other body yields an empty form."""
    content_type = request.headers.get("content-type", "")
    if not content_type.lower().startswith("multipart/form-data"):
        return FormData()
    limit = settings.MAX_UPLOAD_SIZE_BYTES + settings.MULTIPART_OVERHEAD_BYTES
    # The parser closes its spooled files on any MultiPartException, RequestBodyTooLarge included
    parser = MultiPartParser(request.headers, capped_stream(request, limit))
    return await parser.parse()


def _file_size(upload: UploadFile) -> int:
    size = getattr(upload, "size", None)
    if size is not None:
        return size
    f = upload.file
    position = f.tell()
    f.seek(0, os.SEEK_END)
    size = f.tell()
    f.seek(position)
    return size


async def process_upload(upload: UploadRequest, received_at_ms: int) -> UploadOutcome:
    """SIZE_CHECK -> TYPE_CHECK -> ACCEPTED (key, store). Storage is only reached on ACCEPTED."""
    job_prefix = f"[{upload.filename}]"

    size_result = check_size(upload.size)
    if not size_result.accepted:
        logger.warning(f"{job_prefix} Rejected: {upload.size} bytes exceeds limit of {settings.MAX_UPLOAD_SIZE_BYTES} bytes.")
        return _size_exceeded()

    type_result = check_file_type(upload.filename, upload.media_type)
    if not type_result.accepted:
        logger.warning(f"{job_prefix} Rejected: type not allowed (media type: '{upload.media_type}').")
        return UploadFailure(code=TYPE_REJECTED_CODE, message=type_result.message)

    key = generate_storage_key(upload.filename, now_ms=received_at_ms)
    logger.info(f"{job_prefix} Accepted {upload.size} bytes received at {received_at_ms}; storing as '{key}'.")
    try:
        adapter = await get_storage_adapter()
        # Blocking SDK call, run in a worker thread and awaited before responding
        stored = await asyncio.to_thread(adapter.store, key, upload.stream, upload.media_type)
    except StorageError as e:
        logger.error(f"{job_prefix} Storage failed for '{key}': {e}")
        return UploadFailure(code=STORAGE_ERROR_CODE, message=str(e))

    return UploadSuccess(key=stored.key, location=stored.location)


@router.post("/js-upload")
async def upload_bundle(request: Request):
    """Receives a single bundle in the multipart field `JSUpload` and stores it."""
    received_at_ms = now_millis()

    # Reject oversized bodies before parsing them
    declared = _declared_length(request)
    if declared is not None and declared > settings.MAX_UPLOAD_SIZE_BYTES + settings.MULTIPART_OVERHEAD_BYTES:
        logger.warning(f"Rejected request before parsing: Content-Length {declared} exceeds limit of {settings.MAX_UPLOAD_SIZE_BYTES} bytes.")
        return build_response(_size_exceeded())

    # Chunked bodies carry no Content-Length; the capped stream stops them mid-transfer
    try:
        form = await read_upload_form(request)
    except RequestBodyTooLarge as e:
        logger.warning(f"Rejected request while reading body: {e}")
        return build_response(_size_exceeded())
    except MultiPartException as e:
        raise HTTPException(status_code=400, detail=e.message) from e

    try:
        upload = form.get(settings.UPLOAD_FIELD_NAME)
        # An empty file input is submitted as a part with an empty filename
        if not isinstance(upload, UploadFile) or not upload.filename:
            logger.info("Error: No File Selected!")
            return build_response(NoFileSelected())

        upload_request = UploadRequest(
            stream=upload.file,
            filename=upload.filename,
            media_type=upload.content_type or "",
            size=_file_size(upload),
        )
        outcome = await process_upload(upload_request, received_at_ms=received_at_ms)
        return build_response(outcome)
    finally:
        await form.close()
