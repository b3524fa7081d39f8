# services/ui_service/app/client.py
import mimetypes
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from core.config import settings, logger as core_logger
from core.models import (
    NoFileSelected, UploadFailure, UploadOutcome, UploadSuccess,
    NO_FILE_SELECTED_MESSAGE, SIZE_LIMIT_CODE, TRANSPORT_ERROR_CODE, UNEXPECTED_RESPONSE_CODE,
)
from .alerts import AlertPresenter

logger = core_logger.getChild("UIService").getChild("UploadClient")

UPLOAD_ENDPOINT = "/api/bundle/js-upload"
PLEASE_UPLOAD_MESSAGE = "Please upload file"

# Browsers report text/javascript for both; the stdlib table differs across Python versions
_MEDIA_TYPE_OVERRIDES = {".js": "text/javascript", ".jsx": "text/javascript"}


def guess_media_type(filename: str) -> str:
    ext = os.path.splitext(filename)[1].lower()
    if ext in _MEDIA_TYPE_OVERRIDES:
        return _MEDIA_TYPE_OVERRIDES[ext]
    media_type, _ = mimetypes.guess_type(filename)
    return media_type or "application/octet-stream"


def max_size_message(max_bytes: Optional[int] = None) -> str:
    limit = settings.MAX_UPLOAD_SIZE_BYTES if max_bytes is None else max_bytes
    return f"Max size: {limit // 1_000_000}MB"


@dataclass
class SelectedFile:
    """A file picked in the UI: display name, local path and media type."""
    name: str
    path: str
    media_type: str

    @classmethod
    def from_path(cls, path: str, name: Optional[str] = None) -> "SelectedFile":
        name = name or os.path.basename(path)
        return cls(name=name, path=path, media_type=guess_media_type(name))


def interpret_response(body: Any) -> UploadOutcome:
    """Maps a 200 response body from the upload service to an outcome."""
    if isinstance(body, dict):
        error = body.get("error")
        if error:
            if isinstance(error, dict):
                if error.get("code") == SIZE_LIMIT_CODE:
                    return UploadFailure(code=SIZE_LIMIT_CODE, message=max_size_message(), details=error)
                return UploadFailure(code=str(error.get("code") or "ERROR"), message=str(error.get("message") or error), details=error)
            return UploadFailure(code="ERROR", message=str(error))
        if body.get("location"):
            return UploadSuccess(key=str(body.get("image") or ""), location=str(body["location"]))
    if body == NO_FILE_SELECTED_MESSAGE:
        return NoFileSelected(message=body)
    return UploadFailure(code=UNEXPECTED_RESPONSE_CODE, message=str(body))


class UploadClient:
    """Sends one selected file to the upload service and reports the outcome as an alert."""

    def __init__(
        self,
        presenter: AlertPresenter,
        http_client: Optional[httpx.AsyncClient] = None,
        base_url: Optional[str] = None,
    ):
        self.presenter = presenter
        self.field_name = settings.UPLOAD_FIELD_NAME
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(
            base_url=base_url or settings.UPLOAD_SERVICE_URL,
            timeout=settings.UPLOAD_CLIENT_TIMEOUT,
        )

    async def request_upload(self, file: Optional[SelectedFile]) -> UploadOutcome:
        if file is None:
            logger.info("Upload requested without a selected file.")
            outcome: UploadOutcome = NoFileSelected(message=PLEASE_UPLOAD_MESSAGE)
        else:
            outcome = await self._send(file)
        self._notify(outcome)
        return outcome

    async def _send(self, file: SelectedFile) -> UploadOutcome:
        headers: Dict[str, str] = {"Accept": "application/json", "Accept-Language": "en-US,en;q=0.8"}
        logger.info(f"Uploading '{file.name}' ({file.media_type}) to {UPLOAD_ENDPOINT}")
        try:
            with open(file.path, "rb") as f:
                response = await self.http_client.post(
                    UPLOAD_ENDPOINT,
                    files={self.field_name: (file.name, f, file.media_type)},
                    headers=headers,
                )
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, httpx.InvalidURL, OSError, ValueError) as e:
            # Surfaced as-is; no retry
            logger.error(f"Upload of '{file.name}' failed: {e}")
            return UploadFailure(code=TRANSPORT_ERROR_CODE, message=str(e) or type(e).__name__)

        outcome = interpret_response(body)
        if isinstance(outcome, UploadSuccess):
            logger.info(f"Upload of '{file.name}' stored as '{outcome.key}' at {outcome.location}")
        else:
            logger.warning(f"Upload of '{file.name}' not stored: {body}")
        return outcome

    def _notify(self, outcome: UploadOutcome) -> None:
        if isinstance(outcome, UploadSuccess):
            self.presenter.show(f"File Uploaded: {outcome.location}", "success")
        else:
            self.presenter.show(outcome.message, "error")

    async def aclose(self) -> None:
        if self._owns_client:
            await self.http_client.aclose()
