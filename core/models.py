# core/models.py
from pydantic import BaseModel, Field
from typing import Any, Dict, Literal, Optional, Union
from enum import Enum

# --- Fixed Wire Messages ---

SIZE_LIMIT_CODE = "LIMIT_FILE_SIZE"
SIZE_LIMIT_MESSAGE = "File too large"
TYPE_REJECTED_CODE = "TYPE_REJECTED"
TYPE_REJECTED_MESSAGE = "Error: JS Only!"
STORAGE_ERROR_CODE = "STORAGE_ERROR"
TRANSPORT_ERROR_CODE = "TRANSPORT_ERROR"
UNEXPECTED_RESPONSE_CODE = "UNEXPECTED_RESPONSE"
NO_FILE_SELECTED_MESSAGE = "Error: No File Selected" # Sent as a bare JSON string, not wrapped in {"error": ...}


# --- Request / Validation Models ---

class UploadRequest(BaseModel):
    """A received upload, alive only for the duration of one request."""
    stream: Any = Field(..., description="Binary file-like payload; consumers seek to 0 before reading")
    filename: str = Field(..., description="Original client file name")
    media_type: str = Field("", description="Media type declared by the client")
    size: int = Field(..., ge=0, description="Payload length in bytes")


class RejectionReason(str, Enum):
    SIZE_EXCEEDED = "SizeExceeded"
    TYPE_REJECTED = "TypeRejected"


class ValidationResult(BaseModel):
    accepted: bool
    reason: Optional[RejectionReason] = None
    message: Optional[str] = None

    @classmethod
    def accept(cls) -> "ValidationResult":
        return cls(accepted=True)

    @classmethod
    def reject(cls, reason: RejectionReason, message: str) -> "ValidationResult":
        return cls(accepted=False, reason=reason, message=message)


class StoredObject(BaseModel):
    """Reference to an object owned by the external store."""
    key: str
    location: str = Field(..., description="Public URL of the stored object")


# --- Upload Outcomes ---

class UploadSuccess(BaseModel):
    kind: Literal["success"] = "success"
    key: str
    location: str


class UploadFailure(BaseModel):
    kind: Literal["failure"] = "failure"
    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class NoFileSelected(BaseModel):
    kind: Literal["no_file"] = "no_file"
    message: str = NO_FILE_SELECTED_MESSAGE


UploadOutcome = Union[UploadSuccess, UploadFailure, NoFileSelected]


# --- Wire Models ---

class UploadSuccessBody(BaseModel):
    """Success body. 'image' carries the storage key."""
    image: str
    location: str


class SizeLimitError(BaseModel):
    code: str = SIZE_LIMIT_CODE
    message: str = SIZE_LIMIT_MESSAGE
    field: Optional[str] = None
    limit: Optional[int] = None


class HealthResponse(BaseModel):
    status: str
    storage_backend: str
    max_upload_size_bytes: int
