# services/upload_service/app/responses.py
"""Maps upload outcomes to the wire contract of POST /api/bundle/js-upload.

Validation outcomes are always answered with 200; the body tells them apart:

    success      {"image": <key>, "location": <url>}
    type         {"error": "Error: JS Only!"}
    size         {"error": {"code": "LIMIT_FILE_SIZE", ...}}
    no file      "Error: No File Selected"     (bare string)

Only storage-backend failures leave the 200 range (502).
"""
from fastapi import status
from fastapi.responses import JSONResponse

from core.models import (
    NoFileSelected, SizeLimitError, UploadFailure, UploadOutcome, UploadSuccess, UploadSuccessBody,
    SIZE_LIMIT_CODE, STORAGE_ERROR_CODE,
)


def build_response(outcome: UploadOutcome) -> JSONResponse:
    if isinstance(outcome, UploadSuccess):
        body = UploadSuccessBody(image=outcome.key, location=outcome.location)
        return JSONResponse(status_code=status.HTTP_200_OK, content=body.model_dump())

    if isinstance(outcome, NoFileSelected):
        return JSONResponse(status_code=status.HTTP_200_OK, content=outcome.message)

    if isinstance(outcome, UploadFailure):
        if outcome.code == SIZE_LIMIT_CODE:
            error = SizeLimitError(message=outcome.message, **outcome.details)
            return JSONResponse(status_code=status.HTTP_200_OK, content={"error": error.model_dump(exclude_none=True)})
        if outcome.code == STORAGE_ERROR_CODE:
            return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content={"error": outcome.message})
        return JSONResponse(status_code=status.HTTP_200_OK, content={"error": outcome.message})

    raise TypeError(f"Unsupported upload outcome: {type(outcome).__name__}")
