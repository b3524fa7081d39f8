# services/upload_service/app/main.py
from fastapi import FastAPI
from core.config import settings
from core.models import HealthResponse
from core.storage import reset_storage_adapter
from core.supabase_client import reset_supabase_client
import logging
from contextlib import asynccontextmanager

# Use logger configured in core.config
logger = logging.getLogger("BundleUpload_Core").getChild("UploadService")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Storage clients are created lazily on the first accepted upload
    logger.info(f"Upload Service starting (storage backend: {settings.STORAGE_BACKEND}, max size: {settings.MAX_UPLOAD_SIZE_BYTES} bytes).")

    yield # Application runs here

    logger.info("Upload Service shutdown: dropping cached storage clients.")
    reset_storage_adapter()
    reset_supabase_client()

# --- FastAPI App ---
app = FastAPI(
    title="Bundle Upload Service",
    description="Receives single JS bundle uploads, validates them and stores them in the object store",
    version="1.0.0",
    lifespan=lifespan
)

# --- Health Check ---
@app.get("/health", response_model=HealthResponse, tags=["Meta"])
async def health_check():
    return HealthResponse(
        status="ok",
        storage_backend=settings.STORAGE_BACKEND,
        max_upload_size_bytes=settings.MAX_UPLOAD_SIZE_BYTES,
    )

# --- Routing ---
# Import routers AFTER app is defined
from .routers import bundle_upload

app.include_router(bundle_upload.router, prefix="/api/bundle", tags=["Bundle Upload"])

@app.get("/", tags=["Meta"])
async def read_root():
    return {"message": "Bundle Upload Service is running. POST a bundle to /api/bundle/js-upload"}
