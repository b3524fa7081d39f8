# core/config.py
import os
from pydantic_settings import BaseSettings
from dotenv import load_dotenv
import logging
from typing import List, Literal, Optional

# Load variables from .env file located in the project root directory
dotenv_path = os.path.join(os.path.dirname(os.path.dirname(__file__)), '.env')
if os.path.exists(dotenv_path):
    load_dotenv(dotenv_path=dotenv_path)
else:
    load_dotenv() # Fallback

class Settings(BaseSettings):
    """Loads configuration settings from environment variables and .env file."""

    # --- Upload Gating ---
    MAX_UPLOAD_SIZE_BYTES: int = 20_000_000 # 20 MB
    MULTIPART_OVERHEAD_BYTES: int = 64 * 1024 # Allowance for multipart framing on the Content-Length gate
    ALLOWED_EXTENSIONS: List[str] = ["js", "jsx"]
    ALLOWED_MEDIA_TYPES: List[str] = ["text/javascript"]
    UPLOAD_FIELD_NAME: str = "JSUpload"

    # --- Storage Backend ---
    STORAGE_BACKEND: Literal["supabase", "s3"] = "supabase"
    STORAGE_BUCKET: str = ""

    # Supabase Storage
    SUPABASE_URL: Optional[str] = None
    SUPABASE_SERVICE_KEY: Optional[str] = None # SERVICE_ROLE key, uploads bypass RLS

    # AWS S3 (or S3-compatible)
    AWS_REGION: str = "us-east-1"
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[str] = None
    S3_ENDPOINT_URL: Optional[str] = None # e.g. MinIO / R2 endpoint, path-style locations
    S3_PUBLIC_BASE_URL: Optional[str] = None # e.g. CDN in front of the bucket

    # --- Client / UI ---
    UPLOAD_SERVICE_URL: str = "http://localhost:8000"
    UPLOAD_CLIENT_TIMEOUT: float = 120.0
    ALERT_TIMEOUT_SECONDS: float = 60.0
    ALERT_FADE_SECONDS: float = 0.6

    class Config:
        env_file = '.env'
        env_file_encoding = 'utf-8'
        extra = 'ignore'

# Instantiate settings once for import
settings = Settings()

# --- Logging Setup ---
log_level_str = os.getenv("LOG_LEVEL", "INFO").upper(); log_level = getattr(logging, log_level_str, logging.INFO)
logging.basicConfig(level=log_level, format='%(asctime)s - %(name)s - [%(levelname)s] - %(message)s', datefmt='%Y-%m-%d %H:%M:%S')
logger = logging.getLogger("BundleUpload_Core")
logging.getLogger("httpx").setLevel(logging.WARNING); logging.getLogger("supabase").setLevel(logging.WARNING)
logging.getLogger("botocore").setLevel(logging.WARNING); logging.getLogger("boto3").setLevel(logging.WARNING)

# --- Configuration Validation Checks ---
logger.info(f"Core Settings loaded. Log Level: {log_level_str}")
if settings.MAX_UPLOAD_SIZE_BYTES <= 0: logger.error(f"Invalid MAX_UPLOAD_SIZE_BYTES: {settings.MAX_UPLOAD_SIZE_BYTES}. Every upload will be rejected.")
else: logger.info(f"Upload Config: Max Size={settings.MAX_UPLOAD_SIZE_BYTES} bytes, Field='{settings.UPLOAD_FIELD_NAME}', Extensions={settings.ALLOWED_EXTENSIONS}, Media Types={settings.ALLOWED_MEDIA_TYPES}")
if not settings.STORAGE_BUCKET: logger.warning("STORAGE_BUCKET missing. Uploads will fail until a bucket is configured.")
else: logger.info(f"Using {settings.STORAGE_BACKEND} storage bucket: {settings.STORAGE_BUCKET}")
if settings.STORAGE_BACKEND == "supabase":
    if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_KEY: logger.warning("Supabase URL/Service Key missing.")
elif settings.STORAGE_BACKEND == "s3":
    # boto3 can still resolve credentials from its own chain (profile, instance role)
    if not settings.AWS_ACCESS_KEY_ID or not settings.AWS_SECRET_ACCESS_KEY: logger.warning("AWS access key pair not set, falling back to the boto3 credential chain.")
