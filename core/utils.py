# core/utils.py
"""
Core Utility Functions.

Storage-key derivation shared by the upload service. A key is the original
basename, a dash, the wall-clock time in milliseconds and the original extension:

    bundle.js  ->  bundle-1718031234567.js

Two uploads of the same file name inside the same millisecond produce the same
key. The storage adapters refuse to overwrite, so such a collision fails the second
upload instead of replacing the first object.
"""
import ntpath
import os
import time
from typing import Optional, Tuple


def now_millis() -> int:
    """Current wall-clock time in integer milliseconds."""
    return time.time_ns() // 1_000_000


def split_filename(name: str) -> Tuple[str, str]:
    """Returns (basename without extension, extension including the dot).

    Directory components are dropped for both '/' and '\\' separators, since
    some browsers submit the full client path.
    """
    base = ntpath.basename(name.replace("/", "\\"))
    stem, ext = os.path.splitext(base)
    return stem, ext


def extension_of(name: str) -> str:
    """Lower-cased extension without the leading dot ('' when there is none)."""
    return split_filename(name)[1].lstrip(".").lower()


def generate_storage_key(name: str, now_ms: Optional[int] = None) -> str:
    stem, ext = split_filename(name)
    timestamp = now_millis() if now_ms is None else now_ms
    return f"{stem}-{timestamp}{ext}"
