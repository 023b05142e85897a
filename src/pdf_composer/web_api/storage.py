"""
Upload and output directories plus filename helpers.
"""
from datetime import datetime
from pathlib import Path
from typing import Optional
import logging
import os
import re
import uuid

from fastapi import HTTPException

log = logging.getLogger(__name__)

DEFAULT_UPLOAD_DIR = "uploads"
DEFAULT_OUTPUT_DIR = "temp"


def get_upload_dir() -> Path:
  return Path(os.getenv("PDF_COMPOSER_UPLOAD_DIR", DEFAULT_UPLOAD_DIR))


def get_output_dir() -> Path:
  return Path(os.getenv("PDF_COMPOSER_OUTPUT_DIR", DEFAULT_OUTPUT_DIR))


def init_directories() -> None:
  for directory in (get_upload_dir(), get_output_dir()):
    directory.mkdir(parents=True, exist_ok=True)
  log.info("Storage directories ready: uploads=%s output=%s", get_upload_dir(),
           get_output_dir())


def sanitize_uploaded_filename(raw_filename: str) -> str:
  """
  Return a safe filename for local filesystem writes.

  Removes path separators and normalizes suspicious characters so uploaded
  names cannot escape the target directory.
  """
  trimmed = (raw_filename or "").strip()
  if not trimmed:
    raise HTTPException(status_code=400, detail="Uploaded file name is empty")

  candidate = Path(trimmed.replace("\\", "/")).name.strip()
  if not candidate or candidate in (".", ".."):
    raise HTTPException(status_code=400,
                        detail=f"Invalid uploaded filename '{raw_filename}'")

  safe_name = re.sub(r"[^A-Za-z0-9._-]", "_", candidate).strip(". ")
  if not safe_name:
    raise HTTPException(status_code=400,
                        detail=f"Invalid uploaded filename '{raw_filename}'")
  return safe_name


def new_file_id(original_filename: str) -> str:
  """Timestamped, collision-resistant id that doubles as the stored file name."""
  stamp = datetime.now().strftime("%Y%m%d%H%M%S")
  return f"{stamp}-{uuid.uuid4().hex[:8]}-{sanitize_uploaded_filename(original_filename)}"


def new_output_filename(prefix: str, extension: str) -> str:
  stamp = datetime.now().strftime("%Y%m%d%H%M%S")
  return f"{prefix}-{stamp}-{uuid.uuid4().hex[:8]}.{extension}"


def _resolve_inside(directory: Path, name: str) -> Optional[Path]:
  """Resolve `name` inside `directory`, or None when it would escape it."""
  if not name or "/" in name or "\\" in name or "\x00" in name:
    return None
  root = directory.resolve()
  candidate = (root / name).resolve()
  if candidate.parent != root:
    return None
  return candidate


def resolve_upload(file_id: str) -> Path:
  path = _resolve_inside(get_upload_dir(), file_id)
  if path is None or not path.is_file():
    raise HTTPException(status_code=404, detail="PDF not found")
  return path


def resolve_output(filename: str) -> Path:
  path = _resolve_inside(get_output_dir(), filename)
  if path is None or not path.is_file():
    raise HTTPException(status_code=404, detail="File not found")
  return path


def write_output(filename: str, data: bytes) -> Path:
  output_dir = get_output_dir()
  output_dir.mkdir(parents=True, exist_ok=True)
  path = output_dir / filename
  path.write_bytes(data)
  log.info(f"Wrote {len(data)} bytes to {path}")
  return path


def write_upload(file_id: str, data: bytes) -> Path:
  upload_dir = get_upload_dir()
  upload_dir.mkdir(parents=True, exist_ok=True)
  path = upload_dir / file_id
  path.write_bytes(data)
  return path
