"""
Startup configuration validation helpers.
"""
import os
from typing import List

DEFAULT_MAX_UPLOAD_MB = 50
DEFAULT_MAX_THUMBNAIL_PAGES = 100


def _is_truthy(value: str) -> bool:
  return value.strip().lower() in ("1", "true", "yes", "on")


def _positive_int(name: str, default: int, errors: List[str]) -> int:
  raw = os.getenv(name, "").strip()
  if not raw:
    return default
  try:
    value = int(raw)
  except ValueError:
    errors.append(f"{name} must be an integer, got '{raw}'.")
    return default
  if value <= 0:
    errors.append(f"{name} must be positive, got {value}.")
    return default
  return value


def max_upload_bytes() -> int:
  return _positive_int("PDF_COMPOSER_MAX_UPLOAD_MB", DEFAULT_MAX_UPLOAD_MB,
                       []) * 1024 * 1024


def max_thumbnail_pages() -> int:
  return _positive_int("PDF_COMPOSER_MAX_THUMBNAIL_PAGES",
                       DEFAULT_MAX_THUMBNAIL_PAGES, [])


def validate_startup_configuration() -> List[str]:
  """
  Validate upload limits and storage directories.

  Returns warnings that should be logged.
  Raises RuntimeError when strict validation is enabled and a value is invalid.
  """
  strict = _is_truthy(os.getenv("PDF_COMPOSER_STRICT_STARTUP_CONFIG", "true"))
  errors: List[str] = []
  warnings: List[str] = []

  _positive_int("PDF_COMPOSER_MAX_UPLOAD_MB", DEFAULT_MAX_UPLOAD_MB, errors)
  _positive_int("PDF_COMPOSER_MAX_THUMBNAIL_PAGES",
                DEFAULT_MAX_THUMBNAIL_PAGES, errors)

  upload_dir = os.getenv("PDF_COMPOSER_UPLOAD_DIR", "").strip()
  output_dir = os.getenv("PDF_COMPOSER_OUTPUT_DIR", "").strip()
  for name, value in (("PDF_COMPOSER_UPLOAD_DIR", upload_dir),
                      ("PDF_COMPOSER_OUTPUT_DIR", output_dir)):
    if not value:
      warnings.append(f"{name} is not set; using the default directory.")
    elif os.path.exists(value) and not os.path.isdir(value):
      errors.append(f"{name} points at a file, not a directory: {value}")

  if upload_dir and output_dir and os.path.abspath(upload_dir) == os.path.abspath(output_dir):
    warnings.append(
      "PDF_COMPOSER_UPLOAD_DIR and PDF_COMPOSER_OUTPUT_DIR are the same directory."
    )

  if strict and errors:
    raise RuntimeError("Startup configuration validation failed: " + " ".join(errors))

  warnings.extend(errors)
  return warnings
