"""
PDF Composer: page selection, cover overlay composition and export.
"""
import logging.config
import os
import re
from pathlib import Path
from typing import Optional
import yaml

_ENV_REFERENCE = re.compile(r'\$\{([^}:]+):-([^}]+)\}')


def _find_logging_config() -> Optional[Path]:
  package_dir = Path(__file__).resolve().parent
  repo_root = package_dir.parent.parent
  configured = (os.environ.get("PDF_COMPOSER_LOGGING_CONFIG")
                or os.environ.get("LOGGING_CONFIG"))

  candidates = [
    Path(configured) if configured else None,
    repo_root / "logging.yaml",
    package_dir / "logging.yaml",
  ]
  return next((path for path in candidates if path and path.is_file()), None)


def _expand_env_references(config_text: str) -> str:
  """Replace ${VAR:-default} with the environment value or the default."""
  return _ENV_REFERENCE.sub(
    lambda match: os.environ.get(match.group(1), match.group(2)),
    config_text)


def setup_logging() -> None:
  config_path = _find_logging_config()
  if config_path is None:
    logging.basicConfig(level=logging.INFO)
    return

  config_text = _expand_env_references(config_path.read_text())
  logging.config.dictConfig(yaml.safe_load(config_text))


setup_logging()
