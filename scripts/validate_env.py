#!/usr/bin/env python3
"""
Validate a .env-style file against the composer's startup checks.
"""
import argparse
import os
from pathlib import Path

from dotenv import dotenv_values

from pdf_composer.web_api.startup_config import validate_startup_configuration


def main() -> int:
  parser = argparse.ArgumentParser(description="Validate composer env file")
  parser.add_argument("env_file", help="Path to .env-style file")
  args = parser.parse_args()

  env_path = Path(args.env_file)
  if not env_path.exists():
    print(f"[ERROR] Env file not found: {env_path}")
    return 1

  values = {k: v for k, v in dotenv_values(env_path).items() if v is not None}
  os.environ.update(values)
  # Always report every problem instead of stopping at the first
  os.environ["PDF_COMPOSER_STRICT_STARTUP_CONFIG"] = "false"

  for warning in validate_startup_configuration():
    print(f"[WARN] {warning}")

  strict = values.get("PDF_COMPOSER_STRICT_STARTUP_CONFIG", "true")
  os.environ["PDF_COMPOSER_STRICT_STARTUP_CONFIG"] = strict
  try:
    validate_startup_configuration()
  except RuntimeError as e:
    print(f"[ERROR] {e}")
    return 1

  print(f"[OK] Env validation passed: {env_path}")
  return 0


if __name__ == "__main__":
  raise SystemExit(main())
