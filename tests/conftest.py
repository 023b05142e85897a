"""
Shared fixtures: PyMuPDF-built source PDFs and an isolated API client.
"""
from typing import List, Optional, Sequence, Tuple

import fitz  # PyMuPDF
import pytest
from fastapi.testclient import TestClient

PAGE_COLORS = [
  (1.0, 0.0, 0.0),
  (0.0, 0.6, 0.0),
  (0.0, 0.0, 1.0),
  (1.0, 0.8, 0.0),
  (0.5, 0.0, 0.5),
  (0.0, 0.5, 0.5),
]


def build_pdf(page_count: int = 4,
              sizes: Optional[Sequence[Tuple[float, float]]] = None) -> bytes:
  """PDF whose pages are filled with distinct colors and labeled 'Page N'."""
  document = fitz.open()
  try:
    for index in range(page_count):
      width, height = sizes[index] if sizes else (200, 280)
      page = document.new_page(width=width, height=height)
      color = PAGE_COLORS[index % len(PAGE_COLORS)]
      page.draw_rect(page.rect, color=color, fill=color)
      page.insert_text((20, 40), f"Page {index + 1}", fontsize=18,
                       color=(1, 1, 1))
    return document.tobytes()
  finally:
    document.close()


def page_labels(pdf_bytes: bytes) -> List[str]:
  """The 'Page N' label of every page, in document order."""
  document = fitz.open("pdf", pdf_bytes)
  try:
    return [page.get_text().strip() for page in document]
  finally:
    document.close()


@pytest.fixture
def sample_pdf() -> bytes:
  return build_pdf(4)


@pytest.fixture
def sample_pdf_path(tmp_path, sample_pdf):
  path = tmp_path / "sample.pdf"
  path.write_bytes(sample_pdf)
  return path


@pytest.fixture
def client(tmp_path, monkeypatch):
  """Test client with isolated upload and output directories"""
  monkeypatch.setenv("PDF_COMPOSER_UPLOAD_DIR", str(tmp_path / "uploads"))
  monkeypatch.setenv("PDF_COMPOSER_OUTPUT_DIR", str(tmp_path / "output"))
  monkeypatch.setenv("PDF_COMPOSER_STRICT_STARTUP_CONFIG", "true")
  monkeypatch.delenv("PDF_COMPOSER_MAX_UPLOAD_MB", raising=False)
  monkeypatch.delenv("PDF_COMPOSER_MAX_THUMBNAIL_PAGES", raising=False)

  from pdf_composer.web_api.main import app

  with TestClient(app) as test_client:
    yield test_client
