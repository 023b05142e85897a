"""
PDF upload, page info and thumbnail endpoints.
"""
from typing import Optional
import asyncio
import logging

from fastapi import APIRouter, File, HTTPException, UploadFile

from ...composition.rasterizer import DocumentLoadError, SourceDocument
from ..models import PdfInfoResponse, UploadResponse
from ..services.runtime_metrics import runtime_metrics
from ..services.thumbnail_worker import generate_thumbnails
from ..startup_config import max_thumbnail_pages, max_upload_bytes
from .. import storage

router = APIRouter()
log = logging.getLogger(__name__)

PDF_MEDIA_TYPE = "application/pdf"


def _count_pages(source) -> int:
  document = SourceDocument.open(source)
  try:
    return document.page_count
  finally:
    document.close()


async def _read_limited(upload: UploadFile, limit: int) -> bytes:
  """Read the upload, failing with 413 as soon as it exceeds `limit` bytes."""
  chunks = []
  total = 0
  while True:
    chunk = await upload.read(1024 * 1024)
    if not chunk:
      break
    total += len(chunk)
    if total > limit:
      raise HTTPException(
        status_code=413,
        detail=f"File too large (limit {limit // (1024 * 1024)} MB)")
    chunks.append(chunk)
  return b"".join(chunks)


@router.post("/upload", response_model=UploadResponse)
async def upload_pdf(pdf: Optional[UploadFile] = File(None)):
  """Store an uploaded PDF and return its page count and thumbnails."""
  if pdf is None or not pdf.filename:
    raise HTTPException(status_code=400, detail="No PDF file uploaded")

  if (pdf.content_type or "").split(";")[0].strip().lower() != PDF_MEDIA_TYPE:
    raise HTTPException(status_code=415,
                        detail=f"Only PDF files are allowed, got '{pdf.content_type}'")

  content = await _read_limited(pdf, max_upload_bytes())
  if not content:
    raise HTTPException(status_code=400, detail="Uploaded PDF is empty")

  try:
    page_count = await asyncio.to_thread(_count_pages, content)
  except DocumentLoadError as e:
    log.warning(f"Rejected upload {pdf.filename}: {e}")
    raise HTTPException(status_code=400, detail=f"Failed to load PDF: {e}")

  file_id = storage.new_file_id(pdf.filename)
  await asyncio.to_thread(storage.write_upload, file_id, content)
  runtime_metrics.record_artifact("upload")
  log.info("Stored upload %s (%s pages, %s bytes)", file_id, page_count,
           len(content))

  thumbnails = await asyncio.to_thread(generate_thumbnails, content,
                                       max_thumbnail_pages())

  return UploadResponse(file_id=file_id,
                        page_count=page_count,
                        thumbnails=thumbnails,
                        filename=pdf.filename)


@router.get("/pdf/{file_id}/info", response_model=PdfInfoResponse)
async def get_pdf_info(file_id: str):
  path = storage.resolve_upload(file_id)
  try:
    page_count = await asyncio.to_thread(_count_pages, path)
  except DocumentLoadError:
    raise HTTPException(status_code=404, detail="PDF not found")
  return PdfInfoResponse(page_count=page_count, filename=file_id)


@router.get("/pdf/{file_id}/thumbnails")
async def get_pdf_thumbnails(file_id: str):
  """Thumbnails for the first pages of a stored PDF, rendered by the worker."""
  path = storage.resolve_upload(file_id)
  content = await asyncio.to_thread(path.read_bytes)
  try:
    thumbnails = await asyncio.to_thread(generate_thumbnails, content,
                                         max_thumbnail_pages())
  except RuntimeError as e:
    log.error(f"Thumbnail generation failed for {file_id}: {e}")
    raise HTTPException(status_code=500, detail=str(e))
  return {"thumbnails": thumbnails}
