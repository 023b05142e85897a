"""
Page merge and artifact download endpoints.
"""
import asyncio
import logging

from fastapi import APIRouter, HTTPException
from fastapi.responses import FileResponse

from ..models import ComposeRequest, DownloadResponse
from ..services import page_merge
from ..services.runtime_metrics import runtime_metrics
from .. import storage

router = APIRouter()
log = logging.getLogger(__name__)

MEDIA_TYPES = {
  ".pdf": "application/pdf",
  ".png": "image/png",
  ".jpg": "image/jpeg",
  ".jpeg": "image/jpeg",
}


@router.post("/compose", response_model=DownloadResponse)
async def compose_pdf(request: ComposeRequest):
  """
  Merge the selected pages (ascending) and the optional cover into a new PDF.
  """
  if not request.file_id or not request.selected_pages:
    raise HTTPException(status_code=400, detail="Missing required parameters")

  export_format = (request.export_format or "pdf").strip().lower()
  if export_format != "pdf":
    raise HTTPException(status_code=400,
                        detail=f"Unsupported export format '{request.export_format}'")

  source_path = storage.resolve_upload(request.file_id)

  try:
    merged = await asyncio.to_thread(page_merge.merge,
                                     source_path,
                                     request.selected_pages,
                                     request.cover_page,
                                     request.cover_placement)
  except page_merge.MergeError as e:
    log.error(f"Compose failed for {request.file_id}: {e}")
    raise HTTPException(status_code=500, detail=str(e))

  filename = storage.new_output_filename("composed", "pdf")
  await asyncio.to_thread(storage.write_output, filename, merged)
  runtime_metrics.record_artifact("merged_pdf")

  return DownloadResponse(download_url=f"/api/download/{filename}",
                          filename=filename)


@router.get("/download/{filename}")
async def download_artifact(filename: str):
  path = storage.resolve_output(filename)
  media_type = MEDIA_TYPES.get(path.suffix.lower(), "application/octet-stream")
  return FileResponse(path, media_type=media_type, filename=path.name)
