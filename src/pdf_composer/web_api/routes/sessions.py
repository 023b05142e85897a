"""
Interactive composition session endpoints: selection, layout, overlay
gestures, previews and exports.
"""
import asyncio
import io
import logging

from fastapi import APIRouter, HTTPException
from fastapi.responses import Response

from ...composition.compositor import UnsupportedCompositionMode
from ...composition.export_pipeline import (ExportInProgressError,
                                            NothingToExportError,
                                            UnsupportedExportKind)
from ...composition.rasterizer import DocumentLoadError
from ..models import (DragRequest, ExportRequest, ExportResponse, LayoutUpdate,
                      MoveRequest, PinchRequest, PositionUpdate, ResizeRequest,
                      ScaleUpdate, SessionCreate, SessionResponse, WheelRequest)
from ..services.composition_sessions import (CompositionSession, NoOverlayError,
                                             SessionNotFoundError, session_store)
from ..services.runtime_metrics import runtime_metrics
from .. import storage
from .. import workflow_locks

router = APIRouter()
log = logging.getLogger(__name__)


def _get_session(session_id: str) -> CompositionSession:
  try:
    return session_store.get(session_id)
  except SessionNotFoundError:
    raise HTTPException(status_code=404, detail="Session not found")


def _transform_op(session_id: str, operation) -> dict:
  session = _get_session(session_id)
  try:
    operation(session)
  except NoOverlayError as e:
    raise HTTPException(status_code=400, detail=str(e))
  except ValueError as e:
    raise HTTPException(status_code=400, detail=str(e))
  return session.to_dict()


@router.post("", response_model=SessionResponse)
async def create_session(request: SessionCreate):
  """Open a stored upload for interactive composition."""
  path = storage.resolve_upload(request.file_id)
  try:
    session = await asyncio.to_thread(session_store.create, request.file_id, path)
  except DocumentLoadError as e:
    raise HTTPException(status_code=400, detail=str(e))
  return session.to_dict()


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(session_id: str):
  return _get_session(session_id).to_dict()


@router.delete("/{session_id}")
async def delete_session(session_id: str):
  """Unload the document and forget the selection."""
  try:
    session_store.remove(session_id)
  except SessionNotFoundError:
    raise HTTPException(status_code=404, detail="Session not found")
  workflow_locks.release_all(session_id)
  return {"success": True}


@router.put("/{session_id}/citations/{page}", response_model=SessionResponse)
async def toggle_citation(session_id: str, page: int):
  session = _get_session(session_id)
  try:
    session.toggle_citation(page)
  except IndexError as e:
    raise HTTPException(status_code=400, detail=str(e))
  return session.to_dict()


@router.put("/{session_id}/cover/{page}", response_model=SessionResponse)
async def toggle_cover(session_id: str, page: int):
  session = _get_session(session_id)
  try:
    session.toggle_cover(page)
  except IndexError as e:
    raise HTTPException(status_code=400, detail=str(e))
  return session.to_dict()


@router.put("/{session_id}/layout", response_model=SessionResponse)
async def update_layout(session_id: str, update: LayoutUpdate):
  session = _get_session(session_id)
  container_size = update.container_size.to_size() if update.container_size else None
  session.update_layout(update.layout_box.to_rect(), container_size)
  return session.to_dict()


@router.post("/{session_id}/cover/position", response_model=SessionResponse)
async def set_cover_position(session_id: str, update: PositionUpdate):
  return _transform_op(session_id, lambda s: s.set_position(update.x, update.y))


@router.post("/{session_id}/cover/move", response_model=SessionResponse)
async def move_cover(session_id: str, update: MoveRequest):
  return _transform_op(session_id, lambda s: s.move_by(update.dx, update.dy))


@router.post("/{session_id}/cover/scale", response_model=SessionResponse)
async def set_cover_scale(session_id: str, update: ScaleUpdate):
  return _transform_op(session_id, lambda s: s.set_scale(update.scale))


@router.post("/{session_id}/cover/reset", response_model=SessionResponse)
async def reset_cover(session_id: str):
  return _transform_op(session_id, lambda s: s.reset_transform())


@router.post("/{session_id}/cover/wheel", response_model=SessionResponse)
async def wheel_cover(session_id: str, update: WheelRequest):
  return _transform_op(session_id, lambda s: s.wheel(update.delta_y))


@router.post("/{session_id}/cover/pinch", response_model=SessionResponse)
async def pinch_cover(session_id: str, update: PinchRequest):
  return _transform_op(
    session_id,
    lambda s: s.pinch(update.start_scale, update.initial_distance,
                      update.current_distance))


@router.post("/{session_id}/cover/resize", response_model=SessionResponse)
async def resize_cover(session_id: str, update: ResizeRequest):
  return _transform_op(session_id,
                       lambda s: s.resize(update.start_scale, update.delta_x))


@router.post("/{session_id}/cover/drag", response_model=SessionResponse)
async def drag_cover(session_id: str, update: DragRequest):
  return _transform_op(session_id,
                       lambda s: s.drag(update.phase, update.x, update.y))


@router.get("/{session_id}/preview")
async def get_preview(session_id: str, mode: str = "custom"):
  """
  Render the current composition at preview size as PNG.

  `mode` is "custom" (cover over citation) or "sidebyside". Returns 409 when
  a newer preview request superseded this one.
  """
  session = _get_session(session_id)
  try:
    image = await session.preview(mode)
  except (NothingToExportError, NoOverlayError, UnsupportedCompositionMode) as e:
    raise HTTPException(status_code=400, detail=str(e))
  if image is None:
    raise HTTPException(status_code=409, detail="Preview superseded by a newer request")

  buffer = io.BytesIO()
  image.save(buffer, format="PNG")
  return Response(content=buffer.getvalue(), media_type="image/png")


@router.get("/{session_id}/batch-preview")
async def get_batch_preview(session_id: str):
  session = _get_session(session_id)
  items = await asyncio.to_thread(session.batch_preview)
  return {"items": [item.to_dict() for item in items]}


@router.post("/{session_id}/export", response_model=ExportResponse)
async def export_composition(session_id: str, request: ExportRequest):
  """Render and store a PNG, JPEG or single-page PDF of the composition."""
  session = _get_session(session_id)

  if not workflow_locks.acquire(workflow_locks.EXPORT, session_id):
    raise HTTPException(status_code=409,
                        detail="An export is already running for this session")
  try:
    artifact = await asyncio.to_thread(session.export, request.kind,
                                       request.quality_scale, request.mode)
  except (UnsupportedExportKind, UnsupportedCompositionMode) as e:
    raise HTTPException(status_code=400, detail=str(e))
  except NoOverlayError as e:
    raise HTTPException(status_code=400, detail=str(e))
  except NothingToExportError as e:
    raise HTTPException(status_code=400, detail=str(e))
  except ExportInProgressError as e:
    raise HTTPException(status_code=409, detail=str(e))
  finally:
    workflow_locks.release(workflow_locks.EXPORT, session_id)

  filename = storage.new_output_filename("composition", artifact.extension)
  await asyncio.to_thread(storage.write_output, filename, artifact.data)
  runtime_metrics.record_artifact(artifact.kind.value)
  log.info("Session %s exported %s (%sx%s)", session_id, filename,
           artifact.width, artifact.height)

  return ExportResponse(download_url=f"/api/download/{filename}",
                        filename=filename,
                        kind=artifact.kind.value,
                        width=artifact.width,
                        height=artifact.height,
                        quality_scale=artifact.quality_scale)
