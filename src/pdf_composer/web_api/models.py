"""
Request and response models for the composer API.

JSON uses camelCase keys; Python attributes stay snake_case.
"""
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, FiniteFloat

from ..composition.geometry import Rect, Size


class ApiModel(BaseModel):
  model_config = ConfigDict(populate_by_name=True)


class Thumbnail(ApiModel):
  page: int
  buffer: Optional[str] = None
  width: int
  height: int
  error: Optional[str] = None


class UploadResponse(ApiModel):
  success: bool = True
  file_id: str = Field(alias="fileId")
  page_count: int = Field(alias="pageCount")
  thumbnails: List[Thumbnail]
  filename: str


class PdfInfoResponse(ApiModel):
  page_count: int = Field(alias="pageCount")
  filename: str


class ComposeRequest(ApiModel):
  """Merge request: selected pages plus an optional cover page"""
  file_id: str = Field(alias="fileId")
  selected_pages: List[int] = Field(default_factory=list, alias="selectedPages")
  cover_page: Optional[int] = Field(default=None, alias="coverPage")
  cover_placement: str = Field(default="top", alias="coverPlacement")
  export_format: str = Field(default="pdf", alias="exportFormat")


class DownloadResponse(ApiModel):
  success: bool = True
  download_url: str = Field(alias="downloadUrl")
  filename: str


class RectModel(ApiModel):
  x: FiniteFloat
  y: FiniteFloat
  width: FiniteFloat
  height: FiniteFloat

  def to_rect(self) -> Rect:
    return Rect(self.x, self.y, self.width, self.height)


class SizeModel(ApiModel):
  width: FiniteFloat
  height: FiniteFloat

  def to_size(self) -> Size:
    return Size(self.width, self.height)


class SessionCreate(ApiModel):
  file_id: str = Field(alias="fileId")


class LayoutUpdate(ApiModel):
  """Where the background page is displayed inside its container"""
  layout_box: RectModel = Field(alias="layoutBox")
  container_size: Optional[SizeModel] = Field(default=None, alias="containerSize")


class PositionUpdate(ApiModel):
  x: FiniteFloat
  y: FiniteFloat


class MoveRequest(ApiModel):
  dx: FiniteFloat
  dy: FiniteFloat


class ScaleUpdate(ApiModel):
  scale: FiniteFloat


class WheelRequest(ApiModel):
  delta_y: FiniteFloat = Field(alias="deltaY")


class PinchRequest(ApiModel):
  start_scale: FiniteFloat = Field(alias="startScale")
  initial_distance: FiniteFloat = Field(alias="initialDistance")
  current_distance: FiniteFloat = Field(alias="currentDistance")


class ResizeRequest(ApiModel):
  start_scale: FiniteFloat = Field(alias="startScale")
  delta_x: FiniteFloat = Field(alias="deltaX")


class DragRequest(ApiModel):
  """Pointer event for a drag: phase is start, move or end"""
  phase: str
  x: FiniteFloat = 0.0
  y: FiniteFloat = 0.0


class ExportRequest(ApiModel):
  kind: str = "png"
  quality_scale: Optional[FiniteFloat] = Field(default=None, gt=0, le=16,
                                               alias="qualityScale")
  mode: str = "custom"


class TransformResponse(ApiModel):
  x: float
  y: float
  scale: float
  width: float
  height: float


class SessionResponse(ApiModel):
  session_id: str = Field(alias="sessionId")
  file_id: str = Field(alias="fileId")
  page_count: int = Field(alias="pageCount")
  page_sizes: List[Dict[str, float]] = Field(alias="pageSizes")
  citations: List[int]
  cover: Optional[int] = None
  transform: Optional[TransformResponse] = None


class ExportResponse(ApiModel):
  success: bool = True
  download_url: str = Field(alias="downloadUrl")
  filename: str
  kind: str
  width: int
  height: int
  quality_scale: float = Field(alias="qualityScale")
