"""
Background thumbnail generation.

`ThumbnailWorker` runs in its own thread, owns its own opened copy of the PDF
and talks to the outside only through messages:

  in:  INIT_PDF, GENERATE_THUMBNAILS, CANCEL, PING
  out: PDF_LOADED, PROGRESS, THUMBNAILS_BATCH, THUMBNAILS_COMPLETE, ERROR,
       CANCELLED, PONG

Every message carries a task id. `ThumbnailChannel` is the caller-side end:
each task gets a future for its result, and messages whose task id is not the
channel's current task are dropped.
"""
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from threading import Event, Lock, Thread
from typing import Any, Callable, Dict, List, Optional
import base64
import io
import logging
import queue
import uuid

from ...composition.rasterizer import SourceDocument

log = logging.getLogger(__name__)

INIT_PDF = "INIT_PDF"
GENERATE_THUMBNAILS = "GENERATE_THUMBNAILS"
CANCEL = "CANCEL"
PING = "PING"
PDF_LOADED = "PDF_LOADED"
PROGRESS = "PROGRESS"
THUMBNAILS_BATCH = "THUMBNAILS_BATCH"
THUMBNAILS_COMPLETE = "THUMBNAILS_COMPLETE"
ERROR = "ERROR"
CANCELLED = "CANCELLED"
PONG = "PONG"

DEFAULT_BATCH_SIZE = 10
PLACEHOLDER_WIDTH = 200
PLACEHOLDER_HEIGHT = 300


@dataclass(frozen=True)
class WorkerMessage:
  type: str
  task_id: Optional[str] = None
  data: Dict[str, Any] = field(default_factory=dict)


def thumbnail_scale(total_pages: int) -> float:
  """Smaller renders for large documents."""
  if total_pages > 500:
    return 0.1
  if total_pages > 200:
    return 0.15
  return 0.3


def render_thumbnail(document: SourceDocument, page_index: int,
                     scale: float) -> Dict[str, Any]:
  image = document.render(page_index, scale)
  buffer = io.BytesIO()
  image.save(buffer, format="PNG")
  encoded = base64.b64encode(buffer.getvalue()).decode("utf-8")
  return {
    "page": page_index,
    "buffer": f"data:image/png;base64,{encoded}",
    "width": image.width,
    "height": image.height,
  }


class ThumbnailWorker:
  """
  Message-driven worker.

  Control messages (CANCEL, PING) are handled on the dispatcher thread so
  they are seen while a generation task is running on the render thread.
  """

  def __init__(self, post_message: Callable[[WorkerMessage], None]):
    self._post = post_message
    self._inbox: "queue.Queue[Optional[WorkerMessage]]" = queue.Queue()
    self._executor = ThreadPoolExecutor(max_workers=1,
                                        thread_name_prefix="thumbnail-render")
    self._cancel_flags: Dict[str, Event] = {}
    self._flags_lock = Lock()
    self._document: Optional[SourceDocument] = None
    self._dispatcher = Thread(target=self._dispatch_loop,
                              name="thumbnail-worker",
                              daemon=True)
    self._dispatcher.start()

  def post_message(self, message: WorkerMessage) -> None:
    self._inbox.put(message)

  def terminate(self) -> None:
    self._inbox.put(None)
    with self._flags_lock:
      for flag in self._cancel_flags.values():
        flag.set()
    self._dispatcher.join(timeout=5)
    self._executor.shutdown(wait=True)
    if self._document is not None:
      self._document.close()
      self._document = None

  def _dispatch_loop(self) -> None:
    while True:
      message = self._inbox.get()
      if message is None:
        return
      try:
        self._handle(message)
      except Exception as e:
        log.exception("Thumbnail worker failed handling %s", message.type)
        self._post(WorkerMessage(ERROR, message.task_id, {"error": str(e)}))

  def _handle(self, message: WorkerMessage) -> None:
    if message.type == INIT_PDF:
      self._executor.submit(self._init_pdf, message.task_id,
                            message.data["pdfData"])
    elif message.type == GENERATE_THUMBNAILS:
      flag = Event()
      with self._flags_lock:
        self._cancel_flags[message.task_id] = flag
      self._executor.submit(self._generate, message.task_id,
                            int(message.data["totalPages"]),
                            int(message.data.get("batchSize") or DEFAULT_BATCH_SIZE),
                            flag)
    elif message.type == CANCEL:
      with self._flags_lock:
        flag = self._cancel_flags.get(message.task_id)
      if flag is not None:
        flag.set()
      self._post(WorkerMessage(CANCELLED, message.task_id))
    elif message.type == PING:
      self._post(WorkerMessage(PONG, message.task_id))
    else:
      self._post(WorkerMessage(ERROR, message.task_id,
                               {"error": f"Unknown message type {message.type}"}))

  def _init_pdf(self, task_id: str, pdf_data: bytes) -> None:
    try:
      if self._document is not None:
        self._document.close()
      self._document = SourceDocument.open(pdf_data, name="thumbnail-source")
      self._post(WorkerMessage(PDF_LOADED, task_id,
                               {"totalPages": self._document.page_count}))
    except Exception as e:
      self._post(WorkerMessage(
        ERROR, task_id, {"error": f"Failed to initialize PDF: {e}"}))

  def _generate(self, task_id: str, total_pages: int, batch_size: int,
                cancelled: Event) -> None:
    try:
      if self._document is None:
        raise RuntimeError("PDF not initialized")
      document = self._document
      total_pages = min(total_pages, document.page_count)
      scale = thumbnail_scale(document.page_count)
      thumbnails: List[Dict[str, Any]] = []

      for batch_start in range(0, total_pages, batch_size):
        batch_end = min(batch_start + batch_size, total_pages)
        batch: List[Dict[str, Any]] = []

        for page_index in range(batch_start, batch_end):
          if cancelled.is_set():
            break
          try:
            batch.append(render_thumbnail(document, page_index, scale))
          except Exception as page_error:
            log.warning(f"Thumbnail for page {page_index + 1} failed: {page_error}")
            batch.append({
              "page": page_index,
              "buffer": None,
              "width": PLACEHOLDER_WIDTH,
              "height": PLACEHOLDER_HEIGHT,
              "error": str(page_error),
            })
          if cancelled.is_set():
            break
          page_num = page_index + 1
          self._post(WorkerMessage(PROGRESS, task_id, {
            "pageNum": page_num,
            "totalPages": total_pages,
            "progress": 50 + (page_num / total_pages) * 50,
            "message": f"Generating thumbnails... {page_num}/{total_pages}",
          }))

        if cancelled.is_set():
          break
        self._post(WorkerMessage(THUMBNAILS_BATCH, task_id, {
          "thumbnails": batch,
          "batchStart": batch_start,
          "batchEnd": batch_start + len(batch) - 1,
        }))
        thumbnails.extend(batch)

      if not cancelled.is_set():
        self._post(WorkerMessage(THUMBNAILS_COMPLETE, task_id,
                                 {"thumbnails": thumbnails}))
    except Exception as e:
      self._post(WorkerMessage(
        ERROR, task_id, {"error": f"Thumbnail generation failed: {e}"}))
    finally:
      with self._flags_lock:
        self._cancel_flags.pop(task_id, None)


@dataclass
class ThumbnailTask:
  task_id: str
  future: Future
  on_progress: Optional[Callable[[Dict[str, Any]], None]] = None
  on_batch: Optional[Callable[[List[Dict[str, Any]]], None]] = None
  cancel_requested: bool = False


class ThumbnailChannel:
  """Caller-side end of the worker protocol, scoped to one current task."""

  def __init__(self, worker_factory: Callable[..., ThumbnailWorker] = ThumbnailWorker):
    self._lock = Lock()
    self._current: Optional[ThumbnailTask] = None
    self._pings: Dict[str, Future] = {}
    self.dropped_messages = 0
    self._worker = worker_factory(self._receive)

  @property
  def current_task_id(self) -> Optional[str]:
    with self._lock:
      return self._current.task_id if self._current else None

  def _start_task(self, **callbacks) -> ThumbnailTask:
    task = ThumbnailTask(task_id=uuid.uuid4().hex, future=Future(), **callbacks)
    with self._lock:
      previous = self._current
      self._current = task
    if previous is not None and not previous.future.done():
      log.debug("Task %s superseded by %s", previous.task_id, task.task_id)
      previous.cancel_requested = True
      previous.future.cancel()
      self._worker.post_message(WorkerMessage(CANCEL, previous.task_id))
    return task

  def load(self, pdf_data: bytes) -> Future:
    """Resolves to the page count once the worker has opened the PDF."""
    task = self._start_task()
    self._worker.post_message(WorkerMessage(INIT_PDF, task.task_id,
                                            {"pdfData": pdf_data}))
    return task.future

  def generate(self, total_pages: int, batch_size: int = DEFAULT_BATCH_SIZE,
               on_progress=None, on_batch=None) -> ThumbnailTask:
    task = self._start_task(on_progress=on_progress, on_batch=on_batch)
    self._worker.post_message(WorkerMessage(GENERATE_THUMBNAILS, task.task_id, {
      "totalPages": total_pages,
      "batchSize": batch_size,
    }))
    return task

  def cancel(self) -> None:
    with self._lock:
      task = self._current
    if task is None or task.future.done():
      return
    task.cancel_requested = True
    self._worker.post_message(WorkerMessage(CANCEL, task.task_id))

  def ping(self) -> Future:
    ping_id = uuid.uuid4().hex
    future: Future = Future()
    with self._lock:
      self._pings[ping_id] = future
    self._worker.post_message(WorkerMessage(PING, ping_id))
    return future

  def close(self) -> None:
    self.cancel()
    self._worker.terminate()

  def _receive(self, message: WorkerMessage) -> None:
    if message.type == PONG:
      with self._lock:
        future = self._pings.pop(message.task_id, None)
      if future is not None:
        future.set_result(True)
      return

    with self._lock:
      task = self._current
      if task is None or message.task_id != task.task_id:
        self.dropped_messages += 1
        log.debug("Dropping stale %s for task %s", message.type,
                  message.task_id)
        return
      if message.type in (THUMBNAILS_COMPLETE, ERROR, CANCELLED):
        self._current = None

    self._apply(task, message)

  def _apply(self, task: ThumbnailTask, message: WorkerMessage) -> None:
    if task.future.done():
      return
    if message.type == PROGRESS:
      if task.on_progress:
        task.on_progress(message.data)
    elif message.type == THUMBNAILS_BATCH:
      if task.on_batch:
        task.on_batch(message.data.get("thumbnails", []))
    elif message.type == THUMBNAILS_COMPLETE:
      task.future.set_result(message.data.get("thumbnails", []))
    elif message.type == PDF_LOADED:
      task.future.set_result(message.data.get("totalPages"))
    elif message.type == CANCELLED:
      task.future.cancel()
    elif message.type == ERROR:
      task.future.set_exception(RuntimeError(message.data.get("error")))


def generate_thumbnails(pdf_data: bytes, max_pages: int,
                        timeout: float = 120.0) -> List[Dict[str, Any]]:
  """Blocking helper: load the PDF in a worker and collect its thumbnails."""
  channel = ThumbnailChannel()
  try:
    page_count = channel.load(pdf_data).result(timeout=timeout)
    task = channel.generate(min(page_count, max_pages))
    return task.future.result(timeout=timeout)
  finally:
    channel.close()
