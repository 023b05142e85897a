"""
Main FastAPI application entry point.
"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pathlib import Path
from dotenv import load_dotenv
import tomllib
import logging
from time import perf_counter

# Load environment variables from .env file
load_dotenv()


def _find_pyproject(start_path: Path) -> Path | None:
  for parent in [start_path, *start_path.parents]:
    candidate = parent / "pyproject.toml"
    if candidate.is_file():
      return candidate
  return None


def _read_project_version() -> str:
  pyproject = _find_pyproject(Path(__file__).resolve())
  if not pyproject:
    return "0.0.0"
  try:
    with pyproject.open("rb") as handle:
      data = tomllib.load(handle)
    return data.get("project", {}).get("version", "0.0.0")
  except Exception:
    return "0.0.0"


PROJECT_VERSION = _read_project_version()


from .services.composition_sessions import session_store
from .services.runtime_metrics import runtime_metrics
from .startup_config import validate_startup_configuration
from .routes import compose, sessions, uploads
from . import storage

log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
  """Validate config and prepare storage; close open sessions on shutdown."""
  for warning in validate_startup_configuration():
    log.warning("Startup config: %s", warning)

  storage.init_directories()

  yield

  session_store.close_all()


app = FastAPI(
  title="PDF Composer API",
  description="Compose citation pages with a positioned cover page and export the result",
  version=PROJECT_VERSION,
  docs_url="/api/docs",
  redoc_url="/api/redoc",
  lifespan=lifespan,
)

# CORS middleware for development
app.add_middleware(
  CORSMiddleware,
  allow_origins=["http://localhost:3000", "http://localhost:8765"],
  allow_credentials=True,
  allow_methods=["*"],
  allow_headers=["*"],
)


@app.middleware("http")
async def request_metrics_middleware(request, call_next):
  start = perf_counter()
  route = request.url.path
  try:
    response = await call_next(request)
    route_obj = request.scope.get("route")
    if route_obj and getattr(route_obj, "path", None):
      route = route_obj.path
    runtime_metrics.record(route, response.status_code)
    if response.status_code >= 500:
      log.error(
        "request_error method=%s route=%s status=%s duration_ms=%.2f",
        request.method,
        route,
        response.status_code,
        (perf_counter() - start) * 1000.0,
      )
    return response
  except Exception:
    route_obj = request.scope.get("route")
    if route_obj and getattr(route_obj, "path", None):
      route = route_obj.path
    runtime_metrics.record(route, 500)
    log.exception(
      "request_exception method=%s route=%s duration_ms=%.2f",
      request.method,
      route,
      (perf_counter() - start) * 1000.0,
    )
    raise


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
  # Rejected input may be NaN or Infinity, which JSON cannot carry back
  errors = [
    {key: value for key, value in error.items() if key not in ("input", "ctx")}
    for error in exc.errors()
  ]
  return JSONResponse(status_code=422,
                      content={"detail": jsonable_encoder(errors)})


@app.get("/api/health")
async def health_check():
  metrics = runtime_metrics.snapshot()
  return {
    "status": "OK",
    "timestamp": datetime.now(timezone.utc).isoformat(),
    "version": PROJECT_VERSION,
    "uptime_seconds": metrics["uptime_seconds"],
    "requests_total": metrics["requests_total"],
    "requests_5xx_total": metrics["requests_5xx_total"],
    "open_sessions": len(session_store),
  }


@app.get("/api/metrics")
async def metrics():
  """Runtime request and artifact counters."""
  return runtime_metrics.snapshot()


app.include_router(uploads.router,   prefix="/api",          tags=["uploads"])
app.include_router(compose.router,   prefix="/api",          tags=["compose"])
app.include_router(sessions.router,  prefix="/api/sessions", tags=["sessions"])

if __name__ == "__main__":
  import uvicorn
  uvicorn.run("pdf_composer.web_api.main:app",
              host="127.0.0.1",
              port=8765,
              reload=True)
