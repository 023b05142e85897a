"""
In-memory workflow locks keyed by (workflow, session id).
"""
from threading import Lock
from typing import Set, Tuple

_LOCK = Lock()
_ACTIVE_WORKFLOWS: Set[Tuple[str, str]] = set()

EXPORT = "export"


def acquire(workflow: str, session_id: str) -> bool:
  """Try to acquire a workflow lock for a session."""
  key = (workflow, session_id)
  with _LOCK:
    if key in _ACTIVE_WORKFLOWS:
      return False
    _ACTIVE_WORKFLOWS.add(key)
    return True


def release(workflow: str, session_id: str) -> None:
  key = (workflow, session_id)
  with _LOCK:
    _ACTIVE_WORKFLOWS.discard(key)


def release_all(session_id: str) -> None:
  """Drop every lock held for a session being torn down."""
  with _LOCK:
    for key in [k for k in _ACTIVE_WORKFLOWS if k[1] == session_id]:
      _ACTIVE_WORKFLOWS.discard(key)


def is_active(workflow: str, session_id: str) -> bool:
  key = (workflow, session_id)
  with _LOCK:
    return key in _ACTIVE_WORKFLOWS
