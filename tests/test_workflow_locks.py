"""
Unit tests for in-memory workflow lock coordination.
"""
from concurrent.futures import ThreadPoolExecutor

from pdf_composer.web_api import workflow_locks


def test_workflow_lock_acquire_release_cycle():
  """Same workflow/session cannot be acquired twice until released."""
  session_id = "session-101"

  try:
    assert workflow_locks.acquire(workflow_locks.EXPORT, session_id) is True
    assert workflow_locks.is_active(workflow_locks.EXPORT, session_id) is True
    assert workflow_locks.acquire(workflow_locks.EXPORT, session_id) is False
  finally:
    workflow_locks.release(workflow_locks.EXPORT, session_id)

  assert workflow_locks.is_active(workflow_locks.EXPORT, session_id) is False


def test_sessions_do_not_block_each_other():
  try:
    assert workflow_locks.acquire(workflow_locks.EXPORT, "session-a") is True
    assert workflow_locks.acquire(workflow_locks.EXPORT, "session-b") is True
  finally:
    workflow_locks.release(workflow_locks.EXPORT, "session-a")
    workflow_locks.release(workflow_locks.EXPORT, "session-b")


def test_release_all_drops_every_session_lock():
  session_id = "session-303"
  workflow_locks.acquire(workflow_locks.EXPORT, session_id)
  workflow_locks.acquire("preview", session_id)

  workflow_locks.release_all(session_id)

  assert workflow_locks.is_active(workflow_locks.EXPORT, session_id) is False
  assert workflow_locks.is_active("preview", session_id) is False


def test_acquire_is_atomic_under_race():
  """Concurrent acquisitions should allow only one winner."""
  session_id = "session-404"

  try:
    with ThreadPoolExecutor(max_workers=8) as executor:
      results = list(executor.map(
        lambda _: workflow_locks.acquire(workflow_locks.EXPORT, session_id),
        range(8)))

    assert results.count(True) == 1
  finally:
    workflow_locks.release(workflow_locks.EXPORT, session_id)
