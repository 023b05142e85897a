"""
In-memory runtime request and artifact metrics.
"""
from collections import defaultdict
from threading import Lock
from time import time
from typing import Dict


class RuntimeMetrics:
  """
  In-process counters for requests and produced artifacts.
  """

  def __init__(self):
    self._lock = Lock()
    self._started_at = time()
    self._totals: Dict[str, int] = defaultdict(int)
    self._status_buckets: Dict[str, int] = defaultdict(int)
    self._route_totals: Dict[str, int] = defaultdict(int)
    self._artifacts: Dict[str, int] = defaultdict(int)

  @property
  def uptime_seconds(self) -> int:
    return int(time() - self._started_at)

  def record(self, route: str, status_code: int) -> None:
    """Record one completed request."""
    status_bucket = f"{status_code // 100}xx"
    with self._lock:
      self._totals["requests_total"] += 1
      if status_code >= 500:
        self._totals["requests_5xx_total"] += 1
      self._status_buckets[status_bucket] += 1
      self._route_totals[route] += 1

  def record_artifact(self, kind: str) -> None:
    """Count one upload, merged PDF or export by kind."""
    with self._lock:
      self._artifacts[kind] += 1

  def snapshot(self) -> dict:
    with self._lock:
      return {
        "uptime_seconds": self.uptime_seconds,
        "requests_total": self._totals.get("requests_total", 0),
        "requests_5xx_total": self._totals.get("requests_5xx_total", 0),
        "status_buckets": dict(self._status_buckets),
        "route_totals": dict(self._route_totals),
        "artifacts": dict(self._artifacts),
      }


runtime_metrics = RuntimeMetrics()
