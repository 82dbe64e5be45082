"""Redis-backed progress snapshots for crawl, classification and schema runs."""

import json
import logging
import time
from datetime import datetime, timezone
from typing import Any

import redis

from pulse.config import get_settings

logger = logging.getLogger(__name__)

PROGRESS_TTL_SECONDS = 3600
LOG_EVERY = 10


def progress_key(site_id: str) -> str:
    return f"site_progress:{site_id}"


class ProgressService:
    """Keeps only the latest snapshot per site; the API polls it."""

    def __init__(self):
        self.redis = redis.from_url(get_settings().redis_url)
        self.ttl = PROGRESS_TTL_SECONDS

    def update(
        self,
        site_id: str,
        stage: str,
        current: int,
        total: int,
        elapsed_seconds: float,
        eta_seconds: float | None = None,
        current_url: str | None = None,
        extra: str | None = None,
    ) -> None:
        """Overwrite the snapshot for ``site_id``.

        ``stage`` is one of CRAWL, CLASSIFY or SCHEMAS. Percent is 0 while the
        total is unknown.
        """
        snapshot = {
            "stage": stage,
            "current": current,
            "total": total,
            "percent": round(current * 100 / total, 1) if total > 0 else 0,
            "elapsed_seconds": round(elapsed_seconds, 1),
            "eta_seconds": round(eta_seconds, 1) if eta_seconds else None,
            "current_url": current_url,
            "extra": extra,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        self.redis.setex(progress_key(site_id), self.ttl, json.dumps(snapshot))

    def get(self, site_id: str) -> dict[str, Any] | None:
        raw = self.redis.get(progress_key(site_id))
        return json.loads(raw) if raw else None

    def clear(self, site_id: str) -> None:
        self.redis.delete(progress_key(site_id))


class StageProgress:
    """Progress callback for one stage of one site.

    Runners call it with ``(current, total, url)``; it works out elapsed time
    and ETA, stores the snapshot and logs every ``LOG_EVERY`` items.
    """

    def __init__(self, service: ProgressService, site_id: str, stage: str):
        self.service = service
        self.site_id = site_id
        self.stage = stage
        self.started = time.monotonic()

    def __call__(self, current: int, total: int, current_url: str | None = None) -> None:
        elapsed = time.monotonic() - self.started
        eta = None
        if current and total > current:
            eta = elapsed / current * (total - current)

        if current % LOG_EVERY == 0 or current == total:
            logger.info(f"[{self.stage}] {current}/{total} for site {self.site_id}")

        self.service.update(
            self.site_id,
            stage=self.stage,
            current=current,
            total=total,
            elapsed_seconds=elapsed,
            eta_seconds=eta,
            current_url=current_url,
        )


_progress_service: ProgressService | None = None


def get_progress_service() -> ProgressService:
    global _progress_service
    if _progress_service is None:
        _progress_service = ProgressService()
    return _progress_service
