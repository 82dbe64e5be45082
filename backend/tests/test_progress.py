"""Tests for Redis-backed progress snapshots."""

import json
from unittest.mock import MagicMock, patch

import pytest

from pulse.services.progress import ProgressService, StageProgress


@pytest.fixture
def fake_redis():
    client = MagicMock()
    with patch("pulse.services.progress.redis.from_url", return_value=client):
        yield client


class TestProgressService:
    def test_update_writes_snapshot_with_ttl(self, fake_redis):
        ProgressService().update("site-1", "CRAWL", current=25, total=200, elapsed_seconds=12.345, current_url="https://a.com/x")

        key, ttl, payload = fake_redis.setex.call_args.args
        data = json.loads(payload)
        assert key == "site_progress:site-1"
        assert ttl == 3600
        assert data["percent"] == 12.5
        assert data["elapsed_seconds"] == 12.3
        assert data["eta_seconds"] is None
        assert data["current_url"] == "https://a.com/x"

    def test_zero_total(self, fake_redis):
        ProgressService().update("site-1", "SCHEMAS", current=0, total=0, elapsed_seconds=0)
        data = json.loads(fake_redis.setex.call_args.args[2])
        assert data["percent"] == 0

    def test_get(self, fake_redis):
        fake_redis.get.return_value = json.dumps({"stage": "CLASSIFY"}).encode()
        assert ProgressService().get("site-1") == {"stage": "CLASSIFY"}

        fake_redis.get.return_value = None
        assert ProgressService().get("site-1") is None

    def test_clear(self, fake_redis):
        ProgressService().clear("site-1")
        fake_redis.delete.assert_called_once_with("site_progress:site-1")


class TestStageProgress:
    def test_eta_from_rate(self):
        service = MagicMock()
        reporter = StageProgress(service, "site-1", "CLASSIFY")
        with patch("pulse.services.progress.time.monotonic", return_value=reporter.started + 10):
            reporter(5, 15, "https://a.com/p")

        kwargs = service.update.call_args.kwargs
        assert kwargs["stage"] == "CLASSIFY"
        assert kwargs["elapsed_seconds"] == pytest.approx(10)
        assert kwargs["eta_seconds"] == pytest.approx(20)

    def test_no_eta_before_first_item(self):
        service = MagicMock()
        StageProgress(service, "site-1", "CRAWL")(0, 10)
        assert service.update.call_args.kwargs["eta_seconds"] is None
