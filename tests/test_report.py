"""Tests for claims_scraper.report module."""

from __future__ import annotations

import fcntl
import json
from unittest.mock import patch

import pytest

from claims_scraper.models import OutputFormat, ScrapeResult
from claims_scraper.report import read_report, render, write_report


@pytest.fixture()
def result():
    return ScrapeResult(
        url="https://cases.example.com/acme/Home-Index",
        recursion_depth=2,
        claims=[
            {"Creditor Name": "Widget Supply Co.", "amounts": [{"Amount": "$12,500.00"}]},
        ],
        claim_count=1,
        pages_fetched=2,
        detail_fetches=1,
        wall_time=0.42,
        cpu_time=0.1,
    )


class TestWriteAndRead:
    def test_round_trip(self, result, tmp_path):
        path = tmp_path / "report.json"
        write_report(result, path)
        assert read_report(path) == result

    def test_overwrites_existing(self, result, tmp_path):
        path = tmp_path / "report.json"
        path.write_text("x" * 10_000, encoding="utf-8")
        write_report(result, path)
        assert json.loads(path.read_text(encoding="utf-8"))["claim_count"] == 1

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_report(tmp_path / "nope.json")

    def test_lock_contention_retried(self, result, tmp_path):
        path = tmp_path / "report.json"
        write_report(result, path)

        real_flock = fcntl.flock
        attempts = []

        def flaky_flock(handle, operation):
            if operation & fcntl.LOCK_NB:
                attempts.append(operation)
                if len(attempts) < 3:
                    raise BlockingIOError("locked")
            return real_flock(handle, operation)

        with patch("claims_scraper.report.fcntl.flock", side_effect=flaky_flock), \
             patch("claims_scraper.report._lock.retry.sleep"):
            assert read_report(path) == result
        assert len(attempts) == 3

    def test_lock_gives_up(self, result, tmp_path):
        path = tmp_path / "report.json"
        write_report(result, path)

        def always_locked(handle, operation):
            if operation & fcntl.LOCK_NB:
                raise BlockingIOError("locked")

        with patch("claims_scraper.report.fcntl.flock", side_effect=always_locked), \
             patch("claims_scraper.report._lock.retry.sleep"), \
             pytest.raises(BlockingIOError):
            read_report(path)


class TestRender:
    def test_txt(self, result):
        text = render(result, OutputFormat.TXT)
        lines = text.splitlines()
        assert lines[0] == "Found 1 claims at https://cases.example.com/acme/Home-Index, recursively"
        assert "0.42s wall" in lines[1]
        assert "Widget Supply Co." in text

    def test_txt_single_level(self, result):
        text = render(result.model_copy(update={"recursion_depth": 1}), OutputFormat.TXT)
        assert text.splitlines()[0] == "Found 1 claims at https://cases.example.com/acme/Home-Index"

    def test_txt_lists_errors(self, result):
        failed = result.model_copy(update={"errors": ["Page 2: HTTP 500 Internal Server Error"]})
        assert "Error: Page 2: HTTP 500 Internal Server Error" in render(failed, OutputFormat.TXT)

    def test_json(self, result):
        data = json.loads(render(result, OutputFormat.JSON))
        assert data["claim_count"] == 1
        assert data["claims"][0]["amounts"] == [{"Amount": "$12,500.00"}]
