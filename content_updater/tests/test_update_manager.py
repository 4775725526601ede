"""
Интеграционные тесты ContentUpdater на локальном сервере контента
"""

import json
import os
import time
from unittest.mock import patch

import pytest

from content_updater import (
    CancellationToken,
    ContentUpdater,
    DownloadError,
    FetchError,
    SwapError,
    UpdateCancelledError,
    UpdateInProgressError,
    UpdaterConfig,
    check_for_update,
    run_updater,
)

from .conftest import publish_site, snapshot

STAGING_NAMES = (".dist.update_tmp", ".dist.tmp", "dist.bak", "dist.lock")


def _assert_no_staging(dist_dir):
    for name in STAGING_NAMES:
        assert not (dist_dir.parent / name).exists(), name


def _content_snapshot(dist_dir):
    return snapshot(dist_dir)


class TestRunUpdater:
    """Полный цикл обновления"""

    def test_fresh_install(self, content_server, dist_dir):
        publish_site(content_server, "1")

        result = run_updater(dist_dir, content_server.url)

        assert result.updated is True
        assert result.reason == "updated"
        assert result.local_version is None
        assert result.remote_version == "1"
        assert json.loads((dist_dir / "content.json").read_text())["version"] == "1"
        for relative in ("books/1/cover.png", "books/1/page1.png", "media/intro.mp4",
                         "index.html", "assets/app.css", "assets/app.js", "img/bg.png"):
            assert (dist_dir / relative).is_file(), relative
        assert (dist_dir / ".updated_at").is_file()
        _assert_no_staging(dist_dir)

    def test_update_overlays_existing_tree(self, content_server, dist_dir):
        publish_site(content_server, "1")
        run_updater(dist_dir, content_server.url)
        (dist_dir / "local-only.txt").write_text("keep me")
        publish_site(content_server, "2")

        result = run_updater(dist_dir, content_server.url)

        assert result.updated is True
        assert result.local_version == "1"
        assert result.remote_version == "2"
        assert (dist_dir / "books/1/cover.png").read_text() == "cover-2"
        assert (dist_dir / "local-only.txt").read_text() == "keep me"
        _assert_no_staging(dist_dir)

    def test_idempotence(self, content_server, dist_dir):
        publish_site(content_server, "1")
        run_updater(dist_dir, content_server.url)
        before = _content_snapshot(dist_dir)

        result = run_updater(dist_dir, content_server.url)

        assert result.updated is False
        assert _content_snapshot(dist_dir) == before

    def test_version_gating_fetches_only_manifest(self, content_server, dist_dir):
        publish_site(content_server, "1")
        run_updater(dist_dir, content_server.url)
        content_server.requests.clear()

        result = run_updater(dist_dir, content_server.url)

        assert result.updated is False
        assert result.reason == "same-version"
        assert content_server.requests == ["/content.json"]

    def test_failed_download_applies_nothing(self, content_server, dist_dir):
        publish_site(content_server, "1")
        run_updater(dist_dir, content_server.url)
        before = _content_snapshot(dist_dir)
        publish_site(content_server, "2")
        content_server.fail_paths.add("/books/1/page1.png")
        events = []

        with pytest.raises(DownloadError) as exc_info:
            run_updater(dist_dir, content_server.url, events.append)

        assert exc_info.value.url.endswith("/books/1/page1.png")
        assert _content_snapshot(dist_dir) == before
        _assert_no_staging(dist_dir)
        assert events[-1].percent is None
        assert events[-1].message.startswith("Update failed")

    def test_zero_byte_download_is_failure(self, content_server, dist_dir):
        publish_site(content_server, "1")
        content_server.empty_paths.add("/assets/app.js")

        with pytest.raises(DownloadError):
            run_updater(dist_dir, content_server.url)

        assert not dist_dir.exists()
        _assert_no_staging(dist_dir)

    def test_manifest_failure(self, content_server, dist_dir):
        with pytest.raises(FetchError):
            run_updater(dist_dir, content_server.url)

        _assert_no_staging(dist_dir)

    def test_progress_is_monotonic_and_reaches_100(self, content_server, dist_dir):
        publish_site(content_server, "1")
        events = []

        run_updater(dist_dir, content_server.url, events.append)

        percents = [e.percent for e in events if e.percent is not None]
        assert percents[0] == 0
        assert percents == sorted(percents)
        assert percents[-1] == 100
        messages = [e.message for e in events if e.percent is None]
        assert "Creating folders..." in messages
        assert "Downloading files..." in messages
        assert "Applying update..." in messages

    def test_listener_errors_do_not_abort(self, content_server, dist_dir):
        publish_site(content_server, "1")

        def broken_listener(event):
            raise RuntimeError("window closed")

        result = run_updater(dist_dir, content_server.url, broken_listener)

        assert result.updated is True

    def test_explicit_file_list(self, content_server, dist_dir):
        content_server.write_json("content.json", {
            "version": "5",
            "files": [
                {"path": "content.json"},
                {"url": "/static/data.bin", "path": "data/data.bin", "size": 4},
            ],
        })
        content_server.write("static/data.bin", b"\x00\x01\x02\x03")

        result = run_updater(dist_dir, content_server.url)

        assert result.updated is True
        assert (dist_dir / "data" / "data.bin").read_bytes() == b"\x00\x01\x02\x03"
        assert "/index.html" not in content_server.requests

    def test_file_list_without_manifest_entry_is_idempotent(self, content_server, dist_dir):
        content_server.write_json("content.json", {
            "version": "5",
            "files": [{"url": "/static/a.bin", "relativePath": "books/1/a.bin"}],
        })
        content_server.write("static/a.bin", b"abc")

        first = run_updater(dist_dir, content_server.url)
        second = run_updater(dist_dir, content_server.url)

        assert first.updated is True
        assert (dist_dir / "books/1/a.bin").read_bytes() == b"abc"
        assert not (dist_dir / "a.bin").exists()
        assert json.loads((dist_dir / "content.json").read_text())["version"] == "5"
        assert second.updated is False
        assert second.local_version == "5"

    def test_swap_failure_restores_tree(self, content_server, dist_dir):
        publish_site(content_server, "1")
        run_updater(dist_dir, content_server.url)
        before = _content_snapshot(dist_dir)
        publish_site(content_server, "2")
        real_rename = os.rename
        calls = []

        def rename(src, dst):
            calls.append(src)
            if len(calls) == 2:
                raise OSError("promote failed")
            return real_rename(src, dst)

        with patch("content_updater.providers.atomic_swapper.os.rename", side_effect=rename):
            with pytest.raises(SwapError):
                run_updater(dist_dir, content_server.url)

        assert _content_snapshot(dist_dir) == before
        _assert_no_staging(dist_dir)

    def test_cancellation_cleans_up(self, content_server, dist_dir):
        publish_site(content_server, "1")
        run_updater(dist_dir, content_server.url)
        before = _content_snapshot(dist_dir)
        publish_site(content_server, "2")
        token = CancellationToken()

        def listener(event):
            if event.message.startswith("Downloaded"):
                token.cancel()

        with pytest.raises(UpdateCancelledError):
            run_updater(dist_dir, content_server.url, listener, cancel_token=token)

        assert _content_snapshot(dist_dir) == before
        _assert_no_staging(dist_dir)

    def test_overlapping_call_is_rejected(self, content_server, dist_dir):
        publish_site(content_server, "1")
        lock_file = dist_dir.parent / "dist.lock"
        lock_file.write_text(json.dumps({"pid": os.getpid(), "timestamp": time.time()}))

        with pytest.raises(UpdateInProgressError):
            run_updater(dist_dir, content_server.url)

        assert content_server.requests == []
        lock_file.unlink()

    def test_rejected_call_reports_failure_and_keeps_owner_staging(self, content_server, dist_dir):
        publish_site(content_server, "1")
        lock_file = dist_dir.parent / "dist.lock"
        lock_file.write_text(json.dumps({"pid": os.getpid(), "timestamp": time.time()}))
        owner_staging = dist_dir.parent / ".dist.update_tmp"
        owner_staging.mkdir(parents=True)
        events = []

        with pytest.raises(UpdateInProgressError):
            run_updater(dist_dir, content_server.url, events.append)

        assert events[-1].percent is None
        assert events[-1].message.startswith("Update failed")
        assert owner_staging.exists()
        assert lock_file.exists()
        lock_file.unlink()

    def test_sibling_tree_staging_is_untouched(self, content_server, dist_dir):
        publish_site(content_server, "1")
        sibling_staging = dist_dir.parent / ".other.update_tmp"
        sibling_staging.mkdir(parents=True)
        (sibling_staging / "part.bin").write_bytes(b"in progress")

        run_updater(dist_dir, content_server.url)

        assert (sibling_staging / "part.bin").read_bytes() == b"in progress"
        _assert_no_staging(dist_dir)

    def test_failed_recovery_is_reported_as_swap_error(self, content_server, dist_dir):
        publish_site(content_server, "1")
        backup = dist_dir.parent / "dist.bak"
        backup.mkdir(parents=True)
        events = []

        with patch("content_updater.core.session.os.rename", side_effect=OSError("read-only")):
            with pytest.raises(SwapError) as exc_info:
                run_updater(dist_dir, content_server.url, events.append)

        assert exc_info.value.requires_manual_intervention
        assert events[-1].message.startswith("Update failed")
        assert backup.exists()
        assert content_server.requests == []

    def test_interrupted_swap_is_recovered(self, content_server, dist_dir):
        publish_site(content_server, "1")
        run_updater(dist_dir, content_server.url)
        os.rename(dist_dir, dist_dir.parent / "dist.bak")

        result = run_updater(dist_dir, content_server.url)

        assert result.reason == "same-version"
        assert (dist_dir / "content.json").exists()
        _assert_no_staging(dist_dir)


class TestEnrichment:
    """Аудио-компаньоны для книг с текстом"""

    def _publish(self, server):
        publish_site(server, "1", books=[{
            "id": 7,
            "cover": "cover.png",
            "content": [{"type": "paragraph", "text": "Жили-были"}],
        }])
        server.write("books/7/cover.png", "cover")

    def test_companion_audio_is_downloaded(self, content_server, dist_dir):
        self._publish(content_server)
        content_server.write("books/7/tts.wav", b"RIFF....WAVE")
        events = []

        run_updater(dist_dir, content_server.url, events.append)

        assert (dist_dir / "books/7/tts.wav").read_bytes() == b"RIFF....WAVE"
        percents = [e.percent for e in events if e.percent is not None]
        assert percents == sorted(percents)
        assert percents[-1] == 100
        assert "Fetching companion audio..." in [e.message for e in events]

    def test_missing_audio_is_not_fatal(self, content_server, dist_dir):
        self._publish(content_server)

        result = run_updater(dist_dir, content_server.url)

        assert result.updated is True
        assert not (dist_dir / "books/7/tts.wav").exists()

    def test_enrichment_can_be_disabled(self, content_server, dist_dir):
        self._publish(content_server)
        content_server.write("books/7/tts.wav", b"RIFF")

        ContentUpdater(UpdaterConfig(enrichment_enabled=False)).run(dist_dir, content_server.url)

        assert "/books/7/tts.wav" not in content_server.requests


class TestCheckForUpdate:

    def test_check_reports_versions_without_writes(self, content_server, dist_dir):
        publish_site(content_server, "1")

        result = check_for_update(dist_dir, content_server.url)

        assert result.available is True
        assert result.local_version is None
        assert result.remote_version == "1"
        assert not dist_dir.exists()
        assert content_server.requests == ["/content.json"]

    def test_check_after_install(self, content_server, dist_dir):
        publish_site(content_server, "1")
        run_updater(dist_dir, content_server.url)

        assert check_for_update(dist_dir, content_server.url).available is False
