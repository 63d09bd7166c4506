# tests/test_reaper.py
import asyncio
import os
import shutil
import time
import pytest
from unittest.mock import patch
from hls_reaper.errors import DeleteError
from hls_reaper.services.retention import FileClock, Verdict
from hls_reaper.workers.reaper import (
    cleanup_enabled,
    clock_for,
    delete_segment,
    list_candidates,
    main,
    preview_cycle,
    run_cycle,
    run_forever,
)

TEST_DIR = "./data/test_reaper"


def write_segment(name, age_seconds=0):
    path = os.path.join(TEST_DIR, name)
    with open(path, "wb") as f:
        f.write(b"\x47" * 188)
    if age_seconds:
        old_time = time.time() - age_seconds
        os.utime(path, (old_time, old_time))
    return path


def write_playlist(base, sequences):
    lines = ["#EXTM3U", "#EXT-X-TARGETDURATION:4", f"#EXT-X-MEDIA-SEQUENCE:{min(sequences)}"]
    for seq in sequences:
        lines += ["#EXTINF:4.000,", f"{base}-{seq}.ts"]
    with open(os.path.join(TEST_DIR, f"{base}.m3u8"), "w") as f:
        f.write("\n".join(lines) + "\n")


def exists(name):
    return os.path.exists(os.path.join(TEST_DIR, name))


@pytest.fixture(autouse=True)
def setup_teardown():
    os.makedirs(TEST_DIR, exist_ok=True)
    yield
    shutil.rmtree(TEST_DIR, ignore_errors=True)


def test_cycle_deletes_segments_behind_playlist_window():
    for seq in range(1, 11):
        write_segment(f"a-{seq}.ts")
    write_playlist("a", range(5, 11))

    summary = run_cycle(TEST_DIR)

    assert summary["scanned"] == 10
    assert summary["deleted"] == 4
    assert summary["kept"] == 6
    for seq in range(1, 5):
        assert not exists(f"a-{seq}.ts")
    for seq in range(5, 11):
        assert exists(f"a-{seq}.ts")
    assert exists("a.m3u8")


def test_cycle_keeps_recent_orphan():
    write_segment("b-1.ts", age_seconds=29 * 60)
    summary = run_cycle(TEST_DIR)
    assert summary["kept"] == 1
    assert exists("b-1.ts")


def test_cycle_deletes_old_orphan():
    write_segment("b-1.ts", age_seconds=31 * 60)
    summary = run_cycle(TEST_DIR)
    assert summary["deleted"] == 1
    assert not exists("b-1.ts")


def test_cycle_uses_configured_time_source():
    path = write_segment("b-1.ts")
    old_time = time.time() - 3600
    os.utime(path, (time.time(), old_time))

    assert run_cycle(TEST_DIR, clock=FileClock("atime"))["kept"] == 1
    assert run_cycle(TEST_DIR, clock=FileClock("mtime"))["deleted"] == 1


def test_cycle_keeps_everything_for_broken_playlist():
    for seq in range(1, 4):
        write_segment(f"a-{seq}.ts", age_seconds=3600)
    with open(os.path.join(TEST_DIR, "a.m3u8"), "w") as f:
        f.write("#EXTM3U\n#EXTINF:4.0,\n")

    summary = run_cycle(TEST_DIR)

    assert summary["undetermined"] == 3
    assert summary["deleted"] == 0
    for seq in range(1, 4):
        assert exists(f"a-{seq}.ts")


def test_cycle_keeps_segments_of_empty_playlist():
    write_segment("a-1.ts", age_seconds=3600)
    with open(os.path.join(TEST_DIR, "a.m3u8"), "w") as f:
        f.write("#EXTM3U\n#EXT-X-TARGETDURATION:4\n")

    summary = run_cycle(TEST_DIR)
    assert summary["undetermined"] == 1
    assert exists("a-1.ts")


def test_cycle_never_deletes_unparseable_names():
    write_segment("nodash.ts", age_seconds=7200)
    write_segment("stream-abc.ts", age_seconds=7200)

    summary = run_cycle(TEST_DIR)

    assert summary["undetermined"] == 2
    assert exists("nodash.ts")
    assert exists("stream-abc.ts")


def test_cycle_ignores_other_files_and_subdirectories():
    write_segment("notes.txt", age_seconds=7200)
    os.makedirs(os.path.join(TEST_DIR, "old-1.ts"))
    os.makedirs(os.path.join(TEST_DIR, "nested"))
    with open(os.path.join(TEST_DIR, "nested", "c-1.ts"), "wb") as f:
        f.write(b"\x47")

    summary = run_cycle(TEST_DIR)

    assert summary["scanned"] == 0
    assert exists("notes.txt")
    assert exists(os.path.join("nested", "c-1.ts"))


def test_cycle_handles_independent_streams():
    write_segment("a-1.ts")
    write_segment("a-2.ts")
    write_playlist("a", [2])
    write_segment("cam-01-7.ts")
    write_segment("cam-01-9.ts")
    write_playlist("cam-01", [8, 9])
    write_segment("gone-3.ts", age_seconds=7200)

    summary = run_cycle(TEST_DIR)

    assert summary["deleted"] == 3
    assert not exists("a-1.ts")
    assert exists("a-2.ts")
    assert not exists("cam-01-7.ts")
    assert exists("cam-01-9.ts")
    assert not exists("gone-3.ts")


def test_cycle_dry_run_deletes_nothing():
    write_segment("b-1.ts", age_seconds=7200)
    summary = run_cycle(TEST_DIR, dry_run=True)
    assert summary["deleted"] == 1
    assert exists("b-1.ts")


def test_cycle_continues_after_delete_failure():
    write_segment("b-1.ts", age_seconds=7200)
    write_segment("b-2.ts", age_seconds=7200)

    real_remove = os.remove

    def flaky_remove(path):
        if path.endswith("b-1.ts"):
            raise PermissionError(13, "Permission denied", path)
        real_remove(path)

    with patch("hls_reaper.workers.reaper.os.remove", side_effect=flaky_remove):
        summary = run_cycle(TEST_DIR)

    assert summary["failed"] == 1
    assert summary["deleted"] == 1
    assert exists("b-1.ts")
    assert not exists("b-2.ts")


def test_cycle_missing_directory_raises():
    with pytest.raises(OSError):
        run_cycle(os.path.join(TEST_DIR, "missing"))


def test_list_candidates_is_flat():
    write_segment("a-1.ts")
    write_segment("a.m3u8")
    assert [os.path.basename(p) for p in list_candidates(TEST_DIR)] == ["a-1.ts"]


def test_delete_segment_missing_file_raises():
    with pytest.raises(DeleteError) as exc_info:
        delete_segment(os.path.join(TEST_DIR, "gone-1.ts"))
    assert "unable to remove" in exc_info.value.reason


def test_preview_cycle_does_not_delete():
    write_segment("a-1.ts")
    write_segment("a-2.ts")
    write_playlist("a", [2])

    evaluations = {os.path.basename(e.path): e.verdict for e in preview_cycle(TEST_DIR)}

    assert evaluations == {"a-1.ts": Verdict.DELETE, "a-2.ts": Verdict.KEEP}
    assert exists("a-1.ts")


def test_cleanup_enabled_only_when_server_cleanup_off():
    assert cleanup_enabled("off") is True
    assert cleanup_enabled("on") is False
    assert cleanup_enabled("") is False
    assert cleanup_enabled(None) is False


def test_run_forever_runs_requested_cycles():
    write_segment("b-1.ts", age_seconds=7200)
    cycles = asyncio.run(run_forever(TEST_DIR, interval_seconds=0, max_cycles=2))
    assert cycles == 2
    assert not exists("b-1.ts")


def test_run_forever_survives_failing_cycle():
    with patch("hls_reaper.workers.reaper.run_cycle", side_effect=[OSError("gone"), {
        "scanned": 0, "kept": 0, "deleted": 0, "undetermined": 0, "failed": 0,
    }]) as mock_cycle:
        cycles = asyncio.run(run_forever(TEST_DIR, interval_seconds=0, max_cycles=2))
    assert cycles == 2
    assert mock_cycle.call_count == 2


@patch("hls_reaper.workers.reaper.run_forever")
def test_main_exits_when_flag_unset(mock_run):
    with patch("hls_reaper.config.HLS_CLEANUP", None):
        assert main() == 0
    mock_run.assert_not_called()


@patch("hls_reaper.workers.reaper.run_forever")
def test_main_exits_when_cleanup_delegated(mock_run):
    with patch("hls_reaper.config.HLS_CLEANUP", "on"):
        assert main() == 0
    mock_run.assert_not_called()


def test_main_runs_loop_when_enabled():
    async def fake_run_forever(directory, **kwargs):
        fake_run_forever.calls.append((directory, kwargs))
        return 0
    fake_run_forever.calls = []

    with patch("hls_reaper.config.HLS_CLEANUP", "off"), \
            patch("hls_reaper.config.HLS_DIR", TEST_DIR), \
            patch("hls_reaper.workers.reaper.run_forever", fake_run_forever):
        assert main() == 0

    assert len(fake_run_forever.calls) == 1
    directory, kwargs = fake_run_forever.calls[0]
    assert directory == TEST_DIR
    assert isinstance(kwargs["clock"], FileClock)


def test_clock_for_known_time_sources():
    assert clock_for("atime").time_source == "atime"
    assert clock_for("mtime").time_source == "mtime"


def test_clock_for_unknown_time_source_falls_back_to_atime():
    with patch("hls_reaper.workers.reaper.logger") as mock_logger:
        clock = clock_for("ctime")
    assert clock.time_source == "atime"
    mock_logger.warning.assert_called_once()


def test_main_survives_unknown_time_source():
    async def fake_run_forever(directory, **kwargs):
        fake_run_forever.clock = kwargs["clock"]
        return 0

    with patch("hls_reaper.config.HLS_CLEANUP", "off"), \
            patch("hls_reaper.config.HLS_DIR", TEST_DIR), \
            patch("hls_reaper.config.ORPHAN_TIME_SOURCE", "ctime"), \
            patch("hls_reaper.workers.reaper.run_forever", fake_run_forever):
        assert main() == 0

    assert fake_run_forever.clock.time_source == "atime"


def test_run_forever_logs_traceback_of_failed_cycle():
    with patch("hls_reaper.workers.reaper.run_cycle", side_effect=OSError("gone")), \
            patch("hls_reaper.workers.reaper.logger") as mock_logger:
        asyncio.run(run_forever(TEST_DIR, interval_seconds=0, max_cycles=1))
    mock_logger.exception.assert_called_once()
    assert "gone" in mock_logger.exception.call_args[0][0]
