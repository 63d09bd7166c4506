# hls_reaper/workers/reaper.py
import asyncio
import os
from typing import Iterator, List, Optional

from hls_reaper.errors import DeleteError
from hls_reaper.logging_config import setup_logging
from hls_reaper.services.retention import (
    ORPHAN_MAX_AGE_SECONDS,
    TIME_SOURCES,
    Evaluation,
    FileClock,
    Verdict,
    directory_playlist_lookup,
    evaluate_path,
)
from hls_reaper.services.segments import SEGMENT_EXT

logger = setup_logging("reaper")

CLEANUP_INTERVAL_SECONDS = 15


def cleanup_enabled(flag: Optional[str]) -> bool:
    """Whether this process owns segment cleanup.

    HLS_CLEANUP=off means the streaming server's own cleanup is disabled and
    the reaper takes over. Any other value leaves cleanup to the server, and
    an unset flag means the reaper never runs.
    """
    if flag is None:
        logger.info("HLS_CLEANUP is not set, reaper disabled")
        return False
    if flag != "off":
        logger.info(f"HLS_CLEANUP={flag!r}, cleanup is done by the streaming server")
        return False
    return True


def clock_for(time_source: str) -> FileClock:
    """FileClock for the configured time source, falling back to atime."""
    if time_source not in TIME_SOURCES:
        logger.warning(
            f"ORPHAN_TIME_SOURCE={time_source!r} is not one of {TIME_SOURCES}, using atime"
        )
        return FileClock("atime")
    return FileClock(time_source)


def list_candidates(directory) -> Iterator[str]:
    """Yield the .ts files directly inside directory (non-recursive)."""
    with os.scandir(directory) as entries:
        for entry in entries:
            if not entry.name.endswith(SEGMENT_EXT):
                continue
            try:
                if not entry.is_file():
                    continue
            except OSError as e:
                logger.warning(f"Unable to stat {entry.path}: {e}")
                continue
            yield entry.path


def delete_segment(path: str) -> None:
    try:
        os.remove(path)
    except OSError as e:
        raise DeleteError(path, f"unable to remove: {e}") from e


def preview_cycle(directory, clock=None, max_age_seconds=ORPHAN_MAX_AGE_SECONDS) -> List[Evaluation]:
    """Evaluate every candidate in directory without deleting anything."""
    clock = clock or FileClock()
    lookup = directory_playlist_lookup(directory)
    return [
        evaluate_path(path, lookup, clock, max_age_seconds=max_age_seconds)
        for path in list_candidates(directory)
    ]


def run_cycle(directory, clock=None, max_age_seconds=ORPHAN_MAX_AGE_SECONDS, dry_run=False) -> dict:
    """Evaluate all segments in directory once and delete the stale ones.

    Per-segment failures are logged and counted. Only a failure to list the
    directory propagates to the caller.
    """
    clock = clock or FileClock()
    lookup = directory_playlist_lookup(directory)
    summary = {"scanned": 0, "kept": 0, "deleted": 0, "undetermined": 0, "failed": 0}

    for path in list_candidates(directory):
        summary["scanned"] += 1
        logger.debug(f"Processing {path}")
        result = evaluate_path(path, lookup, clock, max_age_seconds=max_age_seconds)

        if result.verdict is Verdict.UNDETERMINED:
            summary["undetermined"] += 1
            logger.error(f"Keeping {path}, unable to decide: {result.reason}")
            continue

        if result.verdict is Verdict.KEEP:
            summary["kept"] += 1
            logger.debug(f"Keeping {path}: {result.reason}")
            continue

        if dry_run:
            summary["deleted"] += 1
            logger.info(f"Would delete {path}: {result.reason}")
            continue

        try:
            delete_segment(path)
        except DeleteError as e:
            summary["failed"] += 1
            logger.warning(f"Failed to delete {e.path}: {e.reason}")
            continue

        summary["deleted"] += 1
        logger.info(f"Deleted {path}: {result.reason}")

    return summary


async def run_forever(directory, interval_seconds=CLEANUP_INTERVAL_SECONDS, clock=None,
                      max_age_seconds=ORPHAN_MAX_AGE_SECONDS, max_cycles=None):
    """Run one cleanup cycle per tick until cancelled.

    Cycles run in a worker thread one at a time. A cycle that overruns its
    tick delays the next one instead of overlapping it.
    """
    loop = asyncio.get_running_loop()
    cycles = 0
    logger.info(f"Reaping {directory} every {interval_seconds}s, orphan limit {max_age_seconds}s")

    try:
        while max_cycles is None or cycles < max_cycles:
            started = loop.time()
            try:
                summary = await asyncio.to_thread(
                    run_cycle, directory, clock=clock, max_age_seconds=max_age_seconds
                )
                if summary["deleted"] or summary["failed"] or summary["undetermined"]:
                    logger.info(
                        f"Cycle done: {summary['scanned']} scanned, {summary['deleted']} deleted, "
                        f"{summary['undetermined']} undetermined, {summary['failed']} failed"
                    )
            except Exception as e:
                logger.exception(f"Cleanup cycle for {directory} failed: {e}")
            cycles += 1

            if max_cycles is not None and cycles >= max_cycles:
                break
            elapsed = loop.time() - started
            await asyncio.sleep(max(0.0, interval_seconds - elapsed))
    except asyncio.CancelledError:
        logger.info("Reaper cancelled")
        raise

    return cycles


def main():
    from hls_reaper.config import (
        CLEANUP_INTERVAL_SECONDS as interval,
        HLS_CLEANUP,
        HLS_DIR,
        ORPHAN_MAX_AGE_SECONDS as max_age,
        ORPHAN_TIME_SOURCE,
    )

    logger.info("HLS segment reaper initialized")
    if not cleanup_enabled(HLS_CLEANUP):
        return 0

    clock = clock_for(ORPHAN_TIME_SOURCE)
    try:
        asyncio.run(run_forever(HLS_DIR, interval_seconds=interval, clock=clock, max_age_seconds=max_age))
    except KeyboardInterrupt:
        logger.info("Reaper stopped")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
