# scripts/cleanup.py
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from hls_reaper.config import HLS_DIR, ORPHAN_MAX_AGE_SECONDS, ORPHAN_TIME_SOURCE
from hls_reaper.workers.reaper import clock_for, run_cycle
from hls_reaper.logging_config import setup_logging

logger = setup_logging("cleanup_script")


def run_cleanup(hls_dir=None, dry_run=False):
    directory = hls_dir or HLS_DIR

    summary = run_cycle(
        directory,
        clock=clock_for(ORPHAN_TIME_SOURCE),
        max_age_seconds=ORPHAN_MAX_AGE_SECONDS,
        dry_run=dry_run,
    )

    logger.info(f"Cleanup{' (dry run)' if dry_run else ''}: {summary['scanned']} segments scanned, "
                f"{summary['deleted']} deleted, {summary['undetermined']} undetermined, "
                f"{summary['failed']} failed")

    return summary


if __name__ == "__main__":
    run_cleanup(dry_run="--dry-run" in sys.argv[1:])
