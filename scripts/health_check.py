# scripts/health_check.py
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from hls_reaper.config import HLS_DIR
from hls_reaper.services.health import check_reaper_health
from hls_reaper.logging_config import setup_logging

logger = setup_logging("health_check_script")


def run_health_check(hls_dir=None):
    directory = hls_dir or HLS_DIR
    health = check_reaper_health(directory)

    if not health["exists"]:
        logger.warning(f"Health: {health['status']} | {directory} missing")
        return health

    logger.info(f"Health: {health['status']} | Disk: {health['disk_percent']:.0f}% | "
                f"Segments: {health['segments']} ({health['segment_bytes']} bytes) | "
                f"Playlists: {health['playlists']}")

    if health["status"] == "degraded":
        logger.warning(f"Disk usage of {directory} is above the warning threshold")

    return health


if __name__ == "__main__":
    run_health_check()
