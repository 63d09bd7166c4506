# hls_reaper/services/health.py
import os
import psutil
from hls_reaper.config import DISK_WARNING_PERCENT
from hls_reaper.logging_config import setup_logging
from hls_reaper.services.segments import PLAYLIST_EXT, SEGMENT_EXT

logger = setup_logging("health")


def check_disk_usage(path="/", warning_percent=None):
    """Check disk usage of the filesystem holding path."""
    limit = DISK_WARNING_PERCENT if warning_percent is None else warning_percent
    usage = psutil.disk_usage(path)
    return {
        "disk_percent": usage.percent,
        "free_bytes": usage.free,
        "warning": usage.percent > limit,
    }


def count_hls_files(directory):
    """Count segment and playlist files directly inside directory."""
    counts = {"segments": 0, "playlists": 0, "segment_bytes": 0}
    if not os.path.isdir(directory):
        return counts

    with os.scandir(directory) as entries:
        for entry in entries:
            try:
                if not entry.is_file():
                    continue
            except OSError:
                # removed between listing and stat
                continue
            if entry.name.endswith(SEGMENT_EXT):
                counts["segments"] += 1
                try:
                    counts["segment_bytes"] += entry.stat().st_size
                except OSError:
                    # removed between listing and stat
                    continue
            elif entry.name.endswith(PLAYLIST_EXT):
                counts["playlists"] += 1
    return counts


def check_reaper_health(directory):
    """Run all health checks for the reaped directory and return a summary."""
    if not os.path.isdir(directory):
        logger.warning(f"HLS directory {directory} does not exist")
        return {
            "status": "degraded",
            "directory": directory,
            "exists": False,
            "disk_percent": None,
            "segments": 0,
            "playlists": 0,
            "segment_bytes": 0,
        }

    disk = check_disk_usage(directory)
    files = count_hls_files(directory)

    return {
        "status": "degraded" if disk["warning"] else "healthy",
        "directory": directory,
        "exists": True,
        "disk_percent": disk["disk_percent"],
        "segments": files["segments"],
        "playlists": files["playlists"],
        "segment_bytes": files["segment_bytes"],
    }
