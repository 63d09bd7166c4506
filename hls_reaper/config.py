import os
from dotenv import load_dotenv

load_dotenv()

HLS_CLEANUP = os.getenv("HLS_CLEANUP")
HLS_DIR = os.getenv("HLS_DIR", "/tmp/hls")
CLEANUP_INTERVAL_SECONDS = float(os.getenv("CLEANUP_INTERVAL_SECONDS", "15"))
ORPHAN_MAX_AGE_SECONDS = float(os.getenv("ORPHAN_MAX_AGE_SECONDS", "1800"))
ORPHAN_TIME_SOURCE = os.getenv("ORPHAN_TIME_SOURCE", "atime")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
DISK_WARNING_PERCENT = float(os.getenv("DISK_WARNING_PERCENT", "85"))
