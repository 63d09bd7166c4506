from fastapi import APIRouter
from hls_reaper.config import HLS_DIR
from hls_reaper.services.health import check_reaper_health

router = APIRouter()


@router.get("/api/v1/health/disk")
def get_disk_health():
    return check_reaper_health(HLS_DIR)
