from fastapi import APIRouter, HTTPException
from hls_reaper.config import HLS_DIR, ORPHAN_MAX_AGE_SECONDS, ORPHAN_TIME_SOURCE
from hls_reaper.services.retention import Verdict
from hls_reaper.workers.reaper import clock_for, preview_cycle

router = APIRouter()


@router.get("/api/v1/segments")
def get_segment_verdicts():
    try:
        evaluations = preview_cycle(
            HLS_DIR, clock=clock_for(ORPHAN_TIME_SOURCE), max_age_seconds=ORPHAN_MAX_AGE_SECONDS
        )
    except OSError as e:
        raise HTTPException(status_code=503, detail=f"Unable to list {HLS_DIR}: {e.strerror}")

    segments = [
        {
            "path": ev.path,
            "stream_base": ev.segment.stream_base if ev.segment else None,
            "sequence": ev.segment.sequence if ev.segment else None,
            "verdict": ev.verdict.value,
            "reason": ev.reason,
        }
        for ev in sorted(evaluations, key=lambda ev: ev.path)
    ]
    return {
        "directory": HLS_DIR,
        "total": len(segments),
        "deletable": sum(1 for ev in evaluations if ev.verdict is Verdict.DELETE),
        "segments": segments,
    }
