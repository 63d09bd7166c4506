# hls_reaper/services/retention.py
"""Keep/delete decisions for individual HLS segments.

A segment whose stream still has a playlist is deleted once its sequence
number drops below the oldest sequence the playlist references. A segment
without a playlist (an orphan) is deleted once it has not been touched for
longer than the orphan age threshold. Anything that cannot be decided, such
as an unparseable name, a malformed playlist or unreadable metadata, is
UNDETERMINED and kept.
"""
import enum
import os
import time
from dataclasses import dataclass
from typing import Callable, Optional

from hls_reaper.errors import MetadataError, ParseError, ReadError
from hls_reaper.services.playlist import PlaylistSnapshot, read_playlist
from hls_reaper.services.segments import SegmentIdentity, parse_segment_path, playlist_name

ORPHAN_MAX_AGE_SECONDS = 1800
TIME_SOURCES = ("atime", "mtime")

PlaylistLookup = Callable[[str], Optional[PlaylistSnapshot]]


class Verdict(enum.Enum):
    KEEP = "keep"
    DELETE = "delete"
    UNDETERMINED = "undetermined"


@dataclass(frozen=True)
class Evaluation:
    path: str
    verdict: Verdict
    reason: str
    segment: Optional[SegmentIdentity] = None

    @property
    def should_delete(self) -> bool:
        return self.verdict is Verdict.DELETE


class FileClock:
    """Current time plus a segment's last-use time from filesystem metadata."""

    def __init__(self, time_source: str = "atime"):
        if time_source not in TIME_SOURCES:
            raise ValueError(f"time_source must be one of {TIME_SOURCES}, got {time_source!r}")
        self.time_source = time_source

    def now(self) -> float:
        return time.time()

    def last_access(self, path) -> float:
        try:
            st = os.stat(path)
        except OSError as e:
            raise MetadataError(path, f"unable to read metadata: {e}") from e
        return st.st_atime if self.time_source == "atime" else st.st_mtime


def evaluate(segment: SegmentIdentity, playlist_lookup: PlaylistLookup, clock,
             max_age_seconds: float = ORPHAN_MAX_AGE_SECONDS) -> Evaluation:
    if segment.path is None:
        return Evaluation(
            f"{segment.stream_base}-{segment.sequence}", Verdict.UNDETERMINED,
            "segment has no file path", segment,
        )
    path = segment.path

    try:
        snapshot = playlist_lookup(segment.stream_base)
    except ReadError as e:
        return Evaluation(path, Verdict.UNDETERMINED, f"playlist unusable: {e}", segment)

    if snapshot is not None:
        oldest = snapshot.min_referenced_sequence
        if segment.sequence < oldest:
            return Evaluation(
                path, Verdict.DELETE,
                f"sequence {segment.sequence} is older than playlist window start {oldest}",
                segment,
            )
        return Evaluation(
            path, Verdict.KEEP,
            f"sequence {segment.sequence} is within playlist window starting at {oldest}",
            segment,
        )

    try:
        last_access = clock.last_access(path)
    except MetadataError as e:
        return Evaluation(path, Verdict.UNDETERMINED, str(e), segment)

    age = clock.now() - last_access
    if age > max_age_seconds:
        return Evaluation(
            path, Verdict.DELETE,
            f"orphan segment idle for {age:.0f}s (limit {max_age_seconds:.0f}s)",
            segment,
        )
    return Evaluation(
        path, Verdict.KEEP,
        f"orphan segment idle for {age:.0f}s (limit {max_age_seconds:.0f}s)",
        segment,
    )


def evaluate_path(path, playlist_lookup: PlaylistLookup, clock,
                  max_age_seconds: float = ORPHAN_MAX_AGE_SECONDS) -> Evaluation:
    path = os.fspath(path)
    try:
        segment = parse_segment_path(path)
    except ParseError as e:
        return Evaluation(path, Verdict.UNDETERMINED, f"unparseable segment name: {e.reason}")
    return evaluate(segment, playlist_lookup, clock, max_age_seconds=max_age_seconds)


def directory_playlist_lookup(directory) -> PlaylistLookup:
    """Lookup reading <stream_base>.m3u8 from directory.

    Results, including read errors, are remembered per stream for the
    lifetime of the returned callable. Build a new one for every cycle.
    """
    directory = os.fspath(directory)
    results = {}

    def lookup(stream_base: str) -> Optional[PlaylistSnapshot]:
        if stream_base not in results:
            playlist_path = os.path.join(directory, playlist_name(stream_base))
            if not os.path.exists(playlist_path):
                results[stream_base] = None
            else:
                try:
                    results[stream_base] = read_playlist(playlist_path)
                except ReadError as e:
                    results[stream_base] = (e.path, e.reason)

        result = results[stream_base]
        if isinstance(result, tuple):
            raise ReadError(*result)
        return result

    return lookup
