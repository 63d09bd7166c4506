# hls_reaper/services/segments.py
import os
import re
from dataclasses import dataclass
from typing import Optional

from hls_reaper.errors import ParseError

SEGMENT_EXT = ".ts"
PLAYLIST_EXT = ".m3u8"

_SEQUENCE_RE = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class SegmentIdentity:
    stream_base: str
    sequence: int
    path: Optional[str] = None


def parse_segment_name(name: str, path: Optional[str] = None, require_extension: bool = True) -> SegmentIdentity:
    """Parse `<stream_base>-<sequence>.ts` into a SegmentIdentity.

    With require_extension=False (playlist URIs) any extension is stripped
    without being checked. The split happens on the last "-", so stream
    bases may themselves contain hyphens: "cam-01-000123.ts" is ("cam-01", 123).
    """
    where = path or name
    try:
        name.encode("utf-8")
    except UnicodeEncodeError:
        raise ParseError(where, "name contains invalid characters")

    if require_extension:
        if not name.endswith(SEGMENT_EXT):
            raise ParseError(where, f"not a {SEGMENT_EXT} segment")
        stem = name[:-len(SEGMENT_EXT)]
    else:
        stem = os.path.splitext(name)[0]

    base, sep, suffix = stem.rpartition("-")
    if not sep:
        raise ParseError(where, f"no '-' in segment name {stem!r}")
    if not base:
        raise ParseError(where, f"empty stream base in segment name {stem!r}")
    if not _SEQUENCE_RE.fullmatch(suffix):
        raise ParseError(where, f"invalid sequence number {suffix!r}")

    return SegmentIdentity(stream_base=base, sequence=int(suffix), path=path)


def parse_segment_path(path) -> SegmentIdentity:
    path = os.fspath(path)
    return parse_segment_name(os.path.basename(path), path=path)


def playlist_name(stream_base: str) -> str:
    return f"{stream_base}{PLAYLIST_EXT}"
