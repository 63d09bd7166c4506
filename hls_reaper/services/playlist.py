# hls_reaper/services/playlist.py
import os
import posixpath
from dataclasses import dataclass
from urllib.parse import urlsplit

from hls_reaper.errors import ParseError, ReadError
from hls_reaper.services.segments import PLAYLIST_EXT, parse_segment_name, playlist_name

MASTER_PLAYLIST_TAGS = ("#EXT-X-STREAM-INF", "#EXT-X-I-FRAME-STREAM-INF", "#EXT-X-MEDIA:")


@dataclass(frozen=True)
class PlaylistSnapshot:
    stream_base: str
    referenced_sequences: frozenset

    @property
    def min_referenced_sequence(self) -> int:
        """Smallest sequence number still inside the playlist window."""
        return min(self.referenced_sequences)


def _uri_basename(uri: str) -> str:
    return posixpath.basename(urlsplit(uri).path)


def parse_playlist(content: str, stream_base: str, path: str = None) -> PlaylistSnapshot:
    """Extract the referenced sequence numbers from a media playlist.

    Only the segment URIs are used; every other tag is skipped. Anything that
    does not look like a complete media playlist raises ReadError.
    """
    where = path or playlist_name(stream_base)
    lines = [line.strip() for line in content.lstrip("\ufeff").splitlines()]
    lines = [line for line in lines if line]

    if not lines or lines[0] != "#EXTM3U":
        raise ReadError(where, "missing #EXTM3U header")

    sequences = set()
    pending_extinf = False
    for line in lines[1:]:
        if line.startswith(MASTER_PLAYLIST_TAGS):
            raise ReadError(where, "master playlist, expected a media playlist")
        if line.startswith("#EXTINF:"):
            if pending_extinf:
                raise ReadError(where, "#EXTINF without a segment URI")
            pending_extinf = True
            continue
        if line.startswith("#"):
            continue

        if not pending_extinf:
            raise ReadError(where, f"segment URI {line!r} without #EXTINF")
        pending_extinf = False

        try:
            segment = parse_segment_name(_uri_basename(line), require_extension=False)
        except ParseError as e:
            raise ReadError(where, f"invalid segment URI {line!r}: {e.reason}") from e
        sequences.add(segment.sequence)

    if pending_extinf:
        raise ReadError(where, "#EXTINF without a segment URI")
    if not sequences:
        raise ReadError(where, "playlist has no segments")

    return PlaylistSnapshot(stream_base=stream_base, referenced_sequences=frozenset(sequences))


def read_playlist(path) -> PlaylistSnapshot:
    path = os.fspath(path)
    name = os.path.basename(path)
    stream_base = name[:-len(PLAYLIST_EXT)] if name.endswith(PLAYLIST_EXT) else name

    try:
        with open(path, "r", encoding="utf-8") as f:
            content = f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise ReadError(path, f"unable to read playlist: {e}") from e

    return parse_playlist(content, stream_base, path=path)
