# hls_reaper/errors.py


class ReaperError(Exception):
    """Base class for failures local to one segment's evaluation."""

    def __init__(self, path, reason):
        self.path = str(path)
        self.reason = reason
        super().__init__(f"{self.path}: {reason}")


class ParseError(ReaperError):
    """Segment file name or playlist URI does not match <stream_base>-<sequence>."""


class ReadError(ReaperError):
    """Playlist is unreadable, malformed, or references no segments."""


class MetadataError(ReaperError):
    """Filesystem metadata of a segment could not be read."""


class DeleteError(ReaperError):
    """Removing a segment file failed."""
