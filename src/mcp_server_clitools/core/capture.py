"""Size-bounded accumulation of process output streams."""

import codecs
import re
from typing import Optional

TRUNCATION_MARKER = "\n... [truncated]"

_ANSI_RE = re.compile(r"\x1b\[[0-9;?]*[ -/]*[@-~]|\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)|\x1b[@-Z\\-_]")

_HOME_PATH_RES = [
    (re.compile(r"/home/[^/\s]+/"), "~/"),
    (re.compile(r"/Users/[^/\s]+/"), "~/"),
    (re.compile(r"/root/"), "~/"),
    (re.compile(r"[A-Za-z]:\\Users\\[^\\\s]+\\"), "~\\\\"),
]

_SYSTEM_PATH_RES = [
    (
        re.compile(r"/(?:etc|var|opt|usr|tmp|srv|snap|nix|mnt|private|Library|Applications)(?:/[^/\s]+)*/"),
        "<redacted-path>/",
    ),
    (re.compile(r"[A-Za-z]:\\(?:[^\\\s]+\\)+"), "<redacted-path>\\\\"),
]


class BoundedCapture:
    """
    Accumulates a byte stream up to a byte and/or line limit.

    Limits apply to the cumulative stream, so the captured prefix is the
    same whether the data arrives in one chunk or a thousand. Bytes past
    the limit are counted but discarded; callers keep feeding so the
    producer never blocks on a full pipe.
    """

    def __init__(self, max_bytes: Optional[int] = None, max_lines: Optional[int] = None):
        if max_bytes is not None and max_bytes < 0:
            raise ValueError("max_bytes must be >= 0")
        if max_lines is not None and max_lines < 0:
            raise ValueError("max_lines must be >= 0")
        self.max_bytes = max_bytes
        self.max_lines = max_lines
        self.truncated = False
        self.total_bytes = 0
        self._buffer = bytearray()
        self._lines = 0

    def feed(self, chunk: bytes) -> None:
        """Append a chunk, keeping only what fits within the limits."""
        self.total_bytes += len(chunk)
        if self.truncated:
            return

        keep = len(chunk)
        if self.max_bytes is not None:
            keep = min(keep, self.max_bytes - len(self._buffer))

        if self.max_lines is not None:
            remaining = self.max_lines - self._lines
            pos = 0
            while remaining > 0:
                idx = chunk.find(b"\n", pos, keep)
                if idx == -1:
                    break
                pos = idx + 1
                remaining -= 1
            if remaining == 0:
                keep = min(keep, pos)
            self._lines = self.max_lines - remaining

        self._buffer.extend(chunk[:keep])
        if keep < len(chunk):
            self.truncated = True

    @property
    def data(self) -> bytes:
        return bytes(self._buffer)

    def text(self, marker: bool = True) -> str:
        """Decode the captured bytes, appending the marker if truncated.

        A multi-byte character split by the limit is dropped whole rather
        than decoded to a replacement character.
        """
        if self.truncated:
            # a non-final decode holds back an incomplete trailing sequence
            decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
            text = decoder.decode(bytes(self._buffer), final=False)
        else:
            text = self._buffer.decode("utf-8", errors="replace")
        if self.truncated and marker:
            text += TRUNCATION_MARKER
        return text


def strip_ansi(text: str) -> str:
    """Remove ANSI escape sequences (colors, cursor movement, OSC links)."""
    return _ANSI_RE.sub("", text)


def normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def sanitize_error_output(text: str, broad: bool = False) -> str:
    """
    Hide user-specific path prefixes in error text.

    Home directories collapse to "~/". With ``broad`` set, other absolute
    directory prefixes become "<redacted-path>/".
    """
    for pattern, replacement in _HOME_PATH_RES:
        text = pattern.sub(replacement, text)
    if broad:
        for pattern, replacement in _SYSTEM_PATH_RES:
            text = pattern.sub(replacement, text)
    return text
