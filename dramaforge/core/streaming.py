"""
Streaming extractor for the "message" field of an unfinished JSON reply.

While the Writer is still streaming, the buffer is never valid JSON, so this
is a small character-scanning state machine rather than a parser: it finds
the "message" key, walks its string value honoring escapes and stops at the
closing quote or at the end of what has arrived so far. Each feed() only
scans the newly arrived characters.
"""

import re
from enum import Enum
from typing import List

THINKING_PLACEHOLDER = "Thinking..."
MESSAGE_KEY = '"message"'

_LEADING_FENCE_RE = re.compile(r"^\s*```[\w-]*[ \t]*\n?")
_TRAILING_FENCE_RE = re.compile(r"\n?```\s*$")

_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    '"': '"',
    "\\": "\\",
    "/": "/",
    "b": "\b",
    "f": "\f",
}
_HEX_DIGITS = set("0123456789abcdefABCDEF")


class ScanState(str, Enum):
    PREAMBLE = "preamble"      # no '{' seen yet; plain text reply so far
    SEEK_KEY = "seek_key"      # inside JSON, looking for "message"
    SEEK_VALUE = "seek_value"  # key found, waiting for the opening quote
    VALUE = "value"
    ESCAPE = "escape"
    UNICODE = "unicode"
    DONE = "done"


def _strip_fences(text: str) -> str:
    text = _LEADING_FENCE_RE.sub("", text, count=1)
    return _TRAILING_FENCE_RE.sub("", text).strip()


class PartialMessageExtractor:
    """Incremental best-effort reader of a streamed {"message": "..."} reply."""

    def __init__(self):
        self.reset()

    def reset(self) -> None:
        self._buffer = ""
        self._pos = 0
        self._json_start = -1
        self._state = ScanState.PREAMBLE
        self._chars: List[str] = []
        self._hex = ""

    @property
    def state(self) -> ScanState:
        return self._state

    @property
    def buffer(self) -> str:
        return self._buffer

    @property
    def message(self) -> str:
        return "".join(self._chars)

    def feed(self, chunk: str) -> str:
        """Append a chunk and return the text to display right now."""
        if chunk:
            self._buffer += chunk
            self._scan()
        return self.display()

    def display(self) -> str:
        if self._state == ScanState.PREAMBLE:
            return _strip_fences(self._buffer) or THINKING_PLACEHOLDER

        if self._state in (ScanState.SEEK_KEY, ScanState.SEEK_VALUE):
            return _strip_fences(self._buffer[:self._json_start]) or THINKING_PLACEHOLDER

        if self._state == ScanState.DONE:
            return self.message

        return self.message or THINKING_PLACEHOLDER

    def _scan(self) -> None:
        buf = self._buffer
        while self._pos < len(buf) and self._state != ScanState.DONE:
            state = self._state

            if state == ScanState.PREAMBLE:
                brace = buf.find("{", self._pos)
                if brace == -1:
                    self._pos = len(buf)
                    return
                self._json_start = brace
                self._pos = brace
                self._state = ScanState.SEEK_KEY

            elif state == ScanState.SEEK_KEY:
                found = buf.find(MESSAGE_KEY, self._pos)
                if found == -1:
                    # keep enough tail to match a key split across chunks
                    self._pos = max(self._pos, len(buf) - len(MESSAGE_KEY) + 1)
                    return
                self._pos = found + len(MESSAGE_KEY)
                self._state = ScanState.SEEK_VALUE

            elif state == ScanState.SEEK_VALUE:
                ch = buf[self._pos]
                self._pos += 1
                if ch == '"':
                    self._state = ScanState.VALUE
                elif ch not in " \t\r\n:":
                    # "message" was not followed by a string value
                    self._state = ScanState.SEEK_KEY

            elif state == ScanState.VALUE:
                ch = buf[self._pos]
                self._pos += 1
                if ch == "\\":
                    self._state = ScanState.ESCAPE
                elif ch == '"':
                    self._state = ScanState.DONE
                else:
                    self._chars.append(ch)

            elif state == ScanState.ESCAPE:
                ch = buf[self._pos]
                self._pos += 1
                if ch == "u":
                    self._hex = ""
                    self._state = ScanState.UNICODE
                else:
                    self._chars.append(_ESCAPES.get(ch, ch))
                    self._state = ScanState.VALUE

            elif state == ScanState.UNICODE:
                ch = buf[self._pos]
                if ch not in _HEX_DIGITS:
                    self._chars.append("\\u" + self._hex)
                    self._state = ScanState.VALUE
                    continue
                self._pos += 1
                self._hex += ch
                if len(self._hex) == 4:
                    self._chars.append(chr(int(self._hex, 16)))
                    self._state = ScanState.VALUE


def extract_partial_message(buffer: str) -> str:
    """One-shot extraction over a whole buffer."""
    return PartialMessageExtractor().feed(buffer)
