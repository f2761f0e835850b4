"""Local input decoding and xterm re-encoding.

In raw mode the local terminal hands us bytes: printable text, control
characters and escape sequences. ``InputDecoder`` turns them into events
so keystrokes can be told apart from focus and mouse reports, and
``key_bytes`` encodes a key event back into what an xterm would send.
Keys without an xterm encoding fall back to a minimal one: the character
itself, its control-character form, or the bytes that produced it.
"""

from __future__ import annotations

import codecs
import enum
from dataclasses import dataclass

from typeypipe.exceptions import UnsupportedKeyError

ESC = "\x1b"


class KeyCode(enum.StrEnum):
    CHAR = "char"
    ENTER = "enter"
    TAB = "tab"
    BACKTAB = "backtab"
    BACKSPACE = "backspace"
    ESCAPE = "escape"
    UP = "up"
    DOWN = "down"
    RIGHT = "right"
    LEFT = "left"
    HOME = "home"
    END = "end"
    INSERT = "insert"
    DELETE = "delete"
    PAGE_UP = "page_up"
    PAGE_DOWN = "page_down"
    F1 = "f1"
    F2 = "f2"
    F3 = "f3"
    F4 = "f4"
    F5 = "f5"
    F6 = "f6"
    F7 = "f7"
    F8 = "f8"
    F9 = "f9"
    F10 = "f10"
    F11 = "f11"
    F12 = "f12"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class KeyEvent:
    code: KeyCode
    char: str = ""
    ctrl: bool = False
    alt: bool = False
    shift: bool = False
    raw: bytes = b""


@dataclass(frozen=True)
class FocusEvent:
    gained: bool


@dataclass(frozen=True)
class MouseEvent:
    raw: bytes


InputEvent = KeyEvent | FocusEvent | MouseEvent

# CSI <letter> keys and their SS3 equivalents.
_LETTER_KEYS = {
    "A": KeyCode.UP,
    "B": KeyCode.DOWN,
    "C": KeyCode.RIGHT,
    "D": KeyCode.LEFT,
    "H": KeyCode.HOME,
    "F": KeyCode.END,
    "P": KeyCode.F1,
    "Q": KeyCode.F2,
    "R": KeyCode.F3,
    "S": KeyCode.F4,
}

# CSI <n> ~ keys.
_TILDE_KEYS = {
    1: KeyCode.HOME,
    2: KeyCode.INSERT,
    3: KeyCode.DELETE,
    4: KeyCode.END,
    5: KeyCode.PAGE_UP,
    6: KeyCode.PAGE_DOWN,
    7: KeyCode.HOME,
    8: KeyCode.END,
    11: KeyCode.F1,
    12: KeyCode.F2,
    13: KeyCode.F3,
    14: KeyCode.F4,
    15: KeyCode.F5,
    17: KeyCode.F6,
    18: KeyCode.F7,
    19: KeyCode.F8,
    20: KeyCode.F9,
    21: KeyCode.F10,
    23: KeyCode.F11,
    24: KeyCode.F12,
}

_ENCODE_LETTER = {
    KeyCode.UP: "A",
    KeyCode.DOWN: "B",
    KeyCode.RIGHT: "C",
    KeyCode.LEFT: "D",
    KeyCode.HOME: "H",
    KeyCode.END: "F",
}
_ENCODE_SS3 = {KeyCode.F1: "P", KeyCode.F2: "Q", KeyCode.F3: "R", KeyCode.F4: "S"}
_ENCODE_TILDE = {
    KeyCode.INSERT: 2,
    KeyCode.DELETE: 3,
    KeyCode.PAGE_UP: 5,
    KeyCode.PAGE_DOWN: 6,
    KeyCode.F5: 15,
    KeyCode.F6: 17,
    KeyCode.F7: 18,
    KeyCode.F8: 19,
    KeyCode.F9: 20,
    KeyCode.F10: 21,
    KeyCode.F11: 23,
    KeyCode.F12: 24,
}


def _modifiers(param: str) -> dict[str, bool]:
    """Decode an xterm modifier parameter (1 + shift|alt<<1|ctrl<<2)."""
    try:
        bits = int(param) - 1
    except ValueError:
        return {}
    if bits <= 0:
        return {}
    return {"shift": bool(bits & 1), "alt": bool(bits & 2), "ctrl": bool(bits & 4)}


def _modifier_param(event: KeyEvent) -> int:
    return 1 + (1 if event.shift else 0) + (2 if event.alt else 0) + (4 if event.ctrl else 0)


def _control_key(ch: str, raw: bytes) -> KeyEvent:
    code = ord(ch)
    if ch in ("\r", "\n"):
        return KeyEvent(KeyCode.ENTER, raw=raw)
    if ch == "\t":
        return KeyEvent(KeyCode.TAB, raw=raw)
    if ch in ("\x7f", "\x08"):
        return KeyEvent(KeyCode.BACKSPACE, raw=raw)
    if code == 0:
        return KeyEvent(KeyCode.CHAR, char=" ", ctrl=True, raw=raw)
    if 1 <= code <= 26:
        return KeyEvent(KeyCode.CHAR, char=chr(code + 96), ctrl=True, raw=raw)
    if 28 <= code <= 31:
        return KeyEvent(KeyCode.CHAR, char=chr(code + 64), ctrl=True, raw=raw)
    return KeyEvent(KeyCode.CHAR, char=ch, raw=raw)


def _split_incomplete(text: str) -> tuple[str, str]:
    """Split off a trailing escape sequence that more input could complete."""
    start = text.rfind(ESC)
    if start < 0:
        return text, ""
    tail = text[start + 1 :]
    if tail in ("", "O"):
        return text[:start], text[start:]
    if tail.startswith("["):
        body = tail[1:]
        if all(0x20 <= ord(c) <= 0x3F for c in body):
            return text[:start], text[start:]
        if body.startswith("M") and len(body) < 4:
            # X10 mouse report still missing payload characters.
            return text[:start], text[start:]
    return text, ""


class InputDecoder:
    """Incremental decoder from local terminal bytes to input events.

    A read can end in the middle of an escape sequence. The unfinished
    tail is held back until the next ``feed()``; ``flush()`` gives it up
    as-is once no more input is coming (a lone Escape key press).
    """

    def __init__(self) -> None:
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""

    @property
    def has_pending(self) -> bool:
        return bool(self._pending)

    def feed(self, data: bytes) -> list[InputEvent]:
        text, self._pending = _split_incomplete(self._pending + self._utf8.decode(data))
        return decode_text(text)

    def flush(self) -> list[InputEvent]:
        text, self._pending = self._pending, ""
        return decode_text(text)


def decode_text(text: str) -> list[InputEvent]:
    """Split decoded terminal input into events."""
    events: list[InputEvent] = []
    i = 0
    while i < len(text):
        event, i = _decode_one(text, i)
        events.append(event)
    return events


def _decode_one(text: str, i: int) -> tuple[InputEvent, int]:
    ch = text[i]
    if ch != ESC:
        return _control_key(ch, ch.encode("utf-8")), i + 1

    if i + 1 >= len(text):
        return KeyEvent(KeyCode.ESCAPE, raw=b"\x1b"), i + 1

    nxt = text[i + 1]
    if nxt == "[":
        return _decode_csi(text, i)
    if nxt == "O" and i + 2 < len(text):
        final = text[i + 2]
        raw = text[i : i + 3].encode("utf-8")
        code = _LETTER_KEYS.get(final, KeyCode.UNKNOWN)
        return KeyEvent(code, raw=raw), i + 3
    if nxt == ESC:
        return KeyEvent(KeyCode.ESCAPE, raw=b"\x1b"), i + 1

    # ESC + key is that key with Alt held.
    inner = _control_key(nxt, nxt.encode("utf-8"))
    raw = text[i : i + 2].encode("utf-8")
    return (
        KeyEvent(inner.code, char=inner.char, ctrl=inner.ctrl, alt=True, raw=raw),
        i + 2,
    )


def _decode_csi(text: str, i: int) -> tuple[InputEvent, int]:
    j = i + 2
    while j < len(text) and 0x20 <= ord(text[j]) <= 0x3F:
        j += 1
    if j >= len(text) or not 0x40 <= ord(text[j]) <= 0x7E:
        end = min(j, len(text))
        return KeyEvent(KeyCode.UNKNOWN, raw=text[i:end].encode("utf-8")), end

    params, final = text[i + 2 : j], text[j]
    end = j + 1

    if final == "M" and not params and end + 3 <= len(text):
        # X10 mouse report: three payload characters follow.
        return MouseEvent(raw=text[i : end + 3].encode("utf-8")), end + 3

    raw = text[i:end].encode("utf-8")
    if final in "IO" and not params:
        return FocusEvent(gained=final == "I"), end
    if params.startswith("<") and final in "Mm":
        return MouseEvent(raw=raw), end

    fields = params.split(";")
    mods = _modifiers(fields[1]) if len(fields) > 1 else {}

    if final in _LETTER_KEYS:
        return KeyEvent(_LETTER_KEYS[final], raw=raw, **mods), end
    if final == "Z":
        return KeyEvent(KeyCode.BACKTAB, shift=True, raw=raw), end
    if final == "~" and fields[0].isdigit() and int(fields[0]) in _TILDE_KEYS:
        return KeyEvent(_TILDE_KEYS[int(fields[0])], raw=raw, **mods), end
    return KeyEvent(KeyCode.UNKNOWN, raw=raw), end


def encode_key(event: KeyEvent) -> bytes:
    """Encode a key the way xterm sends it.

    Raises UnsupportedKeyError when the key has no such encoding.
    """
    code = event.code
    prefix = ESC if event.alt else ""

    if code == KeyCode.CHAR:
        if not event.ctrl:
            return (prefix + event.char).encode("utf-8")
        c = event.char.lower()
        if c in (" ", "@"):
            return (prefix + "\x00").encode()
        if len(c) == 1 and "a" <= c <= "z":
            return (prefix + chr(ord(c) - 96)).encode()
        if c in "[\\]^_" and len(c) == 1:
            return (prefix + chr(ord(c) - 64)).encode()
        if c == "?":
            return (prefix + "\x7f").encode()
        raise UnsupportedKeyError(f"no control encoding for {event.char!r}")

    if code == KeyCode.ENTER:
        return (prefix + "\r").encode()
    if code == KeyCode.TAB:
        return (prefix + "\t").encode()
    if code == KeyCode.BACKSPACE:
        return (prefix + "\x7f").encode()
    if code == KeyCode.ESCAPE:
        return b"\x1b"
    if code == KeyCode.BACKTAB:
        return b"\x1b[Z"

    mod = _modifier_param(event)
    if code in _ENCODE_LETTER:
        letter = _ENCODE_LETTER[code]
        return (f"{ESC}[1;{mod}{letter}" if mod > 1 else f"{ESC}[{letter}").encode()
    if code in _ENCODE_SS3:
        letter = _ENCODE_SS3[code]
        return (f"{ESC}[1;{mod}{letter}" if mod > 1 else f"{ESC}O{letter}").encode()
    if code in _ENCODE_TILDE:
        n = _ENCODE_TILDE[code]
        return (f"{ESC}[{n};{mod}~" if mod > 1 else f"{ESC}[{n}~").encode()

    raise UnsupportedKeyError(f"no xterm encoding for {code}")


def fallback_encode(event: KeyEvent) -> bytes:
    """Minimal encoding for keys ``encode_key`` rejects."""
    if event.code == KeyCode.CHAR and event.char:
        data = event.char.encode("utf-8")
        if event.ctrl and len(data) == 1:
            return bytes([data[0] & 0x1F])
        return data
    return event.raw


def key_bytes(event: KeyEvent) -> bytes:
    """Bytes to send to the shell for one key event."""
    try:
        return encode_key(event)
    except UnsupportedKeyError:
        return fallback_encode(event)
