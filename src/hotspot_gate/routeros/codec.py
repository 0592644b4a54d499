"""
RouterOS API wire codec.

Wire format:
  Sentence = Word* + ZeroWord
  Word     = Length + Data
  ZeroWord = 0x00
  Length   = variable (1-5 bytes)

Reply tags:
  !re    = data reply (more sentences follow)
  !done  = command completed
  !trap  = command error
  !fatal = fatal error (connection will close)

Everything here is pure: no sockets, no shared state.  Decoding never
raises for a short buffer; it returns ``None`` so the caller can read more
bytes and retry from the start of the same unconsumed buffer.  It raises
``MalformedSentence`` only for a reserved length prefix (0xF8-0xFF) or a
sentence larger than the size guard.
"""

from __future__ import annotations

import struct
from collections.abc import Iterable
from dataclasses import dataclass, field

from hotspot_gate.core.exceptions import MalformedSentence

REPLY_DATA = "!re"
REPLY_DONE = "!done"
REPLY_TRAP = "!trap"
REPLY_FATAL = "!fatal"
TERMINAL_TAGS = frozenset({REPLY_DONE, REPLY_TRAP, REPLY_FATAL})

MAX_LENGTH = 0xFFFFFFFF
DEFAULT_MAX_SENTENCE_SIZE = 1024 * 1024

Buffer = bytes | bytearray | memoryview


# ─── Length Encoding ──────────────────────────────────────────────────────────

def encode_length(length: int) -> bytes:
    if length < 0 or length > MAX_LENGTH:
        raise ValueError(f"length out of range: {length}")
    if length < 0x80:
        return struct.pack("B", length)
    elif length < 0x4000:
        return struct.pack(">H", length | 0x8000)
    elif length < 0x200000:
        return struct.pack(">I", length | 0xC00000)[1:]
    elif length < 0x10000000:
        return struct.pack(">I", length | 0xE0000000)
    else:
        return b"\xF0" + struct.pack(">I", length)


def _prefix_width(first: int) -> int:
    if first < 0x80:
        return 1
    elif first < 0xC0:
        return 2
    elif first < 0xE0:
        return 3
    elif first < 0xF0:
        return 4
    elif first < 0xF8:
        return 5
    # 0xF8-0xFF are reserved control bytes, never a length
    raise MalformedSentence(f"invalid length prefix byte 0x{first:02X}", {'byte': first})


def decode_length(data: Buffer, offset: int = 0) -> tuple[int, int] | None:
    """Decode the length prefix at ``offset``.

    Returns ``(value, bytes_consumed)`` or ``None`` when ``data`` does not
    yet hold the whole prefix.
    """
    if offset >= len(data):
        return None
    width = _prefix_width(data[offset])
    if offset + width > len(data):
        return None

    raw = bytes(data[offset:offset + width])
    if width == 1:
        return raw[0], 1
    elif width == 2:
        return struct.unpack(">H", raw)[0] & 0x3FFF, 2
    elif width == 3:
        return struct.unpack(">I", b"\x00" + raw)[0] & 0x1FFFFF, 3
    elif width == 4:
        return struct.unpack(">I", raw)[0] & 0x0FFFFFFF, 4
    return struct.unpack(">I", raw[1:])[0], 5


# ─── Word / Sentence Encoding ─────────────────────────────────────────────────

def encode_word(word: str | bytes) -> bytes:
    data = word.encode("utf-8") if isinstance(word, str) else bytes(word)
    return encode_length(len(data)) + data


def encode_sentence(words: Iterable[str | bytes]) -> bytes:
    return b"".join(encode_word(w) for w in words) + b"\x00"


# ─── Sentence Decoding ────────────────────────────────────────────────────────

def try_parse_sentence(
    data: Buffer,
    max_size: int = DEFAULT_MAX_SENTENCE_SIZE,
) -> tuple[list[str], int] | None:
    """Parse one sentence from the start of ``data``.

    Returns ``(words, bytes_consumed)`` once the zero-length terminator has
    been read, or ``None`` if more bytes are needed.  Raises
    ``MalformedSentence`` only when the peer is clearly misbehaving: an
    invalid prefix byte, or a sentence that would exceed ``max_size``.
    """
    words: list[str] = []
    offset = 0
    while True:
        decoded = decode_length(data, offset)
        if decoded is None:
            break
        length, width = decoded
        if length == 0:
            return words, offset + width
        if length > max_size:
            raise MalformedSentence(
                f"word length {length} exceeds limit {max_size}",
                {'length': length, 'max_size': max_size},
            )
        start = offset + width
        end = start + length
        if end > len(data):
            break
        words.append(bytes(data[start:end]).decode("utf-8", errors="replace"))
        offset = end

    if len(data) > max_size:
        raise MalformedSentence(
            f"incomplete sentence exceeds {max_size} bytes",
            {'buffered': len(data), 'max_size': max_size},
        )
    return None


# ─── Reply Parsing ────────────────────────────────────────────────────────────

@dataclass
class Reply:
    """One reply sentence split into its tag and ``=key=value`` attributes."""

    tag: str | None
    attributes: dict[str, str] = field(default_factory=dict)
    tag_id: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.tag in TERMINAL_TAGS

    @property
    def message(self) -> str | None:
        return self.attributes.get("message")


def parse_reply(words: list[str]) -> Reply:
    reply = Reply(tag=words[0] if words and words[0].startswith("!") else None)
    for word in words[1 if reply.tag else 0:]:
        if word.startswith(".tag="):
            reply.tag_id = word[5:]
        elif word.startswith("=") and "=" in word[1:]:
            key, _, value = word[1:].partition("=")
            reply.attributes[key] = value
    return reply


def is_terminal(sentence: list[str]) -> bool:
    return bool(sentence) and sentence[0] in TERMINAL_TAGS
