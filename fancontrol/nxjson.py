"""A lenient JSON reader that builds an ordered tree of nodes.

The accepted syntax is wider than strict JSON: commas are optional,
trailing commas are allowed, ``//`` and ``/* */`` comments are skipped,
integers may be written in hexadecimal (``0x1F``) or octal (``010``),
and anything after the first complete value is ignored.
"""

from __future__ import annotations

import enum
import errno
import math
import os
import re
from dataclasses import dataclass, field
from typing import Iterator, Optional, Union

MAX_FILE_SIZE = 32768

_INT64_MIN = -(1 << 63)
_INT64_MAX = (1 << 63) - 1
_HEX_DIGITS = "0123456789abcdefABCDEF"
_OCT_DIGITS = "01234567"
_DEC_DIGITS = "0123456789"
_SIMPLE_ESCAPES = {"b": "\b", "f": "\f", "n": "\n", "r": "\r", "t": "\t"}
_DEC_FLOAT = re.compile(r"-?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_HEX_FLOAT = re.compile(
    r"-?0[xX](?:[0-9a-fA-F]+\.?[0-9a-fA-F]*|\.[0-9a-fA-F]+)(?:[pP][+-]?\d+)?"
)


class JsonType(enum.Enum):
    """Kind of a JSON node."""

    NULL = 0
    OBJECT = 1
    ARRAY = 2
    STRING = 3
    INTEGER = 4
    DOUBLE = 5
    BOOL = 6


class JsonErrorCode(enum.Enum):
    """Reasons a parse can fail; the value is the message."""

    SUCCESS = "Success"
    INVALID_UNICODE_ESCAPE = "Invalid unicode escape"
    INVALID_UNICODE_SURROGATE = "Invalid unicode surrogate"
    INVALID_CODEPOINT = "Invalid codepoint"
    MISSING_DOUBLE_QUOTE = "Missing double quote"
    ENDLESS_COMMENT = "Endless comment"
    UNEXPECTED_CHARS = "Unexpected charaters"
    UNEXPECTED_EOT = "Unexpected end of text"
    INVALID_NUMBER = "Invalid number"

    @property
    def message(self) -> str:
        return self.value


class JsonParseError(ValueError):
    """Raised when text cannot be parsed."""

    def __init__(self, code: JsonErrorCode, position: int) -> None:
        super().__init__(f"{code.message} at position {position}")
        self.code = code
        self.position = position


@dataclass
class JsonNode:
    """One node of a parsed document; containers keep their children in order."""

    type: JsonType
    key: Optional[str] = None
    value: Union[None, bool, int, float, str] = None
    children: list[JsonNode] = field(default_factory=list)

    def get(self, key: str) -> Optional[JsonNode]:
        """Return the first child with the given key, or None."""
        return next((child for child in self.children if child.key == key), None)

    def item(self, index: int) -> Optional[JsonNode]:
        """Return the child at a non-negative index, or None."""
        if 0 <= index < len(self.children):
            return self.children[index]
        return None

    def append(self, child: JsonNode) -> JsonNode:
        """Add a child node and return it."""
        self.children.append(child)
        return child

    def __iter__(self) -> Iterator[JsonNode]:
        return iter(self.children)


class _Parser:
    def __init__(self, text: str) -> None:
        self.text = text

    def _ch(self, index: int) -> str:
        return self.text[index] if index < len(self.text) else "\0"

    def _hex4(self, index: int) -> Optional[int]:
        digits = self.text[index:index + 4]
        if len(digits) == 4 and all(c in _HEX_DIGITS for c in digits):
            return int(digits, 16)
        return None

    def _skip_block_comment(self, pos: int) -> int:
        start = pos - 2
        if self._ch(pos) == "\0":
            raise JsonParseError(JsonErrorCode.ENDLESS_COMMENT, start)
        while True:
            pos = self.text.find("/", pos + 1)
            if pos < 0:
                raise JsonParseError(JsonErrorCode.ENDLESS_COMMENT, start)
            if self.text[pos - 1] == "*":
                return pos + 1

    def _unescape(self, pos: int) -> tuple[str, int]:
        start = pos
        out: list[str] = []
        while True:
            c = self._ch(pos)
            pos += 1
            if c == "\0":
                raise JsonParseError(JsonErrorCode.MISSING_DOUBLE_QUOTE, start)
            if c == '"':
                return "".join(out), pos
            if c != "\\":
                out.append(c)
                continue
            escaped = self._ch(pos)
            if escaped in '\\/"':
                out.append(escaped)
                pos += 1
            elif escaped in _SIMPLE_ESCAPES:
                out.append(_SIMPLE_ESCAPES[escaped])
                pos += 1
            elif escaped == "u":
                escape_start = pos - 1
                codepoint = self._hex4(pos + 1)
                if codepoint is None:
                    raise JsonParseError(JsonErrorCode.INVALID_UNICODE_ESCAPE, pos - 1)
                if codepoint & 0xFC00 == 0xD800:
                    pos += 6
                    low = None
                    if self._ch(pos - 1) == "\\" and self._ch(pos) == "u":
                        low = self._hex4(pos + 1)
                    if low is None or low & 0xFC00 != 0xDC00:
                        raise JsonParseError(
                            JsonErrorCode.INVALID_UNICODE_SURROGATE, escape_start
                        )
                    codepoint = 0x10000 + ((codepoint - 0xD800) << 10) + (low - 0xDC00)
                elif 0xD800 <= codepoint < 0xE000:
                    raise JsonParseError(JsonErrorCode.INVALID_CODEPOINT, escape_start)
                out.append(chr(codepoint))
                pos += 5
            else:
                out.append("\\")

    def _parse_key(self, pos: int) -> tuple[Optional[str], int]:
        while True:
            c = self._ch(pos)
            pos += 1
            if c == "\0":
                raise JsonParseError(JsonErrorCode.UNEXPECTED_CHARS, pos - 1)
            if c == '"':
                key, pos = self._unescape(pos)
                while self._ch(pos) != "\0" and ord(self._ch(pos)) <= 32:
                    pos += 1
                if self._ch(pos) == ":":
                    return key, pos + 1
                raise JsonParseError(JsonErrorCode.UNEXPECTED_CHARS, pos)
            if ord(c) <= 32 or c == ",":
                continue
            if c == "}":
                return None, pos - 1
            if c == "/":
                if self._ch(pos) == "/":
                    newline = self.text.find("\n", pos + 1)
                    if newline < 0:
                        raise JsonParseError(JsonErrorCode.ENDLESS_COMMENT, pos - 1)
                    pos = newline + 1
                elif self._ch(pos) == "*":
                    pos = self._skip_block_comment(pos + 1)
                else:
                    raise JsonParseError(JsonErrorCode.UNEXPECTED_CHARS, pos - 1)
                continue
            raise JsonParseError(JsonErrorCode.UNEXPECTED_CHARS, pos - 1)

    def _strtoll(self, pos: int) -> Optional[tuple[int, int]]:
        i = pos
        negative = self._ch(i) == "-"
        if negative:
            i += 1
        if self.text[i:i + 2] in ("0x", "0X") and self._ch(i + 2) in _HEX_DIGITS:
            base, digits = 16, _HEX_DIGITS
            i += 2
        elif self._ch(i) == "0":
            base, digits = 8, _OCT_DIGITS
        else:
            base, digits = 10, _DEC_DIGITS
        start = i
        while self._ch(i) in digits:
            i += 1
        if i == start:
            return None
        value = int(self.text[start:i], base)
        if negative:
            value = -value
        if not _INT64_MIN <= value <= _INT64_MAX:
            raise JsonParseError(JsonErrorCode.INVALID_NUMBER, pos)
        return value, i

    def _strtod(self, pos: int) -> tuple[float, int]:
        match = _HEX_FLOAT.match(self.text, pos)
        try:
            if match:
                literal = match.group()
                value = float.fromhex(literal)
                mantissa = re.split("[pP]", literal)[0].lower().split("x", 1)[1]
            else:
                match = _DEC_FLOAT.match(self.text, pos)
                if not match:
                    raise JsonParseError(JsonErrorCode.INVALID_NUMBER, pos)
                literal = match.group()
                value = float(literal)
                mantissa = re.split("[eE]", literal)[0]
        except OverflowError:
            raise JsonParseError(JsonErrorCode.INVALID_NUMBER, pos) from None
        underflow = value == 0.0 and any(c not in "0.-" for c in mantissa)
        if math.isinf(value) or underflow:
            raise JsonParseError(JsonErrorCode.INVALID_NUMBER, pos)
        return value, match.end()

    def _parse_number(self, parent: JsonNode, key: Optional[str], pos: int) -> int:
        parsed = self._strtoll(pos)
        if parsed is None:
            raise JsonParseError(JsonErrorCode.INVALID_NUMBER, pos)
        integer, end = parsed
        if self._ch(end) in ".eE":
            double, end = self._strtod(pos)
            parent.append(JsonNode(JsonType.DOUBLE, key, double))
        else:
            parent.append(JsonNode(JsonType.INTEGER, key, integer))
        return end

    def parse_value(self, parent: JsonNode, key: Optional[str], pos: int) -> int:
        while True:
            c = self._ch(pos)
            if c == "\0":
                raise JsonParseError(JsonErrorCode.UNEXPECTED_EOT, pos)
            if c in " \t\n\r,":
                pos += 1
                continue
            if c == "{":
                node = parent.append(JsonNode(JsonType.OBJECT, key))
                pos += 1
                while True:
                    new_key, pos = self._parse_key(pos)
                    if self._ch(pos) == "}":
                        return pos + 1
                    pos = self.parse_value(node, new_key, pos)
            if c == "[":
                node = parent.append(JsonNode(JsonType.ARRAY, key))
                pos += 1
                while True:
                    pos = self.parse_value(node, None, pos)
                    if self._ch(pos) == "]":
                        return pos + 1
            if c == "]":
                return pos
            if c == '"':
                text, end = self._unescape(pos + 1)
                parent.append(JsonNode(JsonType.STRING, key, text))
                return end
            if c in "-0123456789":
                return self._parse_number(parent, key, pos)
            for literal, node_type, value in (
                ("true", JsonType.BOOL, True),
                ("false", JsonType.BOOL, False),
                ("null", JsonType.NULL, None),
            ):
                if c == literal[0]:
                    if self.text.startswith(literal, pos):
                        parent.append(JsonNode(node_type, key, value))
                        return pos + len(literal)
                    raise JsonParseError(JsonErrorCode.UNEXPECTED_CHARS, pos)
            if c == "/":
                following = self._ch(pos + 1)
                if following == "/":
                    newline = self.text.find("\n", pos + 2)
                    if newline < 0:
                        raise JsonParseError(JsonErrorCode.ENDLESS_COMMENT, pos)
                    pos = newline + 1
                elif following == "*":
                    pos = self._skip_block_comment(pos + 2)
                else:
                    raise JsonParseError(JsonErrorCode.UNEXPECTED_CHARS, pos)
                continue
            raise JsonParseError(JsonErrorCode.UNEXPECTED_CHARS, pos)


def parse(text: Union[str, bytes]) -> JsonNode:
    """Parse the first value of ``text`` and return its node."""
    if isinstance(text, (bytes, bytearray)):
        text = bytes(text).decode("utf-8")
    text = text.split("\0", 1)[0]
    root = JsonNode(JsonType.ARRAY)
    end = _Parser(text).parse_value(root, None, 0)
    if not root.children:
        raise JsonParseError(JsonErrorCode.UNEXPECTED_CHARS, end)
    return root.children[0]


def parse_file(path: Union[str, os.PathLike], max_size: int = MAX_FILE_SIZE) -> JsonNode:
    """Read and parse a file that must be smaller than ``max_size`` bytes."""
    with open(path, "rb") as handle:
        data = handle.read(max_size)
    if len(data) >= max_size:
        raise OSError(errno.EFBIG, os.strerror(errno.EFBIG), os.fspath(path))
    return parse(data)


def get_str(node: JsonNode) -> str:
    """Return the text of a string node."""
    if node.type is not JsonType.STRING:
        raise TypeError("Not a string")
    return node.value


def get_array(node: JsonNode) -> list[JsonNode]:
    """Return the elements of an array node."""
    if node.type is not JsonType.ARRAY:
        raise TypeError("Not an array")
    return node.children


def get_object(node: JsonNode) -> JsonNode:
    """Return the node itself if it is an object."""
    if node.type is not JsonType.OBJECT:
        raise TypeError("Not an object")
    return node