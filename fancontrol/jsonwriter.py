"""Serialise node trees back to indented JSON text."""

from __future__ import annotations

from typing import Iterable, Optional

from .nxjson import MAX_FILE_SIZE, JsonNode, JsonType

_INDENT_STEP = 3
_ESCAPE_LIMIT = MAX_FILE_SIZE - 7


class _BoundedText:
    """Text accumulator that silently truncates at a fixed capacity."""

    def __init__(self, capacity: Optional[int]) -> None:
        if capacity is not None and capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self.parts: list[str] = []
        self.size = 0

    def add_text(self, text: str) -> None:
        if self.capacity is not None:
            room = self.capacity - 1 - self.size
            text = text[:max(room, 0)]
        self.parts.append(text)
        self.size += len(text)

    def add_char(self, char: str) -> None:
        if self.capacity is None or self.size + 2 < self.capacity:
            self.parts.append(char)
            self.size += 1

    def getvalue(self) -> str:
        return "".join(self.parts)


def escape_string(text: str) -> str:
    """Escape quotes, backslashes and control characters as ``\\uXXXX``."""
    out: list[str] = []
    length = 0
    for char in text:
        if length >= _ESCAPE_LIMIT:
            break
        if char in '"\\' or ord(char) < 0x20:
            out.append(f"\\u{ord(char):04X}")
            length += 6
        else:
            out.append(char)
            length += 1
    return "".join(out)


def _scalar_text(node: JsonNode) -> str:
    if node.type is JsonType.BOOL:
        return "true" if node.value else "false"
    if node.type is JsonType.INTEGER:
        return str(int(node.value))
    if node.type is JsonType.DOUBLE:
        return f"{float(node.value):.6f}"
    return "null"


def _write(nodes: Iterable[JsonNode], out: _BoundedText, indent: int) -> None:
    first = True
    for node in nodes:
        if not first:
            out.add_char(",")
        first = False
        out.add_text("\n" + " " * indent)
        if node.key is not None:
            out.add_char('"')
            out.add_text(node.key)
            out.add_text('": ')
        if node.type in (JsonType.OBJECT, JsonType.ARRAY):
            opening, closing = "{}" if node.type is JsonType.OBJECT else "[]"
            out.add_char(opening)
            _write(node.children, out, indent + _INDENT_STEP)
            out.add_text("\n" + " " * indent)
            out.add_char(closing)
        elif node.type is JsonType.STRING:
            out.add_char('"')
            out.add_text(escape_string(node.value))
            out.add_char('"')
        else:
            out.add_text(_scalar_text(node))


def to_string(
    node: JsonNode, indent: int = 0, capacity: Optional[int] = MAX_FILE_SIZE
) -> str:
    """Render ``node`` as text of at most ``capacity - 1`` characters.

    Pass ``capacity=None`` for unbounded output.
    """
    out = _BoundedText(capacity)
    _write([node], out, indent)
    return out.getvalue()