"""Message template parsing and rendering.

Templates use named placeholders instead of positional format strings:

    "Received {Count} forecasts for {City}"

Supported placeholder forms:
    {Name}       render the value with str()
    {@Name}      render mappings and sequences as JSON
    {$Name}      force str() rendering
    {Name:fmt}   apply a format spec, e.g. {Elapsed:.2f}

Doubled braces ``{{`` and ``}}`` render as literal braces. A placeholder
with no matching property renders as its original text.
"""

import functools
import json
import re
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Sequence, Tuple, Union

_TOKEN_RE = re.compile(
    r"\{\{|\}\}|\{(?P<hint>[@$]?)(?P<name>[A-Za-z_][A-Za-z0-9_.]*)"
    r"(?::(?P<fmt>[^{}]*))?\}"
)


@dataclass(frozen=True)
class PropertyToken:
    """A placeholder within a message template."""

    name: str
    raw: str
    hint: str = ""
    fmt: Optional[str] = None

    def render(self, properties: Mapping[str, Any]) -> str:
        if self.name not in properties:
            return self.raw

        value = properties[self.name]
        if self.fmt:
            try:
                return format(value, self.fmt)
            except (TypeError, ValueError):
                return str(value)
        if self.hint == "@" and isinstance(value, (Mapping, list, tuple)):
            try:
                return json.dumps(value, default=str)
            except (TypeError, ValueError):
                return str(value)
        return str(value)


Token = Union[str, PropertyToken]


class MessageTemplate:
    """A parsed message template.

    Example:
        >>> template = MessageTemplate.parse("Hello {Name}")
        >>> template.property_names
        ['Name']
        >>> template.render({"Name": "world"})
        'Hello world'
    """

    def __init__(self, text: str, tokens: Sequence[Token]) -> None:
        self.text = text
        self.tokens: Tuple[Token, ...] = tuple(tokens)

    @classmethod
    def parse(cls, text: str) -> "MessageTemplate":
        """Parse a template, reusing a cached result for repeated text."""
        return _parse(text)

    @property
    def property_names(self) -> List[str]:
        """Unique placeholder names in order of first appearance."""
        names: List[str] = []
        for token in self.tokens:
            if isinstance(token, PropertyToken) and token.name not in names:
                names.append(token.name)
        return names

    def bind(self, args: Sequence[Any]) -> dict:
        """Bind positional values to placeholder names in order.

        Surplus values are dropped.
        """
        return dict(zip(self.property_names, args))

    def render(self, properties: Mapping[str, Any]) -> str:
        parts = []
        for token in self.tokens:
            if isinstance(token, PropertyToken):
                parts.append(token.render(properties))
            else:
                parts.append(token)
        return "".join(parts)

    def __repr__(self) -> str:
        return f"MessageTemplate({self.text!r})"


@functools.lru_cache(maxsize=1024)
def _parse(text: str) -> MessageTemplate:
    tokens: List[Token] = []
    literal: List[str] = []
    pos = 0

    for match in _TOKEN_RE.finditer(text):
        literal.append(text[pos:match.start()])
        pos = match.end()

        raw = match.group(0)
        if raw == "{{":
            literal.append("{")
            continue
        if raw == "}}":
            literal.append("}")
            continue

        chunk = "".join(literal)
        if chunk:
            tokens.append(chunk)
        literal = []
        tokens.append(
            PropertyToken(
                name=match.group("name"),
                raw=raw,
                hint=match.group("hint") or "",
                fmt=match.group("fmt") or None,
            )
        )

    literal.append(text[pos:])
    tail = "".join(literal)
    if tail:
        tokens.append(tail)

    return MessageTemplate(text, tokens)
