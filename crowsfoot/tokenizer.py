"""
Line tokenizer for the relationship-line syntax.

A line is scanned into a short stream of typed tokens, then classified by
the shape of that stream:

    IDENT CARDINALITY IDENT [COLON LABEL]   -> relationship
    IDENT IDENT [IDENT...]                  -> attribute (name type flags)
    IDENT [LBRACE]                          -> entity declaration
    RBRACE                                  -> end of an attribute block
    IDENT COLON LABEL                       -> key line (title, erDiagram)

Relationship shapes are decided before anything else, so a word containing
`--` can never be read as an attribute or entity name.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from .errors import ERSyntaxError
from .models import CARDINALITIES


# Letters, digits, underscores and single inner hyphens
_IDENT_RE = re.compile(r"^\w+(?:-\w+)*$")

# Flags that may trail an attribute line
ATTRIBUTE_FLAGS = {
    "PK": "primary_key",
    "NN": "required",
    "MV": "multivalued",
    "DV": "derived",
    "CP": "composite",
}

TITLE_KEYS = ("title", "titulo")
HEADER_KEYS = ("erdiagram",)


class TokenKind(str, Enum):
    """Token types produced by the scanner."""
    IDENT = "ident"
    CARDINALITY = "cardinality"
    UNKNOWN_SYMBOL = "unknown_symbol"  # looks like a connector, not in the table
    COLON = "colon"
    LABEL = "label"
    LBRACE = "lbrace"
    RBRACE = "rbrace"
    OTHER = "other"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    text: str
    column: int  # 0-based offset in the line


def _looks_like_connector(word: str) -> bool:
    return "--" in word or any(c in word for c in "|{}")


def _split_embedded_symbol(word: str, column: int) -> Optional[list[Token]]:
    """Split `A||--o{B` into IDENT CARDINALITY IDENT when a known symbol is inside."""
    for symbol in CARDINALITIES:
        index = word.find(symbol)
        if index <= 0:
            continue
        left = word[:index]
        right = word[index + len(symbol):]
        if _IDENT_RE.match(left) and (not right or _IDENT_RE.match(right)):
            tokens = [
                Token(TokenKind.IDENT, left, column),
                Token(TokenKind.CARDINALITY, symbol, column + index),
            ]
            if right:
                tokens.append(Token(TokenKind.IDENT, right, column + index + len(symbol)))
            return tokens
    return None


def _word_tokens(word: str, column: int) -> list[Token]:
    if word in CARDINALITIES:
        return [Token(TokenKind.CARDINALITY, word, column)]
    if word == "{":
        return [Token(TokenKind.LBRACE, word, column)]
    if word == "}":
        return [Token(TokenKind.RBRACE, word, column)]
    if _IDENT_RE.match(word):
        return [Token(TokenKind.IDENT, word, column)]
    if _looks_like_connector(word):
        embedded = _split_embedded_symbol(word, column)
        if embedded:
            return embedded
        return [Token(TokenKind.UNKNOWN_SYMBOL, word, column)]
    # Bracketed flags such as [PK]
    if word.startswith("[") and word.endswith("]") and _IDENT_RE.match(word[1:-1]):
        return [Token(TokenKind.IDENT, word[1:-1], column)]
    return [Token(TokenKind.OTHER, word, column)]


def tokenize_line(text: str) -> list[Token]:
    """
    Scan one source line into tokens.

    Everything after the first colon becomes a single LABEL token.
    Lines starting with `#` or `%%` are comments and yield no tokens.

    Args:
        text: A single line without its newline

    Returns:
        List of tokens in source order
    """
    stripped = text.strip()
    if not stripped or stripped.startswith("#") or stripped.startswith("%%"):
        return []

    tokens: list[Token] = []
    head, colon, tail = text.partition(":")

    i = 0
    while i < len(head):
        if head[i].isspace():
            i += 1
            continue
        start = i
        while i < len(head) and not head[i].isspace():
            i += 1
        tokens.extend(_word_tokens(head[start:i], start))

    if colon:
        colon_at = len(head)
        tokens.append(Token(TokenKind.COLON, ":", colon_at))
        label = tail.strip()
        if label:
            tokens.append(Token(TokenKind.LABEL, label, colon_at + 1 + tail.find(label)))

    return tokens


# --- Classified lines ---

@dataclass
class BlankLine:
    line: int


@dataclass
class RelationshipLine:
    line: int
    source: str
    cardinality: str
    target: str
    label: Optional[str] = None


@dataclass
class AttributeLine:
    line: int
    name: str
    data_type: str = "string"
    flags: list[str] = field(default_factory=list)

    def to_attribute_dict(self) -> dict:
        result: dict = {"name": self.name, "data_type": self.data_type}
        for flag in self.flags:
            result[ATTRIBUTE_FLAGS[flag]] = True
        return result


@dataclass
class EntityLine:
    line: int
    name: str
    opens_block: bool = False


@dataclass
class BlockEndLine:
    line: int


@dataclass
class KeyLine:
    """A `key: value` line such as `title: Shop`."""
    line: int
    key: str
    value: Optional[str] = None


Line = Union[BlankLine, RelationshipLine, AttributeLine, EntityLine, BlockEndLine, KeyLine]


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return value[1:-1]
    return value


def classify_line(text: str, line_no: int, in_block: bool = False) -> Line:
    """
    Classify a source line by the shape of its token stream.

    Args:
        text: The raw line
        line_no: 1-based line number, carried into results and errors
        in_block: True inside an `Entity {` ... `}` attribute block

    Returns:
        One of the Line variants

    Raises:
        ERSyntaxError: The line is relationship-shaped but malformed, uses an
            unrecognized cardinality symbol, or matches no known shape
    """
    tokens = tokenize_line(text)
    if not tokens:
        return BlankLine(line_no)

    label = None
    body = tokens
    has_colon = False
    for index, token in enumerate(tokens):
        if token.kind == TokenKind.COLON:
            has_colon = True
            body = tokens[:index]
            if index + 1 < len(tokens):
                label = tokens[index + 1].text
            break

    kinds = [t.kind for t in body]

    # Relationship shapes take precedence over every other reading
    unknown = [t for t in body if t.kind == TokenKind.UNKNOWN_SYMBOL]
    if unknown:
        raise ERSyntaxError(f"Unrecognized cardinality symbol '{unknown[0].text}'", line_no)
    if TokenKind.CARDINALITY in kinds:
        if kinds != [TokenKind.IDENT, TokenKind.CARDINALITY, TokenKind.IDENT]:
            raise ERSyntaxError(
                "Malformed relationship line, expected '<entity> <cardinality> <entity> [: label]'",
                line_no,
            )
        return RelationshipLine(
            line=line_no,
            source=body[0].text,
            cardinality=body[1].text,
            target=body[2].text,
            label=_unquote(label) if label else None,
        )

    if kinds == [TokenKind.RBRACE] and not has_colon:
        return BlockEndLine(line_no)

    if has_colon and kinds == [TokenKind.IDENT]:
        if in_block:
            return AttributeLine(line_no, body[0].text, label.split()[0] if label else "string")
        return KeyLine(line_no, body[0].text, _unquote(label) if label else None)

    if kinds == [TokenKind.IDENT, TokenKind.LBRACE] and not has_colon and not in_block:
        return EntityLine(line_no, body[0].text, opens_block=True)

    if kinds and all(k == TokenKind.IDENT for k in kinds) and not has_colon:
        if len(body) == 1:
            if in_block:
                return AttributeLine(line_no, body[0].text)
            return EntityLine(line_no, body[0].text)
        flags = [t.text.upper() for t in body[2:]]
        bad = [f for f in flags if f not in ATTRIBUTE_FLAGS]
        if bad:
            raise ERSyntaxError(f"Unknown attribute flag '{bad[0]}'", line_no)
        return AttributeLine(line_no, body[0].text, body[1].text, flags)

    raise ERSyntaxError(f"Unrecognized line: {text.strip()}", line_no)
