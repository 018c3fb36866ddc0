"""Tests for the line tokenizer and classifier."""

import pytest

from crowsfoot.errors import ERSyntaxError
from crowsfoot.tokenizer import (
    AttributeLine,
    BlankLine,
    BlockEndLine,
    EntityLine,
    KeyLine,
    RelationshipLine,
    TokenKind,
    classify_line,
    tokenize_line,
)


def test_tokenize_relationship():
    kinds = [t.kind for t in tokenize_line("A ||--o{ B : owns")]
    assert kinds == [
        TokenKind.IDENT, TokenKind.CARDINALITY, TokenKind.IDENT,
        TokenKind.COLON, TokenKind.LABEL,
    ]


def test_tokenize_keeps_label_whole():
    tokens = tokenize_line("ORDER ||--|{ LINE-ITEM : contains many: items")
    assert tokens[2].text == "LINE-ITEM"
    assert tokens[-1].text == "contains many: items"


def test_tokenize_comment_and_blank():
    assert tokenize_line("   ") == []
    assert tokenize_line("# a comment") == []
    assert tokenize_line("%% mermaid comment") == []


def test_unknown_connector_is_a_symbol_not_a_name():
    tokens = tokenize_line("A XX--XX B")
    assert tokens[1].kind == TokenKind.UNKNOWN_SYMBOL
    assert tokens[1].text == "XX--XX"


def test_classify_relationship():
    line = classify_line("  CUSTOMER ||--o{ ORDER : places", 7)
    assert isinstance(line, RelationshipLine)
    assert (line.source, line.cardinality, line.target, line.label) == ("CUSTOMER", "||--o{", "ORDER", "places")
    assert line.line == 7


def test_classify_relationship_without_spaces():
    line = classify_line("A}o--o{B", 1)
    assert isinstance(line, RelationshipLine)
    assert (line.source, line.cardinality, line.target) == ("A", "}o--o{", "B")


def test_classify_quoted_label():
    line = classify_line('A ||--|| B : "is a"', 1)
    assert line.label == "is a"


def test_unknown_symbol_raises_with_line():
    with pytest.raises(ERSyntaxError) as exc:
        classify_line("A XX--XX B : owns", 4)
    assert exc.value.line == 4
    assert "XX--XX" in exc.value.message


def test_malformed_relationship_raises():
    with pytest.raises(ERSyntaxError) as exc:
        classify_line("A ||--o{ : owns", 2)
    assert exc.value.line == 2


def test_classify_attribute_lines_in_block():
    line = classify_line("id int PK NN", 3, in_block=True)
    assert isinstance(line, AttributeLine)
    assert line.to_attribute_dict() == {
        "name": "id", "data_type": "int", "primary_key": True, "required": True,
    }

    bare = classify_line("nickname", 4, in_block=True)
    assert isinstance(bare, AttributeLine)
    assert bare.data_type == "string"


def test_attribute_line_is_never_a_relationship():
    line = classify_line("created-at timestamp", 1)
    assert isinstance(line, AttributeLine)


def test_unknown_attribute_flag():
    with pytest.raises(ERSyntaxError):
        classify_line("id int BOGUS", 1, in_block=True)


def test_classify_entity_and_block_lines():
    assert isinstance(classify_line("CUSTOMER", 1), EntityLine)
    opening = classify_line("CUSTOMER {", 1)
    assert isinstance(opening, EntityLine) and opening.opens_block
    assert isinstance(classify_line("}", 5), BlockEndLine)
    assert isinstance(classify_line("", 6), BlankLine)


def test_classify_key_line():
    line = classify_line('title: "My Shop"', 1)
    assert isinstance(line, KeyLine)
    assert (line.key, line.value) == ("title", "My Shop")
