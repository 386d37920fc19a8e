# tests/test_tokens.py
"""
Tests for raw token scanning: spellings, kinds, leading space, token lengths.
"""

import pytest

from cppexpand.tokens import TokenKind, last_token_offset, measure_token_length, scan


def spellings(text):
    return [raw.spelling for raw in scan(text)]


class TestScan:

    def test_identifiers_and_punctuators(self):
        assert spellings("foo(a, b);") == ["foo", "(", "a", ",", "b", ")", ";"]

    def test_kinds(self):
        kinds = [raw.kind for raw in scan("x = 42;")]
        assert kinds == [
            TokenKind.IDENTIFIER, TokenKind.PUNCTUATOR, TokenKind.NUMBER, TokenKind.PUNCTUATOR,
        ]

    def test_offsets(self):
        assert [raw.offset for raw in scan("ab  cd")] == [0, 4]

    def test_leading_space(self):
        assert [raw.has_leading_space for raw in scan("a +b")] == [False, True, False]

    def test_start_and_end_bound_the_scan(self):
        text = "skip keep1 keep2 skip"
        assert [raw.spelling for raw in scan(text, 5, 16)] == ["keep1", "keep2"]

    def test_maximal_munch(self):
        assert spellings("a<<=b->c") == ["a", "<<=", "b", "->", "c"]

    def test_hash_tokens(self):
        kinds = [raw.kind for raw in scan("#x a##b")]
        assert kinds == [
            TokenKind.HASH, TokenKind.IDENTIFIER,
            TokenKind.IDENTIFIER, TokenKind.HASHHASH, TokenKind.IDENTIFIER,
        ]

    def test_digraph_hashes(self):
        kinds = [raw.kind for raw in scan("%:x %:%:")]
        assert kinds == [TokenKind.HASH, TokenKind.IDENTIFIER, TokenKind.HASHHASH]

    def test_comments_are_whitespace(self):
        assert spellings("a /* c */ b // d\n c") == ["a", "b", "c"]

    def test_line_continuation_is_whitespace(self):
        raws = list(scan("a \\\n b"))
        assert [raw.spelling for raw in raws] == ["a", "b"]
        assert raws[1].has_leading_space

    def test_string_and_char_literals(self):
        raws = list(scan("\"a b\" 'c' L\"w\""))
        assert [raw.spelling for raw in raws] == ['"a b"', "'c'", 'L"w"']
        assert [raw.kind for raw in raws] == [TokenKind.STRING, TokenKind.CHAR, TokenKind.STRING]

    def test_escaped_quote_stays_in_string(self):
        assert spellings('"a\\"b" c') == ['"a\\"b"', "c"]

    def test_pp_numbers(self):
        assert spellings("1.5e+3f 0x1F .5") == ["1.5e+3f", "0x1F", ".5"]

    def test_unknown_character(self):
        raws = list(scan("a @ b"))
        assert raws[1].kind is TokenKind.UNKNOWN
        assert raws[1].spelling == "@"


class TestHashCount:

    @pytest.mark.parametrize("kind, expected", [
        (TokenKind.HASH, 1),
        (TokenKind.HASHHASH, 2),
        (TokenKind.IDENTIFIER, 0),
        (TokenKind.PUNCTUATOR, 0),
    ])
    def test_hash_count(self, kind, expected):
        assert kind.hash_count == expected


class TestMeasureTokenLength:

    def test_identifier(self):
        assert measure_token_length("foo(bar)", 0) == 3

    def test_punctuator(self):
        assert measure_token_length("foo(bar)", 3) == 1

    def test_compound_operator(self):
        assert measure_token_length("a <<= b", 2) == 3

    def test_whitespace_is_zero(self):
        assert measure_token_length("a b", 1) == 0

    def test_past_end_is_zero(self):
        assert measure_token_length("ab", 2) == 0
        assert measure_token_length("ab", -1) == 0


class TestLastTokenOffset:

    def test_closing_paren(self):
        assert last_token_offset("f(1, 2)", 0, 7) == 6

    def test_trailing_whitespace_ignored(self):
        assert last_token_offset("return x;  ", 0, 11) == 8

    def test_empty_slice_returns_start(self):
        assert last_token_offset("   ", 0, 3) == 0
