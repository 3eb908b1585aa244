import pytest

from paramfit.lexer import ExpressionSyntaxError, names_in, tokenize


def test_tokenize_basic_expression():
    assert tokenize("A*x^2") == [
        ("NAME", "A", 1),
        ("STAR", "*", 2),
        ("NAME", "x", 3),
        ("CARET", "^", 4),
        ("NUMBER", "2", 5),
    ]


def test_double_star_is_exponentiation():
    toks = tokenize("2**3")
    assert [t[0] for t in toks] == ["NUMBER", "CARET", "NUMBER"]
    assert toks[1] == ("CARET", "**", 2)


@pytest.mark.parametrize("text", ["1.5e-3", ".25", "10", "3.", "2E+4"])
def test_numbers_lex_as_single_token(text):
    assert tokenize(text) == [("NUMBER", text, 1)]


def test_placeholder_letters_lex_as_names():
    assert tokenize("ᚠ+1")[0] == ("NAME", "ᚠ", 1)


def test_unexpected_character_reports_column():
    with pytest.raises(ExpressionSyntaxError, match=r"\[col 3\]"):
        tokenize("a $ b")


def test_names_in_lists_identifiers_in_order():
    assert names_in("sin(x) + ab*x") == ["sin", "x", "ab", "x"]
    assert names_in("a $") == []
