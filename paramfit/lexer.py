import re
from typing import List, Tuple

Token = Tuple[str, str, int]  # (type, value, col)

SYMBOLS = {
    '(': 'LPAREN',
    ')': 'RPAREN',
    ',': 'COMMA',
    '+': 'PLUS',
    '-': 'DASH',
    '*': 'STAR',
    '/': 'SLASH',
    '^': 'CARET',
}

WS = ' \t\r\n'

# identifiers may hold any letter, so placeholder tokens lex as names
_id_re = re.compile(r'[^\W\d]\w*')
_num_re = re.compile(r'(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?')


class ExpressionSyntaxError(ValueError):
    """Raised when expression text cannot be tokenized or parsed."""


def tokenize(s: str) -> List[Token]:
    tokens: List[Token] = []
    i = 0
    n = len(s)
    while i < n:
        ch = s[i]
        col = i + 1
        if ch in WS:
            i += 1
            continue
        m = _num_re.match(s, i)
        if m:
            tokens.append(('NUMBER', m.group(0), col))
            i = m.end()
            continue
        m = _id_re.match(s, i)
        if m:
            tokens.append(('NAME', m.group(0), col))
            i = m.end()
            continue
        if s.startswith('**', i):
            tokens.append(('CARET', '**', col))
            i += 2
            continue
        if ch in SYMBOLS:
            tokens.append((SYMBOLS[ch], ch, col))
            i += 1
            continue
        raise ExpressionSyntaxError(f'[col {col}] unexpected character: {ch!r}')
    return tokens


def names_in(s: str) -> List[str]:
    """Return the identifiers of ``s`` in order of appearance, or ``[]`` if it does not lex."""

    try:
        return [tok[1] for tok in tokenize(s) if tok[0] == 'NAME']
    except ExpressionSyntaxError:
        return []
