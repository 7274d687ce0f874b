"""Tokenizer for arithmetic and boolean expressions."""

from re import compile as regexp
from typing import Literal

from terra_lint.errors import LintError
from terra_lint.models import SchemaModel

#: Token categories.
type TokenKind = Literal['number', 'ident', 'op', 'lparen', 'rparen', 'comma', 'pipe', 'eof']

#: Operators, longest first so that `<=` wins over `<`.
OPERATORS = ('<=', '>=', '==', '!=', '&&', '||', '^', '*', '/', '%', '+', '-', '<', '>')

PUNCTUATION: dict[str, 'TokenKind'] = {
    '(': 'lparen',
    ')': 'rparen',
    ',': 'comma',
    '|': 'pipe',
}

NUMBER_PATTERN = regexp(r'\d+(?:\.\d*)?')
IDENT_PATTERN = regexp(r'[A-Za-z_]\w*')


class Token(SchemaModel):
    """A lexical token with its character span."""

    kind: TokenKind
    value: str
    start: int
    end: int


class TokenizerError(LintError):
    """Error raised on a character that starts no token."""

    def __init__(self, message: str, start: int, end: int) -> None:
        """Initialize a tokenizer error.

        Args:
            message: Human-readable error description.
            start: Offset of the offending character.
            end: Offset after the offending character.
        """
        self.start = start
        self.end = end

        super().__init__(message)


def tokenize(text: str) -> list[Token]:
    """Split an expression into tokens.

    Args:
        text: Expression source.

    Returns:
        Tokens followed by a single `eof` token.

    Raises:
        TokenizerError: On an unexpected character.
    """
    tokens: list[Token] = []
    position = 0

    while position < len(text):
        char = text[position]

        if char.isspace():
            position += 1
            continue

        if match := NUMBER_PATTERN.match(text, position):
            tokens.append(Token(kind='number', value=match.group(), start=position, end=match.end()))
            position = match.end()
            continue

        if match := IDENT_PATTERN.match(text, position):
            tokens.append(Token(kind='ident', value=match.group(), start=position, end=match.end()))
            position = match.end()
            continue

        operator = next((item for item in OPERATORS if text.startswith(item, position)), None)
        if operator is not None:
            end = position + len(operator)
            tokens.append(Token(kind='op', value=operator, start=position, end=end))
            position = end
            continue

        if kind := PUNCTUATION.get(char):
            tokens.append(Token(kind=kind, value=char, start=position, end=position + 1))
            position += 1
            continue

        raise TokenizerError(f'Unexpected character {char!r}', position, position + 1)

    tokens.append(Token(kind='eof', value='', start=position, end=position))

    return tokens
