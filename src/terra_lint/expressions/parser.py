"""Precedence-climbing parser for arithmetic and boolean expressions.

Binding strength, from loosest to tightest:

1. `||`
2. `&&`
3. comparisons `== != < <= > >=`
4. `+ -`
5. `* / %`
6. unary `+ -`
7. `^` (right-associative)
8. grouping, absolute value `|x|`, function calls, literals

Unary operators bind looser than power, so `-2^2` reads as `-(2^2)`
and `2^-1` reads as `2^(-1)`.
"""

from typing import Literal

from pydantic import Field

from terra_lint.errors import LintError
from terra_lint.models import SchemaModel

from .tokenizer import Token, TokenizerError, tokenize

#: Binding strength of binary operators.
PRECEDENCE = {
    '||': 1,
    '&&': 2,
    '==': 3, '!=': 3, '<': 3, '<=': 3, '>': 3, '>=': 3,
    '+': 4, '-': 4,
    '*': 5, '/': 5, '%': 5,
    '^': 7,
}

#: Binding strength of unary operators.
UNARY_PRECEDENCE = 6

RIGHT_ASSOCIATIVE = frozenset(('^',))


class Number(SchemaModel):
    """Numeric literal."""

    kind: Literal['number'] = 'number'
    value: str
    start: int
    end: int


class Ident(SchemaModel):
    """Variable reference."""

    kind: Literal['ident'] = 'ident'
    name: str
    start: int
    end: int


class Unary(SchemaModel):
    """Unary plus or minus."""

    kind: Literal['unary'] = 'unary'
    op: Literal['+', '-']
    operand: 'Expr'
    start: int
    end: int


class Binary(SchemaModel):
    """Binary operation."""

    kind: Literal['binary'] = 'binary'
    op: str
    left: 'Expr'
    right: 'Expr'
    start: int
    end: int


class Call(SchemaModel):
    """Function call."""

    kind: Literal['call'] = 'call'
    callee: str
    args: tuple['Expr', ...]
    start: int
    end: int


class Abs(SchemaModel):
    """Absolute value `|x|`."""

    kind: Literal['abs'] = 'abs'
    operand: 'Expr'
    start: int
    end: int


#: Expression tree node.
type Expr = Number | Ident | Unary | Binary | Call | Abs

Unary.model_rebuild()
Binary.model_rebuild()
Call.model_rebuild()
Abs.model_rebuild()


class ExpressionError(SchemaModel):
    """A syntax error with the span it applies to."""

    message: str
    start: int
    end: int


class ExpressionResult(SchemaModel):
    """Outcome of parsing an expression."""

    is_valid: bool
    errors: list[ExpressionError] = Field(default_factory=list)
    tree: Expr | None = None


class ParseError(LintError):
    """Error unwinding the parser on the first syntax error."""

    def __init__(self, message: str, token: Token) -> None:
        """Initialize a parse error at a token."""
        self.token = token

        super().__init__(message)


class Parser:
    """Single-use parser over a token list."""

    def __init__(self, tokens: list[Token]) -> None:
        """Initialize the parser with tokens ending in `eof`."""
        self.tokens = tokens
        self.current = 0

    def parse(self) -> Expr:
        """Parse a complete expression.

        Raises:
            ParseError: On the first syntax error.
        """
        expr = self.parse_expr(0)
        if not self.at_end():
            raise ParseError('Unexpected tokens after expression', self.peek())

        return expr

    def parse_expr(self, min_precedence: int) -> Expr:
        """Parse operators binding at least as tight as `min_precedence`."""
        left = self.parse_prefix()

        while (token := self.peek()).kind == 'op':
            precedence = PRECEDENCE[token.value]
            if precedence < min_precedence:
                break

            self.advance()
            next_precedence = precedence if token.value in RIGHT_ASSOCIATIVE else precedence + 1
            right = self.parse_expr(next_precedence)
            left = Binary(op=token.value, left=left, right=right, start=left.start, end=right.end)

        return left

    def parse_prefix(self) -> Expr:
        """Parse a literal, group, call, absolute value or unary operation."""
        token = self.advance()

        if token.kind == 'number':
            return Number(value=token.value, start=token.start, end=token.end)

        if token.kind == 'ident':
            if self.peek().kind != 'lparen':
                return Ident(name=token.value, start=token.start, end=token.end)

            self.advance()
            args: list[Expr] = []
            if self.peek().kind != 'rparen':
                args.append(self.parse_expr(0))
                while self.peek().kind == 'comma':
                    self.advance()
                    args.append(self.parse_expr(0))
            closing = self.expect('rparen', 'Expected closing ")" after function arguments')
            return Call(callee=token.value, args=tuple(args), start=token.start, end=closing.end)

        if token.kind == 'lparen':
            expr = self.parse_expr(0)
            self.expect('rparen', 'Expected closing ")"')
            return expr

        if token.kind == 'pipe':
            expr = self.parse_expr(0)
            closing = self.expect('pipe', 'Expected closing "|" for absolute value')
            return Abs(operand=expr, start=token.start, end=closing.end)

        if token.kind == 'op' and token.value in ('+', '-'):
            operand = self.parse_expr(UNARY_PRECEDENCE + 1)
            return Unary(op=token.value, operand=operand, start=token.start, end=operand.end)

        if token.kind == 'eof':
            raise ParseError('Unexpected end of expression', token)

        raise ParseError(f'Unexpected token {token.value!r}', token)

    def peek(self) -> Token:
        """Return the current token without consuming it."""
        return self.tokens[self.current]

    def advance(self) -> Token:
        """Consume and return the current token; `eof` is never consumed."""
        token = self.tokens[self.current]
        if not self.at_end():
            self.current += 1
        return token

    def at_end(self) -> bool:
        """Whether the current token is `eof`."""
        return self.peek().kind == 'eof'

    def expect(self, kind: str, message: str) -> Token:
        """Consume a token of the given kind or fail with `message`."""
        if self.peek().kind != kind:
            raise ParseError(message, self.peek())

        return self.advance()


def validate_expression(text: str) -> ExpressionResult:
    """Parse an expression, collecting syntax errors.

    Args:
        text: Expression source.

    Returns:
        The parse result; `tree` is set only for valid expressions.
    """
    try:
        tree = Parser(tokenize(text)).parse()

    except TokenizerError as error:
        return ExpressionResult(is_valid=False, errors=[
            ExpressionError(message=error.message, start=error.start, end=error.end),
        ])

    except ParseError as error:
        return ExpressionResult(is_valid=False, errors=[
            ExpressionError(message=error.message, start=error.token.start, end=error.token.end),
        ])

    return ExpressionResult(is_valid=True, tree=tree)


def balance_problem(text: str) -> str | None:
    """Cheap check for unbalanced parentheses and absolute-value pipes.

    Logical `||` is not counted as a pair of pipes.

    Args:
        text: Expression source.

    Returns:
        A problem description, or `None` if the text is balanced.
    """
    depth = 0
    for char in text:
        if char == '(':
            depth += 1
        elif char == ')':
            depth -= 1
        if depth < 0:
            return 'Unbalanced parentheses: too many closing parentheses'

    if depth:
        return 'Unbalanced parentheses: missing closing parentheses'

    if text.replace('||', '').count('|') % 2:
        return 'Unbalanced absolute value pipes'

    return None
