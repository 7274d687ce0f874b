"""Diagnostic records and the diagnostics sink.

Every problem found while loading, resolving or validating a pack is
reported as a `Diagnostic` appended to a `DiagnosticSink`. Diagnostics
are plain immutable records: a stable code, a human-readable message,
a severity and the location (file and optional range) the problem is
anchored to.
"""

from typing import TYPE_CHECKING, Literal

from pydantic import Field

from terra_lint.models import SchemaModel

if TYPE_CHECKING:
    from collections.abc import Iterator

#: Severity of a diagnostic.
type Severity = Literal['error', 'warning']

#: Stable diagnostic codes.
type DiagnosticCode = Literal[
    # Meta-reference resolution
    'META_REF_FILE_MISSING',
    'META_REF_AMBIGUOUS',
    'META_REF_PATH_MISSING',
    'META_REF_CYCLE',
    'META_REF_TRAVERSAL',
    'META_REF_MULTIPLE_COLONS',
    'META_REF_READ_FAILED',
    'META_REF_PROBABLY_LITERAL',
    'META_STRING_NON_SCALAR',
    'META_STRING_NON_FILE_REF',
    'META_MERGE_NOT_A_MAP',
    'META_SPLICE_NOT_A_LIST',
    'META_LIST_MERGE_NOT_A_LIST',
    'ALIAS_CYCLE',
    # Field-aware validation
    'EXPR_SYNTAX_ERROR',
    'MALFORMED_EXPRESSION',
    'INVALID_BLOCK_STATE',
    # Registry
    'DUPLICATE_ID',
    'EXTENDS_TARGET_MISSING',
    'EXTENDS_CYCLE',
    # Pack loading
    'YAML_SYNTAX_ERROR',
    'PACK_MISSING',
    'PACK_READ_FAILED',
    'PACK_STAGES_MISSING',
    'PACK_STAGES_NOT_A_LIST',
    'PACK_STAGE_UNREADABLE',
    # Schema and cross-reference checks
    'SCHEMA_MISSING_FIELD',
    'SCHEMA_TYPE_MISMATCH',
    'INVALID_PALETTE_STRUCTURE',
    'INVALID_PALETTE_LAYER',
    'PALETTE_MISSING',
    'STAGE_MISSING',
    'STRUCTURE_REF_MISSING',
    'FEATURE_REF_MISSING',
]


class Position(SchemaModel):
    """A location inside a source text.

    `line` and `col` are 1-based, `offset` is a 0-based character index.
    """

    line: int
    col: int
    offset: int


class Range(SchemaModel):
    """A half-open span of source text."""

    start: Position
    end: Position


class Diagnostic(SchemaModel):
    """A single reported problem."""

    code: DiagnosticCode = Field(
        title='Code',
        description='Stable machine-readable identifier of the problem.',
    )
    message: str = Field(
        title='Message',
        description='Human-readable description of the problem.',
    )
    severity: Severity = Field(
        default='error',
        title='Severity',
    )
    file: str = Field(
        title='File',
        description='Pack-relative path of the file the problem is anchored to.',
    )
    range: Range | None = Field(
        default=None,
        title='Range',
        description='Span of the offending text, when known.',
    )
    path: tuple[str, ...] = Field(
        default=(),
        title='Path',
        description='Additional context, such as an inheritance chain.',
    )

    @property
    def location(self) -> str:
        """Format the anchor as `file:line:col`."""
        if self.range is None:
            return self.file

        return f'{self.file}:{self.range.start.line}:{self.range.start.col}'


class DiagnosticSink:
    """Append-only collection of diagnostics.

    The same value may be resolved several times during one run (for
    example a referenced fragment used by many objects). Exact repeats of
    an already recorded diagnostic are therefore dropped, keeping the
    report stable regardless of how often a fragment is visited.
    """

    def __init__(self) -> None:
        """Initialize an empty sink."""
        self._items: list[Diagnostic] = []
        self._seen: set[Diagnostic] = set()

    def __iter__(self) -> 'Iterator[Diagnostic]':
        """Iterate over diagnostics in report order."""
        return iter(self._items)

    def __len__(self) -> int:
        """Number of recorded diagnostics."""
        return len(self._items)

    def add(self, diagnostic: Diagnostic) -> Diagnostic:
        """Record a diagnostic unless an identical one exists.

        Args:
            diagnostic: The diagnostic to append.

        Returns:
            The given diagnostic.
        """
        if diagnostic not in self._seen:
            self._seen.add(diagnostic)
            self._items.append(diagnostic)

        return diagnostic

    def report(self, code: DiagnosticCode, message: str, *,  # noqa: PLR0913
               file: str, range: Range | None = None,  # noqa: A002
               severity: Severity = 'error',
               path: tuple[str, ...] = ()) -> Diagnostic:
        """Build and record a diagnostic.

        Args:
            code: Stable diagnostic code.
            message: Human-readable description.
            file: File the problem is anchored to.
            range: Optional span of the offending text.
            severity: Error or warning.
            path: Optional additional context.

        Returns:
            The recorded diagnostic.
        """
        return self.add(Diagnostic(
            code=code,
            message=message,
            severity=severity,
            file=file,
            range=range,
            path=path,
        ))

    def extend(self, diagnostics: 'list[Diagnostic]') -> None:
        """Record several diagnostics in order."""
        for diagnostic in diagnostics:
            self.add(diagnostic)

    @property
    def errors(self) -> list[Diagnostic]:
        """Diagnostics with error severity."""
        return [item for item in self._items if item.severity == 'error']

    @property
    def warnings(self) -> list[Diagnostic]:
        """Diagnostics with warning severity."""
        return [item for item in self._items if item.severity == 'warning']

    def codes(self) -> list[str]:
        """Codes of all recorded diagnostics in report order."""
        return [item.code for item in self._items]
