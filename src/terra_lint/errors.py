"""Core exception hierarchy.

This module defines the error and warning types used across the linter.
Problems found inside a pack are reported as diagnostics, not raised;
exceptions are reserved for conditions a caller must handle explicitly:
inheritance cycles that abort one object's resolution, alias chains that
exceed the indirection ceiling, meta-references that cannot be located
and unusable linter settings.
"""

from os import linesep
from typing import TYPE_CHECKING, TypedDict

if TYPE_CHECKING:
    from yaml.nodes import Node

if TYPE_CHECKING:
    from terra_lint.core.document import ParsedDocument
    from terra_lint.diagnostics import DiagnosticCode, Severity

FORMAT_FILENAME = '<unicode string>'
FORMAT_INDENT = 4


class ErrorContext(TypedDict, total=False):
    """Container describing contextual information for error formatting.

    All fields are optional; the formatter adapts output based on
    provided values.
    """

    #: Name of the source file where the error occurred.
    filename: str | None

    #: Line number in the source file (0-based, as in YAML marks).
    line_num: int | None
    #: Column number in the source file (0-based, as in YAML marks).
    column_num: int | None

    #: Chain of objects or references leading to the error.
    chain: tuple[str, ...] | None


class ErrorFormatter:
    """Utility class for formatting linter errors with their location."""

    @classmethod
    def format(cls, message: str, context: ErrorContext | None = None) -> str:
        """Format an error message using contextual information.

        Args:
            message: Base human-readable error message.
            context: Optional error context with location data.

        Returns:
            A fully formatted error message suitable for display.
        """
        if not context:
            return message

        message += linesep
        message += cls.get_location_string(context, indent=FORMAT_INDENT)

        return message

    @classmethod
    def get_location_string(cls, context: ErrorContext, *,
                            indent: str | int | None = None) -> str:
        """Format source location information.

        Args:
            context: Error context containing location metadata.
            indent: Optional indentation (string or number of spaces).

        Returns:
            A formatted location string including filename, line, column
            and chain when available.
        """
        indent = cls._ensure_indent(indent)

        filename = context.get('filename')
        if not filename:
            filename = FORMAT_FILENAME

        message = f'{indent}in "{filename}"'
        if (line_num := context.get('line_num')) is not None:
            line_num += 1
            message += f', line {line_num}'
            if (column_num := context.get('column_num')) is not None:
                column_num += 1
                message += f', column {column_num}'
        message += linesep

        if chain := context.get('chain'):
            message += f'{indent}via {' -> '.join(chain)}{linesep}'

        return message

    @staticmethod
    def _ensure_indent(indent: str | int | None = None) -> str:
        """Normalize indentation input.

        Args:
            indent: Indentation as string or number of spaces.

        Returns:
            A string consisting of spaces or the provided string.
        """
        if isinstance(indent, int) and indent > 0:
            return ' ' * indent

        if isinstance(indent, str):
            return indent

        return ''


class LintWarning(UserWarning):
    """Warning emitted for non-fatal process-level issues.

    Used for problems outside the pack contents, such as an unreadable
    file skipped while scanning or an ignored settings entry.
    """


class LintError(Exception, ErrorFormatter):
    """Base exception for all terra-lint errors."""

    def __init__(self, message: str, *,
                 context: ErrorContext | None = None) -> None:
        """Initialize an error.

        Args:
            message: Human-readable error description.
            context: Error context containing optional location values.
        """
        self.message = message
        self.context = context

        super().__init__(message)

    def __str__(self) -> str:
        """String representation."""
        return self.format(self.message, self.context)


class InheritanceCycleError(LintError):
    """Error raised when an `extends` chain loops back onto itself.

    Raised by effective-object resolution and caught per object by the
    validation loop, which reports it and continues with other objects.
    """

    def __init__(self, chain: tuple[str, ...], *,
                 filename: str | None = None) -> None:
        """Initialize an inheritance cycle error.

        Args:
            chain: Display ids of the objects on the cycle, in visiting
                order, ending with the repeated one.
            filename: Document defining the first object of the chain.
        """
        self.chain = chain

        super().__init__(
            f'Circular inheritance detected: {' -> '.join(chain)}',
            context=ErrorContext(filename=filename),
        )


class AliasCycleError(LintError):
    """Error raised when an alias chain exceeds the indirection ceiling.

    This error is control flow between the alias that hit the ceiling and
    the nearest resolution boundary, which reports it as a diagnostic.
    """

    def __init__(self, document: 'ParsedDocument', node: 'Node') -> None:
        """Initialize an alias cycle error.

        Args:
            document: Document holding the alias.
            node: Alias node that exceeded the ceiling.
        """
        self.document = document
        self.node = node

        super().__init__(
            'Alias chain is too deep, probably cyclic',
            context=ErrorContext(
                filename=document.name,
                line_num=node.start_mark.line,
                column_num=node.start_mark.column,
            ),
        )


class SettingsError(LintError):
    """Error raised when linter settings cannot be loaded or validated."""


class MetaReferenceError(LintError):
    """Error raised when a meta-reference cannot be located.

    Carries the diagnostic code it is reported with; the resolver turns
    it into a diagnostic and keeps the literal reference text.
    """

    def __init__(self, code: 'DiagnosticCode', message: str, *,
                 severity: 'Severity' = 'error') -> None:
        """Initialize a meta-reference error.

        Args:
            code: Diagnostic code to report.
            message: Human-readable error description.
            severity: Diagnostic severity.
        """
        self.code = code
        self.severity = severity

        super().__init__(message)
