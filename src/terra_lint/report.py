"""Rendering of lint results.

Three output formats are supported:

- `pretty`: diagnostics grouped per pack with colored severities;
- `plain`: one `file:line:col: severity CODE message` line each, suited
  for editors and grep;
- `json`: a single document with every pack and a summary.
"""

from json import dumps
from typing import TYPE_CHECKING, Literal

from click import echo, style
from pydantic import Field

from terra_lint.diagnostics import Diagnostic  # noqa: TC001
from terra_lint.models import SchemaModel

if TYPE_CHECKING:
    from collections.abc import Sequence

#: Report output format.
type OutputFormat = Literal['pretty', 'plain', 'json']

SEVERITY_COLORS = {
    'error': 'red',
    'warning': 'yellow',
}


class PackReport(SchemaModel):
    """Diagnostics of one linted pack."""

    root: str = Field(
        title='Pack root',
    )
    diagnostics: tuple[Diagnostic, ...] = Field(
        default=(),
        title='Diagnostics',
    )

    @property
    def errors(self) -> int:
        """Number of errors."""
        return sum(1 for item in self.diagnostics if item.severity == 'error')

    @property
    def warnings(self) -> int:
        """Number of warnings."""
        return sum(1 for item in self.diagnostics if item.severity == 'warning')


def exit_code(reports: 'Sequence[PackReport]', *,
              strict: bool = False, max_warnings: int = -1) -> int:
    """Compute the process exit status for a set of reports.

    Args:
        reports: Reports of all linted packs.
        strict: Whether any warning fails the run.
        max_warnings: Number of warnings tolerated; negative disables.

    Returns:
        `1` on errors, on warnings in strict mode or on too many
        warnings, `0` otherwise.
    """
    errors = sum(report.errors for report in reports)
    warnings = sum(report.warnings for report in reports)

    if errors:
        return 1

    if strict and warnings:
        return 1

    if 0 <= max_warnings < warnings:
        return 1

    return 0


class Reporter:
    """Print lint reports in one of the supported formats."""

    def __init__(self, output_format: OutputFormat = 'pretty', *,
                 color: bool | None = None) -> None:
        """Initialize a reporter.

        Args:
            output_format: Output format.
            color: Force styling on or off; `None` styles only terminals.
        """
        self.output_format = output_format
        self.color = color

    def emit(self, reports: 'Sequence[PackReport]') -> None:
        """Print all reports followed by a summary."""
        if self.output_format == 'json':
            echo(self.render_json(reports))
            return

        for report in reports:
            if self.output_format == 'pretty':
                self.emit_pretty(report)
            else:
                self.emit_plain(report)

        self.emit_summary(reports)

    def emit_pretty(self, report: PackReport) -> None:
        """Print one pack with its diagnostics grouped under a header."""
        echo(style(f'Pack {report.root}', bold=True), color=self.color)

        if not report.diagnostics:
            echo(style('  no problems found', fg='green'), color=self.color)

        for item in report.diagnostics:
            severity = style(f'{item.severity:<7}', fg=SEVERITY_COLORS[item.severity], bold=True)
            code = style(item.code, dim=True)
            echo(f'  {item.location}  {severity} {item.message}  {code}', color=self.color)
            if item.path:
                echo(f'      chain: {' -> '.join(item.path)}', color=self.color)

        echo('', color=self.color)

    def emit_plain(self, report: PackReport) -> None:
        """Print one line per diagnostic, paths prefixed by the pack root."""
        for item in report.diagnostics:
            echo(f'{report.root}/{item.location}: {item.severity} {item.code} {item.message}')

    def emit_summary(self, reports: 'Sequence[PackReport]') -> None:
        """Print the total number of errors and warnings."""
        errors = sum(report.errors for report in reports)
        warnings = sum(report.warnings for report in reports)

        summary = f'{errors} error(s), {warnings} warning(s) in {len(reports)} pack(s)'
        if self.output_format == 'plain':
            echo(summary)
            return

        fg = 'red' if errors else 'yellow' if warnings else 'green'
        echo(style(summary, fg=fg, bold=True), color=self.color)

    @staticmethod
    def render_json(reports: 'Sequence[PackReport]') -> str:
        """Render all reports as one JSON document."""
        content = {
            'packs': [report.model_dump(mode='json') for report in reports],
            'summary': {
                'errors': sum(report.errors for report in reports),
                'warnings': sum(report.warnings for report in reports),
            },
        }

        return dumps(content, ensure_ascii=False, indent=2)
