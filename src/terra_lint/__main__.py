"""Command-line interface of terra-lint.

`terra-lint lint` checks one or more packs and exits with a non-zero
status when problems are found; `terra-lint schema` prints the JSON
Schema of the settings file.
"""

from json import dumps
from os import environ
from pathlib import Path
from typing import TYPE_CHECKING, Any

from click import BadParameter, Choice, argument, echo, group, option, pass_context
from click import Path as PathParam

from terra_lint.core import Pack
from terra_lint.errors import SettingsError
from terra_lint.report import PackReport, Reporter, exit_code
from terra_lint.settings import LintSettings

if TYPE_CHECKING:
    from click import Context

PackRoot = PathParam(
    exists=True,
    file_okay=False,
    path_type=Path,
)

SettingsFile = PathParam(
    exists=True,
    dir_okay=False,
    readable=True,
    path_type=Path,
)


def color_mode(value: str) -> bool | None:
    """Translate a `--color` choice into a click color flag.

    In `auto` mode `NO_COLOR` disables and `FORCE_COLOR` enables styling;
    otherwise styling follows whether the output is a terminal.
    """
    if value == 'always':
        return True

    if value == 'never':
        return False

    if environ.get('NO_COLOR'):
        return False

    if environ.get('FORCE_COLOR'):
        return True

    return None


def load_settings(config: Path | None, **overrides: Any) -> LintSettings:  # noqa: ANN401
    """Build settings from an optional file and command-line overrides.

    Raises:
        BadParameter: If the settings are invalid.
    """
    overrides = {key: value for key, value in overrides.items() if value is not None}

    try:
        if config is not None:
            return LintSettings.from_file(config, **overrides)
        return LintSettings.build(**overrides)

    except SettingsError as error:
        raise BadParameter(str(error), param_hint='--config') from error


@group(help='Validate and lint Terra configuration packs.')
def cli() -> None:
    """Root CLI group for terra-lint tools."""
    return None


@cli.command(
    name='lint',
    help='Check one or more pack directories.',
)
@argument('roots', nargs=-1, required=True, type=PackRoot)
@option('--strict', is_flag=True, default=False, help='Treat warnings as failures.')
@option(
    '--format', 'output_format',
    type=Choice(['pretty', 'plain', 'json']),
    default='pretty',
    show_default=True,
    help='Report format.',
)
@option(
    '--color',
    type=Choice(['auto', 'always', 'never']),
    default='auto',
    show_default=True,
    help='Colorize the report.',
)
@option('--max-warnings', type=int, default=None, help='Fail when more warnings are reported.')
@option(
    '--structure-ext',
    default=None,
    help='Comma-separated extensions of structure files, e.g. "nbt,schem".',
)
@option(
    '--include', 'include_dirs',
    multiple=True,
    type=PathParam(file_okay=False, path_type=Path),
    help='Additional directory searched by meta references; repeatable.',
)
@option('--config', type=SettingsFile, default=None, help='YAML settings file.')
@pass_context
def lint(ctx: 'Context', roots: tuple[Path, ...], strict: bool,  # noqa: PLR0913
         output_format: str, color: str, max_warnings: int | None,
         structure_ext: str | None, include_dirs: tuple[Path, ...],
         config: Path | None) -> None:
    """Lint packs and exit with the resulting status."""
    extensions = None
    if structure_ext is not None:
        extensions = tuple(item.strip() for item in structure_ext.split(',') if item.strip())

    settings = load_settings(
        config,
        strict=strict or None,
        max_warnings=max_warnings,
        structure_extensions=extensions,
        include_dirs=tuple(path.resolve() for path in include_dirs) or None,
    )

    reports = [
        PackReport(root=root.as_posix(), diagnostics=tuple(Pack(root, settings).lint()))
        for root in roots
    ]

    Reporter(output_format, color=color_mode(color)).emit(reports)

    ctx.exit(exit_code(reports, strict=settings.strict, max_warnings=settings.max_warnings))


@cli.command(
    name='schema',
    help='Print the JSON Schema of the terra-lint settings file.',
)
def print_schema() -> None:
    """Generate and print the settings JSON Schema."""
    echo(dumps(LintSettings.model_json_schema(), ensure_ascii=False, indent=2))


if __name__ == '__main__':
    cli()
