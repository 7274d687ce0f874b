"""Linter settings and field classification rules.

Settings are resolved from defaults, an optional YAML configuration file,
`TERRA_LINT_*` environment variables and command-line overrides. Besides
pack scanning options they carry the field rule table deciding which
scalar fields hold arithmetic expressions or block states.
"""

from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal, Self
from warnings import warn

from pydantic import Field, ValidationError, model_validator
from pydantic_settings import SettingsConfigDict
from yaml import YAMLError, safe_load

from terra_lint.errors import LintWarning, SettingsError
from terra_lint.models import SchemaModel, SettingsModel

if TYPE_CHECKING:
    from collections.abc import Sequence

#: Kind of content a field rule classifies.
type RuleKind = Literal['expression', 'block']

#: Key of a mapping or `[]` for a sequence item.
type FieldPath = tuple[str, ...]

SEQUENCE_SEGMENT = '[]'


class FieldRule(SchemaModel):
    """Rule classifying scalar fields by their structural ancestry.

    A rule matches a field when every given condition holds:
    `name` equals the last path segment, and `within` occurs as a
    contiguous run of segments of the path. Matching is done on whole
    segments, so a rule within `slant` never matches a field named
    `slanted`.
    """

    kind: RuleKind = Field(
        title='Rule kind',
        description='Whether matching fields hold expressions or block states.',
    )
    name: str | None = Field(
        default=None,
        title='Field name',
        description='Exact name of the field (last path segment).',
    )
    within: tuple[str, ...] = Field(
        default=(),
        title='Ancestry',
        description=(
            'Contiguous run of path segments the field must be nested in. '
            f'Use `{SEQUENCE_SEGMENT}` for sequence items.'
        ),
    )

    @model_validator(mode='after')
    def check_condition(self) -> Self:
        """Require at least one matching condition.

        Returns:
            Self.

        Raises:
            ValueError: If neither `name` nor `within` is specified.
        """
        if self.name is None and not self.within:
            raise ValueError('Field rule needs a name or an ancestry')

        return self

    def matches(self, path: FieldPath) -> bool:
        """Check whether a field path matches the rule."""
        if not path:
            return False

        if self.name is not None and path[-1] != self.name:
            return False

        return not self.within or contains_run(path, self.within)


def contains_run(path: FieldPath, run: 'Sequence[str]') -> bool:
    """Whether `run` occurs as a contiguous run of segments in `path`."""
    size = len(run)
    return any(
        tuple(path[index:index + size]) == tuple(run)
        for index in range(len(path) - size + 1)
    )


DEFAULT_RULES = (
    FieldRule(kind='expression', within=('palette',)),
    FieldRule(kind='expression', within=('slant',)),
    FieldRule(kind='expression', name='threshold'),
    FieldRule(kind='expression', name='expression'),
    FieldRule(kind='block', name='material'),
    FieldRule(kind='block', name='block'),
    FieldRule(kind='block', within=('materials',)),
)


class LintSettings(SettingsModel):
    """Runtime settings of a lint run."""

    model_config = SettingsConfigDict(
        env_prefix='TERRA_LINT_',
        frozen=True,
        extra='ignore',
    )

    include_dirs: tuple[Path, ...] = Field(
        default=(),
        title='Include directories',
        description=(
            'Additional directories searched by meta-references after the '
            'pack root. Relative entries are relative to the pack root.'
        ),
    )
    file_patterns: tuple[str, ...] = Field(
        default=('**/*.yml', '**/*.yaml'),
        title='Document patterns',
        description='Glob patterns of pack documents.',
    )
    structure_extensions: tuple[str, ...] = Field(
        default=('nbt',),
        title='Structure extensions',
        description='Extensions (without dots) of files under `structures/`.',
    )
    strict: bool = Field(
        default=False,
        title='Strict mode',
        description='Treat warnings as failures.',
    )
    max_warnings: int = Field(
        default=-1,
        title='Maximum warnings',
        description='Fail when more warnings are reported; negative disables.',
    )
    warn_literal_spans: bool = Field(
        default=False,
        title='Warn literal spans',
        description='Report interpolation spans left as literal text.',
    )
    strict_segments: tuple[str, ...] = Field(
        default=('palette', 'slant'),
        title='Strict segments',
        description=(
            'Path segments inside which expression and block-state '
            'problems are errors instead of warnings.'
        ),
    )
    rules: tuple[FieldRule, ...] = Field(
        default=DEFAULT_RULES,
        title='Field rules',
        description='Rules classifying expression and block-state fields.',
    )

    @classmethod
    def from_file(cls, path: Path, **overrides: Any) -> Self:  # noqa: ANN401
        """Load settings from a YAML configuration file.

        Unknown top-level keys are ignored with a warning.

        Args:
            path: Configuration file path.
            **overrides: Values taking precedence over the file.

        Returns:
            Validated settings.

        Raises:
            SettingsError: If the file cannot be read or is invalid.
        """
        try:
            content = safe_load(path.read_text(encoding='utf-8')) or {}
        except (OSError, YAMLError) as base:
            raise SettingsError(f'Can not read settings file {str(path)!r}') from base

        if not isinstance(content, dict):
            raise SettingsError(f'Settings file {str(path)!r} must contain a mapping')

        unknown = sorted(set(content) - set(cls.model_fields))
        if unknown:
            warn(
                f'Ignoring unknown settings {', '.join(map(repr, unknown))} in {str(path)!r}',
                category=LintWarning,
                stacklevel=2,
            )

        return cls.build(**{**content, **overrides})

    @classmethod
    def build(cls, **values: Any) -> Self:  # noqa: ANN401
        """Validate settings, wrapping validation failures.

        Args:
            **values: Settings values.

        Returns:
            Validated settings.

        Raises:
            SettingsError: If the values are invalid.
        """
        try:
            return cls(**values)
        except ValidationError as base:
            raise SettingsError(f'Invalid settings: {base.error_count()} validation error(s)') from base

    def expression_field(self, path: FieldPath) -> bool:
        """Whether a field holds an arithmetic expression."""
        return any(rule.kind == 'expression' and rule.matches(path) for rule in self.rules)

    def block_field(self, path: FieldPath) -> bool:
        """Whether a field holds a block state."""
        return any(rule.kind == 'block' and rule.matches(path) for rule in self.rules)

    def strict_field(self, path: FieldPath) -> bool:
        """Whether problems in a field are reported as errors."""
        return any(segment in self.strict_segments for segment in path)

    def resolve_include_dirs(self, root: Path) -> tuple[Path, ...]:
        """Return absolute include directories for a pack root."""
        return tuple(
            (directory if directory.is_absolute() else root / directory).resolve()
            for directory in self.include_dirs
        )
