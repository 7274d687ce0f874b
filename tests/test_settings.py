"""Tests for lint settings and field classification rules."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from terra_lint.errors import LintWarning, SettingsError
from terra_lint.settings import FieldRule, LintSettings, contains_run


def test_rule_requires_condition() -> None:
    """A rule without name and ancestry would match everything."""
    with pytest.raises(ValidationError, match='name or an ancestry'):
        FieldRule(kind='expression')


@pytest.mark.parametrize('rule, path, expected', (
    pytest.param(
        FieldRule(kind='expression', within=('slant',)),
        ('slant', '[]', 'threshold'), True,
        id='within matches',
    ),
    pytest.param(
        FieldRule(kind='expression', within=('slant',)),
        ('slanted', 'threshold'), False,
        id='within matches whole segments',
    ),
    pytest.param(
        FieldRule(kind='expression', within=('features', '[]')),
        ('features', '[]', 'x'), True,
        id='within run',
    ),
    pytest.param(
        FieldRule(kind='expression', within=('features', '[]')),
        ('features', 'trees', '[]'), False,
        id='within run must be contiguous',
    ),
    pytest.param(
        FieldRule(kind='expression', name='threshold'),
        ('noise', 'threshold'), True,
        id='name matches',
    ),
    pytest.param(
        FieldRule(kind='expression', name='threshold'),
        ('threshold', 'value'), False,
        id='name matches last segment only',
    ),
    pytest.param(
        FieldRule(kind='block', name='material', within=('ores',)),
        ('carving', 'material'), False,
        id='all conditions must hold',
    ),
    pytest.param(
        FieldRule(kind='expression', name='threshold'),
        (), False,
        id='empty path',
    ),
))
def test_rule_matches(rule: FieldRule, path: tuple[str, ...], expected: bool) -> None:
    """Rules match on whole path segments."""
    assert rule.matches(path) is expected


def test_contains_run() -> None:
    """Runs longer than the path never match."""
    assert contains_run(('a', 'b'), ('a', 'b'))
    assert not contains_run(('a',), ('a', 'b'))


def test_default_classification() -> None:
    """Default rules classify palettes, slants and well-known names."""
    settings = LintSettings.build()

    assert settings.expression_field(('palette', '[]', 'BLOCK:minecraft:stone'))
    assert settings.expression_field(('noise', 'threshold'))
    assert not settings.expression_field(('features', 'trees', '[]'))
    assert settings.block_field(('ores', 'material'))
    assert settings.block_field(('materials', '[]'))
    assert settings.strict_field(('slant', '[]', 'threshold'))
    assert not settings.strict_field(('noise', 'threshold'))


def test_from_file(tmp_path: Path) -> None:
    """Settings files are validated and unknown keys are ignored."""
    path = tmp_path / 'terra-lint.yml'
    path.write_text((
        'strict: true\n'
        'structure_extensions: [nbt, schem]\n'
        'rules:\n'
        '  - kind: expression\n'
        '    name: formula\n'
        'colour: always\n'
    ), encoding='utf-8')

    with pytest.warns(LintWarning, match="'colour'"):
        settings = LintSettings.from_file(path)

    assert settings.strict
    assert settings.structure_extensions == ('nbt', 'schem')
    assert settings.expression_field(('noise', 'formula'))
    assert not settings.expression_field(('noise', 'threshold'))


def test_from_file_overrides(tmp_path: Path) -> None:
    """Overrides take precedence over the file."""
    path = tmp_path / 'terra-lint.yml'
    path.write_text('strict: true\nmax_warnings: 3\n', encoding='utf-8')

    settings = LintSettings.from_file(path, strict=False)

    assert not settings.strict
    assert settings.max_warnings == 3


@pytest.mark.parametrize('content', (
    pytest.param('- strict\n', id='not a mapping'),
    pytest.param('strict: [\n', id='syntax error'),
    pytest.param('rules:\n  - kind: expression\n', id='invalid rule'),
    pytest.param('max_warnings: many\n', id='invalid value'),
))
def test_from_file_invalid(content: str, tmp_path: Path) -> None:
    """Unusable settings files raise a settings error."""
    path = tmp_path / 'terra-lint.yml'
    path.write_text(content, encoding='utf-8')

    with pytest.raises(SettingsError):
        LintSettings.from_file(path)


def test_from_missing_file(tmp_path: Path) -> None:
    """A missing settings file raises a settings error."""
    with pytest.raises(SettingsError, match='Can not read'):
        LintSettings.from_file(tmp_path / 'missing.yml')


def test_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Environment variables configure the run."""
    monkeypatch.setenv('TERRA_LINT_STRICT', 'true')
    monkeypatch.setenv('TERRA_LINT_MAX_WARNINGS', '5')

    settings = LintSettings.build()

    assert settings.strict
    assert settings.max_warnings == 5


def test_resolve_include_dirs(tmp_path: Path) -> None:
    """Relative include directories are relative to the pack root."""
    settings = LintSettings.build(include_dirs=('shared', tmp_path / 'absolute'))

    assert settings.resolve_include_dirs(tmp_path / 'pack') == (
        (tmp_path / 'pack' / 'shared').resolve(),
        (tmp_path / 'absolute').resolve(),
    )
