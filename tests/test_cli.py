"""Tests for the command-line interface."""

from json import loads
from typing import TYPE_CHECKING

import pytest
from click.testing import CliRunner

from terra_lint.__main__ import cli, color_mode
from terra_lint.report import PackReport, exit_code

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

type PackDir = Callable[[dict[str, str]], Path]

CLEAN_PACK = {
    'pack.yml': 'id: test-pack\nversion: 1\nstages: [trees]\n',
    'biomes/forest.yml': 'type: BIOME\nid: FOREST\n',
}

WARNING_PACK = {
    'pack.yml': 'id: test-pack\nversion: 1\n',
    'biomes/forest.yml': 'type: BIOME\nid: FOREST\n',
}

ERROR_PACK = {
    'pack.yml': 'id: test-pack\nversion: 1\nstages: [trees]\n',
    'biomes/forest.yml': 'type: BIOME\nid: FOREST\ncolor: $missing.yml:color\n',
}


def test_lint_clean_pack(pack_dir: 'PackDir') -> None:
    """A clean pack exits successfully."""
    root = pack_dir(CLEAN_PACK)

    result = CliRunner().invoke(cli, ['lint', str(root)])

    assert result.exit_code == 0, result.output
    assert 'no problems found' in result.output
    assert '0 error(s), 0 warning(s) in 1 pack(s)' in result.output


def test_lint_errors(pack_dir: 'PackDir') -> None:
    """Errors fail the run."""
    root = pack_dir(ERROR_PACK)

    result = CliRunner().invoke(cli, ['lint', '--format', 'plain', str(root)])

    assert result.exit_code == 1
    assert 'biomes/forest.yml:3:8: error META_REF_FILE_MISSING' in result.output
    assert '1 error(s), 0 warning(s)' in result.output


@pytest.mark.parametrize('options, expected', (
    pytest.param([], 0, id='warnings tolerated'),
    pytest.param(['--strict'], 1, id='strict'),
    pytest.param(['--max-warnings', '0'], 1, id='too many warnings'),
    pytest.param(['--max-warnings', '1'], 0, id='warnings under limit'),
))
def test_lint_warnings(options: list[str], expected: int, pack_dir: 'PackDir') -> None:
    """Warnings fail the run only when asked to."""
    root = pack_dir(WARNING_PACK)

    result = CliRunner().invoke(cli, ['lint', *options, str(root)])

    assert result.exit_code == expected, result.output
    assert 'PACK_STAGES_MISSING' in result.output


def test_lint_json(pack_dir: 'PackDir') -> None:
    """The JSON report lists every pack with a summary."""
    root = pack_dir(ERROR_PACK)

    result = CliRunner().invoke(cli, ['lint', '--format', 'json', str(root)])

    assert result.exit_code == 1

    report = loads(result.output)

    assert report['summary'] == {'errors': 1, 'warnings': 0}
    assert report['packs'][0]['root'] == root.as_posix()

    diagnostic = report['packs'][0]['diagnostics'][0]

    assert diagnostic['code'] == 'META_REF_FILE_MISSING'
    assert diagnostic['file'] == 'biomes/forest.yml'
    assert diagnostic['range']['start']['line'] == 3


def test_lint_several_packs(pack_dir: 'PackDir', tmp_path_factory: pytest.TempPathFactory) -> None:
    """Several packs are linted independently."""
    clean = pack_dir(CLEAN_PACK)
    missing = tmp_path_factory.mktemp('empty')

    result = CliRunner().invoke(cli, ['lint', '--format', 'plain', str(clean), str(missing)])

    assert result.exit_code == 1
    assert 'PACK_MISSING' in result.output
    assert 'in 2 pack(s)' in result.output


@pytest.mark.parametrize('option, styled', (
    pytest.param('always', True, id='always'),
    pytest.param('never', False, id='never'),
))
def test_lint_color(option: str, styled: bool, pack_dir: 'PackDir') -> None:
    """Styling follows the color option."""
    root = pack_dir(CLEAN_PACK)

    result = CliRunner().invoke(cli, ['lint', '--color', option, str(root)])

    assert ('\x1b[' in result.output) is styled


@pytest.mark.parametrize('value, environment, expected', (
    pytest.param('auto', {}, None, id='auto'),
    pytest.param('auto', {'NO_COLOR': '1'}, False, id='no color'),
    pytest.param('auto', {'FORCE_COLOR': '1'}, True, id='force color'),
    pytest.param('never', {'FORCE_COLOR': '1'}, False, id='explicit choice wins'),
))
def test_color_mode(value: str, environment: dict[str, str], expected: bool | None,
                    monkeypatch: pytest.MonkeyPatch) -> None:
    """The auto color mode honours the usual environment variables."""
    monkeypatch.delenv('NO_COLOR', raising=False)
    monkeypatch.delenv('FORCE_COLOR', raising=False)
    for key, item in environment.items():
        monkeypatch.setenv(key, item)

    assert color_mode(value) is expected


def test_lint_structure_extensions(pack_dir: 'PackDir') -> None:
    """Structure extensions are configurable from the command line."""
    root = pack_dir({
        **CLEAN_PACK,
        'biomes/forest.yml': 'type: BIOME\nid: FOREST\nfeatures:\n  trees: [tower]\n',
        'structures/tower.schem': '',
    })

    failed = CliRunner().invoke(cli, ['lint', str(root)])
    passed = CliRunner().invoke(cli, ['lint', '--structure-ext', 'nbt, schem', str(root)])

    assert failed.exit_code == 1
    assert passed.exit_code == 0, passed.output


def test_lint_include(pack_dir: 'PackDir', tmp_path_factory: pytest.TempPathFactory) -> None:
    """Include directories are passed to reference lookup."""
    shared = tmp_path_factory.mktemp('shared')
    (shared / 'colors.yml').write_text('color: 0x00FF00\n', encoding='utf-8')
    root = pack_dir({
        **CLEAN_PACK,
        'biomes/forest.yml': 'type: BIOME\nid: FOREST\ncolor: $colors.yml:color\n',
    })

    result = CliRunner().invoke(cli, ['lint', '--include', str(shared), str(root)])

    assert result.exit_code == 0, result.output


def test_lint_config(pack_dir: 'PackDir', tmp_path_factory: pytest.TempPathFactory) -> None:
    """Settings files are read with `--config`."""
    root = pack_dir(WARNING_PACK)
    config = tmp_path_factory.mktemp('config') / 'terra-lint.yml'
    config.write_text('strict: true\n', encoding='utf-8')

    result = CliRunner().invoke(cli, ['lint', '--config', str(config), str(root)])

    assert result.exit_code == 1


def test_lint_invalid_config(pack_dir: 'PackDir', tmp_path_factory: pytest.TempPathFactory) -> None:
    """Invalid settings files are usage errors."""
    root = pack_dir(CLEAN_PACK)
    config = tmp_path_factory.mktemp('config') / 'terra-lint.yml'
    config.write_text('- strict\n', encoding='utf-8')

    result = CliRunner().invoke(cli, ['lint', '--config', str(config), str(root)])

    assert result.exit_code == 2
    assert '--config' in result.output


def test_lint_missing_root() -> None:
    """Pack roots must exist."""
    result = CliRunner().invoke(cli, ['lint', 'no-such-pack'])

    assert result.exit_code == 2


def test_schema() -> None:
    """The settings JSON Schema is printed."""
    result = CliRunner().invoke(cli, ['schema'])

    assert result.exit_code == 0

    schema = loads(result.output)

    assert 'strict' in schema['properties']
    assert 'rules' in schema['properties']


@pytest.mark.parametrize('errors, warnings, strict, max_warnings, expected', (
    pytest.param(0, 0, False, -1, 0, id='clean'),
    pytest.param(1, 0, False, -1, 1, id='errors'),
    pytest.param(0, 2, False, -1, 0, id='warnings'),
    pytest.param(0, 2, True, -1, 1, id='strict warnings'),
    pytest.param(0, 2, False, 2, 0, id='warnings at limit'),
    pytest.param(0, 3, False, 2, 1, id='warnings over limit'),
))
def test_exit_code(errors: int, warnings: int, strict: bool, max_warnings: int,  # noqa: PLR0913
                   expected: int) -> None:
    """Exit status reflects errors, strictness and the warning limit."""
    diagnostics = [
        {'code': 'META_REF_FILE_MISSING', 'message': 'x', 'file': 'a.yml'}
        for _ in range(errors)
    ] + [
        {'code': 'PALETTE_MISSING', 'message': f'w{index}', 'file': 'a.yml', 'severity': 'warning'}
        for index in range(warnings)
    ]
    report = PackReport.model_validate({'root': 'pack', 'diagnostics': diagnostics})

    assert exit_code([report], strict=strict, max_warnings=max_warnings) == expected
