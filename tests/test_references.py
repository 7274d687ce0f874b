"""Tests for meta-reference triage, parsing and lookup."""

from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from terra_lint.core import Registry, parse_document
from terra_lint.core.references import (
    ReferenceLocator,
    classify,
    navigate,
    parse_reference,
    strip_reference,
)
from terra_lint.errors import MetaReferenceError

if TYPE_CHECKING:
    from collections.abc import Callable

if TYPE_CHECKING:
    from terra_lint.core import ParsedDocument


@pytest.mark.parametrize('text, expected', (
    pytest.param('$palettes/forest.yml:top', 'palettes/forest.yml:top', id='sigil'),
    pytest.param('${palettes/forest.yml:top}', 'palettes/forest.yml:top', id='braces'),
    pytest.param('${ meta.yml:sea-level }', 'meta.yml:sea-level', id='padded braces'),
    pytest.param('meta.yml', 'meta.yml', id='bare'),
))
def test_strip_reference(text: str, expected: str) -> None:
    """The sigil and braces are not part of the reference."""
    assert strip_reference(text) == expected


@pytest.mark.parametrize('text, expected', (
    pytest.param('palettes/forest.yml:top', 'definitely_ref', id='document path'),
    pytest.param('meta.yml:sea-level', 'definitely_ref', id='document name'),
    pytest.param('forest.YAML', 'definitely_ref', id='upper case extension'),
    pytest.param('data/values.json', 'definitely_ref', id='separator and extension'),
    pytest.param('palettes/forest:top', 'probably_ref', id='separator without extension'),
    pytest.param('meta:sea-level', 'probably_ref', id='meta word'),
    pytest.param('..:secret', 'probably_ref', id='parent directory'),
    pytest.param('values.json:x', 'probably_ref', id='other extension with colon'),
    pytest.param('minecraft:stone', 'unlikely_ref', id='block id'),
    pytest.param('stone', 'unlikely_ref', id='bare word'),
    pytest.param('C:\\packs\\forest.yml:x', 'definitely_ref', id='drive letter'),
))
def test_classify(text: str, expected: str) -> None:
    """References are triaged by how file-like they look."""
    assert classify(text) == expected


def test_parse_reference() -> None:
    """The first colon separates the file from the dotted path."""
    reference = parse_reference('./palettes\\forest.yml:layers.0.materials')

    assert reference.file_part == 'palettes/forest.yml'
    assert reference.path == ('layers', '0', 'materials')
    assert reference.dotted == 'layers.0.materials'
    assert not reference.extra_colons


def test_parse_reference_without_path() -> None:
    """A reference without colon points at the whole document."""
    reference = parse_reference('meta')

    assert reference.path == ()
    assert reference.candidates == ('meta', 'meta.yml', 'meta.yaml')
    assert reference.is_meta_file


def test_parse_reference_extra_colons() -> None:
    """Colons after the first one stay in the path."""
    reference = parse_reference('blocks.yml:minecraft:stone')

    assert reference.path == ('minecraft:stone',)
    assert reference.extra_colons


@pytest.mark.parametrize('text', (
    pytest.param('../secret.yml:x', id='parent directory'),
    pytest.param('biomes/../../secret.yml:x', id='nested parent directory'),
    pytest.param('biomes\\..\\..\\secret.yml:x', id='backslash parent directory'),
    pytest.param('/etc/secret.yml:x', id='absolute path'),
    pytest.param('\\\\server\\secret.yml:x', id='network path'),
    pytest.param('C:/packs/secret.yml:x', id='drive letter'),
))
def test_parse_reference_traversal(text: str) -> None:
    """References may not leave their root."""
    with pytest.raises(MetaReferenceError) as error:
        parse_reference(text)

    assert error.value.code == 'META_REF_TRAVERSAL'


def test_navigate(add_document: 'Callable[[str, str], ParsedDocument]') -> None:
    """Paths walk mapping keys and sequence indexes."""
    document = add_document('palettes.yml', (
        'layers:\n'
        '  - materials: [minecraft:stone]\n'
        '  - materials: [minecraft:dirt]\n'
    ))

    node, field_path = navigate(document, parse_reference('palettes.yml:layers.1.materials'))

    assert node is not None
    assert node.value[0].value == 'minecraft:dirt'
    assert field_path == ('layers', '[]', 'materials')


@pytest.mark.parametrize('path', (
    pytest.param('layers.5', id='index out of range'),
    pytest.param('layers.first', id='key on a sequence'),
    pytest.param('missing', id='missing key'),
    pytest.param('layers.0.materials.0.deeper', id='key on a scalar'),
))
def test_navigate_missing(path: str, add_document: 'Callable[[str, str], ParsedDocument]') -> None:
    """Missing path segments are reported."""
    document = add_document('palettes.yml', 'layers:\n  - materials: [minecraft:stone]\n')

    with pytest.raises(MetaReferenceError) as error:
        navigate(document, parse_reference(f'palettes.yml:{path}'))

    assert error.value.code == 'META_REF_PATH_MISSING'


def test_locate_exact_path_before_suffix(registry: Registry,
                                         add_document: 'Callable[[str, str], ParsedDocument]') -> None:
    """An exact path under the pack root wins over suffix matches."""
    document = add_document('biomes/forest.yml', 'id: FOREST\n')
    target = add_document('common.yml', 'a: 1\n')
    add_document('nested/common.yml', 'a: 2\n')

    found = ReferenceLocator(registry).locate(parse_reference('common.yml:a'), document)

    assert found is target


def test_locate_suffix_match(registry: Registry,
                             add_document: 'Callable[[str, str], ParsedDocument]') -> None:
    """A bare name finds the only document ending with it."""
    document = add_document('biomes/forest.yml', 'id: FOREST\n')
    target = add_document('palettes/grass.yml', 'a: 1\n')

    found = ReferenceLocator(registry).locate(parse_reference('grass:a'), document)

    assert found is target


def test_locate_ambiguous(registry: Registry,
                          add_document: 'Callable[[str, str], ParsedDocument]') -> None:
    """Several suffix matches in one tier are ambiguous."""
    document = add_document('biomes/forest.yml', 'id: FOREST\n')
    add_document('a/common.yml', 'a: 1\n')
    add_document('b/common.yml', 'a: 2\n')

    with pytest.raises(MetaReferenceError) as error:
        ReferenceLocator(registry).locate(parse_reference('common.yml:a'), document)

    assert error.value.code == 'META_REF_AMBIGUOUS'
    assert 'a/common.yml' in error.value.message
    assert 'b/common.yml' in error.value.message


def test_locate_include_directory() -> None:
    """Include directories are searched after the pack root."""
    registry = Registry(include_dirs=(Path('/shared'), Path('/more')))

    document = parse_document('id: FOREST\n', 'biomes/forest.yml').document
    first = parse_document('a: 1\n', 'common.yml', source_kind='include', root_dir=Path('/shared')).document
    second = parse_document('a: 2\n', 'common.yml', source_kind='include', root_dir=Path('/more')).document
    for item in (document, first, second):
        assert item is not None
        registry.add_parsed_doc(item)

    assert document is not None

    found = ReferenceLocator(registry).locate(parse_reference('common.yml:a'), document)

    assert found is first


def test_locate_nearest_meta(registry: Registry,
                             add_document: 'Callable[[str, str], ParsedDocument]') -> None:
    """A bare meta file is the nearest one enclosing the referencing document."""
    add_document('meta.yml', 'sea-level: 62\n')
    nearest = add_document('biomes/meta.yml', 'sea-level: 70\n')
    document = add_document('biomes/land/forest.yml', 'id: FOREST\n')

    locator = ReferenceLocator(registry)

    assert locator.locate(parse_reference('meta.yml:sea-level'), document) is nearest
    assert locator.locate(parse_reference('meta:sea-level'), document) is nearest


def test_locate_missing(registry: Registry,
                        add_document: 'Callable[[str, str], ParsedDocument]') -> None:
    """References to unknown files are reported as missing."""
    document = add_document('biomes/forest.yml', 'id: FOREST\n')

    with pytest.raises(MetaReferenceError) as error:
        ReferenceLocator(registry).locate(parse_reference('nowhere.yml:a'), document)

    assert error.value.code == 'META_REF_FILE_MISSING'


def test_locate_reads_unindexed_file(tmp_path: Path) -> None:
    """File-like references missing from the index are read from disk."""
    (tmp_path / 'extra.yaml').write_text('a: 1\n', encoding='utf-8')

    registry = Registry(root=tmp_path)
    document = parse_document('id: FOREST\n', 'forest.yml').document
    assert document is not None

    found = ReferenceLocator(registry).locate(parse_reference('extra.yaml:a'), document)

    assert found.name == 'extra.yaml'
    assert registry.get_document('extra.yaml') is found


def test_locate_symlink_escape(tmp_path: Path) -> None:
    """A symlink leading out of the pack root is rejected."""
    root = tmp_path / 'pack'
    root.mkdir()
    (tmp_path / 'secret.yml').write_text('a: 1\n', encoding='utf-8')
    (root / 'link.yml').symlink_to(tmp_path / 'secret.yml')

    registry = Registry(root=root)
    document = parse_document('id: FOREST\n', 'forest.yml').document
    assert document is not None

    with pytest.raises(MetaReferenceError) as error:
        ReferenceLocator(registry).locate(parse_reference('link.yml:a'), document)

    assert error.value.code == 'META_REF_TRAVERSAL'
    assert registry.get_document('link.yml') is None


@pytest.mark.parametrize('content', (
    pytest.param(b'\xff\xfe\x00a: 1\n', id='not utf-8'),
    pytest.param(b'a: [1\n', id='syntax error'),
))
def test_locate_unreadable_file(content: bytes, tmp_path: Path) -> None:
    """Unusable referenced files are reported as read failures."""
    (tmp_path / 'broken.yml').write_bytes(content)

    registry = Registry(root=tmp_path)
    document = parse_document('id: FOREST\n', 'forest.yml').document
    assert document is not None

    with pytest.raises(MetaReferenceError) as error:
        ReferenceLocator(registry).locate(parse_reference('broken.yml:a'), document)

    assert error.value.code == 'META_REF_READ_FAILED'
