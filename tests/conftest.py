"""Tests configurations and fixtures."""

from typing import TYPE_CHECKING

import pytest

from terra_lint.core import Registry, Resolver, parse_document
from terra_lint.diagnostics import DiagnosticSink
from terra_lint.settings import LintSettings

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

if TYPE_CHECKING:
    from terra_lint.core import ParsedDocument


@pytest.fixture
def sink() -> DiagnosticSink:
    """Provide an empty diagnostics sink."""
    return DiagnosticSink()


@pytest.fixture
def settings() -> LintSettings:
    """Provide default lint settings."""
    return LintSettings.build()


@pytest.fixture
def registry(sink: DiagnosticSink) -> Registry:
    """Provide an in-memory registry reporting to `sink`."""
    return Registry(sink)


@pytest.fixture
def resolver(registry: Registry, settings: LintSettings) -> Resolver:
    """Provide a resolver over `registry` with default settings."""
    return Resolver(registry, settings)


@pytest.fixture
def add_document(registry: Registry) -> 'Callable[[str, str], ParsedDocument]':
    """Provide a factory parsing YAML text into the registry.

    Documents are registered under their pack-relative path without
    touching the filesystem, so tests can build small packs in memory.
    """
    def add(path: str, text: str) -> 'ParsedDocument':
        """Parse `text` as the document `path` and register it.

        Args:
            path: Pack-relative document path.
            text: YAML source.

        Returns:
            The registered document.
        """
        result = parse_document(text, path)
        assert result.document is not None, result.diagnostics

        registry.add_parsed_doc(result.document)

        return result.document

    return add


@pytest.fixture
def pack_dir(tmp_path: 'Path') -> 'Callable[[dict[str, str]], Path]':
    """Provide a factory writing pack files into a temporary directory.

    Returns a callable taking a mapping of relative paths to file
    contents; parent directories are created as needed.
    """
    def make(files: dict[str, str]) -> 'Path':
        """Write files and return the pack root."""
        for name, content in files.items():
            path = tmp_path / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding='utf-8')

        return tmp_path

    return make
