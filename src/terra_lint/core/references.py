"""Meta-reference triage, parsing and lookup.

A meta-reference points at a value in another pack document:
`$palettes/forest.yml:layers.0`. The same sigil-prefixed syntax is also
used by ordinary values (`$minecraft:stone`), so every candidate is first
triaged by how file-like it looks, and only plausible references are
looked up.

Lookup order for the file part, first non-empty tier wins:

1. exact path under the pack root;
2. exact path under each include directory, in order;
3. suffix match under the pack root;
4. suffix match under the include directories.

Several matches inside one tier make the reference ambiguous. A bare
`meta.yml` is looked up as the nearest one enclosing the referencing
document before the tiers are tried.
"""

from pathlib import PurePosixPath
from re import compile as regexp
from typing import TYPE_CHECKING, Literal

from yaml.nodes import MappingNode, SequenceNode

from terra_lint.errors import MetaReferenceError
from terra_lint.models import SchemaModel
from terra_lint.settings import SEQUENCE_SEGMENT

from .document import mapping_get, parse_document, sequence_get, unwrap_alias

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

if TYPE_CHECKING:
    from yaml.nodes import Node

if TYPE_CHECKING:
    from terra_lint.settings import FieldPath

    from .document import ParsedDocument, SourceKind
    from .registry import Registry

#: How likely a sigil-prefixed text is a genuine file reference.
type Confidence = Literal['definitely_ref', 'probably_ref', 'unlikely_ref']

SIGIL = '$'
DOCUMENT_EXTENSIONS = ('.yml', '.yaml')
META_NAMES = ('meta.yml', 'meta.yaml')
META_WORD = 'meta'
PARENT_SEGMENT = '..'

DRIVE_LETTER = regexp(r'^[A-Za-z]:[\\/]')
SEPARATORS = regexp(r'[\\/]')
INDEX = regexp(r'^\d+$')


class Reference(SchemaModel):
    """A parsed meta-reference."""

    raw: str
    file_part: str
    path: tuple[str, ...] = ()
    extra_colons: bool = False

    @property
    def dotted(self) -> str:
        """Path inside the target document in dotted form."""
        return '.'.join(self.path)

    @property
    def extension(self) -> str:
        """Extension of the file part, including the dot."""
        return file_extension(self.file_part)

    @property
    def file_like(self) -> bool:
        """Whether the file part names a file rather than a bare word."""
        return (
            bool(self.extension)
            or has_separator(self.file_part)
            or self.file_part == META_WORD
        )

    @property
    def candidates(self) -> tuple[str, ...]:
        """Document paths the file part may stand for."""
        if self.extension:
            return (self.file_part,)

        return (
            self.file_part,
            *(f'{self.file_part}{extension}' for extension in DOCUMENT_EXTENSIONS),
        )

    @property
    def is_meta_file(self) -> bool:
        """Whether the reference names the nearest enclosing meta file."""
        return not has_separator(self.file_part) and any(
            candidate in META_NAMES for candidate in self.candidates
        )


def strip_reference(text: str) -> str:
    """Remove the sigil and optional braces around a reference."""
    text = text.strip().removeprefix(SIGIL)
    if text.startswith('{') and text.endswith('}'):
        text = text[1:-1]

    return text.strip()


def has_separator(text: str) -> bool:
    """Whether a text contains a path separator."""
    return SEPARATORS.search(text) is not None


def file_extension(text: str) -> str:
    """Return the extension of the last path segment of a text."""
    return PurePosixPath(SEPARATORS.split(text)[-1]).suffix


def split_reference(text: str) -> tuple[str, str | None]:
    """Split a stripped reference into its file part and the rest.

    The text is split on the first colon only. A drive-letter prefix
    makes the whole text one file part.
    """
    if DRIVE_LETTER.match(text):
        return text, None

    file_part, colon, rest = text.partition(':')
    return file_part, (rest if colon else None)


def classify(text: str) -> Confidence:
    """Triage a stripped reference by how file-like it looks.

    Args:
        text: Reference text without the sigil and braces.

    Returns:
        `definitely_ref` for a document extension, or a path separator
        together with any extension; `probably_ref` for a separator
        without extension, the bare word `meta` or `..`, or a colon after a
        file-like name; `unlikely_ref` otherwise.
    """
    file_part, rest = split_reference(text)
    extension = file_extension(file_part)

    if extension.lower() in DOCUMENT_EXTENSIONS:
        return 'definitely_ref'

    if has_separator(file_part):
        return 'definitely_ref' if extension else 'probably_ref'

    if file_part in (META_WORD, PARENT_SEGMENT):
        return 'probably_ref'

    if rest is not None and extension:
        return 'probably_ref'

    return 'unlikely_ref'


def parse_reference(text: str) -> Reference:
    """Parse a stripped reference and reject unsafe paths.

    Args:
        text: Reference text without the sigil and braces.

    Returns:
        The parsed reference.

    Raises:
        MetaReferenceError: If the file part is absolute or climbs out
            of its root with a `..` segment.
    """
    file_part, rest = split_reference(text)

    if DRIVE_LETTER.match(file_part) or file_part.startswith(('/', '\\')):
        raise MetaReferenceError(
            'META_REF_TRAVERSAL',
            f'Absolute path {file_part!r} is not allowed in meta references',
        )

    if PARENT_SEGMENT in SEPARATORS.split(file_part):
        raise MetaReferenceError(
            'META_REF_TRAVERSAL',
            f'Path {file_part!r} escapes the pack root',
        )

    file_part = file_part.replace('\\', '/').removeprefix('./')
    if rest is None:
        return Reference(raw=text, file_part=file_part)

    return Reference(
        raw=text,
        file_part=file_part,
        path=tuple(rest.split('.')) if rest else (),
        extra_colons=':' in rest,
    )


def navigate(document: 'ParsedDocument', reference: Reference) -> tuple['Node | None', 'FieldPath']:
    """Walk the path of a reference through a document's nodes.

    Mapping segments are keys, sequence segments are decimal indexes.

    Args:
        document: Target document.
        reference: Parsed reference.

    Returns:
        The target node and its field path inside the document.

    Raises:
        MetaReferenceError: If a path segment does not exist.
    """
    node = document.root
    field_path: list[str] = []

    for segment in reference.path:
        current = unwrap_alias(node)
        if isinstance(current, MappingNode):
            node = mapping_get(current, segment)
            field_path.append(segment)
        elif isinstance(current, SequenceNode) and INDEX.match(segment):
            node = sequence_get(current, int(segment))
            field_path.append(SEQUENCE_SEGMENT)
        else:
            node = None

        if node is None:
            raise MetaReferenceError(
                'META_REF_PATH_MISSING',
                f'Path {reference.dotted!r} not found in {document.name!r}: missing {segment!r}',
            )

    return node, tuple(field_path)


class ReferenceLocator:
    """Find the document a reference points at.

    Looks through the documents indexed by the registry and, for
    file-like references missing from the index, reads candidates from
    the pack root and include directories.
    """

    def __init__(self, registry: 'Registry') -> None:
        """Initialize a locator over a registry."""
        self.registry = registry

    def locate(self, reference: Reference, document: 'ParsedDocument') -> 'ParsedDocument':
        """Locate the target document of a reference.

        Args:
            reference: Parsed reference.
            document: Referencing document.

        Returns:
            The target document.

        Raises:
            MetaReferenceError: If no document or several documents of
                one tier match, or a candidate file cannot be used.
        """
        if reference.is_meta_file and (found := self.nearest_meta(document)) is not None:
            return found

        for tier in self.tiers(reference):
            if len(tier) == 1:
                return tier[0]

            if tier:
                names = ', '.join(item.name for item in tier)
                raise MetaReferenceError(
                    'META_REF_AMBIGUOUS',
                    f'Meta reference {reference.file_part!r} matches several files: {names}',
                )

        if reference.file_like:
            return self.read(reference)

        raise self.missing(reference)

    def tiers(self, reference: Reference) -> 'Iterator[list[ParsedDocument]]':
        """Yield the candidate documents of each lookup tier in order."""
        documents = self.registry.documents
        candidates = reference.candidates
        suffixes = tuple(f'/{candidate}' for candidate in candidates)

        root_documents = [item for item in documents if item.source_kind == 'root']
        include_documents = [item for item in documents if item.source_kind == 'include']

        yield [item for item in root_documents if item.path in candidates]

        for directory in self.registry.include_dirs:
            yield [
                item for item in include_documents
                if item.root_dir == directory and item.path in candidates
            ]

        yield [item for item in root_documents if item.path.endswith(suffixes)]
        yield [item for item in include_documents if item.path.endswith(suffixes)]

    def nearest_meta(self, document: 'ParsedDocument') -> 'ParsedDocument | None':
        """Find the meta file nearest to a document within its own root."""
        siblings = {
            item.path: item
            for item in self.registry.documents
            if item.source_kind == document.source_kind and item.root_dir == document.root_dir
        }

        directory = document.directory
        while True:
            for name in META_NAMES:
                if found := siblings.get(f'{directory}/{name}' if directory else name):
                    return found

            if not directory:
                return None

            directory, _, _ = directory.rpartition('/')

    def read(self, reference: Reference) -> 'ParsedDocument':
        """Read a referenced document missing from the index.

        Candidates are tried under the pack root, then under each include
        directory. A document read here is registered for later lookups.

        Raises:
            MetaReferenceError: If no candidate exists, a candidate
                resolves outside its root through a symlink, or it cannot
                be read or parsed.
        """
        for root, source_kind in self.registry.search_roots():
            for candidate in reference.candidates:
                path = root / candidate
                if not path.is_file():
                    continue

                if not path.resolve().is_relative_to(root.resolve()):
                    raise MetaReferenceError(
                        'META_REF_TRAVERSAL',
                        f'Meta reference {reference.file_part!r} resolves outside of {root.as_posix()!r}',
                    )

                return self.load(path, candidate, root, source_kind)

        raise self.missing(reference)

    def load(self, path: 'Path', name: str, root: 'Path',
             source_kind: 'SourceKind') -> 'ParsedDocument':
        """Read, parse and register one candidate file."""
        try:
            text = path.read_text(encoding='utf-8')
        except (OSError, UnicodeDecodeError) as base:
            raise MetaReferenceError(
                'META_REF_READ_FAILED',
                f'Can not read referenced file {name!r}: {base}',
            ) from base

        result = parse_document(text, name, source_kind=source_kind, root_dir=root)
        self.registry.sink.extend(result.diagnostics)
        if result.document is None:
            raise MetaReferenceError(
                'META_REF_READ_FAILED',
                f'Referenced file {name!r} has syntax errors',
            )

        self.registry.add_parsed_doc(result.document)

        return result.document

    @staticmethod
    def missing(reference: Reference) -> MetaReferenceError:
        """Build the error for a file found nowhere."""
        return MetaReferenceError(
            'META_REF_FILE_MISSING',
            f'Meta reference file {reference.file_part!r} not found in pack',
        )
