"""Document and object index with inheritance resolution.

Every parsed document of a pack is recorded for meta-reference lookup.
Documents whose root mapping declares scalar `type` and `id` keys are
also indexed as configuration objects. Object types are case-folded to
upper case and ids are matched case-insensitively.

Objects may inherit from others of the same type through `extends`,
a single id or a list of ids. The effective object of an id is built by
merging its parents' effective objects and overlaying its own entries.
When several parents define the same key, the first listed parent wins;
keys defined by none of the earlier parents are filled in by later ones.
"""

from pathlib import Path  # noqa: TC003
from typing import TYPE_CHECKING

from pydantic import Field
from yaml.nodes import MappingNode, Node, ScalarNode, SequenceNode

from terra_lint.diagnostics import DiagnosticSink
from terra_lint.errors import InheritanceCycleError
from terra_lint.models import SchemaModel
from terra_lint.values import PMap, make_map, with_origin

from .document import ParsedDocument, mapping_get, scalar_text, sequence_get, unwrap_alias

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

if TYPE_CHECKING:
    from terra_lint.values import PValue

    from .document import SourceKind
    from .resolver import Resolver

EXTENDS_KEY = 'extends'


class ConfigObject(SchemaModel):
    """A configuration object declared by a document."""

    type: str = Field(
        title='Type',
        description='Object type, upper case.',
    )
    id: str = Field(
        title='Identifier',
        description='Object id as written.',
    )
    extends: str | tuple[str, ...] | None = Field(
        default=None,
        title='Parents',
        description='Id or ordered ids of the objects this one inherits from.',
    )
    document: ParsedDocument = Field(
        title='Document',
    )
    node: MappingNode = Field(
        title='Root node',
    )

    @property
    def key(self) -> str:
        """Case-insensitive index key."""
        return f'{self.type}:{self.id.lower()}'

    @property
    def display(self) -> str:
        """Display name used in messages and cycle chains."""
        return f'{self.type}:{self.id}'

    @property
    def parents(self) -> tuple[str, ...]:
        """Parent ids in declaration order."""
        if self.extends is None:
            return ()

        if isinstance(self.extends, str):
            return (self.extends,)

        return self.extends

    def extends_site(self, index: int) -> Node | None:
        """Return the node declaring the parent at `index`."""
        node = unwrap_alias(mapping_get(self.node, EXTENDS_KEY))
        if isinstance(node, SequenceNode):
            return sequence_get(node, index)

        return node


class Registry:
    """Index of pack documents and configuration objects.

    Effective objects are cached, so each object is resolved once per
    registry, however many objects inherit from it.
    """

    def __init__(self, sink: DiagnosticSink | None = None, *,
                 root: Path | None = None,
                 include_dirs: 'Iterable[Path]' = ()) -> None:
        """Initialize an empty registry.

        Args:
            sink: Diagnostics sink shared with the resolver.
            root: Pack root directory, used for reading referenced files
                missing from the index.
            include_dirs: Absolute include directories, in lookup order.
        """
        self.sink = sink if sink is not None else DiagnosticSink()
        self.root = root
        self.include_dirs = tuple(include_dirs)

        self._documents: dict[str, ParsedDocument] = {}
        self._objects: dict[str, dict[str, ConfigObject]] = {}
        self._effective: dict[str, PMap] = {}

    @property
    def documents(self) -> list[ParsedDocument]:
        """All recorded documents in registration order."""
        return list(self._documents.values())

    def get_document(self, name: str) -> ParsedDocument | None:
        """Return a recorded document by its display name."""
        return self._documents.get(name)

    def search_roots(self) -> 'Iterator[tuple[Path, SourceKind]]':
        """Yield the directories documents may be read from, in lookup order."""
        if self.root is not None:
            yield self.root, 'root'

        for directory in self.include_dirs:
            yield directory, 'include'

    def add_parsed_doc(self, document: ParsedDocument) -> ConfigObject | None:
        """Record a document and index the object it declares.

        Args:
            document: Parsed pack document.

        Returns:
            The indexed object, or `None` if the document declares none.
        """
        self._documents[document.name] = document

        root = unwrap_alias(document.root)
        if not isinstance(root, MappingNode):
            return None

        type_node = unwrap_alias(mapping_get(root, 'type'))
        id_node = unwrap_alias(mapping_get(root, 'id'))
        if not isinstance(type_node, ScalarNode) or not isinstance(id_node, ScalarNode):
            return None

        item = ConfigObject(
            type=str(type_node.value).upper(),
            id=str(id_node.value),
            extends=self.read_extends(root),
            document=document,
            node=root,
        )

        objects = self._objects.setdefault(item.type, {})
        if (previous := objects.get(item.id.lower())) is not None:
            self.sink.report(
                'DUPLICATE_ID',
                f'Duplicate {item.type} id {item.id!r}, already defined in {previous.document.name!r}',
                file=document.name,
                range=document.node_range(id_node),
            )

        objects[item.id.lower()] = item
        self._effective.clear()

        return item

    @staticmethod
    def read_extends(root: MappingNode) -> str | tuple[str, ...] | None:
        """Read the `extends` declaration of an object root."""
        node = unwrap_alias(mapping_get(root, EXTENDS_KEY))
        if isinstance(node, ScalarNode):
            return scalar_text(node)

        if isinstance(node, SequenceNode):
            return tuple(
                text for item in node.value
                if (text := scalar_text(unwrap_alias(item)))
            )

        return None

    def get_object(self, type_: str, id_: str) -> ConfigObject | None:
        """Return an object by type and case-insensitive id."""
        return self._objects.get(type_.upper(), {}).get(id_.lower())

    def get_objects_by_type(self, type_: str) -> list[ConfigObject]:
        """Return all objects of a type in registration order."""
        return list(self._objects.get(type_.upper(), {}).values())

    def objects(self) -> list[ConfigObject]:
        """Return all indexed objects."""
        return [item for objects in self._objects.values() for item in objects.values()]

    def get_effective_object(self, type_: str, id_: str, resolver: 'Resolver',
                             seen: dict[str, str] | None = None) -> PMap | None:
        """Compute the inheritance-resolved value of an object.

        Args:
            type_: Object type.
            id_: Object id.
            resolver: Resolver used for the objects' own entries.
            seen: Objects on the current inheritance chain, keyed by
                index key with display names as values.

        Returns:
            The effective object, or `None` if no such object exists.

        Raises:
            InheritanceCycleError: If the object inherits from itself.
        """
        item = self.get_object(type_, id_)
        if item is None:
            return None

        if (cached := self._effective.get(item.key)) is not None:
            return cached

        if seen is None:
            seen = {}

        if item.key in seen:
            raise InheritanceCycleError(
                (*seen.values(), item.display),
                filename=item.document.name,
            )

        seen[item.key] = item.display
        try:
            effective = self.build_effective(item, resolver, seen)
        finally:
            del seen[item.key]

        self._effective[item.key] = effective

        return effective

    def build_effective(self, item: ConfigObject, resolver: 'Resolver',
                        seen: dict[str, str]) -> PMap:
        """Merge the parents of an object and overlay its own entries."""
        entries: dict[str, PValue] = {}

        parents = item.parents
        for index in reversed(range(len(parents))):
            parent = self.get_effective_object(item.type, parents[index], resolver, seen)
            if parent is None:
                site = item.extends_site(index)
                self.sink.report(
                    'EXTENDS_TARGET_MISSING',
                    f'{item.display} extends unknown {item.type} {parents[index]!r}',
                    file=item.document.name,
                    range=item.document.node_range(site),
                )
                continue

            for key, value in parent.entries.items():
                entries[key] = with_origin(value, value.origin.model_copy(update={'via': 'extends'}))

        own = resolver.resolve(item.node, item.document)
        if isinstance(own, PMap):
            entries.update(own.entries)

        entries.pop(EXTENDS_KEY, None)

        return make_map(entries, own.origin)
