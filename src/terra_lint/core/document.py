"""YAML document composition with explicit aliases and ranges.

Pack documents are composed, not constructed: the resolver works on the
PyYAML node graph so that every value keeps the marks of its source text.
The stock composer replaces an alias by the anchored node itself, which
hides aliases from the resolver and turns recursive anchors into cyclic
graphs. `DocumentLoader` instead produces an `AliasNode` wrapping the
anchored node, so alias chains can be followed and bounded explicitly.
"""

from bisect import bisect_right
from pathlib import Path  # noqa: TC003
from typing import Literal

from pydantic import Field
from yaml import SafeLoader
from yaml.composer import ComposerError
from yaml.constructor import SafeConstructor
from yaml.error import MarkedYAMLError, YAMLError
from yaml.events import AliasEvent
from yaml.nodes import MappingNode, Node, ScalarNode, SequenceNode

from terra_lint.diagnostics import Diagnostic, Position, Range
from terra_lint.models import SchemaModel
from terra_lint.values import ScalarSubtype, ScalarValue  # noqa: TC001

#: Where a document was loaded from.
type SourceKind = Literal['root', 'include']

BOM = '\ufeff'
ALIAS_TAG = '!alias'

#: Subtypes of scalars resolved to a non-string YAML tag.
SCALAR_SUBTYPES: dict[str, ScalarSubtype] = {
    'tag:yaml.org,2002:int': 'int',
    'tag:yaml.org,2002:float': 'float',
    'tag:yaml.org,2002:bool': 'bool',
    'tag:yaml.org,2002:null': 'null',
}

SCALAR_CONSTRUCTOR = SafeConstructor()


class AliasNode(Node):
    """YAML node standing for an alias (`*name`) occurrence.

    The anchored node is available as `value`, the anchor name as
    `anchor`; marks point at the alias text itself.
    """

    id = 'alias'

    def __init__(self, target: Node, anchor: str,
                 start_mark: object = None, end_mark: object = None) -> None:
        """Initialize an alias node.

        Args:
            target: The anchored node.
            anchor: Anchor name.
            start_mark: Mark of the alias start.
            end_mark: Mark of the alias end.
        """
        super().__init__(ALIAS_TAG, target, start_mark, end_mark)
        self.anchor = anchor


class DocumentLoader(SafeLoader):
    """Safe YAML loader composing aliases into `AliasNode` objects."""

    def compose_node(self, parent: Node | None, index: object) -> Node:
        """Compose a node, keeping aliases explicit.

        Args:
            parent: Parent node being composed.
            index: Key or index of the node inside the parent.

        Returns:
            The composed node.

        Raises:
            ComposerError: If an alias refers to an undefined anchor.
        """
        if self.check_event(AliasEvent):
            event = self.get_event()
            if event.anchor not in self.anchors:
                raise ComposerError(
                    None, None,
                    f'found undefined alias {event.anchor!r}',
                    event.start_mark,
                )
            return AliasNode(
                self.anchors[event.anchor],
                event.anchor,
                event.start_mark,
                event.end_mark,
            )

        return super().compose_node(parent, index)


class LineCounter:
    """Map character offsets of a text to 1-based line and column."""

    def __init__(self, text: str) -> None:
        """Index line starts of `text`."""
        self.line_starts = [0]
        self.line_starts.extend(
            index + 1
            for index, char in enumerate(text)
            if char == '\n'
        )

    def line_pos(self, offset: int) -> tuple[int, int]:
        """Return the (line, col) of a character offset."""
        line = bisect_right(self.line_starts, offset)
        return line, offset - self.line_starts[line - 1] + 1

    def position(self, offset: int) -> Position:
        """Return a `Position` for a character offset."""
        line, col = self.line_pos(offset)
        return Position(line=line, col=col, offset=offset)

    def range(self, start: int, end: int) -> Range:
        """Return a `Range` for a pair of character offsets."""
        return Range(start=self.position(start), end=self.position(end))


class ParsedDocument(SchemaModel):
    """A composed YAML document of a pack."""

    path: str = Field(
        title='Relative path',
        description='POSIX path of the file relative to its root directory.',
    )
    text: str = Field(
        title='Source text',
    )
    root: Node | None = Field(
        title='Root node',
        description='Composed root node, `None` for an empty document.',
    )
    line_counter: LineCounter = Field(
        title='Line counter',
    )
    source_kind: SourceKind = Field(
        default='root',
        title='Source kind',
        description='Whether the file belongs to the pack root or an include directory.',
    )
    root_dir: Path | None = Field(
        default=None,
        title='Root directory',
        description='Directory `path` is relative to, when loaded from disk.',
    )

    @property
    def name(self) -> str:
        """Display name used in diagnostics and reference keys."""
        if self.source_kind == 'root' or self.root_dir is None:
            return self.path

        return f'{self.root_dir.as_posix()}/{self.path}'

    @property
    def directory(self) -> str:
        """POSIX directory of `path`, empty at the root."""
        head, _, _ = self.path.rpartition('/')
        return head

    def node_range(self, node: Node | None) -> Range | None:
        """Return the source range of a node of this document."""
        if node is None or node.start_mark is None or node.end_mark is None:
            return None

        return self.line_counter.range(node.start_mark.index, node.end_mark.index)


class ParseResult(SchemaModel):
    """Outcome of parsing one document."""

    document: ParsedDocument | None = None
    diagnostics: list[Diagnostic] = Field(default_factory=list)


def strip_bom(text: str) -> str:
    """Remove a leading byte order mark."""
    return text.removeprefix(BOM)


def parse_document(text: str, path: str, *,
                   source_kind: SourceKind = 'root',
                   root_dir: Path | None = None) -> ParseResult:
    """Compose a YAML text into a `ParsedDocument`.

    Syntax problems are reported as `YAML_SYNTAX_ERROR` diagnostics; a
    document with syntax errors is not returned.

    Args:
        text: YAML source text.
        path: Relative POSIX path used as the document name.
        source_kind: Whether the file belongs to the pack root or an
            include directory.
        root_dir: Directory `path` is relative to.

    Returns:
        The parse result with either a document or diagnostics.
    """
    text = strip_bom(text)
    line_counter = LineCounter(text)
    name = path if source_kind == 'root' or root_dir is None else f'{root_dir.as_posix()}/{path}'

    loader = DocumentLoader(text)
    try:
        root = loader.get_single_node()

    except MarkedYAMLError as error:
        mark = error.problem_mark or error.context_mark
        error_range = None
        if mark is not None:
            error_range = line_counter.range(mark.index, mark.index)

        return ParseResult(diagnostics=[Diagnostic(
            code='YAML_SYNTAX_ERROR',
            message=error.problem or str(error),
            file=name,
            range=error_range,
        )])

    except YAMLError as error:
        return ParseResult(diagnostics=[Diagnostic(
            code='YAML_SYNTAX_ERROR',
            message=str(error),
            file=name,
        )])

    finally:
        loader.dispose()

    return ParseResult(document=ParsedDocument(
        path=path,
        text=text,
        root=root,
        line_counter=line_counter,
        source_kind=source_kind,
        root_dir=root_dir,
    ))


def scalar_text(node: Node | None) -> str | None:
    """Return the text of a scalar node, or `None` for other nodes."""
    if isinstance(node, ScalarNode):
        return str(node.value)

    return None


def unwrap_alias(node: Node | None, limit: int = 50) -> Node | None:
    """Follow alias nodes to the node they stand for.

    Args:
        node: A node, possibly an alias.
        limit: Maximum number of aliases to follow.

    Returns:
        The first non-alias node, or `None` if the limit is exceeded.
    """
    for _ in range(limit):
        if not isinstance(node, AliasNode):
            return node
        node = node.value

    return None


def mapping_get(node: Node | None, key: str) -> Node | None:
    """Return the value node of `key` in a mapping node.

    The last occurrence wins when a key is repeated.
    """
    if not isinstance(node, MappingNode):
        return None

    found = None
    for key_node, value_node in node.value:
        if scalar_text(unwrap_alias(key_node)) == key:
            found = value_node

    return found


def sequence_get(node: Node | None, index: int) -> Node | None:
    """Return the item node at `index` in a sequence node."""
    if not isinstance(node, SequenceNode) or not 0 <= index < len(node.value):
        return None

    return node.value[index]


def scalar_subtype(node: ScalarNode) -> ScalarSubtype:
    """Return the subtype a scalar was authored with.

    Scalars with tags other than the core numeric, boolean and null ones
    (timestamps, binary data, custom tags) count as strings.
    """
    return SCALAR_SUBTYPES.get(node.tag, 'str')


def scalar_value(node: ScalarNode) -> ScalarValue:
    """Construct the Python value of a scalar node.

    Uses the PyYAML safe constructors, so `0x1F`, `1_000` or `.inf`
    follow the same rules as `yaml.safe_load`.
    """
    if node.tag not in SCALAR_SUBTYPES:
        return str(node.value)

    construct = SafeConstructor.yaml_constructors[node.tag]
    return construct(SCALAR_CONSTRUCTOR, node)
