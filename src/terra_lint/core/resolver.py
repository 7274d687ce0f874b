"""Conversion of composed YAML nodes into resolved values.

The resolver walks a document's node graph and builds the `PValue` tree,
expanding on the way:

- whole-scalar meta-references (`$file.yml:path`), replaced by the
  referenced value;
- interpolation spans (`${file.yml:path}`) inside strings;
- map merges (`<<: $file.yml:path` or a list of sources), applied as
  defaults under local keys;
- list splices (`- << $file.yml:path` or `- <<: $file.yml:path`);
- YAML aliases, bounded by a fixed indirection ceiling.

Scalar fields classified as expressions or block states by the field
rules are validated once their final text is known. Every failure is
reported to the diagnostics sink; resolution itself never raises.
"""

from contextlib import contextmanager
from json import dumps
from re import compile as regexp
from typing import TYPE_CHECKING

from yaml.nodes import MappingNode, ScalarNode, SequenceNode

from terra_lint.errors import AliasCycleError, MetaReferenceError
from terra_lint.expressions import (
    balance_problem,
    looks_like_block_state,
    validate_block_state,
    validate_expression,
)
from terra_lint.settings import SEQUENCE_SEGMENT, LintSettings
from terra_lint.values import (
    Authoring,
    MetaSite,
    Origin,
    PMap,
    PScalar,
    PSeq,
    make_map,
    make_scalar,
    make_seq,
    to_plain,
    with_origin,
)

from .document import AliasNode, scalar_subtype, scalar_text, scalar_value, unwrap_alias
from .references import SIGIL, ReferenceLocator, classify, navigate, parse_reference, strip_reference

if TYPE_CHECKING:
    from collections.abc import Iterator

if TYPE_CHECKING:
    from yaml.nodes import Node

if TYPE_CHECKING:
    from terra_lint.diagnostics import DiagnosticCode, Range, Severity
    from terra_lint.settings import FieldPath
    from terra_lint.values import PValue, ScalarValue

    from .document import ParsedDocument
    from .registry import Registry

#: Maximum number of nested aliases followed before giving up.
ALIAS_DEPTH_LIMIT = 50

MERGE_KEY = '<<'
SPLICE_PREFIX = '<<'

INTERPOLATION = regexp(r'\$\{([^{}]*)\}')
NEWLINES = regexp(r'\r?\n')
NUMERIC_LITERAL = regexp(r'^[+-]?\d[\d_]*(?:\.[\d_]*)?(?:[eE][+-]?\d+)?$')


def parse_number(text: str) -> int | float | None:
    """Parse a numeric literal that may contain digit separators.

    Args:
        text: Candidate text such as `1_000_000` or `2.5e3`.

    Returns:
        The number, or `None` if the text is not a numeric literal.
    """
    if not NUMERIC_LITERAL.match(text):
        return None

    digits = text.replace('_', '')
    if any(char in digits for char in '.eE'):
        return float(digits)

    return int(digits)


def stringify(value: 'ScalarValue') -> str:
    """Format a scalar payload for interpolation into a string."""
    if value is None:
        return 'null'

    if isinstance(value, bool):
        return 'true' if value else 'false'

    if isinstance(value, float) and value.is_integer():
        return str(int(value))

    return str(value)


def whole_reference(text: str) -> str | None:
    """Return the reference a scalar consists of, if any.

    A scalar is a whole reference when it starts with the sigil without
    an interpolation brace, or when it is exactly one interpolation span.
    """
    text = text.strip()
    if INTERPOLATION.fullmatch(text):
        return text

    if text.startswith(SIGIL) and not text.startswith(f'{SIGIL}{{'):
        return text

    return None


def as_reference(text: str) -> str:
    """Prefix a merge or splice source with the sigil when it lacks one."""
    text = text.strip()
    return text if text.startswith(SIGIL) else f'{SIGIL}{text}'


class Resolver:
    """Resolve document nodes into provenance-tracked values.

    One resolver is created per lint run. It keeps the set of references
    currently being resolved, so reference cycles are detected across
    documents without any process-wide state.
    """

    def __init__(self, registry: 'Registry',
                 settings: LintSettings | None = None) -> None:
        """Initialize a resolver.

        Args:
            registry: Registry holding the documents references point at.
            settings: Settings carrying the field rules; defaults are used
                when omitted.
        """
        self.registry = registry
        self.sink = registry.sink
        self.settings = settings or LintSettings()
        self.locator = ReferenceLocator(registry)
        self.in_flight: set[str] = set()

    def resolve(self, node: 'Node | None', document: 'ParsedDocument',
                field_path: 'FieldPath' = (), alias_depth: int = 0) -> 'PValue':
        """Resolve a node into a value.

        Args:
            node: Node to resolve; `None` stands for an absent value.
            document: Document holding the node.
            field_path: Keys (and `[]` for sequence items) leading to
                the node, used by the field rules.
            alias_depth: Number of aliases followed to reach the node.

        Returns:
            The resolved value.

        Raises:
            AliasCycleError: If the alias ceiling is hit below the
                outermost alias; the outermost one reports it.
        """
        if node is None:
            return make_scalar(None, Origin(file=document.name))

        if isinstance(node, AliasNode):
            return self.resolve_alias(node, document, field_path, alias_depth)

        if isinstance(node, MappingNode):
            return self.resolve_map(node, document, field_path, alias_depth)

        if isinstance(node, SequenceNode):
            return self.resolve_seq(node, document, field_path, alias_depth)

        return self.resolve_scalar(node, document, field_path)

    def resolve_alias(self, node: AliasNode, document: 'ParsedDocument',
                      field_path: 'FieldPath', alias_depth: int) -> 'PValue':
        """Resolve the node an alias stands for."""
        if alias_depth >= ALIAS_DEPTH_LIMIT:
            raise AliasCycleError(document, node)

        if alias_depth:
            return self.resolve(node.value, document, field_path, alias_depth + 1)

        try:
            return self.resolve(node.value, document, field_path, 1)

        except AliasCycleError as error:
            node_range = document.node_range(node)
            self.sink.report(
                'ALIAS_CYCLE',
                f'{error.message} at alias *{node.anchor}',
                file=document.name,
                range=node_range,
            )
            return make_scalar(None, Origin(file=document.name, range=node_range))

    def resolve_scalar(self, node: ScalarNode, document: 'ParsedDocument',
                       field_path: 'FieldPath') -> 'PValue':
        """Resolve a scalar, expanding references and interpolation."""
        origin = self.origin_of(node, document)
        if scalar_subtype(node) != 'str':
            return make_scalar(scalar_value(node), origin)

        text = str(node.value)

        reference = whole_reference(text)
        if reference is not None and classify(strip_reference(reference)) != 'unlikely_ref':
            return self.resolve_ref(reference, document, node)

        if INTERPOLATION.search(text):
            return self.interpolate(node, document, field_path, origin)

        number = parse_number(text) if '_' in text else None
        if number is not None:
            return make_scalar(number, origin)

        self.check_field(text, node, document, field_path)

        return make_scalar(text, origin)

    def interpolate(self, node: ScalarNode, document: 'ParsedDocument',
                    field_path: 'FieldPath', origin: Origin) -> PScalar:
        """Substitute the interpolation spans of a string scalar.

        Spans that do not look like file references stay as they are.
        When no span resolves, the scalar is returned unchanged.
        """
        text = str(node.value)
        parts: list[str] = []
        position = 0
        resolved = False

        for match in INTERPOLATION.finditer(text):
            parts.append(text[position:match.start()])
            position = match.end()

            reference = match.group(1).strip()
            if classify(reference) == 'unlikely_ref':
                if self.settings.warn_literal_spans:
                    self.sink.report(
                        'META_STRING_NON_FILE_REF',
                        f'Interpolation {match.group()!r} does not look like a file reference and is kept as text',
                        file=document.name,
                        range=origin.range,
                        severity='warning',
                    )
                parts.append(match.group())
                continue

            value = self.lookup_ref(reference, document, node)
            if value is None:
                parts.append(match.group())
                continue

            resolved = True
            parts.append(self.format_span(value, reference, document, origin.range))

        parts.append(text[position:])

        if not resolved:
            return make_scalar(text, origin)

        result = NEWLINES.sub(' ', ''.join(parts)).strip()
        origin = origin.model_copy(update={
            'meta_site': MetaSite(file=document.name, range=origin.range, raw=text),
        })

        number = parse_number(result)
        if number is not None:
            return make_scalar(number, origin)

        self.check_field(result, node, document, field_path)

        return make_scalar(result, origin)

    def format_span(self, value: 'PValue', reference: str,
                    document: 'ParsedDocument', span_range: 'Range | None') -> str:
        """Format a referenced value for interpolation.

        Non-scalar values are embedded as JSON with a warning.
        """
        if isinstance(value, PScalar):
            return stringify(value.value)

        self.sink.report(
            'META_STRING_NON_SCALAR',
            f'Reference {reference!r} resolves to a {value.kind} and is embedded as JSON',
            file=document.name,
            range=span_range,
            severity='warning',
        )

        return dumps(to_plain(value), ensure_ascii=False)

    def resolve_map(self, node: MappingNode, document: 'ParsedDocument',
                    field_path: 'FieldPath', alias_depth: int) -> PMap:
        """Resolve a mapping, applying merge sources as defaults.

        Merge sources contribute keys in the order they are listed, the
        first source defining a key wins among them. Local keys always
        override merged ones.
        """
        sources: list[Node] = []
        pairs: list[tuple[str, Node]] = []

        for key_node, value_node in node.value:
            key = scalar_text(unwrap_alias(key_node))
            if key is None:
                continue

            if key == MERGE_KEY:
                sources.extend(self.merge_sources(value_node))
            else:
                pairs.append((key, value_node))

        entries: dict[str, PValue] = {}

        for source in sources:
            merged = self.resolve_source(source, document, field_path, alias_depth)
            if not isinstance(merged, PMap):
                self.sink.report(
                    'META_MERGE_NOT_A_MAP',
                    f'Merge source resolves to a {merged.kind}, expected a map',
                    file=document.name,
                    range=document.node_range(source),
                )
                continue

            for key, value in merged.entries.items():
                entries.setdefault(key, value)

        for key, value_node in pairs:
            entries[key] = self.resolve(value_node, document, (*field_path, key), alias_depth)

        return make_map(entries, self.origin_of(node, document))

    def resolve_seq(self, node: SequenceNode, document: 'ParsedDocument',
                    field_path: 'FieldPath', alias_depth: int) -> PSeq:
        """Resolve a sequence, splicing referenced lists in place."""
        item_path = (*field_path, SEQUENCE_SEGMENT)
        items: list[PValue] = []

        for item in node.value:
            splice = self.splice_reference(item)
            if splice is not None:
                value = self.resolve_ref(splice, document, item)
                if isinstance(value, PSeq):
                    items.extend(value.items)
                else:
                    self.sink.report(
                        'META_SPLICE_NOT_A_LIST',
                        f'Splice {scalar_text(item)!r} resolves to a {value.kind}, expected a list',
                        file=document.name,
                        range=document.node_range(item),
                    )
                continue

            source = self.list_merge_source(item)
            if source is not None:
                value = self.resolve_source(source, document, item_path, alias_depth)
                if isinstance(value, PSeq):
                    items.extend(value.items)
                else:
                    self.sink.report(
                        'META_LIST_MERGE_NOT_A_LIST',
                        f'List merge source resolves to a {value.kind}, expected a list',
                        file=document.name,
                        range=document.node_range(item),
                    )
                continue

            items.append(self.resolve(item, document, item_path, alias_depth))

        return make_seq(items, self.origin_of(node, document))

    def resolve_source(self, source: 'Node', document: 'ParsedDocument',
                       field_path: 'FieldPath', alias_depth: int) -> 'PValue':
        """Resolve a merge source; string sources are references."""
        if isinstance(source, ScalarNode) and scalar_subtype(source) == 'str':
            return self.resolve_ref(as_reference(str(source.value)), document, source)

        return self.resolve(source, document, field_path, alias_depth)

    @staticmethod
    def merge_sources(node: 'Node') -> list['Node']:
        """Return the sources listed under a merge key."""
        target = unwrap_alias(node)
        if isinstance(target, SequenceNode):
            return list(target.value)

        return [node]

    @staticmethod
    def splice_reference(node: 'Node') -> str | None:
        """Return the reference of a `<< ref` sequence item."""
        if not isinstance(node, ScalarNode) or scalar_subtype(node) != 'str':
            return None

        text = str(node.value).strip()
        if not text.startswith(SPLICE_PREFIX) or text == SPLICE_PREFIX:
            return None

        return as_reference(text.removeprefix(SPLICE_PREFIX))

    @staticmethod
    def list_merge_source(node: 'Node') -> 'Node | None':
        """Return the source of a `<<: ref` sequence item."""
        if not isinstance(node, MappingNode) or len(node.value) != 1:
            return None

        key_node, value_node = node.value[0]
        if scalar_text(unwrap_alias(key_node)) != MERGE_KEY:
            return None

        return value_node

    def resolve_ref(self, ref: str, document: 'ParsedDocument', site: 'Node') -> 'PValue':
        """Resolve a meta-reference, falling back to its literal text.

        Args:
            ref: Reference text, with or without the sigil and braces.
            document: Referencing document.
            site: Node holding the reference.

        Returns:
            The referenced value tagged with the referencing site, or a
            string scalar with the reference text when it cannot be
            resolved.
        """
        value = self.lookup_ref(ref, document, site)
        if value is not None:
            return value

        return make_scalar(ref, self.origin_of(site, document))

    def lookup_ref(self, ref: str, document: 'ParsedDocument', site: 'Node') -> 'PValue | None':
        """Resolve a meta-reference, reporting failures.

        Returns:
            The referenced value, or `None` if the reference does not
            look like one or cannot be resolved.
        """
        text = strip_reference(ref)
        confidence = classify(text)
        if confidence == 'unlikely_ref':
            return None

        site_range = document.node_range(site)

        try:
            reference = parse_reference(text)
            if reference.extra_colons:
                self.report(
                    'META_REF_MULTIPLE_COLONS',
                    f'Reference {text!r} has several colons, the first one separates the file',
                    document, site_range, severity='warning',
                )

            target_document = self.locator.locate(reference, document)
            target, target_path = navigate(target_document, reference)

        except MetaReferenceError as error:
            if error.code == 'META_REF_FILE_MISSING' and confidence == 'probably_ref':
                self.report(
                    'META_REF_PROBABLY_LITERAL',
                    f'{text!r} looks like a meta reference but no such file exists, kept as text',
                    document, site_range, severity='warning',
                )
            else:
                self.report(error.code, error.message, document, site_range, severity=error.severity)
            return None

        key = f'{target_document.name}:{reference.dotted}'
        if key in self.in_flight:
            self.report('META_REF_CYCLE', f'Circular meta reference {text!r}', document, site_range)
            return None

        with self.tracking(key):
            try:
                value = self.resolve(target, target_document, target_path, 1)

            except AliasCycleError as error:
                self.report(
                    'ALIAS_CYCLE',
                    f'{error.message} while resolving {text!r}',
                    document, site_range,
                )
                return None

        return with_origin(value, value.origin.model_copy(update={
            'via': 'meta',
            'meta_site': MetaSite(
                file=document.name,
                range=site_range,
                raw=scalar_text(site) or ref,
            ),
        }))

    @contextmanager
    def tracking(self, key: str) -> 'Iterator[None]':
        """Mark a reference as being resolved for the duration of a block."""
        self.in_flight.add(key)
        try:
            yield
        finally:
            self.in_flight.discard(key)

    def check_field(self, text: str, node: 'Node', document: 'ParsedDocument',
                    field_path: 'FieldPath') -> None:
        """Validate the final text of an expression or block-state field.

        Problems are errors inside strict sub-paths and warnings elsewhere.
        """
        severity: 'Severity' = 'error' if self.settings.strict_field(field_path) else 'warning'
        node_range = document.node_range(node)

        if self.settings.expression_field(field_path):
            if problem := balance_problem(text):
                self.report(
                    'MALFORMED_EXPRESSION',
                    f'{problem} in expression {text!r}',
                    document, node_range, severity=severity,
                )
            else:
                result = validate_expression(text)
                if not result.is_valid:
                    error = result.errors[0]
                    self.report(
                        'EXPR_SYNTAX_ERROR',
                        f'Invalid expression {text!r}: {error.message} at offset {error.start}',
                        document, node_range, severity=severity,
                    )

        if self.settings.block_field(field_path) and looks_like_block_state(text):
            result = validate_block_state(text)
            if not result.is_valid:
                self.report(
                    'INVALID_BLOCK_STATE',
                    f'Invalid block state {text!r}: {result.message}',
                    document, node_range, severity=severity,
                )

    def report(self, code: 'DiagnosticCode', message: str, document: 'ParsedDocument',
               node_range: 'Range | None', *, severity: 'Severity' = 'error') -> None:
        """Report a diagnostic anchored in a document."""
        self.sink.report(code, message, file=document.name, range=node_range, severity=severity)

    @staticmethod
    def origin_of(node: 'Node', document: 'ParsedDocument') -> Origin:
        """Build the direct origin of a node, recording its authored shape."""
        if isinstance(node, ScalarNode):
            authoring = Authoring(kind='scalar', subtype=scalar_subtype(node), raw=str(node.value))
        elif isinstance(node, SequenceNode):
            authoring = Authoring(kind='seq')
        else:
            authoring = Authoring(kind='map')

        return Origin(file=document.name, range=document.node_range(node), authoring=authoring)
