"""Resolved semantic values with provenance.

This module defines the value model produced by the resolver. A PValue
is a closed union of three immutable variants:

- `PScalar` for strings, numbers, booleans and null;
- `PSeq` for ordered sequences;
- `PMap` for ordered string-keyed mappings.

Every node carries an `Origin` describing where it came from: the file
and range of its text, how it arrived at its position (directly, through
a meta-reference or by inheritance), the shape it was authored with and,
for referenced values, the location of the referencing expression.
Provenance rides on the nodes themselves so it survives merges, splices
and reordering without any side table.
"""

from typing import TYPE_CHECKING, Any, Literal, Self

from pydantic import Field, model_validator

from terra_lint.diagnostics import Range  # noqa: TC001
from terra_lint.models import SchemaModel

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

#: Plain scalar payload of a `PScalar`.
type ScalarValue = str | int | float | bool | None

#: Shape of a value as written in the source.
type Kind = Literal['scalar', 'seq', 'map']

#: Subtype of an authored scalar.
type ScalarSubtype = Literal['str', 'int', 'float', 'bool', 'null']

#: Schema-level type of a value.
type ValueType = Literal['string', 'number', 'boolean', 'null', 'list', 'map']

#: How a value reached its position in the resolved tree.
type Via = Literal['direct', 'meta', 'extends']

#: A bare nested Python structure without provenance.
type Plain = ScalarValue | list['Plain'] | dict[str, 'Plain']

SUBTYPE_TYPES: dict[str, 'ValueType'] = {
    'str': 'string',
    'int': 'number',
    'float': 'number',
    'bool': 'boolean',
    'null': 'null',
}


class Authoring(SchemaModel):
    """Shape of a value as it was written in the source document."""

    kind: Kind
    subtype: ScalarSubtype | None = None
    raw: str | None = None


class MetaSite(SchemaModel):
    """Location of the expression that referenced a value."""

    file: str
    range: Range | None = None
    raw: str


class Origin(SchemaModel):
    """Provenance record attached to every resolved value."""

    file: str = Field(
        title='File',
        description='Name of the document holding the value text.',
    )
    range: Range | None = Field(
        default=None,
        title='Range',
        description='Span of the value text; absent for synthesized values.',
    )
    via: Via = Field(
        default='direct',
        title='Arrival',
        description='How the value reached its position in the tree.',
    )
    authoring: Authoring | None = Field(
        default=None,
        title='Authoring',
        description='Shape of the value as written in the source.',
    )
    meta_site: MetaSite | None = Field(
        default=None,
        title='Referencing site',
        description='Location of the referencing expression for referenced values.',
    )

    @model_validator(mode='after')
    def check_meta_site(self) -> Self:
        """Referenced values must know where they were referenced from.

        Returns:
            Self.

        Raises:
            ValueError: If `via` is `meta` but `meta_site` is missing.
        """
        if self.via == 'meta' and self.meta_site is None:
            raise ValueError('Referenced value requires a referencing site')

        return self


class PScalar(SchemaModel):
    """Resolved scalar value."""

    kind: Literal['scalar'] = 'scalar'
    value: ScalarValue
    origin: Origin


class PSeq(SchemaModel):
    """Resolved sequence value."""

    kind: Literal['seq'] = 'seq'
    items: tuple['PValue', ...]
    origin: Origin


class PMap(SchemaModel):
    """Resolved mapping value.

    The `entries` mapping is never modified after construction; merging
    always builds a new `PMap`.
    """

    kind: Literal['map'] = 'map'
    entries: dict[str, 'PValue']
    origin: Origin

    def get(self, key: str) -> 'PValue | None':
        """Return the entry for `key` if present."""
        return self.entries.get(key)


#: Resolved value tree node.
type PValue = PScalar | PSeq | PMap

PSeq.model_rebuild()
PMap.model_rebuild()


def make_scalar(value: ScalarValue, origin: Origin) -> PScalar:
    """Create a scalar node."""
    return PScalar(value=value, origin=origin)


def make_seq(items: 'Sequence[PValue]', origin: Origin) -> PSeq:
    """Create a sequence node from a copy of `items`."""
    return PSeq(items=tuple(items), origin=origin)


def make_map(entries: 'Mapping[str, PValue]', origin: Origin) -> PMap:
    """Create a mapping node from a copy of `entries`."""
    return PMap(entries=dict(entries), origin=origin)


def with_origin(value: PValue, origin: Origin) -> PValue:
    """Return a shallow copy of `value` carrying another origin."""
    return value.model_copy(update={'origin': origin})


def to_plain(value: PValue) -> Plain:
    """Recursively strip provenance from a value.

    Args:
        value: Resolved value.

    Returns:
        Nested dicts, lists and scalars.
    """
    if isinstance(value, PScalar):
        return value.value

    if isinstance(value, PSeq):
        return [to_plain(item) for item in value.items]

    return {key: to_plain(item) for key, item in value.entries.items()}


def effective_kind(value: PValue) -> Kind:
    """Return the shape a value was authored with.

    Falls back to the variant's own kind for synthesized values without
    authoring information.
    """
    if value.origin.authoring is not None:
        return value.origin.authoring.kind

    return value.kind


def value_type(value: PValue) -> ValueType:
    """Return the schema type of a value's computed payload."""
    if isinstance(value, PSeq):
        return 'list'

    if isinstance(value, PMap):
        return 'map'

    return _scalar_type(value.value)


def effective_type(value: PValue) -> ValueType:
    """Return the schema type a value was authored with.

    A scalar written as a string keeps the `string` type even when
    interpolation turned its text into a number.
    """
    authoring = value.origin.authoring
    if authoring is None:
        return value_type(value)

    if authoring.kind == 'seq':
        return 'list'

    if authoring.kind == 'map':
        return 'map'

    if authoring.subtype is None:
        return value_type(value)

    return SUBTYPE_TYPES[authoring.subtype]


def is_reference_derived(value: PValue) -> bool:
    """Whether a value was produced through a meta-reference."""
    return value.origin.via == 'meta' or value.origin.meta_site is not None


def _scalar_type(value: Any) -> ValueType:  # noqa: ANN401
    """Classify a scalar payload."""
    if value is None:
        return 'null'

    if isinstance(value, bool):
        return 'boolean'

    if isinstance(value, (int, float)):
        return 'number'

    return 'string'


def value_location(value: PValue) -> tuple[str, Range | None]:
    """Return the file and range diagnostics about a value anchor to.

    Referenced values anchor at the referencing expression, so the
    problem is reported where the reference was written.
    """
    if value.origin.meta_site is not None:
        return value.origin.meta_site.file, value.origin.meta_site.range

    return value.origin.file, value.origin.range
