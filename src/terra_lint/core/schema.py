"""Declarative shape checks of resolved objects.

A schema maps top-level keys of an object to `FieldSpec` entries. Type
checks use the shape a value was authored with, so a string that became
a number through interpolation is still judged as a string, while a
whole-scalar reference is judged by the value it points at.
"""

from typing import Literal

from pydantic import Field

from terra_lint.diagnostics import DiagnosticSink  # noqa: TC001
from terra_lint.models import SchemaModel
from terra_lint.values import PMap, PSeq, PValue, effective_type, value_location

#: Expected type of a field.
type FieldType = Literal['string', 'number', 'boolean', 'list', 'map', 'scalar', 'any']

SCALAR_TYPES = frozenset(('string', 'number', 'boolean'))


class FieldSpec(SchemaModel):
    """Expected shape of one field."""

    type: FieldType = Field(
        default='any',
        title='Type',
    )
    required: bool = Field(
        default=False,
        title='Required',
    )
    items: 'FieldSpec | None' = Field(
        default=None,
        title='Items',
        description='Shape of list items.',
    )
    properties: 'dict[str, FieldSpec] | None' = Field(
        default=None,
        title='Properties',
        description='Shapes of nested map fields.',
    )

    def accepts(self, value: PValue) -> bool:
        """Whether a value has the expected authored type."""
        actual = effective_type(value)
        if self.type == 'any':
            return True

        if self.type == 'scalar':
            return actual in SCALAR_TYPES

        return actual == self.type


FieldSpec.model_rebuild()

#: Field specs by top-level key.
type ObjectSchema = dict[str, FieldSpec]

PACK_SCHEMA: ObjectSchema = {
    'id': FieldSpec(type='string', required=True),
    'version': FieldSpec(type='scalar', required=True),
    'name': FieldSpec(type='string'),
    'stages': FieldSpec(type='list'),
}

BIOME_SCHEMA: ObjectSchema = {
    'id': FieldSpec(type='string', required=True),
    'type': FieldSpec(type='string', required=True),
    'extends': FieldSpec(),
    'tags': FieldSpec(type='list', items=FieldSpec(type='string')),
    'color': FieldSpec(type='scalar'),
    'palette': FieldSpec(type='list'),
    'slant': FieldSpec(
        type='list',
        items=FieldSpec(
            type='map',
            properties={
                'threshold': FieldSpec(type='scalar', required=True),
                'palette': FieldSpec(type='list', required=True),
            },
        ),
    ),
    'features': FieldSpec(type='map'),
}

FEATURE_SCHEMA: ObjectSchema = {
    'id': FieldSpec(type='string', required=True),
    'type': FieldSpec(type='string', required=True),
    'extends': FieldSpec(),
}

#: Schemas of object types.
OBJECT_SCHEMAS: dict[str, ObjectSchema] = {
    'BIOME': BIOME_SCHEMA,
    'FEATURE': FEATURE_SCHEMA,
}


def check_schema(value: PMap, schema: ObjectSchema, sink: DiagnosticSink,
                 prefix: str = '') -> None:
    """Check the fields of a resolved map against a schema.

    Missing required fields are anchored at the map itself, type
    mismatches at the offending value.

    Args:
        value: Resolved map.
        schema: Field specs by key.
        sink: Diagnostics sink.
        prefix: Dotted path of the map, for messages.
    """
    for key, spec in schema.items():
        field_path = f'{prefix}.{key}' if prefix else key
        item = value.get(key)

        if item is None or effective_type(item) == 'null':
            if spec.required:
                file, item_range = value_location(value)
                sink.report(
                    'SCHEMA_MISSING_FIELD',
                    f'Required field {field_path!r} is missing',
                    file=file,
                    range=item_range,
                )
            continue

        check_value(item, spec, sink, field_path)


def check_value(value: PValue, spec: FieldSpec, sink: DiagnosticSink, field_path: str) -> None:
    """Check one value and its nested items against a field spec."""
    if not spec.accepts(value):
        file, item_range = value_location(value)
        sink.report(
            'SCHEMA_TYPE_MISMATCH',
            f'Field {field_path!r} should be a {spec.type}, but got {effective_type(value)}',
            file=file,
            range=item_range,
        )
        return

    if spec.properties is not None and isinstance(value, PMap):
        check_schema(value, spec.properties, sink, field_path)

    if spec.items is not None and isinstance(value, PSeq):
        for index, item in enumerate(value.items):
            check_value(item, spec.items, sink, f'{field_path}[{index}]')
