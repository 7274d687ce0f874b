"""Block-state syntax checks.

A block state names a block and optionally a list of properties:
`minecraft:oak_log[axis=y,waterlogged=false]`.
"""

from re import compile as regexp

from terra_lint.models import SchemaModel

#: Cheap shape test: `namespace:id[` at the start of the text.
BLOCK_STATE_SHAPE = regexp(r'^\s*[\w.-]+:[\w./-]+\s*\[')


class BlockStateResult(SchemaModel):
    """Outcome of a block-state check."""

    is_valid: bool
    message: str | None = None


def looks_like_block_state(text: str) -> bool:
    """Whether a text has the `namespace:id[...]` shape."""
    return BLOCK_STATE_SHAPE.match(text) is not None


def validate_block_state(text: str) -> BlockStateResult:
    """Check bracket balance and property pair shape of a block state.

    Args:
        text: Block state text.

    Returns:
        The check result; a bare block id without brackets is valid.
    """
    opening = text.find('[')
    if opening == -1:
        return BlockStateResult(is_valid=True)

    closing = text.rfind(']')
    if closing == -1 or closing < opening:
        return BlockStateResult(is_valid=False, message='Missing closing bracket "]" for block state')

    if text.count('[') != 1 or text.count(']') != 1:
        return BlockStateResult(is_valid=False, message='Block state must contain exactly one "[...]" group')

    properties = text[opening + 1:closing]
    if properties.strip():
        for pair in properties.split(','):
            key, separator, value = pair.partition('=')
            if not separator or not key.strip() or not value.strip():
                return BlockStateResult(
                    is_valid=False,
                    message=f'Malformed state pair {pair.strip()!r}, expected "key=value"',
                )

    if text[closing + 1:].strip():
        return BlockStateResult(is_valid=False, message='Trailing characters after closing bracket')

    return BlockStateResult(is_valid=True)
