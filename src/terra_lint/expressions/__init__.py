"""Validators for expression and block-state fields.

Expression fields hold small arithmetic/boolean formulas such as
`${meta.yml:sea-level} - 4` or `|x| * 2 + noise(x, z)`. Block-state
fields hold ids with optional properties such as
`minecraft:oak_log[axis=y]`. Both are checked for syntax only.
"""

from .blockstate import BlockStateResult, looks_like_block_state, validate_block_state
from .parser import ExpressionError, ExpressionResult, balance_problem, validate_expression

__all__ = (
    'BlockStateResult',
    'ExpressionError',
    'ExpressionResult',
    'balance_problem',
    'looks_like_block_state',
    'validate_block_state',
    'validate_expression',
)
