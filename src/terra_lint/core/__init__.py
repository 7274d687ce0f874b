"""Value resolution and inheritance engine.

This package turns the YAML documents of a pack into resolved,
provenance-tracked values.

It provides:
- composition of YAML texts into node trees with explicit aliases;
- triage, parsing and lookup of meta-references between documents;
- resolution of nodes into `PValue` trees with interpolation, merges
  and splices;
- a registry of configuration objects computing inheritance-resolved
  effective objects;
- the pack orchestrator running all checks over a pack directory.
"""

from .document import ParsedDocument, ParseResult, parse_document
from .pack import Pack
from .registry import ConfigObject, Registry
from .resolver import Resolver

__all__ = (
    'ConfigObject',
    'Pack',
    'ParseResult',
    'ParsedDocument',
    'Registry',
    'Resolver',
    'parse_document',
)
