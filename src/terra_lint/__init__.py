"""Validator and linter for Terra configuration packs.

The `terra_lint` package checks packs of interlinked YAML documents:
documents referencing values of one another, interpolating them into
strings, merging maps and lists by reference and inheriting from other
objects through `extends`.

Key features:
- resolution of every document into values that remember where they
  were written, even through several layers of indirection;
- detection of reference and inheritance cycles, ambiguous lookups and
  references escaping the pack;
- syntax checks of expression and block-state fields;
- schema and cross-reference checks of biomes and features;
- a command-line interface with pretty, plain and JSON reports.
"""
