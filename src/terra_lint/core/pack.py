"""Pack loading and validation.

A pack is a directory with a `pack.yml` manifest at its root. Loading
parses every document matching the configured patterns under the root
and the include directories, registers them, reads the stage ids
declared by the manifest and indexes structure files. Validation then
computes the effective value of every registered object and checks
biomes and features against their schemas and cross-references.
"""

from pathlib import Path  # noqa: TC003
from typing import TYPE_CHECKING
from warnings import warn

from terra_lint.diagnostics import DiagnosticSink
from terra_lint.errors import InheritanceCycleError, LintWarning
from terra_lint.settings import LintSettings
from terra_lint.values import PMap, PScalar, PSeq, value_location

from .document import parse_document
from .registry import Registry
from .resolver import Resolver
from .schema import OBJECT_SCHEMAS, PACK_SCHEMA, check_schema

if TYPE_CHECKING:
    from collections.abc import Iterator

if TYPE_CHECKING:
    from terra_lint.values import PValue

    from .document import ParsedDocument, SourceKind
    from .registry import ConfigObject

MANIFEST = 'pack.yml'
STRUCTURES_DIR = 'structures'


class Pack:
    """One pack being linted.

    Each instance owns its diagnostics sink, registry and resolver, so
    packs linted one after another share no state.
    """

    def __init__(self, root: Path, settings: LintSettings | None = None) -> None:
        """Initialize a pack.

        Args:
            root: Pack root directory.
            settings: Lint settings; defaults are used when omitted.
        """
        self.root = root.resolve()
        self.settings = settings or LintSettings()
        self.sink = DiagnosticSink()
        self.include_dirs = self.settings.resolve_include_dirs(self.root)
        self.registry = Registry(self.sink, root=self.root, include_dirs=self.include_dirs)
        self.resolver = Resolver(self.registry, self.settings)

        self.manifest: ParsedDocument | None = None
        self.stage_ids: set[str] = set()
        self.stages_declared = False
        self.structure_files: set[str] = set()

    def lint(self) -> DiagnosticSink:
        """Load and validate the pack.

        Returns:
            The sink holding all diagnostics of the pack.
        """
        if self.load():
            self.validate()

        return self.sink

    def load(self) -> bool:
        """Parse and register the pack documents.

        Returns:
            `False` if the pack has no manifest and cannot be validated.
        """
        if not (self.root / MANIFEST).is_file():
            self.sink.report('PACK_MISSING', f'{MANIFEST} not found at pack root', file=MANIFEST)
            return False

        for path, name, root, source_kind in self.scan():
            document = self.read(path, name, root, source_kind)
            if document is None:
                continue

            self.registry.add_parsed_doc(document)
            if source_kind == 'root' and name == MANIFEST:
                self.manifest = document

        self.load_structures()
        if self.manifest is not None:
            self.load_manifest(self.manifest)

        return True

    def scan(self) -> 'Iterator[tuple[Path, str, Path, SourceKind]]':
        """Yield the document files of the pack root and include directories."""
        roots: list[tuple[Path, SourceKind]] = [(self.root, 'root')]
        for directory in self.include_dirs:
            if not directory.is_dir():
                warn(
                    f'Include directory {directory.as_posix()!r} does not exist',
                    category=LintWarning,
                    stacklevel=2,
                )
                continue
            roots.append((directory, 'include'))

        for root, source_kind in roots:
            resolved = root.resolve()
            paths = {
                path
                for pattern in self.settings.file_patterns
                for path in root.glob(pattern)
                if path.is_file()
            }
            for path in sorted(paths):
                # symlinks may point anywhere
                if not path.resolve().is_relative_to(resolved):
                    warn(
                        f'File {path.as_posix()!r} resolves outside of {root.as_posix()!r}, skipped',
                        category=LintWarning,
                        stacklevel=2,
                    )
                    continue

                yield path, path.relative_to(root).as_posix(), root, source_kind

    def read(self, path: Path, name: str, root: Path,
             source_kind: 'SourceKind') -> 'ParsedDocument | None':
        """Read and parse one document, reporting failures."""
        display = name if source_kind == 'root' else f'{root.as_posix()}/{name}'

        try:
            text = path.read_text(encoding='utf-8')
        except (OSError, UnicodeDecodeError) as error:
            self.sink.report('PACK_READ_FAILED', f'Can not read file: {error}', file=display)
            return None

        result = parse_document(text, name, source_kind=source_kind, root_dir=root)
        self.sink.extend(result.diagnostics)

        return result.document

    def load_structures(self) -> None:
        """Index structure files under the `structures` directory."""
        directory = self.root / STRUCTURES_DIR
        if not directory.is_dir():
            return

        for extension in self.settings.structure_extensions:
            for path in directory.rglob(f'*.{extension.lstrip('.')}'):
                self.structure_files.add(path.relative_to(directory).as_posix().upper())

    def load_manifest(self, manifest: 'ParsedDocument') -> None:
        """Check the manifest and read the stage ids it declares."""
        value = self.resolver.resolve(manifest.root, manifest)
        if not isinstance(value, PMap):
            self.sink.report(
                'SCHEMA_TYPE_MISMATCH',
                f'{MANIFEST} should be a map',
                file=manifest.name,
                range=value.origin.range,
            )
            return

        check_schema(value, PACK_SCHEMA, self.sink)

        stages = value.get('stages')
        if stages is None:
            self.sink.report(
                'PACK_STAGES_MISSING',
                f'{MANIFEST} has no "stages" key, stage references are not checked',
                file=manifest.name,
                severity='warning',
            )
            return

        if not isinstance(stages, PSeq):
            file, stages_range = value_location(stages)
            self.sink.report(
                'PACK_STAGES_NOT_A_LIST',
                f'"stages" in {MANIFEST} is not a list',
                file=file,
                range=stages_range,
                severity='warning',
            )
            return

        self.stages_declared = True
        for stage in stages.items:
            stage_id = self.stage_id(stage)
            if stage_id is not None:
                self.stage_ids.add(stage_id.upper())
                continue

            file, stage_range = value_location(stage)
            self.sink.report(
                'PACK_STAGE_UNREADABLE',
                'Stage entry is neither a stage id nor a map with an "id"',
                file=file,
                range=stage_range,
                severity='warning',
            )

    @staticmethod
    def stage_id(stage: 'PValue') -> str | None:
        """Return the id of a stage entry."""
        if isinstance(stage, PMap):
            stage = stage.get('id')

        if not isinstance(stage, PScalar) or stage.value is None or isinstance(stage.value, bool):
            return None

        return str(stage.value)

    def validate(self) -> None:
        """Resolve every object and run the schema and reference checks."""
        for item in self.registry.objects():
            try:
                effective = self.registry.get_effective_object(item.type, item.id, self.resolver)

            except InheritanceCycleError as error:
                self.sink.report(
                    'EXTENDS_CYCLE',
                    error.message,
                    file=item.document.name,
                    range=item.document.node_range(item.extends_site(0)),
                    path=error.chain,
                )
                continue

            if effective is None:
                continue

            if schema := OBJECT_SCHEMAS.get(item.type):
                check_schema(effective, schema, self.sink)

            if item.type == 'BIOME':
                self.check_biome(item, effective)

    def check_biome(self, item: 'ConfigObject', effective: PMap) -> None:
        """Check palettes, slant palettes and feature stages of a biome."""
        if (palette := effective.get('palette')) is not None:
            self.check_palette(palette, item)

        slant = effective.get('slant')
        if isinstance(slant, PSeq):
            for layer in slant.items:
                if isinstance(layer, PMap) and (palette := layer.get('palette')) is not None:
                    self.check_palette(palette, item)

        features = effective.get('features')
        if not isinstance(features, PMap):
            return

        for stage, entries in features.entries.items():
            if not isinstance(entries, PSeq):
                continue

            if self.stages_declared and stage.upper() not in self.stage_ids:
                file, stage_range = value_location(entries)
                self.sink.report(
                    'STAGE_MISSING',
                    f'Stage {stage!r} used by {item.display} is not declared in {MANIFEST}',
                    file=file,
                    range=stage_range,
                )

            for entry in entries.items:
                if isinstance(entry, PScalar) and isinstance(entry.value, str):
                    self.check_feature_ref(entry.value, entry)

    def check_palette(self, palette: 'PValue', item: 'ConfigObject') -> None:
        """Check that a palette is a list of single-key layers."""
        if not isinstance(palette, PSeq):
            file, palette_range = value_location(palette)
            self.sink.report(
                'INVALID_PALETTE_STRUCTURE',
                f'Palette of {item.display} must be a list of layers',
                file=file,
                range=palette_range,
            )
            return

        for layer in palette.items:
            if not isinstance(layer, PMap):
                continue

            file, layer_range = value_location(layer)
            keys = list(layer.entries)
            if len(keys) > 1:
                self.sink.report(
                    'INVALID_PALETTE_LAYER',
                    f'Palette layer has several keys {keys}, expected one palette or block',
                    file=file,
                    range=layer_range,
                )
                continue

            if keys and ':' not in keys[0] and self.registry.get_object('PALETTE', keys[0]) is None:
                self.sink.report(
                    'PALETTE_MISSING',
                    f'Palette {keys[0]!r} not found; block ids need a namespace such as "minecraft:{keys[0]}"',
                    file=file,
                    range=layer_range,
                    severity='warning',
                )

    def check_feature_ref(self, feature_id: str, entry: PScalar) -> None:
        """Check that a feature entry names a known feature or structure."""
        if self.registry.get_object('STRUCTURE', feature_id) is not None:
            return

        if self.registry.get_object('FEATURE', feature_id) is not None:
            return

        if self.has_structure_file(feature_id):
            return

        file, entry_range = value_location(entry)
        if '.' in feature_id or '/' in feature_id or '\\' in feature_id:
            self.sink.report(
                'STRUCTURE_REF_MISSING',
                f'Structure {feature_id!r} not found in registry or {STRUCTURES_DIR}/ directory',
                file=file,
                range=entry_range,
            )
        else:
            self.sink.report(
                'FEATURE_REF_MISSING',
                f'Feature or structure {feature_id!r} not found',
                file=file,
                range=entry_range,
            )

    def has_structure_file(self, name: str) -> bool:
        """Whether a structure file matches a name, with or without extension."""
        name = name.replace('\\', '/').upper()
        for path in self.structure_files:
            stem = path.rpartition('.')[0] if '.' in path.rpartition('/')[2] else path
            if name in (path, stem) or path.endswith(f'/{name}') or stem.endswith(f'/{name}'):
                return True

        return False
