"""Base Pydantic models for linter data structures.

This module defines the foundational model classes used by provenance
records, resolved values, diagnostics, rules and schema specifications.
All of them are immutable: resolution builds new trees instead of
modifying shared ones.
"""

from pydantic import BaseModel, ConfigDict
from pydantic_settings import BaseSettings, SettingsConfigDict


class SchemaModel(BaseModel):
    """Base immutable model for all linter records.

    Design principles enforced by this model:
        - Immutability: records cannot be modified after creation, so a
          value shared between several merged trees is never changed
          behind the back of another owner.
        - Strict schema validation: unknown or extra fields are rejected.
        - Arbitrary types: YAML nodes and line counters may be carried
          as opaque attributes.
    """

    model_config = ConfigDict(
        arbitrary_types_allowed=True,
        frozen=True,
        extra='forbid',
    )


class SettingsModel(BaseSettings):
    """Base immutable model for linter runtime settings.

    Settings are resolved once (from defaults, a configuration file,
    environment variables and command-line overrides) and stay constant
    for the whole run. Unknown environment entries are ignored.
    """

    model_config = SettingsConfigDict(
        frozen=True,
        extra='ignore',
    )
