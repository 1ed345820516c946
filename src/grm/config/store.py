"""
The grm configuration store.

The store keeps the whole configuration file in memory as a mapping from
SectionId to the section's raw key/value pairs. Reads resolve
per-specifier overrides; all writes go through ``apply_changes``, which
persists the complete store exactly once per call.

Usage:
    config = Configuration(Path.home())

    user = config.named_get("acme", REMOTE, REMOTE_USER)
    pattern = config.named_get("acme", REMOTE, RELEASE_PATTERN, "my-repo")

    def add_remote(mutator: Mutator) -> None:
        mutator.named_set("acme", REMOTE, REMOTE_USER, "acme-corp")
        mutator.named_set("acme", REMOTE, DOWNLOAD_URL, "https://...", "my-repo")

    config.apply_changes(add_remote)
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

from grm.config.persistence import SectionMap, read_store, write_store
from grm.config.schema import (
    SCHEMA,
    Key,
    Schema,
    SchemaError,
    Section,
    SectionId,
    SectionKindError,
    validate_specifier,
    validate_value,
)
from grm.config.settings import CONFIG_DIR_NAME, CONFIG_FILE_NAME

logger = logging.getLogger(__name__)


def _unnamed(section: Section) -> SectionId:
    if section.named:
        raise SectionKindError(
            f"Tried to access named section '{section.name}' without a name"
        )
    return SectionId(section)


def _named(name: str, section: Section) -> SectionId:
    if not section.named:
        raise SectionKindError(
            f"Tried to access unnamed section '{section.name}' with name '{name}'"
        )
    return SectionId(section, name)


def _effective_key(key: Key, specifier: str) -> str:
    if specifier and not key.overloadable:
        raise SchemaError(f"Key '{key.name}' cannot be overridden per specifier")
    validate_specifier(specifier)
    return key.qualified(specifier)


def _resolve(values: dict[str, str], key: Key, specifier: str) -> str | None:
    if key.overloadable and specifier:
        value = values.get(key.qualified(specifier))
        if value is not None:
            return value
    return values.get(key.name)


def _overrides(values: dict[str, str], key: Key) -> dict[str, str]:
    if not key.overloadable:
        return {}
    prefix = key.qualified() + ":"
    return {
        effective[len(prefix):]: value
        for effective, value in values.items()
        if effective.startswith(prefix)
    }


class Mutator:
    """
    Edits applied to the store inside ``Configuration.apply_changes``.

    Deleting a key or section that does not exist is a no-op. Setting a
    specifier on a key that is not overloadable raises SchemaError, as do
    specifiers and values the file format cannot store unchanged.
    """

    def __init__(self, sections: SectionMap) -> None:
        self._sections = sections

    def set(self, section: Section, key: Key, value: str, specifier: str = "") -> None:
        self._set(_unnamed(section), key, value, specifier)

    def delete(self, section: Section, key: Key, specifier: str = "") -> None:
        self._delete(_unnamed(section), key, specifier)

    def delete_section(self, section: Section) -> None:
        self._sections.pop(_unnamed(section), None)

    def named_set(
        self, name: str, section: Section, key: Key, value: str, specifier: str = ""
    ) -> None:
        self._set(_named(name, section), key, value, specifier)

    def named_delete(self, name: str, section: Section, key: Key, specifier: str = "") -> None:
        self._delete(_named(name, section), key, specifier)

    def delete_named_section(self, name: str, section: Section) -> None:
        self._sections.pop(_named(name, section), None)

    def _set(self, section_id: SectionId, key: Key, value: str, specifier: str) -> None:
        effective = _effective_key(key, specifier)
        validate_value(value)
        self._sections.setdefault(section_id, {})[effective] = value

    def _delete(self, section_id: SectionId, key: Key, specifier: str) -> None:
        effective = _effective_key(key, specifier)
        values = self._sections.get(section_id)
        if values is None:
            return
        values.pop(effective, None)
        if not values:
            del self._sections[section_id]


class Configuration:
    """
    In-memory configuration store backed by a flat file.

    The file is loaded once when the store is created; a missing file
    leaves the store empty. The in-memory state is the source of truth
    until the process exits.

    Attributes:
        home_dir: Base directory the configuration lives under.
        config_path: Path of the configuration file.
        schema: Schema used to recognise sections and keys.
    """

    def __init__(self, home_dir: Path, schema: Schema = SCHEMA) -> None:
        """
        Load the configuration below ``home_dir``.

        Raises:
            ConfigurationError: If the file exists but cannot be read or parsed.
        """
        self.home_dir = Path(home_dir)
        self.config_path = self.home_dir / CONFIG_DIR_NAME / CONFIG_FILE_NAME
        self.schema = schema

        parsed = read_store(self.config_path, schema)
        self._sections: SectionMap = parsed.sections
        self._foreign = parsed.foreign

    def section(self, section: Section) -> dict[str, str]:
        """Return a copy of an unnamed section's raw key/value pairs."""
        return dict(self._sections.get(_unnamed(section), {}))

    def named_section(self, name: str, section: Section) -> dict[str, str]:
        """Return a copy of a named section instance's raw key/value pairs."""
        return dict(self._sections.get(_named(name, section), {}))

    def get(self, section: Section, key: Key, specifier: str = "") -> str | None:
        """
        Resolve a key in an unnamed section.

        If the key is overloadable and a specifier is given, ``key:specifier``
        is consulted first; otherwise, or on a miss, the bare key is used.

        Returns:
            The value, or None if neither entry exists.
        """
        return _resolve(self._sections.get(_unnamed(section), {}), key, specifier)

    def named_get(
        self, name: str, section: Section, key: Key, specifier: str = ""
    ) -> str | None:
        """Resolve a key in a named section instance, see ``get``."""
        return _resolve(self._sections.get(_named(name, section), {}), key, specifier)

    def get_overrides(self, section: Section, key: Key) -> dict[str, str]:
        """Return all overrides of ``key`` in an unnamed section, by specifier."""
        return _overrides(self._sections.get(_unnamed(section), {}), key)

    def named_get_overrides(self, name: str, section: Section, key: Key) -> dict[str, str]:
        """Return all overrides of ``key`` in a named section instance, by specifier."""
        return _overrides(self._sections.get(_named(name, section), {}), key)

    def named_sections(self, section: Section) -> set[str]:
        """Return the instance names present for a named section."""
        if not section.named:
            raise SectionKindError(f"Section '{section.name}' is not named")
        return {
            section_id.instance
            for section_id in self._sections
            if section_id.section == section and section_id.instance is not None
        }

    def has_named_section(self, name: str, section: Section) -> bool:
        return _named(name, section) in self._sections

    def apply_changes(self, apply: Callable[[Mutator], None]) -> None:
        """
        Apply a batch of edits and persist the store once.

        The edits run against a working copy. Only if ``apply`` returns
        normally is the copy written to disk and adopted as the new state;
        if it raises, neither the file nor the in-memory store change.

        Args:
            apply: Callable receiving a Mutator to perform the edits.

        Raises:
            ConfigurationError: If the file cannot be written.
        """
        working = {
            section_id: dict(values) for section_id, values in self._sections.items()
        }
        apply(Mutator(working))

        write_store(self.config_path, working, self._foreign)
        self._sections = working
        logger.info(f"Configuration written to {self.config_path}")
