"""
Export and import of remote definitions.

An export contains a single named section instance with only its
exportable keys: base values and every per-specifier override. Stored
credentials are never written, so an export can be shared safely.
Importing writes the exported entries into a named instance of the
caller's choosing, overwriting the keys present in the file and leaving
everything else untouched.
"""

from __future__ import annotations

import logging
from pathlib import Path

from grm.config.persistence import read_store, write_store
from grm.config.schema import Key, Section, SectionId
from grm.config.settings import EXPORT_SUFFIX, ConfigurationError
from grm.config.store import Configuration, Mutator

logger = logging.getLogger(__name__)


def default_export_path(name: str, directory: Path | None = None) -> Path:
    """Return ``<directory>/<name>.config``."""
    return (directory or Path(".")) / f"{name}{EXPORT_SUFFIX}"


def exportable_entries(config: Configuration, name: str, section: Section) -> dict[str, str]:
    """
    Collect the exportable entries of a named section instance.

    Returns:
        Mapping of effective key (``key`` or ``key:specifier``) to value.
        Entries of unknown or non-exportable keys, and stray overrides of
        keys that are not overloadable, are left out.
    """
    entries: dict[str, str] = {}
    for effective, value in config.named_section(name, section).items():
        resolved = config.schema.lookup_key(effective)
        if resolved is None:
            continue
        key, specifier = resolved
        if not key.exportable or (specifier and not key.overloadable):
            continue
        entries[effective] = value
    return entries


def export_section(
    config: Configuration,
    name: str,
    section: Section,
    path: Path | None = None,
) -> Path:
    """
    Export a named section instance to a file.

    Args:
        config: Configuration store to read from.
        name: Instance name, e.g. the remote name.
        section: Named section template.
        path: Target file. Defaults to ``<name>.config`` in the current
              directory.

    Returns:
        Path of the written file.

    Raises:
        ConfigurationError: If the instance does not exist or the file
                            cannot be written.
    """
    if not config.has_named_section(name, section):
        raise ConfigurationError(f"No {section.name.lower()} named '{name}' configured")

    target = path or default_export_path(name)
    entries = exportable_entries(config, name, section)

    write_store(target, {SectionId(section, name): entries})
    logger.info(f"Exported {len(entries)} entries of '{name}' to {target}")
    return target


def import_section(
    config: Configuration,
    path: Path,
    target_name: str,
    section: Section,
) -> int:
    """
    Import an exported file into a named section instance.

    All exportable entries are written through a single ``apply_changes``.
    Non-exportable and unknown keys in the file are skipped.

    Args:
        config: Configuration store to write to.
        path: File produced by ``export_section``.
        target_name: Instance name to import into.
        section: Named section template.

    Returns:
        Number of entries written.

    Raises:
        ConfigurationError: If the file is missing, cannot be parsed, or
                            does not contain exactly one matching section.
    """
    if not path.exists():
        raise ConfigurationError(f"Import file '{path}' does not exist")

    parsed = read_store(path, config.schema)
    candidates = [
        values for section_id, values in parsed.sections.items()
        if section_id.section == section
    ]
    if len(candidates) != 1:
        raise ConfigurationError(
            f"Import file '{path}' must contain exactly one {section.name} "
            f"section, found {len(candidates)}"
        )

    entries: list[tuple[Key, str, str]] = []
    schema = config.schema
    for effective, value in candidates[0].items():
        resolved = schema.lookup_key(effective)
        if resolved is None:
            logger.warning(f"Skipping unknown key '{effective}' in {path}")
            continue
        key, specifier = resolved
        if not key.exportable:
            logger.warning(f"Skipping non-exportable key '{key.name}' in {path}")
            continue
        if specifier and not key.overloadable:
            logger.warning(
                f"Skipping override of non-overloadable key '{effective}' in {path}"
            )
            continue
        entries.append((key, specifier, value))

    def apply(mutator: Mutator) -> None:
        for key, specifier, value in entries:
            mutator.named_set(target_name, section, key, value, specifier)

    config.apply_changes(apply)
    logger.info(f"Imported {len(entries)} entries from {path} into '{target_name}'")
    return len(entries)
