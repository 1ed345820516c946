"""
Section and key catalog for the grm configuration file.

The vocabulary of the configuration file is fixed: a small set of sections
(currently only the named ``Remote`` section, one instance per GitHub
account) and the keys that may appear inside them. Each key carries two
flags that drive the store's behaviour:

    overloadable: the key may be overridden per specifier (for example per
                  repository) using the ``key:specifier`` form.
    exportable:   the key may leave the machine through export/import.
                  Credentials are never exportable.

Section identifiers are structured ``SectionId`` values; they are only
rendered as ``Remote "name"`` text when written to disk.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from grm.config.settings import ConfigurationError

SPECIFIER_SEPARATOR = ":"

# Matches `Name` or `Name "instance"`
_HEADER_PATTERN = re.compile(r'^(?P<name>[^\s"]+)(?:\s+"(?P<instance>[^"]*)")?$')

# Characters the file format cannot carry inside a section header or a key
_INSTANCE_FORBIDDEN = ('"', "]")
_SPECIFIER_FORBIDDEN = ("=",)


class SchemaError(ConfigurationError):
    """Raised when the store is used in a way the schema does not allow."""

    pass


class SectionKindError(SchemaError):
    """Raised when a named accessor is used on an unnamed section or vice versa."""

    pass


def _has_control_chars(text: str) -> bool:
    return any(c < " " for c in text)


def validate_specifier(specifier: str) -> None:
    """
    Check that a specifier survives a write and reload of the file.

    Raises:
        SchemaError: If the specifier contains ``=``, control characters
                     or surrounding whitespace.
    """
    if (
        _has_control_chars(specifier)
        or any(c in specifier for c in _SPECIFIER_FORBIDDEN)
        or specifier != specifier.strip()
    ):
        raise SchemaError(f"Invalid specifier: {specifier!r}")


def validate_value(value: str) -> None:
    """
    Check that a value survives a write and reload of the file.

    Values are single lines; surrounding whitespace is not preserved by
    the format and is rejected rather than silently dropped.

    Raises:
        SchemaError: If the value contains line breaks or surrounding
                     whitespace.
    """
    if "\n" in value or "\r" in value or value != value.strip():
        raise SchemaError(f"Invalid value: {value!r}")


@dataclass(frozen=True)
class Section:
    """A section template, optionally parametrized by an instance name."""

    name: str
    named: bool = False


@dataclass(frozen=True)
class Key:
    """A configuration key and its behavioural flags."""

    name: str
    overloadable: bool = False
    exportable: bool = False

    def qualified(self, specifier: str = "") -> str:
        """Return the effective key name, ``key`` or ``key:specifier``."""
        if specifier:
            return f"{self.name}{SPECIFIER_SEPARATOR}{specifier}"
        return self.name


@dataclass(frozen=True)
class SectionId:
    """
    Concrete identifier of a section in the store.

    Unnamed sections have ``instance`` set to None; named sections carry
    the instance name (e.g. the remote account name).
    """

    section: Section
    instance: str | None = None

    def __post_init__(self) -> None:
        if self.section.named and self.instance is None:
            raise SectionKindError(
                f"Section '{self.section.name}' is named and requires an instance name"
            )
        if not self.section.named and self.instance is not None:
            raise SectionKindError(
                f"Section '{self.section.name}' is not named and cannot take "
                f"instance name '{self.instance}'"
            )
        if self.instance is not None and (
            _has_control_chars(self.instance)
            or any(c in self.instance for c in _INSTANCE_FORBIDDEN)
        ):
            raise SchemaError(f"Invalid instance name: {self.instance!r}")

    @property
    def header(self) -> str:
        """Header text used in the configuration file."""
        if self.instance is None:
            return self.section.name
        return f'{self.section.name} "{self.instance}"'


class Schema:
    """
    Immutable registry of sections and keys.

    Lookups against arbitrary persisted content never raise; they return
    None for anything the registry does not know.
    """

    def __init__(self, sections: Iterable[Section], keys: Iterable[Key]) -> None:
        self._sections: Mapping[str, Section] = MappingProxyType(
            {section.name: section for section in sections}
        )
        self._keys: Mapping[str, Key] = MappingProxyType({key.name: key for key in keys})

    @property
    def sections(self) -> Mapping[str, Section]:
        return self._sections

    @property
    def keys(self) -> Mapping[str, Key]:
        return self._keys

    def section(self, name: str) -> Section | None:
        return self._sections.get(name)

    def key(self, name: str) -> Key | None:
        return self._keys.get(name)

    def lookup_section(self, header: str) -> SectionId | None:
        """
        Resolve a raw section header into a SectionId.

        Args:
            header: Header text as found in the file, e.g. ``Remote "acme"``.

        Returns:
            The matching SectionId, or None if the header is malformed,
            names an unknown section, or has the wrong named/unnamed shape.
        """
        match = _HEADER_PATTERN.match(header.strip())
        if match is None:
            return None

        section = self._sections.get(match.group("name"))
        if section is None:
            return None

        instance = match.group("instance")
        if section.named != (instance is not None):
            return None
        return SectionId(section, instance)

    def lookup_key(self, raw: str) -> tuple[Key, str] | None:
        """
        Resolve ``key`` or ``key:specifier`` into the Key and its specifier.

        The specifier is everything after the first separator, so it may
        itself contain colons. Returns None for unknown keys.
        """
        name, _, specifier = raw.strip().partition(SPECIFIER_SEPARATOR)
        key = self._keys.get(name)
        if key is None:
            return None
        return key, specifier


# Section catalog
REMOTE = Section("Remote", named=True)

# Credentials: stored encrypted, never exported
USERNAME = Key("username")
PASSWORD = Key("password")
SALT = Key("salt")

# Remote properties
REMOTE_USER = Key("user", exportable=True)
SHOW_PRIVATE = Key("show-private", exportable=True)
REPOSITORY_PATTERN = Key("repository-pattern", exportable=True)

# Per-repository overridable properties
RELEASE_PATTERN = Key("release-pattern", overloadable=True, exportable=True)
MILESTONE_PATTERN = Key("milestone-pattern", overloadable=True, exportable=True)
REPOSITORY_BLACKLISTED = Key("repository-blacklisted", overloadable=True, exportable=True)
DOWNLOAD_URL = Key("download-url", overloadable=True, exportable=True)

SCHEMA = Schema(
    sections=[REMOTE],
    keys=[
        USERNAME,
        PASSWORD,
        SALT,
        REMOTE_USER,
        SHOW_PRIVATE,
        REPOSITORY_PATTERN,
        RELEASE_PATTERN,
        MILESTONE_PATTERN,
        REPOSITORY_BLACKLISTED,
        DOWNLOAD_URL,
    ],
)
