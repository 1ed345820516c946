"""
Reading and writing of the flat configuration file format.

The file is INI-style text:

    [Remote "acme"]
    user = acme-corp
    release-pattern = ^v\\d+
    release-pattern:legacy-tool = ^release-

Only ``=`` separates keys from values so that ``:`` stays available for
specifiers, keys keep their case, and values are never interpolated.
Sections the schema does not know are carried through untouched.
"""

from __future__ import annotations

import configparser
import io
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from grm.config.schema import Schema, SectionId
from grm.config.settings import ConfigurationError

logger = logging.getLogger(__name__)

# configparser always reserves one section name for defaults; use a name
# that cannot appear in a real file.
_DEFAULTS_SECTION = "\x00defaults"

SectionMap = dict[SectionId, dict[str, str]]


@dataclass
class ParsedFile:
    """Contents of a configuration file, split by what the schema knows."""

    sections: SectionMap = field(default_factory=dict)
    foreign: dict[str, dict[str, str]] = field(default_factory=dict)


def _new_parser() -> configparser.RawConfigParser:
    parser = configparser.RawConfigParser(
        delimiters=("=",),
        comment_prefixes=("#", ";"),
        strict=True,
        empty_lines_in_values=False,
        default_section=_DEFAULTS_SECTION,
        interpolation=None,
    )
    parser.optionxform = str  # type: ignore[assignment,method-assign]
    return parser


def parse_config(text: str, schema: Schema, source: str = "<string>") -> ParsedFile:
    """
    Parse configuration text.

    Raises:
        ConfigurationError: If the text is not a valid configuration file.
    """
    parser = _new_parser()
    try:
        parser.read_string(text, source=source)
    except configparser.Error as e:
        raise ConfigurationError(f"Could not parse config file '{source}': {e}") from e

    parsed = ParsedFile()
    for header in parser.sections():
        values = dict(parser.items(header))
        section_id = schema.lookup_section(header)
        if section_id is None:
            logger.warning(f"Unknown section [{header}] in {source}, keeping it as is")
            parsed.foreign[header] = values
            continue
        parsed.sections.setdefault(section_id, {}).update(values)

    return parsed


def read_store(path: Path, schema: Schema) -> ParsedFile:
    """
    Load a configuration file.

    A missing file is not an error and yields an empty result. A file that
    exists but cannot be read or parsed is fatal, since continuing with a
    half-loaded configuration could lose or expose credentials.

    Args:
        path: Path to the configuration file.
        schema: Schema used to recognise sections.

    Returns:
        ParsedFile with recognised and foreign sections.

    Raises:
        ConfigurationError: If the file exists but cannot be read or parsed.
    """
    try:
        if not path.exists():
            logger.debug(f"No config file at {path}, starting empty")
            return ParsedFile()
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigurationError(f"Could not read config file '{path}': {e}") from e

    return parse_config(text, schema, source=str(path))


def render_config(
    sections: SectionMap,
    foreign: dict[str, dict[str, str]] | None = None,
) -> str:
    """Render sections to configuration text, foreign sections last."""
    parser = _new_parser()

    for section_id, values in sections.items():
        parser.add_section(section_id.header)
        for key, value in values.items():
            parser.set(section_id.header, key, value)

    for header, values in (foreign or {}).items():
        if parser.has_section(header):
            continue
        parser.add_section(header)
        for key, value in values.items():
            parser.set(header, key, value)

    buffer = io.StringIO()
    parser.write(buffer)
    return buffer.getvalue()


def write_store(
    path: Path,
    sections: SectionMap,
    foreign: dict[str, dict[str, str]] | None = None,
) -> None:
    """
    Write a configuration file.

    Creates the containing directory if missing. The file is written to a
    temporary sibling first and then renamed over the target, with
    owner-only permissions since it holds encrypted credentials.

    Raises:
        ConfigurationError: If the directory or file cannot be created.
    """
    text = render_config(sections, foreign)

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ConfigurationError(
            f"Could not create config directory '{path.parent}': {e}"
        ) from e

    temp_path = path.with_name(path.name + ".tmp")
    try:
        temp_path.write_text(text, encoding="utf-8")
        try:
            os.chmod(temp_path, 0o600)
        except OSError:
            # Windows or permission error - continue anyway
            pass
        temp_path.replace(path)
    except OSError as e:
        if temp_path.exists():
            temp_path.unlink()
        raise ConfigurationError(f"Could not create config file '{path}': {e}") from e
