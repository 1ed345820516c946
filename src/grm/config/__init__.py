"""
Configuration management for grm.

This module handles the configuration store (remote definitions with
per-repository overrides), its on-disk format, machine-bound encryption of
stored credentials, export/import of remote definitions, and the settings
of the command-line tool itself.
"""

from grm.config.credentials import (
    CredentialError,
    Credentials,
    DecryptionError,
    MachineIdError,
    clear_credentials,
    decrypt,
    derive_key,
    encrypt,
    load_credentials,
    machine_key,
    read_machine_id,
    store_credentials,
)
from grm.config.exchange import export_section, import_section
from grm.config.schema import (
    DOWNLOAD_URL,
    MILESTONE_PATTERN,
    PASSWORD,
    RELEASE_PATTERN,
    REMOTE,
    REMOTE_USER,
    REPOSITORY_BLACKLISTED,
    REPOSITORY_PATTERN,
    SALT,
    SCHEMA,
    SHOW_PRIVATE,
    USERNAME,
    Key,
    Schema,
    SchemaError,
    Section,
    SectionId,
    SectionKindError,
)
from grm.config.settings import ConfigurationError, Settings, load_settings
from grm.config.store import Configuration, Mutator

__all__ = [
    # Settings
    "Settings",
    "load_settings",
    "ConfigurationError",
    # Schema
    "Schema",
    "Section",
    "SectionId",
    "Key",
    "SchemaError",
    "SectionKindError",
    "SCHEMA",
    "REMOTE",
    "USERNAME",
    "PASSWORD",
    "SALT",
    "REMOTE_USER",
    "SHOW_PRIVATE",
    "REPOSITORY_PATTERN",
    "RELEASE_PATTERN",
    "MILESTONE_PATTERN",
    "REPOSITORY_BLACKLISTED",
    "DOWNLOAD_URL",
    # Store
    "Configuration",
    "Mutator",
    # Export/import
    "export_section",
    "import_section",
    # Credentials
    "Credentials",
    "CredentialError",
    "DecryptionError",
    "MachineIdError",
    "read_machine_id",
    "derive_key",
    "machine_key",
    "encrypt",
    "decrypt",
    "store_credentials",
    "load_credentials",
    "clear_credentials",
]
