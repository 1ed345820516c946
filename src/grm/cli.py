"""
Command-line interface for grm.

Provides commands to manage remote definitions, their stored credentials,
per-repository configuration properties, and export/import of remote
definitions.

Uses Python's argparse module (no external CLI libraries).
"""

from __future__ import annotations

import argparse
import getpass
import logging
import sys
from pathlib import Path
from typing import NoReturn

from grm import __version__
from grm.config.credentials import (
    CredentialError,
    clear_credentials,
    load_credentials,
    machine_key,
    store_credentials,
)
from grm.config.exchange import default_export_path, export_section, import_section
from grm.config.schema import (
    REMOTE,
    REMOTE_USER,
    REPOSITORY_PATTERN,
    SCHEMA,
    SHOW_PRIVATE,
    USERNAME,
    Key,
    SchemaError,
)
from grm.config.settings import ConfigurationError, Settings, load_settings
from grm.config.store import Configuration, Mutator

# Set up logging
logger = logging.getLogger(__name__)

# Global output mode (set during main() based on args)
_quiet_mode = False


def set_output_mode(quiet: bool = False) -> None:
    """
    Set the output mode for the CLI.

    Args:
        quiet: If True, suppress non-essential output.
    """
    global _quiet_mode
    _quiet_mode = quiet


def output(message: str = "", force: bool = False) -> None:
    """
    Print a message to stdout, respecting quiet mode.

    Args:
        message: The message to print.
        force: If True, print even in quiet mode (for essential output like values).
    """
    if force or not _quiet_mode:
        print(message)


def output_error(message: str) -> None:
    """Print an error message (always shown, even in quiet mode)."""
    print(message, file=sys.stderr)


def read_line(text: str, default: str = "") -> str:
    """Prompt for a line of input, returning ``default`` on empty input."""
    prompt = f"{text} [{default}]: " if default else f"{text}: "
    line = input(prompt).replace("\r", "").strip()
    return line or default


def ask_yes_no(text: str, default_yes: bool = False) -> bool:
    """Ask a yes/no question on the terminal."""
    suffix = "[Yes|no]" if default_yes else "[yes|No]"
    line = read_line(f"{text} {suffix}", "yes" if default_yes else "no").lower()
    return line in ("yes", "y", "true", "1")


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for grm CLI."""
    parser = argparse.ArgumentParser(
        prog="grm",
        description="GitHub Release Monitor",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"grm {__version__}",
    )

    parser.add_argument(
        "--home",
        metavar="PATH",
        help="Base directory for the configuration (default: current user's home)",
    )

    parser.add_argument(
        "--settings",
        metavar="PATH",
        help="Override settings file location (default: ~/.grm.yaml)",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase output verbosity (can be repeated)",
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress non-essential output",
    )

    subparsers = parser.add_subparsers(
        title="commands",
        dest="command",
        metavar="<command>",
    )

    # remote command
    remote_parser = subparsers.add_parser(
        "remote",
        help="Configures remote GitHub user definitions",
        description="Add, remove and list remote GitHub user definitions.",
    )
    remote_actions = remote_parser.add_subparsers(
        title="actions",
        dest="action",
        metavar="<action>",
        required=True,
    )

    remote_add = remote_actions.add_parser("add", help="Add a remote definition")
    remote_add.add_argument("name", help="Name of the remote")
    remote_add.add_argument(
        "--user",
        metavar="USER",
        help="GitHub user or organization to monitor (default: the remote name)",
    )
    remote_add.add_argument(
        "--show-private",
        action="store_true",
        help="Include private repositories",
    )
    remote_add.add_argument(
        "--repository-pattern",
        metavar="REGEX",
        help="Only monitor repositories matching this pattern",
    )
    remote_add.set_defaults(func=cmd_remote_add)

    remote_remove = remote_actions.add_parser("remove", help="Remove a remote definition")
    remote_remove.add_argument("name", help="Name of the remote")
    remote_remove.add_argument(
        "-y", "--yes",
        action="store_true",
        help="Do not ask for confirmation",
    )
    remote_remove.set_defaults(func=cmd_remote_remove)

    remote_list = remote_actions.add_parser("list", help="List remote definitions")
    remote_list.set_defaults(func=cmd_remote_list)

    # auth command
    auth_parser = subparsers.add_parser(
        "auth",
        help="Configures authorization credentials for remote GitHub users",
        description="Store, verify or remove encrypted credentials of a remote.",
    )
    auth_parser.add_argument("name", help="Name of the remote")
    auth_mode = auth_parser.add_mutually_exclusive_group()
    auth_mode.add_argument(
        "--remove",
        action="store_true",
        help="Remove the stored credentials",
    )
    auth_mode.add_argument(
        "--check",
        action="store_true",
        help="Verify the stored credentials can be decrypted on this machine",
    )
    auth_parser.set_defaults(func=cmd_auth)

    # config command
    config_parser = subparsers.add_parser(
        "config",
        help="Sets, gets configuration properties for remote GitHub users",
        description="Manage configuration properties and per-repository overrides.",
    )
    config_actions = config_parser.add_subparsers(
        title="actions",
        dest="action",
        metavar="<action>",
        required=True,
    )

    config_set = config_actions.add_parser("set", help="Set a property")
    config_set.add_argument("name", help="Name of the remote")
    config_set.add_argument("key", help="Property name")
    config_set.add_argument("value", help="Property value")
    _add_repository_argument(config_set)
    config_set.set_defaults(func=cmd_config_set)

    config_get = config_actions.add_parser("get", help="Get a property")
    config_get.add_argument("name", help="Name of the remote")
    config_get.add_argument("key", help="Property name")
    _add_repository_argument(config_get)
    config_get.set_defaults(func=cmd_config_get)

    config_unset = config_actions.add_parser("unset", help="Remove a property")
    config_unset.add_argument("name", help="Name of the remote")
    config_unset.add_argument("key", help="Property name")
    _add_repository_argument(config_unset)
    config_unset.set_defaults(func=cmd_config_unset)

    config_list = config_actions.add_parser("list", help="List all properties of a remote")
    config_list.add_argument("name", help="Name of the remote")
    config_list.set_defaults(func=cmd_config_list)

    # export command
    export_parser = subparsers.add_parser(
        "export",
        help="Exports configuration properties for remote GitHub users",
        description="Write a remote definition without credentials to a file.",
    )
    export_parser.add_argument("name", help="Name of the remote")
    export_parser.add_argument(
        "--output", "-o",
        metavar="PATH",
        help="Output file (default: <name>.config in the export directory)",
    )
    export_parser.set_defaults(func=cmd_export)

    # import command
    import_parser = subparsers.add_parser(
        "import",
        help="Imports configuration properties for remote GitHub users",
        description="Read a remote definition from a file written by 'grm export'.",
    )
    import_parser.add_argument("file", help="File to import")
    import_parser.add_argument(
        "--name",
        metavar="NAME",
        help="Name of the remote to import into (default: file name without suffix)",
    )
    import_parser.set_defaults(func=cmd_import)

    return parser


def _add_repository_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--repository", "-r",
        metavar="REPO",
        default="",
        help="Apply to a single repository (overridable properties only)",
    )


def setup_logging(verbose: int, quiet: bool, default_level: str = "WARNING") -> None:
    """Configure logging based on verbosity level."""
    if quiet:
        level = logging.ERROR
    elif verbose == 0:
        level = logging.getLevelName(default_level)
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _settings(args: argparse.Namespace) -> Settings:
    settings: Settings = args.app_settings
    return settings


def _open_configuration(args: argparse.Namespace) -> Configuration:
    return Configuration(Path(_settings(args).home_dir))


def _require_remote(config: Configuration, name: str) -> bool:
    if config.has_named_section(name, REMOTE):
        return True
    output_error(f"Error: Remote '{name}' does not exist.")
    return False


def _property_key(name: str, repository: str) -> Key | None:
    """Resolve a user-editable property, reporting errors."""
    key = SCHEMA.key(name)
    if key is None or not key.exportable:
        editable = ", ".join(k.name for k in SCHEMA.keys.values() if k.exportable)
        output_error(f"Error: Unknown property '{name}'. Available: {editable}")
        return None
    if repository and not key.overloadable:
        output_error(f"Error: Property '{name}' cannot be set per repository.")
        return None
    return key


def cmd_remote_add(args: argparse.Namespace) -> int:
    """Add a remote definition."""
    config = _open_configuration(args)

    if config.has_named_section(args.name, REMOTE):
        output_error(f"Error: Remote '{args.name}' already exists.")
        return 1

    def apply(mutator: Mutator) -> None:
        mutator.named_set(args.name, REMOTE, REMOTE_USER, args.user or args.name)
        mutator.named_set(
            args.name, REMOTE, SHOW_PRIVATE, "true" if args.show_private else "false"
        )
        if args.repository_pattern:
            mutator.named_set(args.name, REMOTE, REPOSITORY_PATTERN, args.repository_pattern)

    config.apply_changes(apply)
    output(f"Remote '{args.name}' added.")
    output(f"Run 'grm auth {args.name}' to store credentials.")
    return 0


def cmd_remote_remove(args: argparse.Namespace) -> int:
    """Remove a remote definition including its credentials."""
    config = _open_configuration(args)

    if not _require_remote(config, args.name):
        return 1

    if not args.yes and not ask_yes_no(f"Really remove remote '{args.name}'?"):
        output("Aborted.")
        return 1

    config.apply_changes(lambda mutator: mutator.delete_named_section(args.name, REMOTE))
    output(f"Remote '{args.name}' removed.")
    return 0


def cmd_remote_list(args: argparse.Namespace) -> int:
    """List remote definitions."""
    config = _open_configuration(args)
    names = sorted(config.named_sections(REMOTE))

    if not names:
        output("No remotes configured. Run 'grm remote add <name>' to add one.")
        return 0

    for name in names:
        user = config.named_get(name, REMOTE, REMOTE_USER) or name
        has_auth = config.named_get(name, REMOTE, USERNAME) is not None
        auth = "authenticated" if has_auth else "no credentials"
        output(f"{name:<20} user={user:<20} {auth}", force=True)
    return 0


def cmd_auth(args: argparse.Namespace) -> int:
    """Store, verify or remove the credentials of a remote."""
    config = _open_configuration(args)

    if not _require_remote(config, args.name):
        return 1

    if args.remove:
        config.apply_changes(lambda mutator: clear_credentials(mutator, args.name, REMOTE))
        output(f"Credentials of remote '{args.name}' removed.")
        return 0

    key = machine_key()

    if args.check:
        credentials = load_credentials(config, args.name, REMOTE, key)
        if credentials is None:
            output_error(f"Error: No credentials stored for remote '{args.name}'.")
            return 1
        output(f"Credentials of remote '{args.name}' are valid (user: {credentials.username}).")
        return 0

    current = config.named_get(args.name, REMOTE, USERNAME) or ""
    username = read_line("GitHub username", current)
    if not username:
        output_error("Error: A username is required.")
        return 1

    password = getpass.getpass("GitHub password or access token: ")
    if not password:
        output_error("Error: A password is required.")
        return 1

    config.apply_changes(
        lambda mutator: store_credentials(mutator, args.name, REMOTE, username, password, key)
    )
    output(f"Credentials of remote '{args.name}' stored.")
    return 0


def cmd_config_set(args: argparse.Namespace) -> int:
    """Set a property of a remote."""
    config = _open_configuration(args)

    if not _require_remote(config, args.name):
        return 1
    key = _property_key(args.key, args.repository)
    if key is None:
        return 1

    config.apply_changes(
        lambda mutator: mutator.named_set(args.name, REMOTE, key, args.value, args.repository)
    )
    output(f"Property '{key.qualified(args.repository)}' of remote '{args.name}' set.")
    return 0


def cmd_config_get(args: argparse.Namespace) -> int:
    """Print the effective value of a property."""
    config = _open_configuration(args)

    if not _require_remote(config, args.name):
        return 1
    key = _property_key(args.key, args.repository)
    if key is None:
        return 1

    value = config.named_get(args.name, REMOTE, key, args.repository)
    if value is None:
        output_error(f"Property '{key.name}' is not set for remote '{args.name}'.")
        return 1

    output(value, force=True)
    return 0


def cmd_config_unset(args: argparse.Namespace) -> int:
    """Remove a property or one of its per-repository overrides."""
    config = _open_configuration(args)

    if not _require_remote(config, args.name):
        return 1
    key = _property_key(args.key, args.repository)
    if key is None:
        return 1

    config.apply_changes(
        lambda mutator: mutator.named_delete(args.name, REMOTE, key, args.repository)
    )
    output(f"Property '{key.qualified(args.repository)}' of remote '{args.name}' removed.")
    return 0


def cmd_config_list(args: argparse.Namespace) -> int:
    """List all properties of a remote, including overrides."""
    config = _open_configuration(args)

    if not _require_remote(config, args.name):
        return 1

    for key in SCHEMA.keys.values():
        if not key.exportable:
            continue
        value = config.named_get(args.name, REMOTE, key)
        if value is not None:
            output(f"{key.name} = {value}", force=True)
        if key.overloadable:
            overrides = config.named_get_overrides(args.name, REMOTE, key)
            for repository, override in sorted(overrides.items()):
                output(f"{key.qualified(repository)} = {override}", force=True)
    return 0


def cmd_export(args: argparse.Namespace) -> int:
    """Export a remote definition without credentials."""
    config = _open_configuration(args)

    if not _require_remote(config, args.name):
        return 1

    if args.output:
        target = Path(args.output)
    else:
        target = default_export_path(args.name, Path(_settings(args).export_dir))

    path = export_section(config, args.name, REMOTE, target)
    output(f"Remote '{args.name}' exported to {path}")
    return 0


def cmd_import(args: argparse.Namespace) -> int:
    """Import a remote definition."""
    config = _open_configuration(args)

    path = Path(args.file)
    name = args.name or path.stem

    count = import_section(config, path, name, REMOTE)
    output(f"Imported {count} properties into remote '{name}'.")
    return 0


def main(argv: list[str] | None = None) -> NoReturn:
    """Main entry point for grm CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    set_output_mode(args.quiet)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    try:
        settings = load_settings(Path(args.settings) if args.settings else None)
        if args.home:
            settings.home_dir = str(Path(args.home).expanduser().resolve())
        args.app_settings = settings

        setup_logging(args.verbose, args.quiet, settings.log_level)

        exit_code = args.func(args)
        sys.exit(exit_code)
    except KeyboardInterrupt:
        output("\nOperation cancelled.")
        sys.exit(130)
    except CredentialError as e:
        output_error(f"Credential error: {e}")
        sys.exit(2)
    except SchemaError as e:
        output_error(f"Schema error: {e}")
        sys.exit(2)
    except ConfigurationError as e:
        output_error(f"Configuration error: {e}")
        sys.exit(2)
    except Exception as e:
        if args.verbose > 0:
            raise
        output_error(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
