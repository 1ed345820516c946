"""
Tests for the CLI commands.

Uses Python's unittest module.
Tests argument parsing and runs the commands against a temporary home
directory.
"""

from __future__ import annotations

import io
import os
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from grm.cli import ask_yes_no, create_parser, main, read_line
from grm.config.credentials import derive_key, load_credentials
from grm.config.schema import (
    DOWNLOAD_URL,
    PASSWORD,
    REMOTE,
    REMOTE_USER,
    REPOSITORY_PATTERN,
    SHOW_PRIVATE,
    USERNAME,
)
from grm.config.store import Configuration

TEST_KEY = derive_key("test-machine")


class TestArgumentParser(unittest.TestCase):
    """Tests for CLI argument parsing."""

    def setUp(self) -> None:
        """Set up parser for tests."""
        self.parser = create_parser()

    def test_version_argument(self) -> None:
        """Test --version argument."""
        with patch("sys.stdout", new_callable=io.StringIO):
            with self.assertRaises(SystemExit) as cm:
                self.parser.parse_args(["--version"])

        self.assertEqual(cm.exception.code, 0)

    def test_no_command_defaults(self) -> None:
        """Test parsing with no command."""
        args = self.parser.parse_args([])

        self.assertEqual(args.verbose, 0)
        self.assertFalse(args.quiet)
        self.assertIsNone(args.home)
        self.assertIsNone(args.command)

    def test_verbose_flag(self) -> None:
        """Test -v verbose flag."""
        self.assertEqual(self.parser.parse_args(["-vv"]).verbose, 2)

    def test_remote_requires_action(self) -> None:
        """Test remote without an action is a usage error."""
        with patch("sys.stderr", new_callable=io.StringIO):
            with self.assertRaises(SystemExit) as cm:
                self.parser.parse_args(["remote"])

        self.assertEqual(cm.exception.code, 2)

    def test_remote_add_arguments(self) -> None:
        """Test remote add options."""
        args = self.parser.parse_args(
            ["remote", "add", "acme", "--user", "acme-corp", "--show-private"]
        )

        self.assertEqual(args.name, "acme")
        self.assertEqual(args.user, "acme-corp")
        self.assertTrue(args.show_private)
        self.assertIsNone(args.repository_pattern)

    def test_config_repository_default(self) -> None:
        """Test the repository specifier defaults to empty."""
        args = self.parser.parse_args(["config", "get", "acme", "download-url"])

        self.assertEqual(args.repository, "")

    def test_auth_modes_are_exclusive(self) -> None:
        """Test --remove and --check cannot be combined."""
        with patch("sys.stderr", new_callable=io.StringIO):
            with self.assertRaises(SystemExit):
                self.parser.parse_args(["auth", "acme", "--remove", "--check"])

    def test_import_arguments(self) -> None:
        """Test import arguments."""
        args = self.parser.parse_args(["import", "acme.config", "--name", "copy"])

        self.assertEqual(args.file, "acme.config")
        self.assertEqual(args.name, "copy")


class TestPrompts(unittest.TestCase):
    """Tests for terminal prompt helpers."""

    def test_read_line_default(self) -> None:
        """Test empty input returns the default."""
        with patch("builtins.input", return_value="  \r"):
            self.assertEqual(read_line("Name", "bob"), "bob")

    def test_read_line_value(self) -> None:
        """Test input is stripped."""
        with patch("builtins.input", return_value=" alice \r"):
            self.assertEqual(read_line("Name", "bob"), "alice")

    def test_ask_yes_no(self) -> None:
        """Test yes/no answers and defaults."""
        for answer, expected in (("y", True), ("YES", True), ("no", False), ("1", True)):
            with patch("builtins.input", return_value=answer):
                self.assertEqual(ask_yes_no("Sure?"), expected, answer)

        with patch("builtins.input", return_value=""):
            self.assertFalse(ask_yes_no("Sure?"))
            self.assertTrue(ask_yes_no("Sure?", default_yes=True))


class CliTestCase(unittest.TestCase):
    """Base class running the CLI against a temporary home directory."""

    def setUp(self) -> None:
        """Create temporary directory for tests."""
        self.temp_dir = tempfile.mkdtemp()
        self.home = Path(self.temp_dir) / "home"
        self.settings = Path(self.temp_dir) / "missing-settings.yaml"

    def tearDown(self) -> None:
        """Clean up temporary directory."""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def run_cli(self, *argv: str) -> tuple[int, str, str]:
        """Run the CLI and return exit code, stdout and stderr."""
        stdout = io.StringIO()
        stderr = io.StringIO()
        full_argv = ["--home", str(self.home), "--settings", str(self.settings), *argv]

        with patch.dict(os.environ, {}, clear=True), \
                patch("sys.stdout", stdout), patch("sys.stderr", stderr), \
                patch("grm.cli.machine_key", return_value=TEST_KEY):
            with self.assertRaises(SystemExit) as cm:
                main(full_argv)

        code = cm.exception.code
        return (code if isinstance(code, int) else 1), stdout.getvalue(), stderr.getvalue()

    def config(self) -> Configuration:
        return Configuration(self.home)


class TestRemoteCommands(CliTestCase):
    """Tests for the remote command."""

    def test_add_remote(self) -> None:
        """Test adding a remote writes its properties."""
        code, out, _ = self.run_cli(
            "remote", "add", "acme", "--user", "acme-corp",
            "--show-private", "--repository-pattern", "^grm-",
        )

        self.assertEqual(code, 0)
        self.assertIn("Remote 'acme' added.", out)
        config = self.config()
        self.assertEqual(config.named_get("acme", REMOTE, REMOTE_USER), "acme-corp")
        self.assertEqual(config.named_get("acme", REMOTE, SHOW_PRIVATE), "true")
        self.assertEqual(config.named_get("acme", REMOTE, REPOSITORY_PATTERN), "^grm-")

    def test_add_remote_defaults(self) -> None:
        """Test the GitHub user defaults to the remote name."""
        self.run_cli("remote", "add", "acme")

        config = self.config()
        self.assertEqual(config.named_get("acme", REMOTE, REMOTE_USER), "acme")
        self.assertEqual(config.named_get("acme", REMOTE, SHOW_PRIVATE), "false")
        self.assertIsNone(config.named_get("acme", REMOTE, REPOSITORY_PATTERN))

    def test_add_existing_remote_fails(self) -> None:
        """Test adding a remote twice fails."""
        self.run_cli("remote", "add", "acme")

        code, _, err = self.run_cli("remote", "add", "acme")

        self.assertEqual(code, 1)
        self.assertIn("already exists", err)

    def test_list_remotes(self) -> None:
        """Test listing remotes."""
        self.run_cli("remote", "add", "b-remote")
        self.run_cli("remote", "add", "a-remote", "--user", "someone")

        code, out, _ = self.run_cli("remote", "list")

        self.assertEqual(code, 0)
        lines = out.strip().splitlines()
        self.assertTrue(lines[0].startswith("a-remote"))
        self.assertIn("user=someone", lines[0])
        self.assertIn("no credentials", lines[0])
        self.assertTrue(lines[1].startswith("b-remote"))

    def test_list_without_remotes(self) -> None:
        """Test listing with an empty configuration."""
        code, out, _ = self.run_cli("remote", "list")

        self.assertEqual(code, 0)
        self.assertIn("No remotes configured", out)
        self.assertFalse(self.config().config_path.exists())

    def test_remove_remote_with_confirmation(self) -> None:
        """Test removing a remote after confirming."""
        self.run_cli("remote", "add", "acme")

        with patch("builtins.input", return_value="yes"):
            code, _, _ = self.run_cli("remote", "remove", "acme")

        self.assertEqual(code, 0)
        self.assertEqual(self.config().named_sections(REMOTE), set())

    def test_remove_remote_declined(self) -> None:
        """Test declining the confirmation keeps the remote."""
        self.run_cli("remote", "add", "acme")

        with patch("builtins.input", return_value=""):
            code, _, _ = self.run_cli("remote", "remove", "acme")

        self.assertEqual(code, 1)
        self.assertEqual(self.config().named_sections(REMOTE), {"acme"})

    def test_remove_unknown_remote(self) -> None:
        """Test removing a missing remote fails."""
        code, _, err = self.run_cli("remote", "remove", "ghost", "--yes")

        self.assertEqual(code, 1)
        self.assertIn("does not exist", err)


class TestAuthCommand(CliTestCase):
    """Tests for the auth command."""

    def setUp(self) -> None:
        super().setUp()
        self.run_cli("remote", "add", "acme")

    def test_store_credentials(self) -> None:
        """Test credentials are prompted for and stored encrypted."""
        with patch("builtins.input", return_value="bob"), \
                patch("grm.cli.getpass.getpass", return_value="hunter2"):
            code, out, _ = self.run_cli("auth", "acme")

        self.assertEqual(code, 0)
        self.assertIn("stored", out)
        config = self.config()
        self.assertEqual(config.named_get("acme", REMOTE, USERNAME), "bob")
        self.assertNotEqual(config.named_get("acme", REMOTE, PASSWORD), "hunter2")
        credentials = load_credentials(config, "acme", REMOTE, TEST_KEY)
        assert credentials is not None
        self.assertEqual(credentials.password, "hunter2")

    def test_empty_password_rejected(self) -> None:
        """Test an empty password is not stored."""
        with patch("builtins.input", return_value="bob"), \
                patch("grm.cli.getpass.getpass", return_value=""):
            code, _, err = self.run_cli("auth", "acme")

        self.assertEqual(code, 1)
        self.assertIn("password is required", err)
        self.assertIsNone(self.config().named_get("acme", REMOTE, USERNAME))

    def test_check_credentials(self) -> None:
        """Test --check decrypts the stored credentials."""
        with patch("builtins.input", return_value="bob"), \
                patch("grm.cli.getpass.getpass", return_value="hunter2"):
            self.run_cli("auth", "acme")

        code, out, _ = self.run_cli("auth", "acme", "--check")

        self.assertEqual(code, 0)
        self.assertIn("user: bob", out)

    def test_check_on_other_machine(self) -> None:
        """Test credentials from another machine key are a credential error."""
        with patch("builtins.input", return_value="bob"), \
                patch("grm.cli.getpass.getpass", return_value="hunter2"):
            self.run_cli("auth", "acme")

        with patch("grm.cli.machine_key", return_value=derive_key("other")):
            stderr = io.StringIO()
            with patch.dict(os.environ, {}, clear=True), \
                    patch("sys.stdout", io.StringIO()), patch("sys.stderr", stderr):
                with self.assertRaises(SystemExit) as cm:
                    main([
                        "--home", str(self.home), "--settings", str(self.settings),
                        "auth", "acme", "--check",
                    ])

        self.assertEqual(cm.exception.code, 2)
        self.assertIn("Credential error", stderr.getvalue())

    def test_check_without_credentials(self) -> None:
        """Test --check fails when nothing is stored."""
        code, _, err = self.run_cli("auth", "acme", "--check")

        self.assertEqual(code, 1)
        self.assertIn("No credentials stored", err)

    def test_remove_credentials(self) -> None:
        """Test --remove clears the credentials but keeps the remote."""
        with patch("builtins.input", return_value="bob"), \
                patch("grm.cli.getpass.getpass", return_value="hunter2"):
            self.run_cli("auth", "acme")

        code, _, _ = self.run_cli("auth", "acme", "--remove")

        self.assertEqual(code, 0)
        self.assertEqual(self.config().named_section("acme", REMOTE), {
            "user": "acme",
            "show-private": "false",
        })

    def test_auth_unknown_remote(self) -> None:
        """Test auth for a missing remote fails."""
        code, _, err = self.run_cli("auth", "ghost")

        self.assertEqual(code, 1)
        self.assertIn("does not exist", err)


class TestConfigCommand(CliTestCase):
    """Tests for the config command."""

    def setUp(self) -> None:
        super().setUp()
        self.run_cli("remote", "add", "acme")

    def test_set_and_get(self) -> None:
        """Test setting a base value and an override."""
        self.run_cli("config", "set", "acme", "download-url", "https://x.org/base")
        self.run_cli(
            "config", "set", "acme", "download-url", "https://x.org/tool", "--repository", "tool"
        )

        _, base, _ = self.run_cli("config", "get", "acme", "download-url")
        _, tool, _ = self.run_cli("config", "get", "acme", "download-url", "-r", "tool")
        _, other, _ = self.run_cli("config", "get", "acme", "download-url", "-r", "other")

        self.assertEqual(base.strip(), "https://x.org/base")
        self.assertEqual(tool.strip(), "https://x.org/tool")
        self.assertEqual(other.strip(), "https://x.org/base")
        self.assertEqual(
            self.config().named_get_overrides("acme", REMOTE, DOWNLOAD_URL),
            {"tool": "https://x.org/tool"},
        )

    def test_get_unset_property(self) -> None:
        """Test getting an unset property fails."""
        code, _, err = self.run_cli("config", "get", "acme", "milestone-pattern")

        self.assertEqual(code, 1)
        self.assertIn("not set", err)

    def test_credentials_are_not_properties(self) -> None:
        """Test credential keys cannot be edited through config."""
        code, _, err = self.run_cli("config", "set", "acme", "password", "x")

        self.assertEqual(code, 1)
        self.assertIn("Unknown property", err)
        self.assertIsNone(self.config().named_get("acme", REMOTE, PASSWORD))

    def test_override_of_plain_property_rejected(self) -> None:
        """Test per-repository values require an overloadable property."""
        code, _, err = self.run_cli("config", "set", "acme", "user", "x", "-r", "tool")

        self.assertEqual(code, 1)
        self.assertIn("cannot be set per repository", err)

    def test_unstorable_input_is_schema_error(self) -> None:
        """Test input the file cannot hold is rejected and the store stays usable."""
        code, _, err = self.run_cli(
            "config", "set", "acme", "download-url", "https://x", "-r", "a=b"
        )
        self.assertEqual(code, 2)
        self.assertIn("Schema error", err)

        code, _, err = self.run_cli("config", "set", "acme", "release-pattern", " ^v ")
        self.assertEqual(code, 2)
        self.assertIn("Schema error", err)

        code, out, _ = self.run_cli("remote", "list")
        self.assertEqual(code, 0)
        self.assertIn("acme", out)
        self.assertEqual(
            self.config().named_get_overrides("acme", REMOTE, DOWNLOAD_URL), {}
        )

    def test_unset_override(self) -> None:
        """Test removing an override keeps the base value."""
        self.run_cli("config", "set", "acme", "release-pattern", "^v")
        self.run_cli("config", "set", "acme", "release-pattern", "^r", "-r", "tool")

        code, _, _ = self.run_cli("config", "unset", "acme", "release-pattern", "-r", "tool")

        self.assertEqual(code, 0)
        _, value, _ = self.run_cli("config", "get", "acme", "release-pattern", "-r", "tool")
        self.assertEqual(value.strip(), "^v")

    def test_list_properties(self) -> None:
        """Test listing shows base values and overrides."""
        self.run_cli("config", "set", "acme", "release-pattern", "^v")
        self.run_cli("config", "set", "acme", "release-pattern", "^r", "-r", "tool")

        code, out, _ = self.run_cli("config", "list", "acme")

        self.assertEqual(code, 0)
        self.assertIn("user = acme", out)
        self.assertIn("release-pattern = ^v", out)
        self.assertIn("release-pattern:tool = ^r", out)

    def test_quiet_mode_still_prints_values(self) -> None:
        """Test -q keeps essential output."""
        self.run_cli("config", "set", "acme", "release-pattern", "^v")

        _, out, _ = self.run_cli("-q", "config", "get", "acme", "release-pattern")

        self.assertEqual(out.strip(), "^v")


class TestExportImportCommands(CliTestCase):
    """Tests for the export and import commands."""

    def test_export_and_import(self) -> None:
        """Test a remote can be exported and imported under a new name."""
        self.run_cli("remote", "add", "acme", "--user", "acme-corp")
        self.run_cli("config", "set", "acme", "download-url", "u", "-r", "tool")
        with patch("builtins.input", return_value="bob"), \
                patch("grm.cli.getpass.getpass", return_value="hunter2"):
            self.run_cli("auth", "acme")
        target = Path(self.temp_dir) / "acme.config"

        code, out, _ = self.run_cli("export", "acme", "--output", str(target))
        self.assertEqual(code, 0)
        self.assertIn("exported", out)
        self.assertNotIn("bob", target.read_text())

        code, out, _ = self.run_cli("import", str(target), "--name", "copy")
        self.assertEqual(code, 0)
        self.assertIn("Imported 3 properties into remote 'copy'", out)

        config = self.config()
        self.assertEqual(config.named_get("copy", REMOTE, REMOTE_USER), "acme-corp")
        self.assertEqual(config.named_get("copy", REMOTE, DOWNLOAD_URL, "tool"), "u")
        self.assertIsNone(config.named_get("copy", REMOTE, USERNAME))

    def test_import_name_from_file(self) -> None:
        """Test the import name defaults to the file stem."""
        source = Path(self.temp_dir) / "team.config"
        source.write_text('[Remote "elsewhere"]\nuser = team-org\n')

        code, _, _ = self.run_cli("import", str(source))

        self.assertEqual(code, 0)
        self.assertEqual(self.config().named_sections(REMOTE), {"team"})

    def test_import_missing_file(self) -> None:
        """Test importing a missing file is a configuration error."""
        code, _, err = self.run_cli("import", str(Path(self.temp_dir) / "nope.config"))

        self.assertEqual(code, 2)
        self.assertIn("Configuration error", err)

    def test_export_unknown_remote(self) -> None:
        """Test exporting a missing remote fails."""
        code, _, err = self.run_cli("export", "ghost")

        self.assertEqual(code, 1)
        self.assertIn("does not exist", err)


class TestMainErrors(CliTestCase):
    """Tests for error handling in main."""

    def test_corrupt_config_is_configuration_error(self) -> None:
        """Test a corrupt configuration file exits with code 2."""
        path = self.home / "github-release-monitor" / "config"
        path.parent.mkdir(parents=True)
        path.write_text("not a config\n")

        code, _, err = self.run_cli("remote", "list")

        self.assertEqual(code, 2)
        self.assertIn("Configuration error", err)

    def test_no_command_prints_help(self) -> None:
        """Test running without a command prints help and succeeds."""
        code, out, _ = self.run_cli()

        self.assertEqual(code, 0)
        self.assertIn("usage:", out)


if __name__ == "__main__":
    unittest.main()
