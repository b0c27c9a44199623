"""Tests for the sheaf CLI commands."""

from pathlib import Path

import pytest
from typer.testing import CliRunner

from sheaf import __version__, exit_codes
from sheaf.cli import app
from sheaf.lock_schema import load_lock
from tests.conftest import create_git_repo, write_files


@pytest.fixture
def base_args(home: Path) -> list[str]:
    """Global options pointing every directory into the fake home."""
    return ["--home", str(home), "--no-color"]


@pytest.fixture
def sheaf_dir(home: Path) -> Path:
    """The default config and data directory under the fake home."""
    return home / ".sheaf"


def _write_config(sheaf_dir: Path, text: str) -> None:
    sheaf_dir.mkdir(parents=True, exist_ok=True)
    (sheaf_dir / "plugins.toml").write_text(text)


class TestVersion:
    def test_version_flag(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(app, ["--version"])
        assert result.exit_code == exit_codes.SUCCESS
        assert __version__ in result.stdout


class TestInit:
    """Tests for sheaf init."""

    def test_creates_starter_config(self, cli_runner: CliRunner, base_args: list[str], sheaf_dir: Path) -> None:
        # When
        result = cli_runner.invoke(app, [*base_args, "init", "--shell", "bash"])

        # Then
        assert result.exit_code == exit_codes.SUCCESS
        content = (sheaf_dir / "plugins.toml").read_text()
        assert 'shell = "bash"' in content
        assert "[plugins]" in content

    def test_existing_config_is_left_alone(
        self, cli_runner: CliRunner, base_args: list[str], sheaf_dir: Path
    ) -> None:
        # Given
        _write_config(sheaf_dir, "# mine\n")

        # When
        result = cli_runner.invoke(app, [*base_args, "init"])

        # Then
        assert result.exit_code == exit_codes.SUCCESS
        assert (sheaf_dir / "plugins.toml").read_text() == "# mine\n"

    def test_starter_config_locks_cleanly(
        self, cli_runner: CliRunner, base_args: list[str], sheaf_dir: Path
    ) -> None:
        # Given
        cli_runner.invoke(app, [*base_args, "init"])

        # When
        result = cli_runner.invoke(app, [*base_args, "lock"])

        # Then
        assert result.exit_code == exit_codes.SUCCESS
        assert load_lock(sheaf_dir / "plugins.lock").plugins == []


class TestLock:
    """Tests for sheaf lock."""

    def test_writes_lock_file(
        self, cli_runner: CliRunner, base_args: list[str], home: Path, sheaf_dir: Path
    ) -> None:
        # Given
        write_files(home / "mine", {"mine.plugin.zsh": ""})
        _write_config(sheaf_dir, '[plugins.mine]\nlocal = "~/mine"\n')

        # When
        result = cli_runner.invoke(app, [*base_args, "lock"])

        # Then
        assert result.exit_code == exit_codes.SUCCESS
        document = load_lock(sheaf_dir / "plugins.lock")
        assert [p.name for p in document.plugins] == ["mine"]
        assert document.fingerprint is not None

    def test_profile_lock_file(
        self, cli_runner: CliRunner, base_args: list[str], home: Path, sheaf_dir: Path
    ) -> None:
        # Given
        write_files(home / "mine", {"mine.plugin.zsh": ""})
        _write_config(sheaf_dir, '[plugins.mine]\nlocal = "~/mine"\nprofiles = ["work"]\n')

        # When
        result = cli_runner.invoke(app, [*base_args, "--profile", "work", "lock"])

        # Then
        assert result.exit_code == exit_codes.SUCCESS
        assert [p.name for p in load_lock(sheaf_dir / "plugins.work.lock").plugins] == ["mine"]

    def test_missing_config(self, cli_runner: CliRunner, base_args: list[str]) -> None:
        result = cli_runner.invoke(app, [*base_args, "lock"])
        assert result.exit_code == exit_codes.CONFIG_NOT_FOUND

    def test_invalid_config(self, cli_runner: CliRunner, base_args: list[str], sheaf_dir: Path) -> None:
        # Given
        _write_config(sheaf_dir, '[plugins.p]\ngithub = "a/b"\nlocal = "~/x"\n')

        # When
        result = cli_runner.invoke(app, [*base_args, "lock"])

        # Then
        assert result.exit_code == exit_codes.CONFIG_INVALID
        assert not (sheaf_dir / "plugins.lock").exists()

    def test_update_and_reinstall_are_exclusive(
        self, cli_runner: CliRunner, base_args: list[str], sheaf_dir: Path
    ) -> None:
        _write_config(sheaf_dir, "")
        result = cli_runner.invoke(app, [*base_args, "lock", "--update", "--reinstall"])
        assert result.exit_code == exit_codes.INVALID_ARGS

    def test_partial_failure_writes_what_succeeded(
        self, cli_runner: CliRunner, base_args: list[str], home: Path, sheaf_dir: Path
    ) -> None:
        # Given
        write_files(home / "good", {"good.zsh": ""})
        _write_config(sheaf_dir, '[plugins.good]\nlocal = "~/good"\n[plugins.bad]\nlocal = "~/missing"\n')

        # When
        result = cli_runner.invoke(app, [*base_args, "lock"])

        # Then
        assert result.exit_code == exit_codes.RESOLVE_FAILED
        document = load_lock(sheaf_dir / "plugins.lock")
        assert [p.name for p in document.plugins] == ["good"]
        assert document.fingerprint is None

    def test_total_failure_keeps_previous_lock(
        self, cli_runner: CliRunner, base_args: list[str], home: Path, sheaf_dir: Path
    ) -> None:
        # Given
        write_files(home / "mine", {"mine.zsh": ""})
        _write_config(sheaf_dir, '[plugins.mine]\nlocal = "~/mine"\n')
        cli_runner.invoke(app, [*base_args, "lock"])
        before = (sheaf_dir / "plugins.lock").read_text()
        (home / "mine" / "mine.zsh").unlink()

        # When
        result = cli_runner.invoke(app, [*base_args, "lock"])

        # Then
        assert result.exit_code == exit_codes.RESOLVE_FAILED
        assert (sheaf_dir / "plugins.lock").read_text() == before

    def test_cleans_stale_clones(
        self, cli_runner: CliRunner, base_args: list[str], tmp_path: Path, sheaf_dir: Path
    ) -> None:
        # Given
        upstream = create_git_repo(tmp_path, "pure")
        stale = sheaf_dir / "repos" / "github.com" / "old" / "repo"
        write_files(stale, {"x.zsh": ""})
        _write_config(sheaf_dir, f'[plugins.pure]\ngit = "{upstream.url}"\n')

        # When
        result = cli_runner.invoke(app, [*base_args, "lock"])

        # Then
        assert result.exit_code == exit_codes.SUCCESS
        assert not (sheaf_dir / "repos" / "github.com").exists()
        (plugin,) = load_lock(sheaf_dir / "plugins.lock").plugins
        assert Path(plugin.files[0]).name == "pure.plugin.zsh"


class TestSource:
    """Tests for sheaf source."""

    def test_prints_script(
        self, cli_runner: CliRunner, base_args: list[str], home: Path, sheaf_dir: Path
    ) -> None:
        # Given
        write_files(home / "mine", {"mine.plugin.zsh": ""})
        _write_config(sheaf_dir, '[plugins.mine]\nlocal = "~/mine"\n[plugins.hi]\ninline = "echo hi"\n')

        # When
        result = cli_runner.invoke(app, [*base_args, "source"])

        # Then
        assert result.exit_code == exit_codes.SUCCESS
        assert f'source "{home / "mine" / "mine.plugin.zsh"}"\necho hi\n' in result.stdout

    def test_reuses_up_to_date_lock(
        self, cli_runner: CliRunner, base_args: list[str], home: Path, sheaf_dir: Path
    ) -> None:
        # Given
        write_files(home / "mine", {"mine.plugin.zsh": ""})
        _write_config(sheaf_dir, '[plugins.mine]\nlocal = "~/mine"\n')
        cli_runner.invoke(app, [*base_args, "source"])
        lock_file = sheaf_dir / "plugins.lock"
        mtime = lock_file.stat().st_mtime_ns

        # When
        result = cli_runner.invoke(app, [*base_args, "source"])

        # Then
        assert result.exit_code == exit_codes.SUCCESS
        assert lock_file.stat().st_mtime_ns == mtime

    def test_config_change_triggers_relock(
        self, cli_runner: CliRunner, base_args: list[str], home: Path, sheaf_dir: Path
    ) -> None:
        # Given
        write_files(home / "mine", {"mine.plugin.zsh": "", "extra.zsh": ""})
        _write_config(sheaf_dir, '[plugins.mine]\nlocal = "~/mine"\n')
        cli_runner.invoke(app, [*base_args, "source"])
        _write_config(sheaf_dir, '[plugins.mine]\nlocal = "~/mine"\nuse = ["extra.zsh"]\n')

        # When
        result = cli_runner.invoke(app, [*base_args, "source"])

        # Then
        assert result.exit_code == exit_codes.SUCCESS
        assert "extra.zsh" in result.stdout
        (plugin,) = load_lock(sheaf_dir / "plugins.lock").plugins
        assert plugin.files == [str(home / "mine" / "extra.zsh")]

    def test_partial_failure_still_prints_what_loaded(
        self, cli_runner: CliRunner, base_args: list[str], home: Path, sheaf_dir: Path
    ) -> None:
        # Given
        write_files(home / "good", {"good.zsh": ""})
        _write_config(sheaf_dir, '[plugins.good]\nlocal = "~/good"\n[plugins.bad]\nlocal = "~/missing"\n')

        # When
        result = cli_runner.invoke(app, [*base_args, "source"])

        # Then
        assert result.exit_code == exit_codes.RESOLVE_FAILED
        assert "good.zsh" in result.stdout

    def test_total_failure_uses_previous_lock(
        self, cli_runner: CliRunner, base_args: list[str], home: Path, sheaf_dir: Path
    ) -> None:
        # Given
        write_files(home / "mine", {"mine.zsh": ""})
        _write_config(sheaf_dir, '[plugins.mine]\nlocal = "~/mine"\n')
        cli_runner.invoke(app, [*base_args, "lock"])
        _write_config(sheaf_dir, '[plugins.mine]\nlocal = "~/mine"\nuse = ["nothing-*.zsh"]\n')

        # When
        result = cli_runner.invoke(app, [*base_args, "source"])

        # Then
        assert result.exit_code == exit_codes.RESOLVE_FAILED
        assert "mine.zsh" in result.stdout

    def test_total_failure_without_previous_lock(
        self, cli_runner: CliRunner, base_args: list[str], sheaf_dir: Path
    ) -> None:
        # Given
        _write_config(sheaf_dir, '[plugins.bad]\nlocal = "~/missing"\n')

        # When
        result = cli_runner.invoke(app, [*base_args, "source"])

        # Then
        assert result.exit_code == exit_codes.RESOLVE_FAILED
        assert not (sheaf_dir / "plugins.lock").exists()

    def test_quiet_and_verbose_are_exclusive(self, cli_runner: CliRunner, base_args: list[str]) -> None:
        result = cli_runner.invoke(app, [*base_args, "-q", "-v", "source"])
        assert result.exit_code == exit_codes.INVALID_ARGS
