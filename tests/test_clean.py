"""Tests for removing stale clone and download directories."""

from pathlib import Path

from sheaf.clean import clean
from sheaf.context import Context
from sheaf.lock_schema import LockDocument, LockedPlugin, context_fields
from tests.conftest import write_files


def _document(ctx: Context, plugins: list[LockedPlugin]) -> LockDocument:
    return LockDocument(version="1.0.0", plugins=plugins, **context_fields(ctx))


class TestClean:
    def test_removes_unreferenced_clones(self, ctx: Context) -> None:
        # Given
        used = ctx.clone_dir / "github.com" / "owner" / "used"
        stale = ctx.clone_dir / "github.com" / "owner" / "stale"
        other_host = ctx.clone_dir / "gitlab.com" / "x" / "y"
        for directory in (used, stale, other_host):
            write_files(directory, {"init.zsh": "", ".git/HEAD": ""})
        plugin = LockedPlugin(name="used", source_dir=str(used), files=[str(used / "init.zsh")])

        # When
        removed = clean(ctx, _document(ctx, [plugin]))

        # Then
        assert used.exists()
        assert (used / ".git" / "HEAD").exists()
        assert not stale.exists()
        assert not (ctx.clone_dir / "gitlab.com").exists()
        assert set(removed) == {stale, ctx.clone_dir / "gitlab.com"}

    def test_removes_unreferenced_downloads(self, ctx: Context) -> None:
        # Given
        directory = ctx.download_dir / "example.com" / "scripts"
        write_files(directory, {"used.zsh": "", "old.zsh": ""})
        write_files(ctx.download_dir / "old.example.com", {"index": ""})
        plugin = LockedPlugin(name="used", source_dir=str(directory), files=[str(directory / "used.zsh")])

        # When
        clean(ctx, _document(ctx, [plugin]))

        # Then
        assert (directory / "used.zsh").exists()
        assert not (directory / "old.zsh").exists()
        assert not (ctx.download_dir / "old.example.com").exists()

    def test_leftover_temporary_clone_is_removed(self, ctx: Context) -> None:
        # Given
        leftover = ctx.clone_dir / "github.com" / "owner" / "~repo"
        write_files(leftover, {"x": ""})

        # When
        clean(ctx, _document(ctx, []))

        # Then
        assert not leftover.exists()

    def test_missing_roots(self, ctx: Context) -> None:
        assert clean(ctx, _document(ctx, [])) == []

    def test_local_sources_are_never_touched(self, home: Path, ctx: Context) -> None:
        # Given
        write_files(home / "mine", {"mine.zsh": ""})
        plugin = LockedPlugin(name="mine", source_dir=str(home / "mine"), files=[str(home / "mine" / "mine.zsh")])

        # When
        removed = clean(ctx, _document(ctx, [plugin]))

        # Then
        assert removed == []
        assert (home / "mine" / "mine.zsh").exists()
