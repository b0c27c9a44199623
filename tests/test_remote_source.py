"""Tests for downloading remote plugin files."""

from pathlib import Path
from unittest.mock import Mock

import pytest

from sheaf.config import Source, SourceKind
from sheaf.context import Context, LockMode
from sheaf.errors import DownloadError
from sheaf.remote_source import UrllibDownloader, lock_remote
from sheaf.transport import Downloader, InstallStatus

URL = "https://example.com/plugins/hello.zsh"


def _source(url: str = URL) -> Source:
    return Source(kind=SourceKind.REMOTE, url=url)


class TestLockRemote:
    """Tests for lock_remote with a fake downloader."""

    def test_downloads_to_deterministic_path(self, ctx: Context) -> None:
        # Given
        downloader = Mock(spec=Downloader)
        downloader.download.return_value = b"echo hello\n"

        # When
        locked = lock_remote(_source(), ctx, downloader)

        # Then
        expected = ctx.download_dir / "example.com" / "plugins" / "hello.zsh"
        assert locked.file == expected
        assert locked.dir == expected.parent
        assert expected.read_bytes() == b"echo hello\n"
        assert locked.outcome.status == InstallStatus.FETCHED
        downloader.download.assert_called_once_with(URL)

    def test_existing_file_is_not_downloaded_again(self, ctx: Context) -> None:
        # Given
        downloader = Mock(spec=Downloader)
        downloader.download.return_value = b"v1"
        lock_remote(_source(), ctx, downloader)
        downloader.reset_mock()

        # When
        locked = lock_remote(_source(), ctx, downloader)

        # Then
        downloader.download.assert_not_called()
        assert locked.outcome.status == InstallStatus.CHECKED

    @pytest.mark.parametrize("mode", [LockMode.UPDATE, LockMode.REINSTALL])
    def test_update_and_reinstall_download_again(self, ctx: Context, mode: LockMode) -> None:
        # Given
        downloader = Mock(spec=Downloader)
        downloader.download.return_value = b"v1"
        lock_remote(_source(), ctx, downloader)
        downloader.download.return_value = b"v2"

        # When
        locked = lock_remote(_source(), ctx.with_mode(mode), downloader)

        # Then
        assert locked.file is not None
        assert locked.file.read_bytes() == b"v2"

    def test_failed_download_keeps_previous_file(self, ctx: Context) -> None:
        # Given
        downloader = Mock(spec=Downloader)
        downloader.download.return_value = b"v1"
        first = lock_remote(_source(), ctx, downloader)
        downloader.download.side_effect = DownloadError("failed to download: HTTP 404")

        # When / Then
        with pytest.raises(DownloadError):
            lock_remote(_source(), ctx.with_mode(LockMode.UPDATE), downloader)
        assert first.file is not None
        assert first.file.read_bytes() == b"v1"


class TestUrllibDownloader:
    """Tests for the urllib transport, using file:// URLs."""

    def test_reads_body(self, tmp_path: Path) -> None:
        # Given
        path = tmp_path / "plugin.zsh"
        path.write_bytes(b"echo remote\n")

        # When
        data = UrllibDownloader().download(path.as_uri())

        # Then
        assert data == b"echo remote\n"

    def test_missing_resource_is_download_error(self, tmp_path: Path) -> None:
        url = (tmp_path / "missing.zsh").as_uri()
        with pytest.raises(DownloadError, match="failed to download"):
            UrllibDownloader().download(url)

    def test_malformed_url_is_download_error(self) -> None:
        # Given - http.client rejects the space before any request is sent
        url = "http://127.0.0.1:9/a b.zsh"

        # When / Then
        with pytest.raises(DownloadError, match="failed to download"):
            UrllibDownloader(timeout=1).download(url)

    def test_url_without_scheme_is_download_error(self) -> None:
        with pytest.raises(DownloadError, match="failed to download `plugin.zsh`"):
            UrllibDownloader().download("plugin.zsh")
