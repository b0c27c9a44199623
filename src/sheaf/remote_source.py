"""Download remote plugin files over HTTP."""

from http.client import HTTPException
from urllib.error import URLError
from urllib.request import Request, urlopen

from sheaf import __version__
from sheaf.config import Source
from sheaf.context import Context, LockMode
from sheaf.errors import DownloadError
from sheaf.paths import TempPath
from sheaf.transport import Downloader, InstallOutcome, InstallStatus, LockedSource, remote_dir_and_file

DOWNLOAD_TIMEOUT_SECONDS = 30


class UrllibDownloader:
    """Downloads files with ``urllib``."""

    def __init__(self, timeout: float = DOWNLOAD_TIMEOUT_SECONDS) -> None:
        self._timeout = timeout

    def download(self, url: str) -> bytes:
        """Fetch ``url`` and return the response body.

        Raises:
            DownloadError: On connection failures, malformed URLs or responses,
                and non-2xx responses.
        """
        try:
            request = Request(url, headers={"User-Agent": f"sheaf/{__version__}"})  # noqa: S310
            with urlopen(request, timeout=self._timeout) as response:  # noqa: S310
                # file:// responses carry no status
                status = getattr(response, "status", None) or 200
                if not 200 <= status < 300:
                    msg = f"failed to download `{url}`: HTTP {status}"
                    raise DownloadError(msg)
                return response.read()
        except URLError as e:
            # HTTPError is a URLError and covers 4xx and 5xx responses
            reason = getattr(e, "code", None) or e.reason
            msg = f"failed to download `{url}`: {reason}"
            raise DownloadError(msg) from e
        except TimeoutError as e:
            msg = f"failed to download `{url}`: timed out"
            raise DownloadError(msg) from e
        except (HTTPException, ValueError) as e:
            # InvalidURL is a ValueError, IncompleteRead an HTTPException
            msg = f"failed to download `{url}`: {e}"
            raise DownloadError(msg) from e


def lock_remote(source: Source, ctx: Context, downloader: Downloader) -> LockedSource:
    """Ensure a remote file is downloaded.

    In NORMAL mode an existing file is left alone. Otherwise the file is
    downloaded to a temporary path and renamed over the old one.

    Raises:
        DownloadError: If the download fails.
    """
    directory, file = remote_dir_and_file(ctx.download_dir, source.url)
    if ctx.mode == LockMode.NORMAL and file.exists():
        return LockedSource(dir=directory, file=file)

    data = downloader.download(source.url)
    with TempPath(file) as temp:
        temp.path.write_bytes(data)
        temp.persist()
    return LockedSource(dir=directory, file=file, outcome=InstallOutcome(InstallStatus.FETCHED))
