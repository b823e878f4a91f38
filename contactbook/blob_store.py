"""
Blob Store Module
Reads and writes a single file through the GitHub contents API
"""

import base64
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import quote

import requests

from contactbook.config import Settings
from contactbook.errors import RemoteStoreError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Revision:
    """Opaque revision tag (the blob sha) that must accompany an update"""

    sha: str


@dataclass(frozen=True)
class BlobSnapshot:
    """Current state of a remote file; `exists` is False when GitHub says 404"""

    exists: bool
    revision: Optional[Revision] = None
    content: Optional[str] = None

    @classmethod
    def missing(cls) -> "BlobSnapshot":
        return cls(exists=False)


def b64encode(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def b64decode(data: str) -> str:
    # GitHub wraps the base64 payload with newlines; b64decode drops them.
    # Undecodable bytes become U+FFFD so the JSON layer reports the file as malformed.
    return base64.b64decode(data or "").decode("utf-8", errors="replace")


class GitHubBlobStore:
    """Versioned key/value store backed by files in one GitHub repository"""

    def __init__(
        self,
        token: str,
        owner: str,
        repo: str,
        api_base: str = "https://api.github.com",
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the store

        Args:
            token: Bearer token with contents read/write access
            owner: Repository owner (user or organisation)
            repo: Repository name
            api_base: GitHub API root URL
            timeout: Request timeout in seconds, None to use the client default
            session: Optional requests session (injected by tests)
        """
        self.owner = owner
        self.repo = repo
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self._owns_session = session is None
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
            }
        )

    @classmethod
    def from_settings(cls, settings: Settings, session: Optional[requests.Session] = None) -> "GitHubBlobStore":
        return cls(
            token=settings.token,
            owner=settings.owner,
            repo=settings.repo,
            api_base=settings.api_base,
            timeout=settings.timeout,
            session=session,
        )

    def close(self) -> None:
        if self._owns_session:
            self.session.close()

    def _contents_url(self, path: str) -> str:
        return f"{self.api_base}/repos/{self.owner}/{self.repo}/contents/{quote(path, safe='/')}"

    def fetch(self, path: str, ref: str) -> BlobSnapshot:
        """
        Fetch the current content and revision of a file

        Args:
            path: File path inside the repository
            ref: Branch (or any git ref) to read from

        Returns:
            BlobSnapshot, with exists=False if the file is absent

        Raises:
            RemoteStoreError: On any non-success status other than 404
        """
        try:
            response = self.session.get(self._contents_url(path), params={"ref": ref}, timeout=self.timeout)
        except requests.RequestException as e:
            raise RemoteStoreError("GET", body=str(e)) from e

        logger.debug("GitHub GET %s@%s -> %s", path, ref, response.status_code)

        if response.status_code == 404:
            return BlobSnapshot.missing()
        if not response.ok:
            raise RemoteStoreError("GET", response.status_code, response.text)

        payload = response.json()
        return BlobSnapshot(
            exists=True,
            revision=Revision(payload["sha"]),
            content=b64decode(payload.get("content", "")),
        )

    def write(
        self,
        path: str,
        branch: str,
        content: str,
        message: str,
        revision: Optional[Revision] = None,
    ) -> Dict[str, Any]:
        """
        Commit a new version of a file

        Args:
            path: File path inside the repository
            branch: Branch to commit to
            content: New file content (text, encoded to base64 here)
            message: Commit message
            revision: Revision from the preceding fetch; required when the file exists

        Returns:
            GitHub's commit confirmation

        Raises:
            RemoteStoreError: If GitHub rejects the write (409 on a stale revision)
        """
        body: Dict[str, Any] = {
            "message": message,
            "content": b64encode(content),
            "branch": branch,
        }
        if revision is not None:
            body["sha"] = revision.sha

        try:
            response = self.session.put(self._contents_url(path), json=body, timeout=self.timeout)
        except requests.RequestException as e:
            raise RemoteStoreError("PUT", body=str(e)) from e

        logger.info("GitHub PUT %s@%s -> %s", path, branch, response.status_code)

        if response.status_code not in (200, 201):
            raise RemoteStoreError("PUT", response.status_code, response.text)
        return response.json()
