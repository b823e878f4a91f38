from __future__ import annotations

import hashlib
import json
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient

from contactbook.blob_store import BlobSnapshot, Revision
from contactbook.config import Settings
from contactbook.errors import RemoteStoreError


class FakeBlobStore:
    """In-memory stand-in for GitHubBlobStore that enforces revisions like GitHub."""

    def __init__(self):
        self.files: Dict[Tuple[str, str], Tuple[str, str]] = {}
        self.fetch_calls: List[Tuple[str, str]] = []
        self.writes: List[Dict[str, Any]] = []
        self.after_fetch: Optional[Callable[[], None]] = None

    @staticmethod
    def _sha(content: str) -> str:
        return hashlib.sha1(content.encode("utf-8")).hexdigest()

    def seed(self, path: str, content: Any, branch: str = "main") -> str:
        text = content if isinstance(content, str) else json.dumps(content, indent=2)
        sha = self._sha(text + str(len(self.writes)))
        self.files[(path, branch)] = (sha, text)
        return sha

    def content(self, path: str, branch: str = "main") -> Optional[str]:
        entry = self.files.get((path, branch))
        return entry[1] if entry else None

    def fetch(self, path: str, ref: str) -> BlobSnapshot:
        self.fetch_calls.append((path, ref))
        entry = self.files.get((path, ref))
        snapshot = BlobSnapshot.missing() if entry is None else BlobSnapshot(True, Revision(entry[0]), entry[1])
        if self.after_fetch is not None:
            self.after_fetch()
        return snapshot

    def write(self, path, branch, content, message, revision=None):
        current = self.files.get((path, branch))
        if current is not None and (revision is None or revision.sha != current[0]):
            raise RemoteStoreError("PUT", 409, '{"message": "sha does not match"}')
        if current is None and revision is not None:
            raise RemoteStoreError("PUT", 404, '{"message": "Not Found"}')
        self.writes.append({"path": path, "branch": branch, "message": message, "revision": revision})
        sha = self.seed(path, content, branch)
        return {"content": {"sha": sha}, "commit": {"message": message}}

    def close(self) -> None:
        pass


@pytest.fixture()
def settings() -> Settings:
    return Settings(token="test-token", owner="octo", repo="contacts-db")


@pytest.fixture()
def fake_store() -> FakeBlobStore:
    return FakeBlobStore()


@pytest.fixture()
def client(settings, fake_store):
    from contactbook.main import app, get_blob_store, get_settings

    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_blob_store] = lambda: fake_store
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
