"""
Configuration Module
Builds the per-request settings from environment variables
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from contactbook.errors import ConfigurationError


DEFAULT_BRANCH = "main"
DEFAULT_FILE_PATH = "data/contacts.json"
DEFAULT_API_BASE = "https://api.github.com"
DEFAULT_EXPORT_FILENAME = "contacts"
DEFAULT_NOTE_ATTRIBUTION = "Added to the contact database"

REQUIRED_VARIABLES = ("REMOTE_TOKEN", "REMOTE_OWNER", "REMOTE_REPO")


@dataclass(frozen=True)
class Settings:
    """Everything a handler needs to reach the contacts file"""

    token: str
    owner: str
    repo: str
    branch: str = DEFAULT_BRANCH
    file_path: str = DEFAULT_FILE_PATH
    api_base: str = DEFAULT_API_BASE
    timeout: Optional[float] = None
    export_filename: str = DEFAULT_EXPORT_FILENAME
    note_attribution: str = DEFAULT_NOTE_ATTRIBUTION
    app_env: str = "production"

    @property
    def expose_error_details(self) -> bool:
        return self.app_env == "development"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Read settings from the environment

        Args:
            environ: Mapping to read from, defaults to os.environ

        Returns:
            Validated settings

        Raises:
            ConfigurationError: If REMOTE_TOKEN, REMOTE_OWNER or REMOTE_REPO is missing
        """
        env = os.environ if environ is None else environ

        def _get(name: str, default: str = "") -> str:
            return (env.get(name) or "").strip() or default

        missing = [name for name in REQUIRED_VARIABLES if not _get(name)]
        if missing:
            raise ConfigurationError(
                "Missing GitHub configuration. Set REMOTE_TOKEN, REMOTE_OWNER, REMOTE_REPO "
                "(and optionally REMOTE_BRANCH, REMOTE_FILE_PATH). "
                f"Missing: {', '.join(missing)}."
            )

        timeout_raw = _get("REMOTE_TIMEOUT_SECONDS")
        try:
            timeout = float(timeout_raw) if timeout_raw else None
        except ValueError as e:
            raise ConfigurationError(
                f"REMOTE_TIMEOUT_SECONDS must be a number, got {timeout_raw!r}"
            ) from e

        return cls(
            token=_get("REMOTE_TOKEN"),
            owner=_get("REMOTE_OWNER"),
            repo=_get("REMOTE_REPO"),
            branch=_get("REMOTE_BRANCH", DEFAULT_BRANCH),
            file_path=_get("REMOTE_FILE_PATH", DEFAULT_FILE_PATH),
            api_base=_get("REMOTE_API_BASE", DEFAULT_API_BASE).rstrip("/"),
            timeout=timeout,
            export_filename=_get("EXPORT_FILENAME", DEFAULT_EXPORT_FILENAME),
            note_attribution=_get("EXPORT_NOTE_ATTRIBUTION", DEFAULT_NOTE_ATTRIBUTION),
            app_env=_get("APP_ENV", "production").lower(),
        )
