"""
Contact Registry Module
Reads, validates and appends contacts stored in the remote registry file
"""

import logging
import re
import uuid
from datetime import datetime, timezone
from typing import Optional, Tuple

from contactbook.blob_store import GitHubBlobStore, Revision
from contactbook.config import Settings
from contactbook.errors import DuplicateError, MalformedDataError, ValidationError
from contactbook.models import Contact, ContactSubmission, LoadedRegistry, LoadStatus, Registry, load_registry


logger = logging.getLogger(__name__)

NAME_PATTERN = re.compile(r"^[a-zA-Z\s\-.,'\"()]+$")
MIN_NUMBER_DIGITS = 5


def normalize_name(name: Optional[str]) -> str:
    # Trim and collapse internal whitespace runs.
    return " ".join((name or "").split())


def normalize_phone_number(number: Optional[str]) -> str:
    return re.sub(r"\D", "", number or "")


def compose_full_number(number: str, country_code: str) -> str:
    return (f"+{country_code}" if country_code else "") + number


def _utc_timestamp() -> str:
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class ContactRegistry:
    """Registry operations for a single request"""

    def __init__(self, store: GitHubBlobStore, settings: Settings):
        """
        Initialize the registry

        Args:
            store: Blob store holding the contacts file
            settings: Settings naming the file and branch
        """
        self.store = store
        self.settings = settings

    def _load(self) -> Tuple[LoadedRegistry, Optional[Revision]]:
        snapshot = self.store.fetch(self.settings.file_path, self.settings.branch)
        loaded = load_registry(snapshot.content if snapshot.exists else None)
        if loaded.status is LoadStatus.MALFORMED:
            logger.warning(
                "Contacts file %s is malformed, treating it as empty: %s",
                self.settings.file_path,
                loaded.error,
            )
        return loaded, snapshot.revision

    def list_contacts(self) -> Registry:
        """
        Read the current registry

        Returns:
            Registry with a reconciled count; empty when the file is absent or unreadable

        Raises:
            RemoteStoreError: If the contacts file cannot be fetched
        """
        loaded, _ = self._load()
        return loaded.registry

    @staticmethod
    def validate_submission(submission: ContactSubmission) -> Tuple[str, str, str]:
        """
        Normalize and validate a submission

        Args:
            submission: Raw submitted fields

        Returns:
            (normalized name, subscriber digits, full number)

        Raises:
            ValidationError: If the name or number has the wrong shape
        """
        name = normalize_name(submission.full_name)
        number = normalize_phone_number(submission.number)
        country_code = normalize_phone_number(submission.country_code)
        full_number = compose_full_number(number, country_code)

        if not name or not NAME_PATTERN.fullmatch(name):
            raise ValidationError(
                "Name can contain letters, spaces, and basic punctuation (-.,'\"()).",
                field="fullName",
            )

        if len(number) < MIN_NUMBER_DIGITS:
            raise ValidationError(
                f"Phone number must be at least {MIN_NUMBER_DIGITS} digits",
                field="number",
            )

        return name, number, full_number

    @staticmethod
    def find_duplicate(registry: Registry, name: str, full_number: str) -> Optional[Contact]:
        """Return the first stored contact sharing the name (any case) or the number digits"""
        name_key = name.lower()
        number_key = normalize_phone_number(full_number)
        for contact in registry.contacts:
            if (contact.full_name or "").lower() == name_key:
                return contact
            if normalize_phone_number(contact.number) == number_key:
                return contact
        return None

    def add_contact(self, submission: ContactSubmission) -> Registry:
        """
        Validate a submission, append it and commit the updated registry

        Args:
            submission: Raw submitted fields

        Returns:
            The registry as written

        Raises:
            ValidationError: If the name or number has the wrong shape
            DuplicateError: If the name or number is already stored
            MalformedDataError: If the stored file is JSON of an unexpected shape
            RemoteStoreError: If the fetch or the write fails (including a stale revision)
        """
        name, _, full_number = self.validate_submission(submission)

        loaded, revision = self._load()
        if not loaded.safe_to_overwrite:
            raise MalformedDataError(
                f"Refusing to overwrite {self.settings.file_path}: {loaded.error}"
            )
        registry = loaded.registry

        if self.find_duplicate(registry, name, full_number) is not None:
            raise DuplicateError("Contact with same name or number already exists!")

        contact = Contact(
            id=uuid.uuid4().hex,
            full_name=name,
            number=full_number,
            timestamp=_utc_timestamp(),
        )
        registry.append(contact)

        self.store.write(
            self.settings.file_path,
            self.settings.branch,
            registry.to_json(),
            message=f"Add contact: {name} ({full_number})",
            revision=revision,
        )
        logger.info("Added contact %s, registry now holds %d", contact.id, registry.count)
        return registry
