"""
Data models for the stored contact registry and incoming submissions.

The registry file is untrusted input: `load_registry` validates it against
the schema and reports whether it was parsed, absent or malformed instead of
raising, so callers can decide what an unreadable file means for them.
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from contactbook.errors import MalformedDataError


logger = logging.getLogger(__name__)

class Contact(BaseModel):
    """One stored contact; unknown keys are kept so a rewrite never drops them"""

    model_config = ConfigDict(populate_by_name=True, extra="allow", coerce_numbers_to_str=True)

    id: Optional[str] = None
    full_name: Optional[str] = Field(default=None, alias="fullName")
    number: Optional[str] = None
    timestamp: Optional[str] = None

    def public_view(self) -> Dict[str, Optional[str]]:
        return {
            "id": self.id,
            "fullName": self.full_name,
            "number": self.number,
            "timestamp": self.timestamp,
        }


class Registry(BaseModel):
    """Decoded contacts file. `count` always equals len(contacts) after validation."""

    model_config = ConfigDict(extra="allow")

    count: int = 0
    contacts: List[Contact] = Field(default_factory=list)

    @field_validator("count", mode="before")
    @classmethod
    def _ignore_unusable_count(cls, value: Any) -> int:
        # The stored count is recomputed below; a junk value must not reject the file.
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        return 0

    @model_validator(mode="after")
    def _reconcile_count(self) -> "Registry":
        self.count = len(self.contacts)
        return self

    def append(self, contact: Contact) -> None:
        self.contacts.append(contact)
        self.count = len(self.contacts)

    def to_json(self) -> str:
        """Pretty-printed JSON in the stored file layout"""
        # Keys a stored contact never had are not written back as nulls.
        data: Dict[str, Any] = {
            "count": self.count,
            "contacts": [contact.model_dump(by_alias=True, exclude_unset=True) for contact in self.contacts],
        }
        data.update(self.model_extra or {})
        return json.dumps(data, indent=2, ensure_ascii=False)


class ContactSubmission(BaseModel):
    """Body of a POST to the registry endpoint, before normalization"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    full_name: Optional[str] = Field(default=None, alias="fullName")
    number: Optional[str] = None
    country_code: Optional[str] = Field(default=None, alias="countryCode")

    @field_validator("full_name", "number", "country_code", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Optional[str]:
        if value is None or isinstance(value, str):
            return value
        return str(value)

    @classmethod
    def from_payload(cls, payload: Any) -> "ContactSubmission":
        if not isinstance(payload, dict):
            payload = {}
        return cls.model_validate(payload)


class LoadStatus(str, Enum):
    PARSED = "parsed"
    EMPTY = "empty"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class LoadedRegistry:
    """Outcome of decoding the registry file"""

    status: LoadStatus
    registry: Registry
    error: Optional[MalformedDataError] = None

    @property
    def safe_to_overwrite(self) -> bool:
        """False when the file holds valid JSON in an unexpected shape; rewriting it would lose data"""
        return self.error is None or self.error.invalid_json


def load_registry(content: Optional[str]) -> LoadedRegistry:
    """
    Decode stored file content into a Registry

    Args:
        content: File text, or None when the file does not exist

    Returns:
        LoadedRegistry; EMPTY and MALFORMED both carry an empty registry
    """
    if content is None:
        return LoadedRegistry(LoadStatus.EMPTY, Registry())

    try:
        data = json.loads(content)
    except ValueError as e:
        logger.warning("Falling back to an empty registry, file is not JSON: %s", e)
        error = MalformedDataError(f"Stored registry is not JSON: {e}", invalid_json=True)
        return LoadedRegistry(LoadStatus.MALFORMED, Registry(), error)

    try:
        registry = Registry.model_validate(data)
    except ValidationError as e:
        error = MalformedDataError(f"Stored registry has an unexpected shape: {e.error_count()} error(s)")
        logger.warning("Falling back to an empty registry: %s", e)
        return LoadedRegistry(LoadStatus.MALFORMED, Registry(), error)

    return LoadedRegistry(LoadStatus.PARSED, registry)
