"""vCard Export Module.

Renders the stored contacts as one downloadable vCard document.

Key features:
- One card per contact, built with vobject
- Each contact renders independently; a failure skips that contact only
- The same digits are written as both a cell and a work phone
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Iterator, List, Optional

import vobject
from vobject.vcard import Name

from contactbook.blob_store import GitHubBlobStore
from contactbook.config import Settings
from contactbook.errors import NotFoundError
from contactbook.models import Contact, LoadStatus, Registry, load_registry


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenderResult:
    """Outcome of rendering one contact: exactly one of card/error is set"""

    contact: Contact
    card: Optional[str] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class ExportDocument:
    body: str
    total: int
    rendered: int


def split_name(full_name: Optional[str]) -> tuple[str, str]:
    """First word is the given name, the remaining words form the family name."""
    parts = (full_name or "").split()
    if not parts:
        return "", ""
    return parts[0], " ".join(parts[1:])


def format_note_date(timestamp: Optional[str]) -> str:
    """Return the UTC date as M/D/YYYY for a parseable ISO-8601 timestamp, else an empty string."""
    if not timestamp:
        return ""
    try:
        parsed = datetime.fromisoformat(timestamp.strip().replace("Z", "+00:00"))
    except ValueError:
        return ""
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return f"{parsed.month}/{parsed.day}/{parsed.year}"


class VCardExporter:
    """Turn the contacts file into a vCard document."""

    def __init__(self, store: GitHubBlobStore, settings: Settings):
        self.store = store
        self.settings = settings

    def load(self) -> Registry:
        """Fetch the registry, raising NotFoundError when there is nothing to export."""
        snapshot = self.store.fetch(self.settings.file_path, self.settings.branch)
        if not snapshot.exists:
            raise NotFoundError(
                "No contacts file found on GitHub.",
                suggestion=f'Initialize {self.settings.file_path} with {{ "count": 0, "contacts": [] }}.',
            )

        loaded = load_registry(snapshot.content)
        if loaded.status is LoadStatus.MALFORMED:
            logger.warning("Contacts file %s is malformed: %s", self.settings.file_path, loaded.error)

        if not loaded.registry.contacts:
            raise NotFoundError(
                "No contacts available to export",
                suggestion="Add contacts first before exporting",
            )
        return loaded.registry

    def render_contact(self, contact: Contact) -> str:
        card = vobject.vCard()

        given, family = split_name(contact.full_name)
        card.add("n").value = Name(family=family, given=given)
        card.add("fn").value = " ".join([given, family]).strip()

        digits = re.sub(r"\D", "", contact.number or "")
        if digits:
            for phone_type in ("CELL", "WORK"):
                tel = card.add("tel")
                tel.value = digits
                tel.type_param = phone_type

        note_date = format_note_date(contact.timestamp)
        note = self.settings.note_attribution
        if note_date:
            note = f"{note} on {note_date}"
        card.add("note").value = note

        return card.serialize()

    def render_all(self, contacts: Iterable[Contact]) -> Iterator[RenderResult]:
        for contact in contacts:
            try:
                yield RenderResult(contact, card=self.render_contact(contact))
            except Exception as e:
                yield RenderResult(contact, error=e)

    def export(self, registry: Registry) -> ExportDocument:
        """
        Render every contact and join the cards.

        Contacts that fail to render are logged and left out; `total` still
        reports every stored contact.
        """
        cards: List[str] = []
        for result in self.render_all(registry.contacts):
            if result.ok:
                cards.append(result.card)
            else:
                logger.error("Error processing contact %s: %s", result.contact.id, result.error)

        return ExportDocument(body="\n".join(cards), total=len(registry.contacts), rendered=len(cards))
