"""Tests for the vCard export logic and the /api/export endpoint."""
from __future__ import annotations

import re

import pytest
import vobject

from contactbook.errors import NotFoundError
from contactbook.models import Contact, Registry
from contactbook.vcard_export import VCardExporter, format_note_date, split_name


PATH = "data/contacts.json"

ADA = {"id": "1", "fullName": "Ada Lovelace", "number": "15551234567", "timestamp": "2024-03-05T12:00:00.000Z"}
GRACE = {"id": "2", "fullName": "Grace Brewster Murray Hopper", "number": "+1 (555) 765-4321", "timestamp": "garbage"}
LINUS = {"id": "3", "fullName": "Linus", "number": "", "timestamp": None}


def _registry(*contacts) -> dict:
    return {"count": len(contacts), "contacts": list(contacts)}


class TestHelpers:
    def test_split_name(self):
        assert split_name("Ada Lovelace") == ("Ada", "Lovelace")
        assert split_name("  Grace  Brewster Hopper ") == ("Grace", "Brewster Hopper")
        assert split_name("Linus") == ("Linus", "")
        assert split_name(None) == ("", "")

    def test_note_date(self):
        assert format_note_date("2024-03-05T12:00:00.000Z") == "3/5/2024"
        assert format_note_date("not a date") == ""
        assert format_note_date(None) == ""

    def test_note_date_is_utc(self):
        assert format_note_date("2024-03-05T23:00:00-05:00") == "3/6/2024"
        assert format_note_date("2024-03-06T01:30:00+02:00") == "3/5/2024"


class TestRender:
    def test_single_contact_card(self, fake_store, settings):
        exporter = VCardExporter(fake_store, settings)
        card_text = exporter.render_contact(Contact.model_validate(ADA))

        card = vobject.readOne(card_text)
        assert card.n.value.given == "Ada"
        assert card.n.value.family == "Lovelace"
        phones = {tel.params["TYPE"][0].upper(): tel.value for tel in card.contents["tel"]}
        assert phones == {"CELL": "15551234567", "WORK": "15551234567"}
        assert card.note.value == "Added to the contact database on 3/5/2024"

    def test_number_formatting_stripped(self, fake_store, settings):
        card = vobject.readOne(VCardExporter(fake_store, settings).render_contact(Contact.model_validate(GRACE)))
        assert card.n.value.family == "Brewster Murray Hopper"
        assert {tel.value for tel in card.contents["tel"]} == {"15557654321"}
        assert card.note.value == "Added to the contact database"

    def test_no_digits_no_phone(self, fake_store, settings):
        card = vobject.readOne(VCardExporter(fake_store, settings).render_contact(Contact.model_validate(LINUS)))
        assert "tel" not in card.contents

    def test_failures_are_reported_per_contact(self, fake_store, settings, monkeypatch):
        exporter = VCardExporter(fake_store, settings)
        original = exporter.render_contact

        def flaky(contact):
            if contact.id == "2":
                raise ValueError("cannot render")
            return original(contact)

        monkeypatch.setattr(exporter, "render_contact", flaky)
        registry = Registry.model_validate(_registry(ADA, GRACE, LINUS))

        results = list(exporter.render_all(registry.contacts))
        assert [r.ok for r in results] == [True, False, True]
        assert isinstance(results[1].error, ValueError)

        document = exporter.export(registry)
        assert document.total == 3
        assert document.rendered == 2
        assert document.body.count("BEGIN:VCARD") == 2


class TestLoad:
    def test_missing_file(self, fake_store, settings):
        with pytest.raises(NotFoundError) as excinfo:
            VCardExporter(fake_store, settings).load()
        assert excinfo.value.message == "No contacts file found on GitHub."
        assert PATH in excinfo.value.suggestion

    def test_empty_registry(self, fake_store, settings):
        fake_store.seed(PATH, _registry())
        with pytest.raises(NotFoundError) as excinfo:
            VCardExporter(fake_store, settings).load()
        assert excinfo.value.message == "No contacts available to export"

    def test_malformed_file_reports_no_contacts(self, fake_store, settings):
        fake_store.seed(PATH, "{{{")
        with pytest.raises(NotFoundError) as excinfo:
            VCardExporter(fake_store, settings).load()
        assert excinfo.value.message == "No contacts available to export"


class TestExportEndpoint:
    def test_single_contact(self, client, fake_store):
        fake_store.seed(PATH, _registry(ADA))

        resp = client.get("/api/export")

        assert resp.status_code == 200
        assert resp.headers["content-type"] == "text/vcard; charset=utf-8"
        assert resp.headers["content-disposition"] == 'attachment; filename="contacts.vcf"'
        assert resp.headers["x-contact-count"] == "1"
        assert resp.text.count("BEGIN:VCARD") == 1
        assert "Ada" in resp.text
        assert "Lovelace" in resp.text
        assert "15551234567" in resp.text

    def test_cards_joined_with_newline(self, client, fake_store):
        fake_store.seed(PATH, _registry(ADA, GRACE))
        body = client.get("/api/export").text
        assert re.findall(r"^FN:(.*?)\r?$", body, re.M) == ["Ada Lovelace", "Grace Brewster Murray Hopper"]

    def test_zero_contacts(self, client, fake_store):
        fake_store.seed(PATH, _registry())
        resp = client.get("/api/export")
        assert resp.status_code == 404
        assert resp.json() == {
            "success": False,
            "error": "No contacts available to export",
            "suggestion": "Add contacts first before exporting",
        }

    def test_missing_file(self, client):
        resp = client.get("/api/export")
        assert resp.status_code == 404
        assert resp.json()["error"] == "No contacts file found on GitHub."

    def test_one_bad_contact_is_skipped(self, client, fake_store, monkeypatch):
        fake_store.seed(PATH, _registry(ADA, GRACE, LINUS))
        original = VCardExporter.render_contact

        def flaky(self, contact):
            if contact.id == "2":
                raise RuntimeError("render failed")
            return original(self, contact)

        monkeypatch.setattr(VCardExporter, "render_contact", flaky)

        resp = client.get("/api/export")

        assert resp.status_code == 200
        assert resp.text.count("BEGIN:VCARD") == 2
        assert resp.headers["x-contact-count"] == "3"

    def test_unexpected_failure_hides_details(self, client, fake_store, monkeypatch):
        def broken(path, ref):
            raise RuntimeError("network down")

        monkeypatch.setattr(fake_store, "fetch", broken)
        resp = client.get("/api/export")
        assert resp.status_code == 500
        assert resp.json() == {"success": False, "error": "Failed to generate contact file"}


def test_details_exposed_in_development(fake_store):
    from fastapi.testclient import TestClient

    from contactbook.config import Settings
    from contactbook.main import app, get_blob_store, get_settings

    def broken(path, ref):
        raise RuntimeError("network down")

    fake_store.fetch = broken
    app.dependency_overrides[get_settings] = lambda: Settings(token="t", owner="o", repo="r", app_env="development")
    app.dependency_overrides[get_blob_store] = lambda: fake_store
    try:
        with TestClient(app) as c:
            resp = c.get("/api/export")
    finally:
        app.dependency_overrides.clear()

    assert resp.status_code == 500
    assert resp.json()["details"] == "network down"
