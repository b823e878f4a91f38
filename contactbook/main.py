"""
FastAPI Contact Book
Registry and vCard export endpoints backed by a JSON file in a GitHub repository
"""

import logging
import os
from typing import Any, Dict, Iterator, List

try:
    from dotenv import load_dotenv

    load_dotenv()
except Exception:
    # dotenv is optional on Vercel; env vars are injected there.
    pass

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import Headers

from contactbook.blob_store import GitHubBlobStore
from contactbook.config import DEFAULT_BRANCH, DEFAULT_FILE_PATH, Settings
from contactbook.contacts import ContactRegistry
from contactbook.errors import ContactBookError, DuplicateError, NotFoundError, RemoteStoreError, ValidationError
from contactbook.models import ContactSubmission
from contactbook.vcard_export import VCardExporter


logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# Initialize FastAPI app
app = FastAPI(
    title="Contact Book",
    description="Contact registry and vCard export stored in a GitHub repository file",
    version="1.0.0",
)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET,POST,OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


class PreflightCORSMiddleware(CORSMiddleware):
    """CORSMiddleware that answers accepted preflights with 204 and the registry's own allow-lists"""

    def preflight_response(self, request_headers: Headers) -> Response:
        response = super().preflight_response(request_headers)
        if response.status_code != 200:
            return response
        headers = dict(CORS_HEADERS)
        headers["Access-Control-Allow-Origin"] = response.headers["access-control-allow-origin"]
        if "vary" in response.headers:
            headers["Vary"] = response.headers["vary"]
        return Response(status_code=204, headers=headers)


origins_raw = os.getenv("CORS_ALLOW_ORIGINS", "*")
allow_origins: List[str] = [o.strip() for o in origins_raw.split(",") if o.strip()]
app.add_middleware(
    PreflightCORSMiddleware,
    allow_origins=allow_origins if allow_origins else ["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
    expose_headers=["Content-Disposition", "X-Contact-Count"],
)


# ---- Dependencies ----

def get_settings() -> Settings:
    """Settings are rebuilt for every request so a missing variable fails before any I/O."""
    return Settings.from_env()


def get_blob_store(settings: Settings = Depends(get_settings)) -> Iterator[GitHubBlobStore]:
    store = GitHubBlobStore.from_settings(settings)
    try:
        yield store
    finally:
        store.close()


@app.exception_handler(ContactBookError)
async def contact_book_error_handler(request: Request, exc: ContactBookError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# ---- Routes ----

@app.get("/health")
async def health_check() -> Dict[str, Any]:
    """
    Health check endpoint for monitoring

    Returns:
        Status and the non-secret parts of the configuration
    """
    return {
        "status": "running",
        "config": {
            "owner": os.getenv("REMOTE_OWNER", ""),
            "repo": os.getenv("REMOTE_REPO", ""),
            "branch": os.getenv("REMOTE_BRANCH") or DEFAULT_BRANCH,
            "file_path": os.getenv("REMOTE_FILE_PATH") or DEFAULT_FILE_PATH,
            "token_configured": bool(os.getenv("REMOTE_TOKEN")),
        },
    }


@app.options("/api/contacts")
@app.options("/contacts")
async def contacts_preflight() -> Response:
    return Response(status_code=204, headers=CORS_HEADERS)


@app.get("/api/contacts")
@app.get("/contacts")
def list_contacts(
    settings: Settings = Depends(get_settings),
    store: GitHubBlobStore = Depends(get_blob_store),
):
    """
    Return every stored contact

    Returns:
        Reconciled count and the public fields of each contact
    """
    try:
        registry = ContactRegistry(store, settings).list_contacts()
    except Exception as e:
        logger.exception("API error (/api/contacts)")
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "details": str(e)},
            headers=CORS_HEADERS,
        )

    return JSONResponse(
        content={
            "count": registry.count,
            "contacts": [contact.public_view() for contact in registry.contacts],
        },
        headers=CORS_HEADERS,
    )


@app.post("/api/contacts")
@app.post("/contacts")
async def add_contact(
    request: Request,
    settings: Settings = Depends(get_settings),
    store: GitHubBlobStore = Depends(get_blob_store),
):
    """
    Validate and store a new contact

    The body is read here rather than by FastAPI so that a body which is not
    JSON is treated as an empty submission (400) instead of a 422.

    Args:
        request: Request whose JSON body holds fullName, number and countryCode

    Returns:
        Success flag and the new contact count

    Raises:
        ValidationError: If the name or number is malformed (400)
        DuplicateError: If the name or number is already stored (400)
    """
    try:
        payload = await request.json()
    except ValueError:
        payload = None
    return await run_in_threadpool(_store_submission, payload, settings, store)


def _store_submission(payload: Any, settings: Settings, store: GitHubBlobStore) -> JSONResponse:
    try:
        submission = ContactSubmission.from_payload(payload)
        registry = ContactRegistry(store, settings).add_contact(submission)
    except (ValidationError, DuplicateError) as e:
        return JSONResponse(status_code=e.status_code, content=e.to_dict(), headers=CORS_HEADERS)
    except RemoteStoreError as e:
        if e.is_conflict:
            logger.warning("Contacts file changed during the update, write rejected: %s", e)
        else:
            logger.error("API error (/api/contacts): %s", e)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "details": e.message},
            headers=CORS_HEADERS,
        )
    except Exception as e:
        logger.exception("API error (/api/contacts)")
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "details": str(e)},
            headers=CORS_HEADERS,
        )

    return JSONResponse(
        content={
            "success": True,
            "count": registry.count,
            "message": "Contact saved successfully",
        },
        headers=CORS_HEADERS,
    )


@app.get("/api/export")
@app.get("/export")
def export_contacts(
    settings: Settings = Depends(get_settings),
    store: GitHubBlobStore = Depends(get_blob_store),
):
    """
    Download every stored contact as a vCard file

    Returns:
        text/vcard attachment with the total contact count in X-Contact-Count

    Raises:
        NotFoundError: If the file is missing or holds no contacts (404)
    """
    exporter = VCardExporter(store, settings)
    try:
        registry = exporter.load()
        document = exporter.export(registry)
    except NotFoundError:
        raise
    except Exception as e:
        logger.exception("Export failed")
        content: Dict[str, Any] = {"success": False, "error": "Failed to generate contact file"}
        if settings.expose_error_details:
            content["details"] = str(e)
        return JSONResponse(status_code=500, content=content)

    if document.rendered < document.total:
        logger.warning("Exported %d of %d contacts", document.rendered, document.total)

    return Response(
        content=document.body,
        media_type="text/vcard; charset=utf-8",
        headers={
            "Content-Disposition": f'attachment; filename="{settings.export_filename}.vcf"',
            "X-Contact-Count": str(document.total),
        },
    )


# Run with: uvicorn contactbook.main:app --reload
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
