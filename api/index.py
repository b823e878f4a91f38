"""Vercel Serverless Function entrypoint.

This exposes the FastAPI `app` for the Python runtime (ASGI).
Routes are rewritten in `vercel.json` so `/api/contacts` and `/api/export` map here.
"""

from contactbook.main import app as fastapi_app

app = fastapi_app
