"""FastAPI application for the MakalahAI writing assistant."""

import logging
from pathlib import Path
from urllib.parse import quote

from fastapi import FastAPI, Request
from fastapi.responses import RedirectResponse
from fastapi.templating import Jinja2Templates

from app.routers import builder, export, history, tools
from config.settings import CHECKPOINT_DIR, LOG_LEVEL
from execution.builder_controller import BuilderSessions
from execution.checkpoint_store import CheckpointStore
from execution.generation_client import generate
from execution.usage_policy import UsageLedger, UsagePolicy

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

APP_DIR = Path(__file__).parent

app = FastAPI(title="MakalahAI Writing Assistant")

# Templates
templates = Jinja2Templates(directory=str(APP_DIR / "templates"))
app.state.templates = templates

# Collaborators shared by the routers; tests swap these on app.state
app.state.store = CheckpointStore(CHECKPOINT_DIR)
app.state.sessions = BuilderSessions()
app.state.policy = UsagePolicy()
app.state.ledger = UsageLedger()
app.state.generate = generate

# Include routers
app.include_router(history.router)
app.include_router(builder.router)
app.include_router(export.router)
app.include_router(tools.router)


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    """Handle ValueError from model operations as user-friendly redirects."""
    referer = request.headers.get("referer", "/").split("?")[0]
    return RedirectResponse(url=f"{referer}?error={quote(str(exc))}", status_code=303)
