import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse

import db
from app.errors import ContractViolation, GratefulError
from app.services.dispatcher import EventDispatcher
from app.utils.discord import DiscordClient
from config import settings

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
_LOGGER = logging.getLogger(__name__)

app = FastAPI()

# DB connections are managed lazily; schema is managed via Alembic migrations

# One Discord client (and its HTTP session) per process
_discord_client: DiscordClient | None = None

def get_discord_client() -> DiscordClient:
    global _discord_client
    if _discord_client is None:
        _discord_client = DiscordClient.from_settings(settings)
    return _discord_client

@app.on_event("shutdown")
async def shutdown_event():
    global _discord_client
    if _discord_client is not None:
        _discord_client.close()
        _discord_client = None
    await db.dispose_engine()

# --------------------------------------------
# Per-request dispatcher over shared collaborators
# --------------------------------------------

def get_dispatcher() -> EventDispatcher:
    if not settings.DISCORD_PUBLIC_KEY:
        raise RuntimeError("DISCORD_PUBLIC_KEY not set")
    return EventDispatcher(
        public_key=settings.DISCORD_PUBLIC_KEY,
        client=get_discord_client(),
        users_store=db.KvStore(settings.USERS_NAMESPACE, page_size=settings.KV_LIST_PAGE_SIZE),
        entries_store=db.KvStore(settings.ENTRIES_NAMESPACE),
    )

# --------------------------------------------
# Errors always leave with a JSON body
# --------------------------------------------

@app.exception_handler(GratefulError)
async def grateful_error_handler(request: Request, exc: GratefulError):
    if isinstance(exc, ContractViolation):
        _LOGGER.error("Contract violation: %s", exc, exc_info=exc)
    else:
        _LOGGER.warning("Error response (%d): %s", exc.status_code, exc)
    return JSONResponse({"error": str(exc)}, status_code=exc.status_code)


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    _LOGGER.error("Unhandled error: %s", exc, exc_info=exc)
    return JSONResponse({"error": "Internal server error"}, status_code=500)

# --------------------------------------------
# Endpoints
# --------------------------------------------

@app.get("/")
async def install_redirect():
    return RedirectResponse(settings.install_url, status_code=308)


@app.post("/")
async def interactions(request: Request):
    dispatcher = get_dispatcher()
    raw_body = await request.body()
    response = await dispatcher.handle(request.headers, raw_body)
    payload = response.to_wire()
    _LOGGER.debug("Response: %s", payload)
    return JSONResponse(payload)
