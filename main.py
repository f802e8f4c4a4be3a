# -*- coding: utf-8 -*-
# main.py: Green City Connect backend (resilient startup, one AppState per process)

import asyncio
import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

import config
from errors import AppError
from state import AppState, set_state
from storage import make_store
from workflow import make_verifier

import admin_metrics_routes
import admin_routes
import auth_routes
import booking_routes
import complaint_routes
import health_routes
import inbox_routes
import payment_routes
import routes_public_config
import subscription_routes
import waste_routes

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger("greencity")

VERSION = "1.0.0"
STARTUP_ERROR = ""


async def _open_store():
    """Warm the store with retries; a cold database may need a few seconds."""
    tries = max(config.STORE_WARMUP_TRIES, 1)
    for i in range(tries):
        try:
            return make_store(config.STORE_BACKEND)
        except ValueError:
            raise
        except Exception as e:
            if i + 1 == tries:
                raise
            logger.warning("store warm-up attempt %s/%s failed: %s", i + 1, tries, e)
            await asyncio.sleep(config.STORE_WARMUP_DELAY)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Build the store, the payment verifier and the AppState, then seed the
    catalog. Startup errors are kept for the root endpoint and re-raised.
    """
    global STARTUP_ERROR
    try:
        store = await _open_store()
        state = AppState(store, verifier=make_verifier())
        state.ensure_seed()
        if config.SEED_DEMO_DATA:
            state.seed_demo()
        set_state(state)
        STARTUP_ERROR = ""
        logger.info("Started with %s store and %s verifier", config.STORE_BACKEND, state.verifier.name)
    except Exception:
        STARTUP_ERROR = traceback.format_exc()
        logger.error("Startup failed:\n%s", STARTUP_ERROR)
        raise
    yield
    set_state(None)


app = FastAPI(title="Green City Connect Backend", version=VERSION, lifespan=lifespan)

# --------------------------------------------------------------------------------------
# CORS
# --------------------------------------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=86400,
)


# --------------------------------------------------------------------------------------
# Errors: every domain error leaves as {"detail", "code"}
# --------------------------------------------------------------------------------------
@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse({"detail": exc.message, "code": exc.code}, status_code=exc.status_code, headers=headers)


@app.get("/")
def root():
    return {"ok": True, "service": "greencity-backend", "version": VERSION,
            "startup_error": STARTUP_ERROR[:4000]}


# --------------------------------------------------------------------------------------
# Routers
# --------------------------------------------------------------------------------------
for module in (
    health_routes,
    auth_routes,
    routes_public_config,
    waste_routes,
    booking_routes,
    payment_routes,
    subscription_routes,
    complaint_routes,
    inbox_routes,
    admin_routes,
    admin_metrics_routes,
):
    app.include_router(module.router)
