import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

import database
from config import (
    AUTH_RATE_LIMIT_MAX,
    CORS_ORIGINS,
    ENVIRONMENT,
    LOG_LEVEL,
    PORT,
    RATE_LIMIT_MAX,
    RATE_LIMIT_WINDOW_SECONDS,
)
from middleware import SECURITY_HEADERS, RateLimiter, check_limits
from routers import admin, auth, cart, chat, orders, products, user
from utils import utcnow

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger("kartmart")

STARTED_AT = time.monotonic()

limiter = RateLimiter(
    RATE_LIMIT_MAX, RATE_LIMIT_WINDOW_SECONDS,
    "Too many requests from this IP, please try again later.",
)
auth_limiter = RateLimiter(
    AUTH_RATE_LIMIT_MAX, RATE_LIMIT_WINDOW_SECONDS,
    "Too many authentication attempts, please try again later.",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting KartMart API in %s mode", ENVIRONMENT)
    if database.db is None:
        logger.warning("DATABASE_URL/DATABASE_NAME not set; running without a database")
    else:
        database.ensure_indexes()
    yield
    logger.info("Shutting down, closing database connection")
    database.close()


app = FastAPI(title="KartMart API", lifespan=lifespan)

app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


@app.middleware("http")
async def rate_limit(request: Request, call_next):
    limiters = [limiter]
    if request.url.path.startswith("/api/auth"):
        limiters.insert(0, auth_limiter)

    blocked, headers = check_limits(request, limiters)
    response = blocked or await call_next(request)
    response.headers.update(headers)
    return response


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers.update(SECURITY_HEADERS)
    return response


# Error envelope

@app.exception_handler(StarletteHTTPException)
async def http_error(request: Request, exc: StarletteHTTPException):
    message = exc.detail
    if exc.status_code == 404 and exc.detail == "Not Found":
        message = f"Route {request.url.path} not found"
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": message},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_error(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path"))
        message = f"{field}: {first.get('msg')}" if field else first.get("msg", message)
    return JSONResponse(status_code=400, content={"success": False, "message": message})


@app.exception_handler(Exception)
async def server_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"success": False, "message": str(exc)})


# Routes

app.include_router(auth.router)
app.include_router(products.router)
app.include_router(cart.router)
app.include_router(orders.router)
app.include_router(admin.router)
app.include_router(user.router)
app.include_router(chat.router)


@app.get("/")
def root():
    return {"success": True, "message": "KartMart API running"}


@app.get("/api/health")
def health():
    return {
        "success": True,
        "message": "Server is running",
        "timestamp": utcnow().isoformat(),
        "uptime": round(time.monotonic() - STARTED_AT, 3),
        "mongodb": "connected" if database.ping() else "disconnected",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=PORT)
