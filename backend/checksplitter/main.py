import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.types import ASGIApp, Receive, Scope, Send

from checksplitter.api.auth import router as auth_router
from checksplitter.api.friends import router as friends_router
from checksplitter.api.receipts import router as receipts_router
from checksplitter.api.assignments import router as assignments_router
from checksplitter.core.config import settings
from checksplitter.core.errors import SplitterError

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="OurCheckSplitter API", version="0.1.0")

cors_origins = settings.cors_origins.split(",")


class TimingMiddleware:
    """Lightweight ASGI middleware, no BaseHTTPMiddleware overhead."""
    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send):
        if scope["type"] != "http":
            return await self.app(scope, receive, send)

        t0 = time.perf_counter()
        status_code = 0

        async def send_wrapper(message):
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
            await send(message)

        await self.app(scope, receive, send_wrapper)
        ms = int((time.perf_counter() - t0) * 1000)
        method = scope.get("method", "?")
        path = scope.get("path", "?")
        qs = scope.get("query_string", b"").decode()
        qs_str = f"?{qs}" if qs else ""
        logger.info(f"{method} {path}{qs_str} -> {status_code} in {ms}ms")


app.add_middleware(TimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SplitterError)
async def splitter_error_handler(request: Request, exc: SplitterError):
    if exc.status_code >= 409:
        logger.warning(f"{request.method} {request.url.path}: {exc.detail}")
    body = {"detail": exc.detail}
    warnings = getattr(exc, "warnings", None)
    if warnings:
        body["warnings"] = [
            {"code": w.code, "message": w.message, "amount": str(w.amount)} for w in warnings
        ]
    return JSONResponse(status_code=exc.status_code, content=body)


app.include_router(auth_router)
app.include_router(friends_router)
app.include_router(receipts_router)
app.include_router(assignments_router)


@app.get("/api/health")
async def health():
    return {"status": "ok"}
