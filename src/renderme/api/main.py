from __future__ import annotations

from datetime import UTC, datetime

from dotenv import load_dotenv
from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest

from ..observability.metrics import metrics_middleware_factory
from .routers.auth import router as auth_router
from .routers.chat import router as chat_router
from .routers.documents import router as documents_router
from .routers.files import router as files_router
from .routers.usage import router as usage_router

load_dotenv()  # .env may carry DEEPSEEK_API_KEY, JWT_SECRET, REDIS_URL, ...

app = FastAPI(title="RenderMe Chat API", version="0.1.0")

app.middleware("http")(metrics_middleware_factory())

_ROUTERS = (auth_router, chat_router, usage_router, files_router, documents_router)
for _router in _ROUTERS:
    app.include_router(_router)
# Same routers under /api
for _router in _ROUTERS:
    app.include_router(_router, prefix="/api")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _health() -> dict:
    return {
        "status": "ok",
        "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
    }


def _metrics() -> Response:
    return Response(content=generate_latest(REGISTRY), media_type=CONTENT_TYPE_LATEST)


@app.get("/")
def root():
    return {"name": "RenderMe Chat API", "version": "0.1.0"}


app.add_api_route("/health", _health, methods=["GET"])
app.add_api_route("/api/health", _health, methods=["GET"])
app.add_api_route("/metrics", _metrics, methods=["GET"])
app.add_api_route("/api/metrics", _metrics, methods=["GET"])
