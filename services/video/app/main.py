import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI

# Configure application logging so pipeline logs are visible
logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(name)s: %(message)s")
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from app.config import Settings
from app.database import close_db, init_db
from app.rate_limit import limiter
from app.video.dependencies import get_settings
from app.video.router import router as video_router
from shared.middleware import error_envelope_middleware, request_id_middleware


# ── OpenAPI metadata ──────────────────────────────────────────────────────────

_DESCRIPTION = """
## Tubely Video Service

Video hosting backend: drafts, thumbnails and video ingestion.

* **Upload** — multipart MP4 upload (≤ 1 GiB), staged locally, probed with
  ffprobe for orientation (landscape / portrait / other) and remuxed with
  ffmpeg for fast-start playback before it is stored in S3.
* **Thumbnails** — JPEG/PNG served from `/assets`.
* **Secure URLs** — stored videos are returned as S3 presigned URLs valid
  for one hour.

### Authentication
All endpoints require:
```
Authorization: Bearer <access_token>
```

### Error shape
```json
{ "detail": "Human-readable message" }
```
"""

_TAGS_METADATA = [
    {
        "name": "videos",
        "description": "Create video drafts, upload media and thumbnails, fetch signed URLs.",
    },
]


# ── Health schema ─────────────────────────────────────────────────────────────

class HealthResponse(BaseModel):
    status: str
    service: str


# ── App factory ───────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db(app.state.settings.video_database_url)
    yield
    await close_db()


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(
        title="Tubely Video Service",
        version="1.0.0",
        description=_DESCRIPTION,
        openapi_tags=_TAGS_METADATA,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Middleware (applied in reverse-registration order: last added = outermost)
    app.add_middleware(SlowAPIMiddleware)
    app.middleware("http")(request_id_middleware)
    app.middleware("http")(error_envelope_middleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        max_age=600,
    )

    app.include_router(video_router, prefix="/api/v1")

    assets_root = Path(settings.assets_root)
    assets_root.mkdir(parents=True, exist_ok=True)
    app.mount("/assets", StaticFiles(directory=assets_root), name="assets")

    @app.get("/health", response_model=HealthResponse, tags=["health"])
    async def health() -> HealthResponse:
        return HealthResponse(status="ok", service="video")

    return app


app = create_app()
