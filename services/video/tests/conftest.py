import os
import tempfile

# Must be set before app modules are imported: the rate limiter and the
# module-level app read them at import time.
os.environ.setdefault("ENV_NAME", "development")
os.environ.setdefault("ASSETS_ROOT", tempfile.mkdtemp(prefix="tubely-assets-"))

import uuid
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio
from fastapi import Depends
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from app.config import Settings
from app.database import get_db
from app.main import create_app
from app.staging import StagingStore
from app.video.dependencies import get_object_store, get_pipeline, get_settings
from app.video.models import Video
from app.video.pipeline import VideoIngestionPipeline
from app.video.service import SqlVideoRepository
from fakes import FakeObjectStore, FakeProbe, FakeRemuxer
from shared.database.postgres import Base

TEST_BUCKET = "tubely-test"
TEST_DATABASE_URL = "sqlite+aiosqlite://"


# ── Fixtures ─────────────────────────────────────────────────────────────────

@pytest.fixture
def owner_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def staging_dir(tmp_path: Path) -> Path:
    path = tmp_path / "staging"
    path.mkdir()
    return path


@pytest.fixture
def store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture
def probe() -> FakeProbe:
    return FakeProbe()


@pytest.fixture
def remuxer() -> FakeRemuxer:
    return FakeRemuxer()


@pytest.fixture
def settings(tmp_path: Path, staging_dir: Path) -> Settings:
    return Settings(
        video_database_url=TEST_DATABASE_URL,
        s3_bucket=TEST_BUCKET,
        staging_dir=str(staging_dir),
        assets_root=str(tmp_path / "assets"),
        public_base_url="http://testserver",
    )


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_video(
    session_factory: async_sessionmaker[AsyncSession],
    owner_id: uuid.UUID,
) -> Video:
    async with session_factory() as session:
        video = Video(user_id=owner_id, title="Boots on the ground")
        session.add(video)
        await session.commit()
        await session.refresh(video)
    return video


@pytest_asyncio.fixture
async def async_client(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    store: FakeObjectStore,
    probe: FakeProbe,
    remuxer: FakeRemuxer,
) -> AsyncGenerator[AsyncClient, None]:
    app = create_app(settings)

    async def _get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    def _get_pipeline(db: AsyncSession = Depends(get_db)) -> VideoIngestionPipeline:
        return VideoIngestionPipeline(
            videos=SqlVideoRepository(db),
            store=store,
            probe=probe,
            remuxer=remuxer,
            staging=StagingStore(settings.staging_dir),
            bucket=settings.s3_bucket,
            max_upload_bytes=settings.max_upload_bytes,
        )

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_object_store] = lambda: store
    app.dependency_overrides[get_pipeline] = _get_pipeline

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
