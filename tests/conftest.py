import asyncio
import itertools
from contextlib import asynccontextmanager

import pytest
import pytest_asyncio

from pmcore.db.database import Database
from pmcore.db.repositories import projects as project_repo
from pmcore.db.repositories import tasks as task_repo
from pmcore.db.repositories import users as user_repo
from pmcore.utils.settings import Settings, refresh_settings_cache


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch):
    """Keep cached settings from leaking between tests."""
    monkeypatch.delenv("STORE_OPERATION_TIMEOUT", raising=False)
    refresh_settings_cache()
    yield
    refresh_settings_cache()


@pytest.fixture
def sqlite_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'pm.db'}"


@pytest_asyncio.fixture
async def db(sqlite_url):
    database = Database(sqlite_url, settings=Settings(database_url=sqlite_url, pool_size=5))
    await database.create_all()
    try:
        yield database
    finally:
        await database.dispose()


@pytest.fixture
def slow_connect(monkeypatch):
    """Delay every read checkout on a database by ``delay`` seconds."""

    def _apply(database: Database, delay: float = 0.5):
        original = database.connect

        @asynccontextmanager
        async def _slow():
            await asyncio.sleep(delay)
            async with original() as conn:
                yield conn

        monkeypatch.setattr(database, "connect", _slow)

    return _apply


@pytest.fixture
def make_user(db):
    counter = itertools.count(1)

    async def _make(**overrides):
        n = next(counter)
        fields = {
            "name": f"User {n}",
            "email": f"user{n}@example.com",
            "password_hash": "hashed",
        }
        fields.update(overrides)
        return await user_repo.create_user(db, fields)

    return _make


@pytest.fixture
def make_project(db, make_user):
    counter = itertools.count(1)

    async def _make(**overrides):
        n = next(counter)
        if "created_by" not in overrides:
            overrides["created_by"] = (await make_user())["id"]
        fields = {"name": f"Project {n}", "description": f"Description for project {n}"}
        fields.update(overrides)
        return await project_repo.create_project(db, fields)

    return _make


@pytest.fixture
def make_task(db, make_project):
    counter = itertools.count(1)

    async def _make(project=None, **overrides):
        n = next(counter)
        if project is None:
            project = await make_project()
        fields = {
            "title": f"Task {n}",
            "project_id": project["id"],
            "created_by": project["created_by"],
        }
        fields.update(overrides)
        return await task_repo.create_task(db, fields)

    return _make
