import asyncio
import uuid

import pytest
import sqlalchemy.exc
from sqlalchemy import text

from pmcore.db.database import Database
from pmcore.db.errors import ConstraintViolationError, StorageError, ValidationError
from pmcore.db.repositories.users import user_store
from pmcore.db.schemas import QueryFilters
from pmcore.utils.settings import Settings


@pytest.mark.asyncio
async def test_create_sets_id_and_equal_timestamps(db):
    row = await user_store(db).create({"name": "Ada", "email": "ada@example.com", "password_hash": "h"})
    assert isinstance(row["id"], uuid.UUID)
    assert row["created_at"] == row["updated_at"]
    assert row["role"] == "member"
    assert row["is_active"] is True


@pytest.mark.asyncio
async def test_create_ignores_caller_id_and_timestamps(db):
    forced = uuid.uuid4()
    row = await user_store(db).create({
        "id": forced,
        "created_at": "2000-01-01T00:00:00",
        "name": "Ada",
        "email": "ada@example.com",
        "password_hash": "h",
    })
    assert row["id"] != forced
    assert row["created_at"].year != 2000


@pytest.mark.asyncio
async def test_round_trip(db):
    store = user_store(db)
    created = await store.create({"name": "Ada", "email": "ada@example.com", "password_hash": "h", "department": "R&D"})
    found = await store.find_by_id(created["id"])
    assert found == created
    assert await store.find_by_id(str(created["id"])) == created


@pytest.mark.asyncio
@pytest.mark.parametrize("fields", [{}, {"id": uuid.uuid4()}, {"created_at": "2020-01-01", "updated_at": "2020-01-01"}])
async def test_empty_field_sets_rejected(db, make_user, fields):
    user = await make_user()
    store = user_store(db)
    with pytest.raises(ValidationError):
        await store.create(fields)
    with pytest.raises(ValidationError):
        await store.update(user["id"], fields)


@pytest.mark.asyncio
async def test_unknown_columns_rejected(db, make_user):
    user = await make_user()
    store = user_store(db)
    with pytest.raises(ValidationError):
        await store.create({"name": "x", "email": "x@example.com", "password_hash": "h", "nickname": "x"})
    with pytest.raises(ValidationError):
        await store.update(user["id"], {"nickname": "x"})


@pytest.mark.asyncio
async def test_update_is_partial_and_refreshes_updated_at(db, make_user):
    user = await make_user(department="Ops")
    updated = await user_store(db).update(user["id"], {"title": "Lead"})
    assert updated["title"] == "Lead"
    assert updated["department"] == "Ops"
    assert updated["id"] == user["id"]
    assert updated["created_at"] == user["created_at"]
    assert updated["updated_at"] > user["updated_at"]


@pytest.mark.asyncio
async def test_not_found_is_not_an_error(db):
    store = user_store(db)
    missing = uuid.uuid4()
    assert await store.find_by_id(missing) is None
    assert await store.update(missing, {"name": "Nobody"}) is None
    assert await store.delete(missing) is False


@pytest.mark.asyncio
@pytest.mark.parametrize("bad_id", ["not-a-uuid", "", "1; DROP TABLE users", None])
async def test_malformed_ids_behave_like_missing_rows(db, bad_id):
    store = user_store(db)
    assert await store.find_by_id(bad_id) is None
    assert await store.update(bad_id, {"name": "Nobody"}) is None
    assert await store.delete(bad_id) is False


@pytest.mark.asyncio
async def test_delete_twice(db, make_user):
    user = await make_user()
    store = user_store(db)
    assert await store.delete(user["id"]) is True
    assert await store.delete(user["id"]) is False
    assert await store.find_by_id(user["id"]) is None


@pytest.mark.asyncio
async def test_unique_violation_wrapped(db, make_user):
    await make_user(email="dup@example.com")
    with pytest.raises(ConstraintViolationError) as exc:
        await user_store(db).create({"name": "Dup", "email": "dup@example.com", "password_hash": "h"})
    assert isinstance(exc.value, StorageError)
    assert isinstance(exc.value.__cause__, sqlalchemy.exc.IntegrityError)
    assert exc.value.orig is exc.value.__cause__


@pytest.mark.asyncio
async def test_check_constraint_violation_wrapped(db, make_user):
    user = await make_user()
    with pytest.raises(ConstraintViolationError):
        await user_store(db).update(user["id"], {"role": "overlord"})


@pytest.mark.asyncio
@pytest.mark.parametrize("sort_by", ["password_hash", "name; DROP TABLE users", "nonexistent"])
async def test_sort_outside_allow_list_rejected(db, sort_by):
    with pytest.raises(ValidationError):
        await user_store(db).list(QueryFilters(sort_by=sort_by))


@pytest.mark.asyncio
async def test_malformed_filter_value_rejected(db):
    from pmcore.db.repositories.tasks import task_store

    with pytest.raises(ValidationError):
        await task_store(db).list(QueryFilters.from_params(project_id="nope"))


@pytest.mark.asyncio
async def test_unknown_filter_keys_ignored(db, make_user):
    await make_user()
    result = await user_store(db).list(QueryFilters.from_params(favourite_colour="blue"))
    assert result.total == 1


@pytest.mark.asyncio
async def test_operation_timeout_raises_builtin_timeout(db, make_user, slow_connect):
    user = await make_user()
    slow_connect(db, delay=1.0)
    store = user_store(db)
    with pytest.raises(TimeoutError):
        await store.find_by_id(user["id"], timeout=0.05)
    with pytest.raises(TimeoutError):
        await store.list(timeout=0.05)


@pytest.mark.asyncio
async def test_default_timeout_comes_from_settings(sqlite_url, slow_connect):
    database = Database(sqlite_url, settings=Settings(database_url=sqlite_url, operation_timeout=0.05))
    try:
        await database.create_all()
        slow_connect(database, delay=1.0)
        with pytest.raises(TimeoutError):
            await user_store(database).find_by_id(uuid.uuid4())
        # an explicit timeout overrides the default
        assert await user_store(database).find_by_id(uuid.uuid4(), timeout=5) is None
    finally:
        await database.dispose()


@pytest.mark.asyncio
async def test_pool_exhaustion_surfaces_storage_error(sqlite_url):
    settings = Settings(database_url=sqlite_url, pool_size=1, max_overflow=0, pool_timeout=0.2)
    database = Database(sqlite_url, settings=settings)
    try:
        await database.create_all()
        async with database.connect() as held:
            await held.execute(text("SELECT 1"))
            with pytest.raises(StorageError) as exc:
                await user_store(database).list()
            assert isinstance(exc.value.__cause__, sqlalchemy.exc.TimeoutError)
        # the held connection went back to the pool
        assert (await user_store(database).list()).total == 0
    finally:
        await database.dispose()


@pytest.mark.asyncio
async def test_concurrent_operations_share_the_pool(db, make_user):
    for _ in range(3):
        await make_user()
    store = user_store(db)
    results = await asyncio.gather(*(store.list() for _ in range(10)))
    assert {r.total for r in results} == {3}
