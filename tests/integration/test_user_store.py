import uuid

import pytest

from pmcore.db.errors import ValidationError
from pmcore.db.repositories import projects as project_repo
from pmcore.db.repositories import users as user_repo
from pmcore.db.schemas import QueryFilters


async def _seed_five(make_user):
    await make_user(name="Sarah Chen", email="sarah.chen@example.com", department="Design")
    await make_user(name="Sarah Miller", email="smiller@example.com", department="Engineering")
    await make_user(name="Tom Baker", email="tom@example.com", department="Design")
    await make_user(name="Ana Lopez", email="ana@example.com", department="Marketing")
    await make_user(name="Raj Patel", email="raj@example.com", department="Design")


@pytest.mark.asyncio
async def test_search_sarah_in_design(db, make_user):
    await _seed_five(make_user)
    filters = QueryFilters.from_params(
        search="sarah", department="Design", page=1, limit=10, sort_by="name", sort_order="asc"
    )
    result = await user_repo.list_users(db, filters)
    assert result.total == 1
    assert [u["name"] for u in result.data] == ["Sarah Chen"]


@pytest.mark.asyncio
async def test_search_matches_any_searchable_column(db, make_user):
    await _seed_five(make_user)
    by_email = await user_repo.list_users(db, QueryFilters(search="SMILLER"))
    assert [u["name"] for u in by_email.data] == ["Sarah Miller"]
    by_department = await user_repo.list_users(db, QueryFilters(search="market"))
    assert [u["name"] for u in by_department.data] == ["Ana Lopez"]


@pytest.mark.asyncio
async def test_sort_by_name(db, make_user):
    await _seed_five(make_user)
    result = await user_repo.list_users(db, QueryFilters(sort_by="name", sort_order="asc"))
    names = [u["name"] for u in result.data]
    assert names == sorted(names)
    result = await user_repo.list_users(db, QueryFilters(sort_by="name", sort_order="desc"))
    assert [u["name"] for u in result.data] == sorted(names, reverse=True)


@pytest.mark.asyncio
@pytest.mark.parametrize("term", ["' OR '1'='1", "x'; DROP TABLE users; --", "--", ";"])
async def test_injection_attempts_match_literally(db, make_user, term):
    await _seed_five(make_user)
    result = await user_repo.list_users(db, QueryFilters(search=term))
    assert result.total == 0
    assert result.data == []
    # table still intact
    assert (await user_repo.list_users(db)).total == 5


@pytest.mark.asyncio
async def test_quote_in_search_term_matches(db, make_user):
    await make_user(name="Liam O'Brien")
    await make_user(name="Olivia Brown")
    result = await user_repo.list_users(db, QueryFilters(search="o'b"))
    assert [u["name"] for u in result.data] == ["Liam O'Brien"]


@pytest.mark.asyncio
async def test_like_wildcards_match_literally(db, make_user):
    await make_user(name="100% Effort")
    await make_user(name="1000 Effort")
    await make_user(name="snake_case")
    await make_user(name="snakeXcase")
    percent = await user_repo.list_users(db, QueryFilters(search="100%"))
    assert [u["name"] for u in percent.data] == ["100% Effort"]
    underscore = await user_repo.list_users(db, QueryFilters(search="e_c"))
    assert [u["name"] for u in underscore.data] == ["snake_case"]


@pytest.mark.asyncio
@pytest.mark.parametrize("term", ["Émile", "émile", "ÉMILE", "ZOË", "zoë"])
async def test_search_folds_non_ascii_case(db, make_user, term):
    await make_user(name="Émile Zoë")
    await make_user(name="Emily Stone")
    result = await user_repo.list_users(db, QueryFilters(search=term))
    assert [u["name"] for u in result.data] == ["Émile Zoë"]


@pytest.mark.asyncio
async def test_boolean_false_filter_is_applied(db, make_user):
    await make_user(name="Active")
    inactive = await make_user(name="Gone")
    await user_repo.deactivate_user(db, inactive["id"])

    only_inactive = await user_repo.list_users(db, QueryFilters.from_params(is_active=False))
    assert [u["name"] for u in only_inactive.data] == ["Gone"]
    from_string = await user_repo.list_users(db, QueryFilters.from_params(is_active="0"))
    assert from_string.total == 1
    absent = await user_repo.list_users(db, QueryFilters.from_params(is_active=""))
    assert absent.total == 2


@pytest.mark.asyncio
async def test_find_user_by_email(db, make_user):
    user = await make_user(email="Mixed.Case@Example.com")
    found = await user_repo.find_user_by_email(db, "mixed.case@example.com")
    assert found["id"] == user["id"]
    await user_repo.deactivate_user(db, user["id"])
    assert await user_repo.find_user_by_email(db, "mixed.case@example.com") is None
    assert await user_repo.find_user_by_email(db, "") is None


@pytest.mark.asyncio
async def test_settings_lifecycle(db, make_user):
    user = await make_user()
    assert await user_repo.get_user_settings(db, user["id"]) is None
    with_settings = await user_repo.find_user_with_settings(db, user["id"])
    assert with_settings["settings"] is None
    assert await user_repo.update_user_settings(db, user["id"], {"theme": "light"}) is None

    await user_repo.create_default_settings(db, user["id"])
    await user_repo.create_default_settings(db, user["id"])
    settings = await user_repo.get_user_settings(db, user["id"])
    assert settings["theme"] == "dark"
    assert settings["items_per_page"] == 20

    updated = await user_repo.update_user_settings(db, user["id"], {"theme": "light", "compact_mode": True})
    assert updated["theme"] == "light"
    assert updated["compact_mode"] is True
    assert updated["updated_at"] > settings["updated_at"]

    with_settings = await user_repo.find_user_with_settings(db, user["id"])
    assert with_settings["id"] == user["id"]
    assert with_settings["name"] == user["name"]
    assert with_settings["settings"]["theme"] == "light"
    assert "settings_theme" not in with_settings


@pytest.mark.asyncio
async def test_update_user_settings_rejects_unknown_keys(db, make_user):
    user = await make_user()
    await user_repo.create_default_settings(db, user["id"])
    with pytest.raises(ValidationError):
        await user_repo.update_user_settings(db, user["id"], {"font": "comic"})
    with pytest.raises(ValidationError):
        await user_repo.update_user_settings(db, user["id"], {})


@pytest.mark.asyncio
async def test_update_user_status(db, make_user):
    user = await make_user()
    assert await user_repo.update_user_status(db, user["id"], "online") is True
    assert (await user_repo.get_user(db, user["id"]))["status"] == "online"
    assert await user_repo.update_user_status(db, uuid.uuid4(), "away") is False
    with pytest.raises(ValidationError):
        await user_repo.update_user_status(db, user["id"], "busy")


@pytest.mark.asyncio
async def test_deactivate_keeps_row(db, make_user):
    user = await make_user()
    deactivated = await user_repo.deactivate_user(db, user["id"])
    assert deactivated["is_active"] is False
    assert (await user_repo.get_user(db, user["id"]))["is_active"] is False


@pytest.mark.asyncio
async def test_team_members_with_counts(db, make_user, make_project, make_task):
    alice = await make_user(name="Alice")
    bob = await make_user(name="Bob")
    gone = await make_user(name="Zed")
    await user_repo.deactivate_user(db, gone["id"])

    active = await make_project(created_by=alice["id"], status="active")
    planning = await make_project(created_by=alice["id"])
    await project_repo.add_project_member(db, active["id"], alice["id"], "owner")
    await project_repo.add_project_member(db, planning["id"], alice["id"])
    await make_task(active, assigned_to=alice["id"], status="done")
    await make_task(active, assigned_to=alice["id"])

    team = await user_repo.list_team_members(db)
    by_name = {m["name"]: m for m in team}
    assert "Zed" not in by_name
    assert by_name["Alice"]["active_projects"] == 1
    assert by_name["Alice"]["total_tasks"] == 2
    assert by_name["Alice"]["completed_tasks"] == 1
    assert by_name["Bob"]["total_tasks"] == 0
    assert [m["name"] for m in team] == sorted(m["name"] for m in team)
    assert bob["id"] in {m["id"] for m in team}
