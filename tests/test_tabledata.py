import asyncio

import pytest

from tabledesk.errors import (
    NoOrderColumn, NoPrimaryKey, RecordNotFound, TableNotFound,
    ValidationError,
)
from tabledesk.model.tabledata import TableDataService
from conftest import FakeSession


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def session(fake_db):
    return FakeSession(fake_db)


@pytest.fixture
def svc(session):
    return TableDataService(session, max_limit=50)


@pytest.fixture
def many_users(fake_db):
    for i in range(2, 26):
        fake_db.rows("users").append({
            "id": i, "email": f"user{i}@example.com", "username": f"user{i}",
            "password_hash": None, "role": "user", "is_active": True,
            "created_at": None,
        })
    return fake_db


def test_list_rows_paginates(svc, many_users):
    result = run(svc.list_rows("users", page=2, limit=10))
    assert [r["id"] for r in result["data"]] == list(range(15, 5, -1))
    assert result["pagination"] == {
        "page": 2, "limit": 10, "total": 25, "totalPages": 3,
    }


def test_page_past_the_end_is_empty_with_same_totals(svc, many_users):
    result = run(svc.list_rows("users", page=9, limit=10))
    assert result["data"] == []
    assert result["pagination"]["total"] == 25
    assert result["pagination"]["totalPages"] == 3


def test_limit_is_clamped(svc, many_users):
    result = run(svc.list_rows("users", page=1, limit=10_000))
    assert result["pagination"]["limit"] == 50
    assert result["pagination"]["totalPages"] == 1


def test_search_filters_rows_and_count(svc, many_users):
    result = run(svc.list_rows("users", search="USER1",
                               search_column="email"))
    ids = sorted(r["id"] for r in result["data"])
    assert ids == list(range(10, 20))
    assert result["pagination"]["total"] == 10


def test_list_rows_runs_in_one_transaction(svc, session, many_users):
    run(svc.list_rows("users"))
    assert session.transactions == 1
    assert session.commits == 1
    # existence, keys, columns, page, count
    assert len(session.statements) == 5


def test_list_rows_without_ordering_column(svc):
    with pytest.raises(NoOrderColumn):
        run(svc.list_rows("kv"))


def test_list_rows_orders_by_created_at_without_key(svc, session, fake_db):
    run(svc.list_rows("audit_log"))
    page_sql = session.statements[3][0]
    assert 'ORDER BY "created_at" DESC' in page_sql


def test_unknown_table(svc):
    with pytest.raises(TableNotFound):
        run(svc.get_row("nope", "1"))


def test_get_row(svc):
    row = run(svc.get_row("users", "1"))
    assert row["email"] == "admin@example.com"
    with pytest.raises(RecordNotFound):
        run(svc.get_row("users", "999"))


def test_get_row_needs_primary_key(svc):
    with pytest.raises(NoPrimaryKey):
        run(svc.get_row("audit_log", "1"))


def test_create_then_get(svc):
    created = run(svc.create_row(
        "users", {"email": "a@b.com", "username": "a", "extra": "ignored"}
    ))
    assert created["id"] == 2
    assert created["email"] == "a@b.com"
    assert "extra" not in created
    assert run(svc.get_row("users", str(created["id"]))) == created


def test_create_without_valid_columns(svc, session):
    with pytest.raises(ValidationError):
        run(svc.create_row("users", {"nope": 1}))
    assert session.rollbacks == 1


def test_update_ignores_primary_key(svc, fake_db):
    row = run(svc.update_row("users", "1", {"id": 77, "username": "root"}))
    assert row["id"] == 1
    assert row["username"] == "root"
    assert [r["id"] for r in fake_db.rows("users")] == [1]


def test_update_missing_row(svc):
    with pytest.raises(RecordNotFound):
        run(svc.update_row("users", "404", {"username": "x"}))


def test_delete_missing_row_keeps_count(svc, fake_db):
    with pytest.raises(RecordNotFound):
        run(svc.delete_row("users", "12345"))
    assert len(fake_db.rows("users")) == 1


def test_delete_returns_row(svc, fake_db):
    row = run(svc.delete_row("users", "1"))
    assert row["username"] == "admin"
    assert fake_db.rows("users") == []


def test_structure(svc):
    structure = run(svc.structure("memberships"))
    assert structure["primaryKeys"] == ["user_id", "group_id"]
    assert [c["column_name"] for c in structure["columns"]] == [
        "user_id", "group_id", "role",
    ]


def test_huge_page_stays_inside_bigint_offset(svc, session, many_users):
    result = run(svc.list_rows("users", page=10 ** 19, limit=10))
    assert result["data"] == []
    assert result["pagination"]["total"] == 25
    assert result["pagination"]["totalPages"] == 3
    page_params = session.statements[3][1]
    assert page_params["offset"] <= 2 ** 63 - 1
    assert page_params["offset"] + page_params["limit"] > 2 ** 63 - 11
