import asyncio

import pytest

from tabledesk.infra import timings


@pytest.fixture(autouse=True)
def clean_store():
    timings.reset()
    yield
    timings.reset()


def test_store_is_constant_size_per_kind():
    for i in range(500):
        timings.record_timing("tables.list_tables", 0.001 * (i % 5))
    assert list(timings._TIMINGS) == ["tables.list_tables"]
    agg = timings._TIMINGS["tables.list_tables"]
    assert not hasattr(agg, "__dict__")
    assert agg.n == 500


def test_snapshot_aggregates():
    for v in (1.0, 2.0, 3.0):
        timings.record_timing("q", v)
    timings.record_timing("single", 0.5)
    snap = timings.snapshot()
    assert [s["kind"] for s in snap] == ["q", "single"]
    q = snap[0]
    assert q["n"] == 3
    assert q["mean"] == pytest.approx(2.0)
    assert q["std"] == pytest.approx(1.0)
    assert q["max"] == 3.0
    assert snap[1]["std"] == 0.0


def test_timeit_records_failures_too():
    async def boom():
        async with timings.timeit("query.adhoc"):
            raise ValueError("x")

    with pytest.raises(ValueError):
        asyncio.run(boom())
    assert timings.snapshot()[0]["n"] == 1


def test_many_requests_do_not_grow_the_store(client, auth_headers):
    for _ in range(50):
        assert client.get("/api/tables", headers=auth_headers).status_code \
            == 200
    agg = timings._TIMINGS["tables.list_tables"]
    assert agg.n == 50
    assert not hasattr(agg, "__len__")
