import asyncio
from datetime import date, timedelta

from healthdiary.engine.kp_index import KpIndexReconciler, FORECAST_DAYS_AHEAD, date_span
from healthdiary.api.kp_index import get_kp_feed
from healthdiary.integrations import KpReading
from healthdiary.main import app
from healthdiary.models import KpIndex
from healthdiary.services.scheduler import refresh_kp_index

from tests.conftest import FakeKpFeed

TODAY = date(2024, 9, 23)


def observed(day, value):
    return KpReading(date=day, kp_index=value)


def forecast(day, value):
    return KpReading(date=day, kp_index=value, is_forecast=True)


def test_date_span_is_inclusive():
    assert date_span(date(2024, 1, 30), date(2024, 2, 2)) == [
        date(2024, 1, 30), date(2024, 1, 31), date(2024, 2, 1), date(2024, 2, 2)
    ]
    assert date_span(date(2024, 2, 2), date(2024, 2, 1)) == []


def test_rounding_is_half_up():
    assert KpIndex(date=TODAY, kp_index=2.5).rounded == 3
    assert KpIndex(date=TODAY, kp_index=2.375).rounded == 2
    assert KpIndex(date=TODAY, kp_index=0.5).rounded == 1


def test_get_range_fills_gaps_once_and_returns_one_entry_per_day(db):
    days = date_span(date(2024, 9, 1), date(2024, 9, 5))
    feed = FakeKpFeed(daily=[observed(d, 2.0) for d in days])
    reconciler = KpIndexReconciler(db, feed)

    first = asyncio.run(reconciler.get_range(days[0], days[-1]))
    second = asyncio.run(reconciler.get_range(days[0], days[-1]))

    assert [entry["date"] for entry in first] == [d.isoformat() for d in days]
    assert first == second
    assert len(feed.daily_calls) == 1
    assert db.query(KpIndex).count() == len(days)


def test_get_range_only_asks_for_the_missing_span(db):
    reconciler = KpIndexReconciler(db, FakeKpFeed())
    reconciler.store([observed(date(2024, 9, 1), 1.0), observed(date(2024, 9, 5), 1.0)])

    feed = FakeKpFeed(daily=[observed(date(2024, 9, d), 3.0) for d in range(1, 6)])
    reconciler.feed = feed
    result = asyncio.run(reconciler.get_range(date(2024, 9, 1), date(2024, 9, 5)))

    assert feed.daily_calls == [(date(2024, 9, 2), date(2024, 9, 4))]
    assert len(result) == 5


def test_feed_failure_returns_what_is_cached(db):
    reconciler = KpIndexReconciler(db, FakeKpFeed())

    assert asyncio.run(reconciler.get_range(date(2024, 9, 1), date(2024, 9, 3))) == []

    reconciler.store([observed(date(2024, 9, 2), 4.4)])
    assert asyncio.run(reconciler.get_range(date(2024, 9, 1), date(2024, 9, 3))) == [
        {"date": "2024-09-02", "kpIndex": 4}
    ]


def test_upsert_replaces_instead_of_duplicating(db):
    reconciler = KpIndexReconciler(db, FakeKpFeed())
    reconciler.store([forecast(TODAY, 3.0)])
    reconciler.store([observed(TODAY, 5.0)])

    rows = db.query(KpIndex).filter(KpIndex.date == TODAY).all()
    assert len(rows) == 1
    assert rows[0].kp_index == 5.0
    assert rows[0].is_forecast is False


def test_forecast_never_overwrites_observed_value(db):
    reconciler = KpIndexReconciler(db, FakeKpFeed())
    reconciler.store([observed(TODAY, 5.0)])

    assert reconciler.upsert(TODAY, 1.0, is_forecast=True) is None
    assert reconciler.store([forecast(TODAY, 1.0)]) == 0
    assert db.query(KpIndex).filter(KpIndex.date == TODAY).one().kp_index == 5.0


def test_forecast_has_fixed_length_with_nulls_for_unknown_days(db):
    feed = FakeKpFeed(forecast=[forecast(TODAY + timedelta(days=i), 3.0) for i in range(3)])
    result = asyncio.run(KpIndexReconciler(db, feed).get_forecast(today=TODAY))

    assert len(result) == FORECAST_DAYS_AHEAD + 1
    assert result[0] == {"date": TODAY.isoformat(), "kpIndex": 3}
    assert result[3]["kpIndex"] is None
    assert result[-1]["date"] == (TODAY + timedelta(days=FORECAST_DAYS_AHEAD)).isoformat()


def test_refresh_stores_observed_and_forecast_windows(db):
    feed = FakeKpFeed(
        daily=[observed(TODAY - timedelta(days=i), 2.0) for i in range(3)],
        forecast=[forecast(TODAY + timedelta(days=i), 4.0) for i in range(1, 4)],
    )
    result = asyncio.run(KpIndexReconciler(db, feed).refresh(today=TODAY))

    assert result == {"observed": 3, "forecast": 3}
    assert feed.daily_calls == [(TODAY - timedelta(days=30), TODAY)]
    assert feed.forecast_calls == [(TODAY, TODAY + timedelta(days=FORECAST_DAYS_AHEAD))]


def test_scheduled_refresh_uses_its_own_session(session_factory, db):
    feed = FakeKpFeed(daily=[observed(date.today(), 2.0)])

    result = asyncio.run(refresh_kp_index(session_factory=session_factory, feed=feed))

    assert result == {"observed": 1, "forecast": 0}
    assert db.query(KpIndex).count() == 1


def test_kp_endpoint_validates_range(client):
    app.dependency_overrides[get_kp_feed] = lambda: FakeKpFeed()

    assert client.get("/api/kp-index").status_code == 400
    assert client.get("/api/kp-index?start=2024-09-05&end=2024-09-01").status_code == 400
    assert client.get("/api/kp-index?start=2023-01-01&end=2024-09-01").status_code == 400


def test_kp_endpoint_returns_cached_days(client):
    days = date_span(date(2024, 9, 1), date(2024, 9, 3))
    app.dependency_overrides[get_kp_feed] = lambda: FakeKpFeed(daily=[observed(d, 2.5) for d in days])

    response = client.get("/api/kp-index?start=2024-09-01&end=2024-09-03")

    assert response.status_code == 200
    assert response.json() == [{"date": d.isoformat(), "kpIndex": 3} for d in days]


def test_forecast_endpoint_is_public(client):
    app.dependency_overrides[get_kp_feed] = lambda: FakeKpFeed()

    response = client.get("/api/kp-index/forecast")

    assert response.status_code == 200
    assert len(response.json()) == FORECAST_DAYS_AHEAD + 1
