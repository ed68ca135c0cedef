from datetime import datetime, time, timezone

from recurring_ledger.domain.paths import join_path, owner_of, user_collection_path
from recurring_ledger.domain.recurrence import build_instance, instance_id, is_due, month_window

UTC = timezone.utc


def test_month_window_covers_whole_month():
    start, end = month_window(datetime(2024, 2, 14, 10, 0, tzinfo=UTC))

    assert start == datetime(2024, 2, 1, 0, 0, tzinfo=UTC)
    assert end.date().day == 29
    assert end.time() == time.max
    assert end.tzinfo is UTC


def test_month_window_december():
    start, end = month_window(datetime(2026, 12, 31, 23, 59, tzinfo=UTC))
    assert start.month == end.month == 12
    assert end.day == 31


def test_is_due_exact_day_only():
    template = {"isRecurring": True, "recurringDay": 5}
    assert is_due(template, 5)
    assert not is_due(template, 6)


def test_is_due_rejects_non_templates_and_bad_days():
    assert not is_due({"isRecurring": False, "recurringDay": 5}, 5)
    assert not is_due({"recurringDay": 5}, 5)
    assert not is_due({"isRecurring": True, "recurringDay": True}, 1)
    assert not is_due({"isRecurring": True, "recurringDay": "5"}, 5)
    assert not is_due({"isRecurring": True, "recurringDay": 32}, 32)


def test_day_31_never_due_in_february():
    template = {"isRecurring": True, "recurringDay": 31}
    _, end = month_window(datetime(2026, 2, 10, tzinfo=UTC))
    assert not any(is_due(template, day) for day in range(1, end.day + 1))


def test_build_instance_strips_recurrence_fields():
    template = {
        "description": "Rent",
        "amount": 1200,
        "category": "Housing",
        "isRecurring": True,
        "recurringDay": 5,
        "date": datetime(2026, 1, 5, tzinfo=UTC),
    }
    now = datetime(2026, 3, 5, 9, 0, tzinfo=UTC)

    instance = build_instance(template, "rent", now)

    assert instance == {
        "description": "Rent",
        "amount": 1200,
        "category": "Housing",
        "isRecurring": False,
        "date": now,
        "recurringSourceId": "rent",
    }
    # Template left untouched
    assert template["recurringDay"] == 5
    assert template["isRecurring"] is True


def test_instance_id_is_stable_per_template_and_month():
    march_5 = datetime(2026, 3, 5, tzinfo=UTC)
    march_20 = datetime(2026, 3, 20, tzinfo=UTC)
    april = datetime(2026, 4, 5, tzinfo=UTC)

    assert instance_id("rent", march_5) == instance_id("rent", march_20)
    assert instance_id("rent", march_5) != instance_id("rent", april)
    assert instance_id("rent", march_5) != instance_id("gym", march_5)
    assert len(instance_id("rent", march_5)) == 40


def test_paths():
    assert join_path("users/", "/u1", "transactions") == "users/u1/transactions"
    assert user_collection_path("u1", "cards") == "users/u1/cards"
    assert owner_of("users/u1/transactions/t1") == "u1"
    assert owner_of("incomes/t1") is None
    assert owner_of("users/u1") is None
