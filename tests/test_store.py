from datetime import datetime, timezone

from database import Store
from ids import IdGenerator


def test_seed_populates_collections_with_derived_status():
    store = Store()
    store.seed("hash")

    assert len(store.users) == 2
    assert len(store.nodes) == 5
    assert len(store.alerts) == 2
    assert len(store.reports) == 0

    statuses = {n["nodeId"]: n["currentStatus"]["operationalStatus"] for n in store.nodes}
    assert statuses == {
        "DN0001": "normal",
        "DN0002": "warning",
        "DN0003": "critical",
        "DN0004": "normal",
        "DN0005": "normal",
    }


def test_seed_is_repeatable():
    store = Store()
    store.seed("hash")
    store.reports.insert({"reportId": "RPT1"})
    store.seed("hash")
    assert len(store.reports) == 0
    assert len(store.nodes) == 5


def test_collection_lookup_and_predicates():
    store = Store()
    store.seed("hash")

    assert store.nodes.get_by_id("DN0003")["name"] == "Industrial Zone Pump Station"
    assert store.nodes.get_by_id("DN9999") is None
    assert store.users.get_by_id("admin001")["role"] == "admin"

    central = store.nodes.find(lambda n: n["location"]["ward"] == "Central Ward")
    assert [n["nodeId"] for n in central] == ["DN0001", "DN0002"]


def test_insert_assigns_object_id_and_keeps_order():
    store = Store()
    first = store.reports.insert({"reportId": "A"})
    second = store.reports.insert({"reportId": "B"})
    assert first["_id"] and second["_id"] and first["_id"] != second["_id"]
    assert [r["reportId"] for r in store.reports.all()] == ["A", "B"]


def test_mutations_through_returned_record_are_visible():
    store = Store()
    store.seed("hash")
    store.nodes.get_by_id("DN0001")["isActive"] = False
    assert store.nodes.get_by_id("DN0001")["isActive"] is False


def test_id_generator_is_monotonic_and_unique():
    clock = lambda: datetime(2026, 2, 25, tzinfo=timezone.utc)
    ids = IdGenerator(clock=clock)

    alerts = [ids.alert_id() for _ in range(3)]
    assert alerts == ["ALT202602250001", "ALT202602250002", "ALT202602250003"]
    assert ids.report_id() == "RPT2026020001"


def test_id_sequence_survives_day_rollover():
    days = iter([
        datetime(2026, 2, 25, tzinfo=timezone.utc),
        datetime(2026, 2, 26, tzinfo=timezone.utc),
    ])
    ids = IdGenerator(clock=lambda: next(days))
    assert ids.alert_id() == "ALT202602250001"
    assert ids.alert_id() == "ALT202602260002"


def test_seeded_alert_ids_do_not_collide_with_new_ones():
    store = Store()
    store.seed("hash")
    seeded = {a["alertId"] for a in store.alerts}
    assert store.ids.alert_id() not in seeded
