import json
from datetime import datetime

from outreach_tracker.exceptions import StorageError
from outreach_tracker.storage.backends import MemoryStorage
from outreach_tracker.storage.schema import DEFAULT_COLUMNS
from outreach_tracker.store import RecordStore


class FailingStorage(MemoryStorage):
    def save(self, key, items):
        raise StorageError(key, "quota exceeded")


def _client(store, **values):
    client = store.create_client().item
    for field_id, value in values.items():
        store.update_client_field(client.id, field_id, value)
    return client


def test_load_empty_storage_uses_defaults(store):
    assert [col.id for col in store.columns] == [col["id"] for col in DEFAULT_COLUMNS]
    assert store.get_column("status").options == ["Lead", "Contacted", "Demo Built", "Won", "Lost"]
    assert store.clients == []
    assert store.assets == []


def test_create_client_defaults(store):
    result = store.create_client()
    client = result.item

    assert result.applied
    assert client.status == "Lead"
    assert client.last_contact == "2024-06-10"
    assert client.logs == []
    assert set(client.fields) == {"company", "industry", "contact", "email", "demoLink"}
    assert all(value == "" for value in client.fields.values())


def test_create_client_inserts_at_front_and_persists(store, storage):
    first = store.create_client().item
    second = store.create_client().item

    assert [c.id for c in store.clients] == [second.id, first.id]
    saved = json.loads(storage.entries["ot_clients"])
    assert [c["id"] for c in saved] == [second.id, first.id]


def test_ids_stay_unique_within_collections(store):
    # The clock never moves, so every id comes from the bump past the last one
    clients = [store.create_client().item for _ in range(5)]
    columns = [store.insert_column(0, "Extra").item for _ in range(3)]
    assets = [store.add_asset(f"Deck {i}", "https://example.com").item for i in range(3)]
    logs = [store.add_log(clients[0].id, f"note {i}").item for i in range(4)]

    assert len({c.id for c in clients}) == 5
    assert len({c.id for c in store.columns}) == len(store.columns)
    assert len({c.id for c in columns}) == 3
    assert len({a.id for a in assets}) == 3
    assert len({log.id for log in logs}) == 4
    # Newest log first, ids increase with creation
    assert [log.id for log in store.get_client(clients[0].id).logs] == sorted(
        (log.id for log in logs), reverse=True
    )


def test_update_client_field(store):
    client = store.create_client().item

    result = store.update_client_field(client.id, "company", "Acme")

    assert result.applied
    assert store.get_client(client.id).get("company") == "Acme"
    assert store.get_client(client.id).get("industry") == ""


def test_update_status_and_last_contact_use_admin_fields(store, storage):
    client = store.create_client().item

    store.update_client_field(client.id, "status", "Won")
    store.update_client_field(client.id, "lastContact", "2024-01-01")

    assert client.status == "Won"
    assert client.last_contact == "2024-01-01"
    saved = json.loads(storage.entries["ot_clients"])[0]
    assert saved["status"] == "Won"
    assert saved["lastContact"] == "2024-01-01"


def test_update_unknown_client_is_silent_noop(store, storage):
    result = store.update_client_field("missing", "company", "Acme")

    assert not result.applied
    assert result.message is None
    assert store.clients == []
    assert "ot_clients" not in storage.entries


def test_update_accepts_field_outside_schema(store):
    client = store.create_client().item

    result = store.update_client_field(client.id, "not_a_column", "kept")

    assert result.applied
    assert client.get("not_a_column") == "kept"


def test_update_id_is_rejected(store):
    client = store.create_client().item
    first_id = client.id

    result = store.update_client_field(client.id, "id", "hijack")

    assert not result.applied
    assert result.message
    assert client.id == first_id


def test_tolerant_read_of_column_added_later(store):
    client = store.create_client().item
    column = store.insert_column(2, "Budget").item

    assert client.get(column.id) == ""
    assert column.id not in client.fields


def test_delete_client(store):
    keep = store.create_client().item
    drop = store.create_client().item

    assert store.delete_client(drop.id).applied
    assert [c.id for c in store.clients] == [keep.id]

    result = store.delete_client(drop.id)
    assert not result.applied
    assert result.message is None


def test_add_log_prepends_and_updates_last_contact(store, clock):
    client = _client(store, lastContact="2024-01-01")
    store.add_log(client.id, "first call")

    clock.now = datetime(2024, 6, 11, 10, 0, 0)
    result = store.add_log(client.id, "  called today  ")

    assert result.applied
    assert client.logs[0].text == "called today"
    assert client.logs[0].date == "2024-06-11 10:00:00"
    assert client.logs[1].text == "first call"
    assert client.last_contact == "2024-06-11"


def test_add_log_whitespace_is_rejected(store):
    client = store.create_client().item

    result = store.add_log(client.id, "   ")

    assert not result.applied
    assert result.message == "Log text cannot be empty."
    assert client.logs == []


def test_add_log_unknown_client_is_noop(store):
    result = store.add_log("missing", "hello")

    assert not result.applied
    assert result.message is None


def test_add_asset(store, storage):
    older = store.add_asset("Pitch deck", "https://example.com/deck").item
    newer = store.add_asset("Demo", "https://example.com/demo").item

    assert [a.id for a in store.assets] == [newer.id, older.id]
    saved = json.loads(storage.entries["ot_assets"])
    assert saved[0] == {"id": newer.id, "name": "Demo", "url": "https://example.com/demo"}


def test_add_asset_requires_name_and_url(store):
    assert not store.add_asset("", "http://x").applied
    assert not store.add_asset("Deck", "  ").applied
    assert store.assets == []


def test_insert_column_derives_id_and_clamps_position(store):
    end = store.insert_column(99, "Follow up  date").item
    front = store.insert_column(-5, "Priority").item

    assert end.id.startswith("follow_up_date_")
    assert end.type == "text"
    assert store.columns[-1].id == end.id
    assert store.columns[0].id == front.id


def test_insert_column_between(store):
    column = store.insert_column(1, "Region").item

    assert [c.id for c in store.columns][:3] == ["company", column.id, "industry"]


def test_insert_column_empty_label_rejected(store):
    before = store.columns

    result = store.insert_column(0, "  ")

    assert not result.applied
    assert store.columns == before


def test_rename_column(store):
    assert store.rename_column("company", "Organisation").applied
    assert store.get_column("company").label == "Organisation"
    assert not store.rename_column("company", "").applied
    assert store.rename_column("missing", "Label").message is None


def test_delete_column_refuses_last_one(store):
    for column in store.columns[1:]:
        assert store.delete_column(column.id).applied
    assert len(store.columns) == 1

    result = store.delete_column(store.columns[0].id)

    assert not result.applied
    assert result.message == "You must have at least one column."
    assert len(store.columns) == 1


def test_delete_column_keeps_client_values(store, storage):
    client = _client(store, company="Acme")

    assert store.delete_column("company").applied

    assert store.get_column("company") is None
    assert client.get("company") == "Acme"
    saved = json.loads(storage.entries["ot_clients"])[0]
    assert saved["company"] == "Acme"


def test_readding_column_does_not_resurrect_data(store):
    client = store.create_client().item
    budget = store.insert_column(0, "Budget").item
    store.update_client_field(client.id, budget.id, "10k")
    store.delete_column(budget.id)

    again = store.insert_column(0, "Budget").item

    assert again.id != budget.id
    assert client.get(again.id) == ""


def test_search_matches_any_value_case_insensitive(store):
    _client(store, company="Globex", status="Lead")
    acme = _client(store, company="Acme", status="Won")

    assert [c.id for c in store.search("won")] == [acme.id]
    assert [c.id for c in store.search("GLOB")] == [store.clients[1].id]


def test_search_empty_term_returns_all_in_order(store):
    _client(store, company="One")
    _client(store, company="Two")

    assert store.search("") == store.clients


def test_search_sees_fields_after_schema_change(store):
    client = store.create_client().item
    column = store.insert_column(0, "Region").item
    store.update_client_field(client.id, column.id, "Nordics")

    assert store.search("nordic") == [client]
    assert store.search("nowhere") == []


def test_round_trip_through_storage(storage, clock):
    store = RecordStore.open(storage, clock=clock)
    acme = _client(store, company="Acme", status="Demo Built")
    store.add_log(acme.id, "sent demo")
    column = store.insert_column(3, "Budget").item
    store.update_client_field(acme.id, column.id, "10k")
    store.delete_column("industry")
    store.add_asset("Deck", "https://example.com/deck")

    reloaded = RecordStore.open(storage, clock=clock)

    assert [c.to_storage() for c in reloaded.columns] == [c.to_storage() for c in store.columns]
    assert [c.to_storage() for c in reloaded.clients] == [c.to_storage() for c in store.clients]
    assert [a.to_storage() for a in reloaded.assets] == [a.to_storage() for a in store.assets]


def test_reloaded_store_never_reuses_ids(clock):
    storage = MemoryStorage(
        {"ot_clients": json.dumps([{"id": "99999999999999", "status": "Lead", "logs": []}])}
    )
    store = RecordStore.open(storage, clock=clock)

    client = store.create_client().item

    assert int(client.id) > 99999999999999


def test_load_falls_back_on_bad_entries(clock):
    storage = MemoryStorage(
        {
            "ot_columns": "[]",
            "ot_clients": json.dumps(
                [
                    "junk",
                    {"company": "no id"},
                    {"id": "2", "logs": 5},
                    {"id": "3", "logs": True},
                    {"id": "1", "company": "Acme"},
                ]
            ),
            "ot_assets": "{not json",
        }
    )

    store = RecordStore.open(storage, clock=clock)

    assert [c.id for c in store.columns] == [col["id"] for col in DEFAULT_COLUMNS]
    assert [c.id for c in store.clients] == ["1"]
    assert store.assets == []


def test_persistence_failure_is_reported_and_memory_kept(clock):
    store = RecordStore.open(FailingStorage(), clock=clock)

    result = store.create_client()

    assert result.applied
    assert result.warnings == ["Storage error (ot_clients): quota exceeded"]
    assert store.persistence_errors == result.warnings
    assert len(store.clients) == 1


def test_custom_key_prefix(storage, clock):
    store = RecordStore.open(storage, key_prefix="crm_", clock=clock)

    store.create_client()

    assert "crm_clients" in storage.entries
    assert "ot_clients" not in storage.entries


def test_end_to_end_metrics(store):
    client = store.create_client().item
    store.update_client_field(client.id, "company", "Acme")
    store.update_client_field(client.id, "status", "Demo Built")
    store.add_log(client.id, "sent demo")

    metrics = store.metrics()

    assert metrics.total == 1
    assert metrics.demo_built == 1
    assert metrics.won == 0
    assert metrics.conversion_rate == 0


def test_non_string_admin_values_survive_reload(storage, clock):
    store = RecordStore.open(storage, clock=clock)
    client = store.create_client().item

    assert store.update_client_field(client.id, "status", 3).applied
    assert store.update_client_field(client.id, "lastContact", 20240101).applied

    reloaded = RecordStore.open(storage, clock=clock)

    assert [c.id for c in reloaded.clients] == [client.id]
    assert reloaded.clients[0].status == "3"
    assert reloaded.clients[0].last_contact == "20240101"
