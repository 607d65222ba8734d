from day_tracker.storage import TIMER_KEY, MemoryRecoveryStore, SqliteRecoveryStore


def test_sqlite_store_round_trip_and_overwrite(db):
    store = SqliteRecoveryStore(db)
    assert store.load(TIMER_KEY) is None
    assert store.save(TIMER_KEY, {"status": "active", "elapsed_ms": 10}) is True
    assert store.save(TIMER_KEY, {"status": "stopped", "elapsed_ms": 20}) is True
    assert store.load(TIMER_KEY) == {"status": "stopped", "elapsed_ms": 20}
    rows = db.query_all("SELECT COUNT(*) AS c FROM recovery_records")
    assert rows[0]["c"] == 1
    assert store.clear(TIMER_KEY) is True
    assert store.load(TIMER_KEY) is None


def test_sqlite_store_discards_invalid_json(db):
    db.execute("INSERT INTO recovery_records(key, payload) VALUES(?, ?)", (TIMER_KEY, "{not json"))
    store = SqliteRecoveryStore(db)
    assert store.load(TIMER_KEY) is None
    assert db.query_one("SELECT * FROM recovery_records WHERE key=?", (TIMER_KEY,)) is None


def test_sqlite_store_reports_failures(db):
    store = SqliteRecoveryStore(db)
    # sets are not JSON serialisable
    assert store.save(TIMER_KEY, {"bad": {1, 2}}) is False
    db.execute("DROP TABLE recovery_records")
    assert store.save(TIMER_KEY, {"status": "active"}) is False
    assert store.load(TIMER_KEY) is None
    assert store.clear(TIMER_KEY) is False


def test_memory_store_copies_records():
    store = MemoryRecoveryStore()
    record = {"interruptions": [{"id": 1}]}
    store.save("k", record)
    record["interruptions"].append({"id": 2})
    loaded = store.load("k")
    assert loaded == {"interruptions": [{"id": 1}]}
    loaded["interruptions"].clear()
    assert store.load("k") == {"interruptions": [{"id": 1}]}
