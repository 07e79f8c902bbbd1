from app.core.counters import CounterAllocator
from app.models.officer import Officer, QueueCounter

def test_allocate_defaults_to_one_and_increments(db_session):
    db_session.add(Officer(id="o9", prefix="Z"))
    db_session.commit()
    allocator = CounterAllocator(db_session)

    assert allocator.peek("o9") == 1
    assert [allocator.allocate("o9") for _ in range(3)] == [1, 2, 3]
    db_session.commit()
    assert allocator.peek("o9") == 4

def test_counters_are_per_officer(db_session):
    db_session.add_all([Officer(id="o1", prefix="A"), Officer(id="o2", prefix="B")])
    db_session.commit()
    allocator = CounterAllocator(db_session)

    allocator.allocate("o1")
    allocator.allocate("o1")
    assert allocator.allocate("o2") == 1
    db_session.commit()
    assert allocator.snapshot() == {"o1": 3, "o2": 2}

def test_snapshot_is_ordered_by_officer(db_session):
    db_session.add_all([Officer(id="o2", prefix="B"), Officer(id="o1", prefix="A")])
    db_session.commit()
    allocator = CounterAllocator(db_session)
    allocator.allocate("o2")
    allocator.allocate("o1")
    allocator.reset("o2")
    db_session.commit()

    assert list(allocator.snapshot()) == ["o1", "o2"]

def test_reset_restarts_at_one(db_session):
    db_session.add(Officer(id="o1", prefix="A"))
    db_session.commit()
    allocator = CounterAllocator(db_session)
    allocator.allocate("o1")
    allocator.allocate("o1")

    allocator.reset("o1")
    db_session.commit()

    row = db_session.get(QueueCounter, "o1")
    assert row.counter == 1
    assert row.last_reset is not None
    assert allocator.allocate("o1") == 1
