from datetime import timedelta

from pulse.v1.notifications.ledger import DedupLedger


async def test_first_report_wins(ledger: DedupLedger):
    assert await ledger.should_notify("alice", "email", "msg-1") is True
    assert await ledger.should_notify("alice", "email", "msg-1") is False


async def test_key_components_are_independent(ledger: DedupLedger):
    assert await ledger.should_notify("alice", "email", "msg-1") is True
    assert await ledger.should_notify("bob", "email", "msg-1") is True
    assert await ledger.should_notify("alice", "calendar", "msg-1") is True
    assert await ledger.should_notify("alice", "email", "msg-2") is True


async def test_ledger_survives_new_instance(session_factory, clock):
    """A restarted process sees what the previous one recorded."""
    first = DedupLedger(session_factory, clock)
    await first.should_notify("alice", "email", "msg-1")

    second = DedupLedger(session_factory, clock)

    assert await second.has("alice", "email", "msg-1")
    assert await second.should_notify("alice", "email", "msg-1") is False


async def test_purge_removes_only_old_records(ledger: DedupLedger, clock):
    await ledger.should_notify("alice", "email", "old")
    clock.advance(days=31)
    await ledger.should_notify("alice", "email", "fresh")

    purged = await ledger.purge(clock.now() - timedelta(days=30))

    assert purged == 1
    assert not await ledger.has("alice", "email", "old")
    assert await ledger.has("alice", "email", "fresh")
    # a purged key may notify again
    assert await ledger.should_notify("alice", "email", "old") is True
