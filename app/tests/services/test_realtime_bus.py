import pytest

from app.core.realtime import ChangeBus, ChangeEvent, parse_filter


def ev(table="claims", event_type="UPDATE", **new):
    return ChangeEvent(table=table, event_type=event_type, new=new)


def test_parse_filter():
    assert parse_filter(None) is None
    assert parse_filter("claimed_by=eq.abc") == ("claimed_by", "abc")
    with pytest.raises(ValueError):
        parse_filter("claimed_by")
    with pytest.raises(ValueError):
        parse_filter("claimed_by=gt.3")


def test_payload_shape():
    p = ev(status="pending").to_payload()
    assert set(p) == {"table", "eventType", "new", "old", "commit_timestamp"}
    assert p["eventType"] == "UPDATE"


def test_table_and_filter_routing():
    bus = ChangeBus()
    mine, all_claims, listings = [], [], []
    bus.subscribe("claims", mine.append, filter="claimed_by=eq.u1")
    bus.subscribe("claims", all_claims.append)
    bus.subscribe("food_listings", listings.append)

    assert bus.publish(ev(claimed_by="u1")) == 2
    assert bus.publish(ev(claimed_by="u2")) == 1

    assert len(mine) == 1
    assert len(all_claims) == 2
    assert listings == []


def test_event_type_filter_and_delete_uses_old():
    bus = ChangeBus()
    deletes = []
    bus.subscribe("claims", deletes.append, event="DELETE", filter="claimed_by=eq.u1")

    bus.publish(ev(event_type="INSERT", claimed_by="u1"))
    bus.publish(ChangeEvent(table="claims", event_type="DELETE", old={"id": "c1", "claimed_by": "u1"}))

    assert [e.event_type for e in deletes] == ["DELETE"]


def test_failing_subscriber_does_not_block_others():
    bus = ChangeBus()
    got = []

    def broken(_):
        raise RuntimeError("boom")

    bus.subscribe("claims", broken)
    bus.subscribe("claims", got.append)

    assert bus.publish(ev()) == 1
    assert len(got) == 1


def test_unsubscribe():
    bus = ChangeBus()
    got = []
    sub = bus.subscribe("claims", got.append)
    assert bus.subscriber_count() == 1

    bus.unsubscribe(sub)
    bus.publish(ev())

    assert got == []
    assert bus.subscriber_count() == 0


def test_unknown_event_type_rejected():
    with pytest.raises(ValueError):
        ChangeBus().subscribe("claims", lambda e: None, event="TRUNCATE")
