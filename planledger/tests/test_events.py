from planledger.app.events import (
    EntitlementChangeKind,
    EntitlementChanged,
    EntitlementEventBus,
    publish_change,
)


def _event(kind=EntitlementChangeKind.ACTIVATED):
    return EntitlementChanged(kind=kind, entitlement_id="ent_1", subject_id="user-1")


def test_failing_subscriber_does_not_block_others(caplog):
    bus = EntitlementEventBus()
    received = []

    def broken(event):
        raise RuntimeError("listener down")

    bus.subscribe(broken)
    bus.subscribe(received.append)

    delivered = bus.publish(_event())

    assert delivered == 1
    assert [event.kind for event in received] == [EntitlementChangeKind.ACTIVATED]
    assert "Entitlement event handler failed" in caplog.text


def test_unsubscribe_stops_delivery():
    bus = EntitlementEventBus()
    received = []
    unsubscribe = bus.subscribe(received.append)

    unsubscribe()
    unsubscribe()

    assert bus.publish(_event()) == 0
    assert received == []


def test_publish_change_without_bus_is_noop():
    publish_change(None, EntitlementChangeKind.CANCELLED, entitlement_id="ent_1", subject_id="user-1")


def test_publish_change_builds_typed_event():
    bus = EntitlementEventBus()
    received = []
    bus.subscribe(received.append)

    publish_change(bus, EntitlementChangeKind.EXPIRED, entitlement_id="ent_9", subject_id="user-4")

    assert received[0].kind == EntitlementChangeKind.EXPIRED
    assert received[0].entitlement_id == "ent_9"
    assert received[0].occurred_at.tzinfo is not None
