from __future__ import annotations

import logging

import pytest

from app.core.events import InProcessEventBus, InternalEvent


def test_namespace_subscription_receives_every_lead_event() -> None:
    bus = InProcessEventBus()
    received: list[str] = []

    def handler(event: InternalEvent) -> None:
        received.append(event.name)

    bus.subscribe("leads.lead.*", handler)
    bus.subscribe("leads.lead.*", handler)

    bus.publish("leads.lead.created", {})
    bus.publish("leads.lead.deleted", {})
    bus.publish("leads.followup.created", {})

    assert received == ["leads.lead.created", "leads.lead.deleted"]


def test_exact_subscription_does_not_match_siblings() -> None:
    bus = InProcessEventBus()
    received: list[str] = []
    bus.subscribe("system.started", lambda event: received.append(event.name))

    bus.publish("system.stopped", {})
    bus.publish("system.started", {"service": "api"})

    assert received == ["system.started"]


def test_failing_handler_is_logged_and_others_still_run(caplog: pytest.LogCaptureFixture) -> None:
    bus = InProcessEventBus()
    received: list[str] = []

    def broken(event: InternalEvent) -> None:
        raise RuntimeError("listener down")

    bus.subscribe("leads.lead.*", broken)
    bus.subscribe("leads.lead.updated", lambda event: received.append(event.name))

    with caplog.at_level(logging.ERROR, logger="app.events"):
        bus.publish("leads.lead.updated", {"payload": {}})

    assert received == ["leads.lead.updated"]
    failure = next(record for record in caplog.records if record.getMessage() == "event_handler_failed")
    assert getattr(failure, "event_name") == "leads.lead.updated"
