from __future__ import annotations

from datetime import datetime, timezone

from careerai import telemetry


def test_emit_event_sanitises_payload_for_listeners() -> None:
    received: list[telemetry.TelemetryEvent] = []
    telemetry.register_listener(received.append)
    try:
        telemetry.emit_event(
            "assessment_sync_failed",
            identity_id="user-1",
            error=ValueError("bad row"),
            at=datetime(2025, 10, 19, tzinfo=timezone.utc),
        )
    finally:
        telemetry.unregister_listener(received.append)

    assert len(received) == 1
    event = received[0]
    assert event.name == "assessment_sync_failed"
    assert event.payload == {
        "identity_id": "user-1",
        "error": "ValueError: bad row",
        "at": "2025-10-19T00:00:00+00:00",
    }


def test_failing_listener_does_not_block_others() -> None:
    received: list[str] = []

    def broken(event: telemetry.TelemetryEvent) -> None:
        raise RuntimeError("listener bug")

    telemetry.register_listener(broken)
    telemetry.register_listener(lambda event: received.append(event.name))
    try:
        telemetry.emit_event("chat_sync_failed")
    finally:
        telemetry.clear_listeners()

    assert received == ["chat_sync_failed"]
