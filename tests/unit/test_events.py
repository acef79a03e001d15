# ABOUTME: Unit tests for the single-subscriber event channel.
# ABOUTME: Checks delivery, replacement of the subscriber and the last-event cache.

from bookhunt.search.events import EventChannel


class TestEventChannel:
    """Tests for EventChannel."""

    def test_emit_delivers_to_subscriber(self) -> None:
        received: list[int] = []
        channel: EventChannel[int] = EventChannel("numbers")
        channel.connect(received.append)
        channel.emit(1)
        channel.emit(2)
        assert received == [1, 2]

    def test_connect_replaces_previous_subscriber(self) -> None:
        """Only one subscriber is kept."""
        first: list[int] = []
        second: list[int] = []
        channel: EventChannel[int] = EventChannel("numbers")
        channel.connect(first.append)
        channel.connect(second.append)
        channel.emit(3)
        assert first == []
        assert second == [3]

    def test_last_event_kept_without_subscriber(self) -> None:
        """Events emitted with nobody listening are not queued, but remembered."""
        channel: EventChannel[str] = EventChannel("text")
        channel.emit("a")
        channel.emit("b")
        assert channel.last == "b"

    def test_disconnect(self) -> None:
        received: list[int] = []
        channel: EventChannel[int] = EventChannel("numbers")
        channel.connect(received.append)
        channel.disconnect()
        channel.emit(1)
        assert received == []
