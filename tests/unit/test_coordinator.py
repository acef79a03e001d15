# ABOUTME: Unit tests for the Search Coordinator session algorithm.
# ABOUTME: Uses gated fake providers to control completion order across worker threads.

import threading
import time
from concurrent.futures import ThreadPoolExecutor

import httpx
import pytest

from bookhunt.search.coordinator import SearchSettings, describe_error
from bookhunt.search.covers import CoverSelector
from bookhunt.search.engine import Capability, TextQuery
from bookhunt.search.errors import (
    CredentialsRequiredError,
    MissingCriteriaError,
    NetworkUnavailableError,
    ProviderSearchError,
    SearchAlreadyRunningError,
    StorageError,
)
from bookhunt.search.types import Author, BookField, SearchResult
from tests.fixtures.providers import DATA_CAPS, FakeProvider, book_result, write_image

ISBN = "9780306406157"
ISBN10 = "0306406152"


def _wait_until(predicate, timeout: float = 5.0) -> None:
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not reached in time")
        time.sleep(0.01)


class TestParallelSearch:
    """Sessions that start with an anchor query all providers at once."""

    def test_valid_isbn_starts_all_providers(self, make_coordinator) -> None:
        providers = [
            FakeProvider(1, isbn_result=book_result(ISBN, "Title One", "Author A")),
            FakeProvider(2, isbn_result=book_result(ISBN, "Title Two", "Author B")),
            FakeProvider(3, isbn_result=None),
        ]
        coordinator = make_coordinator(*providers)
        coordinator.set_criteria(isbn=ISBN)

        assert coordinator.search()
        result = coordinator.wait(timeout=5)

        assert result is not None
        assert not result.cancelled
        assert result.error_summary is None
        assert result.record[BookField.ISBN] == ISBN
        assert result.record[BookField.TITLE] == "Title One"
        assert result.record[BookField.AUTHORS] == [Author("Author A"), Author("Author B")]
        for provider in providers:
            assert provider.calls == [("isbn", ISBN)]
        assert not coordinator.is_search_active()

    def test_finished_event_emitted_once(self, make_coordinator) -> None:
        received: list[SearchResult] = []
        coordinator = make_coordinator(FakeProvider(1, isbn_result=book_result(ISBN)))
        coordinator.finished.connect(received.append)
        coordinator.set_criteria(isbn=ISBN)
        coordinator.search()
        coordinator.wait(timeout=5)
        coordinator.close()
        assert len(received) == 1
        assert coordinator.cancelled.last is None

    def test_prefer_isbn10_gets_ten_digit_form(self, make_coordinator) -> None:
        """Providers that opt in receive the ISBN-10 when one exists."""
        provider = FakeProvider(1, prefer_isbn10=True)
        coordinator = make_coordinator(provider)
        coordinator.set_criteria(isbn=ISBN)
        coordinator.search()
        coordinator.wait(timeout=5)
        assert provider.calls == [("isbn", ISBN10)]

    def test_external_id_takes_priority(self, make_coordinator) -> None:
        """A provider with an external id is searched by it; others fall back to text."""
        with_id = FakeProvider(1, capabilities=DATA_CAPS | {Capability.BY_EXTERNAL_ID})
        without_id = FakeProvider(2)
        coordinator = make_coordinator(with_id, without_id)
        coordinator.set_criteria(title="Dune", external_ids={1: "1234"})

        assert coordinator.search()
        coordinator.wait(timeout=5)

        assert with_id.calls == [("external_id", "1234")]
        assert without_id.calls == [("text", TextQuery(title="Dune"))]

    def test_loose_barcode_uses_barcode_search(self, make_coordinator) -> None:
        """A generic EAN-13 goes to barcode-capable providers when not strict."""
        barcode = FakeProvider(1, capabilities=frozenset({Capability.BY_BARCODE}))
        text_only = FakeProvider(2, capabilities=frozenset({Capability.BY_TEXT}))
        coordinator = make_coordinator(barcode, text_only)
        coordinator.set_criteria(isbn="4006381333931", strict_isbn=False)

        coordinator.search()
        coordinator.wait(timeout=5)

        assert barcode.calls == [("barcode", "4006381333931")]
        assert text_only.calls == [("text", TextQuery(code="4006381333931"))]

    def test_unavailable_provider_is_skipped(self, make_coordinator) -> None:
        offline = FakeProvider(1, available=False)
        online = FakeProvider(2, isbn_result=book_result(ISBN, "Online"))
        coordinator = make_coordinator(offline, online)
        coordinator.set_criteria(isbn=ISBN)
        coordinator.search()
        result = coordinator.wait(timeout=5)
        assert offline.calls == []
        assert result.record[BookField.TITLE] == "Online"


class TestSerialSearch:
    """Sessions without an anchor query one provider at a time."""

    def test_serial_to_parallel_transition(self, make_coordinator) -> None:
        """After a provider finds an ISBN, the rest are queried together by that ISBN."""
        gate = threading.Event()
        first = FakeProvider(
            1,
            gate=gate,
            text_result=book_result(title="Text Title"),
            isbn_result=book_result(ISBN, "Isbn Title"),
        )
        second = FakeProvider(2, text_result=book_result(ISBN, "Second Title"))
        third = FakeProvider(3, isbn_result=book_result(ISBN, description="From three"))
        coordinator = make_coordinator(first, second, third)
        coordinator.set_criteria(author="Herbert", title="Dune")

        assert coordinator.search()
        assert first.started.wait(5)
        assert second.calls == []
        assert third.calls == []

        first.gate = None
        gate.set()
        result = coordinator.wait(timeout=5)

        query = TextQuery(author="Herbert", title="Dune")
        assert first.calls == [("text", query), ("isbn", ISBN)]
        assert second.calls == [("text", query)]
        assert third.calls == [("isbn", ISBN)]
        assert result.record[BookField.ISBN] == ISBN
        # The re-query result replaced the provider's earlier one.
        assert result.record[BookField.TITLE] == "Isbn Title"
        assert result.record[BookField.DESCRIPTION] == "From three"

    def test_each_provider_queried_once_without_anchor(self, make_coordinator) -> None:
        """If no provider finds an ISBN, each is asked exactly once."""
        providers = [FakeProvider(i, text_result=book_result(title=f"T{i}")) for i in (1, 2, 3)]
        coordinator = make_coordinator(*providers)
        coordinator.set_criteria(title="Unknown")

        coordinator.search()
        result = coordinator.wait(timeout=5)

        for provider in providers:
            assert len(provider.calls) == 1
        assert result.record[BookField.TITLE] == "T1"

    def test_title_falls_back_to_criteria(self, make_coordinator) -> None:
        coordinator = make_coordinator(FakeProvider(1, text_result={}))
        coordinator.set_criteria(title="Nothing Found")
        coordinator.search()
        result = coordinator.wait(timeout=5)
        assert result.record[BookField.TITLE] == "Nothing Found"


class TestCancellation:
    """Tests for cooperative cancellation."""

    def test_cancel_delivers_partial_data(self, make_coordinator) -> None:
        """Cancelling after one provider finished still carries its data."""
        gate = threading.Event()
        fast = FakeProvider(1, isbn_result=book_result(ISBN, "Fast Title"))
        slow = [FakeProvider(i, gate=gate) for i in (2, 3)]
        coordinator = make_coordinator(fast, *slow)
        cancelled: list[SearchResult] = []
        coordinator.cancelled.connect(cancelled.append)
        coordinator.set_criteria(isbn=ISBN)

        coordinator.search()
        _wait_until(lambda: coordinator._session is not None and 1 in coordinator._session.results)
        coordinator.cancel()
        coordinator.cancel()
        result = coordinator.wait(timeout=5)
        coordinator.close()

        assert result.cancelled
        assert result.record[BookField.TITLE] == "Fast Title"
        assert len(cancelled) == 1
        assert coordinator.finished.last is None
        assert not coordinator.is_search_active()

    def test_cancel_without_session_is_noop(self, make_coordinator) -> None:
        coordinator = make_coordinator(FakeProvider(1))
        coordinator.cancel()
        assert not coordinator.is_cancelled()


class TestErrors:
    """Tests for per-provider error capture and session guards."""

    def test_failures_are_summarized(self, make_coordinator) -> None:
        """Each failing provider adds one line; the others still contribute."""
        providers = [
            FakeProvider(1, isbn_result=book_result(ISBN, "Good")),
            FakeProvider(2, error=CredentialsRequiredError("Site2")),
            FakeProvider(3, error=RuntimeError("bug")),
            FakeProvider(4, error=ProviderSearchError("Site4", httpx.ConnectError("refused"))),
        ]
        coordinator = make_coordinator(*providers)
        coordinator.set_criteria(isbn=ISBN)
        coordinator.search()
        result = coordinator.wait(timeout=5)

        assert result.record[BookField.TITLE] == "Good"
        assert result.has_errors
        assert sorted(result.error_summary.splitlines()) == [
            "Site2: credentials required",
            "Site3: unknown error",
            "Site4: network problem",
        ]

    def test_cover_delete_failure_recorded(self, make_coordinator, tmp_path) -> None:
        """Storage problems during cover selection end up in the summary."""

        class ReadOnlyStorage:
            def exists(self, path):
                return path.exists()

            def dimensions(self, path):
                return (1, 1) if path.name == "a.png" else (2, 2)

            def delete(self, path):
                raise StorageError(path, "read-only")

        a = write_image(tmp_path / "a.png", 1, 1)
        b = write_image(tmp_path / "b.png", 2, 2)
        provider = FakeProvider(
            1, isbn_result={BookField.ISBN: ISBN, BookField.COVER_CANDIDATES[0]: [str(a), str(b)]}
        )
        coordinator = make_coordinator(provider, cover_selector=CoverSelector(ReadOnlyStorage()))
        coordinator.set_criteria(isbn=ISBN)
        coordinator.search()
        result = coordinator.wait(timeout=5)

        assert result.record[BookField.COVER_FILE[0]] == str(b)
        assert "read-only" in result.error_summary

    def test_missing_criteria_is_a_noop(self, make_coordinator) -> None:
        """Without strict checks a bad search() logs and returns False."""
        provider = FakeProvider(1)
        coordinator = make_coordinator(provider)
        coordinator.set_criteria(publisher="Ace")
        assert coordinator.search() is False
        assert provider.calls == []

    def test_missing_criteria_raises_when_strict(self, make_coordinator) -> None:
        coordinator = make_coordinator(
            FakeProvider(1), settings=SearchSettings(strict_checks=True)
        )
        with pytest.raises(MissingCriteriaError):
            coordinator.search()

    def test_second_search_rejected_while_running(self, make_coordinator) -> None:
        gate = threading.Event()
        coordinator = make_coordinator(
            FakeProvider(1, gate=gate), settings=SearchSettings(strict_checks=True)
        )
        coordinator.set_criteria(isbn=ISBN)
        assert coordinator.search()
        with pytest.raises(SearchAlreadyRunningError):
            coordinator.search()
        gate.set()
        assert coordinator.wait(timeout=5) is not None

    def test_no_network_starts_nothing(self, make_coordinator) -> None:
        provider = FakeProvider(1)
        coordinator = make_coordinator(provider, network_check=lambda: False)
        coordinator.set_criteria(isbn=ISBN)
        with pytest.raises(NetworkUnavailableError):
            coordinator.search()
        assert provider.calls == []
        assert not coordinator.is_search_active()

    def test_nothing_startable_returns_false(self, make_coordinator) -> None:
        """If no provider can run, search() is False and no session is left open."""
        coordinator = make_coordinator(FakeProvider(1, available=False))
        coordinator.set_criteria(isbn=ISBN)
        assert coordinator.search() is False
        assert not coordinator.is_search_active()


    def test_malformed_list_value_still_finishes(self, make_coordinator) -> None:
        """A number where a list belongs is skipped and the session still ends."""
        received: list[SearchResult] = []
        coordinator = make_coordinator(
            FakeProvider(1, isbn_result={BookField.TITLE: "T", BookField.AUTHORS: 5})
        )
        coordinator.finished.connect(received.append)
        coordinator.set_criteria(isbn=ISBN)
        assert coordinator.search()
        result = coordinator.wait(timeout=5)

        assert result is not None
        assert received == [result]
        assert result.record[BookField.TITLE] == "T"
        assert BookField.AUTHORS not in result.record
        assert not coordinator.is_search_active()

    def test_merge_failure_still_emits_finished(self, make_coordinator) -> None:
        """A crash while merging is reported in the summary instead of hanging the session."""

        class BrokenMapper:
            key = "broken"

            def map(self, record):
                raise ValueError("bad record")

        coordinator = make_coordinator(
            FakeProvider(1, isbn_result=book_result(ISBN, "Dune")),
            mappers=[BrokenMapper()],
        )
        coordinator.set_criteria(isbn=ISBN, title="Dune")
        assert coordinator.search()
        result = coordinator.wait(timeout=5)

        assert result is not None
        assert coordinator.finished.last is result
        assert result.record[BookField.ISBN] == ISBN
        assert result.record[BookField.TITLE] == "Dune"
        assert "results could not be merged" in result.error_summary
        assert "bad record" in result.error_summary

    def test_shut_down_executor_leaves_no_session(self, make_coordinator) -> None:
        """If no task can be submitted the session is closed and later searches work."""
        executor = ThreadPoolExecutor(max_workers=1)
        executor.shutdown()
        provider = FakeProvider(1)
        coordinator = make_coordinator(
            provider, executor=executor, settings=SearchSettings(strict_checks=True)
        )
        coordinator.set_criteria(isbn=ISBN)

        assert coordinator.search() is False
        assert not coordinator.is_search_active()
        assert coordinator.search() is False
        assert not coordinator.is_search_active()

    def test_wait_returns_after_search_that_started_nothing(self, make_coordinator) -> None:
        """wait() does not block once search() has returned False."""
        coordinator = make_coordinator(FakeProvider(1, available=False))
        coordinator.set_criteria(isbn=ISBN)
        assert coordinator.search() is False

        started = time.monotonic()
        assert coordinator.wait(timeout=2) is None
        assert time.monotonic() - started < 1

class TestProgress:
    """Tests for the combined progress message."""

    def test_progress_lists_running_providers(self, make_coordinator) -> None:
        gate = threading.Event()
        coordinator = make_coordinator(FakeProvider(1, gate=gate))
        coordinator.set_base_message("Looking up")
        coordinator.set_criteria(isbn=ISBN)
        coordinator.search()

        _wait_until(
            lambda: coordinator.progress.last is not None
            and "Asking" in coordinator.progress.last.text
        )
        progress = coordinator.progress.last
        assert progress.text == "Looking up\n• Asking Site1"
        assert (progress.position, progress.max_position) == (1, 2)

        gate.set()
        coordinator.wait(timeout=5)
        assert coordinator.progress.last.text == "Looking up"


class TestSingleProviderSearch:
    """Tests for search_by_external_id()."""

    def test_queries_only_that_provider(self, make_coordinator) -> None:
        caps = DATA_CAPS | {Capability.BY_EXTERNAL_ID}
        target = FakeProvider(1, capabilities=caps, external_result=book_result(title="By Id"))
        other = FakeProvider(2, capabilities=caps)
        coordinator = make_coordinator(target, other)

        assert coordinator.search_by_external_id(target.engine(), "42")
        result = coordinator.wait(timeout=5)

        assert target.calls == [("external_id", "42")]
        assert other.calls == []
        assert result.record[BookField.TITLE] == "By Id"


class TestDescribeError:
    """Tests for the user-facing error text."""

    def test_plain_message_cause(self) -> None:
        assert describe_error(ProviderSearchError("X", "HTTP 500")) == "HTTP 500"

    def test_network_unavailable(self) -> None:
        assert describe_error(NetworkUnavailableError("down")) == "network problem"
