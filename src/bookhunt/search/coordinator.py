# ABOUTME: Search Coordinator: runs one search session across many providers in parallel.
# ABOUTME: Picks a strategy per provider, serializes task callbacks and emits one merged result.

import logging
import threading
import time
from collections.abc import Callable, Iterable
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass, field

import httpx

from bookhunt.search.accumulator import ResultsAccumulator
from bookhunt.search.covers import CoverSelector
from bookhunt.search.engine import Capability, SearchEngine, TextQuery
from bookhunt.search.errors import (
    CredentialsRequiredError,
    MissingCriteriaError,
    NetworkUnavailableError,
    ProviderSearchError,
    SearchAlreadyRunningError,
    SearchError,
    StorageError,
)
from bookhunt.search.events import EventChannel
from bookhunt.search.isbn import Isbn, IsbnType
from bookhunt.search.mappers import ColorMapper, FieldMapper, FormatMapper
from bookhunt.search.registry import ProviderRegistry
from bookhunt.search.sites import ListType, Site, SiteRegistry, filter_enabled
from bookhunt.search.task import SearchBy, SearchTask
from bookhunt.search.types import (
    BookField,
    RawResult,
    SearchCriteria,
    SearchProgress,
    SearchResult,
    TaskProgress,
)

logger = logging.getLogger(__name__)

PROGRESS_BULLET = "•"


@dataclass
class SearchSettings:
    """Knobs for a coordinator.

    strict_checks turns programmer-error guards (search while running,
    search without criteria) into exceptions instead of logged no-ops.
    """

    strict_checks: bool = False
    max_workers: int = 8
    format_mapping: bool = True
    color_mapping: bool = True

    def mappers(self) -> list[FieldMapper]:
        mappers: list[FieldMapper] = []
        if self.format_mapping:
            mappers.append(FormatMapper())
        if self.color_mapping:
            mappers.append(ColorMapper())
        return mappers


@dataclass
class _Session:
    """Everything that lives for exactly one search() call."""

    criteria: SearchCriteria
    isbn: Isbn
    isbn_text: str
    waiting_for_isbn: bool = False
    cancelled: bool = False
    anchor_provider: int | None = None
    active: dict[int, SearchTask] = field(default_factory=dict)
    queried: set[int] = field(default_factory=set)
    results: dict[int, RawResult | None] = field(default_factory=dict)
    errors: dict[int, SearchError] = field(default_factory=dict)
    progress: dict[int, TaskProgress] = field(default_factory=dict)
    timings: dict[int, list[float]] = field(default_factory=dict)
    started_at: float = field(default_factory=time.monotonic)


class _SessionListener:
    """Routes task callbacks to the coordinator, tagged with their session.

    Callbacks from a session that has already been finalized are dropped.
    """

    def __init__(self, coordinator: "SearchCoordinator", session: _Session) -> None:
        self._coordinator = coordinator
        self._session = session

    def on_progress(self, progress: TaskProgress) -> None:
        self._coordinator._task_progress(self._session, progress)

    def on_finished(self, task_id: int, result: RawResult) -> None:
        self._coordinator._task_finished(self._session, task_id, result)

    def on_cancelled(self, task_id: int, result: RawResult | None) -> None:
        self._coordinator._task_finished(self._session, task_id, result)

    def on_failure(self, task_id: int, error: SearchError) -> None:
        self._coordinator._task_finished(self._session, task_id, None, error)


class SearchCoordinator:
    """Drives one multi-provider search session at a time.

    Subscribe to the progress, finished and cancelled channels, call
    set_criteria() then search(). Provider failures never raise out of
    the coordinator; they end up in SearchResult.error_summary.
    """

    def __init__(
        self,
        engines: ProviderRegistry,
        sites: SiteRegistry,
        *,
        settings: SearchSettings | None = None,
        executor: Executor | None = None,
        mappers: Iterable[FieldMapper] | None = None,
        cover_selector: CoverSelector | None = None,
        network_check: Callable[[], bool] | None = None,
    ) -> None:
        self._engines = engines
        self._sites = sites
        self._settings = settings or SearchSettings()
        self._executor = executor
        self._owns_executor = executor is None
        self._accumulator = ResultsAccumulator(
            mappers if mappers is not None else self._settings.mappers()
        )
        self._cover_selector = cover_selector or CoverSelector()
        self._network_check = network_check

        self.progress: EventChannel[SearchProgress] = EventChannel("progress")
        self.finished: EventChannel[SearchResult] = EventChannel("finished")
        self.cancelled: EventChannel[SearchResult] = EventChannel("cancelled")

        self._lock = threading.RLock()
        self._done = threading.Event()
        self._done.set()
        self._criteria = SearchCriteria()
        self._base_message = ""
        self._site_list: list[Site] | None = None
        self._session: _Session | None = None
        self._last_result: SearchResult | None = None

    # -- criteria ---------------------------------------------------------

    def set_criteria(
        self,
        isbn: str = "",
        strict_isbn: bool = True,
        author: str = "",
        title: str = "",
        publisher: str = "",
        external_ids: dict[int, str] | None = None,
        fetch_covers: tuple[bool, bool] = (False, False),
    ) -> None:
        self._criteria = SearchCriteria(
            isbn=isbn.strip(),
            strict_isbn=strict_isbn,
            author=author.strip(),
            title=title.strip(),
            publisher=publisher.strip(),
            external_ids={k: v.strip() for k, v in (external_ids or {}).items() if v and v.strip()},
            fetch_covers=fetch_covers,
        )

    def clear_criteria(self) -> None:
        self._criteria = SearchCriteria()

    @property
    def criteria(self) -> SearchCriteria:
        return self._criteria

    def set_base_message(self, text: str) -> None:
        """Text shown above the per-provider progress lines."""
        self._base_message = text

    @property
    def site_list(self) -> list[Site]:
        """The Data sites a session will use, in order, disabled ones included."""
        if self._site_list is not None:
            return list(self._site_list)
        return self._sites.sites(ListType.DATA)

    def set_site_list(self, sites: Iterable[Site]) -> None:
        """Use a caller-supplied Data site list instead of the registry's."""
        self._site_list = list(sites)

    # -- session control --------------------------------------------------

    def search(self) -> bool:
        """Start a session with the current criteria.

        Returns:
            True if at least one provider task was started.

        Raises:
            NetworkUnavailableError: If the connectivity probe fails.
        """
        with self._lock:
            if self._session is not None:
                return self._guard(SearchAlreadyRunningError("A search is already running"))
            if not self._criteria.has_anchor_criteria():
                return self._guard(
                    MissingCriteriaError("An ISBN, external id, author or title is required")
                )
            self._check_network()

            session = self._new_session(self._criteria)
            try:
                isbn_valid = session.isbn.is_valid(session.criteria.strict_isbn)
                if session.criteria.external_ids or isbn_valid:
                    logger.debug("Anchor present; starting all providers")
                    started = self._start_all(session)
                else:
                    logger.debug("No anchor; searching providers one at a time")
                    session.waiting_for_isbn = True
                    started = self._start_next(session)
            except Exception:
                self._abandon(session)
                raise

            if not started:
                logger.info("No provider could search for %s", session.criteria)
                self._abandon(session)
            return started

    def search_by_external_id(self, engine: SearchEngine, external_id: str) -> bool:
        """Start a session that queries a single provider by its own id."""
        with self._lock:
            if self._session is not None:
                return self._guard(SearchAlreadyRunningError("A search is already running"))
            if not external_id.strip():
                return self._guard(MissingCriteriaError("An external id is required"))
            self._check_network()

            criteria = SearchCriteria(
                external_ids={engine.id: external_id.strip()},
                fetch_covers=self._criteria.fetch_covers,
            )
            session = self._new_session(criteria)
            try:
                started = self._start_search(session, engine)
            except Exception:
                self._abandon(session)
                raise
            if not started:
                self._abandon(session)
            return started

    def cancel(self) -> None:
        """Ask every running task to stop. Returns immediately; safe to repeat."""
        with self._lock:
            session = self._session
            if session is None or session.cancelled:
                return
            session.cancelled = True
            logger.debug("Cancelling %d active task(s)", len(session.active))
            for task in session.active.values():
                task.cancel()

    def is_search_active(self) -> bool:
        with self._lock:
            return self._session is not None

    def is_cancelled(self) -> bool:
        with self._lock:
            return self._session is not None and self._session.cancelled

    def wait(self, timeout: float | None = None) -> SearchResult | None:
        """Block until the current session emits its terminal event."""
        if not self._done.wait(timeout):
            return None
        return self._last_result

    def close(self) -> None:
        """Shut down the worker pool if the coordinator created it."""
        if self._owns_executor and self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def __enter__(self) -> "SearchCoordinator":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # -- task start -------------------------------------------------------

    def _new_session(self, criteria: SearchCriteria) -> _Session:
        session = _Session(
            criteria=criteria,
            isbn=Isbn(criteria.isbn, strict=criteria.strict_isbn),
            isbn_text=criteria.isbn,
        )
        self._session = session
        self._last_result = None
        self._done.clear()
        return session

    def _abandon(self, session: _Session) -> None:
        """Close a session that never got going; no terminal event is emitted."""
        session.cancelled = True
        for task in session.active.values():
            task.cancel()
        if self._session is session:
            self._session = None
        self._done.set()

    def _enabled_data_sites(self) -> list[Site]:
        return filter_enabled(self.site_list)

    def _start_all(self, session: _Session) -> bool:
        started = False
        for site in self._enabled_data_sites():
            if site.provider_id in session.queried:
                continue
            if self._start_search(session, self._engines.get(site.provider_id)):
                started = True
        return started

    def _start_next(self, session: _Session) -> bool:
        for site in self._enabled_data_sites():
            if site.provider_id in session.queried:
                continue
            if self._start_search(session, self._engines.get(site.provider_id)):
                return True
        return False

    def _start_search(self, session: _Session, engine: SearchEngine) -> bool:
        """Start one task using the first strategy the engine supports."""
        if session.cancelled or engine.id in session.active:
            return False
        if not engine.is_available():
            logger.debug("%s is not available; skipping", engine.name)
            return False

        criteria = session.criteria
        isbn = session.isbn
        external_id = criteria.external_ids.get(engine.id, "")
        kwargs: dict = {}

        if external_id and engine.supports(Capability.BY_EXTERNAL_ID):
            search_by = SearchBy.EXTERNAL_ID
            kwargs["external_id"] = external_id
        elif isbn.is_valid(strict=True) and engine.supports(Capability.BY_ISBN):
            search_by = SearchBy.ISBN
            if engine.descriptor.prefer_isbn10 and isbn.is_isbn10_compat():
                kwargs["isbn"] = isbn.as_text(IsbnType.ISBN10)
            else:
                kwargs["isbn"] = isbn.as_text()
        elif isbn.is_valid(strict=False) and engine.supports(Capability.BY_BARCODE):
            search_by = SearchBy.BARCODE
            kwargs["isbn"] = isbn.as_text()
        elif engine.supports(Capability.BY_TEXT):
            search_by = SearchBy.TEXT
            kwargs["query"] = TextQuery(
                code=session.isbn_text,
                author=criteria.author,
                title=criteria.title,
                publisher=criteria.publisher,
            )
        else:
            logger.debug("%s has no usable search strategy; skipping", engine.name)
            return False

        task = SearchTask(
            engine,
            _SessionListener(self, session),
            search_by=search_by,
            fetch_covers=criteria.fetch_covers,
            **kwargs,
        )
        session.active[engine.id] = task
        session.queried.add(engine.id)
        session.timings[engine.id] = [time.monotonic()]
        logger.debug("Starting %r", task)
        try:
            task.start(self._get_executor())
        except RuntimeError as exc:
            logger.warning("Could not start %s search: %s", engine.name, exc)
            session.active.pop(engine.id, None)
            session.queried.discard(engine.id)
            session.timings.pop(engine.id, None)
            return False
        return True

    def _get_executor(self) -> Executor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self._settings.max_workers,
                thread_name_prefix="bookhunt-search",
            )
        return self._executor

    # -- task callbacks ---------------------------------------------------

    def _task_progress(self, session: _Session, progress: TaskProgress) -> None:
        with self._lock:
            if session is not self._session or progress.task_id not in session.active:
                return
            session.progress[progress.task_id] = progress
            self.progress.emit(self._accumulate_progress(session))

    def _task_finished(
        self,
        session: _Session,
        task_id: int,
        result: RawResult | None,
        error: SearchError | None = None,
    ) -> None:
        terminal: SearchResult | None = None
        with self._lock:
            if session is not self._session:
                logger.debug("Dropping late result from provider %d", task_id)
                return
            session.active.pop(task_id, None)
            session.timings.setdefault(task_id, [time.monotonic()]).append(time.monotonic())

            if error is not None:
                session.errors[task_id] = error
            else:
                session.errors.pop(task_id, None)
            # A failed re-query keeps the earlier result.
            if result is not None or task_id not in session.results:
                session.results[task_id] = result

            session.progress.pop(task_id, None)
            self.progress.emit(self._accumulate_progress(session))

            search_started = False
            if session.waiting_for_isbn and not session.cancelled:
                isbn_found = (result or {}).get(BookField.ISBN)
                if isinstance(isbn_found, str) and isbn_found.strip():
                    logger.debug("Provider %d found isbn %s; querying all", task_id, isbn_found)
                    session.waiting_for_isbn = False
                    session.anchor_provider = task_id
                    session.isbn_text = isbn_found.strip()
                    session.isbn = Isbn(session.isbn_text, strict=session.criteria.strict_isbn)
                    session.queried = {task_id}
                    search_started = self._start_all(session)
                else:
                    search_started = self._start_next(session)

            if not search_started and (not session.active or session.cancelled):
                terminal = self._finalize(session)

        if terminal is not None:
            channel = self.cancelled if terminal.cancelled else self.finished
            channel.emit(terminal)
            self._done.set()

    # -- finalization -----------------------------------------------------

    def _finalize(self, session: _Session) -> SearchResult:
        self._session = None
        self._log_timings(session)

        try:
            record, storage_errors = self._accumulate_results(session)
            merge_error = None
        except Exception as exc:
            logger.exception("Merging search results failed")
            record = {
                BookField.ISBN: session.isbn_text,
                BookField.TITLE: session.criteria.title,
            }
            storage_errors = []
            merge_error = exc
        summary = self._accumulate_errors(session, storage_errors, merge_error)
        result = SearchResult(record=record, error_summary=summary, cancelled=session.cancelled)
        self._last_result = result
        logger.debug(
            "Search %s with %d field(s) from %d provider(s)",
            "cancelled" if session.cancelled else "finished",
            len(record),
            len(session.results),
        )
        return result

    def _accumulate_progress(self, session: _Session) -> SearchProgress:
        lines = [self._base_message] if self._base_message else []
        position = 0
        max_position = 0
        for progress in session.progress.values():
            if progress.text:
                lines.append(f"{PROGRESS_BULLET} {progress.text}")
            position += progress.position
            max_position += progress.max_position
        return SearchProgress("\n".join(lines), position, max_position)

    def _accumulate_results(self, session: _Session) -> tuple[dict, list[StorageError]]:
        order = [
            site.provider_id
            for site in SiteRegistry.reorder(self.site_list, self._engines.reliability_order())
        ]
        record = self._accumulator.merge(
            order,
            session.results,
            isbn=session.isbn,
            isbn_text=session.isbn_text,
            title_text=session.criteria.title,
        )

        candidates = {}
        for slot, key in enumerate(BookField.COVER_CANDIDATES):
            if key in record:
                candidates[slot] = record.pop(key) or []
        if not candidates:
            return record, []

        selection = self._cover_selector.select(candidates)
        for slot, winner in selection.winners.items():
            if winner is not None:
                record[BookField.COVER_FILE[slot]] = str(winner)
        return record, selection.errors

    def _accumulate_errors(
        self,
        session: _Session,
        storage_errors: list[StorageError],
        merge_error: Exception | None = None,
    ) -> str | None:
        lines = []
        for provider_id, error in session.errors.items():
            if provider_id in self._engines:
                name = self._engines.get(provider_id).name
            else:
                name = str(provider_id)
            lines.append(f"{name}: {describe_error(error)}")
        lines.extend(str(error) for error in storage_errors)
        if merge_error is not None:
            lines.append(f"results could not be merged: {merge_error!r}")
        return "\n".join(lines) or None

    def _log_timings(self, session: _Session) -> None:
        if not logger.isEnabledFor(logging.DEBUG):
            return
        for provider_id, marks in session.timings.items():
            if len(marks) < 2:
                continue
            logger.debug(
                "Provider %d took %.0f ms",
                provider_id,
                (marks[-1] - marks[0]) * 1000,
            )
        logger.debug("Session took %.0f ms", (time.monotonic() - session.started_at) * 1000)

    # -- guards -----------------------------------------------------------

    def _guard(self, error: SearchError) -> bool:
        if self._settings.strict_checks:
            raise error
        logger.warning("%s", error)
        return False

    def _check_network(self) -> None:
        if self._network_check is not None and not self._network_check():
            raise NetworkUnavailableError("No network connection")


def describe_error(error: BaseException) -> str:
    """The user-facing text for one provider failure."""
    if isinstance(error, CredentialsRequiredError):
        return "credentials required"
    if isinstance(error, NetworkUnavailableError):
        return "network problem"
    if isinstance(error, ProviderSearchError):
        cause = error.cause
        if isinstance(cause, str):
            return cause
        if isinstance(cause, (httpx.TransportError, OSError)):
            return "network problem"
        if isinstance(cause, SearchError):
            return describe_error(cause)
        return "unknown error"
    if isinstance(error, SearchError):
        return str(error)
    return "unknown error"
