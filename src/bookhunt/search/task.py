# ABOUTME: A single in-flight query against one provider, run on a worker thread.
# ABOUTME: Reports progress, then exactly one of finished / cancelled / failed to its listener.

import logging
import threading
from concurrent.futures import Executor, Future
from enum import Enum
from typing import Protocol

from bookhunt.search.engine import SearchEngine, TextQuery
from bookhunt.search.errors import ProviderSearchError, SearchError
from bookhunt.search.types import RawResult, TaskProgress

logger = logging.getLogger(__name__)


class SearchBy(Enum):
    EXTERNAL_ID = "external_id"
    ISBN = "isbn"
    BARCODE = "barcode"
    TEXT = "text"


class TaskState(Enum):
    PENDING = "pending"
    RUNNING = "running"
    FINISHED = "finished"
    CANCELLED = "cancelled"
    FAILED = "failed"


class TaskListener(Protocol):
    """Receives task callbacks. Called from worker threads."""

    def on_progress(self, progress: TaskProgress) -> None: ...

    def on_finished(self, task_id: int, result: RawResult) -> None: ...

    def on_cancelled(self, task_id: int, result: RawResult | None) -> None: ...

    def on_failure(self, task_id: int, error: SearchError) -> None: ...


class SearchTask:
    """Runs one search strategy against one engine.

    The task id is the provider id, which is how the coordinator correlates
    callbacks. cancel() only raises a flag; the engine polls it through
    is_cancelled() at safe points.
    """

    def __init__(
        self,
        engine: SearchEngine,
        listener: TaskListener,
        *,
        search_by: SearchBy,
        fetch_covers: tuple[bool, bool] = (False, False),
        external_id: str = "",
        isbn: str = "",
        query: TextQuery | None = None,
    ) -> None:
        self._engine = engine
        self._listener = listener
        self.search_by = search_by
        self.fetch_covers = fetch_covers
        self.external_id = external_id
        self.isbn = isbn
        self.query = query or TextQuery(code=isbn)
        self._cancelled = threading.Event()
        self._state = TaskState.PENDING

    @property
    def task_id(self) -> int:
        return self._engine.id

    @property
    def engine(self) -> SearchEngine:
        return self._engine

    @property
    def state(self) -> TaskState:
        return self._state

    def start(self, executor: Executor) -> Future:
        future = executor.submit(self._run)
        future.add_done_callback(self._log_unexpected)
        return future

    def cancel(self) -> None:
        self._cancelled.set()

    def is_cancelled(self) -> bool:
        return self._cancelled.is_set()

    def publish_progress(self, text: str, position: int = 0, max_position: int = 0) -> None:
        self._listener.on_progress(TaskProgress(self.task_id, text, position, max_position))

    def _run(self) -> None:
        if self.is_cancelled():
            self._state = TaskState.CANCELLED
            self._listener.on_cancelled(self.task_id, None)
            return

        self._state = TaskState.RUNNING
        self.publish_progress(f"Searching {self._engine.name}")

        try:
            result = self._search()
        except SearchError as exc:
            logger.warning("%s search failed: %s", self._engine.name, exc)
            self._state = TaskState.FAILED
            self._listener.on_failure(self.task_id, exc)
            return
        except Exception as exc:  # provider code
            logger.warning("%s search failed unexpectedly: %r", self._engine.name, exc)
            self._state = TaskState.FAILED
            self._listener.on_failure(self.task_id, ProviderSearchError(self._engine.name, exc))
            return

        if self.is_cancelled():
            self._state = TaskState.CANCELLED
            self._listener.on_cancelled(self.task_id, result)
        else:
            self._state = TaskState.FINISHED
            self._listener.on_finished(self.task_id, result)

    def _search(self) -> RawResult:
        engine = self._engine
        result: RawResult | None
        if self.search_by == SearchBy.EXTERNAL_ID and engine.by_external_id is not None:
            result = engine.by_external_id(self, self.external_id, self.fetch_covers)
        elif self.search_by == SearchBy.ISBN and engine.by_isbn is not None:
            result = engine.by_isbn(self, self.isbn, self.fetch_covers)
        elif self.search_by == SearchBy.BARCODE and engine.by_barcode is not None:
            result = engine.by_barcode(self, self.isbn, self.fetch_covers)
        elif self.search_by == SearchBy.TEXT and engine.by_text is not None:
            result = engine.by_text(self, self.query, self.fetch_covers)
        else:
            raise ProviderSearchError(engine.name, f"cannot search by {self.search_by.value}")
        return dict(result) if result else {}

    def _log_unexpected(self, future: Future) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error("Search task %s crashed in its listener: %r", self._engine.name, exc)

    def __repr__(self) -> str:
        return f"SearchTask({self._engine.name}, by={self.search_by.value}, state={self._state.value})"
