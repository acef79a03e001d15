# ABOUTME: Picks the best downloaded cover per slot and deletes the losing candidates.
# ABOUTME: Image size is read from the file header via Pillow; files are never fully decoded.

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from PIL import Image, UnidentifiedImageError

from bookhunt.search.errors import StorageError

logger = logging.getLogger(__name__)


class FileStorage(Protocol):
    """File operations the cover selector needs."""

    def exists(self, path: Path) -> bool: ...

    def dimensions(self, path: Path) -> tuple[int, int] | None: ...

    def delete(self, path: Path) -> None: ...


class LocalFileStorage:
    """FileStorage on the local filesystem."""

    def exists(self, path: Path) -> bool:
        return path.is_file()

    def dimensions(self, path: Path) -> tuple[int, int] | None:
        """Width and height from the image header, or None if unreadable."""
        try:
            with Image.open(path) as img:
                width, height = img.size
        except (UnidentifiedImageError, OSError, ValueError) as exc:
            logger.debug("Cannot read image bounds of %s: %s", path, exc)
            return None
        return width, height

    def delete(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise StorageError(path, exc) from exc


@dataclass
class CoverSelection:
    """Winner per slot (None when no candidate had usable bounds) plus delete failures."""

    winners: dict[int, Path | None] = field(default_factory=dict)
    errors: list[StorageError] = field(default_factory=list)


class CoverSelector:
    """Keeps the largest image (width x height) of each slot's candidates.

    Ties go to the first candidate. Every other candidate that exists on
    disk is deleted, including files whose bounds could not be read.
    Missing files are skipped.
    """

    def __init__(self, storage: FileStorage | None = None) -> None:
        self._storage = storage if storage is not None else LocalFileStorage()

    def best_image(self, candidates: Sequence[Path | str]) -> tuple[Path | None, list[StorageError]]:
        paths = [Path(candidate) for candidate in candidates]
        best_area = -1
        best_index = -1

        for index, path in enumerate(paths):
            if not self._storage.exists(path):
                continue
            bounds = self._storage.dimensions(path)
            if bounds is None:
                continue
            width, height = bounds
            if width <= 0 or height <= 0:
                continue
            area = width * height
            if area > best_area:
                best_area = area
                best_index = index

        errors: list[StorageError] = []
        for index, path in enumerate(paths):
            if index == best_index or not self._storage.exists(path):
                continue
            # A candidate listed twice must not delete the winner.
            if best_index >= 0 and path == paths[best_index]:
                continue
            try:
                self._storage.delete(path)
            except StorageError as exc:
                logger.warning("Could not delete cover candidate %s: %s", path, exc)
                errors.append(exc)

        return (paths[best_index] if best_index >= 0 else None), errors

    def select(self, candidates_by_slot: dict[int, Sequence[Path | str]]) -> CoverSelection:
        """Resolve every slot independently."""
        selection = CoverSelection()
        for slot, candidates in sorted(candidates_by_slot.items()):
            winner, errors = self.best_image(candidates)
            selection.winners[slot] = winner
            selection.errors.extend(errors)
            logger.debug("Cover slot %d: %d candidate(s), kept %s", slot, len(candidates), winner)
        return selection
