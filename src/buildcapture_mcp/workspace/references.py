"""Metadata references and the per-session reference cache."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from dataclasses import dataclass

from ..errors import ReferenceLoadError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class MetadataReference:
    """Handle to a loaded binary reference.

    Compared by identity: two handles for the same file are only equal when
    they come from the same cache entry.
    """

    path: str
    size: int
    modified: float

    @property
    def display(self) -> str:
        return os.path.basename(self.path)


ReferenceLoader = Callable[[str], MetadataReference]


def load_metadata_reference(path: str) -> MetadataReference:
    """Load a metadata reference from a file.

    Raises:
        ReferenceLoadError: If the file does not exist or cannot be read
    """
    try:
        info = os.stat(path)
    except OSError as e:
        raise ReferenceLoadError(f"Cannot load metadata reference {path}: {e}") from e
    if not os.path.isfile(path):
        raise ReferenceLoadError(f"Metadata reference is not a file: {path}")
    return MetadataReference(path=path, size=info.st_size, modified=info.st_mtime)


class MetadataReferenceCache:
    """Loads each referenced binary once per capture session.

    Not shared between sessions, so a rebuilt solution never sees stale
    handles from an earlier capture.
    """

    def __init__(self, loader: ReferenceLoader | None = None) -> None:
        self._loader = loader or load_metadata_reference
        self._references: dict[str, MetadataReference] = {}

    def _normalize_path(self, path: str) -> str:
        """Normalize path for consistent key lookup."""
        return os.path.normcase(os.path.normpath(os.path.abspath(path)))

    def get_or_load(self, path: str) -> MetadataReference:
        """Get the cached handle for ``path``, loading it on first request."""
        key = self._normalize_path(path)
        reference = self._references.get(key)
        if reference is None:
            reference = self._loader(path)
            self._references[key] = reference
        else:
            logger.debug(f"Reusing metadata reference {path}")
        return reference

    def clear(self) -> None:
        """Drop all cached handles."""
        self._references.clear()

    def __len__(self) -> int:
        return len(self._references)

    def __contains__(self, path: object) -> bool:
        return isinstance(path, str) and self._normalize_path(path) in self._references
