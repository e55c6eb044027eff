from __future__ import annotations
from enum import Enum
from typing import Callable, Optional, Tuple
import logging

from .errors import PreconditionFailedError
from .image import Image
from .merge_params import MergeParams
from ..utils.rw_lock import ReadWriteLock

logger = logging.getLogger(__name__)

Merger = Callable[[Image, Image, MergeParams], Image]

SLOTS = (1, 2)


class SessionState(str, Enum):
    EMPTY = "empty"
    ONE_SOURCE = "one_source"
    BOTH_SOURCES = "both_sources"
    MERGED = "merged"


class ResultMode(str, Enum):
    GAMMA = "gamma"
    NO_GAMMA = "nogamma"


class MergeSession:
    """
    One user's working set: two source images, the last merge result and
    the gamma value the result should be encoded with.

    Reads take the shared side of the session lock, uploads and merges the
    exclusive side. The lock is private to the session.
    """

    def __init__(self, session_id: str):
        self._id = session_id
        self._lock = ReadWriteLock()
        self._img1: Optional[Image] = None
        self._img2: Optional[Image] = None
        self._result: Optional[Image] = None
        self._gamma: int = 0

    @property
    def session_id(self) -> str:
        return self._id

    @staticmethod
    def _check_slot(slot: int) -> None:
        if slot not in SLOTS:
            raise ValueError(f"Unknown source slot: {slot!r}")

    def set_source(self, slot: int, image: Image) -> None:
        """Replace source image 1 or 2 wholesale. Leaves any result in place."""
        self._check_slot(slot)
        with self._lock.write_locked():
            if slot == 1:
                self._img1 = image
            else:
                self._img2 = image
        logger.info(f"Session {self._id}: source {slot} set ({image.width}x{image.height})")

    def get_source(self, slot: int) -> Optional[Image]:
        self._check_slot(slot)
        with self._lock.read_locked():
            return self._img1 if slot == 1 else self._img2

    def merge(self, params: MergeParams, merger: Merger) -> Image:
        """
        Run `merger` over both sources and store its output as the result.

        The exclusive lock is held for the whole pipeline, so readers see
        either the previous result or the new one. If a source is missing
        or the merger raises, result and gamma are left untouched.
        """
        with self._lock.write_locked():
            if self._img1 is None or self._img2 is None:
                raise PreconditionFailedError(
                    f"Session {self._id}: both source images must be set before merging"
                )
            result = merger(self._img1, self._img2, params)
            self._result = result
            self._gamma = params.gamma
        logger.info(f"Session {self._id}: merged {result.width}x{result.height}, gamma={params.gamma}")
        return result

    def get_result(self, mode: ResultMode = ResultMode.GAMMA) -> Optional[Tuple[Image, Optional[int]]]:
        """
        Return (result, gamma) or None when nothing has been merged yet.
        gamma is None in NO_GAMMA mode, meaning "encode as a plain PNG".
        """
        mode = ResultMode(mode)
        with self._lock.read_locked():
            if self._result is None:
                return None
            gamma = None if mode is ResultMode.NO_GAMMA else self._gamma
            return self._result, gamma

    @property
    def state(self) -> SessionState:
        with self._lock.read_locked():
            if self._result is not None:
                return SessionState.MERGED
            if self._img1 is not None and self._img2 is not None:
                return SessionState.BOTH_SOURCES
            if self._img1 is not None or self._img2 is not None:
                return SessionState.ONE_SOURCE
            return SessionState.EMPTY

    def __repr__(self) -> str:
        return f"MergeSession({self._id!r}, state={self.state.value})"
