from typing import List


class DualPngError(Exception):
    """Base class for every error surfaced at an operation boundary."""


class SessionNotFoundError(DualPngError):
    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class SessionLimitError(DualPngError):
    def __init__(self, limit: int):
        super().__init__(f"Session limit reached ({limit})")
        self.limit = limit


class PreconditionFailedError(DualPngError):
    """Merge requested while one or both source images are unset."""


class MalformedInputError(DualPngError):
    """
    One or more request parameters failed to parse or validate.
    `problems` holds every per-field message, not only the first.
    """

    def __init__(self, problems: List[str]):
        super().__init__("; ".join(problems))
        self.problems = list(problems)


class DecodeFailureError(DualPngError):
    """Uploaded bytes are not an image in a supported container format."""
