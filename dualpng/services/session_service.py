from typing import BinaryIO, Iterable, Mapping, Optional, Tuple, Union
import logging
import os

from dotenv import load_dotenv

from ..models.image import Image
from ..models.merge_params import MergeParams, parse_merge_params
from ..models.session import Merger, MergeSession, ResultMode
from ..pipeline.dual_merger import merge_sources
from ..repositories.image_repository import ImageRepository
from ..repositories.session_repository import SessionRepository

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

SLOT_NAMES = {"img1": 1, "img2": 2}


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


class SessionService:
    """
    Business-level operations of the two-source merge workflow:
    create/find a session, upload a source, merge, fetch a source or result.
    """

    def __init__(
            self,
            session_repository: SessionRepository = None,
            image_repository: ImageRepository = None,
            merger: Merger = merge_sources,
            auto_create: bool = None,
    ):
        self.session_repository = session_repository or SessionRepository()
        self.image_repository = image_repository or ImageRepository()
        self.merger = merger
        self.auto_create = _env_flag("AUTO_CREATE_SESSIONS") if auto_create is None else auto_create

    # ─── Sessions ──────────────────────────────────────────────────
    def bootstrap(self, session_ids: Iterable[str] = None) -> None:
        """Create the sessions that should exist from process start."""
        if session_ids is None:
            session_ids = os.getenv("BOOTSTRAP_SESSION_IDS", "TEST").split(",")
        for session_id in session_ids:
            if session_id.strip():
                self.session_repository.create(session_id.strip())

    def create_session(self, session_id: Optional[str] = None) -> MergeSession:
        return self.session_repository.create(session_id)

    def find_session(self, session_id: str) -> MergeSession:
        if self.auto_create:
            return self.session_repository.get_or_create(session_id)
        return self.session_repository.find(session_id)

    @property
    def session_count(self) -> int:
        return len(self.session_repository)

    @staticmethod
    def slot_for(name: str) -> int:
        """Map "img1"/"img2" to 1/2. Raises KeyError for anything else."""
        return SLOT_NAMES[name]

    # ─── Sources ───────────────────────────────────────────────────
    def upload_source(self, session_id: str, slot: int, data: Union[bytes, BinaryIO]) -> Image:
        """
        Decode `data` and store it in the given slot. Decoding happens before
        the session lock is taken, so a bad upload leaves the slot untouched.
        """
        session = self.find_session(session_id)
        image = self.image_repository.decode(data)
        session.set_source(slot, image)
        return image

    def set_source(self, session_id: str, slot: int, image: Image) -> None:
        self.find_session(session_id).set_source(slot, image)

    def get_source(self, session_id: str, slot: int) -> Optional[Image]:
        return self.find_session(session_id).get_source(slot)

    # ─── Merge / result ────────────────────────────────────────────
    def merge(self, session_id: str, params: MergeParams) -> Image:
        session = self.find_session(session_id)
        params.validate()
        return session.merge(params, self.merger)

    def merge_from_form(self, session_id: str, form: Mapping[str, str]) -> Image:
        """Parse every form field first; nothing runs unless all of them are valid."""
        session = self.find_session(session_id)
        params = parse_merge_params(form)
        return session.merge(params, self.merger)

    def get_result(self, session_id: str, mode: Union[ResultMode, str] = ResultMode.GAMMA) -> Optional[Tuple[Image, Optional[int]]]:
        return self.find_session(session_id).get_result(ResultMode(mode))

    def encode_result(self, session_id: str, mode: Union[ResultMode, str] = ResultMode.GAMMA) -> Optional[bytes]:
        """PNG bytes of the result (with a gAMA chunk unless mode is NO_GAMMA), or None."""
        found = self.get_result(session_id, mode)
        if found is None:
            return None
        image, gamma = found
        return self.image_repository.encode_png(image, gamma)
