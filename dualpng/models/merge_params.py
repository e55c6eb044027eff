from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, List, Mapping, Optional, Tuple, TypeVar
import json
import math
import os
import re

from dotenv import load_dotenv

from .errors import MalformedInputError

# Load environment variables
load_dotenv()

T = TypeVar("T")

Range = Tuple[int, int]
MaskMatrix = List[List[float]]

GAMMA_MAX = 2 ** 32 - 1

_INT_RE = re.compile(r"[+-]?[0-9]+")


@dataclass
class MergeParams:
    """
    Value-object holding everything a merge needs.

    gamma is the stored gAMA value: a real gamma multiplied by 100,000
    (2300 ≈ 0.023). width/height of 0 mean "keep", or "follow the aspect
    ratio" when only the other side is set.
    """
    range1: Range = (0, 230)
    range2: Range = (230, 255)
    gamma: int = 2300
    width: int = 0
    height: int = 0
    brightness1: float = 1.0
    brightness2: float = 1.0
    mask: Optional[MaskMatrix] = None

    @property
    def wants_resize(self) -> bool:
        return self.width > 0 or self.height > 0

    def problems(self) -> List[str]:
        """Return every validation problem; empty list means valid."""
        found = []
        for name, (low, high) in (("range1", self.range1), ("range2", self.range2)):
            if not (0 <= low <= 255 and 0 <= high <= 255):
                found.append(f"{name}: bounds must be within 0-255, got {low}-{high}")
            elif low > high:
                found.append(f"{name}: low bound {low} is greater than high bound {high}")
        if not 0 <= self.gamma <= GAMMA_MAX:
            found.append(f"gamma: must be within 0-{GAMMA_MAX}, got {self.gamma}")
        if self.width < 0 or self.height < 0:
            found.append(f"size: width/height must not be negative, got {self.width}x{self.height}")
        for name, value in (("brightness1", self.brightness1), ("brightness2", self.brightness2)):
            if not math.isfinite(value) or value < 0:
                found.append(f"{name}: must be a finite, non-negative number, got {value}")
        if self.mask is not None:
            mask_problem = _mask_problem(self.mask)
            if mask_problem:
                found.append(f"mask: {mask_problem}")
        return found

    def validate(self) -> "MergeParams":
        problems = self.problems()
        if problems:
            raise MalformedInputError(problems)
        return self


def _mask_problem(mask) -> Optional[str]:
    if not isinstance(mask, list) or not mask:
        return "must be a non-empty 2D array"
    if not all(isinstance(row, list) and row for row in mask):
        return "rows must be non-empty arrays"
    if len({len(row) for row in mask}) != 1:
        return "rows must all have the same length"
    for row in mask:
        for v in row:
            if isinstance(v, bool) or not isinstance(v, (int, float)):
                return f"values must be numbers, got {v!r}"
            if not math.isfinite(v):
                return f"values must be finite, got {v!r}"
    return None


# ─── Field parsers: each returns (value, error) ─────────────────────
def parse_int(raw: Optional[str], default: int) -> Tuple[int, Optional[str]]:
    if raw is None or raw.strip() == "":
        return default, None
    if not _INT_RE.fullmatch(raw.strip()):
        return default, f"not an integer: {raw!r}"
    return int(raw.strip()), None


def parse_float(raw: Optional[str], default: float) -> Tuple[float, Optional[str]]:
    if raw is None or raw.strip() == "":
        return default, None
    try:
        return float(raw.strip()), None
    except ValueError:
        return default, f"not a number: {raw!r}"


def parse_mask(raw: Optional[str]) -> Tuple[Optional[MaskMatrix], Optional[str]]:
    if raw is None or raw.strip() == "":
        return None, None
    try:
        return json.loads(raw), None
    except json.JSONDecodeError as e:
        return None, f"invalid JSON: {e.msg}"


def parse_range(txt: str) -> Range:
    """
    "0-230" -> (0, 230); a single number "230" -> (0, 230).
    Raises ValueError on anything else.
    """
    numbers = txt.strip().split("-")
    if not all(_INT_RE.fullmatch(n.strip()) for n in numbers):
        raise ValueError(f"Invalid range: {txt!r}")
    if len(numbers) == 1:
        return 0, int(numbers[0])
    if len(numbers) == 2:
        return int(numbers[0]), int(numbers[1])
    raise ValueError(f"Invalid range: {txt!r}")


def default_range(env_name: str, fallback: Range) -> Range:
    raw = os.getenv(env_name)
    if not raw:
        return fallback
    return parse_range(raw)


def parse_merge_params(form: Mapping[str, str]) -> MergeParams:
    """
    Build MergeParams from request form fields. Every field is parsed on its
    own and all problems are raised together, so a bad field never leaves a
    partially applied set of parameters behind.
    """
    problems: List[str] = []

    def field(name: str, parser: Callable[..., Tuple[T, Optional[str]]], *args) -> T:
        value, error = parser(form.get(name), *args)
        if error:
            problems.append(f"{name}: {error}")
        return value

    r1_default = default_range("DEFAULT_RANGE1", (0, 230))
    r2_default = default_range("DEFAULT_RANGE2", (230, 255))

    params = MergeParams(
        range1=(field("r1start", parse_int, r1_default[0]), field("r1end", parse_int, r1_default[1])),
        range2=(field("r2start", parse_int, r2_default[0]), field("r2end", parse_int, r2_default[1])),
        gamma=field("gamma", parse_int, int(os.getenv("DEFAULT_GAMMA", "2300"))),
        width=field("width", parse_int, 0),
        height=field("height", parse_int, 0),
        brightness1=field("brightness1", parse_float, 1.0),
        brightness2=field("brightness2", parse_float, 1.0),
        mask=field("mask", parse_mask),
    )

    if problems:
        raise MalformedInputError(problems)
    return params.validate()
