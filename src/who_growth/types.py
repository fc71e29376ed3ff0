"""
Core value types for WHO growth standard evaluation.

Reference tables are held as read-only numpy structured arrays with the WHO
z-score table layout (independent variable, L, M, S and the seven published
SD columns). Rows handed to callers are plain frozen dataclasses.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Tuple

import numpy as np

from .config import SD_COLUMNS


class Sex(str, Enum):
    MALE = "male"
    FEMALE = "female"

    @classmethod
    def parse(cls, value: "Sex | str") -> "Sex":
        """Accept 'male'/'female' as well as the 'M'/'F' codes."""
        if isinstance(value, Sex):
            return value
        if not isinstance(value, str):
            raise ValueError(f"Sex must be a string, got {type(value).__name__}")
        normalized = value.strip().lower()
        if normalized in ("m", "male", "boy", "boys"):
            return cls.MALE
        if normalized in ("f", "female", "girl", "girls"):
            return cls.FEMALE
        raise ValueError("Sex values must be 'male', 'female', 'M' or 'F'")

    @property
    def file_token(self) -> str:
        return "boys" if self is Sex.MALE else "girls"


class Indicator(str, Enum):
    WEIGHT_FOR_AGE = "weight-for-age"
    LENGTH_HEIGHT_FOR_AGE = "length-height-for-age"
    WEIGHT_FOR_LENGTH_HEIGHT = "weight-for-length-height"


class AxisKind(str, Enum):
    """Independent variable of a reference table."""

    WEEK = "week"
    MONTH = "month"
    LENGTH = "length"
    HEIGHT = "height"

    @property
    def is_age(self) -> bool:
        return self in (AxisKind.WEEK, AxisKind.MONTH)


class LengthOrHeight(str, Enum):
    """Whether a length/height-for-age measurement is recumbent or standing."""

    LENGTH = "length"
    HEIGHT = "height"


class EvaluationStatus(str, Enum):
    """Band of the WHO z-score chart a measurement falls into."""

    BELOW_SD3_NEG = "below-sd3-neg"
    BETWEEN_SD3_NEG_AND_SD2_NEG = "between-sd3-neg-and-sd2-neg"
    BETWEEN_SD2_NEG_AND_SD1_NEG = "between-sd2-neg-and-sd1-neg"
    BETWEEN_SD1_NEG_AND_SD0 = "between-sd1-neg-and-sd0"
    BETWEEN_SD0_AND_SD1 = "between-sd0-and-sd1"
    BETWEEN_SD1_AND_SD2 = "between-sd1-and-sd2"
    BETWEEN_SD2_AND_SD3 = "between-sd2-and-sd3"
    ABOVE_SD3 = "above-sd3"

    @property
    def ordinal(self) -> int:
        """Position in the natural band ordering, 0 (lowest) to 7 (highest)."""
        return STATUS_ORDER.index(self)


STATUS_ORDER: Tuple[EvaluationStatus, ...] = tuple(EvaluationStatus)

ROW_FIELDS = ["x", "L", "M", "S"] + SD_COLUMNS
ROW_DTYPE = np.dtype([(name, "f8") for name in ROW_FIELDS])


@dataclass(frozen=True)
class ReferenceRow:
    """One row of a reference table, real or interpolated."""

    x: float
    l: float  # noqa: E741
    m: float
    s: float
    sd3neg: float
    sd2neg: float
    sd1neg: float
    sd0: float
    sd1: float
    sd2: float
    sd3: float
    interpolated: bool = False

    @property
    def boundaries(self) -> np.ndarray:
        """The seven SD boundaries in ascending order."""
        return np.array(
            [
                self.sd3neg,
                self.sd2neg,
                self.sd1neg,
                self.sd0,
                self.sd1,
                self.sd2,
                self.sd3,
            ],
            dtype=np.float64,
        )

    @classmethod
    def from_record(cls, record: np.void, interpolated: bool = False) -> "ReferenceRow":
        return cls(*(float(record[name]) for name in ROW_FIELDS), interpolated=interpolated)


@dataclass(frozen=True, eq=False)
class ReferenceDataset:
    """
    Immutable reference table for one (indicator, sex, bracket).

    Attributes:
        name: Table name, e.g. 'wfa_girls_0_13_weeks'
        indicator: Indicator the table serves
        sex: Sex the table serves
        axis: Kind of independent variable in the 'x' column
        table: Read-only structured array with ROW_DTYPE, sorted by 'x'
    """

    name: str
    indicator: Indicator
    sex: Sex
    axis: AxisKind
    table: np.ndarray

    def __post_init__(self) -> None:
        if self.table.dtype != ROW_DTYPE:
            raise ValueError(
                f"{self.name}: unexpected fields {self.table.dtype.names}, expected {tuple(ROW_FIELDS)}"
            )
        self.table.setflags(write=False)

    def __len__(self) -> int:
        return int(self.table.shape[0])

    def __iter__(self) -> Iterator[ReferenceRow]:
        for record in self.table:
            yield ReferenceRow.from_record(record)

    @property
    def is_empty(self) -> bool:
        return len(self) == 0

    @property
    def x(self) -> np.ndarray:
        return self.table["x"]

    def row(self, index: int) -> ReferenceRow:
        return ReferenceRow.from_record(self.table[index])

    def column(self, name: str) -> np.ndarray:
        return self.table[name]
