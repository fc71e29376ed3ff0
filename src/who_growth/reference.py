"""
Loading and validation of WHO reference tables.

Tables ship as CSV package data in the WHO z-score table layout:

    <Week|Month|Length|Height>,L,M,S,SD3neg,SD2neg,SD1neg,SD0,SD1,SD2,SD3

Each file serves one (indicator, sex, bracket). Tables are parsed once per
process and returned as immutable ReferenceDataset objects. A table that is
not installed yields an empty dataset so evaluation can fail with
EmptyDatasetError instead of crashing. Run 'scripts/download_data.py' to
install the tables not shipped with the package.
"""

import functools
import io
import logging
from importlib import resources
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple, Union

import numpy as np
import pandas as pd

from .brackets import BRACKET_SCHEDULES, AgeBracket
from .config import AXIS_COLUMNS, DATA_DIR_OVERRIDE, DATA_PACKAGE, LMS_COLUMNS, SD_COLUMNS
from .errors import ReferenceDataError
from .types import ROW_DTYPE, AxisKind, Indicator, ReferenceDataset, Sex

logger = logging.getLogger(__name__)

DatasetKey = Tuple[Indicator, Sex, str]


def _read_table_text(name: str, data_dir: Optional[Path]) -> Optional[str]:
    """Return the CSV text of a table, or None when it is not installed."""
    filename = f"{name}.csv"
    if data_dir is not None:
        path = Path(data_dir) / filename
        if path.is_file():
            return path.read_text(encoding="utf-8")
    resource = resources.files(DATA_PACKAGE).joinpath(filename)
    if not resource.is_file():
        return None
    return resource.read_text(encoding="utf-8")


def _axis_column(frame: pd.DataFrame, name: str) -> str:
    for column in frame.columns:
        if column in AXIS_COLUMNS:
            return column
    raise ReferenceDataError(
        f"{name}: no independent variable column, expected one of {list(AXIS_COLUMNS)}"
    )


def empty_dataset(
    name: str, indicator: Indicator, sex: Sex, axis: AxisKind
) -> ReferenceDataset:
    return ReferenceDataset(
        name=name,
        indicator=indicator,
        sex=sex,
        axis=axis,
        table=np.zeros(0, dtype=ROW_DTYPE),
    )


def dataset_from_frame(
    frame: pd.DataFrame,
    name: str,
    indicator: Union[Indicator, str],
    sex: Union[Sex, str],
    axis: Optional[AxisKind] = None,
) -> ReferenceDataset:
    """
    Validate a WHO z-score table and wrap it as a ReferenceDataset.

    Args:
        frame: Table with an independent variable column (Week, Month, Length or
            Height), L, M, S and SD3neg..SD3. Extra columns are ignored.
        name: Table name used in messages
        indicator: Indicator the table serves
        sex: Sex the table serves
        axis: Expected axis kind; checked against the column header when given

    Raises:
        ReferenceDataError: If columns are missing, values are not finite, the
            independent variable is not strictly ascending, or M/S are not positive.
    """
    indicator = Indicator(indicator)
    sex = Sex.parse(sex)
    frame = frame.rename(columns=lambda c: str(c).replace("\ufeff", "").strip())

    x_col = _axis_column(frame, name)
    found_axis = AxisKind(AXIS_COLUMNS[x_col])
    if axis is not None and found_axis != axis:
        raise ReferenceDataError(
            f"{name}: table is keyed by {found_axis.value}, expected {axis.value}"
        )

    missing = [c for c in LMS_COLUMNS + SD_COLUMNS if c not in frame.columns]
    if missing:
        raise ReferenceDataError(f"{name}: missing columns {missing}")

    columns = [x_col] + LMS_COLUMNS + SD_COLUMNS
    try:
        values = frame[columns].to_numpy(dtype=np.float64)
    except ValueError as e:
        raise ReferenceDataError(f"{name}: non-numeric values: {e}") from e

    if not np.all(np.isfinite(values)):
        raise ReferenceDataError(f"{name}: non-finite values")

    x = values[:, 0]
    if len(x) > 1 and not np.all(np.diff(x) > 0):
        raise ReferenceDataError(
            f"{name}: {x_col} values must be strictly ascending without duplicates"
        )
    if np.any(values[:, 2] <= 0) or np.any(values[:, 3] <= 0):
        raise ReferenceDataError(f"{name}: M and S values must be positive")

    sd = values[:, 4:]
    if sd.size and np.any(np.diff(sd, axis=1) < 0):
        logger.warning(f"{name}: SD columns are not monotonically non-decreasing")

    table = np.zeros(values.shape[0], dtype=ROW_DTYPE)
    for index, field in enumerate(ROW_DTYPE.names):
        table[field] = values[:, index]

    return ReferenceDataset(
        name=name, indicator=indicator, sex=sex, axis=found_axis, table=table
    )


@functools.lru_cache(maxsize=None)
def load_dataset(
    indicator: Indicator,
    sex: Sex,
    bracket_name: str,
    data_dir: Optional[Path] = None,
) -> ReferenceDataset:
    """
    Load the reference table for one (indicator, sex, bracket).

    Cached for the process lifetime. A missing table logs a warning and yields
    an empty dataset.

    Raises:
        KeyError: If the bracket is unknown for the indicator
        ReferenceDataError: If the installed table is malformed
    """
    bracket: AgeBracket = BRACKET_SCHEDULES[indicator].by_name(bracket_name)
    name = bracket.table_name(sex)

    text = _read_table_text(name, data_dir)
    if text is None:
        logger.warning(
            f"Reference table '{name}' is not installed - build it with 'scripts/download_data.py' "
            f"(or 'scripts/download_data.py --table {name}=PATH' from a local WHO table)"
        )
        return empty_dataset(name, indicator, sex, bracket.axis)

    frame = pd.read_csv(io.StringIO(text))
    dataset = dataset_from_frame(frame, name, indicator, sex, axis=bracket.axis)
    logger.debug(f"Loaded reference table '{name}' with {len(dataset)} rows")
    return dataset


class ReferenceLibrary:
    """
    Source of reference datasets for the selector and evaluator.

    The default library reads package data (or WHO_GROWTH_DATA_DIR). A library
    built with explicit datasets serves only those; any other table is empty.
    """

    def __init__(
        self,
        data_dir: Optional[Union[str, Path]] = None,
        datasets: Optional[Mapping[DatasetKey, ReferenceDataset]] = None,
    ) -> None:
        self.data_dir = Path(data_dir) if data_dir is not None else None
        self._datasets: Optional[Dict[DatasetKey, ReferenceDataset]] = (
            dict(datasets) if datasets is not None else None
        )

    @classmethod
    def from_frames(
        cls, frames: Mapping[Tuple[Union[Indicator, str], Union[Sex, str], str], pd.DataFrame]
    ) -> "ReferenceLibrary":
        """Build a library from in-memory tables keyed by (indicator, sex, bracket name)."""
        datasets = {}
        for (indicator, sex, bracket_name), frame in frames.items():
            indicator = Indicator(indicator)
            sex = Sex.parse(sex)
            bracket = BRACKET_SCHEDULES[indicator].by_name(bracket_name)
            datasets[(indicator, sex, bracket_name)] = dataset_from_frame(
                frame, bracket.table_name(sex), indicator, sex, axis=bracket.axis
            )
        return cls(datasets=datasets)

    def dataset(self, indicator: Indicator, sex: Sex, bracket: AgeBracket) -> ReferenceDataset:
        if self._datasets is None:
            return load_dataset(indicator, sex, bracket.name, self.data_dir)
        try:
            return self._datasets[(indicator, sex, bracket.name)]
        except KeyError:
            name = bracket.table_name(sex)
            logger.warning(f"Reference table '{name}' is not part of this library")
            return empty_dataset(name, indicator, sex, bracket.axis)

    def preload(self) -> Dict[DatasetKey, ReferenceDataset]:
        """Load every table up front, e.g. at process start."""
        loaded = {}
        for indicator, schedule in BRACKET_SCHEDULES.items():
            for sex in Sex:
                for bracket in schedule.brackets:
                    loaded[(indicator, sex, bracket.name)] = self.dataset(indicator, sex, bracket)
        return loaded


@functools.lru_cache(maxsize=1)
def default_library() -> ReferenceLibrary:
    return ReferenceLibrary(data_dir=DATA_DIR_OVERRIDE)
