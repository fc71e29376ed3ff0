"""
Row lookup in a reference dataset.

find_entry resolves an independent-variable value (age, length or height) to a
table row:

- exact match: the stored row, unmodified
- between two rows: every numeric field blended linearly, flagged interpolated
- outside the table: the nearest edge row, unmodified (clamping)
- empty dataset: EmptyDatasetError
"""

import logging
import math
from typing import Sequence

import numpy as np

from .errors import EmptyDatasetError, InvalidNumericError
from .config import SD_COLUMNS
from .types import ROW_FIELDS, ReferenceDataset, ReferenceRow

logger = logging.getLogger(__name__)

# Every numeric field is interpolated, the independent variable included
INTERPOLATED_FIELDS = tuple(ROW_FIELDS)


def _blend(lower: np.void, upper: np.void, value: float, fields: Sequence[str]) -> ReferenceRow:
    ratio = (value - lower["x"]) / (upper["x"] - lower["x"])
    blended = {
        name: float(lower[name] + (upper[name] - lower[name]) * ratio)
        if name in fields
        else float(lower[name])
        for name in ROW_FIELDS
    }
    blended["x"] = float(value)
    return ReferenceRow(*(blended[name] for name in ROW_FIELDS), interpolated=True)


def find_entry(
    value: float,
    dataset: ReferenceDataset,
    fields: Sequence[str] = INTERPOLATED_FIELDS,
) -> ReferenceRow:
    """
    Row of the dataset for an independent-variable value.

    Args:
        value: Age in weeks/months, or length/height in cm, matching dataset.axis
        dataset: Sorted reference table
        fields: Fields blended when interpolating; others keep the lower row's value.
            The SD columns are blended all together or not at all, so the
            boundaries of an interpolated row stay in ascending order

    Returns:
        ReferenceRow, with interpolated=True only for a blended row

    Raises:
        EmptyDatasetError: If the dataset has no rows
        InvalidNumericError: If value is NaN or infinite
        ValueError: If fields names an unknown field or only some SD columns
    """
    unknown = [name for name in fields if name not in ROW_FIELDS]
    if unknown:
        raise ValueError(f"Unknown fields {unknown}, expected names from {ROW_FIELDS}")
    blended_sd = [name for name in SD_COLUMNS if name in fields]
    if blended_sd and len(blended_sd) != len(SD_COLUMNS):
        raise ValueError(f"SD columns must be interpolated together, got {blended_sd}")
    if dataset.is_empty:
        raise EmptyDatasetError(
            f"Reference table '{dataset.name}' has no rows", dataset_name=dataset.name
        )
    if not math.isfinite(value):
        raise InvalidNumericError(f"Cannot look up non-finite {dataset.axis.value} {value}")

    x = dataset.x
    index = int(np.searchsorted(x, value, side="left"))

    if index < len(x) and x[index] == value:
        return dataset.row(index)
    if index == 0:
        logger.debug(f"{dataset.name}: {value} below table range, clamped to {x[0]}")
        return dataset.row(0)
    if index == len(x):
        logger.debug(f"{dataset.name}: {value} above table range, clamped to {x[-1]}")
        return dataset.row(len(x) - 1)

    return _blend(dataset.table[index - 1], dataset.table[index], value, fields)
