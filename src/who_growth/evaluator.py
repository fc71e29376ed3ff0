"""
Classification of measurements against WHO growth standards.

A measurement is placed into one of eight bands of the WHO z-score chart by
comparing it with the seven published SD boundaries of the (possibly
interpolated) reference row for the child's age and sex:

    measurement <  SD3neg  -> below-sd3-neg
    measurement <  SD2neg  -> between-sd3-neg-and-sd2-neg
    ...
    measurement <  SD3     -> between-sd2-and-sd3
    otherwise              -> above-sd3

Comparison is strict, so a measurement equal to a boundary lands in the band
above it. Classification uses the published boundaries directly; z-scores are
only derived for EvaluationResult.
"""

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Dict, Optional, Tuple, Union

import pandas as pd
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

from .config import MAX_PLAUSIBLE_LENGTH_CM, MAX_PLAUSIBLE_WEIGHT_KG
from .errors import InvalidNumericError
from .lms import percentile_from_zscore, zscore_from_measurement
from .lookup import find_entry
from .reference import ReferenceLibrary
from .selector import DateLike, independent_value, select_dataset, utc_now
from .types import (
    STATUS_ORDER,
    AxisKind,
    EvaluationStatus,
    Indicator,
    ReferenceDataset,
    ReferenceRow,
    Sex,
)

logger = logging.getLogger(__name__)

Translate = Callable[[str], str]

STATUS_LABELS: Dict[EvaluationStatus, str] = {
    EvaluationStatus.BELOW_SD3_NEG: "Below -3 SD",
    EvaluationStatus.BETWEEN_SD3_NEG_AND_SD2_NEG: "Between -3 SD and -2 SD",
    EvaluationStatus.BETWEEN_SD2_NEG_AND_SD1_NEG: "Between -2 SD and -1 SD",
    EvaluationStatus.BETWEEN_SD1_NEG_AND_SD0: "Between -1 SD and median",
    EvaluationStatus.BETWEEN_SD0_AND_SD1: "Between median and +1 SD",
    EvaluationStatus.BETWEEN_SD1_AND_SD2: "Between +1 SD and +2 SD",
    EvaluationStatus.BETWEEN_SD2_AND_SD3: "Between +2 SD and +3 SD",
    EvaluationStatus.ABOVE_SD3: "Above +3 SD",
}

_WEIGHT_INDICATORS = (Indicator.WEIGHT_FOR_AGE, Indicator.WEIGHT_FOR_LENGTH_HEIGHT)


class EvaluationRequest(BaseModel):
    """
    One measurement to evaluate.

    Attributes:
        measurement: Weight in kg, or length/height in cm for length-height-for-age
        date_of_birth: Child's date of birth
        sex: 'male'/'female' (or 'M'/'F')
        indicator: Indicator to evaluate against
        evaluation_date: Date of the measurement; None means now
        length: Length/height in cm, required for weight-for-length-height
    """

    model_config = ConfigDict(frozen=True)

    measurement: float
    date_of_birth: Union[datetime, date]
    sex: Sex
    indicator: Indicator = Indicator.WEIGHT_FOR_AGE
    evaluation_date: Optional[Union[datetime, date]] = None
    length: Optional[float] = None

    @field_validator("sex", mode="before")
    @classmethod
    def parse_sex(cls, v) -> Sex:
        return Sex.parse(v)

    @field_validator("measurement", "length", mode="after")
    @classmethod
    def positive_finite(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and not (math.isfinite(v) and v > 0):
            raise ValueError("Measurements must be positive finite numbers")
        return v

    @model_validator(mode="after")
    def length_for_length_keyed_tables(self) -> "EvaluationRequest":
        if self.indicator is Indicator.WEIGHT_FOR_LENGTH_HEIGHT and self.length is None:
            raise ValueError("length is required for weight-for-length-height")
        return self


@dataclass(frozen=True)
class GrowthPoint:
    """Chart coordinates of an evaluated measurement and the row it was compared with."""

    x: float
    y: float
    row: ReferenceRow
    dataset: ReferenceDataset

    @property
    def axis(self) -> AxisKind:
        return self.dataset.axis


@dataclass(frozen=True)
class EvaluationResult:
    status: EvaluationStatus
    point: GrowthPoint
    zscore: float
    percentile: float

    @property
    def row(self) -> ReferenceRow:
        return self.point.row

    @property
    def dataset_name(self) -> str:
        return self.point.dataset.name


def classify(measurement: float, row: ReferenceRow) -> EvaluationStatus:
    """
    Band of a measurement relative to a row's SD boundaries.

    Raises:
        InvalidNumericError: If the measurement is NaN or infinite
    """
    if not math.isfinite(measurement):
        raise InvalidNumericError(f"Cannot classify non-finite measurement {measurement}")
    for status, boundary in zip(STATUS_ORDER, row.boundaries):
        if measurement < boundary:
            return status
    return EvaluationStatus.ABOVE_SD3


def evaluate_against_dataset(
    measurement: float, x: float, dataset: ReferenceDataset
) -> EvaluationStatus:
    """Classify a measurement against the row of a given table at x."""
    return classify(measurement, find_entry(x, dataset))


def _log_unit_warnings(request: EvaluationRequest) -> None:
    """Log warnings for potential unit mismatches."""
    if request.indicator in _WEIGHT_INDICATORS and request.measurement > MAX_PLAUSIBLE_WEIGHT_KG:
        logger.warning(
            f"Weight {request.measurement} exceeds {MAX_PLAUSIBLE_WEIGHT_KG} kg - check units (kg expected)"
        )
    if (
        request.indicator is Indicator.LENGTH_HEIGHT_FOR_AGE
        and request.measurement > MAX_PLAUSIBLE_LENGTH_CM
    ):
        logger.warning(
            f"Length/height {request.measurement} exceeds {MAX_PLAUSIBLE_LENGTH_CM} cm - check units (cm expected)"
        )
    if request.length is not None and request.length > MAX_PLAUSIBLE_LENGTH_CM:
        logger.warning(
            f"Length/height {request.length} exceeds {MAX_PLAUSIBLE_LENGTH_CM} cm - check units (cm expected)"
        )


def _resolve(
    request: EvaluationRequest, library: Optional[ReferenceLibrary]
) -> Tuple[ReferenceDataset, float, ReferenceRow]:
    # Pin "now" once so bracket selection and the age lookup agree
    evaluated_at = request.evaluation_date or utc_now()
    dataset = select_dataset(
        request.date_of_birth, request.sex, request.indicator, evaluated_at, library
    )
    x = independent_value(dataset.axis, request.date_of_birth, evaluated_at, length=request.length)
    return dataset, x, find_entry(x, dataset)


def resolve_point(
    request: EvaluationRequest, library: Optional[ReferenceLibrary] = None
) -> GrowthPoint:
    """
    Position of the "you are here" marker for a request.

    Uses the same selection and lookup as evaluate(), so the marker sits on the
    row the measurement was classified against.
    """
    dataset, x, row = _resolve(request, library)
    return GrowthPoint(x=x, y=request.measurement, row=row, dataset=dataset)


def evaluate_result(
    request: EvaluationRequest, library: Optional[ReferenceLibrary] = None
) -> EvaluationResult:
    """
    Band, chart point, z-score and percentile of a request.

    The z-score is derived from the row's LMS parameters and may be NaN where
    the transform is undefined; the band never depends on it.
    """
    _log_unit_warnings(request)
    point = resolve_point(request, library)
    status = classify(request.measurement, point.row)
    zscore = zscore_from_measurement(point.row.l, point.row.m, point.row.s, request.measurement)
    return EvaluationResult(
        status=status,
        point=point,
        zscore=zscore,
        percentile=percentile_from_zscore(zscore),
    )


def _build_request(**fields) -> EvaluationRequest:
    try:
        return EvaluationRequest(**fields)
    except ValidationError as e:
        raise ValueError(f"Invalid evaluation request: {e}") from e


def evaluate(
    measurement: float,
    date_of_birth: DateLike,
    sex: Union[Sex, str],
    indicator: Union[Indicator, str] = Indicator.WEIGHT_FOR_AGE,
    evaluation_date: Optional[DateLike] = None,
    length: Optional[float] = None,
    library: Optional[ReferenceLibrary] = None,
) -> EvaluationStatus:
    """
    Evaluate a measurement against the WHO standard for the child's age and sex.

    Args:
        measurement: Weight in kg, or length/height in cm for length-height-for-age
        date_of_birth: Child's date of birth
        sex: 'male'/'female' (or 'M'/'F')
        indicator: Indicator to evaluate against
        evaluation_date: Date of the measurement, defaults to now
        length: Length/height in cm, required for weight-for-length-height
        library: Reference tables, defaults to the package tables

    Returns:
        EvaluationStatus band

    Raises:
        DataMissingError: If no table covers the child's age
        EmptyDatasetError: If the covering table has no rows (see the package
            docstring for installing tables beyond 13 weeks)
        ValueError: If the request is invalid
    """
    request = _build_request(
        measurement=measurement,
        date_of_birth=date_of_birth,
        sex=sex,
        indicator=indicator,
        evaluation_date=evaluation_date,
        length=length,
    )
    _log_unit_warnings(request)
    _, _, row = _resolve(request, library)
    return classify(request.measurement, row)


def evaluate_weight_for_age(
    weight: float,
    date_of_birth: DateLike,
    sex: Union[Sex, str],
    evaluation_date: Optional[DateLike] = None,
    library: Optional[ReferenceLibrary] = None,
) -> EvaluationStatus:
    return evaluate(
        weight, date_of_birth, sex, Indicator.WEIGHT_FOR_AGE, evaluation_date, library=library
    )


def evaluate_length_height_for_age(
    length_or_height: float,
    date_of_birth: DateLike,
    sex: Union[Sex, str],
    evaluation_date: Optional[DateLike] = None,
    library: Optional[ReferenceLibrary] = None,
) -> EvaluationStatus:
    return evaluate(
        length_or_height,
        date_of_birth,
        sex,
        Indicator.LENGTH_HEIGHT_FOR_AGE,
        evaluation_date,
        library=library,
    )


def evaluate_weight_for_length(
    weight: float,
    length: float,
    date_of_birth: DateLike,
    sex: Union[Sex, str],
    evaluation_date: Optional[DateLike] = None,
    library: Optional[ReferenceLibrary] = None,
) -> EvaluationStatus:
    """Weight against the length (under 2 years) or height (2-5 years) table."""
    return evaluate(
        weight,
        date_of_birth,
        sex,
        Indicator.WEIGHT_FOR_LENGTH_HEIGHT,
        evaluation_date,
        length=length,
        library=library,
    )


def status_label(status: Union[EvaluationStatus, str], translate: Optional[Translate] = None) -> str:
    """
    Human readable label for a status.

    Args:
        status: Status or its string value
        translate: Callable mapping the status string value to a label;
            English labels are used when omitted
    """
    status = EvaluationStatus(status)
    if translate is not None:
        return translate(status.value)
    return STATUS_LABELS[status]


class FrameEvaluationConfig(BaseModel):
    """
    Column mapping for evaluate_frame.

    Attributes:
        measurement_col: Measurement column ('measurement' by default)
        date_of_birth_col: Date of birth column ('date_of_birth' by default)
        sex_col: Sex column ('sex' by default). Expected values: 'M', 'F', 'male', 'female'.
        evaluation_date_col: Measurement date column; None evaluates every row as of now
        length_col: Length/height column, required for weight-for-length-height
        indicator: Indicator every row is evaluated against
    """

    measurement_col: str = "measurement"
    date_of_birth_col: str = "date_of_birth"
    sex_col: str = "sex"
    evaluation_date_col: Optional[str] = None
    length_col: Optional[str] = None
    indicator: Indicator = Indicator.WEIGHT_FOR_AGE

    @field_validator("measurement_col", "date_of_birth_col", "sex_col")
    @classmethod
    def validate_column_names(cls, v: str) -> str:
        """Ensure column names are valid string identifiers."""
        if not isinstance(v, str) or not v.strip():
            raise ValueError("Column name must be a non-empty string")
        return v

    @model_validator(mode="after")
    def length_column_for_length_keyed_tables(self) -> "FrameEvaluationConfig":
        if self.indicator is Indicator.WEIGHT_FOR_LENGTH_HEIGHT and self.length_col is None:
            raise ValueError("length_col is required for weight-for-length-height")
        return self

    @property
    def columns(self) -> Tuple[str, ...]:
        optional = (self.evaluation_date_col, self.length_col)
        return (self.measurement_col, self.date_of_birth_col, self.sex_col) + tuple(
            c for c in optional if c is not None
        )


def _cell(row: pd.Series, column: Optional[str]):
    if column is None:
        return None
    value = row[column]
    return None if pd.isna(value) else value


def evaluate_frame(
    df: pd.DataFrame,
    config: Optional[FrameEvaluationConfig] = None,
    library: Optional[ReferenceLibrary] = None,
) -> pd.Series:
    """
    Evaluate every row of a DataFrame.

    Rows that cannot be evaluated (invalid values, an empty cell in the
    configured evaluation date column, age out of range, missing table) yield
    None and are logged; they never abort the batch.

    Args:
        df: Input DataFrame with one measurement per row
        config: Column mapping, defaults to FrameEvaluationConfig()
        library: Reference tables, defaults to the package tables

    Returns:
        Series of status string values (or None) aligned with df.index

    Raises:
        ValueError: If configured columns are missing from df
    """
    config = config or FrameEvaluationConfig()
    missing = [c for c in config.columns if c not in df.columns]
    if missing:
        raise ValueError(f"Columns {missing} not found in DataFrame")

    statuses = []
    for index, row in df.iterrows():
        evaluation_date = _cell(row, config.evaluation_date_col)
        # A named but empty visit date must not fall back to now
        if config.evaluation_date_col is not None and evaluation_date is None:
            logger.warning(f"Row {index}: missing {config.evaluation_date_col}")
            statuses.append(None)
            continue
        try:
            status = evaluate(
                _cell(row, config.measurement_col),
                _cell(row, config.date_of_birth_col),
                _cell(row, config.sex_col),
                config.indicator,
                evaluation_date,
                length=_cell(row, config.length_col),
                library=library,
            )
        except ValueError as e:
            logger.warning(f"Row {index}: {e}")
            statuses.append(None)
            continue
        statuses.append(status.value)

    return pd.Series(statuses, index=df.index, name="status", dtype=object)
