"""
Dataset selection by age bracket and sex.

Age is computed in the unit of each bracket: whole weeks (floor of elapsed
time) or calendar months (a child born on the 20th turns one month old on the
20th of the following month). The first bracket whose inclusive upper bound is
not exceeded wins; an age before birth or beyond every bracket raises
DataMissingError.

All instants are compared as naive UTC: aware datetimes are converted to UTC,
dates count as midnight and the default evaluation date is the current UTC
time.
"""

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Union

from .brackets import BRACKET_SCHEDULES, AgeBracket, AgeUnit
from .config import MONTHS_IN_YEAR
from .errors import DataMissingError
from .reference import ReferenceLibrary, default_library
from .types import AxisKind, Indicator, LengthOrHeight, ReferenceDataset, Sex

logger = logging.getLogger(__name__)

DateLike = Union[date, datetime]


def utc_now() -> datetime:
    """Current time as naive UTC, the frame aware datetimes are converted to."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _as_datetime(value: DateLike) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    raise TypeError(f"Expected a date or datetime, got {type(value).__name__}")


def _resolve_evaluation_date(evaluation_date: Optional[DateLike]) -> datetime:
    if evaluation_date is None:
        return utc_now()
    return _as_datetime(evaluation_date)


def days_since_birth(date_of_birth: DateLike, evaluation_date: Optional[DateLike] = None) -> int:
    """Whole days elapsed between birth and the evaluation date."""
    elapsed = _resolve_evaluation_date(evaluation_date) - _as_datetime(date_of_birth)
    return elapsed // timedelta(days=1)


def weeks_since_birth(date_of_birth: DateLike, evaluation_date: Optional[DateLike] = None) -> int:
    """Whole weeks elapsed between birth and the evaluation date (floor division)."""
    elapsed = _resolve_evaluation_date(evaluation_date) - _as_datetime(date_of_birth)
    return elapsed // timedelta(weeks=1)


def months_since_birth(date_of_birth: DateLike, evaluation_date: Optional[DateLike] = None) -> int:
    """
    Completed calendar months between birth and the evaluation date.

    The month count is decremented when the evaluation day-of-month precedes
    the day-of-month of birth.
    """
    start = _as_datetime(date_of_birth)
    end = _resolve_evaluation_date(evaluation_date)
    months = (end.year - start.year) * MONTHS_IN_YEAR + (end.month - start.month)
    if end.day < start.day:
        months -= 1
    return months


def age_in_unit(
    unit: AgeUnit, date_of_birth: DateLike, evaluation_date: Optional[DateLike] = None
) -> int:
    if unit is AgeUnit.WEEKS:
        return weeks_since_birth(date_of_birth, evaluation_date)
    return months_since_birth(date_of_birth, evaluation_date)


def select_bracket(
    indicator: Union[Indicator, str],
    date_of_birth: DateLike,
    evaluation_date: Optional[DateLike] = None,
) -> AgeBracket:
    """
    First bracket of the indicator's schedule that covers the child's age.

    Raises:
        DataMissingError: If the evaluation date precedes birth or the age
            exceeds every bracket
    """
    indicator = Indicator(indicator)
    evaluated_at = _resolve_evaluation_date(evaluation_date)
    if days_since_birth(date_of_birth, evaluated_at) < 0:
        raise DataMissingError(
            f"Evaluation date {evaluated_at:%Y-%m-%d} precedes date of birth {date_of_birth}",
            indicator=indicator.value,
        )

    for bracket in BRACKET_SCHEDULES[indicator].brackets:
        age = age_in_unit(bracket.unit, date_of_birth, evaluated_at)
        if age <= bracket.max_age:
            return bracket

    months = months_since_birth(date_of_birth, evaluated_at)
    logger.debug(f"No {indicator.value} bracket covers age {months} months")
    raise DataMissingError(
        f"No {indicator.value} reference data for age {months} months",
        indicator=indicator.value,
        age=months,
    )


def select_dataset(
    date_of_birth: DateLike,
    sex: Union[Sex, str],
    indicator: Union[Indicator, str],
    evaluation_date: Optional[DateLike] = None,
    library: Optional[ReferenceLibrary] = None,
) -> ReferenceDataset:
    """
    Reference dataset for a child's age and sex.

    Args:
        date_of_birth: Date of birth
        sex: 'male'/'female' (or 'M'/'F')
        indicator: Indicator to evaluate
        evaluation_date: Date of the measurement, defaults to now
        library: Reference library, defaults to the package tables

    Raises:
        DataMissingError: If no bracket covers the age
    """
    indicator = Indicator(indicator)
    sex = Sex.parse(sex)
    bracket = select_bracket(indicator, date_of_birth, evaluation_date)
    library = library or default_library()
    return library.dataset(indicator, sex, bracket)


def length_or_height_for_age_type(
    date_of_birth: DateLike, evaluation_date: Optional[DateLike] = None
) -> LengthOrHeight:
    """Whether the child is measured lying down (length) or standing (height)."""
    bracket = select_bracket(Indicator.LENGTH_HEIGHT_FOR_AGE, date_of_birth, evaluation_date)
    return bracket.measured_as


def independent_value(
    axis: AxisKind,
    date_of_birth: DateLike,
    evaluation_date: Optional[DateLike] = None,
    length: Optional[float] = None,
) -> float:
    """
    Value of a dataset's independent variable for this child.

    Age axes use whole weeks or calendar months; length and height axes use
    the supplied length/height in cm.
    """
    if not axis.is_age:
        if length is None:
            raise ValueError(f"A {axis.value} in cm is required for {axis.value}-keyed tables")
        return float(length)
    if axis is AxisKind.WEEK:
        return float(weeks_since_birth(date_of_birth, evaluation_date))
    return float(months_since_birth(date_of_birth, evaluation_date))
