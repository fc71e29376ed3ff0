"""
Age brackets served by each WHO reference table.

Upper bounds are inclusive and measured in the bracket's own unit (whole
weeks or calendar months since birth). Brackets are checked in ascending
order; an age beyond the last bracket is not covered.
"""

from enum import Enum
from typing import Any, Dict, List

from pydantic import BaseModel, StrictInt, field_validator

from .types import AxisKind, Indicator, LengthOrHeight, Sex

# Approximate days per unit, only used to check bracket ordering
_APPROX_DAYS = {"weeks": 7.0, "months": 30.4375}


class AgeUnit(str, Enum):
    WEEKS = "weeks"
    MONTHS = "months"


class AgeBracket(BaseModel):
    """
    One age bracket and the table that serves it.

    Attributes:
        name: Short bracket name ('0-13w', '0-2y', '2-5y', '0-5y')
        unit: Unit the upper bound is expressed in
        max_age: Inclusive upper bound
        axis: Independent variable of the table
        table: Table name template with a '{sex}' placeholder
        measured_as: Recumbent length or standing height for this age
    """

    name: str
    unit: AgeUnit
    max_age: StrictInt
    axis: AxisKind
    table: str
    measured_as: LengthOrHeight = LengthOrHeight.LENGTH

    @field_validator("max_age", mode="after")
    @classmethod
    def non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("max_age must be >= 0")
        return v

    @field_validator("table", mode="after")
    @classmethod
    def has_sex_placeholder(cls, v: str) -> str:
        if "{sex}" not in v:
            raise ValueError("table template must contain '{sex}'")
        return v

    def table_name(self, sex: Sex) -> str:
        return self.table.format(sex=sex.file_token)

    @property
    def approx_days(self) -> float:
        return self.max_age * _APPROX_DAYS[self.unit.value]


class BracketSchedule(BaseModel):
    """Ordered brackets for one indicator."""

    indicator: Indicator
    brackets: List[AgeBracket]

    @field_validator("brackets", mode="after")
    @classmethod
    def ascending_brackets(cls, v: List[AgeBracket]) -> List[AgeBracket]:
        if not v:
            raise ValueError("At least one age bracket required")
        for lower, upper in zip(v, v[1:]):
            if lower.approx_days >= upper.approx_days:
                raise ValueError(
                    f"Brackets must be ascending: '{lower.name}' does not end before '{upper.name}'"
                )
        return v

    def by_name(self, name: str) -> AgeBracket:
        for bracket in self.brackets:
            if bracket.name == name:
                return bracket
        raise KeyError(f"No bracket '{name}' for {self.indicator.value}")


def _schedule(indicator: Indicator, brackets: List[Dict[str, Any]]) -> BracketSchedule:
    return BracketSchedule(
        indicator=indicator, brackets=[AgeBracket(**b) for b in brackets]
    )


BRACKET_SCHEDULES: Dict[Indicator, BracketSchedule] = {
    Indicator.WEIGHT_FOR_AGE: _schedule(
        Indicator.WEIGHT_FOR_AGE,
        [
            {"name": "0-13w", "unit": AgeUnit.WEEKS, "max_age": 13, "axis": AxisKind.WEEK, "table": "wfa_{sex}_0_13_weeks"},
            {"name": "0-5y", "unit": AgeUnit.MONTHS, "max_age": 60, "axis": AxisKind.MONTH, "table": "wfa_{sex}_0_5_years"},
        ],
    ),
    Indicator.LENGTH_HEIGHT_FOR_AGE: _schedule(
        Indicator.LENGTH_HEIGHT_FOR_AGE,
        [
            {"name": "0-13w", "unit": AgeUnit.WEEKS, "max_age": 13, "axis": AxisKind.WEEK, "table": "lhfa_{sex}_0_13_weeks"},
            {"name": "0-2y", "unit": AgeUnit.MONTHS, "max_age": 24, "axis": AxisKind.MONTH, "table": "lhfa_{sex}_0_2_years"},
            {
                "name": "2-5y",
                "unit": AgeUnit.MONTHS,
                "max_age": 60,
                "axis": AxisKind.MONTH,
                "table": "lhfa_{sex}_2_5_years",
                "measured_as": LengthOrHeight.HEIGHT,
            },
        ],
    ),
    Indicator.WEIGHT_FOR_LENGTH_HEIGHT: _schedule(
        Indicator.WEIGHT_FOR_LENGTH_HEIGHT,
        [
            {"name": "0-2y", "unit": AgeUnit.MONTHS, "max_age": 24, "axis": AxisKind.LENGTH, "table": "wfl_{sex}_0_2_years"},
            {
                "name": "2-5y",
                "unit": AgeUnit.MONTHS,
                "max_age": 60,
                "axis": AxisKind.HEIGHT,
                "table": "wfh_{sex}_2_5_years",
                "measured_as": LengthOrHeight.HEIGHT,
            },
        ],
    ),
}
