import logging
import time
from datetime import date, datetime, timedelta, timezone

import pytest

from who_growth.errors import DataMissingError
from who_growth.selector import (
    days_since_birth,
    independent_value,
    length_or_height_for_age_type,
    months_since_birth,
    select_bracket,
    select_dataset,
    utc_now,
    weeks_since_birth,
)
from who_growth.types import AxisKind, Indicator, LengthOrHeight, Sex


class TestAgeComputation:
    """Calendar-aware age helpers."""

    def test_tc001_month_not_complete_before_birth_day(self, birth_date: date) -> None:
        """A child born on the 20th is not one month old on the 19th"""
        assert months_since_birth(birth_date, date(2024, 2, 19)) == 0
        assert months_since_birth(birth_date, date(2024, 2, 20)) == 1

    def test_tc002_months_across_year_boundary(self) -> None:
        """Year and month differences combine"""
        assert months_since_birth(date(2023, 11, 30), date(2024, 1, 15)) == 1
        assert months_since_birth(date(2023, 11, 30), date(2024, 1, 30)) == 2
        assert months_since_birth(date(2020, 6, 1), date(2025, 6, 1)) == 60

    def test_tc003_months_at_end_of_short_month(self) -> None:
        """Born on the 31st, a month completes only on a day >= 31"""
        assert months_since_birth(date(2024, 1, 31), date(2024, 2, 29)) == 0
        assert months_since_birth(date(2024, 1, 31), date(2024, 3, 31)) == 2

    def test_tc004_weeks_are_floored(self, birth_date: date) -> None:
        """Weeks are whole elapsed weeks"""
        assert weeks_since_birth(birth_date, birth_date + timedelta(days=6)) == 0
        assert weeks_since_birth(birth_date, birth_date + timedelta(days=7)) == 1
        assert weeks_since_birth(birth_date, birth_date + timedelta(days=13)) == 1
        assert weeks_since_birth(birth_date, birth_date + timedelta(days=14)) == 2

    def test_tc005_weeks_count_elapsed_time(self) -> None:
        """Partial days count towards elapsed time"""
        born = datetime(2024, 1, 1, 18, 0)
        assert weeks_since_birth(born, datetime(2024, 1, 8, 17, 59)) == 0
        assert weeks_since_birth(born, datetime(2024, 1, 8, 18, 0)) == 1

    def test_tc006_negative_age(self, birth_date: date) -> None:
        """An evaluation before birth gives a negative age"""
        assert days_since_birth(birth_date, date(2024, 1, 19)) == -1
        assert weeks_since_birth(birth_date, date(2024, 1, 19)) == -1

    def test_tc007_timezone_aware_datetimes(self) -> None:
        """Aware datetimes are compared in UTC"""
        born = datetime(2024, 1, 1, 23, 0, tzinfo=timezone(timedelta(hours=-2)))
        evaluated = datetime(2024, 1, 9, 0, 30, tzinfo=timezone.utc)
        # 2024-01-02 01:00 UTC to 2024-01-09 00:30 UTC is under a week
        assert weeks_since_birth(born, evaluated) == 0

    def test_tc008_mixed_date_and_datetime(self, birth_date: date) -> None:
        """A date counts as midnight"""
        assert days_since_birth(birth_date, datetime(2024, 1, 21, 12, 0)) == 1


class TestBracketSelection:
    """Bracket choice for each indicator."""

    def test_tc009_weight_for_age_week_bracket_inclusive(self, birth_date: date) -> None:
        """13 completed weeks still use the week table"""
        assert select_bracket("weight-for-age", birth_date, birth_date + timedelta(days=97)).name == "0-13w"
        assert select_bracket("weight-for-age", birth_date, birth_date + timedelta(days=98)).name == "0-5y"

    def test_tc010_length_for_age_brackets(self) -> None:
        """Length-for-age moves from weeks to 0-2y to 2-5y"""
        born = date(2022, 3, 10)
        assert select_bracket(Indicator.LENGTH_HEIGHT_FOR_AGE, born, date(2022, 4, 1)).name == "0-13w"
        assert select_bracket(Indicator.LENGTH_HEIGHT_FOR_AGE, born, date(2024, 3, 10)).name == "0-2y"
        assert select_bracket(Indicator.LENGTH_HEIGHT_FOR_AGE, born, date(2024, 4, 9)).name == "0-2y"
        assert select_bracket(Indicator.LENGTH_HEIGHT_FOR_AGE, born, date(2024, 4, 10)).name == "2-5y"

    def test_tc011_weight_for_length_uses_age_brackets(self) -> None:
        """Weight-for-length picks the length table under two, height table after"""
        born = date(2022, 3, 10)
        under_two = select_bracket(Indicator.WEIGHT_FOR_LENGTH_HEIGHT, born, date(2022, 3, 11))
        over_two = select_bracket(Indicator.WEIGHT_FOR_LENGTH_HEIGHT, born, date(2024, 6, 1))
        assert under_two.axis is AxisKind.LENGTH
        assert over_two.axis is AxisKind.HEIGHT

    def test_tc012_last_bracket_upper_bound_inclusive(self) -> None:
        """Exactly 60 months is covered"""
        assert select_bracket("weight-for-age", date(2020, 6, 1), date(2025, 6, 1)).name == "0-5y"

    def test_tc013_beyond_last_bracket_raises(self) -> None:
        """Older than every bracket is DataMissingError, no fallback"""
        with pytest.raises(DataMissingError) as exc_info:
            select_bracket("weight-for-age", date(2020, 6, 1), date(2025, 7, 1))
        assert exc_info.value.age == 61
        assert exc_info.value.indicator == "weight-for-age"

    def test_tc014_before_birth_raises(self, birth_date: date) -> None:
        """An evaluation date before birth is DataMissingError"""
        with pytest.raises(DataMissingError, match="precedes"):
            select_bracket("weight-for-age", birth_date, date(2024, 1, 1))

    def test_tc015_default_evaluation_date_is_now(self) -> None:
        """Without an evaluation date the current time is used"""
        born = datetime.now(timezone.utc) - timedelta(days=3)
        assert select_bracket("weight-for-age", born).name == "0-13w"

    def test_tc016_length_or_height_type(self) -> None:
        """Recumbent length under two years, standing height after"""
        born = date(2022, 3, 10)
        assert length_or_height_for_age_type(born, date(2022, 5, 1)) is LengthOrHeight.LENGTH
        assert length_or_height_for_age_type(born, date(2023, 5, 1)) is LengthOrHeight.LENGTH
        assert length_or_height_for_age_type(born, date(2025, 5, 1)) is LengthOrHeight.HEIGHT


class TestSelectDataset:
    """Dataset resolution through a library."""

    def test_tc017_shipped_week_table(self, birth_date: date) -> None:
        """A ten day old girl gets the week weight-for-age table"""
        dataset = select_dataset(birth_date, "F", "weight-for-age", date(2024, 1, 30))
        assert dataset.name == "wfa_girls_0_13_weeks"
        assert dataset.sex is Sex.FEMALE
        assert dataset.axis is AxisKind.WEEK
        assert len(dataset) == 14

    def test_tc018_sex_selects_table(self, birth_date: date) -> None:
        """Boys and girls use different tables"""
        boys = select_dataset(birth_date, "male", "length-height-for-age", date(2024, 2, 1))
        assert boys.name == "lhfa_boys_0_13_weeks"
        assert boys.row(0).m == pytest.approx(49.8842)

    def test_tc019_missing_table_is_empty(self, birth_date: date, empty_library, caplog) -> None:
        """A table absent from the library resolves to an empty dataset with a warning"""
        caplog.set_level(logging.WARNING)
        dataset = select_dataset(birth_date, Sex.MALE, "weight-for-age", date(2024, 2, 1), library=empty_library)
        assert dataset.is_empty
        assert dataset.name == "wfa_boys_0_13_weeks"
        assert any("not part of this library" in record.message for record in caplog.records)

    def test_tc020_invalid_sex(self, birth_date: date) -> None:
        """Unknown sex values are rejected"""
        with pytest.raises(ValueError, match="Sex values"):
            select_dataset(birth_date, "X", "weight-for-age", date(2024, 2, 1))


class TestIndependentValue:
    """Independent variable per axis kind."""

    def test_tc021_age_axes(self, birth_date: date) -> None:
        """Week and month axes use the child's age"""
        evaluated = date(2024, 3, 25)
        assert independent_value(AxisKind.WEEK, birth_date, evaluated) == 9.0
        assert independent_value(AxisKind.MONTH, birth_date, evaluated) == 2.0

    def test_tc022_length_axes(self, birth_date: date) -> None:
        """Length and height axes use the supplied length"""
        assert independent_value(AxisKind.LENGTH, birth_date, date(2024, 3, 1), length=45.25) == 45.25
        with pytest.raises(ValueError, match="required"):
            independent_value(AxisKind.HEIGHT, birth_date, date(2024, 3, 1))

    def test_tc023_age_axis_kinds(self) -> None:
        """Only week and month axes are ages"""
        assert [axis for axis in AxisKind if axis.is_age] == [AxisKind.WEEK, AxisKind.MONTH]


@pytest.fixture
def tokyo_local_time(monkeypatch):
    """Run with a host clock nine hours ahead of UTC."""
    monkeypatch.setenv("TZ", "Asia/Tokyo")
    time.tzset()
    yield
    monkeypatch.undo()
    time.tzset()


@pytest.mark.skipif(not hasattr(time, "tzset"), reason="time.tzset not available")
class TestDefaultNow:
    """The default evaluation date is independent of the host time zone."""

    def test_tc024_utc_now_is_naive_utc(self, tokyo_local_time) -> None:
        """utc_now matches an aware UTC clock"""
        now = utc_now()
        assert now.tzinfo is None
        assert abs(now - datetime.now(timezone.utc).replace(tzinfo=None)) < timedelta(minutes=1)

    def test_tc025_default_now_matches_explicit_utc(self, tokyo_local_time) -> None:
        """Ages from the default evaluation date match an explicit UTC now"""
        born = datetime.now(timezone.utc) - timedelta(days=6, hours=23)
        assert weeks_since_birth(born) == 0
        assert weeks_since_birth(born) == weeks_since_birth(born, datetime.now(timezone.utc))
        assert days_since_birth(born) == 6
