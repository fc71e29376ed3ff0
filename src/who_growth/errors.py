"""Exception hierarchy for growth standard evaluation."""

from typing import Optional


class GrowthStandardError(ValueError):
    """Base class for recoverable growth standard failures."""


class DataMissingError(GrowthStandardError):
    """No reference dataset covers the requested age and sex."""

    def __init__(
        self,
        message: str,
        indicator: Optional[str] = None,
        sex: Optional[str] = None,
        age: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.indicator = indicator
        self.sex = sex
        self.age = age


class EmptyDatasetError(GrowthStandardError):
    """A dataset was resolved but holds no rows."""

    def __init__(self, message: str, dataset_name: Optional[str] = None) -> None:
        super().__init__(message)
        self.dataset_name = dataset_name


class InvalidNumericError(GrowthStandardError):
    """A computation produced (or was given) a non-finite number."""


class ReferenceDataError(GrowthStandardError):
    """A reference table on disk is malformed."""
