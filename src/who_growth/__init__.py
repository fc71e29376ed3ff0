"""
who_growth: evaluation of child growth measurements against the WHO Child
Growth Standards.

Classifies a weight, length or height into one of eight SD bands of the WHO
z-score charts, with calendar-aware age brackets, linear interpolation between
reference rows and LMS z-score transforms.

Reference tables
----------------
Only the 0-13 week weight-for-age and length-for-age tables are installed with
the package. Other brackets load empty and evaluation against them raises
EmptyDatasetError until their tables are built with scripts/download_data.py:

    # length-for-age and weight-for-length, 0-2 years (downloaded)
    python scripts/download_data.py

    # remaining tables from local copies of the month- and height-keyed WHO
    # z-score tables
    python scripts/download_data.py --no-download \\
        --table wfa_boys_0_5_years=wfa_boys_zscores_months.txt \\
        --table wfa_girls_0_5_years=wfa_girls_zscores_months.txt \\
        --table lhfa_boys_2_5_years=hfa_boys_2_5_zscores.txt \\
        --table lhfa_girls_2_5_years=hfa_girls_2_5_zscores.txt \\
        --table wfh_boys_2_5_years=wfh_boys_2_5_zscores.txt \\
        --table wfh_girls_2_5_years=wfh_girls_2_5_zscores.txt

Tables are written to the package data directory by default. Use --output-dir
with ReferenceLibrary(data_dir=...) or the WHO_GROWTH_DATA_DIR environment
variable to keep them elsewhere.
"""

from .errors import (
    DataMissingError,
    EmptyDatasetError,
    GrowthStandardError,
    InvalidNumericError,
    ReferenceDataError,
)
from .evaluator import (
    EvaluationRequest,
    EvaluationResult,
    FrameEvaluationConfig,
    GrowthPoint,
    classify,
    evaluate,
    evaluate_against_dataset,
    evaluate_frame,
    evaluate_length_height_for_age,
    evaluate_result,
    evaluate_weight_for_age,
    evaluate_weight_for_length,
    resolve_point,
    status_label,
)
from .lms import (
    lms_curve,
    measurement_from_zscore,
    percentile_from_zscore,
    require_finite,
    zscore_from_measurement,
)
from .lookup import find_entry
from .reference import ReferenceLibrary, dataset_from_frame, load_dataset
from .selector import (
    length_or_height_for_age_type,
    months_since_birth,
    select_dataset,
    weeks_since_birth,
)
from .types import (
    AxisKind,
    EvaluationStatus,
    Indicator,
    LengthOrHeight,
    ReferenceDataset,
    ReferenceRow,
    Sex,
)

__version__ = "0.1.0"

__all__ = [
    "AxisKind",
    "DataMissingError",
    "EmptyDatasetError",
    "EvaluationRequest",
    "EvaluationResult",
    "EvaluationStatus",
    "FrameEvaluationConfig",
    "GrowthPoint",
    "GrowthStandardError",
    "Indicator",
    "InvalidNumericError",
    "LengthOrHeight",
    "ReferenceDataError",
    "ReferenceDataset",
    "ReferenceLibrary",
    "ReferenceRow",
    "Sex",
    "classify",
    "dataset_from_frame",
    "evaluate",
    "evaluate_against_dataset",
    "evaluate_frame",
    "evaluate_length_height_for_age",
    "evaluate_result",
    "evaluate_weight_for_age",
    "evaluate_weight_for_length",
    "find_entry",
    "length_or_height_for_age_type",
    "lms_curve",
    "load_dataset",
    "measurement_from_zscore",
    "months_since_birth",
    "percentile_from_zscore",
    "require_finite",
    "resolve_point",
    "select_dataset",
    "status_label",
    "weeks_since_birth",
    "zscore_from_measurement",
]
