from datetime import date

import pandas as pd
import pytest

from who_growth.reference import ReferenceLibrary, dataset_from_frame
from who_growth.types import Indicator, Sex

SD_HEADER = ["SD3neg", "SD2neg", "SD1neg", "SD0", "SD1", "SD2", "SD3"]


def growth_frame(x_col: str, rows) -> pd.DataFrame:
    """Reference table frame from (x, L, M, S, SD3neg..SD3) tuples."""
    return pd.DataFrame(rows, columns=[x_col, "L", "M", "S"] + SD_HEADER)


@pytest.fixture
def wfl_girls_frame() -> pd.DataFrame:
    """Girls weight-for-length rows around 45 cm."""
    return growth_frame(
        "Length",
        [
            (45.0, -0.3833, 2.4607, 0.09029, 1.9, 2.1, 2.3, 2.5, 2.7, 3.0, 3.3),
            (45.5, -0.3833, 2.5457, 0.09033, 2.0, 2.2, 2.4, 2.6, 2.8, 3.1, 3.4),
            (46.0, -0.3833, 2.6306, 0.09037, 2.0, 2.2, 2.4, 2.7, 2.9, 3.2, 3.5),
        ],
    )


@pytest.fixture
def wfl_girls_dataset(wfl_girls_frame):
    return dataset_from_frame(
        wfl_girls_frame, "wfl_girls_0_2_years", Indicator.WEIGHT_FOR_LENGTH_HEIGHT, Sex.FEMALE
    )


@pytest.fixture
def wfh_girls_frame(wfl_girls_frame) -> pd.DataFrame:
    return wfl_girls_frame.rename(columns={"Length": "Height"})


@pytest.fixture
def wfl_library(wfl_girls_frame, wfh_girls_frame) -> ReferenceLibrary:
    """Library holding only the girls weight-for-length/height tables."""
    return ReferenceLibrary.from_frames(
        {
            (Indicator.WEIGHT_FOR_LENGTH_HEIGHT, "female", "0-2y"): wfl_girls_frame,
            (Indicator.WEIGHT_FOR_LENGTH_HEIGHT, "female", "2-5y"): wfh_girls_frame,
        }
    )


@pytest.fixture
def empty_library() -> ReferenceLibrary:
    """Library without any table."""
    return ReferenceLibrary(datasets={})


@pytest.fixture
def birth_date() -> date:
    return date(2024, 1, 20)
