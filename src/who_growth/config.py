"""
Configuration constants for the WHO child growth standards engine.
"""

import os

# Reference data location
DATA_PACKAGE = "who_growth.data"
DATA_DIR_ENV = "WHO_GROWTH_DATA_DIR"
DATA_DIR_OVERRIDE = os.environ.get(DATA_DIR_ENV)

# Column layout of the WHO z-score tables
LMS_COLUMNS = ["L", "M", "S"]
SD_COLUMNS = ["SD3neg", "SD2neg", "SD1neg", "SD0", "SD1", "SD2", "SD3"]
AXIS_COLUMNS = {
    "Week": "week",
    "Month": "month",
    "Length": "length",
    "Height": "height",
}

# LMS constants
L_ZERO_THRESHOLD = 1e-10
SD_DECIMALS = 1

# Calendar constants
DAYS_IN_WEEK = 7
MONTHS_IN_YEAR = 12

# Plausibility limits for a child under five, used for unit warnings only
MAX_PLAUSIBLE_WEIGHT_KG = 50.0
MAX_PLAUSIBLE_LENGTH_CM = 130.0

# Chart defaults
CHART_WIDTH = 800
CHART_HEIGHT = 600
CHART_MARGINS = {"top": 60, "right": 80, "bottom": 60, "left": 80}
CURVE_COLORS = {
    "sd3neg": "#d73027",
    "sd2neg": "#fc8d59",
    "sd1neg": "#fee08b",
    "sd0": "#3288bd",
    "sd1": "#fee08b",
    "sd2": "#fc8d59",
    "sd3": "#d73027",
}
GRID_COLOR = "#e0e0e0"
