"""
Schema Module
=============

Column names and feature sets shared by the loader, feature builder and models.
"""

STORE_COL = "Store"
DATE_COL = "Date"
TARGET_COL = "Weekly_Sales"
HOLIDAY_COL = "Holiday_Flag"

FLOAT_COLS = ["Temperature", "Fuel_Price", "CPI", "Unemployment"]

RAW_COLUMNS = [
    STORE_COL, DATE_COL, TARGET_COL, HOLIDAY_COL,
    "Temperature", "Fuel_Price", "CPI", "Unemployment",
]

DATE_FORMAT = "%d-%m-%Y"

# Derived columns
LAG_COLS = ["lag_1", "lag_2"]
ROLLING_COL = "rolling_mean_4"
CALENDAR_COLS = ["year", "month", "week"]
HOLIDAY_INDICATOR_COL = "holiday_indicator"

HOLIDAY_LABEL = "Holiday"
NON_HOLIDAY_LABEL = "Non-Holiday"
HOLIDAY_LABELS = [NON_HOLIDAY_LABEL, HOLIDAY_LABEL]

# Model feature sets
BASE_FEATURES = ["Fuel_Price", "CPI", "Unemployment", HOLIDAY_COL]

ENSEMBLE_FEATURES = [
    STORE_COL, HOLIDAY_COL, "Temperature", "Fuel_Price", "CPI", "Unemployment",
    "year", "month", "lag_1", "lag_2", ROLLING_COL,
]

SEED = 42
