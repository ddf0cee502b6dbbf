"""
Retail Sales Forecasting
========================

Weekly store sales forecasting and model comparison.

Modules:
    - data_loader: CSV ingestion and schema enforcement
    - features: Calendar, lag and rolling features per store
    - model: Linear, decision tree and XGBoost models
    - timeseries: Seasonal ARIMA per store
    - evaluation: RMSE / MAE / MAPE and model comparison
    - eda: Descriptive and diagnostic plots
"""

__version__ = "1.0.0"
__author__ = "Retail Analytics Team"
