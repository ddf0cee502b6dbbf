"""
Exploratory Data Analysis (EDA) Module
======================================

Descriptive plots of the sales table and diagnostic plots of model output.

Functions:
    - plot_total_sales: Weekly sales summed over all stores
    - plot_sales_by_store: Average weekly sales per store
    - plot_holiday_effect: Sales distribution, holiday vs regular weeks
    - plot_sales_distribution: Histogram with normality test
    - plot_correlation_matrix: Correlation heatmap
    - plot_actual_vs_predicted: Scatter per model
    - plot_forecast: Store history with SARIMA forecast band
    - plot_metric_comparison: RMSE / MAE / MAPE bars per model
    - generate_eda_report: Full descriptive report with all visualizations
"""

import logging
from pathlib import Path
from typing import Dict, Any, List, Optional, Sequence, Tuple

import pandas as pd
import numpy as np
import matplotlib.pyplot as plt
import seaborn as sns
from scipy import stats

from .evaluation import PredictionResult
from .features import holiday_indicator
from .schema import (
    STORE_COL, DATE_COL, TARGET_COL, HOLIDAY_COL, FLOAT_COLS,
    HOLIDAY_INDICATOR_COL, HOLIDAY_LABELS,
)

logger = logging.getLogger(__name__)

# Set style for all plots
plt.style.use('seaborn-v0_8-whitegrid')
sns.set_palette("husl")


def _save(fig: plt.Figure, save_path: Optional[str], label: str) -> None:
    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"{label} saved to {save_path}")


def plot_total_sales(
    df: pd.DataFrame,
    figsize: Tuple[int, int] = (14, 5),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Plot weekly sales summed over all stores, marking holiday weeks.

    Args:
        df: Sales table
        figsize: Figure size (width, height)
        save_path: Path to save the figure (optional)

    Returns:
        Matplotlib Figure object
    """
    weekly = df.groupby(DATE_COL).agg(sales=(TARGET_COL, 'sum'), holiday=(HOLIDAY_COL, 'max'))

    fig, ax = plt.subplots(figsize=figsize)
    ax.plot(weekly.index, weekly['sales'], linewidth=1.2, label='Total weekly sales')

    holidays = weekly[weekly['holiday'] == 1]
    ax.scatter(holidays.index, holidays['sales'], color='red', s=30, zorder=5, label='Holiday week')

    ax.set_xlabel('Week')
    ax.set_ylabel('Sales')
    ax.set_title('Total Weekly Sales - All Stores', fontsize=14, fontweight='bold')
    ax.legend(loc='upper left')
    fig.tight_layout()

    _save(fig, save_path, "Total sales plot")
    return fig


def plot_sales_by_store(
    df: pd.DataFrame,
    figsize: Tuple[int, int] = (14, 5),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Bar chart of average weekly sales per store, highest first.

    Args:
        df: Sales table
        figsize: Figure size
        save_path: Path to save the figure

    Returns:
        Matplotlib Figure object
    """
    by_store = df.groupby(STORE_COL)[TARGET_COL].mean().sort_values(ascending=False)

    fig, ax = plt.subplots(figsize=figsize)
    ax.bar(by_store.index.astype(str), by_store.values, color='steelblue', alpha=0.8)
    ax.axhline(by_store.mean(), color='red', linestyle='--',
               label=f"Mean: {by_store.mean():,.0f}")

    ax.set_xlabel('Store')
    ax.set_ylabel('Average weekly sales')
    ax.set_title('Average Weekly Sales by Store', fontsize=14, fontweight='bold')
    ax.tick_params(axis='x', rotation=90)
    ax.legend()
    fig.tight_layout()

    _save(fig, save_path, "Sales by store plot")
    return fig


def plot_holiday_effect(
    df: pd.DataFrame,
    figsize: Tuple[int, int] = (8, 6),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Box plot of weekly sales for holiday and regular weeks.

    Args:
        df: Sales table (holiday_indicator is derived if absent)
        figsize: Figure size
        save_path: Path to save the figure

    Returns:
        Matplotlib Figure object
    """
    if HOLIDAY_INDICATOR_COL in df.columns:
        labels = pd.Categorical(df[HOLIDAY_INDICATOR_COL], categories=HOLIDAY_LABELS)
    else:
        labels = holiday_indicator(df[HOLIDAY_COL])
    plot_df = pd.DataFrame({'Week type': labels, TARGET_COL: df[TARGET_COL].to_numpy()})

    fig, ax = plt.subplots(figsize=figsize)
    sns.boxplot(data=plot_df, x='Week type', y=TARGET_COL, order=HOLIDAY_LABELS, ax=ax)

    means = plot_df.groupby('Week type', observed=False)[TARGET_COL].mean()
    ax.set_title(
        f"Holiday Effect (mean {means.get(HOLIDAY_LABELS[1], np.nan):,.0f} vs "
        f"{means.get(HOLIDAY_LABELS[0], np.nan):,.0f})",
        fontsize=12, fontweight='bold'
    )
    ax.set_ylabel('Weekly sales')
    fig.tight_layout()

    _save(fig, save_path, "Holiday effect plot")
    return fig


def plot_sales_distribution(
    df: pd.DataFrame,
    figsize: Tuple[int, int] = (10, 5),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Histogram with KDE of weekly sales, annotated with a normality test.

    Args:
        df: Sales table
        figsize: Figure size
        save_path: Path to save the figure

    Returns:
        Matplotlib Figure object
    """
    sales = df[TARGET_COL].dropna()

    fig, ax = plt.subplots(figsize=figsize)
    sns.histplot(sales, kde=True, ax=ax, bins=50, alpha=0.7)

    ax.axvline(sales.mean(), color='red', linestyle='--', label=f'Mean: {sales.mean():,.0f}')
    ax.axvline(sales.median(), color='green', linestyle='--', label=f'Median: {sales.median():,.0f}')

    # normaltest needs at least 8 observations
    if len(sales) >= 8:
        _, p_value = stats.normaltest(sales)
        normality = "Normal" if p_value > 0.05 else "Non-Normal"
        title = f'Weekly Sales Distribution ({normality}, p={p_value:.3f})'
    else:
        title = 'Weekly Sales Distribution'

    ax.set_title(title, fontsize=12, fontweight='bold')
    ax.legend(fontsize=8)
    fig.tight_layout()

    _save(fig, save_path, "Sales distribution plot")
    return fig


def plot_correlation_matrix(
    df: pd.DataFrame,
    method: str = 'pearson',
    figsize: Tuple[int, int] = (9, 7),
    save_path: Optional[str] = None
) -> Tuple[plt.Figure, pd.DataFrame]:
    """
    Correlation heatmap of weekly sales and the economic indicators.

    Args:
        df: Sales table
        method: Correlation method ('pearson', 'spearman', 'kendall')
        figsize: Figure size (width, height)
        save_path: Path to save the figure (optional)

    Returns:
        Tuple of (Figure, correlation matrix DataFrame)
    """
    corr_matrix = df[[TARGET_COL, HOLIDAY_COL] + FLOAT_COLS].corr(method=method)

    fig, ax = plt.subplots(figsize=figsize)

    mask = np.triu(np.ones_like(corr_matrix, dtype=bool), k=1)
    sns.heatmap(
        corr_matrix,
        mask=mask,
        annot=True,
        fmt='.2f',
        cmap='RdYlBu_r',
        center=0,
        square=True,
        linewidths=0.5,
        cbar_kws={"shrink": 0.8, "label": "Correlation"},
        ax=ax,
        vmin=-1,
        vmax=1
    )

    ax.set_title(f'Correlation Matrix ({method.capitalize()})',
                 fontsize=14, fontweight='bold')
    fig.tight_layout()

    _save(fig, save_path, "Correlation matrix")
    return fig, corr_matrix


def plot_actual_vs_predicted(
    results: Sequence[PredictionResult],
    figsize: Tuple[int, int] = (14, 10),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Actual vs predicted scatter plot for each model.

    Args:
        results: One PredictionResult per model
        figsize: Figure size
        save_path: Path to save the figure

    Returns:
        Matplotlib Figure object
    """
    n_models = max(len(results), 1)
    n_rows = (n_models + 1) // 2
    fig, axes = plt.subplots(n_rows, 2, figsize=figsize, squeeze=False)
    axes = axes.flatten()

    for ax, result in zip(axes, results):
        actual = result.actual.to_numpy()
        predicted = result.predicted.reindex(result.actual.index).to_numpy()

        ax.scatter(actual, predicted, alpha=0.5, s=20)

        # Perfect prediction line
        min_val = min(actual.min(), predicted.min())
        max_val = max(actual.max(), predicted.max())
        ax.plot([min_val, max_val], [min_val, max_val], 'r--', linewidth=2, label='Perfect')

        ax.set_xlabel('Actual')
        ax.set_ylabel('Predicted')
        ax.set_title(result.model_name, fontsize=10, fontweight='bold')
        ax.legend(loc='upper left', fontsize=8)

    # Hide unused subplots
    for idx in range(len(results), len(axes)):
        axes[idx].set_visible(False)

    fig.suptitle('Actual vs Predicted - Model Performance', fontsize=14, fontweight='bold')
    fig.tight_layout()

    _save(fig, save_path, "Actual vs Predicted plot")
    return fig


def plot_forecast(
    series: pd.Series,
    forecast: pd.DataFrame,
    actual: Optional[pd.Series] = None,
    figsize: Tuple[int, int] = (14, 5),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Plot a store's history with the forecast mean and confidence band.

    Args:
        series: Training series
        forecast: Output of ArimaAdapter.forecast
        actual: Held-out actual values to overlay (optional)
        figsize: Figure size
        save_path: Path to save the figure

    Returns:
        Matplotlib Figure object
    """
    fig, ax = plt.subplots(figsize=figsize)

    ax.plot(series.index, series.values, 'b-', linewidth=1.2, label='History')
    ax.plot(forecast.index, forecast['mean'], 'r--', linewidth=1.5, label='Forecast')
    ax.fill_between(forecast.index, forecast['lower'], forecast['upper'],
                    alpha=0.2, color='red', label='Confidence interval')

    if actual is not None:
        ax.plot(actual.index, actual.values, 'g-', linewidth=1.2, label='Actual')

    ax.set_xlabel('Week')
    ax.set_ylabel('Weekly sales')
    ax.set_title(f'SARIMA Forecast ({len(forecast)} weeks)', fontsize=14, fontweight='bold')
    ax.legend(loc='upper left', fontsize=8)
    fig.tight_layout()

    _save(fig, save_path, "Forecast plot")
    return fig


def plot_metric_comparison(
    table: pd.DataFrame,
    figsize: Tuple[int, int] = (14, 5),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Bar charts of RMSE, MAE and MAPE per model.

    Args:
        table: Output of evaluation.compare_models
        figsize: Figure size
        save_path: Path to save the figure

    Returns:
        Matplotlib Figure object
    """
    fig, axes = plt.subplots(1, 3, figsize=figsize)

    panels = [
        ('rmse', 'Root Mean Squared Error', 'steelblue'),
        ('mae', 'Mean Absolute Error', 'coral'),
        ('mape', 'Mean Absolute Percentage Error (%)', 'seagreen'),
    ]
    x = np.arange(len(table))

    for ax, (column, title, color) in zip(axes, panels):
        ax.bar(x, table[column], 0.6, color=color, alpha=0.8)
        ax.set_xticks(x)
        ax.set_xticklabels(table['model'], rotation=45, ha='right')
        ax.set_title(title, fontweight='bold')

    fig.suptitle('Model Performance Summary', fontsize=14, fontweight='bold')
    fig.tight_layout()

    _save(fig, save_path, "Metric comparison plot")
    return fig


def generate_eda_report(
    df: pd.DataFrame,
    output_dir: str = "reports/figures/",
    show_plots: bool = False
) -> Dict[str, Any]:
    """
    Generate the descriptive report with all visualizations.

    Args:
        df: Sales table
        output_dir: Directory to save figures
        show_plots: Whether to display plots interactively

    Returns:
        Dictionary containing figure file names, the correlation matrix
        and per-store statistics
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    report: Dict[str, Any] = {
        "data_shape": df.shape,
        "figures": [],
        "correlation_matrix": None,
        "store_statistics": {}
    }

    logger.info("=" * 60)
    logger.info("STARTING EXPLORATORY DATA ANALYSIS")
    logger.info("=" * 60)

    logger.info("Plotting total weekly sales...")
    plot_total_sales(df, save_path=str(output_dir / "01_total_sales.png"))
    report["figures"].append("01_total_sales.png")

    logger.info("Plotting sales by store...")
    plot_sales_by_store(df, save_path=str(output_dir / "02_sales_by_store.png"))
    report["figures"].append("02_sales_by_store.png")

    logger.info("Plotting holiday effect...")
    plot_holiday_effect(df, save_path=str(output_dir / "03_holiday_effect.png"))
    report["figures"].append("03_holiday_effect.png")

    logger.info("Plotting sales distribution...")
    plot_sales_distribution(df, save_path=str(output_dir / "04_sales_distribution.png"))
    report["figures"].append("04_sales_distribution.png")

    logger.info("Computing correlation matrix...")
    _, corr_matrix = plot_correlation_matrix(
        df, save_path=str(output_dir / "05_correlation_matrix.png")
    )
    report["figures"].append("05_correlation_matrix.png")
    report["correlation_matrix"] = corr_matrix.to_dict()

    stats_by_store = df.groupby(STORE_COL)[TARGET_COL].agg(['mean', 'std', 'min', 'max'])
    report["store_statistics"] = stats_by_store.to_dict(orient='index')

    if show_plots:
        plt.show()
    else:
        plt.close('all')

    logger.info("=" * 60)
    logger.info("EDA COMPLETE - All figures saved to: %s", output_dir)
    logger.info("=" * 60)

    return report


def save_model_figures(
    results: List[PredictionResult],
    table: pd.DataFrame,
    output_dir: str = "reports/figures/"
) -> List[str]:
    """
    Save the model diagnostic figures.

    Returns:
        File names written under output_dir
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    plot_actual_vs_predicted(results, save_path=str(output_dir / "eval_actual_vs_predicted.png"))
    plot_metric_comparison(table, save_path=str(output_dir / "eval_metric_comparison.png"))
    plt.close('all')

    return ["eval_actual_vs_predicted.png", "eval_metric_comparison.png"]


def print_correlation_insights(corr_matrix: pd.DataFrame, threshold: float = 0.3) -> None:
    """
    Print the indicators most correlated with weekly sales.

    Args:
        corr_matrix: Correlation matrix DataFrame
        threshold: Correlation threshold for a "notable" relationship
    """
    print("\n" + "=" * 50)
    print("CORRELATION WITH WEEKLY SALES")
    print("=" * 50)

    target_corr = corr_matrix[TARGET_COL].drop(TARGET_COL)
    for col, value in target_corr.reindex(target_corr.abs().sort_values(ascending=False).index).items():
        marker = "•" if abs(value) >= threshold else " "
        print(f"  {marker} {col}: {value:+.3f}")

    if not (target_corr.abs() >= threshold).any():
        print(f"\nNo indicator reaches |r| >= {threshold}")
        print("  - Store identity and seasonality likely dominate")

    print("=" * 50 + "\n")
