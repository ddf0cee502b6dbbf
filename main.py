#!/usr/bin/env python3
"""
Retail Sales Forecasting - Main Pipeline
=========================================

Compares four forecasting models on weekly store sales.

Phases:
    1. EDA - Descriptive plots of the sales table
    2. Features - Calendar, lag and rolling features per store
    3. Train - Fit linear, tree, XGBoost and SARIMA models and compare
       RMSE / MAE / MAPE
    4. Forecast - SARIMA forecast of future weeks for one store

Usage:
    # Run complete pipeline
    python main.py --data data/raw/Walmart_Sales.csv

    # Run specific phase
    python main.py --data data/raw/Walmart_Sales.csv --phase train

    # Forecast another store with a custom config
    python main.py --data data/raw/Walmart_Sales.csv --phase forecast --store 20 --config config/custom.yaml
"""

import argparse
import logging
import sys
from pathlib import Path
from datetime import datetime
from typing import Dict, Any, Optional

import matplotlib.pyplot as plt
import pandas as pd

from salesforecast.data_loader import load_config, load_data, validate_data, print_data_summary
from salesforecast.eda import generate_eda_report, print_correlation_insights, save_model_figures, plot_forecast
from salesforecast.evaluation import compare_models, evaluate_predictions, print_evaluation_report, save_comparison
from salesforecast.features import build_features, print_feature_summary
from salesforecast.model import build_adapters, train_and_predict, print_model_summary
from salesforecast.schema import DATE_FORMAT, SEED
from salesforecast.timeseries import build_arima, store_series, print_forecast_summary

PHASES = ['eda', 'features', 'train', 'forecast', 'all']


def setup_logging(level: str = "INFO", log_file: bool = True) -> None:
    """Configure logging for the pipeline."""
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(
            logging.FileHandler(f'pipeline_{datetime.now().strftime("%Y%m%d_%H%M%S")}.log')
        )

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers
    )


def _banner(title: str) -> None:
    print("\n" + "=" * 70)
    print(title)
    print("=" * 70)


def _store(config: Dict[str, Any], store: Optional[int]) -> int:
    return store if store is not None else config.get('timeseries', {}).get('store', 1)


def run_eda(df: pd.DataFrame, config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Execute Phase 1: Exploratory Data Analysis.

    Args:
        df: Sales table
        config: Configuration dictionary

    Returns:
        EDA report dictionary
    """
    _banner("PHASE 1: EXPLORATORY DATA ANALYSIS")

    output_dir = config.get('output', {}).get('figures_path', 'reports/figures/')
    report = generate_eda_report(df, output_dir=output_dir, show_plots=False)

    print_correlation_insights(pd.DataFrame(report["correlation_matrix"]))
    print(f"\n✓ EDA complete. {len(report['figures'])} figures saved to {output_dir}")

    return report


def run_features(df: pd.DataFrame) -> pd.DataFrame:
    """
    Execute Phase 2: Feature engineering.

    Args:
        df: Sales table

    Returns:
        Enriched feature table
    """
    _banner("PHASE 2: FEATURE ENGINEERING")

    enriched = build_features(df)
    print_feature_summary(enriched)

    return enriched


def run_training(
    enriched: pd.DataFrame,
    config: Dict[str, Any],
    store: Optional[int] = None
) -> Dict[str, Any]:
    """
    Execute Phase 3: Fit every model and compare accuracy.

    Args:
        enriched: Enriched feature table
        config: Configuration dictionary
        store: Store used for the SARIMA holdout (default from config)

    Returns:
        Dictionary with fitted models, predictions and the comparison table
    """
    _banner("PHASE 3: MODEL TRAINING & EVALUATION")

    split_config = config.get('split', {})
    test_size = split_config.get('test_size', 0.2)
    random_state = split_config.get('random_state', SEED)
    zero_policy = config.get('evaluation', {}).get('mape_zero_policy', 'raise')

    fitted_models = {}
    predictions = []

    for adapter in build_adapters(config):
        fitted, result = train_and_predict(
            adapter, enriched, test_size=test_size, random_state=random_state
        )
        print_model_summary(fitted)
        fitted_models[adapter.name] = fitted
        predictions.append(result)

    ts_config = config.get('timeseries', {})
    if ts_config.get('enabled', True):
        store = _store(config, store)
        arima = build_arima(config)
        series = store_series(enriched, store)
        fitted, result = arima.evaluate_holdout(series, holdout=ts_config.get('holdout', 12))
        print(f"SARIMA (store {store}): {fitted.order} x {fitted.seasonal_order}")
        fitted_models[arima.name] = fitted
        predictions.append(result)

    table = compare_models(evaluate_predictions(r, zero_policy=zero_policy) for r in predictions)
    print_evaluation_report(table)

    output_config = config.get('output', {})
    metrics_path = save_comparison(
        table, output_config.get('metrics_path', 'reports/metrics/model_comparison.csv')
    )
    figures = save_model_figures(
        predictions, table, output_config.get('figures_path', 'reports/figures/')
    )

    return {
        'models': fitted_models,
        'predictions': predictions,
        'comparison': table,
        'metrics_path': metrics_path,
        'figures': figures
    }


def run_forecast(
    enriched: pd.DataFrame,
    config: Dict[str, Any],
    store: Optional[int] = None
) -> Dict[str, Any]:
    """
    Execute Phase 4: SARIMA forecast of future weeks for one store.

    Args:
        enriched: Enriched feature table
        config: Configuration dictionary
        store: Store to forecast (default from config)

    Returns:
        Dictionary with the fitted model and forecast table
    """
    _banner("PHASE 4: FUTURE FORECAST")

    store = _store(config, store)
    horizon = config.get('timeseries', {}).get('horizon', 52)

    arima = build_arima(config)
    series = store_series(enriched, store)
    fitted = arima.fit(series)
    forecast = arima.forecast(fitted, horizon=horizon)

    print_forecast_summary(fitted, forecast, store=store)

    figures_dir = Path(config.get('output', {}).get('figures_path', 'reports/figures/'))
    figures_dir.mkdir(parents=True, exist_ok=True)
    figure_path = figures_dir / f"forecast_store_{store}.png"
    fig = plot_forecast(series, forecast, save_path=str(figure_path))
    plt.close(fig)

    return {'store': store, 'model': fitted, 'forecast': forecast, 'figure': str(figure_path)}


def run_pipeline(
    data_path: str,
    config: Dict[str, Any],
    phase: str = 'all',
    store: Optional[int] = None
) -> Dict[str, Any]:
    """
    Execute one phase or the complete pipeline.

    Args:
        data_path: Path to input CSV file
        config: Configuration dictionary
        phase: One of PHASES
        store: Store for the time-series phases

    Returns:
        Dictionary containing the results of each phase run
    """
    if phase not in PHASES:
        raise ValueError(f"Unknown phase: {phase}. Choose from: {', '.join(PHASES)}")

    print("\n" + "=" * 70)
    print("RETAIL SALES FORECASTING PIPELINE")
    print(f"Started at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print("=" * 70)

    print("\n📊 Loading data...")
    df = load_data(data_path, date_format=config.get('data', {}).get('date_format', DATE_FORMAT))
    print_data_summary(df)

    is_valid, _ = validate_data(df, strict=False)
    if not is_valid:
        print("⚠️  Data validation warnings detected. Proceeding anyway...")

    results: Dict[str, Any] = {'data_shape': df.shape}

    if phase in ('eda', 'all'):
        results['eda'] = run_eda(df, config)

    if phase == 'eda':
        return results

    enriched = run_features(df)
    results['features'] = enriched

    if phase in ('train', 'all'):
        results['training'] = run_training(enriched, config, store)

    if phase in ('forecast', 'all'):
        results['forecast'] = run_forecast(enriched, config, store)

    print("\n" + "=" * 70)
    print("PIPELINE COMPLETE")
    print("=" * 70)
    print(f"  • Input data: {df.shape[0]} rows × {df.shape[1]} columns")
    if 'training' in results:
        best = results['training']['comparison'].iloc[0]
        print(f"  • Best model: {best['model']} (RMSE {best['rmse']:,.2f})")
        print(f"  • Comparison: {results['training']['metrics_path']}")
    if 'forecast' in results:
        print(f"  • Forecast: {len(results['forecast']['forecast'])} weeks for store {results['forecast']['store']}")
    print(f"Completed at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print("=" * 70 + "\n")

    return results


def main(argv=None):
    """Main entry point with argument parsing."""
    parser = argparse.ArgumentParser(
        description="Weekly retail sales forecasting model comparison",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --data data/raw/Walmart_Sales.csv
  python main.py --data data/raw/Walmart_Sales.csv --phase train
  python main.py --data data/raw/Walmart_Sales.csv --phase forecast --store 20
        """
    )

    parser.add_argument(
        '--data', '-d',
        type=str,
        default=None,
        help='Path to the input CSV file (default: data.path from config)'
    )

    parser.add_argument(
        '--config', '-c',
        type=str,
        default='config/config.yaml',
        help='Path to configuration file (default: config/config.yaml)'
    )

    parser.add_argument(
        '--phase', '-p',
        type=str,
        choices=PHASES,
        default='all',
        help='Phase to run (default: all)'
    )

    parser.add_argument(
        '--store', '-s',
        type=int,
        default=None,
        help='Store for the SARIMA holdout and forecast (default: from config)'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose output'
    )

    args = parser.parse_args(argv)

    # Check if config exists
    if not Path(args.config).exists():
        print(f"Error: Config file not found: {args.config}")
        return 1

    config = load_config(args.config)
    data_path = args.data or config.get('data', {}).get('path')

    # Check if data file exists
    if not data_path or not Path(data_path).exists():
        print(f"Error: Data file not found: {data_path}")
        print("\nExpected format: CSV with columns Store, Date (DD-MM-YYYY), Weekly_Sales,")
        print("Holiday_Flag, Temperature, Fuel_Price, CPI, Unemployment")
        return 1

    log_config = config.get('logging', {})
    level = 'DEBUG' if args.verbose else log_config.get('level', 'INFO')
    setup_logging(level, log_file=log_config.get('log_file', True))

    try:
        run_pipeline(data_path, config, phase=args.phase, store=args.store)
        return 0

    except Exception as e:
        logging.error(f"Pipeline failed: {e}", exc_info=True)
        print(f"\n❌ Pipeline failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
