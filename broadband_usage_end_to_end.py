#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
County Broadband Usage - End-to-End Modeling Pipeline
=====================================================
A single, runnable script that:
  1) Loads the county broadband table and the census indicator table
  2) Joins them on a county FIPS key (state code + county code)
  3) Normalizes the schema (canonical names, numeric coercion)
  4) Sets aside counties with no broadband usage figure for later prediction
  5) Splits the rest 80/20 into train/test
  6) Imputes each partition on its own (k-NN, median of neighbors)
  7) Scales every partition with parameters frozen from the training partition
  8) Trains & tunes four regressors (Linear, k-NN, ElasticNet, PCR)
  9) Compares them by test MSE/RMSE and predicts usage for the held-aside counties
     with the best one, back in original units

Diagnostic plots and tables are written alongside the predictions.
"""

from __future__ import annotations

import argparse
import json
import math
import sys
import warnings
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

# Headless plots saved to files
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt

# Sklearn
from sklearn.decomposition import PCA
from sklearn.exceptions import ConvergenceWarning
from sklearn.linear_model import ElasticNet, ElasticNetCV, LinearRegression
from sklearn.metrics.pairwise import nan_euclidean_distances
from sklearn.model_selection import GridSearchCV, KFold, LeaveOneOut, cross_val_predict, train_test_split
from sklearn.neighbors import KNeighborsRegressor
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import StandardScaler

RNG_SEED = 42
warnings.filterwarnings("ignore", category=UserWarning)
warnings.filterwarnings("ignore", category=ConvergenceWarning)

# ----------------------------- Schema -----------------------------

BROADBAND_KEY = "COUNTY ID"
CENSUS_STATE_CODE = "STATE_FIPS"
CENSUS_COUNTY_CODE = "COUNTY_FIPS"
JOIN_KEY = "county_id"

BROADBAND_COLUMNS = {
    "ST": "state",
    "COUNTY NAME": "county_name",
    "BROADBAND AVAILABILITY PER FCC": "broadband_availability",
    "BROADBAND USAGE": "broadband_usage",
}
CENSUS_COLUMNS = {
    "TOTAL_POPULATION": "population",
    "UNEMPLOYMENT_RATE": "unemployment_rate",
    "PCT_NO_HEALTH_INSURANCE": "pct_no_health_insurance",
    "POVERTY_RATE": "poverty_rate",
    "PCT_FOOD_ASSISTANCE": "pct_food_assistance",
    "PCT_NO_COMPUTER": "pct_no_computer",
    "PCT_NO_INTERNET": "pct_no_internet",
}

TARGET = "broadband_usage"
FEATURES = [
    "broadband_availability", "population", "unemployment_rate", "pct_no_health_insurance",
    "poverty_rate", "pct_food_assistance", "pct_no_computer", "pct_no_internet",
]
NUMERIC_COLUMNS = FEATURES + [TARGET]
CLEAN_COLUMNS = ["state", "county_name"] + NUMERIC_COLUMNS


class PipelineError(RuntimeError):
    """Fatal pipeline failure, tagged with the stage that could not proceed."""

    def __init__(self, stage: str, reason: str):
        super().__init__(f"[{stage}] {reason}")
        self.stage = stage
        self.reason = reason


@dataclass
class PipelineConfig:
    seed: int = RNG_SEED
    test_size: float = 0.2
    impute_k: int = 10
    cv_folds: int = 10
    knn_grid: List[int] = field(default_factory=lambda: list(range(1, 31)))
    enet_l1_grid: List[float] = field(
        default_factory=lambda: [round(0.01 * i, 2) for i in range(1, 100)]
    )
    elbow_threshold: float = 0.01
    max_iter: int = 10000

# ----------------------------- Utilities -----------------------------

def ensure_dir(p: Path) -> None:
    p.mkdir(parents=True, exist_ok=True)

def strip_whitespace(s: pd.Series) -> pd.Series:
    return s.astype(str).str.replace(r"\s+", "", regex=True)

def cv_folds_for(n_rows: int, requested: int, stage: str) -> int:
    """Cap the fold count by the number of rows; fewer than two folds is fatal."""
    folds = min(requested, n_rows)
    if folds < 2:
        raise PipelineError(stage, f"need at least 2 training rows for cross-validation, got {n_rows}")
    return folds

# ----------------------------- Data Loading -----------------------------

def load_table(path: Path, key_columns: Sequence[str] = ()) -> pd.DataFrame:
    """Read one delimited input; code columns are kept as text so leading zeros survive."""
    path = Path(path)
    if not path.is_file():
        raise PipelineError("load", f"input file not found: {path}")
    try:
        df = pd.read_csv(path, dtype={c: str for c in key_columns})
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError, OSError) as exc:
        raise PipelineError("load", f"could not read {path}: {exc}") from exc
    if df.empty:
        raise PipelineError("load", f"{path} contains no rows")
    return df

def build_join_key(census: pd.DataFrame) -> pd.Series:
    """County identifier = state code followed by county code, whitespace removed."""
    return strip_whitespace(census[CENSUS_STATE_CODE]) + strip_whitespace(census[CENSUS_COUNTY_CODE])

def join_sources(broadband: pd.DataFrame, census: pd.DataFrame) -> pd.DataFrame:
    """
    Inner join of census indicators and broadband figures on the county key.
    Counties present on only one side are dropped without complaint.
    """
    for col in (CENSUS_STATE_CODE, CENSUS_COUNTY_CODE):
        if col not in census.columns:
            raise PipelineError("join", f"census table lacks '{col}'")
    if BROADBAND_KEY not in broadband.columns:
        raise PipelineError("join", f"broadband table lacks '{BROADBAND_KEY}'")

    left = census.assign(**{JOIN_KEY: build_join_key(census)})
    right = broadband.assign(**{JOIN_KEY: strip_whitespace(broadband[BROADBAND_KEY])})
    # rows without a usable key can never match
    left_ok = census[[CENSUS_STATE_CODE, CENSUS_COUNTY_CODE]].notna().all(axis=1) & (left[JOIN_KEY] != "")
    right_ok = broadband[BROADBAND_KEY].notna() & (right[JOIN_KEY] != "")
    left, right = left[left_ok.to_numpy()], right[right_ok.to_numpy()]

    joined = left.merge(right, on=JOIN_KEY, how="inner")
    if joined.empty:
        raise PipelineError("join", "no county matched between the two tables")
    dupes = joined.loc[joined[JOIN_KEY].duplicated(), JOIN_KEY].unique().tolist()
    if dupes:
        raise PipelineError("join", f"county key is not unique among matched rows: {dupes}")
    return joined.set_index(JOIN_KEY)

# ----------------------------- Schema Normalization -----------------------------

def coerce_numeric(df: pd.DataFrame, columns: Sequence[str]) -> pd.DataFrame:
    """Parse text-typed numbers; anything unparseable becomes NaN."""
    out = df.copy()
    for c in columns:
        s = out[c]
        if not pd.api.types.is_numeric_dtype(s):
            s = s.astype(str).str.strip()
        out[c] = pd.to_numeric(s, errors="coerce").astype(float)
    return out

def normalize_schema(joined: pd.DataFrame) -> pd.DataFrame:
    """Rename to canonical names, keep only the canonical columns, coerce numerics."""
    renames = {**BROADBAND_COLUMNS, **CENSUS_COLUMNS}
    missing = [c for c in renames if c not in joined.columns]
    if missing:
        raise PipelineError("normalize", f"missing source columns: {missing}")
    out = joined.rename(columns=renames)[CLEAN_COLUMNS]
    return coerce_numeric(out, NUMERIC_COLUMNS)

def data_snapshot(clean: pd.DataFrame, outdir: Path) -> None:
    """Row/column counts and missingness of the clean table."""
    ensure_dir(outdir)
    meta = {
        "n_rows": int(clean.shape[0]),
        "n_cols": int(clean.shape[1]),
        "n_missing_target": int(clean[TARGET].isna().sum()),
    }
    (outdir / "meta.json").write_text(json.dumps(meta, indent=2))

    miss = clean.isna().sum().sort_values(ascending=False)
    miss = miss[miss > 0].to_frame("missing_count")
    miss["missing_pct"] = miss["missing_count"] / len(clean) * 100.0
    miss.to_csv(outdir / "missingness.csv")

# ----------------------------- Splitting -----------------------------

def split_missing_target(clean: pd.DataFrame) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Returns (rows with a usage figure, rows to predict)."""
    has = clean[TARGET].notna()
    return clean.loc[has].copy(), clean.loc[~has].copy()

def split_train_test(df: pd.DataFrame, test_size: float = 0.2, seed: int = RNG_SEED) -> Tuple[pd.DataFrame, pd.DataFrame]:
    if len(df) < 2:
        raise PipelineError("split", f"need at least 2 rows with a target to split, got {len(df)}")
    train, test = train_test_split(df, test_size=test_size, random_state=seed)
    return train.copy(), test.copy()

# ----------------------------- Imputation -----------------------------

def knn_median_impute(df: pd.DataFrame, columns: Sequence[str], k: int = 10,
                      fallback: Optional[pd.Series] = None) -> pd.DataFrame:
    """
    Fill missing cells with the median of the k nearest rows of the same frame.
    - Distances: nan-euclidean over the frame's own z-scored columns.
    - Donors for a cell must have that column observed; the partition median is
      used when no donor exists.
    - A column with no observed value in the frame takes `fallback[column]`;
      without a fallback that column is fatal.
    Rows without missing values are returned untouched.
    """
    columns = list(columns)
    out = df.copy()
    values = out[columns].to_numpy(dtype=float)
    missing = np.isnan(values)
    if not missing.any():
        return out

    medians = out[columns].astype(float).median().to_numpy()
    if fallback is not None:
        medians = np.where(np.isnan(medians), fallback.reindex(columns).to_numpy(dtype=float), medians)
    empty = [c for c, m in zip(columns, medians) if np.isnan(m)]
    if empty:
        raise PipelineError("impute", f"no observed values to impute from in columns {empty}")

    center = out[columns].astype(float).mean().to_numpy()
    spread = out[columns].astype(float).std(ddof=0).to_numpy()
    spread[~(spread > 0)] = 1.0
    z = (values - center) / spread

    filled = values.copy()
    rows = np.flatnonzero(missing.any(axis=1))
    dist = nan_euclidean_distances(z[rows], z)
    for d, i in zip(dist, rows):
        d[i] = np.inf
        order = np.argsort(d, kind="stable")
        order = order[np.isfinite(d[order])]
        for j in np.flatnonzero(missing[i]):
            donors = order[~missing[order, j]][:k]
            filled[i, j] = np.median(values[donors, j]) if len(donors) else medians[j]

    out[columns] = pd.DataFrame(filled, index=out.index, columns=columns)
    return out

def impute_partitions(train: pd.DataFrame, test: pd.DataFrame, to_predict: pd.DataFrame,
                      k: int = 10) -> Tuple[pd.DataFrame, pd.DataFrame, pd.DataFrame]:
    """
    Each partition is imputed from its own rows only; to-predict has no target to use.
    A feature column left empty in the small to-predict partition falls back to the
    training medians, the same partition its scaling is frozen from.
    """
    plan = [(train, NUMERIC_COLUMNS, None), (test, NUMERIC_COLUMNS, None),
            (to_predict, FEATURES, train[FEATURES].median())]
    return tuple(knn_median_impute(part, cols, k, fallback) for part, cols, fallback in plan)

# ----------------------------- Scaling -----------------------------

@dataclass(frozen=True)
class TargetStats:
    mean: float
    std: float

def fit_scaler(train: pd.DataFrame) -> Tuple[StandardScaler, TargetStats]:
    """Center/scale parameters from the training partition only, plus raw target stats."""
    y = train[TARGET].astype(float)
    std = float(y.std(ddof=0))
    stats = TargetStats(mean=float(y.mean()), std=std if std > 0 else 1.0)
    scaler = StandardScaler().fit(train[NUMERIC_COLUMNS])
    return scaler, stats

def apply_scaler(df: pd.DataFrame, scaler: StandardScaler) -> pd.DataFrame:
    """Transform with the frozen training parameters; NaN targets pass through."""
    out = df.copy()
    if out.empty:
        return out
    scaled = scaler.transform(out[NUMERIC_COLUMNS])
    out[NUMERIC_COLUMNS] = pd.DataFrame(scaled, index=out.index, columns=NUMERIC_COLUMNS)
    return out

def inverse_target(values, stats: TargetStats) -> np.ndarray:
    return np.asarray(values, dtype=float) * stats.std + stats.mean

# ----------------------------- Modeling -----------------------------

@dataclass
class FittedModel:
    name: str
    estimator: object
    params: Dict[str, object] = field(default_factory=dict)
    curve: Optional[pd.Series] = None

    def predict(self, features: pd.DataFrame) -> np.ndarray:
        return np.asarray(self.estimator.predict(features[FEATURES]), dtype=float)

def fit_linear(train: pd.DataFrame, config: PipelineConfig) -> FittedModel:
    """Ordinary least squares on all eight features, no interactions."""
    est = LinearRegression().fit(train[FEATURES], train[TARGET])
    params = {"coef": dict(zip(FEATURES, est.coef_.tolist())), "intercept": float(est.intercept_)}
    return FittedModel("Linear Regression", est, params)

def fit_knn(train: pd.DataFrame, config: PipelineConfig) -> FittedModel:
    """k chosen by k-fold CV on the training partition, then refit at that k."""
    n = len(train)
    folds = cv_folds_for(n, config.cv_folds, "knn_regression")
    largest_k = n - math.ceil(n / folds)
    grid = [k for k in config.knn_grid if 1 <= k <= largest_k]
    if not grid:
        raise PipelineError("knn_regression", f"no k in the grid fits a CV training fold of {largest_k} rows")

    cv = KFold(n_splits=folds, shuffle=True, random_state=config.seed)
    search = GridSearchCV(KNeighborsRegressor(), param_grid={"n_neighbors": grid},
                          scoring="neg_mean_squared_error", cv=cv, refit=True)
    search.fit(train[FEATURES], train[TARGET])
    curve = pd.Series(-search.cv_results_["mean_test_score"], index=grid, name="cv_mse")
    curve.index.name = "k"
    return FittedModel("KNN Regression", search.best_estimator_,
                       {"n_neighbors": int(search.best_params_["n_neighbors"])}, curve)

def fit_elastic_net(train: pd.DataFrame, config: PipelineConfig) -> FittedModel:
    """
    Two-stage search:
      1) for every mixing value, the best CV MSE over the lambda path; keep the lowest
      2) with that mixing value fixed, pick lambda again on freshly shuffled folds
    The final model is refit on the whole training partition.
    """
    folds = cv_folds_for(len(train), config.cv_folds, "elastic_net")
    X, y = train[FEATURES], train[TARGET]

    cv = KFold(n_splits=folds, shuffle=True, random_state=config.seed)
    scores = {}
    for l1 in config.enet_l1_grid:
        path = ElasticNetCV(l1_ratio=l1, cv=cv, max_iter=config.max_iter).fit(X, y)
        scores[l1] = float(path.mse_path_.mean(axis=1).min())
    curve = pd.Series(scores, name="cv_mse")
    curve.index.name = "l1_ratio"
    best_l1 = float(curve.idxmin())

    cv2 = KFold(n_splits=folds, shuffle=True, random_state=config.seed + 1)
    lam = float(ElasticNetCV(l1_ratio=best_l1, cv=cv2, max_iter=config.max_iter).fit(X, y).alpha_)

    est = ElasticNet(alpha=lam, l1_ratio=best_l1, max_iter=config.max_iter).fit(X, y)
    return FittedModel("Elastic Net", est, {"l1_ratio": best_l1, "lambda": lam}, curve)

def select_elbow(curve: pd.Series, threshold: float = 0.01) -> int:
    """First component count whose relative RMSE drop to the next count is below `threshold`."""
    counts = list(curve.index)
    for i in range(len(counts) - 1):
        cur, nxt = float(curve.iloc[i]), float(curve.iloc[i + 1])
        drop = (cur - nxt) / cur if cur > 0 else 0.0
        if drop < threshold:
            return int(counts[i])
    return int(counts[-1])

def pcr_pipeline(n_components: int) -> Pipeline:
    return Pipeline([("pca", PCA(n_components=n_components)), ("reg", LinearRegression())])

def fit_pcr(train: pd.DataFrame, config: PipelineConfig) -> FittedModel:
    """Leave-one-out RMSE per component count; elbow picks the count; refit on train."""
    n = len(train)
    max_comp = min(len(FEATURES), n - 1)
    if max_comp < 1:
        raise PipelineError("pcr", f"need at least 2 training rows for leave-one-out, got {n}")
    X, y = train[FEATURES], train[TARGET].to_numpy(dtype=float)

    rmse = {}
    for m in range(1, max_comp + 1):
        pred = cross_val_predict(pcr_pipeline(m), X, y, cv=LeaveOneOut())
        rmse[m] = float(np.sqrt(np.mean((y - pred) ** 2)))
    curve = pd.Series(rmse, name="loo_rmse")
    curve.index.name = "n_components"

    n_comp = select_elbow(curve, config.elbow_threshold)
    est = pcr_pipeline(n_comp).fit(X, y)
    return FittedModel("PCR", est, {"n_components": n_comp}, curve)

TRAINERS = [fit_linear, fit_knn, fit_elastic_net, fit_pcr]

# ----------------------------- Evaluation -----------------------------

@dataclass(frozen=True)
class ComparisonRow:
    model: str
    mse: float
    rmse: float
    n_test: int

def compute_mse(actual, predicted) -> Tuple[float, int]:
    """MSE over rows where both values are defined; returns (mse, rows used)."""
    a = np.asarray(actual, dtype=float)
    p = np.asarray(predicted, dtype=float)
    ok = np.isfinite(a) & np.isfinite(p)
    n = int(ok.sum())
    if n == 0:
        raise PipelineError("evaluate", "no test row has both an actual and a predicted value")
    return float(np.mean((a[ok] - p[ok]) ** 2)), n

def evaluate_model(model: FittedModel, test: pd.DataFrame,
                   ledger: List[ComparisonRow]) -> List[ComparisonRow]:
    """Score on the test partition and return the ledger with one row appended."""
    mse, n = compute_mse(test[TARGET], model.predict(test))
    return ledger + [ComparisonRow(model.name, mse, math.sqrt(mse), n)]

def comparison_table(ledger: List[ComparisonRow]) -> pd.DataFrame:
    return pd.DataFrame([asdict(r) for r in ledger], columns=["model", "mse", "rmse", "n_test"])

# ----------------------------- Prediction -----------------------------

def select_best(ledger: List[ComparisonRow], models: Dict[str, FittedModel]) -> FittedModel:
    if not ledger:
        raise PipelineError("predict", "no evaluated model to choose from")
    best = min(ledger, key=lambda r: r.rmse)
    return models[best.model]

def predict_missing(model: FittedModel, to_predict: pd.DataFrame, stats: TargetStats) -> pd.DataFrame:
    """Predict usage for held-aside counties, back in original units, highest first."""
    cols = ["county_name", "state", "predicted_broadband_usage"]
    if to_predict.empty:
        return pd.DataFrame(columns=cols)
    preds = inverse_target(model.predict(to_predict), stats)
    out = pd.DataFrame({
        "county_name": to_predict["county_name"].values,
        "state": to_predict["state"].values,
        "predicted_broadband_usage": preds,
    }, index=to_predict.index)
    return out.sort_values("predicted_broadband_usage", ascending=False)

# ----------------------------- Orchestration -----------------------------

@dataclass
class PipelineResult:
    clean: pd.DataFrame
    train: pd.DataFrame
    test: pd.DataFrame
    to_predict: pd.DataFrame
    scaler: StandardScaler
    target_stats: TargetStats
    models: Dict[str, FittedModel]
    ledger: List[ComparisonRow]
    best_model: str
    predictions: pd.DataFrame

def run_pipeline(broadband: pd.DataFrame, census: pd.DataFrame,
                 config: Optional[PipelineConfig] = None) -> PipelineResult:
    """Join -> normalize -> split -> impute -> scale -> fit -> evaluate -> predict."""
    config = config or PipelineConfig()

    clean = normalize_schema(join_sources(broadband, census))
    has_target, to_predict = split_missing_target(clean)
    train, test = split_train_test(has_target, config.test_size, config.seed)
    train, test, to_predict = impute_partitions(train, test, to_predict, config.impute_k)

    scaler, stats = fit_scaler(train)
    train_s, test_s, to_predict_s = (apply_scaler(p, scaler) for p in (train, test, to_predict))

    models: Dict[str, FittedModel] = {}
    ledger: List[ComparisonRow] = []
    for trainer in TRAINERS:
        model = trainer(train_s, config)
        models[model.name] = model
        ledger = evaluate_model(model, test_s, ledger)

    best = select_best(ledger, models)
    predictions = predict_missing(best, to_predict_s, stats)
    return PipelineResult(clean, train_s, test_s, to_predict_s, scaler, stats,
                          models, ledger, best.name, predictions)

# ----------------------------- Diagnostics -----------------------------

def save_curve(curve: pd.Series, title: str, ylabel: str, outpath: Path) -> None:
    """Model-selection curve (CV error vs. hyperparameter)."""
    plt.figure(figsize=(7,4))
    plt.plot(curve.index, curve.values, marker="o")
    plt.title(title)
    plt.xlabel(curve.index.name or ""); plt.ylabel(ylabel); plt.tight_layout()
    plt.savefig(outpath); plt.close()

def save_residuals(model: FittedModel, test: pd.DataFrame, outpath: Path) -> None:
    """Residuals vs. fitted on the (scaled) test partition."""
    pred = model.predict(test)
    resid = test[TARGET].to_numpy(dtype=float) - pred
    plt.figure(figsize=(7,4))
    plt.scatter(pred, resid, s=10, alpha=0.6)
    plt.axhline(0.0, color="grey", linewidth=1)
    plt.title(f"{model.name} - residuals on test")
    plt.xlabel("Predicted (scaled)"); plt.ylabel("Residual"); plt.tight_layout()
    plt.savefig(outpath); plt.close()

def save_diagnostics(result: PipelineResult, outdir: Path) -> None:
    ensure_dir(outdir)
    labels = {"KNN Regression": ("knn_k_curve.png", "CV MSE"),
              "Elastic Net": ("enet_alpha_curve.png", "CV MSE"),
              "PCR": ("pcr_validation_curve.png", "LOO RMSE")}
    for name, model in result.models.items():
        if model.curve is not None and name in labels:
            fname, ylabel = labels[name]
            save_curve(model.curve, f"{name} - model selection", ylabel, outdir / fname)
        slug = name.lower().replace(" ", "_")
        save_residuals(model, result.test, outdir / f"residuals_{slug}.png")

# ----------------------------- Main Entry -----------------------------

def main(argv: Optional[Sequence[str]] = None) -> None:
    ap = argparse.ArgumentParser(description="Model county broadband usage from census indicators.")
    ap.add_argument("--broadband", type=str, default="broadband_data.csv", help="County broadband table")
    ap.add_argument("--census", type=str, default="census_data.csv", help="County census indicator table")
    ap.add_argument("--artifacts_dir", type=str, default="./artifacts", help="Where to save outputs")
    ap.add_argument("--seed", type=int, default=RNG_SEED, help="Random seed for the split and CV folds")
    ap.add_argument("--impute_k", type=int, default=10, help="Neighbors used by the imputer")
    ap.add_argument("--cv_folds", type=int, default=10, help="Folds for k-NN and ElasticNet searches")
    ap.add_argument("--elbow_threshold", type=float, default=0.01, help="Relative RMSE drop that ends the PCR elbow")
    ap.add_argument("--no_plots", action="store_true", help="Skip diagnostic plots")
    args = ap.parse_args(argv)

    config = PipelineConfig(seed=args.seed, impute_k=args.impute_k, cv_folds=args.cv_folds,
                            elbow_threshold=args.elbow_threshold)
    artifacts = Path(args.artifacts_dir)

    try:
        # 1) Load (both inputs are read before anything is processed)
        broadband = load_table(Path(args.broadband), key_columns=[BROADBAND_KEY])
        census = load_table(Path(args.census), key_columns=[CENSUS_STATE_CODE, CENSUS_COUNTY_CODE])

        # 2) Join -> model -> predict
        result = run_pipeline(broadband, census, config)
    except PipelineError as exc:
        print(f"Pipeline failed at stage '{exc.stage}': {exc.reason}", file=sys.stderr)
        sys.exit(1)

    ensure_dir(artifacts)
    result.clean.to_csv(artifacts / "joined.csv")
    data_snapshot(result.clean, artifacts / "snapshot")
    print(f"Joined counties: {len(result.clean)} "
          f"(train {len(result.train)}, test {len(result.test)}, to predict {len(result.to_predict)})")

    results_df = comparison_table(result.ledger)
    results_df.to_csv(artifacts / "model_comparison.csv", index=False)
    print("\n=== Model Comparison (evaluation order) ===")
    print(results_df.to_string(index=False))
    print(f"\nSelected best model: {result.best_model}")

    coef = pd.Series(result.models["Linear Regression"].params["coef"], name="coefficient")
    coef.to_csv(artifacts / "linear_coefficients.csv", index_label="feature")

    result.predictions.to_csv(artifacts / "predictions.csv")
    print("\n=== Predicted broadband usage (counties missing it) ===")
    print(result.predictions.to_string())

    if not args.no_plots:
        save_diagnostics(result, artifacts / "plots")

    print(f"\nArtifacts saved to: {artifacts.resolve()}")

if __name__ == "__main__":
    main()
