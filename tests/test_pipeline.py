import json

import numpy as np
import pandas as pd
import pytest

import broadband_usage_end_to_end as bb
from conftest import make_sources


def test_single_missing_target_row_is_predicted():
    broadband, census = make_sources(n=10, missing_target=[4])
    result = bb.run_pipeline(broadband, census, bb.PipelineConfig())

    assert result.to_predict.index.tolist() == ["21005"]
    assert len(result.train) + len(result.test) == 9
    assert len(result.predictions) == 1
    assert result.predictions["county_name"].tolist() == ["County 5"]
    assert np.isfinite(result.predictions["predicted_broadband_usage"]).all()


def test_pipeline_ledger_and_selection(small_config):
    broadband, census = make_sources(n=40, missing_target=[0, 10, 20])
    result = bb.run_pipeline(broadband, census, small_config)

    assert [r.model for r in result.ledger] == [
        "Linear Regression", "KNN Regression", "Elastic Net", "PCR"]
    assert result.best_model == min(result.ledger, key=lambda r: r.rmse).model
    assert set(result.train.index).isdisjoint(result.test.index)
    assert sorted(result.predictions.index) == ["21001", "21011", "21021"]
    assert result.predictions["predicted_broadband_usage"].is_monotonic_decreasing


def test_pipeline_scales_every_partition_with_training_parameters(small_config):
    broadband, census = make_sources(n=30, missing_target=[3])
    result = bb.run_pipeline(broadband, census, small_config)

    raw = result.clean
    for part in (result.test, result.to_predict):
        expected = (raw.loc[part.index, bb.FEATURES] - result.scaler.mean_[:-1]) / result.scaler.scale_[:-1]
        complete = raw.loc[part.index, bb.FEATURES].notna().all(axis=1)
        np.testing.assert_allclose(part.loc[complete, bb.FEATURES].to_numpy(),
                                   expected.loc[complete].to_numpy())
    train_raw = raw.loc[result.train.index, bb.TARGET]
    assert result.target_stats.mean == pytest.approx(train_raw.mean())


def test_pipeline_predictions_are_in_original_units(small_config):
    broadband, census = make_sources(n=40, missing_target=[5, 6])
    result = bb.run_pipeline(broadband, census, small_config)
    known = result.clean[bb.TARGET].dropna()
    preds = result.predictions["predicted_broadband_usage"]
    assert preds.between(known.min() - 0.2, known.max() + 0.2).all()


def test_pipeline_with_too_few_rows_reports_stage():
    broadband, census = make_sources(n=3, missing_target=[0, 1])
    with pytest.raises(bb.PipelineError) as err:
        bb.run_pipeline(broadband, census)
    assert err.value.stage == "split"


def test_main_writes_artifacts(tmp_path):
    broadband, census = make_sources(n=30, missing_target=[2, 9])
    broadband.to_csv(tmp_path / "broadband.csv", index=False)
    census.to_csv(tmp_path / "census.csv", index=False)
    out = tmp_path / "artifacts"

    bb.main(["--broadband", str(tmp_path / "broadband.csv"), "--census", str(tmp_path / "census.csv"),
             "--artifacts_dir", str(out), "--cv_folds", "5"])

    comparison = pd.read_csv(out / "model_comparison.csv")
    assert comparison["model"].tolist() == ["Linear Regression", "KNN Regression", "Elastic Net", "PCR"]
    preds = pd.read_csv(out / "predictions.csv", dtype={bb.JOIN_KEY: str})
    assert sorted(preds[bb.JOIN_KEY]) == ["21003", "21010"]
    assert json.loads((out / "snapshot" / "meta.json").read_text())["n_missing_target"] == 2
    assert (out / "linear_coefficients.csv").exists()
    assert (out / "plots" / "pcr_validation_curve.png").exists()
    assert (out / "plots" / "residuals_linear_regression.png").exists()


def test_main_exits_on_unreadable_input(tmp_path, capsys):
    with pytest.raises(SystemExit) as exc:
        bb.main(["--broadband", str(tmp_path / "missing.csv"), "--census", str(tmp_path / "census.csv"),
                 "--artifacts_dir", str(tmp_path / "artifacts"), "--no_plots"])
    assert exc.value.code == 1
    assert "stage 'load'" in capsys.readouterr().err
    assert not (tmp_path / "artifacts").exists()


def test_pipeline_without_missing_targets_predicts_nothing(small_config):
    broadband, census = make_sources(n=25)
    result = bb.run_pipeline(broadband, census, small_config)
    assert result.to_predict.empty
    assert result.predictions.empty
    assert len(result.ledger) == 4


def test_only_county_to_predict_with_unparseable_feature(small_config):
    broadband, census = make_sources(n=30, missing_target=[3])
    census["PCT_NO_COMPUTER"] = census["PCT_NO_COMPUTER"].astype(object)
    census.loc[3, "PCT_NO_COMPUTER"] = "-"
    result = bb.run_pipeline(broadband, census, small_config)

    assert result.to_predict.index.tolist() == ["21004"]
    assert np.isfinite(result.to_predict[bb.FEATURES].to_numpy()).all()
    assert len(result.predictions) == 1
    assert np.isfinite(result.predictions["predicted_broadband_usage"]).all()
