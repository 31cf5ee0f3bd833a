import gc
from datetime import date

import pytest
from sqlalchemy import func, select

from _helpers import run_concurrently

from seriescast.config import get_settings
from seriescast.models import DataPoint, Evaluation, Prediction
from seriescast.services import ingestion, locks
from seriescast.services.csv_validator import SeriesRow
from seriescast.services.errors import (
    CsvValidationError,
    FrequencyMismatchError,
    FrontierGapError,
    SeriesNotFoundError,
)
from seriescast.services.prediction import generate_prediction
from seriescast.services.series import soft_delete_series


def _count(db, model, **filters):
    stmt = select(func.count()).select_from(model)
    for key, value in filters.items():
        stmt = stmt.where(getattr(model, key) == value)
    return db.execute(stmt).scalar_one()


def test_first_upload_establishes_cadence(db, make_series, csv_days):
    s = make_series()
    stats = ingestion.ingest_upload(db, s.id, csv_days("2024-01-01", [1, 2, 3, 4]))

    assert stats.as_dict() == {"added": 4, "skipped": 0}
    db.refresh(s)
    assert s.frequency_days == 1
    assert s.last_date == date(2024, 1, 4)
    assert ingestion.get_frontier(db, s.id) == date(2024, 1, 4)


def test_reupload_is_idempotent(db, make_series, csv_days):
    s = make_series()
    text = csv_days("2024-01-01", [1, 2, 3])
    ingestion.ingest_upload(db, s.id, text)
    stats = ingestion.ingest_upload(db, s.id, text)

    assert stats.as_dict() == {"added": 0, "skipped": 3}
    assert _count(db, DataPoint, series_id=s.id) == 3


def test_overlapping_upload_appends_only_new_rows(db, make_series, csv_days):
    s = make_series()
    ingestion.ingest_upload(db, s.id, csv_days("2024-01-01", [1, 2, 3]))
    stats = ingestion.ingest_upload(db, s.id, csv_days("2024-01-02", [20, 30, 4, 5]))

    assert stats.as_dict() == {"added": 2, "skipped": 2}
    values = db.execute(
        select(DataPoint.value).where(DataPoint.series_id == s.id).order_by(DataPoint.date)
    ).scalars().all()
    # stored history is never rewritten by later files
    assert values == [1.0, 2.0, 3.0, 4.0, 5.0]


def test_stale_upload_leaves_last_date(db, make_series, csv_days):
    s = make_series()
    ingestion.ingest_upload(db, s.id, csv_days("2024-02-01", [1, 2]))
    stats = ingestion.ingest_upload(db, s.id, csv_days("2024-01-01", [7, 8, 9]))

    assert stats.as_dict() == {"added": 0, "skipped": 3}
    db.refresh(s)
    assert s.last_date == date(2024, 2, 2)


def test_frequency_mismatch_rejected_without_writes(db, make_series, csv_days):
    s = make_series()
    ingestion.ingest_upload(db, s.id, csv_days("2024-01-01", [1, 2, 3]))
    weekly = "date,value\n2024-01-10,1\n2024-01-17,2\n"

    with pytest.raises(FrequencyMismatchError) as exc:
        ingestion.ingest_upload(db, s.id, weekly)

    assert exc.value.message == "Frequency mismatch. Series is 1 days, but CSV is 7 days."
    assert exc.value.details == {"expected_days": 1, "found_days": 7}
    db.refresh(s)
    assert s.frequency_days == 1
    assert _count(db, DataPoint, series_id=s.id) == 3


def test_invalid_csv_writes_nothing(db, make_series):
    s = make_series()
    with pytest.raises(CsvValidationError) as exc:
        ingestion.ingest_upload(db, s.id, "date,value\n2024-01-01,abc\n2024-01-02,1\n")

    assert exc.value.code == "INVALID_CSV"
    assert exc.value.message == 'Row 1: Value "abc" is not a finite number.'
    db.refresh(s)
    assert s.frequency_days is None
    assert _count(db, DataPoint, series_id=s.id) == 0


def test_unknown_and_deleted_series_raise_not_found(db, make_series, csv_days):
    with pytest.raises(SeriesNotFoundError):
        ingestion.ingest_upload(db, 9999, csv_days("2024-01-01", [1, 2]))

    s = make_series()
    soft_delete_series(db, s.id)
    with pytest.raises(SeriesNotFoundError):
        ingestion.ingest_upload(db, s.id, csv_days("2024-01-01", [1, 2]))


def test_matured_prediction_is_evaluated_once(db, make_series, csv_days):
    s = make_series()
    ingestion.ingest_upload(db, s.id, csv_days("2024-01-01", [1, 2, 3, 4, 5, 6, 7, 8]))
    outcome = generate_prediction(db, s.id, today=date(2025, 1, 1))
    assert outcome.target_date == date(2024, 1, 9)

    confirm = csv_days("2024-01-08", [8, 4])
    ingestion.ingest_upload(db, s.id, confirm)
    ingestion.ingest_upload(db, s.id, confirm)

    evaluations = db.execute(select(Evaluation)).scalars().all()
    assert len(evaluations) == 1
    ev = evaluations[0]
    assert ev.actual_value == 4.0
    assert ev.error == pytest.approx(-1.0)
    assert ev.absolute_error == pytest.approx(1.0)
    assert ev.percentage_error == pytest.approx(0.25)


def test_evaluate_pending_predictions_is_idempotent(db, make_series, csv_days):
    s = make_series()
    ingestion.ingest_upload(db, s.id, csv_days("2024-01-01", [1, 2]))
    db.add(Prediction(
        series_id=s.id,
        target_date=date(2024, 1, 3),
        predicted_value=2.0,
        algorithm_version="mean_v1",
        based_on_last_date=date(2024, 1, 2),
    ))
    db.commit()

    rows = [SeriesRow(date(2024, 1, 3), 3.0)]
    assert ingestion.evaluate_pending_predictions(db, s.id, rows) == 1
    db.commit()
    assert ingestion.evaluate_pending_predictions(db, s.id, rows) == 0
    assert ingestion.evaluate_pending_predictions(db, s.id, []) == 0
    assert _count(db, Evaluation) == 1


def test_evaluation_failure_does_not_fail_upload(db, make_series, csv_days, monkeypatch):
    s = make_series()

    def boom(*_args, **_kwargs):
        raise RuntimeError("scoring exploded")

    monkeypatch.setattr(ingestion, "evaluate_pending_predictions", boom)
    stats = ingestion.ingest_upload(db, s.id, csv_days("2024-01-01", [1, 2, 3]))

    assert stats.added == 3
    assert _count(db, DataPoint, series_id=s.id) == 3


def test_strict_gap_policy_rejects_discontinuous_append(db, make_series, csv_days, monkeypatch):
    monkeypatch.setattr(get_settings(), "ALLOW_FRONTIER_GAPS", False)
    s = make_series()
    ingestion.ingest_upload(db, s.id, csv_days("2024-01-01", [1, 2]))

    with pytest.raises(FrontierGapError) as exc:
        ingestion.ingest_upload(db, s.id, csv_days("2024-01-05", [5, 6]))
    assert exc.value.details == {"expected_date": "2024-01-03", "found_date": "2024-01-05"}

    stats = ingestion.ingest_upload(db, s.id, csv_days("2024-01-02", [2, 3, 4]))
    assert stats.as_dict() == {"added": 2, "skipped": 1}


def test_default_policy_accepts_gap_on_same_cadence(db, make_series, csv_days):
    s = make_series()
    ingestion.ingest_upload(db, s.id, csv_days("2024-01-01", [1, 2]))
    stats = ingestion.ingest_upload(db, s.id, csv_days("2024-01-05", [5, 6]))
    assert stats.added == 2


def test_concurrent_identical_uploads_append_once(db, make_series, csv_days):
    s = make_series()
    sid = s.id
    db.commit()
    text = csv_days("2024-03-01", [1, 2, 3, 4, 5])

    results, errors = run_concurrently(ingestion.ingest_upload, (sid, text), (sid, text))

    assert errors == []
    assert sum(r.added for r in results) == 5
    assert sum(r.skipped for r in results) == 5
    assert _count(db, DataPoint, series_id=sid) == 5


def test_series_lock_registry_releases_entries(db, csv_days):
    with locks.series_lock(424242):
        assert 424242 in locks._series_locks
    gc.collect()
    assert 424242 not in locks._series_locks

    with pytest.raises(SeriesNotFoundError):
        ingestion.ingest_upload(db, 777, csv_days("2024-01-01", [1, 2]))
    gc.collect()
    assert 777 not in locks._series_locks
