from __future__ import annotations

from _helpers import error_code, error_message, unwrap

from seriescast.config import get_settings


def _series(client):
    r = client.post("/api/series", json={"company": "Acme", "place": "Berlin"})
    return unwrap(r.json())["id"]


def _upload(client, sid, content, name="data.csv"):
    return client.post(f"/api/series/{sid}/upload", files={"file": (name, content, "text/csv")})


def test_upload_reports_added_and_skipped(client, csv_days):
    sid = _series(client)
    r = _upload(client, sid, csv_days("2024-01-01", [1, 2, 3]))
    assert r.status_code == 200, r.text
    body = r.json()
    assert unwrap(body) == {"added": 3, "skipped": 0}
    assert body["meta"]["params"]["filename"] == "data.csv"

    r = _upload(client, sid, csv_days("2024-01-02", [2, 3, 4]))
    assert unwrap(r.json()) == {"added": 1, "skipped": 2}


def test_invalid_csv_is_400_with_row_message(client):
    sid = _series(client)
    r = _upload(client, sid, "date,value\n2024-01-01,1\n2024-13-01,2\n")
    assert r.status_code == 400
    body = r.json()
    assert body["ok"] is False
    assert error_code(body) == "INVALID_CSV"
    assert error_message(body) == 'Row 2: Invalid date "2024-13-01".'


def test_wrong_header_is_400(client):
    sid = _series(client)
    r = _upload(client, sid, "day,amount\n2024-01-01,1\n2024-01-02,2\n")
    assert r.status_code == 400
    assert error_message(r.json()) == 'Header must be exactly "date,value"'


def test_frequency_mismatch_is_400(client, csv_days):
    sid = _series(client)
    _upload(client, sid, csv_days("2024-01-01", [1, 2]))
    r = _upload(client, sid, "date,value\n2024-02-01,1\n2024-02-08,2\n")
    assert r.status_code == 400
    body = r.json()
    assert error_code(body) == "FREQUENCY_MISMATCH"
    assert error_message(body) == "Frequency mismatch. Series is 1 days, but CSV is 7 days."


def test_unknown_series_is_404(client, csv_days):
    r = _upload(client, 5150, csv_days("2024-01-01", [1, 2]))
    assert r.status_code == 404
    assert error_code(r.json()) == "SERIES_NOT_FOUND"


def test_empty_file_is_400(client):
    sid = _series(client)
    r = _upload(client, sid, "")
    assert r.status_code == 400
    assert error_code(r.json()) == "EMPTY_FILE"


def test_whitespace_only_file_is_400(client):
    sid = _series(client)
    r = _upload(client, sid, "  \n\n ")
    assert r.status_code == 400
    assert error_code(r.json()) == "EMPTY_FILE"


def test_oversized_file_is_413(client, csv_days, monkeypatch):
    monkeypatch.setattr(get_settings(), "MAX_UPLOAD_BYTES", 10)
    sid = _series(client)
    r = _upload(client, sid, csv_days("2024-01-01", [1, 2, 3]))
    assert r.status_code == 413
    assert error_code(r.json()) == "FILE_TOO_LARGE"
    assert "limit" in error_message(r.json())


def test_non_utf8_is_400(client):
    sid = _series(client)
    r = _upload(client, sid, b"date,value\n2024-01-01,\xff\xfe\n")
    assert r.status_code == 400
    assert error_code(r.json()) == "CSV_DECODE_ERROR"


def test_failed_upload_leaves_series_untouched(client, csv_days):
    sid = _series(client)
    _upload(client, sid, csv_days("2024-01-01", [1, 2]))
    _upload(client, sid, "date,value\n2024-01-03,3\n2024-01-04,nope\n")

    detail = unwrap(client.get(f"/api/series/{sid}").json())
    assert len(detail["history"]) == 2
    assert detail["series"]["last_date"] == "2024-01-02"
