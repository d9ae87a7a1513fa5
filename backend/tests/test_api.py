import io

import pandas as pd
import pytest

from core import sheet_decoder
from core.errors import SourceFetchError

CSV = b"city,sales,when\nNY,10,2024-01-01\nNY,20,2024-01-02\nLA,5,2024-01-03\nNY,20,2024-01-02\n"


@pytest.fixture
def project(client):
    resp = client.post("/api/projects", json={"name": "Q1 sales"})
    assert resp.status_code == 201
    return resp.json()


@pytest.fixture
def loaded(client, project):
    resp = client.post(
        f"/api/projects/{project['id']}/upload",
        files={"file": ("sales.csv", CSV, "text/csv")},
    )
    assert resp.status_code == 200
    return resp.json()


def _url(project, path=""):
    return f"/api/projects/{project['id']}{path}"


# ── Basics ───────────────────────────────────────────────────────────────────

def test_root_and_health(client):
    assert client.get("/").json()["name"] == "SheetSense API"
    assert client.get("/health").json() == {"status": "ok"}


def test_project_crud(client, project):
    assert project["dataset"] is None
    assert client.get("/api/projects").json()["total"] == 1

    renamed = client.patch(_url(project), json={"name": "Q2 sales"}).json()
    assert renamed["name"] == "Q2 sales"

    assert client.delete(_url(project)).json()["deleted"] is True
    assert client.get(_url(project)).status_code == 404


def test_blank_project_name_rejected(client):
    assert client.post("/api/projects", json={"name": "  "}).status_code == 422


@pytest.mark.parametrize("pid", ["not-a-uuid", "00000000-0000-0000-0000-000000000000"])
def test_unknown_project(client, pid):
    assert client.get(f"/api/projects/{pid}").status_code == 404


# ── Data sources ─────────────────────────────────────────────────────────────

def test_upload(loaded):
    ds = loaded["dataset"]
    assert ds["columns"] == ["city", "sales", "when"]
    assert ds["column_types"] == {"city": "categorical", "sales": "numeric", "when": "datetime"}
    assert ds["row_count"] == 4
    assert loaded["row_count"] == 4


def test_upload_headerless(client, project):
    resp = client.post(
        _url(project, "/upload"),
        files={"file": ("raw.csv", b"a,1\nb,2\n", "text/csv")},
        data={"header_mode": "false"},
    )
    assert resp.json()["dataset"]["columns"] == ["Column_1", "Column_2"]
    assert resp.json()["header_mode"] is False


def test_upload_xlsx_sheet(client, project):
    buf = io.BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        pd.DataFrame({"a": [1]}).to_excel(writer, sheet_name="First", index=False)
        pd.DataFrame({"b": ["x", "y"]}).to_excel(writer, sheet_name="Second", index=False)
    resp = client.post(
        _url(project, "/upload"),
        files={"file": ("book.xlsx", buf.getvalue(), "application/octet-stream")},
        data={"sheet_name": "Second"},
    )
    ds = resp.json()["dataset"]
    assert ds["active_sheet"] == "Second"
    assert ds["sheet_names"] == ["First", "Second"]
    assert ds["row_count"] == 2


@pytest.mark.parametrize("name, content", [
    ("notes.txt", b"a,b\n1,2\n"),
    ("empty.csv", b""),
    ("broken.xlsx", b"garbage"),
])
def test_upload_rejected(client, project, name, content):
    resp = client.post(_url(project, "/upload"), files={"file": (name, content, "text/plain")})
    assert resp.status_code == 400


def test_upload_too_large(client, project, monkeypatch):
    from api import routes
    monkeypatch.setattr(routes, "MAX_FILE_SIZE_MB", 0)
    resp = client.post(_url(project, "/upload"), files={"file": ("sales.csv", CSV, "text/csv")})
    assert resp.status_code == 400
    assert "too large" in resp.json()["detail"]


def test_import_url_and_refresh(client, project, monkeypatch):
    payloads = [(b"v\n1\n2\n", "data.csv"), (b"v\n1\n2\n3\n", "data.csv")]
    monkeypatch.setattr("api.routes.fetch_url", lambda url: payloads.pop(0))

    resp = client.post(_url(project, "/import-url"), json={"url": "https://example.com/data.csv"})
    assert resp.json()["source_url"] == "https://example.com/data.csv"
    assert resp.json()["dataset"]["row_count"] == 2

    refreshed = client.post(_url(project, "/refresh")).json()
    assert refreshed["dataset"]["row_count"] == 3


def test_import_url_fetch_failure(client, project, monkeypatch):
    def fail(url):
        raise SourceFetchError("Could not download the file.")

    monkeypatch.setattr("api.routes.fetch_url", fail)
    resp = client.post(_url(project, "/import-url"), json={"url": "https://example.com/x.csv"})
    assert resp.status_code == 502


def test_refresh_without_source(client, loaded):
    assert client.post(_url(loaded, "/refresh")).status_code == 400


def test_demo(client, project):
    ds = client.post(_url(project, "/demo")).json()["dataset"]
    assert ds["file_name"] == sheet_decoder.DEMO_FILE_NAME
    assert ds["row_count"] == 10


# ── Rows & columns ───────────────────────────────────────────────────────────

def test_rows_paging(client, loaded):
    page = client.get(_url(loaded, "/rows"), params={"page": 2, "page_size": 3}).json()
    assert page["total_rows"] == 4
    assert page["total_pages"] == 2
    assert page["offset"] == 3
    assert page["rows"] == [{"city": "NY", "sales": 20, "when": "2024-01-02"}]


def test_rows_without_data(client, project):
    assert client.get(_url(project, "/rows")).status_code == 400


def test_column_search(client, loaded):
    cols = client.get(_url(loaded, "/columns"), params={"search": "AL"}).json()
    assert cols["columns"] == [{"name": "sales", "type": "numeric"}]


def test_rename_column(client, loaded):
    resp = client.post(_url(loaded, "/columns/rename"), json={"old_name": "city", "new_name": "town"})
    assert resp.json()["dataset"]["columns"][0] == "town"
    clash = client.post(_url(loaded, "/columns/rename"), json={"old_name": "town", "new_name": "sales"})
    assert clash.status_code == 400


def test_delete_row(client, loaded):
    resp = client.delete(_url(loaded, "/rows/0"))
    assert resp.json()["dataset"]["row_count"] == 3
    assert client.delete(_url(loaded, "/rows/99")).status_code == 400


def test_deduplicate(client, loaded):
    resp = client.post(_url(loaded, "/deduplicate")).json()
    assert resp["removed"] == 1
    assert resp["dataset"]["row_count"] == 3


# ── Analysis ─────────────────────────────────────────────────────────────────

def test_analyze_with_filters(client, loaded):
    resp = client.post(_url(loaded, "/analyze"), json={"filters": {"city": ["NY"]}}).json()
    assert resp["row_count"] == 3
    assert resp["total_rows"] == 4
    sales = resp["profiles"]["sales"]
    assert sales["min"] == 10
    assert sales["median"] == 20
    assert resp["profiles"]["city"]["top_categories"] == [{"value": "NY", "count": 3}]


def test_aggregate(client, loaded):
    body = {"x_axis": "city", "y_axis": ["sales"], "aggregation": "sum"}
    resp = client.post(_url(loaded, "/aggregate"), json=body).json()
    assert resp["records"] == [{"city": "NY", "sales": 50}, {"city": "LA", "sales": 5}]
    assert "profiles" not in resp


def test_aggregate_with_filter_and_stale_axis(client, loaded):
    body = {"x_axis": "city", "y_axis": "sales", "aggregation": "avg", "filters": {"sales_max": ["10"]}}
    resp = client.post(_url(loaded, "/aggregate"), json=body).json()
    assert resp["records"] == [{"city": "NY", "sales": 10}, {"city": "LA", "sales": 5}]
    stale = client.post(_url(loaded, "/aggregate"), json={"x_axis": "gone"}).json()
    assert stale["records"] == []


def test_suggest(client, loaded):
    resp = client.post(_url(loaded, "/suggest"), json={"selected_columns": ["city", "sales"]}).json()
    assert resp["chart_config"]["chart_type"] == "bar"
    assert resp["chart_config"]["aggregation"] == "sum"
    assert client.post(_url(loaded, "/suggest"), json={"selected_columns": []}).json() == {"chart_config": None}
