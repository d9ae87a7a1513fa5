import pytest

CSV = b"region,revenue\nNorth,10\nNorth,20\nSouth,5\n"

CONFIG = {"chart_type": "bar", "x_axis": "region", "y_axis": ["revenue"], "aggregation": "sum"}


@pytest.fixture
def project(client):
    p = client.post("/api/projects", json={"name": "Regions"}).json()
    client.post(f"/api/projects/{p['id']}/upload", files={"file": ("r.csv", CSV, "text/csv")})
    return p


@pytest.fixture
def chart(client, project):
    resp = client.post(
        f"/api/projects/{project['id']}/charts",
        json={"name": "Revenue by region", "chart_config": CONFIG, "include_insights": True},
    )
    assert resp.status_code == 201
    return resp.json()


def _chart_url(chart, path=""):
    return f"/api/projects/{chart['project_id']}/charts/{chart['id']}{path}"


def test_chart_crud(client, project, chart):
    listing = client.get(f"/api/projects/{project['id']}/charts").json()
    assert [c["id"] for c in listing["charts"]] == [chart["id"]]
    assert chart["chart_config"]["y_axis"] == ["revenue"]

    updated = client.put(_chart_url(chart), json={"name": "Renamed", "include_insights": False}).json()
    assert updated["name"] == "Renamed"
    assert updated["include_insights"] is False
    assert updated["chart_config"] == chart["chart_config"]

    assert client.delete(_chart_url(chart)).json()["deleted"] is True
    assert client.get(_chart_url(chart)).status_code == 404


def test_chart_belongs_to_project(client, chart):
    other = client.post("/api/projects", json={"name": "Other"}).json()
    resp = client.get(f"/api/projects/{other['id']}/charts/{chart['id']}")
    assert resp.status_code == 404


def test_chart_view(client, chart):
    view = client.get(_chart_url(chart, "/view")).json()["view"]
    assert view["records"] == [{"region": "North", "revenue": 30}, {"region": "South", "revenue": 5}]
    assert view["profiles"]["revenue"]["mean"] == pytest.approx(35 / 3)
    assert "revenue" in view["narrative"]


def test_chart_preview(client, project):
    body = {"chart_config": {**CONFIG, "filters": {"region": ["South"]}}}
    view = client.post(f"/api/projects/{project['id']}/charts/preview", json=body).json()
    assert view["records"] == [{"region": "South", "revenue": 5}]
    assert view["row_count"] == 1


def test_chart_png_and_csv(client, chart):
    png = client.get(_chart_url(chart, "/png"))
    assert png.status_code == 200
    assert png.headers["content-type"] == "image/png"
    assert png.content.startswith(b"\x89PNG")

    csv = client.get(_chart_url(chart, "/csv"))
    assert csv.text.splitlines() == ["region,revenue", "North,30", "South,5"]


def test_png_with_nothing_to_draw(client, project):
    empty = client.post(
        f"/api/projects/{project['id']}/charts",
        json={"name": "Empty", "chart_config": {**CONFIG, "filters": {"region": ["West"]}}},
    ).json()
    assert client.get(_chart_url(empty, "/png")).status_code == 404


def test_dashboard_flow(client, chart):
    first = client.post("/api/dashboard", json={"chart_id": chart["id"]})
    assert first.status_code == 201
    assert first.json()["layout"] == {"x": 0, "y": 0, "w": 6, "h": 4}
    second = client.post("/api/dashboard", json={"chart_id": chart["id"], "layout": {"x": 6, "w": 6}}).json()
    assert second["layout"] == {"x": 6, "y": 4, "w": 6, "h": 4}

    items = client.get("/api/dashboard").json()["items"]
    assert len(items) == 2
    assert items[0]["chart_name"] == "Revenue by region"
    assert items[0]["project_name"] == "Regions"

    resp = client.put(f"/api/dashboard/{second['id']}/layout", json={"w": 1, "h": 9})
    assert resp.json()["layout"] == {"x": 0, "y": 0, "w": 2, "h": 9}

    bulk = client.put("/api/dashboard/layout", json={"items": [
        {"id": first.json()["id"], "layout": {"x": 0, "y": 0, "w": 12, "h": 4}},
        {"id": "00000000-0000-0000-0000-000000000000", "layout": {}},
    ]}).json()
    assert bulk == {"updated": 1}

    tiles = client.get("/api/dashboard/tiles").json()["tiles"]
    assert tiles[0]["view"]["records"][0] == {"region": "North", "revenue": 30}

    pdf = client.get("/api/dashboard/pdf")
    assert pdf.status_code == 200
    assert pdf.content.startswith(b"%PDF")

    assert client.delete(f"/api/dashboard/{second['id']}").json()["deleted"] is True
    assert client.get("/api/dashboard").json()["total"] == 1


def test_dashboard_unknown_chart(client):
    resp = client.post("/api/dashboard", json={"chart_id": "00000000-0000-0000-0000-000000000000"})
    assert resp.status_code == 404


def test_deleting_chart_removes_tiles(client, chart):
    client.post("/api/dashboard", json={"chart_id": chart["id"]})
    client.delete(_chart_url(chart))
    assert client.get("/api/dashboard").json()["total"] == 0


def test_deleting_project_cascades(client, project, chart):
    client.post("/api/dashboard", json={"chart_id": chart["id"]})
    client.delete(f"/api/projects/{project['id']}")
    assert client.get("/api/dashboard").json()["total"] == 0
    assert client.get(f"/api/projects/{project['id']}/charts").status_code == 404


def test_charts_survive_refresh(client, project, chart, monkeypatch):
    monkeypatch.setattr("api.routes.fetch_url", lambda url: (b"region,revenue\nEast,7\n", "r.csv"))
    client.post(f"/api/projects/{project['id']}/import-url", json={"url": "https://example.com/r.csv"})
    client.post(f"/api/projects/{project['id']}/refresh")
    view = client.get(_chart_url(chart, "/view")).json()["view"]
    assert view["records"] == [{"region": "East", "revenue": 7}]
