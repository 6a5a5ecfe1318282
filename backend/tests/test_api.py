from functools import partial

import pymupdf
from fastapi.testclient import TestClient

from grimoire import config
from grimoire.errors import ContentServiceError
from grimoire.kv_store import JsonFileStore
from grimoire.main import create_app
from grimoire.models import HerbRecord
from grimoire.report.assets import placeholder_image
from grimoire.report.document import ReportDocument
from grimoire.report.engine import PaginationEngine
from grimoire.report.layout import PageGeometry
from grimoire.report.rasterizer import RasterPage
from grimoire.report.templates import PageTemplateRenderer
from grimoire.store import GrimoireStore

GEOMETRY = PageGeometry.from_name("a4", 40)


class FakeContent:
    def __init__(self):
        self.fail = False

    async def fetch_lore(self, query):
        if self.fail:
            raise ContentServiceError(f'Failed to fetch information for "{query}".')
        return HerbRecord(
            name=query.title(),
            scientific_name="Herba magica",
            magical_properties=["Protection"],
            elemental_association="Fire",
            planetary_association="Mars",
            lore="Lore.",
            usage="Usage.",
        )

    async def fetch_image(self, subject, style_hint=None):
        return "data:image/png;base64,AAAA"


class FlatRasterizer:
    async def rasterize(self, layout):
        return RasterPage(png=placeholder_image(), width=10, height=10, scale=1.0)


def _client(tmp_path) -> tuple[TestClient, FakeContent]:
    content = FakeContent()
    engine = PaginationEngine(
        PageTemplateRenderer(GEOMETRY, "My Esoteric Herb Grimoire"),
        FlatRasterizer(),
        partial(ReportDocument, GEOMETRY),
    )
    app = create_app(store=GrimoireStore(JsonFileStore(tmp_path)), content=content, engine=engine)
    return TestClient(app), content


def _favorite_payload(name: str, category: str | None = None) -> dict:
    payload = {
        "name": name,
        "scientific_name": "Herba magica",
        "magical_properties": ["Protection"],
        "elemental_association": "Fire",
        "planetary_association": "Mars",
        "lore": "Lore.",
        "usage": "Usage.",
        "image": "data:image/png;base64,AAAA",
    }
    if category:
        payload["category"] = category
    return payload


def test_healthz(tmp_path):
    client, _ = _client(tmp_path)

    assert client.get("/healthz").json() == {"status": "ok"}


def test_search_records_history_and_reports_favorite_state(tmp_path):
    client, _ = _client(tmp_path)

    response = client.post("/api/search", json={"query": " sage "})
    assert response.status_code == 200
    body = response.json()
    assert body["herb"]["name"] == "Sage"
    assert body["is_favorite"] is False

    client.post("/api/favorites", json=_favorite_payload("Sage"))
    assert client.post("/api/search", json={"query": "SAGE"}).json()["is_favorite"] is True
    assert client.get("/api/history").json() == {"history": ["SAGE"]}

    assert client.delete("/api/history").status_code == 204
    assert client.get("/api/history").json() == {"history": []}


def test_search_failure_is_reported_and_not_recorded(tmp_path):
    client, content = _client(tmp_path)
    content.fail = True

    response = client.post("/api/search", json={"query": "Moonwort"})

    assert response.status_code == 502
    assert "Moonwort" in response.json()["detail"]
    assert client.get("/api/history").json() == {"history": []}
    assert client.post("/api/search", json={"query": "   "}).status_code == 422


def test_examples(tmp_path):
    client, _ = _client(tmp_path)

    assert client.get("/api/examples").json()["examples"][0] == "Mugwort"


def test_favorites_crud_and_case_insensitive_identity(tmp_path):
    client, _ = _client(tmp_path)

    assert client.post("/api/favorites", json=_favorite_payload("Sage")).status_code == 201
    assert client.post("/api/favorites", json=_favorite_payload("sage")).status_code == 409

    toggled = client.post("/api/favorites/toggle", json=_favorite_payload("Rue")).json()
    assert toggled == {"name": "Rue", "is_favorite": True}
    assert [item["name"] for item in client.get("/api/favorites").json()] == ["Sage", "Rue"]

    assert client.delete("/api/favorites/SAGE").status_code == 204
    assert client.delete("/api/favorites/SAGE").status_code == 404

    assert client.delete("/api/favorites").status_code == 428
    assert client.delete("/api/favorites", params={"confirm": "true"}).status_code == 204
    assert client.get("/api/favorites").json() == []


def test_manual_favorite(tmp_path):
    client, _ = _client(tmp_path)
    client.post("/api/categories", json={"name": "Healing"})
    form = {
        "name": "Moonwort",
        "scientific_name": "Botrychium lunaria",
        "magical_properties": "Silver, Unlocking",
        "elemental_association": "Water",
        "planetary_association": "Moon",
        "deity_association": "Selene",
        "lore": "Opens locks.",
        "usage": "Carry it.",
        "category": "healing",
    }

    response = client.post("/api/favorites/manual", json=form)

    assert response.status_code == 201
    body = response.json()
    assert body["magical_properties"] == ["Silver", "Unlocking"]
    assert body["category"] == "Healing"
    assert "herbal_oil" not in body

    assert client.post("/api/favorites/manual", json={**form, "lore": ""}).status_code == 400
    assert client.post("/api/favorites/manual", json=form).status_code == 409


def test_categories_and_assignment(tmp_path):
    client, _ = _client(tmp_path)
    client.post("/api/favorites", json=_favorite_payload("Sage"))

    assert client.post("/api/categories", json={"name": "Healing"}).status_code == 201
    assert client.post("/api/categories", json={"name": "Love"}).json() == {"categories": ["Healing", "Love"]}
    assert client.post("/api/categories", json={"name": "HEALING"}).status_code == 409
    assert client.post("/api/categories", json={"name": "  "}).status_code == 400

    assigned = client.put("/api/favorites/Sage/category", json={"category": "healing"})
    assert assigned.json()["category"] == "Healing"
    assert client.put("/api/favorites/Sage/category", json={"category": "Nope"}).status_code == 400

    assert client.put("/api/categories/Healing", json={"name": "love"}).status_code == 409
    renamed = client.put("/api/categories/Healing", json={"name": "Cleansing"})
    assert renamed.json() == {"categories": ["Cleansing", "Love"]}
    assert client.get("/api/favorites").json()[0]["category"] == "Cleansing"

    assert client.delete("/api/categories/Cleansing").status_code == 428
    assert client.delete("/api/categories/Cleansing", params={"confirm": "true"}).json() == {"categories": ["Love"]}
    assert "category" not in client.get("/api/favorites").json()[0]


def test_spells_crud(tmp_path):
    client, _ = _client(tmp_path)

    created = client.post(
        "/api/spells", json={"name": "Warding", "ingredients": ["Sage", "Rue"], "instructions": "Burn."}
    )
    assert created.status_code == 201
    spell_id = created.json()["id"]

    updated = client.put(
        f"/api/spells/{spell_id}", json={"name": "Warding II", "ingredients": ["Rue"], "instructions": "Burn twice."}
    )
    assert updated.json()["name"] == "Warding II"
    assert client.post("/api/spells", json={"name": "x", "ingredients": [], "instructions": "y"}).status_code == 400

    assert client.delete(f"/api/spells/{spell_id}").status_code == 428
    assert client.delete(f"/api/spells/{spell_id}", params={"confirm": "true"}).status_code == 204
    assert client.get("/api/spells").json() == []


def test_theme(tmp_path):
    client, _ = _client(tmp_path)

    assert client.get("/api/theme").json() == {"theme": "dark"}
    assert client.put("/api/theme", json={"theme": "light"}).json() == {"theme": "light"}
    assert client.get("/api/theme").json() == {"theme": "light"}
    assert client.put("/api/theme", json={"theme": "sepia"}).status_code == 422


def test_pdf_report_export(tmp_path):
    client, _ = _client(tmp_path)
    client.post("/api/categories", json={"name": "Healing"})
    client.post("/api/favorites", json=_favorite_payload("A", "Healing"))
    client.post("/api/favorites", json=_favorite_payload("B"))
    client.post("/api/favorites", json=_favorite_payload("C", "Healing"))

    response = client.get("/api/export/report.pdf")

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert 'filename="Esoteric-Herb-Grimoire.pdf"' in response.headers["content-disposition"]
    assert response.headers["x-report-pages"] == "7"
    pdf = pymupdf.open("pdf", response.content)
    try:
        assert [entry[:3] for entry in pdf.get_toc()] == [[1, "Uncategorized", 3], [1, "Healing", 5]]
    finally:
        pdf.close()


def test_single_favorite_export(tmp_path):
    client, _ = _client(tmp_path)
    client.post("/api/favorites", json=_favorite_payload("Sage"))

    response = client.get("/api/export/favorites/sage.pdf")

    assert response.status_code == 200
    assert response.headers["x-report-pages"] == "1"
    assert 'filename="Sage.pdf"' in response.headers["content-disposition"]
    assert client.get("/api/export/favorites/Rue.pdf").status_code == 404


def test_clipboard_export(tmp_path):
    client, _ = _client(tmp_path)

    assert client.get("/api/export/clipboard").status_code == 400

    client.post("/api/favorites", json=_favorite_payload("Sage"))
    body = client.get("/api/export/clipboard").json()
    assert "## Sage" in body["text"]
    assert "<h2" in body["html"]


def test_favorites_reject_image_refs_that_point_at_server_resources(tmp_path, monkeypatch):
    client, _ = _client(tmp_path)
    monkeypatch.setattr(config, "REPORT_IMAGE_HOSTS", ["images.example"])
    secret = tmp_path / "secret.png"
    secret.write_bytes(placeholder_image())

    for image in (
        str(secret),
        secret.as_uri(),
        "http://127.0.0.1:8080/admin.png",
        "https://images.example.evil/sage.png",
        "data:image/png,raw",
    ):
        payload = {**_favorite_payload("Sage"), "image": image}
        assert client.post("/api/favorites", json=payload).status_code == 422
        assert client.post("/api/favorites/toggle", json=payload).status_code == 422

    assert client.get("/api/favorites").json() == []

    allowed = {**_favorite_payload("Sage"), "image": "https://images.example/sage.png"}
    assert client.post("/api/favorites", json=allowed).status_code == 201
