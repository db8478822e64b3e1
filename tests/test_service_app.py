from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from smartquote import __version__
from smartquote.catalogue import CatalogueStoreError, MemoryCatalogueStore
from smartquote.domain.models import CatalogueEntry

LINES = [
    {"line_number": 1, "product_code": "FLX-4P-2816-A", "raw_description": "Bench", "quantity": 3},
    {"line_number": 2, "product_code": "PB-6", "raw_description": "Power bar", "quantity": 3},
    {"line_number": 3, "product_code": "CT-1", "raw_description": "Cable tray", "quantity": 1},
    {"line_number": 4, "product_code": "MYST-9", "raw_description": "Mystery item", "quantity": 2},
]

PRODUCTS = [
    {
        "line_number": 1,
        "product_code": "FLX 4P",
        "quantity": 3,
        "time_per_unit": 1.5,
        "waste_per_unit": 0.5,
    },
    {
        "line_number": 999,
        "product_code": "POWER-MODULE",
        "quantity": 3,
        "time_per_unit": 0.2,
        "consolidated": True,
    },
]

DETAILS = {"client": "Acme", "project": "Level 3"}


class BrokenStore(MemoryCatalogueStore):
    def save(self, entries, *, action, details=None):
        raise CatalogueStoreError("read-only share")


@pytest.fixture()
def client(make_app):
    return TestClient(make_app())


def test_health(client):
    body = client.get("/health").json()
    assert body["ok"] is True
    assert body["version"] == __version__
    assert body["catalogue_entries"] == 2
    assert body["session_only_entries"] == 0


def test_normalize_with_match(client):
    body = client.get("/normalize", params={"code": "flx-4p", "match": True}).json()
    assert body["normalized"] == "FLX4P"
    assert body["rule_ids"] == ["rule.case_fold", "rule.strip_punct"]
    assert body["match"]["key"] == "FLX 4P"
    assert body["match"]["tier"] == "exact"

    miss = client.get("/normalize", params={"code": "zzz"}).json()
    assert miss["match"] is None


def test_resolve_partitions_lines(client):
    body = client.post("/resolve", json={"lines": LINES}).json()
    assert [item["product_code"] for item in body["resolved"]] == ["FLX-4P-2816-A", "POWER-MODULE"]
    assert body["resolved"][0]["total_time"] == pytest.approx(4.5)
    assert body["resolved"][1]["consolidated"] is True
    assert [item["product_code"] for item in body["unresolved"]] == ["MYST-9"]
    assert [(item["line_number"], item["product_code"]) for item in body["dropped"]] == [(3, "CT-1")]


def test_manual_entries_are_request_scoped(client):
    manual = [{"product_code": "MYST-9", "install_time_hours": 0.5}]
    body = client.post("/resolve", json={"lines": LINES, "manual_entries": manual}).json()
    assert body["unresolved"] == []
    mystery = [item for item in body["resolved"] if item["product_code"] == "MYST-9"][0]
    assert mystery["source"] == "user-inputted"

    again = client.post("/resolve", json={"lines": LINES}).json()
    assert [item["product_code"] for item in again["unresolved"]] == ["MYST-9"]


def test_calculate_products(client):
    resp = client.post("/calculate", json={"details": DETAILS, "products": PRODUCTS, "strict": True})
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["validation"]["valid"] is True
    pricing = body["results"]["pricing"]
    assert pricing["subtotal"] == 400
    assert pricing["vat"] == 80
    assert pricing["grand_total"] == 480


def test_calculate_lines_reports_unresolved(client):
    body = client.post("/calculate", json={"details": DETAILS, "lines": LINES}).json()
    assert [item["product_code"] for item in body["unresolved"]] == ["MYST-9"]
    assert body["results"]["product_count"] == 2


def test_strict_calculation_rejects_invalid_quote(client):
    resp = client.post("/calculate", json={"products": PRODUCTS, "strict": True}, headers={"X-Trace-Id": "q-1"})
    assert resp.status_code == 422
    body = resp.json()
    assert body["reason"] == "invalid_quote"
    assert body["trace_id"] == "q-1"
    assert {error["field"] for error in body["errors"]} == {"client", "project"}


def test_validate_endpoint(client):
    body = client.post("/validate", json={"details": {"client": "Acme"}, "products": []}).json()
    assert body["valid"] is False
    assert {error["field"] for error in body["errors"]} == {"project", "products"}
    assert body["message"].startswith("Multiple validation errors:")


def test_catalogue_listing(client):
    body = client.get("/catalogue", params={"prefix": "flx"}).json()
    assert body["count"] == 1
    assert body["entries"][0]["key"] == "FLX 4P"
    assert body["session_only"] == []


def test_learn_and_alias(client):
    resp = client.post("/catalogue/learn", json={"product_code": "myst-9", "install_time_hours": 0.5})
    assert resp.status_code == 200
    body = resp.json()
    assert body["key"] == "MYST9"
    assert body["created"] is True
    assert body["persisted"] is True

    resolved = client.post("/resolve", json={"lines": LINES}).json()
    assert resolved["unresolved"] == []

    alias = client.post("/catalogue/DSK-1600/aliases", json={"code": "DESK 1600"})
    assert alias.status_code == 200
    assert alias.json()["entry"]["aliases"] == ["DESK 1600"]


def test_learn_rejects_blank_code(client):
    resp = client.post("/catalogue/learn", json={"product_code": " - ", "install_time_hours": 0.5})
    assert resp.status_code == 400
    assert resp.json()["reason"] == "Cannot learn a product without a code"


def test_alias_to_unknown_key_is_404(client):
    resp = client.post("/catalogue/NOPE/aliases", json={"code": "X-1"})
    assert resp.status_code == 404
    body = resp.json()
    assert body["reason"] == "unknown_catalogue_key"
    assert body["detail"] == "Catalogue key NOPE not found"


def test_failed_write_is_reported_session_only(make_app):
    client = TestClient(make_app(store=BrokenStore({"FLX 4P": CatalogueEntry("FLX 4P", 1.5)})))
    body = client.post("/catalogue/learn", json={"product_code": "NEW-1", "install_time_hours": 0.5}).json()
    assert body["persisted"] is False
    assert body["session_only"] is True
    assert body["error"] == "read-only share"

    health = client.get("/health").json()
    assert health["session_only_entries"] == 1
    assert client.get("/catalogue").json()["session_only"] == ["NEW1"]
