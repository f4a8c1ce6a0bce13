import json
from pathlib import Path

from stockbook.main import app

HEALTH_PATHS = {"/", "/health", "/ready"}


def test_openapi_paths_snapshot():
    snapshot_path = Path(__file__).parent / "snapshots" / "openapi_paths_snapshot.json"
    expected_paths = json.loads(snapshot_path.read_text(encoding="utf-8"))
    actual_paths = sorted(app.openapi()["paths"].keys())
    assert actual_paths == expected_paths


def test_every_business_operation_is_documented():
    undocumented = []
    for path, operations in app.openapi()["paths"].items():
        if path in HEALTH_PATHS:
            continue
        for method, operation in operations.items():
            if not operation.get("summary") or not operation.get("tags"):
                undocumented.append(f"{method.upper()} {path}")
    assert undocumented == []


def test_stock_mutations_document_conflicts():
    paths = app.openapi()["paths"]
    assert "409" in paths["/sales"]["post"]["responses"]
    assert "409" in paths["/purchases/{purchase_id}"]["delete"]["responses"]


def test_health_endpoints(test_context):
    client, _ = test_context

    root = client.get("/")
    assert root.status_code == 200
    assert root.json()["docs"] == "/docs"
    assert client.get("/health").json() == {"ok": True}
    assert root.headers["X-Request-ID"]


def test_conflict_examples_match_the_error_raised():
    paths = app.openapi()["paths"]

    def conflict_code(path: str, method: str) -> str:
        example = paths[path][method]["responses"]["409"]["content"]["application/json"]["example"]
        return example["error"]["code"]

    assert conflict_code("/sales", "post") == "insufficient_stock"
    assert conflict_code("/purchases/{purchase_id}", "delete") == "negative_stock"
    assert conflict_code("/suppliers/{supplier_id}", "delete") == "conflict"
