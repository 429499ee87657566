import json
from pathlib import Path

from stockledger.main import app


def test_openapi_paths_snapshot():
    snapshot_path = Path(__file__).parent / "snapshots" / "openapi_paths_snapshot.json"
    expected_paths = json.loads(snapshot_path.read_text(encoding="utf-8"))
    actual_paths = sorted(app.openapi()["paths"].keys())
    assert actual_paths == expected_paths


def test_domain_error_codes_are_documented():
    paths = app.openapi()["paths"]
    review_409 = paths["/requisitions/{requisition_id}/review"]["post"]["responses"]["409"]
    examples = review_409["content"]["application/json"]["examples"]
    assert {"insufficient_stock", "already_reviewed", "item_inactive"} <= set(examples)

    transfer_400 = paths["/stock-transfers"]["post"]["responses"]["400"]
    assert "invalid_transfer" in transfer_400["content"]["application/json"]["examples"]
