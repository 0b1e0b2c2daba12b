from __future__ import annotations

from selfheal.core.exceptions import RepositoryUnavailableError
from selfheal.core.repository import InMemoryFingerprintRepository
from selfheal.server.app import create_app
from tests.helpers import HEALED_PAGE, PAGE_KEY, TWIN_PAGE, page


def _learn_submit(client, element_id: str = "submit-btn"):
    return client.post(
        "/learn",
        json={"pageKey": PAGE_KEY, "id": element_id, "tagName": "BUTTON", "innerText": "Submit"},
    )


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.get_json() == {"status": "ok"}


def test_learn_stores_fingerprint(client, repository):
    response = client.post(
        "/learn",
        json={
            "pageKey": PAGE_KEY,
            "id": "email",
            "tagName": "INPUT",
            "className": "field  wide",
            "placeholder": "Email",
            "type": "email",
            "aria-label": "Email address",
        },
    )
    assert response.status_code == 200
    stored = response.get_json()["stored"]
    assert stored["class_names"] == ["field", "wide"]
    assert "inner_text" not in stored
    fingerprint = repository.get(PAGE_KEY, "email")
    assert fingerprint.input_type == "email"
    assert fingerprint.aria_label == "Email address"


def test_learn_missing_fields_is_bad_request(client):
    response = client.post("/learn", json={"pageKey": PAGE_KEY, "id": "x"})
    assert response.status_code == 400
    body = response.get_json()
    assert body["status"] == "bad_request"
    assert body["errors"][0]["field"] == "tagName"

    blank = client.post("/learn", json={"pageKey": PAGE_KEY, "id": " ", "tagName": "div"})
    assert blank.status_code == 400


def test_non_json_body_is_bad_request(client):
    response = client.post("/heal", data="brokenId=x", content_type="text/plain")
    assert response.status_code == 400
    assert response.get_json()["message"] == "Request body must be JSON"


def test_heal_success(client):
    _learn_submit(client)
    response = client.post("/heal", json={"pageKey": PAGE_KEY, "brokenId": "submit-btn", "domSnapshot": HEALED_PAGE})
    assert response.status_code == 200
    body = response.get_json()
    assert body["status"] == "healed"
    assert body["selector"] == "#new-submit"
    assert body["confidence"] == 100.0
    assert body["matched"] == "new-submit"


def test_heal_ambiguous_is_conflict(client):
    _learn_submit(client)
    response = client.post("/heal", json={"pageKey": PAGE_KEY, "brokenId": "submit-btn", "domSnapshot": TWIN_PAGE})
    assert response.status_code == 409
    body = response.get_json()
    assert body["status"] == "ambiguous"
    assert body["tieCount"] == 2
    assert body["confidence"] == 100.0
    assert "selector" not in body


def test_not_found_and_no_fingerprint_stay_distinguishable(client):
    _learn_submit(client)
    weak = client.post(
        "/heal",
        json={"pageKey": PAGE_KEY, "brokenId": "submit-btn", "domSnapshot": page('<a id="home">Home</a>')},
    )
    missing = client.post("/heal", json={"pageKey": PAGE_KEY, "brokenId": "nope", "domSnapshot": HEALED_PAGE})

    assert weak.status_code == missing.status_code == 404
    assert weak.get_json()["status"] == "not_found"
    assert missing.get_json() == {
        "status": "no_fingerprint",
        "confidence": 0.0,
        "message": "No fingerprint found.",
    }


def test_heal_missing_snapshot_is_bad_request(client):
    response = client.post("/heal", json={"pageKey": PAGE_KEY, "brokenId": "submit-btn"})
    assert response.status_code == 400
    assert response.get_json()["message"] == "pageKey, brokenId, domSnapshot required"


def test_repository_failure_is_service_unavailable(settings):
    class BrokenRepository(InMemoryFingerprintRepository):
        def _store(self, page_key, fingerprint):
            raise RepositoryUnavailableError("read-only volume")

    client = create_app(settings, BrokenRepository()).test_client()
    response = _learn_submit(client)
    assert response.status_code == 503
    assert response.get_json()["status"] == "repository_unavailable"


def test_fingerprints_listing(client):
    _learn_submit(client)
    client.post("/heal", json={"pageKey": PAGE_KEY, "brokenId": "submit-btn", "domSnapshot": HEALED_PAGE})
    response = client.get(f"/fingerprints/{PAGE_KEY}")
    assert response.status_code == 200
    records = response.get_json()["fingerprints"]
    assert [record["element_id"] for record in records] == ["new-submit"]
    assert records[0]["history"] == ["submit-btn"]
