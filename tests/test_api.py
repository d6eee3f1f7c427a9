"""
HTTP surface tests: status codes, error envelope, list envelope, headers.
"""

import pytest

from app.models.review import ReviewItem


def _create_client_with_site(client):
    res = client.post("/api/v1/clients", json={
        "name": "Copropriété du Parc",
        "contact_email": "gestion@copro-parc.fr",
        "sites": [{
            "label": "Entrée nord",
            "address_line1": "3 allée du Parc",
            "postal_code": "69006",
            "city": "Lyon",
        }],
    })
    assert res.status_code == 201
    body = res.get_json()
    detail = client.get(f"/api/v1/clients/{body['id']}").get_json()
    return body["id"], detail["sites"][0]["id"]


def _open_case(client):
    client_id, site_id = _create_client_with_site(client)
    res = client.post("/api/v1/cases", json={
        "title": "Porte de garage bloquée",
        "client_id": client_id,
        "site_id": site_id,
        "created_by_id": "U-office",
    })
    assert res.status_code == 201
    return res.get_json()


class TestClients:
    def test_create_and_list(self, client):
        _create_client_with_site(client)

        res = client.get("/api/v1/clients")

        assert res.status_code == 200
        body = res.get_json()
        assert body["total"] == 1
        assert body["items"][0]["name"] == "Copropriété du Parc"

    def test_validation_envelope(self, client):
        res = client.post("/api/v1/clients", json={"sites": [{"label": "A"}]})

        assert res.status_code == 422
        body = res.get_json()
        assert body["code"] == "ERR_VALIDATION_INVALID"
        assert body["details"]["name"] == "required"
        assert "sites[0].city" in body["details"]

    def test_unknown_client_404(self, client):
        res = client.get("/api/v1/clients/does-not-exist")

        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"

    def test_non_object_body(self, client):
        res = client.post("/api/v1/clients", json=["not", "an", "object"])

        assert res.status_code == 422

    def test_non_json_content_type(self, client):
        res = client.post("/api/v1/clients", data="name=x", content_type="text/plain")

        assert res.status_code == 415
        assert res.get_json()["code"] == "ERR_BAD_REQUEST"


class TestInterventionFlow:
    def test_full_visit_over_http(self, client):
        case = _open_case(client)

        res = client.post(f"/api/v1/cases/{case['id']}/interventions", json={
            "title": "Diagnostic moteur",
            "type": "STANDARD",
            "technician_id": "T1",
        })
        assert res.status_code == 201
        intervention = res.get_json()
        assert intervention["status"] == "ASSIGNED"
        iid = intervention["id"]

        for status in ("ON_SITE", "REPORT_PENDING", "COMPLETED"):
            res = client.post(f"/api/v1/interventions/{iid}/transition", json={
                "status": status, "user_id": "T1",
            })
            assert res.status_code == 200, res.get_json()
            assert res.get_json()["status"] == status

        logs = client.get(f"/api/v1/interventions/{iid}/logs").get_json()
        assert [row["status_to"] for row in logs["items"]] == [
            "ASSIGNED", "ON_SITE", "REPORT_PENDING", "COMPLETED",
        ]
        assert ReviewItem.query.filter_by(reference_id=iid, resolved_at=None).count() == 0

    def test_invalid_transition_409(self, client):
        case = _open_case(client)
        iid = client.post(f"/api/v1/cases/{case['id']}/interventions", json={
            "title": "Diagnostic moteur", "type": "STANDARD",
        }).get_json()["id"]

        res = client.post(f"/api/v1/interventions/{iid}/transition", json={
            "status": "COMPLETED", "user_id": "T1",
        })

        assert res.status_code == 409
        body = res.get_json()
        assert body["code"] == "ERR_CONFLICT_STATE"
        assert body["details"] == {"current": "PENDING_ASSIGNMENT", "target": "COMPLETED"}

    def test_stale_version_409(self, client):
        case = _open_case(client)
        iid = client.post(f"/api/v1/cases/{case['id']}/interventions", json={
            "title": "Diagnostic moteur", "type": "STANDARD", "technician_id": "T1",
        }).get_json()["id"]

        res = client.post(f"/api/v1/interventions/{iid}/transition", json={
            "status": "EN_ROUTE", "user_id": "T1", "expected_version": 99,
        })

        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_CONFLICT_VERSION"

    def test_unknown_intervention_404(self, client):
        res = client.post("/api/v1/interventions/missing/transition", json={
            "status": "ON_SITE", "user_id": "T1",
        })

        assert res.status_code == 404


class TestCaseAndReviews:
    def test_close_case_shows_in_review_summary(self, client):
        case = _open_case(client)

        res = client.post(f"/api/v1/cases/{case['id']}/close", json={"closed_by_id": "U1"})
        assert res.status_code == 200
        assert res.get_json()["status"] == "CLOSED"

        summary = client.get("/api/v1/reviews/summary").get_json()
        assert summary["REPORT"] == 1

        items = client.get("/api/v1/reviews?open=true").get_json()
        assert items["total"] == 1
        item_id = items["items"][0]["id"]

        res = client.post(f"/api/v1/reviews/{item_id}/resolve", json={"resolved_by_id": "U1"})
        assert res.status_code == 200
        assert client.get("/api/v1/reviews?open=true").get_json()["total"] == 0
        assert client.get("/api/v1/reviews").get_json()["total"] == 1

    def test_quote_send_over_http(self, client):
        case = _open_case(client)
        quote = client.post("/api/v1/quotes", json={
            "case_id": case["id"], "requested_by_id": "T1", "amount": 300,
        })
        assert quote.status_code == 201
        qid = quote.get_json()["id"]

        res = client.post(f"/api/v1/quotes/{qid}/send", json={})

        assert res.status_code == 200
        assert res.get_json()["status"] == "SENT"
        assert client.get("/api/v1/reviews/summary").get_json()["QUOTE"] == 0


class TestHealth:
    def test_ready(self, client):
        res = client.get("/api/v1/health/ready")

        assert res.status_code == 200
        assert res.get_json() == {"status": "ok"}

    def test_live(self, client):
        res = client.get("/api/v1/health/live")

        assert res.status_code == 200
        body = res.get_json()
        assert body["status"] == "healthy"
        assert body["checks"]["database"]["status"] == "ok"
        assert body["checks"]["workflow"]["enforce_transitions"] is True


class TestRequestHeaders:
    def test_request_id_generated(self, client):
        res = client.get("/api/v1/health/ready")

        assert res.headers.get("X-Request-ID")
        assert res.headers.get("X-Request-Duration-Ms") is not None

    @pytest.mark.parametrize("request_id", ["abc123", "trace-42"])
    def test_request_id_propagated(self, client, request_id):
        res = client.get("/api/v1/health/ready", headers={"X-Request-ID": request_id})

        assert res.headers["X-Request-ID"] == request_id
