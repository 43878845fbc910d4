"""
HTTP-level tests: API-key permissions, the response envelope, error
mapping and the hierarchy endpoints.
"""

from fastapi.testclient import TestClient

from orgadmin.db.backends import DisabledBackend
from orgadmin.db.executor import QueryExecutor
from orgadmin.main import create_app
from orgadmin.repositories.api_logs import ApiLogRepository


def _headers(api_keys, which="full"):
    return {"X-API-Key": api_keys[which]}


# -----------------------------------------------------------------------------
# Health / auth guards
# -----------------------------------------------------------------------------

def test_health_reports_backend(client):
    body = client.get("/health").json()
    assert body["status"] == "ok"
    assert body["backend"] == "sqlite"
    assert body["database"] == "connected"


def test_missing_api_key(client, org):
    response = client.get("/api/v1/companies")
    assert response.status_code == 401
    assert response.json() == {
        "success": False,
        "error": {"code": "UNAUTHORIZED", "message": "X-API-Key header is required"},
    }


def test_unknown_api_key(client, org):
    response = client.get("/api/v1/companies", headers={"X-API-Key": "org_" + "0" * 48})
    assert response.status_code == 401


def test_method_permissions(client, org, api_keys):
    assert client.get("/api/v1/companies", headers=_headers(api_keys, "read")).status_code == 200

    response = client.post(
        "/api/v1/companies",
        json={"company_code": "NEW", "company_name_th": "ใหม่"},
        headers=_headers(api_keys, "read"),
    )
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "FORBIDDEN"

    response = client.delete("/api/v1/departments/FIN-TAX", headers=_headers(api_keys, "write"))
    assert response.status_code == 403

    response = client.delete("/api/v1/departments/FIN-TAX", headers=_headers(api_keys, "full"))
    assert response.status_code == 200


def test_requests_are_logged_per_key(client, org, api_keys, executor):
    client.get("/api/v1/branches", headers={**_headers(api_keys, "read"), "X-Forwarded-For": "10.1.2.3, 10.0.0.1"})
    client.get("/api/v1/companies/NOPE", headers=_headers(api_keys, "read"))

    logs = ApiLogRepository(executor).get_recent()
    assert [(log["endpoint"], log["response_status"]) for log in logs] == [
        ("/api/v1/companies/NOPE", 404),
        ("/api/v1/branches", 200),
    ]
    assert logs[1]["ip_address"] == "10.1.2.3"
    assert ApiLogRepository(executor).get_today_stats()["error_count"] == 1


# -----------------------------------------------------------------------------
# Companies / branches / divisions / departments
# -----------------------------------------------------------------------------

def test_list_companies_envelope(client, org, api_keys):
    body = client.get("/api/v1/companies?limit=1", headers=_headers(api_keys)).json()
    assert body["success"] is True
    assert [c["company_code"] for c in body["data"]] == ["ACME"]
    assert body["pagination"] == {"page": 1, "limit": 1, "total": 2, "pages": 2}


def test_create_update_and_status(client, org, api_keys):
    response = client.post(
        "/api/v1/companies",
        json={"company_code": "INITECH", "company_name_th": "อินิเทค", "company_name_en": "Initech"},
        headers=_headers(api_keys, "write"),
    )
    assert response.status_code == 201
    created = response.json()["data"]
    assert created["company_code"] == "INITECH"
    assert created["created_by"] == "api:hr-sync"
    assert created["branch_count"] == 0

    response = client.put(
        "/api/v1/companies/INITECH",
        json={"website": "https://initech.example"},
        headers=_headers(api_keys, "write"),
    )
    assert response.json()["data"]["website"] == "https://initech.example"
    assert response.json()["data"]["company_name_en"] == "Initech"

    response = client.patch(
        "/api/v1/companies/INITECH/status",
        json={"is_active": False},
        headers=_headers(api_keys, "write"),
    )
    assert response.json()["data"]["is_active"] is False


def test_error_mapping(client, org, api_keys):
    headers = _headers(api_keys)

    response = client.get("/api/v1/companies/NOPE", headers=headers)
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"

    response = client.post("/api/v1/companies", json={"company_code": "ACME", "company_name_th": "x"}, headers=headers)
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "DUPLICATE_CODE"

    response = client.post(
        "/api/v1/branches",
        json={"branch_code": "X-1", "branch_name": "Nowhere", "company_code": "NOPE"},
        headers=headers,
    )
    assert response.status_code == 422
    assert response.json()["error"]["code"] == "INVALID_HIERARCHY"

    response = client.post("/api/v1/companies", json={"company_name_th": "no code"}, headers=headers)
    assert response.status_code == 422
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    response = client.put("/api/v1/divisions/NOPE", json={"division_name": "x"}, headers=headers)
    assert response.status_code == 404


def test_headquarters_moves_on_create(client, org, api_keys):
    response = client.post(
        "/api/v1/branches",
        json={"branch_code": "ACME-BKK", "branch_name": "Bangkok", "company_code": "ACME", "is_headquarters": True},
        headers=_headers(api_keys),
    )
    assert response.status_code == 201

    body = client.get("/api/v1/companies/ACME/branches", headers=_headers(api_keys)).json()
    hq = {b["branch_code"]: b["is_headquarters"] for b in body["data"]}
    assert hq == {"ACME-BKK": True, "ACME-CNX": False, "ACME-HQ": False}


def test_branch_filters(client, org, api_keys):
    body = client.get("/api/v1/branches?is_headquarters=true", headers=_headers(api_keys)).json()
    assert [b["branch_code"] for b in body["data"]] == ["ACME-HQ", "GLOBEX-HQ"]


def test_branch_delete_refused_while_divisions_remain(client, org, api_keys):
    response = client.delete("/api/v1/branches/ACME-CNX", headers=_headers(api_keys))
    assert response.status_code == 422

    client.patch("/api/v1/divisions/OPS/move", json={"branch_code": None}, headers=_headers(api_keys))
    assert client.delete("/api/v1/branches/ACME-CNX", headers=_headers(api_keys)).status_code == 200


def test_division_move(client, org, api_keys):
    response = client.patch("/api/v1/divisions/OPS/move", json={"branch_code": None}, headers=_headers(api_keys))
    assert response.status_code == 200
    assert response.json()["data"]["branch_code"] is None

    response = client.patch("/api/v1/divisions/OPS/move", json={"branch_code": "GLOBEX-HQ"}, headers=_headers(api_keys))
    assert response.status_code == 422


def test_department_move_and_sub_collections(client, org, api_keys):
    response = client.patch(
        "/api/v1/departments/OPS-LOG/move",
        json={"division_code": "FIN"},
        headers=_headers(api_keys),
    )
    assert response.json()["data"]["division_code"] == "FIN"

    body = client.get("/api/v1/divisions/FIN/departments", headers=_headers(api_keys)).json()
    assert [d["department_code"] for d in body["data"]] == ["FIN-ACC", "FIN-TAX", "OPS-LOG"]
    assert body["meta"] == {"total": 3}

    assert client.get("/api/v1/divisions/NOPE/departments", headers=_headers(api_keys)).status_code == 404


def test_company_delete_cascades(client, org, api_keys):
    assert client.delete("/api/v1/companies/ACME", headers=_headers(api_keys)).status_code == 200
    assert client.get("/api/v1/companies/ACME", headers=_headers(api_keys)).status_code == 404
    assert client.get("/api/v1/departments/FIN-ACC", headers=_headers(api_keys)).status_code == 404


# -----------------------------------------------------------------------------
# Organization endpoints
# -----------------------------------------------------------------------------

def test_organization_tree(client, org, api_keys):
    body = client.get("/api/v1/organization-tree", headers=_headers(api_keys)).json()
    assert body["meta"] == {"total_companies": 2}

    acme = client.get("/api/v1/organization-tree/ACME", headers=_headers(api_keys)).json()["data"]
    assert acme["company_code"] == "ACME"
    assert [d["division_code"] for d in acme["divisions"]] == ["RND"]

    assert client.get("/api/v1/organization-tree/NOPE", headers=_headers(api_keys)).status_code == 404


def test_search_endpoint(client, org, api_keys):
    body = client.get("/api/v1/search?q=ACME&limit=2", headers=_headers(api_keys)).json()
    assert [r["code"] for r in body["data"]] == ["ACME", "ACME-CNX"]
    assert body["pagination"]["total"] == 3
    assert body["meta"] == {"query": "ACME"}

    response = client.get("/api/v1/search?q=A", headers=_headers(api_keys))
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "BAD_REQUEST"


def test_hierarchy_endpoint(client, org, api_keys):
    body = client.get("/api/v1/hierarchy/department/FIN-ACC", headers=_headers(api_keys)).json()
    assert [p["code"] for p in body["data"]["path"]] == ["ACME", "ACME-HQ", "FIN", "FIN-ACC"]

    assert client.get("/api/v1/hierarchy/team/X", headers=_headers(api_keys)).status_code == 400
    assert client.get("/api/v1/hierarchy/division/NOPE", headers=_headers(api_keys)).status_code == 404


def test_statistics_endpoint(client, org, api_keys):
    data = client.get("/api/v1/statistics", headers=_headers(api_keys)).json()["data"]
    assert data["overview"]["total_departments"] == 5
    assert data["companies"]["total_companies"] == 2
    assert data["branches"]["headquarters_count"] == 2
    assert data["divisions"]["total_divisions"] == 4
    assert data["departments"]["total_departments"] == 5


def test_flexible_endpoints(client, org, api_keys):
    response = client.get("/api/v1/flexible/company-departments", headers=_headers(api_keys))
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "MISSING_COMPANY_CODE"

    body = client.get("/api/v1/flexible/company-departments?company=ACME", headers=_headers(api_keys)).json()
    assert body["meta"]["total_departments"] == 4

    body = client.get("/api/v1/flexible/company-full?company=GLOBEX", headers=_headers(api_keys)).json()
    assert body["meta"]["total_branches"] == 1
    assert body["data"]["departments"][0]["department_code"] == "GLX-SALES-TH"

    body = client.get(
        "/api/v1/flexible/custom?company=ACME&include=branches,divisions&skip=divisions",
        headers=_headers(api_keys),
    ).json()
    assert set(body["data"]) == {"company", "branches"}
    assert body["meta"]["included"] == ["company", "branches"]

    assert client.get("/api/v1/flexible/company-full?company=NOPE", headers=_headers(api_keys)).status_code == 404


# -----------------------------------------------------------------------------
# Database disabled
# -----------------------------------------------------------------------------

def test_disabled_database():
    app = create_app(QueryExecutor(DisabledBackend()))
    with TestClient(app) as client:
        assert client.get("/health").json()["database"] == "disabled"
        # No key store means no key can be verified.
        assert client.get("/api/v1/companies", headers={"X-API-Key": "org_x"}).status_code == 401
