"""
Shared fixtures.

Every test gets its own in-memory embedded database; API tests talk to an
app built around that same executor, so repository calls in a test see what
the HTTP calls wrote and vice versa.
"""

import pytest
from fastapi.testclient import TestClient

from orgadmin.core.cache import cache_clear
from orgadmin.core.config import settings
from orgadmin.core.security import hash_password
from orgadmin.db.backends import EmbeddedBackend
from orgadmin.db.executor import QueryExecutor
from orgadmin.main import create_app
from orgadmin.repositories.api_keys import ApiKeyRepository
from orgadmin.repositories.branches import BranchRepository
from orgadmin.repositories.companies import CompanyRepository
from orgadmin.repositories.departments import DepartmentRepository
from orgadmin.repositories.divisions import DivisionRepository

ADMIN_PASSWORD = "correct-horse-battery"


@pytest.fixture(autouse=True)
def fresh_cache():
    cache_clear()
    yield
    cache_clear()


@pytest.fixture
def executor():
    ex = QueryExecutor(EmbeddedBackend(":memory:"))
    ex.create_schema()
    yield ex
    ex.close()


@pytest.fixture
def org(executor):
    """
    ACME
      ├─ ACME-HQ (headquarters) → FIN → FIN-ACC, FIN-TAX
      ├─ ACME-CNX               → OPS → OPS-LOG
      └─ (direct)               → RND → RND-LAB
    GLOBEX
      └─ GLOBEX-HQ (headquarters) → GLX-SALES → GLX-SALES-TH
    """
    companies = CompanyRepository(executor)
    companies.create(
        {
            "company_code": "ACME",
            "company_name_th": "บริษัท แอคมี จำกัด",
            "company_name_en": "Acme Co., Ltd.",
            "tax_id": "0105550000001",
            "created_by": "seed",
        }
    )
    companies.create(
        {
            "company_code": "GLOBEX",
            "company_name_th": "บริษัท โกลเบ็กซ์ จำกัด",
            "company_name_en": "Globex Corporation",
            "tax_id": "0105550000002",
            "created_by": "seed",
        }
    )

    branches = BranchRepository(executor)
    for code, name, company, hq in (
        ("ACME-HQ", "Head Office", "ACME", True),
        ("ACME-CNX", "Chiang Mai Branch", "ACME", False),
        ("GLOBEX-HQ", "Globex Head Office", "GLOBEX", True),
    ):
        branches.create(
            {
                "branch_code": code,
                "branch_name": name,
                "company_code": company,
                "is_headquarters": hq,
                "is_active": True,
                "created_by": "seed",
            }
        )

    divisions = DivisionRepository(executor)
    for code, name, company, branch in (
        ("FIN", "Finance", "ACME", "ACME-HQ"),
        ("OPS", "Operations", "ACME", "ACME-CNX"),
        ("RND", "Research", "ACME", None),
        ("GLX-SALES", "Sales", "GLOBEX", "GLOBEX-HQ"),
    ):
        divisions.create(
            {
                "division_code": code,
                "division_name": name,
                "company_code": company,
                "branch_code": branch,
                "is_active": True,
                "created_by": "seed",
            }
        )

    departments = DepartmentRepository(executor)
    for code, name, division in (
        ("FIN-ACC", "Accounting", "FIN"),
        ("FIN-TAX", "Tax", "FIN"),
        ("OPS-LOG", "Logistics", "OPS"),
        ("RND-LAB", "Laboratory", "RND"),
        ("GLX-SALES-TH", "Thailand Sales", "GLX-SALES"),
    ):
        departments.create(
            {
                "department_code": code,
                "department_name": name,
                "division_code": division,
                "is_active": True,
                "created_by": "seed",
            }
        )
    # Seeding must not leave cached statistics behind.
    cache_clear()
    return executor


@pytest.fixture
def api_keys(executor):
    """Raw keys by permission set."""
    repo = ApiKeyRepository(executor)
    return {
        "full": repo.generate("back-office", ["read", "write", "delete"], created_by="test")["api_key"],
        "read": repo.generate("dashboard", "read", created_by="test")["api_key"],
        "write": repo.generate("hr-sync", "read,write", created_by="test")["api_key"],
    }


@pytest.fixture
def client(executor):
    app = create_app(executor)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def admin_headers(client, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_PASSWORD_HASH", hash_password(ADMIN_PASSWORD))
    response = client.post(
        "/api/v1/auth/login",
        json={"username": settings.ADMIN_USERNAME, "password": ADMIN_PASSWORD},
    )
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}
