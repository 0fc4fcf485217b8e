"""Integration tests for API endpoints"""

import pytest
from fastapi.testclient import TestClient
from mipago_gateway.domain.models import KYCStatus

PASSWORD = "s3cret-pass"

CBU = "0110599520000001234567"


@pytest.fixture
def funded_account(make_account):
    return make_account(balance_cents=200000)


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "mipago_transfers_total" in response.text


def test_request_id_is_propagated(client: TestClient):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})

    assert response.headers["X-Request-ID"] == "req-123"
    assert client.get("/health").headers["X-Request-ID"]


def test_open_and_fetch_account(client: TestClient):
    """Test POST /v1/accounts then GET /v1/accounts/{id}"""
    response = client.post(
        "/v1/accounts",
        json={"email": "ana@example.com", "declared_monthly_income_cents": 300000, "password": PASSWORD},
    )

    assert response.status_code == 201
    account_id = response.json()["id"]
    data = client.get(f"/v1/accounts/{account_id}").json()
    assert data["kyc_status"] == "pending"
    assert data["transfer_limit_cents"] == 1000000
    assert "password_hash" not in data


def test_unknown_account_is_404(client: TestClient):
    response = client.get("/v1/accounts/missing")

    assert response.status_code == 404
    assert response.json()["detail"]["kind"] == "not_found"


def test_deposit_validation(client: TestClient, make_account):
    account = make_account()

    assert client.post(f"/v1/accounts/{account.id}/deposits", json={"amount_cents": 5000}).json()["balance_cents"] == 5000

    response = client.post(f"/v1/accounts/{account.id}/deposits", json={"amount_cents": 0})
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "VALIDATION_ERROR"


def test_login_and_lockout(client: TestClient, make_account):
    """Test wrong passwords are 401 and the fifth locks the account"""
    account = make_account()

    assert client.post("/v1/auth/login", json={"account_id": account.id, "password": PASSWORD}).status_code == 200

    codes = [
        client.post("/v1/auth/login", json={"account_id": account.id, "password": "wrong-password"}).json()["detail"]["code"]
        for _ in range(5)
    ]
    assert codes == ["INVALID_CREDENTIALS"] * 4 + ["ACCOUNT_LOCKED"]

    security = client.get(f"/v1/accounts/{account.id}/security").json()
    assert security["locked"] is True

    assert client.post(f"/v1/accounts/{account.id}/unlock").json()["locked"] is False


def test_password_reset_endpoints(client: TestClient, make_account):
    account = make_account()
    token = client.post("/v1/auth/password-reset", json={"account_id": account.id}).json()["token"]

    confirm = client.post("/v1/auth/password-reset/confirm", json={"token": token, "new_password": "n3w-password"})
    assert confirm.status_code == 204

    reused = client.post("/v1/auth/password-reset/confirm", json={"token": token, "new_password": "n3w-password"})
    assert reused.status_code == 401
    assert reused.json()["detail"]["code"] == "INVALID_TOKEN"


def test_eligibility_denial_is_200(client: TestClient, make_account):
    """Test a denied eligibility check still returns the decision"""
    account = make_account(kyc_status=KYCStatus.IN_REVIEW)

    response = client.get(f"/v1/accounts/{account.id}/eligibility", params={"product_type": "quick"})

    assert response.status_code == 200
    data = response.json()
    assert data["eligible"] is False
    assert data["code"] == "KYC_NOT_APPROVED"
    assert data["remediation"]


def test_simulate_credit(client: TestClient):
    response = client.post("/v1/credits/simulate", json={"product_type": "quick", "principal_cents": 100000, "term_units": 30})

    assert response.status_code == 200
    assert response.json()["total_payable_cents"] == 111000

    invalid = client.post("/v1/credits/simulate", json={"product_type": "quick", "principal_cents": 100000, "term_units": 45})
    assert invalid.status_code == 400
    assert invalid.json()["detail"]["code"] == "INVALID_TERM"


def test_credit_lifecycle_endpoints(client: TestClient, funded_account):
    """Test create, disburse, fetch and repeat disbursement"""
    created = client.post(
        "/v1/credits",
        json={"account_id": funded_account.id, "product_type": "quick", "principal_cents": 100000, "term_units": 60},
    )
    assert created.status_code == 201
    credit_id = created.json()["id"]
    assert created.json()["status"] == "pre_approved"

    disbursed = client.post(f"/v1/credits/{credit_id}/disburse")
    assert disbursed.status_code == 200
    assert disbursed.json()["credit"]["status"] == "in_progress"
    assert len(disbursed.json()["installments"]) == 2

    again = client.post(f"/v1/credits/{credit_id}/disburse")
    assert again.status_code == 409

    fetched = client.get(f"/v1/credits/{credit_id}").json()
    assert fetched["credit"]["id"] == credit_id
    listed = client.get(f"/v1/accounts/{funded_account.id}/credits").json()
    assert [c["id"] for c in listed] == [credit_id]

    paid = client.post(f"/v1/credits/{credit_id}/transitions", json={"status": "paid"})
    assert paid.json()["status"] == "paid"


def test_ineligible_credit_is_422(client: TestClient, make_account):
    account = make_account(has_default_history=True)

    response = client.post(
        "/v1/credits",
        json={"account_id": account.id, "product_type": "quick", "principal_cents": 100000, "term_units": 30},
    )

    assert response.status_code == 422
    assert response.json()["detail"]["code"] == "DEFAULT_HISTORY"


def test_transfer_endpoints(client: TestClient, funded_account, make_account):
    """Test an internal transfer settles and shows in the daily summary"""
    destination = make_account()

    response = client.post(
        "/v1/transfers",
        json={
            "origin_account_id": funded_account.id,
            "destination_account_id": destination.id,
            "amount_cents": 50000,
            "reference": "dinner",
        },
    )

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "settled"
    assert data["resulting_balance_cents"] == 150000
    assert data["receipt"]["number"].startswith("COMP-")

    summary = client.get(f"/v1/accounts/{funded_account.id}/transfers/summary").json()
    assert summary["settled_total_cents"] == 50000


def test_transfer_insufficient_funds_is_402(client: TestClient, make_account):
    origin = make_account(balance_cents=1000)

    response = client.post(
        "/v1/transfers",
        json={"origin_account_id": origin.id, "destination_account_number": CBU, "amount_cents": 5000},
    )

    assert response.status_code == 402
    assert response.json()["detail"]["kind"] == "insufficient_funds"


def test_transfer_invalid_destination_is_422(client: TestClient, funded_account):
    response = client.post(
        "/v1/transfers",
        json={"origin_account_id": funded_account.id, "destination_account_number": "123", "amount_cents": 5000},
    )

    assert response.status_code == 422
    assert response.json()["detail"]["code"] == "INVALID_ACCOUNT_FORMAT"


def test_transfer_analysis(client: TestClient, make_account):
    origin = make_account(balance_cents=10000)

    data = client.get(f"/v1/accounts/{origin.id}/transfer-analysis", params={"amount_cents": 30000}).json()

    assert data["can_transfer_directly"] is False
    assert data["shortfall_cents"] == 20000
    assert [o["term_units"] for o in data["credit_offers"]] == [30, 60, 90]


def test_kyc_endpoints(client: TestClient, make_account):
    """Test uploading documents, approving and the raised limit"""
    account = make_account(kyc_status=KYCStatus.PENDING)

    for kind in ("id", "selfie"):
        response = client.post(
            f"/v1/accounts/{account.id}/kyc/documents",
            json={"kind": kind, "document_url": f"https://files.example/{kind}.jpg"},
        )
        assert response.status_code == 201

    documents = client.get(f"/v1/accounts/{account.id}/kyc/documents").json()
    assert len(documents) == 2

    review = client.post(f"/v1/kyc/documents/{documents[0]['id']}/review", json={"validation": "approved"})
    assert review.json()["validation"] == "approved"

    approved = client.post(f"/v1/accounts/{account.id}/kyc/approve")
    assert approved.status_code == 200
    assert approved.json()["kyc_status"] == "approved"
    assert approved.json()["transfer_limit_cents"] == 5000000

    assert client.post(f"/v1/accounts/{account.id}/kyc/approve").status_code == 409


def test_kyc_approval_missing_documents(client: TestClient, make_account):
    account = make_account(kyc_status=KYCStatus.PENDING)

    response = client.post(f"/v1/accounts/{account.id}/kyc/approve")

    assert response.status_code == 422
    assert response.json()["detail"]["context"]["missing"] == ["id", "selfie"]


def test_set_transfer_limit_endpoint(client: TestClient, make_account):
    account = make_account()

    response = client.put(f"/v1/accounts/{account.id}/transfer-limit", json={"limit_cents": 2500000})

    assert response.json()["transfer_limit_cents"] == 2500000


def test_get_transfer_endpoint(client: TestClient, funded_account, make_account):
    """Test a transfer reads back for its origin with the account number masked"""
    created = client.post(
        "/v1/transfers",
        json={"origin_account_id": funded_account.id, "destination_account_number": CBU, "amount_cents": 5000},
    ).json()

    response = client.get(f"/v1/accounts/{funded_account.id}/transfers/{created['transfer_id']}")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "settled"
    assert data["destination"].endswith("4567")
    assert CBU not in data["destination"]
    assert data["bank_name"] == "Banco de la Nacion Argentina"

    stranger = make_account()
    assert client.get(f"/v1/accounts/{stranger.id}/transfers/{created['transfer_id']}").status_code == 404
