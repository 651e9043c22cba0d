"""Integration tests for the ledger HTTP API."""

import pytest
from fastapi.testclient import TestClient

from aidchain.api.main import app
from aidchain.core.dependencies import get_ledger_service
from aidchain.core.exceptions import StoreThrottled


@pytest.fixture
def client(ledger):
    """Test client wired to a fresh in-memory ledger."""
    app.dependency_overrides[get_ledger_service] = lambda: ledger
    yield TestClient(app)
    app.dependency_overrides.clear()


def donation_body(**overrides) -> dict:
    body = {
        "donor": "donor-a",
        "amount": 100,
        "category": "money",
        "region": "ny",
        "organization": "red_cross",
    }
    body.update(overrides)
    return body


@pytest.fixture
def seeded_client(client):
    client.post("/donations", json=donation_body())
    client.post("/donations", json=donation_body(donor="donor-b", amount=40, category="goods"))
    client.post("/donations", json=donation_body(amount=25, region="la"))
    return client


class TestRoot:
    def test_welcome(self, client) -> None:
        response = client.get("/")
        assert response.status_code == 200
        assert "AidChain" in response.json()["message"]


class TestCreateDonation:
    def test_creates_donation(self, client) -> None:
        response = client.post("/donations", json=donation_body())

        assert response.status_code == 201
        data = response.json()
        assert data["donor"] == "donor-a"
        assert data["amount"] == "100"
        assert data["status"] == "pending"
        assert data["delivery_nft_id"] is None
        assert data["timestamp"].startswith("2024-01-15T10:30:00")

    def test_accepts_string_amount(self, client) -> None:
        big = 2**100
        response = client.post("/donations", json=donation_body(amount=str(big)))

        assert response.status_code == 201
        assert response.json()["amount"] == str(big)

    @pytest.mark.parametrize("amount", [0, -5])
    def test_rejects_non_positive_amount(self, client, ledger, amount) -> None:
        response = client.post("/donations", json=donation_body(amount=amount))

        assert response.status_code == 400
        assert "positive" in response.json()["detail"]
        assert ledger.get_donation_count() == 0

    @pytest.mark.parametrize("amount", [True, False])
    def test_rejects_boolean_amount(self, client, ledger, amount) -> None:
        response = client.post("/donations", json=donation_body(amount=amount))

        assert response.status_code == 422
        assert ledger.get_donation_count() == 0

    def test_busy_store_is_503(self, client, ledger, monkeypatch) -> None:
        def throttled(*args, **kwargs):
            raise StoreThrottled("ThrottlingException")

        monkeypatch.setattr(ledger.store, "append", throttled)
        ledger.retry_attempts = 1

        response = client.post("/donations", json=donation_body())

        assert response.status_code == 503
        assert ledger.get_donation_count() == 0

    def test_rejects_malformed_label(self, client, ledger) -> None:
        response = client.post("/donations", json=donation_body(category="not a label!"))

        assert response.status_code == 422
        assert ledger.get_donation_count() == 0

    def test_rejects_missing_field(self, client) -> None:
        body = donation_body()
        del body["region"]
        response = client.post("/donations", json=body)
        assert response.status_code == 422


class TestListDonations:
    def test_lists_all_in_order(self, seeded_client) -> None:
        response = seeded_client.get("/donations")

        assert response.status_code == 200
        assert [d["amount"] for d in response.json()] == ["100", "40", "25"]

    def test_filter_by_donor(self, seeded_client) -> None:
        data = seeded_client.get("/donations", params={"donor": "donor-a"}).json()
        assert [d["region"] for d in data] == ["ny", "la"]

    def test_filter_by_category(self, seeded_client) -> None:
        data = seeded_client.get("/donations", params={"category": "goods"}).json()
        assert [d["donor"] for d in data] == ["donor-b"]

    def test_filter_by_region(self, seeded_client) -> None:
        data = seeded_client.get("/donations", params={"region": "ny"}).json()
        assert [d["donor"] for d in data] == ["donor-a", "donor-b"]

    def test_rejects_multiple_filters(self, seeded_client) -> None:
        response = seeded_client.get("/donations", params={"donor": "donor-a", "region": "ny"})
        assert response.status_code == 400

    def test_empty_ledger(self, client) -> None:
        response = client.get("/donations")
        assert response.status_code == 200
        assert response.json() == []


class TestConfirmDelivery:
    def test_confirms_delivery(self, seeded_client) -> None:
        response = seeded_client.post(
            "/donations/1/confirm-delivery", json={"delivery_nft_id": "nft-1"}
        )

        assert response.status_code == 200
        assert response.json()["status"] == "delivered"
        assert response.json()["delivery_nft_id"] == "nft-1"

        listed = seeded_client.get("/donations").json()
        assert listed[1]["status"] == "delivered"
        assert listed[0]["status"] == "pending"

    def test_out_of_bounds_is_404(self, seeded_client) -> None:
        response = seeded_client.post(
            "/donations/3/confirm-delivery", json={"delivery_nft_id": "x"}
        )

        assert response.status_code == 404
        assert "out of bounds" in response.json()["detail"]

    def test_negative_index_is_404(self, seeded_client) -> None:
        response = seeded_client.post(
            "/donations/-1/confirm-delivery", json={"delivery_nft_id": "x"}
        )
        assert response.status_code == 404


class TestStats:
    def test_empty_stats(self, client) -> None:
        response = client.get("/stats")

        assert response.status_code == 200
        assert response.json() == {
            "total_donations": 0,
            "total_amount": "0",
            "category_stats": {},
            "region_stats": {},
        }

    def test_stats_after_creates(self, seeded_client) -> None:
        data = seeded_client.get("/stats").json()

        assert data["total_donations"] == 3
        assert data["total_amount"] == "165"
        assert data["category_stats"] == {"money": 2, "goods": 1}
        assert data["region_stats"] == {"ny": 2, "la": 1}

    def test_total_amount(self, seeded_client) -> None:
        assert seeded_client.get("/stats/total-amount").json() == {"total_amount": "165"}

    def test_count(self, seeded_client) -> None:
        assert seeded_client.get("/stats/count").json() == {"total_donations": 3}

    def test_confirm_leaves_stats_unchanged(self, seeded_client) -> None:
        before = seeded_client.get("/stats").json()
        seeded_client.post("/donations/0/confirm-delivery", json={"delivery_nft_id": "nft-1"})
        assert seeded_client.get("/stats").json() == before
