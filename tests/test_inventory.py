"""
Tests for purchase and restock, over HTTP and end to end.
"""

import pytest

from conftest import auth_header, register


class TestPurchase:

    def test_purchase_decrements_stock(self, client, customer_headers, make_sweet, db):
        sweet = make_sweet(quantity=10)

        response = client.post(f"/sweets/{sweet.id}/purchase", headers=customer_headers, json={"quantity": 4})

        assert response.status_code == 200
        assert response.json()["message"] == "Purchase successful"
        assert response.json()["sweet"]["quantity"] == 6
        assert db.get_sweet(sweet.id).quantity == 6

    def test_purchase_whole_stock(self, client, customer_headers, make_sweet, db):
        sweet = make_sweet(quantity=3)

        response = client.post(f"/sweets/{sweet.id}/purchase", headers=customer_headers, json={"quantity": 3})

        assert response.status_code == 200
        assert db.get_sweet(sweet.id).quantity == 0

    def test_over_purchase_leaves_stock_alone(self, client, customer_headers, make_sweet, db):
        sweet = make_sweet(quantity=3)

        response = client.post(f"/sweets/{sweet.id}/purchase", headers=customer_headers, json={"quantity": 4})

        assert response.status_code == 400
        assert db.get_sweet(sweet.id).quantity == 3

    def test_missing_and_short_stock_are_indistinguishable(self, client, customer_headers, make_sweet):
        sweet = make_sweet(quantity=0)

        short = client.post(f"/sweets/{sweet.id}/purchase", headers=customer_headers, json={"quantity": 1})
        missing = client.post("/sweets/does-not-exist/purchase", headers=customer_headers, json={"quantity": 1})

        assert short.status_code == missing.status_code == 400
        assert short.json() == missing.json() == {"message": "Insufficient stock or sweet not found"}

    @pytest.mark.parametrize("body", [{"quantity": 0}, {"quantity": -2}, {"quantity": 1.5}, {"quantity": "1"}, {}])
    def test_invalid_quantity(self, client, customer_headers, make_sweet, db, body):
        sweet = make_sweet(quantity=5)

        response = client.post(f"/sweets/{sweet.id}/purchase", headers=customer_headers, json=body)

        assert response.status_code == 400
        assert response.json() == {"message": "Invalid purchase data"}
        assert db.get_sweet(sweet.id).quantity == 5

    def test_requires_authentication(self, client, make_sweet):
        sweet = make_sweet()
        response = client.post(f"/sweets/{sweet.id}/purchase", json={"quantity": 1})
        assert response.status_code == 401

    def test_admin_may_purchase(self, client, admin_headers, make_sweet):
        sweet = make_sweet(quantity=2)
        response = client.post(f"/sweets/{sweet.id}/purchase", headers=admin_headers, json={"quantity": 1})
        assert response.status_code == 200


class TestRestock:

    def test_restock_increments_stock(self, client, admin_headers, make_sweet, db):
        sweet = make_sweet(quantity=2)

        response = client.post(f"/sweets/{sweet.id}/restock", headers=admin_headers, json={"quantity": 8})

        assert response.status_code == 200
        assert response.json()["message"] == "Restock successful"
        assert db.get_sweet(sweet.id).quantity == 10

    def test_restock_missing(self, client, admin_headers):
        response = client.post("/sweets/nope/restock", headers=admin_headers, json={"quantity": 1})

        assert response.status_code == 404
        assert response.json() == {"message": "Sweet not found"}

    def test_customer_forbidden(self, client, customer_headers, make_sweet, db):
        sweet = make_sweet(quantity=2)

        response = client.post(f"/sweets/{sweet.id}/restock", headers=customer_headers, json={"quantity": 5})

        assert response.status_code == 403
        assert db.get_sweet(sweet.id).quantity == 2

    def test_anonymous_unauthenticated(self, client, make_sweet):
        sweet = make_sweet()
        response = client.post(f"/sweets/{sweet.id}/restock", json={"quantity": 5})
        assert response.status_code == 401

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_invalid_quantity(self, client, admin_headers, make_sweet, quantity):
        sweet = make_sweet()

        response = client.post(f"/sweets/{sweet.id}/restock", headers=admin_headers, json={"quantity": quantity})

        assert response.status_code == 400
        assert response.json() == {"message": "Invalid restock data"}


def test_admin_and_customer_walkthrough(client):
    register(client, "admin", "admin@example.com", role="admin")
    register(client, "customer", "customer@example.com")
    admin = auth_header(client.post(
        "/auth/login", json={"email": "admin@example.com", "password": "password123"}
    ).json()["token"])
    customer = auth_header(client.post(
        "/auth/login", json={"email": "customer@example.com", "password": "password123"}
    ).json()["token"])
    sweet = {"name": "X", "category": "mithai", "description": "d", "price": "10.00", "quantity": 5}

    assert client.post("/sweets", headers=customer, json=sweet).status_code == 403

    created = client.post("/sweets", headers=admin, json=sweet)
    assert created.status_code == 200
    assert created.json()["quantity"] == 5
    sweet_id = created.json()["id"]

    assert client.post(f"/sweets/{sweet_id}/purchase", headers=customer, json={"quantity": 6}).status_code == 400

    bought = client.post(f"/sweets/{sweet_id}/purchase", headers=customer, json={"quantity": 5})
    assert bought.status_code == 200
    assert bought.json()["sweet"]["quantity"] == 0

    restocked = client.post(f"/sweets/{sweet_id}/restock", headers=admin, json={"quantity": 3})
    assert restocked.status_code == 200
    assert restocked.json()["sweet"]["quantity"] == 3
