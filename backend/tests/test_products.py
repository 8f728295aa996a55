"""
Product catalog tests: create, edit, list, soft delete and the audit rows
each change leaves behind.
"""

import pytest

from storefront.models import Product, Transaction, TransactionType

from conftest import count_rows, make_product


# =============================================================================
# CREATE
# =============================================================================

class TestCreateProduct:

    def test_create_records_product_add(self, client, manager_headers, db_session):
        resp = client.post("/api/products", headers=manager_headers, json={
            "name": "Espresso Beans",
            "price": 12.99,
            "stockQuantity": 40,
            "sku": "COF-001",
            "category": "Coffee",
        })
        assert resp.status_code == 201
        product = resp.json["product"]
        assert product["price"] == 12.99
        assert product["stockQuantity"] == 40
        assert product["minStockLevel"] == 10
        assert product["isActive"] is True

        row = Transaction.query.filter_by(transaction_type=TransactionType.PRODUCT_ADD.value).one()
        assert row.product_id == product["id"]
        assert row.quantity == 40
        assert row.meta["sku"] == "COF-001"
        assert row.meta["addedBy"] == "manager"

        assert db_session.get(Product, product["id"]).price_cents == 1299

    def test_stock_defaults_to_zero(self, client, manager_headers):
        resp = client.post("/api/products", headers=manager_headers, json={"name": "Mug", "price": "8.50"})
        assert resp.status_code == 201
        assert resp.json["product"]["stockQuantity"] == 0
        assert resp.json["product"]["price"] == 8.5

    @pytest.mark.parametrize(
        "body,field",
        [
            ({"price": 1}, "name"),
            ({"name": "Mug"}, "price"),
            ({"name": "Mug", "price": -1}, "price"),
            ({"name": "Mug", "price": "free"}, "price"),
            ({"name": "Mug", "price": 1, "stockQuantity": -5}, "stockQuantity"),
            ({"name": "Mug", "price": 1, "minStockLevel": -1}, "minStockLevel"),
            ({"name": "Mug", "price": 1, "stockQuantity": 10**20}, "stockQuantity"),
            ({"name": "Mug", "price": 1, "minStockLevel": 2**31}, "minStockLevel"),
            ({"name": "Mug", "price": 1, "color": "red"}, "color"),
        ],
    )
    def test_invalid_payload(self, client, manager_headers, body, field):
        resp = client.post("/api/products", headers=manager_headers, json=body)
        assert resp.status_code == 400
        assert field in [e["field"] for e in resp.json["errors"]]
        assert count_rows(TransactionType.PRODUCT_ADD.value) == 0

    def test_duplicate_sku(self, client, manager_headers, product):
        resp = client.post("/api/products", headers=manager_headers, json={
            "name": "Other",
            "price": 1,
            "sku": product.sku,
        })
        assert resp.status_code == 400
        assert resp.json["error"] == "SKU already exists"

    def test_sku_reusable_after_delete(self, client, admin_headers, product):
        resp = client.delete(f"/api/products/{product.id}", headers=admin_headers)
        assert resp.status_code == 200

        resp = client.post("/api/products", headers=admin_headers, json={
            "name": "Widget v2",
            "price": 11,
            "sku": "WID-001",
        })
        assert resp.status_code == 201


# =============================================================================
# UPDATE
# =============================================================================

class TestUpdateProduct:

    def test_update_records_old_and_new_values(self, client, manager_headers, product):
        resp = client.put(f"/api/products/{product.id}", headers=manager_headers, json={
            "price": 12.5,
            "name": "Widget",
        })
        assert resp.status_code == 200
        assert resp.json["product"]["price"] == 12.5

        row = Transaction.query.filter_by(transaction_type=TransactionType.PRODUCT_UPDATE.value).one()
        assert row.meta["oldValues"] == {"price": 10.0}
        assert row.meta["newValues"] == {"price": 12.5}
        assert row.meta["updatedBy"] == "manager"

    def test_stock_quantity_rejected(self, client, manager_headers, product):
        resp = client.put(f"/api/products/{product.id}", headers=manager_headers, json={
            "stockQuantity": 100,
        })
        assert resp.status_code == 400
        assert resp.json["errors"][0]["field"] == "stockQuantity"
        assert product.stock_quantity == 5
        assert count_rows(TransactionType.PRODUCT_UPDATE.value) == 0

    def test_deactivate(self, client, manager_headers, product):
        resp = client.put(f"/api/products/{product.id}", headers=manager_headers, json={"isActive": False})
        assert resp.status_code == 200
        assert resp.json["product"]["isActive"] is False

    def test_sku_collision(self, client, manager_headers, product):
        other = make_product("Gadget", sku="GAD-001")
        resp = client.put(f"/api/products/{other.id}", headers=manager_headers, json={"sku": "WID-001"})
        assert resp.status_code == 400

    def test_unknown_product(self, client, manager_headers, db_session):
        resp = client.put("/api/products/999", headers=manager_headers, json={"name": "x"})
        assert resp.status_code == 404


# =============================================================================
# READ
# =============================================================================

class TestReadProducts:

    def test_list_envelope(self, client, cashier_headers, product):
        resp = client.get("/api/products", headers=cashier_headers)
        assert resp.status_code == 200
        assert resp.json["count"] == 1
        assert resp.json["items"][0]["sku"] == "WID-001"
        assert resp.json["pagination"] == {
            "page": 1,
            "per_page": 20,
            "total": 1,
            "total_pages": 1,
            "has_next": False,
            "has_prev": False,
        }

    def test_list_is_repeatable(self, client, cashier_headers, product):
        first = client.get("/api/products", headers=cashier_headers).json
        second = client.get("/api/products", headers=cashier_headers).json
        assert first == second

    def test_detail_is_repeatable(self, client, cashier_headers, product):
        first = client.get(f"/api/products/{product.id}", headers=cashier_headers)
        second = client.get(f"/api/products/{product.id}", headers=cashier_headers)
        assert first.status_code == 200
        assert first.json == second.json

    def test_search_and_category(self, client, cashier_headers, db_session):
        make_product("Green Tea", sku="TEA-001", category="Tea")
        make_product("Black Tea", sku="TEA-002", category="Tea")
        make_product("Drip Coffee", sku="COF-001", category="Coffee", description="house blend")

        resp = client.get("/api/products?search=tea&sortBy=name&sortOrder=ASC", headers=cashier_headers)
        assert [p["name"] for p in resp.json["items"]] == ["Black Tea", "Green Tea"]

        resp = client.get("/api/products?search=blend", headers=cashier_headers)
        assert [p["sku"] for p in resp.json["items"]] == ["COF-001"]

        resp = client.get("/api/products?category=Coffee", headers=cashier_headers)
        assert resp.json["count"] == 1

    def test_inactive_hidden_unless_requested(self, client, cashier_headers, db_session):
        make_product("Active")
        make_product("Retired", is_active=False)

        resp = client.get("/api/products", headers=cashier_headers)
        assert [p["name"] for p in resp.json["items"]] == ["Active"]

        resp = client.get("/api/products?includeInactive=true", headers=cashier_headers)
        assert resp.json["count"] == 2

    def test_pagination(self, client, cashier_headers, db_session):
        for i in range(5):
            make_product(f"Item {i}")

        resp = client.get("/api/products?page=2&limit=2&sortBy=name&sortOrder=ASC", headers=cashier_headers)
        assert [p["name"] for p in resp.json["items"]] == ["Item 2", "Item 3"]
        assert resp.json["pagination"]["total_pages"] == 3
        assert resp.json["pagination"]["has_next"] is True
        assert resp.json["pagination"]["has_prev"] is True

    def test_page_beyond_integer_range(self, client, cashier_headers, product):
        resp = client.get(f"/api/products?page={10**20}", headers=cashier_headers)
        assert resp.status_code == 200
        assert resp.json["items"] == []
        assert resp.json["pagination"]["page"] == 2_147_483_647

    def test_bad_sort_column(self, client, cashier_headers, db_session):
        resp = client.get("/api/products?sortBy=password", headers=cashier_headers)
        assert resp.status_code == 400

    def test_low_stock(self, client, cashier_headers, db_session):
        make_product("Plenty", stock=50, min_stock_level=10)
        make_product("Edge", stock=10, min_stock_level=10)
        make_product("Empty", stock=0, min_stock_level=3)
        make_product("Off", stock=0, is_active=False)

        resp = client.get("/api/products/low-stock", headers=cashier_headers)
        assert resp.status_code == 200
        assert [p["name"] for p in resp.json["items"]] == ["Empty", "Edge"]
        assert resp.json["count"] == 2

    def test_categories(self, client, cashier_headers, db_session):
        make_product("A", category="Tea")
        make_product("B", category="Coffee")
        make_product("C", category="Tea")
        make_product("D")

        resp = client.get("/api/products/categories", headers=cashier_headers)
        assert resp.json["categories"] == ["Coffee", "Tea"]

    def test_detail_includes_recent_transactions(self, client, manager_headers, product):
        client.put(f"/api/products/{product.id}/stock", headers=manager_headers, json={
            "quantity": 1,
            "operation": "add",
        })
        resp = client.get(f"/api/products/{product.id}", headers=manager_headers)
        assert resp.status_code == 200
        assert resp.json["stockQuantity"] == 6
        assert resp.json["recentTransactions"][0]["transactionType"] == "STOCK_UPDATE"

    def test_detail_not_found(self, client, cashier_headers, db_session):
        assert client.get("/api/products/31337", headers=cashier_headers).status_code == 404

    def test_detail_id_beyond_integer_range(self, client, cashier_headers, db_session):
        resp = client.get(f"/api/products/{10**20}", headers=cashier_headers)
        assert resp.status_code == 404
        assert resp.json == {"error": "Not found"}


# =============================================================================
# DELETE
# =============================================================================

class TestDeleteProduct:

    def test_soft_delete(self, client, admin_headers, product, db_session):
        resp = client.delete(f"/api/products/{product.id}", headers=admin_headers)
        assert resp.status_code == 200

        stored = db_session.get(Product, product.id)
        assert stored is not None
        assert stored.deleted_at is not None
        assert stored.is_active is False

        row = Transaction.query.filter_by(transaction_type=TransactionType.PRODUCT_DELETE.value).one()
        assert row.meta["stockAtDeletion"] == 5
        assert row.meta["sku"] == "WID-001"

        assert client.get(f"/api/products/{product.id}", headers=admin_headers).status_code == 404
        assert client.get("/api/products?includeInactive=true", headers=admin_headers).json["count"] == 0

    def test_delete_twice(self, client, admin_headers, product):
        client.delete(f"/api/products/{product.id}", headers=admin_headers)
        resp = client.delete(f"/api/products/{product.id}", headers=admin_headers)
        assert resp.status_code == 404
