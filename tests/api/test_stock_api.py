"""
API Tests - Products, Stock and Units
"""
import uuid

import pytest

from stockledger.inventory.aggregator import StockSnapshot

ADMIN_HEADERS = {"X-User-Id": "user-admin", "X-User-Role": "admin"}
STOCKIST_HEADERS = {"X-User-Id": "user-stockist", "X-User-Role": "stockist"}
CASHIER_HEADERS = {"X-User-Id": "user-cashier", "X-User-Role": "cashier"}

PRODUCT = {
    "name": "Teh Botol 350ml",
    "sku": "TB-350",
    "price": 60000,
    "price_per_piece": 5000,
    "base_unit": "dus",
    "pcs_per_base_unit": 12,
    "stock_quantity": 5,
}


@pytest.fixture
async def product_id(client) -> str:
    response = await client.post("/api/v1/products", json=PRODUCT, headers=ADMIN_HEADERS)
    assert response.status_code == 201
    return response.json()["id"]


class TestProductsAPI:
    """Tests for product endpoints"""

    async def test_create_product(self, client):
        """Test opening stock is derived from base units"""
        response = await client.post("/api/v1/products", json=PRODUCT, headers=ADMIN_HEADERS)

        assert response.status_code == 201
        data = response.json()
        assert data["stock_pcs"] == 60
        assert data["initial_stock_pcs"] == 60
        assert data["stock_status"] == "in_stock"
        assert data["created_by"] == "user-admin"

    async def test_create_requires_role(self, client):
        """Test cashiers get 403"""
        response = await client.post("/api/v1/products", json=PRODUCT, headers=CASHIER_HEADERS)

        assert response.status_code == 403
        assert response.json()["error"] == "permission_denied"

    async def test_unknown_role(self, client):
        """Test unrecognized roles are rejected"""
        headers = {"X-User-Id": "u1", "X-User-Role": "superuser"}
        response = await client.post("/api/v1/products", json=PRODUCT, headers=headers)

        assert response.status_code == 400

    async def test_duplicate_sku(self, client, product_id):
        """Test duplicate SKUs conflict"""
        response = await client.post("/api/v1/products", json=PRODUCT, headers=ADMIN_HEADERS)

        assert response.status_code == 409
        assert response.json()["error"] == "duplicate_sku"

    async def test_invalid_factor(self, client):
        """Test a zero factor names the field"""
        payload = dict(PRODUCT, pcs_per_base_unit=0)
        response = await client.post("/api/v1/products", json=payload, headers=ADMIN_HEADERS)

        assert response.status_code == 422
        assert response.json()["field"] == "pcs_per_base_unit"

    async def test_get_and_list(self, client, product_id):
        """Test detail and list"""
        detail = await client.get(f"/api/v1/products/{product_id}")
        listing = await client.get("/api/v1/products", params={"search": "teh"})

        assert detail.status_code == 200
        assert detail.json()["sku"] == "TB-350"
        assert listing.json()["total"] == 1

    async def test_unknown_product(self, client):
        """Test missing products return 404"""
        response = await client.get(f"/api/v1/products/{uuid.uuid4()}")

        assert response.status_code == 404
        assert response.json()["error"] == "product_not_found"

    async def test_update_stock_quantity(self, client, product_id):
        """Test editing base stock recomputes pieces"""
        response = await client.patch(
            f"/api/v1/products/{product_id}", json={"stock_quantity": 3}, headers=STOCKIST_HEADERS
        )

        assert response.status_code == 200
        assert response.json()["stock_pcs"] == 36

    async def test_soft_delete(self, client, product_id):
        """Test deleted products are hidden"""
        response = await client.delete(f"/api/v1/products/{product_id}", headers=ADMIN_HEADERS)

        assert response.status_code == 204
        assert (await client.get(f"/api/v1/products/{product_id}")).status_code == 404


class TestStockAPI:
    """Tests for stock endpoints"""

    async def test_add_then_reduce(self, client, product_id):
        """Test add 2 boxes then remove 24 pieces"""
        added = await client.post(
            f"/api/v1/products/{product_id}/stock/add",
            json={"quantity": 2, "unit_type": "base_unit"},
            headers=STOCKIST_HEADERS,
        )
        reduced = await client.post(
            f"/api/v1/products/{product_id}/stock/reduce",
            json={"quantity": 24, "unit_type": "pieces", "notes": "Sold"},
            headers=STOCKIST_HEADERS,
        )

        assert added.status_code == 201
        assert added.json()["after"]["stock_pcs"] == 84
        assert added.json()["movement"]["quantity_pcs"] == 24
        assert added.json()["movement"]["reference_number"].startswith("STOCK-")
        assert reduced.status_code == 201
        assert reduced.json()["after"] == {
            "stock_quantity": 5,
            "stock_pcs": 60,
            "total_added": 24,
            "total_reduced": 24,
            "movement_count": 2,
        }

        history = await client.get(f"/api/v1/products/{product_id}/movements")
        assert [m["direction"] for m in history.json()] == ["outbound", "inbound"]

    async def test_failed_snapshot_write_is_not_recorded(self, client, product_id, monkeypatch):
        """Test an atomic stock change that fails is reported as not recorded"""
        def fail_write(self, product):
            raise RuntimeError("store unavailable")

        monkeypatch.setattr(StockSnapshot, "write_to", fail_write)

        response = await client.post(
            f"/api/v1/products/{product_id}/stock/add",
            json={"quantity": 2, "unit_type": "base_unit"},
            headers=STOCKIST_HEADERS,
        )

        assert response.status_code == 500
        assert response.json()["error"] == "snapshot_reconciliation_error"
        assert response.json()["recorded"] is False
        assert "not recorded" in response.json()["message"]
        assert "reconciliation" not in response.json()["message"]

        history = await client.get(f"/api/v1/products/{product_id}/movements")
        assert history.json() == []

    async def test_insufficient_stock(self, client, product_id):
        """Test overdraw returns 409 with the available amount"""
        response = await client.post(
            f"/api/v1/products/{product_id}/stock/reduce",
            json={"quantity": 90, "unit_type": "pieces"},
            headers=STOCKIST_HEADERS,
        )

        assert response.status_code == 409
        body = response.json()
        assert body["error"] == "insufficient_stock"
        assert body["available"] == 60
        assert body["message"] == "Not enough stock. Available: 60 pcs"

        history = await client.get(f"/api/v1/products/{product_id}/movements")
        assert history.json() == []

    async def test_invalid_quantity(self, client, product_id):
        """Test fractional quantities are rejected with the field name"""
        response = await client.post(
            f"/api/v1/products/{product_id}/stock/add",
            json={"quantity": 1.5},
            headers=STOCKIST_HEADERS,
        )

        assert response.status_code == 422
        assert response.json() == {
            "error": "invalid_quantity",
            "field": "quantity",
            "constraint": "must be a whole number",
        }

    async def test_cashier_cannot_add(self, client, product_id):
        """Test stock writes require a write role"""
        response = await client.post(
            f"/api/v1/products/{product_id}/stock/add", json={"quantity": 1}, headers=CASHIER_HEADERS
        )

        assert response.status_code == 403

    async def test_low_stock_listing(self, client, product_id):
        """Test products at the threshold are listed"""
        await client.post(
            f"/api/v1/products/{product_id}/stock/reduce",
            json={"quantity": 50, "unit_type": "pieces"},
            headers=STOCKIST_HEADERS,
        )

        response = await client.get("/api/v1/products/low-stock")

        assert [p["id"] for p in response.json()] == [product_id]
        assert response.json()[0]["stock_status"] == "low_stock"

    async def test_snapshot_verify_and_reconcile(self, client, product_id):
        """Test verify is consistent and reconcile needs admin"""
        await client.post(
            f"/api/v1/products/{product_id}/stock/add", json={"quantity": 1}, headers=STOCKIST_HEADERS
        )

        verify = await client.get(f"/api/v1/products/{product_id}/snapshot/verify")
        forbidden = await client.post(f"/api/v1/products/{product_id}/snapshot/reconcile", headers=STOCKIST_HEADERS)
        reconcile = await client.post(f"/api/v1/products/{product_id}/snapshot/reconcile", headers=ADMIN_HEADERS)

        assert verify.json()["consistent"] is True
        assert verify.json()["drift"] == {}
        assert forbidden.status_code == 403
        assert reconcile.status_code == 200
        assert reconcile.json()["repaired"] is False

    async def test_movement_summary(self, client, product_id):
        """Test movements are summarized per day"""
        await client.post(
            f"/api/v1/products/{product_id}/stock/add", json={"quantity": 1}, headers=STOCKIST_HEADERS
        )
        await client.post(
            f"/api/v1/products/{product_id}/stock/reduce",
            json={"quantity": 2, "unit_type": "pieces"},
            headers=STOCKIST_HEADERS,
        )

        response = await client.get(f"/api/v1/products/{product_id}/movements/summary")

        rows = response.json()
        assert len(rows) == 1
        assert rows[0]["inbound_pcs"] == 12
        assert rows[0]["outbound_pcs"] == 2
        assert rows[0]["net_pcs"] == 10
        assert rows[0]["movements"] == 2


class TestUnitsAPI:
    """Tests for unit endpoints"""

    async def test_units_and_conversions(self, client, product_id):
        """Test base unit listing, examples and base removal"""
        base = await client.post(
            f"/api/v1/products/{product_id}/units",
            json={"unit_name": "pcs", "conversion_factor": 1, "is_base_unit": True},
            headers=ADMIN_HEADERS,
        )
        dus = await client.post(
            f"/api/v1/products/{product_id}/units",
            json={"unit_name": "dus", "conversion_factor": 12},
            headers=ADMIN_HEADERS,
        )

        assert base.status_code == 201
        assert dus.status_code == 201

        units = await client.get(f"/api/v1/products/{product_id}/units")
        assert [u["unit_name"] for u in units.json()] == ["pcs", "dus"]

        conversions = await client.get(f"/api/v1/products/{product_id}/units/conversions")
        assert conversions.json()["examples"] == ["1 pcs = 1 pcs", "1 dus = 12 pcs"]

        removed = await client.delete(f"/api/v1/units/{base.json()['id']}", headers=ADMIN_HEADERS)
        assert removed.status_code == 409
        assert removed.json()["error"] == "cannot_remove_base_unit"

        removed = await client.delete(f"/api/v1/units/{dus.json()['id']}", headers=ADMIN_HEADERS)
        assert removed.status_code == 204

    async def test_null_base_flag_rejected(self, client, product_id):
        """Test an explicit null base flag leaves the base unit in place"""
        base = await client.post(
            f"/api/v1/products/{product_id}/units",
            json={"unit_name": "pcs", "conversion_factor": 1, "is_base_unit": True},
            headers=ADMIN_HEADERS,
        )

        response = await client.patch(
            f"/api/v1/units/{base.json()['id']}", json={"is_base_unit": None}, headers=ADMIN_HEADERS
        )

        assert response.status_code == 422
        assert response.json()["field"] == "is_base_unit"

        conversions = await client.get(f"/api/v1/products/{product_id}/units/conversions")
        assert conversions.json()["base_unit"] == "pcs"
        assert conversions.json()["warnings"] == []

    async def test_duplicate_unit(self, client, product_id):
        """Test duplicate active unit names conflict"""
        payload = {"unit_name": "dus", "conversion_factor": 12}
        await client.post(f"/api/v1/products/{product_id}/units", json=payload, headers=ADMIN_HEADERS)

        response = await client.post(f"/api/v1/products/{product_id}/units", json=payload, headers=ADMIN_HEADERS)

        assert response.status_code == 409


class TestConversionsAPI:
    """Tests for stateless conversion helpers"""

    async def test_recalculate_from_pieces(self, client):
        """Test base quantity floors"""
        response = await client.post(
            "/api/v1/conversions/recalculate", json={"conversion_factor": 12, "pieces": 40}
        )

        assert response.status_code == 200
        assert float(response.json()["base_quantity"]) == 3
        assert float(response.json()["pieces"]) == 40

    async def test_recalculate_from_base(self, client):
        """Test pieces follow exactly"""
        response = await client.post(
            "/api/v1/conversions/recalculate", json={"conversion_factor": 12, "base_quantity": 2.5}
        )

        assert float(response.json()["pieces"]) == 30

    async def test_recalculate_needs_one_side(self, client):
        """Test both or neither side is a request error"""
        response = await client.post(
            "/api/v1/conversions/recalculate",
            json={"conversion_factor": 12, "pieces": 40, "base_quantity": 3},
        )

        assert response.status_code == 422

    async def test_recalculate_zero_factor(self, client):
        """Test zero factor is a validation error"""
        response = await client.post(
            "/api/v1/conversions/recalculate", json={"conversion_factor": 0, "pieces": 40}
        )

        assert response.status_code == 422
        assert response.json()["error"] == "invalid_conversion_factor"

    async def test_presets(self, client):
        """Test common units are listed"""
        response = await client.get("/api/v1/conversions/presets")

        names = [p["name"] for p in response.json()]
        assert "lusin" in names
        assert "pcs" in names


class TestHealthAPI:
    """Tests for health endpoints"""

    async def test_liveness(self, client):
        """Test liveness probe"""
        response = await client.get("/api/v1/health/live")

        assert response.status_code == 200
        assert response.json() == {"status": "alive"}

    async def test_metrics_exposed(self, client, product_id):
        """Test stock movement counters are exported"""
        await client.post(
            f"/api/v1/products/{product_id}/stock/add", json={"quantity": 1}, headers=STOCKIST_HEADERS
        )

        response = await client.get("/metrics/")

        assert response.status_code == 200
        assert "stockledger_movements_total" in response.text
