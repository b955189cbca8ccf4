from datetime import timedelta

from cashback_engine.models.ledger_entry import EntryKind, EntryStatus


ON_SITE = {"latitude": -3.859981833155958, "longitude": -38.63311136233465}


def customer_headers(customer):
    return {"X-Customer-Id": str(customer.id)}


def admin_headers(admin):
    return {"X-Admin-Id": str(admin.id)}


class TestCustomerRoutes:
    def test_register_and_login(self, client, notifier):
        r = client.post(
            "/customers/register",
            json={"phone": "(85) 98888-7777", "password": "segredo", "name": "Bia"},
        )
        assert r.status_code == 201
        assert r.json()["phone"] == "85988887777"
        assert [n["event_type"] for n in notifier.sent] == ["welcome"]

        r = client.post("/customers/login", json={"phone": "85988887777", "password": "segredo"})
        assert r.status_code == 200
        assert r.json()["last_login_at"] is not None

    def test_login_failure(self, client, customer):
        r = client.post("/customers/login", json={"phone": customer.phone, "password": "errada"})
        assert r.status_code == 401
        assert r.json()["error"] == "AuthenticationError"

    def test_identity_required(self, client):
        assert client.get("/wallet").status_code == 401
        assert client.get("/wallet", headers={"X-Customer-Id": "not-a-uuid"}).status_code == 401


class TestPurchaseFlow:
    def test_submit_approve_and_wallet(self, client, customer, admin, notifier):
        r = client.post(
            "/transactions/purchases",
            json={"amount": "100.00", **ON_SITE},
            headers=customer_headers(customer),
        )
        assert r.status_code == 201
        body = r.json()
        assert body["status"] == "pending"
        assert body["cashback_amount"] == "5.00"

        r = client.get("/admin/transactions/pending", headers=admin_headers(admin))
        assert [e["id"] for e in r.json()] == [body["id"]]

        r = client.post(
            f"/admin/transactions/{body['id']}/decision",
            json={"status": "approved"},
            headers=admin_headers(admin),
        )
        assert r.status_code == 200
        assert r.json()["status"] == "approved"

        r = client.post(
            f"/admin/transactions/{body['id']}/decision",
            json={"status": "rejected"},
            headers=admin_headers(admin),
        )
        assert r.status_code == 409

        wallet = client.get("/wallet", headers=customer_headers(customer)).json()
        assert wallet["availableBalance"] == "5.00"
        assert wallet["nextExpiring"]["amount"] == "5.00"
        assert wallet["nextExpiring"]["date"].startswith("2026-12-31T23:59:59")
        assert [n["event_type"] for n in notifier.sent] == ["purchase"]

    def test_out_of_range(self, client, customer, geofence):
        geofence.on_premises = False

        r = client.post(
            "/transactions/purchases",
            json={"amount": "100.00", **ON_SITE},
            headers=customer_headers(customer),
        )
        assert r.status_code == 400
        assert r.json()["error"] == "OutOfRangeError"
        assert r.json()["storeName"] == "Loja 1"

    def test_missing_location(self, client, customer):
        r = client.post("/transactions/purchases", json={"amount": "10.00"}, headers=customer_headers(customer))
        assert r.status_code == 408

    def test_non_admin_cannot_decide(self, client, customer):
        r = client.post(
            "/admin/transactions/1/decision",
            json={"status": "approved"},
            headers={"X-Admin-Id": str(customer.id)},
        )
        assert r.status_code == 403


class TestRedemptionRoutes:
    def test_redeem_and_history(self, client, customer, add_entry, clock):
        add_entry(customer, amount="100.00", created_at=clock() - timedelta(days=2))

        r = client.post("/transactions/redemptions", json={"amount": "6.00"}, headers=customer_headers(customer))
        assert r.status_code == 400
        assert r.json()["available"] == "5.00"

        r = client.post("/transactions/redemptions", json={"amount": "5.00"}, headers=customer_headers(customer))
        assert r.status_code == 201
        assert r.json()["cashback_amount"] == "-5.00"

        history = client.get("/transactions", headers=customer_headers(customer)).json()
        assert [e["kind"] for e in history] == [EntryKind.REDEMPTION.value, EntryKind.PURCHASE.value]

        purchases = client.get(
            "/transactions",
            params={"kind": "purchase", "status": "approved"},
            headers=customer_headers(customer),
        ).json()
        assert len(purchases) == 1

    def test_admin_redeems_customer_balance(self, client, customer, admin, add_entry):
        add_entry(customer, amount="100.00")

        r = client.post(f"/admin/customers/{customer.id}/redeem", headers=admin_headers(admin))
        assert r.status_code == 201
        assert r.json()["amount"] == "5.00"

        metrics = client.get(f"/admin/customers/{customer.id}/metrics", headers=admin_headers(admin)).json()
        assert metrics["redeemed_cashback"] == 5.0
        assert metrics["total_purchases"] == 1


class TestAdminRoutes:
    def test_admin_purchase(self, client, customer, admin):
        r = client.post(
            "/admin/purchases",
            json={"customerId": str(customer.id), "amount": "40.00"},
            headers=admin_headers(admin),
        )
        assert r.status_code == 201
        assert r.json()["status"] == EntryStatus.APPROVED.value

        customers = client.get("/admin/customers", headers=admin_headers(admin)).json()["items"]
        assert customers[0]["availableBalance"] == 2.0

    def test_dashboard(self, client, customer, admin, add_entry, clock):
        add_entry(customer, amount="100.00", created_at=clock() - timedelta(hours=1))

        r = client.get("/admin/metrics", params={"range": "today"}, headers=admin_headers(admin))
        assert r.status_code == 200
        assert r.json()["purchases"]["approved"] == 1

        r = client.get("/admin/metrics", params={"range": "forever"}, headers=admin_headers(admin))
        assert r.status_code == 400


class TestCreditRoutes:
    def test_checkout_and_webhook(self, client, customer):
        r = client.post(
            "/credits/checkout",
            json={"sessionId": "cs_123", "amount": "10.00"},
            headers=customer_headers(customer),
        )
        assert r.status_code == 201

        r = client.post(
            "/credits/webhook",
            json={"type": "checkout.session.completed", "data": {"object": {"id": "cs_123"}}},
        )
        assert r.json() == {"received": True, "creditStatus": "approved"}

        wallet = client.get("/wallet", headers=customer_headers(customer)).json()
        assert wallet["creditBalance"] == "10.00"
        assert wallet["availableBalance"] == "0.00"

    def test_webhook_ignores_other_events(self, client):
        r = client.post("/credits/webhook", json={"type": "invoice.paid", "data": {}})
        assert r.json() == {"received": True, "creditStatus": None}


def test_health(client):
    assert client.get("/").json() == {"message": "Cashback Engine is running"}


def test_stores(client, db):
    from cashback_engine.services.geofence import seed_store_locations

    seed_store_locations(db)
    assert [s["id"] for s in client.get("/stores").json()] == ["store1", "store2"]
