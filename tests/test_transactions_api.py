import unittest
from datetime import timedelta

from fakes import ApiTestCase

from gongcha_admin.services.transactions import tier_for_points
from gongcha_admin.utils import utc_now


def transaction(**extra) -> dict:
    data = {
        "transactionId": "TRX-001",
        "amount": 50000,
        "potentialPoints": 500,
        "memberId": "u1",
        "memberName": "Ani",
        "staffId": "cashier-1",
        "storeLocation": "outlet-01",
        "status": "pending",
        "createdAt": "2025-01-01T10:00:00+00:00",
    }
    data.update(extra)
    return data


class TierTest(unittest.TestCase):
    def test_thresholds(self):
        self.assertEqual(tier_for_points(0), "Silver")
        self.assertEqual(tier_for_points(9999), "Silver")
        self.assertEqual(tier_for_points(10000), "Gold")
        self.assertEqual(tier_for_points(50000), "Platinum")


class TransactionVerifyTest(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.db.seed("users", "u1", {"name": "Ani", "tier": "Silver", "currentPoints": 100,
                                     "lifetimePoints": 9800, "xpHistory": []})
        self.db.seed("transactions", "t1", transaction())
        self.login_as("sm-1", "store_manager")

    def test_verify_disburses_points(self):
        r = self.client.patch("/api/transactions/t1", json={"action": "verify"})
        self.assertEqual(r.json(), {"success": True, "action": "verified", "points": 500})

        tx = self.db.raw("transactions", "t1")
        self.assertEqual(tx["status"], "verified")
        self.assertEqual(tx["verifiedBy"], "sm-1")

        member = self.db.raw("users", "u1")
        self.assertEqual(member["currentPoints"], 600)
        self.assertEqual(member["lifetimePoints"], 10300)
        self.assertEqual(member["tier"], "Gold")
        self.assertEqual(len(member["xpHistory"]), 1)
        self.assertEqual(member["xpHistory"][0]["transactionId"], "TRX-001")
        self.assertEqual(member["xpHistory"][0]["location"], "outlet-01")

    def test_second_verify_is_conflict_without_double_payout(self):
        self.client.patch("/api/transactions/t1", json={"action": "verify"})
        r = self.client.patch("/api/transactions/t1", json={"action": "verify"})
        self.assertEqual(r.status_code, 409)
        self.assertEqual(r.json()["code"], "STATE_CONFLICT")
        self.assertEqual(self.db.raw("users", "u1")["currentPoints"], 600)

    def test_reject_gives_no_points(self):
        r = self.client.patch("/api/transactions/t1", json={"action": "reject"})
        self.assertEqual(r.json(), {"success": True, "action": "rejected"})
        self.assertEqual(self.db.raw("users", "u1")["currentPoints"], 100)

    def test_tier_never_downgrades(self):
        self.db.update("users", "u1", {"tier": "Platinum"})
        self.client.patch("/api/transactions/t1", json={"action": "verify"})
        self.assertEqual(self.db.raw("users", "u1")["tier"], "Platinum")

    def test_bad_action_and_missing(self):
        self.assertEqual(self.client.patch("/api/transactions/t1", json={"action": "approve"}).status_code, 400)
        self.assertEqual(self.client.patch("/api/transactions/nope", json={"action": "verify"}).status_code, 404)

    def test_cashier_cannot_verify(self):
        self.login_as("cashier-1", "cashier")
        r = self.client.patch("/api/transactions/t1", json={"action": "verify"})
        self.assertEqual(r.status_code, 403)
        self.assertEqual(self.db.raw("transactions", "t1")["status"], "pending")

    def test_bulk_counts(self):
        self.db.seed("transactions", "t2", transaction(transactionId="TRX-002", status="verified"))
        self.db.seed("transactions", "t3", transaction(transactionId="TRX-003", potentialPoints=100))
        r = self.client.post("/api/transactions/bulk", json={"ids": ["t1", "t2", "t3", "ghost"]})
        self.assertEqual(r.json(), {
            "success": True, "successCount": 2, "skipCount": 2, "errorCount": 0, "errors": [],
        })
        self.assertEqual(self.db.raw("users", "u1")["currentPoints"], 700)

    def test_bulk_requires_ids(self):
        self.assertEqual(self.client.post("/api/transactions/bulk", json={"ids": []}).status_code, 400)

    def test_list_newest_first(self):
        self.db.seed("transactions", "t0", transaction(transactionId="TRX-000", createdAt="2024-12-31T10:00:00+00:00"))
        ids = [t["id"] for t in self.client.get("/api/transactions").json()]
        self.assertEqual(ids, ["t1", "t0"])


class DashboardApiTest(ApiTestCase):
    def test_summary(self):
        now = utc_now()
        self.db.seed("users", "u1", {"name": "Ani"})
        self.db.seed("stores", "outlet-01", {"name": "Mall", "isActive": True})
        self.db.seed("stores", "outlet-02", {"name": "Station", "isActive": False})
        self.db.seed("transactions", "t1", transaction(status="verified", amount=30000,
                                                        createdAt=now.isoformat()))
        self.db.seed("transactions", "t2", transaction(status="pending", potentialPoints=200,
                                                        createdAt=(now - timedelta(days=3)).isoformat()))
        self.db.seed("transactions", "t3", transaction(status="verified", amount=10000, storeLocation="outlet-02",
                                                        createdAt=(now - timedelta(days=5)).isoformat()))
        self.login_as("cashier-1", "cashier")

        data = self.client.get("/api/dashboard").json()
        self.assertEqual(data["totalMembers"], 1)
        self.assertEqual(data["totalStores"], 2)
        self.assertEqual(data["activeStores"], 1)
        self.assertEqual(data["totalRevenue"], 40000)
        self.assertEqual(data["pendingCount"], 1)
        self.assertEqual(data["pendingPointsHeld"], 200)
        self.assertEqual(data["todayTransactionCount"], 1)
        self.assertEqual([t["id"] for t in data["recentTransactions"]], ["t1", "t2", "t3"])
        self.assertEqual(data["topStores"][0], {
            "storeId": "outlet-01", "storeName": "Mall", "totalRevenue": 30000, "txCount": 2,
        })


if __name__ == "__main__":
    unittest.main()
