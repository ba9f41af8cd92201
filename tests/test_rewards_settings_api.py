import unittest

from fakes import ApiTestCase

from gongcha_admin.services.rewards import normalize_reward_id


class RewardIdTest(unittest.TestCase):
    def test_normalize(self):
        self.assertEqual(normalize_reward_id(" Free Drink! "), "free-drink")
        self.assertEqual(normalize_reward_id("Topping_Pearl"), "topping_pearl")
        self.assertEqual(normalize_reward_id(None), "")


class RewardsApiTest(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.login_as("admin-1")

    def test_create_and_get(self):
        r = self.client.post("/api/rewards", json={"title": "Free Drink", "pointsCost": 500, "category": "Drink"})
        self.assertEqual(r.status_code, 201)
        self.assertEqual(r.json()["id"], "free-drink")
        fetched = self.client.get("/api/rewards/free-drink").json()
        self.assertEqual(fetched["pointsCost"], 500)
        self.assertEqual(fetched["type"], "catalog")
        self.assertTrue(fetched["isActive"])

    def test_duplicate_is_409(self):
        payload = {"rewardId": "free-drink", "title": "Free Drink", "pointsCost": 500}
        self.client.post("/api/rewards", json=payload)
        r = self.client.post("/api/rewards", json={**payload, "title": "Other"})
        self.assertEqual(r.status_code, 409)
        self.assertEqual(self.db.raw("rewards_catalog", "free-drink")["title"], "Free Drink")

    def test_validation(self):
        bad = [
            {"title": "X", "pointsCost": -5},
            {"title": "X", "pointsCost": "500"},
            {"title": "X", "pointsCost": 5, "category": "Snack"},
            {"title": "X"},
        ]
        for payload in bad:
            self.assertEqual(self.client.post("/api/rewards", json=payload).status_code, 400, payload)

    def test_patch_allow_list(self):
        self.db.seed("rewards_catalog", "r1", {"title": "Old", "pointsCost": 10, "type": "catalog"})
        r = self.client.patch("/api/rewards/r1", json={"type": "personal", "pointsCost": 20, "createdAt": "x"})
        self.assertEqual(r.json(), {"success": True})
        stored = self.db.raw("rewards_catalog", "r1")
        self.assertEqual(stored["type"], "personal")
        self.assertEqual(stored["pointsCost"], 20)
        self.assertNotIn("createdAt", stored)

    def test_patch_invalid_type(self):
        self.db.seed("rewards_catalog", "r1", {"title": "Old"})
        self.assertEqual(self.client.patch("/api/rewards/r1", json={"type": "gift"}).status_code, 400)

    def test_delete(self):
        self.db.seed("rewards_catalog", "r1", {"title": "Old"})
        self.assertEqual(self.client.delete("/api/rewards/r1").status_code, 200)
        self.assertEqual(self.client.get("/api/rewards/r1").status_code, 404)

    def test_cashier_reads_only(self):
        self.db.seed("rewards_catalog", "r1", {"title": "Old"})
        self.login_as("cashier-1", "cashier")
        self.assertEqual(len(self.client.get("/api/rewards").json()), 1)
        self.assertEqual(self.client.patch("/api/rewards/r1", json={"title": "New"}).status_code, 403)


class SettingsApiTest(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.login_as("admin-1")

    def test_defaults_when_missing(self):
        settings = self.client.get("/api/settings").json()
        self.assertEqual(settings["pointsPerThousand"], 10)
        self.assertEqual(settings["tiers"]["Gold"], 10000)

    def test_patch_merges_and_stamps(self):
        r = self.client.patch("/api/settings", json={"pointsPerThousand": 15, "unknown": 1})
        self.assertEqual(r.status_code, 200)
        body = r.json()
        self.assertEqual(body["pointsPerThousand"], 15)
        self.assertEqual(body["minimumTransaction"], 0)
        self.assertEqual(body["updatedBy"], "admin-1")
        self.assertNotIn("unknown", self.db.raw("settings", "global"))

        self.client.patch("/api/settings", json={"minimumTransaction": 20000})
        stored = self.db.raw("settings", "global")
        self.assertEqual(stored["pointsPerThousand"], 15)
        self.assertEqual(stored["minimumTransaction"], 20000)

    def test_invalid_values(self):
        self.assertEqual(self.client.patch("/api/settings", json={"pointsExpiry": -1}).status_code, 400)
        self.assertEqual(self.client.patch("/api/settings", json={"tiers": [1, 2]}).status_code, 400)
        self.assertEqual(self.client.patch("/api/settings", json={}).status_code, 400)

    def test_store_manager_forbidden(self):
        self.login_as("sm-1", "store_manager")
        self.assertEqual(self.client.get("/api/settings").status_code, 403)


if __name__ == "__main__":
    unittest.main()
