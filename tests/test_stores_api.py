import unittest

from fakes import ApiTestCase

from gongcha_admin.services.stores import is_valid_store_id


class StoreIdTest(unittest.TestCase):
    def test_pattern(self):
        self.assertTrue(is_valid_store_id("outlet-01"))
        self.assertTrue(is_valid_store_id("gc_mall_2"))
        self.assertFalse(is_valid_store_id("Invalid ID!"))
        self.assertFalse(is_valid_store_id("Outlet"))
        self.assertFalse(is_valid_store_id(""))


class StoresApiTest(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.login_as("admin-1")

    def test_invalid_id_rejected(self):
        r = self.client.post("/api/stores", json={"storeId": "Invalid ID!", "name": "X"})
        self.assertEqual(r.status_code, 400)
        self.assertEqual(r.json()["field"], "storeId")
        self.assertEqual(self.db.collection("stores"), {})

    def test_create_store_with_defaults(self):
        r = self.client.post("/api/stores", json={
            "storeId": "outlet-01",
            "name": " Gong Cha Mall ",
            "latitude": "-6.2",
            "longitude": "",
        })
        self.assertEqual(r.status_code, 201)
        stored = self.db.raw("stores", "outlet-01")
        self.assertEqual(stored["name"], "Gong Cha Mall")
        self.assertEqual(stored["latitude"], -6.2)
        self.assertIsNone(stored["longitude"])
        self.assertEqual(stored["statusOverride"], "open")
        self.assertTrue(stored["isActive"])

    def test_duplicate_id_is_409_and_original_kept(self):
        self.client.post("/api/stores", json={"storeId": "outlet-01", "name": "Original"})
        r = self.client.post("/api/stores", json={"storeId": "outlet-01", "name": "Second"})
        self.assertEqual(r.status_code, 409)
        self.assertEqual(r.json()["message"], 'Store ID "outlet-01" sudah digunakan. Pilih ID lain.')
        self.assertEqual(self.db.raw("stores", "outlet-01")["name"], "Original")

    def test_non_numeric_coordinate_rejected(self):
        r = self.client.post("/api/stores", json={"storeId": "outlet-02", "name": "X", "latitude": "north"})
        self.assertEqual(r.status_code, 400)
        self.assertEqual(r.json()["field"], "latitude")

    def test_update_keeps_coordinates_when_omitted(self):
        self.db.seed("stores", "outlet-01", {"name": "Old", "latitude": 1.5, "longitude": 2.5})
        r = self.client.patch("/api/stores/outlet-01", json={"name": "New", "statusOverride": "almost_close"})
        self.assertEqual(r.status_code, 200)
        stored = self.db.raw("stores", "outlet-01")
        self.assertEqual(stored["name"], "New")
        self.assertEqual(stored["latitude"], 1.5)
        self.assertEqual(stored["statusOverride"], "almost_close")

    def test_update_missing_store_is_404(self):
        r = self.client.patch("/api/stores/nope", json={"name": "X"})
        self.assertEqual(r.status_code, 404)

    def test_update_requires_name(self):
        self.db.seed("stores", "outlet-01", {"name": "Old"})
        r = self.client.patch("/api/stores/outlet-01", json={"name": "  "})
        self.assertEqual(r.status_code, 400)

    def test_delete_store(self):
        self.db.seed("stores", "outlet-01", {"name": "Old"})
        self.assertEqual(self.client.delete("/api/stores/outlet-01").status_code, 200)
        self.assertEqual(self.client.delete("/api/stores/outlet-01").status_code, 404)

    def test_cashier_can_list_but_not_write(self):
        self.db.seed("stores", "outlet-01", {"name": "Old", "statusOverride": "closed"})
        self.login_as("cashier-1", "cashier")
        stores = self.client.get("/api/stores").json()
        self.assertEqual(stores[0]["statusLabel"], "Tutup")
        r = self.client.post("/api/stores", json={"storeId": "outlet-02", "name": "X"})
        self.assertEqual(r.status_code, 403)


if __name__ == "__main__":
    unittest.main()
