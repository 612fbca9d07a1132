from __future__ import annotations

import unittest

from api_case import FleetApiTestCase


class ImportApiTests(FleetApiTestCase):
    def setUp(self):
        super().setUp()
        self.org_id = self.create_org()
        self.base = f"/api/orgs/{self.org_id}"

    def test_parts_import_cleans_numbers_and_flags_bad_rows(self):
        self.create_part(self.org_id, "FLT-01")
        response = self.client.post(
            f"{self.base}/import-jobs",
            json={
                "type": "parts",
                "file_name": "parts.csv",
                "mappings": {
                    "Part #": "part_number",
                    "Description": "name",
                    "Cost": "unit_cost",
                    "On Hand": "quantity_on_hand",
                },
                "rows": [
                    {"Part #": "BRK-10", "Description": "Brake pad", "Cost": "$1,250.50", "On Hand": "12 ea"},
                    {"Part #": "flt-01", "Description": "Oil filter again", "Cost": "4"},
                    {"Part #": "", "Description": "No number"},
                    {"Part #": "BRK-10", "Description": "Repeat in batch"},
                    {"Part #": "NEG-1", "Description": "Negative stock", "On Hand": "-3"},
                ],
            },
        )
        self.assertEqual(response.status_code, 201)
        job = response.json()
        self.assertEqual(job["status"], "completed")
        self.assertEqual(job["total_rows"], 5)
        self.assertEqual(job["processed_rows"], 5)
        self.assertEqual(job["success_rows"], 1)
        self.assertEqual(job["error_rows"], 4)

        by_row = {error["row"]: error for error in job["errors"]}
        self.assertEqual(by_row[2]["error_type"], "duplicate")
        self.assertEqual(by_row[3]["error_type"], "missing_required")
        self.assertEqual(by_row[3]["field"], "part_number")
        self.assertEqual(by_row[4]["error_type"], "duplicate")
        self.assertEqual(by_row[5]["error_type"], "invalid_value")
        self.assertEqual(by_row[5]["field"], "quantity_on_hand")

        parts = self.client.get(f"{self.base}/parts", params={"search": "BRK-10"}).json()
        self.assertEqual(len(parts), 1)
        self.assertEqual(parts[0]["unit_cost"], 1250.5)
        self.assertEqual(parts[0]["quantity_on_hand"], 12)

    def test_import_with_only_errors_fails(self):
        response = self.client.post(
            f"{self.base}/import-jobs",
            json={"type": "vendors", "rows": [{"name": ""}, {"contact_name": "Nobody"}]},
        )
        self.assertEqual(response.status_code, 201)
        job = response.json()
        self.assertEqual(job["status"], "failed")
        self.assertEqual(job["success_rows"], 0)
        self.assertEqual(job["error_rows"], 2)

        fetched = self.client.get(f"{self.base}/import-jobs/{job['id']}")
        self.assertEqual(fetched.status_code, 200)
        self.assertEqual(fetched.json()["errors"], job["errors"])

    def test_asset_import_without_mappings(self):
        response = self.client.post(
            f"{self.base}/import-jobs",
            json={
                "type": "assets",
                "rows": [
                    {"asset_number": "VAN-1", "name": "Van one", "year": "2019"},
                    {"asset_number": "VAN-2", "name": "Van two", "type": "spaceship"},
                ],
            },
        )
        job = response.json()
        self.assertEqual(job["success_rows"], 1)
        self.assertEqual(job["errors"][0]["field"], "type")

        assets = self.client.get(f"{self.base}/assets").json()
        self.assertEqual([asset["asset_number"] for asset in assets], ["VAN-1"])
        self.assertEqual(assets[0]["year"], 2019)

        listed = self.client.get(f"{self.base}/import-jobs").json()
        self.assertEqual(len(listed), 1)


if __name__ == "__main__":
    unittest.main()
