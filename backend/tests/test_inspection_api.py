from __future__ import annotations

import unittest

from api_case import FleetApiTestCase


class InspectionApiTests(FleetApiTestCase):
    def setUp(self):
        super().setUp()
        self.org_id = self.create_org()
        self.asset_id = self.create_asset(self.org_id, "TRK-9")
        self.base = f"/api/orgs/{self.org_id}"

    def test_pm_schedule_round_trip(self):
        created = self.client.post(
            f"{self.base}/pm-schedules",
            json={
                "name": "A-service",
                "interval_type": "miles",
                "interval_value": 10000,
                "task_checklist": ["Change oil", "Rotate tires"],
            },
        )
        self.assertEqual(created.status_code, 201)
        schedule = created.json()
        self.assertEqual(schedule["task_checklist"], ["Change oil", "Rotate tires"])
        self.assertTrue(schedule["is_active"])

        updated = self.client.patch(
            f"{self.base}/pm-schedules/{schedule['id']}",
            json={"is_active": False, "task_checklist": ["Change oil"]},
        )
        self.assertEqual(updated.status_code, 200)
        self.assertFalse(updated.json()["is_active"])
        self.assertEqual(updated.json()["task_checklist"], ["Change oil"])

        active = self.client.get(f"{self.base}/pm-schedules", params={"active_only": True}).json()
        self.assertEqual(active, [])

        deleted = self.client.delete(f"{self.base}/pm-schedules/{schedule['id']}")
        self.assertEqual(deleted.status_code, 200)
        missing = self.client.get(f"{self.base}/pm-schedules/{schedule['id']}")
        self.assertEqual(missing.status_code, 404)

    def test_dvir_defect_opens_work_order(self):
        created = self.client.post(
            f"{self.base}/dvirs",
            json={
                "asset_id": self.asset_id,
                "inspector": "R. Diaz",
                "defects": [
                    {"category": "brakes", "description": "Soft pedal", "severity": "critical"},
                    {"category": "lights", "description": "Marker lamp out", "severity": "minor"},
                ],
            },
        )
        self.assertEqual(created.status_code, 201)
        dvir = created.json()
        self.assertEqual(dvir["status"], "unsafe")
        self.assertEqual(len(dvir["defects"]), 2)
        brake_defect = dvir["defects"][0]

        opened = self.client.post(f"{self.base}/dvirs/defects/{brake_defect['id']}/work-order")
        self.assertEqual(opened.status_code, 201)
        work_order = opened.json()
        self.assertEqual(work_order["priority"], "critical")
        self.assertEqual(work_order["asset_id"], self.asset_id)
        self.assertEqual(self.get_asset_status(self.org_id, self.asset_id), "in_maintenance")

        again = self.client.post(f"{self.base}/dvirs/defects/{brake_defect['id']}/work-order")
        self.assertEqual(again.status_code, 409)

        fetched = self.client.get(f"{self.base}/dvirs/{dvir['id']}").json()
        self.assertEqual(fetched["defects"][0]["work_order_id"], work_order["id"])

        lamp_defect = dvir["defects"][1]
        resolved = self.client.post(f"{self.base}/dvirs/defects/{lamp_defect['id']}/resolve")
        self.assertEqual(resolved.status_code, 200)
        self.assertTrue(resolved.json()["resolved"])
        self.assertEqual(
            self.client.post(f"{self.base}/dvirs/defects/{lamp_defect['id']}/resolve").status_code,
            409,
        )

    def test_clean_dvir_is_safe(self):
        created = self.client.post(f"{self.base}/dvirs", json={"asset_id": self.asset_id})
        self.assertEqual(created.status_code, 201)
        self.assertEqual(created.json()["status"], "safe")

        listed = self.client.get(f"{self.base}/dvirs", params={"asset_id": self.asset_id}).json()
        self.assertEqual(len(listed), 1)

    def test_feedback_votes(self):
        created = self.client.post(
            f"{self.base}/feedback",
            json={"type": "feature_request", "title": "Bulk close", "description": "Close many WOs at once"},
        )
        self.assertEqual(created.status_code, 201)
        feedback_id = created.json()["id"]

        for _ in range(2):
            voted = self.client.post(f"{self.base}/feedback/{feedback_id}/vote")
            self.assertEqual(voted.status_code, 200)
        self.assertEqual(voted.json()["votes"], 2)

        listed = self.client.get(f"{self.base}/feedback", params={"type": "feature_request"}).json()
        self.assertEqual([item["id"] for item in listed], [feedback_id])


class OrganizationApiTests(FleetApiTestCase):
    def test_settings_and_slug_uniqueness(self):
        org_id = self.create_org()
        org = self.client.get(f"/api/orgs/{org_id}").json()
        self.assertFalse(org["require_estimate_approval"])

        updated = self.client.patch(f"/api/orgs/{org_id}", json={"require_estimate_approval": True})
        self.assertEqual(updated.status_code, 200)
        self.assertTrue(updated.json()["require_estimate_approval"])

        duplicate = self.client.post("/api/orgs", json={"name": "Copy", "slug": org["slug"]})
        self.assertEqual(duplicate.status_code, 422)

    def test_duplicate_asset_number_is_rejected(self):
        org_id = self.create_org()
        self.create_asset(org_id, "TRK-1")
        response = self.client.post(
            f"/api/orgs/{org_id}/assets",
            json={"asset_number": "trk-1", "name": "Second truck"},
        )
        self.assertEqual(response.status_code, 422)

    def test_low_stock_parts(self):
        org_id = self.create_org()
        self.create_part(org_id, "LOW-1", quantity_on_hand=0, reorder_point=3)
        self.create_part(org_id, "OK-1", quantity_on_hand=9, reorder_point=3)
        low = self.client.get(f"/api/orgs/{org_id}/parts/low-stock").json()
        self.assertEqual([part["part_number"] for part in low], ["LOW-1"])

    def test_null_patch_fields_are_rejected(self):
        org_id = self.create_org()
        asset_id = self.create_asset(org_id, "TRK-4")
        part_id = self.create_part(org_id, "FLT-9")
        vendor_id = self.client.post(f"/api/orgs/{org_id}/vendors", json={"name": "Axle Supply"}).json()["id"]
        schedule_id = self.client.post(
            f"/api/orgs/{org_id}/pm-schedules",
            json={"name": "B-service", "interval_type": "days", "interval_value": 90},
        ).json()["id"]

        cases = (
            (f"/api/orgs/{org_id}", {"name": None}),
            (f"/api/orgs/{org_id}/assets/{asset_id}", {"status": None}),
            (f"/api/orgs/{org_id}/assets/{asset_id}", {"notes": None}),
            (f"/api/orgs/{org_id}/vendors/{vendor_id}", {"is_active": None}),
            (f"/api/orgs/{org_id}/parts/{part_id}", {"name": None}),
            (f"/api/orgs/{org_id}/parts/{part_id}", {"failure_severity": None}),
            (f"/api/orgs/{org_id}/pm-schedules/{schedule_id}", {"task_checklist": None}),
        )
        for url, payload in cases:
            response = self.client.patch(url, json=payload)
            self.assertEqual(response.status_code, 422, url)
            self.assertEqual(response.json()["kind"], "validation")

        cleared = self.client.patch(f"/api/orgs/{org_id}/parts/{part_id}", json={"unit_cost": None})
        self.assertEqual(cleared.status_code, 200)
        self.assertIsNone(cleared.json()["unit_cost"])
        self.assertEqual(self.client.get(f"/api/orgs/{org_id}/assets").status_code, 200)


if __name__ == "__main__":
    unittest.main()
