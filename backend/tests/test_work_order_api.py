from __future__ import annotations

import unittest
from datetime import datetime, timezone
from unittest import mock

import aiosqlite

from api_case import FleetApiTestCase


class WorkOrderApiTests(FleetApiTestCase):
    def setUp(self):
        super().setUp()
        self.org_id = self.create_org()
        self.asset_id = self.create_asset(self.org_id)
        self.base = f"/api/orgs/{self.org_id}/work-orders"

    def _create_work_order(self, **fields):
        response = self.client.post(self.base, json={"asset_id": self.asset_id, **fields})
        self.assertEqual(response.status_code, 201)
        return response.json()

    def test_create_puts_asset_in_maintenance(self):
        created = self._create_work_order(title="Brake inspection")

        year = datetime.now(timezone.utc).year
        self.assertEqual(created["work_order_number"], f"WO-{year}-0001")
        self.assertEqual(created["status"], "open")
        self.assertEqual(created["warnings"], [])
        self.assertEqual(self.get_asset_status(self.org_id, self.asset_id), "in_maintenance")

    def test_default_title_uses_number_and_asset(self):
        created = self._create_work_order()
        self.assertEqual(created["title"], f"{created['work_order_number']} | TRK-100")

    def test_numbers_increase_per_organization(self):
        first = self._create_work_order()
        second = self._create_work_order()
        self.assertTrue(first["work_order_number"].endswith("-0001"))
        self.assertTrue(second["work_order_number"].endswith("-0002"))

        other_org = self.create_org()
        other = self.client.post(f"/api/orgs/{other_org}/work-orders", json={"title": "Unrelated"})
        self.assertEqual(other.status_code, 201)
        self.assertTrue(other.json()["work_order_number"].endswith("-0001"))

    def test_asset_stays_in_maintenance_until_last_work_order_closes(self):
        first = self._create_work_order(title="Replace tires")
        second = self._create_work_order(title="Fix headlight")

        completed = self.client.patch(f"{self.base}/{first['id']}", json={"status": "completed"})
        self.assertEqual(completed.status_code, 200)
        self.assertIsNotNone(completed.json()["completed_date"])
        self.assertEqual(self.get_asset_status(self.org_id, self.asset_id), "in_maintenance")

        completed = self.client.patch(f"{self.base}/{second['id']}", json={"status": "completed"})
        self.assertEqual(completed.status_code, 200)
        self.assertEqual(self.get_asset_status(self.org_id, self.asset_id), "operational")

    def test_on_hold_sibling_keeps_asset_in_maintenance(self):
        first = self._create_work_order()
        second = self._create_work_order()
        self.client.patch(f"{self.base}/{second['id']}", json={"status": "on_hold"})

        cancelled = self.client.patch(f"{self.base}/{first['id']}", json={"status": "cancelled"})
        self.assertEqual(cancelled.status_code, 200)
        self.assertEqual(self.get_asset_status(self.org_id, self.asset_id), "in_maintenance")

    def test_reopening_puts_asset_back_in_maintenance(self):
        created = self._create_work_order()
        self.client.patch(f"{self.base}/{created['id']}", json={"status": "completed"})
        self.assertEqual(self.get_asset_status(self.org_id, self.asset_id), "operational")

        reopened = self.client.patch(f"{self.base}/{created['id']}", json={"status": "in_progress"})
        self.assertEqual(reopened.status_code, 200)
        self.assertIsNone(reopened.json()["completed_date"])
        self.assertEqual(self.get_asset_status(self.org_id, self.asset_id), "in_maintenance")

    def test_asset_sync_failure_is_reported_as_warning(self):
        service = self.modules["work_order_service"]
        failing = mock.AsyncMock(side_effect=aiosqlite.OperationalError("database table is locked"))

        with mock.patch.object(service, "set_asset_status", failing):
            response = self.client.post(self.base, json={"asset_id": self.asset_id, "title": "Oil change"})

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["warnings"], ["asset_status_sync_failed"])
        self.assertEqual(self.get_asset_status(self.org_id, self.asset_id), "operational")

        fetched = self.client.get(f"{self.base}/{response.json()['id']}")
        self.assertEqual(fetched.status_code, 200)
        self.assertEqual(fetched.json()["title"], "Oil change")

    def test_unknown_asset_is_a_validation_error(self):
        response = self.client.post(self.base, json={"asset_id": 9999})
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["kind"], "validation")

    def test_missing_work_order_and_organization_are_not_found(self):
        response = self.client.patch(f"{self.base}/9999", json={"status": "completed"})
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["kind"], "not_found")

        response = self.client.get("/api/orgs/9999/work-orders")
        self.assertEqual(response.status_code, 404)

    def test_empty_patch_is_rejected(self):
        created = self._create_work_order()
        response = self.client.patch(f"{self.base}/{created['id']}", json={})
        self.assertEqual(response.status_code, 422)

    def test_completing_again_rechecks_asset(self):
        created = self._create_work_order()
        first = self.client.patch(f"{self.base}/{created['id']}", json={"status": "completed"})
        self.assertEqual(self.get_asset_status(self.org_id, self.asset_id), "operational")

        self.client.patch(f"/api/orgs/{self.org_id}/assets/{self.asset_id}", json={"status": "in_maintenance"})
        again = self.client.patch(f"{self.base}/{created['id']}", json={"status": "completed"})
        self.assertEqual(again.status_code, 200)
        self.assertEqual(again.json()["completed_date"], first.json()["completed_date"])
        self.assertEqual(self.get_asset_status(self.org_id, self.asset_id), "operational")

    def test_null_patch_fields_are_rejected(self):
        created = self._create_work_order(title="Coolant flush")
        for payload in ({"notes": None}, {"title": None}, {"status": None}, {"description": None}):
            response = self.client.patch(f"{self.base}/{created['id']}", json=payload)
            self.assertEqual(response.status_code, 422)
            self.assertEqual(response.json()["kind"], "validation")

        cleared = self.client.patch(f"{self.base}/{created['id']}", json={"assigned_to": None, "due_date": None})
        self.assertEqual(cleared.status_code, 200)

        line = self.client.post(f"{self.base}/{created['id']}/lines", json={"description": "Coolant"}).json()
        response = self.client.patch(f"{self.base}/{created['id']}/lines/{line['id']}", json={"unit_cost": None})
        self.assertEqual(response.status_code, 422)

        self.assertEqual(self.client.get(self.base).status_code, 200)
        fetched = self.client.get(f"{self.base}/{created['id']}")
        self.assertEqual(fetched.status_code, 200)
        self.assertEqual(fetched.json()["title"], "Coolant flush")

    def test_storage_failure_on_create_has_error_kind(self):
        service = self.modules["work_order_service"]
        failing = mock.AsyncMock(side_effect=aiosqlite.OperationalError("disk I/O error"))

        with mock.patch.object(service, "create_work_order", failing):
            response = self.client.post(self.base, json={"asset_id": self.asset_id})

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["kind"], "storage_error")
        self.assertEqual(self.client.get(self.base).json(), [])

    def test_line_changes_recompute_actual_cost(self):
        created = self._create_work_order()
        lines_url = f"{self.base}/{created['id']}/lines"

        first = self.client.post(lines_url, json={"description": "Brake pads", "quantity": 2, "unit_cost": 45.5})
        second = self.client.post(lines_url, json={"description": "Labor", "quantity": 1.5, "unit_cost": 90})
        self.assertEqual(first.status_code, 201)
        self.assertEqual(second.status_code, 201)
        self.assertEqual(first.json()["line_number"], 1)
        self.assertEqual(second.json()["line_number"], 2)
        self.assertEqual(first.json()["total_cost"], 91.0)

        wo = self.client.get(f"{self.base}/{created['id']}").json()
        self.assertEqual(wo["actual_cost"], 226.0)

        updated = self.client.patch(f"{lines_url}/{first.json()['id']}", json={"quantity": 4})
        self.assertEqual(updated.status_code, 200)
        self.assertEqual(updated.json()["total_cost"], 182.0)

        deleted = self.client.delete(f"{lines_url}/{second.json()['id']}")
        self.assertEqual(deleted.status_code, 200)
        self.assertEqual(deleted.json()["actual_cost"], 182.0)

        wo = self.client.get(f"{self.base}/{created['id']}").json()
        self.assertEqual(wo["status"], "open")
        self.assertEqual(len(self.client.get(lines_url).json()), 1)

    def test_list_filters_and_export(self):
        self._create_work_order(title="Brake inspection", priority="high")
        self._create_work_order(title="Wiper blades", priority="low")

        high = self.client.get(self.base, params={"priority": "high"})
        self.assertEqual(high.status_code, 200)
        self.assertEqual([row["title"] for row in high.json()], ["Brake inspection"])

        searched = self.client.get(self.base, params={"search": "wiper"})
        self.assertEqual(len(searched.json()), 1)

        exported = self.client.get(f"{self.base}/export", params={"format": "json"})
        self.assertEqual(exported.status_code, 200)
        payload = exported.json()
        self.assertEqual(payload["count"], 2)
        self.assertEqual(payload["rows"][0]["asset_number"], "TRK-100")

        csv_export = self.client.get(f"{self.base}/export")
        self.assertEqual(csv_export.status_code, 200)
        self.assertTrue(csv_export.text.startswith("work_order_number,title"))


if __name__ == "__main__":
    unittest.main()
