from __future__ import annotations

import unittest

from api_case import FleetApiTestCase


class EstimateApiTests(FleetApiTestCase):
    def _setup_org(self, require_estimate_approval: bool) -> None:
        self.org_id = self.create_org(require_estimate_approval=require_estimate_approval)
        self.asset_id = self.create_asset(self.org_id, "BUS-7")
        self.part_id = self.create_part(self.org_id, "PAD-22", quantity_on_hand=2)
        self.base = f"/api/orgs/{self.org_id}/estimates"

    def _create_estimate(self, **fields) -> dict:
        response = self.client.post(self.base, json={"asset_id": self.asset_id, **fields})
        self.assertEqual(response.status_code, 201)
        return response.json()

    def _add_line(self, est_id: int, **fields) -> dict:
        payload = {
            "line_type": "labor",
            "description": "Replace brake pads",
            "vmrs_code": "013-001",
            "quantity": 2,
            "unit_cost": 95,
            **fields,
        }
        response = self.client.post(f"{self.base}/{est_id}/lines", json=payload)
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()

    def test_approval_then_convert(self):
        self._setup_org(require_estimate_approval=True)
        estimate = self._create_estimate(title="Brake job")
        self.assertFalse(estimate["can_convert"])

        line = self._add_line(estimate["id"], vmrs_title="Brake pads")
        est_url = f"{self.base}/{estimate['id']}"
        self.assertFalse(self.client.get(est_url).json()["can_convert"])

        blocked = self.client.post(f"{est_url}/convert")
        self.assertEqual(blocked.status_code, 409)

        self.assertEqual(self.client.post(f"{est_url}/submit").status_code, 200)
        approved = self.client.post(f"{est_url}/approve")
        self.assertEqual(approved.status_code, 200)
        self.assertTrue(approved.json()["can_convert"])

        converted = self.client.post(f"{est_url}/convert")
        self.assertEqual(converted.status_code, 201)
        result = converted.json()
        self.assertTrue(result["work_order_number"].startswith("WO-"))

        wo_url = f"/api/orgs/{self.org_id}/work-orders/{result['work_order_id']}"
        work_order = self.client.get(wo_url).json()
        self.assertEqual(work_order["status"], "open")
        self.assertEqual(work_order["asset_id"], self.asset_id)
        self.assertEqual(self.get_asset_status(self.org_id, self.asset_id), "in_maintenance")

        wo_lines = self.client.get(f"{wo_url}/lines").json()
        self.assertEqual(len(wo_lines), 1)
        self.assertEqual(wo_lines[0]["description"], line["description"])
        self.assertEqual(wo_lines[0]["total_cost"], line["total_cost"])
        self.assertEqual(wo_lines[0]["vmrs_code"], "013-001")
        self.assertEqual(wo_lines[0]["labor_cost"], 190.0)
        self.assertIsNone(wo_lines[0]["parts_cost"])

        refreshed = self.client.get(est_url).json()
        self.assertEqual(refreshed["converted_to_work_order_id"], result["work_order_id"])
        self.assertFalse(refreshed["can_convert"])

        again = self.client.post(f"{est_url}/convert")
        self.assertEqual(again.status_code, 409)
        self.assertEqual(again.json()["kind"], "invalid_transition")

        locked = self.client.post(f"{est_url}/reject")
        self.assertEqual(locked.status_code, 409)

    def test_draft_converts_when_approval_not_required(self):
        self._setup_org(require_estimate_approval=False)
        estimate = self._create_estimate()
        self.assertFalse(estimate["can_convert"])

        self._add_line(estimate["id"])
        converted = self.client.post(f"{self.base}/{estimate['id']}/convert")
        self.assertEqual(converted.status_code, 201)

        work_order = self.client.get(
            f"/api/orgs/{self.org_id}/work-orders/{converted.json()['work_order_id']}"
        ).json()
        self.assertEqual(work_order["estimated_cost"], 190.0)
        self.assertIsNone(work_order["actual_cost"])

    def test_rejected_estimate_cannot_convert(self):
        self._setup_org(require_estimate_approval=False)
        estimate = self._create_estimate()
        self._add_line(estimate["id"])
        est_url = f"{self.base}/{estimate['id']}"
        self.client.post(f"{est_url}/submit")
        self.client.post(f"{est_url}/reject")

        response = self.client.post(f"{est_url}/convert")
        self.assertEqual(response.status_code, 409)

    def test_needs_ordering_follows_stock(self):
        self._setup_org(require_estimate_approval=False)
        estimate = self._create_estimate()

        short = self._add_line(
            estimate["id"],
            line_type="inventory_part",
            part_id=self.part_id,
            description="Brake pad set",
            quantity=5,
            unit_cost=40,
        )
        self.assertTrue(short["needs_ordering"])
        self.assertEqual(short["quantity_on_hand"], 2)
        self.assertEqual(short["part_number"], "PAD-22")

        covered = self._add_line(
            estimate["id"],
            line_type="inventory_part",
            part_id=self.part_id,
            description="Brake pad set",
            quantity=1,
            unit_cost=40,
        )
        self.assertFalse(covered["needs_ordering"])

        special = self._add_line(estimate["id"], line_type="zero_stock_part", description="Custom hose", quantity=1)
        self.assertTrue(special["needs_ordering"])

        unfulfilled = self.client.get(f"{self.base}/{estimate['id']}/unfulfilled-lines").json()
        self.assertEqual({line["id"] for line in unfulfilled}, {short["id"], special["id"]})

    def test_inventory_line_requires_part(self):
        self._setup_org(require_estimate_approval=False)
        estimate = self._create_estimate()
        response = self.client.post(
            f"{self.base}/{estimate['id']}/lines",
            json={
                "line_type": "inventory_part",
                "description": "Mystery part",
                "vmrs_code": "013-001",
                "quantity": 1,
                "unit_cost": 10,
            },
        )
        self.assertEqual(response.status_code, 422)

    def test_line_requires_vmrs_code(self):
        self._setup_org(require_estimate_approval=False)
        estimate = self._create_estimate()
        response = self.client.post(
            f"{self.base}/{estimate['id']}/lines",
            json={"line_type": "labor", "description": "Diagnose", "quantity": 1, "unit_cost": 10},
        )
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["kind"], "validation")

    def test_totals_follow_lines_and_markup(self):
        self._setup_org(require_estimate_approval=False)
        estimate = self._create_estimate(markup_percent=10)
        est_url = f"{self.base}/{estimate['id']}"

        line = self._add_line(estimate["id"], quantity=3, unit_cost=33.333)
        self.assertEqual(line["total_cost"], 100.0)
        self._add_line(estimate["id"], line_type="non_inventory_item", description="Shop supplies", quantity=1, unit_cost=20)

        current = self.client.get(est_url).json()
        self.assertEqual(current["labor_total"], 100.0)
        self.assertEqual(current["parts_total"], 20.0)
        self.assertEqual(current["markup_total"], 12.0)
        self.assertEqual(current["grand_total"], 132.0)

        deleted = self.client.delete(f"{est_url}/lines/{line['id']}")
        self.assertEqual(deleted.status_code, 200)
        self.assertEqual(deleted.json()["grand_total"], 22.0)

        repriced = self.client.patch(est_url, json={"markup_percent": 0})
        self.assertEqual(repriced.json()["grand_total"], 20.0)

    def test_null_patch_fields_are_rejected(self):
        self._setup_org(require_estimate_approval=False)
        estimate = self._create_estimate(title="Brake job", markup_percent=5)
        est_url = f"{self.base}/{estimate['id']}"
        for payload in ({"markup_percent": None}, {"title": None}, {"notes": None}):
            response = self.client.patch(est_url, json=payload)
            self.assertEqual(response.status_code, 422)
            self.assertEqual(response.json()["kind"], "validation")

        line = self._add_line(estimate["id"])
        response = self.client.patch(f"{est_url}/lines/{line['id']}", json={"quantity": None})
        self.assertEqual(response.status_code, 422)

        current = self.client.get(est_url)
        self.assertEqual(current.status_code, 200)
        self.assertEqual(current.json()["markup_percent"], 5)


if __name__ == "__main__":
    unittest.main()
