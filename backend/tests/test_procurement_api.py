from __future__ import annotations

import unittest
from unittest import mock

from api_case import FleetApiTestCase


class ProcurementApiTests(FleetApiTestCase):
    def setUp(self):
        super().setUp()
        self.org_id = self.create_org()
        self.base = f"/api/orgs/{self.org_id}"
        vendor = self.client.post(f"{self.base}/vendors", json={"name": "Parts Depot"})
        self.assertEqual(vendor.status_code, 201)
        self.vendor_id = vendor.json()["id"]
        self.part_id = self.create_part(self.org_id, quantity_on_hand=1, reorder_point=2)

    def _requisition_with_lines(self) -> int:
        created = self.client.post(
            f"{self.base}/requisitions",
            json={"title": "Brake restock", "vendor_id": self.vendor_id, "requested_by": "shop lead"},
        )
        self.assertEqual(created.status_code, 201)
        self.assertEqual(created.json()["status"], "draft")
        req_id = created.json()["id"]

        for payload in (
            {"part_id": self.part_id, "description": "Oil filter", "quantity": 4, "unit_cost": 12.5},
            {"description": "Shop rags", "quantity": 2, "unit_cost": 7.25},
        ):
            line = self.client.post(f"{self.base}/requisitions/{req_id}/lines", json=payload)
            self.assertEqual(line.status_code, 201)
        return req_id

    def _approve(self, req_id: int) -> None:
        submitted = self.client.post(f"{self.base}/requisitions/{req_id}/submit")
        self.assertEqual(submitted.status_code, 200)
        self.assertEqual(submitted.json()["status"], "pending_approval")
        approved = self.client.post(f"{self.base}/requisitions/{req_id}/approve")
        self.assertEqual(approved.status_code, 200)
        self.assertEqual(approved.json()["status"], "approved")
        self.assertIsNotNone(approved.json()["approved_at"])

    def test_line_changes_keep_requisition_total(self):
        req_id = self._requisition_with_lines()
        requisition = self.client.get(f"{self.base}/requisitions/{req_id}").json()
        self.assertEqual(requisition["total_amount"], 64.5)

        lines = self.client.get(f"{self.base}/requisitions/{req_id}/lines").json()
        deleted = self.client.delete(f"{self.base}/requisitions/{req_id}/lines/{lines[1]['id']}")
        self.assertEqual(deleted.status_code, 200)
        self.assertEqual(deleted.json()["total_amount"], 50.0)

    def test_convert_creates_draft_purchase_order_once(self):
        req_id = self._requisition_with_lines()
        self._approve(req_id)

        converted = self.client.post(f"{self.base}/requisitions/{req_id}/convert")
        self.assertEqual(converted.status_code, 201)
        po = converted.json()
        self.assertEqual(po["status"], "draft")
        self.assertEqual(po["requisition_id"], req_id)
        self.assertEqual(po["vendor_id"], self.vendor_id)
        self.assertEqual(po["total_amount"], 64.5)
        self.assertTrue(po["po_number"].startswith("PO-"))

        lines = self.client.get(f"{self.base}/purchase-orders/{po['id']}/lines").json()
        self.assertEqual([line["quantity_ordered"] for line in lines], [4, 2])

        requisition = self.client.get(f"{self.base}/requisitions/{req_id}").json()
        self.assertEqual(requisition["status"], "converted")

        again = self.client.post(f"{self.base}/requisitions/{req_id}/convert")
        self.assertEqual(again.status_code, 409)
        self.assertEqual(again.json()["kind"], "invalid_transition")

        purchase_orders = self.client.get(f"{self.base}/purchase-orders").json()
        self.assertEqual(len(purchase_orders), 1)

    def test_convert_requires_approval_and_lines(self):
        req_id = self._requisition_with_lines()
        draft_convert = self.client.post(f"{self.base}/requisitions/{req_id}/convert")
        self.assertEqual(draft_convert.status_code, 409)

        empty = self.client.post(f"{self.base}/requisitions", json={"title": "Nothing yet"})
        empty_id = empty.json()["id"]
        self._approve(empty_id)
        empty_convert = self.client.post(f"{self.base}/requisitions/{empty_id}/convert")
        self.assertEqual(empty_convert.status_code, 409)
        self.assertIn("no lines", empty_convert.json()["detail"])

    def test_rejected_requisition_is_terminal(self):
        req_id = self._requisition_with_lines()
        self.client.post(f"{self.base}/requisitions/{req_id}/submit")
        rejected = self.client.post(f"{self.base}/requisitions/{req_id}/reject")
        self.assertEqual(rejected.status_code, 200)
        self.assertIsNotNone(rejected.json()["rejected_at"])

        for action in ("submit", "approve", "convert"):
            response = self.client.post(f"{self.base}/requisitions/{req_id}/{action}")
            self.assertEqual(response.status_code, 409)

    def test_approve_without_submit_is_rejected(self):
        req_id = self._requisition_with_lines()
        response = self.client.post(f"{self.base}/requisitions/{req_id}/approve")
        self.assertEqual(response.status_code, 409)

    def test_submitted_requisition_is_locked_for_edits(self):
        req_id = self._requisition_with_lines()
        self.client.post(f"{self.base}/requisitions/{req_id}/submit")
        response = self.client.post(
            f"{self.base}/requisitions/{req_id}/lines",
            json={"description": "Late add", "quantity": 1},
        )
        self.assertEqual(response.status_code, 409)

    def test_receiving_updates_stock_and_status(self):
        req_id = self._requisition_with_lines()
        self._approve(req_id)
        po_id = self.client.post(f"{self.base}/requisitions/{req_id}/convert").json()["id"]
        po_url = f"{self.base}/purchase-orders/{po_id}"
        lines = self.client.get(f"{po_url}/lines").json()
        filter_line, rags_line = lines

        early = self.client.post(f"{po_url}/lines/{filter_line['id']}/receive", json={"quantity": 1})
        self.assertEqual(early.status_code, 409)

        for status in ("submitted", "approved", "ordered"):
            moved = self.client.post(f"{po_url}/status", json={"status": status})
            self.assertEqual(moved.status_code, 200)
            self.assertEqual(moved.json()["status"], status)
        self.assertIsNotNone(moved.json()["order_date"])

        partial = self.client.post(f"{po_url}/lines/{filter_line['id']}/receive", json={"quantity": 3})
        self.assertEqual(partial.status_code, 200)
        self.assertEqual(partial.json()["line"]["quantity_received"], 3)
        self.assertEqual(partial.json()["purchase_order"]["status"], "partial")

        part = self.client.get(f"{self.base}/parts/{self.part_id}").json()
        self.assertEqual(part["quantity_on_hand"], 4)

        over = self.client.post(f"{po_url}/lines/{filter_line['id']}/receive", json={"quantity": 2})
        self.assertEqual(over.status_code, 422)

        self.client.post(f"{po_url}/lines/{filter_line['id']}/receive", json={"quantity": 1})
        done = self.client.post(f"{po_url}/lines/{rags_line['id']}/receive", json={"quantity": 2})
        self.assertEqual(done.status_code, 200)
        self.assertEqual(done.json()["purchase_order"]["status"], "received")
        self.assertIsNotNone(done.json()["purchase_order"]["received_date"])

        cancel = self.client.post(f"{po_url}/status", json={"status": "cancelled"})
        self.assertEqual(cancel.status_code, 409)

    def test_po_number_collision_is_not_reported_as_converted(self):
        first = self._requisition_with_lines()
        self._approve(first)
        taken = self.client.post(f"{self.base}/requisitions/{first}/convert").json()["po_number"]

        second = self._requisition_with_lines()
        self._approve(second)
        service = self.modules["procurement_service"]
        with mock.patch.object(service, "next_number", mock.AsyncMock(return_value=taken)):
            response = self.client.post(f"{self.base}/requisitions/{second}/convert")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["kind"], "storage_error")

        requisition = self.client.get(f"{self.base}/requisitions/{second}").json()
        self.assertEqual(requisition["status"], "approved")
        retried = self.client.post(f"{self.base}/requisitions/{second}/convert")
        self.assertEqual(retried.status_code, 201)

    def test_null_patch_fields_are_rejected(self):
        req_id = self._requisition_with_lines()
        for payload in ({"title": None}, {"notes": None}, {"description": None}):
            response = self.client.patch(f"{self.base}/requisitions/{req_id}", json=payload)
            self.assertEqual(response.status_code, 422)
            self.assertEqual(response.json()["kind"], "validation")

        line_id = self.client.get(f"{self.base}/requisitions/{req_id}/lines").json()[0]["id"]
        line = self.client.patch(f"{self.base}/requisitions/{req_id}/lines/{line_id}", json={"quantity": None})
        self.assertEqual(line.status_code, 422)

        requisition = self.client.get(f"{self.base}/requisitions/{req_id}")
        self.assertEqual(requisition.status_code, 200)
        self.assertEqual(requisition.json()["title"], "Brake restock")


if __name__ == "__main__":
    unittest.main()
