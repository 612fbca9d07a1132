from __future__ import annotations

import importlib
import os
import sys
import unittest
import uuid
from pathlib import Path

from fastapi.testclient import TestClient

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

# Reloaded in dependency order so every module sees the per-test DB_PATH.
RELOAD_ORDER = (
    "config",
    "db",
    "errors",
    "workflow",
    "classification",
    "numbering",
    "org_scope",
    "utils",
    "work_order_models",
    "fleet_models",
    "procurement_models",
    "estimate_models",
    "inspection_models",
    "import_models",
    "work_order_service",
    "fleet_service",
    "classification_service",
    "procurement_service",
    "estimate_service",
    "dashboard_service",
    "import_service",
    "inspection_service",
    "work_order_api",
    "asset_api",
    "org_api",
    "procurement_api",
    "estimate_api",
    "dashboard_api",
    "import_api",
    "inspection_api",
    "main",
)


class FleetApiTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp_root = BACKEND_DIR / "tests" / ".tmp"
        self._tmp_root.mkdir(parents=True, exist_ok=True)
        self._db_path = self._tmp_root / f"fleet_test_{uuid.uuid4().hex}.db"
        self._env_backup = {
            "DB_PATH": os.environ.get("DB_PATH"),
            "FRONTEND_ORIGINS": os.environ.get("FRONTEND_ORIGINS"),
            "APP_ENV": os.environ.get("APP_ENV"),
        }

        os.environ["DB_PATH"] = str(self._db_path)
        os.environ["FRONTEND_ORIGINS"] = "http://localhost:5173"
        os.environ["APP_ENV"] = "test"

        self.modules = {}
        for name in RELOAD_ORDER:
            module = importlib.import_module(name)
            self.modules[name] = importlib.reload(module)

        self.client = TestClient(self.modules["main"].create_app())
        self.client.__enter__()

    def tearDown(self):
        self.client.__exit__(None, None, None)

        for key, value in self._env_backup.items():
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value

        for suffix in ("", "-wal", "-shm"):
            candidate = Path(f"{self._db_path}{suffix}")
            if candidate.exists():
                candidate.unlink()

    def create_org(self, require_estimate_approval: bool = False) -> int:
        response = self.client.post(
            "/api/orgs",
            json={
                "name": "Northside Transit",
                "slug": f"northside-{uuid.uuid4().hex[:8]}",
                "require_estimate_approval": require_estimate_approval,
            },
        )
        self.assertEqual(response.status_code, 201)
        return int(response.json()["id"])

    def create_asset(self, org_id: int, asset_number: str = "TRK-100") -> int:
        response = self.client.post(
            f"/api/orgs/{org_id}/assets",
            json={"asset_number": asset_number, "name": f"Truck {asset_number}"},
        )
        self.assertEqual(response.status_code, 201)
        return int(response.json()["id"])

    def create_part(self, org_id: int, part_number: str = "FLT-01", **fields) -> int:
        response = self.client.post(
            f"/api/orgs/{org_id}/parts",
            json={"part_number": part_number, "name": "Oil filter", **fields},
        )
        self.assertEqual(response.status_code, 201)
        return int(response.json()["id"])

    def get_asset_status(self, org_id: int, asset_id: int) -> str:
        response = self.client.get(f"/api/orgs/{org_id}/assets/{asset_id}")
        self.assertEqual(response.status_code, 200)
        return response.json()["status"]
