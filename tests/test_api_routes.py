"""
End-to-end tests for the FastAPI app: access gate redirects, sheet-backed
routes, tasks, orders, presets, layouts and auth routes.
Google Sheets and Supabase are replaced with mocks via dependency overrides.
"""
import asyncio
import os
import sys
import threading
import time
import unittest
from datetime import date
from pathlib import Path
from unittest.mock import MagicMock, Mock, patch

import httpx
import jwt

# Ensure src/ is on path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT / 'src'))

ALLOWED = "ops@example.com"
OUTSIDER = "someone@example.com"
SECRET = "test-jwt-secret-with-at-least-32-bytes!!"
COOKIE = "sb-testproject-auth-token"

ENV = {
    "SUPABASE_URL": "https://testproject.supabase.co",
    "SUPABASE_ANON_KEY": "anon-key",
    "SUPABASE_JWT_SECRET": SECRET,
    "SUPABASE_AUTH_COOKIE": COOKIE,
    "ALLOWED_EMAILS": ALLOWED,
    "GOOGLE_SHEET_ID": "sheet-123",
    "SESSION_COOKIE_SECURE": "false",
}


def make_token(email):
    return jwt.encode(
        {"sub": "user-1", "email": email, "aud": "authenticated", "exp": int(time.time()) + 3600},
        SECRET,
        algorithm="HS256",
    )


def schedule_row(van, stages=None):
    row = [""] * 19
    row[0], row[3], row[5] = van, "Barrington", "J Smith"
    for column, value in (stages or {}).items():
        row[column] = value
    return row


class APITestCase(unittest.TestCase):

    def setUp(self):
        for key, value in ENV.items():
            os.environ[key] = value

        # Reload config so it picks up the new env vars
        import importlib
        import config
        importlib.reload(config)

        from api.auth.access_gate import GateConfig
        from api.auth.dependencies import get_user_store, init_auth
        from api.auth.session import SessionResolver
        from api.helpers import get_sheets_manager
        from api.main import create_app
        from fastapi.testclient import TestClient

        self.supabase_auth = Mock()
        init_auth(
            SessionResolver(COOKIE, jwt_secret=SECRET),
            GateConfig.from_config(config),
            self.supabase_auth,
        )

        self.sheets = MagicMock()
        self.store = MagicMock()

        self.app = create_app()
        self.app.dependency_overrides[get_sheets_manager] = lambda: self.sheets
        self.app.dependency_overrides[get_user_store] = lambda: self.store
        self.client = TestClient(self.app, follow_redirects=False)

    def tearDown(self):
        from api.auth.dependencies import reset_auth
        reset_auth()
        self.app.dependency_overrides.clear()
        for key in ENV:
            os.environ.pop(key, None)

    def sign_in(self, email=ALLOWED):
        from api.auth.session import encode_session_cookie
        self.client.cookies.set(COOKIE, encode_session_cookie(make_token(email), "refresh"))


class TestAccessGate(APITestCase):

    def test_anonymous_redirected_to_login(self):
        for path in ("/api/stats", "/dashboard", "/api/important-tasks", "/"):
            response = self.client.get(path)
            self.assertEqual(response.status_code, 307, path)
            self.assertEqual(response.headers["location"], "/login")

    def test_outsider_redirected_to_unauthorized(self):
        self.sign_in(OUTSIDER)
        response = self.client.get("/api/stats")
        self.assertEqual(response.status_code, 307)
        self.assertEqual(response.headers["location"], "/unauthorized")
        self.sheets.get_dealer_rows.assert_not_called()

    def test_outsider_sees_unauthorized_page(self):
        self.sign_in(OUTSIDER)
        response = self.client.get("/unauthorized")
        self.assertEqual(response.status_code, 200)
        self.assertIn(OUTSIDER, response.json()["detail"])

    def test_allowed_user_sent_home_from_login_and_root(self):
        self.sign_in()
        for path in ("/login", "/"):
            response = self.client.get(path)
            self.assertEqual(response.status_code, 307)
            self.assertEqual(response.headers["location"], "/dashboard")

    def test_expired_session_is_anonymous(self):
        from api.auth.session import encode_session_cookie
        token = jwt.encode(
            {"sub": "u", "email": ALLOWED, "aud": "authenticated", "exp": int(time.time()) - 10},
            SECRET, algorithm="HS256",
        )
        self.client.cookies.set(COOKIE, encode_session_cookie(token))
        self.assertEqual(self.client.get("/api/stats").headers["location"], "/login")

    def test_health_is_public(self):
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertIn(response.json()["status"], ("healthy", "degraded"))

    def test_auth_error_page_is_public(self):
        response = self.client.get("/auth/error", params={"error": "bad code"})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {"error": "bad code"})


class TestSheetRoutes(APITestCase):

    def setUp(self):
        super().setUp()
        self.sign_in()

    def test_stats(self):
        self.sheets.get_dealer_rows.return_value = [
            ["Dealer"], ["Kakadu Caravans"], ["Kakadu"], ["Ideal"], ["Bob's RV"],
        ]
        response = self.client.get("/api/stats")
        self.assertEqual(response.status_code, 200)
        stats = {s["name"]: s for s in response.json()["stats"]}
        self.assertEqual(set(stats), {"Adelaide City", "Geelong", "Wangaratta", "Ideal"})
        self.assertEqual(stats["Adelaide City"]["count"], 2)
        self.assertAlmostEqual(stats["Adelaide City"]["trend"], 200 / 3)

    def test_sheet_failure_is_500_with_error(self):
        from errors import SheetsFetchError
        self.sheets.get_dealer_rows.side_effect = SheetsFetchError("quota exceeded")
        response = self.client.get("/api/stats")
        self.assertEqual(response.status_code, 500)
        self.assertIn("quota exceeded", response.json()["error"])

    def test_production_status(self):
        self.sheets.get_production_rows.return_value = [
            schedule_row("Van Number"),
            schedule_row("LTRV 25102"),
            schedule_row("LTRV 25105", {13: "01/03/2024", 14: "05/03/2024"}),
            schedule_row("LTRV 25001"),
        ]
        response = self.client.get("/api/production-status")
        self.assertEqual(response.status_code, 200)
        data = response.json()["productionData"]
        self.assertEqual([d["vanNumber"] for d in data], ["LTRV 25105", "LTRV 25102"])
        self.assertEqual(data[0]["status"], "Walls Up")

    def test_dashboard(self):
        today = date.today().strftime("%d/%m/%Y")
        self.sheets.get_dashboard_rows.return_value = [
            ["Van", "Van Due", "Dealer"],
            ["LTRV 25101", today, "Kakadu"],
            ["LTRV 25102", today, "Tasman"],
        ]
        for path in ("/api/dashboard", "/dashboard"):
            response = self.client.get(path)
            self.assertEqual(response.status_code, 200, path)
            body = response.json()
            stats = {s["name"]: s for s in body["stats"]}
            self.assertEqual(stats["Adelaide City"]["activeProducts"], 1)
            self.assertEqual(stats["Ideal"]["activeProducts"], 1)
            self.assertEqual(len(body["history"]), 4)

    def test_dashboard_without_dealer_column(self):
        self.sheets.get_dashboard_rows.return_value = [["Van", "Van Due"]]
        response = self.client.get("/api/dashboard")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["error"], "Dealer column not found")

    def test_van_details_requires_van_number(self):
        for path in ("/api/van-details", "/api/van-details?vanNumber="):
            response = self.client.get(path)
            self.assertEqual(response.status_code, 400)
            self.assertEqual(response.json(), {"error": "Van number is required"})

    def test_van_details_no_data(self):
        self.sheets.get_van_detail_rows.return_value = []
        response = self.client.get("/api/van-details", params={"vanNumber": "LTRV 25101"})
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"error": "No data found"})

    def test_van_details_found_and_missing(self):
        self.sheets.get_van_detail_rows.return_value = [
            ["Van Number", "Customer Name", "Model", "Benchtops"],
            ["LTRV 25101", "A Jones", "Voyager", "TRUE"],
        ]
        response = self.client.get("/api/van-details", params={"vanNumber": "LTRV 25101"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["customerName"], "A Jones")
        self.assertTrue(response.json()["benchtops"])

        response = self.client.get("/api/van-details", params={"vanNumber": "LTRV 25999"})
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"error": "Van not found"})


class TestSheetsConnectionLifecycle(APITestCase):
    """The real get_sheets_manager dependency closes its connection after each request"""

    def setUp(self):
        super().setUp()
        from api.helpers import get_sheets_manager
        self.app.dependency_overrides.pop(get_sheets_manager)
        self.sign_in()

        patchers = [
            patch('sheets.sheets_manager.gspread'),
            patch('sheets.sheets_manager.Credentials'),
            patch('sheets.sheets_manager.config.get_credentials_path', return_value='/fake/creds.json'),
        ]
        mocks = [p.start() for p in patchers]
        for p in patchers:
            self.addCleanup(p.stop)

        self.gspread_client = mocks[0].authorize.return_value
        self.spreadsheet = self.gspread_client.open_by_key.return_value

    def test_connection_closed_after_success(self):
        self.spreadsheet.values_get.return_value = {'values': [["Dealer"], ["Kakadu"]]}
        response = self.client.get("/api/stats")
        self.assertEqual(response.status_code, 200)
        self.gspread_client.http_client.session.close.assert_called_once()

    def test_connection_closed_after_fetch_error(self):
        self.spreadsheet.values_get.side_effect = RuntimeError("quota exceeded")
        response = self.client.get("/api/stats")
        self.assertEqual(response.status_code, 500)
        self.assertIn("quota exceeded", response.json()["error"])
        self.gspread_client.http_client.session.close.assert_called_once()

    def test_connection_closed_when_open_fails(self):
        self.gspread_client.open_by_key.side_effect = RuntimeError("403 forbidden")
        response = self.client.get("/api/stats")
        self.assertEqual(response.status_code, 500)
        self.gspread_client.http_client.session.close.assert_called_once()


class BarrierResolver:
    """Returns a session only once ``parties`` lookups are in flight together."""

    def __init__(self, parties):
        self.barrier = threading.Barrier(parties, timeout=5)

    def resolve(self, cookies):
        self.barrier.wait()
        from api.auth.session import Session
        return Session(email=ALLOWED, access_token="token", user_id="user-1")


class TestGateConcurrency(APITestCase):
    """Blocking session lookups in the gate must not stall other requests"""

    def test_session_lookups_run_in_parallel(self):
        import config
        from api.auth.access_gate import GateConfig
        from api.auth.dependencies import init_auth

        parties = 4
        init_auth(BarrierResolver(parties), GateConfig.from_config(config), self.supabase_auth)

        async def fetch_all():
            transport = httpx.ASGITransport(app=self.app)
            async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
                responses = await asyncio.gather(
                    *(client.get("/api/catalog") for _ in range(parties))
                )
            return [r.status_code for r in responses]

        # A serialized gate breaks the barrier and every request is sent to /login
        self.assertEqual(asyncio.run(fetch_all()), [200] * parties)


class TestTaskRoutes(APITestCase):

    TASK = {
        "title": "Leaking window",
        "van_number": "LTRV 25101",
        "customer_name": "A Jones",
        "issue": "Water ingress at rear window",
        "warranty_handled_by": "Danny",
        "assigned_to": "Ridma",
        "due_date": "2024-05-01",
    }

    def setUp(self):
        super().setUp()
        self.sign_in()

    def test_list(self):
        self.store.select.return_value = [{"id": 1, "title": "A"}]
        response = self.client.get("/api/important-tasks")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), [{"id": 1, "title": "A"}])
        _, kwargs = self.store.select.call_args
        self.assertEqual(kwargs["filters"], {"is_completed": "eq.false"})
        self.assertEqual(kwargs["order"], "due_date.asc")

    def test_create(self):
        self.store.insert.return_value = [dict(self.TASK, id=3, is_completed=False)]
        response = self.client.post("/api/important-tasks", json=self.TASK)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["id"], 3)
        _, rows = self.store.insert.call_args[0]
        self.assertEqual(rows[0]["due_date"], "2024-05-01")
        self.assertFalse(rows[0]["is_completed"])

    def test_create_rejects_unknown_assignee(self):
        response = self.client.post("/api/important-tasks", json=dict(self.TASK, assigned_to="Bob"))
        self.assertEqual(response.status_code, 422)
        self.store.insert.assert_not_called()

    def test_update(self):
        self.store.update.return_value = [{"id": 3, "is_completed": True}]
        response = self.client.patch("/api/important-tasks/3", json={"is_completed": True})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"success": True, "data": [{"id": 3, "is_completed": True}]})
        self.store.update.assert_called_once_with(
            "important_tasks", {"is_completed": True}, filters={"id": "eq.3"},
        )

    def test_update_needs_fields(self):
        response = self.client.patch("/api/important-tasks/3", json={})
        self.assertEqual(response.status_code, 400)

    def test_delete_is_soft(self):
        self.store.update.return_value = [{"id": 3, "is_completed": True}]
        response = self.client.delete("/api/important-tasks/3")
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["success"])
        self.store.delete.assert_not_called()

    def test_store_failure(self):
        from errors import SupabaseError
        self.store.select.side_effect = SupabaseError("permission denied", status_code=401)
        response = self.client.get("/api/important-tasks")
        self.assertEqual(response.status_code, 500)
        self.assertIn("permission denied", response.json()["error"])


class TestUpholsteryRoutes(APITestCase):

    ORDER = {
        "vanNumber": "LTRV 25101",
        "model": "Barrington",
        "modelType": 'Barrington 21"',
        "orderDate": "2024-05-01",
        "brandOfSample": "Shann",
        "colorOfSample": "Navy",
        "bedHead": "Large",
        "arms": "GT arm",
        "magPockets": "1 x Large + 2 small",
        "headBumper": "false",
        "loungeType": "Club",
        "design": "Soft Back",
        "curtain": "Yes",
        "stitching": "Double",
        "bunkMattresses": "2",
    }

    def setUp(self):
        super().setUp()
        self.sign_in()
        self.store.insert.side_effect = lambda table, rows: [dict(rows[0], id="new-id")]

    def test_submit_order_converts_to_snake_case(self):
        response = self.client.post("/api/upholstery-orders", json=self.ORDER)
        self.assertEqual(response.status_code, 201)

        table, rows = self.store.insert.call_args[0]
        row = rows[0]
        self.assertEqual(table, "upholstery_orders")
        self.assertEqual(row["van_number"], "LTRV 25101")
        self.assertEqual(row["mag_pockets"], "1 x Large + 2 small")
        self.assertEqual(row["other"], "")
        self.assertTrue(row["order_date"].startswith("2024-05-01T"))
        self.assertNotIn("vanNumber", row)
        self.assertNotIn("layout_id", row)

    def test_submit_order_rejects_unknown_option(self):
        response = self.client.post("/api/upholstery-orders", json=dict(self.ORDER, bedHead="Huge"))
        self.assertEqual(response.status_code, 422)
        self.assertIn("error", response.json())

    def test_save_preset_records_user(self):
        response = self.client.post(
            "/api/upholstery-presets", json=dict(self.ORDER, presetName="Club standard"),
        )
        self.assertEqual(response.status_code, 201)
        table, rows = self.store.insert.call_args[0]
        self.assertEqual(table, "upholstery_presets")
        self.assertEqual(rows[0]["preset_name"], "Club standard")
        self.assertEqual(rows[0]["user_id"], "user-1")

    def test_preset_needs_name(self):
        response = self.client.post("/api/upholstery-presets", json=self.ORDER)
        self.assertEqual(response.status_code, 422)

    def test_list_and_delete_presets(self):
        self.store.select.return_value = [{"id": "p1"}]
        self.assertEqual(self.client.get("/api/upholstery-presets").json(), [{"id": "p1"}])

        self.store.delete.return_value = [{"id": "p1"}]
        response = self.client.delete("/api/upholstery-presets/p1")
        self.assertEqual(response.json(), {"success": True, "data": [{"id": "p1"}]})

    def test_catalog(self):
        body = self.client.get("/api/catalog").json()
        self.assertEqual([m["name"] for m in body["models"]],
                         ["Cape Otway", "Barrington", "Opulance", "Voyager"])
        self.assertIn("Navy", body["brandColors"]["Shann"])


class TestLayoutRoutes(APITestCase):

    def setUp(self):
        super().setUp()
        self.sign_in()
        self.store.public_url.side_effect = lambda bucket, path: f"https://cdn/{bucket}/{path}"

    def test_list(self):
        self.store.list_objects.return_value = [{"name": "a.png"}]
        response = self.client.get("/api/layouts")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()[0]["url"], "https://cdn/upholstery-layouts/a.png")

    def test_upload_image(self):
        response = self.client.post(
            "/api/layouts", files={"file": ("lounge.png", b"\x89PNG", "image/png")},
        )
        self.assertEqual(response.status_code, 201)
        self.assertTrue(response.json()["path"].endswith(".png"))
        self.store.upload_object.assert_called_once()

    def test_upload_rejects_non_image(self):
        response = self.client.post(
            "/api/layouts", files={"file": ("notes.pdf", b"%PDF", "application/pdf")},
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"error": "Please upload an image file"})
        self.store.upload_object.assert_not_called()

    def test_rename_keeps_extension(self):
        response = self.client.patch("/api/layouts/abc_123.png", json={"newName": "club lounge"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["path"], "club lounge.png")
        self.store.move_object.assert_called_once_with("upholstery-layouts", "abc_123.png", "club lounge.png")

    def test_delete(self):
        response = self.client.delete("/api/layouts/abc_123.png")
        self.assertEqual(response.status_code, 200)
        self.store.remove_objects.assert_called_once_with("upholstery-layouts", ["abc_123.png"])


class TestAuthRoutes(APITestCase):

    def test_login_returns_sign_in_url(self):
        self.supabase_auth.build_authorize_url.return_value = "https://testproject.supabase.co/auth/v1/authorize?x=1"
        response = self.client.get("/login")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["provider"], "google")
        self.assertIn("sb-code-verifier=", response.headers["set-cookie"])

        provider, redirect_to, challenge = self.supabase_auth.build_authorize_url.call_args[0]
        self.assertEqual(provider, "google")
        self.assertTrue(redirect_to.endswith("/auth/callback?next=/"))

    def test_callback_sets_session_cookie(self):
        self.supabase_auth.exchange_code_for_session.return_value = {
            "access_token": make_token(ALLOWED),
            "refresh_token": "refresh",
            "user": {"email": ALLOWED},
        }
        self.client.cookies.set("sb-code-verifier", "verifier-1")
        response = self.client.get("/auth/callback", params={"code": "abc", "next": "/dashboard"})

        self.assertEqual(response.status_code, 303)
        self.assertEqual(response.headers["location"], "/dashboard")
        self.assertIn(f"{COOKIE}=", response.headers["set-cookie"])
        self.supabase_auth.exchange_code_for_session.assert_called_once_with("abc", "verifier-1")

    def test_callback_failure_goes_to_error_page(self):
        from errors import SupabaseError
        self.supabase_auth.exchange_code_for_session.side_effect = SupabaseError("invalid grant")
        self.client.cookies.set("sb-code-verifier", "verifier-1")
        response = self.client.get("/auth/callback", params={"code": "abc"})
        self.assertEqual(response.status_code, 303)
        self.assertTrue(response.headers["location"].startswith("/auth/error?error="))

    def test_callback_ignores_offsite_next(self):
        response = self.client.get("/auth/callback", params={"next": "//evil.example.com"})
        self.assertEqual(response.headers["location"], "/")

    def test_signout_clears_cookies(self):
        self.sign_in(OUTSIDER)
        response = self.client.post("/auth/signout")
        self.assertEqual(response.status_code, 200)
        self.assertIn(COOKIE, response.headers["set-cookie"])
        self.supabase_auth.sign_out.assert_called_once()

    def test_signout_survives_revocation_failure(self):
        from errors import SupabaseError
        self.sign_in()
        self.supabase_auth.sign_out.side_effect = SupabaseError("down")
        self.assertEqual(self.client.post("/auth/signout").status_code, 200)

    def test_session_info(self):
        self.sign_in()
        body = self.client.get("/auth/session").json()
        self.assertEqual(body["email"], ALLOWED)
        self.assertTrue(body["allowed"])


if __name__ == '__main__':
    unittest.main()
