import os
import unittest
from unittest import mock

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("TRACKER_DATABASE_URL", "sqlite:///:memory:")

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker

from tracker.api.main import app
from tracker.api.deps import db_session
from tracker.db.models import ApplicationPlatform, Base, Job

ALICE = {"x-user-id": "alice"}
BOB = {"x-user-id": "bob"}

JOB_PAYLOAD = {
    "company_name": "Google",
    "job_title": "Software Engineer",
    "city": "Mountain View",
    "state": "CA",
    "applied_at": "2025-09-01T12:00:00Z",
}


class DuplicateApiTests(unittest.TestCase):
    def setUp(self):
        engine = create_engine(
            "sqlite:///:memory:",
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        Base.metadata.create_all(engine)
        self.SessionLocal = sessionmaker(bind=engine)

        def override_db_session():
            with self.SessionLocal() as session:
                yield session

        app.dependency_overrides[db_session] = override_db_session
        self.client = TestClient(app)

    def tearDown(self):
        app.dependency_overrides.pop(db_session, None)

    def _create(self, headers=ALICE, **overrides):
        resp = self.client.post("/jobs", json=JOB_PAYLOAD | overrides, headers=headers)
        self.assertEqual(resp.status_code, 201, resp.text)
        return resp.json()

    def test_healthz_reports_database(self):
        resp = self.client.get("/healthz")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"status": "ok", "database": True})

    def test_requires_user_header(self):
        resp = self.client.get("/duplicates/pending")
        self.assertEqual(resp.status_code, 401)

    def test_create_job_reports_duplicates(self):
        first = self._create(company_name="Google Inc")
        self.assertEqual(first["duplicates"], [])

        second = self._create(applied_at="2025-09-03T12:00:00Z")
        dupes = second["duplicates"]
        self.assertEqual(len(dupes), 1)
        self.assertEqual(dupes[0]["id"], first["job"]["id"])
        self.assertEqual(dupes[0]["title_match"], 1.0)
        self.assertGreaterEqual(dupes[0]["similarity_score"], 0.7)

    def test_create_job_without_detection(self):
        self._create()
        body = self._create(headers=ALICE)
        self.assertEqual(len(body["duplicates"]), 1)
        resp = self.client.post("/jobs?detect=false", json=JOB_PAYLOAD, headers=ALICE)
        self.assertEqual(resp.json()["duplicates"], [])

    def test_detect_unknown_job_is_404(self):
        resp = self.client.post("/duplicates/detect/nope", headers=ALICE)
        self.assertEqual(resp.status_code, 404)
        self.assertFalse(resp.json()["retryable"])

    def test_pending_merge_flow(self):
        master = self._create()["job"]["id"]
        dup = self._create()["job"]["id"]
        self._create(headers=BOB)

        self.client.post(f"/platforms/job/{master}", json={"platform": "linkedin"}, headers=ALICE)
        self.client.post(f"/platforms/job/{dup}", json={"platform": "linkedin"}, headers=ALICE)
        resp = self.client.post(f"/platforms/job/{dup}", json={"platform": "indeed"}, headers=ALICE)
        self.assertEqual(resp.status_code, 201)

        pending = self.client.get("/duplicates/pending", headers=ALICE).json()
        self.assertEqual(len(pending), 1)
        self.assertEqual({pending[0]["job1"]["id"], pending[0]["job2"]["id"]}, {master, dup})

        resp = self.client.post(
            "/duplicates/merge",
            json={"master_job_id": master, "duplicate_job_ids": [dup]},
            headers=ALICE,
        )
        self.assertEqual(resp.status_code, 200, resp.text)
        body = resp.json()
        self.assertEqual(body["master_job_id"], master)
        self.assertEqual(body["platform_count"], 2)
        self.assertEqual(body["platforms_dropped"], 1)

        self.assertEqual(self.client.get("/duplicates/pending", headers=ALICE).json(), [])
        platforms = self.client.get(f"/platforms/job/{master}", headers=ALICE).json()
        self.assertEqual(sorted(p["platform"] for p in platforms), ["indeed", "linkedin"])

        listed = self.client.get("/jobs", headers=ALICE).json()
        self.assertEqual([j["id"] for j in listed], [master])
        merged = self.client.get(f"/jobs/{dup}", headers=ALICE).json()
        self.assertTrue(merged["is_duplicate"])
        self.assertEqual(merged["merged_into_job_id"], master)
        self.assertEqual(self.client.post(f"/duplicates/detect/{dup}", headers=ALICE).status_code, 400)

    def test_merge_with_foreign_job_is_400(self):
        master = self._create()["job"]["id"]
        foreign = self._create(headers=BOB)["job"]["id"]
        resp = self.client.post(
            "/duplicates/merge",
            json={"master_job_id": master, "duplicate_job_ids": [foreign]},
            headers=ALICE,
        )
        self.assertEqual(resp.status_code, 400)

    def test_merge_store_failure_is_retryable_503(self):
        master = self._create()["job"]["id"]
        dup = self._create()["job"]["id"]
        error = OperationalError("UPDATE jobs", {}, Exception("database is locked"))
        with mock.patch("tracker.core.merge.crud.mark_job_duplicate", side_effect=error):
            resp = self.client.post(
                "/duplicates/merge",
                json={"master_job_id": master, "duplicate_job_ids": [dup]},
                headers=ALICE,
            )
        self.assertEqual(resp.status_code, 503)
        self.assertTrue(resp.json()["retryable"])
        self.assertFalse(self.client.get(f"/jobs/{dup}", headers=ALICE).json()["is_duplicate"])

    def test_dismiss_then_conflict(self):
        self._create()
        self._create()
        pending = self.client.get("/duplicates/pending", headers=ALICE).json()
        dup_id = pending[0]["id"]

        self.assertEqual(self.client.post(f"/duplicates/dismiss/{dup_id}", headers=BOB).status_code, 404)
        resp = self.client.post(f"/duplicates/dismiss/{dup_id}", headers=ALICE)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"message": "Duplicate dismissed"})
        self.assertEqual(self.client.post(f"/duplicates/dismiss/{dup_id}", headers=ALICE).status_code, 409)

    def test_platform_routes(self):
        job_id = self._create()["job"]["id"]
        created = self.client.post(
            f"/platforms/job/{job_id}",
            json={"platform": "company_site", "application_url": "https://careers.example/1"},
            headers=ALICE,
        )
        self.assertEqual(created.status_code, 201)
        platform_id = created.json()["id"]

        self.assertEqual(
            self.client.post(f"/platforms/job/{job_id}", json={"platform": "company_site"}, headers=ALICE).status_code,
            409,
        )
        self.assertEqual(
            self.client.post(f"/platforms/job/{job_id}", json={"platform": "myspace"}, headers=ALICE).status_code,
            400,
        )

        patched = self.client.patch(f"/platforms/{platform_id}", json={"notes": "phone screen"}, headers=ALICE)
        self.assertEqual(patched.json()["notes"], "phone screen")

        everything = self.client.get("/platforms/jobs/all", headers=ALICE).json()
        self.assertEqual(everything[0]["platform_count"], 1)
        self.assertEqual(everything[0]["platforms"][0]["platform"], "company_site")

        self.assertEqual(self.client.delete(f"/platforms/{platform_id}", headers=BOB).status_code, 404)
        self.assertEqual(self.client.delete(f"/platforms/{platform_id}", headers=ALICE).status_code, 200)
        with self.SessionLocal() as session:
            self.assertIsNone(session.get(ApplicationPlatform, platform_id))
            self.assertEqual(session.get(Job, job_id).platform_count, 0)


if __name__ == "__main__":
    unittest.main()
