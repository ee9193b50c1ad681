import os
import unittest
from unittest import mock

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("TRACKER_DATABASE_URL", "sqlite:///:memory:")

from sqlalchemy import text

from tracker.db import session as db


class DatabaseUrlTests(unittest.TestCase):
    def test_tracker_url_wins(self):
        env = {"TRACKER_DATABASE_URL": "sqlite:///a.db", "DATABASE_URL": "sqlite:///b.db"}
        with mock.patch.dict(os.environ, env):
            self.assertEqual(db.database_url(), "sqlite:///a.db")

    def test_falls_back_to_local_file(self):
        with mock.patch.dict(os.environ, {}, clear=True):
            self.assertEqual(db.database_url(), "sqlite:///./tracker.db")

    def test_hosted_postgres_urls_use_psycopg(self):
        for raw in ("postgres://u:p@db:5432/jobs", "postgresql://u:p@db:5432/jobs"):
            with mock.patch.dict(os.environ, {"TRACKER_DATABASE_URL": raw}):
                self.assertEqual(db.database_url(), "postgresql+psycopg://u:p@db:5432/jobs")

    def test_explicit_driver_kept(self):
        with mock.patch.dict(os.environ, {"TRACKER_DATABASE_URL": "postgresql+asyncpg://db/jobs"}):
            self.assertEqual(db.database_url(), "postgresql+asyncpg://db/jobs")


class SessionTests(unittest.TestCase):
    def test_make_engine_reads_echo_flag(self):
        with mock.patch.dict(os.environ, {"TRACKER_DB_ECHO": "true"}):
            engine = db.make_engine("sqlite:///:memory:")
        self.assertTrue(engine.echo)
        engine.dispose()

    def test_get_session_closes_without_commit(self):
        fake = mock.MagicMock()
        with mock.patch.object(db, "SessionLocal", return_value=fake):
            with db.get_session() as session:
                self.assertIs(session, fake)
        fake.close.assert_called_once_with()
        fake.commit.assert_not_called()

    def test_get_session_closes_on_error(self):
        fake = mock.MagicMock()
        with mock.patch.object(db, "SessionLocal", return_value=fake):
            with self.assertRaises(RuntimeError):
                with db.get_session():
                    raise RuntimeError("boom")
        fake.close.assert_called_once_with()

    def test_connection_check_and_masked_url(self):
        self.assertTrue(db.test_connection())
        self.assertTrue(db.current_engine_url().startswith("sqlite"))


if __name__ == "__main__":
    unittest.main()
