"""Unit tests for the deployment entry point."""

import subprocess

import pytest

import main as deploy


class TestRunMigrations:
    def test_success(self, monkeypatch):
        calls = []
        monkeypatch.setattr(deploy.subprocess, "run", lambda args, check: calls.append(args))

        assert deploy.run_migrations()
        assert calls == [["alembic", "upgrade", "head"]]

    def test_failure_is_logged(self, monkeypatch, caplog):
        def fail(args, check):
            raise subprocess.CalledProcessError(1, args)

        monkeypatch.setattr(deploy.subprocess, "run", fail)

        assert not deploy.run_migrations()
        assert "Migration failed" in caplog.text


class TestMain:
    def test_failed_migration_does_not_serve(self, monkeypatch):
        served = []
        monkeypatch.setattr(deploy, "run_migrations", lambda: False)
        monkeypatch.setattr(deploy.uvicorn, "run", lambda *args, **kwargs: served.append(args))

        with pytest.raises(SystemExit) as exc:
            deploy.main()

        assert exc.value.code == 1
        assert served == []

    def test_serves_on_port_from_environment(self, monkeypatch):
        served = []
        monkeypatch.setattr(deploy, "run_migrations", lambda: True)
        monkeypatch.setattr(deploy.uvicorn, "run", lambda app, **kwargs: served.append((app, kwargs)))
        monkeypatch.setenv("PORT", "9100")

        deploy.main()

        assert served == [("codeduel.main:app", {"host": "0.0.0.0", "port": 9100})]
