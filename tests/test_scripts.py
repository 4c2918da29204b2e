"""Deploy scripts: start-up preflight and release rollout report."""
import pytest

from app.portal.env import EnvironmentReader
from app.portal.feature_flags import (
    BETA_TESTERS_KEY,
    ENABLED_KEY,
    ROLLOUT_PERCENTAGE_KEY,
    TARGET_USERS_KEY,
    WorkbenchRollout,
)
from scripts import release, start


@pytest.fixture()
def clean_env(monkeypatch):
    for k in (ENABLED_KEY, ROLLOUT_PERCENTAGE_KEY, TARGET_USERS_KEY, BETA_TESTERS_KEY):
        monkeypatch.delenv(k, raising=False)
    return monkeypatch


def test_port_defaults_and_validation():
    assert start.resolve_port(None) == 8080
    assert start.resolve_port(" 5000 ") == 5000
    for bad in ("http", "0", "70000"):
        with pytest.raises(SystemExit):
            start.resolve_port(bad)


def test_preflight_refuses_malformed_percentage(clean_env, capsys):
    clean_env.setenv(ENABLED_KEY, "true")
    clean_env.setenv(ROLLOUT_PERCENTAGE_KEY, "25%")
    with pytest.raises(SystemExit):
        start.preflight()
    assert ROLLOUT_PERCENTAGE_KEY in capsys.readouterr().out


def test_preflight_passes_sane_rollout(clean_env):
    clean_env.setenv(ENABLED_KEY, "true")
    clean_env.setenv(ROLLOUT_PERCENTAGE_KEY, "25")
    start.preflight()


def test_gunicorn_argv(clean_env):
    clean_env.setenv("WEB_CONCURRENCY", "4")
    argv = start.gunicorn_argv(9000)
    assert argv[:2] == ["gunicorn", "app.wsgi:app"]
    assert argv[argv.index("--bind") + 1] == "0.0.0.0:9000"
    assert argv[argv.index("--workers") + 1] == "4"


def test_release_requires_database_url(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    with pytest.raises(RuntimeError):
        release.run_release()


def test_release_refuses_sqlite_in_production(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite:///portal.db")
    monkeypatch.setenv("ENV", "production")
    with pytest.raises(RuntimeError):
        release.run_release()


def _summary(**env) -> str:
    return release.rollout_summary(WorkbenchRollout(EnvironmentReader(environ=env)))


def test_rollout_summary():
    assert _summary() == "AdminWorkBench: off (legacy dashboard for everyone)"
    assert _summary(**{ENABLED_KEY: "true", ROLLOUT_PERCENTAGE_KEY: "10", TARGET_USERS_KEY: "admins"}) == (
        "AdminWorkBench: on for 10% of users, target=ADMIN"
    )
    assert _summary(**{ENABLED_KEY: "true", BETA_TESTERS_KEY: "1,2"}).endswith("2 beta tester(s) only")
