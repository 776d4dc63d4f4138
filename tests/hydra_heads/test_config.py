from pathlib import Path

import pytest

import hydra_heads.config as config
import hydra_heads.paths as paths


def test_defaults_without_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(paths, "default_home", lambda: Path("/data/hydra"))

    settings = config.load_settings({})

    assert settings.home == Path("/data/hydra")
    assert settings.registry_file == Path("/data/hydra/map")
    assert settings.max_sessions == 0
    assert settings.limit_enabled is False
    assert settings.pr_cache_ttl == 300
    assert settings.ai_command == "claude"
    assert settings.skip_ai is False
    assert settings.lock_stale_seconds == 60.0
    assert settings.message_retention_days == 7.0


def test_environment_overrides() -> None:
    settings = config.load_settings(
        {
            "HYDRA_HOME": "/srv/hydra",
            "HYDRA_MAP": "/srv/custom-map",
            "HYDRA_MAX_SESSIONS": " 4 ",
            "HYDRA_PR_CACHE_TTL": "60",
            "HYDRA_AI_COMMAND": "  aider --yes ",
            "HYDRA_SKIP_AI": "yes",
            "HYDRA_LOCK_STALE_SECONDS": "30",
            "HYDRA_MESSAGE_RETENTION_DAYS": "1.5",
        }
    )

    assert settings.home == Path("/srv/hydra")
    assert settings.registry_file == Path("/srv/custom-map")
    assert settings.max_sessions == 4
    assert settings.limit_enabled is True
    assert settings.pr_cache_ttl == 60
    assert settings.ai_command == "aider --yes"
    assert settings.skip_ai is True
    assert settings.lock_stale_seconds == 30.0
    assert settings.message_retention_days == 1.5


def test_blank_values_fall_back_to_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(paths, "default_home", lambda: Path("/data/hydra"))

    settings = config.load_settings({"HYDRA_HOME": "  ", "HYDRA_MAX_SESSIONS": ""})

    assert settings.home == Path("/data/hydra")
    assert settings.max_sessions == 0


def test_home_expands_user(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HOME", "/home/tester")

    settings = config.load_settings({"HYDRA_HOME": "~/hydra"})

    assert settings.home == Path("/home/tester/hydra")


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("HYDRA_MAX_SESSIONS", "many"),
        ("HYDRA_MAX_SESSIONS", "-1"),
        ("HYDRA_LOCK_STALE_SECONDS", "0"),
    ],
)
def test_invalid_values_exit_with_variable_name(
    capsys: pytest.CaptureFixture[str], name: str, value: str
) -> None:
    with pytest.raises(SystemExit) as excinfo:
        config.load_settings({name: value})

    assert excinfo.value.code == 1
    assert name in capsys.readouterr().err


def test_reads_process_environment_by_default(
    monkeypatch: pytest.MonkeyPatch, home: Path
) -> None:
    monkeypatch.setenv("HYDRA_MAX_SESSIONS", "2")

    settings = config.load_settings()

    assert settings.home == home
    assert settings.max_sessions == 2
