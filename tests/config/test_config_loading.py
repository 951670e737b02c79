"""
Tests for configuration loading via get_active_config().

Covers the packaged defaults, file and environment overrides, and
rejection of malformed settings.
"""

import logging
from uuid import UUID

import pytest

from recurrence_config import EngineSettings, get_active_config
from recurrence_config.loader import merge_settings, parse_settings
from recurrence_kernel.domain.recurrence import IntervalUnit

NO_ENV: dict[str, str] = {}


def _write(tmp_path, text: str):
    path = tmp_path / "override.yaml"
    path.write_text(text)
    return path


class TestDefaults:

    def test_packaged_defaults(self):
        settings = get_active_config(environ=NO_ENV)

        assert isinstance(settings, EngineSettings)
        assert settings.database_url == "sqlite:///recurrence.db"
        assert settings.projection_horizon_months == 6
        assert settings.default_interval_unit is IntervalUnit.WEEKLY
        assert settings.log_level == "INFO"
        assert settings.log_level_number == logging.INFO
        assert settings.system_actor_id == UUID("00000000-0000-0000-0000-000000000001")

    def test_settings_are_frozen(self):
        settings = get_active_config(environ=NO_ENV)

        with pytest.raises(AttributeError):
            settings.projection_horizon_months = 12

    def test_trace_logged(self, captured_logs):
        get_active_config(environ=NO_ENV)

        traces = [r for r in captured_logs() if r["message"] == "RECURRENCE_CONFIG_TRACE"]
        assert traces[-1]["projection_horizon_months"] == 6
        assert traces[-1]["sources"][0].endswith("defaults.yaml")


class TestOverrides:

    def test_file_overrides_defaults(self, tmp_path):
        path = _write(tmp_path, "projection_horizon_months: 12\ndefault_interval_unit: biweekly\n")

        settings = get_active_config(path, environ=NO_ENV)

        assert settings.projection_horizon_months == 12
        assert settings.default_interval_unit is IntervalUnit.BIWEEKLY
        assert settings.database_url == "sqlite:///recurrence.db"

    def test_file_from_environment(self, tmp_path):
        path = _write(tmp_path, "log_level: debug\n")

        settings = get_active_config(environ={"RECURRENCE_CONFIG": str(path)})

        assert settings.log_level == "DEBUG"

    def test_environment_wins_over_file(self, tmp_path):
        path = _write(tmp_path, "database_url: sqlite:///from-file.db\n")

        settings = get_active_config(
            path,
            environ={"RECURRENCE_DATABASE_URL": "postgresql://app@db/recurrence"},
        )

        assert settings.database_url == "postgresql://app@db/recurrence"

    def test_empty_file_keeps_defaults(self, tmp_path):
        path = _write(tmp_path, "")

        assert get_active_config(path, environ=NO_ENV).projection_horizon_months == 6

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml", environ=NO_ENV)


class TestValidation:

    @pytest.mark.parametrize(
        "text",
        [
            "retention_days: 30\n",
            "default_interval_unit: yearly\n",
            "projection_horizon_months: -1\n",
            "projection_horizon_months: soon\n",
            "log_level: LOUD\n",
            "system_actor_id: robot\n",
            "- just\n- a list\n",
        ],
    )
    def test_rejected(self, tmp_path, text):
        with pytest.raises(ValueError):
            get_active_config(_write(tmp_path, text), environ=NO_ENV)

    def test_numeric_string_horizon_accepted(self):
        settings = parse_settings({"database_url": "sqlite://", "projection_horizon_months": "3"})

        assert settings.projection_horizon_months == 3

    def test_database_url_required(self):
        with pytest.raises(ValueError):
            parse_settings({})

    def test_merge_later_wins(self):
        merged = merge_settings({"log_level": "INFO"}, {"log_level": "ERROR"})

        assert merged == {"log_level": "ERROR"}
