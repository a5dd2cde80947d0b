"""
SLA Policy Manager - Unit Tests
===============================
YAML loading and reload behaviour.

Run:  pytest tests/test_policy_manager.py -v
"""
from datetime import timedelta

import pytest

from src.config import Severity
from src.core import ConfigurationException
from src.sla.domain.value_objects import DeadlineCalculator
from src.sla.infrastructure.external import SLAPolicyManager

from tests.conftest import T0

POLICY_YAML = """
warning_threshold_percent: 25
policies:
  CRITICAL:
    response_hours: 0.25
    resolution_hours: 2
  high:
    response_hours: 1
    resolution_hours: 6
"""


@pytest.fixture
def policy_file(tmp_path):
    path = tmp_path / "sla_config.yaml"
    path.write_text(POLICY_YAML)
    return path


# ═══════════════════════════════════════════════════════════════════════════
# LOAD
# ═══════════════════════════════════════════════════════════════════════════
class TestLoad:
    def test_loads_policy_rows(self, policy_file):
        manager = SLAPolicyManager()
        config = manager.load(policy_file)
        assert config.warning_threshold_percent == 25
        assert config.get_policy(Severity.HIGH).resolution_hours == 6
        assert manager.get_config() is config
        assert manager.path == policy_file

    def test_rows_drive_deadlines(self, policy_file):
        manager = SLAPolicyManager()
        manager.load(policy_file)
        calc = DeadlineCalculator(manager)
        assert calc.compute_deadline(Severity.CRITICAL, T0) == T0 + timedelta(hours=2)
        assert calc.compute_deadline(Severity.MEDIUM, T0) == T0 + timedelta(hours=24)

    def test_missing_file_uses_defaults(self, tmp_path):
        manager = SLAPolicyManager()
        config = manager.load(tmp_path / "absent.yaml")
        assert config.policies == {}
        assert config.warning_threshold_percent == 20

    def test_empty_file_uses_defaults(self, tmp_path):
        path = tmp_path / "sla_config.yaml"
        path.write_text("")
        assert SLAPolicyManager().load(path).policies == {}

    @pytest.mark.parametrize("content", [
        "policies: [unbalanced",
        "policies:\n  SEV0:\n    response_hours: 1\n    resolution_hours: 2\n",
        "policies:\n  LOW:\n    response_hours: 8\n    resolution_hours: 4\n",
    ])
    def test_invalid_file_rejected(self, tmp_path, content):
        path = tmp_path / "sla_config.yaml"
        path.write_text(content)
        with pytest.raises(ConfigurationException):
            SLAPolicyManager().load(path)

    def test_config_before_load(self):
        with pytest.raises(RuntimeError):
            SLAPolicyManager().get_config()


# ═══════════════════════════════════════════════════════════════════════════
# RELOAD
# ═══════════════════════════════════════════════════════════════════════════
class TestReload:
    def test_reload_picks_up_changes(self, policy_file):
        manager = SLAPolicyManager()
        manager.load(policy_file)
        policy_file.write_text("policies:\n  HIGH:\n    response_hours: 2\n    resolution_hours: 12\n")
        assert manager.reload() is True
        assert manager.get_config().get_policy(Severity.HIGH).resolution_hours == 12
        assert manager.get_config().warning_threshold_percent == 20

    def test_bad_reload_keeps_previous_table(self, policy_file):
        manager = SLAPolicyManager()
        previous = manager.load(policy_file)
        policy_file.write_text("policies: [broken")
        assert manager.reload() is False
        assert manager.get_config() is previous

    def test_reload_before_load(self):
        assert SLAPolicyManager().reload() is False

    def test_watching_lifecycle(self, policy_file):
        manager = SLAPolicyManager()
        manager.load(policy_file)
        manager.start_watching()
        manager.stop_watching()
        assert not manager.is_watching

    def test_watch_skipped_for_missing_file(self, tmp_path):
        manager = SLAPolicyManager()
        manager.load(tmp_path / "absent.yaml")
        manager.start_watching()
        assert not manager.is_watching
