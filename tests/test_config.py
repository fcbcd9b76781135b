"""Unit tests for devcluster.local.config."""

import json
from pathlib import Path

import pytest

import devcluster.settings as default_settings
from devcluster.local.config import MergedSettings, parse_launch_specs
from devcluster.local.models import LaunchSpec


@pytest.fixture
def overrides_path(tmp_path, monkeypatch):
    path = tmp_path / "overrides.json"
    monkeypatch.setattr(default_settings, "OVERRIDES_JSON_PATH", path)
    return path


class TestParseLaunchSpecs:
    def test_preserves_order(self, tmp_path):
        specs = parse_launch_specs(
            [
                {"name": "a", "executable": "/bin/a", "config": "/c/1.toml"},
                {"name": "c", "executable": "/bin/a", "config": "/c/3.toml"},
                {"name": "b", "executable": "/bin/a", "config": "/c/2.toml"},
            ],
            tmp_path,
            30,
        )
        assert [s.name for s in specs] == ["a", "c", "b"]

    def test_accepts_prebuilt_specs(self, tmp_path):
        spec = LaunchSpec(Path("/bin/a"), Path("/c/1.toml"))
        assert parse_launch_specs([spec], tmp_path, 30) == [spec]

    def test_duplicate_names_rejected(self, tmp_path):
        with pytest.raises(ValueError, match="unique"):
            parse_launch_specs(
                [
                    {"executable": "/bin/a", "config": "/c/node.toml"},
                    {"executable": "/bin/b", "config": "/d/node.toml"},
                ],
                tmp_path,
                30,
            )

    def test_unsupported_entry_rejected(self, tmp_path):
        with pytest.raises(ValueError, match="Unsupported"):
            parse_launch_specs(["/bin/a -c x"], tmp_path, 30)


class TestDefaults:
    def test_default_cluster_is_three_meta_nodes_in_launch_order(self, overrides_path):
        settings = MergedSettings()
        assert [s.name for s in settings.LAUNCH_SPECS] == ["meta-1", "meta-3", "meta-2"]
        assert [s.config_path.name for s in settings.LAUNCH_SPECS] == [
            "databend-meta-node-1.toml",
            "databend-meta-node-3.toml",
            "databend-meta-node-2.toml",
        ]
        assert all(s.executable_path.name == "databend-meta" for s in settings.LAUNCH_SPECS)

    def test_default_stop_patterns(self, overrides_path):
        settings = MergedSettings()
        assert settings.STOP_PATTERNS == ["databend-meta", "databend-query"]
        assert settings.LAUNCH_DELAY_SECONDS == 2

    def test_get_all_settings_exposes_uppercase_keys(self, overrides_path):
        all_settings = MergedSettings().get_all_settings()
        assert "PID_FILE_PATH" in all_settings
        assert "MODIFIABLE_SETTINGS" in all_settings
        assert all(key.isupper() for key in all_settings)


class TestOverrides:
    def test_modifiable_values_are_applied_and_coerced(self, overrides_path):
        overrides_path.write_text(json.dumps({
            "LAUNCH_DELAY_SECONDS": "0.5",
            "STOP_BY_PATTERN": "false",
            "STOP_PATTERNS": ["my-node"],
        }))
        settings = MergedSettings()
        assert settings.LAUNCH_DELAY_SECONDS == 0.5
        assert settings.STOP_BY_PATTERN is False
        assert settings.STOP_PATTERNS == ["my-node"]

    def test_non_modifiable_and_unknown_keys_ignored(self, overrides_path):
        overrides_path.write_text(json.dumps({"PID_FILE_PATH": "/tmp/elsewhere", "NO_SUCH_KEY": 1}))
        settings = MergedSettings()
        assert settings.PID_FILE_PATH == default_settings.PID_FILE_PATH
        assert not hasattr(settings, "NO_SUCH_KEY")

    def test_launch_specs_override(self, overrides_path):
        overrides_path.write_text(json.dumps({
            "LAUNCH_SPECS": [
                {
                    "name": "solo",
                    "executable": "/usr/bin/databend-meta",
                    "config": "/etc/solo.toml",
                    "readiness": {"kind": "log", "target": "started", "timeout": 5},
                }
            ]
        }))
        settings = MergedSettings()
        assert len(settings.LAUNCH_SPECS) == 1
        assert settings.LAUNCH_SPECS[0].name == "solo"
        assert settings.LAUNCH_SPECS[0].readiness.timeout == 5

    def test_invalid_launch_specs_fall_back_to_defaults(self, overrides_path):
        overrides_path.write_text(json.dumps({"LAUNCH_SPECS": [{"name": "broken"}]}))
        settings = MergedSettings()
        assert [s.name for s in settings.LAUNCH_SPECS] == ["meta-1", "meta-3", "meta-2"]

    def test_malformed_json_is_ignored(self, overrides_path):
        overrides_path.write_text("{not json")
        settings = MergedSettings()
        assert settings.LAUNCH_DELAY_SECONDS == default_settings.LAUNCH_DELAY_SECONDS

    def test_bad_number_keeps_default(self, overrides_path):
        overrides_path.write_text(json.dumps({"GRACEFUL_SHUTDOWN_TIMEOUT": "soon"}))
        settings = MergedSettings()
        assert settings.GRACEFUL_SHUTDOWN_TIMEOUT == default_settings.GRACEFUL_SHUTDOWN_TIMEOUT

    @pytest.mark.parametrize("launch_specs", [
        None,
        5,
        [{"executable": None, "config": "/etc/node.toml"}],
        [{"executable": "/bin/a", "config": "/etc/node.toml", "readiness": "tcp"}],
        [{"executable": "/bin/a", "config": "/etc/node.toml", "readiness": {"kind": "log", "target": "up", "timeout": None}}],
    ])
    def test_wrongly_typed_launch_specs_fall_back_to_defaults(self, overrides_path, launch_specs):
        overrides_path.write_text(json.dumps({"LAUNCH_SPECS": launch_specs}))
        settings = MergedSettings()
        assert [s.name for s in settings.LAUNCH_SPECS] == ["meta-1", "meta-3", "meta-2"]

    @pytest.mark.parametrize("patterns", [5, "databend", None, ["databend", 7]])
    def test_wrongly_typed_stop_patterns_keep_default(self, overrides_path, patterns):
        overrides_path.write_text(json.dumps({"STOP_PATTERNS": patterns, "LAUNCH_DELAY_SECONDS": 1}))
        settings = MergedSettings()
        assert settings.STOP_PATTERNS == default_settings.STOP_PATTERNS
        assert settings.LAUNCH_DELAY_SECONDS == 1


class TestParseLaunchSpecTypes:
    def test_non_list_rejected(self, tmp_path):
        with pytest.raises(ValueError, match="must be a list"):
            parse_launch_specs(None, tmp_path, 30)

    def test_null_path_rejected(self, tmp_path):
        with pytest.raises(ValueError, match="Invalid path"):
            parse_launch_specs([{"executable": "/bin/a", "config": None}], tmp_path, 30)

    def test_readiness_must_be_a_mapping(self, tmp_path):
        with pytest.raises(ValueError, match="mapping"):
            parse_launch_specs(
                [{"executable": "/bin/a", "config": "/c/1.toml", "readiness": "tcp"}], tmp_path, 30
            )
