"""Tests for pipeline configuration."""

import pytest
from click.testing import CliRunner

from logship.cli import cli
from logship.config import CollectorConfig, ConsoleConfig, PipelineConfig
from logship.exceptions import ConfigurationError
from logship.models import Level, SinkKind, TrustPolicy

PIN = "AB:" * 31 + "AB"


@pytest.fixture
def clean_env(monkeypatch):
    """Remove LOGSHIP_* variables inherited from the environment."""
    import os

    for key in list(os.environ):
        if key.startswith("LOGSHIP_"):
            monkeypatch.delenv(key)
    return monkeypatch


class TestDefaults:
    """Tests for default configuration."""

    def test_pipeline_defaults(self):
        config = PipelineConfig()

        assert config.level is Level.DEBUG
        assert config.shutdown_grace == 5.0
        assert config.console.enabled is True
        assert config.collector.enabled is False
        config.validate()

    def test_collector_defaults(self):
        collector = CollectorConfig()
        assert collector.policy is TrustPolicy.STRICT
        assert collector.payload_format == "record"


class TestFromEnv:
    """Tests for environment-based configuration."""

    def test_empty_environment(self, clean_env):
        config = PipelineConfig.from_env()

        assert config.minimum_level == "Debug"
        assert config.static_properties == {}
        assert config.collector.enabled is False

    def test_full_environment(self, clean_env):
        clean_env.setenv("LOGSHIP_MINIMUM_LEVEL", "Warning")
        clean_env.setenv("LOGSHIP_STATIC_PROPERTIES", "Application=weather-api, Region=eu")
        clean_env.setenv("LOGSHIP_CONSOLE_FORMAT", "JSON")
        clean_env.setenv("LOGSHIP_COLLECTOR_ENDPOINT", "https://localhost:8088")
        clean_env.setenv("LOGSHIP_COLLECTOR_TOKEN", "test-hec-token")
        clean_env.setenv("LOGSHIP_SOURCE_TYPE", "Weather-Logs")
        clean_env.setenv("LOGSHIP_TRUST_POLICY", "TrustAll")
        clean_env.setenv("LOGSHIP_COLLECTOR_MAX_PENDING", "50")

        config = PipelineConfig.from_env()

        assert config.level is Level.WARNING
        assert config.static_properties == {"Application": "weather-api", "Region": "eu"}
        assert config.console.format == "json"
        assert config.collector.enabled is True
        assert config.collector.source_type == "Weather-Logs"
        assert config.collector.policy is TrustPolicy.TRUST_ALL
        assert config.collector.max_pending == 50
        config.validate()

    def test_collector_can_be_disabled_explicitly(self, clean_env):
        clean_env.setenv("LOGSHIP_COLLECTOR_ENDPOINT", "https://localhost:8088")
        clean_env.setenv("LOGSHIP_COLLECTOR_ENABLED", "false")

        assert PipelineConfig.from_env().collector.enabled is False

    def test_invalid_number(self, clean_env):
        clean_env.setenv("LOGSHIP_COLLECTOR_TIMEOUT", "soon")

        with pytest.raises(ConfigurationError) as exc_info:
            PipelineConfig.from_env()

        assert exc_info.value.config_key == "LOGSHIP_COLLECTOR_TIMEOUT"

    def test_invalid_static_properties(self, clean_env):
        clean_env.setenv("LOGSHIP_STATIC_PROPERTIES", "novalue")

        with pytest.raises(ConfigurationError):
            PipelineConfig.from_env()


class TestValidation:
    """Tests for validate()."""

    @pytest.mark.parametrize(
        "overrides,key",
        [
            ({"endpoint": None}, "collector.endpoint"),
            ({"endpoint": "localhost:8088"}, "collector.endpoint"),
            ({"endpoint": "ftp://localhost"}, "collector.endpoint"),
            ({"auth_token": ""}, "collector.auth_token"),
            ({"trust_policy": "Sometimes"}, "collector.trust_policy"),
            ({"trust_policy": "PinnedFingerprint"}, "collector.pinned_fingerprint"),
            (
                {"trust_policy": "PinnedFingerprint", "pinned_fingerprint": "abc"},
                "collector.pinned_fingerprint",
            ),
            ({"ca_bundle": "/nonexistent/ca.pem"}, "collector.ca_bundle"),
            ({"timeout": 0}, "collector.timeout"),
            ({"max_workers": 0}, "collector.max_workers"),
            ({"max_pending": 0}, "collector.max_pending"),
            ({"payload_format": "xml"}, "collector.payload_format"),
        ],
    )
    def test_invalid_collector(self, overrides, key):
        settings = {
            "enabled": True,
            "endpoint": "https://localhost:8088",
            "auth_token": "test-hec-token",
        }
        settings.update(overrides)

        with pytest.raises(ConfigurationError) as exc_info:
            CollectorConfig(**settings).validate()

        assert exc_info.value.config_key == key

    def test_pinned_fingerprint_accepted(self):
        CollectorConfig(
            enabled=True,
            endpoint="https://localhost:8088",
            auth_token="t",
            trust_policy="PinnedFingerprint",
            pinned_fingerprint=PIN,
        ).validate()

    def test_disabled_collector_not_checked(self):
        CollectorConfig(enabled=False, endpoint="nonsense").validate()

    @pytest.mark.parametrize(
        "console,key",
        [
            (ConsoleConfig(format="xml"), "console.format"),
            (ConsoleConfig(stream="file"), "console.stream"),
        ],
    )
    def test_invalid_console(self, console, key):
        with pytest.raises(ConfigurationError) as exc_info:
            PipelineConfig(console=console).validate()
        assert exc_info.value.config_key == key

    def test_invalid_minimum_level(self):
        with pytest.raises(ConfigurationError) as exc_info:
            PipelineConfig(minimum_level="Loud").validate()
        assert exc_info.value.config_key == "minimum_level"

    def test_negative_grace(self):
        with pytest.raises(ConfigurationError):
            PipelineConfig(shutdown_grace=-1).validate()


class TestYaml:
    """Tests for YAML configuration files."""

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "logship.yaml"
        path.write_text(
            "minimum_level: Information\n"
            "static_properties:\n"
            "  Application: weather-api\n"
            "console:\n"
            "  format: json\n"
            "collector:\n"
            "  enabled: true\n"
            "  endpoint: https://localhost:8088\n"
            "  auth_token: test-hec-token\n"
            "  source_type: Weather-Logs\n"
            "  trust_policy: TrustAll\n"
        )

        config = PipelineConfig.from_yaml(path)

        assert config.level is Level.INFORMATION
        assert config.static_properties == {"Application": "weather-api"}
        assert config.console.format == "json"
        assert config.collector.policy is TrustPolicy.TRUST_ALL
        config.validate()

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert PipelineConfig.from_yaml(path).collector.enabled is False

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("collector: [unclosed\n")
        with pytest.raises(ConfigurationError):
            PipelineConfig.from_yaml(path)

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError):
            PipelineConfig.from_yaml(path)

    def test_unknown_key(self, tmp_path):
        path = tmp_path / "unknown.yaml"
        path.write_text("collector:\n  colour: blue\n")
        with pytest.raises(ConfigurationError):
            PipelineConfig.from_yaml(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            PipelineConfig.from_yaml(tmp_path / "missing.yaml")


class TestSinkTargets:
    """Tests for sink_targets()."""

    def test_console_and_collector(self, pipeline_config):
        targets = pipeline_config.sink_targets()

        assert [t.kind for t in targets] == [SinkKind.CONSOLE, SinkKind.HTTP_COLLECTOR]
        collector = targets[1]
        assert collector.endpoint == "https://collector.test:8088"
        assert collector.auth_token == "test-hec-token"
        assert collector.source_type == "Weather-Logs"
        assert collector.trust_policy is TrustPolicy.STRICT

    def test_no_sinks(self):
        config = PipelineConfig(console=ConsoleConfig(enabled=False))
        assert config.sink_targets() == []


class TestYamlTypes:
    """Tests for wrongly typed values in configuration files."""

    def _load(self, tmp_path, text):
        path = tmp_path / "typed.yaml"
        path.write_text(text)
        return PipelineConfig.from_yaml(path)

    @pytest.mark.parametrize(
        "line,key",
        [
            ("  timeout: fast\n", "collector.timeout"),
            ('  max_workers: "4"\n', "collector.max_workers"),
            ("  max_pending: 2.5\n", "collector.max_pending"),
            ("  auth_token: 12345\n", "collector.auth_token"),
            ("  pinned_fingerprint: [ab, cd]\n", "collector.pinned_fingerprint"),
        ],
    )
    def test_collector_value_types(self, tmp_path, line, key):
        config = self._load(
            tmp_path,
            "collector:\n"
            "  enabled: true\n"
            "  endpoint: https://localhost:8088\n"
            "  auth_token: test-hec-token\n" + line,
        )

        with pytest.raises(ConfigurationError) as exc_info:
            config.validate()

        assert exc_info.value.config_key == key

    def test_quoted_boolean_rejected(self, tmp_path):
        """Test a quoted "false" does not silently enable the collector."""
        config = self._load(tmp_path, 'collector:\n  enabled: "false"\n')

        with pytest.raises(ConfigurationError) as exc_info:
            config.validate()

        assert exc_info.value.config_key == "collector.enabled"

    def test_console_flag_type(self, tmp_path):
        config = self._load(tmp_path, "console:\n  include_trace_context: yes please\n")

        with pytest.raises(ConfigurationError) as exc_info:
            config.validate()

        assert exc_info.value.config_key == "console.include_trace_context"

    def test_shutdown_grace_type(self, tmp_path):
        config = self._load(tmp_path, "shutdown_grace: soon\n")

        with pytest.raises(ConfigurationError) as exc_info:
            config.validate()

        assert exc_info.value.config_key == "shutdown_grace"

    def test_integer_timeout_accepted(self, tmp_path):
        config = self._load(
            tmp_path,
            "shutdown_grace: 2\n"
            "collector:\n"
            "  enabled: true\n"
            "  endpoint: https://localhost:8088\n"
            "  auth_token: test-hec-token\n"
            "  timeout: 3\n",
        )
        config.validate()

    def test_check_config_reports_type_error(self, tmp_path):
        path = tmp_path / "typed.yaml"
        path.write_text(
            "collector:\n"
            "  enabled: true\n"
            "  endpoint: https://localhost:8088\n"
            "  auth_token: test-hec-token\n"
            "  timeout: fast\n"
        )

        result = CliRunner().invoke(cli, ["check-config", "-c", str(path)])

        assert result.exit_code == 1
        assert "Configuration error:" in result.output


class TestNormalization:
    """Tests for case handling of enumerated settings."""

    def test_yaml_values_lowercased(self, tmp_path):
        path = tmp_path / "upper.yaml"
        path.write_text(
            "console:\n"
            "  format: JSON\n"
            "  stream: Stderr\n"
            "collector:\n"
            "  enabled: true\n"
            "  endpoint: https://localhost:8088\n"
            "  auth_token: test-hec-token\n"
            "  payload_format: HEC\n"
        )

        config = PipelineConfig.from_yaml(path)
        config.validate()

        assert config.console.format == "json"
        assert config.console.stream == "stderr"
        assert config.collector.payload_format == "hec"

    def test_env_and_code_agree(self, clean_env):
        clean_env.setenv("LOGSHIP_CONSOLE_FORMAT", "JSON")

        assert PipelineConfig.from_env().console.format == ConsoleConfig(format="Json").format
