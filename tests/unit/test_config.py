"""
Unit tests for configuration loading.
"""

import pytest

from seedsync.config import SeederConfig, load_yaml_file
from seedsync.exceptions import ConfigurationError


@pytest.fixture
def config_file(tmp_path):
    """Write a YAML config file and return its path."""
    path = tmp_path / "seedsync.yaml"
    path.write_text(
        "backend: postgres\n"
        "postgres_host: db.internal\n"
        "postgres_port: 6432\n"
        "batch_size: 10\n"
        "delete_policy: purge\n"
    )
    return str(path)


class TestSeederConfigDefaults:
    """Test default values and validation."""

    def test_defaults(self):
        config = SeederConfig()

        assert config.backend == "scylla"
        assert config.scylla_hosts == ["localhost"]
        assert config.marker_attribute == "CF_MANAGED"
        assert config.batch_size == 25
        assert config.delete_policy == "retain"
        assert config.json_logging is False

    @pytest.mark.parametrize("kwargs,message", [
        ({"backend": "dynamo"}, "Invalid backend"),
        ({"delete_policy": "drop"}, "Invalid delete policy"),
        ({"batch_size": 0}, "batch_size"),
        ({"response_timeout": 0}, "response_timeout"),
        ({"timeout_margin": -1}, "timeout_margin"),
        ({"marker_attribute": ""}, "marker_attribute"),
        ({"scylla_hosts": []}, "ScyllaDB host"),
    ])
    def test_invalid_values(self, kwargs, message):
        with pytest.raises(ConfigurationError, match=message):
            SeederConfig(**kwargs)


class TestSeederConfigLoad:
    """Test layered loading from YAML and environment."""

    def test_load_without_sources(self):
        assert SeederConfig.load(environ={}) == SeederConfig()

    def test_load_yaml(self, config_file):
        config = SeederConfig.load(config_file, environ={})

        assert config.backend == "postgres"
        assert config.postgres_host == "db.internal"
        assert config.postgres_port == 6432
        assert config.batch_size == 10
        assert config.delete_policy == "purge"

    def test_config_file_from_env(self, config_file):
        config = SeederConfig.load(environ={"SEED_CONFIG_FILE": config_file})

        assert config.backend == "postgres"

    def test_env_overrides_yaml(self, config_file):
        """Test environment variables win over the file."""
        config = SeederConfig.load(config_file, environ={
            "SEED_STORE_BACKEND": "memory",
            "SEED_BATCH_SIZE": "5",
        })

        assert config.backend == "memory"
        assert config.batch_size == 5
        assert config.postgres_host == "db.internal"

    def test_env_coercion(self):
        config = SeederConfig.load(environ={
            "SCYLLA_HOSTS": "scylla-1, scylla-2,",
            "SCYLLA_PORT": "19042",
            "SEED_RESPONSE_TIMEOUT": "2.5",
            "JSON_LOGGING": "true",
            "PUSHGATEWAY_URL": "pushgateway:9091",
        })

        assert config.scylla_hosts == ["scylla-1", "scylla-2"]
        assert config.scylla_port == 19042
        assert config.response_timeout == 2.5
        assert config.json_logging is True
        assert config.pushgateway_url == "pushgateway:9091"

    def test_empty_env_values_ignored(self):
        config = SeederConfig.load(environ={"SEED_STORE_BACKEND": ""})

        assert config.backend == "scylla"

    def test_invalid_env_number(self):
        with pytest.raises(ConfigurationError, match="batch_size"):
            SeederConfig.load(environ={"SEED_BATCH_SIZE": "many"})

    def test_unknown_yaml_key(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("backend: memory\nbogus: 1\n")

        with pytest.raises(ConfigurationError, match="Unknown configuration keys"):
            SeederConfig.load(str(path), environ={})


class TestLoadYamlFile:
    """Test YAML file reading."""

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="Cannot read"):
            load_yaml_file(str(tmp_path / "absent.yaml"))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("backend: [unclosed\n")

        with pytest.raises(ConfigurationError):
            load_yaml_file(str(path))

    def test_non_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(ConfigurationError, match="mapping"):
            load_yaml_file(str(path))

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")

        assert load_yaml_file(str(path)) == {}
