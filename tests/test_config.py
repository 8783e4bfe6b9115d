"""
Тесты конфигурации.

Тестирует:
- parse_size / mask_secret
- Группы настроек: значения по умолчанию, env, YAML
"""

import pytest
from pydantic import ValidationError

from usersync.config.database import DatabaseSettings
from usersync.config.services import HttpServerSettings, RabbitMQSettings
from usersync.shared.exceptions import ConfigurationError
from usersync.utility.helpers import mask_secret, parse_size


class TestHelpers:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("100kb", 100 * 1024),
            ("1mb", 1024 ** 2),
            ("1.5KB", 1536),
            ("512", 512),
            (" 2 gb ", 2 * 1024 ** 3),
        ],
    )
    def test_parse_size(self, value, expected):
        assert parse_size(value) == expected

    @pytest.mark.parametrize("value", ["", "lots", "10 tb", "-1kb"])
    def test_parse_size_invalid(self, value):
        with pytest.raises(ConfigurationError):
            parse_size(value)

    def test_mask_secret(self):
        assert mask_secret("password") == "***"
        assert mask_secret("password", visible=2) == "pa***"
        assert mask_secret(None) == ""


class TestSettings:
    def test_rabbitmq_vhosts(self, yaml_config_dir):
        rabbit = RabbitMQSettings(home_vhost="h", work_vhost="w", password="pw")

        assert rabbit.vhost_names == {"home": "h", "work": "w"}
        assert rabbit.broker_config().url("h").endswith("@localhost:5672/h")
        assert rabbit.broker_config().prefetch_count == 10

    def test_http_body_limit(self, yaml_config_dir):
        assert HttpServerSettings(body_limit="2kb").body_limit_bytes == 2048

    def test_http_body_limit_invalid(self, yaml_config_dir):
        with pytest.raises(ValidationError):
            HttpServerSettings(body_limit="huge")

    def test_database_dsn_quotes_password(self, yaml_config_dir):
        db = DatabaseSettings(user="app", password="p@ss:word", host="db", port=5433, database="users")

        assert db.dsn == "postgresql://app:p%40ss%3Aword@db:5433/users"

    def test_yaml_group(self, yaml_config_dir):
        (yaml_config_dir / "usersync.yaml").write_text(
            "database:\n  host: db.internal\n  port: 6432\nhttp:\n  port: 8080\n",
            encoding="utf-8",
        )

        assert DatabaseSettings().host == "db.internal"
        assert DatabaseSettings().port == 6432
        assert HttpServerSettings().port == 8080

    def test_environment_file_wins(self, yaml_config_dir):
        (yaml_config_dir / "usersync.yaml").write_text("http:\n  port: 8080\n", encoding="utf-8")
        (yaml_config_dir / "usersync.test.yaml").write_text("http:\n  port: 9090\n", encoding="utf-8")

        assert HttpServerSettings().port == 9090

    def test_env_overrides_yaml(self, yaml_config_dir, monkeypatch):
        (yaml_config_dir / "usersync.yaml").write_text("http:\n  port: 8080\n", encoding="utf-8")
        monkeypatch.setenv("HTTP_PORT", "8181")

        assert HttpServerSettings().port == 8181
