"""
Config and credential encryption tests.
"""

import pytest

from automation.config import TriggerConfig, WorkflowStorageConfig, ZoomInfoConfig, get_config, list_configs
from automation.config.base import reset_configs
from automation.config.sub_config.workflow.trigger_config import DEFAULT_POLLING_INTERVAL_MS
from automation.triggers import CredentialCipher, TriggerConfigError
from automation.triggers.credentials import REDACTED, redact, secret_values


class TestConfigs:
    """Env-backed dataclass configs"""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("TRIGGER_MIN_POLLING_INTERVAL_MS", raising=False)
        config = get_config("triggers")

        assert isinstance(config, TriggerConfig)
        assert config.default_polling_interval_ms == DEFAULT_POLLING_INTERVAL_MS == 900_000
        assert config.test_sample_size == 5
        assert get_config("zoominfo").max_requests_per_minute == 1500

    def test_reads_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("TRIGGER_MIN_POLLING_INTERVAL_MS", "5000")
        monkeypatch.setenv("ZOOMINFO_BASE_URL", "https://zi.example")
        reset_configs()

        assert get_config("triggers").min_polling_interval_ms == 5000
        assert get_config("zoominfo").base_url == "https://zi.example"
        assert get_config("workflow_storage").runs_dir == str(tmp_path / "runs")

    def test_invalid_value_falls_back_to_default(self, monkeypatch, caplog):
        monkeypatch.setenv("TRIGGER_EVENT_QUEUE_SIZE", "lots")
        reset_configs()

        assert get_config("triggers").event_queue_size == 100
        assert "TRIGGER_EVENT_QUEUE_SIZE" in caplog.text

    def test_unknown_config(self):
        with pytest.raises(KeyError):
            get_config("nope")

    def test_registered_configs(self):
        names = {cls.get_config_name() for cls in list_configs()}
        assert {"triggers", "zoominfo", "workflow_storage"} <= names

    def test_secrets_are_masked(self):
        config = TriggerConfig(credentials_encryption_key="abc")
        assert config.to_dict()["credentials_encryption_key"] == "********"
        assert config.to_dict(mask_secrets=False)["credentials_encryption_key"] == "abc"

    def test_instances_are_cached(self):
        assert get_config("workflow_storage") is get_config("workflow_storage")
        assert isinstance(get_config("workflow_storage"), WorkflowStorageConfig)
        assert isinstance(get_config("zoominfo"), ZoomInfoConfig)


class TestCredentialCipher:
    """Secret field encryption"""

    def test_only_secret_fields_are_encrypted(self):
        cipher = CredentialCipher(CredentialCipher.generate_key())
        credentials = {"type": "username_password", "username": "ops", "password": "hunter2", "apiKey": ""}

        stored = cipher.encrypt_credentials(credentials)

        assert stored["username"] == "ops"
        assert stored["type"] == "username_password"
        assert stored["password"] != "hunter2"
        assert stored["apiKey"] == ""
        assert cipher.decrypt_credentials(stored) == credentials

    def test_derived_key_works(self):
        cipher = CredentialCipher(CredentialCipher.derive_key("app-secret"))
        assert cipher.decrypt(cipher.encrypt("value")) == "value"

    def test_missing_key(self):
        with pytest.raises(TriggerConfigError):
            CredentialCipher("").encrypt("value")

    def test_key_from_environment(self, monkeypatch):
        key = CredentialCipher.generate_key()
        monkeypatch.setenv("CREDENTIALS_ENCRYPTION_KEY", key)
        reset_configs()

        token = CredentialCipher().encrypt("value")

        assert CredentialCipher(key).decrypt(token) == "value"

    def test_wrong_key(self):
        token = CredentialCipher(CredentialCipher.generate_key()).encrypt("value")
        with pytest.raises(TriggerConfigError):
            CredentialCipher(CredentialCipher.generate_key()).decrypt(token)

    def test_redact(self):
        secrets = secret_values({"apiKey": "abc", "password": "abcdef", "username": "ops"})

        text = redact("login ops/abcdef failed with key abc", secrets)

        assert text == f"login ops/{REDACTED} failed with key {REDACTED}"
