import pytest
from pydantic import ValidationError

from f6n.config import AppConfig, load_config

ENV_VARS = (
    "CLOUD_PROVIDER",
    "AWS_REGION",
    "AWS_PROFILE",
    "STAGE",
    "GCP_PROJECT",
    "GCP_LOCATION",
    "LOG_LEVEL",
    "DOWNLOAD_DIR",
    "STREAM_POLL_INTERVAL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


class TestAppConfig:
    def test_defaults(self):
        config = AppConfig(_env_file=None)

        assert config.CLOUD_PROVIDER == "aws"
        assert config.AWS_REGION == "us-east-1"
        assert config.STAGE == "dev"
        assert config.GCP_LOCATION == "us-central1"
        assert config.DOWNLOAD_DIR == "downloads"
        assert config.STREAM_POLL_INTERVAL == 2.0
        assert config.STREAM_LOOKBACK_SECONDS == 60.0
        assert config.STREAM_BUFFER_SIZE == 1000
        assert config.region_label == "us-east-1"

    def test_environment(self, monkeypatch):
        monkeypatch.setenv("CLOUD_PROVIDER", "gcp")
        monkeypatch.setenv("GCP_PROJECT", "demo")
        monkeypatch.setenv("GCP_LOCATION", "europe-west1")

        config = AppConfig(_env_file=None)

        assert config.GCP_PROJECT == "demo"
        assert config.region_label == "europe-west1"

    def test_dotenv_file(self, tmp_path):
        (tmp_path / ".env").write_text("STAGE=prod\nAWS_REGION=eu-west-1\n")

        config = AppConfig()

        assert config.STAGE == "prod"
        assert config.AWS_REGION == "eu-west-1"

    def test_invalid_provider(self):
        with pytest.raises(ValidationError):
            AppConfig(_env_file=None, CLOUD_PROVIDER="azure")

    def test_poll_interval_must_be_positive(self, monkeypatch):
        monkeypatch.setenv("STREAM_POLL_INTERVAL", "0")
        with pytest.raises(ValidationError):
            AppConfig(_env_file=None)


def test_load_config_overrides_win(monkeypatch):
    monkeypatch.setenv("AWS_REGION", "eu-west-1")
    monkeypatch.setenv("STAGE", "staging")

    config = load_config(AWS_REGION="ap-northeast-1", STAGE=None)

    assert config.AWS_REGION == "ap-northeast-1"
    assert config.STAGE == "staging"
