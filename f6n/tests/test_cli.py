from unittest.mock import MagicMock

import pytest

from f6n import cli
from f6n.version import __version__


@pytest.fixture(autouse=True)
def isolated(monkeypatch, tmp_path):
    for name in ("CLOUD_PROVIDER", "GCP_PROJECT", "AWS_PROFILE", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(cli, "setup_logging", MagicMock())


def test_version(capsys):
    assert cli.run(["--version"]) == 0
    assert f"f6n version {__version__}" in capsys.readouterr().out


def test_invalid_provider(capsys):
    assert cli.run(["--provider", "azure"]) == 1
    assert "invalid configuration" in capsys.readouterr().err


def test_gcp_requires_project(capsys):
    assert cli.run(["--provider", "gcp"]) == 1
    assert "GCP project ID is required" in capsys.readouterr().err


def test_config_from_args():
    args = cli.build_parser().parse_args(
        ["--provider", "SAMPLE", "--region", "eu-west-1", "--env", "prod", "--log-level", "debug"]
    )

    config = cli.config_from_args(args)

    assert config.CLOUD_PROVIDER == "sample"
    assert config.AWS_REGION == "eu-west-1"
    assert config.STAGE == "prod"
    assert config.LOG_LEVEL == "DEBUG"


def test_run_starts_app(monkeypatch):
    app_cls = MagicMock()
    monkeypatch.setattr("f6n.ui.app.F6nApp", app_cls)

    assert cli.run(["--provider", "sample", "--env", "demo"]) == 0

    machine, provider, archives = app_cls.call_args.args
    assert machine.state.provider.name == "sample"
    assert machine.state.provider.environment == "demo"
    assert app_cls.call_args.kwargs["stream_interval"] == 2.0
    app_cls.return_value.run.assert_called_once()
