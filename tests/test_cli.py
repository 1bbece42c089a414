import json
from datetime import datetime, timezone
from unittest import mock

import pytest

from conftest import DummyResp, MOCK_ADDRESS, ZERO_32, rpc_success
from pcl import cli
from pcl_work.lib.flatten import PathConcat
from pcl_work.lib.state import CliConfig, FileStateRepository, UserAuth

POST = "pcl_work.lib.da_client.requests.post"
DA_URL = "http://127.0.0.1:5001"


@pytest.fixture(autouse=True)
def _no_pcl_env(monkeypatch):
    for var in ("PCL_DA_URL", "PCL_DAPP_URL", "PCL_AUTH_URL", "PCL_CONFIG_DIR",
                "PCL_ROOT", "PCL_SRC", "PCL_OUT"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def config_dir(tmp_path):
    return tmp_path / ".pcl"


@pytest.fixture
def path_concat_only(monkeypatch):
    monkeypatch.setattr("pcl_work.lib.flatten.DEFAULT_STRATEGIES", (PathConcat(),))


def _store_argv(config_dir, root, *extra):
    return ["--config-dir", str(config_dir), *extra, "store", "MockAssertion", MOCK_ADDRESS,
            "-r", str(root), "--no-build", "-u", DA_URL]


def test_store_prints_next_steps(mock_project, config_dir, path_concat_only, capsys):
    with mock.patch(POST, return_value=DummyResp(payload=rpc_success())):
        assert cli.main(_store_argv(config_dir, mock_project)) == 0
    out = capsys.readouterr().out
    assert f"pcl submit -a 'MockAssertion({MOCK_ADDRESS})' -p <project_name>" in out
    assert FileStateRepository.in_dir(config_dir).load().keys() == [f"MockAssertion({MOCK_ADDRESS})"]


def test_store_json_output_is_clean(mock_project, config_dir, path_concat_only, capsys):
    with mock.patch(POST, return_value=DummyResp(payload=rpc_success())):
        assert cli.main(_store_argv(config_dir, mock_project, "--json")) == 0
    captured = capsys.readouterr()
    out = json.loads(captured.out)
    assert out["status"] == "success"
    assert out["assertion_id"] == ZERO_32
    assert out["constructor_args"] == [MOCK_ADDRESS]
    assert "[STORE]" in captured.err


def test_store_failure_exits_nonzero(mock_project, config_dir, path_concat_only, capsys):
    with mock.patch(POST, return_value=DummyResp(status_code=401)):
        assert cli.main(_store_argv(config_dir, mock_project)) == 1
    assert "pcl auth login" in capsys.readouterr().err
    assert not (config_dir / "config.yaml").exists()


def test_submit_without_login(config_dir, capsys):
    assert cli.main(["--config-dir", str(config_dir), "submit", "-p", "demo"]) == 1
    assert "pcl auth login" in capsys.readouterr().err


def test_auth_status_and_logout(config_dir, capsys):
    repo = FileStateRepository.in_dir(config_dir)
    repo.save(CliConfig(auth=UserAuth("tok", "ref", MOCK_ADDRESS,
                                      datetime(2000, 1, 1, tzinfo=timezone.utc))))

    assert cli.main(["--config-dir", str(config_dir), "auth", "status"]) == 0
    assert "expired" in capsys.readouterr().out

    assert cli.main(["--config-dir", str(config_dir), "auth", "logout"]) == 0
    assert repo.load().auth is None
    assert cli.main(["--config-dir", str(config_dir), "auth", "status"]) == 0
    assert "Not logged in" in capsys.readouterr().out


def test_config_show_masks_tokens_and_delete(config_dir, capsys):
    repo = FileStateRepository.in_dir(config_dir)
    repo.save(CliConfig(auth=UserAuth("secret-access-token", "secret-refresh-token", MOCK_ADDRESS,
                                      datetime(2030, 1, 1, tzinfo=timezone.utc))))

    assert cli.main(["--config-dir", str(config_dir), "config", "show"]) == 0
    out = capsys.readouterr().out
    assert "secret-access-token" not in out
    assert MOCK_ADDRESS in out

    assert cli.main(["--config-dir", str(config_dir), "config", "delete"]) == 0
    assert not repo.path.exists()


def test_malformed_state_file(config_dir, capsys):
    config_dir.mkdir()
    (config_dir / "config.yaml").write_text("auth: [unclosed")
    assert cli.main(["--config-dir", str(config_dir), "config", "show"]) == 1
    assert "Failed to parse config file" in capsys.readouterr().err


def test_license_header_names_this_project():
    assert "Copyright 2025 The pcl Authors" in cli.__doc__
    assert "Apache License, Version 2.0" in cli.__doc__
