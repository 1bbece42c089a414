import os
from datetime import datetime, timezone

import pytest
import yaml

from conftest import MOCK_ADDRESS, ZERO_32
from pcl_work.lib.errors import ConfigParseError, ConfigPermissionError, InvalidTimestamp
from pcl_work.lib.state import (
    AssertionForSubmission,
    CliConfig,
    FileStateRepository,
    MemoryStateRepository,
    UserAuth,
    parse_rfc3339,
)


def _record(name="Foo", args=("bar", "baz")):
    return AssertionForSubmission(name, ZERO_32, ZERO_32, args)


def _auth():
    return UserAuth("tok", "ref", MOCK_ADDRESS, datetime(2030, 1, 1, tzinfo=timezone.utc))


def test_save_and_reload(tmp_path):
    repo = FileStateRepository.in_dir(tmp_path / ".pcl")
    doc = CliConfig(auth=_auth())
    key = doc.add_assertion_for_submission(_record())
    assert key == "Foo(bar,baz)"
    repo.save(doc)

    back = repo.load()
    assert back.get_assertion("Foo(bar,baz)") == _record()
    assert back.auth == _auth()
    assert back.to_dict() == doc.to_dict()


def test_missing_file_is_empty_document(tmp_path):
    doc = FileStateRepository(tmp_path / "none" / "config.yaml").load()
    assert doc.auth is None and doc.assertions_for_submission == {}


def test_empty_file_is_empty_document(tmp_path):
    (tmp_path / "config.yaml").write_text("")
    assert FileStateRepository(tmp_path / "config.yaml").load().keys() == []


@pytest.mark.parametrize("text", [
    "auth: [unclosed",
    "- just\n- a list\n",
    "auth:\n  access_token: t\n",
    "assertions_for_submission:\n  Foo(a):\n    assertion_contract: Foo\n"
    "    assertion_id: x\n    signature: y\n    constructor_args: [b]\n",
    "auth:\n  access_token: t\n  refresh_token: r\n  address: a\n  expires_at: soon\n",
    "assertions_for_submission: [1, 2]\n",
    "auth: [t, r]\n",
    "assertions_for_submission:\n  Foo: just-a-string\n",
    "assertions_for_submission:\n  'Foo(':\n    assertion_contract: Foo\n"
    "    assertion_id: x\n    signature: y\n    constructor_args: []\n",
    "assertions_for_submission:\n  Foo(a):\n    assertion_contract: Foo\n"
    "    assertion_id: x\n    signature: y\n    constructor_args: a\n",
])
def test_malformed_file(tmp_path, text):
    path = tmp_path / "config.yaml"
    path.write_text(text)
    with pytest.raises(ConfigParseError):
        FileStateRepository(path).load()


def test_replace_under_same_key():
    doc = CliConfig()
    doc.add_assertion_for_submission(_record())
    doc.add_assertion_for_submission(AssertionForSubmission("Foo", "0x02", "0x03", ("bar", "baz")))
    assert doc.keys() == ["Foo(bar,baz)"]
    assert doc.get_assertion("Foo(bar,baz)").assertion_id == "0x02"


def test_key_lookup_normalizes():
    doc = CliConfig()
    doc.add_assertion_for_submission(_record("Bare", ()))
    assert doc.get_assertion("Bare()") is not None
    assert doc.remove_assertion("Bare") is not None
    assert doc.keys() == []


def test_file_is_yaml_with_sorted_keys(tmp_path):
    repo = FileStateRepository(tmp_path / "config.yaml")
    doc = CliConfig()
    doc.add_assertion_for_submission(_record("Zed", ()))
    doc.add_assertion_for_submission(_record("Alpha", ()))
    repo.save(doc)
    data = yaml.safe_load(repo.path.read_text())
    assert list(data["assertions_for_submission"]) == ["Alpha", "Zed"]
    assert not (tmp_path / "config.yaml.tmp").exists()


@pytest.mark.skipif(hasattr(os, "geteuid") and os.geteuid() == 0, reason="root ignores permissions")
def test_unwritable_directory(tmp_path):
    locked = tmp_path / "locked"
    locked.mkdir()
    locked.chmod(0o500)
    try:
        with pytest.raises(ConfigPermissionError):
            FileStateRepository(locked / "config.yaml").save(CliConfig())
    finally:
        locked.chmod(0o700)


def test_delete(tmp_path):
    repo = FileStateRepository(tmp_path / "config.yaml")
    assert repo.delete() is False
    repo.save(CliConfig())
    assert repo.delete() is True
    assert not repo.path.exists()


def test_memory_repository_round_trips():
    repo = MemoryStateRepository()
    doc = repo.load()
    doc.add_assertion_for_submission(_record())
    repo.save(doc)
    assert repo.saves == 1
    assert repo.load().get_assertion("Foo(bar,baz)") == _record()


@pytest.mark.parametrize("text,expected", [
    ("2030-01-01T00:00:00Z", datetime(2030, 1, 1, tzinfo=timezone.utc)),
    ("2030-01-01T02:00:00+02:00", datetime(2030, 1, 1, tzinfo=timezone.utc)),
    ("2030-01-01T00:00:00", datetime(2030, 1, 1, tzinfo=timezone.utc)),
    ("2030-01-01T00:00:00.123456789Z", datetime(2030, 1, 1, 0, 0, 0, 123456, tzinfo=timezone.utc)),
    ("2030-01-01T00:00:00.1Z", datetime(2030, 1, 1, 0, 0, 0, 100000, tzinfo=timezone.utc)),
    ("2030-01-01t00:00:00z", datetime(2030, 1, 1, tzinfo=timezone.utc)),
    ("2030-01-01 00:00:00.12-01:00", datetime(2030, 1, 1, 1, 0, 0, 120000, tzinfo=timezone.utc)),
])
def test_parse_rfc3339(text, expected):
    assert parse_rfc3339(text) == expected


@pytest.mark.parametrize("text", [
    "", "soon", None, "2030-13-01T00:00:00Z", "2030-01-01T00:00Z", "2030-01-01T00:00:00+0100",
])
def test_parse_rfc3339_rejects(text):
    with pytest.raises(InvalidTimestamp):
        parse_rfc3339(text)


def test_string_literal_arguments_survive_the_file(tmp_path):
    repo = FileStateRepository(tmp_path / "config.yaml")
    doc = CliConfig()
    record = _record("Greeter", ('"hello, world"', "a,b"))
    key = doc.add_assertion_for_submission(record)
    repo.save(doc)
    assert repo.load().get_assertion(key) == record
