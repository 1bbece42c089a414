import json

import pytest

from conftest import MOCK_ABI, write_artifact
from pcl_work.lib.artifact_resolve import AssertionRef, parse_artifact, resolve_artifact
from pcl_work.lib.errors import ContractNotFound, DirectoryNotFound, MalformedArtifact


def test_ref_parse_forms():
    assert AssertionRef.parse("Foo") == AssertionRef("Foo")
    assert AssertionRef.parse("Bar.sol:Foo") == AssertionRef("Foo", "Bar.sol")


def test_candidates_default_extensions_in_order():
    assert AssertionRef("Foo").candidate_files() == ["Foo.a.sol", "Foo.sol"]
    assert AssertionRef("Foo", "Other.sol").candidate_files() == ["Other.sol"]


def test_resolves_mock_assertion(mock_project):
    art = resolve_artifact(AssertionRef("MockAssertion"), mock_project / "out")
    assert art.compiler_version == "0.8.28"
    assert art.source_path == "assertions/src/MockAssertion.a.sol"
    assert art.abi == MOCK_ABI


def test_first_candidate_wins(tmp_path):
    out = tmp_path / "out"
    write_artifact(out, "Foo.a.sol", "Foo", "src/Foo.a.sol", version="0.8.20+commit.a")
    write_artifact(out, "Foo.sol", "Foo", "src/Foo.sol", version="0.8.21+commit.b")
    assert resolve_artifact(AssertionRef("Foo"), out).source_path == "src/Foo.a.sol"


def test_falls_back_to_plain_sol(tmp_path):
    out = tmp_path / "out"
    write_artifact(out, "Foo.sol", "Foo", "src/Foo.sol")
    assert resolve_artifact(AssertionRef("Foo"), out).source_path == "src/Foo.sol"


def test_explicit_file_name(tmp_path):
    out = tmp_path / "out"
    write_artifact(out, "Many.sol", "Foo", "src/Many.sol")
    assert resolve_artifact(AssertionRef.parse("Many.sol:Foo"), out).source_path == "src/Many.sol"
    with pytest.raises(ContractNotFound):
        resolve_artifact(AssertionRef("Foo"), out)


def test_missing_out_dir(tmp_path):
    with pytest.raises(DirectoryNotFound):
        resolve_artifact(AssertionRef("Foo"), tmp_path / "nope")


def test_contract_not_found(mock_project):
    with pytest.raises(ContractNotFound) as exc:
        resolve_artifact(AssertionRef("ContractDoesNotExist"), mock_project / "out")
    assert exc.value.name == "ContractDoesNotExist"


def test_version_without_build_metadata_is_malformed():
    raw = {"abi": [], "metadata": {"compiler": {"version": "0.8.28"},
                                   "settings": {"compilationTarget": {"a.sol": "A"}}}}
    with pytest.raises(MalformedArtifact):
        parse_artifact(raw, "A")


def test_compilation_target_inverse_lookup():
    raw = {"abi": [], "metadata": {"compiler": {"version": "0.8.1+x"},
                                   "settings": {"compilationTarget": {"x.sol": "X", "a.sol": "A"}}}}
    assert parse_artifact(raw, "A").source_path == "a.sol"
    with pytest.raises(ContractNotFound):
        parse_artifact(raw, "B")


def test_metadata_as_json_string():
    meta = {"compiler": {"version": "0.8.1+x"}, "settings": {"compilationTarget": {"a.sol": "A"}}}
    art = parse_artifact({"abi": [], "rawMetadata": json.dumps(meta)}, "A")
    assert art.compiler_version == "0.8.1"


@pytest.mark.parametrize("raw", [
    [],
    {"abi": []},
    {"abi": [], "metadata": "{not json"},
    {"abi": [], "metadata": {"settings": {"compilationTarget": {"a.sol": "A"}}}},
    {"abi": [], "metadata": {"compiler": {"version": "0.8.1+x"}}},
    {"abi": "nope", "metadata": {"compiler": {"version": "0.8.1+x"},
                                 "settings": {"compilationTarget": {"a.sol": "A"}}}},
    {"abi": [], "metadata": {"compiler": "0.8.28+commit.x",
                             "settings": {"compilationTarget": {"a.sol": "A"}}}},
    {"abi": [], "metadata": {"compiler": {"version": "0.8.1+x"}, "settings": ["a.sol"]}},
    {"metadata": {"compiler": {"version": "0.8.1+x"},
                  "settings": {"compilationTarget": {"a.sol": "A"}}, "output": []}},
])
def test_malformed_shapes(raw):
    with pytest.raises(MalformedArtifact):
        parse_artifact(raw, "A")


def test_unreadable_artifact(tmp_path):
    target = tmp_path / "out" / "Foo.a.sol" / "Foo.json"
    target.parent.mkdir(parents=True)
    target.write_text("{broken")
    with pytest.raises(MalformedArtifact):
        resolve_artifact(AssertionRef("Foo"), tmp_path / "out")
