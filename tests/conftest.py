import json
import pathlib
import sys

import pytest


# Ensure repo root is on PYTHONPATH for direct package imports (e.g. `import pcl_work`).
_REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))


ZERO_32 = "0x" + "00" * 32
MOCK_ADDRESS = "0x" + "ab" * 20


class DummyResp:
    def __init__(self, *, status_code: int = 200, payload=None, text: str = ""):
        self.status_code = status_code
        self._payload = payload
        self.text = text or (json.dumps(payload) if payload is not None else "")

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


@pytest.fixture
def dummy_resp():
    return DummyResp


def rpc_success(sub_id=ZERO_32, signature=ZERO_32):
    return {"jsonrpc": "2.0", "result": {"id": sub_id, "prover_signature": signature}, "id": 1}


@pytest.fixture
def rpc_ok():
    return rpc_success


def write_artifact(out_dir: pathlib.Path, file_name: str, contract: str, source_path: str,
                   abi=None, version="0.8.28+commit.7893614a"):
    target = out_dir / file_name / f"{contract}.json"
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps({
        "abi": abi if abi is not None else [],
        "metadata": {
            "compiler": {"version": version},
            "settings": {"compilationTarget": {source_path: contract}},
        },
    }))
    return target


MOCK_ABI = [
    {"type": "constructor", "inputs": [{"name": "protocol", "type": "address", "internalType": "address"}],
     "stateMutability": "nonpayable"},
    {"type": "function", "name": "triggers", "inputs": [], "outputs": [], "stateMutability": "view"},
]


@pytest.fixture
def mock_project(tmp_path):
    """A forge-style project with one built assertion (MockAssertion)."""
    root = tmp_path / "mock-protocol"
    src = root / "assertions" / "src"
    src.mkdir(parents=True)
    (root / "lib" / "credible-std" / "src").mkdir(parents=True)
    (root / "remappings.txt").write_text("credible-std/=lib/credible-std/src/\n")

    (root / "lib" / "credible-std" / "src" / "Assertion.sol").write_text(
        "// SPDX-License-Identifier: MIT\n"
        "pragma solidity ^0.8.13;\n\n"
        "abstract contract Assertion {\n    function triggers() external view virtual;\n}\n"
    )
    (src / "Helper.sol").write_text(
        "// SPDX-License-Identifier: MIT\n"
        "pragma solidity ^0.8.13;\n\n"
        "import {Assertion} from \"credible-std/Assertion.sol\";\n\n"
        "library Helper {\n    function one() internal pure returns (uint256) { return 1; }\n}\n"
    )
    (src / "MockAssertion.a.sol").write_text(
        "// SPDX-License-Identifier: MIT\n"
        "pragma solidity ^0.8.13;\n\n"
        "import {Assertion} from \"credible-std/Assertion.sol\";\n"
        "import \"./Helper.sol\";\n\n"
        "contract MockAssertion is Assertion {\n"
        "    address public protocol;\n"
        "    constructor(address protocol_) { protocol = protocol_; }\n"
        "    function triggers() external view override {}\n"
        "}\n"
    )
    write_artifact(root / "out", "MockAssertion.a.sol", "MockAssertion",
                   "assertions/src/MockAssertion.a.sol", abi=MOCK_ABI)
    return root


@pytest.fixture(autouse=True)
def _logs_to_stdout():
    from pcl_work.lib import common
    common.log_to_stderr(False)
    yield
    common.log_to_stderr(False)
