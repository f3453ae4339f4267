import importlib.util
from pathlib import Path

import pytest

SCRIPT = Path(__file__).resolve().parents[2] / "scripts" / "run_bridge_service.py"


@pytest.fixture
def script_module():
    spec = importlib.util.spec_from_file_location("run_bridge_service", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_parse_arguments_defaults(script_module):
    args = script_module.parse_arguments([])
    assert args.host == "127.0.0.1"
    assert args.port == 8765


def test_parse_arguments_overrides(script_module, tmp_path):
    args = script_module.parse_arguments(["--port", "9000", "--storage-root", str(tmp_path)])
    assert args.port == 9000
    assert args.storage_root == str(tmp_path)
