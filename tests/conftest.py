"""
Pytest fixtures for code-sandbox tests.
"""

import os
import shutil

import pytest

from code_sandbox.config import EngineConfig
from code_sandbox.executor import CodeSandbox
from code_sandbox.security import SecurityPolicy


def requires(*tools):
    """Skip unless every toolchain binary is on PATH."""
    missing = [tool for tool in tools if shutil.which(tool) is None]
    return pytest.mark.skipif(bool(missing), reason=f"missing toolchain: {', '.join(missing)}")


@pytest.fixture
def base_dir(tmp_path):
    return str(tmp_path / "sandbox")


@pytest.fixture
def config(base_dir):
    return EngineConfig(base_dir=base_dir, timeout_seconds=10)


@pytest.fixture
def sandbox(config):
    """Sandbox with the default denylist."""
    return CodeSandbox(config)


@pytest.fixture
def permissive_sandbox(config):
    """Sandbox with an empty policy, for programs that read stdin via denylisted APIs."""
    return CodeSandbox(config, policy=SecurityPolicy())


@pytest.fixture
def leftover_files(base_dir):
    def collect():
        if not os.path.exists(base_dir):
            return []
        found = []
        for root, dirs, files in os.walk(base_dir):
            found.extend(os.path.join(root, name) for name in dirs + files)
        return found

    return collect
