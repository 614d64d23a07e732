"""Tests for the HTTP surface."""

import pytest
from conftest import requires
from fastapi.testclient import TestClient

from code_sandbox import main
from code_sandbox.errors import SandboxInfrastructureError
from code_sandbox.executor import CodeSandbox
from code_sandbox.orchestrator import TestOrchestrator


@pytest.fixture
def client(monkeypatch, config):
    sandbox = CodeSandbox(config)
    monkeypatch.setattr(main, "sandbox", sandbox)
    monkeypatch.setattr(main, "orchestrator", TestOrchestrator(sandbox))
    return TestClient(main.app)


def test_unsupported_language_is_bad_request(client):
    resp = client.post("/execute", json={"code": "print(1)", "language": "cobol"})

    assert resp.status_code == 400
    assert "Unsupported language" in resp.json()["detail"]


def test_security_violation_is_bad_request(client):
    resp = client.post("/execute", json={"code": "import os", "language": "python"})

    assert resp.status_code == 400
    assert "Security violation" in resp.json()["detail"]


def test_code_that_is_not_utf8_is_bad_request(client):
    body = b'{"code": "print(\\ud800)", "language": "python"}'

    resp = client.post("/execute", content=body, headers={"content-type": "application/json"})

    assert resp.status_code == 400
    assert "not valid UTF-8" in resp.json()["detail"]


def test_infrastructure_fault_is_unavailable(client, monkeypatch):
    class Broken(CodeSandbox):
        def execute(self, code, language, stdin=None):
            raise SandboxInfrastructureError("disk full")

    monkeypatch.setattr(main, "sandbox", Broken())

    resp = client.post("/execute", json={"code": "print(1)", "language": "python"})

    assert resp.status_code == 503


def test_languages(client):
    resp = client.get("/languages")

    assert resp.status_code == 200
    assert {item["language"] for item in resp.json()} == {"cpp", "c", "python", "python2", "java", "javascript"}


def test_health(client, base_dir):
    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.json()["base_dir"] == base_dir


@requires("python3")
def test_execute(client):
    resp = client.post("/execute", json={"code": "print(input())", "language": "python", "input": "42"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["stdout"] == "42"
    assert body["status"] == "ok"


@requires("python3")
def test_run_tests(client):
    payload = {
        "code": "import json\nprint(sum(json.loads(input())))",
        "language": "python",
        "test_cases": [{"input": "[1,2,3,4,5]", "output": "15"}, {"input": "[]", "output": "0"}],
    }

    resp = client.post("/run-tests", json=payload)

    assert resp.status_code == 200
    body = resp.json()
    assert body["passed_tests"] == 2
    assert body["success_rate"] == 100
