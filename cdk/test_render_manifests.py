"""Unit tests for the manifest rendering script."""

import json
import sys

import pytest
import yaml

from render_manifests import TOKEN_PLACEHOLDER, load_context, main
from stacks.config import ConfigurationError


@pytest.fixture
def cdk_json(tmp_path):
    path = tmp_path / "cdk.json"
    path.write_text(json.dumps({
        "app": "python3 app.py",
        "context": {"agentNamespace": "agents", "agentReplicas": 3},
    }))
    return path


def test_load_context_applies_overrides(cdk_json):
    context = load_context(str(cdk_json), ["agentImage=agent:1", "agentReplicas=5"])

    assert context == {"agentNamespace": "agents", "agentImage": "agent:1", "agentReplicas": "5"}


def test_load_context_rejects_bad_override(cdk_json):
    with pytest.raises(ConfigurationError):
        load_context(str(cdk_json), ["agentImage"])


def test_main_renders_yaml(cdk_json, capsys, monkeypatch):
    monkeypatch.setattr(sys, "argv", ["render_manifests.py", "--cdk-json", str(cdk_json),
                                      "-c", "agentImage=agent:1"])

    assert main() == 0

    documents = list(yaml.safe_load_all(capsys.readouterr().out))
    assert [d["kind"] for d in documents][0] == "Namespace"
    assert documents[2]["stringData"]["PULUMI_AGENT_TOKEN"] == TOKEN_PLACEHOLDER
    assert documents[-1]["spec"]["replicas"] == 3


def test_main_reports_missing_image(cdk_json, monkeypatch):
    monkeypatch.delenv("AGENT_IMAGE", raising=False)
    monkeypatch.setattr(sys, "argv", ["render_manifests.py", "--cdk-json", str(cdk_json)])

    assert main() == 1
