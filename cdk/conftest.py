"""
Pytest configuration and shared fixtures

- agent_settings: resolved settings for a small agent pool
- stack: synthesized EksAgentStack built from agent_settings
- template: assertions Template for that stack
"""

import aws_cdk as cdk
import pytest
from aws_cdk.assertions import Template

from stacks.config import AgentSettings
from stacks.main_stack import EksAgentStack


@pytest.fixture(scope="module")
def agent_settings() -> AgentSettings:
    """Return settings for a two-replica agent pool."""
    return AgentSettings(
        namespace="agents",
        image="pulumi/customer-managed-workflow-agent:latest-amd64",
        service_url="https://api.pulumi.com",
        image_pull_policy="IfNotPresent",
        replicas=2,
        worker_service_account_name="workflow-runner",
        extra_env=[{"name": "HTTP_PROXY", "value": "http://proxy.internal:3128"}],
    )


@pytest.fixture(scope="module")
def stack(agent_settings) -> EksAgentStack:
    """Synthesize the full stack once per test module."""
    app = cdk.App()
    return EksAgentStack(app, "TestEksAgentStack", settings=agent_settings)


@pytest.fixture(scope="module")
def template(stack) -> Template:
    return Template.from_stack(stack)
