"""Unit tests for the agent Kubernetes manifests."""

import yaml

from stacks import manifests
from stacks.config import AgentSettings

AGENT_LABELS = {"app.kubernetes.io/name": "customer-managed-deployment-agent"}


def env_by_name(deployment):
    container = deployment["spec"]["template"]["spec"]["containers"][0]
    return {var["name"]: var for var in container["env"]}


class TestAgentConfig:

    def test_config_map_data(self):
        config_map = manifests.agent_config_map("agents", "https://api.example.com", "agent:1", "Never")

        assert config_map["kind"] == "ConfigMap"
        assert config_map["metadata"] == {"name": "agent-config", "namespace": "agents", "labels": AGENT_LABELS}
        assert config_map["data"] == {
            "PULUMI_AGENT_SERVICE_URL": "https://api.example.com",
            "PULUMI_AGENT_IMAGE": "agent:1",
            "PULUMI_AGENT_IMAGE_PULL_POLICY": "Never",
        }

    def test_secret_carries_token(self):
        secret = manifests.agent_secret("agents", "pul-123")

        assert secret["kind"] == "Secret"
        assert secret["metadata"] == {"name": "agent-secret", "namespace": "agents"}
        assert secret["stringData"] == {"PULUMI_AGENT_TOKEN": "pul-123"}


class TestAgentRbac:

    def test_role_rules(self):
        role = manifests.agent_role("agents")

        assert role["apiVersion"] == "rbac.authorization.k8s.io/v1"
        assert role["rules"] == [{
            "apiGroups": [""],
            "resources": ["pods", "pods/log", "configmaps"],
            "verbs": ["create", "get", "list", "watch", "update", "delete"],
        }]

    def test_role_binding_targets_service_account_in_namespace(self):
        binding = manifests.agent_role_binding("agents")

        assert binding["subjects"] == [
            {"kind": "ServiceAccount", "name": "deployment-agent", "namespace": "agents"}
        ]
        assert binding["roleRef"] == {
            "kind": "Role",
            "name": "deployment-agent",
            "apiGroup": "rbac.authorization.k8s.io",
        }

    def test_service_account_labels(self):
        service_account = manifests.agent_service_account("agents")

        assert service_account["metadata"]["labels"] == AGENT_LABELS


class TestAgentDeployment:

    def test_deployment_shape(self):
        deployment = manifests.agent_deployment("agents", "agent:1", "Always", 3)

        assert deployment["metadata"]["name"] == "deployment-agent-pool"
        assert deployment["metadata"]["annotations"] == {
            "app.kubernetes.io/name": "pulumi-deployment-agent-pool"
        }
        spec = deployment["spec"]
        assert spec["replicas"] == 3
        assert spec["selector"]["matchLabels"] == AGENT_LABELS
        assert spec["template"]["metadata"]["labels"] == AGENT_LABELS

        pod_spec = spec["template"]["spec"]
        assert pod_spec["serviceAccountName"] == "deployment-agent"
        container = pod_spec["containers"][0]
        assert container["name"] == "agent"
        assert container["image"] == "agent:1"
        assert container["imagePullPolicy"] == "Always"
        assert container["volumeMounts"] == [{"name": "agent-work", "mountPath": "/mnt/work"}]
        assert pod_spec["volumes"] == [
            {"name": "agent-work", "emptyDir": {}},
            {"name": "agent-config", "configMap": {"name": "agent-config"}},
        ]

    def test_env_order(self):
        deployment = manifests.agent_deployment("agents", "agent:1", "Always", 3)
        names = [var["name"] for var in deployment["spec"]["template"]["spec"]["containers"][0]["env"]]

        assert names == [
            "PULUMI_AGENT_DEPLOY_TARGET",
            "PULUMI_AGENT_SHARED_VOLUME_DIRECTORY",
            "PULUMI_AGENT_SERVICE_URL",
            "PULUMI_AGENT_IMAGE",
            "PULUMI_AGENT_IMAGE_PULL_POLICY",
            "PULUMI_AGENT_TOKEN",
            "PULUMI_DEPLOY_DEFAULT_IMAGE_REFERENCE",
            "PULUMI_AGENT_SERVICE_ACCOUNT_NAME",
        ]

    def test_env_sources(self):
        env = env_by_name(manifests.agent_deployment("agents", "agent:1", "Always", 3))

        assert env["PULUMI_AGENT_DEPLOY_TARGET"]["value"] == "kubernetes"
        assert env["PULUMI_AGENT_SHARED_VOLUME_DIRECTORY"]["value"] == "/mnt/work"
        assert env["PULUMI_AGENT_SERVICE_URL"]["valueFrom"] == {
            "configMapKeyRef": {"name": "agent-config", "key": "PULUMI_AGENT_SERVICE_URL"}
        }
        assert env["PULUMI_AGENT_TOKEN"]["valueFrom"] == {
            "secretKeyRef": {"name": "agent-secret", "key": "PULUMI_AGENT_TOKEN"}
        }
        assert env["PULUMI_DEPLOY_DEFAULT_IMAGE_REFERENCE"]["value"] == "ghcr.io/pulumi/pulumi-dotnet-8.0:3.137.0"

    def test_worker_service_account_without_value(self):
        env = env_by_name(manifests.agent_deployment("agents", "agent:1", "Always", 3))

        assert env["PULUMI_AGENT_SERVICE_ACCOUNT_NAME"] == {"name": "PULUMI_AGENT_SERVICE_ACCOUNT_NAME"}

    def test_worker_service_account_with_value(self):
        env = env_by_name(manifests.agent_deployment(
            "agents", "agent:1", "Always", 3, worker_service_account_name="runner"))

        assert env["PULUMI_AGENT_SERVICE_ACCOUNT_NAME"]["value"] == "runner"

    def test_extra_env_appended_last(self):
        deployment = manifests.agent_deployment(
            "agents", "agent:1", "Always", 3,
            extra_env=[{"name": "HTTP_PROXY", "value": "http://proxy:3128"}])
        env = deployment["spec"]["template"]["spec"]["containers"][0]["env"]

        assert env[-1] == {"name": "HTTP_PROXY", "value": "http://proxy:3128"}
        assert len(env) == 9


class TestRendering:

    def test_render_order(self):
        settings = AgentSettings(namespace="agents", image="agent:1")

        kinds = [m["kind"] for m in manifests.render_agent_manifests(settings, "token")]

        assert kinds == ["Namespace", "ConfigMap", "Secret", "ServiceAccount", "Role", "RoleBinding", "Deployment"]

    def test_every_manifest_targets_namespace(self):
        settings = AgentSettings(namespace="agents", image="agent:1")

        rendered = manifests.render_agent_manifests(settings, "token")

        assert rendered[0]["metadata"]["name"] == "agents"
        assert all(m["metadata"]["namespace"] == "agents" for m in rendered[1:])

    def test_yaml_has_no_aliases(self):
        settings = AgentSettings(namespace="agents", image="agent:1")

        text = manifests.to_yaml(manifests.render_agent_manifests(settings, "token"))

        assert "&id" not in text
        documents = list(yaml.safe_load_all(text))
        assert len(documents) == 7
        assert documents[-1]["spec"]["selector"]["matchLabels"] == AGENT_LABELS

    def test_labels_are_independent_copies(self):
        deployment = manifests.agent_deployment("agents", "agent:1", "Always", 1)

        deployment["spec"]["selector"]["matchLabels"]["extra"] = "x"

        assert "extra" not in deployment["spec"]["template"]["metadata"]["labels"]
        assert "extra" not in manifests.agent_labels()
