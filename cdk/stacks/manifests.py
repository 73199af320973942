"""
Kubernetes manifests for the self-hosted deployment agent

Every builder returns a fresh dict so the same manifest can be handed to a
KubernetesManifest construct or dumped to YAML without shared references.
"""

from typing import Dict, List, Optional

import yaml

from .config import AgentSettings

AGENT_APP_NAME = "customer-managed-deployment-agent"
AGENT_POOL_ANNOTATION = "pulumi-deployment-agent-pool"
WORKFLOW_RUNNER_APP_NAME = "workflow-runner"

AGENT_CONFIG_NAME = "agent-config"
AGENT_SECRET_NAME = "agent-secret"
AGENT_SERVICE_ACCOUNT_NAME = "deployment-agent"
AGENT_ROLE_NAME = "deployment-agent"
AGENT_ROLE_BINDING_NAME = "deployment-agent"
AGENT_DEPLOYMENT_NAME = "deployment-agent-pool"

SHARED_VOLUME_NAME = "agent-work"
SHARED_VOLUME_DIRECTORY = "/mnt/work"
DEFAULT_IMAGE_REFERENCE = "ghcr.io/pulumi/pulumi-dotnet-8.0:3.137.0"

SERVICE_URL_KEY = "PULUMI_AGENT_SERVICE_URL"
IMAGE_KEY = "PULUMI_AGENT_IMAGE"
IMAGE_PULL_POLICY_KEY = "PULUMI_AGENT_IMAGE_PULL_POLICY"
TOKEN_KEY = "PULUMI_AGENT_TOKEN"
WORKER_SERVICE_ACCOUNT_KEY = "PULUMI_AGENT_SERVICE_ACCOUNT_NAME"


def agent_labels() -> Dict[str, str]:
    return {"app.kubernetes.io/name": AGENT_APP_NAME}


def workflow_runner_labels() -> Dict[str, str]:
    """Labels carried by the worker pods the agent launches onto Fargate."""
    return {"app.kubernetes.io/name": WORKFLOW_RUNNER_APP_NAME}


def _metadata(name: str, namespace: str, labels: bool = True) -> Dict:
    metadata = {"name": name, "namespace": namespace}
    if labels:
        metadata["labels"] = agent_labels()
    return metadata


def namespace_manifest(name: str) -> Dict:
    return {
        "apiVersion": "v1",
        "kind": "Namespace",
        "metadata": {"name": name},
    }


def agent_config_map(namespace: str, service_url: str, image: str, image_pull_policy: str) -> Dict:
    return {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": _metadata(AGENT_CONFIG_NAME, namespace),
        "data": {
            SERVICE_URL_KEY: service_url,
            IMAGE_KEY: image,
            IMAGE_PULL_POLICY_KEY: image_pull_policy,
        },
    }


def agent_secret(namespace: str, access_token: str) -> Dict:
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": _metadata(AGENT_SECRET_NAME, namespace, labels=False),
        "stringData": {TOKEN_KEY: access_token},
    }


def agent_service_account(namespace: str) -> Dict:
    return {
        "apiVersion": "v1",
        "kind": "ServiceAccount",
        "metadata": _metadata(AGENT_SERVICE_ACCOUNT_NAME, namespace),
    }


def agent_role(namespace: str) -> Dict:
    """Role letting the agent manage worker pods and their config maps."""
    return {
        "apiVersion": "rbac.authorization.k8s.io/v1",
        "kind": "Role",
        "metadata": _metadata(AGENT_ROLE_NAME, namespace),
        "rules": [
            {
                "apiGroups": [""],
                "resources": ["pods", "pods/log", "configmaps"],
                "verbs": ["create", "get", "list", "watch", "update", "delete"],
            }
        ],
    }


def agent_role_binding(namespace: str) -> Dict:
    return {
        "apiVersion": "rbac.authorization.k8s.io/v1",
        "kind": "RoleBinding",
        "metadata": _metadata(AGENT_ROLE_BINDING_NAME, namespace),
        "subjects": [
            {
                "kind": "ServiceAccount",
                "name": AGENT_SERVICE_ACCOUNT_NAME,
                "namespace": namespace,
            }
        ],
        "roleRef": {
            "kind": "Role",
            "name": AGENT_ROLE_NAME,
            "apiGroup": "rbac.authorization.k8s.io",
        },
    }


def _config_map_env(key: str) -> Dict:
    return {
        "name": key,
        "valueFrom": {"configMapKeyRef": {"name": AGENT_CONFIG_NAME, "key": key}},
    }


def agent_env(worker_service_account_name: Optional[str] = None,
              extra_env: Optional[List[Dict[str, str]]] = None) -> List[Dict]:
    """
    Environment for the agent container.

    The worker service account variable is always present; it carries no
    value unless a worker service account name is given.
    """
    worker_service_account_env = {"name": WORKER_SERVICE_ACCOUNT_KEY}
    if worker_service_account_name:
        worker_service_account_env["value"] = worker_service_account_name

    env = [
        {"name": "PULUMI_AGENT_DEPLOY_TARGET", "value": "kubernetes"},
        {"name": "PULUMI_AGENT_SHARED_VOLUME_DIRECTORY", "value": SHARED_VOLUME_DIRECTORY},
        _config_map_env(SERVICE_URL_KEY),
        _config_map_env(IMAGE_KEY),
        _config_map_env(IMAGE_PULL_POLICY_KEY),
        {
            "name": TOKEN_KEY,
            "valueFrom": {"secretKeyRef": {"name": AGENT_SECRET_NAME, "key": TOKEN_KEY}},
        },
        {"name": "PULUMI_DEPLOY_DEFAULT_IMAGE_REFERENCE", "value": DEFAULT_IMAGE_REFERENCE},
        worker_service_account_env,
    ]
    env.extend(dict(var) for var in extra_env or [])
    return env


def agent_deployment(namespace: str, image: str, image_pull_policy: str, replicas: int,
                     worker_service_account_name: Optional[str] = None,
                     extra_env: Optional[List[Dict[str, str]]] = None) -> Dict:
    metadata = _metadata(AGENT_DEPLOYMENT_NAME, namespace)
    metadata["annotations"] = {"app.kubernetes.io/name": AGENT_POOL_ANNOTATION}

    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": metadata,
        "spec": {
            "replicas": replicas,
            "selector": {"matchLabels": agent_labels()},
            "template": {
                "metadata": {"labels": agent_labels()},
                "spec": {
                    "serviceAccountName": AGENT_SERVICE_ACCOUNT_NAME,
                    "containers": [
                        {
                            "name": "agent",
                            "image": image,
                            "imagePullPolicy": image_pull_policy,
                            "env": agent_env(worker_service_account_name, extra_env),
                            "volumeMounts": [
                                {"name": SHARED_VOLUME_NAME, "mountPath": SHARED_VOLUME_DIRECTORY},
                            ],
                        }
                    ],
                    "volumes": [
                        {"name": SHARED_VOLUME_NAME, "emptyDir": {}},
                        {"name": AGENT_CONFIG_NAME, "configMap": {"name": AGENT_CONFIG_NAME}},
                    ],
                },
            },
        },
    }


def render_agent_manifests(settings: AgentSettings, access_token: str) -> List[Dict]:
    """Return the namespace and every agent manifest, in apply order."""
    namespace = settings.namespace
    return [
        namespace_manifest(namespace),
        agent_config_map(namespace, settings.service_url, settings.image,
                         settings.image_pull_policy),
        agent_secret(namespace, access_token),
        agent_service_account(namespace),
        agent_role(namespace),
        agent_role_binding(namespace),
        agent_deployment(namespace, settings.image, settings.image_pull_policy,
                         settings.replicas, settings.worker_service_account_name,
                         settings.extra_env),
    ]


def to_yaml(manifests: List[Dict]) -> str:
    """Render manifests as a multi-document YAML stream."""
    return yaml.safe_dump_all(manifests, sort_keys=False, default_flow_style=False)
