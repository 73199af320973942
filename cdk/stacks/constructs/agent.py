"""
Self-hosted deployment agent Construct
"""

from aws_cdk import (
    aws_eks as eks,
)
from constructs import Construct
from typing import Dict, List, Optional

from .. import manifests


class SelfHostedAgentConstruct(Construct):
    """
    Runs a pool of deployment agents in an existing namespace.

    The agent reads its service URL and image settings from a ConfigMap and
    its access token from a Secret, and is bound to a namespaced Role that
    lets it launch and watch worker pods.
    """

    def __init__(self, scope: Construct, construct_id: str,
                 cluster: eks.ICluster,
                 namespace: eks.KubernetesManifest,
                 namespace_name: str,
                 image_name: str,
                 image_pull_policy: str,
                 agent_replicas: int,
                 access_token: str,
                 service_url: str,
                 worker_service_account_name: Optional[str] = None,
                 env: Optional[List[Dict[str, str]]] = None,
                 **kwargs) -> None:
        super().__init__(scope, construct_id)

        self.cluster = cluster
        self.namespace = namespace

        self.agent_config = self._add_manifest(
            "AgentConfig",
            manifests.agent_config_map(namespace_name, service_url, image_name, image_pull_policy)
        )

        self.agent_secret = self._add_manifest(
            "AgentSecret",
            manifests.agent_secret(namespace_name, access_token)
        )

        self.agent_service_account = self._add_manifest(
            "AgentServiceAccount",
            manifests.agent_service_account(namespace_name)
        )

        self.agent_role = self._add_manifest(
            "AgentRole",
            manifests.agent_role(namespace_name)
        )

        self.agent_role_binding = self._add_manifest(
            "AgentRoleBinding",
            manifests.agent_role_binding(namespace_name)
        )
        self.agent_role_binding.node.add_dependency(self.agent_service_account, self.agent_role)

        self.agent_deployment = self._add_manifest(
            "AgentDeployment",
            manifests.agent_deployment(
                namespace_name,
                image_name,
                image_pull_policy,
                agent_replicas,
                worker_service_account_name=worker_service_account_name,
                extra_env=env
            )
        )
        self.agent_deployment.node.add_dependency(
            self.agent_config,
            self.agent_secret,
            self.agent_service_account
        )

    def _add_manifest(self, manifest_id: str, manifest: Dict) -> eks.KubernetesManifest:
        """Apply a manifest inside the agent namespace"""
        resource = eks.KubernetesManifest(
            self, manifest_id,
            cluster=self.cluster,
            manifest=[manifest]
        )
        resource.node.add_dependency(self.namespace)
        return resource
