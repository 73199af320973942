"""
EKS Self-Hosted Deployment Agent Stack
"""

import logging

import aws_cdk as cdk
from aws_cdk import (
    Annotations,
    CfnParameter,
    CfnOutput,
    Tags,
)
from constructs import Construct
from nag_suppressions import apply_common_suppressions, apply_eks_suppressions

from .config import AgentSettings, DEFAULT_SERVICE_URL
from .constructs.agent import SelfHostedAgentConstruct
from .constructs.cluster import ClusterConstruct
from .constructs.iam import IAMConstruct
from .constructs.network import NetworkConstruct

logger = logging.getLogger(__name__)


class EksAgentStack(cdk.Stack):
    """
    VPC, EKS cluster, managed node group, Fargate profile and a pool of
    self-hosted deployment agents running inside the cluster.
    """

    def __init__(self, scope: Construct, construct_id: str,
                 settings: AgentSettings, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.settings = settings

        # Create CDK parameters
        self._create_parameters()

        # Create shared infrastructure in proper order
        self._create_infrastructure()

        # Deploy the agent pool into the cluster
        self._create_agent()

        # Create stack outputs
        self._create_outputs()

        # Apply CDK-Nag suppressions
        apply_common_suppressions(self)
        apply_eks_suppressions(self)

        Tags.of(self).add("Project", "eks-self-hosted-agent")

    def _create_parameters(self) -> None:
        """Create CDK parameters for values that must not live in context"""

        self.access_token_param = CfnParameter(
            self, "SelfHostedAgentsAccessToken",
            type="String",
            no_echo=True,
            min_length=1,
            description="Access token the self-hosted agents use to authenticate with the service"
        )

    def _create_infrastructure(self) -> None:
        """Create network, IAM and cluster constructs in proper order"""

        # 1. Create Network construct (VPC)
        self.network_construct = NetworkConstruct(self, "Network")

        # 2. Create IAM construct (node and Fargate roles)
        self.iam_construct = IAMConstruct(self, "IAM")

        # 3. Create Cluster construct (cluster, node group, namespace, Fargate profile)
        self.cluster_construct = ClusterConstruct(
            self, "Cluster",
            network=self.network_construct,
            instance_roles=self.iam_construct.instance_roles,
            node_group_role=self.iam_construct.node_group_role,
            fargate_pod_execution_role=self.iam_construct.fargate_pod_execution_role,
            namespace_name=self.settings.namespace
        )

        # Store references for easy access
        self.vpc = self.network_construct.vpc
        self.cluster = self.cluster_construct.cluster
        self.namespace = self.cluster_construct.namespace

    def _create_agent(self) -> None:
        """Create the self-hosted agent component in the agent namespace"""

        if self.settings.service_url != DEFAULT_SERVICE_URL:
            Annotations.of(self).add_info(
                f"Agents will connect to {self.settings.service_url}")
        if not self.settings.service_url.startswith("https://"):
            Annotations.of(self).add_warning(
                f"selfHostedServiceURL {self.settings.service_url!r} does not use https")

        self.agent = SelfHostedAgentConstruct(
            self, "SelfHostedAgent",
            cluster=self.cluster,
            namespace=self.namespace,
            namespace_name=self.settings.namespace,
            image_name=self.settings.image,
            image_pull_policy=self.settings.image_pull_policy,
            agent_replicas=self.settings.replicas,
            access_token=self.access_token_param.value_as_string,
            service_url=self.settings.service_url,
            worker_service_account_name=self.settings.worker_service_account_name,
            env=self.settings.extra_env
        )

        logger.info(
            "Configured %d agent replica(s) of %s in namespace %s",
            self.settings.replicas, self.settings.image, self.settings.namespace)

    def _create_outputs(self) -> None:
        """Create stack outputs"""

        CfnOutput(
            self, "ClusterName",
            value=self.cluster_construct.cluster_name,
            description="EKS cluster name"
        )

        CfnOutput(
            self, "KubeconfigCommand",
            value=f"aws eks update-kubeconfig --name {self.cluster_construct.cluster_name} "
                  f"--region {self.region}",
            description="Command that writes the cluster kubeconfig"
        )

        CfnOutput(
            self, "AgentNamespace",
            value=self.settings.namespace,
            description="Namespace the agents and their workers run in"
        )

        CfnOutput(
            self, "NodeGroupName",
            value=self.cluster_construct.node_group_name,
            description="Managed node group name"
        )

        CfnOutput(
            self, "FargateProfileName",
            value=self.cluster_construct.fargate_profile_name,
            description="Fargate profile for workflow runner pods"
        )

        CfnOutput(
            self, "VpcId",
            value=self.network_construct.vpc_id,
            description="VPC the cluster runs in"
        )
