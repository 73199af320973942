"""
Cluster Construct for EKS, its managed node group, Fargate profile and agent namespace
"""

from aws_cdk import (
    aws_ec2 as ec2,
    aws_eks as eks,
    aws_iam as iam,
    Tags,
)
from aws_cdk.lambda_layer_kubectl_v31 import KubectlV31Layer
from constructs import Construct
from typing import Dict, List, Optional

from ..manifests import namespace_manifest, workflow_runner_labels
from .network import NetworkConstruct

NODE_GROUPS = ["system:bootstrappers", "system:nodes"]
NODE_USERNAME = "system:node:{{EC2PrivateDNSName}}"


class ClusterConstruct(Construct):
    """
    Creates the EKS control plane without a default node group, then adds a
    managed node group on private subnets, the agent namespace and a Fargate
    profile for workflow runner pods in that namespace.
    """

    def __init__(self, scope: Construct, construct_id: str,
                 network: NetworkConstruct,
                 instance_roles: List[iam.Role],
                 node_group_role: iam.Role,
                 fargate_pod_execution_role: iam.Role,
                 namespace_name: str,
                 node_group_tags: Optional[Dict[str, str]] = None,
                 **kwargs) -> None:
        super().__init__(scope, construct_id)

        self.network = network
        self.namespace_name = namespace_name

        self._create_cluster()
        self._map_instance_roles(instance_roles, node_group_role)
        self._create_managed_node_group(node_group_role, node_group_tags or {"org": "pulumi"})
        self._create_namespace()
        self._create_fargate_profile(fargate_pod_execution_role)

        Tags.of(self).add("Project", "eks-self-hosted-agent")

    def _create_cluster(self) -> None:
        """Create the control plane across public (load balancer) and private (node) subnets"""
        self.cluster = eks.Cluster(
            self, "ManagedNodegroupsCluster",
            version=eks.KubernetesVersion.V1_31,
            kubectl_layer=KubectlV31Layer(self, "KubectlLayer"),
            vpc=self.network.vpc,
            vpc_subnets=[
                self.network.public_subnets,
                self.network.private_subnets,
            ],
            default_capacity=0,
            endpoint_access=eks.EndpointAccess.PUBLIC_AND_PRIVATE,
            cluster_logging=[
                eks.ClusterLoggingTypes.API,
                eks.ClusterLoggingTypes.AUDIT,
                eks.ClusterLoggingTypes.AUTHENTICATOR,
                eks.ClusterLoggingTypes.CONTROLLER_MANAGER,
                eks.ClusterLoggingTypes.SCHEDULER,
            ],
            output_config_command=False
        )

    def _map_instance_roles(self, instance_roles: List[iam.Role], node_group_role: iam.Role) -> None:
        """Allow nodes running under any of the instance roles to join the cluster"""
        for role in instance_roles:
            # The managed node group maps its own role
            if role is node_group_role:
                continue
            self.cluster.aws_auth.add_role_mapping(
                role,
                groups=NODE_GROUPS,
                username=NODE_USERNAME
            )

    def _create_managed_node_group(self, node_role: iam.Role, tags: Dict[str, str]) -> None:
        """Create the on-demand managed node group"""
        self.managed_node_group = self.cluster.add_nodegroup_capacity(
            "ManagedNodeGroup",
            nodegroup_name="aws-managed-ng2",
            node_role=node_role,
            subnets=self.network.private_subnets,
            desired_size=2,
            min_size=2,
            max_size=2,
            disk_size=20,
            instance_types=[ec2.InstanceType("t3.medium")],
            labels={"ondemand": "true"},
            tags=tags
        )

    def _create_namespace(self) -> None:
        """Create the namespace the agent and its workers run in"""
        self.namespace = self.cluster.add_manifest(
            "StackNamespace",
            namespace_manifest(self.namespace_name)
        )

    def _create_fargate_profile(self, pod_execution_role: iam.Role) -> None:
        """Schedule workflow runner pods in the agent namespace onto Fargate"""
        self.fargate_profile = self.cluster.add_fargate_profile(
            "AgentFargateProfile",
            pod_execution_role=pod_execution_role,
            subnet_selection=self.network.private_subnets,
            selectors=[
                eks.Selector(
                    namespace=self.namespace_name,
                    labels=workflow_runner_labels()
                )
            ]
        )

    @property
    def cluster_name(self) -> str:
        """Returns the EKS cluster name"""
        return self.cluster.cluster_name

    @property
    def node_group_name(self) -> str:
        """Returns the managed node group name"""
        return self.managed_node_group.nodegroup_name

    @property
    def fargate_profile_name(self) -> str:
        """Returns the Fargate profile name"""
        return self.fargate_profile.fargate_profile_name
