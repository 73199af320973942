"""
IAM Construct for node and Fargate roles
"""

from aws_cdk import (
    aws_iam as iam,
    Tags,
)
from constructs import Construct
from typing import List

NODE_MANAGED_POLICIES = [
    "AmazonEKSWorkerNodePolicy",
    "AmazonEKS_CNI_Policy",
    "AmazonEC2ContainerRegistryReadOnly",
]


def create_node_role(scope: Construct, role_id: str) -> iam.Role:
    """Create a role EC2 worker nodes can assume to join the cluster"""
    return iam.Role(
        scope, role_id,
        assumed_by=iam.ServicePrincipal("ec2.amazonaws.com"),
        managed_policies=[
            iam.ManagedPolicy.from_aws_managed_policy_name(policy_name)
            for policy_name in NODE_MANAGED_POLICIES
        ]
    )


class IAMConstruct(Construct):
    """
    Manages the IAM roles used by cluster nodes and Fargate pods.
    """

    def __init__(self, scope: Construct, construct_id: str,
                 instance_role_count: int = 3, **kwargs) -> None:
        super().__init__(scope, construct_id)

        # Instance roles mapped into the cluster; the last one backs the managed node group
        self.instance_roles: List[iam.Role] = [
            create_node_role(self, f"example-role{index}")
            for index in range(instance_role_count)
        ]

        self._create_fargate_pod_execution_role()

        self._apply_tags()

    def _create_fargate_pod_execution_role(self) -> None:
        """Create the role Fargate uses to pull images and ship pod logs"""
        self.fargate_pod_execution_role = iam.Role(
            self, "FargatePodExecutionRole",
            assumed_by=iam.ServicePrincipal("eks-fargate-pods.amazonaws.com"),
            managed_policies=[
                iam.ManagedPolicy.from_aws_managed_policy_name(
                    "AmazonEKSFargatePodExecutionRolePolicy")
            ]
        )

    def _apply_tags(self) -> None:
        """Apply consistent tags to all IAM resources"""
        for role in self.instance_roles:
            Tags.of(role).add("Project", "eks-self-hosted-agent")
        Tags.of(self.fargate_pod_execution_role).add("Project", "eks-self-hosted-agent")

    @property
    def node_group_role(self) -> iam.Role:
        """Returns the role used by the managed node group"""
        return self.instance_roles[-1]

    @property
    def fargate_role_arn(self) -> str:
        """Returns the Fargate pod execution role ARN"""
        return self.fargate_pod_execution_role.role_arn
