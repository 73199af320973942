"""
Common CDK-Nag suppressions for the EKS agent stack
Use this file to centrally manage suppressions across all stacks
"""

from cdk_nag import NagSuppressions
from aws_cdk import Stack


def apply_common_suppressions(stack: Stack):
    """Apply suppressions that are acceptable for this cluster"""

    common_suppressions = [
        {
            "id": "AwsSolutions-IAM4",
            "reason": "EKS node, Fargate and kubectl handler roles use the AWS managed policies EKS documents"
        },
        {
            "id": "AwsSolutions-IAM5",
            "reason": "Kubectl and cluster resource handlers generated by CDK need wildcard permissions"
        },
        {
            "id": "AwsSolutions-L1",
            "reason": "Lambda runtime versions of the CDK EKS handlers are managed by CDK"
        },
        {
            "id": "AwsSolutions-VPC7",
            "reason": "VPC flow logs are not required for the agent cluster"
        }
    ]

    NagSuppressions.add_stack_suppressions(stack, common_suppressions, apply_to_nested_stacks=True)


def apply_eks_suppressions(stack: Stack):
    """Apply suppressions specific to the EKS cluster and its provider framework"""

    eks_suppressions = [
        {
            "id": "AwsSolutions-EKS1",
            "reason": "Public endpoint is needed for kubectl access from outside the VPC"
        },
        {
            "id": "AwsSolutions-SF1",
            "reason": "Step Functions state machines are created internally by the CDK provider framework"
        },
        {
            "id": "AwsSolutions-SF2",
            "reason": "X-Ray tracing is not configurable on CDK provider framework state machines"
        }
    ]

    NagSuppressions.add_stack_suppressions(stack, eks_suppressions, apply_to_nested_stacks=True)
