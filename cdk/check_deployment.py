#!/usr/bin/env python3
"""
Post-deployment check for the EKS self-hosted agent stack
Verifies the CloudFormation stack, EKS cluster, managed node group and
Fargate profile are all in a healthy state
"""

import sys
import boto3
from typing import Any, Dict, Optional
from botocore.exceptions import ClientError, NoCredentialsError

DEFAULT_STACK_NAME = "EksSelfHostedAgentStack"


def is_stack_complete(status: str) -> bool:
    """A stack is healthy once it settles in a non-rollback *_COMPLETE state"""
    return status.endswith("_COMPLETE") and "ROLLBACK" not in status and not status.startswith("DELETE")


class DeploymentChecker:
    """Check a deployed EKS agent stack"""

    def __init__(self, stack_name: str = DEFAULT_STACK_NAME, region: Optional[str] = None,
                 session: Optional[boto3.session.Session] = None):
        self.stack_name = stack_name
        self.results: Dict[str, Dict[str, Any]] = {}
        self.outputs: Dict[str, str] = {}

        session = session or boto3.session.Session(region_name=region)
        self.cloudformation = session.client('cloudformation')
        self.eks = session.client('eks')

    def check_stack(self) -> bool:
        """Check the CloudFormation stack status and collect its outputs"""
        print(f"🔄 Checking stack {self.stack_name}...")

        try:
            response = self.cloudformation.describe_stacks(StackName=self.stack_name)
        except ClientError as e:
            print(f"❌ Could not describe stack: {e}")
            self.results['stack'] = {'success': False, 'error': str(e)}
            return False

        stack = response['Stacks'][0]
        status = stack['StackStatus']
        self.outputs = {
            output['OutputKey']: output['OutputValue']
            for output in stack.get('Outputs', [])
        }

        success = is_stack_complete(status)
        print(f"{'✅' if success else '❌'} Stack status: {status}")
        self.results['stack'] = {'success': success, 'status': status}
        return success

    def check_cluster(self) -> bool:
        """Check the EKS cluster is active"""
        cluster_name = self.outputs.get('ClusterName')
        if not cluster_name:
            print("❌ Stack has no ClusterName output")
            self.results['cluster'] = {'success': False, 'error': 'missing ClusterName output'}
            return False

        print(f"🔄 Checking cluster {cluster_name}...")
        try:
            cluster = self.eks.describe_cluster(name=cluster_name)['cluster']
        except ClientError as e:
            print(f"❌ Could not describe cluster: {e}")
            self.results['cluster'] = {'success': False, 'error': str(e)}
            return False

        status = cluster['status']
        success = status == 'ACTIVE'
        print(f"{'✅' if success else '❌'} Cluster status: {status} (Kubernetes {cluster.get('version')})")
        self.results['cluster'] = {'success': success, 'status': status, 'version': cluster.get('version')}
        return success

    def check_node_group(self) -> bool:
        """Check the managed node group is active and at its desired size"""
        cluster_name = self.outputs.get('ClusterName')
        node_group_name = self.outputs.get('NodeGroupName')
        if not cluster_name or not node_group_name:
            print("❌ Stack has no NodeGroupName output")
            self.results['node_group'] = {'success': False, 'error': 'missing NodeGroupName output'}
            return False

        print(f"🔄 Checking node group {node_group_name}...")
        try:
            node_group = self.eks.describe_nodegroup(
                clusterName=cluster_name, nodegroupName=node_group_name)['nodegroup']
        except ClientError as e:
            print(f"❌ Could not describe node group: {e}")
            self.results['node_group'] = {'success': False, 'error': str(e)}
            return False

        status = node_group['status']
        scaling = node_group.get('scalingConfig', {})
        success = status == 'ACTIVE'
        print(f"{'✅' if success else '❌'} Node group status: {status} "
              f"(desired {scaling.get('desiredSize')}, min {scaling.get('minSize')}, max {scaling.get('maxSize')})")
        self.results['node_group'] = {'success': success, 'status': status, 'scaling': scaling}
        return success

    def check_fargate_profile(self) -> bool:
        """Check the Fargate profile is active"""
        cluster_name = self.outputs.get('ClusterName')
        profile_name = self.outputs.get('FargateProfileName')
        if not cluster_name or not profile_name:
            print("❌ Stack has no FargateProfileName output")
            self.results['fargate_profile'] = {'success': False, 'error': 'missing FargateProfileName output'}
            return False

        print(f"🔄 Checking Fargate profile {profile_name}...")
        try:
            profile = self.eks.describe_fargate_profile(
                clusterName=cluster_name, fargateProfileName=profile_name)['fargateProfile']
        except ClientError as e:
            print(f"❌ Could not describe Fargate profile: {e}")
            self.results['fargate_profile'] = {'success': False, 'error': str(e)}
            return False

        status = profile['status']
        success = status == 'ACTIVE'
        print(f"{'✅' if success else '❌'} Fargate profile status: {status}")
        self.results['fargate_profile'] = {'success': success, 'status': status}
        return success

    def run_checks(self) -> bool:
        """Run all checks; later checks are skipped when the stack itself is unhealthy"""
        print("🚀 Checking EKS self-hosted agent deployment")
        print("=" * 50)

        if not self.check_stack():
            return False

        all_passed = True
        for check in (self.check_cluster, self.check_node_group, self.check_fargate_profile):
            if not check():
                all_passed = False

        print("\n" + "=" * 50)
        if all_passed:
            print("🎉 Deployment is healthy")
            namespace = self.outputs.get('AgentNamespace')
            if namespace:
                print(f"📋 Agents run in namespace: {namespace}")
            command = self.outputs.get('KubeconfigCommand')
            if command:
                print(f"💡 Configure kubectl with: {command}")
        else:
            print("❌ Some checks failed. Check the output above for details.")

        return all_passed


def main():
    """Main check execution"""
    if len(sys.argv) > 1:
        stack_name = sys.argv[1]
    else:
        stack_name = DEFAULT_STACK_NAME

    try:
        checker = DeploymentChecker(stack_name)
        success = checker.run_checks()
    except NoCredentialsError:
        print("❌ AWS credentials not configured. Please configure AWS credentials.")
        sys.exit(1)

    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
