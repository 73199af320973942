"""
Network Construct for the cluster VPC
"""

from aws_cdk import (
    aws_ec2 as ec2,
    Tags,
)
from constructs import Construct


class NetworkConstruct(Construct):
    """
    VPC spanning two availability zones with a single shared NAT gateway.
    """

    def __init__(self, scope: Construct, construct_id: str,
                 cidr: str = "10.0.0.0/16", max_azs: int = 2, **kwargs) -> None:
        super().__init__(scope, construct_id)

        self.vpc = ec2.Vpc(
            self, "EksVpc",
            ip_addresses=ec2.IpAddresses.cidr(cidr),
            max_azs=max_azs,
            nat_gateways=1,
            enable_dns_hostnames=True,
            enable_dns_support=True,
            subnet_configuration=[
                ec2.SubnetConfiguration(
                    name="public",
                    subnet_type=ec2.SubnetType.PUBLIC,
                    cidr_mask=24
                ),
                ec2.SubnetConfiguration(
                    name="private",
                    subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS,
                    cidr_mask=19
                ),
            ]
        )

        Tags.of(self.vpc).add("Name", "eks-vpc")

    @property
    def public_subnets(self) -> ec2.SubnetSelection:
        """Subnets used for load balancers"""
        return ec2.SubnetSelection(subnet_type=ec2.SubnetType.PUBLIC)

    @property
    def private_subnets(self) -> ec2.SubnetSelection:
        """Subnets used for cluster nodes and Fargate pods"""
        return ec2.SubnetSelection(subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS)

    @property
    def vpc_id(self) -> str:
        return self.vpc.vpc_id
