#!/usr/bin/env python3
"""
EKS Self-Hosted Deployment Agent CDK App
Main entry point for CDK deployment
"""

import logging
import os
import aws_cdk as cdk
from cdk_nag import AwsSolutionsChecks
from stacks.config import load_agent_settings
from stacks.main_stack import EksAgentStack

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)

app = cdk.App()

# Get environment from CDK context or environment variables
account = app.node.try_get_context("account") or os.environ.get("CDK_DEFAULT_ACCOUNT")
region = app.node.try_get_context("region") or os.environ.get("CDK_DEFAULT_REGION") or "us-west-2"

# Fails synth with a ConfigurationError when required settings are missing
settings = load_agent_settings(app.node.try_get_context)

EksAgentStack(
    app,
    app.node.try_get_context("stackName") or "EksSelfHostedAgentStack",
    settings=settings,
    description="EKS cluster with managed node groups, Fargate profile and self-hosted deployment agents",
    env=cdk.Environment(account=account, region=region)
)

# Add cdk-nag checks (unless explicitly skipped)
if not os.environ.get("CDK_NAG_SKIP"):
    cdk.Aspects.of(app).add(AwsSolutionsChecks(verbose=True))

app.synth()
