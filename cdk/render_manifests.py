#!/usr/bin/env python3
"""
Render the agent Kubernetes manifests as YAML for review
Reads the same context as the CDK app from cdk.json plus -c overrides
"""

import argparse
import json
import logging
import os
import sys

from stacks.config import ConfigurationError, load_agent_settings
from stacks.manifests import render_agent_manifests, to_yaml

logger = logging.getLogger(__name__)

TOKEN_PLACEHOLDER = "<SelfHostedAgentsAccessToken>"


def load_context(cdk_json_path: str, overrides: list) -> dict:
    """Load context from cdk.json and apply key=value overrides"""
    context = {}
    if os.path.exists(cdk_json_path):
        with open(cdk_json_path, 'r') as f:
            context.update(json.load(f).get("context", {}))

    for override in overrides:
        key, sep, value = override.partition("=")
        if not sep:
            raise ConfigurationError(f"Context override {override!r} must look like key=value")
        context[key] = value
    return context


def main() -> int:
    parser = argparse.ArgumentParser(description='Render self-hosted agent manifests as YAML')
    parser.add_argument('-c', '--context', action='append', default=[],
                        help='Context override in key=value form (repeatable)')
    parser.add_argument('--cdk-json', default=os.path.join(os.path.dirname(os.path.abspath(__file__)), 'cdk.json'),
                        help='Path to cdk.json')
    parser.add_argument('--token', default=TOKEN_PLACEHOLDER,
                        help='Access token to embed in the agent secret')
    args = parser.parse_args()

    logging.basicConfig(level=os.environ.get("LOG_LEVEL", "WARNING"))

    try:
        context = load_context(args.cdk_json, args.context)
        settings = load_agent_settings(context.get)
    except ConfigurationError as e:
        logger.error("%s", e)
        return 1

    sys.stdout.write(to_yaml(render_agent_manifests(settings, args.token)))
    return 0


if __name__ == "__main__":
    sys.exit(main())
