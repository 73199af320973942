"""
Configuration for the self-hosted deployment agent

Values are read from CDK context (cdk.json or ``-c key=value``) with an
environment variable fallback for each key, the same way app.py resolves the
target account and region.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_SERVICE_URL = "https://api.pulumi.com"
DEFAULT_IMAGE_PULL_POLICY = "Always"
DEFAULT_AGENT_REPLICAS = 3

VALID_IMAGE_PULL_POLICIES = ("Always", "IfNotPresent", "Never")

# Context key -> environment variable fallback
CONTEXT_ENV_VARS = {
    "agentNamespace": "AGENT_NAMESPACE",
    "agentImage": "AGENT_IMAGE",
    "selfHostedServiceURL": "SELF_HOSTED_SERVICE_URL",
    "agentImagePullPolicy": "AGENT_IMAGE_PULL_POLICY",
    "agentReplicas": "AGENT_REPLICAS",
    "workerServiceAccountName": "WORKER_SERVICE_ACCOUNT_NAME",
    "agentEnv": "AGENT_ENV",
}


class ConfigurationError(ValueError):
    """Raised when required agent settings are missing or invalid."""


@dataclass(frozen=True)
class AgentSettings:
    """Resolved settings for the agent namespace and deployment."""

    namespace: str
    image: str
    service_url: str = DEFAULT_SERVICE_URL
    image_pull_policy: str = DEFAULT_IMAGE_PULL_POLICY
    replicas: int = DEFAULT_AGENT_REPLICAS
    worker_service_account_name: Optional[str] = None
    extra_env: List[Dict[str, str]] = field(default_factory=list)


def _lookup(get_context: Callable[[str], Any], key: str) -> Any:
    value = get_context(key)
    if value is None:
        env_var = CONTEXT_ENV_VARS.get(key)
        if env_var:
            value = os.environ.get(env_var)
    return value


def _require(get_context: Callable[[str], Any], key: str) -> str:
    value = _lookup(get_context, key)
    if value is None or str(value).strip() == "":
        raise ConfigurationError(
            f"Missing required setting '{key}'. Pass it with "
            f"'cdk synth -c {key}=<value>' or set {CONTEXT_ENV_VARS[key]}."
        )
    return str(value)


def _parse_replicas(raw: Any) -> int:
    if raw is None or raw == "":
        return DEFAULT_AGENT_REPLICAS
    if isinstance(raw, bool):
        raise ConfigurationError(f"agentReplicas must be an integer, got {raw!r}")
    try:
        replicas = int(raw)
    except (TypeError, ValueError):
        raise ConfigurationError(f"agentReplicas must be an integer, got {raw!r}") from None
    if isinstance(raw, float) and raw != replicas:
        raise ConfigurationError(f"agentReplicas must be an integer, got {raw!r}")
    if replicas < 0:
        raise ConfigurationError(f"agentReplicas must not be negative, got {replicas}")
    if replicas == 0:
        logger.info("agentReplicas is 0, using default of %d", DEFAULT_AGENT_REPLICAS)
        return DEFAULT_AGENT_REPLICAS
    return replicas


def _parse_extra_env(raw: Any) -> List[Dict[str, str]]:
    if not raw:
        return []
    # -c and environment values arrive as JSON text
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"agentEnv is not valid JSON: {e}") from None
    if not isinstance(raw, dict):
        raise ConfigurationError(
            f"agentEnv must be a mapping of variable names to values, got {type(raw).__name__}")
    return [{"name": str(name), "value": str(value)} for name, value in raw.items()]


def load_agent_settings(get_context: Callable[[str], Any]) -> AgentSettings:
    """
    Resolve agent settings.

    ``get_context`` is normally ``app.node.try_get_context``. A missing
    service URL falls back to the hosted service; an empty or missing image
    pull policy falls back to ``Always``; a missing or zero replica count
    falls back to 3.
    """
    namespace = _require(get_context, "agentNamespace")
    image = _require(get_context, "agentImage")

    service_url = _lookup(get_context, "selfHostedServiceURL")
    if service_url is None:
        logger.info("selfHostedServiceURL not set, using %s", DEFAULT_SERVICE_URL)
        service_url = DEFAULT_SERVICE_URL

    pull_policy = _lookup(get_context, "agentImagePullPolicy") or DEFAULT_IMAGE_PULL_POLICY
    if pull_policy not in VALID_IMAGE_PULL_POLICIES:
        raise ConfigurationError(
            f"agentImagePullPolicy must be one of {', '.join(VALID_IMAGE_PULL_POLICIES)}, "
            f"got {pull_policy!r}"
        )

    replicas = _parse_replicas(_lookup(get_context, "agentReplicas"))
    worker_service_account_name = _lookup(get_context, "workerServiceAccountName") or None
    extra_env = _parse_extra_env(_lookup(get_context, "agentEnv"))

    settings = AgentSettings(
        namespace=namespace,
        image=image,
        service_url=str(service_url),
        image_pull_policy=str(pull_policy),
        replicas=replicas,
        worker_service_account_name=worker_service_account_name,
        extra_env=extra_env,
    )
    logger.debug("Resolved agent settings: %s", settings)
    return settings
