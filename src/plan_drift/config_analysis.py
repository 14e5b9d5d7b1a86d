"""
Analysis of generated Terraform JSON configuration (*.tf.json).

Extracts providers, resources, variables, outputs and the backend from a
configuration document so plan reports can show the key attributes of the
resources they mention.
"""

import re
from collections import Counter
from typing import Any, Dict, List, Optional, Union

from .exceptions import PlanParseError
from .types import ConfigurationAnalysis, JSONObject, ResourceInfo
from .utils import get_logger, parse_json_document

logger = get_logger()

GENERIC_KEY_ATTRIBUTES = ("name", "id", "identifier", "domain")

# module.<name>[<key>]. prefixes and a trailing [<index>] on plan addresses
MODULE_PREFIX_PATTERN = re.compile(r"^(?:module\.[^.\[]+(?:\[[^\]]*\])?\.)+")
INSTANCE_KEY_PATTERN = re.compile(r"\[[^\]]*\]$")


def extract_providers(config: JSONObject) -> List[Dict[str, Any]]:
    providers = config.get("provider")
    if not isinstance(providers, dict):
        return []

    result = []
    for provider_type, provider_configs in providers.items():
        configs = provider_configs if isinstance(provider_configs, list) else [provider_configs]
        for provider_config in configs:
            provider_config = provider_config if isinstance(provider_config, dict) else {}
            result.append(
                {
                    "type": provider_type,
                    "alias": provider_config.get("alias"),
                    "region": provider_config.get("region"),
                    "config": provider_config,
                }
            )
    return result


def extract_key_attributes(resource_type: str, resource_config: JSONObject) -> Dict[str, Any]:
    """
    Picks the attributes that identify a resource at a glance.

    Args:
        resource_type: Terraform resource type, e.g. 'aws_s3_bucket'
        resource_config: The resource body from the configuration

    Returns:
        Mapping of attribute name to value
    """
    if re.search(r"aws_route53_", resource_type):
        return {
            "domain": resource_config.get("name"),
            "type": resource_config.get("type"),
            "ttl": resource_config.get("ttl"),
            "records": resource_config.get("records"),
        }
    if re.search(r"aws_s3_", resource_type):
        return {"bucket": resource_config.get("bucket")}
    if re.search(r"aws_lambda_", resource_type):
        return {
            "function_name": resource_config.get("function_name"),
            "runtime": resource_config.get("runtime"),
        }
    if re.search(r"aws_rds_", resource_type):
        return {
            "identifier": resource_config.get("identifier"),
            "engine": resource_config.get("engine"),
        }

    return {
        attr: resource_config[attr]
        for attr in GENERIC_KEY_ATTRIBUTES
        if resource_config.get(attr)
    }


def extract_resources(config: JSONObject) -> List[ResourceInfo]:
    resources_block = config.get("resource")
    if not isinstance(resources_block, dict):
        return []

    resources = []
    for resource_type, instances in resources_block.items():
        if not isinstance(instances, dict):
            continue
        for resource_name, resource_config in instances.items():
            if not isinstance(resource_config, dict):
                continue
            resources.append(
                {
                    "type": resource_type,
                    "name": resource_name,
                    "full_name": f"{resource_type}.{resource_name}",
                    "config": resource_config,
                    "attributes": extract_key_attributes(resource_type, resource_config),
                }
            )
    return resources


def extract_variables(config: JSONObject) -> List[Dict[str, Any]]:
    variables = config.get("variable")
    if not isinstance(variables, dict):
        return []

    result = []
    for name, var_config in variables.items():
        var_config = var_config if isinstance(var_config, dict) else {}
        result.append(
            {
                "name": name,
                "type": var_config.get("type"),
                "description": var_config.get("description"),
                "default": var_config.get("default"),
            }
        )
    return result


def extract_outputs(config: JSONObject) -> List[Dict[str, Any]]:
    outputs = config.get("output")
    if not isinstance(outputs, dict):
        return []

    result = []
    for name, output_config in outputs.items():
        output_config = output_config if isinstance(output_config, dict) else {}
        result.append(
            {
                "name": name,
                "description": output_config.get("description"),
                "value": output_config.get("value"),
            }
        )
    return result


def extract_backend(config: JSONObject) -> Optional[Dict[str, Any]]:
    terraform_block = config.get("terraform")
    if not isinstance(terraform_block, dict):
        return None
    backend = terraform_block.get("backend")
    if not isinstance(backend, dict) or not backend:
        return None

    backend_type = next(iter(backend))
    return {"type": backend_type, "config": backend[backend_type]}


def generate_summary(analysis: ConfigurationAnalysis) -> Dict[str, Any]:
    resource_types = Counter(resource["type"] for resource in analysis["resources"])
    providers: List[str] = []
    for provider in analysis["providers"]:
        if provider["type"] not in providers:
            providers.append(provider["type"])

    return {
        "total_resources": len(analysis["resources"]),
        "resource_types": dict(resource_types),
        "providers": providers,
        "has_backend": analysis["backend"] is not None,
        "variables_count": len(analysis["variables"]),
        "outputs_count": len(analysis["outputs"]),
    }


def analyze_configuration(document: Union[str, bytes, JSONObject]) -> ConfigurationAnalysis:
    """
    Analyzes a Terraform JSON configuration document.

    Args:
        document: Raw JSON text or bytes, or an already decoded dict

    Returns:
        Dictionary with providers, resources, variables, outputs, backend and
        summary; or {'error': message} when the document is not valid JSON
    """
    try:
        config = parse_json_document(document, description="configuration")
    except PlanParseError as e:
        logger.error(f"Failed to analyze Terraform JSON: {e}")
        return {"error": str(e)}

    analysis: ConfigurationAnalysis = {
        "providers": extract_providers(config),
        "resources": extract_resources(config),
        "variables": extract_variables(config),
        "outputs": extract_outputs(config),
        "backend": extract_backend(config),
    }
    analysis["summary"] = generate_summary(analysis)
    return analysis


def find_resource_info(
    address: str, analysis: Optional[ConfigurationAnalysis]
) -> Optional[ResourceInfo]:
    """
    Looks up a resource by plan address in an analysis.

    Module prefixes and instance keys are ignored, so
    'module.app.aws_s3_bucket.logs[0]' matches 'aws_s3_bucket.logs'.
    """
    if not analysis or not analysis.get("resources"):
        return None
    full_name = configuration_name(address)
    for resource in analysis["resources"]:
        if resource["full_name"] == full_name:
            return resource
    return None


def configuration_name(address: str) -> str:
    """Reduces a plan address to the 'type.name' used in the configuration."""
    return INSTANCE_KEY_PATTERN.sub("", MODULE_PREFIX_PATTERN.sub("", address))
