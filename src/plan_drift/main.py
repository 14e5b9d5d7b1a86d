"""
AWS Lambda entry point for the Terraform plan drift analyzer.
"""

import json

from .config import load_config, validate_plan_source
from .plan import load_plan
from .report import build_report
from .utils import setup_logging


def _response(status_code: int, body: dict) -> dict:
    return {
        "statusCode": status_code,
        "body": json.dumps(body),
        "headers": {"Content-Type": "application/json"},
    }


def lambda_handler(event: dict, context: object) -> dict:
    """
    AWS Lambda handler function.

    Args:
        event: Lambda event data; may carry a 'plan_source' overriding PLAN_SOURCE
        context: Lambda context

    Returns:
        Dictionary with statusCode and body containing the change report
    """
    logger = setup_logging()
    try:
        config = load_config()
        logger = setup_logging(config.log_level)

        plan_source = (event or {}).get("plan_source") or config.plan_source
        if not plan_source:
            raise ValueError("PLAN_SOURCE environment variable or 'plan_source' event key is required")
        validate_plan_source(plan_source)

        logger.info(f"Analyzing Terraform plan from {plan_source}")
        plan = load_plan(plan_source, region_name=config.aws_region)
        report = build_report(plan)

        logger.info(
            f"Plan analysis completed. Drift detected: {report.drift_detected}, "
            f"severity: {report.severity.name}"
        )
        return _response(200, report.to_dict())

    except ValueError as e:
        # Configuration or plan validation errors
        logger.error(f"Configuration error: {str(e)}")
        return _response(400, {"error": "Configuration error", "message": str(e)})

    except Exception as e:
        # Unexpected errors
        logger.error(f"Unexpected error: {str(e)}")
        return _response(500, {"error": "Internal server error", "message": str(e)})
