"""
Utility functions for the Terraform plan drift analyzer.
"""

import json
import logging
from typing import Any, Dict, Optional, Union
from urllib.parse import urlparse

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .exceptions import PlanParseError
from .types import S3Client

LOCAL_PREFIX = "local://"
S3_PREFIX = "s3://"


def setup_logging(log_level: str = "INFO") -> logging.Logger:
    """
    Sets up logging configuration for the analyzer.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger("plan_drift")
    logger.setLevel(getattr(logging, log_level.upper()))

    # Prevent duplicate handlers
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def get_logger() -> logging.Logger:
    """Returns the package logger without touching its level."""
    logger = logging.getLogger("plan_drift")
    if not logger.handlers:
        return setup_logging()
    return logger


def download_s3_file(
    s3_path: str,
    logger: Optional[logging.Logger] = None,
    region_name: Optional[str] = None,
) -> str:
    """
    Downloads a file from S3 and returns its content as a string.

    Args:
        s3_path: S3 path in format 's3://bucket/key'
        logger: Logger instance for error logging
        region_name: Optional AWS region for the S3 client

    Returns:
        File content as string

    Raises:
        ValueError: If S3 path is invalid
        ClientError: If S3 download fails
    """
    if logger is None:
        logger = get_logger()

    parsed = urlparse(s3_path)
    bucket = parsed.netloc
    key = parsed.path.lstrip("/")

    if parsed.scheme != "s3" or not bucket or not key:
        raise ValueError(f"Invalid S3 path: {s3_path}")

    try:
        logger.info(f"Downloading S3 file: {s3_path}")
        s3_client: S3Client
        if region_name:
            s3_client = boto3.client("s3", region_name=region_name)
        else:
            s3_client = boto3.client("s3")
        response = s3_client.get_object(Bucket=bucket, Key=key)
        content_bytes = response["Body"].read()
        content = (
            content_bytes.decode("utf-8")
            if isinstance(content_bytes, bytes)
            else str(content_bytes)
        )
        logger.info(f"Successfully downloaded {len(content)} bytes from S3")
        return content

    except (ClientError, BotoCoreError) as e:
        logger.error(f"Failed to download S3 file {s3_path}: {str(e)}")
        raise


def read_source(
    source: str,
    logger: Optional[logging.Logger] = None,
    region_name: Optional[str] = None,
) -> str:
    """
    Reads a JSON document from S3, a local:// path or a plain file path.

    Args:
        source: 's3://bucket/key', 'local://path' or a filesystem path
        logger: Logger instance for error logging
        region_name: Optional AWS region used for S3 sources

    Returns:
        Document content as string
    """
    if logger is None:
        logger = get_logger()

    if source.startswith(S3_PREFIX):
        return download_s3_file(source, logger=logger, region_name=region_name)

    local_path = source[len(LOCAL_PREFIX):] if source.startswith(LOCAL_PREFIX) else source
    logger.info(f"Reading local file: {local_path}")
    with open(local_path, "r", encoding="utf-8") as f:
        return f.read()


def parse_json_document(
    content: Union[str, bytes, Dict[str, Any]],
    description: str = "document",
    logger: Optional[logging.Logger] = None,
) -> Dict[str, Any]:
    """
    Parses Terraform JSON output into a Python dict.

    Args:
        content: Raw JSON text, bytes, or an already decoded dict
        description: What is being parsed, used in log and error messages
        logger: Logger instance for error logging

    Returns:
        Parsed document as dict

    Raises:
        PlanParseError: If the content is not valid JSON or not a JSON object
    """
    if logger is None:
        logger = get_logger()

    if isinstance(content, dict):
        return content

    if not isinstance(content, (str, bytes)):
        raise PlanParseError(
            f"{description.capitalize()} must be JSON text or an object, got {type(content).__name__}"
        )

    if isinstance(content, bytes):
        try:
            content = content.decode("utf-8")
        except UnicodeDecodeError as e:
            logger.error(f"Invalid UTF-8 in {description}: {e}")
            raise PlanParseError(f"Invalid UTF-8 in {description}: {e}")

    try:
        logger.debug(f"Parsing Terraform {description}")
        data = json.loads(content)
    except json.JSONDecodeError as e:
        logger.error(f"Invalid JSON in {description}: {e}")
        raise PlanParseError(f"Invalid JSON in {description}: {e}")

    if not isinstance(data, dict):
        raise PlanParseError(f"{description.capitalize()} did not parse to a dictionary.")
    return data
