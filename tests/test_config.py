"""
Tests for configuration module.
"""

import unittest
from unittest.mock import patch

from plan_drift.config import Config, load_config, validate_plan_source


class TestConfig(unittest.TestCase):
    """Test configuration loading and validation."""

    @patch.dict("os.environ", {}, clear=True)
    def test_load_config_defaults(self) -> None:
        """Test that every setting has a default."""
        config = load_config()
        self.assertIsInstance(config, Config)
        self.assertIsNone(config.plan_source)
        self.assertEqual(config.working_dir, ".")
        self.assertEqual(config.terraform_binary, "terraform")
        self.assertEqual(config.log_level, "INFO")
        self.assertEqual(config.max_retries, 3)
        self.assertEqual(config.retry_delay_seconds, 2)
        self.assertEqual(config.poll_interval_seconds, 300)
        self.assertFalse(config.auto_remediate)

    @patch.dict(
        "os.environ",
        {
            "PLAN_SOURCE": "s3://plans/app/plan.json",
            "TERRAFORM_WORKING_DIR": "/infra",
            "TERRAFORM_BINARY": "tofu",
            "AWS_REGION": "eu-west-2",
            "LOG_LEVEL": "debug",
            "MAX_RETRIES": "5",
            "TIMEOUT_SECONDS": "60",
            "POLL_INTERVAL_SECONDS": "900",
            "AUTO_REMEDIATE": "true",
        },
        clear=True,
    )
    def test_load_config_with_optional_values(self) -> None:
        """Test configuration loading with optional values."""
        config = load_config()
        self.assertEqual(config.plan_source, "s3://plans/app/plan.json")
        self.assertEqual(config.working_dir, "/infra")
        self.assertEqual(config.terraform_binary, "tofu")
        self.assertEqual(config.aws_region, "eu-west-2")
        self.assertEqual(config.log_level, "DEBUG")
        self.assertEqual(config.max_retries, 5)
        self.assertEqual(config.timeout_seconds, 60)
        self.assertEqual(config.poll_interval_seconds, 900)
        self.assertTrue(config.auto_remediate)

    @patch.dict("os.environ", {"PLAN_SOURCE": "https://example.com/plan.json"}, clear=True)
    def test_load_config_invalid_plan_source(self) -> None:
        """Test that an unsupported URL scheme raises ValueError."""
        with self.assertRaises(ValueError) as context:
            load_config()
        self.assertIn("PLAN_SOURCE", str(context.exception))

    @patch.dict("os.environ", {"MAX_RETRIES": "many"}, clear=True)
    def test_load_config_non_integer(self) -> None:
        with self.assertRaises(ValueError) as context:
            load_config()
        self.assertIn("MAX_RETRIES must be an integer", str(context.exception))

    @patch.dict("os.environ", {"POLL_INTERVAL_SECONDS": "-1"}, clear=True)
    def test_load_config_negative(self) -> None:
        with self.assertRaises(ValueError) as context:
            load_config()
        self.assertIn("must not be negative", str(context.exception))

    @patch.dict("os.environ", {"LOG_LEVEL": "LOUD"}, clear=True)
    def test_load_config_invalid_log_level(self) -> None:
        with self.assertRaises(ValueError) as context:
            load_config()
        self.assertIn("LOG_LEVEL", str(context.exception))

    @patch.dict("os.environ", {"AUTO_REMEDIATE": "maybe"}, clear=True)
    def test_load_config_invalid_boolean(self) -> None:
        with self.assertRaises(ValueError):
            load_config()

    def test_validate_plan_source(self) -> None:
        validate_plan_source("plan.json")
        validate_plan_source("local://plans/plan.json")
        validate_plan_source("s3://bucket/plan.json")
        with self.assertRaises(ValueError):
            validate_plan_source("gs://bucket/plan.json")


if __name__ == "__main__":
    unittest.main()
