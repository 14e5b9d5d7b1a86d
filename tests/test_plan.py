"""
Tests for Terraform JSON plan parsing.
"""

import json
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

from plan_drift.exceptions import PlanParseError
from plan_drift.plan import ResourceChange, load_plan, parse_plan
from plan_drift.types import ChangeKind

FIXTURES = Path(__file__).parent


class TestParsePlan(unittest.TestCase):
    """Parsing of 'terraform show -json' output."""

    def setUp(self) -> None:
        with open(FIXTURES / "sample_plan.json", "r") as f:
            self.sample_plan = json.load(f)

    def test_parse_from_dict(self) -> None:
        plan = parse_plan(self.sample_plan)
        self.assertEqual(plan.terraform_version, "1.6.4")
        self.assertEqual(plan.format_version, "1.2")
        self.assertEqual(len(plan.resource_changes), 6)
        self.assertEqual(len(plan.output_changes), 2)
        self.assertEqual(len(plan.resource_drift), 1)
        self.assertFalse(plan.errored)

    def test_parse_from_text_and_bytes(self) -> None:
        text = json.dumps(self.sample_plan)
        self.assertEqual(len(parse_plan(text).resource_changes), 6)
        self.assertEqual(len(parse_plan(text.encode("utf-8")).resource_changes), 6)

    def test_resource_change_fields(self) -> None:
        plan = parse_plan(self.sample_plan)
        db = next(rc for rc in plan.resource_changes if rc.address == "aws_db_instance.main")
        self.assertEqual(db.type, "aws_db_instance")
        self.assertEqual(db.name, "main")
        self.assertEqual(db.kind, ChangeKind.REPLACE)
        self.assertEqual(db.action_reason, "replace_because_cannot_update")
        self.assertEqual(db.provider_name, "registry.terraform.io/hashicorp/aws")
        self.assertTrue(db.is_sensitive("password"))
        self.assertFalse(db.is_sensitive("engine_version"))

    def test_data_sources_classify_as_no_op(self) -> None:
        plan = parse_plan(self.sample_plan)
        data_source = next(rc for rc in plan.resource_changes if rc.mode == "data")
        self.assertEqual(data_source.kind, ChangeKind.NO_OP)
        self.assertEqual(data_source.address, "data.aws_caller_identity.current")

    def test_output_changes(self) -> None:
        plan = parse_plan(self.sample_plan)
        outputs = {oc.name: oc.kind for oc in plan.output_changes}
        self.assertEqual(outputs, {"bucket_arn": ChangeKind.CREATE, "instance_id": ChangeKind.NO_OP})

    def test_empty_plan(self) -> None:
        plan = parse_plan({"format_version": "1.2"})
        self.assertEqual(plan.resource_changes, [])
        self.assertEqual(plan.output_changes, [])
        self.assertEqual(plan.resource_drift, [])

    def test_invalid_json_raises(self) -> None:
        with self.assertRaises(PlanParseError) as context:
            parse_plan("{not json")
        self.assertIn("Invalid JSON", str(context.exception))

    def test_non_object_root_raises(self) -> None:
        with self.assertRaises(PlanParseError):
            parse_plan("[1, 2, 3]")

    def test_invalid_utf8_raises(self) -> None:
        with self.assertRaises(PlanParseError) as context:
            parse_plan(b'{"x": "\xff"}')
        self.assertIn("Invalid UTF-8", str(context.exception))

    def test_non_document_input_raises(self) -> None:
        for document in ([], None, 42):
            with self.assertRaises(PlanParseError):
                parse_plan(document)

    def test_non_string_address_raises(self) -> None:
        with self.assertRaises(PlanParseError) as context:
            parse_plan({"resource_changes": [{"address": 5, "change": {"actions": ["create"]}}]})
        self.assertIn("resource_changes[0]", str(context.exception))

    def test_resource_changes_must_be_list(self) -> None:
        with self.assertRaises(PlanParseError):
            parse_plan({"resource_changes": {"address": "aws_s3_bucket.a"}})

    def test_missing_address_raises(self) -> None:
        with self.assertRaises(PlanParseError):
            parse_plan({"resource_changes": [{"change": {"actions": ["create"]}}]})

    def test_missing_actions_raises(self) -> None:
        with self.assertRaises(PlanParseError) as context:
            parse_plan({"resource_changes": [{"address": "aws_s3_bucket.a", "change": {}}]})
        self.assertIn("aws_s3_bucket.a", str(context.exception))

    def test_unknown_action_raises(self) -> None:
        with self.assertRaises(PlanParseError):
            parse_plan(
                {"resource_changes": [{"address": "aws_s3_bucket.a", "change": {"actions": ["merge"]}}]}
            )

    def test_type_and_name_derived_from_address(self) -> None:
        plan = parse_plan(
            {
                "resource_changes": [
                    {"address": "module.net.aws_vpc.main", "change": {"actions": ["create"]}}
                ]
            }
        )
        change = plan.resource_changes[0]
        self.assertEqual(change.type, "aws_vpc")
        self.assertEqual(change.name, "main")


class TestChangedAttributes(unittest.TestCase):
    """Attribute level diffing of before/after values."""

    def test_update_lists_changed_keys(self) -> None:
        change = ResourceChange(
            address="aws_instance.web",
            type="aws_instance",
            name="web",
            actions=["update"],
            before={"ami": "ami-1", "instance_type": "t3.micro", "tags": {"Name": "a"}},
            after={"ami": "ami-1", "instance_type": "t3.small", "tags": {"Name": "b"}},
        )
        self.assertEqual(change.changed_attributes(), ["instance_type", "tags"])

    def test_unknown_after_apply_counts_as_changed(self) -> None:
        change = ResourceChange(
            address="aws_s3_bucket.logs",
            type="aws_s3_bucket",
            name="logs",
            actions=["create"],
            before=None,
            after={"bucket": "logs"},
            after_unknown={"arn": True, "tags_all": {}},
        )
        self.assertEqual(change.changed_attributes(), ["arn", "bucket"])

    def test_no_op_has_no_changed_attributes(self) -> None:
        change = ResourceChange(
            address="aws_iam_role.app",
            type="aws_iam_role",
            name="app",
            actions=["no-op"],
            before={"name": "app"},
            after={"name": "app"},
        )
        self.assertEqual(change.changed_attributes(), [])


class TestLoadPlan(unittest.TestCase):
    """Loading plans from local files and S3."""

    def test_load_plan_from_path_and_local_prefix(self) -> None:
        path = str(FIXTURES / "sample_plan.json")
        self.assertEqual(len(load_plan(path).resource_changes), 6)
        self.assertEqual(len(load_plan("local://" + path).resource_changes), 6)

    @patch("plan_drift.utils.boto3.client")
    def test_load_plan_from_s3(self, mock_boto3_client: MagicMock) -> None:
        body = MagicMock()
        body.read.return_value = (FIXTURES / "sample_plan.json").read_bytes()
        mock_client = MagicMock()
        mock_client.get_object.return_value = {"Body": body}
        mock_boto3_client.return_value = mock_client

        plan = load_plan("s3://plans-bucket/app/plan.json", region_name="eu-west-2")

        mock_boto3_client.assert_called_once_with("s3", region_name="eu-west-2")
        mock_client.get_object.assert_called_once_with(Bucket="plans-bucket", Key="app/plan.json")
        self.assertEqual(len(plan.resource_changes), 6)

    def test_load_plan_missing_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(FileNotFoundError):
                load_plan(str(Path(tmp) / "missing.json"))


if __name__ == "__main__":
    unittest.main()
