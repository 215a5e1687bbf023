"""Tests for converting terraform output into resource progress records."""

from stackpilot.deploy.models import ApplyState, PlannedResourceAction, ResourceProgress
from stackpilot.deploy.parser import classify_line, parse_output, strip_ansi


class TestStripAnsi:
    def test_removes_color_codes(self):
        assert strip_ansi("\x1b[0m\x1b[1maws_instance.foo: Creating...\x1b[0m") == (
            "aws_instance.foo: Creating..."
        )

    def test_plain_text_unchanged(self):
        assert strip_ansi("nothing to strip") == "nothing to strip"


class TestClassifyLine:
    def test_each_marker(self):
        assert classify_line("x: Creating...") is ApplyState.CREATING
        assert classify_line("x: Creation complete after 4s") is ApplyState.CREATED
        assert classify_line("x: Modifying... [id=i-123]") is ApplyState.UPDATING
        assert classify_line("x: Modifications complete after 1s") is ApplyState.UPDATED
        assert classify_line("x: Destroying... [id=i-123]") is ApplyState.DESTROYING
        assert classify_line("x: Destruction complete after 2s") is ApplyState.DESTROYED

    def test_unknown_line_is_waiting(self):
        assert classify_line("x: Still creating... [10s elapsed]") is ApplyState.WAITING


class TestParseOutput:
    def test_creating_line(self):
        assert parse_output("aws_instance.foo: Creating...") == [
            ResourceProgress(
                id="aws_instance.foo",
                action=PlannedResourceAction.CREATE,
                apply_state=ApplyState.CREATING,
            )
        ]

    def test_creation_complete_line(self):
        records = parse_output("aws_instance.foo: Creation complete after 4s [id=i-abc]")
        assert len(records) == 1
        assert records[0].id == "aws_instance.foo"
        assert records[0].apply_state is ApplyState.CREATED

    def test_accepts_bytes_with_ansi(self):
        chunk = b"\x1b[0m\x1b[1maws_instance.foo: Destroying... [id=i-abc]\x1b[0m\n"
        records = parse_output(chunk)
        assert [(r.id, r.apply_state) for r in records] == [
            ("aws_instance.foo", ApplyState.DESTROYING)
        ]

    def test_outputs_and_data_lines_are_ignored(self):
        chunk = "\n".join(
            [
                "Outputs:",
                "data.aws_ami.ubuntu: Reading...",
                "data.aws_ami.ubuntu: Read complete after 1s",
            ]
        )
        assert parse_output(chunk) == []

    def test_lines_without_resource_prefix_are_ignored(self):
        chunk = "\n".join(
            [
                "",
                "Apply complete! Resources: 1 added, 0 changed, 0 destroyed.",
                "  ip = 10.0.0.1",
                "module.vpc.aws_subnet.a[0]: Creating...",
            ]
        )
        assert parse_output(chunk) == []

    def test_multiple_lines_keep_order(self):
        chunk = (
            "aws_s3_bucket.logs: Creating...\n"
            "aws_instance.web: Modifying... [id=i-1]\n"
            "aws_s3_bucket.logs: Creation complete after 2s\n"
        )
        records = parse_output(chunk)
        assert [(r.id, r.apply_state) for r in records] == [
            ("aws_s3_bucket.logs", ApplyState.CREATING),
            ("aws_instance.web", ApplyState.UPDATING),
            ("aws_s3_bucket.logs", ApplyState.CREATED),
        ]

    def test_every_record_is_tagged_create(self):
        records = parse_output("aws_instance.web: Destruction complete after 1s")
        assert records[0].action is PlannedResourceAction.CREATE

    def test_resource_line_without_marker_is_waiting(self):
        records = parse_output("aws_instance.web: Still creating... [10s elapsed]")
        assert records[0].apply_state is ApplyState.WAITING

    def test_garbage_never_raises(self):
        assert parse_output(b"\xff\xfe\x00garbage") == []
        assert parse_output("") == []
