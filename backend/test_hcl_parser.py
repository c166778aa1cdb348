import pytest

from infrasync.compiler.render_hcl import render_hcl
from infrasync.dsl import parse_hcl, strip_comments
from infrasync.ir import MalformedSyntax, RESOURCE

HAND_WRITTEN = '''
# main network
terraform {
  required_providers {
    aws = { source = "hashicorp/aws" }
  }
}

provider "aws" {
  region = "eu-west-1" // inline comment
}

/* a table
   spanning lines */
resource "aws_dynamodb_table" "Orders_Table" {
  name         = "orders"
  hash_key     = "pk"
  read_capacity = 5
  stream_enabled = false
  tags = {
    Name = "Orders"
    "url" = "http://example.com/#anchor"
  }
  attribute {
    name = "pk"
    type = "S"
  }
}

resource "aws_subnet" "main_subnet" {
  vpc_id = aws_vpc.main.id
  cidr_block = "10.0.1.0/24"
  ids = ["a", "b",]
}
'''


def test_parses_hand_written_text():
    ir = parse_hcl(HAND_WRITTEN)

    assert [r.identity for r in ir] == [
        ("provider", "aws", ""),
        ("resource", "aws_dynamodb_table", "orders-table"),
        ("resource", "aws_subnet", "main-subnet"),
    ]

    table = ir.get("aws_dynamodb_table", "orders-table")
    assert table.properties["read_capacity"] == 5
    assert table.properties["stream_enabled"] is False
    assert table.properties["tags"] == {"Name": "Orders", "url": "http://example.com/#anchor"}
    assert table.blocks_named("attribute")[0].body == {"name": "pk", "type": "S"}

    subnet = ir.get("aws_subnet", "main-subnet")
    # bare references stay opaque
    assert subnet.properties["vpc_id"] == "aws_vpc.main.id"
    assert subnet.properties["ids"] == ["a", "b"]


def test_strip_comments_keeps_offsets():
    text = 'a = 1 # note\nb = "#x"\n'
    stripped = strip_comments(text)

    assert len(stripped) == len(text)
    assert stripped.splitlines()[0].rstrip() == "a = 1"
    assert '"#x"' in stripped


def test_unbalanced_brace_reports_line():
    text = 'provider "aws" {\n  region = "x"\n}\n\nresource "aws_vpc" "main" {\n  cidr_block = "10.0.0.0/16"\n'

    with pytest.raises(MalformedSyntax) as info:
        parse_hcl(text)

    assert info.value.line == 5
    assert "unbalanced" in info.value.message


def test_missing_labels_is_malformed():
    with pytest.raises(MalformedSyntax):
        parse_hcl('resource "aws_vpc" {\n}\n')


def test_unterminated_block_comment_is_malformed():
    with pytest.raises(MalformedSyntax):
        parse_hcl('/* never closed\nresource "a" "b" {}\n')


def test_empty_text_is_empty_ir():
    assert len(parse_hcl("")) == 0
    assert len(parse_hcl("# only a comment\n")) == 0


def test_escapes_survive_emit_and_parse():
    ir = parse_hcl('resource "x_doc" "d" {\n  body = "line\\none \\"quoted\\" back\\\\slash"\n}\n')
    assert ir.resources[0].properties["body"] == 'line\none "quoted" back\\slash'

    again = parse_hcl(render_hcl(ir))
    assert again.to_dict() == ir.to_dict()


def test_null_and_numbers():
    ir = parse_hcl('resource "x" "y" {\n  a = null\n  b = -2\n  c = 0.5\n  d = var.size\n}\n')
    props = ir.resources[0].properties

    assert props == {"a": None, "b": -2, "c": 0.5, "d": "var.size"}


TASK_WITH_JSONENCODE = '''
resource "aws_ecs_task_definition" "api-task" {
  family = "api"
  container_definitions = jsonencode([
    {
      name  = "api"
      image = "nginx:latest"
      environment = [
        { name = "ORDERS_TABLE", value = aws_dynamodb_table.orders.name },
        { name = "NOTE", value = "braces } and ) in a string" },
      ]
    }
  ])
  cpu = lookup(var.sizes, "cpu")
  memory = 512
}
'''


def test_function_calls_are_kept_as_opaque_text():
    task = parse_hcl(TASK_WITH_JSONENCODE).get("aws_ecs_task_definition", "api-task")
    definitions = task.properties["container_definitions"]

    assert definitions.startswith("jsonencode([")
    assert definitions.endswith("])")
    assert "aws_dynamodb_table.orders.name" in definitions
    assert "braces } and ) in a string" in definitions
    assert task.properties["cpu"] == 'lookup(var.sizes, "cpu")'
    assert task.properties["memory"] == 512


def test_call_inside_a_list():
    ir = parse_hcl('resource "x" "y" {\n  ids = [lower(var.a), "b"]\n}\n')
    assert ir.resources[0].properties["ids"] == ["lower(var.a)", "b"]


def test_unbalanced_call_is_malformed():
    with pytest.raises(MalformedSyntax) as info:
        parse_hcl('resource "x" "y" {\n  a = jsonencode([1, 2\n}\n')

    assert "unbalanced" in info.value.message
