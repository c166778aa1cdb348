# backend/infrasync/compiler/localstack.py
"""
LocalStack Normalizer

Rewrites declarative text so it deploys against a LocalStack endpoint:
existing `provider "aws"` blocks are replaced by one that uses test
credentials and routes every AWS service family in use to the local
endpoint. A `terraform { required_providers }` header is prepended when
the text does not carry one. Everything else is left as written.
"""

import logging
import re
from typing import Optional, Set

from infrasync import config
from infrasync.compiler.render_hcl import render_resource
from infrasync.dsl.hcl_parser import parse_hcl, top_level_blocks
from infrasync.ir.base import Block, InfraIR, Resource, PROVIDER

logger = logging.getLogger(__name__)

TERRAFORM_HEADER = """terraform {
  required_providers {
    aws = {
      source  = "hashicorp/aws"
      version = "~> 5.0"
    }
  }
}

"""

# Type-name prefix (after "aws_") -> provider endpoint key, checked in order.
# Service families that own subnet or security-group types (rds, redshift,
# ...) come after the ec2 check.
ENDPOINT_PREFIXES = [
    ("s3", "s3"),
    ("dynamodb", "dynamodb"),
    ("lambda", "lambda"),
    ("sqs", "sqs"),
    ("sns", "sns"),
    ("secretsmanager", "secretsmanager"),
    ("ssm", "ssm"),
    ("iam", "iam"),
    ("ecs", "ecs"),
    ("ecr", "ecr"),
]

LATE_ENDPOINT_PREFIXES = [
    ("glue", "glue"),
    ("cloudwatch_log", "cloudwatchlogs"),
    ("logs_", "cloudwatchlogs"),
    ("apigateway", "apigateway"),
    ("kinesis", "kinesis"),
    ("kms", "kms"),
    ("route53", "route53"),
    ("rds", "rds"),
    ("redshift", "redshift"),
    ("ses", "ses"),
    ("stepfunctions", "stepfunctions"),
    ("sfn", "stepfunctions"),
    ("sts", "sts"),
]

# Everything else in the ec2 family: vpc, subnet, route tables, security groups, instances
EC2_MARKERS = ("ec2", "vpc", "instance", "route_table", "internet_gateway", "nat_gateway", "eip")

REQUIRED_PROVIDERS_RE = re.compile(r"\brequired_providers\b")
BLANK_RUN_RE = re.compile(r"\n{3,}")


def endpoint_key(type_name: str) -> Optional[str]:
    if not type_name.startswith("aws_"):
        return None
    aws_type = type_name[len("aws_"):]

    for prefix, key in ENDPOINT_PREFIXES:
        if aws_type.startswith(prefix):
            return key

    if aws_type.startswith(EC2_MARKERS) or "subnet" in aws_type or "security_group" in aws_type:
        return "ec2"

    for prefix, key in LATE_ENDPOINT_PREFIXES:
        if aws_type.startswith(prefix):
            return key
    return None


def detect_services(ir: InfraIR) -> Set[str]:
    services = set()
    for declaration in list(ir.resources) + list(ir.data):
        key = endpoint_key(declaration.type_name)
        if key:
            services.add(key)
    return services


def localstack_provider(services: Set[str], endpoint: str, region: str) -> Resource:
    blocks = []
    if services:
        blocks.append(Block("endpoints", {svc: endpoint for svc in sorted(services)}))

    return Resource(
        kind=PROVIDER,
        type_name="aws",
        properties={
            "access_key": "test",
            "secret_key": "test",
            "region": region,
            "skip_credentials_validation": True,
            "skip_requesting_account_id": True,
            "s3_use_path_style": True,
        },
        blocks=blocks,
    )


def ensure_localstack(
    text: str,
    endpoint: str = config.LOCALSTACK_ENDPOINT,
    region: str = config.INFRASYNC_REGION,
) -> str:
    """
    Text-in, text-out LocalStack normalization.

    Only the `provider "aws"` blocks are cut out; every other line of the
    input (comments, outputs, locals, modules, a terraform backend) is kept
    as written. The header is prepended only when no top-level `terraform`
    block already declares `required_providers`.

    Raises MalformedSyntax when the input cannot be parsed.
    """
    if not text or not text.strip():
        return text

    services = detect_services(parse_hcl(text))

    kept = []
    cursor = 0
    has_header = False
    for block in top_level_blocks(text):
        if block.word == "terraform" and REQUIRED_PROVIDERS_RE.search(block.body):
            has_header = True
        if block.word == PROVIDER and block.labels == ["aws"]:
            kept.append(text[cursor:block.start])
            cursor = block.end
    kept.append(text[cursor:])
    rest = "".join(kept).strip()

    logger.info(
        "[LOCALSTACK] routing %s to %s",
        sorted(services) or "no services",
        endpoint,
    )

    out = "" if has_header else TERRAFORM_HEADER
    out += render_resource(localstack_provider(services, endpoint, region))
    if rest:
        out += "\n" + rest + "\n"
    return BLANK_RUN_RE.sub("\n\n", out)
