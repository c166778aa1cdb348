# backend/infrasync/compiler/catalog.py
"""
Resource Catalog - the fixed set of AWS resource types the synthesizer
emits, their naming conventions and the IAM documents attached to them.

The naming helpers are shared with the reconstructor: a subnet synthesized
for network `<n>` is always `<n>-subnet`, and so on.
"""

import json
import re
from typing import Dict, List

from infrasync.ir.base import Block


# ============================================================
# Resource types
# ============================================================

VPC = "aws_vpc"
SUBNET = "aws_subnet"
ROUTE_TABLE = "aws_route_table"
ROUTE_TABLE_ASSOCIATION = "aws_route_table_association"
SECURITY_GROUP = "aws_security_group"
VPC_ENDPOINT = "aws_vpc_endpoint"

INSTANCE = "aws_instance"
IAM_ROLE = "aws_iam_role"
IAM_ROLE_POLICY = "aws_iam_role_policy"
IAM_ROLE_POLICY_ATTACHMENT = "aws_iam_role_policy_attachment"
IAM_INSTANCE_PROFILE = "aws_iam_instance_profile"

ECS_CLUSTER = "aws_ecs_cluster"
ECS_TASK_DEFINITION = "aws_ecs_task_definition"
ECS_SERVICE = "aws_ecs_service"

DYNAMODB_TABLE = "aws_dynamodb_table"
S3_BUCKET = "aws_s3_bucket"

GLUE_CATALOG_DATABASE = "aws_glue_catalog_database"
GLUE_CRAWLER = "aws_glue_crawler"


# ============================================================
# Principals, managed policies, action sets
# ============================================================

EC2_PRINCIPAL = "ec2.amazonaws.com"
ECS_TASKS_PRINCIPAL = "ecs-tasks.amazonaws.com"
GLUE_PRINCIPAL = "glue.amazonaws.com"

ECS_TASK_EXECUTION_POLICY_ARN = (
    "arn:aws:iam::aws:policy/service-role/AmazonECSTaskExecutionRolePolicy"
)
GLUE_SERVICE_POLICY_ARN = "arn:aws:iam::aws:policy/service-role/AWSGlueServiceRole"

KV_STORE_ACTIONS = [
    "dynamodb:GetItem",
    "dynamodb:PutItem",
    "dynamodb:UpdateItem",
    "dynamodb:DeleteItem",
    "dynamodb:Query",
]

OBJECT_STORE_ACTIONS = [
    "s3:GetObject",
    "s3:PutObject",
    "s3:ListBucket",
]

# Shared by every catalog crawler in one synthesis pass
CATALOG_ROLE_NAME = "catalog-crawler-role"
CATALOG_ROLE_ATTACHMENT_NAME = "catalog-crawler-service"
CATALOG_DATABASE_NAME = "catalog-db"

DEDICATED_TAG = "dedicated"


# ============================================================
# Naming conventions
# ============================================================

def subnet_name(network: str) -> str:
    return f"{network}-subnet"


def route_table_name(network: str) -> str:
    return f"{network}-rt"


def route_table_association_name(network: str) -> str:
    return f"{network}-rta"


def security_group_name(network: str) -> str:
    return f"{network}-sg"


def dedicated_network_name(owner: str) -> str:
    return f"{owner}-net"


def endpoint_name(store: str) -> str:
    return f"{store}-endpoint"


def crawler_name(crawler: str, table: str) -> str:
    return f"{crawler}-{table}"


def env_var_name(prefix: str, base: str) -> str:
    return f"{prefix}_{re.sub(r'[^A-Z0-9]+', '_', base.upper()).strip('_')}"


def vpc_cidr(index: int) -> str:
    return f"10.{index % 256}.0.0/16"


def subnet_cidr(index: int) -> str:
    return f"10.{index % 256}.1.0/24"


# ============================================================
# IAM documents
# ============================================================

def assume_role_policy(principal: str) -> str:
    return json.dumps(
        {
            "Version": "2012-10-17",
            "Statement": [
                {
                    "Effect": "Allow",
                    "Principal": {"Service": principal},
                    "Action": "sts:AssumeRole",
                }
            ],
        }
    )


def access_policy(statements: List[Dict]) -> str:
    return json.dumps({"Version": "2012-10-17", "Statement": statements})


def allow(actions: List[str], resources: List[str]) -> Dict:
    return {"Effect": "Allow", "Action": list(actions), "Resource": list(resources)}


# ============================================================
# Reusable blocks
# ============================================================

def allow_all_rule(direction: str) -> Block:
    return Block(
        name=direction,
        body={
            "from_port": 0,
            "to_port": 0,
            "protocol": "-1",
            "cidr_blocks": ["0.0.0.0/0"],
        },
    )


def kv_store_schema_blocks() -> List[Block]:
    """Fixed pk/sk schema, one secondary index, ttl and PITR disabled."""
    return [
        Block("attribute", {"name": "pk", "type": "S"}),
        Block("attribute", {"name": "sk", "type": "S"}),
        Block("attribute", {"name": "gsi1pk", "type": "S"}),
        Block("attribute", {"name": "gsi1sk", "type": "S"}),
        Block(
            "global_secondary_index",
            {
                "name": "gsi1",
                "hash_key": "gsi1pk",
                "range_key": "gsi1sk",
                "projection_type": "ALL",
            },
        ),
        Block("ttl", {"attribute_name": "expires_at", "enabled": False}),
        Block("point_in_time_recovery", {"enabled": False}),
    ]
