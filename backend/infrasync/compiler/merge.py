# backend/infrasync/compiler/merge.py

from typing import Set

from infrasync.compiler import catalog
from infrasync.ir.base import InfraIR, RESOURCE

# Every type the synthesizer can produce; hand-written declarations of these
# types are regenerated from the graph instead of carried over
MANAGED_TYPES: Set[str] = {
    catalog.VPC,
    catalog.SUBNET,
    catalog.ROUTE_TABLE,
    catalog.ROUTE_TABLE_ASSOCIATION,
    catalog.SECURITY_GROUP,
    catalog.VPC_ENDPOINT,
    catalog.INSTANCE,
    catalog.IAM_ROLE,
    catalog.IAM_ROLE_POLICY,
    catalog.IAM_ROLE_POLICY_ATTACHMENT,
    catalog.IAM_INSTANCE_PROFILE,
    catalog.ECS_CLUSTER,
    catalog.ECS_TASK_DEFINITION,
    catalog.ECS_SERVICE,
    catalog.DYNAMODB_TABLE,
    catalog.S3_BUCKET,
    catalog.GLUE_CATALOG_DATABASE,
    catalog.GLUE_CRAWLER,
}


def merge_unmanaged(synthesized: InfraIR, parsed: InfraIR) -> InfraIR:
    """
    Synthesized declarations plus whatever the parsed text held that the
    graph cannot represent (unknown resource types, extra variables,
    data sources, other providers). Synthesized entries win on identity.
    """
    merged = InfraIR(
        variables=list(synthesized.variables),
        providers=list(synthesized.providers),
        data=list(synthesized.data),
        resources=list(synthesized.resources),
    )
    taken = set(synthesized.identities())

    for declaration in parsed:
        if declaration.identity in taken:
            continue
        if declaration.kind == RESOURCE and declaration.type_name in MANAGED_TYPES:
            continue
        merged.add(declaration)
        taken.add(declaration.identity)

    return merged
