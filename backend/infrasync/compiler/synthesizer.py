#backend\infrasync\compiler\synthesizer.py

"""
Resource Synthesizer - expands a GraphModel into a dependency-complete InfraIR.

Deterministic given a graph snapshot and a suffix strategy.
Never fails on missing neighbors (a dedicated network is synthesized
instead). Unpinned names are bumped until every derived resource name is
free, so NameCollision is only raised for clashing pinned names.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple, Union

from infrasync import config
from infrasync.compiler import catalog
from infrasync.graph.adjacency import AdjacencyIndex
from infrasync.graph.model import GraphModel, GraphSnapshot, Node, NodeKind
from infrasync.ir.base import Block, InfraIR, Resource, PROVIDER, RESOURCE, VARIABLE
from infrasync.ir.errors import NameCollision, UnresolvedNeighbor
from infrasync.ir.naming import (
    SuffixStrategy,
    disambiguate,
    normalize_name,
    suffix_strategy_from_config,
)

logger = logging.getLogger(__name__)

DEFAULT_BASES = {
    NodeKind.NETWORK: "vpc",
    NodeKind.COMPUTE: "instance",
    NodeKind.CONTAINER_PLATFORM: "ecs",
    NodeKind.KV_STORE: "table",
    NodeKind.CATALOG_CRAWLER: "crawler",
    NodeKind.OBJECT_STORE: "bucket",
}

# Processing order; node order is kept within each kind
KIND_ORDER = [
    NodeKind.NETWORK,
    NodeKind.KV_STORE,
    NodeKind.OBJECT_STORE,
    NodeKind.COMPUTE,
    NodeKind.CONTAINER_PLATFORM,
]

SHARED_CRAWLER_NAMES = {
    (catalog.IAM_ROLE, catalog.CATALOG_ROLE_NAME),
    (catalog.IAM_ROLE_POLICY_ATTACHMENT, catalog.CATALOG_ROLE_ATTACHMENT_NAME),
    (catalog.GLUE_CATALOG_DATABASE, catalog.CATALOG_DATABASE_NAME),
}


def _network_names(base: str, dedicated: bool) -> Set[Tuple[str, str]]:
    names = {
        (catalog.VPC, base),
        (catalog.SUBNET, catalog.subnet_name(base)),
        (catalog.SECURITY_GROUP, catalog.security_group_name(base)),
    }
    if not dedicated:
        names |= {
            (catalog.ROUTE_TABLE, catalog.route_table_name(base)),
            (catalog.ROUTE_TABLE_ASSOCIATION, catalog.route_table_association_name(base)),
        }
    return names


# ============================================================
# Pass state
# ============================================================

@dataclass
class NetworkRefs:
    vpc: Resource
    subnet: Resource
    security_group: Resource
    route_table: Optional[Resource] = None
    dedicated: bool = False


@dataclass
class SynthesisResult:
    ir: InfraIR
    # compute/container node id -> vpc instance name it is bound to
    bindings: Dict[str, str] = field(default_factory=dict)
    fallbacks: List[UnresolvedNeighbor] = field(default_factory=list)
    owners: Dict[Tuple[str, str, str], str] = field(default_factory=dict)


class ResourceRegistry:
    """Collects resources for one pass and refuses duplicate identities."""

    def __init__(self):
        self.ir = InfraIR()
        self.owners: Dict[Tuple[str, str, str], str] = {}

    def add(self, resource: Resource, owner: str) -> Resource:
        if resource.identity in self.owners:
            raise NameCollision(resource.identity, self.owners[resource.identity], owner)
        self.owners[resource.identity] = owner
        return self.ir.add(resource)


def _resource(type_name: str, name: str, properties: dict, blocks: List[Block] = None) -> Resource:
    return Resource(
        kind=RESOURCE,
        type_name=type_name,
        instance_name=name,
        properties=properties,
        blocks=blocks or [],
    )


# ============================================================
# Synthesizer
# ============================================================

class ResourceSynthesizer:
    """
    Usage:
        synthesizer = ResourceSynthesizer()
        ir = synthesizer.synthesize(graph)
    """

    def __init__(
        self,
        suffix_strategy: Optional[SuffixStrategy] = None,
        region: str = config.INFRASYNC_REGION,
        instance_ami: str = config.INFRASYNC_INSTANCE_AMI,
        instance_type: str = config.INFRASYNC_INSTANCE_TYPE,
        container_image: str = config.INFRASYNC_CONTAINER_IMAGE,
    ):
        self.suffix_strategy = suffix_strategy or suffix_strategy_from_config(
            config.NAME_SUFFIX_STRATEGY, config.NAME_SUFFIX_SEED
        )
        self.region = region
        self.instance_ami = instance_ami
        self.instance_type = instance_type
        self.container_image = container_image

    def synthesize(self, graph: Union[GraphModel, GraphSnapshot]) -> InfraIR:
        return self.run(graph).ir

    def run(self, graph: Union[GraphModel, GraphSnapshot]) -> SynthesisResult:
        snapshot = graph.snapshot() if isinstance(graph, GraphModel) else graph
        synthesis = _SynthesisPass(self, snapshot)
        result = synthesis.execute()
        logger.info(
            "[SYNTH] %d nodes, %d edges -> %d declarations (%d dedicated networks)",
            len(snapshot.nodes),
            len(snapshot.edges),
            len(result.ir),
            len(result.fallbacks),
        )
        return result


class _SynthesisPass:
    """State for a single synthesis: fresh registry, fresh adjacency."""

    def __init__(self, synthesizer: ResourceSynthesizer, snapshot: GraphSnapshot):
        self.settings = synthesizer
        self.snapshot = snapshot
        self.adjacency = AdjacencyIndex.build(snapshot)
        self.registry = ResourceRegistry()
        self.result = SynthesisResult(ir=self.registry.ir)

        self.bases, self.names = self._assign_names()
        self.networks: Dict[str, NetworkRefs] = {}
        self._cidr_index = 0

    # ---------- naming ----------

    def _assign_names(self) -> Tuple[Dict[str, str], Dict[str, str]]:
        """
        One base and one instance name per node.

        Pinned nodes keep their name. Any other node takes the first of
        `base`, `base-2`, ... that no node uses yet and whose derived
        resource names (subnet, role, endpoint, dedicated network, ...)
        are all still free. Crawlers go last, their names embed table names.
        """
        bases: Dict[str, str] = {}
        names: Dict[str, str] = {}
        used = set()
        reserved: Set[Tuple[str, str]] = set()
        if self.snapshot.nodes_of(NodeKind.CATALOG_CRAWLER):
            reserved |= SHARED_CRAWLER_NAMES

        ordered = sorted(
            self.snapshot.nodes,
            key=lambda n: (n.kind is NodeKind.CATALOG_CRAWLER, not n.resource_name),
        )
        for node in ordered:
            seed = self._seed_base(node)
            candidate = seed
            name, derived = self._derived_names(node, candidate, names)

            if not node.resource_name:
                counter = 2
                while candidate in used or not reserved.isdisjoint(derived):
                    candidate = f"{seed}-{counter}"
                    counter += 1
                    name, derived = self._derived_names(node, candidate, names)
                if candidate != seed:
                    logger.debug("[SYNTH] %s renamed %s -> %s", node.id, seed, candidate)

            used.add(candidate)
            reserved |= derived
            bases[node.id] = candidate
            names[node.id] = name

        return bases, names

    @staticmethod
    def _seed_base(node: Node) -> str:
        base = normalize_name(node.resource_name or node.label)
        if not base:
            return DEFAULT_BASES[node.kind]
        if not base[0].isalpha():
            return f"{DEFAULT_BASES[node.kind]}-{base}"
        return base

    def _derived_names(self, node: Node, base: str, names: Dict[str, str]) -> Tuple[str, Set[Tuple[str, str]]]:
        """Instance name of `node` under `base`, and every (type, name) it will emit."""
        kind = node.kind
        name = base
        derived: Set[Tuple[str, str]] = set()
        in_network = self.adjacency.first_neighbor(node.id, NodeKind.NETWORK) is not None

        if kind is NodeKind.NETWORK:
            derived |= _network_names(base, dedicated=False)

        elif kind in (NodeKind.KV_STORE, NodeKind.OBJECT_STORE):
            if kind is NodeKind.KV_STORE:
                derived.add((catalog.DYNAMODB_TABLE, name))
            else:
                # a pinned name already carries its suffix
                if not node.resource_name:
                    name = disambiguate(base, self.settings.suffix_strategy, identity=f"{node.id}:{base}")
                derived.add((catalog.S3_BUCKET, name))
            if in_network:
                derived.add((catalog.VPC_ENDPOINT, catalog.endpoint_name(name)))

        elif kind is NodeKind.COMPUTE:
            derived.add((catalog.INSTANCE, base))
            if self.adjacency.neighbors_of_kind(node.id, NodeKind.KV_STORE):
                derived |= {
                    (catalog.IAM_ROLE, f"{base}-role"),
                    (catalog.IAM_ROLE_POLICY, f"{base}-kv-access"),
                    (catalog.IAM_INSTANCE_PROFILE, f"{base}-profile"),
                }

        elif kind is NodeKind.CONTAINER_PLATFORM:
            derived |= {
                (catalog.IAM_ROLE, f"{base}-exec-role"),
                (catalog.IAM_ROLE_POLICY_ATTACHMENT, f"{base}-exec-policy"),
                (catalog.ECS_CLUSTER, f"{base}-cluster"),
                (catalog.ECS_TASK_DEFINITION, f"{base}-task"),
                (catalog.ECS_SERVICE, f"{base}-service"),
            }
            if (self.adjacency.neighbors_of_kind(node.id, NodeKind.KV_STORE)
                    or self.adjacency.neighbors_of_kind(node.id, NodeKind.OBJECT_STORE)):
                derived |= {
                    (catalog.IAM_ROLE, f"{base}-task-role"),
                    (catalog.IAM_ROLE_POLICY, f"{base}-store-access"),
                }

        elif kind is NodeKind.CATALOG_CRAWLER:
            for table in self.adjacency.edge_neighbors_of_kind(node.id, NodeKind.KV_STORE):
                derived.add((catalog.GLUE_CRAWLER, catalog.crawler_name(base, names[table.id])))

        if kind in (NodeKind.COMPUTE, NodeKind.CONTAINER_PLATFORM) and not in_network:
            derived |= _network_names(catalog.dedicated_network_name(base), dedicated=True)

        return name, derived

    # ---------- entry ----------

    def execute(self) -> SynthesisResult:
        if not self.snapshot.nodes:
            return self.result

        self._add_common()

        handlers = {
            NodeKind.NETWORK: self._network_node,
            NodeKind.KV_STORE: self._kv_store_node,
            NodeKind.OBJECT_STORE: self._object_store_node,
            NodeKind.COMPUTE: self._compute_node,
            NodeKind.CONTAINER_PLATFORM: self._container_node,
        }
        for kind in KIND_ORDER:
            for node in self.snapshot.nodes_of(kind):
                handlers[kind](node)

        self._catalog_crawlers()

        self.result.owners = dict(self.registry.owners)
        return self.result

    def _add(self, resource: Resource, owner: Node = None) -> Resource:
        return self.registry.add(resource, owner.id if owner else "shared")

    def _add_common(self) -> None:
        self._add(
            Resource(
                kind=VARIABLE,
                type_name="region",
                properties={
                    "description": "AWS region to deploy into",
                    "default": self.settings.region,
                },
            )
        )
        self._add(
            Resource(
                kind=VARIABLE,
                type_name="instance_ami",
                properties={
                    "description": "AMI used by compute instances",
                    "default": self.settings.instance_ami,
                },
            )
        )
        self._add(
            Resource(
                kind=PROVIDER,
                type_name="aws",
                properties={"region": "${var.region}"},
            )
        )

    # ---------- networks ----------

    def _network_node(self, node: Node) -> None:
        self.networks[node.id] = self._build_network(node, self.bases[node.id], dedicated=False)

    def _build_network(self, owner: Node, base: str, dedicated: bool) -> NetworkRefs:
        index = self._cidr_index
        self._cidr_index += 1

        tags = {"Name": owner.label}
        if dedicated:
            tags = {"Name": base, "Role": catalog.DEDICATED_TAG}

        vpc = self._add(
            _resource(
                catalog.VPC,
                base,
                {
                    "cidr_block": catalog.vpc_cidr(index),
                    "enable_dns_support": True,
                    "enable_dns_hostnames": True,
                    "tags": tags,
                },
            ),
            owner,
        )
        subnet = self._add(
            _resource(
                catalog.SUBNET,
                catalog.subnet_name(base),
                {
                    "vpc_id": vpc.ref("id"),
                    "cidr_block": catalog.subnet_cidr(index),
                    "tags": {"Name": catalog.subnet_name(base)},
                },
            ),
            owner,
        )

        route_table = None
        if not dedicated:
            route_table = self._add(
                _resource(
                    catalog.ROUTE_TABLE,
                    catalog.route_table_name(base),
                    {
                        "vpc_id": vpc.ref("id"),
                        "tags": {"Name": catalog.route_table_name(base)},
                    },
                ),
                owner,
            )
            self._add(
                _resource(
                    catalog.ROUTE_TABLE_ASSOCIATION,
                    catalog.route_table_association_name(base),
                    {
                        "subnet_id": subnet.ref("id"),
                        "route_table_id": route_table.ref("id"),
                    },
                ),
                owner,
            )

        security_group = self._add(
            _resource(
                catalog.SECURITY_GROUP,
                catalog.security_group_name(base),
                {
                    "name": catalog.security_group_name(base),
                    "description": f"Default allow for {base}",
                    "vpc_id": vpc.ref("id"),
                },
                [catalog.allow_all_rule("ingress"), catalog.allow_all_rule("egress")],
            ),
            owner,
        )

        return NetworkRefs(
            vpc=vpc,
            subnet=subnet,
            security_group=security_group,
            route_table=route_table,
            dedicated=dedicated,
        )

    def _bind_network(self, node: Node) -> NetworkRefs:
        """
        Every compute-like node ends up on exactly one subnet: the first
        Network neighbor's, or a dedicated minimal network of its own.
        """
        network = self.adjacency.first_neighbor(node.id, NodeKind.NETWORK)
        if network is not None:
            refs = self.networks[network.id]
        else:
            base = catalog.dedicated_network_name(self.bases[node.id])
            fallback = UnresolvedNeighbor(node_id=node.id, required_kind="network", fallback=base)
            self.result.fallbacks.append(fallback)
            logger.debug("[SYNTH] %s has no network neighbor, using %s", node.id, base)
            refs = self._build_network(node, base, dedicated=True)

        self.result.bindings[node.id] = refs.vpc.instance_name
        return refs

    def _private_endpoint(self, node: Node, service: str) -> None:
        network = self.adjacency.first_neighbor(node.id, NodeKind.NETWORK)
        if network is None:
            return
        refs = self.networks[network.id]
        self._add(
            _resource(
                catalog.VPC_ENDPOINT,
                catalog.endpoint_name(self.names[node.id]),
                {
                    "vpc_id": refs.vpc.ref("id"),
                    "service_name": "com.amazonaws.${var.region}." + service,
                    "vpc_endpoint_type": "Gateway",
                    "route_table_ids": [refs.route_table.ref("id")],
                },
            ),
            node,
        )

    # ---------- stores ----------

    def _table_ref(self, node: Node, attribute: str) -> str:
        return "${" + f"{catalog.DYNAMODB_TABLE}.{self.names[node.id]}.{attribute}" + "}"

    def _bucket_ref(self, node: Node, attribute: str) -> str:
        return "${" + f"{catalog.S3_BUCKET}.{self.names[node.id]}.{attribute}" + "}"

    def _kv_store_node(self, node: Node) -> None:
        name = self.names[node.id]
        self._add(
            _resource(
                catalog.DYNAMODB_TABLE,
                name,
                {
                    "name": name,
                    "billing_mode": "PAY_PER_REQUEST",
                    "hash_key": "pk",
                    "range_key": "sk",
                    "tags": {"Name": node.label},
                },
                catalog.kv_store_schema_blocks(),
            ),
            node,
        )
        self._private_endpoint(node, "dynamodb")

    def _object_store_node(self, node: Node) -> None:
        name = self.names[node.id]
        self._add(
            _resource(
                catalog.S3_BUCKET,
                name,
                {
                    "bucket": name,
                    "force_destroy": False,
                    "tags": {"Name": node.label},
                },
            ),
            node,
        )
        self._private_endpoint(node, "s3")

    def _store_statements(self, kv_stores: List[Node], buckets: List[Node]) -> List[dict]:
        statements = []
        if kv_stores:
            statements.append(
                catalog.allow(
                    catalog.KV_STORE_ACTIONS,
                    [self._table_ref(n, "arn") for n in kv_stores],
                )
            )
        if buckets:
            resources = []
            for n in buckets:
                arn = self._bucket_ref(n, "arn")
                resources.extend([arn, f"{arn}/*"])
            statements.append(catalog.allow(catalog.OBJECT_STORE_ACTIONS, resources))
        return statements

    # ---------- compute ----------

    def _compute_node(self, node: Node) -> None:
        base = self.bases[node.id]
        network = self._bind_network(node)

        properties = {
            "ami": "${var.instance_ami}",
            "instance_type": self.settings.instance_type,
            "subnet_id": network.subnet.ref("id"),
            "vpc_security_group_ids": [network.security_group.ref("id")],
            "tags": {"Name": node.label},
        }

        kv_stores = self.adjacency.neighbors_of_kind(node.id, NodeKind.KV_STORE)
        if kv_stores:
            role = self._add(
                _resource(
                    catalog.IAM_ROLE,
                    f"{base}-role",
                    {
                        "name": f"{base}-role",
                        "assume_role_policy": catalog.assume_role_policy(catalog.EC2_PRINCIPAL),
                    },
                ),
                node,
            )
            self._add(
                _resource(
                    catalog.IAM_ROLE_POLICY,
                    f"{base}-kv-access",
                    {
                        "name": f"{base}-kv-access",
                        "role": role.ref("id"),
                        "policy": catalog.access_policy(self._store_statements(kv_stores, [])),
                    },
                ),
                node,
            )
            profile = self._add(
                _resource(
                    catalog.IAM_INSTANCE_PROFILE,
                    f"{base}-profile",
                    {
                        "name": f"{base}-profile",
                        "role": role.ref("name"),
                    },
                ),
                node,
            )
            properties["iam_instance_profile"] = profile.ref("name")

        self._add(_resource(catalog.INSTANCE, base, properties), node)

    # ---------- container platform ----------

    def _container_node(self, node: Node) -> None:
        base = self.bases[node.id]
        network = self._bind_network(node)

        execution_role = self._add(
            _resource(
                catalog.IAM_ROLE,
                f"{base}-exec-role",
                {
                    "name": f"{base}-exec-role",
                    "assume_role_policy": catalog.assume_role_policy(catalog.ECS_TASKS_PRINCIPAL),
                },
            ),
            node,
        )
        self._add(
            _resource(
                catalog.IAM_ROLE_POLICY_ATTACHMENT,
                f"{base}-exec-policy",
                {
                    "role": execution_role.ref("name"),
                    "policy_arn": catalog.ECS_TASK_EXECUTION_POLICY_ARN,
                },
            ),
            node,
        )

        kv_stores = self.adjacency.neighbors_of_kind(node.id, NodeKind.KV_STORE)
        buckets = self.adjacency.neighbors_of_kind(node.id, NodeKind.OBJECT_STORE)

        environment = []
        for store in kv_stores:
            environment.append(
                {
                    "name": catalog.env_var_name("TABLE", self.bases[store.id]),
                    "value": self._table_ref(store, "name"),
                }
            )
        for store in buckets:
            environment.append(
                {
                    "name": catalog.env_var_name("BUCKET", self.bases[store.id]),
                    "value": self._bucket_ref(store, "id"),
                }
            )

        task_role = None
        if kv_stores or buckets:
            task_role = self._add(
                _resource(
                    catalog.IAM_ROLE,
                    f"{base}-task-role",
                    {
                        "name": f"{base}-task-role",
                        "assume_role_policy": catalog.assume_role_policy(catalog.ECS_TASKS_PRINCIPAL),
                    },
                ),
                node,
            )
            self._add(
                _resource(
                    catalog.IAM_ROLE_POLICY,
                    f"{base}-store-access",
                    {
                        "name": f"{base}-store-access",
                        "role": task_role.ref("id"),
                        "policy": catalog.access_policy(self._store_statements(kv_stores, buckets)),
                    },
                ),
                node,
            )

        cluster = self._add(
            _resource(catalog.ECS_CLUSTER, f"{base}-cluster", {"name": f"{base}-cluster"}),
            node,
        )

        container = {
            "name": base,
            "image": self.settings.container_image,
            "essential": True,
            "portMappings": [{"containerPort": 80, "protocol": "tcp"}],
            "environment": environment,
        }
        task_properties = {
            "family": base,
            "requires_compatibilities": ["FARGATE"],
            "network_mode": "awsvpc",
            "cpu": "256",
            "memory": "512",
            "execution_role_arn": execution_role.ref("arn"),
        }
        if task_role is not None:
            task_properties["task_role_arn"] = task_role.ref("arn")
        task_properties["container_definitions"] = json.dumps([container])

        task = self._add(
            _resource(catalog.ECS_TASK_DEFINITION, f"{base}-task", task_properties),
            node,
        )

        self._add(
            _resource(
                catalog.ECS_SERVICE,
                f"{base}-service",
                {
                    "name": f"{base}-service",
                    "cluster": cluster.ref("id"),
                    "task_definition": task.ref("arn"),
                    "desired_count": 1,
                    "launch_type": "FARGATE",
                    "tags": {"Name": node.label},
                },
                [
                    Block(
                        "network_configuration",
                        {
                            "subnets": [network.subnet.ref("id")],
                            "security_groups": [network.security_group.ref("id")],
                            "assign_public_ip": False,
                        },
                    )
                ],
            ),
            node,
        )

    # ---------- catalog crawlers ----------

    def _catalog_crawlers(self) -> None:
        crawlers = self.snapshot.nodes_of(NodeKind.CATALOG_CRAWLER)
        if not crawlers:
            return

        # Created once per pass, shared by every crawler node
        role = self._add(
            _resource(
                catalog.IAM_ROLE,
                catalog.CATALOG_ROLE_NAME,
                {
                    "name": catalog.CATALOG_ROLE_NAME,
                    "assume_role_policy": catalog.assume_role_policy(catalog.GLUE_PRINCIPAL),
                },
            )
        )
        self._add(
            _resource(
                catalog.IAM_ROLE_POLICY_ATTACHMENT,
                catalog.CATALOG_ROLE_ATTACHMENT_NAME,
                {
                    "role": role.ref("name"),
                    "policy_arn": catalog.GLUE_SERVICE_POLICY_ARN,
                },
            )
        )
        database = self._add(
            _resource(
                catalog.GLUE_CATALOG_DATABASE,
                catalog.CATALOG_DATABASE_NAME,
                {"name": catalog.CATALOG_DATABASE_NAME.replace("-", "_")},
            )
        )

        for crawler in crawlers:
            for table in self.adjacency.edge_neighbors_of_kind(crawler.id, NodeKind.KV_STORE):
                name = catalog.crawler_name(self.bases[crawler.id], self.names[table.id])
                self._add(
                    _resource(
                        catalog.GLUE_CRAWLER,
                        name,
                        {
                            "name": name,
                            "database_name": database.ref("name"),
                            "role": role.ref("arn"),
                            "tags": {"Name": crawler.label},
                        },
                        [Block("dynamodb_target", {"path": self._table_ref(table, "name")})],
                    ),
                    crawler,
                )


def synthesize(graph: Union[GraphModel, GraphSnapshot], suffix_strategy: Optional[SuffixStrategy] = None) -> InfraIR:
    return ResourceSynthesizer(suffix_strategy=suffix_strategy).synthesize(graph)
