# backend/infrasync/reconstruct/heuristics.py
"""
Heuristic Reconstructor

Best-effort inverse of the synthesizer. The text is not guaranteed to have
been synthesized, so nodes are inferred from resource types and wired from
naming conventions and `aws_x.name.attr` references. Resources that match
no heuristic are simply not drawn; they stay in the IR.

Order:
1. KV stores (aws_dynamodb_table)
2. one catalog crawler if any glue role, catalog database or crawler exists
3. networks (aws_vpc, dedicated ones skipped) and their subnet index
4. compute (aws_instance) and container platforms (aws_ecs_service),
   placed inside the network their subnet resolves to
5. object stores (aws_s3_bucket)
6. links: task-definition environment, crawler targets,
   instance access policies, private endpoints
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Set, Tuple

from infrasync.compiler import catalog
from infrasync.graph.model import GraphModel, NodeKind
from infrasync.ir.base import InfraIR, Resource
from infrasync.reconstruct.base import TopologyReconstructor
from infrasync.reconstruct.layout import LayoutPlan, apply_layout
from infrasync.reconstruct.references import find_references, first_reference

logger = logging.getLogger(__name__)

SUBNET_SUFFIX = "-subnet"
SERVICE_SUFFIX = "-service"
ENDPOINT_SUFFIX = "-endpoint"

STORE_TYPES = (catalog.DYNAMODB_TABLE, catalog.S3_BUCKET)


@dataclass
class PlannedNode:
    key: str
    kind: NodeKind
    label: Optional[str]
    resource_name: Optional[str]
    network: Optional[str] = None


def _tag_name(resource: Resource) -> Optional[str]:
    tags = resource.properties.get("tags")
    if isinstance(tags, dict):
        name = tags.get("Name")
        if isinstance(name, str) and name.strip():
            return name
    return None


def _strip_suffix(name: str, suffix: str) -> Optional[str]:
    if name.endswith(suffix) and len(name) > len(suffix):
        return name[: -len(suffix)]
    return None


class HeuristicReconstructor(TopologyReconstructor):
    name = "heuristic"

    def reconstruct(self, ir: InfraIR) -> GraphModel:
        return _ReconstructionPass(ir).execute()


class _ReconstructionPass:
    def __init__(self, ir: InfraIR):
        self.ir = ir
        self.planned: Dict[str, PlannedNode] = {}

        # instance name -> planned key, per store/host kind
        self.tables: Dict[str, str] = {}
        self.buckets: Dict[str, str] = {}
        self.networks: Dict[str, str] = {}
        self.hosts: Dict[str, str] = {}
        self.crawler: Optional[str] = None

        self.dedicated: Set[str] = set()
        self.subnet_networks: Dict[str, str] = {}
        self.links: List[Tuple[str, str]] = []
        self._linked: Set[frozenset] = set()

    # ---------- entry ----------

    def execute(self) -> GraphModel:
        self._kv_stores()
        self._catalog_crawler()
        self._networks()
        self._compute()
        self._container_platforms()
        self._object_stores()

        self._container_links()
        self._crawler_links()
        self._access_policy_links()
        self._endpoint_links()

        graph = self._build_graph()
        logger.info(
            "[RECONSTRUCT] %d declarations -> %d nodes, %d edges",
            len(self.ir),
            len(graph),
            len(graph.edges),
        )
        return graph

    # ---------- planning ----------

    def _plan(self, kind: NodeKind, name: str, label: Optional[str], resource_name: Optional[str],
              network: Optional[str] = None) -> Optional[str]:
        key = f"{kind.value}-{name}"
        if key in self.planned:
            logger.debug("[RECONSTRUCT] duplicate %s %s ignored", kind.value, name)
            return None
        self.planned[key] = PlannedNode(
            key=key,
            kind=kind,
            label=label,
            resource_name=resource_name,
            network=network,
        )
        return key

    def _link(self, source: Optional[str], target: Optional[str]) -> None:
        if not source or not target or source == target:
            return
        pair = frozenset((source, target))
        if pair in self._linked:
            return
        self._linked.add(pair)
        self.links.append((source, target))

    # ---------- nodes ----------

    def _kv_stores(self) -> None:
        for table in self.ir.find(catalog.DYNAMODB_TABLE):
            name = table.instance_name
            key = self._plan(NodeKind.KV_STORE, name, _tag_name(table) or name, name)
            if key:
                self.tables[name] = key

    def _catalog_crawler(self) -> None:
        glue_roles = [
            role for role in self.ir.find(catalog.IAM_ROLE)
            if catalog.GLUE_PRINCIPAL in str(role.properties.get("assume_role_policy", ""))
        ]
        databases = self.ir.find(catalog.GLUE_CATALOG_DATABASE)
        crawlers = self.ir.find(catalog.GLUE_CRAWLER)
        if not (glue_roles or databases or crawlers):
            return

        label = None
        base = None
        for crawler in crawlers:
            label = label or _tag_name(crawler)
            for target in crawler.blocks_named("dynamodb_target"):
                table = first_reference(target.body.get("path"), catalog.DYNAMODB_TABLE)
                if table and base is None:
                    base = _strip_suffix(crawler.instance_name, f"-{table}")

        self.crawler = self._plan(NodeKind.CATALOG_CRAWLER, base or "crawler", label, base)

    def _networks(self) -> None:
        vpcs = self.ir.find(catalog.VPC)
        vpc_names = {vpc.instance_name for vpc in vpcs}

        for vpc in vpcs:
            tags = vpc.properties.get("tags")
            if isinstance(tags, dict) and tags.get("Role") == catalog.DEDICATED_TAG:
                self.dedicated.add(vpc.instance_name)
                continue
            name = vpc.instance_name
            key = self._plan(NodeKind.NETWORK, name, _tag_name(vpc) or name, name)
            if key:
                self.networks[name] = key

        for subnet in self.ir.find(catalog.SUBNET):
            owner = _strip_suffix(subnet.instance_name, SUBNET_SUFFIX)
            if owner not in vpc_names:
                owner = first_reference(subnet.properties.get("vpc_id"), catalog.VPC)
            if owner in vpc_names:
                self.subnet_networks[subnet.instance_name] = owner

    def _network_for_subnet(self, value) -> Optional[str]:
        subnet = first_reference(value, catalog.SUBNET)
        vpc = self.subnet_networks.get(subnet) if subnet else None
        return self.networks.get(vpc) if vpc else None

    def _compute(self) -> None:
        for instance in self.ir.find(catalog.INSTANCE):
            name = instance.instance_name
            network = self._network_for_subnet(instance.properties.get("subnet_id"))
            key = self._plan(NodeKind.COMPUTE, name, _tag_name(instance) or name, name, network)
            if key:
                self.hosts[f"{catalog.INSTANCE}.{name}"] = key

    def _container_platforms(self) -> None:
        for service in self.ir.find(catalog.ECS_SERVICE):
            base = _strip_suffix(service.instance_name, SERVICE_SUFFIX) or service.instance_name

            subnets = [service.properties.get("network_configuration")]
            subnets.extend(b.body.get("subnets") for b in service.blocks_named("network_configuration"))
            network = self._network_for_subnet(subnets)

            key = self._plan(NodeKind.CONTAINER_PLATFORM, base, _tag_name(service) or base, base, network)
            if key:
                self.hosts[f"{catalog.ECS_SERVICE}.{service.instance_name}"] = key

    def _object_stores(self) -> None:
        for bucket in self.ir.find(catalog.S3_BUCKET):
            name = bucket.instance_name
            # pinned so a resynthesis does not grow a second suffix
            key = self._plan(NodeKind.OBJECT_STORE, name, _tag_name(bucket) or name, name)
            if key:
                self.buckets[name] = key

    # ---------- links ----------

    def _store_key(self, type_name: str, name: str) -> Optional[str]:
        if type_name == catalog.DYNAMODB_TABLE:
            return self.tables.get(name)
        if type_name == catalog.S3_BUCKET:
            return self.buckets.get(name)
        return None

    def _container_links(self) -> None:
        for service in self.ir.find(catalog.ECS_SERVICE):
            source = self.hosts.get(f"{catalog.ECS_SERVICE}.{service.instance_name}")
            task_name = first_reference(service.properties.get("task_definition"), catalog.ECS_TASK_DEFINITION)
            task = self.ir.get(catalog.ECS_TASK_DEFINITION, task_name) if task_name else None
            if source is None or task is None:
                continue

            definitions = task.properties.get("container_definitions")
            for type_name, name, _ in find_references(definitions):
                if type_name in STORE_TYPES:
                    self._link(source, self._store_key(type_name, name))

    def _crawler_links(self) -> None:
        if self.crawler is None:
            return

        # literal table names in hand-written targets
        by_table_name = {}
        for table in self.ir.find(catalog.DYNAMODB_TABLE):
            literal = table.properties.get("name")
            if isinstance(literal, str):
                by_table_name[literal] = table.instance_name

        for crawler in self.ir.find(catalog.GLUE_CRAWLER):
            for target in crawler.blocks_named("dynamodb_target"):
                path = target.body.get("path")
                table = first_reference(path, catalog.DYNAMODB_TABLE)
                if table is None and isinstance(path, str):
                    table = by_table_name.get(path)
                if table:
                    self._link(self.crawler, self.tables.get(table))

    def _access_policy_links(self) -> None:
        for instance in self.ir.find(catalog.INSTANCE):
            source = self.hosts.get(f"{catalog.INSTANCE}.{instance.instance_name}")
            profile_name = first_reference(
                instance.properties.get("iam_instance_profile"), catalog.IAM_INSTANCE_PROFILE
            )
            profile = self.ir.get(catalog.IAM_INSTANCE_PROFILE, profile_name) if profile_name else None
            if source is None or profile is None:
                continue

            role = first_reference(profile.properties.get("role"), catalog.IAM_ROLE)
            if role is None:
                continue
            for policy in self.ir.find(catalog.IAM_ROLE_POLICY):
                if first_reference(policy.properties.get("role"), catalog.IAM_ROLE) != role:
                    continue
                for _, table, _ in find_references(policy.properties.get("policy"), catalog.DYNAMODB_TABLE):
                    self._link(source, self.tables.get(table))

    def _endpoint_links(self) -> None:
        for endpoint in self.ir.find(catalog.VPC_ENDPOINT):
            vpc = first_reference(endpoint.properties.get("vpc_id"), catalog.VPC)
            network = self.networks.get(vpc) if vpc else None
            store = _strip_suffix(endpoint.instance_name, ENDPOINT_SUFFIX)
            service = str(endpoint.properties.get("service_name", ""))
            if network is None or store is None:
                continue

            if service.endswith(".dynamodb"):
                self._link(self.tables.get(store), network)
            elif service.endswith(".s3"):
                self._link(self.buckets.get(store), network)

    # ---------- graph ----------

    def _build_graph(self) -> GraphModel:
        plan = LayoutPlan()
        for node in self.planned.values():
            if node.kind is NodeKind.NETWORK:
                plan.networks.append(node.key)
                plan.children.setdefault(node.key, [])
        for node in self.planned.values():
            if node.kind is NodeKind.NETWORK:
                continue
            if node.network:
                plan.children[node.network].append(node.key)
            else:
                plan.free.append(node.key)

        placements = apply_layout(plan)
        graph = GraphModel()

        # networks first so their children draw above them
        for key in plan.networks + [k for k in self.planned if k not in plan.children]:
            node = self.planned[key]
            placement = placements[key]
            graph.add_node(
                node.kind,
                placement.center,
                label=node.label,
                size=placement.size,
                node_id=key,
                resource_name=node.resource_name,
            )

        for source, target in self.links:
            graph.add_edge(source, target)

        return graph


def reconstruct(ir: InfraIR) -> GraphModel:
    return HeuristicReconstructor().reconstruct(ir)
