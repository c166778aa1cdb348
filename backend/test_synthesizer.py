import re

import pytest

from infrasync.compiler import ResourceSynthesizer, compile_to_hcl, render_hcl, synthesize
from infrasync.dsl import parse_hcl
from infrasync.graph import GraphModel, NodeKind
from infrasync.ir import HashSuffix, NameCollision


def _synth(graph):
    return ResourceSynthesizer(suffix_strategy=HashSuffix()).run(graph)


def _addresses(ir):
    return [r.address for r in ir.resources]


def test_empty_graph_synthesizes_nothing():
    result = _synth(GraphModel())

    assert len(result.ir) == 0
    assert render_hcl(result.ir) == ""


def test_compute_inside_network():
    graph = GraphModel()
    vpc = graph.add_node(NodeKind.NETWORK, (300, 200), label="Main", node_id="vpc")
    ec2 = graph.add_node(NodeKind.COMPUTE, (300, 200), label="Web", node_id="ec2")

    result = _synth(graph)
    ir = result.ir

    assert [v.type_name for v in ir.variables] == ["region", "instance_ami"]
    assert [p.type_name for p in ir.providers] == ["aws"]
    assert _addresses(ir) == [
        "aws_vpc.main",
        "aws_subnet.main-subnet",
        "aws_route_table.main-rt",
        "aws_route_table_association.main-rta",
        "aws_security_group.main-sg",
        "aws_instance.web",
    ]

    instance = ir.get("aws_instance", "web")
    assert instance.properties["subnet_id"] == "${aws_subnet.main-subnet.id}"
    assert instance.properties["vpc_security_group_ids"] == ["${aws_security_group.main-sg.id}"]
    assert instance.properties["ami"] == "${var.instance_ami}"
    assert result.bindings == {ec2: "main"}
    assert result.fallbacks == []


def test_compute_without_network_gets_dedicated_one():
    graph = GraphModel()
    ec2 = graph.add_node(NodeKind.COMPUTE, (100, 100), label="Web", node_id="ec2")

    result = _synth(graph)
    ir = result.ir

    assert _addresses(ir) == [
        "aws_vpc.web-net",
        "aws_subnet.web-net-subnet",
        "aws_security_group.web-net-sg",
        "aws_instance.web",
    ]
    assert ir.get("aws_vpc", "web-net").properties["tags"]["Role"] == "dedicated"
    assert [f.node_id for f in result.fallbacks] == [ec2]
    assert result.bindings == {ec2: "web-net"}


def test_compute_binds_to_exactly_one_subnet():
    graph = GraphModel()
    graph.add_node(NodeKind.NETWORK, (300, 200), label="Inner", node_id="inner")
    outer = graph.add_node(NodeKind.NETWORK, (1000, 200), label="Outer", node_id="outer")
    ec2 = graph.add_node(NodeKind.COMPUTE, (300, 200), label="Web", node_id="ec2")
    # explicit edges come before containment
    graph.add_edge(ec2, outer)

    ir = _synth(graph).ir

    instances = ir.find("aws_instance")
    assert len(instances) == 1
    assert instances[0].properties["subnet_id"] == "${aws_subnet.outer-subnet.id}"


def test_crawler_with_two_tables():
    graph = GraphModel()
    glue = graph.add_node(NodeKind.CATALOG_CRAWLER, (100, 100), label="Glue")
    orders = graph.add_node(NodeKind.KV_STORE, (300, 100), label="Orders")
    users = graph.add_node(NodeKind.KV_STORE, (500, 100), label="Users")
    graph.add_edge(glue, orders)
    graph.add_edge(glue, users)

    ir = _synth(graph).ir

    assert len(ir.find("aws_iam_role")) == 1
    assert len(ir.find("aws_glue_catalog_database")) == 1
    crawlers = ir.find("aws_glue_crawler")
    assert [c.instance_name for c in crawlers] == ["glue-orders", "glue-users"]
    assert crawlers[0].blocks_named("dynamodb_target")[0].body["path"] == "${aws_dynamodb_table.orders.name}"
    assert crawlers[1].properties["role"] == "${aws_iam_role.catalog-crawler-role.arn}"


def test_crawler_containment_is_not_a_target():
    graph = GraphModel()
    graph.add_node(NodeKind.NETWORK, (300, 200))
    graph.add_node(NodeKind.CATALOG_CRAWLER, (250, 200))
    graph.add_node(NodeKind.KV_STORE, (350, 200))

    assert _synth(graph).ir.find("aws_glue_crawler") == []


def test_compute_linked_to_table_gets_access_role():
    graph = GraphModel()
    ec2 = graph.add_node(NodeKind.COMPUTE, (100, 100), label="Web")
    table = graph.add_node(NodeKind.KV_STORE, (300, 100), label="Orders")
    graph.add_edge(ec2, table)

    ir = _synth(graph).ir

    assert ir.get("aws_iam_role", "web-role") is not None
    policy = ir.get("aws_iam_role_policy", "web-kv-access")
    assert "${aws_dynamodb_table.orders.arn}" in policy.properties["policy"]
    assert ir.get("aws_instance", "web").properties["iam_instance_profile"] == "${aws_iam_instance_profile.web-profile.name}"


def test_container_platform_wires_stores_into_environment():
    graph = GraphModel()
    graph.add_node(NodeKind.NETWORK, (300, 200), label="Main")
    ecs = graph.add_node(NodeKind.CONTAINER_PLATFORM, (300, 200), label="Api")
    table = graph.add_node(NodeKind.KV_STORE, (800, 100), label="Orders")
    bucket = graph.add_node(NodeKind.OBJECT_STORE, (800, 300), label="Assets")
    graph.add_edge(ecs, table)
    graph.add_edge(ecs, bucket)

    ir = _synth(graph).ir
    bucket_name = ir.find("aws_s3_bucket")[0].instance_name

    task = ir.get("aws_ecs_task_definition", "api-task")
    definitions = task.properties["container_definitions"]
    assert '"TABLE_ORDERS"' in definitions
    assert "${aws_dynamodb_table.orders.name}" in definitions
    assert '"BUCKET_ASSETS"' in definitions
    assert "${aws_s3_bucket.%s.id}" % bucket_name in definitions

    service = ir.get("aws_ecs_service", "api-service")
    network = service.blocks_named("network_configuration")[0]
    assert network.body["subnets"] == ["${aws_subnet.main-subnet.id}"]
    assert ir.get("aws_iam_role", "api-task-role") is not None


def test_bucket_names_are_normalized_and_suffixed():
    graph = GraphModel()
    graph.add_node(NodeKind.OBJECT_STORE, (100, 100), label="My Bucket!!", node_id="s3")

    ir = _synth(graph).ir
    bucket = ir.find("aws_s3_bucket")[0]

    assert re.fullmatch(r"my-bucket-[0-9a-f]{6}", bucket.instance_name)
    assert bucket.properties["bucket"] == bucket.instance_name
    assert _synth(graph).ir.to_dict() == ir.to_dict()


def test_pinned_bucket_name_is_kept():
    graph = GraphModel()
    graph.add_node(NodeKind.OBJECT_STORE, (100, 100), label="Assets", resource_name="assets-abc123")

    assert _addresses(_synth(graph).ir) == ["aws_s3_bucket.assets-abc123"]


def test_store_inside_network_gets_private_endpoint():
    graph = GraphModel()
    graph.add_node(NodeKind.NETWORK, (300, 200), label="Main")
    graph.add_node(NodeKind.KV_STORE, (300, 200), label="Orders")

    endpoint = _synth(graph).ir.get("aws_vpc_endpoint", "orders-endpoint")

    assert endpoint.properties["vpc_id"] == "${aws_vpc.main.id}"
    assert endpoint.properties["service_name"] == "com.amazonaws.${var.region}.dynamodb"
    assert endpoint.properties["route_table_ids"] == ["${aws_route_table.main-rt.id}"]


def test_duplicate_labels_get_numbered_bases():
    graph = GraphModel()
    graph.add_node(NodeKind.KV_STORE, (100, 100), label="Orders")
    graph.add_node(NodeKind.KV_STORE, (300, 100), label="orders")

    assert _addresses(_synth(graph).ir) == [
        "aws_dynamodb_table.orders",
        "aws_dynamodb_table.orders-2",
    ]


def test_label_matching_a_derived_name_is_bumped():
    graph = GraphModel()
    graph.add_node(NodeKind.NETWORK, (300, 200), label="web-net", node_id="vpc")
    graph.add_node(NodeKind.COMPUTE, (1000, 1000), label="web", node_id="ec2")

    result = _synth(graph)

    assert result.ir.get("aws_vpc", "web-net").properties["tags"] == {"Name": "web-net"}
    assert result.ir.get("aws_instance", "web-2") is not None
    assert result.ir.get("aws_vpc", "web-2-net") is not None
    assert result.bindings == {"ec2": "web-2-net"}


def test_compute_named_like_the_crawler_role_is_bumped():
    graph = GraphModel()
    orders = graph.add_node(NodeKind.KV_STORE, (100, 100), label="Orders")
    ec2 = graph.add_node(NodeKind.COMPUTE, (300, 100), label="catalog-crawler")
    glue = graph.add_node(NodeKind.CATALOG_CRAWLER, (500, 100), label="Glue")
    graph.add_edge(ec2, orders)
    graph.add_edge(glue, orders)

    ir = _synth(graph).ir

    crawler_role = ir.get("aws_iam_role", "catalog-crawler-role")
    assert "glue.amazonaws.com" in crawler_role.properties["assume_role_policy"]
    assert ir.get("aws_instance", "catalog-crawler-2") is not None
    assert ir.get("aws_iam_role", "catalog-crawler-2-role") is not None


def test_crawler_whose_resource_name_is_taken_is_bumped():
    graph = GraphModel()
    first_table = graph.add_node(NodeKind.KV_STORE, (100, 100), label="b-c")
    second_table = graph.add_node(NodeKind.KV_STORE, (300, 100), label="c")
    first = graph.add_node(NodeKind.CATALOG_CRAWLER, (100, 300), label="a")
    second = graph.add_node(NodeKind.CATALOG_CRAWLER, (300, 300), label="a-b")
    graph.add_edge(first, first_table)
    graph.add_edge(second, second_table)

    ir = _synth(graph).ir

    # "a" + "b-c" and "a-b" + "c" would both give a-b-c
    assert [c.instance_name for c in ir.find("aws_glue_crawler")] == ["a-b-c", "a-b-2-c"]


def test_pinned_duplicates_are_a_name_collision():
    graph = GraphModel()
    graph.add_node(NodeKind.KV_STORE, (100, 100), label="Orders", node_id="a", resource_name="orders")
    graph.add_node(NodeKind.KV_STORE, (300, 100), label="Orders", node_id="b", resource_name="orders")

    with pytest.raises(NameCollision) as info:
        _synth(graph)

    assert info.value.identity == ("resource", "aws_dynamodb_table", "orders")
    assert info.value.first_owner == "a"
    assert info.value.second_owner == "b"


def test_synthesis_is_deterministic_and_survives_text():
    graph = GraphModel()
    graph.add_node(NodeKind.NETWORK, (300, 200), label="Main", node_id="vpc")
    web = graph.add_node(NodeKind.COMPUTE, (250, 200), label="Web", node_id="ec2")
    api = graph.add_node(NodeKind.CONTAINER_PLATFORM, (400, 200), label="Api", node_id="ecs")
    orders = graph.add_node(NodeKind.KV_STORE, (800, 100), label="Orders", node_id="kv")
    assets = graph.add_node(NodeKind.OBJECT_STORE, (800, 300), label="Assets", node_id="s3")
    glue = graph.add_node(NodeKind.CATALOG_CRAWLER, (1000, 100), label="Glue", node_id="glue")
    graph.add_edge(web, orders)
    graph.add_edge(api, orders)
    graph.add_edge(api, assets)
    graph.add_edge(glue, orders)

    ir = _synth(graph).ir
    text = render_hcl(ir)

    assert render_hcl(_synth(graph).ir) == text
    assert parse_hcl(text).to_dict() == ir.to_dict()


def test_compile_to_hcl_matches_synthesize():
    graph = GraphModel()
    graph.add_node(NodeKind.KV_STORE, (100, 100), label="Orders")

    ir, text = compile_to_hcl(graph, suffix_strategy=HashSuffix())

    assert ir.to_dict() == synthesize(graph, suffix_strategy=HashSuffix()).to_dict()
    assert text == render_hcl(ir)
