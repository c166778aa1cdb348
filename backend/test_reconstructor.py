from infrasync.compiler import ResourceSynthesizer, render_hcl
from infrasync.dsl import parse_hcl
from infrasync.graph import GraphModel, NodeKind
from infrasync.ir import HashSuffix, InfraIR
from infrasync.reconstruct import HeuristicReconstructor, TopologyReconstructor
from infrasync.reconstruct.references import find_references


def _synth(graph):
    return ResourceSynthesizer(suffix_strategy=HashSuffix()).synthesize(graph)


def _reconstruct(text):
    return HeuristicReconstructor().reconstruct(parse_hcl(text))


def _full_graph():
    graph = GraphModel()
    graph.add_node(NodeKind.NETWORK, (300, 200), label="Main")
    web = graph.add_node(NodeKind.COMPUTE, (250, 200), label="Web")
    api = graph.add_node(NodeKind.CONTAINER_PLATFORM, (400, 200), label="Api")
    orders = graph.add_node(NodeKind.KV_STORE, (800, 100), label="Orders")
    assets = graph.add_node(NodeKind.OBJECT_STORE, (800, 300), label="Assets")
    glue = graph.add_node(NodeKind.CATALOG_CRAWLER, (1000, 100), label="Glue")
    graph.add_edge(web, orders)
    graph.add_edge(api, orders)
    graph.add_edge(api, assets)
    graph.add_edge(glue, orders)
    return graph


def _linked(graph, a, b):
    return any({e.source.node, e.target.node} == {a, b} for e in graph.edges)


def test_is_a_topology_reconstructor():
    assert isinstance(HeuristicReconstructor(), TopologyReconstructor)


def test_round_trip_keeps_identities():
    ir = _synth(_full_graph())

    rebuilt = _reconstruct(render_hcl(ir))

    assert sorted(_synth(rebuilt).identities()) == sorted(ir.identities())


def test_round_trip_recovers_nodes_labels_and_links():
    ir = _synth(_full_graph())
    bucket = ir.find("aws_s3_bucket")[0].instance_name

    graph = _reconstruct(render_hcl(ir))
    labels = {n.id: n.label for n in graph.nodes}

    assert labels == {
        "network-main": "Main",
        "kv_store-orders": "Orders",
        "catalog_crawler-glue": "Glue",
        "compute-web": "Web",
        "container_platform-api": "Api",
        f"object_store-{bucket}": "Assets",
    }
    assert graph.parent_of("compute-web") == "network-main"
    assert graph.parent_of("container_platform-api") == "network-main"
    assert graph.parent_of("kv_store-orders") is None

    assert _linked(graph, "container_platform-api", "kv_store-orders")
    assert _linked(graph, "container_platform-api", f"object_store-{bucket}")
    assert _linked(graph, "catalog_crawler-glue", "kv_store-orders")
    assert _linked(graph, "compute-web", "kv_store-orders")
    assert len(graph.edges) == 4

    # the bucket keeps its suffixed name on the next synthesis
    assert graph.node(f"object_store-{bucket}").resource_name == bucket


def test_hand_written_text_with_bare_references():
    text = '''
resource "aws_vpc" "main" { cidr_block = "10.0.0.0/16" }

resource "aws_subnet" "main_subnet" {
  vpc_id = aws_vpc.main.id
}

resource "aws_instance" "app" {
  subnet_id = aws_subnet.main_subnet.id
  tags = "not a map"
}

resource "aws_lambda_function" "ignored" {
  function_name = "x"
}
'''
    graph = _reconstruct(text)

    assert sorted(n.id for n in graph.nodes) == ["compute-app", "network-main"]
    assert graph.parent_of("compute-app") == "network-main"
    assert graph.node("compute-app").label == "app"


def test_subnet_found_through_vpc_reference():
    text = '''
resource "aws_vpc" "core" {}
resource "aws_subnet" "private-a" { vpc_id = "${aws_vpc.core.id}" }
resource "aws_instance" "db" { subnet_id = "${aws_subnet.private-a.id}" }
'''
    graph = _reconstruct(text)

    assert graph.parent_of("compute-db") == "network-core"


def test_dedicated_network_is_not_drawn():
    graph = GraphModel()
    graph.add_node(NodeKind.COMPUTE, (100, 100), label="Web")

    rebuilt = _reconstruct(render_hcl(_synth(graph)))

    assert [n.id for n in rebuilt.nodes] == ["compute-web"]
    assert rebuilt.parent_of("compute-web") is None


def test_private_endpoint_links_store_to_network():
    graph = GraphModel()
    graph.add_node(NodeKind.NETWORK, (300, 200), label="Main")
    graph.add_node(NodeKind.KV_STORE, (300, 200), label="Orders")

    rebuilt = _reconstruct(render_hcl(_synth(graph)))

    assert _linked(rebuilt, "kv_store-orders", "network-main")
    assert rebuilt.parent_of("kv_store-orders") is None


def test_crawler_target_by_literal_table_name():
    text = '''
resource "aws_dynamodb_table" "events" { name = "events-prod" }
resource "aws_glue_crawler" "scan" {
  dynamodb_target {
    path = "events-prod"
  }
}
'''
    graph = _reconstruct(text)

    assert _linked(graph, "catalog_crawler-crawler", "kv_store-events")


def test_empty_ir_gives_empty_graph():
    graph = HeuristicReconstructor().reconstruct(InfraIR())

    assert len(graph) == 0
    assert graph.edges == []


def test_networks_do_not_overlap_free_nodes():
    ir = _synth(_full_graph())
    graph = _reconstruct(render_hcl(ir))

    network = graph.node("network-main").rect
    for node in graph.nodes:
        if graph.parent_of(node.id) is None and not node.is_network:
            assert node.rect.y > network.y + network.h


def test_task_definition_built_with_jsonencode_links_its_table():
    text = '''
resource "aws_dynamodb_table" "orders" {
  name     = "orders"
  hash_key = "id"
}

resource "aws_ecs_task_definition" "api-task" {
  family = "api"
  container_definitions = jsonencode([
    {
      name  = "api"
      image = "nginx:latest"
      environment = [
        { name = "ORDERS_TABLE", value = aws_dynamodb_table.orders.name }
      ]
    }
  ])
}

resource "aws_ecs_service" "api-service" {
  name            = "api"
  task_definition = aws_ecs_task_definition.api-task.arn
}
'''
    graph = _reconstruct(text)

    assert sorted(n.id for n in graph.nodes) == ["container_platform-api", "kv_store-orders"]
    assert _linked(graph, "container_platform-api", "kv_store-orders")


def test_data_source_subnet_does_not_place_instance():
    text = '''
resource "aws_vpc" "main" { cidr_block = "10.0.0.0/16" }

resource "aws_subnet" "main-subnet" {
  vpc_id = aws_vpc.main.id
}

data "aws_subnet" "main-subnet" {
  id = "subnet-123"
}

resource "aws_instance" "app" {
  subnet_id = data.aws_subnet.main-subnet.id
}
'''
    graph = _reconstruct(text)

    assert graph.parent_of("compute-app") is None


def test_data_source_references_are_skipped():
    refs = find_references(["${data.aws_subnet.a.id}", "data.aws_vpc.b.id", "aws_subnet.c.id"])
    assert refs == [("aws_subnet", "c", "id")]
