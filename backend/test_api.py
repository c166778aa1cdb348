from fastapi.testclient import TestClient

from infrasync.main import app

client = TestClient(app)

NETWORK_WITH_INSTANCE = {
    "nodes": [
        {"id": "vpc", "kind": "network", "label": "Main", "x": 100, "y": 80, "w": 400, "h": 240},
        {"id": "ec2", "kind": "ec2", "label": "Web", "x": 300, "y": 200},
    ],
    "edges": [],
}


def test_health():
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_synthesize():
    response = client.post("/synthesize", json={"graph": NETWORK_WITH_INSTANCE})
    body = response.json()

    assert response.status_code == 200
    assert body["status"] == "success"
    assert body["bindings"] == {"ec2": "main"}
    assert 'resource "aws_instance" "web"' in body["text"]
    assert body["ir"]["providers"][0]["type"] == "aws"


def test_synthesize_reports_dedicated_networks():
    graph = {"nodes": [{"id": "ec2", "kind": "compute", "label": "Web", "x": 0, "y": 0}]}

    body = client.post("/synthesize", json={"graph": graph}).json()

    assert body["status"] == "warning"
    assert body["fallbacks"] == [{"node_id": "ec2", "required_kind": "network", "fallback": "web-net"}]


def test_synthesize_name_collision_is_409():
    graph = {
        "nodes": [
            {"id": "a", "kind": "kv_store", "label": "Orders", "resourceName": "orders"},
            {"id": "b", "kind": "kv_store", "label": "Orders", "x": 300, "resourceName": "orders"},
        ]
    }

    response = client.post("/synthesize", json={"graph": graph})

    assert response.status_code == 409
    assert response.json()["detail"]["identity"] == ["resource", "aws_dynamodb_table", "orders"]


def test_synthesize_label_matching_a_derived_name_is_renamed():
    graph = {
        "nodes": [
            {"id": "vpc", "kind": "network", "label": "web-net", "x": 0, "y": 0},
            {"id": "ec2", "kind": "compute", "label": "web", "x": 2000, "y": 2000},
        ]
    }

    body = client.post("/synthesize", json={"graph": graph}).json()

    assert body["bindings"] == {"ec2": "web-2-net"}


def test_synthesize_unknown_kind_is_422():
    graph = {"nodes": [{"id": "x", "kind": "mainframe"}]}

    assert client.post("/synthesize", json={"graph": graph}).status_code == 422


def test_parse_and_emit():
    text = client.post("/synthesize", json={"graph": NETWORK_WITH_INSTANCE}).json()["text"]

    parsed = client.post("/parse", json={"text": text})
    assert parsed.status_code == 200

    emitted = client.post("/emit", json={"ir": parsed.json()["ir"]})
    assert emitted.status_code == 200
    assert emitted.json()["text"] == text


def test_parse_malformed_is_422():
    response = client.post("/parse", json={"text": 'provider "aws" {\n\nresource "x" "y" {\n}\n'})

    assert response.status_code == 422
    assert response.json()["detail"]["error"] == "malformed_syntax"
    assert response.json()["detail"]["line"] == 1


def test_emit_rejects_duplicate_identities():
    resource = {"type": "aws_vpc", "name": "main", "properties": {}}

    response = client.post("/emit", json={"ir": {"resources": [resource, resource]}})

    assert response.status_code == 422


def test_emit_rejects_malformed_ir_shapes():
    for ir in (
        {"resources": ["oops"]},
        {"resources": [{"type": "aws_vpc", "name": "main", "properties": [1, 2]}]},
        {"providers": [{"name": "aws", "blocks": ["endpoints"]}]},
    ):
        response = client.post("/emit", json={"ir": ir})

        assert response.status_code == 422
        assert response.json()["detail"]["error"] == "invalid_ir"


def test_reconstruct():
    text = client.post("/synthesize", json={"graph": NETWORK_WITH_INSTANCE}).json()["text"]

    body = client.post("/reconstruct", json={"text": text}).json()
    nodes = {n["id"]: n for n in body["graph"]["nodes"]}

    assert nodes["compute-web"]["parentId"] == "network-main"
    assert nodes["network-main"]["label"] == "Main"
    assert len(body["ir"]["resources"]) == 6


def test_localstack():
    text = client.post("/synthesize", json={"graph": NETWORK_WITH_INSTANCE}).json()["text"]

    response = client.post("/localstack", json={"text": text, "endpoint": "http://ls:4566"})

    assert response.status_code == 200
    assert response.json()["text"].startswith("terraform {")
    assert "http://ls:4566" in response.json()["text"]
