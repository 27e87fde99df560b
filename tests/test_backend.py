"""
Tests for the HTTP service.
"""

import pytest
from fastapi.testclient import TestClient

from backend.main import app
from stackforge.config import Settings, load_settings

NET_HOST = {
    "stack": "web",
    "resources": {
        "Net": {"type": "aws_subnet", "cidr_block": "10.0.1.0/24"},
        "Host": {"type": "aws_instance", "subnet_id": {"$ref": "Net.id"}},
    },
}


@pytest.fixture
def client():
    return TestClient(app)


class TestService:

    def test_root_and_health(self, client):
        assert client.get("/").json() == {"message": "StackForge API is running"}
        assert client.get("/health").json() == {"status": "healthy"}

    def test_synth(self, client):
        response = client.post("/synth", json={"definition": NET_HOST})

        assert response.status_code == 200
        body = response.json()
        assert body["stack"] == "web"
        assert body["order"] == ["Net", "Host"]
        assert body["edges"] == [["Host", "Net"]]
        assert body["plan"]["resource"]["aws_instance"]["Host"] == {"subnet_id": "${aws_subnet.Net.id}"}

    def test_synth_yaml(self, client):
        response = client.post("/synth", json={"definition": NET_HOST, "format": "yaml"})

        assert response.status_code == 200
        assert "subnet_id: ${aws_subnet.Net.id}" in response.json()["plan"]

    def test_unknown_format(self, client):
        response = client.post("/synth", json={"definition": NET_HOST, "format": "toml"})

        assert response.status_code == 400

    def test_graph(self, client):
        response = client.post("/graph", json={"definition": NET_HOST})

        assert response.json() == {"nodes": ["Net", "Host"], "edges": [["Host", "Net"]], "order": ["Net", "Host"]}

    def test_cycle_is_unprocessable(self, client):
        definition = {"resources": {
            "A": {"type": "custom", "next": {"$ref": "B.out"}},
            "B": {"type": "custom", "next": {"$ref": "A.out"}},
        }}

        response = client.post("/graph", json={"definition": definition})

        assert response.status_code == 422
        assert response.json()["detail"]["error"] == "CyclicDependencyError"
        assert response.json()["detail"]["cycle"] == ["A", "B"]

    def test_dangling_reference_is_unprocessable(self, client):
        definition = {"resources": {"Host": {"type": "aws_instance", "subnet_id": {"$ref": "Net.id"}}}}

        response = client.post("/synth", json={"definition": definition})

        assert response.status_code == 422
        assert response.json()["detail"]["path"] == "resources.Host.subnet_id"

    def test_environment_comes_from_request(self, client, monkeypatch):
        monkeypatch.setenv("GITHUB_TOKEN", "from-server")
        definition = {
            "env": ["GITHUB_TOKEN"],
            "resources": {"Cred": {
                "type": "aws_codebuild_source_credential",
                "auth_type": "PERSONAL_ACCESS_TOKEN",
                "server_type": "GITHUB",
                "token": {"$env": "GITHUB_TOKEN"},
            }},
        }

        missing = client.post("/synth", json={"definition": definition})
        assert missing.status_code == 400
        assert missing.json()["detail"]["missing"] == ["GITHUB_TOKEN"]

        ok = client.post("/synth", json={"definition": definition, "environment": {"GITHUB_TOKEN": "t"}})
        assert ok.status_code == 200
        resource = ok.json()["plan"]["resource"]["aws_codebuild_source_credential"]["Cred"]
        assert resource["token"] == "t"

    def test_invalid_stack_id(self, client):
        response = client.post("/synth", json={"definition": {**NET_HOST, "stack": "../web"}})

        assert response.status_code == 422
        assert response.json()["detail"]["error"] == "InvalidStackIdError"

    def test_contract_violation(self, client):
        definition = {"resources": {"Role": {"type": "aws_iam_role"}}}

        response = client.post("/synth", json={"definition": definition})

        assert response.status_code == 422
        assert response.json()["detail"]["violations"][0]["node_id"] == "Role"


class TestSettings:

    def test_defaults(self, monkeypatch):
        for name in ("STACKFORGE_OUTDIR", "STACKFORGE_LOG_LEVEL", "STACKFORGE_STRICT"):
            monkeypatch.delenv(name, raising=False)

        assert load_settings() == Settings(outdir="cdktf.out", log_level="WARNING", strict=False)

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("STACKFORGE_OUTDIR", "build")
        monkeypatch.setenv("STACKFORGE_LOG_LEVEL", "debug")
        monkeypatch.setenv("STACKFORGE_STRICT", "true")

        settings = load_settings()

        assert settings.outdir == "build"
        assert settings.log_level == "DEBUG"
        assert settings.strict is True
