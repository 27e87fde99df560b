"""
Tests for declarative stack definitions.
"""

import pytest
import yaml

from stackforge.dependency_resolver import build_graph
from stackforge.errors import (
    CyclicDependencyError,
    DanglingReferenceError,
    DefinitionError,
    DuplicateIdError,
    InvalidStackIdError,
    MissingEnvironmentError,
)
from stackforge.loader import DefinitionYamlLoader, load_stack, load_stack_file
from stackforge.resolver import resolve
from stackforge.tokens import Composite, EncodedDocument, ForeignExpression, Token

DEFINITION = """
stack: ci
env: [GITHUB_TOKEN]
providers:
  AwsProvider: {type: aws}
resources:
  Project:
    type: aws_codebuild_project
    name: sample-project
    service_role: {$ref: Role.arn}
  Role:
    type: aws_iam_role
    assume_role_policy: "{}"
  Credential:
    type: aws_codebuild_source_credential
    auth_type: PERSONAL_ACCESS_TOKEN
    server_type: GITHUB
    token: {$env: GITHUB_TOKEN}
  File:
    type: github_repository_file
    file: {$raw: .github/workflows/ci.yml}
    content:
      $yaml:
        name: CI
        jobs:
          build:
            runs-on:
              $concat: ["codebuild-", {$ref: Project.name}, "-", {$raw: "${{ github.run_id }}"}]
outputs:
  ProjectArn:
    value: {$ref: Project.arn}
    description: project
"""


@pytest.fixture
def definition():
    return yaml.load(DEFINITION, Loader=DefinitionYamlLoader)


@pytest.fixture
def env():
    return {"GITHUB_TOKEN": "secret"}


class TestLoadStack:

    def test_markers_become_values(self, definition, env):
        stack = load_stack(definition, env)
        project = stack.node("Project")
        file = stack.node("File")

        assert stack.id == "ci"
        assert list(stack.nodes) == ["AwsProvider", "Project", "Role", "Credential", "File"]
        assert isinstance(project.inputs["service_role"], Token)
        assert stack.node("Credential").inputs["token"] == "secret"
        assert file.inputs["file"] == ForeignExpression(".github/workflows/ci.yml")
        assert isinstance(file.inputs["content"], EncodedDocument)
        runs_on = file.inputs["content"].value["jobs"]["build"]["runs-on"]
        assert isinstance(runs_on, Composite)
        assert stack.outputs["ProjectArn"].description == "project"

    def test_forward_references_are_ordered(self, definition, env):
        graph = build_graph(load_stack(definition, env))

        assert graph.dependencies("Project") == ("Role",)
        assert graph.order.index("Role") < graph.order.index("Project")
        assert graph.order.index("Project") < graph.order.index("File")

    def test_resolved_workflow(self, definition, env):
        document, _ = resolve(load_stack(definition, env))

        content = yaml.safe_load(document.nodes["File"].inputs["content"])
        assert content["jobs"]["build"]["runs-on"] == (
            "codebuild-${aws_codebuild_project.Project.name}-$${{ github.run_id }}"
        )

    def test_missing_env(self, definition):
        with pytest.raises(MissingEnvironmentError):
            load_stack(definition, {})

    def test_undeclared_env_lookup(self):
        with pytest.raises(MissingEnvironmentError):
            load_stack({"resources": {"A": {"type": "custom", "v": {"$env": "NOPE"}}}}, {})

    def test_reference_to_unknown_node(self):
        definition = {"resources": {"Host": {"type": "aws_instance", "subnet": {"$ref": "Net.id"}}}}

        with pytest.raises(DanglingReferenceError) as exc:
            load_stack(definition, {})

        assert exc.value.path == "resources.Host.subnet"

    def test_cycle_is_detected_after_loading(self):
        definition = {"resources": {
            "A": {"type": "custom", "next": {"$ref": "B.out"}},
            "B": {"type": "custom", "next": {"$ref": "C.out"}},
            "C": {"type": "custom", "next": {"$ref": "A.out"}},
        }}

        with pytest.raises(CyclicDependencyError) as exc:
            build_graph(load_stack(definition, {}))

        assert exc.value.cycle == ["A", "B", "C"]

    def test_duplicate_ids_across_sections(self):
        definition = {
            "data": {"X": {"type": "aws_iam_policy_document"}},
            "resources": {"X": {"type": "custom"}},
        }

        with pytest.raises(DuplicateIdError):
            load_stack(definition, {})

    @pytest.mark.parametrize("definition, path", [
        ([], "<root>"),
        ({"resource": {}}, "<root>"),
        ({"resources": {"A": {"name": "no type"}}}, "resources.A"),
        ({"resources": {"A": {"type": "custom", "v": {"$ref": "nodot"}}}}, "resources.A.v"),
        ({"resources": {"A": {"type": "custom", "v": {"$raw": 1}}}}, "resources.A.v"),
        ({"resources": {"A": {"type": "custom", "v": {"$unknown": 1}}}}, "resources.A.v"),
        ({"resources": {"A": {"type": "custom", "v": {"$raw": "x", "other": 1}}}}, "resources.A.v"),
        ({"resources": {"A": {"type": "custom", "v": {"$concat": ["a", {"k": 1}]}}}}, "resources.A.v"),
        ({"outputs": {"O": {"description": "no value"}}}, "outputs.O"),
    ])
    def test_invalid_definitions(self, definition, path):
        with pytest.raises(DefinitionError) as exc:
            load_stack(definition, {})

        assert exc.value.path == path

    def test_unknown_attribute_of_contract_type(self):
        definition = {"resources": {
            "Repo": {"type": "github_repository", "name": "r"},
            "A": {"type": "custom", "v": {"$ref": "Repo.nope"}},
        }}

        with pytest.raises(DefinitionError) as exc:
            load_stack(definition, {})

        assert "nope" in exc.value.reason

    def test_inputs_mapping_allows_type_input(self):
        definition = {"resources": {
            "Param": {"type": "aws_ssm_parameter", "inputs": {"name": "/app/token", "type": "SecureString"}},
            "Reader": {"type": "custom", "inputs": {"param": {"$ref": "Param.arn"}}},
        }}

        document, graph = resolve(load_stack(definition, {}))

        assert document.nodes["Param"].type == "aws_ssm_parameter"
        assert document.nodes["Param"].inputs == {"name": "/app/token", "type": "SecureString"}
        assert graph.dependencies("Reader") == ("Param",)

    @pytest.mark.parametrize("body, path", [
        ({"type": "custom", "inputs": {}, "name": "x"}, "resources.A"),
        ({"type": "custom", "inputs": ["name"]}, "resources.A.inputs"),
        ({"type": "custom", "tags": {1: "one"}}, "resources.A.tags"),
    ])
    def test_invalid_node_bodies(self, body, path):
        with pytest.raises(DefinitionError) as exc:
            load_stack({"resources": {"A": body}}, {})

        assert exc.value.path == path

    @pytest.mark.parametrize("stack_id", ["../escape", "a/b", "dots.not.allowed", "trailing\n"])
    def test_stack_id_must_be_a_safe_name(self, stack_id):
        with pytest.raises(InvalidStackIdError):
            load_stack({"stack": stack_id, "resources": {}}, {})


class TestLoadStackFile:

    def test_yaml_file(self, tmp_path, env):
        path = tmp_path / "stack.yaml"
        path.write_text(DEFINITION, encoding="utf-8")

        stack = load_stack_file(path, env)

        assert "Project" in stack

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("resources: [unclosed", encoding="utf-8")

        with pytest.raises(DefinitionError):
            load_stack_file(path, {})

    def test_workflow_on_key_survives(self, tmp_path, env):
        path = tmp_path / "workflow.yaml"
        path.write_text(
            "resources:\n"
            "  File:\n"
            "    type: github_repository_file\n"
            "    repository: repo\n"
            "    file: .github/workflows/hello.yml\n"
            "    overwrite_on_create: true\n"
            "    content:\n"
            "      $yaml:\n"
            "        name: Hello\n"
            "        on: {workflow_dispatch: {}}\n"
            "        jobs: {}\n",
            encoding="utf-8",
        )

        document, _ = resolve(load_stack_file(path, env))

        inputs = document.nodes["File"].inputs
        assert inputs["overwrite_on_create"] is True
        assert inputs["content"].startswith("name: Hello\n'on':\n")
        workflow = yaml.load(inputs["content"], Loader=DefinitionYamlLoader)
        assert list(workflow) == ["name", "on", "jobs"]
        assert workflow["on"] == {"workflow_dispatch": {}}

    def test_yes_and_no_stay_strings(self, tmp_path):
        path = tmp_path / "stack.yaml"
        path.write_text("resources:\n  A: {type: custom, answer: yes, other: no, off: 1}\n", encoding="utf-8")

        inputs = load_stack_file(path, {}).node("A").inputs

        assert inputs == {"answer": "yes", "other": "no", "off": 1}
