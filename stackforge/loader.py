"""
Stack Definition Loader Module

Responsibility:
- Build a Stack from a declarative definition (dict, YAML or JSON file)
- Translate reference markers into deferred values:
    {"$ref": "Node.attribute"}  -> Token
    {"$raw": "text"}            -> ForeignExpression
    {"$concat": [parts...]}     -> Composite
    {"$yaml": value}            -> EncodedDocument (YAML)
    {"$json": value}            -> EncodedDocument (JSON)
    {"$env": "NAME"}            -> environment value
- Validate required environment variables before any node is created

Definition layout:

    stack: my-stack
    env: [GITHUB_TOKEN]
    providers:  {AwsProvider: {type: aws}}
    data:       {Policy: {type: aws_iam_policy_document, statement: [...]}}
    resources:  {Role: {type: aws_iam_role, assume_role_policy: {$ref: Policy.json}}}
    outputs:    {RoleArn: {value: {$ref: Role.arn}, description: ...}}

Inputs sit next to `type`, or under an `inputs:` mapping when an input is
itself named `type` or `inputs`:

    resources:  {Param: {type: aws_ssm_parameter, inputs: {name: x, type: String}}}

Nodes are created before any input is set, so references may point forward.
"""

import re
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from stackforge.errors import DanglingReferenceError, DefinitionError
from stackforge.models import DataSource, Provider, Resource, Stack, StackOutput
from stackforge.tokens import concat, json_encode, join_path, raw_string, yaml_encode
from stackforge.validator import validate_env

NODE_SECTIONS = (
    ("providers", Provider),
    ("data", DataSource),
    ("resources", Resource),
)

MARKERS = ("$ref", "$raw", "$concat", "$yaml", "$json", "$env")


class DefinitionYamlLoader(yaml.SafeLoader):
    """
    SafeLoader that only reads true/false as booleans.

    Plain YAML 1.1 turns `on`, `off`, `yes` and `no` into booleans, which
    would rewrite the `on:` trigger of a GitHub Actions workflow to `True`.
    """


DefinitionYamlLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != "tag:yaml.org,2002:bool"]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}
DefinitionYamlLoader.add_implicit_resolver(
    "tag:yaml.org,2002:bool",
    re.compile(r"^(?:true|True|TRUE|false|False|FALSE)$"),
    list("tTfF"),
)


def load_stack_file(path, environ: Optional[Mapping[str, str]] = None) -> Stack:
    """Load a YAML or JSON stack definition from disk."""
    text = Path(path).read_text(encoding="utf-8")
    try:
        definition = yaml.load(text, Loader=DefinitionYamlLoader)
    except yaml.YAMLError as e:
        raise DefinitionError(str(path), f"not valid YAML/JSON: {e}") from e
    return load_stack(definition, environ)


def load_stack(definition: Any, environ: Optional[Mapping[str, str]] = None) -> Stack:
    """Build a Stack from a definition mapping."""
    if not isinstance(definition, Mapping):
        raise DefinitionError("<root>", "a stack definition must be a mapping")

    unknown = set(definition) - {"stack", "env", "outputs"} - {s for s, _ in NODE_SECTIONS}
    if unknown:
        raise DefinitionError("<root>", f"unknown sections: {', '.join(sorted(unknown))}")

    env_names = definition.get("env") or []
    if not isinstance(env_names, list):
        raise DefinitionError("env", "expected a list of environment variable names")
    validate_env(env_names, environ)

    stack = Stack(str(definition.get("stack") or "stack"))
    loader = _DefinitionLoader(stack, environ)

    # Phase 1: declare every node, so references may point forward
    pending = []
    for section, node_cls in NODE_SECTIONS:
        entries = _section(definition, section)
        for node_id, body in entries.items():
            path = join_path(section, node_id)
            if not isinstance(body, Mapping) or "type" not in body:
                raise DefinitionError(path, "expected a mapping with a 'type'")
            node = node_cls(stack, str(node_id), str(body["type"]))
            pending.append((node, path, body))

    # Phase 2: set inputs in declaration order
    for node, path, body in pending:
        inputs, inputs_path = _node_inputs(body, path)
        for name, value in inputs.items():
            if not isinstance(name, str):
                raise DefinitionError(inputs_path, f"input names must be strings, got {name!r}")
            node.put(name, loader.convert(value, join_path(inputs_path, name), node.id))

    for output_id, body in _section(definition, "outputs").items():
        path = join_path("outputs", output_id)
        if not isinstance(body, Mapping) or "value" not in body:
            raise DefinitionError(path, "expected a mapping with a 'value'")
        StackOutput(
            stack,
            str(output_id),
            loader.convert(body["value"], join_path(path, "value"), str(output_id)),
            description=body.get("description"),
            sensitive=bool(body.get("sensitive", False)),
        )

    return stack


def _node_inputs(body: Mapping, path: str):
    """Return a node's inputs and their base path, flat or under `inputs:`."""
    if "inputs" not in body:
        return {k: v for k, v in body.items() if k != "type"}, path

    extra = set(body) - {"type", "inputs"}
    if extra:
        raise DefinitionError(
            path, f"keys next to 'inputs' are not allowed: {', '.join(sorted(map(str, extra)))}"
        )
    inputs = body["inputs"]
    if not isinstance(inputs, Mapping):
        raise DefinitionError(join_path(path, "inputs"), "expected a mapping of input name -> value")
    return inputs, join_path(path, "inputs")


def _section(definition: Mapping, name: str) -> Mapping:
    entries = definition.get(name) or {}
    if not isinstance(entries, Mapping):
        raise DefinitionError(name, "expected a mapping of id -> definition")
    return entries


class _DefinitionLoader:
    """Converts definition values into stack Values."""

    def __init__(self, stack: Stack, environ: Optional[Mapping[str, str]]):
        self.stack = stack
        self.environ = environ

    def convert(self, value: Any, path: str, node_id: str) -> Any:
        if isinstance(value, Mapping):
            marker = self._marker(value, path)
            if marker:
                return self._convert_marker(marker, value[marker], path, node_id)
            for key in value:
                if not isinstance(key, str):
                    raise DefinitionError(path, f"mapping keys must be strings, got {key!r}")
            return {k: self.convert(v, join_path(path, k), node_id) for k, v in value.items()}

        if isinstance(value, list):
            return [self.convert(item, join_path(path, i), node_id) for i, item in enumerate(value)]

        return value

    def _marker(self, value: Mapping, path: str) -> Optional[str]:
        dollar_keys = [k for k in value if isinstance(k, str) and k.startswith("$")]
        if not dollar_keys:
            return None
        if len(value) != 1 or dollar_keys[0] not in MARKERS:
            raise DefinitionError(
                path,
                f"a reference marker must be the only key and one of {', '.join(MARKERS)}"
            )
        return dollar_keys[0]

    def _convert_marker(self, marker: str, argument: Any, path: str, node_id: str) -> Any:
        if marker == "$ref":
            return self._reference(argument, path, node_id)

        if marker == "$raw":
            if not isinstance(argument, str):
                raise DefinitionError(path, "$raw expects a string")
            return raw_string(argument)

        if marker == "$concat":
            if not isinstance(argument, list):
                raise DefinitionError(path, "$concat expects a list")
            parts = [self.convert(item, join_path(path, i), node_id) for i, item in enumerate(argument)]
            try:
                return concat(*parts)
            except TypeError as e:
                raise DefinitionError(path, str(e)) from e

        if marker == "$env":
            if not isinstance(argument, str):
                raise DefinitionError(path, "$env expects a variable name")
            return validate_env([argument], self.environ)[argument]

        body = self.convert(argument, path, node_id)
        return yaml_encode(body) if marker == "$yaml" else json_encode(body)

    def _reference(self, argument: Any, path: str, node_id: str):
        if not isinstance(argument, str) or "." not in argument:
            raise DefinitionError(path, "$ref expects 'NodeId.attribute'")

        owner_id, attribute = argument.split(".", 1)
        owner = self.stack.node(owner_id)
        if owner is None:
            raise DanglingReferenceError(node_id, path)
        try:
            return owner.output(attribute)
        except AttributeError as e:
            raise DefinitionError(path, str(e)) from e
