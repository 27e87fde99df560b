"""
Resolver Module

Responsibility:
- Walk a stack and replace every deferred value with its final text:
  Tokens become the target's native interpolation syntax, ForeignExpressions
  are passed through untouched, Composites are concatenated in order and
  EncodedDocuments are serialized
- Build the Reference Graph in the same pass, before any value is resolved,
  so a broken stack never yields a partial document
- Assemble the provisioning plan (Terraform JSON) from the resolved nodes

Resolution is syntactic substitution, not evaluation: the runtime value of
a Token is never known locally.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from stackforge.contracts import get_provider, provider_of
from stackforge.dependency_resolver import ReferenceGraph, build_graph
from stackforge.errors import DanglingReferenceError
from stackforge.models import Stack
from stackforge.renderer import emit_text
from stackforge.tokens import LITERAL_TYPES, Composite, EncodedDocument, ForeignExpression, Token, join_path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReferenceSyntax:
    """
    How a target document spells references and foreign text.

    `foreign_escapes` holds the (old, new) replacements the target grammar
    needs so that foreign text survives it unchanged.
    """
    name: str
    reference_format: str = "${{{address}.{attribute}}}"
    foreign_escapes: Tuple[Tuple[str, str], ...] = ()

    def reference(self, address: str, attribute: str) -> str:
        return self.reference_format.format(address=address, attribute=attribute)

    def foreign(self, raw: str) -> str:
        for old, new in self.foreign_escapes:
            raw = raw.replace(old, new)
        return raw


# Terraform interpolates "${...}" and "%{...}" in every string; "$${" and
# "%%{" are its literal forms and are turned back into "${"/"%{" on apply
TERRAFORM = ReferenceSyntax("terraform", foreign_escapes=(("${", "$${"), ("%{", "%%{")))

# References in the same spelling, foreign text byte for byte
VERBATIM = ReferenceSyntax("verbatim")


@dataclass
class ResolvedNode:
    id: str
    kind: str
    type: str
    address: str
    inputs: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ResolvedOutput:
    id: str
    value: Any
    description: Optional[str] = None
    sensitive: bool = False


@dataclass
class ResolvedDocument:
    """Fully resolved stack: nodes in declaration order plus stack outputs."""
    stack: str
    nodes: Dict[str, ResolvedNode]
    outputs: Dict[str, ResolvedOutput]
    order: Tuple[str, ...]

    def to_plan(self) -> dict:
        """Assemble the Terraform JSON document (cdk.tf.json layout)."""
        providers = {}
        blocks = {"provider": {}, "data": {}, "resource": {}}

        for node in self.nodes.values():
            if node.kind == "provider":
                providers.setdefault(node.type, None)
                blocks["provider"].setdefault(node.type, []).append(node.inputs)
                continue
            providers.setdefault(provider_of(node.type), None)
            section = "data" if node.kind == "data" else "resource"
            blocks[section].setdefault(node.type, {})[node.id] = node.inputs

        plan = {
            "terraform": {
                "required_providers": {
                    name: get_provider(name) or {"source": f"hashicorp/{name}"}
                    for name in providers
                }
            }
        }
        for section in ("provider", "data", "resource"):
            if blocks[section]:
                plan[section] = blocks[section]

        if self.outputs:
            plan["output"] = {}
            for output in self.outputs.values():
                entry = {"value": output.value}
                if output.description is not None:
                    entry["description"] = output.description
                if output.sensitive:
                    entry["sensitive"] = True
                plan["output"][output.id] = entry

        return plan


class Resolver:
    """Resolves values against one stack with one reference syntax."""

    def __init__(self, stack: Stack, syntax: ReferenceSyntax = TERRAFORM):
        self.stack = stack
        self.syntax = syntax

    def resolve_value(self, value: Any, path: str = "", node_id: str = "<document>") -> Any:
        if isinstance(value, Token):
            return self._resolve_token(value, path, node_id)

        if isinstance(value, ForeignExpression):
            return self.syntax.foreign(value.raw)

        if isinstance(value, LITERAL_TYPES):
            return value

        if isinstance(value, Composite):
            pieces = []
            for part in value.parts:
                if isinstance(part, str):
                    pieces.append(part)
                else:
                    pieces.append(self.resolve_value(part, path, node_id))
            return "".join(pieces)

        if isinstance(value, EncodedDocument):
            body = self.resolve_value(value.value, path, node_id)
            return emit_text(body, value.format)

        if isinstance(value, (list, tuple)):
            return [self.resolve_value(item, join_path(path, i), node_id) for i, item in enumerate(value)]

        if isinstance(value, dict):
            return {key: self.resolve_value(item, join_path(path, key), node_id) for key, item in value.items()}

        raise TypeError(f"Cannot resolve a value of type {type(value).__name__} at '{path}' in '{node_id}'")

    def _resolve_token(self, token: Token, path: str, node_id: str) -> str:
        owner = self.stack.node(token.owner_id)
        if owner is None or token.stack_id != self.stack.stack_id:
            raise DanglingReferenceError(node_id, path, token)
        return self.syntax.reference(owner.address, token.attribute)


def resolve(stack: Stack, syntax: ReferenceSyntax = TERRAFORM) -> Tuple[ResolvedDocument, ReferenceGraph]:
    """
    Resolve a whole stack.

    The Reference Graph is built first; every structural error (dangling,
    self or cyclic reference) is raised before any value is resolved.

    Returns:
        (resolved document, reference graph)
    """
    graph = build_graph(stack)
    resolver = Resolver(stack, syntax)

    resolved = {}
    for node_id in graph.order:
        node = stack.node(node_id)
        logger.debug("Resolving %s", node.address)
        resolved[node_id] = ResolvedNode(
            id=node.id,
            kind=node.kind,
            type=node.type,
            address=node.address,
            inputs={
                name: resolver.resolve_value(value, name, node.id)
                for name, value in node.inputs.items()
            },
        )

    outputs = {}
    for output in stack.outputs.values():
        outputs[output.id] = ResolvedOutput(
            id=output.id,
            value=resolver.resolve_value(output.value, "value", output.id),
            description=output.description,
            sensitive=output.sensitive,
        )

    document = ResolvedDocument(
        stack=stack.id,
        nodes={node_id: resolved[node_id] for node_id in graph.nodes},
        outputs=outputs,
        order=graph.order,
    )
    return document, graph


def resolve_value(value: Any, stack: Stack, syntax: ReferenceSyntax = VERBATIM) -> Any:
    """Resolve a standalone value (for example a workflow document) against a stack."""
    return Resolver(stack, syntax).resolve_value(value)
