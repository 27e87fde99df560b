"""
Core Domain Models Module

Responsibility:
- Define the construct tree: a Stack owning its resource nodes and outputs
- ResourceNode: a resource, data source or provider with ordered inputs and
  lazily declared output Tokens
- StackOutput: a value exported by the stack once provisioned
- MissingRequirement: a contract validation failure

Nodes are stored arena style: the Stack maps ids to nodes and Tokens point
back at their owner by id only.
"""

import logging
import re
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional

from stackforge.contracts import get_resource_contract
from stackforge.errors import (
    DanglingReferenceError,
    DuplicateIdError,
    InvalidStackIdError,
    StackLockedError,
)
from stackforge.tokens import Token, iter_tokens

logger = logging.getLogger(__name__)

STACK_ID_PATTERN = re.compile(r"[A-Za-z0-9_-]+")


class Stack:
    """
    The construct tree.

    Owns every node and output declared in it. Inputs may change until the
    stack is locked, which happens the first time it is graphed or resolved.
    """

    def __init__(self, id: str):
        if not isinstance(id, str) or not STACK_ID_PATTERN.fullmatch(id):
            raise InvalidStackIdError(str(id))
        self.id = id
        self.stack_id = f"{id}-{uuid.uuid4().hex[:12]}"
        self.nodes: Dict[str, "ResourceNode"] = {}
        self.outputs: Dict[str, "StackOutput"] = {}
        self.locked: bool = False

    def __contains__(self, node_id: str) -> bool:
        return node_id in self.nodes

    def __iter__(self) -> Iterator["ResourceNode"]:
        return iter(self.nodes.values())

    def __len__(self) -> int:
        return len(self.nodes)

    def node(self, node_id: str) -> Optional["ResourceNode"]:
        return self.nodes.get(node_id)

    def owns(self, token: Token) -> bool:
        """True when the token was produced by a node of this stack."""
        return token.stack_id == self.stack_id and token.owner_id in self.nodes

    def lock(self):
        if not self.locked:
            logger.debug("Locking stack %s with %d nodes", self.id, len(self.nodes))
        self.locked = True

    def check_value(self, node_id: str, path: str, value: Any):
        """Reject values embedding Tokens from another stack or unknown nodes."""
        for token_path, token in iter_tokens(value, path):
            if not self.owns(token):
                raise DanglingReferenceError(node_id, token_path, token)

    def _register_id(self, construct_id: str):
        if construct_id in self.nodes or construct_id in self.outputs:
            raise DuplicateIdError(construct_id)
        if self.locked:
            raise StackLockedError(construct_id)


class ResourceNode:
    """
    A single declarative entity of the stack.

    Output attributes are read as Python attributes (`repo.html_url`) and
    return a Token scoped to (node, attribute). The construct id is `node.id`;
    use `node.output("id")` for the provider-assigned id attribute.
    """
    kind = "resource"

    def __init__(self, stack: Stack, construct_id: str, node_type: str,
                 inputs: Optional[dict] = None, **kwargs):
        stack._register_id(construct_id)

        self.id = construct_id
        self.type = node_type
        self.stack = stack
        self.inputs: Dict[str, Any] = {}
        self.outputs: Dict[str, Token] = {}

        merged = dict(inputs or {})
        merged.update(kwargs)
        for name, value in merged.items():
            stack.check_value(construct_id, name, value)
            self.inputs[name] = value

        stack.nodes[construct_id] = self

    @property
    def address(self) -> str:
        """Address of this node in the provisioning plan."""
        if self.kind == "data":
            return f"data.{self.type}.{self.id}"
        if self.kind == "provider":
            return self.type
        return f"{self.type}.{self.id}"

    def output(self, attribute: str) -> Token:
        """Return the Token for a runtime attribute, declaring it on first use."""
        if self.kind == "provider":
            raise AttributeError(f"Provider '{self.id}' exports no attributes")
        contract = get_resource_contract(self.type)
        if contract and attribute not in contract["attributes"]:
            raise AttributeError(f"'{self.type}' does not export an attribute named '{attribute}'")

        token = self.outputs.get(attribute)
        if token is None:
            token = Token.create(self.id, attribute, self.stack.stack_id)
            self.outputs[attribute] = token
        return token

    def put(self, name: str, value: Any):
        """Set or override an input. Only allowed before synthesis."""
        if self.stack.locked:
            raise StackLockedError(self.id)
        self.stack.check_value(self.id, name, value)
        self.inputs[name] = value

    def __getattr__(self, name: str) -> Token:
        # Only reached for names that are not real attributes
        if name.startswith("_") or name in ("id", "type", "stack", "inputs", "outputs"):
            raise AttributeError(name)
        return self.output(name)

    def __repr__(self):
        return f"{type(self).__name__}({self.address!r})"


class Resource(ResourceNode):
    kind = "resource"


class DataSource(ResourceNode):
    kind = "data"


class Provider(ResourceNode):
    """Provider configuration block. The node type is the provider name."""
    kind = "provider"


class StackOutput:
    """A value exported by the stack after provisioning."""

    def __init__(self, stack: Stack, construct_id: str, value: Any,
                 description: Optional[str] = None, sensitive: bool = False):
        stack._register_id(construct_id)
        stack.check_value(construct_id, "value", value)
        self.id = construct_id
        self.value = value
        self.description = description
        self.sensitive = sensitive
        stack.outputs[construct_id] = self


@dataclass
class MissingRequirement:
    """
    Represents a contract validation failure.

    Returned by the validator when a required input is missing or a type is unknown.
    """
    node_id: str
    path: str  # Attribute path like "inputs.service_role"
    reason: str  # Human-readable explanation
    options: Optional[list] = None  # Available choices if applicable
