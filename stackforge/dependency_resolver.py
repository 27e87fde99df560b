"""
Reference Graph Module

Responsibility:
- Derive the dependency graph of a stack from the Tokens in node inputs
- Reject self references, dangling references and cycles
- Produce a deterministic topological order for the provisioning engine

This is PURE deterministic logic: the graph is recomputed from the stack on
every call and never stored on it.

Edges point from a node to the nodes it depends on: if an input of A
contains a Token owned by B, the graph holds A -> B and B is ordered first.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Tuple

from stackforge.errors import CyclicDependencyError, DanglingReferenceError, SelfReferenceError
from stackforge.models import Stack
from stackforge.tokens import iter_tokens

logger = logging.getLogger(__name__)

# DFS colours
_WHITE, _GRAY, _BLACK = 0, 1, 2


@dataclass(frozen=True)
class ReferenceGraph:
    """Dependency graph over node ids, in declaration order."""
    nodes: Tuple[str, ...]
    edges: Dict[str, Tuple[str, ...]]  # node id -> ids it depends on
    order: Tuple[str, ...]

    def dependencies(self, node_id: str) -> Tuple[str, ...]:
        return self.edges.get(node_id, ())

    def dependents(self, node_id: str) -> Tuple[str, ...]:
        return tuple(n for n in self.nodes if node_id in self.edges[n])

    def edge_list(self) -> List[Tuple[str, str]]:
        return [(src, dst) for src in self.nodes for dst in self.edges[src]]

    @property
    def edge_count(self) -> int:
        return sum(len(deps) for deps in self.edges.values())

    def to_dict(self) -> dict:
        return {
            "nodes": list(self.nodes),
            "edges": [list(e) for e in self.edge_list()],
            "order": list(self.order),
        }

    def to_dot(self) -> str:
        lines = ["digraph stack {", "  rankdir=LR;", "  node [shape=box, style=rounded];"]
        for node_id in self.nodes:
            lines.append(f'  "{node_id}";')
        for src, dst in self.edge_list():
            lines.append(f'  "{src}" -> "{dst}";')
        lines.append("}")
        return "\n".join(lines) + "\n"


def build_graph(stack: Stack) -> ReferenceGraph:
    """
    Build the Reference Graph of a stack.

    Locks the stack: inputs are fixed from here on.

    Raises:
        SelfReferenceError: a node references its own output
        DanglingReferenceError: a Token's owner is not part of the stack
        CyclicDependencyError: the references form a cycle
    """
    stack.lock()

    edges: Dict[str, Tuple[str, ...]] = {}
    for node in stack:
        dependencies = []
        for path, token in iter_tokens(node.inputs):
            if token.stack_id == stack.stack_id and token.owner_id == node.id:
                raise SelfReferenceError(node.id, path)
            if not stack.owns(token):
                raise DanglingReferenceError(node.id, path, token)
            # Multiple references to the same owner collapse into one edge
            if token.owner_id not in dependencies:
                dependencies.append(token.owner_id)
        edges[node.id] = tuple(dependencies)
        if dependencies:
            logger.debug("Edges %s -> %s", node.id, ", ".join(dependencies))

    # Stack outputs are not graph nodes but must not reference unknown nodes
    for output in stack.outputs.values():
        stack.check_value(output.id, "value", output.value)

    node_ids = tuple(stack.nodes)
    order = _topological_order(node_ids, edges)
    logger.debug("Topological order of %s: %s", stack.id, order)

    return ReferenceGraph(nodes=node_ids, edges=edges, order=tuple(order))


def topological_order(stack: Stack) -> Tuple[str, ...]:
    """Convenience wrapper returning only the provisioning order."""
    return build_graph(stack).order


def _topological_order(node_ids, edges: Dict[str, Tuple[str, ...]]) -> List[str]:
    """
    Three-colour DFS emitting nodes in post-order over dependency edges.

    Roots are visited in declaration order and dependencies in first-reference
    order, so unconstrained nodes keep their declaration order.
    """
    colour = {node_id: _WHITE for node_id in node_ids}
    order: List[str] = []

    for root in node_ids:
        if colour[root] != _WHITE:
            continue

        colour[root] = _GRAY
        path = [(root, iter(edges[root]))]

        while path:
            current, pending = path[-1]
            for dependency in pending:
                if colour[dependency] == _WHITE:
                    colour[dependency] = _GRAY
                    path.append((dependency, iter(edges[dependency])))
                    break
                if colour[dependency] == _GRAY:
                    visiting = [node_id for node_id, _ in path]
                    raise CyclicDependencyError(visiting[visiting.index(dependency):])
            else:
                colour[current] = _BLACK
                order.append(current)
                path.pop()

    return order
