"""
Validation Engine Module

Responsibility:
- Enforce resource contracts (required inputs, known node kinds)
- Validate that required environment values are present before a stack is built
- Return a list of MissingRequirement objects for any validation failure

This is PURE deterministic validation logic. Structural reference checks
(dangling, self and cyclic references) belong to the Reference Graph.
"""

import os
from typing import Dict, Iterable, List, Mapping, Optional

from stackforge.contracts import RESOURCE_CONTRACTS, get_provider, get_resource_contract
from stackforge.errors import MissingEnvironmentError
from stackforge.models import MissingRequirement, ResourceNode, Stack


def validate_stack(stack: Stack, strict: bool = False) -> List[MissingRequirement]:
    """
    Validate every node of a stack against its resource contract.

    With strict=True, node types without a contract are reported as well.
    """
    missing_requirements = []

    for node in stack:
        if node.kind == "provider":
            missing_requirements.extend(_validate_provider(node, strict))
        else:
            missing_requirements.extend(_validate_contract(node, strict))

    return missing_requirements


def _validate_contract(node: ResourceNode, strict: bool) -> List[MissingRequirement]:
    """Validate that a resource or data source satisfies its contract."""
    missing = []
    contract = get_resource_contract(node.type)

    if not contract:
        if strict:
            known = [t for t, c in RESOURCE_CONTRACTS.items() if c["kind"] == node.kind]
            missing.append(MissingRequirement(
                node_id=node.id,
                path="type",
                reason=f"Unknown {node.kind} type: {node.type}",
                options=known or None
            ))
        return missing

    if contract["kind"] != node.kind:
        missing.append(MissingRequirement(
            node_id=node.id,
            path="kind",
            reason=f"'{node.type}' is a {contract['kind']}, declared as a {node.kind}"
        ))

    for required_input in contract["required_inputs"]:
        value = node.inputs.get(required_input)
        if value is None or value == "":
            missing.append(MissingRequirement(
                node_id=node.id,
                path=f"inputs.{required_input}",
                reason=f"Required input '{required_input}' of '{node.type}' is missing"
            ))

    return missing


def _validate_provider(node: ResourceNode, strict: bool) -> List[MissingRequirement]:
    if strict and not get_provider(node.type):
        return [MissingRequirement(
            node_id=node.id,
            path="type",
            reason=f"Unknown provider: {node.type}"
        )]
    return []


def validate_env(names: Iterable[str], environ: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """
    Check that every named environment variable is set and non-empty.

    Returns:
        Mapping of name -> value for the requested variables

    Raises:
        MissingEnvironmentError: listing every missing name at once
    """
    source = os.environ if environ is None else environ
    values = {}
    missing = []

    for name in names:
        value = source.get(name)
        if not value:
            missing.append(name)
        else:
            values[name] = value

    if missing:
        raise MissingEnvironmentError(missing)

    return values
