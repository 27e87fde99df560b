"""StackForge: deferred-reference resolution and dependency graphs for infrastructure stacks."""

from stackforge.app import App, synth_stack
from stackforge.dependency_resolver import ReferenceGraph, build_graph, topological_order
from stackforge.errors import (
    ContractViolationError,
    CyclicDependencyError,
    DanglingReferenceError,
    DefinitionError,
    DuplicateIdError,
    InvalidStackIdError,
    MissingEnvironmentError,
    SelfReferenceError,
    StackError,
    StackLockedError,
    UnresolvedTokenError,
)
from stackforge.models import DataSource, Provider, Resource, ResourceNode, Stack, StackOutput
from stackforge.renderer import emit
from stackforge.resolver import TERRAFORM, VERBATIM, ResolvedDocument, resolve, resolve_value
from stackforge.tokens import (
    Composite,
    EncodedDocument,
    ForeignExpression,
    Token,
    concat,
    json_encode,
    raw_string,
    yaml_encode,
)

__version__ = "0.1.0"
