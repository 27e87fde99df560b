"""
Errors Module

Responsibility:
- Define the error taxonomy raised while building, graphing, resolving
  and emitting a stack
- Carry enough context (node id, attribute path, cycle) to act on an error
  without re-running the build

StackError subclasses are structural problems the user can fix.
UnresolvedTokenError is an internal invariant violation and is deliberately
NOT a StackError, so it propagates with a full traceback.
"""

from typing import Any, Dict, List


class StackError(Exception):
    """Base class for all user-fixable synthesis errors."""

    def context(self) -> Dict[str, Any]:
        """Structured error details, used by the HTTP service responses."""
        return {"error": type(self).__name__, "message": str(self)}


class DanglingReferenceError(StackError):
    """A Token references a resource that does not exist in the same stack."""

    def __init__(self, node_id: str, path: str, token=None):
        self.node_id = node_id
        self.path = path
        self.token = token
        target = f" to '{token.owner_id}.{token.attribute}'" if token is not None else ""
        super().__init__(
            f"Dangling reference{target} in '{node_id}' at '{path}': "
            f"the owning resource is not part of this stack"
        )

    def context(self) -> Dict[str, Any]:
        ctx = super().context()
        ctx.update({"node_id": self.node_id, "path": self.path})
        return ctx


class SelfReferenceError(StackError):
    """A resource input references one of the resource's own outputs."""

    def __init__(self, node_id: str, path: str):
        self.node_id = node_id
        self.path = path
        super().__init__(f"Resource '{node_id}' references its own output at '{path}'")

    def context(self) -> Dict[str, Any]:
        ctx = super().context()
        ctx.update({"node_id": self.node_id, "path": self.path})
        return ctx


class CyclicDependencyError(StackError):
    def __init__(self, cycle: List[str]):
        self.cycle = list(cycle)
        super().__init__(f"Cyclic dependency: {' -> '.join(self.cycle + self.cycle[:1])}")

    def context(self) -> Dict[str, Any]:
        ctx = super().context()
        ctx["cycle"] = self.cycle
        return ctx


class DuplicateIdError(StackError):
    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"There is already a construct with id '{node_id}' in this stack")


class InvalidStackIdError(StackError):
    """Stack ids name output directories, so they are restricted to [A-Za-z0-9_-]."""

    def __init__(self, stack_id: str):
        self.stack_id = stack_id
        super().__init__(
            f"Invalid stack id '{stack_id}': use only letters, digits, '-' and '_'"
        )

    def context(self) -> Dict[str, Any]:
        ctx = super().context()
        ctx["stack_id"] = self.stack_id
        return ctx


class StackLockedError(StackError):
    """Inputs are fixed once synthesis has started."""

    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Cannot change inputs of '{node_id}': the stack is already synthesized")


class ContractViolationError(StackError):
    """Raised by synth when the stack does not satisfy its resource contracts."""

    def __init__(self, violations: list):
        self.violations = list(violations)
        lines = [f"  - {v.node_id}: {v.reason}" for v in self.violations]
        super().__init__("Stack does not satisfy resource contracts:\n" + "\n".join(lines))

    def context(self) -> Dict[str, Any]:
        ctx = super().context()
        ctx["violations"] = [
            {"node_id": v.node_id, "path": v.path, "reason": v.reason}
            for v in self.violations
        ]
        return ctx


class MissingEnvironmentError(StackError):
    def __init__(self, names: List[str]):
        self.names = list(names)
        super().__init__(f"Missing required environment variables: {', '.join(self.names)}")

    def context(self) -> Dict[str, Any]:
        ctx = super().context()
        ctx["missing"] = self.names
        return ctx


class DefinitionError(StackError):
    """A declarative stack definition could not be loaded."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid stack definition at '{path}': {reason}")

    def context(self) -> Dict[str, Any]:
        ctx = super().context()
        ctx.update({"path": self.path, "reason": self.reason})
        return ctx


class UnresolvedTokenError(RuntimeError):
    """A deferred value reached the emitter. Indicates a skipped resolve step."""

    def __init__(self, path: str, value: Any):
        self.path = path
        self.value = value
        super().__init__(
            f"Unresolved {type(value).__name__} at '{path}' during emission; "
            f"the document was not resolved or was mutated after resolution"
        )
