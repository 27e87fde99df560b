"""
App Module

Responsibility:
- Hold the stacks of one application
- Synthesize each stack: contract validation -> resolution -> plan emission
- Write the plans and a manifest (provisioning order per stack) to disk

Every stack is synthesized in memory first; files are only written once all
stacks succeeded, so a failing stack never leaves a partial output directory.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from stackforge.dependency_resolver import ReferenceGraph
from stackforge.errors import ContractViolationError, DuplicateIdError
from stackforge.models import Stack
from stackforge.renderer import emit
from stackforge.resolver import ResolvedDocument, resolve
from stackforge.validator import validate_stack

logger = logging.getLogger(__name__)

PLAN_FILE = "cdk.tf.json"
MANIFEST_FILE = "manifest.json"
MANIFEST_VERSION = "1"


@dataclass
class SynthResult:
    stack: str
    plan: bytes
    document: ResolvedDocument
    graph: ReferenceGraph
    path: Optional[Path] = None


def synth_stack(stack: Stack, strict: bool = False, format: str = "json") -> SynthResult:
    """Synthesize one stack in memory."""
    violations = validate_stack(stack, strict=strict)
    if violations:
        raise ContractViolationError(violations)

    document, graph = resolve(stack)
    plan = emit(document.to_plan(), format)
    logger.debug("Synthesized %s: %d nodes, %d edges", stack.id, len(graph.nodes), graph.edge_count)
    return SynthResult(stack=stack.id, plan=plan, document=document, graph=graph)


class App:
    """Container for the stacks synthesized together."""

    def __init__(self, outdir: str = "cdktf.out", strict: bool = False):
        self.outdir = Path(outdir)
        self.strict = strict
        self.stacks: Dict[str, Stack] = {}

    def stack(self, stack_id: str) -> Stack:
        """Create and register a new, empty stack."""
        if stack_id in self.stacks:
            raise DuplicateIdError(stack_id)
        stack = Stack(stack_id)
        self.stacks[stack_id] = stack
        return stack

    def add(self, stack: Stack) -> Stack:
        if stack.id in self.stacks:
            raise DuplicateIdError(stack.id)
        self.stacks[stack.id] = stack
        return stack

    def synth(self) -> List[SynthResult]:
        results = [synth_stack(stack, strict=self.strict) for stack in self.stacks.values()]

        manifest = {"version": MANIFEST_VERSION, "stacks": {}}
        for result in results:
            relative = Path("stacks") / result.stack / PLAN_FILE
            target = self.outdir / relative
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(result.plan)
            result.path = target
            logger.info("Wrote %s", target)

            manifest["stacks"][result.stack] = {
                "synthesizedStackPath": relative.as_posix(),
                "order": list(result.graph.order),
                "dependencies": {k: list(v) for k, v in result.graph.edges.items()},
            }

        self.outdir.mkdir(parents=True, exist_ok=True)
        (self.outdir / MANIFEST_FILE).write_text(json.dumps(manifest, indent=2) + "\n", encoding="utf-8")
        return results
