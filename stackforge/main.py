#!/usr/bin/env python3
"""
StackForge command line entry point

Commands:
- synth <definition>   synthesize a stack definition into cdk.tf.json + manifest
- graph <definition>   print the dependency edges and provisioning order
- sample               synthesize the built-in CodeBuild / GitHub Actions stack
"""

import argparse
import logging
import sys
from typing import List, Optional

from stackforge.app import App
from stackforge.config import load_settings
from stackforge.dependency_resolver import build_graph
from stackforge.errors import StackError
from stackforge.loader import load_stack_file
from stackforge.stacks import build_sample_stack


def _build_parser(settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="stackforge", description="Synthesize infrastructure stacks")
    sub = parser.add_subparsers(dest="command", required=True)

    synth = sub.add_parser("synth", help="synthesize a stack definition")
    synth.add_argument("definition", help="YAML or JSON stack definition")
    synth.add_argument("--outdir", default=settings.outdir)
    synth.add_argument("--strict", action="store_true", default=settings.strict,
                       help="report resource types without a contract")

    graph = sub.add_parser("graph", help="print dependency edges and provisioning order")
    graph.add_argument("definition", help="YAML or JSON stack definition")
    graph.add_argument("--dot", action="store_true", help="print Graphviz DOT instead")

    sample = sub.add_parser("sample", help="synthesize the built-in sample stack")
    sample.add_argument("--outdir", default=settings.outdir)

    return parser


def _print_results(results):
    print("=" * 80)
    for result in results:
        print(f"✓ {result.stack}: {result.path}")
        print(f"  order: {' -> '.join(result.graph.order)}")
    print("=" * 80)


def main(argv: Optional[List[str]] = None) -> int:
    settings = load_settings()
    logging.basicConfig(level=settings.log_level, format="%(levelname)s %(name)s: %(message)s")
    args = _build_parser(settings).parse_args(argv)

    try:
        if args.command == "synth":
            app = App(outdir=args.outdir, strict=args.strict)
            app.add(load_stack_file(args.definition))
            _print_results(app.synth())

        elif args.command == "graph":
            graph = build_graph(load_stack_file(args.definition))
            if args.dot:
                print(graph.to_dot(), end="")
            else:
                for src, dst in graph.edge_list():
                    print(f"{src} -> {dst}")
                print(f"order: {' -> '.join(graph.order)}")

        elif args.command == "sample":
            app = App(outdir=args.outdir, strict=settings.strict)
            app.add(build_sample_stack())
            _print_results(app.synth())

    except StackError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
