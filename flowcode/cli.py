"""
flowcode CLI
============
Converts flow documents into TypeScript, JavaScript or Python modules.

Usage
-----
    flowcode convert    <flow.json> [options]
    flowcode validate   <flow.json> [--json]
    flowcode converters [--json]

Convert options
---------------
    --target  {typescript,javascript,python}
    --module-style {esm,cjs}      JS module system (default: esm)
    --out     <dir>               Output directory (default: ./generated)
    --name    <stem>              Output file stem (default: derived from the flow name)
    --print                       Print the generated source instead of writing files
    --tracing / --no-tracing      Langfuse callback handler in run functions
    --tests / --no-tests          Also write a smoke-test module
    --env KEY=VALUE               Default environment value baked into the output (repeatable)
    --workers N                   Lower nodes on N threads

Defaults for every option come from FLOWCODE_* environment variables,
read from the process environment and from a .env file (python-dotenv).

Examples
--------
    flowcode convert flows/rag.json --target python --out build/
    flowcode convert flows/agent.json --module-style cjs --tests
    flowcode validate flows/agent.json --json
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

from .context import GenerationContext, TargetLanguage
from .converters import default_registry
from .errors import ConfigurationError, DocumentError
from .pipeline import convert_flow, load_graph, validate_flow
from .report import ConversionReport
from .targets import safe_identifier
from .testgen import module_name

_EXTENSIONS = {
    TargetLanguage.TYPESCRIPT: ".ts",
    TargetLanguage.JAVASCRIPT: ".js",
    TargetLanguage.PYTHON:     ".py",
}


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="flowcode",
        description="Compile LLM flow graphs into standalone source code.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    p.add_argument("-v", "--verbose", action="count", default=0, help="More logging (-vv for debug).")
    p.add_argument("--env-file", metavar="PATH", help="Read FLOWCODE_* defaults from this .env file.")
    sub = p.add_subparsers(dest="command", required=True)

    conv = sub.add_parser("convert", help="Convert a flow document into source code.")
    conv.add_argument("flow_json", metavar="flow.json", help="Path to the flow document.")
    conv.add_argument("--target", choices=[t.value for t in TargetLanguage], default=None)
    conv.add_argument("--module-style", choices=["esm", "cjs"], default=None)
    conv.add_argument("--out", metavar="DIR", default="generated", help="Output directory (default: generated/).")
    conv.add_argument("--name", metavar="STEM", default=None, help="Output file stem.")
    conv.add_argument("--print", dest="print_only", action="store_true",
                      help="Print generated source to stdout instead of writing files.")
    conv.add_argument("--tracing", dest="include_tracing", action=argparse.BooleanOptionalAction, default=None)
    conv.add_argument("--tests", dest="include_tests", action=argparse.BooleanOptionalAction, default=None)
    conv.add_argument("--docs", dest="include_docs", action=argparse.BooleanOptionalAction, default=None)
    conv.add_argument("--env", metavar="KEY=VALUE", action="append", default=[],
                      help="Default environment value for the generated module (repeatable).")
    conv.add_argument("--workers", type=int, default=None, help="Lower nodes on a thread pool of this size.")

    val = sub.add_parser("validate", help="Analyse a flow document and print the report.")
    val.add_argument("flow_json", metavar="flow.json", help="Path to the flow document.")
    val.add_argument("--json", dest="as_json", action="store_true", help="Print the report as JSON.")

    lst = sub.add_parser("converters", help="List the registered node types.")
    lst.add_argument("--json", dest="as_json", action="store_true", help="Print the registry as JSON.")
    return p


def _parse_env(pairs: List[str]) -> Dict[str, str]:
    env: Dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"--env expects KEY=VALUE, got {pair!r}")
        env[key.strip()] = value
    return env


def _print_report(report: ConversionReport, out=None) -> None:
    out = out or sys.stdout
    cov = report.coverage
    print(f"[flowcode] coverage   : {cov.supported_nodes}/{cov.total_nodes} nodes ({cov.ratio:.0%})", file=out)
    if report.complexity is not None:
        print(f"[flowcode] complexity : {report.complexity.value}", file=out)
    for finding in report.findings:
        print(f"[flowcode] {finding}", file=sys.stderr if finding.fatal else out)


# ── Subcommands ──────────────────────────────────────────────────────────────

def _cmd_convert(args: argparse.Namespace) -> int:
    try:
        environment = _parse_env(args.env)
    except ValueError as exc:
        print(f"[error] {exc}", file=sys.stderr)
        return 2

    graph = load_graph(args.flow_json)
    overrides = dict(
        target=args.target,
        module_style=args.module_style,
        include_tracing=args.include_tracing,
        include_tests=args.include_tests,
        include_docs=args.include_docs,
        environment=environment or None,
        project_name=args.name or safe_identifier(graph.name, python=True),
    )
    context = GenerationContext.from_env(env_file=args.env_file, **overrides)

    result = convert_flow(graph, context, max_workers=args.workers)
    _print_report(result.report, sys.stderr if args.print_only else sys.stdout)
    if result.source is None:
        print("[error] conversion failed; no output written", file=sys.stderr)
        return 1

    if args.print_only:
        print(result.source, end="")
        return 0

    out_dir = Path(args.out)
    out_dir.mkdir(parents=True, exist_ok=True)
    stem = module_name(context)
    ext = _EXTENSIONS[context.target]
    out_path = out_dir / f"{stem}{ext}"
    out_path.write_text(result.source, encoding="utf-8")
    print(f"[flowcode] wrote      : {out_path}")

    if result.test_source is not None:
        test_name = f"test_{stem}{ext}" if context.is_python else f"{stem}.test{ext}"
        test_path = out_dir / test_name
        test_path.write_text(result.test_source, encoding="utf-8")
        print(f"[flowcode] wrote      : {test_path}")

    if context.is_python:
        req_path = out_dir / "requirements.txt"
        req_path.write_text("".join(f"{pkg}\n" for pkg in result.packages), encoding="utf-8")
        print(f"[flowcode] wrote      : {req_path}")
    elif result.packages:
        print(f"[flowcode] install    : npm install {' '.join(result.packages)}")
    return 0


def _cmd_validate(args: argparse.Namespace) -> int:
    report = validate_flow(args.flow_json)
    if args.as_json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        _print_report(report)
    return 1 if report.is_fatal else 0


def _cmd_converters(args: argparse.Namespace) -> int:
    registry = default_registry()
    rows = registry.describe()
    if args.as_json:
        print(json.dumps({"converters": rows, "statistics": registry.statistics()}, indent=2))
        return 0
    width = max((len(r["type"]) for r in rows), default=4)
    for row in rows:
        note = f"  deprecated → {row['replacement']}" if row["deprecated"] else ""
        aliases = f"  (aliases: {', '.join(row['aliases'])})" if row["aliases"] else ""
        print(f"{row['type']:<{width}}  {row['category']:<16}{aliases}{note}")
    return 0


_COMMANDS = {
    "convert":    _cmd_convert,
    "validate":   _cmd_validate,
    "converters": _cmd_converters,
}


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    level = logging.WARNING - 10 * min(args.verbose, 2)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    try:
        return _COMMANDS[args.command](args)
    except DocumentError as exc:
        print(f"[error] {exc}", file=sys.stderr)
        return 1
    except ConfigurationError as exc:
        print(f"[error] {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
