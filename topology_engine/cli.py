#!/usr/bin/env python3
"""
Topology CLI

Validate, normalize and analyze broker topologies stored as JSON or YAML,
or import the topology currently declared on a RabbitMQ broker.

Usage:
    topology-cli validate topology.yaml
    topology-cli analyze topology.json --json
    topology-cli normalize topology.yaml -o normalized.json
    topology-cli fetch --url http://localhost:15672/api -o live.yaml

Exit codes:
    0  success
    1  topology has validation errors or Error-level findings
    2  input could not be read or the broker could not be reached
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from topology_engine.adapters.rabbitmq_management import RabbitMqManagementClient
from topology_engine.application.topology_service import TopologyService
from topology_engine.config.settings import Settings
from topology_engine.core.exceptions import InvalidConfigurationError, TopologyEngineError
from topology_engine.core.models import Topology

logger = logging.getLogger(__name__)

YAML_SUFFIXES = (".yaml", ".yml")


# ---------------------------------------------------------------------------
# File helpers
# ---------------------------------------------------------------------------

def load_topology(path: str) -> Topology:
    """Read a topology document; the suffix picks YAML or JSON."""
    file_path = Path(path)
    with open(file_path, "r", encoding="utf-8") as f:
        if file_path.suffix.lower() in YAML_SUFFIXES:
            data = yaml.safe_load(f)
        else:
            data = json.load(f)
    if not isinstance(data, dict):
        raise InvalidConfigurationError(f"{path}: expected a topology object at the top level")
    return Topology.from_dict(data)


def dump_document(data: Dict[str, Any], path: Optional[str] = None) -> None:
    """Write ``data`` to ``path`` (YAML or JSON by suffix) or as JSON to stdout."""
    if path is None:
        print(json.dumps(data, indent=2, default=str))
        return
    file_path = Path(path)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    with open(file_path, "w", encoding="utf-8") as f:
        if file_path.suffix.lower() in YAML_SUFFIXES:
            yaml.safe_dump(data, f, sort_keys=False)
        else:
            json.dump(data, f, indent=2, default=str)
    logger.info(f"Written to {file_path}")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def _cmd_validate(args: argparse.Namespace, service: TopologyService) -> int:
    topology = load_topology(args.file)
    result = service.validate(topology)
    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print(f"Topology '{topology.name}': {'VALID' if result.is_valid else 'INVALID'}")
        for error in result.errors:
            print(f"  ERROR   {error}")
        for warning in result.warnings:
            print(f"  WARNING {warning}")
    return 0 if result.is_valid else 1


def _cmd_normalize(args: argparse.Namespace, service: TopologyService) -> int:
    topology = service.normalize(load_topology(args.file))
    dump_document(topology.to_dict(), args.output)
    return 0


def _cmd_analyze(args: argparse.Namespace, service: TopologyService) -> int:
    topology = load_topology(args.file)
    result = service.analyze(topology)
    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        summary = result.summary
        print(
            f"Topology '{topology.name}': {summary['total']} findings "
            f"({summary['Error']} errors, {summary['Warning']} warnings, {summary['Info']} info)"
        )
        for finding in result.findings:
            print(f"  [{finding.type.value.upper():7}] {finding.message}")
            for recommendation in finding.recommendations:
                print(f"            - {recommendation}")
    return 1 if result.has_errors else 0


async def _fetch(settings: Settings) -> Topology:
    client = RabbitMqManagementClient.from_settings(settings)
    try:
        return await client.get_current_topology()
    finally:
        await client.aclose()


def _cmd_fetch(args: argparse.Namespace, service: TopologyService) -> int:
    settings = Settings.from_env()
    if args.url:
        settings.rabbitmq_management_url = args.url
    if args.user:
        settings.rabbitmq_user = args.user
    if args.password:
        settings.rabbitmq_password = args.password
    if args.vhost:
        settings.rabbitmq_vhost = args.vhost

    topology = asyncio.run(_fetch(settings))
    if args.normalize:
        topology = service.normalize(topology)
    dump_document(topology.to_dict(), args.output)
    return 0


COMMANDS = {
    "validate": _cmd_validate,
    "normalize": _cmd_normalize,
    "analyze": _cmd_analyze,
    "fetch": _cmd_fetch,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="topology-cli",
        description="Validate, normalize and analyze message broker topologies.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--quiet", "-q", action="store_true", help="Only log warnings and errors")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    subparsers = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (
        ("validate", "Check a topology for structural errors"),
        ("analyze", "Report design findings and recommendations"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("file", help="Topology file (.json, .yaml or .yml)")
        sub.add_argument("--json", action="store_true", help="Output JSON to stdout")

    normalize = subparsers.add_parser("normalize", help="Canonicalize names and routing keys")
    normalize.add_argument("file", help="Topology file (.json, .yaml or .yml)")
    normalize.add_argument("--output", "-o", metavar="FILE", help="Write result to FILE instead of stdout")

    fetch = subparsers.add_parser("fetch", help="Import the live topology from the management API")
    fetch.add_argument("--url", help="Management API base URL (default: RABBITMQ_MANAGEMENT_URL)")
    fetch.add_argument("--user", "-u", help="Management API user")
    fetch.add_argument("--password", "-p", help="Management API password")
    fetch.add_argument("--vhost", help="Virtual host to read")
    fetch.add_argument("--normalize", action="store_true", help="Normalize before writing")
    fetch.add_argument("--output", "-o", metavar="FILE", help="Write result to FILE instead of stdout")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    log_level = logging.WARNING if args.quiet else (logging.DEBUG if args.verbose else logging.INFO)
    logging.basicConfig(level=log_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    service = TopologyService()
    try:
        return COMMANDS[args.command](args, service)
    except TopologyEngineError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    except (OSError, ValueError, yaml.YAMLError) as e:
        print(f"Error: could not read topology: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
