"""
Command line interface for Ghost Operator.
"""
import argparse
import asyncio
import dataclasses
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .config import OperatorConfig
from .exceptions import ConfigurationError, MissingConfigError, StoreUnavailableError
from .integrations.compute import ComputeTarget, RenderComputeTarget, SimulatedComputeTarget
from .integrations.detection import CompositeDetector, ComputeHealthSource, StaticSource
from .integrations.simulation import SIMULATION_SCENARIOS, get_scenario
from .logging_config import setup_logging
from .pipeline import IncidentPipeline, PipelineNotice, PipelineResult
from .reporting.postmortem import render_markdown
from .storage.base import MemorySearch
from .storage.incident_store import SQLiteIncidentStore
from .storage.memory_search import LocalMemorySearch, SensoMemorySearch

logger = logging.getLogger(__name__)


def configure_logging(args: argparse.Namespace, config: OperatorConfig) -> None:
    """Configure logging level based on verbosity flags and config."""
    if args.debug:
        level = 'DEBUG'
    elif args.quiet:
        level = 'ERROR'
    elif args.verbose:
        level = 'INFO'
    else:
        level = config.log_level if config.log_level.upper() != 'INFO' else 'WARNING'

    setup_logging(
        level=level,
        log_file=config.log_file,
        include_timestamp=args.debug,
        json_format=args.json_logs,
    )


def load_config(args: argparse.Namespace) -> OperatorConfig:
    config = OperatorConfig.load(args.config_file) if args.config_file else OperatorConfig.load()
    if getattr(args, 'no_wait', False):
        config = dataclasses.replace(config, validation_delay_seconds=0)
    config.validate()
    return config


def local_memory_path(database_path: str) -> Path:
    """Local memory documents live beside the incident database."""
    return Path(database_path).with_suffix(".memory.jsonl")


def build_memory(config: OperatorConfig) -> MemorySearch:
    if config.uses_senso:
        return SensoMemorySearch(
            api_key=config.senso_api_key,
            organization_id=config.senso_org_id,
            base_url=config.senso_base_url,
        )
    if config.database_path == ":memory:":
        return LocalMemorySearch()
    return LocalMemorySearch(local_memory_path(config.database_path))


def format_result(result: PipelineResult) -> str:
    """Human-readable summary of a pipeline run."""
    lines: List[str] = [f"Outcome: {result.outcome}"]
    incident = result.incident
    if incident is None:
        return "\n".join(lines)

    lines.append(f"Incident: {incident.id}")
    lines.append(f"  [{incident.severity.value.upper()}] {incident.title}")
    lines.append(f"  Services: {', '.join(sorted(incident.services)) or 'none'}")
    lines.append(f"  Errors: {', '.join(sorted(incident.errors)) or 'none'}")
    lines.append(f"  Root cause: {incident.root_cause or 'under investigation'}")
    if result.advisory is not None:
        lines.append(f"  History: {result.advisory.describe()}")

    lines.append("")
    lines.append("Remediation:")
    for action in incident.remediation_actions:
        status = "OK" if action.success else "FAILED"
        validated = {True: ", validated", False: ", not recovered"}.get(action.validated, "")
        lines.append(f"  - {action.type.value} {action.target_service}: {status}{validated}")

    lines.append("")
    if incident.is_resolved:
        lines.append(f"Resolved at {incident.resolved_at.isoformat()}")
    else:
        lines.append("Unresolved")

    if incident.post_mortem is not None:
        lines.append("")
        lines.append(render_markdown(incident.post_mortem))

    return "\n".join(lines)


def _print_notice(notice: PipelineNotice) -> None:
    print(f"* {notice.type}")


async def _run_pipeline(
    config: OperatorConfig,
    compute: ComputeTarget,
    detector,
    verbose: bool,
) -> PipelineResult:
    store = SQLiteIncidentStore(config.database_path, config.similar_incident_limit)
    pipeline = IncidentPipeline(detector, store, build_memory(config), compute, config)
    if verbose:
        pipeline.add_listener(_print_notice)
    return await pipeline.run()


def handle_simulate(args: argparse.Namespace) -> int:
    """
    Handle the simulate subcommand.

    Runs a built-in scenario through the full pipeline against a simulated
    compute target.
    """
    try:
        config = load_config(args)
        configure_logging(args, config)

        try:
            scenario = get_scenario(args.scenario)
        except KeyError as e:
            print(f"ERROR: {e.args[0]}")
            return 1

        compute = SimulatedComputeTarget(scenario.services)
        if args.unrecoverable:
            for service in scenario.services:
                compute.script(service.name, 'suspended', 'suspended', 'suspended')

        print(f"Simulation started: {scenario.name}")
        result = asyncio.run(_run_pipeline(
            config, compute, StaticSource(scenario.signals()), args.verbose,
        ))
        print(format_result(result))
        return 0

    except ConfigurationError as e:
        print(f"ERROR: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as e:
        logger.error(f"Simulation failed: {e}", exc_info=args.debug)
        return 1


def handle_run(args: argparse.Namespace) -> int:
    """
    Handle the run subcommand.

    Executes one detection cycle against the configured Render account.
    """
    try:
        config = load_config(args)
        configure_logging(args, config)

        if not config.uses_render:
            raise MissingConfigError(
                "GHOST_OPERATOR_RENDER_API_KEY (or render.api_key) is required for run"
            )

        compute = RenderComputeTarget(config.render_api_key, config.render_base_url)
        detector = CompositeDetector([ComputeHealthSource(compute)])
        result = asyncio.run(_run_pipeline(config, compute, detector, args.verbose))
        print(format_result(result))
        return 0

    except ConfigurationError as e:
        print(f"ERROR: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as e:
        logger.error(f"Run failed: {e}", exc_info=args.debug)
        return 1


def handle_scenarios(args: argparse.Namespace) -> int:
    """List the built-in simulation scenarios."""
    for scenario_id, scenario in SIMULATION_SCENARIOS.items():
        print(f"{scenario_id:<20} {scenario.name} ({len(scenario.signal_specs)} signals)")
    return 0


def handle_stats(args: argparse.Namespace) -> int:
    """Print incident store statistics."""
    try:
        config = load_config(args)
        configure_logging(args, config)

        store = SQLiteIncidentStore(config.database_path, config.similar_incident_limit)
        stats = asyncio.run(store.get_stats())
        if args.json:
            print(json.dumps(stats, indent=2))
        else:
            print(f"Incident store: {config.database_path}")
            for key, value in stats.items():
                print(f"  {key.replace('_', ' ').capitalize()}: {value}")
        return 0

    except ConfigurationError as e:
        print(f"ERROR: {e}")
        return 1
    except StoreUnavailableError as e:
        print(f"ERROR: {e}")
        return 1


def handle_version(args: argparse.Namespace) -> int:
    print(f"Ghost Operator version {__version__}")
    return 0


def handle_config(args: argparse.Namespace) -> int:
    """Show or validate configuration."""
    config = OperatorConfig.load(args.config_file) if args.config_file else OperatorConfig.load()

    if args.action == "validate":
        try:
            config.validate()
            print("✓ Configuration is valid")
            return 0
        except ConfigurationError as e:
            print(f"ERROR: {e}")
            return 1

    shown = dataclasses.asdict(config)
    for key in ('render_api_key', 'senso_api_key'):
        if shown[key]:
            shown[key] = '***'
    print(json.dumps(shown, indent=2))
    return 0


def create_parser() -> argparse.ArgumentParser:
    """
    Create and configure the argument parser with subcommands.

    Returns:
        Configured ArgumentParser
    """
    parser = argparse.ArgumentParser(
        prog="ghost-operator",
        description="Ghost Operator: autonomous incident detection, remediation and post-mortems",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s scenarios
  %(prog)s simulate service_down --no-wait
  %(prog)s simulate high_latency --unrecoverable
  %(prog)s run
  %(prog)s stats --json
  %(prog)s config validate

Environment Variables:
  GHOST_OPERATOR_RENDER_API_KEY     Render API key (enables the run command)
  GHOST_OPERATOR_SENSO_API_KEY      Senso API key (memory search)
  GHOST_OPERATOR_DATABASE_PATH      SQLite incident store (default: ghost_operator.db)
  GHOST_OPERATOR_VALIDATION_DELAY   Seconds before re-checking health (default: 10)
        """
    )

    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    parser.add_argument("--quiet", "-q", action="store_true", help="Only show errors")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--config-file", metavar="PATH", help="Path to configuration file")
    parser.add_argument(
        "--json-logs", action="store_true", help="Emit logs as JSON lines with run/incident ids"
    )

    subparsers = parser.add_subparsers(dest="subcommand", help="Available subcommands")

    simulate_parser = subparsers.add_parser(
        "simulate", help="Run a built-in scenario through the full pipeline"
    )
    simulate_parser.add_argument(
        "scenario",
        nargs="?",
        default="service_down",
        help="Scenario id (see 'scenarios'; default: service_down)",
    )
    simulate_parser.add_argument(
        "--no-wait", action="store_true", help="Skip the validation delay"
    )
    simulate_parser.add_argument(
        "--unrecoverable",
        action="store_true",
        help="Keep simulated services unhealthy to exercise escalation",
    )
    simulate_parser.set_defaults(func=handle_simulate)

    run_parser = subparsers.add_parser(
        "run", help="Run one detection cycle against Render"
    )
    run_parser.add_argument(
        "--no-wait", action="store_true", help="Skip the validation delay"
    )
    run_parser.set_defaults(func=handle_run)

    scenarios_parser = subparsers.add_parser("scenarios", help="List simulation scenarios")
    scenarios_parser.set_defaults(func=handle_scenarios)

    stats_parser = subparsers.add_parser("stats", help="Show incident store statistics")
    stats_parser.add_argument("--json", action="store_true", help="Print as JSON")
    stats_parser.set_defaults(func=handle_stats)

    version_parser = subparsers.add_parser("version", help="Show version information")
    version_parser.set_defaults(func=handle_version)

    config_parser = subparsers.add_parser("config", help="Show or validate configuration")
    config_parser.add_argument(
        "action",
        nargs="?",
        choices=["show", "validate"],
        default="show",
        help="Config action (default: show)",
    )
    config_parser.set_defaults(func=handle_config)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, 'func'):
        parser.print_help()
        return 1

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
