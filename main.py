#!/usr/bin/env python3
"""
Strategic Plan Roll-Up Engine - Main Entry Point

Usage:
    python main.py report snapshot.yaml    # Completion roll-ups (both paths)
    python main.py budget snapshot.yaml    # Chapter utilization and activity variance
    python main.py setup                   # Show configuration
"""
import os
import sys
import argparse
import json
import logging
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO"):
    """Configure root logging. Runs after .env is loaded so LOG_LEVEL there applies."""
    logging.basicConfig(
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(),
        ]
    )
    logging.getLogger().setLevel(level.upper())


def setup_environment():
    """Load environment variables from .env file if present."""
    env_file = PROJECT_ROOT / '.env'
    if env_file.exists():
        logger.info("Loading environment from .env file")
        with open(env_file) as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith('#') and '=' in line:
                    key, value = line.split('=', 1)
                    os.environ.setdefault(key.strip(), value.strip())


def _load_engine(path: str):
    from plan_rollup.core.performance_engine import PlanPerformanceEngine
    from plan_rollup.data.snapshot_loader import SnapshotLoader, load_snapshot_file

    loader = SnapshotLoader()
    snapshot = load_snapshot_file(path, issues=loader.issues)
    engine = PlanPerformanceEngine(snapshot)
    return engine, loader.issues


def _print_issues(*logs):
    issues = [i for log in logs for i in log.issues]
    if not issues:
        return
    print("\n" + "-"*60)
    print(f"DATA ISSUES ({len(issues)})")
    print("-"*60)
    for issue in issues[:20]:
        print(f"  [{issue.category.name}] {issue.message}")
    if len(issues) > 20:
        print(f"  ... and {len(issues) - 20} more")


def cmd_report(args):
    """Print completion roll-ups for both completion paths."""
    from plan_rollup.tools.report_frames import completion_comparison_frame
    from plan_rollup.tools.rollup_aggregator import format_rollup_report

    engine, load_issues = _load_engine(args.snapshot)

    if args.json:
        print(json.dumps({
            "progress": [n.to_dict() for n in engine.progress_breakdown()],
            "realization": [n.to_dict() for n in engine.realization_breakdown()],
            "progress_plan_completion": engine.progress_plan_completion(),
            "realization_plan_completion": engine.realization_plan_completion(),
        }, indent=2))
        return

    print("\n" + "="*60)
    print(format_rollup_report(engine.progress_breakdown(), title="Completion (indicator progress)"))
    print(f"\nPlan completion: {engine.progress_plan_completion():.1f}%")

    print("\n" + "="*60)
    print(format_rollup_report(engine.realization_breakdown(), title="Completion (activity realization)"))
    print(f"\nPlan completion: {engine.realization_plan_completion():.1f}%")

    comparison = completion_comparison_frame(engine)
    if not comparison.empty:
        print("\n" + "="*60)
        print("Area completion by source")
        print(comparison.round(1).to_string(index=False))

    _print_issues(load_issues, engine.issues)


def cmd_budget(args):
    """Print chapter utilization and activity variance."""
    from plan_rollup.tools.activity_variance import ExpenseMatch, format_variance_message
    from plan_rollup.tools.budget_utilization import format_budget_message

    engine, load_issues = _load_engine(args.snapshot)
    match_by = ExpenseMatch.parse(args.match) if args.match else None

    if args.json:
        print(json.dumps({
            "chapters": [u.to_dict() for u in engine.chapter_utilizations()],
            "activities": [v.to_dict() for v in engine.activity_variances(match_by)],
        }, indent=2))
        return

    print("\n" + "="*60)
    print(format_budget_message(engine.chapter_utilizations()))

    critical = engine.critical_chapters()
    if critical:
        print("\nCritical chapters:")
        for u in critical:
            print(f"  {u.chapter_code} {u.chapter_name}: {u.percentage:.1f}% ({u.status.value})")

    print("\n" + "="*60)
    print(format_variance_message(engine.activity_variances(match_by)))

    _print_issues(load_issues, engine.issues)


def cmd_setup(args):
    """Show the active configuration."""
    from config.settings import get_config

    print("\n" + "="*60)
    print("CONFIGURATION")
    print("="*60)

    try:
        config = get_config()
    except ValueError as e:
        print(f"   ❌ Error: {e}")
        sys.exit(1)

    for key, value in config.to_dict().items():
        print(f"   {key}: {value}")

    print("\n" + "="*60)
    print("Override with BUDGET_YELLOW_THRESHOLD, BUDGET_RED_THRESHOLD,")
    print("COMPLETION_CAP, EXPENSE_MATCH_MODE and LOG_LEVEL")
    print("="*60)


def main():
    setup_environment()

    parser = argparse.ArgumentParser(
        description="Strategic Plan Roll-Up Engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py report plan.yaml            Completion roll-ups
  python main.py budget plan.json --json     Budget figures as JSON
  python main.py setup                       Show configuration

Environment Variables:
  BUDGET_YELLOW_THRESHOLD   Utilization above this is Yellow (default: 80)
  BUDGET_RED_THRESHOLD      Utilization above this is Red (default: 100)
  COMPLETION_CAP            Maximum indicator completion (default: 100)
  EXPENSE_MATCH_MODE        id, code or either (default: either)
        """
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    # Report command
    report_parser = subparsers.add_parser('report', help='Completion roll-ups')
    report_parser.add_argument('snapshot', help='Snapshot file (YAML or JSON)')
    report_parser.add_argument('--json', action='store_true', help='Print JSON')
    report_parser.set_defaults(func=cmd_report)

    # Budget command
    budget_parser = subparsers.add_parser('budget', help='Budget utilization and variance')
    budget_parser.add_argument('snapshot', help='Snapshot file (YAML or JSON)')
    budget_parser.add_argument('--match', choices=['id', 'code', 'either'],
                               help='How expenses link to activities')
    budget_parser.add_argument('--json', action='store_true', help='Print JSON')
    budget_parser.set_defaults(func=cmd_budget)

    # Setup command
    setup_parser = subparsers.add_parser('setup', help='Show configuration')
    setup_parser.set_defaults(func=cmd_setup)

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    try:
        from config.settings import get_config
        configure_logging(get_config().log_level)
        args.func(args)
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except Exception as e:
        logger.error(f"Error: {e}", exc_info=True)
        sys.exit(1)

if __name__ == "__main__":
    main()
