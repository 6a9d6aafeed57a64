"""Command line entry point: propose candidate duplicate pairs for a rule group."""

import argparse
import copy
import json
import sys
from pathlib import Path
from typing import Any, Optional

import pandas as pd

from rule_dedupe.errors import DedupeError
from rule_dedupe.exception_store import ExceptionStore
from rule_dedupe.field_types import CatalogFieldTypeResolver, FieldTypeResolver, SchemaFieldTypeResolver
from rule_dedupe.models import CONTACT_TYPES, USED_SELECTORS
from rule_dedupe.planner import CandidateQueryPlanner
from rule_dedupe.rule_store import RuleStore
from rule_dedupe.runner import RuleGroupRunner
from rule_dedupe.utils.duckdb_utils import connection_from_settings, materialize_tables
from rule_dedupe.utils.io_utils import load_settings, load_tables, validate_settings
from rule_dedupe.utils.logging_utils import get_logger, setup_logging
from rule_dedupe.utils.path_utils import get_config_path

logger = get_logger(__name__)


def parse_contact_ids(value: Optional[str]) -> Optional[list[int]]:
    """Parse ``"1,2, 3"`` into ``[1, 2, 3]``."""
    if not value:
        return None
    try:
        return [int(part) for part in value.split(",") if part.strip()]
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Invalid contact id list: {value}") from e


def parse_match_params(value: Optional[str]) -> Optional[dict[str, Any]]:
    """Parse probe params from inline JSON or a path to a JSON file."""
    if not value:
        return None
    path = Path(value)
    raw = path.read_text(encoding="utf-8") if path.exists() else value
    params = json.loads(raw)
    if not isinstance(params, dict) or not all(isinstance(v, dict) for v in params.values()):
        raise argparse.ArgumentTypeError("Match params must be a {table: {field: value}} object")
    return params


def build_field_types(settings: dict[str, Any], con: Any) -> FieldTypeResolver:
    if settings.get("schema", {}).get("resolver", "catalog") == "schema":
        return SchemaFieldTypeResolver.from_settings(settings)
    return CatalogFieldTypeResolver(con)


def write_pairs(pairs: pd.DataFrame, output: str) -> None:
    Path(output).parent.mkdir(parents=True, exist_ok=True)
    if output.endswith(".parquet"):
        pairs.to_parquet(output, index=False)
    else:
        pairs.to_csv(output, index=False)
    logger.info(f"Candidate pairs saved to {output}")


def run(args: argparse.Namespace) -> pd.DataFrame:
    settings = copy.deepcopy(load_settings(args.config))
    for warning in validate_settings(settings):
        logger.warning(f"settings | {warning}")
    if args.workers is not None:
        settings["runner"]["workers"] = args.workers

    con = connection_from_settings(settings)
    try:
        materialize_tables(con, **load_tables(args.data_dir, settings["io"]["supported_formats"]))
        store = RuleStore.from_yaml(con, args.rules)
        planner = CandidateQueryPlanner(build_field_types(settings, con), store.contact_type_for)
        runner = RuleGroupRunner(con, planner, settings)

        pairs = runner.run_for(
            store,
            args.contact_type,
            args.used,
            match_params=args.match_params,
            contact_ids=args.contact_ids,
        )

        exceptions = ExceptionStore(con)
        pairs = exceptions.filter_pairs(pairs) if args.exclude_exceptions else exceptions.annotate(pairs)
    finally:
        con.close()

    if args.output:
        write_pairs(pairs, args.output)
    return pairs


def main(argv: Optional[list[str]] = None) -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Propose candidate duplicate pairs from weighted dedupe rules",
    )
    parser.add_argument("--data-dir", required=True, help="Directory of rule tables (CSV/Parquet/XLSX)")
    parser.add_argument("--rules", required=True, help="Rule group YAML file")
    parser.add_argument(
        "--config",
        default=str(get_config_path()),
        help="Configuration file path",
    )
    parser.add_argument("--contact-type", default="Individual", choices=CONTACT_TYPES)
    parser.add_argument("--used", default="Unsupervised", choices=USED_SELECTORS)
    parser.add_argument(
        "--match-params",
        type=parse_match_params,
        help="Probe record as JSON {table: {field: value}} or a path to a JSON file",
    )
    parser.add_argument(
        "--contact-ids",
        type=parse_contact_ids,
        help="Comma-separated contact ids restricting the search",
    )
    parser.add_argument("--output", help="Output CSV or Parquet path")
    parser.add_argument("--workers", type=int, help="Number of rules evaluated concurrently")
    parser.add_argument(
        "--exclude-exceptions",
        action="store_true",
        help="Drop pairs recorded as confirmed non-duplicates",
    )
    parser.add_argument("--log-level", help="Override the configured log level")

    args = parser.parse_args(argv)

    settings = load_settings(args.config)
    log_settings = settings.get("logging", {})
    setup_logging(
        args.log_level or log_settings.get("level", "INFO"),
        log_settings.get("format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"),
        log_settings.get("file"),
    )

    if not Path(args.data_dir).is_dir():
        logger.error(f"Data directory not found: {args.data_dir}")
        sys.exit(1)

    try:
        pairs = run(args)
    except KeyboardInterrupt:
        logger.warning("Run interrupted by user (Ctrl+C)")
        sys.exit(130)  # Standard exit code for interrupt
    except DedupeError as e:
        logger.error(f"Dedupe run failed: {e}")
        sys.exit(1)

    logger.info(f"Final result: {len(pairs)} candidate pairs")


if __name__ == "__main__":
    main()
