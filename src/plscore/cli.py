"""CLI entry-point used by the scheduler and by operators."""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence
from datetime import date
from pathlib import Path

from sqlalchemy import select

from plscore.config import Settings, load_settings
from plscore.core.exceptions import ScoringAccessError
from plscore.logging_config import configure_logging
from plscore.scoring import ScoringEngine
from plscore.storage import Lead, build_engine, build_session_factory, init_db

DEFAULT_CONFIG = Path("config/config.yaml")


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="plscore", description="Predictive lead scoring maintenance and scoring.")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Settings YAML file (defaults to config/config.yaml when present, in-code defaults otherwise).",
    )
    parser.add_argument("--schema", type=Path, default=None, help="Optional JSON schema validating the config file")
    parser.add_argument("--log-level", type=str, default=None, help="Override logging.level from the settings")

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("init-db", help="Create the database tables")

    for name, help_text in (
        ("rebuild", "Rebuild the frequency table from closed leads"),
        ("refresh", "Recompute the automated probability of every open lead"),
    ):
        job = subparsers.add_parser(name, help=help_text)
        job.add_argument("--start-date", type=date.fromisoformat, default=None, help="Cutoff date (YYYY-MM-DD)")
        job.add_argument("--transaction-boundary", choices=["sub_batch", "whole_job"], default=None)

    cron = subparsers.add_parser("cron", help="Rebuild the frequency table then refresh open leads")
    cron.add_argument("--transaction-boundary", choices=["sub_batch", "whole_job"], default=None)

    score = subparsers.add_parser("score", help="Print the won probability of the given leads")
    score.add_argument("lead_ids", metavar="LEAD_ID", type=int, nargs="+")
    score.add_argument("--batch", action="store_true", help="Force bulk extraction")
    score.add_argument("--persist", action="store_true", help="Store the computed automated probabilities")
    return parser.parse_args(argv)


def _load(args: argparse.Namespace) -> Settings:
    config_path = args.config
    if config_path is None and DEFAULT_CONFIG.exists():
        config_path = DEFAULT_CONFIG
    if config_path is None:
        return Settings()
    return load_settings(config_path, args.schema)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    settings = _load(args)
    configure_logging(args.log_level or settings.logging.level, settings.logging.format)

    db_engine = build_engine(settings.database)
    if args.command == "init-db":
        init_db(db_engine)
        print(f"Schema created on {db_engine.url.render_as_string(hide_password=True)}")
        return 0

    engine = ScoringEngine.from_settings(settings)
    session_factory = build_session_factory(db_engine)
    with session_factory() as session:
        try:
            if args.command == "rebuild":
                report = engine.rebuild_frequency_table(
                    session, args.start_date, transaction_boundary=args.transaction_boundary
                )
                session.commit()
                print(f"Frequency table rebuilt: {report.closed_leads} closed leads, {report.created} frequencies")
            elif args.command == "refresh":
                refresh = engine.refresh_all_open_probabilities(
                    session, args.start_date, transaction_boundary=args.transaction_boundary
                )
                session.commit()
                print(
                    f"Probabilities refreshed: {refresh.leads} leads, {refresh.transactions} transactions "
                    f"({refresh.failed} failed) in {refresh.duration:.2f}s"
                )
            elif args.command == "cron":
                cron = engine.run_cron(session, transaction_boundary=args.transaction_boundary)
                print(f"Cron complete in {cron.duration:.2f}s")
            elif args.command == "score":
                leads = list(session.scalars(select(Lead).where(Lead.id.in_(args.lead_ids)).order_by(Lead.id)))
                probabilities = engine.recompute_probabilities(session, leads, batch_mode=args.batch or None)
                for lead_id in args.lead_ids:
                    value = probabilities.get(lead_id)
                    print(f"{lead_id}\t{'unscored' if value is None else f'{value:.2f}'}")
                if args.persist:
                    engine.apply_computed_probabilities(session, leads, probabilities)
                    session.commit()
        except ScoringAccessError as exc:
            print(f"error: {exc}", file=sys.stderr)
            return 2
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    sys.exit(main())
