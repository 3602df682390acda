"""Command-line extraction of underwriting data from submission files.

Usage: workbench-extract <file> [<file> ...] [--csv PATH] [--pdf PATH] [--json PATH] [--news]
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Sequence

from workbench.ai_engine.engine import AIEngine
from workbench.config.settings import WorkbenchConfig
from workbench.export.csv_export import export_csv
from workbench.export.email_draft import draft_missing_info_email
from workbench.export.pdf_export import export_pdf
from workbench.ingest.files import UploadedFile
from workbench.session.controller import ModelEngine, WorkbenchSession
from workbench.session.phases import NewsPhase, SessionPhase
from workbench.telemetry.errors import ConfigurationError
from workbench.telemetry.log_setup import configure_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="workbench-extract",
        description="Extract structured underwriting data from insurance submission documents",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  workbench-extract submission.pdf --csv out.csv
  workbench-extract broker_mail.eml schedule.pdf --pdf report.pdf --news
  workbench-extract submission.msg --json record.json --email-draft
        """,
    )
    parser.add_argument("files", nargs="+", type=Path, help="Submission files (PDF, DOCX, EML, MSG, TXT)")
    parser.add_argument("--csv", type=Path, help="Write the record as CSV to this path")
    parser.add_argument("--pdf", type=Path, help="Write the PDF risk report to this path")
    parser.add_argument("--json", type=Path, help="Write the record as JSON to this path")
    parser.add_argument("--news", action="store_true", help="Fetch latest news about the insured entity")
    parser.add_argument(
        "--email-draft",
        action="store_true",
        help="Print the broker e-mail requesting missing information",
    )
    return parser


def read_files(paths: Sequence[Path]) -> list[UploadedFile]:
    return [UploadedFile(name=path.name, data=path.read_bytes()) for path in paths]


async def run(
    args: argparse.Namespace, config: WorkbenchConfig, engine: ModelEngine
) -> int:
    session = WorkbenchSession(config, engine)
    await session.add_files(read_files(args.files))
    record = await session.submit()
    if record is None or session.phase is not SessionPhase.EXTRACTED:
        print(f"Extraction failed: {session.extraction_error}", file=sys.stderr)
        return 1

    if args.news:
        await session.wait_for_news()
        if session.news_phase is NewsPhase.FAILED:
            print(f"News: {session.news_error}", file=sys.stderr)
    news = session.news if args.news else None

    if args.json:
        payload = {"record": record.to_wire()}
        if news is not None:
            payload["news"] = news.model_dump(mode="json")
        args.json.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
        print(f"JSON written to {args.json}")
    if args.csv:
        args.csv.write_text(export_csv(record), encoding="utf-8")
        print(f"CSV written to {args.csv}")
    if args.pdf:
        args.pdf.write_bytes(export_pdf(record, news))
        print(f"PDF written to {args.pdf}")
    if args.email_draft:
        draft = draft_missing_info_email(record)
        print(f"Subject: {draft.subject}\n\n{draft.body}")
    if not (args.json or args.csv or args.pdf or args.email_draft):
        print(json.dumps(record.to_wire(), indent=2, ensure_ascii=False))
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    missing = [str(path) for path in args.files if not path.is_file()]
    if missing:
        print(f"File not found: {', '.join(missing)}", file=sys.stderr)
        return 2

    config = WorkbenchConfig()
    configure_logging(config.log_level, "human")
    try:
        engine = AIEngine.from_config(config)
    except ConfigurationError as exc:
        print(str(exc), file=sys.stderr)
        return 2
    return asyncio.run(run(args, config, engine))


if __name__ == "__main__":
    sys.exit(main())
