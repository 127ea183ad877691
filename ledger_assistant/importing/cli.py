"""
ledger-import-expenses

    ledger-import-expenses --input despesas.txt                 # dry run
    ledger-import-expenses --input despesas.txt --commit        # insert

--user-id and --year fall back to IMPORT_USER_ID and IMPORT_YEAR.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Optional, Sequence

import structlog

from ledger_assistant.config import get_settings
from ledger_assistant.importing.runner import ImportReport, run_import
from ledger_assistant.parsing import utc_today
from ledger_assistant.services.storage import StorageError, SupabaseStoreFactory


logger = structlog.get_logger(__name__)

SAMPLE_SIZE = 5
SKIPPED_SHOWN = 10


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ledger-import-expenses",
        description="Import expense lines (NAME  AMOUNT  DD/MM) into the expense ledger",
    )
    parser.add_argument("--input", required=True, help="Text file with one expense per line")
    parser.add_argument("--commit", action="store_true", help="Insert (default is a dry run)")
    parser.add_argument("--year", type=int, default=None, help="Year for DD/MM dates")
    parser.add_argument("--user-id", default=None, help="Owner of the imported expenses")
    return parser


def print_report(report: ImportReport, out=None) -> None:
    out = out or sys.stdout
    print(json.dumps(report.summary(), ensure_ascii=False), file=out)

    if report.skipped:
        print(f"\nPrimeiros ignorados (até {SKIPPED_SHOWN}):", file=out)
        for item in report.skipped[:SKIPPED_SHOWN]:
            print(f"- {item.reason} | {item.line}", file=out)

    if report.rows:
        print(f"\nAmostra (até {SAMPLE_SIZE}):", file=out)
        for row in report.rows[:SAMPLE_SIZE]:
            print(json.dumps(row.to_row(), ensure_ascii=False), file=out)

    if not report.committed:
        print("\nDRY-RUN: nada foi inserido. Use --commit para inserir.", file=out)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    import_settings = get_settings().importing

    input_path = Path(args.input)
    if not input_path.is_file():
        print(f"ERRO: arquivo de entrada não encontrado: {input_path}", file=sys.stderr)
        return 1

    user_id = args.user_id or import_settings.user_id
    if not user_id:
        print("ERRO: defina --user-id ou IMPORT_USER_ID.", file=sys.stderr)
        return 1

    year = args.year or import_settings.year or utc_today().year
    lines = input_path.read_text(encoding="utf-8").splitlines()

    store_factory = SupabaseStoreFactory() if args.commit else None

    try:
        report = asyncio.run(
            run_import(
                lines,
                user_id=user_id,
                year=year,
                store_factory=store_factory,
                commit=args.commit,
                batch_size=get_settings().app.import_batch_size,
            )
        )
    except StorageError as e:
        logger.error("expense_import_failed", error=e.message)
        print(f"ERRO: {e.message}", file=sys.stderr)
        return 1

    print_report(report)
    return 0


if __name__ == "__main__":
    sys.exit(main())
