"""
Entry point: DXF panel outlines from dimensions or a spreadsheet.

Usage:
    python main.py single WIDTH LENGTH [-t THICKNESS] [-q QUANTITY] [-o PATH]
    python main.py batch SPREADSHEET -o FOLDER [--dry-run]
    python main.py init-config [PATH]

Examples:
    python main.py single 500 300 -t 18 -q 4             # ./500x300_18mm_4pcs.dxf
    python main.py single 500 300 -o drawings/           # drawings/500x300.dxf
    python main.py batch panels.xlsx -o drawings --json-report report.json
"""

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

from panel_dxf.batch import RunOutcome, RunState
from panel_dxf.io.picker import PresetPicker
from panel_dxf.io.sink import MemorySink
from panel_dxf.logging_config import configure_default_logging, get_logger
from panel_dxf.project_config import CONFIG_FILENAME, create_sample_config, load_config
from panel_dxf.records import ManualEntry
from panel_dxf.session import ConversionSession

logger = get_logger("panel_dxf.cli")


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Generate DXF rectangle outlines for panels.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--config", "-c",
        default=None,
        help=f"Path to a {CONFIG_FILENAME} configuration file.",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable DEBUG logging.",
    )
    parser.add_argument(
        "--log-json",
        default=None,
        dest="log_json",
        help="Also write JSON-lines logs to this file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    single = subparsers.add_parser("single", help="Save one panel drawing.")
    single.add_argument("width", help="Panel width.")
    single.add_argument("length", help="Panel length.")
    single.add_argument("--thickness", "-t", default="", help="Panel thickness (optional).")
    single.add_argument("--quantity", "-q", default="", help="Number of pieces (optional).")
    single.add_argument(
        "--output", "-o",
        default=".",
        help="Output file, or a folder to save under the generated name (default: current folder).",
    )

    batch = subparsers.add_parser("batch", help="Save one drawing per spreadsheet row.")
    batch.add_argument("spreadsheet", help="Spreadsheet (.xlsx, .xls or .csv).")
    batch.add_argument("--output", "-o", required=True, help="Output folder.")
    batch.add_argument(
        "--dry-run",
        action="store_true",
        dest="dry_run",
        help="Convert without writing files.",
    )
    batch.add_argument(
        "--json-report",
        default=None,
        dest="json_report",
        help="Write the batch result as JSON to this file.",
    )

    init = subparsers.add_parser("init-config", help="Write a sample configuration file.")
    init.add_argument("path", nargs="?", default=CONFIG_FILENAME)

    return parser.parse_args(argv)


def _report(outcome: RunOutcome) -> int:
    if outcome.batch is not None:
        print("\n" + outcome.batch.summary())
    print(outcome.message)
    return 0 if outcome.succeeded else 1


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    configure_default_logging(verbose=args.verbose, json_file=args.log_json)

    if args.command == "init-config":
        path = create_sample_config(args.path)
        print(f"Sample configuration written to {path}")
        return 0

    spreadsheet = getattr(args, "spreadsheet", None)
    config = load_config(spreadsheet_path=spreadsheet, explicit_config=args.config)

    if args.command == "single":
        session = ConversionSession(config)
        entry = ManualEntry(
            width=args.width,
            length=args.length,
            thickness=args.thickness,
            quantity=args.quantity,
        )
        return _report(session.save_manual(entry, PresetPicker(save_path=args.output)))

    sink = None
    if args.dry_run:
        logger.info("Dry run: no files will be written")
        sink = MemorySink()
    session = ConversionSession(config, sink=sink)
    if not session.pick_and_load(PresetPicker(open_path=spreadsheet)):
        print(session.status)
        return 1

    outcome = session.save_all(PresetPicker(folder=args.output))
    if args.json_report and outcome.state is RunState.COMPLETED:
        with open(args.json_report, 'w', encoding='utf-8') as f:
            json.dump(outcome.batch.to_dict(), f, indent=2, ensure_ascii=False)
        logger.info("JSON report written to %s", args.json_report)
    return _report(outcome)


if __name__ == "__main__":
    sys.exit(main())
