"""Command-line entry point for metabridge."""

from __future__ import annotations
from typing import Optional, List
import argparse
import asyncio
import json
import logging
import sys

from metabridge import __version__
from metabridge.config import EngineConfig
from metabridge.engine.bridge import AnalysisBridge
from metabridge.service import MetaAnalysisService


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="metabridge",
        description="Import, validate and pool systematic-review data through an external statistical engine.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m metabridge import trials.csv
  python -m metabridge validate trials.xlsx --level basic
  python -m metabridge check-engine

Environment variables:
  METABRIDGE_RSCRIPT, METABRIDGE_TIMEOUT, METABRIDGE_TEMP_DIR, METABRIDGE_SCRIPT_DIR
        """
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable debug logging')

    subparsers = parser.add_subparsers(dest='command', required=True)

    import_parser = subparsers.add_parser('import', help='Import a data file and print the dataset')
    import_parser.add_argument('file', help='CSV, XLSX or JSON file')
    import_parser.add_argument('--format', choices=['csv', 'xlsx', 'json'], help='Input format (default: from suffix)')

    validate_parser = subparsers.add_parser('validate', help='Import a data file and validate it')
    validate_parser.add_argument('file', help='CSV, XLSX or JSON file')
    validate_parser.add_argument('--format', choices=['csv', 'xlsx', 'json'], help='Input format (default: from suffix)')
    validate_parser.add_argument(
        '--level',
        choices=['basic', 'comprehensive'],
        default='comprehensive',
        help='Validation depth'
    )

    subparsers.add_parser('check-engine', help='Report engine and package availability')

    return parser.parse_args(argv)


async def run_command(args: argparse.Namespace, service: MetaAnalysisService) -> dict:
    if args.command == 'check-engine':
        return await service.check_engine()

    imported = await service.import_data(args.file, format=args.format)
    if args.command == 'import' or imported.get('isError'):
        return imported
    return await service.validate_data(imported['data'], validation_level=args.level)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_arguments(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr,
    )

    service = MetaAnalysisService(AnalysisBridge(EngineConfig.from_env()))
    payload = asyncio.run(run_command(args, service))
    print(json.dumps(payload, indent=2))
    return 1 if payload.get('isError') else 0
