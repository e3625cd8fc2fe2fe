#!/usr/bin/env python3
"""
Command-line front end for BillScan.

    Serve the HTTP API:
        python main.py serve --port 3001

    Batch-process images into a workbook:
        python main.py extract --input ./bills/ --output billing.xlsx
"""

import argparse
import logging
import mimetypes
import sys
from pathlib import Path
from typing import List, Optional

from config import ConfigurationManager, get_config
from billscan.utils.logger import setup_logger_from_config, get_logger, ROOT_LOGGER_NAME
from billscan.utils.exceptions import BillScanError


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Build the ``serve`` / ``extract`` parser and parse ``argv``.

    Returns:
        Parsed argument namespace.
    """
    parser = argparse.ArgumentParser(
        description="BillScan - billing image OCR and extraction",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    Run the API server:
        python main.py serve

    Process a directory of images:
        python main.py extract --input ./bills/ --output billing.xlsx
        """
    )

    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        help="Path to custom configuration file"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", type=str, default=None, help="Bind address (default: api.host)")
    serve.add_argument("--port", type=int, default=None, help="Port (default: api.port)")

    extract = subparsers.add_parser("extract", help="Process images and export to Excel")
    extract.add_argument(
        "--input", "-i",
        type=str,
        required=True,
        help="Image file or directory of images"
    )
    extract.add_argument(
        "--output", "-o",
        type=str,
        default=None,
        help="Output .xlsx path (default: timestamped file in paths.output_dir)"
    )
    extract.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds to wait for all images before giving up"
    )

    return parser.parse_args(argv)


def initialize_system(args: argparse.Namespace) -> ConfigurationManager:
    """
    Load configuration and set up logging.

    Args:
        args: Parsed command-line arguments.

    Returns:
        Initialized configuration manager.
    """
    if args.config:
        ConfigurationManager.reset()
    config = ConfigurationManager(args.config)

    logger = setup_logger_from_config()
    if args.debug:
        logging.getLogger(ROOT_LOGGER_NAME).setLevel(logging.DEBUG)

    logger.info("=" * 60)
    logger.info("BILLSCAN")
    logger.info("=" * 60)
    logger.info(f"Version: {config.get('project.version', '1.0.0')}")

    return config


def collect_inputs(input_path: str) -> List[Path]:
    """
    List the images to process.

    Raises:
        FileNotFoundError: If the input path doesn't exist.
    """
    logger = get_logger(__name__)
    path = Path(input_path)

    if not path.exists():
        raise FileNotFoundError(f"Input path not found: {path}")

    if path.is_file():
        return [path]

    extensions = {ext.lower() for ext in get_config("upload.allowed_extensions", [])}
    files = sorted(p for p in path.iterdir() if p.is_file() and p.suffix.lower() in extensions)

    if not files:
        logger.warning(f"No supported files found in: {path}")
    else:
        logger.info(f"Found {len(files)} files to process")
    return files


def run_server(host: Optional[str] = None, port: Optional[int] = None) -> None:
    import uvicorn
    from billscan.api import create_app

    uvicorn.run(
        create_app(),
        host=host or get_config("api.host", "0.0.0.0"),
        port=port or get_config("api.port", 3001),
        log_config=None,
    )


def run_extraction(
    input_path: str,
    output_path: Optional[str] = None,
    timeout: Optional[float] = None
) -> Optional[Path]:
    """
    Run every image through the pipeline and export the completed records.

    Args:
        input_path: Image file or directory.
        output_path: Destination workbook.
        timeout: Seconds to wait for the whole batch.

    Returns:
        Path of the workbook, or None when nothing completed.
    """
    from billscan.pipeline import ProcessingOrchestrator
    from billscan.output_handler import ExcelExporter
    from billscan.utils.exceptions import NothingToExportError

    logger = get_logger(__name__)
    orchestrator = ProcessingOrchestrator(keep_uploads=False)

    try:
        for file_path in collect_inputs(input_path):
            content_type, _ = mimetypes.guess_type(file_path.name)
            try:
                orchestrator.submit_upload(file_path.name, content_type, file_path.read_bytes())
            except BillScanError as e:
                logger.error(f"Skipping {file_path.name}: {e}")

        if not orchestrator.wait_all(timeout=timeout):
            logger.warning("Some images were still processing when the timeout expired")

        counts = orchestrator.store.counts()
        logger.info(
            f"Processed {counts['total']} images: {counts['completed']} completed, "
            f"{counts['error']} failed, {counts['processing']} unfinished"
        )
        for record in orchestrator.store.list():
            if record.error_message:
                logger.warning(f"  {record.original_filename}: {record.error_message}")

        try:
            return ExcelExporter().export_to_file(orchestrator.store.list(), output_path)
        except NothingToExportError as e:
            logger.error(str(e))
            return None

    finally:
        orchestrator.shutdown(wait=False)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Run one subcommand and return the process exit status: 0 on success,
    1 on configuration or processing errors, 130 when interrupted.
    """
    args = parse_arguments(argv)

    try:
        initialize_system(args)
        logger = get_logger(__name__)

        if args.command == "serve":
            run_server(args.host, args.port)
            return 0

        workbook = run_extraction(args.input, args.output, args.timeout)
        if workbook is None:
            return 1

        logger.info(f"Excel output: {workbook}")
        return 0

    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    except BillScanError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
