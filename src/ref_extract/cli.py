"""Command-line interface for ref-extract."""

import argparse
import sys
from typing import List, Optional

from .config.settings import get_settings
from .conversion.format_converter import convert_records
from .pipeline import ExtractionPipeline, ExtractionStats
from .utils.errors import RefExtractError
from .utils.file_utils import expand_input_paths, write_output
from .utils.logging import setup_logging
from .utils.types import OutputFormat

EXIT_OK = 0
EXIT_FAILURE = 1


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    settings = get_settings()

    parser = argparse.ArgumentParser(
        prog="ref-extract",
        description="Extract bibliographic references from Zotero/Mendeley DOCX files "
                    "and GROBID-parsed PDFs",
    )

    parser.add_argument("inputs", nargs="+",
                        help="DOCX/PDF files or directories to search")
    parser.add_argument("-f", "--format", default=settings.output.format,
                        choices=[fmt.value for fmt in OutputFormat],
                        help="Output format (default: %(default)s)")
    parser.add_argument("--pdf-via-grobid", metavar="URL", default=None,
                        help="Process PDFs with the GROBID service at URL")
    parser.add_argument("--grobid-full-text", action="store_true",
                        help="Use GROBID's full-text endpoint instead of references-only")
    parser.add_argument("-o", "--out", metavar="PATH", default=None,
                        help="Output file, or directory for references.<ext> (default: stdout)")
    parser.add_argument("-m", "--minify", action="store_true", default=settings.output.minify,
                        help="Write CSL-JSON without whitespace")
    parser.add_argument("--fail-on-empty", action="store_true",
                        help="Exit with an error if no references are found")
    parser.add_argument("--log-level", default=settings.logging.level.lower(),
                        choices=["silent", "info", "debug"],
                        help="Logging verbosity (default: %(default)s)")
    parser.add_argument("--workers", type=int, default=settings.extraction.max_workers,
                        help="Number of files processed concurrently (default: %(default)s)")

    return parser.parse_args(argv)


def print_summary(stats: ExtractionStats, stream=None) -> None:
    """Print batch statistics."""
    stream = stream or sys.stderr
    summary = {
        "Total citations found": stats.total_citations,
        "Unique references": stats.unique_items,
        "Duplicates removed": stats.duplicates_removed,
        "Files processed": stats.files_processed,
        "Errors": stats.errors,
    }

    print("\n" + "=" * 40, file=stream)
    print(" Extraction Summary ", file=stream)
    print("=" * 40, file=stream)
    for key, value in summary.items():
        print(f"  {key}: {value}", file=stream)
    print("=" * 40, file=stream)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point.

    Returns:
        int: Process exit code
    """
    args = parse_args(argv)
    log = setup_logging(args.log_level)

    extensions = [".docx", ".pdf"] if args.pdf_via_grobid else [".docx"]
    files = expand_input_paths(args.inputs, extensions=extensions, log=log)
    if not files:
        log.error("No input files found")
        return EXIT_FAILURE

    log.info(f"Processing {len(files)} file(s)")

    try:
        pipeline = ExtractionPipeline(
            grobid_url=args.pdf_via_grobid,
            full_text=args.grobid_full_text,
            max_workers=args.workers,
            show_progress=args.log_level != "silent",
            log=log,
        )
    except RefExtractError as e:
        log.error(e.message)
        return EXIT_FAILURE

    if pipeline.client is not None:
        if pipeline.client.is_alive():
            log.info(f"GROBID available at {pipeline.client.base_url}")
        else:
            log.warning(f"GROBID is not responding at {pipeline.client.base_url}; PDFs will fail")

    result = pipeline.run(files)

    if args.log_level != "silent":
        print_summary(result.stats)
        for error in result.errors:
            log.error(str(error))

    if result.is_empty and args.fail_on_empty:
        log.error("No references found (--fail-on-empty)")
        return EXIT_FAILURE

    output = convert_records(result.items, args.format, minify=args.minify, log=log)

    if args.out:
        try:
            write_output(output, args.out, args.format, log=log)
        except RefExtractError as e:
            log.error(e.message)
            return EXIT_FAILURE
    else:
        sys.stdout.write(output)
        if not output.endswith("\n"):
            sys.stdout.write("\n")

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
