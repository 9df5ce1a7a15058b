"""File system helpers for input discovery and output writing."""

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Union

from .errors import OutputError
from .logging import get_logger
from .types import FilePath, OutputFormat

logger = get_logger(__name__)

DEFAULT_OUTPUT_STEM = "references"


def _walk(directory: Path, extensions: Sequence[str]) -> List[Path]:
    found = []
    for candidate in directory.rglob("*"):
        # Word keeps "~$name.docx" lock files next to open documents
        if candidate.name.startswith("~$"):
            continue
        if candidate.is_file() and candidate.suffix.lower() in extensions:
            found.append(candidate)
    return found


def expand_input_paths(
    inputs: Iterable[FilePath],
    extensions: Sequence[str] = (".docx", ".pdf"),
    log: Optional[logging.Logger] = None,
) -> List[Path]:
    """Expand input arguments into a sorted, de-duplicated list of files.

    Directories are searched recursively for files with one of ``extensions``.
    Explicit file arguments are kept whatever their extension; unsupported
    types are rejected later by the pipeline. Missing paths are logged and
    skipped.

    Args:
        inputs: Files and/or directories
        extensions: Extensions (with leading dot) collected from directories
        log: Logger for missing-path warnings

    Returns:
        List[Path]: Resolved file paths
    """
    log = log or logger
    extensions = tuple(ext.lower() for ext in extensions)
    files = set()

    for item in inputs:
        path = Path(item).resolve()
        if path.is_dir():
            files.update(_walk(path, extensions))
        elif path.exists():
            files.add(path)
        else:
            log.warning(f"Input path does not exist: {item}")

    return sorted(files)


def resolve_output_path(out: FilePath, output_format: Union[str, OutputFormat]) -> Path:
    """Work out the file an output argument refers to.

    A directory receives ``references.<ext>`` for the chosen format. Any other
    path is used as-is, but its parent directory must already exist.

    Raises:
        OutputError: If the parent directory does not exist
    """
    fmt = OutputFormat.from_string(output_format)
    path = Path(out)
    if path.is_dir():
        return path / f"{DEFAULT_OUTPUT_STEM}{fmt.extension}"
    if not path.parent.exists():
        raise OutputError(f"Directory does not exist: {path.parent}")
    return path


def write_output(
    content: str,
    out: FilePath,
    output_format: Union[str, OutputFormat],
    log: Optional[logging.Logger] = None,
) -> Path:
    """Write converted output to a file or directory.

    Args:
        content: Converted text
        out: Target file or directory
        output_format: Format the content is in
        log: Logger for progress messages

    Returns:
        Path: The file that was written

    Raises:
        OutputError: If the file cannot be written
    """
    log = log or logger
    target = resolve_output_path(out, output_format)
    try:
        target.write_text(content, encoding="utf-8")
    except OSError as e:
        raise OutputError(f"Failed to write {target}: {e}")
    log.info(f"Output written to: {target}")
    return target
