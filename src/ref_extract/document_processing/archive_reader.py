"""Read the citation-bearing parts of a DOCX container."""

import zipfile
from typing import List

from ..utils.errors import ArchiveError
from ..utils.logging import get_logger
from ..utils.types import ArchivePart, FilePath

logger = get_logger(__name__)

MAIN_DOCUMENT_PART = "word/document.xml"
CUSTOM_XML_PART = "customXml/item1.xml"
HEADER_PREFIX = "word/header"
FOOTER_PREFIX = "word/footer"


def is_allowed_part(name: str) -> bool:
    """Whether an archive member is one of the parts that may hold citations."""
    if name.endswith("/"):
        return False
    return (
        name == MAIN_DOCUMENT_PART
        or name == CUSTOM_XML_PART
        or name.startswith(HEADER_PREFIX)
        or name.startswith(FOOTER_PREFIX)
    )


def read_archive_parts(path: FilePath) -> List[ArchivePart]:
    """Read every allow-listed part of a DOCX file.

    Only allow-listed members are decompressed. Parts come back in archive
    order.

    Args:
        path: Path to the .docx file

    Returns:
        List[ArchivePart]: Allow-listed parts with their raw bytes

    Raises:
        ArchiveError: If the file is not a readable ZIP archive, or contains
            none of the allow-listed parts
    """
    parts = []
    try:
        with zipfile.ZipFile(path) as archive:
            for info in archive.infolist():
                if not is_allowed_part(info.filename):
                    continue
                logger.debug(f"Reading archive part: {info.filename}")
                parts.append(ArchivePart(name=info.filename, content=archive.read(info)))
    except zipfile.BadZipFile as e:
        raise ArchiveError(path, f"not a valid ZIP archive ({e})")
    except (OSError, RuntimeError, zipfile.LargeZipFile) as e:
        raise ArchiveError(path, f"failed to read archive ({e})")

    if not parts:
        raise ArchiveError(path, f"no {MAIN_DOCUMENT_PART} or header/footer parts found")

    return parts
