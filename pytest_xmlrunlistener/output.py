import logging
import os
from pathlib import Path
from typing import Iterable, Optional, Union

logger = logging.getLogger(__name__)

DEFAULT_FILE_NAME = "test-results.xml"

StrPath = Union[str, os.PathLike]


def _ensure_file(path: Path) -> bool:
    """Create ``path`` if it is missing; ``True`` when it can be written to."""
    if path.is_dir():
        logger.debug("Cannot use location %s: is a directory", path)
        return False
    try:
        path.touch(exist_ok=True)
    except OSError as e:
        logger.debug("Cannot use location %s: %s", path, e)
        return False
    return os.access(path, os.W_OK)


def unique_report_file(
    directory: StrPath, prefix: str = "report", suffix: str = ".xml"
) -> Path:
    """First ``<prefix>-<n><suffix>`` in ``directory`` that does not exist yet."""
    directory = Path(directory)
    index = 0
    while True:
        candidate = directory / f"{prefix}-{index}{suffix}"
        if not candidate.exists():
            return candidate
        index += 1


def resolve_output_file(
    result_file: Optional[StrPath],
    fallback_files: Iterable[StrPath] = (),
    last_resort_dir: Optional[StrPath] = None,
) -> Path:
    """Pick a writable location for the XML report.

    The explicit ``result_file`` wins when its directory exists (or can be
    created) and the file itself can be created. Otherwise the fallback
    files are tried in order. When none of them is usable a fresh
    ``report-N.xml`` in ``last_resort_dir`` (default: the working
    directory) is returned, so earlier reports are never overwritten.
    """
    if result_file:
        path = Path(result_file)
        logger.debug("result file specified: %s", path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning("Cannot access directory for result file %s: %s", path, e)
        else:
            if _ensure_file(path):
                return path
            logger.warning("Could not create result file: %s", path)

    for fallback in fallback_files:
        path = Path(fallback)
        if path.parent.is_dir() and _ensure_file(path):
            logger.debug("Using writable location: %s", path)
            return path

    directory = Path(last_resort_dir) if last_resort_dir else Path.cwd()
    logger.debug("Using %s as last resort", directory)
    directory.mkdir(parents=True, exist_ok=True)
    return unique_report_file(directory)
