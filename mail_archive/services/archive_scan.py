"""Archive file discovery and bounded parallel per-file processing."""

import concurrent.futures
import threading
from pathlib import Path
from typing import Callable, Iterator, List, Optional, TypeVar

from .attachments.attachment_store import ATTACHMENTS_DIRNAME

T = TypeVar("T")


def iter_archive_files(root: Path) -> Iterator[Path]:
    """
    Yield archive Markdown files under ``root`` in sorted order.

    The ``attachments/`` subtree and hidden temporary files are skipped.
    """
    for path in sorted(root.rglob("*.md")):
        relative = path.relative_to(root)
        if relative.parts and relative.parts[0] == ATTACHMENTS_DIRNAME:
            continue
        if path.name.startswith("."):
            continue
        if path.is_file():
            yield path


def map_files(
    func: Callable[[Path], T],
    paths: List[Path],
    max_workers: int = 4,
    timeout: Optional[float] = None,
    cancel_event: Optional[threading.Event] = None,
) -> List[T]:
    """
    Apply ``func`` to each path on a thread pool, returning results in input order.

    Workers return partial results; merging is left to the caller. A set
    ``cancel_event`` stops scheduling new files while files already being
    processed finish.

    Raises:
        TimeoutError: If a single file takes longer than ``timeout`` seconds
    """
    results: List[T] = []

    def guarded(path: Path):
        if cancel_event is not None and cancel_event.is_set():
            return None
        return func(path)

    # no context manager: its exit would block on a stuck worker
    pool = concurrent.futures.ThreadPoolExecutor(max_workers=max_workers)
    futures = [pool.submit(guarded, path) for path in paths]
    try:
        for path, future in zip(paths, futures):
            try:
                result = future.result(timeout=timeout)
            except concurrent.futures.TimeoutError as e:
                raise TimeoutError(f"Timed out processing {path}") from e
            if result is not None:
                results.append(result)
    except BaseException:
        pool.shutdown(wait=False, cancel_futures=True)
        raise

    pool.shutdown(wait=True)
    return results
