from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
import os
from pathlib import Path
import tempfile
from typing import TextIO

from loguru import logger


@contextmanager
def atomic_writer(path: Path, *, newline: str | None = None) -> Iterator[TextIO]:
    """Yield a temp file in ``path``'s directory that replaces ``path`` on exit.

    The target is only swapped in after a flush + fsync; on any error the temp
    file is removed and ``path`` keeps its previous content.
    """
    tmp_file = tempfile.NamedTemporaryFile(
        mode="w",
        encoding="utf-8",
        delete=False,
        dir=str(path.parent),
        prefix=".tmp",
        newline=newline,
    )
    try:
        try:
            yield tmp_file
            tmp_file.flush()
            os.fsync(tmp_file.fileno())
        finally:
            tmp_file.close()
        os.replace(tmp_file.name, path)
    except BaseException:
        try:
            os.unlink(tmp_file.name)
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.debug("Temp cleanup failed at {}: {}", tmp_file.name, exc)
        raise
