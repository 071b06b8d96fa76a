from __future__ import annotations

import hashlib
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)


class ResponseCache:
    """On-disk cache of page bodies keyed by URL.

    One file per URL, named by the SHA-1 of the URL. Writes go through a
    temporary file and os.replace so concurrent workers never read a
    half-written body.
    """

    def __init__(self, cache_dir: Union[str, Path]) -> None:
        self._dir = Path(cache_dir)
        self._dir.mkdir(parents=True, exist_ok=True)

    def get(self, url: str) -> Optional[str]:
        path = self._path_for(url)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def put(self, url: str, body: str) -> None:
        path = self._path_for(url)
        fd, tmp = tempfile.mkstemp(dir=self._dir, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(body)
            os.replace(tmp, path)
        except OSError:
            logger.warning("could not cache %s", url, exc_info=True)
            if os.path.exists(tmp):
                os.unlink(tmp)

    def _path_for(self, url: str) -> Path:
        return self._dir / (hashlib.sha1(url.encode("utf-8")).hexdigest() + ".html")
