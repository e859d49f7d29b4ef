"""Logging setup, JSON/hash helpers and report line formatting."""

from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path
from typing import Any, Iterator, Sequence


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Third-party loggers that flood DEBUG output with font and driver chatter.
_NOISY_LOGGERS = ("matplotlib", "PIL", "fiona", "pyogrio")


def setup_logging(log_file: Path | None = None, verbose: bool = False) -> None:
    """Configure root logging to console and optionally a file."""
    level = logging.DEBUG if verbose else logging.INFO
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=2, sort_keys=True, ensure_ascii=False)
        fh.write("\n")


def sha256_file(path: Path, chunk_size: int = 1024 * 1024) -> str:
    """Hex digest of a config or data file, recorded in the render manifest."""
    digest = hashlib.sha256()
    with path.open("rb") as fh:
        for chunk in iter(lambda: fh.read(chunk_size), b""):
            digest.update(chunk)
    return digest.hexdigest()


def format_name_list(values: Sequence[str], limit: int = 12) -> str:
    if len(values) <= limit:
        return ", ".join(values)
    shown = ", ".join(values[:limit])
    return f"{shown}, ... (+{len(values) - limit} more)"


def report_lines(
    *,
    infos: Sequence[str],
    warnings: Sequence[str],
    errors: Sequence[str],
    ok_message: str,
) -> Iterator[str]:
    """Tagged `[INFO]`/`[WARN]`/`[ERROR]` lines, closed by `[OK]` when nothing failed."""
    for msg in infos:
        yield f"[INFO] {msg}"
    for msg in warnings:
        yield f"[WARN] {msg}"
    for msg in errors:
        yield f"[ERROR] {msg}"
    if not errors:
        yield f"[OK] {ok_message}"
