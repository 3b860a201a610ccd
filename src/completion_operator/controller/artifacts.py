"""Per-resource error dumps.

When a reconcile pass fails on an external call the error is written to
``<error_dir>/<resource-name>.json``. The file is a diagnostic aid only and
is overwritten by the next failure of the same resource.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import structlog

logger = structlog.get_logger()


def describe_error(error: BaseException) -> dict[str, Any]:
    """Build a JSON-serializable description of an exception."""
    detail: dict[str, Any] = {
        "error_type": type(error).__name__,
        "message": getattr(error, "message", None) or str(error),
    }
    status_code = getattr(error, "status_code", None)
    if status_code is not None:
        detail["status_code"] = status_code
    details = getattr(error, "details", None)
    if details:
        detail["details"] = details
    if error.__cause__ is not None:
        detail["cause"] = f"{type(error.__cause__).__name__}: {error.__cause__}"
    return detail


class ErrorArtifactWriter:
    """Writes reconcile failures to JSON files, one file per resource."""

    def __init__(self, directory: Path | str = ".") -> None:
        """Initialize the writer.

        Args:
            directory: Directory the files are written to.
        """
        self.directory = Path(directory)

    def path_for(self, name: str) -> Path:
        """Path of the artifact for resource ``name``."""
        return self.directory / f"{name}.json"

    def write(self, name: str, error: BaseException, *, phase: str) -> Path | None:
        """Dump ``error`` for resource ``name``.

        Never raises; an unwritable directory is logged and ignored.

        Args:
            name: Resource name.
            error: The failure.
            phase: Which external call failed (``completion`` or ``persist``).

        Returns:
            The written path, or None if the write failed.
        """
        payload = {
            "resource": name,
            "phase": phase,
            "timestamp": datetime.now(UTC).isoformat(),
            **describe_error(error),
        }
        path = self.path_for(name)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(payload, indent=2, default=str))
        except OSError as e:
            logger.error("error_artifact_write_failed", resource=name, path=str(path), error=str(e))
            return None

        logger.info("error_artifact_written", resource=name, path=str(path), phase=phase)
        return path
