"""Runtime provenance for result sidecars.

Collectors never raise: anything that cannot be determined is recorded as
``None``.
"""

from __future__ import annotations

import datetime as dt
import hashlib
import platform
import subprocess
import sys
from importlib import metadata
from pathlib import Path
from typing import Any, Sequence

_DEFAULT_PACKAGE_DISTS: tuple[str, ...] = (
    "fcensemble",
    "numpy",
    "pandas",
    "pyarrow",
    "pydantic",
    "ruamel.yaml",
)


def _utc_timestamp_iso() -> str:
    stamp = dt.datetime.now(dt.timezone.utc).replace(microsecond=0).isoformat()
    return stamp.replace("+00:00", "Z")


def _safe_package_version(dist_name: str) -> str | None:
    try:
        return metadata.version(dist_name)
    except Exception:
        return None


def _safe_git_commit(repo_root: Path | None = None) -> str | None:
    root = repo_root or Path(__file__).resolve().parents[1]
    try:
        commit = subprocess.check_output(
            ["git", "rev-parse", "HEAD"],
            cwd=root,
            text=True,
            stderr=subprocess.DEVNULL,
        ).strip()
    except Exception:
        return None
    return commit or None


def _safe_sha256(path: Path) -> str | None:
    hasher = hashlib.sha256()
    try:
        with path.open("rb") as fh:
            for chunk in iter(lambda: fh.read(1024 * 1024), b""):
                hasher.update(chunk)
    except Exception:
        return None
    return hasher.hexdigest()


def gather_runtime_provenance(
    *,
    config_path: str | Path | None = None,
    oracle_entrypoint: str | None = None,
    package_dists: Sequence[str] | None = None,
) -> dict[str, Any]:
    """Return a JSON-serialisable runtime provenance snapshot."""

    try:
        cwd: str | None = str(Path.cwd())
    except Exception:
        cwd = None

    config_payload: dict[str, Any] | None = None
    if config_path is not None:
        path = Path(config_path).expanduser()
        config_payload = {"path": str(path), "sha256": _safe_sha256(path)}

    return {
        "timestamp_utc": _utc_timestamp_iso(),
        "cwd": cwd,
        "argv": list(sys.argv),
        "python": {
            "version": platform.python_version(),
            "executable": sys.executable,
        },
        "platform": {
            "system": platform.system(),
            "machine": platform.machine(),
        },
        "packages": {dist: _safe_package_version(dist) for dist in package_dists or _DEFAULT_PACKAGE_DISTS},
        "git_commit": _safe_git_commit(),
        "config": config_payload,
        "oracle_entrypoint": oracle_entrypoint,
    }


__all__ = ["gather_runtime_provenance"]
