"""Lightweight terminal progress reporting for ensemble runs."""

from __future__ import annotations

import math
import sys
import time

ETA_EWMA_ALPHA = 0.1
ETA_MIN_SAMPLES = 3


def _format_eta(seconds: float) -> str:
    if not math.isfinite(seconds) or seconds < 0.0:
        return "ETA ?"
    if seconds >= 3600.0:
        return f"ETA {seconds/3600.0:.1f}h"
    if seconds >= 60.0:
        return f"ETA {seconds/60.0:.1f}m"
    return f"ETA {seconds:.0f}s"


class ProgressReporter:
    """Terminal progress bar over ensemble members with ETA feedback."""

    def __init__(self, total_members: int, *, enabled: bool = False) -> None:
        self.enabled = bool(enabled and total_members > 0)
        self.total_members = max(int(total_members), 1)
        self.start = time.monotonic()
        self._finished = False
        self._isatty = sys.stdout.isatty()
        self._eta_ewma_s: float | None = None
        self._eta_samples: int = 0
        self._last_wall: float | None = None
        self._last_done: int = 0
        self.failed = 0

    def update(self, done: int, *, failed: int = 0) -> None:
        """Render the bar after ``done`` members have finished."""

        if not self.enabled or self._finished:
            return
        now = time.monotonic()
        self._update_eta(done, now)
        self.failed = failed
        frac = min(max(done / self.total_members, 0.0), 1.0)
        bar_width = 28
        filled = int(bar_width * frac)
        bar = "#" * filled + "-" * (bar_width - filled)
        remaining = max(self.total_members - done, 0)
        eta_seconds = float("nan")
        if self._eta_ewma_s is not None and self._eta_samples >= ETA_MIN_SAMPLES:
            eta_seconds = self._eta_ewma_s * remaining
        failed_text = f" failed={failed}" if failed else ""
        line = (
            f"[{bar}] {frac * 100:5.1f}% member {done}/{self.total_members}"
            f"{failed_text} {_format_eta(eta_seconds)}"
        )
        is_last = done >= self.total_members
        if self._isatty:
            sys.stdout.write(f"\r\033[2K{line}")
            if is_last:
                sys.stdout.write("\n")
        else:
            sys.stdout.write(f"{line}\n")
        if is_last:
            self._finished = True
        sys.stdout.flush()

    def finish(self, done: int, *, failed: int = 0) -> None:
        if not self.enabled or self._finished:
            return
        self.update(done, failed=failed)
        if not self._finished:
            sys.stdout.write("\n")
            sys.stdout.flush()
            self._finished = True

    def _update_eta(self, done: int, now: float) -> None:
        """Update the per-member wall time EWMA."""

        last_wall = self._last_wall if self._last_wall is not None else self.start
        delta = done - self._last_done
        if delta > 0:
            per_member = (now - last_wall) / delta
            if math.isfinite(per_member) and per_member > 0.0:
                if self._eta_ewma_s is None:
                    self._eta_ewma_s = per_member
                else:
                    self._eta_ewma_s = ETA_EWMA_ALPHA * per_member + (1.0 - ETA_EWMA_ALPHA) * self._eta_ewma_s
                self._eta_samples += 1
        self._last_wall = now
        self._last_done = done
