"""
Version helpers for tvm-deploy.
We keep a static __version__ (PEP 440) and expose a small structured view used
by the CLI `version` command.
"""

from __future__ import annotations

import platform
from dataclasses import dataclass
from typing import Optional

# Bump this when publishing
__version__ = "0.1.0"


@dataclass(frozen=True)
class VersionInfo:
    base: str
    python: Optional[str] = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        return self.base if not self.python else f"{self.base} (python {self.python})"


def version_info() -> VersionInfo:
    return VersionInfo(base=__version__, python=platform.python_version())


__all__ = ["__version__", "VersionInfo", "version_info"]
