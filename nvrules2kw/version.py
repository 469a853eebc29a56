"""Build-time version information."""

from __future__ import annotations

import json
import platform
from dataclasses import dataclass

# Set when a release is built.
VERSION = ""
BUILD_DATE = ""
TAG = ""
CLOSEST_TAG = ""


@dataclass(frozen=True)
class VersionInfo:
    """Version details of this tool."""

    version: str
    build_date: str
    tag: str
    python_version: str

    def __str__(self) -> str:
        if not self.tag:
            return f"nvrules2kw version: {self.version} {self.build_date} {self.python_version}"
        return (
            f"nvrules2kw version: {self.version} (tagged as {json.dumps(self.tag)}) "
            f"{self.build_date} {self.python_version}"
        )


def current_version() -> VersionInfo:
    """Return the version details of the running tool."""
    version = VERSION if TAG else f"untagged ({CLOSEST_TAG})"
    return VersionInfo(
        version=version,
        build_date=BUILD_DATE,
        tag=TAG,
        python_version=platform.python_version(),
    )