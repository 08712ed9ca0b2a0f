"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Merk, a product of Garudex Labs

Version of the merk package.

A source checkout reads the root VERSION file; an installed copy falls back
to the distribution metadata.
"""

from importlib import metadata
from pathlib import Path


def get_version() -> str:
    version_file = Path(__file__).parent.parent / "VERSION"
    if version_file.exists():
        return version_file.read_text().strip()
    try:
        return metadata.version("merk")
    except metadata.PackageNotFoundError:
        return "unknown"


__version__ = get_version()
