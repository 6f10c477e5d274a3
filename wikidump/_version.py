"""Single source of version truth, read from the installed package metadata."""
from __future__ import annotations

from importlib.metadata import version, PackageNotFoundError

try:
    __version__: str = version("pywikidump")
except PackageNotFoundError:
    # Running from a source checkout: parse the version out of pyproject.toml.
    import re
    from pathlib import Path
    _pyproject = Path(__file__).parent.parent / "pyproject.toml"
    try:
        _match = re.search(r'^version\s*=\s*"([^"]+)"', _pyproject.read_text(), re.MULTILINE)
    except OSError:
        _match = None
    __version__ = _match.group(1) if _match else "0.0.0"
