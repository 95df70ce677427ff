"""
=============================================================================
CONTENT SOURCES
=============================================================================

A content source maps a logical asset name ("index.html", "cash.avif") to
the asset's bytes. Handlers only ever see this interface, so where the
bytes live is a deployment decision:

    ┌──────────────────────────┬──────────────────────────────────────────┐
    │ Source                   │ Where the bytes come from                │
    ├──────────────────────────┼──────────────────────────────────────────┤
    │ PackageContentSource     │ package data shipped inside the wheel    │
    │                          │ (staticserver/static/*), via             │
    │                          │ importlib.resources                      │
    │ DirectoryContentSource   │ a directory on disk (--assets-dir)       │
    │ MemoryContentSource      │ a dict, for tests and embedding          │
    └──────────────────────────┴──────────────────────────────────────────┘

Logical names are plain file names. Anything with a separator or a
parent reference is refused before any lookup happens, so no source can
be asked for a file outside its root.

Failures:
    AssetNotFoundError  the name is unknown to the source
    OSError             the asset exists but could not be read

=============================================================================
"""

from abc import ABC, abstractmethod
from importlib import resources
from pathlib import Path
from typing import Mapping, Union


class AssetNotFoundError(LookupError):
    """The logical name does not exist in the content source."""

    def __init__(self, name: str):
        super().__init__(f"asset not found: {name!r}")
        self.name = name


def validate_name(name: str) -> str:
    """
    Return ``name`` if it is a plain file name, else raise.

    Raises:
        AssetNotFoundError: For empty names, names containing a path
            separator, and "." / "..".
    """
    if not name or name in (".", "..") or "/" in name or "\\" in name or "\x00" in name:
        raise AssetNotFoundError(name)
    return name


class ContentSource(ABC):
    """Read-only lookup of asset bytes by logical name."""

    @abstractmethod
    def fetch(self, name: str) -> bytes:
        """
        Return the bytes of the asset called ``name``.

        Raises:
            AssetNotFoundError: Unknown name.
            OSError: The asset could not be read.
        """


class PackageContentSource(ContentSource):
    """Assets bundled as package data (the default)."""

    def __init__(self, package: str = "staticserver.static"):
        self.package = package
        self._root = resources.files(package)

    def fetch(self, name: str) -> bytes:
        resource = self._root.joinpath(validate_name(name))
        if not resource.is_file():
            raise AssetNotFoundError(name)
        return resource.read_bytes()

    def __repr__(self) -> str:
        return f"PackageContentSource({self.package!r})"


class DirectoryContentSource(ContentSource):
    """Assets read from a directory on every fetch."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root).resolve()
        if not self.root.is_dir():
            raise ValueError(f"Assets directory does not exist: {self.root}")

    def fetch(self, name: str) -> bytes:
        path = self.root / validate_name(name)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            raise AssetNotFoundError(name) from None

    def __repr__(self) -> str:
        return f"DirectoryContentSource({str(self.root)!r})"


class MemoryContentSource(ContentSource):
    """Assets held in a dict."""

    def __init__(self, assets: Mapping[str, bytes]):
        self._assets = dict(assets)

    def fetch(self, name: str) -> bytes:
        try:
            return self._assets[validate_name(name)]
        except KeyError:
            raise AssetNotFoundError(name) from None
