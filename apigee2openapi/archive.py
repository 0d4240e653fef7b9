"""Proxy bundle container reading.

A bundle is either the zip archive the management API exports or the same
tree extracted on disk. Both are exposed as ordered ``name -> text`` entries
using the archive's own ``apiproxy/...`` names.
"""

import io
import logging
import zipfile
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple, Union

from .errors import ArchiveError

logger = logging.getLogger(__name__)

APIPROXY_DIR = 'apiproxy/'
POLICIES_DIR = 'apiproxy/policies/'
PROXIES_DIR = 'apiproxy/proxies/'


class ProxyArchive:
    """Read-only, ordered set of named text entries from one proxy bundle"""

    def __init__(self, entries: Dict[str, str]):
        self._entries = dict(entries)

    # ---------- constructors ----------
    @classmethod
    def from_bytes(cls, data: bytes) -> 'ProxyArchive':
        """Open a zipped bundle held in memory"""
        try:
            with zipfile.ZipFile(io.BytesIO(data)) as z:
                return cls._from_zip(z)
        except zipfile.BadZipFile as e:
            raise ArchiveError(f"Not a valid proxy bundle zip: {e}") from e

    @classmethod
    def from_zipfile(cls, path: Union[str, Path]) -> 'ProxyArchive':
        try:
            with zipfile.ZipFile(path) as z:
                return cls._from_zip(z)
        except (zipfile.BadZipFile, OSError) as e:
            raise ArchiveError(f"Cannot open bundle {path}: {e}") from e

    @classmethod
    def _from_zip(cls, z: zipfile.ZipFile) -> 'ProxyArchive':
        entries = {}
        for info in z.infolist():
            if info.is_dir():
                continue
            entries[info.filename] = _decode(z.read(info))
        return cls(entries)

    @classmethod
    def from_directory(cls, path: Union[str, Path]) -> 'ProxyArchive':
        """
        Read an extracted bundle

        Args:
            path: Directory that contains ``apiproxy/``, or the
                ``apiproxy`` directory itself
        """
        root = Path(path)
        if root.name == 'apiproxy' and not (root / 'apiproxy').is_dir():
            root = root.parent
        if not (root / 'apiproxy').is_dir():
            raise ArchiveError(f"apiproxy folder not found inside {path}")

        entries = {}
        for file_path in sorted((root / 'apiproxy').rglob('*')):
            if file_path.is_file():
                name = file_path.relative_to(root).as_posix()
                entries[name] = _decode(file_path.read_bytes())
        return cls(entries)

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> 'ProxyArchive':
        """Open a zip file or an extracted directory"""
        path = Path(path)
        if path.is_dir():
            return cls.from_directory(path)
        if path.is_file() and zipfile.is_zipfile(path):
            return cls.from_zipfile(path)
        raise ArchiveError("Input must be a zip or directory")

    # ---------- accessors ----------
    @property
    def names(self) -> List[str]:
        return list(self._entries)

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def read_text(self, name: str) -> str:
        try:
            return self._entries[name]
        except KeyError:
            raise ArchiveError(f"No entry named {name} in bundle") from None

    def entries_under(self, prefix: str) -> Iterator[Tuple[str, str]]:
        for name, text in self._entries.items():
            if name.startswith(prefix):
                yield name, text

    def policy_entries(self) -> List[Tuple[str, str]]:
        return list(self.entries_under(POLICIES_DIR))

    def endpoint_entries(self) -> List[Tuple[str, str]]:
        return list(self.entries_under(PROXIES_DIR))

    @staticmethod
    def descriptor_name(proxy_name: str) -> str:
        return f"{APIPROXY_DIR}{proxy_name}.xml"

    def detect_proxy_name(self) -> Optional[str]:
        """Name of the single top-level ``apiproxy/<name>.xml`` descriptor, if any"""
        candidates = [
            name[len(APIPROXY_DIR):-len('.xml')]
            for name in self._entries
            if name.startswith(APIPROXY_DIR) and name.endswith('.xml')
            and '/' not in name[len(APIPROXY_DIR):]
        ]
        if len(candidates) == 1:
            return candidates[0]
        if candidates:
            logger.warning(f"Several proxy descriptors found: {', '.join(candidates)}")
        return None


def _decode(data: bytes) -> str:
    return data.decode('utf-8-sig', errors='replace')
