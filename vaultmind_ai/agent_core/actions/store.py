"""Document store boundary.

Actions never touch files directly; they go through a ``DocumentStore``. Paths
are vault-relative, ``/``-separated, and may not escape the vault root.

``InMemoryDocumentStore`` is a complete implementation used for local runs and
tests.
"""

from __future__ import annotations

import asyncio
import posixpath
from typing import Dict, List, Optional, Protocol, Set, runtime_checkable


def normalize_path(path: str) -> str:
    """Normalize a vault-relative path; raises ``ValueError`` when invalid."""
    raw = (path or "").strip().replace("\\", "/")
    if not raw:
        raise ValueError("path must not be empty")
    parts = [p for p in raw.split("/") if p not in ("", ".")]
    if any(p == ".." for p in parts):
        raise ValueError(f"path escapes the vault: {path}")
    if not parts:
        raise ValueError("path must not be the vault root")
    return "/".join(parts)


@runtime_checkable
class DocumentStore(Protocol):
    async def exists(self, path: str) -> bool: ...

    async def is_folder(self, path: str) -> bool: ...

    async def read(self, path: str) -> str: ...

    async def create(self, path: str, content: str) -> None: ...

    async def modify(self, path: str, content: str) -> None: ...

    async def delete(self, path: str) -> None: ...

    async def create_folder(self, path: str) -> None: ...

    async def delete_folder(self, path: str) -> None: ...

    async def move(self, source: str, destination: str) -> None: ...

    async def copy(self, source: str, destination: str) -> None: ...

    async def list_files(self, folder: Optional[str] = None) -> List[str]: ...

    async def list_folders(self) -> List[str]: ...


class InMemoryDocumentStore:
    """Dictionary-backed store. Parent folders are created implicitly."""

    def __init__(self, files: Optional[Dict[str, str]] = None) -> None:
        self._files: Dict[str, str] = {}
        self._folders: Set[str] = set()
        self._lock = asyncio.Lock()
        for path, content in (files or {}).items():
            norm = normalize_path(path)
            self._files[norm] = content
            self._add_parents(norm)

    def _add_parents(self, path: str) -> None:
        parent = posixpath.dirname(path)
        while parent:
            self._folders.add(parent)
            parent = posixpath.dirname(parent)

    async def exists(self, path: str) -> bool:
        norm = normalize_path(path)
        return norm in self._files or norm in self._folders

    async def is_folder(self, path: str) -> bool:
        return normalize_path(path) in self._folders

    async def read(self, path: str) -> str:
        norm = normalize_path(path)
        if norm not in self._files:
            raise FileNotFoundError(norm)
        return self._files[norm]

    async def create(self, path: str, content: str) -> None:
        norm = normalize_path(path)
        async with self._lock:
            if norm in self._files or norm in self._folders:
                raise FileExistsError(norm)
            self._files[norm] = content
            self._add_parents(norm)

    async def modify(self, path: str, content: str) -> None:
        norm = normalize_path(path)
        async with self._lock:
            if norm not in self._files:
                raise FileNotFoundError(norm)
            self._files[norm] = content

    async def delete(self, path: str) -> None:
        norm = normalize_path(path)
        async with self._lock:
            if norm not in self._files:
                raise FileNotFoundError(norm)
            del self._files[norm]

    async def create_folder(self, path: str) -> None:
        norm = normalize_path(path)
        async with self._lock:
            if norm in self._files or norm in self._folders:
                raise FileExistsError(norm)
            self._folders.add(norm)
            self._add_parents(norm)

    async def delete_folder(self, path: str) -> None:
        norm = normalize_path(path)
        prefix = norm + "/"
        async with self._lock:
            if norm not in self._folders:
                raise FileNotFoundError(norm)
            if any(p.startswith(prefix) for p in self._files) or any(f.startswith(prefix) for f in self._folders):
                raise OSError(f"folder is not empty: {norm}")
            self._folders.discard(norm)

    async def move(self, source: str, destination: str) -> None:
        src = normalize_path(source)
        dst = normalize_path(destination)
        async with self._lock:
            if src not in self._files:
                raise FileNotFoundError(src)
            if dst in self._files or dst in self._folders:
                raise FileExistsError(dst)
            self._files[dst] = self._files.pop(src)
            self._add_parents(dst)

    async def copy(self, source: str, destination: str) -> None:
        src = normalize_path(source)
        dst = normalize_path(destination)
        async with self._lock:
            if src not in self._files:
                raise FileNotFoundError(src)
            if dst in self._files or dst in self._folders:
                raise FileExistsError(dst)
            self._files[dst] = self._files[src]
            self._add_parents(dst)

    async def list_files(self, folder: Optional[str] = None) -> List[str]:
        if folder is None:
            return sorted(self._files)
        prefix = normalize_path(folder) + "/"
        return sorted(p for p in self._files if p.startswith(prefix))

    async def list_folders(self) -> List[str]:
        return sorted(self._folders)
