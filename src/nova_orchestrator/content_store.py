"""
Directory-backed content repository.

Pages live as ``<root>/<path>.html``; folders are plain directories. Paths
are always absolute within the repository (``/en/index``).
"""

from __future__ import annotations

import asyncio
import shutil
from pathlib import Path
from typing import Any

from nova_orchestrator.logging import get_logger

logger = get_logger("content_store")

PAGE_SUFFIX = ".html"


class LocalContentStore:
    """``ContentStore`` over a local directory tree."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    def _resolve(self, path: str) -> Path:
        relative = path.strip().strip("/")
        resolved = (self.root / relative).resolve()
        if resolved != self.root and self.root not in resolved.parents:
            raise ValueError(f"Path escapes content root: {path}")
        return resolved

    def _page_file(self, path: str) -> Path:
        target = self._resolve(path)
        if target == self.root:
            raise ValueError(f"Not a page path: {path!r}")
        if target.suffix != PAGE_SUFFIX:
            target = target.with_name(target.name + PAGE_SUFFIX)
        # The page file must sit inside the root, never beside it.
        if self.root not in target.parents:
            raise ValueError(f"Path escapes content root: {path}")
        return target

    def _existing(self, path: str) -> Path:
        """Page file if present, else the folder of that name."""
        page = self._page_file(path)
        if page.is_file():
            return page
        folder = self._resolve(path)
        if folder.is_dir() and folder != self.root:
            return folder
        raise FileNotFoundError(f"No page or folder at {path}")

    def _to_repo_path(self, target: Path) -> str:
        relative = target.relative_to(self.root).as_posix()
        if relative.endswith(PAGE_SUFFIX):
            relative = relative[: -len(PAGE_SUFFIX)]
        return "/" + relative

    def _list(self, path: str) -> list[dict[str, Any]]:
        folder = self._resolve(path)
        if not folder.is_dir():
            raise FileNotFoundError(f"No folder at {path}")
        items: list[dict[str, Any]] = []
        for entry in sorted(folder.iterdir()):
            if entry.is_dir():
                items.append({"name": entry.name, "path": self._to_repo_path(entry), "type": "folder"})
            elif entry.suffix == PAGE_SUFFIX:
                items.append({"name": entry.stem, "path": self._to_repo_path(entry), "type": "file"})
        return items

    def _put(self, path: str, content: str) -> None:
        target = self._page_file(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")

    def _delete(self, path: str) -> None:
        target = self._existing(path)
        if target.is_dir():
            shutil.rmtree(target)
        else:
            target.unlink()

    def _copy(self, source: str, destination: str) -> None:
        src = self._existing(source)
        if src.is_dir():
            shutil.copytree(src, self._resolve(destination), dirs_exist_ok=True)
        else:
            dst = self._page_file(destination)
            dst.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(src, dst)

    def _move(self, source: str, destination: str) -> None:
        src = self._existing(source)
        dst = self._resolve(destination) if src.is_dir() else self._page_file(destination)
        dst.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(src), str(dst))

    async def list(self, path: str = "/") -> list[dict[str, Any]]:
        return await asyncio.to_thread(self._list, path)

    async def get_source(self, path: str) -> str:
        page = self._page_file(path)
        if not page.is_file():
            raise FileNotFoundError(f"No page at {path}")
        return await asyncio.to_thread(page.read_text, encoding="utf-8")

    async def put_source(self, path: str, content: str) -> None:
        await asyncio.to_thread(self._put, path, content)
        logger.debug("Wrote page %s (%d chars)", path, len(content))

    async def delete_source(self, path: str) -> None:
        await asyncio.to_thread(self._delete, path)

    async def copy(self, source: str, destination: str) -> None:
        await asyncio.to_thread(self._copy, source, destination)

    async def move(self, source: str, destination: str) -> None:
        await asyncio.to_thread(self._move, source, destination)
