"""Default syncer: content index of the source tree, shipped as a tar stream."""

from __future__ import annotations

import fnmatch
import hashlib
import io
import json
import logging
import os
import shlex
import tarfile
from pathlib import Path, PurePosixPath

from devfile_push.interfaces import CommandRunner
from devfile_push.sync.models import SyncParameters

logger = logging.getLogger(__name__)

INDEX_FILE = "files-index.json"
DEFAULT_IGNORES = (".git", ".devfile-push", "__pycache__")


def _ignored(rel: str, patterns: tuple[str, ...]) -> bool:
    parts = PurePosixPath(rel).parts
    for pattern in patterns:
        if fnmatch.fnmatch(rel, pattern) or any(fnmatch.fnmatch(p, pattern) for p in parts):
            return True
    return False


def build_index(root: Path, ignores: tuple[str, ...] = ()) -> dict[str, str]:
    """Map each file's path relative to root (posix form) to the sha256 of its content."""
    patterns = DEFAULT_IGNORES + tuple(ignores)
    index: dict[str, str] = {}
    for dirpath, dirnames, filenames in os.walk(root):
        base = Path(dirpath)
        dirnames[:] = [d for d in dirnames if not _ignored((base / d).relative_to(root).as_posix(), patterns)]
        for name in filenames:
            path = base / name
            rel = path.relative_to(root).as_posix()
            if _ignored(rel, patterns):
                continue
            with open(path, "rb") as f:
                index[rel] = hashlib.sha256(f.read()).hexdigest()
    return index


class TarSyncer:
    """Sends changed files since the last successful sync; everything on a full sync."""

    def __init__(self, runner: CommandRunner, state_dir: Path) -> None:
        self._runner = runner
        self.state_dir = state_dir

    def index_path(self, namespace: str, component_name: str) -> Path:
        return self.state_dir / namespace / component_name / INDEX_FILE

    def _load_index(self, path: Path) -> dict[str, str] | None:
        if not path.exists():
            return None
        with open(path, encoding="utf-8") as f:
            return json.load(f)

    def _save_index(self, path: Path, index: dict[str, str]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(index, f, indent=2, sort_keys=True)

    def sync_files(self, params: SyncParameters) -> bool:
        ctx = params.ctx
        root = ctx.source_path
        index_path = self.index_path(ctx.namespace, ctx.component_name)
        current = build_index(root, ctx.ignores)
        previous = self._load_index(index_path)
        full = params.full_sync or previous is None

        if full:
            changed = sorted(current)
            deleted: list[str] = []
        else:
            changed = sorted(p for p, digest in current.items() if previous.get(p) != digest)
            deleted = sorted(p for p in previous if p not in current)

        if not full and not changed and not deleted:
            logger.info("No file changes detected in %s", root)
            return False

        info = params.comp_info
        folder = info.sync_folder
        if deleted:
            targets = [str(PurePosixPath(folder) / p) for p in deleted]
            self._runner.execute(info, ["rm", "-rf", *targets], command_id="sync")
        if changed:
            archive = self._archive(root, changed)
            # head -c ends the stream for tar; the exec channel cannot be half-closed
            script = f"mkdir -p {shlex.quote(folder)} && head -c {len(archive)} | tar xf - -C {shlex.quote(folder)}"
            self._runner.execute(info, ["/bin/sh", "-c", script], stdin=archive, command_id="sync")
        logger.info("Synced %d file(s), removed %d from %s", len(changed), len(deleted), folder)
        self._save_index(index_path, current)
        return True

    @staticmethod
    def _archive(root: Path, files: list[str]) -> bytes:
        buf = io.BytesIO()
        with tarfile.open(fileobj=buf, mode="w") as tar:
            for rel in files:
                tar.add(root / rel, arcname=rel, recursive=False)
        return buf.getvalue()
