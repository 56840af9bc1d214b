"""Local env info persisted between pushes (currently the run mode)."""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import BaseModel

from devfile_push.devfile.models import RunMode

logger = logging.getLogger(__name__)

ENV_FILE = "env.json"


class EnvInfo(BaseModel):
    """What the previous successful push left behind."""

    component_name: str | None = None
    namespace: str | None = None
    run_mode: RunMode | None = None


class EnvInfoStore:
    def __init__(self, state_dir: Path) -> None:
        self.path = state_dir / ENV_FILE

    def load(self) -> EnvInfo:
        if not self.path.exists():
            return EnvInfo()
        return EnvInfo.model_validate_json(self.path.read_text(encoding="utf-8"))

    def load_for(self, component_name: str, namespace: str) -> EnvInfo:
        """Env info of the given component; an empty one if the state belongs to another component."""
        info = self.load()
        if (info.component_name, info.namespace) != (component_name, namespace):
            if info.component_name is not None:
                logger.debug(
                    "Ignoring env info of %s/%s while pushing %s/%s",
                    info.namespace, info.component_name, namespace, component_name,
                )
            return EnvInfo()
        return info

    def save(self, info: EnvInfo) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(info.model_dump_json(indent=2), encoding="utf-8")
        logger.debug("Saved env info to %s", self.path)

    def clear(self) -> None:
        """Forget the previous push so the next one re-executes the devfile commands."""
        self.path.unlink(missing_ok=True)
