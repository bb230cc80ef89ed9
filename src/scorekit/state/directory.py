from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

import structlog
import yaml

from scorekit.core.errors import ConfigurationError, PersistenceError
from scorekit.state.models import SHARED_STATE_APP_PREFIX_KEY, ProjectState, StateExtras

logger = structlog.get_logger()

DEFAULT_STATE_DIRECTORY = Path(".scorekit")
STATE_FILE_NAME = "state.yaml"


@dataclass
class StateDirectory:
    """The on-disk home of a project's state document."""

    path: Path
    state: ProjectState = field(default_factory=ProjectState)

    @property
    def state_file(self) -> Path:
        return self.path / STATE_FILE_NAME

    def persist(self) -> None:
        """Write the whole state document atomically.

        The document is written to a temporary file next to the target and
        renamed into place, so readers never see a partial file.
        """
        payload = yaml.safe_dump(
            self.state.to_dict(),
            default_flow_style=False,
            sort_keys=True,
            allow_unicode=True,
        )
        tmp_name: str | None = None
        try:
            self.path.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.path, prefix=".state-", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.state_file)
        except OSError as exc:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise PersistenceError(
                f"failed to write state file: {exc}", {"path": str(self.state_file)}
            ) from exc
        logger.debug("state_persisted", path=str(self.state_file))


def load_state_directory(path: Path | str | None = None) -> StateDirectory | None:
    """Load the state directory, or return None when it has not been initialised."""
    dir_path = Path(path) if path is not None else DEFAULT_STATE_DIRECTORY
    state_file = dir_path / STATE_FILE_NAME
    if not state_file.exists():
        return None
    try:
        with open(state_file, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"failed to read state file: {exc}", {"path": str(state_file)}) from exc
    if not isinstance(data, dict):
        raise ConfigurationError("state file must contain a mapping", {"path": str(state_file)})
    return StateDirectory(path=dir_path, state=ProjectState.from_dict(data))


def require_state_directory(path: Path | str | None = None) -> StateDirectory:
    sd = load_state_directory(path)
    if sd is None:
        raise ConfigurationError('state directory does not exist, please run "scorekit init" first')
    return sd


def init_state_directory(path: Path | str | None, app_prefix: str) -> StateDirectory:
    """Create and persist a fresh state directory."""
    sd = StateDirectory(
        path=Path(path) if path is not None else DEFAULT_STATE_DIRECTORY,
        state=ProjectState(
            shared_state={SHARED_STATE_APP_PREFIX_KEY: app_prefix},
            extras=StateExtras(app_prefix=app_prefix),
        ),
    )
    sd.persist()
    return sd
