"""Blocking user interaction: the external editor and yes/no prompts."""

import logging
import shlex
import subprocess
from pathlib import Path
from typing import Callable, Optional

from zettelkit.config import config
from zettelkit.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Signatures the services accept, so tests can inject fakes
Editor = Callable[[Path], None]
Confirm = Callable[[str], bool]


def launch_editor(path: Path, editor: Optional[str] = None) -> None:
    """Open ``path`` in the user's editor and wait for it to exit.

    The editor command may carry arguments (``"code --wait"``).

    Raises:
        ConfigurationError: If the editor command cannot be started.
    """
    command = shlex.split(editor or config.editor) + [str(path)]
    logger.debug(f"Launching editor: {command}")
    try:
        completed = subprocess.run(command, check=False)
    except OSError as e:
        raise ConfigurationError(
            f"Cannot start editor '{command[0]}': {e}. "
            "Set ZETTELKIT_EDITOR or EDITOR.",
            config_key="editor",
        ) from e
    if completed.returncode != 0:
        logger.warning(f"Editor exited with status {completed.returncode}")


def confirm(prompt: str) -> bool:
    """Ask a yes/no question on the terminal. Anything but yes is no.

    End of input counts as no.
    """
    try:
        answer = input(f"{prompt} [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def always_yes(prompt: str) -> bool:
    """Confirm callable used for ``--yes``."""
    logger.info(f"Auto-confirmed: {prompt}")
    return True
