"""GitHub Actions workflow-command helpers (outputs, step summary, annotations)."""

from __future__ import annotations

import logging
import os
import uuid
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)


def _escape_data(value: str) -> str:
    return value.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


def error_annotation(message: str) -> str:
    """Return the ``::error::`` workflow command that marks the step as failed."""
    return f"::error::{_escape_data(message)}"


def set_output(name: str, value: str, env: Mapping[str, str] | None = None) -> bool:
    """Append a step output to the ``GITHUB_OUTPUT`` file.

    Returns:
        True if the output was written, False outside GitHub Actions.
    """
    env = os.environ if env is None else env
    output_path = env.get("GITHUB_OUTPUT", "")
    if not output_path:
        logger.info("Output %s=%s (GITHUB_OUTPUT not set)", name, value)
        return False

    if "\n" in value:
        delimiter = f"ghadelimiter_{uuid.uuid4()}"
        entry = f"{name}<<{delimiter}\n{value}\n{delimiter}\n"
    else:
        entry = f"{name}={value}\n"

    with Path(output_path).open("a", encoding="utf-8") as f:
        f.write(entry)
    logger.debug("Set output %s=%s", name, value)
    return True


def append_step_summary(markdown: str, env: Mapping[str, str] | None = None) -> bool:
    """Append markdown to the job summary when ``GITHUB_STEP_SUMMARY`` is set."""
    env = os.environ if env is None else env
    summary_path = env.get("GITHUB_STEP_SUMMARY", "")
    if not summary_path:
        return False

    with Path(summary_path).open("a", encoding="utf-8") as f:
        f.write(markdown.rstrip("\n") + "\n")
    return True
