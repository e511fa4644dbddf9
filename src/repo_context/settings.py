from __future__ import annotations

import os
from pathlib import Path

from dotenv import dotenv_values, find_dotenv
from pydantic import BaseModel, ConfigDict, Field

from repo_context.config import FrameworkID, OutlierMethod, Precision

ENV_FILE = find_dotenv(usecwd=True)
ENV_PREFIX = "REPO_CONTEXT_"


def env_defaults(env_file: str | None = None) -> dict[str, str]:
    """Collect ``REPO_CONTEXT_*`` defaults from the environment and a ``.env`` file.

    Process environment variables take precedence over the ``.env`` file.

    Args:
        env_file: the ``.env`` file to read; defaults to the one discovered from the cwd.

    Returns:
        dict[str, str]: lower-cased setting names (prefix removed) mapped to their raw values
    """
    path = ENV_FILE if env_file is None else env_file
    values: dict[str, str | None] = dict(dotenv_values(path)) if path else {}
    values.update(os.environ)
    return {
        key.removeprefix(ENV_PREFIX).lower(): value
        for key, value in values.items()
        if key.startswith(ENV_PREFIX) and value
    }


class Settings(BaseModel):
    """Configuration settings for the repo_context command line."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    source: Path = Field(default_factory=Path.cwd, description="Directory or .zip archive to export.")
    output: Path | None = Field(default=None, description="Output text file (defaults to <source>.txt).")
    framework: FrameworkID | None = Field(default=None, description="Override the detected framework.")
    precision: Precision = Field(default=Precision.STANDARD, description="Selection precision.")
    outliers: bool = Field(default=False, description="Drop files flagged as size outliers.")
    outlier_method: OutlierMethod = Field(default=OutlierMethod.MEDIAN, description="Outlier threshold method.")
    rules_file: Path | None = Field(default=None, description="YAML file extending the rule table.")
    no_git: bool = Field(default=False, description="Do not use git ls-files.")
    list_only: bool = Field(default=False, description="Print the selected paths instead of writing output.")
    log_file: str = Field(default="", description="Log file path.")

    def resolved_output(self) -> Path:
        """Return the output path, deriving ``<source-name>.txt`` when none was given."""
        if self.output is not None:
            return self.output
        source = self.source.resolve()
        name = source.stem if source.suffix.lower() == ".zip" else source.name
        return Path(f"{name or 'repository'}.txt")
