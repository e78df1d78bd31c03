"""
Settings model — the contents of settings.yml.

Directory fields left empty are derived from ``app_root``: the data
directory is ``<app_root>/data`` in portable mode and
``%PROGRAMDATA%/aviutl2`` otherwise, with ``Plugin`` and ``Script``
underneath it.
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import AliasChoices, BaseModel, Field

DEFAULT_HOST_PROCESS = "aviutl2.exe"
DEFAULT_BOOTH_LOGIN_URL = "https://accounts.booth.pm/users/sign_in"


class Settings(BaseModel):
    """User settings for the installer engine and its local host."""

    app_root: str = Field(default="", validation_alias=AliasChoices("app_root", "aviutl2_root"))
    data_dir: str = ""
    plugin_dir: str = ""
    script_dir: str = ""
    portable_mode: bool = Field(
        default=False, validation_alias=AliasChoices("portable_mode", "is_portable_mode"),
    )

    dev_mode: bool = False           # keep temp dirs after successful runs
    strict_extract: bool = False     # extraction failures fail the step
    host_process_name: str = DEFAULT_HOST_PROCESS

    github_token: str = ""
    drive_api_key: str = ""
    booth_cookie_file: str = ""
    booth_login_url: str = DEFAULT_BOOTH_LOGIN_URL

    download_timeout: float = Field(default=300.0, gt=0)
    run_timeout: float = Field(default=900.0, gt=0)
    login_timeout: float = Field(default=300.0, gt=0)

    package_state_endpoint: str = ""
    package_state_opt_out: bool = False

    def resolved_app_root(self) -> Path:
        return Path(self.app_root).expanduser() if self.app_root else Path.cwd()

    def resolved_data_dir(self) -> Path:
        if self.data_dir:
            return Path(self.data_dir).expanduser()
        if self.portable_mode:
            return self.resolved_app_root() / "data"
        program_data = os.environ.get("PROGRAMDATA", r"C:\ProgramData")
        return Path(program_data) / "aviutl2"

    def resolved_plugin_dir(self) -> Path:
        if self.plugin_dir:
            return Path(self.plugin_dir).expanduser()
        return self.resolved_data_dir() / "Plugin"

    def resolved_script_dir(self) -> Path:
        if self.script_dir:
            return Path(self.script_dir).expanduser()
        return self.resolved_data_dir() / "Script"
