"""
Package descriptor models — what a catalog entry says about installing.

A descriptor names a download source and two ordered step lists.
Steps are a closed union discriminated on ``action``; every model is
frozen so a descriptor can be shared between concurrent runs.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

INSTALL_ACTIONS = ("download", "extract", "extract_sfx", "copy", "run", "run_auo_setup")
UNINSTALL_ACTIONS = ("delete", "run")


# ── Source ──────────────────────────────────────────────────────


class GitHubSource(BaseModel):
    """A GitHub release asset, optionally filtered by regex and pinned to a tag."""

    model_config = ConfigDict(frozen=True)

    owner: str = Field(min_length=1)
    repo: str = Field(min_length=1)
    pattern: str = ""
    tag: str = ""


class GoogleDriveSource(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)


class SourceSpec(BaseModel):
    """Exactly one of the four source variants."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    direct: str | None = None
    github: GitHubSource | None = None
    google_drive: GoogleDriveSource | None = Field(default=None, alias="GoogleDrive")
    booth: str | None = None

    @model_validator(mode="after")
    def _exactly_one_variant(self) -> SourceSpec:
        populated = [name for name in ("direct", "github", "google_drive", "booth")
                     if getattr(self, name)]
        if len(populated) != 1:
            raise ValueError(
                "source must set exactly one of direct, github, GoogleDrive, booth "
                f"(got {len(populated)})"
            )
        return self

    @property
    def kind(self) -> str:
        if self.direct:
            return "direct"
        if self.github:
            return "github"
        if self.google_drive:
            return "google_drive"
        return "booth"


# ── Steps ───────────────────────────────────────────────────────


class _Step(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


class DownloadStep(_Step):
    action: Literal["download"]


class ExtractStep(_Step):
    action: Literal["extract"]
    from_: str = Field(default="", alias="from")
    to: str = ""


class ExtractSfxStep(_Step):
    action: Literal["extract_sfx"]
    from_: str = Field(default="", alias="from")
    to: str = ""


class CopyStep(_Step):
    action: Literal["copy"]
    from_: str = Field(default="", alias="from")
    to: str = ""


class RunStep(_Step):
    action: Literal["run"]
    path: str = ""
    args: tuple[str, ...] = ()
    elevate: bool = False

    @field_validator("args", mode="before")
    @classmethod
    def _stringify_args(cls, value: Any) -> Any:
        if value is None:
            return ()
        if isinstance(value, (list, tuple)):
            return tuple(str(v) for v in value)
        return (str(value),)


class RunAuoSetupStep(_Step):
    action: Literal["run_auo_setup"]
    path: str = ""


class DeleteStep(_Step):
    action: Literal["delete"]
    path: str = ""


InstallStep = Annotated[
    Union[DownloadStep, ExtractStep, ExtractSfxStep, CopyStep, RunStep, RunAuoSetupStep],
    Field(discriminator="action"),
]

UninstallStep = Annotated[
    Union[DeleteStep, RunStep],
    Field(discriminator="action"),
]


# ── Descriptor ──────────────────────────────────────────────────


class InstallerSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    source: SourceSpec | None = None
    install: tuple[InstallStep, ...] = ()
    uninstall: tuple[UninstallStep, ...] = ()


class PackageDescriptor(BaseModel):
    """One catalog package: identity, advertised version, installer recipe."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(min_length=1)
    name: str = ""
    latest_version: str = Field(default="", alias="latest-version")
    installer: InstallerSpec = Field(default_factory=InstallerSpec)

    @property
    def display_name(self) -> str:
        return self.name or self.id
