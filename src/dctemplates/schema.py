"""
Template and test-run schema.

Typed contract between the template catalog, option substitution and the
matrix runner. ``TemplateDescriptor`` mirrors ``devcontainer-template.json``;
``Combination`` is the unit the matrix runner executes and records.
"""

from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field


# --- devcontainer-template.json ---


class OptionType(str, Enum):
    STRING = "string"
    BOOLEAN = "boolean"


class TemplateOption(BaseModel):
    """One entry of the ``options`` object."""

    model_config = ConfigDict(extra="ignore")

    type: OptionType = OptionType.STRING
    default: Optional[Union[bool, str]] = None
    description: str = ""
    proposals: List[str] = Field(default_factory=list)
    enum: List[str] = Field(default_factory=list)

    def default_text(self) -> Optional[str]:
        """Default as it is written into template files (booleans lower-case)."""
        if self.default is None:
            return None
        if isinstance(self.default, bool):
            return "true" if self.default else "false"
        return self.default

    def allowed_values(self) -> List[str]:
        return self.enum or self.proposals


class TemplateDescriptor(BaseModel):
    """From ``devcontainer-template.json``."""

    model_config = ConfigDict(extra="ignore")

    id: str
    version: str = ""
    name: str = ""
    description: str = ""
    documentationURL: str = ""
    publisher: str = ""
    licenseURL: str = ""
    options: Dict[str, TemplateOption] = Field(default_factory=dict)
    platforms: List[str] = Field(default_factory=list)


# --- Resolved options ---


class OptionSource(str, Enum):
    OVERRIDE = "override"
    DEFAULT = "default"


class OptionAssignment(BaseModel):
    """Value chosen for one option and where it came from."""

    name: str
    value: str
    source: OptionSource

    @property
    def placeholder(self) -> str:
        return "${templateOption:" + self.name + "}"


# --- Host environment ---


class RuntimeInfo(BaseModel):
    """Detected host OS and container engine."""

    os_type: str  # linux, macos, windows, unknown
    runtime: str  # podman or docker
    docker_path: str  # command devcontainer should call (podman or docker)
    docker_host: Optional[str] = None


# --- Matrix ---


class Combination(BaseModel):
    """One template plus its ordered ``key=value`` option tokens.

    Text form (results file line): ``"ubi imageVariant=9 variant=ubi-minimal"``.
    """

    model_config = ConfigDict(frozen=True)

    template: str
    options: Tuple[str, ...] = ()

    @classmethod
    def from_line(cls, line: str) -> Optional["Combination"]:
        parts = line.split()
        if not parts:
            return None
        return cls(template=parts[0], options=tuple(parts[1:]))

    def to_line(self) -> str:
        return " ".join((self.template,) + self.options)

    def option_value(self, name: str) -> Optional[str]:
        prefix = name + "="
        for opt in self.options:
            if opt.startswith(prefix):
                return opt[len(prefix):]
        return None

    def __str__(self) -> str:
        return self.to_line()


class Outcome(BaseModel):
    """Result of running one combination."""

    combination: Combination
    passed: bool
    log_file: Optional[Path] = None
    returncode: int = 0
