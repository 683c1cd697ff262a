"""Parser configuration.

Settings can be given in code or loaded from a YAML file:

    number: fraction
    storage: copy
    max_include_depth: 16
"""

from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field

from .numeric import NumberKind, get_number_kind
from .storage import Storage, new_storage


class ParserConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    number: Literal["decimal", "float", "fraction"] = "decimal"
    precision: int | None = Field(default=None, gt=0)  # decimal context precision
    storage: Literal["shared", "copy"] = "shared"
    max_include_depth: int = Field(default=64, ge=1)
    encoding: str = "utf-8"


def load_config(path: str | Path) -> ParserConfig:
    """Load a ParserConfig from a YAML file. An empty file gives the defaults."""
    with open(path) as f:
        data = yaml.safe_load(f)

    if not data:
        return ParserConfig()
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping of settings, got {type(data).__name__}")
    return ParserConfig(**data)


def build_session(
    config: ParserConfig | None = None,
    number: NumberKind | None = None,
    storage: Storage | None = None,
) -> tuple[NumberKind, Storage]:
    """Resolve the number kind and storage for one parse.

    Explicit ``number``/``storage`` objects take precedence over ``config``.
    """
    config = config or ParserConfig()
    if number is None:
        number = get_number_kind(config.number, config.precision)
    if storage is None:
        storage = new_storage(config.storage)
    return number, storage
