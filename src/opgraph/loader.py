"""Operation definition loader.

Reads operation definitions from YAML or JSON and turns them into Operation
values. Each entry is validated with a Pydantic model before an Operation is
built, so malformed input fails with the position of the offending entry.

Accepted layouts:
    # A bare list
    - id: migrate
      depends: [schema]
    - id: seed
      depends: data

    # Or a mapping with an "operations" key
    operations:
      - id: schema
        affects: [schema]

depends / affects accept a single string or a list of strings. prerequisites
name operation ids, so they also accept integers.
"""

import json
from pathlib import Path
from typing import Annotated, Any

import structlog
import yaml
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationError, field_validator

from .constants import JSON_SUFFIXES, OPERATIONS_KEY, YAML_SUFFIXES
from .models.operation import Operation
from .utils.exceptions import ConstructionError, DefinitionError

logger = structlog.get_logger(__name__)


def _as_list(v: Any) -> Any:
    """
    Accept a single value where a list is expected.

    Args:
        v: The value to process.

    Returns:
        Any: A one-element list for strings and integers, [] for None,
            otherwise unchanged.
    """
    if v is None:
        return []
    if isinstance(v, (str, int)):
        return [v]
    return v


TagList = Annotated[list[str], BeforeValidator(_as_list)]
# Prerequisites name operations, so they accept the same types as id
IdList = Annotated[list[str | int], BeforeValidator(_as_list)]


class OperationDefinition(BaseModel):
    """Schema for one operation entry in a definition file."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    id: str | int
    depends: TagList = Field(default_factory=list)
    affects: TagList = Field(default_factory=list)
    prerequisites: IdList = Field(default_factory=list)

    @field_validator("id")
    @classmethod
    def id_not_empty(cls, v: str | int) -> str | int:
        if isinstance(v, str) and not v:
            raise ValueError("id must not be empty")
        return v

    def to_operation(self) -> Operation:
        return Operation(
            id=self.id,
            depends=self.depends,
            affects=self.affects,
            prerequisites=self.prerequisites,
        )


def _format_validation_error(error: ValidationError) -> str:
    errors = error.errors()
    if not errors:
        return str(error)

    first_error = errors[0]
    field = ".".join(str(loc) for loc in first_error["loc"]) or "entry"
    msg = first_error["msg"]

    if len(errors) > 1:
        return f"{field}: {msg} (and {len(errors) - 1} more errors)"
    return f"{field}: {msg}"


def parse_operations(data: Any) -> list[Operation]:
    """
    Build operations from already-parsed definition data.

    Args:
        data: A list of mappings, or a mapping with an "operations" list

    Returns:
        Operations in definition order

    Raises:
        DefinitionError: If the structure or any entry is invalid
    """
    if isinstance(data, dict):
        if OPERATIONS_KEY not in data:
            raise DefinitionError(f"Expected a list or a mapping with an '{OPERATIONS_KEY}' key")
        data = data[OPERATIONS_KEY]

    if data is None:
        return []
    if not isinstance(data, list):
        raise DefinitionError(f"Expected a list of operations, got {type(data).__name__}")

    operations: list[Operation] = []
    for index, entry in enumerate(data):
        if not isinstance(entry, dict):
            raise DefinitionError(
                f"expected a mapping, got {type(entry).__name__}", index=index
            )
        try:
            operations.append(OperationDefinition.model_validate(entry).to_operation())
        except ValidationError as e:
            raise DefinitionError(_format_validation_error(e), index=index, original_error=e) from e
        except ConstructionError as e:
            raise DefinitionError(str(e), index=index, original_error=e) from e

    return operations


def load_operations(path: Path) -> list[Operation]:
    """
    Load operations from a YAML or JSON definition file.

    Args:
        path: Definition file (.yaml, .yml or .json)

    Returns:
        Operations in definition order

    Raises:
        FileNotFoundError: If the file does not exist
        DefinitionError: If the file cannot be parsed or an entry is invalid
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Definition file not found: {path}")

    suffix = path.suffix.lower()
    text = path.read_text(encoding="utf-8")

    try:
        if suffix in JSON_SUFFIXES:
            data = json.loads(text)
        elif suffix in YAML_SUFFIXES:
            data = yaml.safe_load(text)
        else:
            raise DefinitionError(
                f"Unsupported definition file type '{suffix}' "
                f"(expected one of {sorted(YAML_SUFFIXES | JSON_SUFFIXES)})"
            )
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise DefinitionError(f"Could not parse {path}: {e}", original_error=e) from e

    operations = parse_operations(data)
    logger.info("Loaded operation definitions", path=str(path), operation_count=len(operations))
    return operations
