"""Configuration management for opgraph."""

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

import yaml

from .constants import ENV_PREFIX


class TieBreak(str, Enum):
    """Rule for picking among operations that are ready at the same time."""

    INSERTION = "insertion"  # Input order (deterministic)
    LEXICOGRAPHIC = "lexicographic"  # By str(id) (deterministic)
    RANDOM = "random"  # Random choice, optionally seeded


class UnknownPrerequisitePolicy(str, Enum):
    """What to do with a prerequisite id that matches no operation."""

    ERROR = "error"  # Fail validation
    IGNORE = "ignore"  # Log a warning and drop the edge


@dataclass
class TraversalConfig:
    """
    Ordering and execution configuration.

    Controls tie-breaking, prerequisite resolution and concurrency.
    """

    tie_break: TieBreak = TieBreak.INSERTION
    seed: int | None = None  # Only used with TieBreak.RANDOM
    unknown_prerequisites: UnknownPrerequisitePolicy = UnknownPrerequisitePolicy.ERROR
    max_concurrency: int | None = None  # None = unbounded (run_concurrent only)

    def __post_init__(self) -> None:
        # Accept plain strings from YAML and the environment
        self.tie_break = TieBreak(self.tie_break)
        self.unknown_prerequisites = UnknownPrerequisitePolicy(self.unknown_prerequisites)
        if self.max_concurrency is not None and self.max_concurrency < 1:
            raise ValueError(f"max_concurrency must be at least 1, got {self.max_concurrency}")


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    format: str = "console"  # "console" or "json"
    file: Path | None = None

    @property
    def json_logs(self) -> bool:
        return self.format == "json"


@dataclass
class OpGraphConfig:
    """
    Complete configuration for opgraph.

    This combines all configuration sections.
    """

    traversal: TraversalConfig = field(default_factory=TraversalConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_file(cls, config_path: Path) -> "OpGraphConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to YAML config file

        Returns:
            OpGraphConfig instance

        Raises:
            ValueError: If the file is not valid YAML or has the wrong structure
        """
        try:
            with open(config_path) as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file {config_path}: {e}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ValueError(
                f"Invalid configuration file structure in {config_path}: "
                f"expected dictionary, got {type(data).__name__}"
            )

        try:
            traversal = TraversalConfig(**(data.get("traversal") or {}))

            logging_data = dict(data.get("logging") or {})
            if logging_data.get("file"):
                logging_data["file"] = Path(logging_data["file"])
            logging = LoggingConfig(**logging_data)
        except TypeError as e:
            # Unknown keys surface as unexpected keyword arguments
            raise ValueError(f"Invalid configuration in {config_path}: {e}") from e

        return cls(traversal=traversal, logging=logging)

    def to_file(self, config_path: Path) -> None:
        """
        Save configuration to YAML file.

        Args:
            config_path: Path to save config file
        """
        data = {
            "traversal": {
                k: v.value if isinstance(v, Enum) else v
                for k, v in self.traversal.__dict__.items()
            },
            "logging": {
                k: str(v) if isinstance(v, Path) else v
                for k, v in self.logging.__dict__.items()
                if v is not None
            },
        }

        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)

    @classmethod
    def from_env(cls) -> "OpGraphConfig":
        """
        Create configuration from environment variables.

        Environment variables:
            OPGRAPH_TIE_BREAK: insertion, lexicographic or random (default: insertion)
            OPGRAPH_SEED: Seed for the random tie-break
            OPGRAPH_UNKNOWN_PREREQUISITES: error or ignore (default: error)
            OPGRAPH_MAX_CONCURRENCY: Concurrency bound for run_concurrent
            OPGRAPH_LOG_LEVEL: Logging level (default: INFO)
            OPGRAPH_LOG_FORMAT: console or json (default: console)

        Returns:
            OpGraphConfig instance

        Raises:
            ValueError: If a variable holds an invalid value
        """

        def env(name: str, default: str | None = None) -> str | None:
            return os.environ.get(f"{ENV_PREFIX}{name}", default)

        seed = env("SEED")
        max_concurrency = env("MAX_CONCURRENCY")

        traversal = TraversalConfig(
            tie_break=env("TIE_BREAK", TieBreak.INSERTION.value).lower(),
            seed=int(seed) if seed else None,
            unknown_prerequisites=env(
                "UNKNOWN_PREREQUISITES", UnknownPrerequisitePolicy.ERROR.value
            ).lower(),
            max_concurrency=int(max_concurrency) if max_concurrency else None,
        )

        logging_config = LoggingConfig(
            level=env("LOG_LEVEL", "INFO"),
            format=env("LOG_FORMAT", "console"),
        )

        return cls(traversal=traversal, logging=logging_config)


def load_config(config_file: Path | None = None) -> OpGraphConfig:
    """
    Load configuration from file or environment variables.

    Args:
        config_file: Optional path to YAML config file

    Returns:
        OpGraphConfig instance

    Raises:
        FileNotFoundError: If config_file is specified but doesn't exist
    """
    if config_file:
        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_file}")
        return OpGraphConfig.from_file(config_file)
    return OpGraphConfig.from_env()
