"""Pytest configuration and shared fixtures.

Fixtures are organized by category:
- Operation fixtures: small operation sets with known graph shapes
- File fixtures: definition and config files written to tmp_path
"""

from pathlib import Path

import pytest
import yaml

from opgraph.models.operation import Operation

# =============================================================================
# Operation Fixtures
# =============================================================================


@pytest.fixture
def cyclic_pair() -> list[Operation]:
    """Two operations that each depend on what the other affects."""
    return [
        Operation("A", depends="x", affects="y"),
        Operation("B", depends="y", affects="x"),
    ]


@pytest.fixture
def rotation_with_prerequisite() -> list[Operation]:
    """
    Three operations whose resource edges alone form a cycle.

    a -> b (x), b -> c (y), c -> a (z); a lists c as a prerequisite,
    which leaves exactly one valid order: c, a, b.
    """
    return [
        Operation("a", affects="x", depends="z", prerequisites="c"),
        Operation("b", affects="y", depends="x"),
        Operation("c", affects="z", depends="y"),
    ]


@pytest.fixture
def diamond() -> list[Operation]:
    """
    A -> B -> D
    A -> C -> D
    """
    return [
        Operation("A", affects="a"),
        Operation("B", depends="a", affects="b"),
        Operation("C", depends="a", affects="c"),
        Operation("D", depends=["b", "c"]),
    ]


@pytest.fixture
def chain() -> list[Operation]:
    """build -> test -> deploy, wired through tags and a prerequisite."""
    return [
        Operation("build", affects="artifact"),
        Operation("test", depends="artifact", affects="report"),
        Operation("deploy", prerequisites="test"),
    ]


# =============================================================================
# File Fixtures
# =============================================================================


def _write_yaml(path: Path, data: object) -> Path:
    path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
    return path


@pytest.fixture
def chain_file(tmp_path: Path) -> Path:
    """Definition file for the build/test/deploy chain."""
    return _write_yaml(
        tmp_path / "chain.yaml",
        {
            "operations": [
                {"id": "build", "affects": ["artifact"]},
                {"id": "test", "depends": "artifact", "affects": ["report"]},
                {"id": "deploy", "prerequisites": ["test"]},
            ]
        },
    )


@pytest.fixture
def cyclic_file(tmp_path: Path) -> Path:
    """Definition file with a two-operation cycle."""
    return _write_yaml(
        tmp_path / "cyclic.yaml",
        [
            {"id": "A", "depends": "x", "affects": "y"},
            {"id": "B", "depends": "y", "affects": "x"},
        ],
    )


@pytest.fixture
def unresolved_file(tmp_path: Path) -> Path:
    """Definition file with a prerequisite naming a missing operation."""
    return _write_yaml(
        tmp_path / "unresolved.yaml",
        [
            {"id": "a"},
            {"id": "b", "prerequisites": ["ghost"]},
        ],
    )


@pytest.fixture
def ignore_config_file(tmp_path: Path) -> Path:
    """Config file ignoring unresolved prerequisites."""
    return _write_yaml(
        tmp_path / "opgraph.yaml",
        {"traversal": {"unknown_prerequisites": "ignore"}, "logging": {"level": "WARNING"}},
    )
