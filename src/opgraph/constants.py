"""Named constants for opgraph."""

# -----------------------------------------------------------------------------
# Graph construction
# -----------------------------------------------------------------------------

# Reason recorded on an edge declared through Operation.prerequisites.
# Resource edges record the shared tags instead.
PREREQUISITE_REASON: str = "prerequisite"


# -----------------------------------------------------------------------------
# Definition files
# -----------------------------------------------------------------------------

YAML_SUFFIXES: frozenset[str] = frozenset({".yaml", ".yml"})
JSON_SUFFIXES: frozenset[str] = frozenset({".json"})

# Top-level key holding the operation list when a definition file is a mapping
OPERATIONS_KEY: str = "operations"


# -----------------------------------------------------------------------------
# Diagnostics
# -----------------------------------------------------------------------------

# Graphviz fill colors used by Solver.to_dot()
DOT_NODE_COLOR: str = "#d4edda"  # Green
DOT_ISOLATED_NODE_COLOR: str = "#eeeeee"  # Gray, no edges at all
DOT_PREREQUISITE_EDGE_STYLE: str = "bold"
DOT_RESOURCE_EDGE_STYLE: str = "solid"
DOT_OVERRIDDEN_EDGE_STYLE: str = "dashed"


# -----------------------------------------------------------------------------
# Environment
# -----------------------------------------------------------------------------

ENV_PREFIX: str = "OPGRAPH_"
