# Parent id used for the entry point import and for imports made outside any module.
ROOT_ID = "<root>"

HIGH_TIME_THRESHOLD_MS = 50
MEDIUM_TIME_THRESHOLD_MS = 20

HIGH_TIME_COLOR = "red"
MEDIUM_TIME_COLOR = "orange"
DEFAULT_TIME_COLOR = "black"

# Graphviz colour names mapped onto rich styles for the terminal tree.
RICH_TIME_STYLES = {
    HIGH_TIME_COLOR: "bold red",
    MEDIUM_TIME_COLOR: "dark_orange",
    DEFAULT_TIME_COLOR: "default",
}

REPEAT_MARKER = "REPEAT"
NOT_FOUND_MARKER = "NOT FOUND"
TREE_INDENT = "  "

PACKAGE_FILTER_ENV = "IMPORTGRAPH_PACKAGE_FILTER"
LOG_LEVEL_ENV = "IMPORTGRAPH_LOG_LEVEL"
