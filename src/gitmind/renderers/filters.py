"""Jinja2 filters for report rendering.

The Mermaid filter turns a validated architecture graph into flowchart
syntax. Graphs larger than MAX_NODES are cut to the first MAX_NODES nodes
and the edges between them.
"""

import re

from gitmind.models.report import ArchitectureGraph

MAX_NODES = 30

_ID_RE = re.compile(r"[^A-Za-z0-9_]")

# Node shapes by component kind
NODE_SHAPES = {
    "service": '["{label}"]',
    "component": '["{label}"]',
    "database": '[("{label}")]',
    "storage": '[("{label}")]',
    "external": '(["{label}"])',
    "client": '{{{{"{label}"}}}}',
    "queue": '>"{label}"]',
}


def mermaid_id(node_id: str) -> str:
    """Make a node id safe for Mermaid (alphanumerics and underscores)."""
    safe = _ID_RE.sub("_", node_id.strip()) or "node"
    if safe[0].isdigit():
        safe = f"n_{safe}"
    return safe


def _label(text: str) -> str:
    return text.replace('"', "'").replace("\n", " ").strip()


def mermaid_flowchart(graph: ArchitectureGraph | None, direction: str = "TD") -> str:
    """Render an architecture graph as a Mermaid flowchart."""
    if graph is None or not graph.nodes:
        return f"flowchart {direction}\n    empty[No architecture graph]"

    nodes = graph.nodes[:MAX_NODES]
    kept = {node.id for node in nodes}
    lines = [f"flowchart {direction}"]

    for node in nodes:
        shape = NODE_SHAPES.get(node.kind.lower(), NODE_SHAPES["component"])
        lines.append(f"    {mermaid_id(node.id)}{shape.format(label=_label(node.label))}")

    for edge in graph.edges:
        if edge.source not in kept or edge.target not in kept:
            continue
        arrow = f"-->|{_label(edge.label)}|" if edge.label.strip() else "-->"
        lines.append(f"    {mermaid_id(edge.source)} {arrow} {mermaid_id(edge.target)}")

    return "\n".join(lines)


def format_score(score: float) -> str:
    """Render a 0-100 score as `72/100 [#######---]`."""
    clamped = max(0.0, min(100.0, float(score)))
    filled = round(clamped / 10)
    return f"{clamped:.0f}/100 [{'#' * filled}{'-' * (10 - filled)}]"
