"""Unit tests for report filters."""

from gitmind.models.report import ArchitectureGraph
from gitmind.renderers.filters import MAX_NODES, format_score, mermaid_flowchart, mermaid_id


class TestMermaid:
    """Tests for the Mermaid flowchart filter."""

    def test_empty_graph(self) -> None:
        """Test the placeholder for a missing graph."""
        assert mermaid_flowchart(None) == "flowchart TD\n    empty[No architecture graph]"
        assert mermaid_flowchart(ArchitectureGraph()) == "flowchart TD\n    empty[No architecture graph]"

    def test_nodes_and_edges(self) -> None:
        """Test shapes, labels and edge labels."""
        graph = ArchitectureGraph.model_validate(
            {
                "nodes": [
                    {"id": "web-app", "label": 'The "app"', "kind": "service"},
                    {"id": "db", "label": "Postgres", "kind": "database"},
                ],
                "edges": [{"source": "web-app", "target": "db", "label": "reads"}],
            }
        )

        chart = mermaid_flowchart(graph, direction="LR")

        assert chart.splitlines() == [
            "flowchart LR",
            "    web_app[\"The 'app'\"]",
            '    db[("Postgres")]',
            "    web_app -->|reads| db",
        ]

    def test_node_limit(self) -> None:
        """Test that large graphs are cut to MAX_NODES."""
        nodes = [{"id": f"n{i}", "label": f"N{i}"} for i in range(MAX_NODES + 5)]
        edges = [{"source": "n0", "target": f"n{MAX_NODES + 1}"}]
        graph = ArchitectureGraph.model_validate({"nodes": nodes, "edges": edges})

        chart = mermaid_flowchart(graph)

        assert len(chart.splitlines()) == MAX_NODES + 1
        assert "-->" not in chart

    def test_mermaid_id(self) -> None:
        """Test id sanitizing."""
        assert mermaid_id("api/gateway v2") == "api_gateway_v2"
        assert mermaid_id("3tier") == "n_3tier"
        assert mermaid_id("  ") == "node"


class TestFormatScore:
    """Tests for the score bar filter."""

    def test_bar(self) -> None:
        """Test bar rendering and clamping."""
        assert format_score(72) == "72/100 [#######---]"
        assert format_score(0) == "0/100 [----------]"
        assert format_score(140) == "100/100 [##########]"
