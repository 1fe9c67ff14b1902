"""
Causal Diagram for the pay gap simulation.

Wraps the structural equations in a networkx DiGraph and checks, before any
random draw happens, that the equations describe a valid DAG and that the
draw order is topological.
"""

import logging
from typing import Dict, List, Optional

import networkx as nx

from ..config import DEFAULT_STRUCTURAL_EQUATIONS, DistributionKind, NodeSpec, StructuralEquations
from ..exceptions import SimulationConfigError

logger = logging.getLogger(__name__)

SUPPORTED_TRANSFORMS = {"sqrt", "identity"}


class CausalDiagram:
    """
    Directed acyclic graph over the simulated variables.

    Usage:
        diagram = CausalDiagram(DEFAULT_STRUCTURAL_EQUATIONS)
        diagram.validate()
        diagram.parents("salary")
    """

    def __init__(self, equations: Optional[StructuralEquations] = None):
        self.equations = equations or DEFAULT_STRUCTURAL_EQUATIONS
        self.graph = nx.DiGraph()
        for node in self.equations.nodes:
            self.graph.add_node(node.name, kind=node.kind.value)
        for node in self.equations.nodes:
            for parent in node.parents:
                self.graph.add_edge(parent, node.name)

    def parents(self, name: str) -> List[str]:
        return list(self.equations.get_node(name).parents)

    def ancestors(self, name: str) -> List[str]:
        return sorted(nx.ancestors(self.graph, name))

    def roots(self) -> List[str]:
        return [n for n in self.equations.draw_order if self.graph.in_degree(n) == 0]

    def validate(self) -> None:
        """
        Check the diagram and every structural equation.

        Raises:
            SimulationConfigError: on the first inconsistency found
        """
        names = self.equations.draw_order
        if len(set(names)) != len(names):
            raise SimulationConfigError(f"Duplicate node names in {names}")

        for node in self.equations.nodes:
            self._validate_node(node, set(names))

        if not nx.is_directed_acyclic_graph(self.graph):
            cycle = nx.find_cycle(self.graph)
            raise SimulationConfigError(f"Causal diagram has a cycle: {cycle}")

        position = {name: i for i, name in enumerate(names)}
        for parent, child in self.graph.edges():
            if position[parent] > position[child]:
                raise SimulationConfigError(
                    f"Draw order is not topological: '{parent}' must be drawn before '{child}'"
                )

        if self.equations.outcome not in position:
            raise SimulationConfigError(f"Outcome node '{self.equations.outcome}' is not defined")

        self._validate_interactions()
        logger.debug(f"Causal diagram valid: {len(names)} nodes, {self.graph.number_of_edges()} edges")

    def _validate_node(self, node: NodeSpec, known: set) -> None:
        if len(node.betas) != len(node.parents):
            raise SimulationConfigError(
                f"Node '{node.name}' declares {len(node.parents)} parents "
                f"but {len(node.betas)} betas"
            )
        unknown = [p for p in node.parents if p not in known]
        if unknown:
            raise SimulationConfigError(f"Node '{node.name}' has unknown parents: {unknown}")
        for parent, transform in node.transforms.items():
            if parent not in node.parents:
                raise SimulationConfigError(
                    f"Node '{node.name}' transforms '{parent}', which is not a parent"
                )
            if transform not in SUPPORTED_TRANSFORMS:
                raise SimulationConfigError(
                    f"Node '{node.name}' uses unsupported transform '{transform}'"
                )

        if node.kind == DistributionKind.NEGATIVE_BINOMIAL:
            if node.theta is None or node.theta <= 0:
                raise SimulationConfigError(f"Node '{node.name}' needs a positive theta")
        elif node.kind in (DistributionKind.NORMAL, DistributionKind.GAUSSIAN):
            if node.error_sd is None or node.error_sd <= 0:
                raise SimulationConfigError(f"Node '{node.name}' needs a positive error_sd")
        elif node.kind == DistributionKind.BETA:
            if node.precision is None or node.precision <= 0:
                raise SimulationConfigError(f"Node '{node.name}' needs a positive beta precision")
        elif node.kind == DistributionKind.BINOMIAL:
            if node.categories is None or len(node.categories) != 2:
                raise SimulationConfigError(f"Binary node '{node.name}' needs two categories")

    def _validate_interactions(self) -> None:
        try:
            gender = self.equations.get_node("gender").categories or ()
            role_type = self.equations.get_node("role_type").categories or ()
        except KeyError as e:
            raise SimulationConfigError(f"Interaction table needs node {e}") from e
        for g, r in self.equations.interaction_effects:
            if g not in gender or r not in role_type:
                raise SimulationConfigError(f"Interaction cell ({g}, {r}) is not a valid category pair")

    def to_dict(self) -> Dict:
        return {
            "nodes": list(self.graph.nodes()),
            "edges": list(self.graph.edges()),
            "draw_order": self.equations.draw_order,
        }

    def to_dot(self) -> str:
        lines = ["digraph {"]
        for parent, child in self.graph.edges():
            lines.append(f'  "{parent}" -> "{child}";')
        lines.append("}")
        return "\n".join(lines)
