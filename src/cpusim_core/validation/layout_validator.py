# src/cpusim_core/validation/layout_validator.py
import logging
from collections import Counter
from typing import List, TYPE_CHECKING

import networkx as nx

from ..layout.model import CpuLayout, WireGraph
from .issues import ValidationIssue, ValidationIssueLevel, create_issue
from .issue_codes import IssueCode

if TYPE_CHECKING:
    from ..components.base import CompLibrary

logger = logging.getLogger(__name__)


class LayoutValidator:
    """
    Performs the structural checks that only need the Layout Model itself.

    Runs before compilation proper. It reports duplicate ids, unknown component
    definitions and malformed wire graphs. Nothing found here stops the compiler;
    it only tells the compiler (and the editor) which elements are suspect.
    Resolution problems (dangling endpoints, widths, drivers, loops) are found by
    the compiler, which has the runtime indices needed to describe them.
    """

    def __init__(self, layout: CpuLayout, library: "CompLibrary", hierarchical_id: str = "top"):
        if not isinstance(layout, CpuLayout):
            raise TypeError("LayoutValidator requires a CpuLayout.")
        self.layout = layout
        self.library = library
        self.hierarchical_id = hierarchical_id
        self.issues: List[ValidationIssue] = []

    def validate(self) -> List[ValidationIssue]:
        self.issues = []
        logger.debug(f"Validating layout structure for '{self.hierarchical_id}'...")
        self._check_duplicate_ids()
        self._check_definitions()
        for wire in self.layout.wires:
            self._check_wire_graph(wire)

        if self.issues:
            errors = sum(1 for i in self.issues if i.level == ValidationIssueLevel.ERROR)
            warnings = sum(1 for i in self.issues if i.level == ValidationIssueLevel.WARNING)
            logger.info(f"Layout validation for '{self.hierarchical_id}' found {errors} error(s), {warnings} warning(s).")
        return self.issues

    def _add_issue(self, level: ValidationIssueLevel, code_enum: IssueCode, **kwargs):
        kwargs.setdefault('hierarchical_context', self.hierarchical_id)
        self.issues.append(create_issue(level, code_enum, **kwargs))

    def _fqn(self, comp_id: str) -> str:
        return f"{self.hierarchical_id}.{comp_id}"

    def _check_duplicate_ids(self):
        for comp_id, count in Counter(c.id for c in self.layout.comps).items():
            if count > 1:
                self._add_issue(ValidationIssueLevel.ERROR, IssueCode.LAYOUT_DUP_COMP_ID,
                                comp_id=comp_id, count=count, component_fqn=self._fqn(comp_id))
        for wire_id, count in Counter(w.id for w in self.layout.wires).items():
            if count > 1:
                self._add_issue(ValidationIssueLevel.ERROR, IssueCode.LAYOUT_DUP_WIRE_ID,
                                wire_id=wire_id, count=count, net_id=wire_id)

    def _check_definitions(self):
        available = sorted(self.library.def_ids)
        for comp in self.layout.comps:
            if not self.library.has_definition(comp.def_id):
                self._add_issue(ValidationIssueLevel.ERROR, IssueCode.COMP_DEF_UNKNOWN,
                                component_fqn=self._fqn(comp.id), def_id=comp.def_id,
                                available_defs=available)

    def _check_wire_graph(self, wire: WireGraph):
        graph = nx.Graph()
        graph.add_nodes_from(range(len(wire.nodes)))
        for idx, node in enumerate(wire.nodes):
            for edge in node.edges:
                if not 0 <= edge < len(wire.nodes):
                    self._add_issue(ValidationIssueLevel.WARNING, IssueCode.WIRE_EDGE_INVALID,
                                    wire_id=wire.id, node_id=node.id, edge=edge, net_id=wire.id)
                    continue
                if idx not in wire.nodes[edge].edges:
                    self._add_issue(ValidationIssueLevel.WARNING, IssueCode.WIRE_EDGE_ONE_WAY,
                                    wire_id=wire.id, from_idx=idx, to_idx=edge, net_id=wire.id)
                graph.add_edge(idx, edge)

        if graph.number_of_nodes() > 1:
            island_count = nx.number_connected_components(graph)
            if island_count > 1:
                self._add_issue(ValidationIssueLevel.WARNING, IssueCode.WIRE_GRAPH_DISCONNECTED,
                                wire_id=wire.id, island_count=island_count, net_id=wire.id)
