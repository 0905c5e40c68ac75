# src/cpusim_core/compiler.py

"""
Defines the compilation step that turns a design-time `CpuLayout` into a runnable
`ExeSystem`.

The compiler is the bridge between the editor's id-based Layout Model and the
engine's index-based runtime model. It:

1.  Runs the `LayoutValidator` for structural problems that need no indices.
2.  Indexes components in declaration order and builds each one through the
    component library. Unknown or unbuildable definitions give an invalid
    component, never a failed compile.
3.  Merges wire graphs joined by wire references into nets.
4.  Resolves wire terminals to component ports; unresolved terminals are kept
    as invalid references and reported.
5.  Classifies each net's ports into drivers and readers and checks the driver
    rules.
6.  Resolves net widths and gives inheriting ports the width of their net.
7.  Orders the combinational phases and net resolutions topologically, reports
    combinational loops and excludes the components caught in them.
8.  Collects latch phases into the latch step list.
9.  Recursively compiles nested layouts of hierarchical parts.

Problems are recorded as `ValidationIssue`s on the resulting system. The
`compile_layout` facade can turn error-level issues into a `CircuitBuildError`.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import networkx as nx
from networkx.utils import UnionFind

from .components import CompLibrary, ResetOptions
from .constants import DEFAULT_PORT_WIDTH, FLOATING_NET_VALUE, NO_INDEX
from .errors import CircuitBuildError, DiagnosableError, format_diagnostic_report
from .execution.model import (
    ExeComp, ExeNet, ExePhase, ExePort, ExePortRef, ExeRunArgs, ExeStep, ExeSystem, ExeSystemLookup,
)
from .layout.model import Comp, CpuLayout, RefType, WireGraph
from .layout.serialization import LayoutSerializer
from .validation import CompilationError, IssueCode, LayoutValidator, ValidationIssue, ValidationIssueLevel, create_issue


logger = logging.getLogger(__name__)

# Node kinds of the dependency graph. Nodes are (kind, index, sub-index) tuples so
# that the lexicographic tie-break orders phases by (component, phase) index and
# nets by net index.
PHASE_NODE = 0
NET_NODE = 1

DepNode = Tuple[int, int, int]


class _LayoutCompilation:
    """The state of compiling one layout level. Used once, then discarded."""

    def __init__(
        self,
        compiler: "ExeSystemCompiler",
        layout: CpuLayout,
        hierarchical_id: str,
        run_args: ExeRunArgs,
        options: Optional[ResetOptions],
    ):
        self.compiler = compiler
        self.library: CompLibrary = compiler.library
        self.layout = layout
        self.hierarchical_id = hierarchical_id
        self.run_args = run_args
        self.options = options

        self.issues: List[ValidationIssue] = []
        self.comps: List[ExeComp] = []
        self.comp_id_to_idx: Dict[str, int] = {}
        self.nets: List[ExeNet] = []
        self.wire_id_to_net_idx: Dict[str, int] = {}
        self._net_wires: List[List[WireGraph]] = []
        # Explicit (declared) width of each compiled port, None when inherited.
        self.declared_widths: Dict[Tuple[int, int], Optional[int]] = {}

    def _add_issue(self, level: ValidationIssueLevel, code_enum: IssueCode, **kwargs):
        kwargs.setdefault('hierarchical_context', self.hierarchical_id)
        self.issues.append(create_issue(level, code_enum, **kwargs))

    def _fqn(self, comp_id: str) -> str:
        return f"{self.hierarchical_id}.{comp_id}"

    def _port_label(self, ref: ExePortRef) -> str:
        return f"{self.comps[ref.comp_idx].fqn}.{ref.exe_port.id}"

    # --- Driver ---

    def run(self) -> ExeSystem:
        self.issues.extend(LayoutValidator(self.layout, self.library, self.hierarchical_id).validate())
        self._index_components()
        self._build_nets()
        self._resolve_terminals()
        self._classify_nets()
        self._resolve_widths()
        execution_steps = self._order_execution_steps()
        latch_steps = self._collect_latch_steps()

        lookup = ExeSystemLookup(
            comp_id_to_idx=dict(self.comp_id_to_idx),
            wire_id_to_net_idx=dict(self.wire_id_to_net_idx),
            comp_idx_to_id=[c.id for c in self.comps],
            net_idx_to_wire_ids=[list(n.wire_ids) for n in self.nets],
        )
        system = ExeSystem(
            hierarchical_id=self.hierarchical_id,
            comps=self.comps,
            nets=self.nets,
            execution_steps=execution_steps,
            latch_steps=latch_steps,
            lookup=lookup,
            run_args=self.run_args,
            comp_library=self.library,
            reset_options=self.options,
            issues=self.issues,
        )

        errors = sum(1 for i in self.issues if i.level == ValidationIssueLevel.ERROR)
        warnings = sum(1 for i in self.issues if i.level == ValidationIssueLevel.WARNING)
        logger.info(
            f"Compiled '{self.hierarchical_id}': {len(self.comps)} component(s), {len(self.nets)} net(s), "
            f"{len(execution_steps)} execution step(s), {len(latch_steps)} latch step(s); "
            f"{errors} error(s), {warnings} warning(s)."
        )
        return system

    # --- Components ---

    def _index_components(self):
        for comp in self.layout.comps:
            if comp.id in self.comp_id_to_idx:
                continue
            comp_idx = len(self.comps)
            self.comp_id_to_idx[comp.id] = comp_idx
            self.comps.append(self._build_component(comp_idx, comp))

    def _build_component(self, comp_idx: int, comp: Comp) -> ExeComp:
        fqn = self._fqn(comp.id)
        if not self.library.has_definition(comp.def_id):
            # Already reported by the LayoutValidator.
            return ExeComp(comp=comp, fqn=fqn, valid=False)

        try:
            built = self.library.build(comp.def_id, comp.args, fqn, self.options)
            sub_layout = self.library.sub_layout(comp.def_id, comp.args)
        except DiagnosableError as e:
            self._add_issue(ValidationIssueLevel.ERROR, IssueCode.COMP_BUILD_FAILED,
                            component_fqn=fqn, def_id=comp.def_id, error=str(e))
            return ExeComp(comp=comp, fqn=fqn, valid=False)

        ports: List[ExePort] = []
        for port_idx, declared in enumerate(built.ports):
            width = declared.width
            if width is None:
                layout_port = comp.get_port(declared.id)
                width = layout_port.width if layout_port is not None else None
            self.declared_widths[(comp_idx, port_idx)] = width
            ports.append(ExePort(
                port_idx=port_idx,
                id=declared.id,
                width=width or 0,
                type=declared.type,
                io_enabled=not declared.type.is_tristate,
            ))

        id_to_idx = {p.id: p.port_idx for p in ports}
        phases = [
            ExePhase(
                name=phase.name,
                read_port_idxs=[id_to_idx[p] for p in phase.reads],
                write_port_idxs=[id_to_idx[p] for p in phase.writes],
                func=phase.func,
                is_latch=phase.is_latch,
            )
            for phase in built.phases
        ]

        exe_comp = ExeComp(comp=comp, fqn=fqn, ports=ports, data=built.data, phases=phases)
        if sub_layout is not None:
            logger.debug(f"Compiling nested layout of '{fqn}'...")
            exe_comp.sub_system = self.compiler.compile(
                sub_layout, hierarchical_id=fqn, run_args=self.run_args, options=self.options
            )
            self.issues.extend(exe_comp.sub_system.issues)
        return exe_comp

    # --- Nets ---

    def _build_nets(self):
        wires: List[WireGraph] = []
        wire_index: Dict[str, int] = {}
        for wire in self.layout.wires:
            if wire.id not in wire_index:
                wire_index[wire.id] = len(wires)
                wires.append(wire)

        joined = UnionFind(range(len(wires)))
        for wire_idx, wire in enumerate(wires):
            for node in wire.nodes:
                if node.ref is None or node.ref.type != RefType.WIRE:
                    continue
                target_idx = wire_index.get(node.ref.id)
                if target_idx is None:
                    self._add_issue(ValidationIssueLevel.WARNING, IssueCode.WIRE_JOIN_DANGLING,
                                    wire_id=wire.id, node_id=node.id, target=node.ref.id, net_id=wire.id)
                    continue
                joined.union(wire_idx, target_idx)

        # Nets are indexed in declaration order of their first wire.
        groups = sorted((sorted(group) for group in joined.to_sets()), key=lambda g: g[0])
        for group in groups:
            net_idx = len(self.nets)
            net = ExeNet(wire_ids=[wires[i].id for i in group])
            for wire_id in net.wire_ids:
                self.wire_id_to_net_idx[wire_id] = net_idx
            self.nets.append(net)
            self._net_wires.append([wires[i] for i in group])

    def _resolve_terminals(self):
        for net_idx, (net, wires) in enumerate(zip(self.nets, self._net_wires)):
            for wire in wires:
                for node in wire.nodes:
                    if node.ref is None or node.ref.type != RefType.COMP_NODE:
                        continue
                    self._attach_terminal(net_idx, net, wire, node)

    def _attach_terminal(self, net_idx: int, net: ExeNet, wire: WireGraph, node):
        ref = node.ref
        label = f"{ref.id}.{ref.comp_node_id}"
        comp_idx = self.comp_id_to_idx.get(ref.id, NO_INDEX)
        port_idx = NO_INDEX
        if comp_idx != NO_INDEX and ref.comp_node_id is not None:
            port_idx = self.comps[comp_idx].port_index(ref.comp_node_id)

        if port_idx == NO_INDEX:
            net.unresolved.append(ExePortRef(comp_idx=comp_idx, port_idx=NO_INDEX, valid=False, label=label))
            self._add_issue(ValidationIssueLevel.WARNING, IssueCode.WIRE_DANGLING,
                            wire_id=wire.id, node_id=node.id, target=label, net_id=net.id)
            return

        comp = self.comps[comp_idx]
        port = comp.ports[port_idx]
        if port.net_idx == net_idx:
            return
        if port.net_idx != NO_INDEX:
            self._add_issue(ValidationIssueLevel.WARNING, IssueCode.COMP_PORT_MULTI_NET,
                            port_id=port.id, component_fqn=comp.fqn,
                            first_net=self.nets[port.net_idx].id, second_net=net.id)
            return

        port.net_idx = net_idx
        port_ref = ExePortRef(comp_idx=comp_idx, port_idx=port_idx, exe_port=port, label=label)
        if port.type.is_output:
            net.inputs.append(port_ref)
        else:
            net.outputs.append(port_ref)
        net.type |= port.type.semantic_flags

    def _classify_nets(self):
        for net in self.nets:
            if not net.inputs:
                self._add_issue(ValidationIssueLevel.WARNING, IssueCode.NET_NO_DRIVER,
                                net_id=net.id, floating_value=FLOATING_NET_VALUE)
            if not net.outputs:
                self._add_issue(ValidationIssueLevel.INFO, IssueCode.NET_NO_READER, net_id=net.id)

            net.tristate = bool(net.inputs) and all(ref.exe_port.type.is_tristate for ref in net.inputs)
            if len(net.inputs) > 1 and not net.tristate:
                self._add_issue(ValidationIssueLevel.ERROR, IssueCode.NET_MULTI_DRIVER,
                                net_id=net.id, driver_count=len(net.inputs),
                                drivers=[self._port_label(r) for r in net.inputs])

    def _resolve_widths(self):
        for net in self.nets:
            refs = net.inputs + net.outputs
            declared = {
                self._port_label(r): self.declared_widths[(r.comp_idx, r.port_idx)]
                for r in refs
                if self.declared_widths[(r.comp_idx, r.port_idx)] is not None
            }
            distinct = set(declared.values())
            if len(distinct) > 1:
                net.width = max(distinct)
                self._add_issue(ValidationIssueLevel.ERROR, IssueCode.NET_WIDTH_MISMATCH,
                                net_id=net.id, port_widths=declared, width=net.width)
            elif distinct:
                net.width = distinct.pop()
            else:
                net.width = DEFAULT_PORT_WIDTH
            for ref in refs:
                if self.declared_widths[(ref.comp_idx, ref.port_idx)] is None:
                    ref.exe_port.width = net.width

        # Unconnected ports that inherit their width fall back to the default.
        for comp in self.comps:
            for port in comp.ports:
                if port.width == 0:
                    port.width = DEFAULT_PORT_WIDTH

    # --- Scheduling ---

    def _dependency_graph(self) -> nx.DiGraph:
        graph = nx.DiGraph()
        for net_idx, net in enumerate(self.nets):
            if net.valid:
                graph.add_node((NET_NODE, net_idx, 0))
        for comp_idx, comp in enumerate(self.comps):
            if not comp.valid:
                continue
            for phase_idx, phase in enumerate(comp.phases):
                if phase.is_latch:
                    continue
                node = (PHASE_NODE, comp_idx, phase_idx)
                graph.add_node(node)
                for port_idx in phase.read_port_idxs:
                    port = comp.ports[port_idx]
                    if port.is_connected:
                        graph.add_edge((NET_NODE, port.net_idx, 0), node)
                for port_idx in phase.write_port_idxs:
                    port = comp.ports[port_idx]
                    if port.is_connected and port.type.is_output:
                        graph.add_edge(node, (NET_NODE, port.net_idx, 0))
        return graph

    def _order_execution_steps(self) -> List[ExeStep]:
        graph = self._dependency_graph()

        loops: List[List[DepNode]] = [
            sorted(scc) for scc in nx.strongly_connected_components(graph)
            if len(scc) > 1 or graph.has_edge(next(iter(scc)), next(iter(scc)))
        ]
        for loop in sorted(loops):
            loop_comp_idxs = sorted({n[1] for n in loop if n[0] == PHASE_NODE})
            loop_net_idxs = sorted({n[1] for n in loop if n[0] == NET_NODE})
            self._add_issue(
                ValidationIssueLevel.ERROR, IssueCode.SCHED_COMB_LOOP,
                loop_components=[self.comps[i].fqn for i in loop_comp_idxs],
                loop_nets=[self.nets[i].id for i in loop_net_idxs],
                component_fqn=self.comps[loop_comp_idxs[0]].fqn if loop_comp_idxs else None,
            )
            for comp_idx in loop_comp_idxs:
                self.comps[comp_idx].valid = False
            for net_idx in loop_net_idxs:
                self.nets[net_idx].valid = False
            graph.remove_nodes_from(loop)

        # Drop the remaining phases of components excluded by a loop.
        graph.remove_nodes_from([
            n for n in list(graph.nodes) if n[0] == PHASE_NODE and not self.comps[n[1]].valid
        ])

        steps = []
        for kind, idx, sub_idx in nx.lexicographical_topological_sort(graph, key=lambda n: n):
            if kind == NET_NODE:
                steps.append(ExeStep.for_net(idx))
            else:
                steps.append(ExeStep.for_phase(idx, sub_idx))
        return steps

    def _collect_latch_steps(self) -> List[ExeStep]:
        return [
            ExeStep.for_phase(comp_idx, phase_idx)
            for comp_idx, comp in enumerate(self.comps) if comp.valid
            for phase_idx, phase in enumerate(comp.phases) if phase.is_latch
        ]


class ExeSystemCompiler:
    """
    Compiles Layout Models into Execution Systems using a component library.

    Compiling the same layout twice yields identical step orders and identical
    initial state.
    """

    def __init__(self, library: Optional[CompLibrary] = None):
        self.library: CompLibrary = library if library is not None else CompLibrary()

    def compile(
        self,
        layout: CpuLayout,
        hierarchical_id: str = "top",
        run_args: Optional[ExeRunArgs] = None,
        options: Optional[ResetOptions] = None,
    ) -> ExeSystem:
        if not isinstance(layout, CpuLayout):
            raise TypeError(f"Expected a CpuLayout, got {type(layout).__name__}.")
        logger.debug(f"--- Compiling layout '{hierarchical_id}' ({len(layout.comps)} component(s), {len(layout.wires)} wire(s)) ---")
        compilation = _LayoutCompilation(
            self, layout, hierarchical_id, run_args if run_args is not None else ExeRunArgs(), options
        )
        return compilation.run()


def compile_layout(
    layout: CpuLayout,
    library: Optional[CompLibrary] = None,
    strict: bool = False,
    options: Optional[ResetOptions] = None,
    run_args: Optional[ExeRunArgs] = None,
) -> ExeSystem:
    """
    The primary public API for turning a layout into a runnable system.

    Args:
        layout: The layout to compile. It is never modified.
        library: Component library; the full registry of built-in parts by default.
        strict: Raise instead of returning a system that carries error-level issues.
        options: Payload creation options (shared memory map, ROM image, initial
                 register values).
        run_args: Run arguments to share with the new system.

    Raises:
        CircuitBuildError: With `strict`, if any error-level issue was found, and
                           always for unexpected failures.
    """
    try:
        system = ExeSystemCompiler(library).compile(layout, run_args=run_args, options=options)
        if strict and system.has_errors:
            raise CompilationError(system.issues)
        return system

    except DiagnosableError as e:
        raise CircuitBuildError(e.get_diagnostic_report()) from e

    except Exception as e:
        report = format_diagnostic_report(
            error_type=f"An Unexpected Error Occurred ({type(e).__name__})",
            details=f"The layout compiler encountered an unexpected internal error: {str(e)}",
            suggestion="This may indicate a bug in CPUSim Core. Please review the traceback.",
            context={}
        )
        raise CircuitBuildError(report) from e


def compile_layout_file(
    path: Union[str, Path],
    library: Optional[CompLibrary] = None,
    strict: bool = False,
    options: Optional[ResetOptions] = None,
) -> ExeSystem:
    """Loads a persisted layout document and compiles it. Parsing errors raise `CircuitBuildError`."""
    try:
        layout = LayoutSerializer().load(path)
    except DiagnosableError as e:
        raise CircuitBuildError(e.get_diagnostic_report()) from e
    return compile_layout(layout, library=library, strict=strict, options=options)
