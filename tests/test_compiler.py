# tests/test_compiler.py
import pytest

from cpusim_core import (
    CircuitBuildError, ExeSystemCompiler, LayoutSerializer, PortDir, ValidationIssueLevel,
    compile_layout, compile_layout_file,
)
from cpusim_core.components.elements import AluOp
from cpusim_core.execution import ExecutionEngine, ExeStep
from cpusim_core.layout import Comp, CompPort, ElRef, RefType, WireGraph, WireGraphNode
from cpusim_core.validation import LayoutValidator


def _levels(issues):
    return {issue.code: issue.level for issue in issues}


class TestComponentIndexing:

    def test_components_and_nets_keep_declaration_order(self, factory):
        factory.add('const', 'k', value=3)
        factory.add('port_out', 'o')
        factory.add('port_out', 'p')
        factory.wire(('k', 'out'), ('o', 'in'))
        system = factory.compile()

        assert [c.id for c in system.comps] == ['k', 'o', 'p']
        assert [c.fqn for c in system.comps] == ['top.k', 'top.o', 'top.p']
        assert system.lookup.comp_id_to_idx == {'k': 0, 'o': 1, 'p': 2}
        assert system.lookup.net_idx_to_wire_ids == [['w0']]
        assert system.find_comp('p').port('in').width == 32
        assert not system.find_comp('p').port('in').is_connected

    def test_duplicate_component_ids_compile_first_only(self, factory, codes):
        factory.add('const', 'k', value=1)
        factory.add('const', 'k', value=2)
        system = factory.compile()

        assert codes(system.issues) == ['LAYOUT_DUP_COMP_ID']
        assert system.has_errors
        assert len(system.comps) == 1
        assert system.find_comp('k').data.value == 1

    def test_unknown_definition_is_a_partial_failure(self, factory, codes):
        factory.add('const', 'k', value=6)
        factory.add('port_out', 'o')
        factory.add('port_out', 'p')
        factory.layout.add_comp(Comp(
            id='x', def_id='warp_drive', name='X', pos=(0, 0), size=(10, 10),
            ports=[CompPort(id='out', pos=(10, 5), name='out', type=PortDir.OUT)],
        ))
        factory.wire(('k', 'out'), ('o', 'in'))
        factory.wire(('x', 'out'), ('p', 'in'))
        system = factory.compile()

        assert codes(system.issues) == ['COMP_DEF_UNKNOWN', 'WIRE_DANGLING', 'NET_NO_DRIVER']
        assert system.issues[0].component_fqn == 'top.x'
        assert 'warp_drive' in system.issues[0].message
        assert not system.find_comp('x').valid

        engine = ExecutionEngine(system)
        engine.settle()
        assert system.port_value('o', 'in') == 6
        assert system.port_value('p', 'in') == 0

    def test_build_failure_is_reported_not_raised(self, factory, codes):
        factory.add('mux', 'm')
        factory.layout.get_comp('m').args = {'inputs': 1}
        system = factory.compile()
        assert codes(system.issues) == ['COMP_BUILD_FAILED']
        assert "'inputs' must be >= 2" in system.issues[0].message


class TestNetResolution:

    def test_dangling_endpoint_is_kept_unresolved(self, factory, codes):
        factory.add('const', 'k', value=1)
        factory.add('port_out', 'o')
        factory.wire(('k', 'out'), ('o', 'in'), ('o', 'nope'))
        system = factory.compile()

        assert codes(system.issues) == ['WIRE_DANGLING']
        assert _levels(system.issues)['WIRE_DANGLING'] == ValidationIssueLevel.WARNING
        net = system.find_net('w0')
        assert [ref.label for ref in net.unresolved] == ['o.nope']
        assert not net.unresolved[0].valid

        engine = ExecutionEngine(system)
        engine.settle()
        assert system.port_value('o', 'in') == 1

    def test_joined_wires_form_one_net(self, factory, codes):
        factory.add('const', 'k', value=12)
        factory.add('port_out', 'o')
        factory.wire(('k', 'out'))
        factory.layout.wires.append(WireGraph(id='w1', nodes=[
            WireGraphNode(id=0, pos=(50, 0), edges=[1], ref=ElRef(type=RefType.WIRE, id='w0', wire_node0_id=0)),
            WireGraphNode(id=1, pos=(90, 0), edges=[0], ref=ElRef(type=RefType.COMP_NODE, id='o', comp_node_id='in')),
        ]))
        system = factory.compile()

        assert codes(system.issues) == []
        assert len(system.nets) == 1
        assert system.find_net('w1') is system.find_net('w0')
        assert system.nets[0].wire_ids == ['w0', 'w1']

        engine = ExecutionEngine(system)
        engine.settle()
        assert system.port_value('o', 'in') == 12

    def test_join_to_missing_wire_is_reported(self, factory, codes):
        factory.add('const', 'k')
        factory.add('port_out', 'o')
        factory.wire(('k', 'out'))
        factory.layout.wires.append(WireGraph(id='w1', nodes=[
            WireGraphNode(id=0, pos=(0, 0), edges=[1], ref=ElRef(type=RefType.WIRE, id='w9', wire_node0_id=0)),
            WireGraphNode(id=1, pos=(9, 0), edges=[0], ref=ElRef(type=RefType.COMP_NODE, id='o', comp_node_id='in')),
        ]))
        system = factory.compile()

        assert codes(system.issues) == ['WIRE_JOIN_DANGLING', 'NET_NO_READER', 'NET_NO_DRIVER']
        assert len(system.nets) == 2

    def test_port_on_two_nets_uses_the_first(self, factory, codes):
        factory.add('const', 'k', value=4)
        factory.add('port_out', 'o')
        factory.add('port_out', 'p')
        factory.wire(('k', 'out'), ('o', 'in'))
        factory.wire(('k', 'out'), ('p', 'in'))
        system = factory.compile()

        assert codes(system.issues) == ['COMP_PORT_MULTI_NET', 'NET_NO_DRIVER']
        assert system.find_comp('k').port('out').net_idx == 0

    def test_net_type_collects_port_categories(self, factory):
        factory.add('pc', 'pc', width=16)
        factory.add('rom', 'rom', width=16, size='64 B')
        factory.wire(('pc', 'pc'), ('rom', 'addr'))
        system = factory.compile()
        net = system.find_net('w0')
        assert net.type == PortDir.ADDR
        assert net.width == 16


class TestDriverRules:

    def test_two_plain_drivers_are_an_error(self, factory):
        factory.add('const', 'a')
        factory.add('const', 'b')
        factory.add('port_out', 'o')
        factory.wire(('a', 'out'), ('b', 'out'), ('o', 'in'))
        system = factory.compile()

        issue = next(i for i in system.issues if i.code == 'NET_MULTI_DRIVER')
        assert issue.level == ValidationIssueLevel.ERROR
        assert issue.details['drivers'] == ['top.a.out', 'top.b.out']
        assert not system.find_net('w0').tristate

    def test_tristate_mixed_with_plain_driver_is_an_error(self, factory, codes):
        factory.add('input', 'a', tristate=True)
        factory.add('const', 'b')
        factory.add('port_out', 'o')
        factory.wire(('a', 'out'), ('b', 'out'), ('o', 'in'))
        assert codes(factory.compile().issues) == ['NET_MULTI_DRIVER']

    def test_net_without_driver_or_reader(self, factory, codes):
        factory.add('const', 'k')
        factory.add('port_out', 'o')
        factory.wire(('k', 'out'))
        factory.wire(('o', 'in'))
        system = factory.compile()

        assert codes(system.issues) == ['NET_NO_READER', 'NET_NO_DRIVER']
        assert _levels(system.issues) == {
            'NET_NO_READER': ValidationIssueLevel.INFO,
            'NET_NO_DRIVER': ValidationIssueLevel.WARNING,
        }
        assert not system.has_errors

    def test_width_mismatch_uses_the_widest(self, factory, codes):
        factory.add('input', 'i', width=8, value=0x1ff)
        factory.add('port_out', 'o', width=16)
        factory.wire(('i', 'out'), ('o', 'in'))
        system = factory.compile()

        assert codes(system.issues) == ['NET_WIDTH_MISMATCH']
        assert system.issues[0].details['port_widths'] == {'top.i.out': 8, 'top.o.in': 16}
        assert system.find_net('w0').width == 16


class TestScheduling:

    def test_dependencies_decide_order_not_declaration(self, factory):
        factory.add('alu', 'x')
        factory.add('port_out', 'o')
        factory.add('const', 'a', value=3)
        factory.add('const', 'b', value=5)
        factory.add('const', 'op', value=int(AluOp.ADD))
        factory.wire(('x', 'result'), ('o', 'in'))
        factory.wire(('a', 'out'), ('x', 'a'))
        factory.wire(('b', 'out'), ('x', 'b'))
        factory.wire(('op', 'out'), ('x', 'op'))
        system, engine = factory.engine()

        alu_step = system.execution_steps.index(ExeStep.for_phase(0, 0))
        for net_idx in (1, 2, 3):
            assert system.execution_steps.index(ExeStep.for_net(net_idx)) < alu_step
        assert system.execution_steps.index(ExeStep.for_net(0)) > alu_step

        engine.settle()
        assert system.port_value('o', 'in') == 8

    def test_compilation_is_deterministic(self, factory):
        factory.add('reg', 'r', width=8)
        factory.add('alu', 'alu', width=8)
        factory.add('const', 'one', value=1)
        factory.add('const', 'op')
        factory.wire(('r', 'q'), ('alu', 'a'))
        factory.wire(('one', 'out'), ('alu', 'b'))
        factory.wire(('op', 'out'), ('alu', 'op'))
        factory.wire(('alu', 'result'), ('r', 'd'))

        first, second = factory.compile(), factory.compile()
        assert first.execution_steps == second.execution_steps
        assert first.latch_steps == second.latch_steps
        assert first.lookup == second.lookup
        assert [c.data for c in first.comps] == [c.data for c in second.comps]

    def test_combinational_loop_is_reported_and_excluded(self, factory, codes):
        factory.add('tribuf', 't')
        factory.add('const', 'e', value=1)
        factory.wire(('t', 'out'), ('t', 'in'))
        factory.wire(('e', 'out'), ('t', 'en'))
        system = factory.compile()

        assert codes(system.issues) == ['SCHED_COMB_LOOP']
        issue = system.issues[0]
        assert issue.is_error
        assert issue.component_fqn == 'top.t'
        assert issue.details['loop_components'] == ['top.t']
        assert issue.details['loop_nets'] == ['w0']
        assert not system.find_comp('t').valid
        assert not system.find_net('w0').valid
        assert system.execution_steps == [ExeStep.for_phase(1, 0), ExeStep.for_net(1)]

    def test_strict_mode_raises_for_loops(self, factory):
        factory.add('tribuf', 't')
        factory.wire(('t', 'out'), ('t', 'in'))
        with pytest.raises(CircuitBuildError) as excinfo:
            factory.compile(strict=True)
        assert "Combinational Loop" in str(excinfo.value)
        assert "top.t" in str(excinfo.value)

    def test_register_breaks_feedback(self, factory, codes):
        factory.add('reg', 'r')
        factory.add('alu', 'alu')
        factory.add('const', 'op', value=int(AluOp.PASS_A))
        factory.wire(('r', 'q'), ('alu', 'a'), ('alu', 'b'))
        factory.wire(('op', 'out'), ('alu', 'op'))
        factory.wire(('alu', 'result'), ('r', 'd'))
        system = factory.compile(strict=True)
        assert 'SCHED_COMB_LOOP' not in codes(system.issues)


class TestLayoutValidator:

    def test_malformed_wire_graphs_are_warnings(self, library, codes):
        layout = LayoutSerializer().from_dict({})
        layout.wires.append(WireGraph(id='bad_edge', nodes=[WireGraphNode(id=0, pos=(0, 0), edges=[5])]))
        layout.wires.append(WireGraph(id='one_way', nodes=[
            WireGraphNode(id=0, pos=(0, 0), edges=[1]),
            WireGraphNode(id=1, pos=(1, 0), edges=[]),
        ]))
        layout.wires.append(WireGraph(id='split', nodes=[
            WireGraphNode(id=0, pos=(0, 0)),
            WireGraphNode(id=1, pos=(1, 0)),
        ]))
        issues = LayoutValidator(layout, library).validate()

        assert codes(issues) == ['WIRE_EDGE_INVALID', 'WIRE_EDGE_ONE_WAY', 'WIRE_GRAPH_DISCONNECTED']
        assert all(i.level == ValidationIssueLevel.WARNING for i in issues)
        assert issues[2].details['island_count'] == 2

    def test_duplicate_wire_ids(self, factory, codes):
        factory.add('const', 'k')
        factory.add('port_out', 'o')
        factory.wire(('k', 'out'), ('o', 'in'), wire_id='bus')
        factory.wire(('k', 'out'), ('o', 'in'), wire_id='bus')
        issues = LayoutValidator(factory.layout, factory.library).validate()
        assert codes(issues) == ['LAYOUT_DUP_WIRE_ID']

    def test_rejects_non_layouts(self, library):
        with pytest.raises(TypeError):
            LayoutValidator({'comps': []}, library)


class TestFacades:

    def test_compile_layout_wraps_unexpected_errors(self):
        with pytest.raises(CircuitBuildError, match="Unexpected Error"):
            compile_layout("not a layout")

    def test_strict_compile_returns_clean_system(self, factory):
        factory.add('const', 'k')
        factory.add('port_out', 'o')
        factory.wire(('k', 'out'), ('o', 'in'))
        system = factory.compile(strict=True)
        assert system.issues == []

    def test_compile_layout_file(self, factory, tmp_path):
        factory.add('const', 'k', value=9)
        factory.add('port_out', 'o')
        factory.wire(('k', 'out'), ('o', 'in'))
        path = LayoutSerializer().dump(factory.layout, tmp_path / "cpu.yaml")

        system = compile_layout_file(path, library=factory.library)
        ExecutionEngine(system).settle()
        assert system.port_value('o', 'in') == 9

    def test_compile_layout_file_reports_parse_errors(self, tmp_path):
        with pytest.raises(CircuitBuildError, match="YAML Parsing or File Error"):
            compile_layout_file(tmp_path / "missing.yaml")

    def test_compiler_rejects_non_layouts(self, library):
        with pytest.raises(TypeError, match="Expected a CpuLayout"):
            ExeSystemCompiler(library).compile({'comps': []})
