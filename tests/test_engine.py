# tests/test_engine.py
import pytest

from cpusim_core import ExecutionEngine, RunConfig, SimulationRunError, run_simulation
from cpusim_core.components import ResetOptions
from cpusim_core.components.elements import AluOp
from cpusim_core.execution import ExeStep


@pytest.fixture
def bus_factory(factory):
    """Two tristate inputs sharing one net read by an output pin."""
    factory.add('input', 'a', value=5, width=8, tristate=True)
    factory.add('input', 'b', value=9, width=8, tristate=True, enabled=False)
    factory.add('port_out', 'o')
    factory.wire(('a', 'out'), ('b', 'out'), ('o', 'in'))
    return factory


@pytest.fixture
def register_factory(factory):
    factory.add('input', 'i', value=11, width=16)
    factory.add('reg', 'r', width=16)
    factory.add('port_out', 'o')
    factory.wire(('i', 'out'), ('r', 'd'))
    factory.wire(('r', 'q'), ('o', 'in'))
    return factory


@pytest.fixture
def counter_factory(factory):
    """An 8-bit register incremented by an ALU every tick."""
    factory.add('reg', 'r', width=8)
    factory.add('alu', 'alu', width=8)
    factory.add('const', 'one', value=1)
    factory.add('const', 'op', value=int(AluOp.ADD))
    factory.add('port_out', 'o')
    factory.wire(('r', 'q'), ('alu', 'a'), ('o', 'in'))
    factory.wire(('one', 'out'), ('alu', 'b'))
    factory.wire(('op', 'out'), ('alu', 'op'))
    factory.wire(('alu', 'result'), ('r', 'd'))
    return factory


class TestTristateBus:

    def test_single_enabled_driver_sets_the_net(self, bus_factory):
        system, engine = bus_factory.engine()
        assert not system.has_errors
        net = system.find_net('w0')
        assert net.tristate

        engine.settle()
        assert system.port_value('o', 'in') == 5
        assert net.enabled_count == 1

        system.find_comp('a').data.enabled = False
        system.find_comp('b').data.enabled = True
        engine.tick()
        engine.settle()
        assert system.port_value('o', 'in') == 9
        assert system.diagnostics == []

    def test_no_enabled_driver_floats(self, bus_factory):
        system, engine = bus_factory.engine()
        system.find_comp('a').data.enabled = False
        engine.settle()
        assert system.find_net('w0').enabled_count == 0
        assert system.port_value('o', 'in') == 0
        assert system.diagnostics == []

    def test_two_enabled_drivers_report_contention(self, bus_factory, codes):
        system, engine = bus_factory.engine()
        system.find_comp('b').data.enabled = True
        engine.settle()

        assert codes(system.diagnostics) == ['RUN_BUS_CONTENTION']
        diagnostic = system.diagnostics[0]
        assert diagnostic.is_error
        assert diagnostic.net_id == 'w0'
        assert diagnostic.tick == 0
        assert diagnostic.details['drivers'] == ['top.a.out', 'top.b.out']
        assert system.port_value('o', 'in') == 0
        assert not engine.halted

    def test_contention_halts_when_configured(self, bus_factory):
        system = bus_factory.compile()
        system.find_comp('b').data.enabled = True

        result = run_simulation(system, config={'max_ticks': 10, 'halt_on_error': True})
        assert result.ticks_run == 1
        assert result.tick_count == 1
        assert result.halted
        assert result.has_errors
        assert [d.code for d in result.diagnostics] == ['RUN_BUS_CONTENTION']


class TestTickSemantics:

    def test_register_output_holds_until_latch(self, register_factory):
        system, engine = register_factory.engine()

        for value in (11, 12, 13):
            system.find_comp('i').data.value = value
            engine.rewind()
            engine.settle()
            assert system.port_value('o', 'in') == 0
            assert system.port_value('r', 'd') == value

        engine.latch()
        assert engine.tick_count == 1
        assert system.find_comp('r').data.value == 13
        engine.settle()
        assert system.port_value('o', 'in') == 13

    def test_step_order(self, register_factory):
        system = register_factory.compile()
        assert system.execution_steps == [
            ExeStep.for_phase(0, 0),
            ExeStep.for_phase(1, 0),
            ExeStep.for_net(0),
            ExeStep.for_net(1),
        ]
        assert system.latch_steps == [ExeStep.for_phase(1, 1)]

    def test_step_once_pauses_inside_a_tick(self, register_factory):
        system, engine = register_factory.engine()

        assert engine.step_once()
        assert system.port_value('i', 'out') == 11
        assert system.port_value('r', 'd') == 0
        assert engine.step_once() and engine.step_once()
        assert system.port_value('r', 'd') == 11
        assert engine.step_once()
        assert engine.at_latch_boundary
        assert not engine.step_once()
        assert engine.cursor == 4

        engine.latch()
        assert engine.cursor == 0
        assert not engine.at_latch_boundary

    def test_partially_stepped_tick_is_completed_by_tick(self, register_factory):
        system, engine = register_factory.engine()
        engine.step_once()
        assert engine.tick()
        assert system.find_comp('r').data.value == 11
        assert engine.tick_count == 1

    def test_latch_effects_are_not_visible_in_the_same_tick(self, counter_factory):
        system, engine = counter_factory.engine()
        engine.settle()
        assert system.port_value('alu', 'result') == 1
        engine.latch()
        assert system.port_value('o', 'in') == 0
        assert system.find_comp('r').data.value == 1

    def test_counter_runs_for_requested_ticks(self, counter_factory):
        system, engine = counter_factory.engine()
        assert engine.run(3) == 3
        assert system.find_comp('r').data.value == 3
        engine.settle()
        assert system.port_value('o', 'in') == 3

    def test_counter_wraps_at_its_width(self, counter_factory):
        counter_factory.layout.get_comp('r').args['reset_value'] = 254
        system, engine = counter_factory.engine()
        engine.run(3)
        assert system.find_comp('r').data.value == 1

    def test_run_rejects_negative_tick_count(self, register_factory):
        _, engine = register_factory.engine()
        with pytest.raises(ValueError, match="non-negative"):
            engine.run(-1)


class TestHaltAndReset:

    def test_halt_blocks_tick_but_not_step(self, counter_factory):
        system, engine = counter_factory.engine()
        engine.halt()
        assert engine.halted
        assert not engine.tick()
        assert engine.tick_count == 0

        assert engine.step()
        assert engine.tick_count == 1
        assert engine.run(3) == 0

        engine.resume()
        assert engine.run(3) == 3
        assert engine.tick_count == 4
        assert system.find_comp('r').data.value == 4

    def test_reset_restores_initial_state(self, counter_factory):
        system, engine = counter_factory.engine()
        engine.run(5)
        engine.step_once()
        engine.reset()

        assert engine.tick_count == 0
        assert engine.cursor == 0
        assert system.find_comp('r').data.value == 0
        assert all(port.value == 0 for comp in system.comps for port in comp.ports)
        assert all(net.value == 0 for net in system.nets)

    def test_reset_clears_diagnostics_and_restores_tristate_enables(self, bus_factory):
        system, engine = bus_factory.engine()
        system.find_comp('b').data.enabled = True
        engine.settle()
        assert system.diagnostics

        engine.reset()
        assert system.diagnostics == []
        assert system.find_comp('b').data.enabled is False
        assert system.find_comp('a').port('out').io_enabled is False

    def test_reset_applies_register_values(self, register_factory):
        system, engine = register_factory.engine()
        engine.reset(ResetOptions(register_values={'top.r': 7, 'top.i': 2}))
        engine.settle()
        assert system.port_value('o', 'in') == 7
        assert system.port_value('r', 'd') == 2

    def test_reset_skips_components_that_failed_to_build(self, factory, codes):
        factory.add('const', 'bad')
        factory.layout.get_comp('bad').args = {'value': 'abc'}
        factory.add('const', 'k', value=1)
        factory.add('port_out', 'o')
        factory.wire(('k', 'out'), ('o', 'in'))
        system, engine = factory.engine()
        assert codes(system.issues) == ['COMP_BUILD_FAILED']

        engine.run(2)
        engine.reset()
        assert engine.tick_count == 0
        engine.settle()
        assert system.port_value('o', 'in') == 1

    def test_register_values_at_compile_time(self, register_factory):
        system, engine = register_factory.engine(options=ResetOptions(register_values={'top.r': 42}))
        engine.settle()
        assert system.port_value('o', 'in') == 42


class TestWidths:

    @pytest.mark.parametrize("width", [1, 7, 8, 16, 31, 32, 33, 63, 64])
    def test_values_are_masked_to_port_width(self, factory, width):
        factory.add('input', 'i', value=-1, width=width)
        factory.add('port_out', 'o')
        factory.wire(('i', 'out'), ('o', 'in'))
        system, engine = factory.engine()

        engine.settle()
        assert system.find_net('w0').width == width
        assert system.find_comp('o').port('in').width == width
        assert system.port_value('o', 'in') == (1 << width) - 1

    def test_inherited_width_defaults_to_32(self, factory):
        factory.add('const', 'k', value=1 << 40)
        factory.add('port_out', 'o')
        factory.wire(('k', 'out'), ('o', 'in'))
        system, engine = factory.engine()
        engine.settle()
        assert system.find_net('w0').width == 32
        assert system.port_value('o', 'in') == 0

    def test_wider_than_64_bits_is_a_build_failure(self, factory, codes):
        factory.add('input', 'i')
        factory.layout.get_comp('i').args = {'width': 65}
        system = factory.compile()
        assert codes(system.issues) == ['COMP_BUILD_FAILED']
        assert not system.find_comp('i').valid


class TestRunSimulation:

    def test_default_config_runs_one_tick(self, counter_factory):
        system = counter_factory.compile()
        result = run_simulation(system)
        assert (result.ticks_run, result.tick_count, result.halted) == (1, 1, False)
        assert result.diagnostics == ()

    def test_max_ticks_overrides_config(self, counter_factory):
        system = counter_factory.compile()
        result = run_simulation(system, max_ticks=4, config=RunConfig(max_ticks=100))
        assert result.ticks_run == 4
        assert system.find_comp('r').data.value == 4

    def test_existing_engine_is_continued(self, counter_factory):
        system, engine = counter_factory.engine()
        engine.step_once()
        run_simulation(system, max_ticks=2, engine=engine)
        assert engine.tick_count == 2

    def test_engine_for_another_system_is_rejected(self, counter_factory):
        system = counter_factory.compile()
        other = ExecutionEngine(counter_factory.compile())
        with pytest.raises(SimulationRunError, match="different execution system"):
            run_simulation(system, engine=other)

    def test_strict_run_refuses_compile_errors(self, factory):
        factory.add('const', 'a', value=1)
        factory.add('const', 'b', value=2)
        factory.add('port_out', 'o')
        factory.wire(('a', 'out'), ('b', 'out'), ('o', 'in'))
        system = factory.compile()
        assert system.has_errors

        with pytest.raises(SimulationRunError) as excinfo:
            run_simulation(system, max_ticks=1, strict=True)
        assert "Layout Compilation Error" in str(excinfo.value)
        assert "NET_MULTI_DRIVER" in str(excinfo.value)

    def test_localized_compile_errors_do_not_stop_the_rest(self, factory, codes):
        factory.add('const', 'bad')
        factory.layout.get_comp('bad').args = {'value': 'abc'}
        factory.add('input', 'i', value=3, width=8)
        factory.add('reg', 'r', width=8)
        factory.wire(('i', 'out'), ('r', 'd'))
        system = factory.compile()
        assert codes(system.issues) == ['COMP_BUILD_FAILED']
        assert system.has_errors

        result = run_simulation(system, max_ticks=2)
        assert result.ticks_run == 2
        assert system.find_comp('r').data.value == 3

    def test_invalid_run_config_is_reported(self, counter_factory):
        system = counter_factory.compile()
        with pytest.raises(SimulationRunError, match="max_ticks"):
            run_simulation(system, config={'max_ticks': -2})
