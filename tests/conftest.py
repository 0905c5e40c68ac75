# tests/conftest.py
import pytest

from cpusim_core import CpuLayout, CompLibrary, ExecutionEngine, compile_layout


class LayoutFactory:
    """
    Test helper that builds layouts programmatically.

    `add` places a component created by the library and returns its id; `wire`
    connects `(comp_id, port_id)` endpoints with a new wire graph.
    """

    def __init__(self, library: CompLibrary):
        self.library = library
        self.layout = CpuLayout()

    def add(self, def_id: str, comp_id: str = None, **args) -> str:
        comp_id = comp_id or self.layout.new_comp_id()
        self.layout.add_comp(self.library.create_comp(def_id, comp_id, args=args or None))
        return comp_id

    def wire(self, *endpoints, wire_id: str = None) -> str:
        return self.layout.add_wire(list(endpoints), wire_id=wire_id).id

    def compile(self, **kwargs):
        return compile_layout(self.layout, library=self.library, **kwargs)

    def engine(self, **kwargs):
        system = self.compile(**kwargs)
        return system, ExecutionEngine(system)


@pytest.fixture
def library():
    return CompLibrary()


@pytest.fixture
def factory(library):
    return LayoutFactory(library)


def issue_codes(issues):
    return [issue.code for issue in issues]


@pytest.fixture
def codes():
    """Returns a helper mapping a list of issues to their codes."""
    return issue_codes
