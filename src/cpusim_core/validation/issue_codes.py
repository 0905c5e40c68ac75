# src/cpusim_core/validation/issue_codes.py
import logging
from enum import Enum

logger = logging.getLogger(__name__)


class IssueCode(Enum):
    """
    Registry of compile-time and runtime issue codes and their message templates.
    Each enum member's value is a tuple: (code_str, message_template_str).
    """

    # --- Layout Structure Issues (LAYOUT_...) ---
    LAYOUT_DUP_COMP_ID = ("LAYOUT_DUP_COMP_ID", "Component id '{comp_id}' is declared {count} times; only the first declaration is compiled.")
    LAYOUT_DUP_WIRE_ID = ("LAYOUT_DUP_WIRE_ID", "Wire id '{wire_id}' is declared {count} times; only the first declaration is compiled.")

    # --- Component Definition Issues (COMP_...) ---
    COMP_DEF_UNKNOWN = ("COMP_DEF_UNKNOWN", "Component '{component_fqn}' uses unregistered definition '{def_id}'. Available definitions: {available_defs}.")
    COMP_BUILD_FAILED = ("COMP_BUILD_FAILED", "Component '{component_fqn}' (definition '{def_id}') could not be built: {error}")
    COMP_PORT_MULTI_NET = ("COMP_PORT_MULTI_NET", "Port '{port_id}' of component '{component_fqn}' is attached to nets '{first_net}' and '{second_net}'; only '{first_net}' is used.")

    # --- Wire Graph Issues (WIRE_...) ---
    WIRE_EDGE_INVALID = ("WIRE_EDGE_INVALID", "Wire '{wire_id}' node {node_id} has an edge to node index {edge}, which does not exist.")
    WIRE_EDGE_ONE_WAY = ("WIRE_EDGE_ONE_WAY", "Wire '{wire_id}' has an edge from node index {from_idx} to {to_idx} that is not mirrored in the other direction.")
    WIRE_GRAPH_DISCONNECTED = ("WIRE_GRAPH_DISCONNECTED", "Wire '{wire_id}' consists of {island_count} disconnected pieces; they are still compiled as a single net.")
    WIRE_DANGLING = ("WIRE_DANGLING", "Wire '{wire_id}' node {node_id} terminates at '{target}', which does not resolve to a component port.")
    WIRE_JOIN_DANGLING = ("WIRE_JOIN_DANGLING", "Wire '{wire_id}' node {node_id} joins wire '{target}', which does not exist.")

    # --- Net Classification Issues (NET_...) ---
    NET_NO_DRIVER = ("NET_NO_DRIVER", "Net '{net_id}' has no driving port; its readers will see the floating value {floating_value}.")
    NET_NO_READER = ("NET_NO_READER", "Net '{net_id}' has no reading port.")
    NET_MULTI_DRIVER = ("NET_MULTI_DRIVER", "Net '{net_id}' has {driver_count} drivers ({drivers}) but not all of them are tristate outputs.")
    NET_WIDTH_MISMATCH = ("NET_WIDTH_MISMATCH", "Net '{net_id}' connects ports of different widths: {port_widths}. Using width {width}.")

    # --- Scheduling Issues (SCHED_...) ---
    SCHED_COMB_LOOP = ("SCHED_COMB_LOOP", "Combinational loop through component(s) {loop_components} via net(s) {loop_nets}; these components are excluded from the execution order.")

    # --- Runtime Diagnostics (RUN_...) ---
    RUN_BUS_CONTENTION = ("RUN_BUS_CONTENTION", "Net '{net_id}' has {enabled_count} enabled drivers ({drivers}); its value is undefined for this tick.")
    RUN_COMP_FAULT = ("RUN_COMP_FAULT", "Component '{component_fqn}' phase '{phase_name}' failed: {error}")

    @property
    def code(self) -> str:
        return self.value[0]

    @property
    def template(self) -> str:
        return self.value[1]

    def format_message(self, **kwargs) -> str:
        """Formats the message template with provided keyword arguments."""
        try:
            return self.template.format(**kwargs)
        except KeyError as e:
            logger.error(f"Missing key {e} for formatting message template of {self.name} (code: {self.code}): '{self.template}'. Provided args: {kwargs}")
            return f"Error formatting message for {self.code}: Missing key {e}. Template: '{self.template}' Args: {kwargs}"
