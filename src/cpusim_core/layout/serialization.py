# src/cpusim_core/layout/serialization.py
import logging
import re
import string
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import cerberus
import yaml

from .model import (
    Comp,
    CompPort,
    CpuLayout,
    ElRef,
    PORT_DIR_FLAG_NAMES,
    RefType,
    WireGraph,
    WireGraphNode,
    port_dir_from_names,
    port_dir_to_names,
)
from ..constants import MAX_PORT_WIDTH
from .exceptions import ParsingError, SchemaValidationError

logger = logging.getLogger(__name__)

LAYOUT_DOCUMENT_VERSION = 1

# Editor-chosen ids: letters, digits and underscores. Dots are reserved for
# hierarchical names (e.g. 'top.cpu.pc') and are therefore forbidden here.
ID_REGEX_FRAGMENT = r"[a-zA-Z0-9_]+"
ID_REGEX = f"^{ID_REGEX_FRAGMENT}$"
ALLOWED_ID_CHARS = set(string.ascii_letters + string.digits + "_")


class EnhancedValidator(cerberus.Validator):
    """Custom Cerberus validator enforcing the layout naming conventions."""
    def __init__(self, *args, **kwargs):
        super(EnhancedValidator, self).__init__(*args, **kwargs)
        self.rules['id_regex'] = {'schema': {'type': 'boolean'}}
        self.rules['unique_elements_by_key'] = {'schema': {'type': 'string'}}

    def _validate_id_regex(self, constraint: bool, field: str, value: Any):
        """
        Validates a value against the editor id pattern.
        The rule's arguments are validated against this schema:
        {'type': 'boolean'}
        """
        if not constraint: return
        if not isinstance(value, str):
            self._error(field, "must be a string to be validated by id_regex.")
            return

        if not re.match(ID_REGEX, value):
            invalid_chars = sorted(list(set(value) - ALLOWED_ID_CHARS))
            message = (
                f"Identifier '{value}' is invalid. Identifiers may only contain letters, numbers, "
                f"and underscores. This identifier contains the following forbidden character(s): {invalid_chars}"
            )
            self._error(field, message)

    def _validate_unique_elements_by_key(self, key_for_uniqueness: str, field: str, value: List[Dict]):
        """
        Validates that all dictionaries in a list have a unique value for a given key.
        The rule's arguments are validated against this schema:
        {'type': 'string'}
        """
        if not isinstance(value, list):
            return # Let the 'type: list' rule handle this.

        seen_keys = set()
        duplicates = []
        for item in value:
            if not isinstance(item, dict):
                continue # Let sub-schema validation handle this.

            item_key = item.get(key_for_uniqueness)
            if item_key is not None:
                if item_key in seen_keys:
                    duplicates.append(item_key)
                else:
                    seen_keys.add(item_key)

        if duplicates:
            unique_duplicates = sorted(list(set(map(str, duplicates))))
            self._error(field, f"Duplicate values found for key '{key_for_uniqueness}': {unique_duplicates}")


class LayoutSerializer:
    """
    Converts a `CpuLayout` to and from a plain, YAML-friendly document.

    The document carries everything needed to rebuild the layout exactly:
    components with their ports and args, wire graphs, selection state and the id
    counters. Incoming documents are checked against a strict Cerberus schema
    before any model object is created.
    """
    _id_rule = {"type": "string", "required": True, "empty": False, "id_regex": True}
    _vec2_rule = {"type": "list", "required": True, "minlength": 2, "maxlength": 2, "schema": {"type": "number"}}

    _ref_schema = {
        "type": {"type": "string", "required": True, "allowed": [t.value for t in RefType]},
        "id": _id_rule,
        "comp_node_id": {"type": "string", "required": False, "nullable": True, "id_regex": True},
        "wire_node0_id": {"type": "integer", "required": False, "nullable": True, "min": 0},
        "wire_node1_id": {"type": "integer", "required": False, "nullable": True, "min": 0},
    }

    _port_schema = {
        "id": _id_rule,
        "pos": _vec2_rule,
        "name": {"type": "string", "required": True},
        "type": {"type": "list", "required": True, "schema": {"type": "string", "allowed": list(PORT_DIR_FLAG_NAMES)}},
        "width": {"type": "integer", "required": False, "nullable": True, "min": 1, "max": MAX_PORT_WIDTH},
    }

    _comp_schema = {
        "id": _id_rule,
        "def_id": {"type": "string", "required": True, "empty": False},
        "name": {"type": "string", "required": True},
        "pos": _vec2_rule,
        "size": _vec2_rule,
        "ports": {"type": "list", "required": True, "unique_elements_by_key": "id", "schema": {"type": "dict", "schema": _port_schema}},
        "args": {"type": "dict", "required": False, "nullable": True},
    }

    _node_schema = {
        "id": {"type": "integer", "required": True, "min": 0},
        "pos": _vec2_rule,
        "edges": {"type": "list", "required": True, "schema": {"type": "integer", "min": 0}},
        "ref": {"type": "dict", "required": False, "nullable": True, "schema": _ref_schema},
    }

    _wire_schema = {
        "id": _id_rule,
        "nodes": {"type": "list", "required": True, "unique_elements_by_key": "id", "schema": {"type": "dict", "schema": _node_schema}},
    }

    _schema = {
        "layout_version": {"type": "integer", "required": False, "allowed": [LAYOUT_DOCUMENT_VERSION], "default": LAYOUT_DOCUMENT_VERSION},
        "next_comp_id": {"type": "integer", "required": False, "min": 0, "default": 0},
        "next_wire_id": {"type": "integer", "required": False, "min": 0, "default": 0},
        "selected": {"type": "list", "required": False, "default": [], "schema": {"type": "dict", "schema": _ref_schema}},
        "comps": {"type": "list", "required": False, "default": [], "unique_elements_by_key": "id", "schema": {"type": "dict", "schema": _comp_schema}},
        "wires": {"type": "list", "required": False, "default": [], "unique_elements_by_key": "id", "schema": {"type": "dict", "schema": _wire_schema}},
    }

    def __init__(self):
        self._validator = EnhancedValidator(self._schema)
        self._validator.allow_unknown = False
        logger.debug("LayoutSerializer initialized with strict structural validation rules.")

    # --- Model -> document ---

    def to_dict(self, layout: CpuLayout) -> Dict[str, Any]:
        """Produces the persisted document for a layout."""
        return {
            "layout_version": LAYOUT_DOCUMENT_VERSION,
            "next_comp_id": layout.next_comp_id,
            "next_wire_id": layout.next_wire_id,
            "selected": [self._ref_to_dict(r) for r in layout.selected],
            "comps": [self._comp_to_dict(c) for c in layout.comps],
            "wires": [self._wire_to_dict(w) for w in layout.wires],
        }

    def dumps(self, layout: CpuLayout) -> str:
        return yaml.safe_dump(self.to_dict(layout), sort_keys=False)

    def dump(self, layout: CpuLayout, path: Union[str, Path]) -> Path:
        target = Path(path)
        try:
            with target.open("w", encoding="utf-8") as f:
                f.write(self.dumps(layout))
        except OSError as e:
            raise ParsingError(details=f"Could not write layout document: {e}", file_path=target) from e
        logger.info(f"Saved layout with {len(layout.comps)} component(s) and {len(layout.wires)} wire(s) to {target}")
        return target

    @staticmethod
    def _vec(v) -> List[float]:
        return [v[0], v[1]]

    def _ref_to_dict(self, ref: ElRef) -> Dict[str, Any]:
        doc: Dict[str, Any] = {"type": ref.type.value, "id": ref.id}
        if ref.comp_node_id is not None:
            doc["comp_node_id"] = ref.comp_node_id
        if ref.wire_node0_id is not None:
            doc["wire_node0_id"] = ref.wire_node0_id
        if ref.wire_node1_id is not None:
            doc["wire_node1_id"] = ref.wire_node1_id
        return doc

    def _comp_to_dict(self, comp: Comp) -> Dict[str, Any]:
        doc = {
            "id": comp.id,
            "def_id": comp.def_id,
            "name": comp.name,
            "pos": self._vec(comp.pos),
            "size": self._vec(comp.size),
            "ports": [
                {
                    "id": p.id,
                    "pos": self._vec(p.pos),
                    "name": p.name,
                    "type": port_dir_to_names(p.type),
                    "width": p.width,
                }
                for p in comp.ports
            ],
        }
        if comp.args is not None:
            doc["args"] = comp.args
        return doc

    def _wire_to_dict(self, wire: WireGraph) -> Dict[str, Any]:
        nodes = []
        for node in wire.nodes:
            node_doc = {"id": node.id, "pos": self._vec(node.pos), "edges": list(node.edges)}
            if node.ref is not None:
                node_doc["ref"] = self._ref_to_dict(node.ref)
            nodes.append(node_doc)
        return {"id": wire.id, "nodes": nodes}

    # --- Document -> model ---

    def loads(self, text: str, source: Optional[Path] = None) -> CpuLayout:
        try:
            content = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ParsingError(details=f"Invalid YAML syntax: {e}", file_path=source) from e
        if content is None:
            raise ParsingError(details="The layout document is empty or contains no valid content.", file_path=source)
        return self.from_dict(content, source=source)

    def load(self, path: Union[str, Path]) -> CpuLayout:
        source = Path(path).resolve()
        if not source.is_file():
            raise ParsingError(details=f"Layout file not found at path: {source}", file_path=source)
        try:
            with source.open("r", encoding="utf-8") as f:
                text = f.read()
        except PermissionError as e:
            raise ParsingError(details=f"Permission denied when trying to read file: {e}", file_path=source) from e
        logger.info(f"Loading layout document: {source}")
        return self.loads(text, source=source)

    def from_dict(self, document: Dict[str, Any], source: Optional[Path] = None) -> CpuLayout:
        """Validates a persisted document and rebuilds the layout it describes."""
        if not isinstance(document, dict):
            raise ParsingError(details="The root of a layout document must be a dictionary (mapping).", file_path=source)
        if not self._validator.validate(document):
            raise SchemaValidationError(self._validator.errors, source)

        doc = self._validator.document
        layout = CpuLayout(
            selected=[self._ref_from_dict(r) for r in doc["selected"]],
            next_comp_id=doc["next_comp_id"],
            next_wire_id=doc["next_wire_id"],
            comps=[self._comp_from_dict(c) for c in doc["comps"]],
            wires=[self._wire_from_dict(w) for w in doc["wires"]],
        )
        logger.debug(f"Rebuilt layout with {len(layout.comps)} component(s) and {len(layout.wires)} wire(s).")
        return layout

    @staticmethod
    def _vec_from(v) -> tuple:
        return (v[0], v[1])

    def _ref_from_dict(self, doc: Dict[str, Any]) -> ElRef:
        return ElRef(
            type=RefType(doc["type"]),
            id=doc["id"],
            comp_node_id=doc.get("comp_node_id"),
            wire_node0_id=doc.get("wire_node0_id"),
            wire_node1_id=doc.get("wire_node1_id"),
        )

    def _comp_from_dict(self, doc: Dict[str, Any]) -> Comp:
        return Comp(
            id=doc["id"],
            def_id=doc["def_id"],
            name=doc["name"],
            pos=self._vec_from(doc["pos"]),
            size=self._vec_from(doc["size"]),
            ports=[
                CompPort(
                    id=p["id"],
                    pos=self._vec_from(p["pos"]),
                    name=p["name"],
                    type=port_dir_from_names(p["type"]),
                    width=p.get("width"),
                )
                for p in doc["ports"]
            ],
            args=doc.get("args"),
        )

    def _wire_from_dict(self, doc: Dict[str, Any]) -> WireGraph:
        return WireGraph(
            id=doc["id"],
            nodes=[
                WireGraphNode(
                    id=n["id"],
                    pos=self._vec_from(n["pos"]),
                    edges=list(n["edges"]),
                    ref=self._ref_from_dict(n["ref"]) if n.get("ref") else None,
                )
                for n in doc["nodes"]
            ],
        )


def layout_to_dict(layout: CpuLayout) -> Dict[str, Any]:
    return LayoutSerializer().to_dict(layout)


def layout_from_dict(document: Dict[str, Any]) -> CpuLayout:
    return LayoutSerializer().from_dict(document)
