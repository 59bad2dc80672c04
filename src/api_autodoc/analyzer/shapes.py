"""Shape abstraction over JavaScript syntax nodes.

Maps a literal expression to a plain Python structure that keeps its shape
but not its runtime value:

    {id: user.id, name, tags: ["a", b], ...rest}
    => {"id": "complex_expression", "name": "var:name",
        "tags": ["a", "var:b"], "...spread": "object"}
"""

from typing import Any

from tree_sitter import Node

TEMPLATE_STRING = "template_string"
COMPLEX_EXPRESSION = "complex_expression"
SPREAD_KEY = "...spread"
SPREAD_VALUE = "object"
VAR_PREFIX = "var:"

_ESCAPES = {
    "\\n": "\n",
    "\\t": "\t",
    "\\r": "\r",
    "\\b": "\b",
    "\\f": "\f",
    "\\v": "\v",
    "\\0": "\0",
}


def node_text(node: Node) -> str:
    return node.text.decode("utf-8", errors="replace")


# Wrappers that do not change the value of the wrapped expression
WRAPPER_TYPES = {"parenthesized_expression", "as_expression", "satisfies_expression", "non_null_expression"}


def unwrap(node: Node | None) -> Node | None:
    """Strip parentheses and TypeScript type assertions around an expression."""
    while node is not None and node.type in WRAPPER_TYPES:
        inner = [c for c in node.named_children if c.type != "comment"]
        if not inner:
            return None
        node = inner[0]
    return node


def string_value(node: Node) -> str:
    parts = []
    for child in node.named_children:
        if child.type == "string_fragment":
            parts.append(node_text(child))
        elif child.type == "escape_sequence":
            text = node_text(child)
            parts.append(_ESCAPES.get(text, text[1:]))
    return "".join(parts)


def number_value(node: Node) -> int | float | str:
    text = node_text(node).replace("_", "")
    try:
        return int(text, 0)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError:
        return text


def extract_literal_value(node: Node | None) -> Any:
    """Abstract a single expression; None for a missing node or null."""
    node = unwrap(node)
    if node is None:
        return None

    kind = node.type
    if kind == "string":
        return string_value(node)
    if kind == "number":
        return number_value(node)
    if kind == "true":
        return True
    if kind == "false":
        return False
    if kind == "null":
        return None
    if kind == "template_string":
        return TEMPLATE_STRING
    if kind in ("identifier", "undefined"):
        return VAR_PREFIX + node_text(node)
    return COMPLEX_EXPRESSION


def property_key(node: Node) -> str:
    if node.type == "string":
        return string_value(node)
    if node.type == "computed_property_name":
        inner = [c for c in node.named_children if c.type != "comment"]
        if inner and inner[0].type == "string":
            return string_value(inner[0])
        return node_text(node)
    return node_text(node)


def extract_object_structure(node: Node | None) -> Any:
    """Abstract an expression, recursing through object and array literals."""
    node = unwrap(node)
    if node is None:
        return None

    if node.type == "object":
        structure: dict[str, Any] = {}
        for prop in node.named_children:
            if prop.type == "pair":
                key = property_key(prop.child_by_field_name("key"))
                structure[key] = extract_object_structure(prop.child_by_field_name("value"))
            elif prop.type == "shorthand_property_identifier":
                structure[node_text(prop)] = VAR_PREFIX + node_text(prop)
            elif prop.type == "spread_element":
                structure[SPREAD_KEY] = SPREAD_VALUE
            elif prop.type == "method_definition":
                name = prop.child_by_field_name("name")
                if name is not None:
                    structure[property_key(name)] = COMPLEX_EXPRESSION
        return structure

    if node.type == "array":
        return [
            extract_object_structure(element)
            for element in node.named_children
            if element.type != "comment"
        ]

    return extract_literal_value(node)
