"""
Generic tree helpers for parsed API bodies.

PrestaShop answers in several shapes depending on version and endpoint:
hydra collections, plain arrays, {"products": [...]} envelopes, or XML
converted to dicts. Everything here works on plain dict / list / scalar
trees so callers never care which one they got.
"""

import re
import xml.etree.ElementTree as ET
from typing import Any, Iterator, Optional

ATTRIBUTES_KEY = "@attributes"
TEXT_KEY = "#text"

_XML_ID_RE = re.compile(r"<id>\s*(?:<!\[CDATA\[)?\s*(\d+)")


def find_first_key(tree: Any, key: str) -> Any:
    """
    Depth-first search for the first mapping entry named `key`.

    A mapping's own key wins over its children; children are visited in
    order. Returns None when absent or when the value found is None.
    """
    if isinstance(tree, dict):
        if tree.get(key) is not None:
            return tree[key]
        for value in tree.values():
            found = find_first_key(value, key)
            if found is not None:
                return found
        return None

    if isinstance(tree, list):
        for value in tree:
            found = find_first_key(value, key)
            if found is not None:
                return found

    return None


def iter_mappings(tree: Any) -> Iterator[dict]:
    """Every mapping in the tree, parents before children."""
    if isinstance(tree, dict):
        yield tree
        for value in tree.values():
            yield from iter_mappings(value)
    elif isinstance(tree, list):
        for value in tree:
            yield from iter_mappings(value)


def to_int(value: Any) -> Optional[int]:
    """Coerce an id-like scalar ("42", 42, 42.0, {"#text": "42"}) to int."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, dict):
        return to_int(value.get(TEXT_KEY))
    try:
        return int(str(value).strip())
    except ValueError:
        try:
            as_float = float(str(value).strip())
        except ValueError:
            return None
        return int(as_float) if as_float.is_integer() else None


def find_id(tree: Any) -> Optional[int]:
    """First positive integer `id` anywhere in the tree."""
    if isinstance(tree, str):
        match = _XML_ID_RE.search(tree)
        return int(match.group(1)) if match else None

    found = to_int(find_first_key(tree, "id"))
    if found is None or found <= 0:
        return None
    return found


def text_value(value: Any) -> str:
    """
    Plain text out of a possibly multi-language field.

    Handles "text", {"#text": "text"}, {"language": [{"value": "text"}]}.
    """
    if value is None:
        return ""
    if isinstance(value, (str, int, float)):
        return str(value)
    for key in (TEXT_KEY, "value"):
        found = find_first_key(value, key)
        if isinstance(found, (str, int, float)):
            return str(found)
    return ""


# ===================
# XML CONVERSION
# ===================

def _local_name(tag: str) -> str:
    """Strip a {namespace} prefix from an element tag."""
    return tag.rsplit("}", 1)[-1] if "}" in tag else tag


def element_to_tree(element: ET.Element) -> Any:
    """
    Convert an element's content to dict/list/str.

    - leaf without attributes → its text ("" when empty)
    - attributes → {"@attributes": {...}} (+ "#text" for leaf text)
    - repeated child tags → list under that tag
    """
    children = list(element)
    attributes = {_local_name(k): v for k, v in element.attrib.items()}
    text = (element.text or "").strip()

    if not children and not attributes:
        return text

    node: dict[str, Any] = {}
    if attributes:
        node[ATTRIBUTES_KEY] = attributes

    for child in children:
        tag = _local_name(child.tag)
        value = element_to_tree(child)
        if tag in node:
            existing = node[tag]
            if isinstance(existing, list):
                existing.append(value)
            else:
                node[tag] = [existing, value]
        else:
            node[tag] = value

    if not children and text:
        node[TEXT_KEY] = text

    return node


def build_xml(payload: dict, root: str) -> bytes:
    """Serialize a flat or nested dict under a single root element."""
    root_el = ET.Element(root)
    _append_children(root_el, payload)
    return ET.tostring(root_el, encoding="utf-8", xml_declaration=True)


def _append_children(parent: ET.Element, data: dict) -> None:
    for key, value in data.items():
        child = ET.SubElement(parent, str(key))
        if isinstance(value, dict):
            _append_children(child, value)
        elif value is not None:
            child.text = str(value)
