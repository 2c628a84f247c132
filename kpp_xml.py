import re
import xml.etree.ElementTree as ET

# Plain decimal literals only; "0,0;1,1;" style curves and hex ids stay strings
NUMBER_RE = re.compile(r'^[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?$')
INTEGER_RE = re.compile(r'^[-+]?\d+$')


def coerce_value(raw):
    """[Helper] Trim and turn numeric text into int/float, anything else stays str"""
    val = raw.strip()
    if not NUMBER_RE.match(val):
        return val
    if INTEGER_RE.match(val):
        return int(val)
    return float(val)


def raw_inner_markup(elem):
    """Inner content of an element as markup text (text + serialized children)"""
    parts = [elem.text or ""]
    for child in elem:
        # tostring() carries the child's tail along with it
        parts.append(ET.tostring(child, encoding='unicode'))
    return "".join(parts).strip()


def fold_element(elem, stop_nodes=(), raw_attributes=()):
    """
    [Algorithm] Fold an ElementTree element into plain dicts.

    Attributes become fields, child elements are keyed by tag (a repeated
    tag turns into a list, a single child stays a dict) and non-blank text
    lands under 'text'. Elements holding nothing but text fold to the
    coerced text itself. Stop nodes are not descended into: their inner
    markup is kept verbatim under 'text'. Attributes named in raw_attributes
    (identifiers such as 'name') are kept as the exact strings.
    """
    node = {
        key: val if key in raw_attributes else coerce_value(val)
        for key, val in elem.attrib.items()
    }

    if elem.tag in stop_nodes:
        inner = raw_inner_markup(elem)
        if inner:
            node['text'] = inner if len(elem) else coerce_value(inner)
        return node

    repeated = set()
    for child in elem:
        folded = fold_element(child, stop_nodes, raw_attributes)
        if child.tag in repeated:
            node[child.tag].append(folded)
        elif child.tag in node:
            node[child.tag] = [node[child.tag], folded]
            repeated.add(child.tag)
        else:
            node[child.tag] = folded

    text = (elem.text or "").strip()
    if text:
        if not node:
            return coerce_value(text)
        node['text'] = coerce_value(text)
    return node


def parse_markup(text, stop_nodes=(), raw_attributes=()):
    """
    Parse markup text into {root_tag: folded_root}.

    CDATA sections are resolved into text by ElementTree, so their content
    shows up under 'text'. Raises ET.ParseError on malformed markup.
    """
    # expat refuses an XML declaration that is not at the very start
    root = ET.fromstring(text.lstrip('\ufeff').strip())
    return {root.tag: fold_element(root, frozenset(stop_nodes), frozenset(raw_attributes))}


def as_list(value):
    """One-vs-many children: always hand back a list"""
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]
