"""
Path-pattern queries over ContentNode trees.

Patterns are evaluated relative to the node they are called on:

- ``a/b`` selects child ``b`` of child ``a``; names are globs (``*``, ``ns:*``)
- ``//x`` selects every ``x`` below the context node (XPath descendant-or-self)
- ``x[@prop]`` keeps nodes having ``prop``; ``x[@prop='v']`` keeps nodes where
  some value of ``prop`` equals ``v``; ``x[primaryType='t']`` filters on type
- a final ``@glob`` step selects properties instead of nodes, so ``//@p``
  selects ``p`` on the context node and on all its descendants
- ``.`` is the context node itself
"""

import re
from dataclasses import dataclass, field
from fnmatch import fnmatchcase
from typing import Iterator, List, Optional, Tuple

from models import BinaryValue, ContentNode, ContentProperty


_PREDICATE_PATTERN = re.compile(r'^(@?)([^=\s]+)\s*(?:=\s*([\'"])(.*)\3)?$', re.DOTALL)


@dataclass
class _Step:
    name: str
    descendant: bool = False
    is_property: bool = False
    predicates: List[Tuple[str, str, Optional[str]]] = field(default_factory=list)


def _split_segments(body: str) -> List[str]:
    """Split on '/' outside of brackets and quotes."""
    segments = []
    current = []
    depth = 0
    quote = None

    for char in body:
        if quote:
            if char == quote:
                quote = None
        elif char in ('"', "'") and depth > 0:
            quote = char
        elif char == '[':
            depth += 1
        elif char == ']':
            depth -= 1
        elif char == '/' and depth == 0:
            segments.append(''.join(current))
            current = []
            continue
        current.append(char)

    if quote or depth != 0:
        raise ValueError(f"Unbalanced brackets or quotes in pattern: {body}")

    segments.append(''.join(current))
    return segments


def _parse_step(segment: str, descendant: bool) -> _Step:
    if segment.startswith('@'):
        return _Step(name=segment[1:], descendant=descendant, is_property=True)

    bracket = segment.find('[')
    name = segment if bracket < 0 else segment[:bracket]
    if not name:
        raise ValueError(f"Missing node name in step: {segment}")

    step = _Step(name=name, descendant=descendant)
    rest = segment[bracket:] if bracket >= 0 else ''

    while rest:
        if not rest.startswith('['):
            raise ValueError(f"Unexpected text in step: {segment}")
        end = _find_closing_bracket(rest)
        predicate = rest[1:end].strip()
        match = _PREDICATE_PATTERN.match(predicate)
        if not match:
            raise ValueError(f"Invalid predicate: [{predicate}]")
        kind = 'property' if match.group(1) else 'attribute'
        step.predicates.append((kind, match.group(2), match.group(4)))
        rest = rest[end + 1:]

    return step


def _find_closing_bracket(text: str) -> int:
    quote = None
    for index, char in enumerate(text):
        if quote:
            if char == quote:
                quote = None
        elif char in ('"', "'"):
            quote = char
        elif char == ']':
            return index
    raise ValueError(f"Unclosed predicate: {text}")


def parse_pattern(pattern: str) -> List[_Step]:
    """
    Parse a path pattern into steps.

    Raises:
        ValueError: If the pattern is empty or malformed
    """
    if not pattern or not pattern.strip():
        raise ValueError("Empty query pattern")

    pattern = pattern.strip()
    descendant_next = False
    if pattern.startswith('//'):
        descendant_next = True
        body = pattern[2:]
    elif pattern.startswith('/'):
        body = pattern[1:]
    else:
        body = pattern

    steps = []
    for segment in _split_segments(body):
        if segment == '':
            if descendant_next:
                raise ValueError(f"Invalid '///' in pattern: {pattern}")
            descendant_next = True
            continue
        steps.append(_parse_step(segment, descendant_next))
        descendant_next = False

    if descendant_next or not steps:
        raise ValueError(f"Pattern must end with a step: {pattern}")

    for step in steps[:-1]:
        if step.is_property:
            raise ValueError(f"Property step must be the last step: {pattern}")

    return steps


def _self_and_descendants(node: ContentNode) -> Iterator[ContentNode]:
    yield node
    for child in node.nodes:
        yield from _self_and_descendants(child)


def _value_text(value) -> str:
    if isinstance(value, BinaryValue):
        return value.to_url()
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if hasattr(value, 'isoformat'):
        return value.isoformat()
    return str(value)


def _matches_predicates(node: ContentNode, step: _Step) -> bool:
    for kind, key, expected in step.predicates:
        if kind == 'property':
            prop = node.get_property(key)
            if prop is None:
                return False
            if expected is not None and expected not in [_value_text(v) for v in prop.values]:
                return False
        elif key == 'primaryType':
            if expected is None or not fnmatchcase(node.primary_type, expected):
                return False
        elif key == 'name':
            if expected is None or not fnmatchcase(node.name, expected):
                return False
        else:
            raise ValueError(f"Unsupported predicate attribute: {key}")
    return True


def _apply_node_step(contexts: List[ContentNode], step: _Step) -> List[ContentNode]:
    selected = []
    seen = set()

    for context in contexts:
        parents = _self_and_descendants(context) if step.descendant else [context]
        for parent in parents:
            if step.name == '.':
                candidates = [parent]
            else:
                candidates = [c for c in parent.nodes if fnmatchcase(c.name, step.name)]
            for candidate in candidates:
                if id(candidate) in seen or not _matches_predicates(candidate, step):
                    continue
                seen.add(id(candidate))
                selected.append(candidate)

    return selected


def query_nodes(root: ContentNode, pattern: str) -> List[ContentNode]:
    """
    Return nodes matching a pattern, in document order.

    Args:
        root: Context node
        pattern: Path pattern whose last step selects nodes

    Returns:
        Matching nodes without duplicates
    """
    steps = parse_pattern(pattern)
    if steps[-1].is_property:
        raise ValueError(f"Pattern selects properties, not nodes: {pattern}")

    contexts = [root]
    for step in steps:
        contexts = _apply_node_step(contexts, step)
    return contexts


def query_properties(root: ContentNode, pattern: str) -> List[ContentProperty]:
    """
    Return properties matching a pattern whose last step is '@glob'.

    Args:
        root: Context node
        pattern: Path pattern, e.g. '//@sys:docbase'

    Returns:
        Matching properties in document order
    """
    steps = parse_pattern(pattern)
    prop_step = steps[-1]
    if not prop_step.is_property:
        raise ValueError(f"Pattern does not select properties: {pattern}")

    contexts = [root]
    for step in steps[:-1]:
        contexts = _apply_node_step(contexts, step)

    selected = []
    seen = set()
    for context in contexts:
        holders = _self_and_descendants(context) if prop_step.descendant else [context]
        for holder in holders:
            for prop in holder.properties:
                if id(prop) not in seen and fnmatchcase(prop.name, prop_step.name):
                    seen.add(id(prop))
                    selected.append(prop)
    return selected


__all__ = ['parse_pattern', 'query_nodes', 'query_properties']
