"""Tag-injection directives of the form 'ns:tags=a,b,c'."""

import logging
from typing import Iterable, List, Optional, Tuple

from models import ContentNode, PropertyType

logger = logging.getLogger('content_exim.content.tags')


def parse_tag_directive(directive: str) -> Optional[Tuple[str, List[str]]]:
    """
    Parse one 'name=v1,v2' directive.

    Returns:
        (name, values), or None when the name or the values are blank
    """
    name, sep, raw_values = directive.partition('=')
    name = name.strip()
    values = [value.strip() for value in raw_values.split(',') if value.strip()]

    if not sep or not name or not values:
        return None
    return name, values


def split_tag_directives(text: Optional[str]) -> List[str]:
    """Split a ';'-separated directive list, dropping blanks."""
    if not text:
        return []
    return [part.strip() for part in text.split(';') if part.strip()]


def apply_tags(node: ContentNode, directives: Iterable[str]) -> bool:
    """
    Set a multi-valued STRING property on the node for every valid directive.

    Malformed directives are logged and skipped.

    Returns:
        True if any property was set
    """
    updated = False

    for directive in directives:
        parsed = parse_tag_directive(directive)
        if parsed is None:
            logger.warning(f"Invalid content tag info: {directive}")
            continue

        name, values = parsed
        node.set_property(name, PropertyType.STRING, values, multiple=True)
        updated = True

    return updated


__all__ = ['parse_tag_directive', 'split_tag_directives', 'apply_tags']
