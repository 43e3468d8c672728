"""Mapping of store nodes into ContentNode snapshots and binding snapshots back."""

import copy
import logging

from content.item_filter import ItemFilter
from models import ContentNode, ContentProperty

logger = logging.getLogger('content_exim.store.content_mapper')


def _child_path(parent_path: str, name: str) -> str:
    return f"{parent_path}/{name}" if parent_path else name


def map_node(source: ContentNode, item_filter: ItemFilter, path: str = '') -> ContentNode:
    """
    Build a detached snapshot of a store node, keeping only what the filter accepts.

    Args:
        source: Store node (variant) to map
        item_filter: Filter consulted with paths relative to the source
        path: Relative path of source (used while recursing)

    Returns:
        New ContentNode tree sharing nothing with the store
    """
    target = ContentNode(
        name=source.name,
        primary_type=source.primary_type,
        mixin_types=list(source.mixin_types)
    )

    for prop in source.properties:
        if item_filter.accept_property(_child_path(path, prop.name)):
            target.properties.append(copy.deepcopy(prop))

    for child in source.nodes:
        child_path = _child_path(path, child.name)
        if item_filter.accept_node(child_path):
            target.nodes.append(map_node(child, item_filter, child_path))

    return target


def _filtered_copy(source: ContentNode, item_filter: ItemFilter, path: str) -> ContentNode:
    return map_node(source, item_filter, path)


def bind_node(target: ContentNode, source: ContentNode, item_filter: ItemFilter, path: str = '') -> None:
    """
    Apply a snapshot onto a store node in place.

    Properties and child nodes accepted by the filter are replaced by the
    snapshot's; anything the filter rejects is left untouched on the target
    and never copied from the snapshot.

    Args:
        target: Editable store node
        source: Snapshot tree
        item_filter: Filter consulted with paths relative to the item root
        path: Relative path of target (used while recursing)
    """
    for mixin in source.mixin_types:
        target.add_mixin(mixin)

    kept = [
        prop for prop in target.properties
        if not item_filter.accept_property(_child_path(path, prop.name))
    ]
    kept_names = {prop.name for prop in kept}
    bound = [
        copy.deepcopy(prop) for prop in source.properties
        if item_filter.accept_property(_child_path(path, prop.name)) and prop.name not in kept_names
    ]
    target.properties = kept + bound

    target.nodes = [
        child for child in target.nodes
        if not item_filter.accept_node(_child_path(path, child.name))
    ]
    for child in source.nodes:
        child_path = _child_path(path, child.name)
        if item_filter.accept_node(child_path):
            target.nodes.append(_filtered_copy(child, item_filter, child_path))

    logger.debug(
        f"Bound {len(bound)} properties onto {target.name or '/'} "
        f"({len(kept)} store-managed properties kept)"
    )


__all__ = ['map_node', 'bind_node']
