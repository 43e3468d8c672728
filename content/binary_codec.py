"""
Inline or externalized storage of binary property values.

Values up to the threshold stay inline as data URLs. Larger values are written
under the bundle's attachment directory and replaced by a bundle-relative
locator; import reads them back relative to the bundle location.
"""

import logging
import mimetypes
import re
from pathlib import Path
from typing import List, Set, Union
from urllib.parse import unquote, urlparse
from urllib.request import url2pathname

from models import (
    BINARY_ATTACHMENT_REL_PATH,
    DEFAULT_DATA_URL_SIZE_THRESHOLD,
    BinaryValue,
    ContentNode,
    PropertyType,
)

logger = logging.getLogger('content_exim.content.binary_codec')

_UNSAFE_CHARS = re.compile(r'[^A-Za-z0-9._-]')


class BinaryCodecError(ValueError):
    """Raised when a binary locator cannot be resolved or read."""
    pass


def _safe_segment(segment: str) -> str:
    return _UNSAFE_CHARS.sub('_', segment) or '_'


class BinaryCodec:
    """Encodes binary values inline or as bundle attachments, and back."""

    def __init__(self, threshold: int = DEFAULT_DATA_URL_SIZE_THRESHOLD):
        """
        Initialize the codec.

        Args:
            threshold: Largest byte length kept inline
        """
        if threshold < 0:
            raise ValueError("threshold must be non-negative")
        self.threshold = threshold

    def should_inline(self, value: BinaryValue) -> bool:
        return value.is_inline and value.size <= self.threshold

    def encode(self, value: BinaryValue, bundle_dir: Union[str, Path], locator: str) -> BinaryValue:
        """
        Encode one value for a bundle.

        Args:
            value: Value to encode
            bundle_dir: Bundle root directory
            locator: Bundle-relative path used when the value is externalized

        Returns:
            The value itself when inline-sized, otherwise an external value
        """
        if value.is_external or self.should_inline(value):
            return value

        target = self.resolve_locator(locator, bundle_dir)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(value.data)
        logger.debug(f"Externalized {value.size} bytes to {locator}")
        return BinaryValue(locator=locator, media_type=value.media_type)

    def decode(self, value: BinaryValue, bundle_dir: Union[str, Path]) -> BinaryValue:
        """Load an external value's bytes from the bundle; inline values pass through."""
        if value.is_inline:
            return value

        source = self.resolve_locator(value.locator, bundle_dir)
        try:
            data = source.read_bytes()
        except OSError as e:
            raise BinaryCodecError(f"Cannot read binary attachment {value.locator}: {e}") from e
        return BinaryValue(data=data, media_type=value.media_type)

    @staticmethod
    def resolve_locator(locator: str, bundle_dir: Union[str, Path]) -> Path:
        """
        Turn a locator into a file path.

        'file:' URLs are absolute; anything else is relative to the bundle and
        must stay inside it.
        """
        if locator.startswith('file:'):
            return Path(url2pathname(urlparse(locator).path))

        base = Path(bundle_dir).resolve()
        path = (base / unquote(locator)).resolve()
        if base != path and base not in path.parents:
            raise BinaryCodecError(f"Binary locator escapes the bundle: {locator}")
        return path

    def externalize(self, node: ContentNode, bundle_dir: Union[str, Path], item_rel_path: str) -> int:
        """
        Externalize every oversized binary value in a tree.

        Args:
            node: Tree to rewrite in place
            bundle_dir: Bundle root directory
            item_rel_path: Item path relative to the store root, used in file names

        Returns:
            Number of values written as attachments
        """
        count = 0
        item_segments = [_safe_segment(s) for s in item_rel_path.split('/') if s]
        used = set()

        for rel_path, current in node.walk():
            node_segments = [_safe_segment(s) for s in rel_path.split('/') if s]
            for prop in current.properties:
                if prop.type is not PropertyType.BINARY:
                    continue
                for index, value in enumerate(prop.values):
                    if value.is_external or self.should_inline(value):
                        continue
                    local_name = _safe_segment(prop.name.split(':')[-1])
                    if len(prop.values) > 1:
                        local_name = f"{local_name}-{index + 1}"
                    extension = mimetypes.guess_extension(value.media_type) or '.bin'
                    locator = self._unique_locator(
                        [BINARY_ATTACHMENT_REL_PATH] + item_segments + node_segments, local_name, extension, used
                    )
                    prop.values[index] = self.encode(value, bundle_dir, locator)
                    count += 1

        return count

    @staticmethod
    def _unique_locator(dir_segments: List[str], local_name: str, extension: str, used: Set[str]) -> str:
        """Locator not yet taken in this tree; properties sharing a local name get a numeric suffix."""
        locator = '/'.join(dir_segments + [local_name + extension])
        suffix = 1
        while locator in used:
            suffix += 1
            locator = '/'.join(dir_segments + [f"{local_name}_{suffix}{extension}"])
        used.add(locator)
        return locator

    def rehydrate(self, node: ContentNode, bundle_dir: Union[str, Path]) -> int:
        """
        Replace every external binary value in a tree with its bytes.

        Returns:
            Number of values loaded from the bundle
        """
        count = 0
        for _, current in node.walk():
            for prop in current.properties:
                if prop.type is not PropertyType.BINARY:
                    continue
                for index, value in enumerate(prop.values):
                    if value.is_external:
                        prop.values[index] = self.decode(value, bundle_dir)
                        count += 1
        return count


__all__ = ['BinaryCodec', 'BinaryCodecError']
