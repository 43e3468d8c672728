"""
JSON and XML serialization of ContentNode trees.

Both encodings carry the declared property type and the multiple flag
independently of the values, so empty properties keep their type.
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Union

from lxml import etree

from models import ContentNode, ContentProperty, PropertyType

logger = logging.getLogger('content_exim.content.serializers')


class ContentSerializationError(ValueError):
    """Raised when a snapshot cannot be parsed into a ContentNode tree."""
    pass


class ContentSerializer(ABC):
    """Reads and writes one ContentNode tree per document."""

    file_extension = ''

    @abstractmethod
    def dumps(self, node: ContentNode) -> str:
        """Serialize a tree to text."""
        pass

    @abstractmethod
    def loads(self, text: Union[str, bytes]) -> ContentNode:
        """Parse text into a tree."""
        pass

    def write(self, node: ContentNode, file_path: Union[str, Path]) -> Path:
        """
        Serialize a tree into a file, creating parent directories.

        Args:
            node: Tree to write
            file_path: Target file

        Returns:
            The written path
        """
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.dumps(node), encoding='utf-8')
        return path

    def read(self, file_path: Union[str, Path]) -> ContentNode:
        """Parse a tree from a file."""
        path = Path(file_path)
        try:
            return self.loads(path.read_bytes())
        except ContentSerializationError as e:
            raise ContentSerializationError(f"{path}: {e}") from e


class JsonContentSerializer(ContentSerializer):
    """JSON encoding of ContentNode trees."""

    file_extension = '.json'

    def __init__(self, indent: int = 2):
        self.indent = indent

    def dumps(self, node: ContentNode) -> str:
        return json.dumps(node.to_dict(), indent=self.indent, ensure_ascii=False)

    def loads(self, text: Union[str, bytes]) -> ContentNode:
        try:
            data = json.loads(text)
        except ValueError as e:
            raise ContentSerializationError(f"Invalid JSON: {e}") from e

        if not isinstance(data, dict):
            raise ContentSerializationError("JSON snapshot must contain an object")

        try:
            return ContentNode.from_dict(data)
        except (KeyError, TypeError, ValueError, ArithmeticError) as e:
            raise ContentSerializationError(f"Invalid content node: {e}") from e


class XmlContentSerializer(ContentSerializer):
    """
    XML encoding of ContentNode trees.

    Layout::

        <node name="..." primaryType="...">
          <mixin>mix:referenceable</mixin>
          <property name="..." type="STRING" multiple="false">
            <value>...</value>
          </property>
          <node ...>...</node>
        </node>
    """

    file_extension = '.xml'

    def __init__(self, pretty_print: bool = True):
        self.pretty_print = pretty_print

    def dumps(self, node: ContentNode) -> str:
        try:
            element = self._to_element(node)
        except ValueError as e:
            # lxml rejects control characters in text and attribute values
            raise ContentSerializationError(f"Cannot encode as XML: {e}") from e
        return etree.tostring(
            element,
            pretty_print=self.pretty_print,
            xml_declaration=True,
            encoding='UTF-8'
        ).decode('utf-8')

    def loads(self, text: Union[str, bytes]) -> ContentNode:
        if isinstance(text, str):
            text = text.encode('utf-8')

        # Whitespace-only text is significant inside <value> elements
        parser = etree.XMLParser(remove_blank_text=False, resolve_entities=False)
        try:
            root = etree.fromstring(text, parser)
        except etree.XMLSyntaxError as e:
            raise ContentSerializationError(f"Invalid XML: {e}") from e

        try:
            return self._from_element(root)
        except (KeyError, TypeError, ValueError, ArithmeticError) as e:
            raise ContentSerializationError(f"Invalid content node: {e}") from e

    def _to_element(self, node: ContentNode) -> etree._Element:
        element = etree.Element('node', name=node.name, primaryType=node.primary_type)

        for mixin in node.mixin_types:
            etree.SubElement(element, 'mixin').text = mixin

        for prop in node.properties:
            prop_element = etree.SubElement(
                element,
                'property',
                name=prop.name,
                type=prop.type.value,
                multiple='true' if prop.multiple else 'false'
            )
            for value in prop.values:
                etree.SubElement(prop_element, 'value').text = self._value_to_text(prop.type, value)

        for child in node.nodes:
            element.append(self._to_element(child))

        return element

    def _from_element(self, element: etree._Element) -> ContentNode:
        if element.tag != 'node':
            raise ValueError(f"Expected <node> element, got <{element.tag}>")

        node = ContentNode(
            name=element.get('name', ''),
            primary_type=element.get('primaryType', '')
        )

        for child in element:
            if not isinstance(child.tag, str):
                continue  # comments, processing instructions
            if child.tag == 'mixin':
                node.mixin_types.append(child.text or '')
            elif child.tag == 'property':
                node.properties.append(self._property_from_element(child))
            elif child.tag == 'node':
                node.nodes.append(self._from_element(child))
            else:
                raise ValueError(f"Unexpected element <{child.tag}>")

        return node

    def _property_from_element(self, element: etree._Element) -> ContentProperty:
        prop_type = PropertyType(element.get('type', PropertyType.STRING.value))
        values = [
            prop_type.decode(value_element.text or '')
            for value_element in element
            if value_element.tag == 'value'
        ]
        return ContentProperty(
            name=element.get('name'),
            type=prop_type,
            multiple=element.get('multiple', 'false') == 'true',
            values=values
        )

    @staticmethod
    def _value_to_text(prop_type: PropertyType, value: Any) -> str:
        encoded = prop_type.encode(value)
        if isinstance(encoded, bool):
            return 'true' if encoded else 'false'
        if isinstance(encoded, float):
            return repr(encoded)
        return str(encoded)


_SERIALIZERS: Dict[str, type] = {
    'json': JsonContentSerializer,
    'xml': XmlContentSerializer,
}


def get_serializer(file_format: str = 'json') -> ContentSerializer:
    """
    Create a serializer for a file format.

    Args:
        file_format: 'json' or 'xml'

    Returns:
        Serializer instance

    Raises:
        ValueError: If the format is unknown
    """
    try:
        return _SERIALIZERS[file_format.lower()]()
    except KeyError:
        raise ValueError(f"Unsupported file format '{file_format}'. Use one of: {sorted(_SERIALIZERS)}")


def serializer_for_file(file_path: Union[str, Path]) -> ContentSerializer:
    """Pick the serializer matching a file's extension."""
    suffix = Path(file_path).suffix.lower().lstrip('.')
    return get_serializer(suffix)


__all__ = [
    'ContentSerializationError',
    'ContentSerializer',
    'JsonContentSerializer',
    'XmlContentSerializer',
    'get_serializer',
    'serializer_for_file'
]
