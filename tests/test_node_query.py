import unittest

from content.node_query import parse_pattern, query_nodes, query_properties
from models import ContentNode, PropertyType


def build_tree() -> ContentNode:
    root = ContentNode(name='doc', primary_type='demo:document')
    root.set_property('sys:docbase', PropertyType.STRING, 'root-ref')

    link = ContentNode(name='demo:link', primary_type='sys:mirror')
    link.set_property('sys:docbase', PropertyType.STRING, 'link-ref')
    root.add_node(link)

    section = ContentNode(name='demo:section', primary_type='demo:compound')
    section.set_property('demo:kind', PropertyType.STRING, ['intro', 'summary'])
    nested = ContentNode(name='demo:link', primary_type='sys:mirror')
    nested.set_property('sys:docbase', PropertyType.STRING, 'nested-ref')
    section.add_node(nested)
    root.add_node(section)

    return root


class TestNodeQuery(unittest.TestCase):
    def setUp(self):
        self.root = build_tree()

    def test_child_step(self):
        nodes = query_nodes(self.root, 'demo:link')
        self.assertEqual(len(nodes), 1)
        self.assertEqual(nodes[0].get_property_value('sys:docbase'), 'link-ref')

    def test_descendant_step(self):
        nodes = query_nodes(self.root, '//demo:link')
        self.assertEqual([n.get_property_value('sys:docbase') for n in nodes], ['link-ref', 'nested-ref'])

    def test_glob_names(self):
        self.assertEqual(len(query_nodes(self.root, 'demo:*')), 2)

    def test_property_predicates(self):
        self.assertEqual(len(query_nodes(self.root, "//*[@demo:kind='summary']")), 1)
        self.assertEqual(len(query_nodes(self.root, '//*[@sys:docbase]')), 2)
        self.assertEqual(query_nodes(self.root, "//*[@demo:kind='other']"), [])

    def test_primary_type_predicate(self):
        nodes = query_nodes(self.root, "//*[primaryType='sys:mirror']")
        self.assertEqual(len(nodes), 2)

    def test_properties_at_any_depth_include_context(self):
        props = query_properties(self.root, '//@sys:docbase')
        self.assertEqual([p.value for p in props], ['root-ref', 'link-ref', 'nested-ref'])

    def test_properties_of_context_node(self):
        props = query_properties(self.root, '@sys:*')
        self.assertEqual([p.value for p in props], ['root-ref'])

    def test_properties_below_step(self):
        props = query_properties(self.root, 'demo:section//@sys:docbase')
        self.assertEqual([p.value for p in props], ['nested-ref'])

    def test_node_methods_delegate(self):
        self.assertEqual(len(self.root.query_nodes('//demo:link')), 2)
        self.assertEqual(len(self.root.query_properties('//@sys:docbase')), 3)

    def test_invalid_patterns(self):
        for pattern in ('', '   ', 'a/', '@p/a', "a[@p='x'"):
            with self.subTest(pattern=pattern):
                with self.assertRaises(ValueError):
                    parse_pattern(pattern)

    def test_unsupported_predicate_attribute(self):
        with self.assertRaises(ValueError):
            query_nodes(self.root, '//demo:link[foo]')

    def test_pattern_kind_mismatch(self):
        with self.assertRaises(ValueError):
            query_nodes(self.root, '//@sys:docbase')
        with self.assertRaises(ValueError):
            query_properties(self.root, '//demo:link')


if __name__ == '__main__':
    unittest.main()
