import unittest

from content.reference_resolver import ReferenceResolver, ResolutionReport
from models import ROOT_NODE_UUID, ContentNode, PropertyType
from sample_content import DANGLING_ID, IMAGES_FOLDER, NEWS_FOLDER, build_sample_store


class TestReferenceResolver(unittest.TestCase):
    def setUp(self):
        self.store = build_sample_store()
        self.resolver = ReferenceResolver(self.store, ['demo:link'])
        self.logo_id = self.store.identifier_of(self.store.get_node(f"{IMAGES_FOLDER}/logo.png"))
        self.third_id = self.store.identifier_of(self.store.get_node(f"{NEWS_FOLDER}/third"))

    def _snapshot(self, *references) -> ContentNode:
        node = ContentNode(name='doc', primary_type='demo:document')
        for index, reference in enumerate(references):
            child = ContentNode(name=f"demo:ref{index}", primary_type='sys:mirror')
            child.set_property('sys:docbase', PropertyType.STRING, reference)
            node.add_node(child)
        return node

    def test_identities_to_paths(self):
        node = self._snapshot(self.logo_id, self.third_id)
        report = self.resolver.resolve_identities_to_paths(node)

        self.assertEqual(report.resolved, 2)
        self.assertEqual(report.dangling, [])
        self.assertEqual(node.nodes[0].get_property_value('sys:docbase'), f"{IMAGES_FOLDER}/logo.png")
        self.assertEqual(report.referred_paths, [f"{IMAGES_FOLDER}/logo.png", f"{NEWS_FOLDER}/third"])

    def test_dangling_identity_is_left_unchanged(self):
        node = self._snapshot(DANGLING_ID)
        report = self.resolver.resolve_identities_to_paths(node)

        self.assertEqual(report.resolved, 0)
        self.assertEqual(report.dangling, [DANGLING_ID])
        self.assertEqual(node.nodes[0].get_property_value('sys:docbase'), DANGLING_ID)

    def test_root_identity_and_blank_values_are_ignored(self):
        node = self._snapshot(ROOT_NODE_UUID, '')
        report = self.resolver.resolve_identities_to_paths(node)
        self.assertEqual(report.resolved, 0)
        self.assertEqual(report.dangling, [])
        self.assertEqual(node.nodes[0].get_property_value('sys:docbase'), ROOT_NODE_UUID)

    def test_extra_property_names_and_multi_values(self):
        node = ContentNode(name='doc')
        node.set_property('demo:link', PropertyType.STRING, [self.logo_id, self.third_id])
        report = self.resolver.resolve_identities_to_paths(node)

        self.assertEqual(report.resolved, 2)
        self.assertEqual(node.get_property('demo:link').values,
                         [f"{IMAGES_FOLDER}/logo.png", f"{NEWS_FOLDER}/third"])

    def test_paths_to_identities(self):
        node = self._snapshot(f"{NEWS_FOLDER}/third", f"{NEWS_FOLDER}/missing", DANGLING_ID)
        report = self.resolver.resolve_paths_to_identities(node)

        self.assertEqual(report.resolved, 1)
        self.assertEqual(report.dangling, [f"{NEWS_FOLDER}/missing"])
        self.assertEqual(node.nodes[0].get_property_value('sys:docbase'), self.third_id)
        self.assertEqual(node.nodes[1].get_property_value('sys:docbase'), f"{NEWS_FOLDER}/missing")
        self.assertEqual(node.nodes[2].get_property_value('sys:docbase'), DANGLING_ID)

    def test_round_trip_within_one_store(self):
        node = self._snapshot(self.third_id)
        self.resolver.resolve_identities_to_paths(node)
        self.resolver.resolve_paths_to_identities(node)
        self.assertEqual(node.nodes[0].get_property_value('sys:docbase'), self.third_id)


class TestResolutionReport(unittest.TestCase):
    def test_merge(self):
        report = ResolutionReport(resolved=1, dangling=['a'], referred_paths=['/x'])
        report.merge(ResolutionReport(resolved=2, dangling=['b'], referred_paths=['/x', '/y']))
        self.assertEqual(report.resolved, 3)
        self.assertEqual(report.dangling, ['a', 'b'])
        self.assertEqual(report.referred_paths, ['/x', '/y'])


if __name__ == '__main__':
    unittest.main()
