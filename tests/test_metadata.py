import unittest as ut

from shareclient.storage.errors import InvalidArgumentError, ErrorStatus
from shareclient.storage.metadata import MetadataMap


class MetadataMapTest(ut.TestCase):

    def test_case_insensitive(self):
        md = MetadataMap()
        md["key1"] = "value1"
        self.assertEqual(md["KEY1"], "value1")
        self.assertIn("Key1", md)
        md["KEY1"] = "value2"
        self.assertEqual(len(md), 1)
        self.assertEqual(md["key1"], "value2")
        del md["kEy1"]
        self.assertEqual(len(md), 0)
        self.assertNotIn("key1", md)

    def test_invalid_values_rejected_on_assignment(self):
        md = MetadataMap()
        with self.assertRaises(InvalidArgumentError):
            md["key1"] = ""
        with self.assertRaises(InvalidArgumentError):
            md["key1"] = None
        with self.assertRaises(InvalidArgumentError):
            md[""] = "value"
        with self.assertRaises(InvalidArgumentError):
            md[None] = "value"
        self.assertEqual(len(md), 0)

    def test_clear(self):
        md = MetadataMap({"a": "1", "B": "2"})
        self.assertEqual(len(md), 2)
        md.clear()
        self.assertEqual(len(md), 0)

    def test_equality(self):
        md = MetadataMap({"Key1": "value1"})
        self.assertEqual(md, {"key1": "value1"})
        self.assertEqual(md, MetadataMap({"KEY1": "value1"}))
        self.assertNotEqual(md, {"key1": "value2"})

    def test_equality_with_invalid_mapping(self):
        md = MetadataMap({"a": "b"})
        self.assertFalse(md == {"a": ""})
        self.assertFalse(md == {"a": None})
        self.assertFalse(md == {1: "b"})
        self.assertTrue(md != {"A": ""})

    def test_missing_key(self):
        md = MetadataMap()
        with self.assertRaises(KeyError):
            _ = md["nothing"]
        self.assertIsNone(md.get("nothing"))

    def test_validate_server_values(self):
        md = MetadataMap()
        md.replace_from_server({"key1": "value1", "key2": ""})
        self.assertEqual(len(md), 2)
        with self.assertRaises(InvalidArgumentError) as h:
            md.validate()
        self.assertEqual(h.exception.status, ErrorStatus.UNUSED)

    def test_to_dict(self):
        md = MetadataMap()
        md["Key1"] = "value1"
        md["key2"] = "value2"
        self.assertEqual(md.to_dict(), {"Key1": "value1", "key2": "value2"})
        md.validate()
