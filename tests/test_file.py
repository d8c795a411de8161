import datetime

from shareclient.storage.endpoint import ItemKind
from shareclient.storage.errors import InvalidArgumentError, NotFoundError, ConflictError
from shareclient.storage.file import MAX_FILE_SIZE
from shareclient.storage.properties import NtfsAttributes, PropertyTag
from tests.helpers import MemoryShareTestCase


class FileTest(MemoryShareTestCase):

    def test_create_with_size(self):
        file = self.root.child("file1")
        file.create(1024)
        self.assertEqual(file.length, 1024)
        self.assertEqual(file.properties.ntfs_attributes, NtfsAttributes.ARCHIVE)
        self.assertIsNotNone(file.properties.etag)
        self.assertIsNotNone(file.properties.file_id)
        self.root.fetch_attributes()
        self.assertEqual(file.properties.parent_id, self.root.properties.file_id)
        self.assertFalse(file.properties.has_pending())
        self.assertTrue(file.exists())

    def test_create_replaces_file(self):
        file = self.root.child("file1")
        file.create(10)
        file.create(20)
        other = self.root.child("file1")
        other.fetch_attributes()
        self.assertEqual(other.length, 20)

    def test_invalid_size(self):
        file = self.root.child("file1")
        before = self.service.request_count
        for size in (-1, MAX_FILE_SIZE + 1, "10", None, 1.5):
            with self.subTest(size=size):
                self.assertRaises(InvalidArgumentError, file.create, size)
        self.assertEqual(self.service.request_count, before)
        file.create(0)
        self.assertRaises(InvalidArgumentError, file.resize, -5)

    def test_invalid_name(self):
        for name in ("illegal:char", "Clock$", "com1.txt"):
            with self.subTest(name=name):
                self.assertRaises(InvalidArgumentError, self.root.child(name).create)

    def test_resize(self):
        file1 = self.root.child("file1")
        file1.create(0)
        file1.properties.content_type = "text/plain"
        file2 = self.root.child("file1")
        file2.resize(2048)
        self.assertEqual(file2.length, 2048)
        self.assertEqual(file1.length, 0)
        file1.fetch_attributes()
        self.assertEqual(file1.length, 2048)
        self.assertEqual(file1.properties.etag, file2.properties.etag)

    def test_resize_keeps_pending(self):
        file = self.root.child("file1")
        file.create(0)
        file.properties.content_type = "text/plain"
        file.resize(5)
        self.assertEqual(file.properties.pending(PropertyTag.CONTENT_TYPE), "text/plain")

    def test_resize_missing(self):
        self.assertRaises(NotFoundError, self.root.child("nothing").resize, 5)

    def test_create_with_headers_and_metadata(self):
        file = self.root.child("file1")
        file.properties.content_type = "application/json"
        file.properties.content_language = "en-CA"
        file.properties.cache_control = "no-cache"
        file.metadata["Owner"] = "Somebody"
        file.create(5)
        self.assertEqual(file.properties.content_type, "application/json")
        other = self.root.child("file1")
        other.fetch_attributes()
        self.assertEqual(other.properties.content_type, "application/json")
        self.assertEqual(other.properties.content_language, "en-CA")
        self.assertEqual(other.properties.cache_control, "no-cache")
        self.assertEqual(other.metadata["owner"], "Somebody")

    def test_set_properties(self):
        file = self.root.child("file1")
        file.properties.content_type = "text/plain"
        file.create(5)
        last_write_time = datetime.datetime(2022, 3, 4, 5, 6, 7, tzinfo=datetime.timezone.utc)
        file.properties.content_encoding = "gzip"
        file.properties.last_write_time = last_write_time
        file.properties.ntfs_attributes = NtfsAttributes.READ_ONLY | NtfsAttributes.ARCHIVE
        file.set_properties()
        other = self.root.child("file1")
        other.fetch_attributes()
        self.assertEqual(other.properties.content_encoding, "gzip")
        self.assertEqual(other.properties.content_type, "text/plain")
        self.assertEqual(other.properties.last_write_time, last_write_time)
        self.assertEqual(other.properties.ntfs_attributes, NtfsAttributes.READ_ONLY | NtfsAttributes.ARCHIVE)
        self.assertEqual(other.length, 5)

    def test_set_metadata(self):
        file = self.root.child("file1")
        file.create(0)
        file.metadata["key1"] = "value1"
        file.metadata["key2"] = "value2"
        file.set_metadata()
        other = self.root.child("file1")
        self.assertTrue(other.exists())
        self.assertEqual(other.metadata, {"KEY1": "value1", "key2": "value2"})

    def test_delete(self):
        file = self.root.child("file1")
        self.assertFalse(file.exists())
        self.assertRaises(NotFoundError, file.delete)
        file.create(0)
        file.delete()
        self.assertFalse(file.delete_if_exists())

    def test_directory_in_the_way(self):
        self.root.subdir("thing").create()
        self.assertRaises(ConflictError, self.root.child("thing").create)
        self.assertFalse(self.root.child("thing").exists())

    def test_listing_reports_length(self):
        self.root.child("file1").create(77)
        items = list(self.root.list_items())
        self.assertEqual(len(items), 1)
        self.assertEqual(items[0].properties[PropertyTag.LENGTH], 77)
        self.assertEqual(items[0].as_file().length, 77)

    def test_handles(self):
        file = self.root.child("file1")
        file.create(0)
        handle = self.service.open_handle(file.address, ItemKind.FILE, session_id="session1", client_ip="10.0.0.5")
        handles = list(file.list_handles())
        self.assertEqual(len(handles), 1)
        self.assertEqual(handles[0].handle_id, handle.handle_id)
        self.assertEqual(handles[0].session_id, "session1")
        self.assertEqual(handles[0].client_ip, "10.0.0.5")
        self.assertEqual(handles[0].path, "file1")
        self.assertEqual(file.close_all_handles(), 1)
        self.assertEqual(list(file.list_handles()), [])
