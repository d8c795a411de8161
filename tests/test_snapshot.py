from shareclient.storage.endpoint import ItemKind
from shareclient.storage.errors import InvalidOperationError, NotFoundError
from shareclient.storage.properties import NtfsAttributes
from tests.helpers import MemoryShareTestCase, SHARE_URI


class ShareSnapshotTest(MemoryShareTestCase):

    def setUp(self):
        super().setUp()
        self.directory = self.root.subdir("mydir")
        self.directory.metadata["version"] = "1"
        self.directory.create()
        self.file = self.directory.child("file1")
        self.file.create(10)
        self.snapshot = self.share.create_snapshot()

    def assert_rejected(self, cb, *args):
        before = self.service.request_count
        with self.assertRaises(InvalidOperationError) as h:
            cb(*args)
        self.assertEqual(h.exception.error_code, "CannotModifyShareSnapshot")
        self.assertEqual(self.service.request_count, before)

    def test_snapshot_reference(self):
        self.assertTrue(self.snapshot.is_snapshot)
        self.assertFalse(self.share.is_snapshot)
        self.assertEqual(self.snapshot.uri, SHARE_URI)
        self.assertTrue(self.snapshot.snapshot_qualified_uri.startswith(SHARE_URI + "?sharesnapshot="))
        self.assertNotEqual(self.snapshot, self.share)
        self.assertTrue(self.snapshot.exists())
        self.assertTrue(self.snapshot.get_directory("mydir").is_snapshot)

    def test_snapshot_sees_old_state(self):
        self.directory.metadata["version"] = "2"
        self.directory.set_metadata()
        self.file.resize(50)
        self.root.child("newfile").create(0)

        old_dir = self.snapshot.get_directory("mydir")
        old_dir.fetch_attributes()
        self.assertEqual(old_dir.metadata["version"], "1")
        self.assertNotEqual(old_dir.properties.etag, self.directory.properties.etag)

        old_file = self.snapshot.get_file("mydir/file1")
        old_file.fetch_attributes()
        self.assertEqual(old_file.length, 10)

        self.assertFalse(self.snapshot.root_directory().child("newfile").exists())
        self.assertEqual([x.name for x in self.snapshot.root_directory().list_items()], ["mydir"])

    def test_mutations_rejected(self):
        old_dir = self.snapshot.get_directory("mydir")
        old_file = old_dir.child("file1")
        old_dir.metadata["a"] = "b"
        old_dir.properties.ntfs_attributes = NtfsAttributes.HIDDEN
        self.assert_rejected(old_dir.create)
        self.assert_rejected(old_dir.create_if_not_exists)
        self.assert_rejected(old_dir.delete)
        self.assert_rejected(old_dir.delete_if_exists)
        self.assert_rejected(old_dir.set_metadata)
        self.assert_rejected(old_dir.set_properties)
        self.assert_rejected(old_dir.close_all_handles)
        self.assert_rejected(old_dir.close_all_handles_segmented)
        self.assert_rejected(old_dir.close_handle, "1")
        self.assert_rejected(old_file.create, 0)
        self.assert_rejected(old_file.resize, 100)
        self.assert_rejected(old_file.delete)

    def test_share_mutations_rejected(self):
        self.assert_rejected(self.snapshot.create)
        self.assert_rejected(self.snapshot.create_if_not_exists)
        self.assert_rejected(self.snapshot.create_snapshot)
        self.assert_rejected(self.snapshot.create_permission, "O:SYG:SY")

    def test_reads_allowed(self):
        old_dir = self.snapshot.get_directory("mydir")
        self.assertTrue(old_dir.exists())
        self.assertEqual([x.name for x in old_dir.list_items()], ["file1"])
        self.assertEqual(list(old_dir.list_handles()), [])

    def test_live_handles_not_in_snapshot(self):
        self.service.open_handle(self.file.address, ItemKind.FILE)
        self.assertEqual(len(list(self.file.list_handles())), 1)
        self.assertEqual(list(self.snapshot.get_file("mydir/file1").list_handles()), [])

    def test_snapshot_taken_with_open_handles(self):
        directory = self.share.get_directory("mydir")
        self.service.open_handle(directory.address, ItemKind.DIRECTORY)
        snapshot = self.share.create_snapshot()
        self.assertEqual(list(snapshot.get_directory("mydir").list_handles()), [])
        self.assertEqual(len(list(directory.list_handles())), 1)
        self.assertEqual(directory.close_all_handles(), 1)
        self.assertEqual(list(snapshot.get_directory("mydir").list_handles()), [])

    def test_delete_snapshot_only(self):
        second = self.share.create_snapshot()
        self.assertNotEqual(second.snapshot, self.snapshot.snapshot)
        self.snapshot.delete()
        self.assertFalse(self.snapshot.exists())
        self.assertTrue(second.exists())
        self.assertTrue(self.share.exists())
        self.assertRaises(NotFoundError, self.snapshot.get_directory("mydir").fetch_attributes)
        self.assertFalse(self.snapshot.delete_if_exists())

    def test_delete_share_removes_snapshots(self):
        self.share.delete()
        self.assertFalse(self.share.exists())
        self.assertFalse(self.snapshot.exists())
        self.assertFalse(self.share.delete_if_exists())
