import unittest as ut

from shareclient.storage.azure_files import AzureFilesEndpoint
from shareclient.storage.core import ShareController
from shareclient.storage.directory import ShareDirectory
from shareclient.storage.errors import InvalidArgumentError
from shareclient.storage.file import ShareFile
from shareclient.storage.memory import InMemoryFileService

AZURE_SHARE = "https://account.file.core.windows.net/share1"


class ShareControllerTest(ut.TestCase):

    def setUp(self):
        self.controller = ShareController()

    def test_split_url(self):
        self.assertEqual(ShareController.split_url("memory://share1/dir1/file1"), ("memory://share1", "dir1/file1"))
        self.assertEqual(ShareController.split_url("memory://share1"), ("memory://share1", ""))
        self.assertEqual(ShareController.split_url(AZURE_SHARE + "/dir1/"), (AZURE_SHARE, "dir1/"))
        self.assertEqual(ShareController.split_url(AZURE_SHARE), (AZURE_SHARE, ""))

    def test_invalid_urls(self):
        for url in ("share1/dir1", "memory://", "https://account.file.core.windows.net/"):
            with self.subTest(url=url):
                self.assertRaises(InvalidArgumentError, ShareController.split_url, url)
        self.assertRaises(InvalidArgumentError, self.controller.get_share, "ftp://example.com/share1")

    def test_endpoint_selection(self):
        self.assertIsInstance(self.controller.endpoint_for("memory://share1"), InMemoryFileService)
        self.assertIsInstance(self.controller.endpoint_for(AZURE_SHARE), AzureFilesEndpoint)
        self.assertIs(self.controller.endpoint_for("memory://a"), self.controller.endpoint_for("memory://b"))

    def test_get_item(self):
        item = self.controller.get_item("memory://share1/dir1/")
        self.assertIsInstance(item, ShareDirectory)
        self.assertEqual(item.name, "dir1")
        item = self.controller.get_item("memory://share1/dir1/file1")
        self.assertIsInstance(item, ShareFile)
        self.assertEqual(item.uri, "memory://share1/dir1/file1")
        self.assertEqual(item.parent.name, "dir1")
        root = self.controller.get_item("memory://share1")
        self.assertIsInstance(root, ShareDirectory)
        self.assertTrue(root.address.is_root)

    def test_snapshot_query(self):
        share = self.controller.get_share(AZURE_SHARE + "?sharesnapshot=2024-01-01T00:00:00.0000000Z")
        self.assertEqual(share.uri, AZURE_SHARE)
        self.assertEqual(share.snapshot, "2024-01-01T00:00:00.0000000Z")
        self.assertTrue(share.is_snapshot)
        share = self.controller.get_share(AZURE_SHARE + "?sharesnapshot=abc", snapshot="def")
        self.assertEqual(share.snapshot, "def")

    def test_memory_round_trip(self):
        share = self.controller.get_share("memory://share1")
        share.create()
        self.controller.get_item("memory://share1/dir1/").create()
        file = self.controller.get_item("memory://share1/dir1/file1")
        file.create(3)
        again = self.controller.get_item("memory://share1/dir1/file1")
        self.assertTrue(again.exists())
        self.assertEqual(again.length, 3)
