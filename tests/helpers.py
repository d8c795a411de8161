import unittest as ut

from shareclient.storage.memory import InMemoryFileService
from shareclient.storage.share import ShareReference
from shareclient.util import HaltFlag

SHARE_URI = "memory://testshare"


class ManualHaltFlag(HaltFlag):

    def __init__(self):
        self.halted = False

    def _should_continue(self) -> bool:
        return not self.halted


class MemoryShareTestCase(ut.TestCase):
    """Runs each test against a fresh in-memory service with one created share."""

    def setUp(self):
        self.service = InMemoryFileService()
        self.share = ShareReference(SHARE_URI, self.service)
        self.share.create()
        self.root = self.share.root_directory()

    def build_tree(self):
        """Create TopDir1..2 / MidDir1..2 / EndDir1..2 with one file at the top and bottom levels."""
        for i in range(1, 3):
            top = self.root.subdir(f"TopDir{i}")
            top.create()
            for j in range(1, 3):
                mid = top.subdir(f"MidDir{j}")
                mid.create()
                for k in range(1, 3):
                    end = mid.subdir(f"EndDir{k}")
                    end.create()
                    end.child(f"EndFile{k}").create(0)
            top.child(f"File{i}").create(0)
