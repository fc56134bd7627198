from __future__ import annotations

import os
import tempfile
import unittest
from pathlib import Path

from filearchive import ArchiveReader, FileArchive

TIMEOUT = 30


def _create_sample_tree(base: Path) -> Path:
    tree = base / "tree"
    (tree / "sub").mkdir(parents=True)
    (tree / "a.txt").write_text("alpha", encoding="utf-8")
    (tree / "sub" / "b.txt").write_text("beta", encoding="utf-8")
    return tree


class WriteCopyTests(unittest.TestCase):
    def run_with_tmpdir(self, func):
        with tempfile.TemporaryDirectory() as tmp:
            func(Path(tmp))

    def test_write_to_root(self):
        def scenario(tmp: Path):
            fa = FileArchive(relative_path=str(tmp / "out"))
            fa.write("hello", "deep/dir/hello.txt")
            fa.write(b"\xff\x00", "raw.bin")
            fa.write(bytearray(b"ba"), "ba.bin")
            self.assertEqual((tmp / "out" / "deep" / "dir" / "hello.txt").read_text(encoding="utf-8"), "hello")
            self.assertEqual((tmp / "out" / "raw.bin").read_bytes(), b"\xff\x00")
            self.assertEqual((tmp / "out" / "ba.bin").read_bytes(), b"ba")

        self.run_with_tmpdir(scenario)

    def test_write_encoding(self):
        def scenario(tmp: Path):
            fa = FileArchive(relative_path=str(tmp))
            fa.write("é", "latin.txt", encoding="latin-1")
            fa.write("", "empty.txt")
            self.assertEqual((tmp / "latin.txt").read_bytes(), b"\xe9")
            self.assertEqual((tmp / "empty.txt").read_bytes(), b"")

        self.run_with_tmpdir(scenario)

    def test_write_rejects_missing_data(self):
        def scenario(tmp: Path):
            fa = FileArchive(relative_path=str(tmp))
            with self.assertRaises(TypeError):
                fa.write(None, "none.txt")
            with self.assertRaises(TypeError):
                fa.write(123, "int.txt")
            with self.assertRaises(TypeError):
                fa.write("x", 5)
            with self.assertRaises(TypeError):
                fa.write("x", "x.txt", silent="no")
            self.assertEqual(list(tmp.iterdir()), [])

        self.run_with_tmpdir(scenario)

    def test_write_inside_archive_skips_filesystem(self):
        def scenario(tmp: Path):
            fa = FileArchive(relative_path=str(tmp))
            fa.create_archive("bundle")
            fa.write("inside", "inside.txt")
            fa.copy(__file__, "copied.py")
            fa.finalize_archive().result(timeout=TIMEOUT)
            self.assertFalse((tmp / "inside.txt").exists())
            self.assertFalse((tmp / "copied.py").exists())
            self.assertEqual(sorted(p.name for p in tmp.iterdir()), ["bundle.tar.gz"])

            fa.write("outside", "outside.txt")
            self.assertEqual((tmp / "outside.txt").read_text(encoding="utf-8"), "outside")

        self.run_with_tmpdir(scenario)

    def test_entry_names_are_normalized(self):
        def scenario(tmp: Path):
            fa = FileArchive(relative_path=str(tmp))
            fa.create_archive("bundle")
            fa.write("a", "/lead/./a.txt")
            fa.write("b", "win\\b.txt")
            with self.assertRaises(ValueError):
                fa.write("c", "../escape.txt")
            for unnamed in (".", "/", "./", "\\"):
                with self.assertRaises(ValueError):
                    fa.write("d", unnamed)
            fa.finalize_archive().result(timeout=TIMEOUT)
            with ArchiveReader(str(tmp / "bundle.tar.gz")) as reader:
                self.assertEqual(reader.names(), ["lead/a.txt", "win/b.txt"])

        self.run_with_tmpdir(scenario)

    def test_copy_file_and_tree_to_root(self):
        def scenario(tmp: Path):
            tree = _create_sample_tree(tmp)
            fa = FileArchive(relative_path=str(tmp / "out"))
            fa.copy(str(tree / "a.txt"), "copy/a.txt")
            fa.copy(str(tree), "tree")
            self.assertEqual((tmp / "out" / "copy" / "a.txt").read_text(encoding="utf-8"), "alpha")
            self.assertEqual((tmp / "out" / "tree" / "sub" / "b.txt").read_text(encoding="utf-8"), "beta")

            # merges into an existing directory
            (tree / "c.txt").write_text("gamma", encoding="utf-8")
            fa.copy(str(tree), "tree")
            self.assertEqual((tmp / "out" / "tree" / "c.txt").read_text(encoding="utf-8"), "gamma")

        self.run_with_tmpdir(scenario)

    def test_copy_missing_source_to_root(self):
        def scenario(tmp: Path):
            fa = FileArchive(relative_path=str(tmp))
            with self.assertRaises(FileNotFoundError):
                fa.copy(str(tmp / "nope.txt"), "nope.txt")

        self.run_with_tmpdir(scenario)

    def test_copy_tree_into_archive(self):
        def scenario(tmp: Path):
            tree = _create_sample_tree(tmp)
            fa = FileArchive(relative_path=str(tmp / "out"))
            fa.create_archive("bundle")
            fa.copy(str(tree), "tree")
            fa.copy(str(tree), ".")
            fa.copy(str(tree / "a.txt"), "single.txt")
            fa.finalize_archive().result(timeout=TIMEOUT)
            with ArchiveReader(str(tmp / "out" / "bundle.tar.gz")) as reader:
                self.assertEqual(
                    reader.names(),
                    ["tree/a.txt", "tree/sub/b.txt", "a.txt", "sub/b.txt", "single.txt"],
                )
                self.assertEqual(reader.read("tree/sub/b.txt"), b"beta")
                self.assertEqual(reader.read("single.txt"), b"alpha")

        self.run_with_tmpdir(scenario)

    def test_copy_file_needs_entry_name(self):
        def scenario(tmp: Path):
            tree = _create_sample_tree(tmp)
            fa = FileArchive(relative_path=str(tmp))
            fa.create_archive("bundle")
            with self.assertRaises(ValueError):
                fa.copy(str(tree / "a.txt"), ".")
            fa.finalize_archive().result(timeout=TIMEOUT)

        self.run_with_tmpdir(scenario)


class EmptyRootTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.base = Path(self._tmp.name).resolve()
        cwd = os.getcwd()
        self.addCleanup(os.chdir, cwd)
        self.messages = []

    def _populate(self, root: Path) -> None:
        (root / "dir" / "sub").mkdir(parents=True)
        (root / "dir" / "sub" / "f.txt").write_text("f", encoding="utf-8")
        (root / "top.txt").write_text("t", encoding="utf-8")

    def _file_archive(self, root=None) -> FileArchive:
        options = {} if root is None else {"relative_path": str(root)}
        return FileArchive(lambda event, message: self.messages.append(message), **options)

    def test_empties_distinct_root(self):
        root = self.base / "out"
        self._populate(root)
        os.chdir(self.base)
        self.assertTrue(self._file_archive(root).empty_root())
        self.assertTrue(root.is_dir())
        self.assertEqual(list(root.iterdir()), [])
        self.assertEqual(self.messages, [f"emptying: {root}"])

    def test_creates_missing_root(self):
        root = self.base / "missing"
        os.chdir(self.base)
        self.assertTrue(self._file_archive(root).empty_root())
        self.assertTrue(root.is_dir())

    def test_refuses_when_cwd_is_root(self):
        root = self.base / "out"
        self._populate(root)
        os.chdir(root)
        self.assertFalse(self._file_archive(root).empty_root())
        self.assertTrue((root / "top.txt").exists())
        self.assertIn("aborting as current working directory will be deleted", self.messages[-1])

    def test_refuses_when_cwd_inside_root(self):
        root = self.base / "out"
        self._populate(root)
        os.chdir(root / "dir" / "sub")
        self.assertFalse(self._file_archive(root).empty_root())
        self.assertTrue((root / "dir" / "sub" / "f.txt").exists())

    def test_refuses_relative_root_containing_cwd(self):
        self._populate(self.base)
        os.chdir(self.base / "dir")
        self.assertFalse(self._file_archive("..").empty_root())
        self.assertTrue((self.base / "top.txt").exists())

    def test_sibling_with_common_prefix_is_not_protected(self):
        root = self.base / "out"
        self._populate(root)
        (self.base / "outside").mkdir()
        os.chdir(self.base / "outside")
        self.assertTrue(self._file_archive(root).empty_root())
        self.assertEqual(list(root.iterdir()), [])

    def test_no_root_configured(self):
        self.assertFalse(self._file_archive().empty_root())
        self.assertEqual(self.messages, ["FileArchive.empty_root: no relative path to empty."])

    def test_silent(self):
        self.assertFalse(self._file_archive().empty_root(silent=True))
        self.assertEqual(self.messages, [])


if __name__ == "__main__":
    unittest.main()
