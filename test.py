import io
import os
import errno
import contextlib
import tempfile
import unittest
import doctest
from pathlib import Path

import msync

def tree(root:Path) -> dict[str, tuple[int, int, bytes] | None]:
	'''Maps every relative path under `root` to its (size, mtime_ns, content), or to `None` for directories.'''
	result = {}
	for dir, dirnames, filenames in os.walk(root):
		for dirname in dirnames:
			result[os.path.relpath(os.path.join(dir, dirname), root)] = None
		for file in filenames:
			file_path = Path(dir) / file
			st = file_path.stat()
			result[os.path.relpath(file_path, root)] = (st.st_size, st.st_mtime_ns, file_path.read_bytes())
	return result

def create_file_structure(root_dir:Path, structure:dict):
	'''Recursively creates a directory structure with files.'''
	root_dir.mkdir(parents=True, exist_ok=True)
	for name, content in structure.items():
		file_path = root_dir / name
		if isinstance(content, Path):
			# create symlink
			os.symlink(content, file_path)
		elif isinstance(content, dict):
			# create dir
			create_file_structure(file_path, content)
		elif isinstance(content, (tuple, list)):
			# Create file with modtime and content
			file_path.write_text(content[0] or "")
			mtime = float(content[1])
			os.utime(file_path, (mtime, mtime))
		elif content is None:
			# Create an empty file
			file_path.touch()
		else:
			# Create a file with content
			file_path.write_text(content)

def p(*parts:str) -> str:
	return os.path.join(*parts)

def load_tests(loader, tests, ignore):
	tests.addTests(doctest.DocTestSuite(msync))
	return tests

class TestMirror(unittest.TestCase):
	def setUp(self):
		self._tmp = tempfile.TemporaryDirectory()
		self.root = Path(self._tmp.name)
		self.src = self.root / "src"
		self.dst = self.root / "dst"

	def tearDown(self):
		self._tmp.cleanup()

	def read(self, *parts:str) -> str:
		return (self.dst / Path(*parts)).read_text()

	#~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

	def test_new_files(self):
		create_file_structure(self.src, {
			"photos": {
				"a.txt": ("hello", 1000),
				"sub": {
					"b.txt": ("bb", 2000),
				},
				"empty": {},
			},
		})
		dst = self.root / "backup" / "inner"
		results = msync.mirror(dst, [self.src / "photos"], quiet=True)

		self.assertTrue(results.success)
		self.assertIsNone(results.failure)
		self.assertEqual(results.create_success, 2)
		self.assertEqual(results.dir_create_success, 4)
		self.assertEqual(results.byte_diff, 7)
		self.assertTrue((dst / "photos" / "empty").is_dir())
		self.assertEqual(tree(self.src / "photos"), tree(dst / "photos"))

		src_stat = (self.src / "photos" / "sub" / "b.txt").stat()
		dst_stat = (dst / "photos" / "sub" / "b.txt").stat()
		self.assertEqual(src_stat.st_size, dst_stat.st_size)
		self.assertEqual(src_stat.st_mtime_ns, dst_stat.st_mtime_ns)

	def test_idempotent(self):
		create_file_structure(self.src, {
			"photos": {
				"a.txt": ("hello", 1000),
				"sub": {
					"b.txt": ("bb", 2000),
				},
			},
		})
		create_file_structure(self.dst, {
			"photos": {
				"a.txt": ("outdated", 10),
				"gone.txt": ("gone", 10),
			},
		})
		results = msync.mirror(self.dst, [self.src / "photos"], quiet=True)
		self.assertTrue(results.success)
		first = tree(self.dst)

		results = msync.mirror(self.dst, [self.src / "photos"], quiet=True)
		self.assertTrue(results.success)
		self.assertEqual(tree(self.dst), first)
		self.assertEqual(results.create_success, 0)
		self.assertEqual(results.update_success, 0)
		self.assertEqual(results.backup_success, 0)
		self.assertEqual(results.mark_success, 0)
		self.assertEqual(results.dir_create_success, 0)
		self.assertEqual(results.unchanged, 2)

	def test_changed_file_is_backed_up(self):
		create_file_structure(self.src, {
			"photos": {
				"a.txt": ("new info", 2000),
				"b.txt": ("longer", 5),
			},
		})
		create_file_structure(self.dst, {
			"photos": {
				"a.txt": ("old info", 1),
				"b.txt": ("x", 5),
			},
		})
		results = msync.mirror(self.dst, [self.src / "photos"], quiet=True)

		self.assertTrue(results.success)
		self.assertEqual(results.update_success, 2)
		self.assertEqual(results.backup_success, 2)
		self.assertEqual(self.read("photos", "a.txt"), "new info")
		self.assertEqual(self.read("photos", "~bak.a.txt"), "old info")
		self.assertEqual(self.read("photos", "b.txt"), "longer")
		self.assertEqual(self.read("photos", "~bak.b.txt"), "x")
		self.assertEqual((self.dst / "photos" / "a.txt").stat().st_mtime_ns, (self.src / "photos" / "a.txt").stat().st_mtime_ns)
		self.assertEqual((self.dst / "photos" / "~bak.a.txt").stat().st_mtime_ns, 1_000_000_000)

	def test_skip_backup(self):
		create_file_structure(self.src, {
			"photos": {
				"a.txt": ("new info", 2000),
			},
		})
		create_file_structure(self.dst, {
			"photos": {
				"a.txt": ("old info", 1),
			},
		})
		results = msync.mirror(self.dst, [self.src / "photos"], skip_backup=True, quiet=True)

		self.assertTrue(results.success)
		self.assertEqual(results.update_success, 1)
		self.assertEqual(results.backup_success, 0)
		self.assertEqual(self.read("photos", "a.txt"), "new info")
		self.assertEqual(sorted(os.listdir(self.dst / "photos")), ["a.txt"])

	def test_mark_deleted(self):
		create_file_structure(self.src, {
			"photos": {
				"a.txt": ("a", 1000),
				"sub": {},
			},
		})
		create_file_structure(self.dst, {
			"photos": {
				"a.txt": ("a", 1000),
				"gone.txt": ("gone", 1),
				"sub": {
					"gone2.txt": ("gone2", 1),
				},
				"olddir": {
					"f.txt": ("f", 1),
				},
			},
		})
		results = msync.mirror(self.dst, [self.src / "photos"], quiet=True)

		self.assertTrue(results.success)
		self.assertEqual(results.mark_success, 2)
		self.assertEqual(sorted(os.listdir(self.dst / "photos")), ["a.txt", "olddir", "sub", "~del.gone.txt"])
		self.assertEqual(self.read("photos", "~del.gone.txt"), "gone")
		self.assertEqual(os.listdir(self.dst / "photos" / "sub"), ["~del.gone2.txt"])
		self.assertEqual(self.read("photos", "sub", "~del.gone2.txt"), "gone2")
		self.assertEqual(self.read("photos", "olddir", "f.txt"), "f")

	def test_markers_are_not_marked_deleted(self):
		create_file_structure(self.src, {
			"photos": {
				"a.txt": ("a", 1000),
			},
		})
		create_file_structure(self.dst, {
			"photos": {
				"a.txt": ("a", 1000),
				"~bak.a.txt": ("older a", 1),
				"~del.b.txt": ("b", 1),
				"~notes": ("n", 1),
			},
		})
		before = tree(self.dst)
		results = msync.mirror(self.dst, [self.src / "photos"], quiet=True)

		self.assertTrue(results.success)
		self.assertEqual(results.mark_success, 0)
		self.assertEqual(tree(self.dst), before)

	def test_marker_collision_halts(self):
		create_file_structure(self.src, {
			"photos": {
				"a.txt": ("new", 2000),
				"b.txt": ("b", 2000),
			},
		})
		create_file_structure(self.dst, {
			"photos": {
				"a.txt": ("old", 1),
				"~bak.a.txt": ("older", 1),
			},
		})
		stderr = io.StringIO()
		with contextlib.redirect_stderr(stderr):
			results = msync.mirror(self.dst, [self.src / "photos"])

		self.assertFalse(results.success)
		self.assertIsInstance(results.failure.error, FileExistsError)
		self.assertEqual(len(results.errors), 1)
		self.assertIn("~bak.a.txt", stderr.getvalue())
		self.assertEqual(self.read("photos", "a.txt"), "old")
		self.assertEqual(self.read("photos", "~bak.a.txt"), "older")
		self.assertFalse((self.dst / "photos" / "b.txt").exists())

	def test_failure_halts_remaining_sources(self):
		create_file_structure(self.src, {
			"photos": {
				"a": {
					"x.txt": ("x", 1000),
				},
				"b.txt": ("b", 1000),
			},
			"music": {
				"song.mp3": ("la", 1000),
			},
		})
		create_file_structure(self.dst, {
			"photos": {
				"a": ("not a dir", 1),
			},
		})
		results = msync.mirror(self.dst, [self.src / "photos", self.src / "music"], quiet=True)

		self.assertFalse(results.success)
		self.assertIsInstance(results.failure.error, FileExistsError)
		self.assertEqual(self.read("photos", "a"), "not a dir")
		self.assertFalse((self.dst / "photos" / "b.txt").exists())
		self.assertFalse((self.dst / "music").exists())

	def test_skip_hidden(self):
		create_file_structure(self.src, {
			"photos": {
				".secret": ("s", 1000),
				".git": {
					"config": ("c", 1000),
				},
				"a.txt": ("a", 1000),
			},
			".dotfiles": {
				"rc": ("rc", 1000),
			},
		})
		create_file_structure(self.dst, {
			"photos": {
				".cache": ("cache", 1),
			},
		})
		results = msync.mirror(self.dst, [self.src / "photos", self.src / ".dotfiles"], skip_hidden=True, quiet=True)

		self.assertTrue(results.success)
		self.assertEqual(sorted(os.listdir(self.dst)), ["photos"])
		self.assertEqual(sorted(os.listdir(self.dst / "photos")), [".cache", "a.txt"])

		results = msync.mirror(self.dst, [self.src / "photos", self.src / ".dotfiles"], quiet=True)

		self.assertTrue(results.success)
		self.assertEqual(sorted(os.listdir(self.dst)), [".dotfiles", "photos"])
		self.assertEqual(sorted(os.listdir(self.dst / "photos")), [".git", ".secret", "a.txt", "~del..cache"])
		self.assertEqual(self.read("photos", ".git", "config"), "c")

	def test_skip_hidden_leaves_changed_hidden_files(self):
		create_file_structure(self.src, {
			"photos": {
				".h": ("new", 2000),
				"d": {
					".x": ("new x", 2000),
				},
			},
		})
		create_file_structure(self.dst, {
			"photos": {
				".h": ("old", 1),
				"d": {
					".x": ("old x", 1),
				},
			},
		})
		before = tree(self.dst)
		results = msync.mirror(self.dst, [self.src / "photos"], skip_hidden=True, quiet=True)

		self.assertTrue(results.success)
		self.assertEqual(results.update_success, 0)
		self.assertEqual(results.backup_success, 0)
		self.assertEqual(tree(self.dst), before)
		self.assertFalse((self.dst / "photos" / "~bak..h").exists())
		self.assertFalse((self.dst / "photos" / "d" / "~bak..x").exists())

	def test_multiple_sources(self):
		create_file_structure(self.src, {
			"photos": {
				"a.jpg": ("a", 1000),
			},
			"music": {
				"b.mp3": ("b", 1000),
			},
		})
		results = msync.mirror(str(self.dst), [str(self.src / "photos") + os.sep, self.src / "music"], quiet=True)

		self.assertTrue(results.success)
		self.assertEqual(sorted(os.listdir(self.dst)), ["music", "photos"])
		self.assertEqual(self.read("photos", "a.jpg"), "a")
		self.assertEqual(self.read("music", "b.mp3"), "b")

	def test_dry_run(self):
		create_file_structure(self.src, {
			"photos": {
				"a.txt": ("new", 2000),
				"sub": {
					"b.txt": ("b", 1000),
				},
			},
		})
		create_file_structure(self.dst, {
			"photos": {
				"a.txt": ("old", 1),
				"gone.txt": ("gone", 1),
			},
		})
		before = tree(self.dst)
		results = msync.mirror(self.dst, [self.src / "photos"], dry_run=True, quiet=True)

		self.assertTrue(results.success)
		self.assertEqual(tree(self.dst), before)
		self.assertEqual(results.create_success, 1)
		self.assertEqual(results.update_success, 1)
		self.assertEqual(results.mark_success, 1)

	#~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

	def test_operations(self):
		create_file_structure(self.src, {
			"photos": {
				"a.txt": ("a", 1000),
				"b": {
					"c.txt": ("c", 1000),
				},
				"d.txt": ("d", 1000),
			},
		})
		create_file_structure(self.dst, {
			"photos": {
				"a.txt": ("a", 1000),
				"b": {
					"old.txt": ("o", 1),
				},
				"d.txt": ("dd", 1),
				"z.txt": ("z", 1),
			},
		})
		job = msync.MirrorJob(self.src / "photos", self.dst, msync.Options())
		actual = [op.summary for op in msync._operations(job)]
		expected = [
			f"= {p('photos', 'a.txt')}",
			f"+ {p('photos', 'b', 'c.txt')}",
			f"- {p('photos', 'b', 'old.txt')} -> ~del.old.txt",
			f"B {p('photos', 'd.txt')} -> ~bak.d.txt",
			f"U {p('photos', 'd.txt')}",
			f"- {p('photos', 'z.txt')} -> ~del.z.txt",
		]
		self.assertEqual(actual, expected)

		job = msync.MirrorJob(self.src / "photos", self.root / "new", msync.Options(skip_backup=True))
		actual = [op.code for op in msync._operations(job)]
		self.assertEqual(actual, ["D+", "+", "D+", "+", "+"])

	@unittest.skipIf(os.name == "nt", "symlinks need privileges on Windows")
	def test_broken_source_symlink_is_not_a_counterpart(self):
		create_file_structure(self.src, {
			"photos": {
				"a.txt": ("a", 1000),
				"link.txt": self.root / "missing",
			},
		})
		create_file_structure(self.dst, {
			"photos": {
				"a.txt": ("a", 1000),
				"link.txt": ("stale", 1),
			},
		})
		results = msync.mirror(self.dst, [self.src / "photos"], quiet=True)

		self.assertTrue(results.success)
		self.assertEqual(results.mark_success, 1)
		self.assertEqual(sorted(os.listdir(self.dst / "photos")), ["a.txt", "~del.link.txt"])
		self.assertEqual(self.read("photos", "~del.link.txt"), "stale")

	@unittest.skipIf(os.name == "nt", "symlinks need privileges on Windows")
	def test_symlink_loop(self):
		create_file_structure(self.src, {
			"photos": {
				"a.txt": ("a", 1000),
			},
		})
		create_file_structure(self.src / "photos", {
			"z": self.src / "photos",
		})
		results = msync.mirror(self.dst, [self.src / "photos"], quiet=True)

		self.assertFalse(results.success)
		self.assertEqual(results.failure.error.errno, errno.ELOOP)
		self.assertEqual(self.read("photos", "a.txt"), "a")

	#~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

	def assertRejected(self, dst, srcs, message:str):
		stderr = io.StringIO()
		with contextlib.redirect_stderr(stderr):
			results = msync.mirror(dst, srcs)
		self.assertFalse(results.success)
		self.assertIn("Input Error", stderr.getvalue())
		self.assertIn(message, stderr.getvalue())

	def test_validation(self):
		create_file_structure(self.src, {
			"photos": {
				"a.txt": ("a", 1000),
			},
			"file.txt": ("f", 1000),
			"other": {
				"photos": {},
			},
		})

		self.assertRejected(self.dst, [self.src / "missing"], "does not exist")
		self.assertRejected(self.dst, [self.src / "file.txt"], "is not a directory")
		self.assertRejected(self.dst, [self.src / "photos", str(self.src / "photos") + os.sep], "is duplicated")
		self.assertRejected(self.dst, [self.src / "photos", self.src / "other" / "photos"], "have the same name")
		self.assertRejected(self.src / "file.txt", [self.src / "photos"], "not a directory")
		self.assertRejected(self.src / "photos" / "backup", [self.src / "photos"], "inside source directory")
		self.assertRejected(self.src, [self.src / "photos"], "inside destination")
		self.assertRejected(self.dst, [], "At least one source directory")
		self.assertFalse(self.dst.exists())
		self.assertFalse((self.src / "photos" / "backup").exists())

	@unittest.skipIf(os.name == "nt" or os.geteuid() == 0, "permissions are not enforced")
	def test_unreadable_source(self):
		create_file_structure(self.src, {
			"photos": {},
		})
		(self.src / "photos").chmod(0)
		try:
			self.assertRejected(self.dst, [self.src / "photos"], "is not readable")
		finally:
			(self.src / "photos").chmod(0o755)
		self.assertFalse(self.dst.exists())

	def test_bad_types(self):
		self.assertRejected(self.dst, str(self.src), "Bad type for arg 'srcs'")
		stderr = io.StringIO()
		with contextlib.redirect_stderr(stderr):
			results = msync.mirror(self.dst, [self.src], skip_hidden="yes")
		self.assertFalse(results.success)
		self.assertIn("Bad type for arg 'skip_hidden'", stderr.getvalue())

	def test_log_file(self):
		create_file_structure(self.src, {
			"photos": {
				"a.txt": ("a", 1000),
			},
		})
		log = self.root / "run.log"
		results = msync.mirror(self.dst, [self.src / "photos"], log=log, quiet=True)

		self.assertTrue(results.success)
		self.assertEqual(results.log_file, log)
		text = log.read_text(encoding="utf-8")
		self.assertIn(f"INFO: + {p('photos', 'a.txt')}", text)
		self.assertIn("msync finished successfully", text)

		results = msync.mirror(self.dst, [self.src / "photos"], log=log, quiet=True)
		self.assertFalse(results.success)

class TestCommandLine(unittest.TestCase):
	def setUp(self):
		self._tmp = tempfile.TemporaryDirectory()
		self.root = Path(self._tmp.name)
		self.src = self.root / "photos"
		self.dst = self.root / "backup"
		create_file_structure(self.src, {
			"a.txt": ("a", 1000),
			".hidden": ("h", 1000),
		})

	def tearDown(self):
		self._tmp.cleanup()

	def run_main(self, args:list[str]) -> tuple[int, str, str]:
		stdout = io.StringIO()
		stderr = io.StringIO()
		with contextlib.redirect_stdout(stdout), contextlib.redirect_stderr(stderr):
			code = msync.main(args)
		return code, stdout.getvalue(), stderr.getvalue()

	def test_no_arguments(self):
		code, out, err = self.run_main([])
		self.assertEqual(code, 0)
		self.assertTrue(out.startswith("usage: msync"))
		self.assertEqual(err, "")

	def test_unknown_option(self):
		code, out, err = self.run_main(["-x", str(self.dst), str(self.src)])
		self.assertEqual(code, 1)
		self.assertIn("usage: msync", out)
		self.assertIn("-x", err)
		self.assertFalse(self.dst.exists())

	def test_missing_source(self):
		code, out, err = self.run_main([str(self.dst)])
		self.assertEqual(code, 1)
		self.assertIn("usage: msync", out)
		self.assertIn("At least one source", err)

		code, out, err = self.run_main([str(self.dst), str(self.root / "nope")])
		self.assertEqual(code, 1)
		self.assertIn("does not exist", err)
		self.assertNotIn("usage", out)
		self.assertFalse(self.dst.exists())

	def test_options_after_positionals(self):
		code, out, err = self.run_main([str(self.dst), str(self.src), "-v"])
		self.assertEqual(code, 1)
		self.assertIn("Source directory -v does not exist", err)
		self.assertFalse(self.dst.exists())

	def test_verbose(self):
		code, out, err = self.run_main(["-v", str(self.dst), str(self.src) + os.sep])
		self.assertEqual(code, 0)
		self.assertEqual(err, "")
		self.assertIn(f"+ {p('photos', 'a.txt')}", out)
		self.assertIn(f"+ {p('photos', '.hidden')}", out)
		self.assertIn("Summary", out)
		self.assertIn("skip_backup=False", out)
		self.assertIn("skip_hidden=False", out)
		self.assertIn(f"  1: {self.src}", out)
		self.assertIn(f"+ backup{os.sep}\n", out)
		self.assertNotIn(f"+ {self.dst}", out)
		self.assertEqual((self.dst / "photos" / "a.txt").read_text(), "a")

	def test_quiet_by_default(self):
		code, out, err = self.run_main(["-sb", "-sh", str(self.dst), str(self.src)])
		self.assertEqual(code, 0)
		self.assertEqual(out, "")
		self.assertEqual(err, "")
		self.assertEqual(sorted(os.listdir(self.dst / "photos")), ["a.txt"])

	def test_dry_run(self):
		code, out, err = self.run_main(["-v", "--dry-run", str(self.dst), str(self.src)])
		self.assertEqual(code, 0)
		self.assertIn("DRY RUN", out)
		self.assertFalse(self.dst.exists())

if __name__ == "__main__":
	try:
		unittest.main()
	except SystemExit as e:
		pass
