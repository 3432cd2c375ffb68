# Copyright (c) 2025 Joe Walter
# GNU General Public License v3.0

import sys
import argparse
import os
import errno
import stat
import shutil
import logging
import tempfile
import time
import traceback
from pathlib import Path
from collections.abc import Iterator, Sequence
from typing import NamedTuple

logger = logging.getLogger(__name__)
logger.setLevel(logging.DEBUG)

MARKER_PREFIX = "~"
BAK_PREFIX    = "~bak."
DEL_PREFIX    = "~del."
TMP_PREFIX    = "~tmp."

class _DebugInfoFilter(logging.Filter):
	'''Logging filter that only allows DEBUG and INFO records to pass.'''

	def filter(self, record):
		return logging.DEBUG <= record.levelno <= logging.INFO

class _UsageParser(argparse.ArgumentParser):
	'''`ArgumentParser` that reports usage errors on stderr, prints the usage on stdout, and exits with 1.'''

	def error(self, message):
		sys.stderr.write(f"{self.prog}: error: {message}\n")
		self.print_usage(sys.stdout)
		self.exit(1)

class _ArgParser:
	'''Argument parser for when this python file is run with arguments instead of an imported module.'''

	parser = _UsageParser(
		prog="msync",
		usage="%(prog)s [-v] [-sb] [-sh] [options] dest_dir src_dir [src_dir ...]",
		description="Mirror one or more directories into a destination directory. Changed files are backed up as `~bak.<name>` before being overwritten, and files no longer in the source are renamed to `~del.<name>`. Nothing is ever deleted.",
		epilog="(c) 2025 Joe Walter",
		allow_abbrev=False,
	)

	parser.add_argument("dest_dir", help="The root directory to mirror into. It will be created if it does not exist. Each source directory is mirrored into a subdirectory of the same name.")
	parser.add_argument("src_dirs", nargs=argparse.REMAINDER, help="One or more directories to mirror. Every argument after `dest_dir` is taken as a source directory.")

	parser.add_argument("-v", dest="verbose", action="store_true", default=False, help="Print every operation that is performed.")
	parser.add_argument("-sb", dest="skip_backup", action="store_true", default=False, help="Overwrite changed files without first renaming them to `~bak.<name>`.")
	parser.add_argument("-sh", dest="skip_hidden", action="store_true", default=False, help="Skip hidden files and directories. They are neither copied nor marked as deleted.")
	parser.add_argument("-d", "--dry-run", action="store_true", default=False, help="Forgo performing any operation that would make a file system change. Changes that would have occurred will still be printed with -v.")
	parser.add_argument("-q", "--quiet", action="store_true", default=False, help="Forgo printing to stdout and stderr.")

	parser.add_argument("--log", metavar="path", nargs="?", type=str, default=None, const="auto", help="The path of the log file to use. It must not already exist. With \"auto\" or no argument, the log is written to the user's home directory. If this flag is absent, then no log file is written.")
	parser.add_argument("--debug", action="store_true", default=False, help="Log debug messages.")

	@staticmethod
	def parse(args:list[str]) -> argparse.Namespace:
		parsed_args = _ArgParser.parser.parse_args(args)
		if not parsed_args.src_dirs:
			_ArgParser.parser.error("At least one source and one destination directories are required")
		return parsed_args

class Options(NamedTuple):
	'''Switches shared by every step of a mirror run.'''

	verbose     : bool = False
	skip_backup : bool = False
	skip_hidden : bool = False
	dry_run     : bool = False

class MirrorJob(NamedTuple):
	'''One source root to be mirrored under a destination root.'''

	src_root : Path
	dst_root : Path
	options  : Options

	@property
	def dst_dir(self) -> Path:
		return self.dst_root / self.src_root.name

class _Metadata(NamedTuple):
	'''File metadata that decides whether a mirrored file is up to date.'''

	size  : int
	mtime : int

	@staticmethod
	def of(st:os.stat_result) -> "_Metadata":
		return _Metadata(size = st.st_size, mtime = st.st_mtime_ns)

class _Op(NamedTuple):
	'''A single file system operation yielded by `_operations()`.'''

	code      : str
	src       : Path | None
	dst       : Path
	byte_diff : int
	summary   : str

class _Frame(NamedTuple):
	'''A source directory whose entries are still being mirrored.'''

	src_dir : Path
	dst_dir : Path
	ident   : tuple[int, int]
	entries : Iterator[os.DirEntry]

class Failure(NamedTuple):
	'''The operation that halted a mirror run, and the error it raised.'''

	summary : str
	error   : OSError

	def __str__(self) -> str:
		return f"{_error_summary(self.error)} ({self.summary})"

class Results:
	'''Various statistics and other information returned by `mirror()`.'''

	def __init__(self) -> None:
		self.log_file : Path | None    = None

		self.success  : bool           = False
		self.failure  : Failure | None = None
		self.errors   : list[str]      = []

		self.dir_create_success = 0
		self.create_success     = 0
		self.update_success     = 0
		self.backup_success     = 0
		self.mark_success       = 0
		self.unchanged          = 0
		self.byte_diff          = 0

	def count(self, op:_Op) -> None:
		'''Record an operation that completed.'''

		if op.code == "D+":
			self.dir_create_success += 1
		elif op.code == "+":
			self.create_success += 1
		elif op.code == "U":
			self.update_success += 1
		elif op.code == "B":
			self.backup_success += 1
		elif op.code == "-":
			self.mark_success += 1
		elif op.code == "=":
			self.unchanged += 1
		else:
			assert False
		self.byte_diff += op.byte_diff

def mirror_cmd(args:list[str]) -> Results:
	'''Run `mirror()` with command line arguments.'''

	parsed_args = _ArgParser.parse(args)
	return mirror(
		parsed_args.dest_dir,
		parsed_args.src_dirs,
		verbose     = parsed_args.verbose,
		skip_backup = parsed_args.skip_backup,
		skip_hidden = parsed_args.skip_hidden,
		dry_run     = parsed_args.dry_run,
		log         = parsed_args.log,
		debug       = parsed_args.debug,
		quiet       = parsed_args.quiet,
	)

def mirror(
		dst         : str | os.PathLike[str],
		srcs        : Sequence[str | os.PathLike[str]],
		*,
		verbose     : bool = False,
		skip_backup : bool = False,
		skip_hidden : bool = False,
		dry_run     : bool = False,
		log         : str | os.PathLike[str] | None = None,
		debug       : bool = False,
		quiet       : bool = False,
	) -> Results:
	'''
	Mirrors each directory in `srcs` into a subdirectory of `dst` with the same name. New files are copied, files whose size or modification time differ are backed up (renamed to `~bak.<name>`) and then overwritten, and files in `dst` without a counterpart in the source are renamed to `~del.<name>`. Nothing is ever deleted, and the source directories are never modified.

	Files are considered unchanged when their size and modification time are equal; contents are never compared. Entries of each directory are processed in name order, and a directory's files are only marked as deleted after all of its subdirectories are mirrored. The run stops at the first file system error, leaving what was already done in place. Running two mirrors into the same `dst` at once is not supported.

	Args
		dst (str or PathLike)           : The path of the root directory to mirror into. Created if missing.
		srcs (sequence of str/PathLike) : The paths of the directories to mirror, in order. Trailing path separators are ignored.

		verbose (bool)                  : Whether to print every operation and a summary to stdout. (Defaults to `False`.)
		skip_backup (bool)              : Whether to overwrite changed files without making a `~bak.` marker first. (Defaults to `False`.)
		skip_hidden (bool)              : Whether to skip hidden files and directories. A skipped entry is neither copied nor marked as deleted. (Defaults to `False`.)
		dry_run (bool)                  : Whether to hold off performing any operation that would make a file system change. (Defaults to `False`.)

		log (str or PathLike)           : The path of the log file to use. It must not already exist. A value of "auto" means a file in the user's home directory. A value of `None` will skip logging to a file. (Defaults to `None`.)
		debug (bool)                    : Whether to log debug messages. (Default to `False`.)
		quiet (bool)                    : Whether to forgo printing to stdout and stderr. (Default to `False`.)

	A source entry only counts as a counterpart of a destination file if it exists, so a broken symlink in the source does not keep its destination file from being marked as deleted.

	Example Console Output (verbose)
		verbose=True
		skip_backup=False
		skip_hidden=False
		dry_run=False
		dest_dir=path/to/backup
		src_dirs=
		  1: path/to/photos

		   path/to/photos
		-> path/to/backup/photos
		------------------------
		+ photos/2024/
		+ photos/2024/beach.jpg
		B photos/index.txt -> ~bak.index.txt
		U photos/index.txt
		= photos/notes.txt
		- photos/old.jpg -> ~del.old.jpg

		*** msync finished successfully. ***

		Summary
		-------
		Dirs Created: 1
		New Files: 1
		Updated Files: 1 (Backups: 1)
		Unchanged Files: 1
		Marked Deleted: 1
		Net Change: +2 MB

	Returns
		A `Results` object containing various statistics.
	'''
	results = Results()

	if logger.handlers:
		for handler in list(logger.handlers):
			logger.removeHandler(handler)

	log_file       = None
	tmp_log_file   = None
	handler_stdout = None
	handler_stderr = None
	handler_file   = None
	handler_null   = None

	if verbose and not quiet:
		handler_stdout = logging.StreamHandler(sys.stdout)
		handler_stdout.setFormatter(logging.Formatter("%(message)s"))
		handler_stdout.addFilter(_DebugInfoFilter())
		if debug:
			handler_stdout.setLevel(logging.DEBUG)
		else:
			handler_stdout.setLevel(logging.INFO)
		logger.addHandler(handler_stdout)

	if not quiet:
		handler_stderr = logging.StreamHandler(sys.stderr)
		handler_stderr.setFormatter(logging.Formatter("%(message)s"))
		handler_stderr.setLevel(logging.WARNING)
		logger.addHandler(handler_stderr)
	else:
		handler_null = logging.NullHandler()
		logger.addHandler(handler_null)

	try:
		if not isinstance(dst, (str, os.PathLike)):
			msg = f"Bad type for arg 'dst' (expected str or PathLike): {dst}"
			raise TypeError(msg)
		if isinstance(srcs, (str, os.PathLike)) or not isinstance(srcs, Sequence):
			msg = f"Bad type for arg 'srcs' (expected a sequence of str or PathLike): {srcs}"
			raise TypeError(msg)
		for src in srcs:
			if not isinstance(src, (str, os.PathLike)):
				msg = f"Bad type for source directory (expected str or PathLike): {src}"
				raise TypeError(msg)
		for name, value in (("verbose", verbose), ("skip_backup", skip_backup), ("skip_hidden", skip_hidden), ("dry_run", dry_run), ("debug", debug), ("quiet", quiet)):
			if not isinstance(value, bool):
				msg = f"Bad type for arg '{name}' (expected bool): {value}"
				raise TypeError(msg)
		if log is not None and not isinstance(log, (str, os.PathLike)):
			msg = f"Bad type for arg 'log' (expected str or PathLike): {log}"
			raise TypeError(msg)

		dst_root, src_roots = _validate(dst, srcs)

		timestamp = str(int(time.time()*1000))
		if log is None:
			log_file = None
		elif log == "auto":
			log_file = Path.home() / f"msync.{timestamp}.log"
		else:
			log_file = Path(log)
		results.log_file = log_file

		if log_file is not None and os.path.exists(log_file):
			msg = f"Chosen log already exists: {log_file}"
			raise ValueError(msg)

		if log_file is not None:
			with tempfile.NamedTemporaryFile(mode="w+", encoding="utf-8", delete=False) as tmp_log:
				tmp_log_file = Path(tmp_log.name)
			formatter = logging.Formatter("%(levelname)s: %(message)s")
			handler_file = logging.FileHandler(tmp_log_file, encoding="utf-8")
			handler_file.setFormatter(formatter)
			if debug:
				handler_file.setLevel(logging.DEBUG)
			else:
				handler_file.setLevel(logging.INFO)
			logger.addHandler(handler_file)

		options = Options(
			verbose     = verbose,
			skip_backup = skip_backup,
			skip_hidden = skip_hidden,
			dry_run     = dry_run,
		)
		logger.debug(f"Starting mirror: {dst_root=} {src_roots=} {options=} {log_file=} {debug=}")
		logger.info(f"verbose={verbose}")
		logger.info(f"skip_backup={skip_backup}")
		logger.info(f"skip_hidden={skip_hidden}")
		logger.info(f"dry_run={dry_run}")
		logger.info(f"dest_dir={dst_root}")
		logger.info("src_dirs=")
		for i, src_root in enumerate(src_roots, start=1):
			logger.info(f"{i:3d}: {src_root}")
		logger.info("")

		failure = None
		if not dst_root.is_dir():
			op = _Op("D+", None, dst_root, 0, f"+ {dst_root.name}{os.sep}")
			logger.info(op.summary)
			failure = _apply(op, dry_run=dry_run)
			if failure is None:
				results.count(op)

		if failure is None:
			for src_root in src_roots:
				if skip_hidden and _is_hidden(src_root):
					logger.info(f"Skipping hidden source directory: {src_root}")
					continue
				failure = _run_job(MirrorJob(src_root, dst_root, options), results)
				if failure is not None:
					break

		if failure is not None:
			results.failure = failure
			msg = str(failure)
			logger.error(msg)
			results.errors.append(msg)
		else:
			logger.info("")
			logger.info("*** msync finished successfully. ***")
			results.success = True

	except KeyboardInterrupt:
		logger.critical(f"Cancelled by user.")
	except (TypeError, ValueError) as e:
		logger.critical(f"Input Error: {e}")
	except Exception as e:
		logger.critical("Unexpected error: " + _error_summary(e))
		logger.critical(traceback.format_exc())

	finally:
		if dry_run:
			logger.info("")
			logger.info("*** DRY RUN ***")
		else:
			logger.info("")
			logger.info("Summary")
			logger.info("-------")
			logger.info(f"Dirs Created: {results.dir_create_success}")
			logger.info(f"New Files: {results.create_success}")
			logger.info(f"Updated Files: {results.update_success} (Backups: {results.backup_success})")
			logger.info(f"Unchanged Files: {results.unchanged}")
			logger.info(f"Marked Deleted: {results.mark_success}")
			logger.info(f"Net Change: {_human_readable_size(results.byte_diff)}")

		if results.errors:
			logger.info("")
			logger.info("The run was stopped by an error:")
			for error in results.errors:
				logger.info(error)

		if log_file:
			logger.info("")
			logger.info(f"Log file: {log_file}")

		if handler_stdout:
			logger.removeHandler(handler_stdout)

		if handler_stderr:
			logger.removeHandler(handler_stderr)

		if handler_null:
			logger.removeHandler(handler_null)

		if handler_file:
			logger.removeHandler(handler_file)
			handler_file.close()
			assert tmp_log_file is not None
			assert log_file is not None
			shutil.move(tmp_log_file, log_file)

	return results

def _validate(dst:str | os.PathLike[str], srcs:Sequence[str | os.PathLike[str]]) -> tuple[Path, list[Path]]:
	'''Checks the destination and source directories before anything is changed, and returns them as absolute paths.'''

	if not srcs:
		raise ValueError("At least one source directory is required")

	dst_root = Path(os.path.abspath(dst))
	if dst_root.exists() and not dst_root.is_dir():
		msg = f"Destination {dst} already exists but it is not a directory"
		raise ValueError(msg)

	dst_resolved = dst_root.resolve()
	src_roots : list[Path] = []
	seen      : dict[Path, str] = {}
	names     : dict[str, str]  = {}
	for src in srcs:
		src = _strip_trailing_sep(os.fspath(src))
		if not os.path.exists(src):
			raise ValueError(f"Source directory {src} does not exist")
		if not os.path.isdir(src):
			raise ValueError(f"Source {src} is not a directory")
		if not os.access(src, os.R_OK | os.X_OK):
			raise ValueError(f"Source directory {src} is not readable")

		resolved = Path(src).resolve()
		if resolved in seen:
			raise ValueError(f"Source directory {src} is duplicated")

		src_root = Path(os.path.abspath(src))
		if not src_root.name:
			raise ValueError(f"Source directory {src} has no name to mirror it under")
		name = os.path.normcase(src_root.name)
		if name in names:
			raise ValueError(f"Source directories {names[name]} and {src} have the same name")

		if dst_resolved == resolved or dst_resolved.is_relative_to(resolved):
			raise ValueError(f"Destination {dst} is inside source directory {src}")
		if resolved.is_relative_to(dst_resolved):
			raise ValueError(f"Source directory {src} is inside destination {dst}")

		seen[resolved] = src
		names[name] = src
		src_roots.append(src_root)

	return dst_root, src_roots

def _run_job(job:MirrorJob, results:Results) -> Failure | None:
	'''Performs the operations of one job until they run out or one of them fails.'''

	width = max(len(str(job.src_root)), len(str(job.dst_dir))) + 3
	logger.info("   " + str(job.src_root))
	logger.info("-> " + str(job.dst_dir))
	logger.info("-" * width)

	ops = _operations(job)
	while True:
		try:
			op = next(ops, None)
		except OSError as e:
			return Failure(f"scan {e.filename or job.src_root}", e)
		if op is None:
			return None
		logger.info(op.summary)
		failure = _apply(op, dry_run=job.options.dry_run)
		if failure is not None:
			ops.close()
			return failure
		results.count(op)

def _apply(op:_Op, *, dry_run:bool) -> Failure | None:
	'''Performs `op`, returning a `Failure` instead of raising if the file system refuses it.'''

	if dry_run or op.code == "=":
		return None
	try:
		if op.code == "D+":
			op.dst.mkdir(parents=True, exist_ok=True)
		elif op.code == "+":
			assert op.src is not None
			_copy(op.src, op.dst, exist_ok=False)
		elif op.code == "U":
			assert op.src is not None
			_copy(op.src, op.dst, exist_ok=True)
		elif op.code == "B" or op.code == "-":
			assert op.src is not None
			_move(op.src, op.dst)
		else:
			assert False
	except OSError as e:
		return Failure(op.summary, e)
	return None

def _operations(job:MirrorJob) -> Iterator[_Op]:
	'''
	Generator of file system operations that mirror `job.src_root` into `job.dst_dir`.

	Operations are planned lazily against the current state of the destination, so each one must be performed before the next is requested. Directories are walked depth first with an explicit stack. Every directory's entries are handled in name order, and the deletion pass of a directory starts only when all of its entries, subdirectories included, are done.
	'''

	skip_hidden = job.options.skip_hidden
	skip_backup = job.options.skip_backup

	def relpath(path:Path) -> str:
		return str(path.relative_to(job.dst_root))

	def enter(src_dir:Path, dst_dir:Path, ident:tuple[int, int]) -> Iterator[_Op]:
		logger.debug(f"Now processing {src_dir} -> {dst_dir}")
		if not dst_dir.is_dir():
			yield _Op("D+", None, dst_dir, 0, f"+ {relpath(dst_dir)}{os.sep}")
		stack.append(_Frame(src_dir, dst_dir, ident, iter(_scandir(src_dir))))

	stack : list[_Frame] = []
	yield from enter(job.src_root, job.dst_dir, _ident(job.src_root))

	while stack:
		frame = stack[-1]
		entry = next(frame.entries, None)

		if entry is None:
			stack.pop()
			yield from _mark_deleted(frame.src_dir, frame.dst_dir, relpath=relpath, skip_hidden=skip_hidden)
			continue

		if skip_hidden and _is_hidden(entry):
			logger.debug(f"Skipping hidden: {entry.path}")
			continue

		dst_path = frame.dst_dir / entry.name
		if entry.is_dir():
			ident = _ident(entry.path)
			if any(ident == f.ident for f in stack):
				raise OSError(errno.ELOOP, "Symlink circular reference", entry.path)
			yield from enter(Path(entry.path), dst_path, ident)
		elif entry.is_file():
			yield from _reconcile(entry, dst_path, summary_path=relpath(dst_path), skip_backup=skip_backup)
		else:
			logger.warning(f"Not a regular file or directory, skipping: {entry.path}")

def _reconcile(entry:os.DirEntry, dst:Path, *, summary_path:str, skip_backup:bool) -> Iterator[_Op]:
	'''Yields the operations that bring `dst` up to date with the source file `entry`.'''

	src = Path(entry.path)
	src_stat = entry.stat()
	try:
		dst_stat = dst.stat()
	except (FileNotFoundError, NotADirectoryError):
		yield _Op("+", src, dst, src_stat.st_size, f"+ {summary_path}")
		return

	if _Metadata.of(src_stat) == _Metadata.of(dst_stat):
		yield _Op("=", src, dst, 0, f"= {summary_path}")
		return

	if not skip_backup:
		backup = dst.with_name(BAK_PREFIX + dst.name)
		yield _Op("B", dst, backup, 0, f"B {summary_path} -> {backup.name}")
	yield _Op("U", src, dst, src_stat.st_size - dst_stat.st_size, f"U {summary_path}")

def _mark_deleted(src_dir:Path, dst_dir:Path, *, relpath, skip_hidden:bool) -> Iterator[_Op]:
	'''Yields a rename to `~del.<name>` for each file directly in `dst_dir` that is missing from `src_dir`.'''

	if not dst_dir.is_dir():
		# not created in a dry run
		return

	for entry in _scandir(dst_dir):
		if entry.is_dir() or entry.name.startswith(MARKER_PREFIX):
			continue
		if skip_hidden and _is_hidden(entry):
			continue
		if os.path.exists(src_dir / entry.name):
			continue
		dst = Path(entry.path)
		marker = dst_dir / (DEL_PREFIX + entry.name)
		yield _Op("-", dst, marker, 0, f"- {relpath(dst)} -> {marker.name}")

def _scandir(dir:Path) -> list[os.DirEntry]:
	'''Lists the entries directly in `dir`, sorted by name.'''

	with os.scandir(dir) as it:
		return sorted(it, key=lambda entry: entry.name)

def _ident(path:str | os.PathLike[str]) -> tuple[int, int]:
	'''Device and inode of the directory at `path`, following symlinks.'''

	st = os.stat(path)
	return (st.st_dev, st.st_ino)

def _is_hidden(entry:os.DirEntry | Path) -> bool:
	'''
	Whether a file system entry is hidden: its name starts with a dot, or it has the hidden attribute on Windows.

	>>> _is_hidden(Path(".git"))
	True
	'''

	if entry.name.startswith("."):
		return True
	attributes = getattr(os.lstat(entry), "st_file_attributes", 0)
	return bool(attributes & stat.FILE_ATTRIBUTE_HIDDEN)

def _copy(src:Path, dst:Path, *, exist_ok:bool = True) -> None:
	'''Copy file from `src` to `dst`, keeping timestamp metadata. Existing files will be overwritten if `exist_ok` is `True`. Otherwise this method will raise a `FileExistsError`.'''

	if dst.exists():
		if not exist_ok:
			raise FileExistsError(errno.EEXIST, "Cannot copy, dst exists", str(dst))
		if not dst.is_file():
			raise FileExistsError(errno.EEXIST, "Cannot copy, dst is not a file", str(dst))

	fd, tmp_name = tempfile.mkstemp(prefix=TMP_PREFIX, dir=dst.parent)
	os.close(fd)
	dst_tmp = Path(tmp_name)
	delete_tmp = True
	try:
		# Copy into a temp file, with metadata
		shutil.copy2(src, dst_tmp)
		try:
			# Rename the temp file into the dest file
			dst_tmp.replace(dst)
		except PermissionError:
			# Remove read-only flag and try again
			if not dst.exists() or dst.stat().st_mode & stat.S_IWRITE:
				raise
			dst.chmod(stat.S_IWRITE | stat.S_IREAD)
			dst_tmp.replace(dst)
		delete_tmp = False
	finally:
		# Remove the temp copy if there are any errors
		if delete_tmp:
			dst_tmp.unlink(missing_ok=True)

def _move(src:Path, dst:Path) -> None:
	'''Rename file `src` to `dst` in place. Raises a `FileExistsError` if `dst` exists, so markers are never overwritten.'''

	if os.path.lexists(dst):
		raise FileExistsError(errno.EEXIST, "Cannot rename, marker exists", str(dst))
	src.rename(dst)

def _strip_trailing_sep(path:str) -> str:
	'''
	Removes trailing path separators, keeping a lone root separator.

	>>> _strip_trailing_sep("photos/")
	'photos'
	>>> _strip_trailing_sep("/")
	'/'
	'''

	seps = "/" + os.sep + (os.altsep or "")
	return path.rstrip(seps) or path

def _human_readable_size(n:int) -> str:
	'''
	Translates `n` bytes into a human-readable size.

	>>> _human_readable_size(1023)
	'+1023 bytes'
	>>> _human_readable_size(-1024)
	'-1 KB'
	>>> _human_readable_size(2.1 * 1024 * 1024)
	'+2 MB'
	'''

	sign = "-" if n < 0 else "+"
	n = abs(n)
	units = ["bytes", "KB", "MB", "GB", "TB", "PB"]
	i = 0
	while n >= 1024 and i < len(units) - 1:
		n //= 1024
		i += 1
	return f"{sign}{round(n)} {units[i]}"

def _error_summary(e):
	'''Get a one-line summary of an Error.'''

	if isinstance(e, OSError):
		error_type = type(e).__name__
		reason = e.strerror or str(e)
		affected_file = getattr(e, "filename", None) or "N/A"
		msg = f"{error_type}: {reason}: {affected_file}"
	else:
		error_type = type(e).__name__
		error_message = getattr(e, "strerror", None) or str(e) or "Unknown error"
		msg = f"{error_type}: {error_message}"
	return msg

def main(argv:list[str] | None = None) -> int:
	if argv is None:
		argv = sys.argv[1:]
	if not argv:
		_ArgParser.parser.print_usage(sys.stdout)
		return 0
	try:
		results = mirror_cmd(argv)
	except SystemExit as e:
		# from argparse
		return e.code if isinstance(e.code, int) else 0
	return 0 if results.success else 1

if __name__ == "__main__":
	sys.exit(main())
