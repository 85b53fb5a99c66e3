"""
Locating class files in directories and jar/zip archives.
"""

import zipfile
from pathlib import Path
from typing import Iterator, Optional, Union

from .classfile import ClassFile, decode_class_file
from .context import DecodeOptions


class ClassPath:
    """Manages a classpath for looking up and decoding classes."""

    def __init__(self, options: Optional[DecodeOptions] = None):
        self.options = options
        self.entries: list[Union[Path, zipfile.ZipFile]] = []
        self._cache: dict[str, ClassFile] = {}
        self._zip_files: list[zipfile.ZipFile] = []

    def add_path(self, path: Union[str, Path]):
        """Add a path to the classpath (directory or jar/zip)."""
        path = Path(path)
        if path.suffix in (".jar", ".zip"):
            zf = zipfile.ZipFile(path, "r")
            self._zip_files.append(zf)
            self.entries.append(zf)
        elif path.is_dir():
            self.entries.append(path)
        else:
            raise ValueError(f"Invalid classpath entry: {path}")

    def read_bytes(self, class_name: str) -> Optional[bytes]:
        """Raw bytes of a class (e.g. 'java/lang/String'), or None if absent."""
        class_file = class_name + ".class"
        for entry in self.entries:
            if isinstance(entry, zipfile.ZipFile):
                try:
                    return entry.read(class_file)
                except KeyError:
                    continue
            else:
                path = entry / class_file
                if path.exists():
                    return path.read_bytes()
        return None

    def find_class(self, class_name: str) -> Optional[ClassFile]:
        """Find and decode a class by internal name."""
        if class_name in self._cache:
            return self._cache[class_name]
        data = self.read_bytes(class_name)
        if data is None:
            return None
        info = decode_class_file(data, self.options)
        self._cache[class_name] = info
        return info

    def iter_class_names(self) -> Iterator[str]:
        """Internal names of every class file reachable from the classpath."""
        for entry in self.entries:
            if isinstance(entry, zipfile.ZipFile):
                for name in entry.namelist():
                    if name.endswith(".class"):
                        yield name[:-len(".class")]
            else:
                for path in sorted(entry.rglob("*.class")):
                    yield path.relative_to(entry).with_suffix("").as_posix()

    def close(self):
        """Close all zip files."""
        for zf in self._zip_files:
            zf.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
