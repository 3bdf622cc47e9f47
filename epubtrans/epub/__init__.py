# epub/__init__.py
from epubtrans.epub.archive import extracted, iter_tree, pack, read_entry_names, unpack
from epubtrans.epub.package import PackageDocument, PackageResolver

__all__ = [
    "extracted", "iter_tree", "pack", "read_entry_names", "unpack",
    "PackageDocument", "PackageResolver",
]
