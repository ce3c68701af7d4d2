"""Repository index helpers: eligible files, fingerprints, module identity."""

from recon.index.files import (
    SourceFile,
    collect_eligible_files,
    compute_fingerprint,
    current_fingerprint,
)
from recon.index.module import ModuleDescriptor, find_module_root, resolve_module
from recon.index.probes import RepoProbes

__all__ = [
    "SourceFile",
    "collect_eligible_files",
    "compute_fingerprint",
    "current_fingerprint",
    "ModuleDescriptor",
    "find_module_root",
    "resolve_module",
    "RepoProbes",
]
