"""Perforce command layer and spec-form handling."""

from p4_merge_all.vcs.forms import Form
from p4_merge_all.vcs.perforce import PerforceClient, parse_created_change, parse_opened_files

__all__ = [
    "Form",
    "PerforceClient",
    "parse_created_change",
    "parse_opened_files",
]
