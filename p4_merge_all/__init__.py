"""p4-merge-all: resumable multi-branch Perforce integration campaigns."""

__version__ = "0.3.0"
