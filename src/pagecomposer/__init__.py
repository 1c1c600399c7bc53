"""
PageComposer - Python package for composing PDF documents page by page

This package builds a new document out of pages drawn from several source
documents, each page individually reorderable, rotatable and removable
before the final assembly.
"""

__version__ = "1.0.0"
__author__ = "PageComposer Team"
__license__ = "GPL-3.0"


def main() -> int:
    """Main entry point for the command line interface.

    Returns:
        The process exit code.
    """
    from pagecomposer.cli import main as cli_main

    return cli_main()


__all__ = ["main", "__version__", "__author__", "__license__"]
