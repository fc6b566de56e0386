"""Command-line interface modules for batch normalization.

This package contains core execution logic, making scripts/ optional and deletable.
"""

from arraydata.cli.run_normalize import main, run_normalize

__all__ = ['main', 'run_normalize']
