"""`arraydata` - normalization of microarray data files for repository loading.

Subpackages:
- datafile: Line ending, header and format detection, rewriting, statistics
- affymetrix: CEL, CDF, CHP and EXP parsers
- pipeline: Orchestrator, processor, file tracking
"""

__version__ = "0.1.0"
