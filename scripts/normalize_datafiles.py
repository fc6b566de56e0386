#!/usr/bin/env python3
"""arraydata batch normalization runner.

Usage:
    python scripts/normalize_datafiles.py -c scripts/user_config.py
    python scripts/normalize_datafiles.py -o /scratch/out /data/raw/*.gpr
    python scripts/normalize_datafiles.py -c scripts/user_config.py --data-type measured_data_matrix --mage-tab

Note: User config in scripts/user_config.py, expert config in src/arraydata/schemas/param.py
"""

import sys
from pathlib import Path

# Add src to path
project_root = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(project_root / "src"))

from arraydata.cli.run_normalize import main


if __name__ == "__main__":
    sys.exit(main())
