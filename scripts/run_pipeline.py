#!/usr/bin/env python3
"""``revstat`` pipeline runner.

Usage:
    python scripts/run_pipeline.py scripts/user_config.py
    python scripts/run_pipeline.py scripts/user_config.py --h5-path /scratch/cerrado_100.h5
    python scripts/run_pipeline.py scripts/user_config.py --skip-export --fail-fast

Note: User config in scripts/user_config.py, expert defaults in revstat.schemas.param
"""

import sys
from pathlib import Path

# Add src to path
project_root = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(project_root / "src"))

from revstat.cli.run_pipeline import main


if __name__ == "__main__":
    sys.exit(main())
