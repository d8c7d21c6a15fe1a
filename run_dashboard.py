#!/usr/bin/env python3
"""Direct launcher for the Finance Tracker dashboard.

This script runs Streamlit on ``finance_tracker/dashboard.py`` from the
project root so the app's data directory resolves next to the package.
"""

import os
import subprocess
import sys
from pathlib import Path

project_root = Path(__file__).parent.resolve()
app_path = project_root / "finance_tracker" / "dashboard.py"

if __name__ == "__main__":
    os.chdir(project_root)
    sys.path.insert(0, str(project_root))
    subprocess.run([
        sys.executable, "-m", "streamlit", "run",
        str(app_path),
    ])
