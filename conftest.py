"""
Root conftest.py: makes the 'freight_tracking' and 'tests' packages importable
without installing the project.
"""
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))
