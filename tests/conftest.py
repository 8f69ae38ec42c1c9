import sys
from pathlib import Path

# Add project root to sys.path to allow importing root modules
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Fixtures, hooks and logging setup for the whole suite
from Candidly_Conftest import *
