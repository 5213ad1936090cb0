import sys
from pathlib import Path

# Get the project root directory
project_root = Path(__file__).parent.absolute()

# Add project root to Python path so scripts and tests import breed_id
sys.path.insert(0, str(project_root))
