import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DEFAULT_CHANNEL", "default-channel")
os.environ.setdefault("INIT_DB_ON_STARTUP", "false")
