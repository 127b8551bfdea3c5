import os
import tempfile
from pathlib import Path

# The data layer binds its engine at import time, so point it at a scratch
# database before anything imports termo.db.
os.environ.setdefault("TERMO_DB_PATH", str(Path(tempfile.mkdtemp()) / "termo-test.db"))
