import sys
from pathlib import Path
import os

# Ensure repo root on sys.path for imports from anywhere in tests tree.
ROOT = Path(__file__).resolve().parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("SESSIONS_BACKEND", "memory")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("LLM_API_KEY", "test-key")

from soup_engines.sessions.kv import InMemoryKeyValueStore  # noqa: E402
from soup_engines.sessions.service import SessionStore, set_session_store  # noqa: E402

set_session_store(SessionStore(kv=InMemoryKeyValueStore()))
