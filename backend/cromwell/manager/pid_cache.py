"""
PID cache of supervised services

Stored as JSON in MANAGER_CACHE_DIR/manager.json so a later manager
invocation (e.g. `cromwell-manager close`) can find processes started by
another one:

    {"server": {"pid": 4242, "parent_pid": 4200}, ...}
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from cromwell.core.config import settings

logger = logging.getLogger(__name__)

CACHE_FILE_NAME = "manager.json"


def get_cache_path(cache_dir: Optional[str] = None) -> Path:
    return Path(cache_dir or settings.MANAGER_CACHE_DIR) / CACHE_FILE_NAME


def load_cache(cache_dir: Optional[str] = None) -> Dict[str, Dict[str, Any]]:
    """Cached processes, {} when the file is missing or unreadable"""
    path = get_cache_path(cache_dir)
    if not path.exists():
        return {}

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning(f"Failed to read manager cache {path}: {e}")
        return {}

    return data if isinstance(data, dict) else {}


def save_process_pid(name: str, parent_pid: int, pid: Optional[int], cache_dir: Optional[str] = None):
    path = get_cache_path(cache_dir)
    cache = load_cache(cache_dir)
    cache[name] = {"pid": pid, "parent_pid": parent_pid}

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(cache, indent=2), encoding="utf-8")


def get_process_pid(name: str, cache_dir: Optional[str] = None) -> Optional[int]:
    entry = load_cache(cache_dir).get(name)
    if not entry:
        return None
    return entry.get("pid")
