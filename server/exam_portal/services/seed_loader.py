"""
Seed Data Loader.

Reads the demo accounts and exams shipped in seed_data.yaml.
"""
import os
import yaml
from typing import Dict, Any, List, Tuple
from functools import lru_cache

from exam_portal.models import Exam, AnyUser, user_from_dict
from exam_portal.security import hash_password

SEED_FILE = os.path.join(os.path.dirname(__file__), "..", "seed_data.yaml")


@lru_cache(maxsize=4)
def _load_seed_file(path: str) -> Dict[str, Any]:
    """Load the seed YAML with caching."""
    if not os.path.exists(path):
        print(f"⚠️ Seed file not found: {path}")
        return {}

    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_seed_data(path: str = SEED_FILE) -> Tuple[List[AnyUser], List[Exam]]:
    """
    Build seed users and exams.

    Seed passwords are written in plaintext in the YAML and hashed here.
    """
    data = _load_seed_file(os.path.abspath(path))

    users = []
    for raw in data.get("users", []):
        record = dict(raw)
        record["password"] = hash_password(str(record["password"]))
        users.append(user_from_dict(record))

    exams = [Exam.model_validate(raw) for raw in data.get("exams", [])]
    return users, exams
