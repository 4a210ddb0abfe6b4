"""Add (or replace) a user in the users JSON file.

Usage:
  python scripts/create_user.py --username admin1 --password '...' --role admin
  python scripts/create_user.py --username ana --password '...' --role editor --role viewer

The file path defaults to AUTH_USERS_FILE (see cotizaciones.config).
"""

import argparse
import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from cotizaciones.auth.permissions import KNOWN_ROLES
from cotizaciones.auth.security import hash_password
from cotizaciones.config import load_config


def upsert_user(path: Path, *, username: str, password: str, roles: list[str]) -> dict:
    entries = []
    if path.exists():
        entries = json.loads(path.read_text(encoding="utf-8") or "[]")
        if not isinstance(entries, list):
            raise SystemExit(f"{path} must contain a JSON list")

    entry = {"username": username, "password_hash": hash_password(password), "roles": roles}
    entries = [e for e in entries if not (isinstance(e, dict) and e.get("username") == username)]
    entries.append(entry)

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(entries, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    return entry


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--username", required=True)
    ap.add_argument("--password", required=True)
    ap.add_argument("--role", action="append", choices=sorted(KNOWN_ROLES), required=True)
    ap.add_argument("--file", default=None, help="users JSON file (default: AUTH_USERS_FILE)")
    args = ap.parse_args()

    path = Path(args.file or load_config().USERS_FILE)
    entry = upsert_user(path, username=args.username, password=args.password, roles=sorted(set(args.role)))

    print(f"Saved user in {path}:")
    print({"username": entry["username"], "roles": entry["roles"]})


if __name__ == "__main__":
    main()
