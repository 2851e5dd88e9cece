from __future__ import annotations

import argparse
from pathlib import Path

from crossbot.config import freeze_config, load_config, verify_config_lock


def main() -> None:
    parser = argparse.ArgumentParser(description="Validate a controller config and write its hash lock.")
    parser.add_argument("config")
    parser.add_argument("--lock", default=None)
    parser.add_argument("--check", action="store_true", help="only verify an existing lock")
    args = parser.parse_args()

    path = Path(args.config)
    config = load_config(path)
    if args.check:
        ok = verify_config_lock(path, args.lock)
        print(f"{config.name} {path}: {'ok' if ok else 'mismatch'}")
        raise SystemExit(0 if ok else 1)

    lock_path = freeze_config(path, args.lock)
    ok = verify_config_lock(path, lock_path)
    status = "ok" if ok else "mismatch"
    print(f"Frozen {config.name} {path} -> {lock_path} ({status})")


if __name__ == "__main__":
    main()
