"""Operator command line for inspecting and maintaining KV storage.

Usage: python3 kvstorage.py [--config PATH] [--module ID] <command> ...

Commands: store, load, delete, list, stat, lock, unlock, health.
Exit codes: 0 success, 1 storage failure, 2 key not found, 3 lock held.
"""
from __future__ import annotations
import argparse
import json
import sys
from pathlib import Path
from typing import Iterable, Optional

from kvstorage_lib.config.config import ConfigError, load_config
from kvstorage_lib.health import get_health
from kvstorage_lib.logging_config import configure_logging
from kvstorage_lib.registry import default_registry
from kvstorage_lib.storage.errors import KeyNotFoundError, LockContentionError, StorageError
from kvstorage_lib.storage.kv_backend import MODULE_ID

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_NOT_FOUND = 2
EXIT_LOCKED = 3


def get_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="kvstorage", description="Key-value storage maintenance tool")
    p.add_argument("--config", type=Path, help="YAML config file (default data/config/storage.yml)")
    p.add_argument("--module", default=MODULE_ID, help="storage module id")
    sub = p.add_subparsers(dest="command", required=True)

    s = sub.add_parser("store", help="store a value")
    s.add_argument("key")
    src = s.add_mutually_exclusive_group(required=True)
    src.add_argument("--value", help="value as UTF-8 text")
    src.add_argument("--file", type=Path, help="read the value from a file")

    s = sub.add_parser("load", help="print a value")
    s.add_argument("key")
    s.add_argument("--output", type=Path, help="write the value to a file instead of stdout")

    for name in ("delete", "stat", "lock", "unlock"):
        s = sub.add_parser(name, help=f"{name} a key")
        s.add_argument("key")

    s = sub.add_parser("list", help="list keys under a prefix")
    s.add_argument("prefix", nargs="?", default="")
    s.add_argument("--recursive", action="store_true")

    sub.add_parser("health", help="probe the storage backend")
    return p


def build_storage(args: argparse.Namespace):
    options = {}
    if args.module == MODULE_ID:
        options = load_config(args.config).model_dump()
    return default_registry().create(args.module, options)


def run(args: argparse.Namespace, storage) -> int:
    cmd = args.command
    if cmd == "store":
        data = args.file.read_bytes() if args.file else args.value.encode("utf-8")
        storage.store(args.key, data)
    elif cmd == "load":
        data = storage.load(args.key)
        if args.output:
            args.output.write_bytes(data)
        else:
            sys.stdout.buffer.write(data)
            sys.stdout.flush()
    elif cmd == "delete":
        storage.delete(args.key)
    elif cmd == "list":
        for key in storage.list(args.prefix, args.recursive):
            print(key)
    elif cmd == "stat":
        info = storage.stat(args.key)
        print(json.dumps({"key": info.key, "size": info.size, "modified": info.modified, "terminal": info.is_terminal}))
    elif cmd == "lock":
        storage.lock(args.key)
        print(f"locked {args.key}")
    elif cmd == "unlock":
        storage.unlock(args.key)
        print(f"unlocked {args.key}")
    elif cmd == "health":
        health = get_health(storage)
        print(json.dumps(health, indent=2))
        return EXIT_OK if health["status"] == "ok" else EXIT_FAILURE
    return EXIT_OK


def main(argv: Optional[Iterable[str]] = None, storage=None) -> int:
    args = get_parser().parse_args(list(argv) if argv is not None else None)
    configure_logging(args.config)
    owned = storage is None
    try:
        if storage is None:
            storage = build_storage(args)
        return run(args, storage)
    except ConfigError as e:
        print(f"configuration error: {e}", file=sys.stderr)
        return EXIT_FAILURE
    except KeyNotFoundError as e:
        print(str(e), file=sys.stderr)
        return EXIT_NOT_FOUND
    except LockContentionError as e:
        print(str(e), file=sys.stderr)
        return EXIT_LOCKED
    except StorageError as e:
        print(f"{e.operation or 'storage'} failed: {e}", file=sys.stderr)
        return EXIT_FAILURE
    finally:
        close = getattr(storage, "close", None)
        if owned and callable(close):
            close()
