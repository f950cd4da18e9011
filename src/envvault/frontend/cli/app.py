"""Local EnvVault command line.

Everything happens on this machine: secrets are encrypted before they are
written to a bundle and decrypted only in memory. Start with
``envvault seal .env -b secrets.json``.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import subprocess
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from envvault.core.envfile import load_env_file, serialize_env, write_env_file
from envvault.core.exceptions import (
    DECRYPT_FAILURE_MESSAGE,
    AuthenticationFailure,
    EnvVaultError,
    MalformedInput,
)
from envvault.core.models import ExpiryPolicy, ShareEnvelope
from envvault.frontend.cli.bundle import Bundle, load_bundle, save_bundle
from envvault.frontend.cli.clipboard import copy_to_clipboard
from envvault.frontend.cli.context import AppContext, build_context
from envvault.frontend.cli.logging_config import configure_logging
from envvault.security.envelope import (
    decrypt_to_mapping,
    encrypt_secret,
    find_by_key_name,
    latest_versions,
    migrate_legacy,
    update_secret,
)
from envvault.security.kdf import generate_salt
from envvault.security.share import (
    build_share_link,
    create_share,
    parse_share_link,
    resolve_share,
)

logger = logging.getLogger(__name__)


def _mask(value: Optional[str]) -> str:
    return f"{value[:4]}..." if value else "-"


def _unlock_bundle(ctx: AppContext, bundle: Bundle, confirm: bool = False) -> Dict[str, str]:
    # Unlock the session for this bundle and prove the password by decrypting it.
    password = ctx.read_password(confirm=confirm)
    ctx.session.unlock_with_password(password, bundle.salt, bundle.iterations, ttl_seconds=ctx.session_ttl)
    return decrypt_to_mapping(ctx.session.get_master_key(), latest_versions(bundle.records))


# === Commands ===


def cmd_seal(ctx: AppContext, args) -> int:
    secrets = load_env_file(args.envfile)
    bundle_path = Path(args.bundle)
    if bundle_path.exists():
        bundle = load_bundle(bundle_path)
        current = _unlock_bundle(ctx, bundle)
    else:
        bundle = Bundle(salt=generate_salt(), iterations=ctx.iterations)
        current = _unlock_bundle(ctx, bundle, confirm=True)

    key = ctx.session.get_master_key()
    added = updated = unchanged = 0

    for record in latest_versions(bundle.records):
        if record.is_legacy:
            bundle.records.append(migrate_legacy(key, record))

    for name, value in secrets.items():
        previous = find_by_key_name(bundle.records, name)
        if previous is None:
            bundle.records.append(encrypt_secret(key, name, value))
            added += 1
        elif current.get(name) != value:
            bundle.records.append(update_secret(key, previous, value))
            updated += 1
        else:
            unchanged += 1

    save_bundle(bundle_path, bundle)
    print(f"Sealed {len(secrets)} secrets into {bundle_path} ({added} added, {updated} updated, {unchanged} unchanged)")
    return 0


def cmd_open(ctx: AppContext, args) -> int:
    secrets = _unlock_bundle(ctx, load_bundle(args.bundle))
    if not args.output:
        sys.stdout.write(serialize_env(secrets))
        return 0

    out = Path(args.output)
    if out.exists() and not args.force:
        print(f"{out} already exists; pass --force to overwrite", file=sys.stderr)
        return 1
    write_env_file(out, secrets)
    print(f"Wrote {len(secrets)} secrets to {out}")
    return 0


def cmd_run(ctx: AppContext, args) -> int:
    command: List[str] = list(args.command)
    if command and command[0] == "--":
        command = command[1:]
    if not command:
        print("no command given (usage: envvault run BUNDLE -- CMD ...)", file=sys.stderr)
        return 2

    secrets = _unlock_bundle(ctx, load_bundle(args.bundle))
    # the key is not needed while the child runs
    ctx.session.lock()
    logger.info("injecting %d environment variables", len(secrets))
    env = {**os.environ, **secrets}
    return subprocess.run(command, env=env).returncode


def cmd_diff(ctx: AppContext, args) -> int:
    left = _unlock_bundle(ctx, load_bundle(args.left))
    right = _unlock_bundle(ctx, load_bundle(args.right))
    counts = {"added": 0, "removed": 0, "changed": 0, "same": 0}

    print(f"{'KEY':<30} {'LEFT':<15} {'RIGHT':<15} STATUS")
    for name in sorted(set(left) | set(right)):
        a, b = left.get(name), right.get(name)
        if a is None:
            status, mark = "added", "+"
        elif b is None:
            status, mark = "removed", "-"
        elif a != b:
            status, mark = "changed", "~"
        else:
            status, mark = "same", "="
        counts[status] += 1
        print(f"{name:<30} {_mask(a):<15} {_mask(b):<15} {mark} {status}")

    print(
        f"+ {counts['added']} added  - {counts['removed']} removed  "
        f"~ {counts['changed']} changed  = {counts['same']} same"
    )
    return 0


def cmd_share(ctx: AppContext, args) -> int:
    secrets = _unlock_bundle(ctx, load_bundle(args.bundle))
    ctx.session.lock()
    if args.key not in secrets:
        print(f"secret {args.key!r} not found in {args.bundle}", file=sys.stderr)
        return 1

    envelope, fragment = create_share(args.key, secrets[args.key], args.expires)
    payload = json.dumps(envelope.to_dict(), indent=2) + "\n"
    if args.out:
        Path(args.out).write_text(payload, encoding="utf-8")
    else:
        sys.stdout.write(payload)

    link = build_share_link(args.base_url or ctx.share_url, envelope, fragment)
    print(link)
    if args.copy and copy_to_clipboard(link):
        print("Share link copied to clipboard", file=sys.stderr)
    return 0


def cmd_receive(ctx: AppContext, args) -> int:
    try:
        data = json.loads(Path(args.payload).read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise MalformedInput(f"{args.payload} is not valid JSON: {e.msg}") from None
    envelope = ShareEnvelope.from_dict(data)

    if "#" in args.link and "/" in args.link:
        share_id, fragment = parse_share_link(args.link)
        if share_id != envelope.share_id:
            raise MalformedInput("share link does not belong to this payload")
    else:
        fragment = args.link

    secret = resolve_share(envelope, fragment, consumed=args.consumed)
    sys.stdout.write(serialize_env({secret.key: secret.value}))
    return 0


# === Parser ===


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="envvault", description="Zero-knowledge .env secrets, locally")
    parser.add_argument("-v", "--verbose", action="store_true", help="log at DEBUG level")
    sub = parser.add_subparsers(dest="command_name", required=True)

    p = sub.add_parser("seal", help="encrypt a .env file into a bundle")
    p.add_argument("envfile")
    p.add_argument("-b", "--bundle", default="envvault.json")
    p.set_defaults(func=cmd_seal)

    p = sub.add_parser("open", help="decrypt a bundle into .env text")
    p.add_argument("bundle")
    p.add_argument("-o", "--output", default=None)
    p.add_argument("--force", action="store_true")
    p.set_defaults(func=cmd_open)

    p = sub.add_parser("run", help="run a command with decrypted secrets in its environment")
    p.add_argument("bundle")
    p.add_argument("command", nargs=argparse.REMAINDER)
    p.set_defaults(func=cmd_run)

    p = sub.add_parser("diff", help="compare two bundles")
    p.add_argument("left")
    p.add_argument("right")
    p.set_defaults(func=cmd_diff)

    p = sub.add_parser("share", help="create a share link for one secret")
    p.add_argument("bundle")
    p.add_argument("key")
    p.add_argument("--expires", default=ExpiryPolicy.ONCE.value, choices=[e.value for e in ExpiryPolicy])
    p.add_argument("--out", default=None, help="write the server payload here instead of stdout")
    p.add_argument("--base-url", default=None)
    p.add_argument("--copy", action="store_true", help="copy the link to the clipboard")
    p.set_defaults(func=cmd_share)

    p = sub.add_parser("receive", help="decrypt a share payload with its link or fragment")
    p.add_argument("payload")
    p.add_argument("link")
    p.add_argument("--consumed", action="store_true", help="the one-time share was already viewed")
    p.set_defaults(func=cmd_receive)

    return parser


def main(argv: Optional[Sequence[str]] = None, ctx: Optional[AppContext] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        ctx = ctx or build_context()
        configure_logging(ctx.log_level, verbose=args.verbose)
        return args.func(ctx, args)
    except AuthenticationFailure:
        print(DECRYPT_FAILURE_MESSAGE, file=sys.stderr)
        return 1
    except EnvVaultError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    finally:
        if ctx is not None:
            ctx.session.lock()


if __name__ == "__main__":
    sys.exit(main())
