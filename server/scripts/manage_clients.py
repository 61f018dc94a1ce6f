#!/usr/bin/env python3
"""Manage registered clients on a running TARS server.

Usage:
    python scripts/manage_clients.py --url http://localhost:8080 --admin-key KEY list
    python scripts/manage_clients.py --admin-key KEY create --name Acme --contact ops@acme.com
    python scripts/manage_clients.py --admin-key KEY set-limit 3 25
    python scripts/manage_clients.py --admin-key KEY rotate 3
    python scripts/manage_clients.py --admin-key KEY delete 3

The admin key may also come from TARS_ADMIN_KEY. Credentials are printed
exactly once, on create and rotate; store them immediately.
"""

from __future__ import annotations

import argparse
import json
import os
import sys

import httpx


def _fail(resp: httpx.Response) -> None:
    try:
        message = resp.json().get("message", resp.text)
    except ValueError:
        message = resp.text
    print(f"❌ HTTP {resp.status_code}: {message[:200]}")
    sys.exit(1)


def _print_table(rows: list[dict]) -> None:
    if not rows:
        print("  (no clients registered)")
        return
    print(f"  {'ID':>4}  {'NAME':20s}  {'CONTACT':28s}  {'RPM':>5}")
    for row in rows:
        print(
            f"  {row['id']:>4}  {row['name'][:20]:20s}  "
            f"{row['contact'][:28]:28s}  {row['requestsPerMinute']:>5}"
        )


def run(args: argparse.Namespace, client: httpx.Client) -> None:
    if args.command == "list":
        resp = client.get("/clients")
        if resp.status_code != 200:
            _fail(resp)
        _print_table(resp.json())

    elif args.command == "get":
        resp = client.get(f"/clients/{args.client_id}")
        if resp.status_code != 200:
            _fail(resp)
        print(json.dumps(resp.json(), indent=2))

    elif args.command == "create":
        resp = client.post("/client/create", json={"name": args.name, "contact": args.contact})
        if resp.status_code != 201:
            _fail(resp)
        data = resp.json()
        print(f"✅ Created client {data['id']} ({data['name']})")
        print(f"   API key: {data['credential']}")

    elif args.command == "rotate":
        resp = client.post(f"/clients/{args.client_id}/rotateKey")
        if resp.status_code != 200:
            _fail(resp)
        print(f"✅ New API key for client {args.client_id}: {resp.json()['apiKey']}")

    elif args.command == "set-limit":
        resp = client.post(
            f"/clients/{args.client_id}/setRateLimit", json={"limit": args.limit}
        )
        if resp.status_code != 200:
            _fail(resp)
        print(f"✅ Client {args.client_id} now limited to {args.limit} requests/minute")

    elif args.command == "delete":
        resp = client.delete(f"/clients/{args.client_id}")
        if resp.status_code != 204:
            _fail(resp)
        print(f"✅ Deleted client {args.client_id}")


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--url", default="http://localhost:8080", help="Server base URL")
    parser.add_argument(
        "--admin-key",
        default=os.environ.get("TARS_ADMIN_KEY", ""),
        help="Administrator key (default: $TARS_ADMIN_KEY)",
    )
    parser.add_argument("--header", default="X-API-Key", help="Credential header name")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("list", help="List registered clients")
    for name in ("get", "rotate", "delete"):
        sub.add_parser(name).add_argument("client_id", type=int)
    create = sub.add_parser("create", help="Register a new client")
    create.add_argument("--name", required=True)
    create.add_argument("--contact", required=True)
    set_limit = sub.add_parser("set-limit", help="Change requests per minute")
    set_limit.add_argument("client_id", type=int)
    set_limit.add_argument("limit", type=int)

    args = parser.parse_args()
    if not args.admin_key:
        parser.error("an administrator key is required (--admin-key or TARS_ADMIN_KEY)")

    with httpx.Client(
        base_url=args.url, headers={args.header: args.admin_key}, timeout=10
    ) as client:
        try:
            run(args, client)
        except httpx.RequestError as e:
            print(f"❌ Request failed: {e}")
            sys.exit(1)


if __name__ == "__main__":
    main()
