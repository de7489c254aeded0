"""Command line entrypoint for the wardrobe assistant."""

from __future__ import annotations

import argparse
import sys
from typing import List, Optional

from wardrobe_app.app import WardrobeAssistantApp
from wardrobe_app.errors import CorruptMetadata, PartialDelete, WardrobeError


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="wardrobe", description="Manage your wardrobe and ask for outfit ideas.")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="List wardrobe entries in insertion order")

    add = sub.add_parser("add", help="Copy a garment photo into the wardrobe")
    add.add_argument("path", help="Path of the photo to copy")
    add.add_argument("description", help="Text describing the garment")

    delete = sub.add_parser("delete", help="Remove a wardrobe entry and its photo")
    delete.add_argument("entry_id")

    ask = sub.add_parser("ask", help="Ask the stylist one question")
    ask.add_argument("message")

    sub.add_parser("chat", help="Interactive stylist conversation (blank line or EOF to quit)")
    sub.add_parser("check", help="Report orphan photos and dangling entries")

    repair = sub.add_parser("repair", help="Delete orphan photos")
    repair.add_argument("--drop-dangling", action="store_true", help="Also drop entries whose photo is missing")

    sub.add_parser("reset", help="Set aside a corrupt metadata file and start empty")

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8080)
    return parser


def _run(app: WardrobeAssistantApp, args: argparse.Namespace) -> int:
    if args.command == "list":
        for entry in app.list_items():
            print(f"{entry.entry_id}\t{entry.description}")
    elif args.command == "add":
        entry = app.add_item(args.path, args.description)
        print(f"Added {entry.entry_id}")
    elif args.command == "delete":
        try:
            entry = app.delete_item(args.entry_id)
        except PartialDelete as exc:
            print(f"Deleted {args.entry_id}, but photo {exc.blob_ref} could not be removed", file=sys.stderr)
            return 2
        print(f"Deleted {entry.entry_id}")
    elif args.command == "ask":
        print(app.ask(args.message))
    elif args.command == "chat":
        while True:
            try:
                message = input("you> ")
            except EOFError:
                break
            if not message.strip():
                break
            print(f"stylist> {app.ask(message)}")
    elif args.command == "check":
        report = app.check_consistency()
        if report.consistent:
            print("Wardrobe is consistent")
        for blob_ref in report.orphan_blobs:
            print(f"orphan photo: {blob_ref}")
        for entry in report.dangling_entries:
            print(f"missing photo for entry: {entry.entry_id}")
        return 0 if report.consistent else 1
    elif args.command == "repair":
        result = app.repair(drop_dangling=args.drop_dangling)
        print(f"Deleted {len(result.deleted_blobs)} orphan photos, dropped {len(result.dropped_entries)} entries")
        if result.failed_blobs:
            print(f"Could not delete: {', '.join(result.failed_blobs)}", file=sys.stderr)
            return 2
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    if args.command == "serve":
        from server.api import serve

        serve(host=args.host, port=args.port)
        return 0

    app = WardrobeAssistantApp()
    if args.command == "reset":
        try:
            quarantined = app.reset_corrupt_metadata()
        except WardrobeError as exc:
            print(f"error: {exc}", file=sys.stderr)
            return 1
        print(f"Moved metadata aside to {quarantined}")
        return 0

    try:
        app.initialize()
    except CorruptMetadata as exc:
        print(f"{exc}. Run 'wardrobe reset' to set it aside and start empty.", file=sys.stderr)
        return 3

    try:
        return _run(app, args)
    except WardrobeError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
