#!/usr/bin/env python3
"""
Send a signed slash command to a local server, the way Slack would.

Usage:
    # Print the signature headers for a form body
    python scripts/sign_request.py --user U012ABCDEF --response-url https://example.com/hook --text "estimate 1 Market St SF to SFO"

    # Print a ready-to-run curl command
    python scripts/sign_request.py --user U012ABCDEF --response-url https://example.com/hook --text "help" --curl

Environment:
    SLACK_SIGNING_SECRET: the app's signing secret (required)
"""
import argparse
import os
import sys
import time
from urllib.parse import urlencode

from slashride.transport.security import compute_slack_signature


def main():
    parser = argparse.ArgumentParser(
        description="Sign slash command requests like Slack does",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )
    parser.add_argument("--user", "-u", required=True, help="Chat user id (e.g., U012ABCDEF)")
    parser.add_argument("--text", default="help", help="Text typed after the slash command")
    parser.add_argument("--command", default="/uber", help="Slash command name")
    parser.add_argument(
        "--response-url",
        required=True,
        help="Where delayed replies are posted (any URL that accepts a JSON POST)",
    )
    parser.add_argument("--curl", "-c", action="store_true", help="Output as curl command")
    parser.add_argument("--host", "-H", default="http://localhost:8099", help="Host URL for curl")
    parser.add_argument("--secret", "-s", help="Signing secret (or use SLACK_SIGNING_SECRET env var)")

    args = parser.parse_args()

    secret = args.secret or os.environ.get("SLACK_SIGNING_SECRET")
    if not secret:
        print("Error: SLACK_SIGNING_SECRET environment variable not set", file=sys.stderr)
        sys.exit(1)

    body = urlencode({
        "user_id": args.user,
        "command": args.command,
        "text": args.text,
        "response_url": args.response_url,
    })
    timestamp = str(int(time.time()))
    signature = compute_slack_signature(secret, timestamp, body.encode())

    if args.curl:
        cmd_parts = [
            "curl",
            "-X POST",
            f'-H "X-Slack-Request-Timestamp: {timestamp}"',
            f'-H "X-Slack-Signature: {signature}"',
            '-H "Content-Type: application/x-www-form-urlencoded"',
            f"-d '{body}'",
            f'"{args.host}/commands/slack"',
        ]
        print(" \\\n  ".join(cmd_parts))
    else:
        print(f"X-Slack-Request-Timestamp: {timestamp}")
        print(f"X-Slack-Signature: {signature}")
        print()
        print(f"# Body: {body}")
        print(f"# Valid for 5 minutes from: {time.strftime('%Y-%m-%d %H:%M:%S', time.localtime(int(timestamp)))}")


if __name__ == "__main__":
    main()
