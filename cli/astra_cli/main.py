import argparse
import json
import os
import sys

import requests

BACKEND_URL = os.getenv("ASTRA_BACKEND_URL", "http://localhost:8000")


def _request(method, path, **kwargs):
    response = requests.request(method, f"{BACKEND_URL}{path}", timeout=120, **kwargs)
    response.raise_for_status()
    if response.status_code == 204 or not response.content:
        return None
    return response.json()


def _report_error(e):
    print(f"\nError communicating with backend: {e}", file=sys.stderr)
    if e.response is not None:
        print(f"Response status: {e.response.status_code}", file=sys.stderr)
        print(f"Response content: {e.response.text}", file=sys.stderr)


def format_parsed(parsed):
    """Render the structured answer sections as plain text."""
    lines = []
    if parsed.get("answer"):
        lines.append(parsed["answer"])
    if parsed.get("steps"):
        lines.append("")
        lines.append("Steps:")
        lines.extend(f"  - {step}" for step in parsed["steps"])
    if parsed.get("nextActions"):
        lines.append("")
        lines.append(f"Next actions: {parsed['nextActions']}")
    if parsed.get("citations"):
        lines.append("")
        lines.append(f"Citations: {parsed['citations']}")
    return "\n".join(lines)


def chat_command(args):
    """Handles the 'astra chat' command."""
    payload = {
        "messages": [{"role": "user", "content": args.message}],
        "temperature": args.temperature,
    }
    if args.system_prompt is not None:
        payload["systemPrompt"] = args.system_prompt
    if args.session is not None:
        payload["sessionId"] = args.session

    completion = _request("POST", "/api/chat", json=payload)
    if args.raw:
        print(json.dumps(completion, indent=2))
        return

    rendered = format_parsed(completion.get("parsed") or {})
    print(rendered or completion["choices"][0]["message"]["content"])


def sessions_command(args):
    """Handles the 'astra sessions' command."""
    for session in _request("GET", "/api/sessions"):
        print(f"{session['id']:>5}  {session['updatedAt']}  {session['name']}")


def prompts_command(args):
    """Handles the 'astra prompts' command."""
    for prompt in _request("GET", "/api/prompts"):
        marker = "*" if prompt["isDefault"] else " "
        print(f"{marker}{prompt['id']:>4}  {prompt['name']}")


def analyze_command(args):
    """Handles the 'astra analyze' command."""
    repository = _request("POST", f"/api/github/repositories/{args.repository_id}/analyze")
    summary = repository.get("summary") or ""
    try:
        print(json.dumps(json.loads(summary), indent=2))
    except ValueError:
        print(summary)


def commit_command(args):
    """Handles the 'astra commit' command."""
    file_change = _request("POST", f"/api/github/files/{args.file_change_id}/commit")
    print(f"{file_change['path']}: {file_change['status']}")
    if file_change.get("commitUrl"):
        print(file_change["commitUrl"])


def build_parser():
    parser = argparse.ArgumentParser(
        description="Astra CLI for the chat and GitHub assistant backend.",
        formatter_class=argparse.RawTextHelpFormatter
    )

    # Global options
    parser.add_argument("--backend-url", type=str, default=BACKEND_URL,
                        help=f"URL of the Astra backend. Defaults to {BACKEND_URL}")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    chat_parser = subparsers.add_parser("chat", help="Send a message to the assistant.")
    chat_parser.add_argument("message", type=str, help="The message to send.")
    chat_parser.add_argument("--session", type=int, default=None,
                             help="Chat session id to record the exchange in.")
    chat_parser.add_argument("--system-prompt", type=str, default=None,
                             help="System prompt text. Defaults to the server's default prompt.")
    chat_parser.add_argument("--temperature", type=float, default=0.7,
                             help="Sampling temperature for model output.")
    chat_parser.add_argument("--raw", action="store_true",
                             help="Print the full completion JSON.")
    chat_parser.set_defaults(func=chat_command)

    sessions_parser = subparsers.add_parser("sessions", help="List chat sessions.")
    sessions_parser.set_defaults(func=sessions_command)

    prompts_parser = subparsers.add_parser("prompts", help="List system prompts (* marks the default).")
    prompts_parser.set_defaults(func=prompts_command)

    analyze_parser = subparsers.add_parser("analyze", help="Analyze a tracked GitHub repository.")
    analyze_parser.add_argument("repository_id", type=int)
    analyze_parser.set_defaults(func=analyze_command)

    commit_parser = subparsers.add_parser("commit", help="Commit a pending file change to GitHub.")
    commit_parser.add_argument("file_change_id", type=int)
    commit_parser.set_defaults(func=commit_command)

    return parser


def main(argv=None):
    global BACKEND_URL
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    if args.backend_url:
        BACKEND_URL = args.backend_url.rstrip("/")
    try:
        args.func(args)
    except requests.exceptions.RequestException as e:
        _report_error(e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
