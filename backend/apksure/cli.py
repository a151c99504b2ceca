# apksure/cli.py

import argparse
import getpass
import logging
import sys
from pathlib import Path

import requests

from . import config
from .client import ApiClient, ApiError
from .workflow import AppDetails, Status, UploadWorkflow, WorkflowError


def format_bytes(num_bytes: int, decimals: int = 2) -> str:
    if num_bytes == 0:
        return "0 Bytes"
    k = 1024
    dm = max(decimals, 0)
    sizes = ["Bytes", "KB", "MB", "GB", "TB"]
    i = 0
    while num_bytes >= k ** (i + 1) and i < len(sizes) - 1:
        i += 1
    text = f"{num_bytes / k ** i:.{dm}f}"
    # drop trailing zeros: 1.50 -> 1.5, 2.00 -> 2
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return f"{text} {sizes[i]}"


def render_app_details(app: AppDetails) -> str:
    return "\n".join([
        "App Details",
        f"  Name:    {app.name}",
        f"  Package: {app.package}",
        f"  Version: {app.version_name} ({app.version_code})",
        f"  SHA256:  {app.apk_sha256}",
    ])


STATUS_LINES = {
    Status.UPLOADING: "Uploading file...",
    Status.CHECKING: "Checking analysis status...",
}


def _print_status(workflow: UploadWorkflow):
    line = STATUS_LINES.get(workflow.status)
    if line:
        print(f"  [{workflow.progress:3d}%] {line}")


# -----------------------------
# Commands
# -----------------------------
def cmd_serve(args) -> int:
    import uvicorn

    uvicorn.run("apksure.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def cmd_create_user(args) -> int:
    from .db import SessionLocal, init_engine
    from .security import RegistrationError, create_user

    password = args.password or getpass.getpass("Password: ")
    init_engine()
    db = SessionLocal()
    try:
        user = create_user(db, args.email, password)
    except RegistrationError as e:
        print(f"[FAIL] {e}")
        return 1
    finally:
        db.close()

    print(f"[OK] Created user {user.email}")
    return 0


def cmd_analyze(args) -> int:
    apk_path = Path(args.apk)
    if not apk_path.is_file():
        print(f"[FAIL] Input file not found: {apk_path}")
        return 1

    client = ApiClient(args.api)
    password = args.password or getpass.getpass("Password: ")

    try:
        session = client.signin(args.email, password)
    except ApiError as e:
        print(f"Login failed: {e}")
        return 1
    except requests.RequestException as e:
        print(f"Network error. Please try again. ({e})")
        return 1

    workflow = UploadWorkflow(client, session, interval=args.interval, on_change=_print_status)
    try:
        if not workflow.select_file(apk_path):
            print("Please select an .apk file.")
            return 1
        print(f"{apk_path.name} ({format_bytes(apk_path.stat().st_size)})")

        workflow.analyze()
        status = workflow.wait()
    except KeyboardInterrupt:
        workflow.reset()
        print("Cancelled.")
        return 130
    except WorkflowError as e:
        print(f"[FAIL] {e}")
        return 1
    finally:
        try:
            client.signout(session)
        except (ApiError, requests.RequestException) as e:
            logging.warning(f"Sign-out failed: {e}")

    if status == Status.COMPLETE:
        print("APK analyzed successfully!")
        print(render_app_details(workflow.result))
        return 0

    print(f"[FAIL] {status.value}: {workflow.error}")
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="apksure", description="Detect fake Android apps.")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the APKSure API server")
    serve.add_argument("--host", default=config.HOST)
    serve.add_argument("--port", type=int, default=config.PORT)
    serve.add_argument("--reload", action="store_true")
    serve.set_defaults(func=cmd_serve)

    create = sub.add_parser("create-user", help="Register a user in the user store")
    create.add_argument("email")
    create.add_argument("--password", help="Prompted for when omitted")
    create.set_defaults(func=cmd_create_user)

    analyze = sub.add_parser("analyze", help="Sign in, upload an APK and wait for the analysis")
    analyze.add_argument("apk")
    analyze.add_argument("--email", required=True)
    analyze.add_argument("--password", help="Prompted for when omitted")
    analyze.add_argument("--api", default=config.API_BASE, help="APKSure API base URL")
    analyze.add_argument("--interval", type=float, default=config.POLL_INTERVAL)
    analyze.set_defaults(func=cmd_analyze)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
