#!/usr/bin/env python3
"""
cli.py - pcl - Assertion store / submit command line
============================================================================
Copyright 2025 The pcl Authors

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at

     http://www.apache.org/licenses/LICENSE-2.0

Unless required by applicable law or agreed to in writing, software
distributed under the License is distributed on an "AS IS" BASIS,
WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
See the License for the specific language governing permissions and
limitations under the License.

============================================================================

Packages a named assertion contract, submits its flattened source to the
assertion DA service and later forwards the accepted submission to a dApp
project.

Workflow:
  store   : forge build -> resolve artifact -> flatten -> bind constructor
            -> submit to DA -> record in ~/.pcl/config.yaml
  submit  : forward recorded assertions to a dApp project, then drop them
  auth    : device-code login / logout / status
  project : create a dApp project
  config  : show or delete the local state document
"""

import argparse
import json
import sys

from pcl_work.lib import common
from pcl_work.lib.common import log, log_err
from pcl_work.lib.artifact_resolve import AssertionRef
from pcl_work.lib.auth_session import AuthSession, auth_status, logout
from pcl_work.lib.dapp_client import DappClient, forward_assertions
from pcl_work.lib.errors import PclError
from pcl_work.lib.settings import load_settings
from pcl_work.lib.state import FileStateRepository
from pcl_work.lib.store import StoreRequest, store_assertion
from pcl_work.lib.toolchain import ForgeToolchain


# ============================================================================
# Shared setup
# ============================================================================

def load_cli_settings(args):
    """Manifest + environment, then explicit flags on top."""
    settings = load_settings(getattr(args, "manifest", None))
    return settings.override(
        config_dir=getattr(args, "config_dir", None),
        da_url=getattr(args, "url", None) if args.cmd == "store" else None,
        dapp_url=getattr(args, "url", None) if args.cmd in ("submit", "project") else None,
        root=getattr(args, "root", None),
        src_dir=getattr(args, "src", None),
        out_dir=getattr(args, "out", None),
    )


def repository_for(settings):
    return FileStateRepository.in_dir(settings.config_dir)


# ============================================================================
# STORE
# ============================================================================

def store(args):
    role = "STORE"
    settings = load_cli_settings(args)
    root = settings.root_path
    repo = repository_for(settings)

    builder = None if args.no_build else ForgeToolchain(root, settings.src_dir, settings.out_dir)
    request = StoreRequest(
        assertion=AssertionRef.parse(args.assertion),
        da_url=settings.da_url,
        root=root,
        out_dir=settings.out_dir,
        constructor_args=list(args.constructor_args),
    )
    log(role, f"Submitting assertion {request.assertion} to DA...")
    result = store_assertion(request, repo, builder=builder, timeout=settings.http_timeout_sec)

    rec = result.record
    if args.json:
        print(json.dumps({
            "status": "success",
            "assertion_contract": rec.assertion_contract,
            "assertion_id": rec.assertion_id,
            "signature": rec.signature,
            "constructor_args": list(rec.constructor_args),
        }, indent=2))
        return 0

    print("\nAssertion Information")
    print("=====================")
    print(f"Assertion: {rec.assertion_contract}")
    print(f"Constructor: {result.constructor_signature} {list(rec.constructor_args)}")
    print(f"ID: {rec.assertion_id}")
    print(f"Signature: {rec.signature}")
    print(f"\nSubmitted to assertion DA: {settings.da_url}")
    print("\nNext Steps:")
    print("Submit this assertion to a project with:")
    print(f"  pcl submit -a '{result.key}' -p <project_name>")
    return 0


# ============================================================================
# SUBMIT (forward to dApp)
# ============================================================================

def submit(args):
    settings = load_cli_settings(args)
    repo = repository_for(settings)
    doc = repo.load()

    client = DappClient.for_state(settings.dapp_url, doc, timeout=settings.http_timeout_sec)
    result = forward_assertions(doc, client, args.project_name, keys=args.assertion_keys)
    repo.save(doc)

    if args.json:
        print(json.dumps({
            "status": "success",
            "project": result.project.project_name,
            "assertions": [str(r.key) for r in result.forwarded],
        }, indent=2))
    return 0


# ============================================================================
# AUTH
# ============================================================================

def auth_login(args):
    settings = load_cli_settings(args)
    repo = repository_for(settings)
    doc = repo.load()

    session = AuthSession(
        settings.auth_url,
        interval=settings.poll_interval_sec,
        max_attempts=settings.max_poll_attempts,
        timeout=settings.http_timeout_sec,
    )
    auth = session.login(doc)
    repo.save(doc)
    print(f"\nAuthentication successful!\nConnected wallet: {auth.address}\n")
    return 0


def auth_logout(args):
    settings = load_cli_settings(args)
    repo = repository_for(settings)
    doc = repo.load()
    logout(doc)
    repo.save(doc)
    print("Logged out successfully")
    return 0


def auth_show_status(args):
    settings = load_cli_settings(args)
    st = auth_status(repository_for(settings).load())
    if st.state == "logged_out":
        print("Not logged in")
    elif st.state == "expired":
        print(f"Logged in as: {st.address} (token expired at {st.expires_at.isoformat()}, "
              f"run `pcl auth login`)")
    else:
        print(f"Logged in as: {st.address} (valid until {st.expires_at.isoformat()})")
    return 0


# ============================================================================
# PROJECT
# ============================================================================

def project_create(args):
    settings = load_cli_settings(args)
    doc = repository_for(settings).load()
    client = DappClient.for_state(settings.dapp_url, doc, timeout=settings.http_timeout_sec)
    client.create_project(
        args.project_name,
        args.assertion_adopters,
        args.chain_id,
        project_description=args.project_description,
        profile_image_url=args.profile_image_url,
    )
    log("SUBMIT", f"Project {args.project_name} created")
    print(f"Submit assertions using: pcl submit -p \"{args.project_name}\"")
    return 0


# ============================================================================
# CONFIG
# ============================================================================

def _mask(token: str) -> str:
    return token[:6] + "..." if len(token) > 6 else "***"


def config_show(args):
    settings = load_cli_settings(args)
    repo = repository_for(settings)
    data = repo.load().to_dict()
    if data["auth"]:
        for k in ("access_token", "refresh_token"):
            data["auth"][k] = _mask(data["auth"][k])

    print(f"--- PCL CONFIG ({repo.path}) ---")
    print(json.dumps(data, indent=2, sort_keys=True))
    print("----------------------------------")
    return 0


def config_delete(args):
    settings = load_cli_settings(args)
    repo = repository_for(settings)
    if repo.delete():
        log("CFG", f"Deleted {repo.path}")
    else:
        log("CFG", f"No config at {repo.path}")
    return 0


def build_parser():
    ap = argparse.ArgumentParser(
        prog="pcl",
        description="Store assertions in the assertion DA and submit them to dApp projects."
    )
    ap.add_argument("--json", action="store_true", help="Machine-readable output")
    ap.add_argument("--config-dir", help="Directory holding config.yaml (env: PCL_CONFIG_DIR)")
    ap.add_argument("--manifest", help="Optional YAML settings file")

    sub = ap.add_subparsers(dest="cmd", required=True)

    # store
    p_store = sub.add_parser("store", help="Submit an assertion to the assertion DA.")
    p_store.add_argument("assertion", help="Assertion contract: Name or File.sol:Name")
    p_store.add_argument("constructor_args", nargs="*",
                         help="Constructor arguments: <ARG0> <ARG1> ...")
    p_store.add_argument("-u", "--url", help="Assertion DA URL (env: PCL_DA_URL)")
    p_store.add_argument("-r", "--root", help="Project root (env: PCL_ROOT)")
    p_store.add_argument("--src", help="Assertion sources, relative to root (env: PCL_SRC)")
    p_store.add_argument("--out", help="Build output, relative to root (env: PCL_OUT)")
    p_store.add_argument("--no-build", action="store_true",
                         help="Use existing build output instead of running forge build")
    p_store.set_defaults(func=store)

    # submit
    p_submit = sub.add_parser("submit", help="Submit stored assertions to a dApp project.")
    p_submit.add_argument("-p", "--project-name", required=True)
    p_submit.add_argument("-a", "--assertion-keys", nargs="+",
                          help="Keys: Name or 'Name(arg0,arg1)'; default is all stored")
    p_submit.add_argument("-u", "--url", help="dApp API URL (env: PCL_DAPP_URL)")
    p_submit.set_defaults(func=submit)

    # auth
    p_auth = sub.add_parser("auth", help="Authenticate with the dApp.")
    auth_sub = p_auth.add_subparsers(dest="auth_cmd", required=True)
    auth_sub.add_parser("login", help="Device-code login").set_defaults(func=auth_login)
    auth_sub.add_parser("logout", help="Forget the stored login").set_defaults(func=auth_logout)
    auth_sub.add_parser("status", help="Show login status").set_defaults(func=auth_show_status)

    # project
    p_project = sub.add_parser("project", help="Manage dApp projects.")
    project_sub = p_project.add_subparsers(dest="project_cmd", required=True)
    p_create = project_sub.add_parser("create", help="Create a project")
    p_create.add_argument("--project-name", required=True)
    p_create.add_argument("--project-description")
    p_create.add_argument("--profile-image-url")
    p_create.add_argument("--assertion-adopters", nargs="+", required=True)
    p_create.add_argument("--chain-id", type=int, required=True)
    p_create.add_argument("-u", "--url", help="dApp API URL (env: PCL_DAPP_URL)")
    p_create.set_defaults(func=project_create)

    # config
    p_config = sub.add_parser("config", help="Show or delete the local state document.")
    config_sub = p_config.add_subparsers(dest="config_cmd", required=True)
    config_sub.add_parser("show").set_defaults(func=config_show)
    config_sub.add_parser("delete").set_defaults(func=config_delete)

    return ap


def main(argv=None):
    """
    Main entry point for the pcl CLI.
    Every pcl error ends the command with exit status 1.
    """
    args = build_parser().parse_args(argv)
    common.reset_timer()
    common.log_to_stderr(args.json)
    try:
        return args.func(args) or 0
    except PclError as e:
        log_err(args.cmd.upper(), f"FATAL: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
