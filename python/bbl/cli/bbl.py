#!/usr/bin/env python3
"""
bbl/cli/bbl.py

Command-line entry point:

    bbl [--state-dir D] [--debug] <verb> [flags]

Mutating verbs (plan, up, rotate, down/destroy, create-lbs, update-lbs,
delete-lbs) take `--iaas` and the credential flags of every IaaS; each flag
also reads from its `BBL_`-prefixed environment variable.

Exit codes: 0 on success, 1 for user errors, 2 for every other failure.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from typing import Any, Awaitable, Callable, Dict, List, Optional

from pydantic import ValidationError

from bbl.clients.cloud import cloud_clients
from bbl.cloudconfig.manager import CloudConfigManager
from bbl.cloudconfig.runtime_config import RuntimeConfigManager
from bbl.commands.destroy import Destroy, DestroyConfig
from bbl.commands.lbs import CreateLBs, DeleteLBs, LBConfig, LBs, UpdateLBs
from bbl.commands.plan import Plan, PlanConfig
from bbl.commands.rotate import Rotate
from bbl.commands.state_query import (
    QUERY_VERBS,
    CloudConfig,
    DeploymentVars,
    LatestError,
    PrintEnv,
    StateQuery,
    version_line,
)
from bbl.commands.up import Up
from bbl.config import StateLoader
from bbl.deployment.executor import DIRECTOR_DEPLOYMENT, JUMPBOX_DEPLOYMENT, CreateEnvExecutor
from bbl.deployment.manager import BoshManager
from bbl.errors import BBLError, UserError
from bbl.helpers.env_id import EnvIDGenerator, EnvIDManager
from bbl.models.providers import IaaSName
from bbl.models.settings import GlobalSettings
from bbl.models.state import State
from bbl.storage.store import Store
from bbl.utils.terraform import TerraformBinary, TerraformExecutor, TerraformManager

logger = logging.getLogger(__name__)

CREDENTIAL_PREFIXES = tuple(f"{name.value}_" for name in IaaSName)
LIST_FIELDS = ("openstack_dns_name_servers",)
FLAG_FIELDS = ("cloudstack_secure", "cloudstack_iso_segment")
DESTROY_VERBS = ("down", "destroy")


class App:
    """Wires the managers for one invocation against one state directory."""

    def __init__(self, settings: GlobalSettings, store: Store) -> None:
        self.settings = settings
        self.store = store
        executor = TerraformExecutor(
            TerraformBinary(settings.terraform_binary), store, debug=settings.debug
        )
        self.terraform_manager = TerraformManager(executor)
        self.create_env_executor = CreateEnvExecutor(store, settings.bosh_binary)
        self.bosh_manager = BoshManager(self.create_env_executor, store)
        self.cloud_config_manager = CloudConfigManager(store, settings.bosh_binary)
        self.runtime_config_manager = RuntimeConfigManager(store, settings.bosh_binary)

    def plan(self, env_id_manager: EnvIDManager, zone_client: Any = None) -> Plan:
        return Plan(
            self.store,
            env_id_manager,
            self.terraform_manager,
            self.bosh_manager,
            self.cloud_config_manager,
            self.runtime_config_manager,
            zone_client=zone_client,
        )

    def up(self, plan: Plan) -> Up:
        return Up(
            plan,
            self.store,
            self.terraform_manager,
            self.bosh_manager,
            self.cloud_config_manager,
            self.runtime_config_manager,
        )

    def env_id_generator(self) -> EnvIDGenerator:
        return EnvIDGenerator(prefix=self.settings.test_env_id_prefix or None)


#
# Verb handlers
#
async def _with_up(app: App, state: State, action: Callable[[Up], Awaitable[Any]]) -> Any:
    async with cloud_clients(state) as clients:
        env_id_manager = EnvIDManager(
            app.env_id_generator(), clients.network_client, clients.stack_client
        )
        plan = app.plan(env_id_manager, clients.zone_client)
        return await action(app.up(plan))


def _plan_config(args: argparse.Namespace, settings: GlobalSettings) -> PlanConfig:
    return PlanConfig(
        name=getattr(args, "name", None) or settings.name,
        no_director=bool(getattr(args, "no_director", False)),
    )


def _lb_config(args: argparse.Namespace) -> LBConfig:
    return LBConfig(
        type=getattr(args, "type", None) or "",
        cert=getattr(args, "cert", None) or "",
        key=getattr(args, "key", None) or "",
        chain=getattr(args, "chain", None) or "",
        domain=getattr(args, "domain", None) or "",
    )


async def run_plan(args: argparse.Namespace, app: App, state: State) -> None:
    async with cloud_clients(state) as clients:
        env_id_manager = EnvIDManager(
            app.env_id_generator(), clients.network_client, clients.stack_client
        )
        plan = app.plan(env_id_manager, clients.zone_client)
        await plan.execute(state, _plan_config(args, app.settings))


async def run_up(args: argparse.Namespace, app: App, state: State) -> None:
    config = _plan_config(args, app.settings)
    await _with_up(app, state, lambda up: up.execute(state, config))


async def run_rotate(args: argparse.Namespace, app: App, state: State) -> None:
    await _with_up(
        app, state, lambda up: Rotate(up, app.store, app.bosh_manager).execute(state)
    )


async def run_destroy(args: argparse.Namespace, app: App, state: State) -> None:
    config = DestroyConfig(no_confirm=args.no_confirm, skip_if_missing=args.skip_if_missing)
    await Destroy(app.store, app.terraform_manager, app.bosh_manager).execute(state, config)


async def run_create_lbs(args: argparse.Namespace, app: App, state: State) -> None:
    config = _lb_config(args)
    await _with_up(app, state, lambda up: CreateLBs(up).execute(state, config))


async def run_update_lbs(args: argparse.Namespace, app: App, state: State) -> None:
    config = _lb_config(args)
    await _with_up(app, state, lambda up: UpdateLBs(up).execute(state, config))


async def run_delete_lbs(args: argparse.Namespace, app: App, state: State) -> None:
    await _with_up(app, state, lambda up: DeleteLBs(up).execute(state))


async def run_lbs(args: argparse.Namespace, app: App, state: State) -> None:
    await LBs(app.terraform_manager).execute(state)


async def run_query(args: argparse.Namespace, app: App, state: State) -> None:
    query = StateQuery(
        app.store,
        app.create_env_executor,
        app.terraform_manager,
        QUERY_VERBS[args.command],
    )
    await query.execute(state)


async def run_print_env(args: argparse.Namespace, app: App, state: State) -> None:
    await PrintEnv(app.store).execute(state)


async def run_deployment_vars(args: argparse.Namespace, app: App, state: State) -> None:
    deployment = (
        JUMPBOX_DEPLOYMENT.name
        if args.command == "jumpbox-deployment-vars"
        else DIRECTOR_DEPLOYMENT.name
    )
    await DeploymentVars(app.bosh_manager, app.terraform_manager, deployment).execute(state)


async def run_cloud_config(args: argparse.Namespace, app: App, state: State) -> None:
    await CloudConfig(app.cloud_config_manager, app.terraform_manager).execute(state)


async def run_latest_error(args: argparse.Namespace, app: App, state: State) -> None:
    await LatestError().execute(state)


#
# Argument parsing
#
def _add_credential_args(subparser: argparse.ArgumentParser) -> None:
    """Add `--iaas` and one flag per credential field of GlobalSettings."""
    subparser.add_argument(
        "--iaas",
        default=argparse.SUPPRESS,
        help=f"IaaS to deploy to ({', '.join(name.value for name in IaaSName)}).",
    )
    group = subparser.add_argument_group("credentials")
    for field_name, field in GlobalSettings.model_fields.items():
        if not field_name.startswith(CREDENTIAL_PREFIXES):
            continue
        flag = "--" + field_name.replace("_", "-")
        if field_name in LIST_FIELDS:
            group.add_argument(flag, action="append", default=argparse.SUPPRESS)
        elif field_name in FLAG_FIELDS:
            group.add_argument(flag, action="store_true", default=argparse.SUPPRESS)
        else:
            group.add_argument(flag, default=argparse.SUPPRESS)


def _add_lb_args(subparser: argparse.ArgumentParser, type_required: bool) -> None:
    subparser.add_argument(
        "--type", required=type_required, help="Load balancer type: cf or concourse."
    )
    subparser.add_argument("--cert", help="Path to the LB certificate.")
    subparser.add_argument("--key", help="Path to the LB private key.")
    subparser.add_argument("--chain", help="Path to the LB certificate chain.")
    subparser.add_argument("--domain", help="Domain for the cf LB.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bbl",
        description="Bootstraps and maintains a director and jumpbox on an IaaS.",
    )
    parser.add_argument(
        "-s", "--state-dir", default=None, help="Directory holding bbl-state.json."
    )
    parser.add_argument(
        "-d", "--debug", action="store_true", default=False, help="Print engine output."
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    for verb in ("plan", "up"):
        sub = subparsers.add_parser(verb, help=f"{verb.capitalize()} the environment.")
        _add_credential_args(sub)
        sub.add_argument("--name", help="Name to assign to the environment.")
        sub.add_argument(
            "--no-director",
            action="store_true",
            default=False,
            help="Manage the infrastructure and jumpbox only.",
        )
        sub.set_defaults(func=run_plan if verb == "plan" else run_up)

    rotate = subparsers.add_parser("rotate", help="Rotate the jumpbox ssh key.")
    _add_credential_args(rotate)
    rotate.set_defaults(func=run_rotate)

    for verb in ("down", "destroy"):
        sub = subparsers.add_parser(verb, help="Tear down the environment.")
        _add_credential_args(sub)
        sub.add_argument("-n", "--no-confirm", action="store_true", default=False)
        sub.add_argument("--skip-if-missing", action="store_true", default=False)
        sub.set_defaults(func=run_destroy)

    create_lbs = subparsers.add_parser("create-lbs", help="Attach load balancers.")
    _add_credential_args(create_lbs)
    _add_lb_args(create_lbs, type_required=True)
    create_lbs.set_defaults(func=run_create_lbs)

    update_lbs = subparsers.add_parser("update-lbs", help="Update the LB certificate.")
    _add_credential_args(update_lbs)
    _add_lb_args(update_lbs, type_required=False)
    update_lbs.set_defaults(func=run_update_lbs)

    delete_lbs = subparsers.add_parser("delete-lbs", help="Remove load balancers.")
    _add_credential_args(delete_lbs)
    delete_lbs.set_defaults(func=run_delete_lbs)

    subparsers.add_parser("lbs", help="Print LB addresses.").set_defaults(func=run_lbs)

    for verb in QUERY_VERBS:
        subparsers.add_parser(verb, help=f"Print the {QUERY_VERBS[verb]}.").set_defaults(
            func=run_query
        )

    subparsers.add_parser("print-env", help="Print bosh environment exports.").set_defaults(
        func=run_print_env
    )
    for verb in ("bosh-deployment-vars", "jumpbox-deployment-vars"):
        subparsers.add_parser(verb, help="Print the create-env vars-file.").set_defaults(
            func=run_deployment_vars
        )
    subparsers.add_parser("cloud-config", help="Print the cloud-config.").set_defaults(
        func=run_cloud_config
    )
    subparsers.add_parser("latest-error", help="Print the last engine output.").set_defaults(
        func=run_latest_error
    )
    subparsers.add_parser("version", help="Print the bbl version.")
    subparsers.add_parser("help", help="Print this help.")
    return parser


def settings_from_args(args: argparse.Namespace) -> GlobalSettings:
    """Command-line values override the environment; absent flags do not."""
    overrides: Dict[str, Any] = {}
    for key, value in vars(args).items():
        if key in GlobalSettings.model_fields and value is not None:
            overrides[key] = value
    if args.state_dir:
        overrides["state_directory"] = args.state_dir
    if not args.debug:
        overrides.pop("debug", None)
    return GlobalSettings(**overrides)


def configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(message)s",
        stream=sys.stderr,
    )


async def run(args: argparse.Namespace, settings: GlobalSettings) -> None:
    loader = StateLoader(settings)
    if args.command in DESTROY_VERBS and args.skip_if_missing:
        if not os.path.isfile(loader.store().state_file):
            logger.info("state file not found, and --skip-if-missing flag provided, exiting")
            return
    state, store = loader.load(args.command)
    app = App(settings, store)
    handler: Callable[[argparse.Namespace, App, State], Awaitable[None]] = args.func
    await handler(args, app, state)


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "help":
        parser.print_help()
        return
    if args.command == "version":
        print(version_line())
        return

    try:
        settings = settings_from_args(args)
    except ValidationError as exc:
        print(f"Error: invalid configuration: {exc}", file=sys.stderr)
        sys.exit(1)

    configure_logging(settings.debug)
    try:
        asyncio.run(run(args, settings))
    except UserError as exc:
        print(str(exc), file=sys.stderr)
        sys.exit(1)
    except BBLError as exc:
        print(str(exc), file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
