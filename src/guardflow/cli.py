"""
GuardFlow CLI

Command-line entry point: replays the built-in flows against in-memory
collaborators and shows how the controller moves between states.
"""

import json
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

import click
from rich.console import Console

from guardflow.exceptions import GuardFlowError, get_error_code


def _load_config(path: Optional[str]):
    from guardflow.config import load_config

    return load_config(Path(path) if path else None)


def _fail(console: Console, error: GuardFlowError):
    console.print(f"[red]✗[/red] {error.message}")
    if error.remediation:
        console.print(f"[blue]ℹ[/blue] To fix: {error.remediation}")
    sys.exit(get_error_code(error))


@click.group()
@click.version_option(package_name="guardflow")
@click.option("--verbose", "-v", is_flag=True, help="Show controller debug logging")
def main(verbose: bool):
    """GuardFlow - guarded multi-stage action flows."""
    from guardflow.logging_config import setup_logging

    setup_logging(level=logging.DEBUG if verbose else None)


@main.group()
def simulate():
    """Replay a built-in flow step by step."""
    pass


@simulate.command("buy")
@click.option(
    "--region",
    type=click.Choice(["eligible", "ineligible", "error"]),
    default="eligible",
    help="Outcome of the region availability lookup",
)
@click.option("--connect/--no-connect", default=True, help="Connect a wallet when the drawer opens")
@click.option("--abandon", is_flag=True, help="Close the drawer without connecting")
@click.option("--connected", is_flag=True, help="Start with a wallet already connected")
@click.option("--live", is_flag=True, help="Query the configured availability endpoint instead of --region")
@click.option("--config", "config_path", type=click.Path(), help="Path to guardflow.yaml")
@click.option("--json", "json_output", is_flag=True, help="Output final flow state as JSON")
def simulate_buy(region: str, connect: bool, abandon: bool, connected: bool, live: bool,
                 config_path: Optional[str], json_output: bool):
    """Simulate the buy-with-fiat button."""
    from guardflow.collaborators import (
        AccountDrawer,
        AvailabilityClient,
        ConnectionSession,
        FixedAvailabilityClient,
        NotificationSink,
        RegionAvailability,
    )
    from guardflow.flows import BuyFiatFlow
    from guardflow.state import FlowState
    from guardflow.ui import FlowUI

    console = Console()
    ui = FlowUI(console)

    try:
        config = _load_config(config_path)
    except GuardFlowError as e:
        _fail(console, e)

    sink = NotificationSink()
    drawer = AccountDrawer()
    session = ConnectionSession(drawer, telemetry=sink)
    if connected:
        session.connect("injected")
        session.complete("0x" + "ab" * 20)

    if live:
        client = AvailabilityClient.from_config(config)
    else:
        client = FixedAvailabilityClient(
            available=region == "eligible",
            error="Network error during availability lookup" if region == "error" else None,
        )
    availability = RegionAvailability(client)
    opened: List[bool] = []
    flow = BuyFiatFlow(
        config, availability, drawer, session,
        open_modal=lambda: opened.append(True),
        telemetry=sink,
    )

    if not json_output:
        ui.print_header("Buy with fiat")

    if not flow.visible:
        if not json_output:
            ui.print_warning("The buy control is hidden on this deployment (/buy is blocked)")
        sys.exit(0)

    def step(label: str, detail: str = ""):
        if not json_output:
            ui.print_event(label, detail)
            ui.show_flow(flow.controller)

    flow.press()
    step("Press buy")

    availability.resolve()
    step("Region lookup finished", config.availability_url if live else region)

    if flow.state is FlowState.PENDING and flow.controller.pending_gate is flow.account_gate:
        if abandon:
            drawer.close()
            step("Drawer closed without connecting")
        elif connect:
            session.connect("injected")
            session.complete("0x" + "cd" * 20)
            step("Wallet connected")

    if json_output:
        click.echo(json.dumps({
            "flow": flow.controller.to_dict(),
            "modal_opened": len(opened),
            "events": [e.name for e in sink.events],
        }, indent=2, default=str))
    elif opened:
        ui.print_success("Fiat on-ramp modal opened")
    else:
        ui.print_info("Fiat on-ramp modal not opened")


@simulate.command("send")
@click.option("--readonly", is_flag=True, help="Send from a view-only account")
@click.option(
    "--warning",
    type=click.Choice(["none", "medium", "blocking"]),
    default="none",
    help="Warning attached to the transfer",
)
@click.option(
    "--challenge",
    type=click.Choice(["none", "pass", "fail"]),
    default="none",
    help="Authentication challenge outcome",
)
@click.option("--nft", is_flag=True, help="Send an NFT instead of a token")
@click.option("--config", "config_path", type=click.Path(), help="Path to guardflow.yaml")
def simulate_send(readonly: bool, warning: str, challenge: str, nft: bool, config_path: Optional[str]):
    """Simulate the send review screen."""
    from guardflow.collaborators import NotificationSink
    from guardflow.flows import SendFlow
    from guardflow.submission import (
        Account,
        AccountType,
        CostEstimate,
        NFTAsset,
        SendInputs,
        SendScreen,
        SendWarnings,
        TransferWarning,
        WarningSeverity,
    )
    from guardflow.ui import FlowUI

    console = Console()
    ui = FlowUI(console)

    try:
        config = _load_config(config_path)
    except GuardFlowError as e:
        _fail(console, e)

    warnings = []
    if warning == "medium":
        warnings.append(TransferWarning(
            "New address",
            "You haven't sent to this address before.",
            WarningSeverity.MEDIUM,
        ))
    elif warning == "blocking":
        warnings.append(TransferWarning(
            "Insufficient funds",
            "You don't have enough ETH to cover the network cost.",
            WarningSeverity.HIGH,
            blocking=True,
        ))

    inputs = SendInputs(
        account=Account(
            "0x" + "12" * 20,
            AccountType.READONLY if readonly else AccountType.SIGNER,
        ),
        tx_id="sim-tx",
        recipient="0x" + "34" * 20,
        currency_symbol=None if nft else "ETH",
        amount=None if nft else "0.5",
        nft=NFTAsset("0x" + "56" * 20, "42") if nft else None,
        warnings=SendWarnings(warnings),
    )

    sink = NotificationSink()
    sent: List[str] = []

    def run_challenge(on_success, on_failure):
        if challenge == "pass":
            on_success()
        else:
            on_failure()

    flow = SendFlow(
        config,
        inputs,
        transfer_token=lambda i: sent.append("token"),
        transfer_nft=lambda i: sent.append("nft"),
        notifications=sink,
        challenge=None if challenge == "none" else run_challenge,
    )

    def step(label: str, detail: str = ""):
        ui.print_event(label, detail)
        ui.show_flow(flow.controller)
        explanation = flow.explanation()
        if explanation and explanation.kind == "warning":
            ui.show_explanation(explanation)

    ui.print_header("Send review")
    flow.activate()
    step("Press send")

    flow.update_inputs(cost_estimate=CostEstimate("0.0021 ETH"), tx_request={"to": inputs.recipient})
    step("Network cost estimated")

    if flow.controller.last_error is not None:
        ui.print_warning(str(flow.controller.last_error))
    if flow.screen is SendScreen.FORM:
        ui.print_info("Returned to the send form")
    if sent:
        ui.print_success(f"Submitted {sent[0]} transfer")
        ui.print_info(f"Notifications: {', '.join(n.type.value for n in sink.notifications)}")
    else:
        ui.print_info("Nothing submitted")


@main.group()
def config():
    """Inspect configuration."""
    pass


@config.command("show")
@click.option("--config", "config_path", type=click.Path(), help="Path to guardflow.yaml")
def config_show(config_path: Optional[str]):
    """Show the effective configuration."""
    from guardflow.logging_config import ENV_VARS
    from guardflow.ui import FlowUI

    console = Console()
    try:
        flow_config = _load_config(config_path)
    except GuardFlowError as e:
        _fail(console, e)

    ui = FlowUI(console)
    ui.show_summary_table("GuardFlow configuration", flow_config.to_dict())
    env_values = {name: os.environ.get(name, info["default"]) for name, info in ENV_VARS.items()}
    ui.show_summary_table("Environment", env_values)


if __name__ == "__main__":
    main()
