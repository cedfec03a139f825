"""
GuardFlow Console UI

Rich-based rendering of flow state for the command line simulator.
"""

import re
from typing import TYPE_CHECKING, Optional, List
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

if TYPE_CHECKING:
    from guardflow.controller import FlowController
    from guardflow.surface import Explanation


# Key names whose values are never printed
SENSITIVE_KEYS = [
    "token", "secret", "password", "signature", "auth", "bearer", "mnemonic",
]

# Regex patterns for sensitive values in free text
SENSITIVE_REGEXES = [
    r'\b(0x[a-fA-F0-9]{4})[a-fA-F0-9]{32}([a-fA-F0-9]{4})\b',  # EVM addresses
]


def mask_sensitive(text: str, mask: str = "********") -> str:
    """Mask auth tokens and shorten wallet addresses in a string.

    Args:
        text: The text that may contain sensitive values
        mask: The string to replace secret values with

    Returns:
        Text with secrets masked and addresses abbreviated
    """
    if not text:
        return text

    result = text

    for key in SENSITIVE_KEYS:
        regex = rf'({key}["\']?\s*[=:]\s*["\']?)([^"\'\s,]+)(["\']?)'
        result = re.sub(regex, rf'\1{mask}\3', result, flags=re.IGNORECASE)

    for regex in SENSITIVE_REGEXES:
        result = re.sub(regex, r'\1…\2', result)

    return result


def is_sensitive_key(key: str) -> bool:
    """Check if a key name indicates it holds a secret value."""
    key_lower = key.lower()
    return any(pattern in key_lower for pattern in SENSITIVE_KEYS)


class FlowUI:
    """UI components for the flow simulator."""

    STATE_STYLES = {
        "inactive": "dim",
        "pending": "yellow",
        "blocked": "red",
        "completed": "green",
    }

    GATE_ICONS = {
        "unresolved": "[dim]○[/dim]",
        "satisfied": "[green]✓[/green]",
        "blocking": "[red]✗[/red]",
    }

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def print_header(self, title: str):
        """Print a section header."""
        self.console.print()
        self.console.print(Panel(
            f"[bold blue]{title}[/bold blue]",
            border_style="blue",
            padding=(0, 2)
        ))

    def print_event(self, label: str, detail: str = ""):
        """Print one simulated host event."""
        suffix = f" [dim]{detail}[/dim]" if detail else ""
        self.console.print(f"[cyan]→[/cyan] {label}{suffix}")

    def print_success(self, message: str):
        self.console.print(f"[green]✓[/green] {message}")

    def print_error(self, message: str):
        self.console.print(f"[red]✗[/red] {message}")

    def print_warning(self, message: str):
        self.console.print(f"[yellow]⚠[/yellow] {message}")

    def print_info(self, message: str):
        self.console.print(f"[blue]ℹ[/blue] {message}")

    def render_gates(self, controller: "FlowController") -> Table:
        """Render the gate chain and its current snapshots as a table."""
        table = Table(show_header=True, box=None)
        table.add_column("", width=3)
        table.add_column("Gate", style="cyan")
        table.add_column("Status")
        table.add_column("Notes", style="dim")

        act = controller.activation
        for index, gate in enumerate(controller.chain):
            status = act.gate_snapshots[index].value if act.gate_snapshots else "unresolved"
            notes: List[str] = []
            if act.pending_index == index:
                notes.append("current")
            if gate.gate_id in act.entered_gates:
                notes.append("entered")
            if gate.is_async:
                notes.append("async")
            table.add_row(self.GATE_ICONS.get(status, "?"), gate.gate_id, status, ", ".join(notes))
        return table

    def show_flow(self, controller: "FlowController"):
        """Print state line, gate table and explanation for a flow."""
        state = controller.state.value
        style = self.STATE_STYLES.get(state, "white")
        disabled = "disabled" if controller.is_disabled() else "enabled"
        retry = ", retry available" if controller.retry_available() else ""
        self.console.print(
            f"  [bold]{controller.name}[/bold]: [{style}]{state}[/{style}] "
            f"[dim](control {disabled}{retry})[/dim]"
        )
        self.console.print(self.render_gates(controller))
        explanation = controller.explanation()
        if explanation:
            self.show_explanation(explanation)

    def show_explanation(self, explanation: "Explanation"):
        """Print an explanation panel (blocking reason or warning)."""
        border = "red" if explanation.kind == "blocked" else "yellow"
        body = explanation.message
        if explanation.learn_more_url:
            body += f"\n\n[link={explanation.learn_more_url}]Learn more[/link] [dim]{explanation.learn_more_url}[/dim]"
        self.console.print(Panel(body, title=explanation.title, border_style=border))

    def show_summary_table(self, title: str, data: dict):
        """Show a key/value table with sensitive values masked."""
        table = Table(title=title, border_style="blue")
        table.add_column("Setting", style="cyan")
        table.add_column("Value", style="white")

        for key, value in data.items():
            if is_sensitive_key(key):
                display_value = "********" if value else "[dim]not set[/dim]"
            elif value is None or value == "" or value == []:
                display_value = "[dim]not set[/dim]"
            else:
                display_value = mask_sensitive(str(value))
            table.add_row(key, display_value)

        self.console.print(table)
