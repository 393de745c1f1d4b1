#!/usr/bin/env python3
"""Interactive chat CLI for trying out the planting assistant."""

import sys

import httpx
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table


class ChatCLI:
    """Interactive chat interface for the planting assistant."""

    def __init__(self, base_url: str = "http://localhost:8000"):
        """Initialize chat CLI."""
        self.base_url = base_url
        self.session_id: str | None = None
        self.console = Console()
        self.client = httpx.Client(timeout=90.0)

    def start(self) -> None:
        """Start the interactive chat session."""
        self.console.print(
            Panel.fit(
                "[bold green]SilvaPlan Assistant - Interactive Chat[/bold green]\n"
                "Type your messages to plan planting and maintenance.\n"
                "Commands: /help, /pick LAT LNG, /gps LAT LNG, /risks, /clear, /quit",
                border_style="green",
            )
        )

        if not self._test_connection():
            self.console.print(f"[red]Cannot connect to the service at {self.base_url}.[/red]")
            return

        self.console.print("[green]Connected to SilvaPlan[/green]\n")

        try:
            while True:
                user_input = Prompt.ask("\n[bold cyan]You[/bold cyan]").strip()

                if user_input.lower() in ["/quit", "/exit", "quit", "exit"]:
                    break
                elif user_input.lower() == "/help":
                    self._show_help()
                elif user_input.lower() == "/clear":
                    self.session_id = None
                    self.console.print("[yellow]Session cleared[/yellow]")
                elif user_input.lower() == "/risks":
                    self._show_risks()
                elif user_input.startswith(("/pick", "/gps")):
                    self._set_location(user_input)
                elif user_input:
                    response = self._send_message(user_input)
                    if response:
                        self._display_response(response)

        except KeyboardInterrupt:
            pass
        finally:
            self.console.print("\n[yellow]Goodbye![/yellow]")
            self.client.close()

    def _test_connection(self) -> bool:
        try:
            response = self.client.get(f"{self.base_url}/health")
        except httpx.HTTPError:
            return False
        return response.status_code == 200

    def _send_message(self, message: str) -> dict | None:
        """Send message to the assistant."""
        payload = {"message": message}
        if self.session_id:
            payload["session_id"] = self.session_id

        try:
            with self.console.status("[dim]Thinking...[/dim]"):
                response = self.client.post(f"{self.base_url}/conversation", json=payload)
        except httpx.HTTPError as e:
            self.console.print(f"[red]Connection error: {e}[/red]")
            return None

        if response.status_code != 200:
            self.console.print(f"[red]API Error: {response.status_code} - {response.text}[/red]")
            return None

        data = response.json()
        self.session_id = data.get("session_id")
        return data

    def _set_location(self, command: str) -> None:
        """Pin a location (/pick) or report a GPS fix (/gps) for the session."""
        parts = command.split()
        try:
            lat, lng = float(parts[1]), float(parts[2])
        except (IndexError, ValueError):
            self.console.print("[red]Usage: /pick LAT LNG or /gps LAT LNG[/red]")
            return

        if not self.session_id:
            # a session exists only after the first message
            self.console.print("[yellow]Send a message first to open a session.[/yellow]")
            return

        slot = "picked_location" if parts[0] == "/pick" else "user_gps"
        response = self.client.put(
            f"{self.base_url}/sessions/{self.session_id}/map-context", json={slot: {"lat": lat, "lng": lng}}
        )
        if response.status_code == 200:
            self.console.print(f"[green]Location set: {lat:.5f}, {lng:.5f}[/green]")
        else:
            self.console.print(f"[red]API Error: {response.status_code} - {response.text}[/red]")

    def _display_response(self, response: dict) -> None:
        """Display the assistant reply and the tools it used."""
        self.console.print(
            Panel(
                Markdown(response.get("response", "No response")),
                title="[bold green]SilvaPlan[/bold green]",
                border_style="green",
                padding=(1, 2),
            )
        )

        tool_results = response.get("tool_results") or []
        if tool_results:
            used = ", ".join(f"{t['name']} ({'ok' if t['success'] else 'failed'})" for t in tool_results)
            self.console.print(f"[dim]Tools: {used}[/dim]")
        if response.get("events_changed"):
            self.console.print("[dim]Calendar updated[/dim]")

    def _show_risks(self) -> None:
        """Show proactive risk warnings for the coming week."""
        response = self.client.get(f"{self.base_url}/risks")
        if response.status_code != 200:
            self.console.print(f"[red]API Error: {response.status_code} - {response.text}[/red]")
            return

        warnings = response.json()
        if not warnings:
            self.console.print("[green]No risks for upcoming events.[/green]")
            return

        table = Table(title="Upcoming risks")
        table.add_column("Event")
        table.add_column("Date")
        table.add_column("Severity")
        table.add_column("Risks")
        for warning in warnings:
            color = "red" if warning["severity"] == "danger" else "yellow"
            table.add_row(
                warning["event_title"],
                warning["event_date"][:10],
                f"[{color}]{warning['severity']}[/{color}]",
                "\n".join(warning["risks"]),
            )
        self.console.print(table)

    def _show_help(self) -> None:
        help_text = """
[bold]Available Commands:[/bold]
• /help - Show this help message
• /pick LAT LNG - Pin a location on the map
• /gps LAT LNG - Report your GPS position
• /risks - Show weather risks for the coming week
• /clear - Start a new session
• /quit or /exit - Exit the chat

[bold]Example Conversation:[/bold]
1. /pick 50.08 14.42
2. "Plan planting 20 oaks next Saturday"
3. "What is the weather going to be there?"
4. "Move it to Sunday"
        """

        self.console.print(Panel(help_text.strip(), title="[cyan]Help[/cyan]", border_style="cyan"))


def main():
    """Main entry point for the chat CLI."""
    base_url = sys.argv[1] if len(sys.argv) > 1 else "http://localhost:8000"

    chat = ChatCLI(base_url)
    chat.start()


if __name__ == "__main__":
    main()
