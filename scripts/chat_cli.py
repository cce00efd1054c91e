#!/usr/bin/env python3
"""Interactive chat CLI for the Hearthlight assistant API."""

import sys

import httpx
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table


class ChatCLI:
    """Terminal chat against a running assistant API."""

    def __init__(self, base_url: str = "http://localhost:8000", thread_id: str = "default"):
        self.base_url = base_url.rstrip("/")
        self.thread_id = thread_id
        self.console = Console()
        self.client = httpx.Client(timeout=90.0)

    def start(self) -> None:
        """Start the interactive chat session."""
        self.console.print(
            Panel.fit(
                "[bold magenta]🕯️ Hearthlight Assistant - Interactive Chat[/bold magenta]\n"
                "Ask for tasks, diary entries, goals or a look at your progress.\n"
                "Commands: /help, /history, /threads, /thread <id>, /clear, /quit",
                border_style="magenta",
            )
        )

        if not self._test_connection():
            self.console.print(f"[red]❌ Cannot reach the assistant at {self.base_url}.[/red]")
            return

        self.console.print(f"[green]✅ Connected[/green] [dim](thread: {self.thread_id})[/dim]\n")

        try:
            while True:
                user_input = Prompt.ask("\n[bold cyan]You[/bold cyan]").strip()
                command, _, argument = user_input.partition(" ")

                if command.lower() in ["/quit", "/exit", "quit", "exit"]:
                    break
                elif command.lower() == "/help":
                    self._show_help()
                elif command.lower() == "/history":
                    self._show_history()
                elif command.lower() == "/threads":
                    self._show_threads()
                elif command.lower() == "/thread" and argument:
                    self.thread_id = argument.strip()
                    self.console.print(f"[yellow]🔀 Switched to thread {self.thread_id}[/yellow]")
                elif command.lower() == "/clear":
                    self._clear()
                elif user_input:
                    self._send_message(user_input)

        except KeyboardInterrupt:
            pass
        finally:
            self.console.print("\n[yellow]👋 Goodbye![/yellow]")
            self.client.close()

    def _test_connection(self) -> bool:
        try:
            return self.client.get(f"{self.base_url}/health").status_code == 200
        except httpx.HTTPError:
            return False

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response | None:
        try:
            response = self.client.request(method, f"{self.base_url}{path}", **kwargs)
        except httpx.HTTPError as e:
            self.console.print(f"[red]❌ Connection error: {e}[/red]")
            return None

        if response.is_error:
            self.console.print(f"[red]❌ API Error: {response.status_code} - {response.text}[/red]")
            return None
        return response

    def _send_message(self, message: str) -> None:
        with self.console.status("[dim]💭 Thinking...[/dim]"):
            response = self._request(
                "POST", "/conversation", json={"message": message, "thread_id": self.thread_id}
            )
        if response is not None:
            self._display_reply(response.json()["messages"][-1])

    def _display_reply(self, message: dict) -> None:
        self.console.print(
            Panel(
                Markdown(message.get("content", "No response")),
                title="[bold green]🤖 Assistant[/bold green]",
                border_style="green",
                padding=(1, 2),
            )
        )

        for call in message.get("tool_calls") or []:
            style = "red" if call.get("is_error") else "dim"
            self.console.print(f"[{style}]  ↳ {call['name']}({call.get('args', {})})[/{style}]")

    def _show_history(self) -> None:
        response = self._request("GET", f"/conversations/{self.thread_id}")
        if response is None:
            return

        messages = response.json()["messages"]
        if not messages:
            self.console.print("[dim]No messages yet on this thread.[/dim]")
        for message in messages:
            if message["role"] == "user":
                self.console.print(f"[bold cyan]You:[/bold cyan] {message['content']}")
            else:
                self._display_reply(message)

    def _show_threads(self) -> None:
        response = self._request("GET", "/conversations")
        if response is None:
            return

        table = Table(title="Conversations")
        table.add_column("Thread")
        table.add_column("Name")
        table.add_column("Last message", overflow="fold")
        for summary in response.json():
            marker = " *" if summary["thread_id"] == self.thread_id else ""
            table.add_row(summary["thread_id"] + marker, summary["name"], summary["last_message"])
        self.console.print(table)

    def _clear(self) -> None:
        if self._request("DELETE", f"/conversations/{self.thread_id}") is not None:
            self.console.print(f"[yellow]🔄 Cleared thread {self.thread_id}[/yellow]")

    def _show_help(self) -> None:
        help_text = """
[bold]Available Commands:[/bold]
• /help - Show this help message
• /history - Show the current thread
• /threads - List conversation threads
• /thread <id> - Switch to (or start) another thread
• /clear - Clear the current thread
• /quit or /exit - Exit the chat

[bold]Things to try:[/bold]
1. "Add a task called Buy milk with high priority"
2. "Write a diary entry about today's long walk, I'm feeling happy"
3. "Set a goal to read 12 books this year"
4. "How productive was I this week?"
        """

        self.console.print(Panel(help_text.strip(), title="[cyan]❓ Help[/cyan]", border_style="cyan"))


def main():
    """Main entry point for the chat CLI."""
    base_url = sys.argv[1] if len(sys.argv) > 1 else "http://localhost:8000"
    thread_id = sys.argv[2] if len(sys.argv) > 2 else "default"

    ChatCLI(base_url, thread_id).start()


if __name__ == "__main__":
    main()
