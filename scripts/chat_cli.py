#!/usr/bin/env python3
"""Interactive chat CLI for testing the VEA assistant service."""

import sys
import time

import httpx
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Prompt

VIDEO_REFRESH_SECONDS = 10


class ChatCLI:
    """Interactive chat interface for the VEA assistant service."""

    def __init__(self, base_url: str = "http://localhost:8000", user_id: str = "demo-user"):
        """Initialize chat CLI."""
        self.base_url = base_url
        self.session_id: str | None = None
        self.pending_images: list[str] = []
        self.console = Console()
        self.client = httpx.Client(timeout=300.0, headers={"X-User-Id": user_id})

    def start(self) -> None:
        """Start the interactive chat session."""
        self.console.print(
            Panel.fit(
                "[bold blue]🧠 VEA AI Assistant - Interactive Chat[/bold blue]\n"
                "Type your messages to chat with the AI assistant.\n"
                "Commands: /help, /attach <url>, /wait, /clear, /quit",
                border_style="blue",
            )
        )

        if not self._test_connection():
            self.console.print(f"[red]❌ Cannot connect to the service at {self.base_url}.[/red]")
            return

        self.console.print("[green]✅ Connected to VEA assistant service[/green]\n")

        try:
            while True:
                user_input = Prompt.ask("\n[bold cyan]You[/bold cyan]")
                command = user_input.strip()

                if command.lower() in ["/quit", "/exit", "quit", "exit"]:
                    break
                elif command.lower() == "/help":
                    self._show_help()
                    continue
                elif command.lower() == "/clear":
                    self.session_id = None
                    self.pending_images = []
                    self.console.print("[yellow]🔄 Session cleared[/yellow]")
                    continue
                elif command.lower().startswith("/attach "):
                    self.pending_images.append(command.split(maxsplit=1)[1])
                    self.console.print(f"[yellow]📎 {len(self.pending_images)} image(s) attached[/yellow]")
                    continue
                elif command.lower() == "/wait":
                    self._wait_for_videos()
                    continue
                elif command == "":
                    continue

                response = self._send_message(user_input)
                if response:
                    self._display_message(response["message"])

        except KeyboardInterrupt:
            pass
        finally:
            self.console.print("\n[yellow]👋 Goodbye![/yellow]")
            self.client.close()

    def _test_connection(self) -> bool:
        """Test connection to the service."""
        try:
            response = self.client.get(f"{self.base_url}/health")
            return response.status_code == 200
        except httpx.HTTPError:
            return False

    def _send_message(self, message: str) -> dict | None:
        """Send message to the AI service."""
        payload: dict = {"message": message}
        if self.session_id:
            payload["session_id"] = self.session_id
        if self.pending_images:
            payload["reference_images"] = self.pending_images

        try:
            with self.console.status("[dim]💭 Thinking...[/dim]"):
                response = self.client.post(f"{self.base_url}/conversation", json=payload)
        except httpx.HTTPError as e:
            self.console.print(f"[red]❌ Connection error: {e}[/red]")
            return None

        if response.status_code != 200:
            self.console.print(f"[red]❌ API Error: {response.status_code} - {response.text}[/red]")
            return None

        self.pending_images = []
        data = response.json()
        self.session_id = data.get("session_id")
        return data

    def _display_message(self, message: dict) -> None:
        """Display an assistant message with nice formatting."""
        body = message.get("content", "")
        media_url = message.get("media_url")

        if message.get("is_generating"):
            body += f"\n\n_⏳ Video generating ({message.get('progress', 0)}%). Use /wait to follow it._"
        elif media_url:
            icon = "🎬" if message.get("media_type") == "video" else "🖼️"
            body += f"\n\n{icon} {media_url}"

        self.console.print(
            Panel(
                Markdown(body),
                title="[bold green]🤖 VEA Assistant[/bold green]",
                border_style="green",
                padding=(1, 2),
            )
        )

    def _wait_for_videos(self) -> None:
        """Refresh the transcript until no video is still generating."""
        if not self.session_id:
            self.console.print("[yellow]No active session[/yellow]")
            return

        with self.console.status("[dim]🎬 Waiting for video...[/dim]") as status:
            while True:
                response = self.client.get(f"{self.base_url}/conversation/{self.session_id}/messages")
                if response.status_code != 200:
                    self.console.print(f"[red]❌ API Error: {response.status_code} - {response.text}[/red]")
                    return

                messages = response.json()["messages"]
                generating = [m for m in messages if m.get("is_generating")]
                if not generating:
                    break

                status.update(f"[dim]🎬 Waiting for video... {generating[-1].get('progress', 0)}%[/dim]")
                time.sleep(VIDEO_REFRESH_SECONDS)

        videos = [m for m in messages if m.get("media_type") == "video"]
        if videos:
            self._display_message(videos[-1])

    def _show_help(self) -> None:
        """Show help information."""
        help_text = """
[bold]Available Commands:[/bold]
• /help - Show this help message
• /attach <url> - Attach a reference image to the next message
• /wait - Wait for a generating video to finish
• /clear - Clear session and start over
• /quit or /exit - Exit the chat

[bold]Example Conversation:[/bold]
1. "Give me a dashboard overview"
2. "Create a task to call Acme about the renewal"
3. "How's my business doing?"
4. "Create an image of a modern office at sunset"
5. "Make a video of a drone flying over a city"
        """

        self.console.print(Panel(help_text.strip(), title="[cyan]❓ Help[/cyan]", border_style="cyan"))


def main():
    """Main entry point for the chat CLI."""
    base_url = sys.argv[1] if len(sys.argv) > 1 else "http://localhost:8000"
    user_id = sys.argv[2] if len(sys.argv) > 2 else "demo-user"

    chat = ChatCLI(base_url, user_id)
    chat.start()


if __name__ == "__main__":
    main()
