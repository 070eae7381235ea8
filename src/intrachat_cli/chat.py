"""
WebSocket chat CLI for testing real-time messaging.

Usage:
    intrachat chat -c <chat_id>
    intrachat chat --chat <chat_id> --listen-only
"""

import asyncio
import click

from intrachat_client import (
    AuthenticationError,
    ConnectionLostError,
    PresenceUpdate,
    RealtimeClient,
    RoomUpdate,
    StatusEvent,
    TypingUpdate,
)
from intrachat_types.websocket import WSError, WSMessageNew


def ws_url_from_api(api_url: str) -> str:
    url = api_url.rstrip('/')
    # WebSocket is at root, not under /api
    if url.endswith("/api"):
        url = url[:-4]
    url = url.replace("http://", "ws://").replace("https://", "wss://")
    return f"{url}/ws"


class ChatClient:
    """Interactive chat client on top of RealtimeClient."""

    def __init__(self, api_url: str, access_token: str, chat_id: str):
        self.chat_id = chat_id
        self.running = True
        self.client = RealtimeClient(ws_url_from_api(api_url), access_token)
        self._composing = False

        self.client.on_message(self._display_new_message)
        self.client.on_presence(self._display_presence)
        self.client.on_typing(self._display_typing)
        self.client.on_room_event(self._display_room)
        self.client.on_error(self._display_error)
        self.client.on_status(self._display_status)

    async def connect(self) -> bool:
        """Connect and join the chat."""
        click.echo(f"[debug] Connecting to: {self.client.url}")

        try:
            await self.client.connect()
        except AuthenticationError as e:
            click.echo(f"[error] Authentication failed: {e.message}")
            return False
        except ConnectionLostError as e:
            click.echo(f"[error] Connection failed: {e.message}")
            return False

        click.echo(f"[system] Connected as user: {self.client.user_id}")
        online = ", ".join(sorted(self.client.online_user_ids)) or "nobody"
        click.echo(f"[presence] Online: {online}")

        await self.client.join_room(self.chat_id)
        click.echo(f"[join] Joining: {self.chat_id}")
        return True

    def _display_new_message(self, event: WSMessageNew):
        message = event.data
        author = message.sender.display_name if message.sender else message.sender_id

        click.echo("")
        click.echo(f"┌─ NEW MESSAGE [{message.id[:8]}...] in {event.chat_id}")
        click.echo(f"│ From: {author}")
        if message.reply_to is not None:
            click.echo(f"│ Reply to: {(message.reply_to.content or '')[:60]}")
        if message.type.value != "text":
            click.echo(f"│ Type: {message.type.value}")
        click.echo(f"│ {message.content}")
        click.echo("└─")

    def _display_presence(self, update: PresenceUpdate):
        name = update.user.display_name if update.user else update.user_id
        click.echo(f"[presence] {name} is {'online' if update.online else 'offline'}")

    def _display_typing(self, update: TypingUpdate):
        if update.is_typing:
            name = update.user.display_name if update.user else update.user_id
            click.echo(f"[typing] {name} is typing...")

    def _display_room(self, update: RoomUpdate):
        click.echo(f"[{'joined' if update.joined else 'left'}] {update.chat_id}")

    def _display_error(self, event: WSError):
        click.echo(f"[error] {event.code}: {event.message}")

    def _display_status(self, status: StatusEvent):
        if status == StatusEvent.RECONNECTING:
            click.echo("[status] Connection dropped, reconnecting...")
        elif status == StatusEvent.RECONNECTED:
            click.echo("[status] Reconnected")
        elif status == StatusEvent.CONNECTION_LOST:
            click.echo("[status] Connection lost")
            self.running = False

    async def ping_loop(self):
        """Send keep-alive pings every 25 seconds."""
        while self.running:
            await asyncio.sleep(25)
            await self.client.ping()

    async def input_loop(self):
        """Interactive input for sending messages."""
        loop = asyncio.get_running_loop()

        click.echo("")
        click.echo("─" * 50)
        click.echo(f"Chat ready. Chat: {self.chat_id}")
        click.echo("Commands:")
        click.echo("  <text>              - send a message")
        click.echo("  /compose            - multi-line message (with typing indicator)")
        click.echo("  /reply <id> <text>  - reply to a message")
        click.echo("  /online             - list online users")
        click.echo("  /quit")
        click.echo("─" * 50)
        click.echo("")

        while self.running:
            try:
                line = await loop.run_in_executor(None, lambda: input("> "))
            except (EOFError, KeyboardInterrupt):
                self.running = False
                break

            line = line.strip()
            if not line:
                continue

            if line in ("/quit", "/q"):
                self.running = False
                break

            elif line == "/compose":
                await self._handle_compose()

            elif line.startswith("/reply "):
                await self._handle_reply(line[7:])

            elif line == "/online":
                click.echo(", ".join(sorted(self.client.online_user_ids)) or "nobody")

            elif line.startswith("/"):
                click.echo("Unknown command. Use /compose, /reply, /online or /quit")

            else:
                await self._send(line)

    async def _send(self, content: str, reply_to_id: str = None):
        if not await self.client.send(self.chat_id, content, reply_to_id=reply_to_id):
            click.echo("[error] Not connected, message not sent")

    async def _handle_compose(self):
        """Multi-line compose; keeps the typing indicator alive while composing."""
        loop = asyncio.get_running_loop()
        self._composing = True
        typing_task = asyncio.create_task(self._typing_refresh_loop())

        try:
            click.echo("Content (Enter twice to send):")
            lines = []
            while True:
                line = await loop.run_in_executor(None, lambda: input())
                if line == "":
                    break
                lines.append(line)
        finally:
            self._composing = False
            typing_task.cancel()
            await self.client.stop_typing(self.chat_id)

        content = "\n".join(lines)
        if content.strip():
            await self._send(content)
        else:
            click.echo("[cancelled] No content")

    async def _typing_refresh_loop(self):
        """Re-announce typing every few seconds so peers' timeouts do not fire."""
        try:
            while self._composing:
                await self.client.start_typing(self.chat_id)
                await asyncio.sleep(3)
        except asyncio.CancelledError:
            pass

    async def _handle_reply(self, args: str):
        message_id, _, content = args.strip().partition(" ")
        if not message_id or not content.strip():
            click.echo("Usage: /reply <message_id> <text>")
            return
        await self._send(content.strip(), reply_to_id=message_id)

    async def run(self, listen_only: bool = False):
        """Main run loop."""
        if not await self.connect():
            return

        ping_task = asyncio.create_task(self.ping_loop())
        try:
            if listen_only:
                while self.running:
                    await asyncio.sleep(1)
            else:
                await self.input_loop()
        finally:
            self.running = False
            ping_task.cancel()
            await self.client.disconnect()
            click.echo("\n[disconnected] Chat closed")


@click.command()
@click.option(
    "--chat", "-c", "chat_id",
    required=True,
    help="Chat to join"
)
@click.option(
    "--url",
    envvar="INTRACHAT_API_URL",
    default="http://localhost:8000",
    show_default=True,
    help="Base URL of the realtime server"
)
@click.option(
    "--token", "-t",
    envvar="INTRACHAT_TOKEN",
    required=True,
    help="Bearer token (or set INTRACHAT_TOKEN)"
)
@click.option(
    "--listen-only", "-l",
    is_flag=True,
    default=False,
    help="Only listen for messages, don't show input prompt."
)
def chat(chat_id: str, url: str, token: str, listen_only: bool):
    """
    Interactive WebSocket chat for testing real-time messaging.

    Examples:

        intrachat chat -c 3f2a... -t $TOKEN

        intrachat chat -c 3f2a... --listen-only
    """
    try:
        asyncio.run(ChatClient(url, token, chat_id).run(listen_only=listen_only))
    except KeyboardInterrupt:
        click.echo("\nInterrupted")
