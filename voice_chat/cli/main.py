"""CLI entry point for the voice chat client."""

import asyncio
import json
import signal
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional
import click
import structlog

from ..config.settings import settings
from ..core.chat_controller import ChatController
from ..core.messages import Message, MessageType, Role
from ..core.notifications import Notification, NotificationService
from ..core.audio_pipeline import PipelineState
from ..providers import registry
from ..state.conversation_store import ConversationStore
from ..state.settings_store import SettingsStore
from ..utils.logging import setup_logging_from_settings


logger = structlog.get_logger()

HELP_TEXT = """Commands:
  /new            start a new conversation
  /open <id>      open a stored conversation
  /rec            start or stop a voice recording
  /quote <text>   quote reply text into your next message
  /say            read the last reply aloud (again to stop)
  /quit           exit
Anything else is sent as a message. Ctrl+C stops a reply in progress."""


class TranscriptPrinter:
    """Echoes streamed assistant text to the terminal as it grows."""

    def __init__(self):
        self._printed: Dict[int, int] = {}

    def __call__(self, message: Message) -> None:
        if message.role != Role.ASSISTANT:
            return

        if message.message_type == MessageType.ERROR:
            click.echo(click.style(f"\n❌ {message.content}", fg="red"))
            self.mark_printed(message)
            return

        printed = self._printed.get(message.id)
        if printed is None:
            click.echo(click.style("assistant> ", fg="cyan"), nl=False)
            printed = 0
        click.echo(message.content[printed:], nl=False)
        self._printed[message.id] = len(message.content)

    def mark_printed(self, message: Message) -> None:
        self._printed[message.id] = len(message.content)

    def reset(self) -> None:
        self._printed.clear()


def echo_notification(notification: Notification) -> None:
    color = "yellow" if notification.kind == "banner" else "red"
    click.echo(click.style(f"\n⚠️  {notification.message}", fg=color))


def load_settings(config: Optional[str], debug: bool) -> None:
    if config:
        settings.config_file = Path(config)
        settings.load_from_file()
        settings.load_from_env()
    setup_logging_from_settings(settings, debug=debug)


def build_controller(
    mock: bool,
    name: Optional[str],
    course: Optional[str],
    notifications: NotificationService,
) -> ChatController:
    """Create providers and stores and wire them into a controller."""
    if mock:
        from mocks.providers import (
            MockChatTransport,
            MockMicrophone,
            MockTranscriber,
            MockTTSProvider,
        )

        transport = MockChatTransport(fragment_delay=0.05)
        tts = MockTTSProvider()
        microphone = MockMicrophone()
        transcriber = MockTranscriber()
    else:
        transport = registry.get_chat_transport(settings.providers.chat_transport)
        tts = registry.get_tts_provider(settings.providers.tts)
        microphone = registry.get_microphone(settings.providers.microphone)
        transcriber = registry.get_transcriber(settings.providers.transcriber)

    transport.initialize()
    try:
        tts.initialize()
    except Exception as e:
        logger.warning("Read-aloud disabled", error=str(e))
        tts = None

    data_dir = str(settings.data_dir)
    controller = ChatController(
        transport=transport,
        settings=settings,
        conversation_store=ConversationStore(data_dir),
        settings_store=SettingsStore(data_dir),
        notifications=notifications,
        tts=tts,
        user_name=name,
        course=course,
    )
    controller.attach_audio(microphone, transcriber)
    return controller


async def handle_command(controller: ChatController, printer: TranscriptPrinter, line: str) -> bool:
    """Run one REPL line. Returns False when the REPL should exit."""
    command, _, argument = line.partition(" ")
    argument = argument.strip()

    if command in ("/quit", "/exit"):
        return False

    if command == "/help":
        click.echo(HELP_TEXT)
    elif command == "/new":
        await controller.new_conversation()
        printer.reset()
        click.echo("🆕 New conversation")
    elif command == "/open":
        if not argument.isdigit():
            click.echo("Usage: /open <conversation id>")
        elif await controller.open_conversation(int(argument)):
            printer.reset()
            click.echo(f"📂 {controller.conversation.title}")
            for message in controller.messages:
                click.echo(f"{message.role.value}> {message.content}")
                printer.mark_printed(message)
    elif command == "/rec":
        pipeline = controller.audio_pipeline
        if pipeline.state == PipelineState.IDLE and not await pipeline.acquire_device():
            return True
        recording = pipeline.state == PipelineState.RECORDING
        await pipeline.toggle()
        if not recording and pipeline.state == PipelineState.RECORDING:
            click.echo("🎙️  Recording... type /rec again to stop")
        else:
            click.echo()
    elif command == "/quote":
        controller.quote_helper.on_selection_change(argument)
        if controller.quote_helper.quote_selection() is None:
            click.echo("Nothing to quote")
        else:
            click.echo("📋 Quote staged for your next message")
    elif command == "/say":
        if not await controller.toggle_read_aloud():
            click.echo("Nothing to read aloud")
    elif command.startswith("/"):
        click.echo(f"Unknown command: {command}. Type /help for help.")
    else:
        controller.input_buffer.paste_text(line)
        busy = controller.state.exchange_in_progress
        if await controller.send_input():
            click.echo()
            return True

        controller.input_buffer.clear()
        if busy:
            click.echo("A reply is still in progress")
        else:
            click.echo("Nothing to send")
    return True


async def run_chat(
    mock: bool,
    group_id: Optional[int],
    conversation_id: Optional[int],
    name: Optional[str],
    course: Optional[str],
) -> None:
    notifications = NotificationService()
    notifications.add_listener(echo_notification)
    controller = build_controller(mock, name, course, notifications)
    printer = TranscriptPrinter()
    controller.add_message_listener(printer)

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, controller.cancel)
    except NotImplementedError:
        # Not available on Windows event loops
        pass

    try:
        if group_id is not None:
            await controller.bind_settings(group_id)
        if conversation_id is not None:
            await handle_command(controller, printer, f"/open {conversation_id}")
        elif await controller.send_initial_greeting():
            click.echo()

        while True:
            try:
                line = await asyncio.to_thread(input, "you> ")
            except EOFError:
                break
            if line.strip() and not await handle_command(controller, printer, line.strip()):
                break
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except NotImplementedError:
            pass
        await controller.close()
        await controller.audio_pipeline.transcriber.close()
        controller.transport.stop()
        if controller.read_aloud is not None:
            controller.read_aloud.tts.stop()


@click.group()
def cli():
    """Voice-enabled chat client."""


@cli.command()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--mock", is_flag=True, help="Run in mock mode (no API calls)")
@click.option(
    "--config", type=click.Path(exists=True), help="Path to configuration file"
)
@click.option("--group-id", type=int, help="Chat settings group to bind")
@click.option("--conversation-id", type=int, help="Stored conversation to open")
@click.option("--name", help="Your name, passed to the assistant")
@click.option("--course", help="Course context for the conversation")
def chat(
    debug: bool,
    mock: bool,
    config: Optional[str],
    group_id: Optional[int],
    conversation_id: Optional[int],
    name: Optional[str],
    course: Optional[str],
):
    """Start an interactive chat session."""
    load_settings(config, debug)

    for issue in settings.validate():
        click.echo(click.style(f"⚠️  {issue}", fg="yellow"))

    click.echo(click.style("💬 Voice chat", fg="green", bold=True))
    if mock:
        click.echo(
            click.style(
                "⚠️  Running in MOCK mode - no API calls will be made", fg="yellow"
            )
        )
    click.echo(HELP_TEXT + "\n")

    try:
        asyncio.run(run_chat(mock, group_id, conversation_id, name, course))
    except ValueError as e:
        # Missing API keys surface here from provider initialization
        raise click.ClickException(str(e))

    click.echo("\n👋 Goodbye!")


@cli.command()
@click.option("--group-id", type=int, help="Only conversations of this settings group")
@click.option(
    "--format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format",
)
@click.option(
    "--config", type=click.Path(exists=True), help="Path to configuration file"
)
def conversations(group_id: Optional[int], format: str, config: Optional[str]):
    """List stored conversations."""
    load_settings(config, debug=False)
    store = ConversationStore(str(settings.data_dir))
    records = asyncio.run(store.list_conversations(group_id=group_id))

    if format == "json":
        click.echo(json.dumps([record.to_dict() for record in records], indent=2))
        return

    if not records:
        click.echo("No conversations found.")
        return

    click.echo("📝 Conversations")
    click.echo("-" * 60)
    for record in records:
        created = datetime.fromtimestamp(record.created_at / 1000)
        click.echo(f"ID: {record.id}")
        click.echo(f"Title: {record.title}")
        click.echo(f"Created: {created.isoformat(sep=' ', timespec='seconds')}")
        click.echo(f"Model: {record.model_id}")
        click.echo("-" * 60)


@cli.command()
def providers():
    """List available providers."""
    click.echo("🔌 Available Providers")
    click.echo("-" * 50)

    sections = [
        ("💬 Chat Transports", registry.list_chat_transports(), settings.providers.chat_transport),
        ("📝 Transcribers", registry.list_transcribers(), settings.providers.transcriber),
        ("🔊 TTS Providers", registry.list_tts_providers(), settings.providers.tts),
        ("🎙️  Microphones", registry.list_microphones(), settings.providers.microphone),
    ]
    for title, names, selected in sections:
        click.echo(f"\n{title} ({len(names)})")
        for provider in names:
            marker = " (selected)" if provider == selected else ""
            click.echo(f"  - {provider}{marker}")


if __name__ == "__main__":
    cli()
