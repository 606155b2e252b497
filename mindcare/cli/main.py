"""CLI entry point for the MindCare assistant."""

import asyncio
import json
from pathlib import Path
from typing import Optional

import click
import structlog

from ..config.locales import Language
from ..config.settings import Settings
from ..core.conversation_manager import ConversationConfig, ConversationManager
from ..core.errors import AuthError
from ..core.language import detect_language
from ..metrics.collector import MetricsCollector
from ..providers import registry
from ..state.auth import AuthStore
from ..state.persistence import JsonFileStorage
from ..state.session_manager import MessageRole
from ..utils.logging import cleanup_old_logs, setup_logging
from ..utils.notifications import Notification, Notifier, Severity


logger = structlog.get_logger()

LANGUAGE_CHOICE = click.Choice([language.value for language in Language])

SEVERITY_COLORS = {
    Severity.SUCCESS: "green",
    Severity.INFO: "cyan",
    Severity.WARNING: "yellow",
    Severity.ERROR: "red",
}

CHAT_HELP = """Commands:
  /new            start a new conversation
  /list           list conversations
  /switch ID      select a conversation
  /delete ID      delete a conversation
  /title TEXT     rename the current conversation
  /lang TAG       set the language (fr-FR, en-US, ...)
  /voice          start voice input
  /stop           stop voice input
  /send           send the transcribed voice input
  /status         show assistant status
  /quit           leave
Anything else is sent as a message."""


def load_settings(config: Optional[str]) -> Settings:
    return Settings(config_file=config)


def configure_logging(settings: Settings, debug: bool) -> None:
    setup_logging(
        debug=debug,
        log_file=settings.logging.file_enabled,
        log_level=settings.logging.level,
        log_format=settings.logging.format,
        log_dir=settings.logging.directory,
        file_rotation_mb=settings.logging.file_rotation_mb,
        file_backup_count=settings.logging.file_backup_count,
    )
    if settings.logging.file_enabled:
        cleanup_old_logs(settings.logging.directory, keep_days=settings.logging.retention_days)


def echo_notification(notification: Notification) -> None:
    click.echo(
        click.style(
            f"[{notification.severity.value}] {Notifier.render(notification)}",
            fg=SEVERITY_COLORS[notification.severity],
        )
    )


def print_sessions(manager: ConversationManager) -> None:
    store = manager.store
    if not store.sessions:
        click.echo("No conversations yet.")
        return
    for session in store.sessions:
        marker = "*" if session.id == store.current_session_id else " "
        click.echo(
            f"{marker} {session.id}  {session.title}  [{session.language.value}]  "
            f"{len(session.messages)} messages  {session.updated_at:%Y-%m-%d %H:%M}"
        )


def print_last_reply(manager: ConversationManager) -> None:
    session = manager.store.get_current_session()
    if session and session.messages and session.messages[-1].role is MessageRole.ASSISTANT:
        click.echo(click.style(f"assistant> {session.messages[-1].content}", fg="blue"))


async def handle_command(manager: ConversationManager, line: str) -> bool:
    """Run one slash command. Returns False when the chat should end."""
    command, _, argument = line.partition(" ")
    argument = argument.strip()

    if command in ("/quit", "/exit"):
        return False
    if command == "/help":
        click.echo(CHAT_HELP)
    elif command == "/new":
        session_id = manager.new_session()
        click.echo(f"Started conversation {session_id}")
        print_last_reply(manager)
    elif command == "/list":
        print_sessions(manager)
    elif command == "/switch":
        if manager.store.get_session(argument) is None:
            click.echo(click.style(f"Unknown conversation: {argument}", fg="red"))
        else:
            manager.store.set_current_session(argument)
    elif command == "/delete":
        manager.store.delete_session(argument)
        click.echo(f"Deleted {argument}")
    elif command == "/title":
        if manager.store.current_session_id and argument:
            manager.store.update_session_title(manager.store.current_session_id, argument)
    elif command == "/lang":
        manager.set_language(Language.parse(argument))
        click.echo(f"Language: {manager.store.default_language.value}")
    elif command == "/voice":
        if manager.voice.start_listening():
            click.echo("Listening... type /stop when done.")
    elif command == "/stop":
        manager.voice.stop_listening()
    elif command == "/send":
        if await manager.send():
            print_last_reply(manager)
        else:
            click.echo("Nothing to send.")
    elif command == "/status":
        click.echo(json.dumps(manager.get_status(), indent=2, default=str))
    else:
        click.echo(f"Unknown command {command}, try /help")
    return True


async def run_chat(manager: ConversationManager) -> None:
    await manager.start()
    print_last_reply(manager)
    try:
        while True:
            try:
                line = await asyncio.to_thread(
                    click.prompt, "you", default="", show_default=False, prompt_suffix="> "
                )
            except click.Abort:
                break

            line = line.strip()
            if not line:
                continue
            if line.startswith("/"):
                if not await handle_command(manager, line):
                    break
                continue

            if await manager.send(line):
                print_last_reply(manager)
    finally:
        await manager.stop()


@click.group()
@click.version_option(package_name="mindcare-assistant")
def cli():
    """MindCare mental-health support assistant."""


@cli.command()
@click.option("--mock", is_flag=True, help="Use the canned engine and scripted voice input")
@click.option("--language", "-l", type=LANGUAGE_CHOICE, help="Language for new conversations")
@click.option("--config", type=click.Path(exists=True), help="Path to configuration file")
@click.option("--storage", type=click.Path(file_okay=False), help="Directory for persisted state")
@click.option("--ephemeral", is_flag=True, help="Keep state in memory only")
@click.option("--no-metrics", is_flag=True, help="Disable metrics collection")
@click.option("--debug", is_flag=True, help="Enable debug logging")
def chat(
    mock: bool,
    language: Optional[str],
    config: Optional[str],
    storage: Optional[str],
    ephemeral: bool,
    no_metrics: bool,
    debug: bool,
):
    """
    Start an interactive conversation.

    Plain text is sent as a message; type /help for the commands.
    """
    settings = load_settings(config)
    configure_logging(settings, debug)
    if language:
        settings.default_language = Language.parse(language)

    for issue in settings.validate():
        click.echo(click.style(f"Configuration issue: {issue}", fg="yellow"))

    notifier = Notifier()
    notifier.subscribe(echo_notification)
    manager = ConversationManager(
        ConversationConfig(
            storage_dir=storage,
            ephemeral=ephemeral,
            enable_metrics=not no_metrics,
            mock_mode=mock,
        ),
        settings=settings,
        notifier=notifier,
    )

    click.echo(click.style("MindCare assistant", fg="green", bold=True))
    if mock:
        click.echo(click.style("Running in MOCK mode", fg="yellow"))
    if not manager.voice.is_available:
        click.echo(f"Voice input unavailable: {manager.voice.unavailable_reason}")
    click.echo("Type /help for commands.\n")

    try:
        asyncio.run(run_chat(manager))
    except KeyboardInterrupt:
        click.echo("\nShutting down...")

    if manager.metrics and manager.metrics.current_run:
        summary = manager.metrics.get_summary()
        click.echo(f"\nInteractions: {summary['total_interactions']}")
    click.echo("Goodbye!")


@cli.command()
@click.option("--config", type=click.Path(exists=True), help="Path to configuration file")
@click.option("--storage", type=click.Path(file_okay=False), help="Directory for persisted state")
def sessions(config: Optional[str], storage: Optional[str]):
    """List persisted conversations."""
    settings = load_settings(config)
    manager = ConversationManager(
        ConversationConfig(storage_dir=storage, enable_voice=False, enable_metrics=False),
        settings=settings,
    )
    manager.store.load()
    print_sessions(manager)


@cli.command()
@click.argument("text")
def classify(text: str):
    """Print the language tag detected for TEXT."""
    click.echo(detect_language(text).value)


@cli.command()
def providers():
    """List available providers."""
    engines = registry.list_response_engines()
    click.echo(f"Response engines ({len(engines)})")
    for name in engines:
        click.echo(f"  - {name}")

    capabilities = registry.list_speech_capabilities()
    click.echo(f"Speech capabilities ({len(capabilities)})")
    for name in capabilities:
        supported = registry.speech_capability_class(name).is_supported()
        click.echo(f"  - {name}{'' if supported else ' (not supported on this platform)'}")


@cli.command()
@click.option("--days", "-d", default=7, help="Number of days to include in report")
@click.option(
    "--format", "output_format", type=click.Choice(["text", "json"]), default="text",
    help="Output format",
)
@click.option("--config", type=click.Path(exists=True), help="Path to configuration file")
def metrics(days: int, output_format: str, config: Optional[str]):
    """View usage metrics."""
    settings = load_settings(config)
    report = MetricsCollector(settings.metrics_dir()).generate_report(days=days)

    if output_format == "json":
        click.echo(json.dumps(report, indent=2))
        return

    click.echo(f"Metrics report, last {days} days")
    click.echo("-" * 40)
    if report["total_runs"] == 0:
        click.echo("No data available for the specified period.")
        return

    click.echo(f"Runs: {report['total_runs']}")
    click.echo(f"Interactions: {report['total_interactions']}")
    click.echo(f"Error rate: {report['error_rate']:.2%}")
    click.echo(f"Voice cycles: {report['voice_cycles']}")
    click.echo(f"Reconnections: {report['reconnections']}")

    latency = report["reply_latency_ms"]
    if latency["samples"] > 0:
        click.echo(f"Reply latency: avg {latency['avg']:.0f}ms, p95 {latency['p95']:.0f}ms")
    else:
        click.echo("Reply latency: No data")


def auth_store(config: Optional[str], storage: Optional[str]) -> AuthStore:
    settings = load_settings(config)
    directory = Path(storage).expanduser() if storage else settings.storage_dir()
    store = AuthStore(JsonFileStorage(directory), namespace=settings.storage.auth_namespace)
    store.load()
    return store


@cli.command()
@click.option("--email", prompt=True)
@click.option("--password", prompt=True, hide_input=True)
@click.option("--storage", type=click.Path(file_okay=False), help="Directory for persisted state")
@click.option("--config", type=click.Path(exists=True), help="Path to configuration file")
def login(email: str, password: str, storage: Optional[str], config: Optional[str]):
    """Sign in (mock exchange, any credentials are accepted)."""
    store = auth_store(config, storage)
    try:
        user = asyncio.run(store.login(email, password))
    except AuthError as e:
        raise click.ClickException(str(e))
    click.echo(f"Signed in as {user.username}")


@cli.command()
@click.option("--username", prompt=True)
@click.option("--email", prompt=True)
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
@click.option("--storage", type=click.Path(file_okay=False), help="Directory for persisted state")
@click.option("--config", type=click.Path(exists=True), help="Path to configuration file")
def register(username: str, email: str, password: str, storage: Optional[str], config: Optional[str]):
    """Create an account (mock exchange)."""
    store = auth_store(config, storage)
    try:
        user = asyncio.run(store.register(username, email, password))
    except AuthError as e:
        raise click.ClickException(str(e))
    click.echo(f"Registered {user.username}")


@cli.command()
@click.option("--storage", type=click.Path(file_okay=False), help="Directory for persisted state")
@click.option("--config", type=click.Path(exists=True), help="Path to configuration file")
def logout(storage: Optional[str], config: Optional[str]):
    """Sign out."""
    auth_store(config, storage).logout()
    click.echo("Signed out")


if __name__ == "__main__":
    cli()
