"""
Waaier Simulator CLI - 会話シミュレーション・リプレイ用CLI
"""

import asyncio
import logging
import re
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import typer
import yaml
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from ..config import BotConfig, load_config
from ..engine import EventEngine, NotificationRenderer
from ..errors import ConfigurationError
from ..handler import GatheringMessageHandler
from ..integrations.contacts import ContactBook
from ..integrations.messenger import ConsoleMessenger
from ..models import GatheringEvent, InboundMessage

console = Console()
app = typer.Typer(help="Waaier Simulator CLI - 集まりBotのシミュレーションツール")

logger = logging.getLogger(__name__)

# "名前> テキスト" または "名前> ^返信先ID テキスト"
SIMULATED_LINE = re.compile(r"^\s*(?P<name>[^>]+?)\s*>\s?(?:\^(?P<reply_to>\S+)\s+)?(?P<text>.*)$")

DEFAULT_CONVERSATION = "simulated-group"


def parse_simulated_line(line: str) -> Optional[Tuple[str, Optional[str], str]]:
    """シミュレーター入力行を (名前, 返信先ID, テキスト) に分解"""
    match = SIMULATED_LINE.match(line)
    if not match:
        return None
    return match.group("name"), match.group("reply_to"), match.group("text")


def sender_id_for(name: str) -> str:
    return f"sim:{name.strip().lower()}"


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    )


def _load_config_or_exit(config_file: Optional[Path], overrides: Dict[str, Any]) -> BotConfig:
    try:
        return load_config(config_file, overrides=overrides)
    except ConfigurationError as e:
        console.print(f"❌ 設定エラー: {str(e)}", style="red")
        raise typer.Exit(code=1)


def _display_state(state: Optional[GatheringEvent], renderer: NotificationRenderer) -> None:
    """現在のイベント状態表示"""
    if state is None:
        console.print(Panel("イベントなし", title="State", border_style="dim"))
        return

    table = Table(title="Active Event", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Time", renderer.format_time(state.scheduled_time))
    table.add_row("Attendees", renderer.format_attendees(state.attendee_names()))
    table.add_row("Reply anchors", ", ".join(state.ack_message_ids))
    console.print(table)


class ConversationSimulator:
    """
    会話シミュレーター
    - 名前ごとの擬似連絡先を自動登録（auto_register=False なら登録済みの連絡先のみ）
    - 連番のメッセージIDを採番
    - ハンドラーへの逐次投入
    """

    def __init__(self, config: BotConfig, messenger: ConsoleMessenger, engine_clock=None, auto_register: bool = True):
        self.config = config
        self.auto_register = auto_register
        self.contacts = ContactBook()
        self.messenger = messenger
        engine = EventEngine(config, self.contacts, clock=engine_clock)
        self.handler = GatheringMessageHandler(config, self.contacts, messenger, engine=engine)
        self.next_id = 1

    def allocate_id(self) -> str:
        message_id = str(self.next_id)
        self.next_id += 1
        return message_id

    def register(self, name: str) -> str:
        sender_id = sender_id_for(name)
        if self.auto_register and sender_id not in self.contacts:
            self.contacts.update(sender_id, name.strip())
        return sender_id

    async def say(
        self,
        name: str,
        text: str,
        reply_to: Optional[str] = None,
        message_id: Optional[str] = None,
        timestamp: Optional[int] = None
    ):
        """名前のユーザーとして発言"""
        message = InboundMessage(
            text=text,
            sender_id=self.register(name),
            conversation_id=self.config.allowed_conversation_id,
            message_id=message_id or self.allocate_id(),
            replied_to_message_id=reply_to,
            timestamp_seconds=timestamp if timestamp is not None else int(time.time()),
        )
        notification = await self.handler.handle_text_message(message)
        return message, notification


@app.command()
def simulate(
    conversation: str = typer.Option(DEFAULT_CONVERSATION, "--conversation", "-c", help="会話ID"),
    config_file: Optional[Path] = typer.Option(None, "--config", help="YAML設定ファイル"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="デバッグログを表示"),
):
    """対話型シミュレーション"""
    _setup_logging(verbose)
    config = _load_config_or_exit(config_file, {"allowed_conversation_id": conversation, "start_timestamp": 0})

    async def _simulate():
        simulator = ConversationSimulator(config, ConsoleMessenger(console))
        renderer = simulator.handler.engine.renderer

        console.print(Panel(
            f"入力形式: [bold]名前> テキスト[/bold] / 返信: [bold]名前> ^ID テキスト[/bold]\n"
            f"作成: {config.trigger_token}  状況: {config.status_token}  "
            f"参加: {config.add_prefix}  離脱: {config.remove_prefix}  時刻: 18:30\n"
            f"終了: /quit  状態表示: /state",
            title=f"🎉 {config.event_name} Simulator",
        ))

        while True:
            line = Prompt.ask(f"[dim]#{simulator.next_id}[/dim]")
            if line.strip() in ("/quit", "/exit"):
                break
            if line.strip() == "/state":
                _display_state(simulator.handler.state, renderer)
                continue

            parsed = parse_simulated_line(line)
            if parsed is None:
                console.print("⚠️  入力形式が不正です", style="yellow")
                continue

            name, reply_to, text = parsed
            message, notification = await simulator.say(name, text, reply_to=reply_to)
            if notification is None:
                console.print(f"  (#{message.message_id}: 応答なし)", style="dim")

    try:
        asyncio.run(_simulate())
    except (KeyboardInterrupt, EOFError):
        console.print("\n👋 終了します")


@app.command()
def replay(
    script: Path = typer.Argument(..., exists=True, dir_okay=False, help="YAMLスクリプト"),
    config_file: Optional[Path] = typer.Option(None, "--config", help="YAML設定ファイル"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="デバッグログを表示"),
):
    """YAMLスクリプトの会話を再生"""
    _setup_logging(verbose)

    try:
        with script.open(encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        console.print(f"❌ スクリプトのYAMLが不正です: {str(e)}", style="red")
        raise typer.Exit(code=1)

    # トップレベルがリストならメッセージ一覧のみのスクリプト
    if isinstance(data, list):
        data = {"messages": data}
    if not isinstance(data, dict):
        console.print("❌ スクリプトはマッピングまたはメッセージのリストである必要があります", style="red")
        raise typer.Exit(code=1)

    messages: List[Dict[str, Any]] = data.get("messages") or []
    if not isinstance(messages, list) or not all(isinstance(entry, dict) for entry in messages):
        console.print("❌ messages は sender/text を持つマッピングのリストである必要があります", style="red")
        raise typer.Exit(code=1)

    contacts = data.get("contacts")
    if contacts is not None and not isinstance(contacts, dict):
        console.print("❌ contacts は ID→名前 のマッピングである必要があります", style="red")
        raise typer.Exit(code=1)

    config = _load_config_or_exit(config_file, {
        "allowed_conversation_id": data.get("conversation_id", DEFAULT_CONVERSATION),
        "start_timestamp": 0,
    })

    clock = None
    if data.get("now"):
        fixed_now = datetime.fromisoformat(str(data["now"]))
        if fixed_now.tzinfo is None:
            fixed_now = fixed_now.replace(tzinfo=config.tzinfo)
        clock = lambda: fixed_now

    async def _replay():
        # contacts がある場合は未登録の送信者を解決不能として扱う
        simulator = ConversationSimulator(
            config,
            ConsoleMessenger(console, echo=False),
            engine_clock=clock,
            auto_register=contacts is None
        )
        for sender_id, name in (contacts or {}).items():
            simulator.contacts.update(sender_id_for(str(sender_id)), str(name))

        table = Table(title=f"Replay: {script.name}")
        table.add_column("ID", style="cyan")
        table.add_column("Sender")
        table.add_column("Reply to")
        table.add_column("Text")
        table.add_column("Kind", style="green")
        table.add_column("Notification")

        for entry in messages:
            message, notification = await simulator.say(
                str(entry.get("sender", "anonymous")),
                str(entry.get("text", "")),
                reply_to=str(entry["reply_to"]) if entry.get("reply_to") is not None else None,
                message_id=str(entry["id"]) if entry.get("id") is not None else None,
                timestamp=entry.get("timestamp"),
            )
            table.add_row(
                message.message_id,
                str(entry.get("sender", "anonymous")),
                message.replied_to_message_id or "",
                message.text,
                notification.kind.value if notification else "-",
                notification.text if notification else "",
            )

        console.print(table)
        _display_state(simulator.handler.state, simulator.handler.engine.renderer)

    asyncio.run(_replay())


@app.command("config")
def show_config(
    config_file: Optional[Path] = typer.Option(None, "--config", help="YAML設定ファイル"),
):
    """有効な設定を表示"""
    config = _load_config_or_exit(config_file, {})

    table = Table(title="Effective Configuration")
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    for key, value in config.dict().items():
        if key == "session_key" and value:
            value = "********"
        table.add_row(key, str(value))
    console.print(table)


if __name__ == "__main__":
    app()
