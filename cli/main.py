#!/usr/bin/env python3
"""
RizzCoach CLI

Commands:

1) profile
   - Analyze one dating-profile screenshot and print the profile card
     with three opening lines.

2) chat
   - Interactive multi-session coach. Attach a profile screenshot first;
     after that, send chat screenshots and/or text notes to get reply
     suggestions. Type /help inside the REPL for commands.

3) serve
   - Start the HTTP runtime (analysis proxy + session API):
       uvicorn runtime.api.server:app --reload

The analysis transport (direct model call vs. backend proxy) is chosen
once at startup from OPENAI_API_KEY / RIZZCOACH_ENV / RIZZCOACH_PROXY_URL.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

# Ensure project root is on sys.path when running as a script
ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from configs.logging_config import configure_logging
from configs.settings import settings
from core.analysis.client import AnalysisClient, select_analysis_client
from core.analysis.models import ProfileRecord
from core.capture.image_capture import CapturedImage, capture_image
from exceptions.exceptions import AnalysisError, ConfigurationError, UnreadableFileError
from runtime.agents.conversation_agent import ConversationAgent
from runtime.store.log_store import LogStore
from runtime.store.session_store import SessionStore
from cli import render


logger = logging.getLogger(__name__)

HELP_TEXT = """\
指令:
  /image PATH    附加一張截圖（第一張請用對方的個人資料截圖）
  /clear         移除尚未送出的截圖
  /new           開新對話
  /sessions      列出所有對話
  /switch N      切換到第 N 個對話
  /rename TITLE  重新命名目前對話
  /delete [N]    刪除第 N 個對話（預設為目前對話）
  /profile       顯示目前對話的人物檔案
  /help          顯示這份說明
  /quit          離開
其他輸入會連同附加的截圖一起送出。"""


# ---------------------------------------------------------------------------
# profile – one-shot analysis
# ---------------------------------------------------------------------------


def cmd_profile(image_path: str, note: Optional[str], client: AnalysisClient) -> int:
    """Analyze a single profile screenshot and print the result."""
    try:
        image = capture_image(image_path)
    except UnreadableFileError as exc:
        print(f"[RizzCoach] ✗ {exc.source}: {exc.details}")
        return 1

    print(f"[RizzCoach] Analyzing profile screenshot {image_path}...")
    try:
        profile = asyncio.run(client.analyze_profile(image.payload, note=note))
    except AnalysisError as exc:
        logger.debug("Profile analysis failed: %s", exc.reason)
        print(f"[RizzCoach] ✗ {exc.user_message}")
        return 1

    print(render.render_profile(profile))
    return 0


# ---------------------------------------------------------------------------
# chat – interactive multi-session REPL
# ---------------------------------------------------------------------------


class ChatRepl:
    """Presentation layer for the chat command: reads input, renders state."""

    def __init__(self, store: SessionStore, agent: ConversationAgent) -> None:
        self.store = store
        self.agent = agent
        self.pending_image: Optional[CapturedImage] = None
        self.profile_panel_shown = False
        agent.on_profile_established = self._on_profile_established

    def _on_profile_established(self, session_id: str, profile: ProfileRecord) -> None:
        self.profile_panel_shown = True

    # -- rendering ---------------------------------------------------------

    def show_sessions(self) -> None:
        print(render.render_session_list(self.store.list_sessions(), self.store.current_session_id))

    def show_transcript(self, start: int = 0) -> None:
        session = self.store.get_session(self.store.current_session_id)
        if session is None:
            return
        for message in session.messages[start:]:
            print(render.render_message(message))

    def prompt(self) -> str:
        session = self.store.get_session(self.store.current_session_id)
        title = session.title if session else ""
        attached = " +圖" if self.pending_image else ""
        return f"[{title}{attached}]> "

    # -- commands ----------------------------------------------------------

    def _session_id_at(self, arg: str) -> Optional[str]:
        sessions = self.store.list_sessions()
        try:
            index = int(arg) - 1
        except ValueError:
            return None
        if 0 <= index < len(sessions):
            return sessions[index].id
        return None

    def attach(self, path: str) -> None:
        try:
            self.pending_image = capture_image(path)
        except UnreadableFileError as exc:
            print(f"[RizzCoach] ✗ {exc.details}")
            return
        print(f"[RizzCoach] 已附加 {self.pending_image.filename} ({self.pending_image.mime_type})")

    def handle_command(self, line: str) -> bool:
        """Run a slash command. Returns False when the REPL should exit."""
        command, _, arg = line.partition(" ")
        arg = arg.strip()

        if command in ("/quit", "/exit"):
            return False
        if command == "/help":
            print(HELP_TEXT)
        elif command == "/image":
            if arg:
                self.attach(arg)
            else:
                print("用法: /image PATH")
        elif command == "/clear":
            self.pending_image = None
            print("[RizzCoach] 已移除附加的截圖")
        elif command == "/new":
            self.store.create_session()
            self.pending_image = None
            self.show_sessions()
        elif command == "/sessions":
            self.show_sessions()
        elif command == "/switch":
            session_id = self._session_id_at(arg)
            if session_id is None or not self.store.select_session(session_id):
                print("找不到這個對話")
            else:
                self.pending_image = None
                self.show_transcript()
        elif command == "/rename":
            if not self.store.rename_session(self.store.current_session_id, arg):
                print("標題不可為空白")
        elif command == "/delete":
            session_id = self._session_id_at(arg) if arg else self.store.current_session_id
            if session_id is None:
                print("找不到這個對話")
            else:
                self.store.delete_session(session_id)
                self.show_sessions()
        elif command == "/profile":
            session = self.store.get_session(self.store.current_session_id)
            if session is None or session.active_profile is None:
                print("這個對話還沒有人物檔案，請先用 /image 附加個人資料截圖")
            else:
                print(render.render_profile(session.active_profile))
        else:
            print(f"未知的指令: {command}（輸入 /help 查看說明）")
        return True

    async def send(self, text: str) -> None:
        session_id = self.store.current_session_id
        before = len(self.store.get_session(session_id).messages)
        image, self.pending_image = self.pending_image, None
        print("[RizzCoach] 教練思考中...")
        await self.agent.send(session_id, text=text, image=image)
        # Skip the echo of our own input.
        self.show_transcript(start=before + 1)

    async def run(self) -> None:
        print("RizzCoach AI - 輸入 /help 查看指令")
        while True:
            try:
                line = input(self.prompt()).strip()
            except (EOFError, KeyboardInterrupt):
                print()
                return
            if not line:
                continue
            if line.startswith("/"):
                if not self.handle_command(line):
                    return
                continue
            await self.send(line)


def cmd_chat(profile_path: Optional[str], client: AnalysisClient) -> int:
    store = SessionStore()
    agent = ConversationAgent(session_store=store, analysis_client=client, log_store=LogStore())
    repl = ChatRepl(store, agent)

    async def _main() -> None:
        if profile_path:
            repl.attach(profile_path)
            if repl.pending_image is not None:
                await repl.send("")
        await repl.run()

    try:
        asyncio.run(_main())
    except ConfigurationError as exc:
        print(f"[RizzCoach] ✗ Configuration error: {exc.details}")
        return 2
    return 0


# ---------------------------------------------------------------------------
# serve – HTTP runtime
# ---------------------------------------------------------------------------


def cmd_serve(host: str, port: int, reload: bool) -> int:
    import uvicorn

    print(f"[RizzCoach] Starting runtime on http://{host}:{port}")
    uvicorn.run("runtime.api.server:app", host=host, port=port, reload=reload)
    return 0


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="RizzCoach CLI")
    parser.add_argument(
        "--log-level",
        default=settings.log_level,
        help="Logging level (default: RIZZCOACH_LOG_LEVEL or INFO)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # profile
    p_profile = subparsers.add_parser(
        "profile", help="Analyze a dating-profile screenshot"
    )
    p_profile.add_argument("image", help="Path to the profile screenshot")
    p_profile.add_argument("--note", default=None, help="Extra context for the coach")

    # chat
    p_chat = subparsers.add_parser("chat", help="Start the interactive coach")
    p_chat.add_argument(
        "--profile",
        default=None,
        help="Profile screenshot to analyze before the prompt opens",
    )

    # serve
    p_serve = subparsers.add_parser("serve", help="Start the HTTP runtime")
    p_serve.add_argument("--host", default=settings.host)
    p_serve.add_argument("--port", type=int, default=settings.port)
    p_serve.add_argument("--reload", action="store_true", help="Reload on code changes")

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(args.log_level.upper())
    command: str = args.command

    if command == "serve":
        return cmd_serve(host=args.host, port=args.port, reload=args.reload)

    client = select_analysis_client(settings)
    if command == "profile":
        try:
            return cmd_profile(image_path=args.image, note=args.note, client=client)
        except ConfigurationError as exc:
            print(f"[RizzCoach] ✗ Configuration error: {exc.details}")
            return 2
    if command == "chat":
        return cmd_chat(profile_path=args.profile, client=client)

    parser.error(f"Unknown command: {command}")
    return 2


if __name__ == "__main__":
    sys.exit(main())
