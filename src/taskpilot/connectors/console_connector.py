# src/taskpilot/connectors/console_connector.py

from __future__ import annotations

import logging
import sys
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.errors import LLMError, TaskPilotError
from ..core.state import AppState
from ..llm.client import friendly_llm_error_message

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _rewrite_prev_line(line: str) -> None:
    """
    Replace the last terminal line with `line`.
    If stdout is not a TTY, just print a new line.
    """
    if sys.stdout.isatty():
        sys.stdout.write("\033[1A\033[2K\r")
        sys.stdout.write(line + "\n")
        sys.stdout.flush()
    else:
        print(line)


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


def _error_text(err: TaskPilotError) -> str:
    if isinstance(err, LLMError):
        return f"[LLM] {friendly_llm_error_message(err)}"
    return f"[ERROR] {err}"


def handle_line(state: AppState, line: str) -> str:
    """One console line -> printable reply (command output or assistant turn)."""
    with state.lock:
        cmd_response = command_registry.handle(state, line, emit=_print_ts)
        if cmd_response is not None:
            return cmd_response

        if state.current_session_id is None:
            return "No active session. Use /global or /open <task_id>."

        result = state.service.handle_user_message(
            state.owner_id,
            state.current_session_id,
            line,
            state.model_config,
        )

    reply = f"<<< {result.agent}: {result.text}"
    if result.applied.applied:
        reply += f"\n    ({result.applied.applied} change(s) applied)"
    return reply


def run_console_loop(state: AppState) -> None:
    logger.info("Console connector started (offline=%s).", state.offline)
    _print_ts("[CONSOLE] Type your messages. Use /help for commands. Use /exit to quit.\n")

    while True:
        try:
            user_input = input(">>> You: ").strip()
            _rewrite_prev_line(f"[{_ts_local()}] >>> You: {user_input}")
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        try:
            reply = handle_line(state, user_input)
        except TaskPilotError as e:
            logger.info("Request failed: %s", e)
            _print_ts(_error_text(e))
            continue
        except Exception:
            logger.exception("Console handler crashed.")
            _print_ts("Internal error while handling the message.")
            continue

        _print_ts(reply)
        print()

    logger.info("Console connector finished.")
