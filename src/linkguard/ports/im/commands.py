"""
Command parser and reply formatting for the guard bot.

Commands:
- /list             - show chats linked to this group
- /link <target>    - link this group to a chat (@handle or numeric id)
- /unlink <target>  - remove a link
- /refresh          - (private chat) re-check your memberships
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple, Union

from ...contracts.v1 import ChatRef, UserRef

COMMAND_PREFIX = "/"

# Command name -> ordered positional argument names.
COMMAND_SPEC: Dict[str, List[str]] = {
    "list": [],
    "refresh": [],
    "link": ["target"],
    "unlink": ["target"],
}


class ParseErrorKind(str, Enum):
    USAGE = "USAGE"
    UNKNOWN_CMD = "UNKNOWN_CMD"


@dataclass(frozen=True)
class CommandCall:
    command: str
    args: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ParseError:
    kind: ParseErrorKind
    detail: str  # usage line for USAGE, command name for UNKNOWN_CMD


ParsedCall = Union[CommandCall, ParseError]


def usage_line(command: str) -> str:
    return " ".join([f"{COMMAND_PREFIX}{command}", *COMMAND_SPEC.get(command, [])])


def parse_call(text: str, bot_username: str, private: bool = False) -> Optional[ParsedCall]:
    """
    Parse one message into a command call.

    Returns None when the text is not a command addressed to this bot:
    no leading "/", an @suffix naming another bot, or an unknown command
    sent to a group without an @suffix.

    Examples:
        "/link @news" -> CommandCall("link", {"target": "@news"})
        "/list@MyBot" -> CommandCall("list", {})
        "/link"       -> ParseError(USAGE, "/link target")
    """
    if not text or not text.startswith(COMMAND_PREFIX):
        return None

    tokens = text[len(COMMAND_PREFIX):].split()
    if not tokens:
        return None
    head, args = tokens[0], tokens[1:]

    m = re.fullmatch(r"([^@]+)(@" + re.escape(bot_username) + r")?", head)
    if m is None:
        return None
    name, addressed = m.group(1), m.group(2) is not None

    spec = COMMAND_SPEC.get(name)
    if spec is None:
        if addressed or private:
            return ParseError(ParseErrorKind.UNKNOWN_CMD, name)
        return None

    if len(args) != len(spec):
        return ParseError(ParseErrorKind.USAGE, usage_line(name))

    return CommandCall(name, dict(zip(spec, args)))


def parse_target(raw: str) -> Union[int, str]:
    """Numeric chat ids go to the API as integers, handles as-is."""
    s = raw.strip()
    if re.fullmatch(r"-?\d+", s):
        return int(s)
    return s


# =============================================================================
# Reply formatting (HTML parse mode)
# =============================================================================


def format_ats(names: Sequence[str]) -> str:
    """["a"] -> "a"; ["a", "b", "c"] -> "a, b and c"."""
    if not names:
        return ""
    if len(names) == 1:
        return names[0]
    return ", ".join(names[:-1]) + " and " + names[-1]


def format_parse_error(err: ParseError) -> str:
    if err.kind == ParseErrorKind.UNKNOWN_CMD:
        return f"Unknown command: <code>{html.escape(err.detail)}</code>"
    return f"Usage: <code>{html.escape(err.detail)}</code>"


def format_join_notice(failed: Sequence[UserRef], linked: Sequence[ChatRef], bot_username: str) -> str:
    heading = "Dear user" if len(failed) == 1 else "Dear users"
    ats = format_ats([u.mention_html() for u in failed])
    chat_heading = " " if len(linked) == 1 else " one of "
    chats = format_ats([c.display_html() for c in linked])
    return (
        f"{heading} {ats}:\n"
        "You have been restricted in this group due to the group's anti-spam policy. "
        f"Please follow{chat_heading}{chats}, then send /refresh to @{bot_username} in a private chat."
    )


def format_linked_list(linked: Sequence[ChatRef]) -> str:
    if not linked:
        return "No linked chat found."
    return "Linked chats: " + ", ".join(c.display_html() for c in linked)


def format_target_not_found(target: str) -> str:
    return (
        f"Chat <code>{html.escape(target)}</code> not found! "
        "For public group/channels, use <code>@foo</code>."
    )


def format_link_result(chat: ChatRef, added: bool) -> str:
    if added:
        return f"Done! This group is linked to {chat.label_html()}."
    return f"This group is already linked to {chat.label_html()}."


def format_unlink_result(chat: ChatRef, dropped: bool) -> str:
    if dropped:
        return f"Done! This group is unlinked from {chat.label_html()}."
    return f"This group is not linked to {chat.label_html()}."


def format_refresh_report(lines: Sequence[Tuple[ChatRef, str]]) -> str:
    if not lines:
        return "You are not in any group managed by this bot."
    return "\n".join(f"{chat.display_html()}: {state}" for chat, state in lines)


def format_refresh_elsewhere(bot_username: str) -> str:
    return f"Send /refresh to @{bot_username} in a private chat."
