"""
Guard bot IM port.

Enforces a cross-chat subscription policy: users joining a protected chat
must already be members of at least one of its linked chats, otherwise they
are restricted until they join one and send /refresh.

Architecture:
- Inbound: platform updates -> GuardBot.dispatch
- Joins: JoinGuard (membership check, notice, restriction)
- Commands: /list, /link, /unlink in groups; /refresh in private chats

Usage:
    linkguard run
    linkguard links
"""

from .bridge import GuardBot, start_bot
from .guard import JoinGuard
from .refresh import RefreshReconciler

__all__ = ["GuardBot", "JoinGuard", "RefreshReconciler", "start_bot"]
