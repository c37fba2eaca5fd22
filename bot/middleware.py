"""
bot/middleware.py - Access control and group policy.

Every inbound event goes through AccessMiddleware.evaluate() before any
handler runs. The checks, in order:

    1. Sender id present          → otherwise notice "not_authorized"
    2. Whitelist (if enabled)     → admin or member, otherwise notice
    3. Group policy (if enabled)  → silent drop of non-commands and of
                                    commands not allowed in groups
    4. Admit

evaluate() never raises: any internal fault becomes a notice with the
generic "error_processing" message.

Usage:
    from bot.middleware import AccessMiddleware, GroupPolicy

    middleware = AccessMiddleware(whitelist, GroupPolicy(...), whitelist_enabled=True)
    decision = middleware.evaluate(event)
    if decision.admitted:
        ...
"""

import enum
import logging
from dataclasses import dataclass

from bot.auth import WhitelistStore
from bot.events import InboundEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GroupPolicy:
    """
    Attributes:
        commands_only: When False the policy never gates anything.
        allowed_commands: Commands accepted in groups (without "/").
        ignore_non_commands: Silently drop non-command group messages.
    """

    commands_only: bool = True
    allowed_commands: tuple[str, ...] = ()
    ignore_non_commands: bool = True

    def allows_command(self, command: str | None) -> bool:
        return command is not None and command.lower() in self.allowed_commands


class Action(str, enum.Enum):
    ADMIT = "admit"
    REJECT_SILENT = "reject_silent"
    REJECT_NOTICE = "reject_notice"


@dataclass(frozen=True)
class AccessDecision:
    action: Action
    reason: str = ""
    message_key: str | None = None

    @property
    def admitted(self) -> bool:
        return self.action is Action.ADMIT

    @classmethod
    def admit(cls) -> "AccessDecision":
        return cls(Action.ADMIT, "admitted")

    @classmethod
    def silent(cls, reason: str) -> "AccessDecision":
        return cls(Action.REJECT_SILENT, reason)

    @classmethod
    def notice(cls, reason: str, message_key: str = "not_authorized") -> "AccessDecision":
        return cls(Action.REJECT_NOTICE, reason, message_key)


class AccessMiddleware:
    """
    Decides, for each inbound event, whether a handler may run.

    Args:
        whitelist: Authorized users and the admin id.
        group_policy: Rules for group and supergroup chats.
        whitelist_enabled: When False every identified sender is authorized.
    """

    def __init__(
        self,
        whitelist: WhitelistStore,
        group_policy: GroupPolicy,
        whitelist_enabled: bool = False,
    ):
        self._whitelist = whitelist
        self._group_policy = group_policy
        self._whitelist_enabled = whitelist_enabled

    @property
    def whitelist_enabled(self) -> bool:
        return self._whitelist_enabled

    def is_sender_authorized(self, sender_id: int | None) -> bool:
        if sender_id is None:
            return False
        if not self._whitelist_enabled:
            return True
        return self._whitelist.is_authorized(sender_id)

    def evaluate(self, event: InboundEvent) -> AccessDecision:
        """
        Returns:
            AccessDecision: admit, silent rejection or rejection with a
                notice. Never raises.
        """
        try:
            return self._evaluate(event)
        except Exception:
            logger.exception(f"[AUTH] Access check failed for chat {getattr(event, 'chat_id', '?')}")
            return AccessDecision.notice("internal_error", message_key="error_processing")

    def _evaluate(self, event: InboundEvent) -> AccessDecision:
        sender_id = event.sender_id
        chat_kind = event.chat_kind.value

        if sender_id is None:
            logger.warning(
                f"[AUTH] Message without sender rejected: "
                f"command={event.log_text!r}, chat={chat_kind}"
            )
            return AccessDecision.notice("missing_sender")

        if not self.is_sender_authorized(sender_id):
            logger.warning(
                f"[AUTH] Unauthorized access attempt: user={sender_id}, "
                f"command={event.log_text!r}, chat={chat_kind}"
            )
            return AccessDecision.notice("not_whitelisted")

        policy = self._group_policy
        if event.is_group and policy.commands_only:
            if not event.is_command and policy.ignore_non_commands:
                logger.debug(
                    f"[POLICY] Ignoring non-command message in group: user={sender_id}, "
                    f"chat={event.chat_id}"
                )
                return AccessDecision.silent("group_non_command")

            if event.is_command and not policy.allows_command(event.command):
                logger.debug(
                    f"[POLICY] Ignoring command not allowed in groups: user={sender_id}, "
                    f"command=/{event.command}, chat={event.chat_id}"
                )
                return AccessDecision.silent("group_command_not_allowed")

        logger.info(
            f"[REQUEST] Admitted: user={sender_id}, kind={event.kind.value}, "
            f"command={event.log_text!r}, chat={chat_kind}"
        )
        return AccessDecision.admit()
