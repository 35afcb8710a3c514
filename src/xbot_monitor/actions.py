"""Registry of remotely executable actions."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from typing import Any

from pydantic import ValidationError

from xbot_monitor._constants import Resource
from xbot_monitor.fanout import FanoutPublisher
from xbot_monitor.models.action import ActionInfo, RegisterActionsRequest

_logger = logging.getLogger(__name__)


class ActionRegistry:
    """Action sets keyed by node prefix.

    Registering a prefix replaces every action previously stored for it.
    The published list is the union across prefixes, ids rewritten to
    ``<prefix>/<action_id>``. Execution requests are forwarded as-is;
    validating them is the executor's job.
    """

    def __init__(self, fanout: FanoutPublisher, execute: Callable[[str], None]) -> None:
        self._fanout = fanout
        self._execute = execute
        self._lock = threading.Lock()
        self._actions: dict[str, tuple[ActionInfo, ...]] = {}
        self._generation = 0

    def register(self, prefix: str, actions: Iterable[ActionInfo]) -> bool:
        prefix = prefix.strip()
        if not prefix:
            raise ValueError("action prefix must be non-empty")
        stored = tuple(actions)
        with self._lock:
            self._actions[prefix] = stored
            self._generation += 1
            generation = self._generation
            merged = self._merged()
        _logger.info("Registered %d actions for %s", len(stored), prefix)
        self._fanout.publish(
            Resource.ACTIONS,
            [action.to_wire() for action in merged],
            sequence=generation,
        )
        return True

    def handle_register_request(self, request: Any) -> bool:
        """Service handler: validate a registration request and apply it."""
        try:
            parsed = (
                request
                if isinstance(request, RegisterActionsRequest)
                else RegisterActionsRequest.model_validate(request)
            )
        except ValidationError as exc:
            _logger.warning("Rejecting malformed action registration: %s", exc)
            return False
        return self.register(parsed.node_prefix, parsed.actions)

    def actions(self) -> list[ActionInfo]:
        with self._lock:
            return self._merged()

    def _merged(self) -> list[ActionInfo]:
        return [
            action.model_copy(update={"action_id": f"{prefix}/{action.action_id}"})
            for prefix, actions in self._actions.items()
            for action in actions
        ]

    def execute(self, action_id: str) -> bool:
        """Forward *action_id* to the executor; returns False for empty ids."""
        if not action_id:
            _logger.warning("Dropping empty action id")
            return False
        _logger.info("Executing action %s", action_id)
        self._execute(action_id)
        return True
