from __future__ import annotations

from collections.abc import Callable


class CommandRouter:
    def __init__(
        self,
        *,
        on_help: Callable[[], None],
        on_new: Callable[[], None],
        on_list: Callable[[], None],
        on_switch: Callable[[str], None],
        on_delete: Callable[[str], None],
        on_attach: Callable[[str], None],
        on_unknown: Callable[[str], None],
    ) -> None:
        self._on_help = on_help
        self._on_new = on_new
        self._on_list = on_list
        self._on_switch = on_switch
        self._on_delete = on_delete
        self._on_attach = on_attach
        self._on_unknown = on_unknown

    def try_handle(self, user_message: str) -> bool:
        trimmed = user_message.strip()
        if not trimmed.startswith("/"):
            return False

        command, _, argument = trimmed.partition(" ")
        argument = argument.strip()

        if command == "/help":
            self._on_help()
        elif command == "/new":
            self._on_new()
        elif command == "/list":
            self._on_list()
        elif command == "/switch":
            self._on_switch(argument)
        elif command == "/delete":
            self._on_delete(argument)
        elif command == "/attach":
            self._on_attach(argument)
        else:
            self._on_unknown(trimmed)
        return True
