"""Process-lifetime sign-in state."""

from typing import Callable, Optional

StateListener = Callable[[bool, str], None]


class SessionState:
    """Cached sign-in flag and remembered user identifier.

    Both fields only change through :meth:`update`, so observers never see
    one updated without the other.
    """

    def __init__(self) -> None:
        self._is_signed_in = False
        self._remembered_identifier = ""
        self._listeners: list[StateListener] = []

    @property
    def is_signed_in(self) -> bool:
        return self._is_signed_in

    @property
    def remembered_identifier(self) -> str:
        return self._remembered_identifier

    def update(
        self,
        is_signed_in: Optional[bool] = None,
        remembered_identifier: Optional[str] = None,
    ) -> None:
        """
        Apply a state change and notify listeners if anything changed.

        Args:
            is_signed_in: New sign-in flag (None keeps the current value)
            remembered_identifier: New identifier, "" clears it (None keeps it)
        """
        signed_in = self._is_signed_in if is_signed_in is None else is_signed_in
        identifier = (
            self._remembered_identifier
            if remembered_identifier is None
            else remembered_identifier
        )
        changed = (signed_in, identifier) != (
            self._is_signed_in,
            self._remembered_identifier,
        )
        self._is_signed_in, self._remembered_identifier = signed_in, identifier

        if changed:
            for listener in list(self._listeners):
                listener(signed_in, identifier)

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """
        Register a callback fired with ``(is_signed_in, remembered_identifier)``.

        Returns:
            A function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe
