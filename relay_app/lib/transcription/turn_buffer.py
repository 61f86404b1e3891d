"""Turn buffer - reassembles out-of-order transcript fragments."""


class TurnBuffer:
    """Latest transcript per turn_order for one session.

    The transcriber may deliver turns out of order and may resend a
    turn_order with a refined (formatted) transcript; the newest string for
    an order always wins. Entries are only ever dropped all at once.

    Usage:
        buffer = TurnBuffer()
        buffer.put(1, "there")
        buffer.put(0, "hello")
        buffer.render()  # "hello there"
    """

    def __init__(self) -> None:
        self._turns: dict[int, str] = {}

    def __len__(self) -> int:
        return len(self._turns)

    def put(self, turn_order: int, transcript: str) -> None:
        """Set or overwrite the transcript for turn_order."""
        self._turns[turn_order] = transcript

    def render(self) -> str:
        """Full transcript: non-empty turns in ascending order, joined by one space."""
        fragments = (self._turns[order] for order in sorted(self._turns))
        return " ".join(text for text in fragments if text)

    def reset(self) -> None:
        self._turns.clear()
