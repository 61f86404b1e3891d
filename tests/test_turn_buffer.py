"""Tests for TurnBuffer."""

import random

from relay_app.lib.transcription.turn_buffer import TurnBuffer


class TestTurnBuffer:
    """Ordering, overwrite and reset behaviour."""

    def test_empty_renders_empty_string(self):
        assert TurnBuffer().render() == ""

    def test_out_of_order_with_refinement(self):
        """Turns render by order; the last write for an order wins."""
        buffer = TurnBuffer()
        buffer.put(2, "world")
        buffer.put(0, "hello")
        buffer.put(1, "there")
        buffer.put(0, "hello!")

        assert buffer.render() == "hello! there world"
        assert len(buffer) == 3

    def test_numeric_not_lexical_order(self):
        """Order 10 comes after order 9."""
        buffer = TurnBuffer()
        buffer.put(10, "ten")
        buffer.put(9, "nine")
        buffer.put(1, "one")

        assert buffer.render() == "one nine ten"

    def test_gaps_are_skipped(self):
        buffer = TurnBuffer()
        buffer.put(5, "b")
        buffer.put(0, "a")

        assert buffer.render() == "a b"

    def test_reset(self):
        """reset() empties the buffer."""
        buffer = TurnBuffer()
        buffer.put(0, "hello")
        buffer.reset()

        assert buffer.render() == ""
        assert len(buffer) == 0

    def test_put_after_reset(self):
        buffer = TurnBuffer()
        buffer.put(0, "old")
        buffer.reset()
        buffer.put(1, "new")

        assert buffer.render() == "new"

    def test_empty_fragments_do_not_pad_ends(self):
        """No leading or trailing whitespace in the rendering."""
        buffer = TurnBuffer()
        buffer.put(0, "")
        buffer.put(1, "middle")
        buffer.put(2, "")

        assert buffer.render() == "middle"

    def test_empty_fragment_between_turns(self):
        """An empty middle turn does not leave a double space."""
        buffer = TurnBuffer()
        buffer.put(0, "hello")
        buffer.put(1, "")
        buffer.put(2, "world")

        assert buffer.render() == "hello world"

    def test_any_arrival_order_renders_the_same(self):
        """Shuffled arrival with repeated orders matches the last writes."""
        rng = random.Random(1234)
        writes = [(order, f"w{order}-{rev}") for order in range(20) for rev in range(3)]

        for _ in range(10):
            rng.shuffle(writes)
            buffer = TurnBuffer()
            latest: dict[int, str] = {}
            for order, text in writes:
                buffer.put(order, text)
                latest[order] = text

            expected = " ".join(latest[order] for order in sorted(latest))
            assert buffer.render() == expected
