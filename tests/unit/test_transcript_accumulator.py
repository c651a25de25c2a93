# pylint: disable=missing-module-docstring,missing-function-docstring

from transcript.accumulator import Channel, TranscriptAccumulator, TurnCommit


def test_deltas_concatenate_in_arrival_order():
    acc = TranscriptAccumulator()

    acc.append_delta(Channel.LOCAL, "Hel")
    acc.append_delta(Channel.LOCAL, "lo")
    acc.append_delta(Channel.REMOTE, "Hi")

    assert acc.commit_turn() == TurnCommit(local_text="Hello", remote_text="Hi")


def test_second_commit_is_empty():
    acc = TranscriptAccumulator()
    acc.append_delta(Channel.LOCAL, "Hello")
    acc.append_delta(Channel.REMOTE, "Hi")

    assert acc.commit_turn()

    second = acc.commit_turn()
    assert not second
    assert second == TurnCommit()


def test_whitespace_only_is_not_committed_but_resets():
    acc = TranscriptAccumulator()
    acc.append_delta(Channel.LOCAL, "   ")
    acc.append_delta(Channel.REMOTE, " ok ")

    commit = acc.commit_turn()

    assert commit.local_text is None
    # Committed text is not trimmed
    assert commit.remote_text == " ok "
    assert acc.pending(Channel.LOCAL) == ""
    assert acc.pending(Channel.REMOTE) == ""


def test_channels_are_independent():
    acc = TranscriptAccumulator()
    acc.append_delta(Channel.REMOTE, "only remote")

    commit = acc.commit_turn()

    assert commit.local_text is None
    assert commit.remote_text == "only remote"


def test_reset_drops_pending_text():
    acc = TranscriptAccumulator()
    acc.append_delta(Channel.LOCAL, "half a sen")

    acc.reset()

    assert acc.pending(Channel.LOCAL) == ""
    assert not acc.commit_turn()
