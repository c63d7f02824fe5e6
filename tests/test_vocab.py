"""
Tests for the two-phase Vocabulary.

Run with: pytest tests/test_vocab.py -v
"""

import pytest

from encdec.data.vocab import FrozenVocabularyError, VocabState, Vocabulary


class TestConvert:
    """Token -> id conversion while the vocabulary is open."""

    def test_ids_assigned_in_order(self):
        vocab = Vocabulary()
        assert vocab.convert("<s>") == 0
        assert vocab.convert("</s>") == 1
        assert vocab.convert("a") == 2
        assert vocab.convert("a") == 2
        assert vocab.size() == 3
        assert len(vocab) == 3

    def test_round_trip(self):
        """Converting then looking up returns the original token."""
        vocab = Vocabulary()
        tokens = ["<s>", "the", "cat", "sat", "</s>", "the"]
        ids = [vocab.convert(t) for t in tokens]
        vocab.freeze()
        assert [vocab.lookup(i) for i in ids] == tokens

    def test_lookup_unknown_id(self):
        vocab = Vocabulary()
        vocab.convert("a")
        with pytest.raises(IndexError):
            vocab.lookup(5)
        with pytest.raises(IndexError):
            vocab.lookup(-1)


class TestFreeze:
    """Behaviour after freeze()."""

    def test_state_tag(self):
        vocab = Vocabulary()
        assert vocab.state is VocabState.OPEN
        assert not vocab.frozen
        vocab.freeze()
        assert vocab.state is VocabState.FROZEN
        assert vocab.frozen

    def test_seen_tokens_still_convert(self):
        vocab = Vocabulary()
        a = vocab.convert("a")
        vocab.freeze()
        assert vocab.convert("a") == a

    def test_unseen_token_fails(self):
        vocab = Vocabulary()
        vocab.convert("a")
        vocab.freeze()
        with pytest.raises(FrozenVocabularyError) as excinfo:
            vocab.convert("b")
        assert excinfo.value.token == "b"
        assert "b" not in vocab
        assert vocab.size() == 1

    def test_frozen_error_is_key_error(self):
        vocab = Vocabulary()
        vocab.freeze()
        with pytest.raises(KeyError):
            vocab.convert("anything")

    def test_from_tokens(self):
        vocab = Vocabulary.from_tokens(["<s>", "</s>", "x"])
        assert vocab.frozen
        assert vocab.tokens() == ["<s>", "</s>", "x"]
        assert vocab.convert("x") == 2

        open_vocab = Vocabulary.from_tokens(["<s>"], frozen=False)
        assert open_vocab.convert("new") == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
