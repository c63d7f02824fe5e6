"""
Vocabulary for the Encoder-Decoder Trainer
==========================================

This module maps between token strings and the integer ids that the
embedding tables and the output layer are indexed by.

The vocabulary has an explicit two-phase lifecycle:

    OPEN    - converting an unseen token assigns it the next free id
    FROZEN  - the set of ids is fixed; converting an unseen token fails

The training corpus is read while the vocabulary is OPEN. It is then frozen
exactly once, so the output layer's dimensionality is known, and the
held-out corpus is read against the frozen vocabulary. Unseen held-out
tokens are an error on purpose: there is no <UNK> token.

Example:
    vocab = Vocabulary()
    sos = vocab.convert("<s>")     # 0
    eos = vocab.convert("</s>")    # 1
    vocab.convert("hello")         # 2
    vocab.freeze()

    vocab.lookup(2)                # "hello"
    vocab.convert("unseen")        # raises FrozenVocabularyError
"""

from enum import Enum
from typing import Dict, Iterable, List


class VocabState(Enum):
    """Lifecycle tag of a Vocabulary."""

    OPEN = "open"
    FROZEN = "frozen"


class FrozenVocabularyError(KeyError):
    """Raised when an unseen token is converted after the vocabulary was frozen."""

    def __init__(self, token: str):
        super().__init__(token)
        self.token = token

    def __str__(self) -> str:
        return f"Unknown token '{self.token}' (vocabulary is frozen)"


# =============================================================================
# VOCABULARY CLASS
# =============================================================================

class Vocabulary:
    """
    Bidirectional token <-> id mapping with an OPEN/FROZEN state.

    Attributes:
        state (VocabState): Current lifecycle state
        token_to_id (dict): Token to id mapping
        id_to_token (list): Id to token mapping (the id is the list index)
    """

    def __init__(self):
        self.token_to_id: Dict[str, int] = {}
        self.id_to_token: List[str] = []
        self.state = VocabState.OPEN

    @classmethod
    def from_tokens(cls, tokens: Iterable[str], frozen: bool = True) -> "Vocabulary":
        """
        Rebuild a vocabulary from its tokens in id order.

        Used when restoring a vocabulary stored alongside a checkpoint.

        Args:
            tokens: Tokens ordered by id
            frozen: If True, freeze the rebuilt vocabulary

        Returns:
            New Vocabulary instance
        """
        vocab = cls()
        for token in tokens:
            vocab.convert(token)
        if frozen:
            vocab.freeze()
        return vocab

    @property
    def frozen(self) -> bool:
        return self.state is VocabState.FROZEN

    def convert(self, token: str) -> int:
        """
        Convert a token to its id.

        Args:
            token: Token string

        Returns:
            The token's id

        Raises:
            FrozenVocabularyError: If the token is unseen and the vocabulary is frozen
        """
        token_id = self.token_to_id.get(token)
        if token_id is not None:
            return token_id

        if self.state is VocabState.FROZEN:
            raise FrozenVocabularyError(token)

        token_id = len(self.id_to_token)
        self.token_to_id[token] = token_id
        self.id_to_token.append(token)
        return token_id

    def lookup(self, token_id: int) -> str:
        """
        Convert an id back to its token.

        Raises:
            IndexError: If the id was never assigned
        """
        if token_id < 0 or token_id >= len(self.id_to_token):
            raise IndexError(f"Unknown token id: {token_id}")
        return self.id_to_token[token_id]

    def freeze(self):
        """Close the vocabulary. Irreversible."""
        self.state = VocabState.FROZEN

    def size(self) -> int:
        return len(self.id_to_token)

    def tokens(self) -> List[str]:
        """Return all tokens ordered by id."""
        return list(self.id_to_token)

    def __len__(self) -> int:
        return self.size()

    def __contains__(self, token: str) -> bool:
        return token in self.token_to_id

    def __repr__(self) -> str:
        return f"Vocabulary(size={self.size()}, state={self.state.value})"
