"""
Corpus Loading for the Encoder-Decoder Trainer
==============================================

This module reads plain-text corpora into sentences of token ids.

File format:
    - One sentence per line
    - Tokens are separated by whitespace
    - Every line begins with the start token (<s>) and ends with the end
      token (</s>)

    <s> the cat sat </s>
    <s> a dog ran </s>

A line that is not wrapped in the boundary markers (including a blank line)
is a fatal load error. A corrupted corpus invalidates every statistic that
would be computed from it, so no line is ever skipped.

Example:
    vocab = Vocabulary()
    training = load_corpus("train.txt", vocab)
    vocab.freeze()
    dev = load_corpus("dev.txt", vocab)   # unseen tokens now raise
"""

import logging
from pathlib import Path
from typing import Iterator, List, Sequence, Tuple, Union

from encdec.data.vocab import Vocabulary

logger = logging.getLogger(__name__)


START_TOKEN = "<s>"
END_TOKEN = "</s>"


class CorpusFormatError(ValueError):
    """Raised when a corpus line is not wrapped in the start/end markers."""

    def __init__(self, path: Union[str, Path], line_num: int, line: str):
        self.path = Path(path)
        self.line_num = line_num
        self.line = line
        super().__init__(
            f"Sentence in {self.path}:{line_num} didn't start or end with "
            f"the boundary tokens: '{line}'"
        )


class EmptyCorpusError(ValueError):
    """Raised when a corpus has no sentences to train or evaluate on."""


Sentence = List[int]


def read_sentence(line: str, vocab: Vocabulary) -> Sentence:
    """
    Split a line on whitespace and convert every token to its id.

    Args:
        line: Raw text line
        vocab: Vocabulary used for the conversion (may insert if open)

    Returns:
        List of token ids
    """
    return [vocab.convert(token) for token in line.split()]


# =============================================================================
# CORPUS CLASS
# =============================================================================

class Corpus:
    """
    Immutable, ordered collection of sentences loaded from one file.

    Attributes:
        path (Path): File the corpus was read from
        sentences (tuple): Sentences as tuples of token ids
        num_tokens (int): Total number of tokens, boundary markers included
    """

    def __init__(self, sentences: Sequence[Sequence[int]], path: Union[str, Path, None] = None):
        self.sentences: Tuple[Tuple[int, ...], ...] = tuple(tuple(s) for s in sentences)
        self.path = Path(path) if path is not None else None
        self.num_tokens = sum(len(s) for s in self.sentences)

    @property
    def num_lines(self) -> int:
        return len(self.sentences)

    def __len__(self) -> int:
        return len(self.sentences)

    def __getitem__(self, idx: int) -> Tuple[int, ...]:
        return self.sentences[idx]

    def __iter__(self) -> Iterator[Tuple[int, ...]]:
        return iter(self.sentences)

    def __repr__(self) -> str:
        return f"Corpus(path={self.path}, lines={self.num_lines}, tokens={self.num_tokens})"


def load_corpus(
    path: Union[str, Path],
    vocab: Vocabulary,
    start_token: str = START_TOKEN,
    end_token: str = END_TOKEN,
) -> Corpus:
    """
    Load a corpus file, validating the boundary markers of every line.

    The start and end tokens are converted before the file is read, so in a
    fresh vocabulary they always get ids 0 and 1.

    Args:
        path: Path to the corpus file
        vocab: Vocabulary to convert tokens with
        start_token: Token every line must begin with
        end_token: Token every line must end with

    Returns:
        Loaded Corpus

    Raises:
        FileNotFoundError: If the file doesn't exist
        CorpusFormatError: If a line lacks the boundary markers
        FrozenVocabularyError: If the vocabulary is frozen and a token is unseen
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Corpus file not found: {path}")

    start_id = vocab.convert(start_token)
    end_id = vocab.convert(end_token)

    logger.info("Reading corpus from %s...", path)
    sentences = []
    with open(path, "r", encoding="utf-8") as f:
        for line_num, line in enumerate(f, 1):
            line = line.rstrip("\n")
            sentence = read_sentence(line, vocab)
            if len(sentence) < 2 or sentence[0] != start_id or sentence[-1] != end_id:
                raise CorpusFormatError(path, line_num, line)
            sentences.append(sentence)

    corpus = Corpus(sentences, path=path)
    logger.info(
        "%d lines, %d tokens, %d types", corpus.num_lines, corpus.num_tokens, vocab.size()
    )
    return corpus
