"""Shared fixtures: tiny corpora and smoke-sized models."""

from pathlib import Path
from typing import Callable, List

import pytest
import torch

from encdec.data.corpus import load_corpus
from encdec.data.schema import ModelConfig, TrainingConfig
from encdec.data.vocab import Vocabulary
from encdec.models.encoder_decoder import EncoderDecoder


TRAIN_LINES = ["<s> a b </s>", "<s> b a </s>"]
DEV_LINES = ["<s> a b </s>"]


@pytest.fixture
def write_corpus(tmp_path: Path) -> Callable[[str, List[str]], Path]:
    """Write lines to a corpus file under tmp_path."""

    def _write(name: str, lines: List[str]) -> Path:
        path = tmp_path / name
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path

    return _write


@pytest.fixture
def small_config() -> ModelConfig:
    return ModelConfig(layers=2, input_dim=4, hidden_dim=6)


@pytest.fixture
def corpora(write_corpus):
    """(vocab, training, dev) for the two-sentence scenario, vocabulary frozen."""
    vocab = Vocabulary()
    training = load_corpus(write_corpus("train.txt", TRAIN_LINES), vocab)
    vocab.freeze()
    dev = load_corpus(write_corpus("dev.txt", DEV_LINES), vocab)
    return vocab, training, dev


@pytest.fixture
def model(small_config) -> EncoderDecoder:
    torch.manual_seed(0)
    return EncoderDecoder(vocab_size=6, config=small_config)


@pytest.fixture
def training_config(tmp_path: Path) -> TrainingConfig:
    return TrainingConfig(
        report_every=2,
        dev_every_reports=1,
        seed=1,
        checkpoint_dir=str(tmp_path / "checkpoints"),
    )
