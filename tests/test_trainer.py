"""
Tests for the training loop: epochs, shuffling, held-out evaluation and
checkpoint-on-improvement.

Run with: pytest tests/test_trainer.py -v
"""

import math
import random

import pytest
import torch

from encdec.data.corpus import Corpus, EmptyCorpusError, load_corpus
from encdec.data.schema import TrainingConfig
from encdec.data.vocab import Vocabulary
from encdec.models.encoder_decoder import EncoderDecoder
from encdec.train import trainer as trainer_module
from encdec.train.optim import SGDTrainer
from encdec.train.trainer import Seq2SeqTrainer, TrainingHistory, perplexity


class CountingSGD(SGDTrainer):
    """SGDTrainer that records update_epoch() calls."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.epoch_calls = 0

    def update_epoch(self):
        self.epoch_calls += 1
        super().update_epoch()


@pytest.fixture
def recorded_saves(monkeypatch):
    """Replace the checkpoint writer with one that records its calls."""
    saves = []

    def fake_save(path, model, vocab, best_dev_loss):
        saves.append(best_dev_loss)
        return path

    monkeypatch.setattr(trainer_module, "save_checkpoint", fake_save)
    return saves


def make_trainer(corpora, small_config, training_config, **kwargs):
    vocab, training, dev = corpora
    torch.manual_seed(0)
    model = EncoderDecoder(vocab_size=len(vocab), config=small_config)
    return Seq2SeqTrainer(model, training, dev, vocab, training_config, **kwargs)


class TestCheckpointPolicy:
    """Checkpoint only on strict improvement of the held-out loss."""

    def test_improvement_sequence(self, corpora, small_config, training_config, recorded_saves):
        trainer = make_trainer(corpora, small_config, training_config)

        written = [trainer.maybe_checkpoint(loss) for loss in [10.0, 9.0, 9.5, 8.0]]

        assert written == [True, True, False, True]
        assert recorded_saves == [10.0, 9.0, 8.0]
        assert trainer.state.best_dev_loss == 8.0

    def test_equal_loss_is_not_improvement(self, corpora, small_config, training_config, recorded_saves):
        trainer = make_trainer(corpora, small_config, training_config)
        trainer.maybe_checkpoint(5.0)
        assert not trainer.maybe_checkpoint(5.0)
        assert recorded_saves == [5.0]

    def test_failed_write_keeps_best(self, corpora, small_config, training_config, monkeypatch):
        trainer = make_trainer(corpora, small_config, training_config)
        calls = []

        def flaky_save(path, model, vocab, best_dev_loss):
            calls.append(best_dev_loss)
            if len(calls) == 1:
                raise OSError("disk full")
            return path

        monkeypatch.setattr(trainer_module, "save_checkpoint", flaky_save)

        assert not trainer.maybe_checkpoint(7.0)
        assert trainer.state.best_dev_loss == float("inf")
        assert trainer.maybe_checkpoint(7.0)
        assert trainer.state.best_dev_loss == 7.0
        assert calls == [7.0, 7.0]

    def test_non_io_errors_propagate(self, corpora, small_config, training_config, monkeypatch):
        trainer = make_trainer(corpora, small_config, training_config)

        def broken_save(path, model, vocab, best_dev_loss):
            raise RuntimeError("serializer bug")

        monkeypatch.setattr(trainer_module, "save_checkpoint", broken_save)
        with pytest.raises(RuntimeError):
            trainer.maybe_checkpoint(1.0)
        assert trainer.state.best_dev_loss == float("inf")


class TestEpochs:
    """Shuffle-then-epoch behaviour."""

    def test_first_boundary_skips_update_epoch(self, corpora, small_config, training_config):
        vocab, training, dev = corpora
        torch.manual_seed(0)
        model = EncoderDecoder(vocab_size=len(vocab), config=small_config)
        optimizer = CountingSGD(model.parameters())
        config = training_config.model_copy(update={"dev_every_reports": 100})
        trainer = Seq2SeqTrainer(model, training, dev, vocab, config, optimizer=optimizer)

        trainer.run_interval()
        assert optimizer.epoch_calls == 0
        assert trainer.state.epoch == 1

        trainer.run_interval()
        assert optimizer.epoch_calls == 1
        assert trainer.state.epoch == 2
        assert trainer.state.lines == 4

    def test_each_epoch_visits_every_sentence_once(self, corpora, small_config, training_config):
        vocab, _, dev = corpora
        training = Corpus([[0, 2, 1], [0, 3, 1], [0, 2, 3, 1], [0, 3, 2, 1]])
        torch.manual_seed(0)
        model = EncoderDecoder(vocab_size=len(vocab), config=small_config)
        trainer = Seq2SeqTrainer(model, training, dev, vocab, training_config)

        for _ in range(3):
            seen = [trainer._next_example() for _ in range(len(training))]
            assert sorted(seen) == sorted(training.sentences)

    def test_seeded_shuffle_is_reproducible(self, corpora, small_config, training_config):
        first = make_trainer(corpora, small_config, training_config, rng=random.Random(7))
        second = make_trainer(corpora, small_config, training_config, rng=random.Random(7))
        for _ in range(3):
            first.run_interval()
            second.run_interval()
        assert first.state.order == second.state.order
        assert first.history.train_losses == second.history.train_losses

    def test_length_two_example_trains(self, corpora, small_config, training_config):
        trainer = make_trainer(corpora, small_config, training_config)
        assert trainer.train_step((0, 1), (0, 1)) == 0.0
        assert trainer.state.lines == 1
        assert trainer.optimizer.updates == 1


class TestTrainLoop:
    """End-to-end runs of train()."""

    def test_two_sentence_scenario(self, corpora, small_config, training_config):
        vocab, training, dev = corpora
        assert len(vocab) == 4

        trainer = make_trainer(corpora, small_config, training_config)
        history = trainer.train(should_stop=lambda state: state.reports >= 1)

        assert trainer.state.lines == 2
        assert len(history.dev_losses) == 1
        dev_loss = history.dev_losses[0]
        assert math.isfinite(dev_loss)
        assert dev_loss >= 0.0
        assert len(history.checkpoints) == 1
        assert trainer.state.checkpoint_path.exists()
        assert trainer.state.best_dev_loss == dev_loss

    def test_boundary_only_corpus(self, write_corpus, small_config, training_config):
        vocab = Vocabulary()
        training = load_corpus(write_corpus("bare_train.txt", ["<s> </s>"] * 3), vocab)
        vocab.freeze()
        dev = load_corpus(write_corpus("bare_dev.txt", ["<s> </s>"] * 2), vocab)

        torch.manual_seed(0)
        model = EncoderDecoder(vocab_size=len(vocab), config=small_config)
        trainer = Seq2SeqTrainer(model, training, dev, vocab, training_config)
        history = trainer.train(should_stop=lambda state: state.reports >= 4)

        assert history.train_losses == [0.0] * 4
        assert history.dev_losses == [0.0] * 4
        assert len(history.checkpoints) == 1
        assert trainer.optimizer.updates == 8

    def test_dev_eval_does_not_update(self, corpora, small_config, training_config):
        trainer = make_trainer(corpora, small_config, training_config)
        before = {k: v.clone() for k, v in trainer.model.state_dict().items()}
        trainer.evaluate_dev()
        for name, value in trainer.model.state_dict().items():
            assert torch.equal(value, before[name]), name
        assert trainer.optimizer.updates == 0

    def test_dev_eval_cadence(self, corpora, small_config, training_config, recorded_saves):
        config = training_config.model_copy(update={"dev_every_reports": 3})
        trainer = make_trainer(corpora, small_config, config)
        history = trainer.train(should_stop=lambda state: state.reports >= 7)
        assert len(history.train_losses) == 7
        assert len(history.dev_losses) == 2
        assert history.dev_epochs == [3.0, 6.0]

    def test_max_epochs(self, corpora, small_config, training_config, recorded_saves):
        config = training_config.model_copy(update={"max_epochs": 2})
        trainer = make_trainer(corpora, small_config, config)
        trainer.train()
        assert trainer.state.epochs_processed() == 2.0
        assert trainer.state.reports == 2

    def test_training_reduces_loss(self, corpora, small_config, training_config, recorded_saves):
        config = training_config.model_copy(update={"dev_every_reports": 50})
        trainer = make_trainer(corpora, small_config, config)
        history = trainer.train(should_stop=lambda state: state.reports >= 100)
        assert history.train_losses[-1] < history.train_losses[0]

    def test_history_round_trip(self, tmp_path):
        history = TrainingHistory(train_losses=[1.0, 0.5], dev_losses=[2.0], best_dev_loss=2.0)
        history.save(tmp_path / "history.json")
        assert TrainingHistory.load(tmp_path / "history.json") == history


class TestValidation:

    def test_empty_training_corpus(self, corpora, small_config):
        vocab, _, dev = corpora
        model = EncoderDecoder(vocab_size=len(vocab), config=small_config)
        with pytest.raises(EmptyCorpusError):
            Seq2SeqTrainer(model, Corpus([]), dev, vocab)

    def test_empty_dev_corpus(self, corpora, small_config):
        vocab, training, _ = corpora
        model = EncoderDecoder(vocab_size=len(vocab), config=small_config)
        with pytest.raises(EmptyCorpusError):
            Seq2SeqTrainer(model, training, Corpus([]), vocab)


def test_perplexity():
    assert perplexity(0.0) == 1.0
    assert perplexity(1.0) == pytest.approx(math.e)
    assert perplexity(1e6) == float("inf")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
