"""
Training Loop for the Encoder-Decoder Model
===========================================

This module drives training of the EncoderDecoder model, one sentence pair
at a time:

- Epochs over a shuffled training corpus (seeded, swappable RNG)
- Per-example graph build, forward, backward and SGD update
- Periodic progress reports (mean loss, perplexity, elapsed time)
- Periodic held-out evaluation without gradient updates
- Checkpoint-on-improvement of the held-out loss

Loop states:

    FILLING_EPOCH   take the next example from the current shuffle order
    EPOCH_BOUNDARY  order exhausted: reshuffle, advance the optimizer's
                    epoch (except before the very first epoch)
    DEV_EVAL        every `dev_every_reports` intervals: score the held-out
                    corpus, checkpoint if its total loss strictly improved

The loop has no terminal state of its own. It runs until the `should_stop`
predicate (or `max_epochs`) says so, or until the process is stopped.

Example:
    trainer = Seq2SeqTrainer(model, training, dev, vocab, TrainingConfig(seed=1))
    history = trainer.train(should_stop=lambda state: state.reports >= 100)
"""

import json
import logging
import math
import random
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple, Union

from encdec.data.corpus import Corpus, EmptyCorpusError
from encdec.data.schema import TrainingConfig
from encdec.data.vocab import Vocabulary
from encdec.models.encoder_decoder import EncoderDecoder
from encdec.train.checkpoint import default_checkpoint_name, save_checkpoint
from encdec.train.optim import SGDTrainer

logger = logging.getLogger(__name__)


def perplexity(mean_loss: float) -> float:
    """exp(mean loss), saturating to inf instead of overflowing."""
    try:
        return math.exp(mean_loss)
    except OverflowError:
        return float("inf")


# =============================================================================
# TRAINING STATE & HISTORY
# =============================================================================

@dataclass
class TrainingState:
    """
    Mutable state of the training loop.

    Attributes:
        order: Current shuffle order (indices into the training corpus)
        position: Next index into `order`; == len(order) means the epoch is exhausted
        first_epoch: True until the first epoch boundary has been crossed
        epoch: Number of reshuffles so far
        lines: Training examples processed
        reports: Reporting intervals completed
        best_dev_loss: Best total held-out loss seen (and checkpointed) so far
        checkpoint_path: Where improved parameters are written
    """

    order: List[int]
    position: int
    checkpoint_path: Path
    first_epoch: bool = True
    epoch: int = 0
    lines: int = 0
    reports: int = 0
    best_dev_loss: float = float("inf")

    def epochs_processed(self) -> float:
        """Fractional number of passes over the training corpus."""
        return self.lines / len(self.order)


@dataclass
class TrainingHistory:
    """Stores training metrics for analysis and plotting."""

    train_losses: List[float] = field(default_factory=list)
    interval_times: List[float] = field(default_factory=list)
    dev_losses: List[float] = field(default_factory=list)
    dev_epochs: List[float] = field(default_factory=list)
    checkpoints: List[str] = field(default_factory=list)

    best_dev_loss: float = float("inf")
    total_training_time: float = 0.0

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)

    def save(self, path: Union[str, Path]):
        """Save history to JSON file."""
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, path: Union[str, Path]) -> "TrainingHistory":
        """Load history from JSON file."""
        with open(path, "r") as f:
            data = json.load(f)
        return cls(**data)


# =============================================================================
# TRAINER CLASS
# =============================================================================

class Seq2SeqTrainer:
    """
    Per-example training loop with periodic held-out evaluation.

    Every training sentence is used as both source and target, so the model
    learns to reconstruct its input through the encoder summary.

    Attributes:
        model: EncoderDecoder being trained
        training: Training corpus
        dev: Held-out corpus
        vocab: Frozen vocabulary (stored in checkpoints)
        config: Training configuration
        optimizer: SGDTrainer applying the updates
        rng: Random source for the shuffle
        state: TrainingState
        history: TrainingHistory

    Args:
        model: EncoderDecoder to train
        training: Training corpus (must be non-empty)
        dev: Held-out corpus (must be non-empty)
        vocab: Vocabulary the corpora were converted with
        config: Training configuration (TrainingConfig() defaults if None)
        optimizer: Optimizer (built from config if None)
        rng: Random source (random.Random(config.seed) if None)
        checkpoint_path: Checkpoint file (derived from config if None)
    """

    def __init__(
        self,
        model: EncoderDecoder,
        training: Corpus,
        dev: Corpus,
        vocab: Vocabulary,
        config: Optional[TrainingConfig] = None,
        optimizer: Optional[SGDTrainer] = None,
        rng: Optional[random.Random] = None,
        checkpoint_path: Optional[Union[str, Path]] = None
    ):
        if len(training) == 0:
            raise EmptyCorpusError("Training corpus is empty")
        if len(dev) == 0:
            raise EmptyCorpusError("Held-out corpus is empty")

        self.config = config if config else TrainingConfig()
        self.model = model
        self.training = training
        self.dev = dev
        self.vocab = vocab

        if optimizer is None:
            optimizer = SGDTrainer(
                model.parameters(),
                learning_rate=self.config.learning_rate,
                eta_decay=self.config.eta_decay,
                momentum=self.config.momentum,
                gradient_clip=self.config.gradient_clip
            )
        self.optimizer = optimizer
        self.rng = rng if rng is not None else random.Random(self.config.seed)

        if checkpoint_path is None:
            checkpoint_path = Path(self.config.checkpoint_dir) / default_checkpoint_name(model.config)

        # position == len(order) makes the first step cross an epoch boundary
        self.state = TrainingState(
            order=list(range(len(training))),
            position=len(training),
            checkpoint_path=Path(checkpoint_path)
        )
        self.history = TrainingHistory()

        logger.info("Parameters will be written to: %s", self.state.checkpoint_path)

    # -------------------------------------------------------------------------
    # Epoch handling
    # -------------------------------------------------------------------------

    def _epoch_boundary(self):
        """Reshuffle and advance the optimizer epoch (not before the first epoch)."""
        self.state.position = 0
        if self.state.first_epoch:
            self.state.first_epoch = False
        else:
            self.optimizer.update_epoch()
        self.state.epoch += 1
        logger.info("**SHUFFLE")
        self.rng.shuffle(self.state.order)

    def _next_example(self) -> Tuple[int, ...]:
        if self.state.position == len(self.state.order):
            self._epoch_boundary()
        sentence = self.training[self.state.order[self.state.position]]
        self.state.position += 1
        return sentence

    # -------------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------------

    def train_step(self, source: Sequence[int], target: Sequence[int]) -> float:
        """
        Build one example's graph, backpropagate and update.

        Args:
            source: Source sentence
            target: Target sentence

        Returns:
            The example's loss
        """
        self.model.train()

        loss = self.model.build_graph(source, target)
        value = loss.item()
        # Length-2 targets give a constant zero loss with no graph behind it
        if loss.requires_grad:
            loss.backward()
        self.optimizer.update()
        del loss

        self.state.lines += 1
        return value

    def run_interval(self) -> Tuple[float, int]:
        """
        Process one reporting interval of training examples and log progress.

        Returns:
            Tuple of (total_loss, predicted_tokens) over the interval
        """
        start = time.time()
        loss = 0.0
        tokens = 0
        for _ in range(self.config.report_every):
            sentence = self._next_example()
            tokens += len(sentence) - 1
            loss += self.train_step(sentence, sentence)
        elapsed = time.time() - start

        self.state.reports += 1
        mean = loss / tokens if tokens else 0.0
        self.history.train_losses.append(mean)
        self.history.interval_times.append(elapsed)
        logger.info(
            "%s E = %.4f ppl=%.4f (completed in %.2fs)",
            self.optimizer.status(), mean, perplexity(mean), elapsed
        )
        return loss, tokens

    def evaluate_dev(self) -> Tuple[float, int]:
        """
        Score the held-out corpus without gradient updates.

        Returns:
            Tuple of (total_loss, predicted_tokens)
        """
        self.model.eval()
        dloss = 0.0
        dtokens = 0
        for sentence in self.dev:
            dloss += self.model.score(sentence, sentence)
            dtokens += len(sentence) - 1
        self.model.train()
        return dloss, dtokens

    def maybe_checkpoint(self, dev_loss: float) -> bool:
        """
        Write a checkpoint if `dev_loss` strictly improves on the best so far.

        The best loss is only updated once the write has succeeded, so a
        failed write is retried at the next evaluation.

        Args:
            dev_loss: Total held-out loss

        Returns:
            True if a checkpoint was written
        """
        if not dev_loss < self.state.best_dev_loss:
            return False

        try:
            save_checkpoint(self.state.checkpoint_path, self.model, self.vocab, dev_loss)
        except OSError as e:
            logger.error(
                "Failed to write checkpoint %s: %s (best held-out loss stays %.4f)",
                self.state.checkpoint_path, e, self.state.best_dev_loss
            )
            return False

        self.state.best_dev_loss = dev_loss
        self.history.best_dev_loss = dev_loss
        self.history.checkpoints.append(str(self.state.checkpoint_path))
        logger.info("Saved checkpoint (held-out loss: %.4f)", dev_loss)
        return True

    def run_dev_eval(self) -> float:
        """Evaluate the held-out corpus, log it and checkpoint on improvement."""
        dloss, dtokens = self.evaluate_dev()
        epochs = self.state.epochs_processed()
        self.history.dev_losses.append(dloss)
        self.history.dev_epochs.append(epochs)

        self.maybe_checkpoint(dloss)

        mean = dloss / dtokens if dtokens else 0.0
        logger.info("***DEV [epoch=%.4f] E = %.4f ppl=%.4f", epochs, mean, perplexity(mean))
        return dloss

    # -------------------------------------------------------------------------
    # Main loop
    # -------------------------------------------------------------------------

    def _max_epochs_reached(self, state: TrainingState) -> bool:
        return (
            self.config.max_epochs is not None
            and state.epochs_processed() >= self.config.max_epochs
        )

    def train(
        self,
        should_stop: Optional[Callable[[TrainingState], bool]] = None
    ) -> TrainingHistory:
        """
        Run reporting intervals until `should_stop(state)` or max_epochs says stop.

        Both are checked after every interval (and its held-out evaluation, if
        one was due). Without either, the loop runs until the process is stopped.

        Args:
            should_stop: Predicate over the TrainingState

        Returns:
            TrainingHistory with all metrics
        """
        training_start_time = time.time()
        logger.info(
            "Training on %d sentences, evaluating %d held-out sentences every %d examples",
            len(self.training), len(self.dev),
            self.config.report_every * self.config.dev_every_reports
        )

        try:
            while True:
                self.run_interval()

                if self.state.reports % self.config.dev_every_reports == 0:
                    self.run_dev_eval()

                if self._max_epochs_reached(self.state):
                    logger.info("Reached max_epochs=%s", self.config.max_epochs)
                    break
                if should_stop is not None and should_stop(self.state):
                    break
        finally:
            self.history.total_training_time = time.time() - training_start_time

        return self.history
