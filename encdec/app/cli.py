"""
Command Line Interface for the Encoder-Decoder Trainer
======================================================

Usage Examples:
    # Train on corpus.txt, evaluate on dev.txt
    encdec-train corpus.txt dev.txt

    # Warm-start from an existing checkpoint
    encdec-train corpus.txt dev.txt encdec_2_8_24-pid1234.pt

    # Hyperparameters from a YAML file, with a command-line override
    encdec-train corpus.txt dev.txt --config train.yaml --hidden-dim 64

    # Stop after 10 passes over the training data
    encdec-train corpus.txt dev.txt --max-epochs 10 --seed 1

    # Same thing without the console script
    python -m encdec.app.cli corpus.txt dev.txt

Training runs until --max-epochs is reached or the process is interrupted
(Ctrl-C). Progress is logged to stderr.
"""

import argparse
import logging
import sys
from typing import List, Optional

import torch

from encdec.app.logs import LOG_LEVELS, setup_logging
from encdec.data.corpus import CorpusFormatError, EmptyCorpusError, load_corpus
from encdec.data.schema import load_config
from encdec.data.vocab import FrozenVocabularyError, Vocabulary
from encdec.models.encoder_decoder import EncoderDecoder
from encdec.train.checkpoint import CheckpointError, load_checkpoint
from encdec.train.trainer import Seq2SeqTrainer

logger = logging.getLogger(__name__)


# =============================================================================
# ARGUMENT PARSER SETUP
# =============================================================================

def create_argument_parser() -> argparse.ArgumentParser:
    """
    Create and configure the command-line argument parser.

    Returns:
        Configured ArgumentParser object
    """
    parser = argparse.ArgumentParser(
        prog="encdec-train",
        description=(
            "Train a bidirectional LSTM encoder-decoder on a corpus with one "
            "sentence per line, each wrapped in <s> ... </s>."
        ),
    )

    # ─────────────────────────────────────────────────────────────────────────
    # Positional arguments: corpus.txt dev.txt [model.pt]
    # ─────────────────────────────────────────────────────────────────────────
    parser.add_argument("corpus", help="Training corpus")
    parser.add_argument("dev", help="Held-out corpus")
    parser.add_argument(
        "params",
        nargs="?",
        default=None,
        help="Checkpoint to warm-start the parameters from"
    )

    # ─────────────────────────────────────────────────────────────────────────
    # Configuration
    # ─────────────────────────────────────────────────────────────────────────
    parser.add_argument("--config", default=None, help="YAML file with model/training sections")

    model = parser.add_argument_group("model")
    model.add_argument("--layers", type=int, default=None, help="Stacked LSTM layers (default: 2)")
    model.add_argument("--input-dim", type=int, default=None, help="Embedding width (default: 8)")
    model.add_argument("--hidden-dim", type=int, default=None, help="Hidden width (default: 24)")

    training = parser.add_argument_group("training")
    training.add_argument("--report-every", type=int, default=None,
                          help="Examples per progress report (default: 50)")
    training.add_argument("--dev-every-reports", type=int, default=None,
                          help="Held-out evaluation every N reports (default: 10)")
    training.add_argument("--learning-rate", type=float, default=None,
                          help="Initial SGD learning rate (default: 0.1)")
    training.add_argument("--eta-decay", type=float, default=None,
                          help="Learning rate decay per epoch (default: 0)")
    training.add_argument("--momentum", action="store_true", default=None,
                          help="Use momentum SGD")
    training.add_argument("--gradient-clip", type=float, default=None,
                          help="Gradient norm threshold, 0 disables (default: 5)")
    training.add_argument("--seed", type=int, default=None, help="Random seed")
    training.add_argument("--max-epochs", type=float, default=None,
                          help="Stop after this many passes over the training corpus")
    training.add_argument("--checkpoint-dir", default=None,
                          help="Directory for checkpoints (default: current directory)")

    parser.add_argument("--history", default=None, help="Write the training history JSON here on exit")
    parser.add_argument("--log-level", type=str.upper, default="INFO", choices=LOG_LEVELS,
                        help="Log level (default: INFO)")

    return parser


def _overrides(args: argparse.Namespace) -> dict:
    return {
        "model": {
            "layers": args.layers,
            "input_dim": args.input_dim,
            "hidden_dim": args.hidden_dim,
        },
        "training": {
            "report_every": args.report_every,
            "dev_every_reports": args.dev_every_reports,
            "learning_rate": args.learning_rate,
            "eta_decay": args.eta_decay,
            "momentum": args.momentum,
            "gradient_clip": args.gradient_clip,
            "seed": args.seed,
            "max_epochs": args.max_epochs,
            "checkpoint_dir": args.checkpoint_dir,
        },
    }


# =============================================================================
# SETUP
# =============================================================================

def build_trainer(args: argparse.Namespace) -> Seq2SeqTrainer:
    """
    Load configuration and corpora, build the model and the trainer.

    The vocabulary is frozen after the training corpus and before the
    held-out corpus, so held-out tokens must all occur in training.

    Raises:
        FileNotFoundError, CorpusFormatError, FrozenVocabularyError,
        EmptyCorpusError, CheckpointError, ValueError
    """
    model_config, training_config = load_config(args.config, _overrides(args))

    if training_config.seed is not None:
        torch.manual_seed(training_config.seed)

    vocab = Vocabulary()
    training = load_corpus(
        args.corpus, vocab, training_config.start_token, training_config.end_token
    )
    vocab.freeze()
    dev = load_corpus(
        args.dev, vocab, training_config.start_token, training_config.end_token
    )

    model = EncoderDecoder(vocab_size=len(vocab), config=model_config)
    logger.info("Model parameters: %s", f"{model.get_num_parameters()['total']:,}")
    if args.params:
        load_checkpoint(args.params, model, vocab)

    return Seq2SeqTrainer(model, training, dev, vocab, training_config)


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================

def main(argv: Optional[List[str]] = None):
    """
    Main entry point for the CLI.

    Exits with status 2 on bad arguments (argparse), 1 on load errors.
    """
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    setup_logging(args.log_level)

    try:
        trainer = build_trainer(args)
    except (FileNotFoundError, CorpusFormatError, CheckpointError) as e:
        logger.error("%s", e)
        sys.exit(1)
    except FrozenVocabularyError as e:
        logger.error("Held-out corpus: %s", e)
        sys.exit(1)
    except EmptyCorpusError as e:
        logger.error("%s", e)
        sys.exit(1)
    except ValueError as e:
        logger.error("Invalid configuration: %s", e)
        sys.exit(1)

    try:
        trainer.train()
    except KeyboardInterrupt:
        logger.info("Interrupted after %d examples", trainer.state.lines)
    finally:
        if args.history:
            trainer.history.save(args.history)

    logger.info("Best held-out loss: %.4f", trainer.state.best_dev_loss)


if __name__ == "__main__":
    main()
