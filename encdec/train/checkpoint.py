"""
Checkpoint saving and loading.

A checkpoint is a torch.save()'d dictionary:

    {
        "format_version": 1,
        "model_state_dict": {...},
        "model_config": {"layers": 2, "input_dim": 8, "hidden_dim": 24},
        "vocabulary": ["<s>", "</s>", ...],
        "best_dev_loss": 123.4,
    }

Writes go to a temporary file in the destination directory which is then
renamed over the destination, so a crash mid-write never leaves a truncated
checkpoint behind.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Union

import torch

from encdec.data.schema import ModelConfig
from encdec.data.vocab import Vocabulary

logger = logging.getLogger(__name__)


CHECKPOINT_FORMAT_VERSION = 1


class CheckpointError(RuntimeError):
    """Raised when a checkpoint cannot be used to warm-start a model."""


def _current_umask() -> int:
    umask = os.umask(0)
    os.umask(umask)
    return umask


def default_checkpoint_name(config: ModelConfig, pid: Optional[int] = None) -> str:
    """File name encoding the network sizes and the process id."""
    pid = os.getpid() if pid is None else pid
    return f"encdec_{config.layers}_{config.input_dim}_{config.hidden_dim}-pid{pid}.pt"


def save_checkpoint(
    path: Union[str, Path],
    model: torch.nn.Module,
    vocab: Vocabulary,
    best_dev_loss: float
) -> Path:
    """
    Atomically write a checkpoint.

    Args:
        path: Destination file
        model: EncoderDecoder whose parameters are saved
        vocab: Vocabulary the model was trained with
        best_dev_loss: Held-out loss that triggered this write

    Returns:
        Path the checkpoint was written to

    Raises:
        OSError: If the file cannot be written (the destination is left untouched)
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    checkpoint = {
        "format_version": CHECKPOINT_FORMAT_VERSION,
        "model_state_dict": model.state_dict(),
        "model_config": model.config.model_dump(),
        "vocabulary": vocab.tokens(),
        "best_dev_loss": best_dev_loss,
    }

    temp_path = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="wb", delete=False, dir=path.parent, prefix=path.name, suffix=".tmp"
        ) as f:
            temp_path = f.name
            torch.save(checkpoint, f)
            f.flush()
            os.fsync(f.fileno())
        # NamedTemporaryFile creates 0600; give the checkpoint the umask default
        os.chmod(temp_path, 0o666 & ~_current_umask())
        os.replace(temp_path, path)
        temp_path = None
    finally:
        if temp_path and os.path.exists(temp_path):
            os.remove(temp_path)

    return path


def read_checkpoint(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Read and version-check a checkpoint file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        CheckpointError: If the file is not a checkpoint of a supported version
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Checkpoint not found: {path}")

    try:
        checkpoint = torch.load(path, map_location="cpu", weights_only=True)
    except Exception as e:
        raise CheckpointError(f"Cannot read checkpoint {path}: {e}") from e
    if not isinstance(checkpoint, dict) or "model_state_dict" not in checkpoint:
        raise CheckpointError(f"{path} is not an encdec checkpoint")

    version = checkpoint.get("format_version")
    if version != CHECKPOINT_FORMAT_VERSION:
        raise CheckpointError(
            f"{path} has format version {version}, expected {CHECKPOINT_FORMAT_VERSION}"
        )
    return checkpoint


def load_checkpoint(
    path: Union[str, Path],
    model: torch.nn.Module,
    vocab: Optional[Vocabulary] = None
) -> Dict[str, Any]:
    """
    Warm-start a model from a checkpoint.

    Args:
        path: Checkpoint file
        model: EncoderDecoder to load parameters into
        vocab: If given, must match the checkpoint's vocabulary token for token

    Returns:
        The checkpoint dictionary

    Raises:
        CheckpointError: On version, vocabulary or shape mismatch
    """
    checkpoint = read_checkpoint(path)

    if vocab is not None and checkpoint.get("vocabulary") != vocab.tokens():
        raise CheckpointError(
            f"{path} was trained with a different vocabulary "
            f"({len(checkpoint.get('vocabulary') or [])} vs {len(vocab)} types)"
        )

    try:
        model.load_state_dict(checkpoint["model_state_dict"])
    except RuntimeError as e:
        raise CheckpointError(f"{path} does not fit this model: {e}") from e

    logger.info("Loaded parameters from %s", path)
    return checkpoint
