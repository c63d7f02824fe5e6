"""
Configuration schemas for the Encoder-Decoder Trainer.

This module defines the Pydantic models that validate the model and training
hyperparameters. Values come from the defaults below, an optional YAML file
and command-line overrides, in that order of precedence.

YAML layout:

    model:
      layers: 2
      input_dim: 8
      hidden_dim: 24
    training:
      report_every: 50
      dev_every_reports: 10
      learning_rate: 0.1
"""

from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, model_validator


# =============================================================================
# MODEL CONFIGURATION
# =============================================================================

class ModelConfig(BaseModel):
    """
    Sizes of the encoder-decoder network.

    Attributes:
        layers: Number of stacked LSTM layers (L) in every recurrent unit
        input_dim: Token embedding width (I)
        hidden_dim: Per-layer hidden width (H)
    """

    model_config = ConfigDict(extra="forbid")

    layers: int = Field(default=2, gt=0, description="Stacked LSTM layers (L)")
    input_dim: int = Field(default=8, gt=0, description="Embedding width (I)")
    hidden_dim: int = Field(default=24, gt=0, description="Hidden width per layer (H)")

    @property
    def summary_dim(self) -> int:
        """Width of the concatenated encoder summary (2*L*H)."""
        return 2 * self.layers * self.hidden_dim

    @property
    def bridge_dim(self) -> int:
        """Width of the bridge's intermediate layer (1.5*L*H, truncated)."""
        return int(self.hidden_dim * self.layers * 1.5)

    @property
    def state_dim(self) -> int:
        """Width of the bridge output, one H-sized chunk per layer (L*H)."""
        return self.layers * self.hidden_dim


# =============================================================================
# TRAINING CONFIGURATION
# =============================================================================

class TrainingConfig(BaseModel):
    """
    Training loop and optimizer settings.

    Attributes:
        report_every: Training examples per reporting interval
        dev_every_reports: Held-out evaluation every N reporting intervals
        learning_rate: Initial SGD learning rate (eta0)
        eta_decay: Learning rate becomes eta0 / (1 + eta_decay * epoch)
        momentum: Use SGD with momentum 0.9 instead of plain SGD
        gradient_clip: Global gradient norm threshold, 0 disables clipping
        seed: Seed for parameter init and the shuffle order (None = random)
        max_epochs: Stop once this many epochs were processed (None = never)
        checkpoint_dir: Directory checkpoints are written to
        start_token / end_token: Sentence boundary markers
    """

    model_config = ConfigDict(extra="forbid")

    report_every: int = Field(default=50, gt=0)
    dev_every_reports: int = Field(default=10, gt=0)
    learning_rate: float = Field(default=0.1, gt=0)
    eta_decay: float = Field(default=0.0, ge=0)
    momentum: bool = False
    gradient_clip: float = Field(default=5.0, ge=0)
    seed: Optional[int] = None
    max_epochs: Optional[float] = Field(default=None, gt=0)
    checkpoint_dir: str = "."
    start_token: str = "<s>"
    end_token: str = "</s>"

    @model_validator(mode="after")
    def validate_boundary_tokens(self) -> "TrainingConfig":
        """Ensure the boundary markers are distinct single tokens"""
        for token in (self.start_token, self.end_token):
            if not token or len(token.split()) != 1:
                raise ValueError(f"Boundary token must be a single non-blank token. Got: '{token}'")
        if self.start_token == self.end_token:
            raise ValueError("Start and end tokens must differ")
        return self


# =============================================================================
# LOADING
# =============================================================================

def load_config(
    path: Optional[Union[str, Path]] = None,
    overrides: Optional[Dict[str, Dict[str, Any]]] = None,
) -> Tuple[ModelConfig, TrainingConfig]:
    """
    Build validated configs from an optional YAML file plus overrides.

    Args:
        path: YAML file with optional 'model' and 'training' sections
        overrides: {'model': {...}, 'training': {...}}; None values are ignored

    Returns:
        Tuple of (ModelConfig, TrainingConfig)

    Raises:
        FileNotFoundError: If the YAML file doesn't exist
        ValueError: If the file has unknown sections or invalid values
    """
    raw: Dict[str, Any] = {}
    if path is not None:
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
        unknown = set(raw) - {"model", "training"}
        if unknown:
            raise ValueError(f"Unknown config sections: {sorted(unknown)}")

    sections = {name: dict(raw.get(name) or {}) for name in ("model", "training")}
    for name, values in (overrides or {}).items():
        sections[name].update({k: v for k, v in values.items() if v is not None})

    return ModelConfig(**sections["model"]), TrainingConfig(**sections["training"])
