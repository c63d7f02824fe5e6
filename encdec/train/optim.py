"""
SGD Trainer
===========

Per-example stochastic gradient descent with epoch bookkeeping.

The training loop talks to the optimizer through three calls:

    update()        apply one step from the gradients currently stored on
                    the parameters, then clear them
    update_epoch()  an epoch finished; the learning rate becomes
                    eta0 / (1 + eta_decay * epoch)
    status()        short summary string for progress reports

With eta_decay = 0 (the default) the learning rate stays constant.
"""

import math
from typing import Iterable

# PyTorch imports
try:
    import torch
    from torch.optim import SGD
    from torch.optim.lr_scheduler import LambdaLR
except ImportError:
    raise ImportError("PyTorch is required for training. Install with: pip install torch")


MOMENTUM = 0.9


class SGDTrainer:
    """
    Plain or momentum SGD with gradient-norm clipping and epoch-based decay.

    Attributes:
        optimizer: Underlying torch.optim.SGD
        scheduler: LambdaLR applying the epoch decay
        epoch: Number of completed update_epoch() calls
        updates: Number of update() calls
        clips: Number of updates whose gradient norm exceeded the threshold

    Args:
        parameters: Parameters to optimise
        learning_rate: Initial learning rate (eta0)
        eta_decay: Epoch decay factor
        momentum: If True, use momentum 0.9
        gradient_clip: Global norm threshold, 0 disables clipping
    """

    def __init__(
        self,
        parameters: Iterable[torch.nn.Parameter],
        learning_rate: float = 0.1,
        eta_decay: float = 0.0,
        momentum: bool = False,
        gradient_clip: float = 5.0
    ):
        self.params = [p for p in parameters if p.requires_grad]
        self.eta0 = learning_rate
        self.eta_decay = eta_decay
        self.gradient_clip = gradient_clip

        self.optimizer = SGD(
            self.params,
            lr=learning_rate,
            momentum=MOMENTUM if momentum else 0.0
        )
        self.scheduler = LambdaLR(
            self.optimizer,
            lr_lambda=lambda epoch: 1.0 / (1.0 + eta_decay * epoch)
        )

        self.epoch = 0
        self.updates = 0
        self.clips = 0

    @property
    def learning_rate(self) -> float:
        return self.optimizer.param_groups[0]["lr"]

    def update(self):
        """Clip, step and clear the gradients."""
        if self.gradient_clip > 0:
            grad_norm = torch.nn.utils.clip_grad_norm_(self.params, self.gradient_clip)
            if math.isfinite(grad_norm.item()) and grad_norm.item() > self.gradient_clip:
                self.clips += 1

        self.optimizer.step()
        self.optimizer.zero_grad()
        self.updates += 1

    def update_epoch(self):
        """Advance the epoch counter and decay the learning rate."""
        self.epoch += 1
        self.scheduler.step()

    def status(self) -> str:
        return (
            f"[epoch={self.epoch} eta={self.learning_rate:.4g} "
            f"clips={self.clips} updates={self.updates}]"
        )
