"""
Stacked LSTM Recurrent Unit
===========================

A stateful, step-at-a-time LSTM used by the encoder-decoder model. Unlike
nn.LSTM, which consumes a whole padded batch, this unit is driven one token
at a time so the computation graph grows with the sentence being processed:

    builder.start_new_sequence()          # or with an injected state
    for x in embeddings:
        h_top = builder.add_input(x)
    builder.final_h()                     # one hidden state per layer

Each LSTMBuilder owns its own weights. Sharing (e.g. of embeddings) is done
by the model that feeds it, never inside the unit.
"""

from typing import List, Optional, Sequence, Tuple

# PyTorch imports
try:
    import torch
    import torch.nn as nn
except ImportError:
    raise ImportError("PyTorch is required for LSTMBuilder. Install with: pip install torch")


class DimensionMismatchError(AssertionError):
    """Raised when a tensor handed across a component boundary has the wrong size."""


LayerStates = Tuple[Sequence[torch.Tensor], Sequence[torch.Tensor]]


class LSTMBuilder(nn.Module):
    """
    L stacked LSTM cells advanced one input vector at a time.

    Args:
        layers: Number of stacked layers (L)
        input_dim: Width of each input vector
        hidden_dim: Hidden/cell width of every layer (H)
    """

    def __init__(self, layers: int, input_dim: int, hidden_dim: int):
        super().__init__()
        self.layers = layers
        self.input_dim = input_dim
        self.hidden_dim = hidden_dim

        self.cells = nn.ModuleList([
            nn.LSTMCell(input_dim if layer == 0 else hidden_dim, hidden_dim)
            for layer in range(layers)
        ])

        # Per-sequence state: lists of [1, H] tensors, one per layer
        self._h: Optional[List[torch.Tensor]] = None
        self._c: Optional[List[torch.Tensor]] = None

        self._init_weights()

    def _init_weights(self):
        """Xavier for input weights, orthogonal for recurrent weights, forget bias 1."""
        for name, param in self.cells.named_parameters():
            if 'weight_ih' in name:
                nn.init.xavier_uniform_(param.data)
            elif 'weight_hh' in name:
                nn.init.orthogonal_(param.data)
            elif 'bias' in name:
                nn.init.zeros_(param.data)
                # Forget gate slice; bias_ih + bias_hh sums to 1
                n = param.size(0)
                param.data[n//4:n//2].fill_(0.5)

    def start_new_sequence(self, initial_state: Optional[LayerStates] = None):
        """
        Begin a new sequence, discarding any previous state.

        Args:
            initial_state: Optional (cells, hiddens) pair, each a list of L
                tensors of shape [H]. Zero state when omitted.

        Raises:
            DimensionMismatchError: If the injected state has the wrong shape
        """
        if initial_state is None:
            zeros = self.cells[0].weight_ih.new_zeros(1, self.hidden_dim)
            self._c = [zeros] * self.layers
            self._h = [zeros] * self.layers
            return

        cells, hiddens = initial_state
        if len(cells) != self.layers or len(hiddens) != self.layers:
            raise DimensionMismatchError(
                f"Initial state needs {self.layers} cell and hidden states, "
                f"got {len(cells)} and {len(hiddens)}"
            )
        for state in list(cells) + list(hiddens):
            if tuple(state.shape) != (self.hidden_dim,):
                raise DimensionMismatchError(
                    f"Initial state chunk must have shape ({self.hidden_dim},), got {tuple(state.shape)}"
                )
        self._c = [c.unsqueeze(0) for c in cells]
        self._h = [h.unsqueeze(0) for h in hiddens]

    def add_input(self, x: torch.Tensor) -> torch.Tensor:
        """
        Advance every layer by one step.

        Args:
            x: Input vector [input_dim]

        Returns:
            Hidden state of the top layer [H]
        """
        if self._h is None:
            raise RuntimeError("start_new_sequence() must be called before add_input()")

        layer_input = x.unsqueeze(0)
        for layer, cell in enumerate(self.cells):
            h, c = cell(layer_input, (self._h[layer], self._c[layer]))
            self._h[layer] = h
            self._c[layer] = c
            layer_input = h
        return layer_input.squeeze(0)

    def final_h(self) -> List[torch.Tensor]:
        """Hidden state of every layer after the last input, each [H]."""
        if self._h is None:
            raise RuntimeError("No active sequence")
        return [h.squeeze(0) for h in self._h]

    def final_c(self) -> List[torch.Tensor]:
        """Cell state of every layer after the last input, each [H]."""
        if self._c is None:
            raise RuntimeError("No active sequence")
        return [c.squeeze(0) for c in self._c]

    def reset(self):
        """Drop the per-sequence state so no graph tensors outlive the example."""
        self._h = None
        self._c = None
