"""
Bidirectional Encoder-Decoder Model
===================================

This module implements the sequence-to-sequence model trained by encdec.
For every sentence pair a fresh computation graph is assembled, token by
token, so the graph's shape follows the sentence length.

Architecture Overview:
    1. Forward LSTM reads the source left-to-right, backward LSTM reads it
       right-to-left; both look tokens up in the same input embedding table
    2. The final hidden state of every layer of both passes is concatenated
       into one summary vector [2*L*H], whatever the source length
    3. Bridge: Linear [2LH -> 1.5LH] -> ReLU -> Linear [1.5LH -> LH], split
       into L chunks of H. Chunk = decoder cell state, tanh(chunk) = decoder
       hidden state, for each layer
    4. Decoder LSTM, started from that state, reads the target with its own
       embedding table; each step is projected to vocabulary logits and
       log-softmaxed

Training uses teacher forcing: at step t the decoder receives the true token
target[t] and is scored on the log-probability of target[t+1]. The loss of a
pair is the negated sum of those log-probabilities.

Parameter ownership:
    input_embedding     shared by fwd_encoder and rev_encoder
    output_embedding    decoder only
    fwd_encoder, rev_encoder, decoder
                        three LSTMBuilders with disjoint weights
    bridge_in, bridge_out, output_projection
                        owned by the model

Example:
    model = EncoderDecoder(vocab_size=len(vocab))

    loss = model.build_graph(sentence, sentence)   # scalar tensor
    loss.backward()
"""

from typing import Dict, List, Optional, Sequence, Tuple

# PyTorch imports
try:
    import torch
    import torch.nn as nn
    import torch.nn.functional as F
except ImportError:
    raise ImportError("PyTorch is required for EncoderDecoder. Install with: pip install torch")

from encdec.data.schema import ModelConfig
from encdec.models.lstm_builder import DimensionMismatchError, LSTMBuilder


# =============================================================================
# ENCODER-DECODER MODEL CLASS
# =============================================================================

class EncoderDecoder(nn.Module):
    """
    Bidirectional LSTM encoder, nonlinear state bridge, teacher-forced LSTM decoder.

    Attributes:
        input_embedding: Token embeddings for both encoder directions
        output_embedding: Token embeddings for the decoder
        fwd_encoder: Left-to-right encoder LSTM
        rev_encoder: Right-to-left encoder LSTM
        decoder: Decoder LSTM
        bridge_in: Summary [2LH] -> intermediate [1.5LH]
        bridge_out: Intermediate [1.5LH] -> decoder state [LH]
        output_projection: Decoder hidden state [H] -> vocabulary logits

    Args:
        vocab_size: Size of the (frozen) source vocabulary
        config: Network sizes (uses ModelConfig() defaults if None)
        output_vocab_size: Size of the target vocabulary (defaults to vocab_size)
    """

    def __init__(
        self,
        vocab_size: int,
        config: Optional[ModelConfig] = None,
        output_vocab_size: Optional[int] = None
    ):
        super().__init__()

        self.config = config if config else ModelConfig()
        self.input_vocab_size = vocab_size
        self.output_vocab_size = output_vocab_size if output_vocab_size else vocab_size

        layers = self.config.layers
        input_dim = self.config.input_dim
        hidden_dim = self.config.hidden_dim

        self.layers = layers
        self.hidden_dim = hidden_dim

        # ─────────────────────────────────────────────────────────────────────
        # Embeddings: one table for both encoder directions, one for the decoder
        # ─────────────────────────────────────────────────────────────────────
        self.input_embedding = nn.Embedding(self.input_vocab_size, input_dim)
        self.output_embedding = nn.Embedding(self.output_vocab_size, input_dim)

        # ─────────────────────────────────────────────────────────────────────
        # Recurrent units (disjoint weights)
        # ─────────────────────────────────────────────────────────────────────
        self.fwd_encoder = LSTMBuilder(layers, input_dim, hidden_dim)
        self.rev_encoder = LSTMBuilder(layers, input_dim, hidden_dim)
        self.decoder = LSTMBuilder(layers, input_dim, hidden_dim)

        # ─────────────────────────────────────────────────────────────────────
        # Bridge: encoder summary -> decoder initial state
        # ─────────────────────────────────────────────────────────────────────
        self.bridge_in = nn.Linear(self.config.summary_dim, self.config.bridge_dim)
        self.bridge_out = nn.Linear(self.config.bridge_dim, self.config.state_dim)

        # ─────────────────────────────────────────────────────────────────────
        # Output projection: decoder hidden state -> vocabulary logits
        # ─────────────────────────────────────────────────────────────────────
        self.output_projection = nn.Linear(hidden_dim, self.output_vocab_size)

        self._init_weights()

    def _init_weights(self):
        """Normal embeddings, Xavier for the linear layers, zero biases."""
        nn.init.normal_(self.input_embedding.weight, mean=0.0, std=0.1)
        nn.init.normal_(self.output_embedding.weight, mean=0.0, std=0.1)

        for layer in [self.bridge_in, self.bridge_out, self.output_projection]:
            nn.init.xavier_uniform_(layer.weight)
            nn.init.zeros_(layer.bias)

    def _token_tensor(self, tokens: Sequence[int]) -> torch.Tensor:
        return torch.tensor(list(tokens), dtype=torch.long, device=self.output_projection.weight.device)

    # -------------------------------------------------------------------------
    # Graph assembly
    # -------------------------------------------------------------------------

    def encode(self, source: Sequence[int]) -> torch.Tensor:
        """
        Run both encoder passes over the source and concatenate their final states.

        Args:
            source: Source sentence as token ids

        Returns:
            Summary vector [2*L*H]: forward layers 0..L-1, then backward layers 0..L-1
        """
        embeds = self.input_embedding(self._token_tensor(source))  # [len, I]

        self.fwd_encoder.start_new_sequence()
        for t in range(len(source)):
            self.fwd_encoder.add_input(embeds[t])

        self.rev_encoder.start_new_sequence()
        for t in reversed(range(len(source))):
            self.rev_encoder.add_input(embeds[t])

        states = self.fwd_encoder.final_h() + self.rev_encoder.final_h()
        assert len(states) == 2 * self.layers
        return torch.cat(states)

    def bridge(self, summary: torch.Tensor) -> Tuple[List[torch.Tensor], List[torch.Tensor]]:
        """
        Map the encoder summary to the decoder's initial per-layer state.

        Args:
            summary: Encoder summary [2*L*H]

        Returns:
            Tuple of (cells, hiddens), each a list of L tensors of shape [H]

        Raises:
            DimensionMismatchError: If the summary is not [2*L*H]
        """
        if tuple(summary.shape) != (self.config.summary_dim,):
            raise DimensionMismatchError(
                f"Bridge expects a summary of shape ({self.config.summary_dim},), "
                f"got {tuple(summary.shape)}"
            )

        intermediate = F.relu(self.bridge_in(summary))          # [1.5LH]
        state = self.bridge_out(intermediate)                   # [LH]

        cells = list(torch.split(state, self.hidden_dim))
        hiddens = [torch.tanh(c) for c in cells]
        return cells, hiddens

    def decode_loss(
        self,
        initial_state: Tuple[Sequence[torch.Tensor], Sequence[torch.Tensor]],
        target: Sequence[int]
    ) -> torch.Tensor:
        """
        Teacher-forced negative log-likelihood of the target sentence.

        Args:
            initial_state: (cells, hiddens) from bridge()
            target: Target sentence as token ids

        Returns:
            Scalar loss tensor. A target of length 2 or less scores exactly 0.
        """
        self.decoder.start_new_sequence(initial_state)

        # Length 2 is <s> </s> only: nothing between the markers to predict
        if len(target) <= 2:
            return self.output_projection.bias.new_zeros(())
        steps = len(target) - 1

        inputs = self.output_embedding(self._token_tensor(target[:-1]))  # [steps, I]
        log_probs = []
        for t in range(steps):
            y_t = self.decoder.add_input(inputs[t])
            logits = self.output_projection(y_t)                 # [V]
            ydist = F.log_softmax(logits, dim=-1)
            log_probs.append(ydist[target[t + 1]])

        return -torch.stack(log_probs).sum()

    def build_graph(self, source: Sequence[int], target: Sequence[int]) -> torch.Tensor:
        """
        Assemble the full graph for one sentence pair and return its loss.

        The recurrent units drop their per-sequence state before returning, so
        the graph is reachable only through the returned tensor.

        Args:
            source: Source sentence as token ids
            target: Target sentence as token ids

        Returns:
            Scalar loss tensor
        """
        try:
            summary = self.encode(source)
            initial_state = self.bridge(summary)
            return self.decode_loss(initial_state, target)
        finally:
            self.fwd_encoder.reset()
            self.rev_encoder.reset()
            self.decoder.reset()

    def forward(self, source: Sequence[int], target: Sequence[int]) -> torch.Tensor:
        return self.build_graph(source, target)

    @torch.no_grad()
    def score(self, source: Sequence[int], target: Sequence[int]) -> float:
        """Loss of a sentence pair without recording a gradient graph."""
        return self.build_graph(source, target).item()

    def get_num_parameters(self) -> Dict[str, int]:
        """
        Count the number of parameters in each component.

        Returns:
            Dictionary with parameter counts
        """
        def count_params(module):
            return sum(p.numel() for p in module.parameters())

        return {
            "input_embedding": count_params(self.input_embedding),
            "output_embedding": count_params(self.output_embedding),
            "fwd_encoder": count_params(self.fwd_encoder),
            "rev_encoder": count_params(self.rev_encoder),
            "decoder": count_params(self.decoder),
            "bridge": count_params(self.bridge_in) + count_params(self.bridge_out),
            "output_projection": count_params(self.output_projection),
            "total": count_params(self)
        }


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def create_model(vocab_size: int, config: Optional[ModelConfig] = None) -> EncoderDecoder:
    """Create an EncoderDecoder model with the given config."""
    return EncoderDecoder(vocab_size=vocab_size, config=config)
