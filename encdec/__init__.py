"""
encdec - Bidirectional Encoder-Decoder Trainer

Trains a sequence-to-sequence LSTM model: a bidirectional encoder summarises
the input sentence, a small bridge network turns that summary into the
decoder's initial state, and a teacher-forced decoder scores the output
sentence one token at a time.

Subpackages:
    - encdec.data: Vocabulary, corpus loading, configuration schemas
    - encdec.models: Stacked LSTM unit and the encoder-decoder model
    - encdec.train: SGD trainer, checkpoints and the training loop
    - encdec.app: Command-line interface and logging setup

Example usage:
    from encdec.data.vocab import Vocabulary
    from encdec.data.corpus import load_corpus
    from encdec.models.encoder_decoder import EncoderDecoder

    vocab = Vocabulary()
    train = load_corpus("train.txt", vocab)
    vocab.freeze()
    model = EncoderDecoder(vocab_size=len(vocab))
    loss = model.build_graph(train[0], train[0])
"""

__version__ = "0.1.0"
