"""
Models Subpackage

    - lstm_builder.py: Stacked LSTM unit driven one input at a time
    - encoder_decoder.py: Bidirectional encoder, state bridge, teacher-forced decoder
"""
