"""
Data Subpackage

    - vocab.py: Token <-> id mapping with an open/frozen lifecycle
    - corpus.py: Loading and validating one-sentence-per-line corpora
    - schema.py: Pydantic model/training configuration, YAML loading
"""
