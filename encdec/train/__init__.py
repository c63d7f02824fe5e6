"""
Train Subpackage

    - optim.py: SGD with gradient clipping and epoch decay
    - checkpoint.py: Atomic, versioned checkpoint files
    - trainer.py: Epoch/shuffle/report/evaluate/checkpoint loop
"""
