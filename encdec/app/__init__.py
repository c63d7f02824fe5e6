"""
App Subpackage

    - cli.py: `encdec-train` command
    - logs.py: stderr logging setup
"""
