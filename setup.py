"""
Setup configuration for the encdec package.

This allows you to install the project with:
    pip install -e .

After installation, you can import modules like:
    from encdec.models.encoder_decoder import EncoderDecoder
    from encdec.train.trainer import Seq2SeqTrainer

and run the trainer as:
    encdec-train corpus.txt dev.txt [model.pt]
"""

from setuptools import setup, find_packages

# Read the README for long description
with open("README.md", "r", encoding="utf-8") as f:
    long_description = f.read()

setup(
    # -------------------------
    # Basic Package Information
    # -------------------------
    name="encdec",
    version="0.1.0",
    description="Bidirectional LSTM encoder-decoder trained with per-example SGD",
    long_description=long_description,
    long_description_content_type="text/markdown",

    # -------------------------
    # Package Discovery
    # -------------------------
    packages=find_packages(where=".", include=["encdec", "encdec.*"]),
    package_dir={"": "."},

    # -------------------------
    # Python Version Requirement
    # -------------------------
    python_requires=">=3.9",

    # -------------------------
    # Dependencies
    # -------------------------
    install_requires=[
        "torch>=2.0.0",
        "pydantic>=2.0.0",
        "pyyaml>=6.0",
    ],

    # Optional dependencies (install with pip install -e ".[dev]")
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-cov>=4.1.0",
            "flake8>=6.1.0",
            "black>=23.7.0",
            "mypy>=1.5.0",
        ],
    },

    # -------------------------
    # Entry Points (CLI commands)
    # -------------------------
    entry_points={
        "console_scripts": [
            # encdec-train corpus.txt dev.txt [model.pt]
            "encdec-train=encdec.app.cli:main",
        ],
    },

    # -------------------------
    # Metadata
    # -------------------------
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Science/Research",
        "Topic :: Scientific/Engineering :: Artificial Intelligence",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
    keywords="seq2seq, encoder-decoder, lstm, language model, pytorch",
)
