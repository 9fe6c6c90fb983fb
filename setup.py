"""
smcli setup.py — install the wallet core and the smcli command.

Usage:
    pip install .                          # install everything
    pip install ".[dev]"                   # install with dev tools
"""

from pathlib import Path

from setuptools import find_packages, setup

HERE = Path(__file__).resolve().parent
long_description = ""
if (HERE / "README.md").exists():
    long_description = (HERE / "README.md").read_text(encoding="utf-8")

# ---------------------------------------------------------------------------
# Package setup
# ---------------------------------------------------------------------------

setup(
    name="smcli",
    version="0.1.0",
    description="Spacemesh wallet key derivation and encrypted keystore files",
    long_description=long_description,
    long_description_content_type="text/markdown",
    license="MIT",
    author="smcli Contributors",
    python_requires=">=3.10",
    packages=find_packages(exclude=["tests", "tests.*", "build"]),
    py_modules=["smcli"],
    install_requires=[
        "ecdsa>=0.18.0,<0.19",
        "pycryptodome>=3.21.0,<4",
        "mnemonic>=0.20",
        "bech32>=1.2.0",
        "tomli>=2.0.0,<3;python_version<'3.11'",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0",
            "pytest-cov>=4.0",
            "mypy>=1.5",
            "ruff>=0.1.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "smcli=smcli:main",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "Topic :: Security :: Cryptography",
        "Topic :: Software Development :: Libraries",
    ],
)
