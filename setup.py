"""
Setup script for synapse-srs.

Synapse is the spaced-repetition core of a vocabulary-learning backend:

1. Review Outcome Calculator - SM-2 update from a 0-5 recall quality
2. Due-Set Selector - which words to review now, and in what order
3. Host layer - SQLite store, serialized review service, learner analytics

The 'synapse' command is a terminal front end to the host layer.
"""

from setuptools import find_packages, setup

setup(
    name="synapse-srs",
    version="1.0.0",
    description="SM-2 spaced repetition engine for vocabulary learning",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    author="Synapse",
    packages=find_packages(include=["synapse", "synapse.*"]),
    python_requires=">=3.11",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
        ],
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "synapse=synapse.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "Intended Audience :: Education",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Education :: Computer Aided Instruction (CAI)",
    ],
    keywords="learning spaced-repetition sm2 vocabulary education",
)
