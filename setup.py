"""AutoDup setup - clone Auto Run sessions when their triggers fire."""
from setuptools import setup, find_packages

setup(
    name="autodup",
    version="1.0.0",
    description="AutoDup: trigger-driven duplication of Auto Run worker sessions",
    packages=find_packages(include=["autodup", "autodup.*", "autodup_cli", "autodup_cli.*"]),
    python_requires=">=3.10",
    install_requires=[
        "click>=8.0",
        "blake3>=0.3",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "autodup=autodup_cli.main:cli",
        ],
    },
)
