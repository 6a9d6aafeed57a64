#!/usr/bin/env python3
"""Setup script for rule_dedupe package.
"""

from setuptools import find_packages, setup

setup(
    name="rule_dedupe",
    version="0.4.0",
    description="Weighted rule based candidate duplicate search for contact records",
    author="Rule Dedupe Team",
    packages=find_packages(include=["rule_dedupe*"]),
    python_requires=">=3.10",
    install_requires=[
        "pandas>=1.5.0",
        "numpy>=1.23.0",
        "duckdb>=0.10.0",
        "pyyaml>=6.0",
        "joblib>=1.2.0",
        "openpyxl>=3.0.0",
        "pyarrow>=12.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "hypothesis>=6.0.0",
            "black>=23.0.0",
            "ruff>=0.1.0",
            "mypy>=1.5.0",
            "pandas-stubs>=2.0.0",
            "types-PyYAML>=6.0.0",
        ],
        "test": [
            "pytest>=7.0.0",
            "hypothesis>=6.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "rule-dedupe=rule_dedupe.cli:main",
        ],
    },
)
