#!/usr/bin/env python3
"""
pgvector memory v0.1 – setup configuration
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

Vector record storage backend on PostgreSQL + pgvector.
"""

import re
from pathlib import Path

from setuptools import setup, find_packages

ROOT = Path(__file__).parent
README = ROOT / "README.md"

# Read version from package without importing it (dependencies may be missing)
_init = (ROOT / "pgvector_memory" / "__init__.py").read_text(encoding="utf-8")
version = re.search(r'^__version__ = "([^"]+)"', _init, re.MULTILINE).group(1)

# Read long description
long_description = ""
if README.exists():
    long_description = README.read_text(encoding="utf-8")

# --------------------------------------------------------------------------- #
# Production dependencies
# --------------------------------------------------------------------------- #
INSTALL_REQUIRES = [
    # Configuration
    "pydantic>=2.6.0,<3.0.0",
    "pydantic-settings>=2.1.0,<3.0.0",
    "python-dotenv>=1.0.0,<2.0.0",

    # Storage
    "psycopg[binary]>=3.1.12,<4.0.0",
    "psycopg-pool>=3.2.0,<4.0.0",
    "pgvector>=0.2.4,<1.0.0",
    "numpy>=1.24.0",

    # Monitoring
    "prometheus-client>=0.19.0,<1.0.0",

    # Utilities
    "rich>=13.6.0",
    "typer>=0.9.0",
    "orjson>=3.9.0,<4.0.0",
]

TEST_REQUIRES = [
    "pytest>=7.4.0",
    "pytest-asyncio>=0.21.0",
    "pytest-cov>=4.1.0",
    "pytest-mock>=3.12.0",
]

# Development dependencies
DEV_REQUIRES = TEST_REQUIRES + [
    # Code Quality
    "ruff>=0.4.0,<1.0.0",
    "black>=24.3.0",
    "isort>=5.13.0",
    "mypy>=1.10.0,<2.0.0",
    "types-orjson>=3.6.0",

    # Development Tools
    "pre-commit>=3.7.0",
    "ipython>=8.23.0",
]

# --------------------------------------------------------------------------- #
# Setup configuration
# --------------------------------------------------------------------------- #
setup(
    name="pgvector-memory",
    version=version,
    description="Vector record storage backend on PostgreSQL + pgvector",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="pgvector memory team",

    # Package configuration
    packages=find_packages(
        include=["pgvector_memory", "pgvector_memory.*"],
        exclude=["tests*", "docs*", "examples*", "scripts*"]
    ),
    include_package_data=True,
    package_data={
        "pgvector_memory": ["py.typed"],
    },

    # Python version requirement
    python_requires=">=3.10",

    # Dependencies
    install_requires=INSTALL_REQUIRES,
    extras_require={
        "dev": DEV_REQUIRES,
        "test": TEST_REQUIRES,
    },

    # Console scripts
    entry_points={
        "console_scripts": [
            "pgvector-memory=pgvector_memory.cli:main",
        ],
    },

    # Classifiers
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: Apache Software License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Framework :: Pydantic",
        "Framework :: Pytest",
        "Topic :: Database",
        "Topic :: Scientific/Engineering :: Artificial Intelligence",
        "Topic :: Software Development :: Libraries :: Python Modules",
        "Typing :: Typed",
    ],

    # Keywords
    keywords=[
        "memory", "vector-search", "embeddings", "pgvector", "postgresql",
        "semantic-search", "async",
    ],

    # License
    license="Apache-2.0",

    zip_safe=False,
    platforms=["any"],
)
