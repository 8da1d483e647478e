"""
Setup script for unitforge.

unitforge turns a topic (and optional source text) into a validated,
strictly-typed learning unit:

1. Outline - exact-N step plan with Bloom progression
2. Step detail - concurrent per-step generation
3. Normalization - schema-free LLM JSON to typed content blocks
4. Safe workflow - validate, auto-fix, accept or fail

The 'unitforge' command is the entry point.
"""

from setuptools import find_packages, setup

setup(
    name="unitforge",
    version="0.1.0",
    description="LLM-driven generation and validation of learning units",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    author="Right Learning",
    packages=find_packages(include=["unitforge", "unitforge.*"]),
    py_modules=["config"],
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # HTTP
        "httpx>=0.25.0",
        # LLM
        "google-generativeai>=0.5.0",
        "google-api-core>=2.11.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "unitforge=unitforge.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "Intended Audience :: Education",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Education :: Computer Aided Instruction (CAI)",
    ],
    keywords="learning llm content-generation education validation",
)
