"""
Setup script for sprintwise-engine.

Sprintwise is the adaptive progression engine behind daily learning
sprints. It:

1. Grades knowledge checks and tracks per-skill mastery
2. Schedules spaced-repetition reviews and adjusts pacing
3. Sequences generation of the next sprints with a look-ahead buffer

The 'sprintwise' command exposes operator tasks (init-db, status,
maintain-buffer, analyze, generate).
"""

from setuptools import find_packages, setup

setup(
    name="sprintwise-engine",
    version="0.1.0",
    description="Adaptive progression engine for daily learning sprints",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    packages=find_packages(include=["sprintwise", "sprintwise.*"]),
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Database
        "sqlalchemy[asyncio]>=2.0.0",
        "asyncpg>=0.29.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # HTTP
        "httpx>=0.25.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.0.0",
            "aiosqlite>=0.19.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "sprintwise=sprintwise.cli:app",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "Intended Audience :: Education",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
    ],
    keywords="learning spaced-repetition mastery education sprints",
)
