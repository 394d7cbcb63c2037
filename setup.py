"""
Setup script for sat-coach-core.

The adaptive decision core behind a live SAT coaching session:

1. Knowledge tracing - per-skill Bayesian mastery estimates
2. Interventions - rule triggers plus an epsilon-greedy Q-learner
3. Live coaching - rate-limited coaching messages during a timed test

The 'coach' command replays scripted sessions for development.
"""

from setuptools import find_namespace_packages, setup

setup(
    name="sat-coach-core",
    version="0.3.0",
    description="Adaptive tutoring and live coaching core for SAT practice",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    packages=find_namespace_packages(include=["src", "src.*"]),
    py_modules=["config"],
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Database
        "sqlalchemy>=2.0.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "coach=src.cli.coach_cli:run",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "Intended Audience :: Education",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Education :: Computer Aided Instruction (CAI)",
    ],
    keywords="sat tutoring knowledge-tracing reinforcement-learning education",
)
