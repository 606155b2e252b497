"""Setup script for the MindCare assistant."""

from setuptools import setup, find_packages

setup(
    name="mindcare-assistant",
    version="1.0.0",
    description="Multilingual mental-health support assistant with voice input",
    author="Your Name",
    packages=find_packages(include=['mindcare', 'mindcare.*']),
    python_requires=">=3.11",
    install_requires=[
        "python-dotenv>=1.0.0",
        "structlog>=23.0.0",
        "click>=8.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "mindcare=mindcare.cli.main:cli",
        ],
    },
)
