# setup.py
"""
Python package configuration for abtest-remote-config

Builds and installs the remote config client package.

Key concepts covered:
- Package versioning
- Dependency management (libraries needed at runtime vs. for development)
- File inclusion (the YAML settings file is bundled with the package)
- A console script for the demo CLI
"""

from setuptools import setup, find_packages
import os

def read_readme():
    current_dir = os.path.abspath(os.path.dirname(__file__))
    readme_path = os.path.join(current_dir, "README.md")
    if os.path.exists(readme_path):
        with open(readme_path, "r", encoding="utf-8") as f:
            return f.read()
    return "Cached remote config client for A/B tests"

setup(
    # Package identity - this is what a user will 'pip install'
    name="abtest-remote-config",

    # Bump on every change to the public API or the bundled settings
    version="1.0.0",

    # Package metadata - shows up in pip show, PyPI, etc.
    description="Cached remote config client and event tracking for A/B tests",
    long_description=read_readme(),
    long_description_content_type="text/markdown",

    # Package discovery - tests are not shipped
    packages=find_packages(exclude=["tests", "tests.*"]),

    # File inclusion - without this the bundled settings file wouldn't be installed
    include_package_data=True,
    package_data={
        'abtest_remote_config': [
            'configs/*.yaml',
            'configs/*.yml',
        ]
    },

    # asyncio.Lock must be constructible outside a running loop
    python_requires=">=3.10",

    # Dependencies
    install_requires=[
        "pyyaml>=6.0",        # For parsing the bundled settings file
        "pydantic>=2.0",      # For settings and backend payload validation
    ],

    # Development dependencies - only needed when working on this package
    # Install with: pip install -e ".[dev]"
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "black>=22.0.0",      # Code formatting
            "flake8>=4.0.0",      # Linting
            "mypy>=0.950",        # Type checking
        ]
    },

    # Package classification
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Libraries",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],

    # Entry points
    entry_points={
        'console_scripts': [
            'abtest-remote-config-demo=abtest_remote_config.cli:main',
        ],
    },
)
