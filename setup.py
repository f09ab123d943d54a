"""
posix-bridge setup configuration.

This module configures the installation and distribution of posix-bridge, a
ctypes-based convention-translation layer over the POSIX C library.

PLATFORM SUPPORT
================

The package is pure Python and loads the host's C library at runtime through
ctypes, so a single universal wheel serves every POSIX platform:

  - Linux (glibc, musl)
  - macOS
  - BSDs

Library loading is handled by posix_bridge/_libc_loader.py which:
  - Detects the current platform (OS + architecture)
  - Locates and loads the C library
  - Provides clear error messages if it cannot be loaded

Windows has no POSIX C library; the simulated native layer
(PosixBridge(simulate=True)) still works there for development.
"""

import platform
from setuptools import setup, find_packages


def get_platform_classifiers():
    """
    Generate platform classifiers for the wheel.

    Returns:
        list: Additional classifiers for the build platform
    """
    system = platform.system().lower()

    classifiers = []

    if system == "darwin":
        classifiers.append("Operating System :: MacOS")
    elif system == "linux":
        classifiers.append("Operating System :: POSIX :: Linux")

    return classifiers


# Read README for long description
with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

# Read version from the package so there is a single source of truth
with open("posix_bridge/version.txt", "r", encoding="utf-8") as fh:
    version = fh.read().strip()

base_classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3.8",
    "Programming Language :: Python :: 3.9",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Topic :: Software Development :: Libraries :: Python Modules",
    "Topic :: System :: Operating System",
]

all_classifiers = base_classifiers + get_platform_classifiers()

setup(
    name="posix-bridge",
    version=version,
    description="POSIX C library bridge - errno classification, named flags, opaque handles",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*", "examples"]),
    package_data={"posix_bridge": ["version.txt"]},
    classifiers=all_classifiers,
    python_requires=">=3.8",
    install_requires=[],
    extras_require={
        "dev": [
            "pytest>=7.0",
            "pytest-cov>=4.0",
            "black>=23.0",
            "flake8>=6.0",
            "mypy>=1.0",
            "isort>=5.0",
        ],
        "docs": [
            "sphinx>=5.0",
            "sphinx-rtd-theme>=1.0",
        ],
    },
    keywords="posix libc errno ctypes syslog",
    # Console script entry points for CLI
    entry_points={
        'console_scripts': [
            'posix-bridge=posix_bridge.cli:main',
        ],
    },
    zip_safe=False,
)
