"""
Setup script for hlspresso
"""

import re
from pathlib import Path

from setuptools import setup, find_packages

version = re.search(
    r'^__version__ = "([^"]+)"',
    Path("hlspresso/__init__.py").read_text(encoding="utf-8"),
    re.MULTILINE,
).group(1)

with open("README.md", "r", encoding="utf-8") as f:
    long_description = f.read()

with open("requirements.txt", "r", encoding="utf-8") as f:
    requirements = [
        line.strip() for line in f
        if line.strip() and not line.startswith("#")
    ]

setup(
    name="hlspresso",
    version=version,
    author="hlspresso Contributors",
    description="FFmpeg orchestration for adaptive HLS and MP4 transcoding",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Multimedia :: Video :: Conversion",
    ],
    python_requires=">=3.10",
    install_requires=requirements,
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "hlspresso=hlspresso.__main__:main",
        ],
    },
)
