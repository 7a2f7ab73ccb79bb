"""Set up the git-lfs-s3-proxy package."""
import json
from pathlib import Path

from setuptools import find_packages, setup

DESCRIPTION = (
    "A stateless Git LFS batch API server that hands out"
    " pre-signed S3-compatible object store URLs."
)

REQUIREMENTS = [
    "fastapi>=0.100.0",
    "pydantic>=2.6.1",
    "typing-extensions>=3.7.4.3",  # required by pydantic
    "python-dotenv>=0.19.0",
    "uvicorn>=0.23.2",
    "botocore>=1.31.0",
]

ROOT_DIR = Path(__file__).parent.resolve()
README_FILE = ROOT_DIR / "README.md"
LONG_DESCRIPTION = README_FILE.read_text(encoding="utf-8")
VERSION_FILE = ROOT_DIR / "lfs_s3_proxy" / "VERSION"
VERSION = json.loads(VERSION_FILE.read_text(encoding="utf-8"))["version"]


setup(
    name="git-lfs-s3-proxy",
    version=VERSION,
    description=DESCRIPTION,
    long_description=LONG_DESCRIPTION,
    long_description_content_type="text/markdown",
    url="https://github.com/milkey-mouse/git-lfs-s3-proxy",
    license="MIT",
    packages=find_packages(exclude=["tests", "tests.*"]),
    package_data={"lfs_s3_proxy": ["VERSION"]},
    python_requires=">=3.9",
    include_package_data=True,
    install_requires=REQUIREMENTS,
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21.0",
            "httpx>=0.24.0",
        ],
    },
    zip_safe=False,
    entry_points={
        "console_scripts": ["git-lfs-s3-proxy = lfs_s3_proxy.__main__:main"]
    },
)
