"""Setup script for httpxfer."""

from setuptools import setup, find_packages

# Read README for long description
with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="httpxfer",
    version="0.1.0",
    author="httpxfer Team",
    author_email="contact@example.com",
    description="HTTP transfer client with TLS trust control, chunked multipart uploads and idempotent downloads",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/example/httpxfer",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Internet :: WWW/HTTP",
        "Topic :: Utilities",
    ],
    python_requires=">=3.11",
    install_requires=[
        "httpx[http2]>=0.27.0",
        "typer>=0.9.0",
        "rich>=13.0.0",
        "pydantic>=2.0.0",
        "python-dotenv>=1.0.0",
        "pyyaml>=6.0",
        "niquests>=3.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "black>=23.0.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "httpxfer=httpxfer.cli:main",
        ],
    },
    include_package_data=True,
    zip_safe=False,
)
