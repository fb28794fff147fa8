from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="review-relay",
    version="0.1.0",
    author="review-relay Contributors",
    author_email="",
    description="AI code review over MCP and the command line, with retries and failover across AI services",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/review-relay/review-relay",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Quality Assurance",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.9",
    install_requires=[
        "click>=8.0.0",
        "pyyaml>=6.0",  # For the review://config resource
        "gitpython>=3.1.0",
        "google-genai>=1.28.0",  # Gemini backend
        "anthropic>=0.40.0",  # Claude backend
        "rich>=13.0.0",  # For nice terminal output
        "aiohttp>=3.8.0",  # OpenRouter backend
        "pydantic>=2.0.0",  # Request/response models and tool schemas
        "python-dotenv>=1.0.0",  # For .env file support
    ],
    entry_points={
        "console_scripts": [
            "review-relay=review_relay.cli:main",
            "review-relay-mcp=review_relay.mcp_server:run",
        ],
    },
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "pytest-asyncio>=0.21.0",
            "pytest-mock>=3.10.0",
            "aioresponses>=0.7.4",  # For mocking aiohttp
            "aiohttp<3.14",  # aioresponses 0.7.x is incompatible with aiohttp 3.14 ClientResponse
            "black>=23.0.0",
            "flake8>=6.0.0",
            "mypy>=1.0.0",
            "isort>=5.12.0",
        ],
    },
)
