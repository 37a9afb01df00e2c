[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "substratekit"
version = "0.1.0"
description = "Storage key hashing, storage queries, transaction progress tracking and runtime updates for Substrate-based chains"
requires-python = ">=3.10"
dependencies = []
keywords = ["substrate", "blockchain", "storage", "rpc", "transactions", "xxhash", "blake2"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Framework :: AsyncIO",
    "Operating System :: OS Independent",
    "Topic :: Software Development :: Libraries",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[tool.hatch.build.targets.wheel]
packages = ["substratekit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.mypy]
python_version = "3.10"
