[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "rpowdb"
version = "0.1.0"
description = "Spent-item database kept as a hashed B-tree whose every lookup and insert comes with a verifiable proof"
requires-python = ">=3.10"
dependencies = []
keywords = ["merkle", "b-tree", "proof", "database", "hashcash", "proof-of-work"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Security :: Cryptography",
    "Topic :: Database",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["rpowdb"]

[tool.pytest.ini_options]
addopts = "-ra"
