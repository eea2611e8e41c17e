[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "slotsearch"
version = "0.1.0"
description = "Preprocess trade CSV data into binary index files and search them through a named-pipe server and an interactive client"
requires-python = ">=3.10"
dependencies = []
keywords = ["search", "index", "binary", "fifo", "named-pipe", "csv", "trades"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Database",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
slotsearch-preprocess = "slotsearch.preprocess:main"
slotsearch-server = "slotsearch.server:main"
slotsearch-client = "slotsearch.client:main"

[tool.hatch.build.targets.wheel]
packages = ["slotsearch"]

[tool.pytest.ini_options]
addopts = "-ra"
