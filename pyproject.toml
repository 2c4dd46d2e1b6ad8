[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ddcchain"
version = "0.1.0"
description = "In-memory models of a relayer-voted cross-chain bridge and DDC cluster management"
requires-python = ">=3.10"
dependencies = []
keywords = ["bridge", "relayer", "cluster", "governance", "ddc", "chain-spec"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Distributed Computing",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["ddcchain"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
strict = true
