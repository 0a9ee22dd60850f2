[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "govballot"
version = "0.1.0"
description = "Operator ballot voting with meta Merkle snapshots of delegated stake"
requires-python = ">=3.10"
dependencies = [
    "pynacl",
]
keywords = ["governance", "voting", "merkle", "stake", "ballot", "snapshot"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: Financial and Insurance Industry",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Office/Business :: Financial",
    "Topic :: Security :: Cryptography",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
govballot = "govballot.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["govballot"]

[tool.pytest.ini_options]
addopts = "-ra"
