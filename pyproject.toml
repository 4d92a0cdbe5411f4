[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "blueprog"
version = "0.1.0"
description = "Simulated vault, escrow and flash-loan programs over an in-memory token ledger"
requires-python = ">=3.10"
dependencies = []
keywords = ["escrow", "vault", "flash-loan", "ledger", "token", "secp256r1", "simulation"]
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
    "Topic :: Office/Business :: Financial",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["blueprog"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
