[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "discfilter"
version = "0.1.0"
description = "Packet filtering, rate limiting, IP voting and query helpers for a Kademlia-style discovery service"
requires-python = ">=3.10"
dependencies = []
keywords = ["discovery", "kademlia", "rate-limiter", "gcra", "p2p", "networking"]
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
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["discfilter"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
