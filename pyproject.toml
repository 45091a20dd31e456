[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "nightwisp"
version = "0.1.0"
description = "A fast TCP SYN port scanner for IPv4 hosts, built on raw sockets and asyncio"
requires-python = ">=3.10"
keywords = ["port-scanner", "syn-scan", "tcp", "ipv4", "networking", "raw-sockets"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Framework :: AsyncIO",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking :: Monitoring",
]
dependencies = [
    "psutil",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[project.scripts]
nightwisp = "nightwisp.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["nightwisp"]

[tool.pytest.ini_options]
addopts = "-ra"
