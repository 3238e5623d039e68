[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "lxsysmon"
version = "0.1.0"
description = "Network event building, UDP report throttling and service installation helpers for a Linux system monitor"
requires-python = ">=3.10"
dependencies = []
keywords = ["monitoring", "sysmon", "linux", "network", "tcp", "udp", "events", "hexdump"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
    "Topic :: System :: Networking :: Monitoring",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["lxsysmon"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
