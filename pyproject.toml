[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "sipwire"
version = "0.1.0"
description = "SIP URIs, UDP connections and server transaction state machines"
requires-python = ">=3.10"
keywords = ["sip", "voip", "rfc3261", "rfc6026", "udp", "transaction"]
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
    "Topic :: Communications :: Internet Phone",
    "Topic :: Software Development :: Libraries :: Python Modules",
]
dependencies = [
    "psutil",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["sipwire"]

[tool.pytest.ini_options]
addopts = "-ra"
