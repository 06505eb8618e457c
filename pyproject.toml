[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "udpcomm"
version = "0.1.0"
description = "Small UDP and TCP messaging primitives: publish/subscribe, request/reply and message dissection over sockets."
requires-python = ">=3.10"
dependencies = []
keywords = [
    "udp",
    "tcp",
    "sockets",
    "publish-subscribe",
    "request-reply",
    "multicast",
    "networking",
    "framing",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["udpcomm"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
