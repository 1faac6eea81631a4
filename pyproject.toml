[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "veilproxy"
version = "0.1.0"
description = "Protocol building blocks for chained proxies: Shadowsocks AEAD, VMess AEAD and Trojan framing"
requires-python = ">=3.10"
dependencies = [
    "cryptography",
]
keywords = ["proxy", "shadowsocks", "vmess", "trojan", "aead", "udp", "chain", "bloom-filter"]
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
    "Topic :: Internet :: Proxy Servers",
    "Topic :: Security :: Cryptography",
    "Framework :: AsyncIO",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[tool.hatch.build.targets.wheel]
packages = ["veilproxy"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
