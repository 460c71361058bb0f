[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "greybus"
version = "0.1.0"
description = "Greybus operation messages, protocol payloads, cport registry, loopback driver and transports"
requires-python = ">=3.10"
dependencies = []
keywords = ["greybus", "unipro", "embedded", "protocol", "loopback", "spi", "i2c", "uart", "tcp"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Software Development :: Embedded Systems",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["greybus"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
