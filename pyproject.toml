[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "callstorm"
version = "1.0.0"
description = "Controller and simulator for a bank of relay-driven telephone ringers with menu, display and persistent settings"
requires-python = ">=3.10"
dependencies = []
keywords = ["telephone", "ringer", "relay", "simulation", "lcd", "rotary-encoder"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Other Audience",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Home Automation",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
callstorm = "callstorm.controller:main"

[tool.hatch.build.targets.wheel]
packages = ["callstorm"]

[tool.pytest.ini_options]
addopts = "-ra"
