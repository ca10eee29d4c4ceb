[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "biscuit_datalog"
version = "0.1.0"
description = "Parser and builder types for the Datalog dialect used by Biscuit authorization tokens"
requires-python = ">=3.11"
dependencies = []
keywords = ["datalog", "parser", "authorization", "biscuit", "policy"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Interpreters",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["biscuit_datalog"]

[tool.pytest.ini_options]
addopts = "-ra"
