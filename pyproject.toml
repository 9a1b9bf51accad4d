[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "janus-gateway"
version = "0.1.0"
description = "API definition models and storage backends (memory, JSON files, MongoDB, Cassandra) for an API gateway"
requires-python = ">=3.10"
dependencies = [
    "pymongo",
]
keywords = ["api-gateway", "proxy", "api-definitions", "mongodb", "cassandra", "repository"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: Proxy Servers",
    "Topic :: Database :: Front-Ends",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-mock",
]

[tool.hatch.build.targets.wheel]
packages = ["janus_gateway"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
