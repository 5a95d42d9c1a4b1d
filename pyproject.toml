[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "mystlauncher"
version = "1.0.0"
description = "Keeps a node running in a Docker container: settings file, image and release update checks, and container lifecycle"
requires-python = ">=3.10"
keywords = ["docker", "launcher", "node", "container", "updates"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Operating System :: MacOS",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Systems Administration",
]
dependencies = [
    "requests",
    "semver>=3",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[tool.hatch.build.targets.wheel]
packages = ["mystlauncher"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
