[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "karapace"
version = "0.1.0"
description = "Security policy, prerequisite checks, terminal markers and runtime status for isolated Linux environments"
requires-python = ">=3.10"
dependencies = []
keywords = ["container", "deterministic", "immutable", "environment", "linux", "namespace", "oci"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Systems Administration",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["karapace"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
