[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "codchi"
version = "0.1.0"
description = "Locked configuration files, machine settings and Nix build-log progress for codchi code machines"
requires-python = ">=3.10"
keywords = ["nix", "nixos", "flakes", "development-environment", "configuration", "file-locking"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Software Development :: Build Tools",
]
dependencies = [
    "tomlkit",
    "portalocker",
    "platformdirs",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["codchi"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
