[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "agentscript"
version = "0.1.0"
description = "Parser front-end for AgentScript / QAS scripts with Pine v5/v6-aligned syntax."
requires-python = ">=3.10"
dependencies = []
keywords = ["parser", "pine", "agentscript", "qas", "ast", "syntax-tree"]
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
    "Topic :: Software Development :: Compilers",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["agentscript"]

[tool.pytest.ini_options]
addopts = "-ra"
