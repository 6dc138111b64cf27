[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "fancontrol"
version = "0.2.8"
description = "Notebook fan control building blocks: lenient JSON, option parsing, model and service configuration, temperature filtering and thresholds"
requires-python = ">=3.10"
dependencies = []
keywords = ["fan", "notebook", "laptop", "embedded-controller", "temperature", "json", "configuration"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Hardware",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["fancontrol"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
