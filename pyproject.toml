[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "firenozzle"
version = "2.7.0"
description = "Building blocks for a firehose nozzle that shapes platform envelopes into New Relic events"
requires-python = ">=3.10"
keywords = ["firehose", "nozzle", "loggregator", "cloud-foundry", "metrics", "monitoring"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
]
dependencies = [
    "requests>=2.28",
]

[project.optional-dependencies]
test = [
    "pytest>=7",
    "responses>=0.23",
]

[tool.hatch.build.targets.wheel]
packages = ["firenozzle"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
check_untyped_defs = true
