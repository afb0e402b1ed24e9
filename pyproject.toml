[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "monopool"
version = "0.1.0"
description = "A single-coin Stratum mining pool server with daemon RPC, job management, vardiff and Redis share storage"
requires-python = ">=3.10"
keywords = ["mining", "stratum", "pool", "bitcoin", "litecoin", "vardiff", "merkle"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Distributed Computing",
]
dependencies = [
    "redis",
    "requests",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[project.scripts]
monopool = "monopool.pool:main"

[tool.hatch.build.targets.wheel]
packages = ["monopool"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
