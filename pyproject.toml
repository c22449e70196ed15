[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "taskgrid"
version = "0.1.0"
description = "A small TCP task manager that hands work out to node agents and tracks completion"
requires-python = ">=3.10"
dependencies = []
keywords = ["distributed", "task-queue", "tcp", "workers", "scheduler"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Distributed Computing",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
taskgrid-manager = "taskgrid.manager:main"
taskgrid-node = "taskgrid.node_agent:main"
taskgrid-client = "taskgrid.client:main"

[tool.hatch.build.targets.wheel]
packages = ["taskgrid"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
