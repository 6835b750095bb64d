[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "scanguard"
version = "0.1.0"
description = "Interactive console monitor that watches files, processes and network traffic for suspicious activity"
requires-python = ">=3.10"
keywords = ["monitoring", "file-watcher", "process-monitor", "network", "intrusion-detection"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
    "Topic :: Security",
]
dependencies = [
    "watchdog",
    "psutil",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
scanguard = "scanguard.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["scanguard"]

[tool.pytest.ini_options]
addopts = "-ra"
