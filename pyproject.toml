[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "subscan"
version = "2.5.4"
description = "Passive subdomain discovery using online sources, with optional wildcard removal through DNS resolution."
requires-python = ">=3.10"
keywords = ["subdomain", "enumeration", "dns", "passive", "reconnaissance", "osint"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Information Technology",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: Name Service (DNS)",
    "Topic :: Security",
]
dependencies = [
    "requests>=2.28",
    "pyyaml>=6.0",
    "dnspython>=2.3",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
    "responses>=0.23",
]

[project.scripts]
subscan = "subscan.runner:main"

[tool.hatch.build.targets.wheel]
packages = ["subscan"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
ignore_missing_imports = true
