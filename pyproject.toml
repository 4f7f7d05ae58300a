[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "oscmidibridge"
version = "0.8.0"
description = "Bridge MIDI note and control-change messages to OSC over UDP and back"
requires-python = ">=3.10"
keywords = ["midi", "osc", "bridge", "open sound control", "music", "udp"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Multimedia :: Sound/Audio :: MIDI",
]
dependencies = [
    "mido",
    "psutil",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
oscmidibridge = "oscmidibridge.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["oscmidibridge"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
ignore_missing_imports = true
