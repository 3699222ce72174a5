[build-system]
requires = ["setuptools>=61.0"]
build-backend = "setuptools.build_meta"

[project]
name = "y86sim"
version = "1.0.0"
description = "Assembler, instruction-set simulator and pipeline simulator library for the Y86-64 architecture"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "y86",
    "y86-64",
    "assembler",
    "simulator",
    "emulator",
    "pipeline",
    "computer-architecture",
    "hcl",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Emulators",
    "Topic :: Software Development :: Assemblers",
    "Topic :: Education",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
yas = "y86sim.assembler:main"
yis = "y86sim.yis:main"

[tool.setuptools.packages.find]
include = ["y86sim*"]

[tool.pytest.ini_options]
addopts = "-ra"
