[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "polang-ir"
version = "0.1.0"
description = "An in-memory intermediate representation for the Polang language: types, operations, verification, return-type inference and lowering to standard operations"
requires-python = ">=3.10"
dependencies = []
keywords = ["compiler", "ir", "intermediate-representation", "type-inference", "lowering", "polang"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Compilers",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["polang_ir"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
