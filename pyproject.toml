[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "conekit"
version = "0.1.0"
description = "Cone projections, matrix equilibration and Anderson acceleration for conic optimization solvers"
requires-python = ">=3.10"
dependencies = ["numpy"]
keywords = [
    "conic optimization",
    "cone projection",
    "exponential cone",
    "anderson acceleration",
    "equilibration",
    "sparse matrix",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Science/Research",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Scientific/Engineering :: Mathematics",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["conekit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
