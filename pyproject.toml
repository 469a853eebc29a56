[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "nvrules2kw"
version = "0.1.0"
description = "Convert NeuVector Admission Control rules into Kubewarden ClusterAdmissionPolicy YAMLs"
requires-python = ">=3.10"
keywords = ["kubernetes", "kubewarden", "neuvector", "admission-control", "policy"]
classifiers = [
    "Development Status :: 4 - Beta",
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
    "Topic :: Software Development :: Code Generators",
    "Topic :: System :: Systems Administration",
]
dependencies = [
    "pyyaml",
    "tabulate",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
nvrules2kw = "nvrules2kw.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["nvrules2kw"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
