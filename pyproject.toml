[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "crashscope"
version = "0.27.0"
description = "Event scopes, source context, span recording, a sampling profiler and OpenTelemetry status mapping for error and performance monitoring."
requires-python = ">=3.10"
dependencies = []
keywords = ["monitoring", "profiling", "tracing", "error-reporting", "spans", "scope", "opentelemetry"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
    "Topic :: Software Development :: Debuggers",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["crashscope"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
