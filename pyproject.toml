[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "chatmesh"
version = "0.1.0"
description = "Room-based WebSocket chat server that can fan messages out across instances through Redis Pub/Sub"
requires-python = ">=3.11"
keywords = ["chat", "websocket", "redis", "pubsub", "rooms", "aiohttp"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Web Environment",
    "Framework :: AsyncIO",
    "Framework :: aiohttp",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Communications :: Chat",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
]
dependencies = [
    "aiohttp>=3.9",
    "redis>=5.0.1",
]

[project.optional-dependencies]
test = [
    "pytest>=8.0",
    "pytest-asyncio>=0.23",
]

[project.scripts]
chatmesh-server = "chatmesh.server:main"
chatmesh-demo = "chatmesh.demo:main"
chatmesh-smoke = "chatmesh.smoke:main"

[tool.hatch.build.targets.wheel]
packages = ["chatmesh"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.ruff.lint]
select = ["E", "F", "I", "B", "UP"]

[tool.mypy]
python_version = "3.11"
warn_unused_ignores = true
ignore_missing_imports = true
