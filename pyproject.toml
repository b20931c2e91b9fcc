[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "sendspin"
version = "0.1.0"
description = "Sendspin protocol player building blocks: clock sync, PCM codecs, resampling, volume, status view and an asyncio WebSocket client"
requires-python = ">=3.10"
keywords = ["sendspin", "audio", "streaming", "player", "websocket", "pcm", "clock-sync", "multiroom"]
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
    "Framework :: AsyncIO",
    "Topic :: Multimedia :: Sound/Audio :: Players",
]
dependencies = [
    "websockets",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[tool.hatch.build.targets.wheel]
packages = ["sendspin"]

[tool.hatch.build.targets.sdist]
include = ["sendspin", "tests"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]
