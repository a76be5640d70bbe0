[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "dojo_env"
version = "0.1.0"
description = "Frame abstraction and tabular Q-learning for agents that learn from fighting-game screen frames"
requires-python = ">=3.10"
keywords = ["reinforcement-learning", "q-learning", "computer-vision", "segmentation", "games"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Artificial Intelligence",
    "Topic :: Scientific/Engineering :: Image Processing",
]
dependencies = [
    "numpy",
    "pillow",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["dojo_env"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
