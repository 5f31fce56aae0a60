#!/usr/bin/env python3
# setup.py：安装命令行工具
#
# 安装方式：
#   pip install -e .
#   pip install -e .[test]
#
# 启动方式：
#   multi-repo-agent --bundle bundles/my-task
#   python main.py --bundle bundles/my-task

from setuptools import setup, find_packages

# 读取 README.md 作为长描述
try:
    with open("README.md", "r", encoding="utf-8") as fh:
        long_description = fh.read()
except FileNotFoundError:
    long_description = "Fork, clone and run an AI coding agent across many repositories"

setup(
    name="multi-repo-agent",
    version="1.0.0",
    description="Batch runner for AI coding agents across many GitHub repositories",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages("src"),
    package_dir={"": "src"},
    python_requires=">=3.8",
    install_requires=[
        "colorama>=0.4.6",
        "PyYAML>=6.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "multi-repo-agent=multi_repo_agent.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Version Control :: Git",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)
