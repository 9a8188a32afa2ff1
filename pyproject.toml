[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "crawlslack"
version = "0.1.0"
description = "Crawl news, reports, job postings and feeds, and deliver new items to Slack; archive Slack threads as GitHub issues."
requires-python = ">=3.10"
keywords = ["crawler", "slack", "rss", "scraping", "notifications", "github", "archive"]
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
    "Topic :: Internet :: WWW/HTTP :: Indexing/Search",
    "Topic :: Communications :: Chat",
]
dependencies = [
    "requests>=2.28",
    "beautifulsoup4>=4.11",
    "sqlalchemy>=2.0",
    "tenacity>=8.0",
    "defusedxml>=0.7",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
    "responses>=0.23",
]

[tool.hatch.build.targets.wheel]
packages = ["crawlslack"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
ignore_missing_imports = true
