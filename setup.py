"""
crudgen - CRUD endpoint generator for FastAPI + PostgreSQL services
Install: pip install -e .
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as f:
    long_description = f.read()

setup(
    name="crudgen",
    version="1.0.0",
    author="Diegoproggramer",
    author_email="",
    description="⚡ Add PostgreSQL-backed CRUD endpoints to a FastAPI service in seconds",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/Diegoproggramer/crudgen",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Code Generators",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Framework :: FastAPI",
    ],
    python_requires=">=3.11",
    install_requires=[
        "sqlalchemy>=2.0.0",
        "pydantic>=2.0.0",
        "PyYAML>=6.0",
    ],
    extras_require={
        "postgres": [
            "psycopg2-binary>=2.9",
        ],
        "dev": [
            "pytest>=7.0",
            "fastapi>=0.100.0,<0.137",
            "uvicorn>=0.20.0",
            "asyncpg>=0.29",
            "httpx>=0.24.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "crudgen=crudgen.cli:main",
        ],
    },
    keywords="fastapi, postgresql, generator, crud, asyncpg, code-generator",
    project_urls={
        "Bug Reports": "https://github.com/Diegoproggramer/crudgen/issues",
        "Source": "https://github.com/Diegoproggramer/crudgen",
    },
)
