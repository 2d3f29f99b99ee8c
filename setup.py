from __future__ import annotations

from pathlib import Path
from setuptools import find_packages, setup

BASE_DIR = Path(__file__).parent
README = (BASE_DIR / "readme.md").read_text(encoding="utf-8") if (BASE_DIR / "readme.md").exists() else ""

setup(
    name="school-timetable-manager",
    version="0.1.0",
    description="Timetable, attendance and AI-assisted import back end for a single school.",
    long_description=README,
    long_description_content_type="text/markdown",
    author="Hamidur",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    package_data={"timetable_app.data": ["migrations/*.sql"]},
    include_package_data=True,
    python_requires=">=3.10",
    install_requires=[
        "Pillow>=10.0.0",
        "python-dotenv>=1.0.0",
        "requests>=2.31.0",
        "structlog>=24.1.0",
        "pandas>=2.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
        ]
    },
    entry_points={
        "console_scripts": [
            "timetable-app=timetable_app.main:main",
        ]
    },
)
