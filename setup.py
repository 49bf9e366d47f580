"""
setup.py: Setup script for Tarot Card Recognition System
"""

from setuptools import setup, find_packages

setup(
    name="tarot-card-recog",
    version="0.1.0",
    description="Tarot card recognition cascade: learned associations, OCR and text matching",
    packages=find_packages(),
    python_requires=">=3.9",
    install_requires=[
        "opencv-python>=4.8.0",
        "Pillow>=10.0.0",
        "imagehash>=4.3.1",
        "pytesseract>=0.3.10",
        "numpy>=1.24.0",
        "httpx>=0.25.0",
        "fastapi>=0.104.0",
        "uvicorn[standard]>=0.24.0",
        "slowapi>=0.1.9",
        "sqlalchemy>=2.0.0",
        "pydantic>=2.5.0",
        "click>=8.1.7",
        "python-dotenv>=1.0.0",
        "python-Levenshtein>=0.21.1",
        "fuzzywuzzy>=0.18.0",
        "tqdm>=4.66.0",
    ],
    extras_require={
        'test': [
            "pytest>=7.4.0",
        ],
    },
    entry_points={
        'console_scripts': [
            'tarot-recog=tarot_recog.cli.main:cli',
        ],
    },
)
