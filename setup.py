"""
setup.py for docaudit.
"""

from setuptools import setup, find_packages

setup(
    name="docaudit",
    version="0.1.0",
    description="Audit and feedback-driven correction of financial document extractions",
    packages=find_packages(exclude=["tests", "tests.*"]),
    package_data={
        "docaudit": ["config/*.yaml", "prompts/*.yaml"],
    },
    python_requires=">=3.8",
    install_requires=[
        'pydantic>=2.0',
        'pyyaml',
        'jinja2',
        'click',
        'typing_extensions',
    ],
    extras_require={
        'test': [
            'pytest',
            'pytest-asyncio',
        ],
    },
    entry_points={
        'console_scripts': [
            'docaudit=docaudit.cli:cli',
        ],
    },
)
