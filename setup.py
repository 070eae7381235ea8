from setuptools import setup, find_packages

def parse_requirements(requirements):
    with open(requirements) as f:
        return [l.strip('\n') for l in f if l.strip('\n') and not l.startswith('#')]

requirements = parse_requirements("requirements.txt")

setup(
    name='intrachat',
    version='0.1.0',
    install_requires=requirements,
    package_dir={'': 'src'},
    packages=find_packages('src'),
    py_modules=['server'],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
            "httpx",
        ],
    },
    entry_points={
        "console_scripts": [
            "intrachat=intrachat_cli.cli:cli",
        ],
    }
)
